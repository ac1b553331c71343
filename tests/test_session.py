"""
Tests for the onboarding session state machine, including the end-to-end flows.
"""

import pytest

from sita.storage import DRAFT_KEY, ONBOARDED_KEY, PROGRESS_KEY, RECORD_KEY, USER_NAME_KEY

from onboarding.completion import RemoteOk
from onboarding.errors import InvalidFieldError, InvalidTransitionError, OnboardingError, UnknownAutomationError
from onboarding.payload import OnboardingData
from onboarding.preview import STATEMENTS
from onboarding.profile import CHANGE_PACING, INFORMATION_DENSITY, Confidence
from onboarding.progress import SavedProgress
from onboarding.session import SessionStatus, describe_recovery
from onboarding.signals import Question
from onboarding.steps import MODE_SELECTION_INDEX, SetupMode, StepId, terminal_index

from conftest import HOUR_MS, enter_mode, run, walk_to


class TestStartup:

    def test_new_session_state(self, make_session):
        session = make_session()
        assert session.status is SessionStatus.NOT_STARTED
        assert session.step_index == 0
        assert session.current_step == StepId.ENTRY
        assert session.mode is SetupMode.GUIDED

    def test_check_recovery_does_not_mutate(self, make_session, channel, clock):
        channel.set(PROGRESS_KEY, SavedProgress(step=6, mode=SetupMode.DEEP, timestamp=clock()).model_dump_json())
        session = make_session()
        saved = session.check_recovery()
        assert saved.step == 6
        assert session.step_index == 0
        assert session.mode is SetupMode.GUIDED
        assert session.status is SessionStatus.NOT_STARTED

    def test_start_fresh_discards_saved_progress(self, make_session, channel, clock):
        channel.set(PROGRESS_KEY, SavedProgress(step=6, mode=SetupMode.DEEP, timestamp=clock()).model_dump_json())
        session = make_session()
        session.start_fresh()
        assert channel.get(PROGRESS_KEY) is None
        assert session.current_step == StepId.ENTRY
        assert session.status is SessionStatus.IN_PROGRESS

    def test_describe_recovery(self):
        saved = SavedProgress(step=5, mode=SetupMode.GUIDED, timestamp=0)
        assert describe_recovery(saved) == "Guided Journey, step 6 of 18"


class TestNavigation:

    def test_advance_saves_progress(self, session, channel, clock):
        session.advance()
        saved = SavedProgress.model_validate_json(channel.get(PROGRESS_KEY))
        assert saved == SavedProgress(step=1, mode=SetupMode.GUIDED, timestamp=clock())
        assert channel.get(DRAFT_KEY) is not None

    def test_step_changes_reported(self, session, observer):
        session.advance()
        event = observer.of("step_changed")[-1]
        assert event["from_step"] == "entry"
        assert event["to_step"] == "safety_intro"
        assert event["reason"] == "advance"

    def test_name_gate_blocks_advance(self, session, observer):
        session.advance()
        session.advance()
        session.choose_mode(SetupMode.QUICK)
        session.advance()
        assert session.current_step == StepId.NAME
        assert session.advance() is False
        assert session.current_step == StepId.NAME
        assert observer.of("advance_blocked")

        session.update("name", "Ada")
        assert session.advance() is True
        assert session.current_step == StepId.GOALS

    def test_whitespace_name_is_not_enough(self, session):
        enter_mode(session, SetupMode.QUICK, name="   ")
        assert session.advance() is False

    def test_advance_at_terminal_is_noop(self, session, channel):
        enter_mode(session, SetupMode.QUICK)
        walk_to(session, terminal_index(SetupMode.QUICK))
        before = channel.get(PROGRESS_KEY)
        assert session.advance() is False
        assert session.is_terminal
        assert channel.get(PROGRESS_KEY) == before

    def test_retreat_floor(self, session):
        enter_mode(session, SetupMode.GUIDED)
        assert session.retreat() is True
        assert session.step_index == MODE_SELECTION_INDEX
        assert session.retreat() is False
        assert session.step_index == MODE_SELECTION_INDEX

    def test_retreat_below_mode_selection_blocked_from_intro(self, session):
        session.advance()
        assert session.retreat() is False
        assert session.step_index == 1

    @pytest.mark.parametrize("mode", list(SetupMode))
    def test_skip_to_end_lands_on_terminal(self, make_session, mode):
        for start in range(MODE_SELECTION_INDEX + 1, terminal_index(mode)):
            session = make_session()
            session.start_fresh()
            enter_mode(session, mode)
            walk_to(session, start)
            assert session.skip_to_end() is True
            assert session.is_terminal

    def test_skip_to_end_not_available_before_mode_choice(self, session):
        session.advance()
        session.advance()
        assert session.skip_to_end() is False
        assert session.step_index == MODE_SELECTION_INDEX

    def test_skip_to_end_at_terminal_is_noop(self, session):
        enter_mode(session, SetupMode.QUICK)
        session.skip_to_end()
        assert session.skip_to_end() is False


class TestChooseMode:

    def test_only_on_mode_step(self, session):
        with pytest.raises(InvalidTransitionError):
            session.choose_mode(SetupMode.DEEP)

    def test_switching_modes_changes_sequence(self, session, observer):
        session.advance()
        session.advance()
        session.choose_mode(SetupMode.DEEP)
        assert session.total_steps == 26
        assert session.current_step == StepId.SETUP_MODE
        assert observer.of("mode_chosen")[-1]["to_mode"] == "deep"

    def test_choose_mode_saves_progress(self, session, channel):
        session.advance()
        session.advance()
        session.choose_mode(SetupMode.QUICK)
        saved = SavedProgress.model_validate_json(channel.get(PROGRESS_KEY))
        assert saved.mode is SetupMode.QUICK

    def test_unknown_mode(self, session):
        session.advance()
        session.advance()
        with pytest.raises(ValueError):
            session.choose_mode("turbo")

    def test_mode_can_be_rechosen_after_retreat(self, session):
        enter_mode(session, SetupMode.QUICK)
        session.retreat()
        session.choose_mode(SetupMode.DEEP)
        assert session.mode is SetupMode.DEEP


class TestSignals:

    def test_record_on_collecting_step(self, session):
        enter_mode(session, SetupMode.GUIDED)
        walk_to(session, 6)
        assert session.current_step == StepId.DENSITY_CHOICE
        answer = session.record_signal(Question.DENSITY_CHOICE, "focused", elapsed_ms=1_500)
        assert answer.value == "focused"
        assert session.data.cognitive_discovery.value_of(Question.DENSITY_CHOICE) == "focused"

    def test_record_off_step_raises(self, session):
        enter_mode(session, SetupMode.GUIDED)
        with pytest.raises(InvalidTransitionError):
            session.record_signal(Question.DENSITY_CHOICE, "dense")

    def test_elapsed_measured_from_step_visibility(self, session, clock):
        enter_mode(session, SetupMode.GUIDED)
        walk_to(session, 7)
        clock.advance(4_200)
        answer = session.record_signal(Question.TASK_ORGANIZATION, "structured")
        assert answer.elapsed_ms == 4_200

    def test_advance_skips_unanswered_questions(self, session):
        enter_mode(session, SetupMode.GUIDED)
        walk_to(session, 10)
        assert session.current_step == StepId.EMOTIONAL_CALIBRATION
        session.record_signal(Question.PILE_UP_RESPONSE, "silence")
        session.advance()
        signals = session.data.cognitive_discovery
        assert signals.get(Question.PILE_UP_RESPONSE).skipped is False
        assert signals.get(Question.REMINDER_FEELING).skipped is True
        assert signals.value_of(Question.AUTO_CHANGE_PREFERENCE) == "ask_first"

    def test_skip_question(self, session):
        enter_mode(session, SetupMode.DEEP)
        walk_to(session, 6)
        answer = session.skip_question(Question.SELF_RECOGNITION_TAGS)
        assert answer.value == []
        assert answer.skipped


class TestData:

    def test_update_unknown_field(self, session):
        with pytest.raises(OnboardingError):
            session.update("favorite_color", "blue")

    def test_update_setup_mode_refused(self, session):
        with pytest.raises(InvalidTransitionError):
            session.update("setup_mode", SetupMode.DEEP)

    def test_update_nested(self, session):
        session.update_nested("voice_profile", "warmth", 40)
        assert session.data.voice_profile["warmth"] == 40
        assert session.data.voice_profile["gender"] == "female"

    def test_update_nested_on_unset_module_profile(self, session):
        session.update_nested("wealth_profile", "income_range", "100-150k")
        assert session.data.wealth_profile == {"income_range": "100-150k"}

    def test_update_automations_rebuilt_from_catalog(self, session):
        session.update("automations", ["morning-briefing", {"id": "sleep-low-adjust", "name": "edited"}])
        assert [a["id"] for a in session.data.automations] == ["morning-briefing", "sleep-low-adjust"]
        assert session.data.automations[1]["name"] == "Sleep Score Recovery"
        assert all(a["enabled"] for a in session.data.automations)

    def test_update_automations_over_cap_refused(self, session):
        ids = ["morning-briefing", "sleep-low-adjust", "expense-anomaly", "deep-work-streak"]
        with pytest.raises(InvalidFieldError):
            session.update("automations", ids)
        assert session.data.automations == []

    def test_update_automations_unknown_id(self, session):
        with pytest.raises(UnknownAutomationError):
            session.update("automations", ["make-coffee"])

    @pytest.mark.parametrize("field,value", [
        ("name", 123),
        ("name", "   "),
        ("primary_intents", ["get-rich-quick"]),
        ("assistant_style", "pirate"),
        ("voice_profile", {"warmth": 500}),
        ("calendar_connected", "yes"),
        ("integrations", "fitbit"),
    ])
    def test_update_rejects_bad_values(self, session, field, value):
        before = getattr(session.data, field)
        with pytest.raises(InvalidFieldError):
            session.update(field, value)
        assert getattr(session.data, field) == before

    def test_update_name_is_stripped(self, session):
        session.update("name", "  Ada ")
        assert session.data.name == "Ada"

    def test_update_nested_validates_merged_value(self, session):
        with pytest.raises(InvalidFieldError):
            session.update_nested("voice_profile", "speed", 9.0)
        assert session.data.voice_profile["speed"] == 1.0

    def test_toggle_automation(self, session):
        assert session.toggle_automation("sleep-low-adjust") is True
        assert [a["id"] for a in session.data.automations] == ["sleep-low-adjust"]
        assert session.toggle_automation("sleep-low-adjust") is True
        assert session.data.automations == []

    def test_toggle_unknown_automation(self, session):
        with pytest.raises(UnknownAutomationError):
            session.toggle_automation("make-coffee")


class TestCompletion:

    def test_complete_off_terminal_raises(self, session):
        enter_mode(session, SetupMode.QUICK)
        with pytest.raises(InvalidTransitionError):
            run(session.complete())

    def test_complete_only_once(self, session, completed):
        enter_mode(session, SetupMode.QUICK)
        session.skip_to_end()
        run(session.complete())
        with pytest.raises(InvalidTransitionError):
            run(session.complete())
        assert len(completed) == 1

    def test_local_write_failure_keeps_session_open(self, make_session, channel, completed, monkeypatch):
        session = make_session()
        session.start_fresh()
        enter_mode(session, SetupMode.QUICK)
        session.skip_to_end()

        def fail_write(record):
            raise OSError("disk full")

        monkeypatch.setattr(session.pipeline, "write_local", fail_write)
        with pytest.raises(OSError):
            run(session.complete())
        assert session.status is SessionStatus.IN_PROGRESS
        assert channel.get(PROGRESS_KEY) is not None
        assert completed == []

    def test_callback_oserror_does_not_reopen_session(self, make_session, channel):
        calls = []

        def on_complete(record):
            calls.append(record)
            raise OSError("callback wrote to a full disk")

        session = make_session(on_complete=on_complete)
        session.start_fresh()
        enter_mode(session, SetupMode.QUICK)
        session.skip_to_end()

        with pytest.raises(OSError):
            run(session.complete())
        assert session.is_complete
        assert channel.get(ONBOARDED_KEY) == "true"
        with pytest.raises(InvalidTransitionError):
            run(session.complete())
        assert len(calls) == 1

    def test_navigation_after_completion_raises(self, session):
        enter_mode(session, SetupMode.QUICK)
        session.skip_to_end()
        run(session.complete())
        with pytest.raises(InvalidTransitionError):
            session.retreat()


class TestEndToEnd:
    """Full flows across restarts."""

    def test_quick_flow_completes(self, session, channel, completed, remote):
        enter_mode(session, SetupMode.QUICK)
        walk_to(session, 6)
        assert session.is_terminal

        result = run(session.complete())

        assert len(completed) == 1
        record = completed[0]
        assert record.completed_at is not None
        assert record.setup_mode is SetupMode.QUICK
        assert channel.get(ONBOARDED_KEY) == "true"
        assert channel.get(USER_NAME_KEY) == "Ada"
        assert OnboardingData.from_json(channel.get(RECORD_KEY)) == record
        assert channel.get(PROGRESS_KEY) is None
        assert channel.get(DRAFT_KEY) is None
        assert isinstance(result.remote, RemoteOk)
        assert remote.names == [("user-1", "Ada")]
        assert session.is_complete

    def test_guided_resume_after_restart(self, session, make_session, clock):
        enter_mode(session, SetupMode.GUIDED)
        walk_to(session, 6)
        session.record_signal(Question.DENSITY_CHOICE, "dense", elapsed_ms=800)
        session.advance()
        session.retreat()
        session.retreat()
        assert session.step_index == 5
        saved_at = clock()

        clock.advance(5 * 60 * 1000)
        restarted = make_session()
        saved = restarted.check_recovery()
        assert saved == SavedProgress(step=5, mode=SetupMode.GUIDED, timestamp=saved_at)

        restarted.resume(saved)
        assert restarted.step_index == 5
        assert restarted.mode is SetupMode.GUIDED
        assert restarted.data.name == "Ada"
        answer = restarted.data.cognitive_discovery.get(Question.DENSITY_CHOICE)
        assert answer.value == "dense"
        assert answer.elapsed_ms == 800

    def test_guided_restart_after_ttl(self, session, make_session, clock, channel):
        enter_mode(session, SetupMode.GUIDED)
        walk_to(session, 5)

        clock.advance(25 * HOUR_MS)
        restarted = make_session()
        assert restarted.check_recovery() is None
        assert channel.get(PROGRESS_KEY) is None

        restarted.start_fresh()
        assert restarted.current_step == StepId.ENTRY
        assert restarted.data.name == ""

    def test_profile_from_flow(self, session):
        enter_mode(session, SetupMode.GUIDED)
        walk_to(session, 6)
        session.record_signal(Question.DENSITY_CHOICE, "dense", elapsed_ms=800)
        walk_to(session, 8)
        session.skip_question(Question.CHANGE_TOLERANCE)

        profile = session.cognitive_profile()
        density = profile.trait(INFORMATION_DENSITY)
        pacing = profile.trait(CHANGE_PACING)
        assert density.value == "dense"
        assert density.confidence is Confidence.HIGH
        assert pacing.value == "medium"
        assert pacing.confidence is Confidence.DEFAULT

        statements = session.adaptation_preview()
        density_at = next(i for i, s in enumerate(statements) if s.startswith(STATEMENTS[INFORMATION_DENSITY]["dense"]))
        pacing_at = next(i for i, s in enumerate(statements) if s.startswith(STATEMENTS[CHANGE_PACING]["medium"]))
        assert density_at < pacing_at

    def test_resume_with_corrupt_draft_starts_with_empty_data(self, session, make_session, channel):
        enter_mode(session, SetupMode.GUIDED)
        walk_to(session, 5)
        channel.set(DRAFT_KEY, "{broken")

        restarted = make_session()
        restarted.resume(restarted.check_recovery())
        assert restarted.step_index == 5
        assert restarted.mode is SetupMode.GUIDED
        assert restarted.data.name == ""
