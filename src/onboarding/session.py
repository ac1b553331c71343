"""
Onboarding Session - the single owner of onboarding state.

Holds the OnboardingData record, the active setup mode and the current step
index, and is the only writer of the progress slot. Navigation is synchronous;
only complete() awaits (the remote save inside the completion pipeline).

Cold start:
    session = OnboardingSession(channel, on_complete=...)
    saved = session.check_recovery()     # no state is touched
    if saved and user_wants_to_continue:
        session.resume(saved)
    else:
        session.start_fresh()

Boundary moves (retreat at the floor, advance at the terminal step) are
no-ops. Requests that break the caller contract raise InvalidTransitionError.
"""

import logging
from enum import Enum
from typing import Any, Callable

from sita.observability import LoggingObserver, OnboardingObserver, default_observer
from sita.storage import LocalChannel

from .automations import toggle_automation
from .completion import CompletionPipeline, CompletionResult
from .errors import InvalidTransitionError, OnboardingError
from .forms import can_leave_step, validate_field
from .payload import OnboardingData, field_names
from .preview import generate_adaptation_preview
from .profile import CognitiveProfile, build_cognitive_profile
from .progress import ProgressStore, SavedProgress, now_ms
from .remote import RemotePersistence
from .signals import Question, SignalAnswer, SignalRecorder, questions_for_step
from .steps import (
    MODE_LABELS,
    MODE_SELECTION_INDEX,
    SetupMode,
    StepId,
    is_terminal,
    next_index,
    prev_index,
    progress_fraction,
    resolve_index,
    step_at,
    steps_for,
    terminal_index,
)

logger = logging.getLogger(__name__)


class SessionStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


def describe_recovery(progress: SavedProgress) -> str:
    """Text for the continue-or-start-fresh prompt."""
    total = len(steps_for(progress.mode))
    step = min(progress.step, total - 1) + 1
    return f"{MODE_LABELS[progress.mode]}, step {step} of {total}"


def _noop_complete(data: OnboardingData) -> None:
    pass


class OnboardingSession:
    """Onboarding state machine bound to one local channel."""

    def __init__(
        self,
        channel: LocalChannel,
        on_complete: Callable[[OnboardingData], None] = _noop_complete,
        remote: RemotePersistence | None = None,
        user_id: str | None = None,
        observer: OnboardingObserver | None = None,
        clock: Callable[[], int] = now_ms,
        store: ProgressStore | None = None,
        pipeline: CompletionPipeline | None = None,
        remote_timeout: float = 10.0,
    ):
        self.channel = channel
        self.observer = observer or LoggingObserver()
        self.clock = clock
        self.store = store or ProgressStore(channel, clock=clock, observer=self.observer)
        self.pipeline = pipeline or CompletionPipeline(
            channel,
            on_complete=on_complete,
            remote=remote,
            user_id=user_id,
            observer=self.observer,
            remote_timeout=remote_timeout,
        )
        self.user_id = user_id

        self.data = OnboardingData()
        self._index = 0
        self._status = SessionStatus.NOT_STARTED
        self.recorder = SignalRecorder(self.data.cognitive_discovery, clock=clock)
        self.result: CompletionResult | None = None

    @classmethod
    def from_settings(
        cls,
        channel: LocalChannel | None = None,
        on_complete: Callable[[OnboardingData], None] = _noop_complete,
        user_id: str | None = None,
        observer: OnboardingObserver | None = None,
    ) -> "OnboardingSession":
        """Session wired from Settings: file channel, Supabase when configured."""
        from sita.config import settings
        from sita.storage import default_channel

        from .remote import SupabasePersistence

        channel = channel or default_channel()
        observer = observer or default_observer(session_id=user_id)
        return cls(
            channel,
            on_complete=on_complete,
            remote=SupabasePersistence() if settings.remote_enabled else None,
            user_id=user_id,
            observer=observer,
            store=ProgressStore.from_settings(channel, observer=observer),
            remote_timeout=settings.remote_save_timeout_seconds,
        )

    # =========================================================================
    # Read-only state
    # =========================================================================

    @property
    def mode(self) -> SetupMode:
        return self.data.setup_mode

    @property
    def step_index(self) -> int:
        return self._index

    @property
    def current_step(self) -> StepId:
        return step_at(self.mode, self._index)

    @property
    def steps(self) -> tuple[StepId, ...]:
        return steps_for(self.mode)

    @property
    def total_steps(self) -> int:
        return len(self.steps)

    @property
    def is_terminal(self) -> bool:
        return is_terminal(self.mode, self._index)

    @property
    def progress(self) -> float:
        return progress_fraction(self.mode, self._index)

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def is_complete(self) -> bool:
        return self._status == SessionStatus.COMPLETED

    @property
    def can_skip_to_end(self) -> bool:
        return self._index > MODE_SELECTION_INDEX and not self.is_terminal

    def snapshot(self) -> dict:
        """Serializable view for API and CLI consumers."""
        return {
            "status": self._status.value,
            "mode": self.mode.value,
            "step_index": self._index,
            "current_step": self.current_step.value,
            "total_steps": self.total_steps,
            "is_terminal": self.is_terminal,
            "can_skip_to_end": self.can_skip_to_end,
            "progress": round(self.progress, 3),
            "questions": [q.value for q in questions_for_step(self.current_step)],
            "data": self.data.to_dict(),
        }

    # =========================================================================
    # Internals
    # =========================================================================

    def _ensure_open(self) -> None:
        if self.is_complete:
            raise InvalidTransitionError("Onboarding already completed")
        if self._status == SessionStatus.NOT_STARTED:
            self._status = SessionStatus.IN_PROGRESS

    def _bind_data(self, data: OnboardingData) -> None:
        self.data = data
        self.recorder = SignalRecorder(self.data.cognitive_discovery, clock=self.clock)

    def _commit(self) -> None:
        """Checkpoint the current position and draft, restart the decision timer."""
        self.store.save(
            SavedProgress(step=self._index, mode=self.mode, timestamp=self.clock()),
            draft=self.data,
        )
        self.recorder.mark_visible()

    def _move_to(self, index: int, reason: str) -> bool:
        if index == self._index:
            return False
        previous = self.current_step
        self._index = index
        self._commit()
        self.observer.event(
            "step_changed",
            reason=reason,
            from_step=previous.value,
            to_step=self.current_step.value,
            step_index=index,
            mode=self.mode.value,
        )
        return True

    # =========================================================================
    # Recovery
    # =========================================================================

    def check_recovery(self) -> SavedProgress | None:
        """Saved progress worth offering to the user. Touches no session state."""
        return self.store.restore()

    def resume(self, progress: SavedProgress) -> None:
        """Continue from a checkpoint returned by check_recovery()."""
        if self._status != SessionStatus.NOT_STARTED:
            raise InvalidTransitionError("Resume is only possible before the session starts")

        draft = self.store.restore_draft()
        data = draft or OnboardingData()
        data.setup_mode = progress.mode
        self._bind_data(data)
        self._index = min(progress.step, terminal_index(progress.mode))
        self._status = SessionStatus.IN_PROGRESS
        self._commit()
        logger.info(f"Resumed onboarding at {self.current_step.value} ({self.mode.value})")
        self.observer.event(
            "session_resumed",
            step_index=self._index,
            mode=self.mode.value,
            draft_restored=draft is not None,
        )

    def start_fresh(self) -> None:
        """Discard any saved progress and begin at the entry step."""
        if self.is_complete:
            raise InvalidTransitionError("Onboarding already completed")
        self.store.clear()
        self._bind_data(OnboardingData())
        self._index = 0
        self._status = SessionStatus.IN_PROGRESS
        self.recorder.mark_visible()
        self.observer.event("session_started", mode=self.mode.value)

    # =========================================================================
    # Navigation
    # =========================================================================

    def choose_mode(self, mode: SetupMode | str) -> None:
        """Pick the setup mode. Only valid on the mode selection step."""
        self._ensure_open()
        mode = SetupMode(mode)
        if self.current_step != StepId.SETUP_MODE:
            raise InvalidTransitionError(
                f"Setup mode can only be chosen on {StepId.SETUP_MODE.value}, "
                f"not {self.current_step.value}"
            )

        old_mode = self.mode
        new_index = resolve_index(old_mode, mode, self._index)
        self.data.setup_mode = mode
        self._index = new_index
        self._commit()
        self.observer.event(
            "mode_chosen",
            from_mode=old_mode.value,
            to_mode=mode.value,
            step_index=new_index,
            total_steps=self.total_steps,
        )

    def advance(self) -> bool:
        """
        Move to the next step.

        Returns False when the step's gate refuses (e.g. empty name) or when
        already on the terminal step. Discovery questions left unanswered on
        the step being left are recorded as skipped.
        """
        self._ensure_open()
        step = self.current_step
        if not can_leave_step(step, self.data):
            self.observer.event("advance_blocked", step=step.value)
            return False

        for question in questions_for_step(step):
            if not self.data.cognitive_discovery.has(question):
                self.recorder.skip(question)

        return self._move_to(next_index(self.mode, self._index), "advance")

    def retreat(self) -> bool:
        """Move back one step, never below the mode selection step."""
        self._ensure_open()
        target = max(prev_index(self.mode, self._index), MODE_SELECTION_INDEX)
        if self._index <= MODE_SELECTION_INDEX:
            return False
        return self._move_to(target, "retreat")

    def skip_to_end(self) -> bool:
        """Jump to the terminal step. No-op outside (mode selection, terminal)."""
        self._ensure_open()
        if not self.can_skip_to_end:
            return False
        return self._move_to(terminal_index(self.mode), "skip_to_end")

    # =========================================================================
    # Data
    # =========================================================================

    def _check_question(self, question: Question | str) -> Question:
        question = Question(question)
        if question not in questions_for_step(self.current_step):
            raise InvalidTransitionError(
                f"{question.value} is not collected on {self.current_step.value}"
            )
        return question

    def record_signal(
        self,
        question: Question | str,
        value: Any,
        elapsed_ms: int | None = None,
    ) -> SignalAnswer:
        """Record a discovery answer collected on the current step."""
        self._ensure_open()
        question = self._check_question(question)
        answer = self.recorder.record(question, value, elapsed_ms=elapsed_ms)
        self.observer.event(
            "signal_recorded",
            question=question.value,
            value=answer.value,
            elapsed_ms=answer.elapsed_ms,
            changes=answer.changes,
        )
        return answer

    def skip_question(self, question: Question | str) -> SignalAnswer:
        """Record the documented default for a question on the current step."""
        self._ensure_open()
        question = self._check_question(question)
        answer = self.recorder.skip(question)
        self.observer.event("signal_skipped", question=question.value, value=answer.value)
        return answer

    def update(self, field: str, value: Any) -> None:
        """Set a top-level OnboardingData field. Raises InvalidFieldError on a bad value."""
        self._ensure_open()
        if field == "setup_mode":
            raise InvalidTransitionError("Use choose_mode() to change the setup mode")
        if field not in field_names():
            raise OnboardingError(f"Unknown onboarding field: {field}")
        setattr(self.data, field, validate_field(field, value))

    def update_nested(self, field: str, key: str, value: Any) -> None:
        """Set one key inside a dict-valued OnboardingData field."""
        self._ensure_open()
        if field not in field_names():
            raise OnboardingError(f"Unknown onboarding field: {field}")
        current = getattr(self.data, field)
        if current is None:
            current = {}
        if not isinstance(current, dict):
            raise OnboardingError(f"Field {field} is not a mapping")
        setattr(self.data, field, validate_field(field, {**current, key: value}))

    def toggle_automation(self, template_id: str) -> bool:
        """Enable/disable an automation template. False when the cap refused it."""
        self._ensure_open()
        self.data.automations, changed = toggle_automation(self.data.automations, template_id)
        return changed

    # =========================================================================
    # Profile
    # =========================================================================

    def cognitive_profile(self) -> CognitiveProfile:
        return build_cognitive_profile(self.data.cognitive_discovery.copy())

    def adaptation_preview(self) -> list[str]:
        return generate_adaptation_preview(self.cognitive_profile())

    # =========================================================================
    # Completion
    # =========================================================================

    async def complete(self) -> CompletionResult:
        """
        Finish onboarding from the terminal step.

        Clears saved progress, then runs the completion pipeline. Remote
        failures are reported in the result, never raised.
        """
        self._ensure_open()
        if not self.is_terminal:
            raise InvalidTransitionError(
                f"complete() is only valid on the terminal step, not {self.current_step.value}"
            )

        self.store.clear()
        self._status = SessionStatus.COMPLETED
        record = self.pipeline.finalize(self.data)
        try:
            self.pipeline.write_local(record)
        except OSError:
            # Local write failed; keep the checkpoint so the user can retry
            self._status = SessionStatus.IN_PROGRESS
            self._commit()
            raise
        self.data = record
        self.result = await self.pipeline.handoff(record)
        logger.info(f"Onboarding completed ({self.mode.value})")
        return self.result

    def close(self) -> None:
        """Release observer resources (the JSONL session log, when enabled)."""
        close = getattr(self.observer, "close", None)
        if close is not None:
            close()
