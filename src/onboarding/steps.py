"""
Onboarding Step Sequencing.

Each setup mode walks a fixed, strictly ordered list of StepIds. The sequencer
only ever handles StepIds; which renderer draws a step is the client's concern.

Sequences share their opening steps (entry, safety intro, mode choice, name)
and keep shared steps in the same relative order, so a mode switch can be
re-resolved by step identity.
"""

from enum import Enum


class SetupMode(str, Enum):
    """How much of the onboarding the user wants to walk through."""
    QUICK = "quick"
    GUIDED = "guided"
    DEEP = "deep"


class StepId(str, Enum):
    """Onboarding steps."""
    ENTRY = "entry"                                    # Cinematic entry
    SAFETY_INTRO = "safety_intro"                      # What SITA will and won't do
    SETUP_MODE = "setup_mode"                          # quick / guided / deep
    NAME = "name"
    GOALS = "goals"                                    # Primary intents + north-star metrics
    WINS = "wins"
    SELF_RECOGNITION = "self_recognition"              # Optional "sounds like me" tags
    DENSITY_CHOICE = "density_choice"
    TASK_STYLE = "task_style"
    CHANGE_TOLERANCE = "change_tolerance"
    PROGRESS_STYLE = "progress_style"
    EMOTIONAL_CALIBRATION = "emotional_calibration"    # Three untimed questions
    ADAPTATION_PREVIEW = "adaptation_preview"
    ASSISTANT_STYLE = "assistant_style"
    TONE_PREFERENCES = "tone_preferences"
    VOICE_SETTINGS = "voice_settings"
    RHYTHM = "rhythm"
    DEVICES = "devices"
    WEALTH_PERSONALIZATION = "wealth_personalization"
    HEALTH_PERSONALIZATION = "health_personalization"
    FOCUS_PERSONALIZATION = "focus_personalization"
    AUTONOMY = "autonomy"
    AUTOMATIONS = "automations"
    SOVEREIGNTY = "sovereignty"
    AVATAR_IDENTITY = "avatar_identity"
    IMPRINT = "imprint"                                # Terminal step


# =============================================================================
# Sequences
# =============================================================================

QUICK_STEPS: tuple[StepId, ...] = (
    StepId.ENTRY,
    StepId.SAFETY_INTRO,
    StepId.SETUP_MODE,
    StepId.NAME,
    StepId.GOALS,
    StepId.AUTONOMY,
    StepId.IMPRINT,
)

GUIDED_STEPS: tuple[StepId, ...] = (
    StepId.ENTRY,
    StepId.SAFETY_INTRO,
    StepId.SETUP_MODE,
    StepId.NAME,
    StepId.GOALS,
    StepId.WINS,
    StepId.DENSITY_CHOICE,
    StepId.TASK_STYLE,
    StepId.CHANGE_TOLERANCE,
    StepId.PROGRESS_STYLE,
    StepId.EMOTIONAL_CALIBRATION,
    StepId.ADAPTATION_PREVIEW,
    StepId.ASSISTANT_STYLE,
    StepId.TONE_PREFERENCES,
    StepId.AUTONOMY,
    StepId.AUTOMATIONS,
    StepId.AVATAR_IDENTITY,
    StepId.IMPRINT,
)

DEEP_STEPS: tuple[StepId, ...] = (
    StepId.ENTRY,
    StepId.SAFETY_INTRO,
    StepId.SETUP_MODE,
    StepId.NAME,
    StepId.GOALS,
    StepId.WINS,
    StepId.SELF_RECOGNITION,
    StepId.DENSITY_CHOICE,
    StepId.TASK_STYLE,
    StepId.CHANGE_TOLERANCE,
    StepId.PROGRESS_STYLE,
    StepId.EMOTIONAL_CALIBRATION,
    StepId.ADAPTATION_PREVIEW,
    StepId.ASSISTANT_STYLE,
    StepId.TONE_PREFERENCES,
    StepId.VOICE_SETTINGS,
    StepId.RHYTHM,
    StepId.DEVICES,
    StepId.WEALTH_PERSONALIZATION,
    StepId.HEALTH_PERSONALIZATION,
    StepId.FOCUS_PERSONALIZATION,
    StepId.AUTONOMY,
    StepId.AUTOMATIONS,
    StepId.SOVEREIGNTY,
    StepId.AVATAR_IDENTITY,
    StepId.IMPRINT,
)

_SEQUENCES: dict[SetupMode, tuple[StepId, ...]] = {
    SetupMode.QUICK: QUICK_STEPS,
    SetupMode.GUIDED: GUIDED_STEPS,
    SetupMode.DEEP: DEEP_STEPS,
}

# Index of SETUP_MODE in every sequence. Retreat cannot go below it.
MODE_SELECTION_INDEX = 2

# Human labels used by the recovery prompt
MODE_LABELS = {
    SetupMode.QUICK: "Quick Setup",
    SetupMode.GUIDED: "Guided Journey",
    SetupMode.DEEP: "Deep Configuration",
}


# =============================================================================
# Sequencer
# =============================================================================

def steps_for(mode: SetupMode | str) -> tuple[StepId, ...]:
    """Ordered steps for a mode."""
    return _SEQUENCES[SetupMode(mode)]


def terminal_index(mode: SetupMode | str) -> int:
    """Index of the last step for a mode."""
    return len(steps_for(mode)) - 1


def _clamp(mode: SetupMode | str, index: int) -> int:
    return max(0, min(index, terminal_index(mode)))


def next_index(mode: SetupMode | str, index: int) -> int:
    """index + 1, clamped to the terminal step."""
    return _clamp(mode, index + 1)


def prev_index(mode: SetupMode | str, index: int) -> int:
    """index - 1, clamped to 0."""
    return _clamp(mode, index - 1)


def is_terminal(mode: SetupMode | str, index: int) -> bool:
    """True iff index is the last step of the mode's sequence."""
    return index == terminal_index(mode)


def step_at(mode: SetupMode | str, index: int) -> StepId:
    """StepId at a (clamped) position."""
    return steps_for(mode)[_clamp(mode, index)]


def resolve_index(old_mode: SetupMode | str, new_mode: SetupMode | str, index: int) -> int:
    """
    Re-resolve a position after a mode switch.

    Finds the step currently shown in the old sequence and returns its position
    in the new one. If the new sequence doesn't contain it, falls back to the
    nearest preceding step both sequences share.
    """
    old_steps = steps_for(old_mode)
    new_steps = steps_for(new_mode)
    position = _clamp(old_mode, index)

    for step in reversed(old_steps[: position + 1]):
        if step in new_steps:
            return new_steps.index(step)
    return 0


def progress_fraction(mode: SetupMode | str, index: int) -> float:
    """Fraction of the flow done, for progress indicators."""
    last = terminal_index(mode)
    return _clamp(mode, index) / last if last else 1.0
