"""
Adaptation Preview.

Turns a CognitiveProfile into the short list of statements shown on the
"Here's how I'll adapt for you" step. Reads only the profile, never the raw
signals, so what the user sees can't drift from what was derived.

Order is fixed: density, task structure, change pacing, progress
visualization, emotional tone.
"""

from .profile import (
    CHANGE_PACING,
    EMOTIONAL_TONE,
    INFORMATION_DENSITY,
    PROGRESS_VISUALIZATION,
    TASK_STRUCTURE,
    TRAIT_ORDER,
    CognitiveProfile,
    Confidence,
    Trait,
)

STATEMENTS: dict[str, dict[str, str]] = {
    INFORMATION_DENSITY: {
        "dense": "Full dashboards with everything visible at once",
        "focused": "One thing at a time, with fewer simultaneous tasks",
        "adaptive": "Layout density that adjusts to your current load",
    },
    TASK_STRUCTURE: {
        "structured": "Step-by-step guidance for your tasks",
        "freeform": "Flexible task lists without a forced order",
        "hybrid": "Structure when a task needs it, freedom when it doesn't",
    },
    CHANGE_PACING: {
        "low": "Changes announced in advance, with slower transitions",
        "medium": "Gradual changes, introduced one at a time",
        "high": "New features surfaced as soon as they're useful",
    },
    PROGRESS_VISUALIZATION: {
        "timer": "Time-based indicators for focus sessions",
        "progress": "Progress bars instead of countdowns",
        "both": "Time and progress shown together",
        "none": "Minimal tracking, no timers or progress bars",
    },
    EMOTIONAL_TONE: {
        "minimal": "Fewer choices on screen when things pile up",
        "step_by_step": "Clear next steps always visible when things pile up",
        "reassuring": "Reassurance and celebration of progress when things pile up",
        "quiet": "Quiet mode with fewer notifications when things pile up",
    },
}

LOW_CONFIDENCE_SUFFIX = " (I'll check in on this)"
DEFAULT_SUFFIX = " (a starting point you can change anytime)"


def _statement(trait: Trait, profile: CognitiveProfile) -> str | None:
    text = STATEMENTS.get(trait.name, {}).get(trait.value)
    if text is None:
        return None

    if trait.name == EMOTIONAL_TONE and profile.dimensions.language_softness_preference > 0.8:
        text += ", in gentler, choice-based language"

    if trait.confidence is Confidence.LOW:
        text += LOW_CONFIDENCE_SUFFIX
    elif trait.confidence is Confidence.DEFAULT:
        text += DEFAULT_SUFFIX
    return text


def generate_adaptation_preview(profile: CognitiveProfile) -> list[str]:
    """One statement per actionable trait, in priority order."""
    by_name = {t.name: t for t in profile.traits}
    adaptations: list[str] = []
    for name in TRAIT_ORDER:
        trait = by_name.get(name)
        if trait is None:
            continue
        statement = _statement(trait, profile)
        if statement:
            adaptations.append(statement)
    return adaptations
