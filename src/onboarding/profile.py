"""
Cognitive Profile Builder.

Infers how a user prefers to operate from their discovery answers. No labels,
no diagnosis: a handful of traits the client uses to pick its starting
behavior, each with a confidence that says how much to trust it.

The stated answer always decides a trait's value. Decision time only moves
confidence:
- a fast choice (< 2s) reads as a strong preference
- a slow choice (> 10s) or a changed answer lowers confidence
- a skipped or missing question yields the documented default at
  `default` confidence

Pure: identical signals always produce an identical profile.
"""

from dataclasses import dataclass, field, asdict
from enum import Enum

from .signals import CognitiveDiscoverySignals, Question, SignalAnswer


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    DEFAULT = "default"


# Decision time thresholds (ms)
QUICK_DECISION_MS = 2000
SLOW_DECISION_MS = 10000

# Trait names, in preview priority order
INFORMATION_DENSITY = "information_density"
TASK_STRUCTURE = "task_structure"
CHANGE_PACING = "change_pacing"
PROGRESS_VISUALIZATION = "progress_visualization"
EMOTIONAL_TONE = "emotional_tone"

TRAIT_ORDER = (
    INFORMATION_DENSITY,
    TASK_STRUCTURE,
    CHANGE_PACING,
    PROGRESS_VISUALIZATION,
    EMOTIONAL_TONE,
)

EMOTIONAL_TONE_BY_PILE_UP = {
    "fewer_choices": "minimal",
    "clearer_steps": "step_by_step",
    "reassurance": "reassuring",
    "silence": "quiet",
}


@dataclass(frozen=True)
class Trait:
    """One resolved trait."""
    name: str
    value: str
    confidence: Confidence
    note: str = ""


@dataclass(frozen=True)
class CognitiveDimensions:
    """Numeric dimensions (0-1 unless noted) used to tune defaults."""
    attention_window: str = "medium"  # short | medium | long
    initiation_friction: float = 0.5
    switching_cost: float = 0.5
    structure_preference: float = 0.5
    visual_sensitivity: float = 0.5
    audio_sensitivity: float = 0.5
    reward_sensitivity: float = 0.5
    predictability_need: float = 0.5
    language_softness_preference: float = 0.7
    novelty_tolerance: float = 0.5
    visual_processing: float = 0.5


@dataclass(frozen=True)
class CognitiveProfile:
    """Derived traits. Always rebuildable from signals; never the source of truth."""
    traits: tuple[Trait, ...]
    dimensions: CognitiveDimensions = field(default_factory=CognitiveDimensions)
    self_recognition_tags: tuple[str, ...] = ()

    def trait(self, name: str) -> Trait:
        for t in self.traits:
            if t.name == name:
                return t
        raise KeyError(name)

    def to_dict(self) -> dict:
        """Serialize for display or hand-off."""
        return {
            "traits": [
                {**asdict(t), "confidence": t.confidence.value}
                for t in self.traits
            ],
            "dimensions": asdict(self.dimensions),
            "self_recognition_tags": list(self.self_recognition_tags),
        }


# Self-recognition tag weights. Scalars raise the dimension to at least the
# weight; `attention_window` and `novelty_tolerance` are set outright.
TAG_WEIGHTS: dict[str, dict[str, float | str]] = {
    "lose_track_of_time": {
        "attention_window": "short",
        "initiation_friction": 0.7,
    },
    "too_many_options": {
        "structure_preference": 0.9,
        "visual_sensitivity": 0.8,
        "audio_sensitivity": 0.5,
    },
    "predictability_helps": {
        "predictability_need": 0.9,
        "novelty_tolerance": 0.3,
    },
    "starting_is_hard": {
        "initiation_friction": 0.9,
        "reward_sensitivity": 0.8,
    },
    "notice_small_details": {
        "visual_sensitivity": 0.9,
        "audio_sensitivity": 0.7,
        "visual_processing": 0.9,
    },
    "background_noise_helps": {
        "visual_sensitivity": 0.5,
        "audio_sensitivity": 0.3,
    },
    "need_deadlines": {
        "reward_sensitivity": 0.7,
    },
    "visual_learner": {
        "visual_processing": 0.8,
    },
}

_SET_OUTRIGHT = {"attention_window", "novelty_tolerance"}

_DOWNGRADE = {
    Confidence.HIGH: Confidence.MEDIUM,
    Confidence.MEDIUM: Confidence.LOW,
    Confidence.LOW: Confidence.LOW,
    Confidence.DEFAULT: Confidence.DEFAULT,
}


# =============================================================================
# Confidence
# =============================================================================


def _answer_confidence(answer: SignalAnswer | None) -> Confidence:
    """Confidence for one categorical answer."""
    if answer is None or answer.skipped:
        return Confidence.DEFAULT

    if answer.elapsed_ms is None:
        confidence = Confidence.MEDIUM
    elif answer.elapsed_ms < QUICK_DECISION_MS:
        confidence = Confidence.HIGH
    elif answer.elapsed_ms > SLOW_DECISION_MS:
        confidence = Confidence.LOW
    else:
        confidence = Confidence.MEDIUM

    if answer.changes > 0:
        confidence = _DOWNGRADE[confidence]
    return confidence


def _answer_note(answer: SignalAnswer | None, value: str) -> str:
    if answer is None:
        return f"not asked; using default '{value}'"
    if answer.skipped:
        return f"skipped; using default '{value}'"
    parts = [f"chose '{value}'"]
    if answer.elapsed_ms is not None:
        parts.append(f"in {answer.elapsed_ms / 1000:.1f}s")
    if answer.changes:
        parts.append(f"after {answer.changes} change{'s' if answer.changes != 1 else ''}")
    return " ".join(parts)


def _categorical_trait(name: str, signals: CognitiveDiscoverySignals, question: Question) -> Trait:
    answer = signals.get(question)
    value = signals.value_of(question)
    return Trait(
        name=name,
        value=value,
        confidence=_answer_confidence(answer),
        note=_answer_note(answer, value),
    )


def _emotional_tone_trait(signals: CognitiveDiscoverySignals) -> Trait:
    questions = (
        Question.PILE_UP_RESPONSE,
        Question.REMINDER_FEELING,
        Question.AUTO_CHANGE_PREFERENCE,
    )
    explicit = [
        q for q in questions
        if signals.has(q) and not signals.get(q).skipped
    ]
    if len(explicit) == len(questions):
        confidence = Confidence.HIGH
    elif explicit:
        confidence = Confidence.MEDIUM
    else:
        confidence = Confidence.DEFAULT

    pile_up = signals.value_of(Question.PILE_UP_RESPONSE)
    reminders = signals.value_of(Question.REMINDER_FEELING)
    auto_change = signals.value_of(Question.AUTO_CHANGE_PREFERENCE)
    note = f"pile-up: {pile_up}, reminders: {reminders}, auto-change: {auto_change}"
    if confidence is Confidence.DEFAULT:
        note = f"defaults ({note})"

    return Trait(
        name=EMOTIONAL_TONE,
        value=EMOTIONAL_TONE_BY_PILE_UP[pile_up],
        confidence=confidence,
        note=note,
    )


# =============================================================================
# Dimensions
# =============================================================================


def _build_dimensions(signals: CognitiveDiscoverySignals) -> CognitiveDimensions:
    d: dict[str, float | str] = asdict(CognitiveDimensions())

    def raise_to(key: str, floor: float) -> None:
        d[key] = max(d[key], floor)

    def lower_to(key: str, ceiling: float) -> None:
        d[key] = min(d[key], ceiling)

    density = signals.value_of(Question.DENSITY_CHOICE)
    if density == "focused":
        d["attention_window"] = "short"
        raise_to("visual_sensitivity", 0.7)
        raise_to("structure_preference", 0.7)
    elif density == "dense":
        d["attention_window"] = "long"
        lower_to("visual_sensitivity", 0.4)

    organization = signals.value_of(Question.TASK_ORGANIZATION)
    if organization == "structured":
        raise_to("structure_preference", 0.8)
        raise_to("predictability_need", 0.7)
    elif organization == "freeform":
        lower_to("structure_preference", 0.3)
        raise_to("novelty_tolerance", 0.7)

    tolerance = signals.value_of(Question.CHANGE_TOLERANCE)
    if tolerance == "low":
        d["switching_cost"] = 0.9
        raise_to("predictability_need", 0.85)
    elif tolerance == "high":
        d["switching_cost"] = 0.2
        raise_to("novelty_tolerance", 0.8)

    pile_up = signals.value_of(Question.PILE_UP_RESPONSE)
    if pile_up == "fewer_choices":
        raise_to("visual_sensitivity", 0.8)
        raise_to("structure_preference", 0.8)
    elif pile_up == "clearer_steps":
        raise_to("initiation_friction", 0.7)
        raise_to("structure_preference", 0.7)
    elif pile_up == "reassurance":
        d["language_softness_preference"] = 0.95
        raise_to("reward_sensitivity", 0.85)
    elif pile_up == "silence":
        raise_to("audio_sensitivity", 0.9)
        raise_to("visual_sensitivity", 0.7)

    if signals.value_of(Question.REMINDER_FEELING) == "stressful":
        raise_to("language_softness_preference", 0.9)
        raise_to("predictability_need", 0.7)

    auto_change = signals.value_of(Question.AUTO_CHANGE_PREFERENCE)
    if auto_change == "never":
        d["predictability_need"] = 0.95
        d["switching_cost"] = 0.9
    elif auto_change == "automatic":
        lower_to("switching_cost", 0.3)

    for tag in signals.value_of(Question.SELF_RECOGNITION_TAGS):
        for key, weight in TAG_WEIGHTS.get(tag, {}).items():
            if key in _SET_OUTRIGHT:
                d[key] = weight
            else:
                raise_to(key, weight)

    # Decision timing: only explicit, timed answers count
    timings = [
        a.elapsed_ms
        for q in (
            Question.DENSITY_CHOICE,
            Question.TASK_ORGANIZATION,
            Question.CHANGE_TOLERANCE,
            Question.PROGRESS_VISUALIZATION,
        )
        if (a := signals.get(q)) is not None and not a.skipped and a.elapsed_ms is not None
    ]
    if timings:
        avg_ms = sum(timings) / len(timings)
        if avg_ms < QUICK_DECISION_MS:
            lower_to("initiation_friction", 0.4)
        elif avg_ms > SLOW_DECISION_MS:
            raise_to("initiation_friction", 0.6)

    # Revisiting answers reads as sensitivity to cognitive load
    if sum(a.changes for a in signals.answers.values()) >= 2:
        raise_to("structure_preference", 0.7)

    # Skipping a lot reads as wanting autonomy over hand-holding
    if signals.skipped_count > 2:
        lower_to("structure_preference", 0.4)

    return CognitiveDimensions(**d)


# =============================================================================
# Builder
# =============================================================================


def build_cognitive_profile(signals: CognitiveDiscoverySignals) -> CognitiveProfile:
    """
    Build a complete profile from discovery signals.

    Never fails on missing answers: absent questions resolve to their
    documented defaults.
    """
    traits = (
        _categorical_trait(INFORMATION_DENSITY, signals, Question.DENSITY_CHOICE),
        _categorical_trait(TASK_STRUCTURE, signals, Question.TASK_ORGANIZATION),
        _categorical_trait(CHANGE_PACING, signals, Question.CHANGE_TOLERANCE),
        _categorical_trait(PROGRESS_VISUALIZATION, signals, Question.PROGRESS_VISUALIZATION),
        _emotional_tone_trait(signals),
    )
    return CognitiveProfile(
        traits=traits,
        dimensions=_build_dimensions(signals),
        self_recognition_tags=tuple(signals.value_of(Question.SELF_RECOGNITION_TAGS)),
    )
