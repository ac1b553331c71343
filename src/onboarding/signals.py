"""
Cognitive Discovery Signals.

Behavioral signals captured during the discovery steps: one categorical answer
per question plus, for timed questions, how long the user took to decide.

Absence of an answer is distinct from an explicit default. Skipping a question
writes the documented default with `skipped=True`, so downstream consumers
never have to special-case a missing answer.
"""

import logging
import time
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Callable

from .errors import InvalidSignalError
from .steps import StepId

logger = logging.getLogger(__name__)


class Question(str, Enum):
    """Discovery questions."""
    DENSITY_CHOICE = "densityChoice"
    TASK_ORGANIZATION = "taskOrganization"
    CHANGE_TOLERANCE = "changeTolerance"
    PROGRESS_VISUALIZATION = "progressVisualization"
    PILE_UP_RESPONSE = "pileUpResponse"
    REMINDER_FEELING = "reminderFeeling"
    AUTO_CHANGE_PREFERENCE = "autoChangePreference"
    SELF_RECOGNITION_TAGS = "selfRecognitionTags"


@dataclass(frozen=True)
class SignalSpec:
    """Closed value set, skip default and timing for one question."""
    values: tuple[str, ...]
    default: Any
    timed: bool = False
    multi: bool = False  # Answer is a subset of `values`, not one of them


SELF_RECOGNITION_TAGS = (
    "lose_track_of_time",
    "too_many_options",
    "predictability_helps",
    "starting_is_hard",
    "notice_small_details",
    "background_noise_helps",
    "need_deadlines",
    "visual_learner",
)

SIGNAL_CATALOG: dict[Question, SignalSpec] = {
    Question.DENSITY_CHOICE: SignalSpec(
        values=("dense", "focused", "adaptive"), default="adaptive", timed=True,
    ),
    Question.TASK_ORGANIZATION: SignalSpec(
        values=("freeform", "structured", "hybrid"), default="hybrid", timed=True,
    ),
    Question.CHANGE_TOLERANCE: SignalSpec(
        values=("low", "medium", "high"), default="medium", timed=True,
    ),
    Question.PROGRESS_VISUALIZATION: SignalSpec(
        values=("timer", "progress", "both", "none"), default="progress", timed=True,
    ),
    Question.PILE_UP_RESPONSE: SignalSpec(
        values=("fewer_choices", "clearer_steps", "reassurance", "silence"), default="clearer_steps",
    ),
    Question.REMINDER_FEELING: SignalSpec(
        values=("helpful", "stressful", "depends"), default="depends",
    ),
    Question.AUTO_CHANGE_PREFERENCE: SignalSpec(
        values=("automatic", "ask_first", "never"), default="ask_first",
    ),
    Question.SELF_RECOGNITION_TAGS: SignalSpec(
        values=SELF_RECOGNITION_TAGS, default=(), multi=True,
    ),
}

# Which step collects which questions
SIGNAL_STEPS: dict[StepId, tuple[Question, ...]] = {
    StepId.SELF_RECOGNITION: (Question.SELF_RECOGNITION_TAGS,),
    StepId.DENSITY_CHOICE: (Question.DENSITY_CHOICE,),
    StepId.TASK_STYLE: (Question.TASK_ORGANIZATION,),
    StepId.CHANGE_TOLERANCE: (Question.CHANGE_TOLERANCE,),
    StepId.PROGRESS_STYLE: (Question.PROGRESS_VISUALIZATION,),
    StepId.EMOTIONAL_CALIBRATION: (
        Question.PILE_UP_RESPONSE,
        Question.REMINDER_FEELING,
        Question.AUTO_CHANGE_PREFERENCE,
    ),
}


def questions_for_step(step: StepId) -> tuple[Question, ...]:
    """Questions a step collects (empty for non-discovery steps)."""
    return SIGNAL_STEPS.get(step, ())


def normalize_value(question: Question | str, value: Any) -> Any:
    """
    Validate an answer against the question's closed value set.

    Multi-select answers come back as a de-duplicated list in selection order.
    Raises InvalidSignalError on anything outside the set.
    """
    question = Question(question)
    spec = SIGNAL_CATALOG[question]

    if spec.multi:
        if isinstance(value, str) or not isinstance(value, (list, tuple, set, frozenset)):
            raise InvalidSignalError(f"{question.value} expects a list of tags, got {value!r}")
        tags: list[str] = []
        for tag in value:
            if tag not in spec.values:
                raise InvalidSignalError(f"Unknown {question.value} tag: {tag!r}")
            if tag not in tags:
                tags.append(tag)
        return tags

    if value not in spec.values:
        raise InvalidSignalError(
            f"{question.value} must be one of {', '.join(spec.values)}; got {value!r}"
        )
    return value


def default_for(question: Question | str) -> Any:
    """Documented skip default for a question."""
    spec = SIGNAL_CATALOG[Question(question)]
    return list(spec.default) if spec.multi else spec.default


# =============================================================================
# Signal Bag
# =============================================================================


@dataclass
class SignalAnswer:
    """One recorded answer. Only the latest value is kept."""
    value: Any
    elapsed_ms: int | None = None  # Set for timed questions only
    skipped: bool = False
    changes: int = 0  # How many times a different value replaced an earlier one


@dataclass
class CognitiveDiscoverySignals:
    """Answers keyed by question. A missing key means 'never asked'."""
    answers: dict[Question, SignalAnswer] = field(default_factory=dict)

    def has(self, question: Question | str) -> bool:
        return Question(question) in self.answers

    def get(self, question: Question | str) -> SignalAnswer | None:
        return self.answers.get(Question(question))

    def value_of(self, question: Question | str) -> Any:
        """Recorded value, or the documented default when absent."""
        answer = self.get(question)
        if answer is None:
            return default_for(question)
        return answer.value

    def elapsed_of(self, question: Question | str) -> int | None:
        answer = self.get(question)
        return answer.elapsed_ms if answer else None

    @property
    def skipped_count(self) -> int:
        return sum(1 for a in self.answers.values() if a.skipped)

    def copy(self) -> "CognitiveDiscoverySignals":
        """Snapshot for pure consumers."""
        return CognitiveDiscoverySignals.from_dict(self.to_dict())

    def to_dict(self) -> dict:
        """Serialize for JSON storage (question wire names as keys)."""
        return {q.value: asdict(a) for q, a in self.answers.items()}

    @classmethod
    def from_dict(cls, data: dict | None) -> "CognitiveDiscoverySignals":
        """
        Deserialize from dict.

        Raises ValueError (InvalidSignalError or unknown question) on bad input.
        """
        answers: dict[Question, SignalAnswer] = {}
        for key, raw in (data or {}).items():
            question = Question(key)
            if not isinstance(raw, dict) or "value" not in raw:
                raise ValueError(f"Malformed answer for {key}: {raw!r}")
            try:
                value = normalize_value(question, raw["value"])
            except InvalidSignalError as e:
                raise ValueError(str(e)) from e
            elapsed = raw.get("elapsed_ms")
            answers[question] = SignalAnswer(
                value=value,
                elapsed_ms=int(elapsed) if elapsed is not None else None,
                skipped=bool(raw.get("skipped", False)),
                changes=int(raw.get("changes", 0)),
            )
        return cls(answers=answers)


# =============================================================================
# Recorder
# =============================================================================


def _now_ms() -> int:
    return int(time.time() * 1000)


class SignalRecorder:
    """
    Writes answers into a signal bag.

    Decision time runs from `mark_visible()` (the question's step became
    visible) to the moment a value is recorded, unless the caller measured it.
    """

    def __init__(
        self,
        signals: CognitiveDiscoverySignals,
        clock: Callable[[], int] = _now_ms,
    ):
        self.signals = signals
        self.clock = clock
        self._visible_at: int | None = None

    def mark_visible(self, at_ms: int | None = None) -> None:
        """Start the decision timer for the step now on screen."""
        self._visible_at = self.clock() if at_ms is None else at_ms

    def _elapsed_since_visible(self) -> int | None:
        if self._visible_at is None:
            return None
        return max(0, self.clock() - self._visible_at)

    def _write(self, question: Question, answer: SignalAnswer) -> SignalAnswer:
        previous = self.signals.answers.get(question)
        if previous is not None:
            answer.changes = previous.changes + (1 if previous.value != answer.value else 0)
        self.signals.answers[question] = answer
        return answer

    def record(
        self,
        question: Question | str,
        value: Any,
        elapsed_ms: int | None = None,
    ) -> SignalAnswer:
        """Record an answer. Last answer wins."""
        question = Question(question)
        spec = SIGNAL_CATALOG[question]
        value = normalize_value(question, value)

        if spec.timed:
            if elapsed_ms is None:
                elapsed_ms = self._elapsed_since_visible()
            elif elapsed_ms < 0:
                elapsed_ms = 0
        else:
            elapsed_ms = None

        return self._write(question, SignalAnswer(value=value, elapsed_ms=elapsed_ms))

    def skip(self, question: Question | str) -> SignalAnswer:
        """Record the documented default for a question the user skipped."""
        question = Question(question)
        logger.debug(f"Question {question.value} skipped, using default")
        return self._write(
            question,
            SignalAnswer(value=default_for(question), elapsed_ms=None, skipped=True),
        )
