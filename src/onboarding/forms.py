"""
Onboarding Forms - step inputs and step-level gating.

Step inputs with a finite set of options or hard bounds are validated here,
before they reach OnboardingData. The completion pipeline trusts this gating
and does not re-validate.
"""

import logging
from dataclasses import fields
from typing import Any, Callable, Literal

from pydantic import BaseModel, Field, TypeAdapter, ValidationError, field_validator

from .automations import select_automations
from .errors import InvalidFieldError
from .payload import OnboardingData
from .steps import StepId

logger = logging.getLogger(__name__)


# =============================================================================
# Valid Options
# =============================================================================

PRIMARY_INTENTS = [
    {"id": "increase-income", "label": "Increase income"},
    {"id": "improve-sleep", "label": "Improve sleep"},
    {"id": "build-focus", "label": "Build focus"},
    {"id": "automate-life", "label": "Automate my life"},
    {"id": "track-privately", "label": "Track privately"},
    {"id": "digital-twin", "label": "Build a digital twin"},
]
VALID_INTENT_IDS = {i["id"] for i in PRIMARY_INTENTS}

NORTH_STAR_METRICS = [
    {"id": "energy-10am", "label": "More energy by 10am", "category": "health"},
    {"id": "revenue-increase", "label": "+$X/mo revenue", "category": "wealth"},
    {"id": "deep-work-blocks", "label": "2 deep work blocks/day", "category": "focus"},
    {"id": "admin-time", "label": "<30 min admin/day", "category": "time"},
    {"id": "sleep-avg", "label": "7.5h sleep avg", "category": "health"},
    {"id": "consistent-workouts", "label": "Consistent workouts", "category": "health"},
    {"id": "zero-overdue", "label": "Zero overdue tasks", "category": "focus"},
    {"id": "weekly-review", "label": "Weekly progress reviews", "category": "focus"},
]
VALID_METRIC_IDS = {m["id"] for m in NORTH_STAR_METRICS}

ASSISTANT_STYLES = ["executive", "coach", "muse", "analyst"]
AUTONOMY_LEVELS = ["observe", "suggest", "act", "autopilot"]

MAX_NAME_LENGTH = 50


# =============================================================================
# Form Models
# =============================================================================

class NameForm(BaseModel):
    """What should SITA call you."""

    name: str = Field(max_length=MAX_NAME_LENGTH)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name cannot be empty")
        return v


class GoalsForm(BaseModel):
    """Primary intents and north-star metrics."""

    primary_intents: list[str] = Field(default_factory=list)
    north_star_metrics: list[str] = Field(default_factory=list, max_length=3)

    @field_validator("primary_intents")
    @classmethod
    def validate_intents(cls, v: list[str]) -> list[str]:
        unknown = [i for i in v if i not in VALID_INTENT_IDS]
        if unknown:
            raise ValueError(f"Unknown intents: {', '.join(unknown)}")
        return list(dict.fromkeys(v))

    @field_validator("north_star_metrics")
    @classmethod
    def validate_metrics(cls, v: list[str]) -> list[str]:
        unknown = [m for m in v if m not in VALID_METRIC_IDS]
        if unknown:
            raise ValueError(f"Unknown metrics: {', '.join(unknown)}")
        return list(dict.fromkeys(v))


class VoiceProfileForm(BaseModel):
    """Voice settings."""

    gender: Literal["male", "female", "androgynous"] = "female"
    speed: float = Field(ge=0.5, le=2.0, default=1.0)
    warmth: int = Field(ge=0, le=100, default=70)


class PersonalityForm(BaseModel):
    """Assistant style and autonomy."""

    assistant_style: Literal["executive", "coach", "muse", "analyst"] = "executive"
    autonomy_level: Literal["observe", "suggest", "act", "autopilot"] = "suggest"


# =============================================================================
# Field Validation
# =============================================================================

FIELD_FORMS: dict[str, type[BaseModel]] = {
    "primary_intents": GoalsForm,
    "north_star_metrics": GoalsForm,
    "assistant_style": PersonalityForm,
    "autonomy_level": PersonalityForm,
}

_FIELD_TYPES = {f.name: f.type for f in fields(OnboardingData)}


def _automation_ids(value: Any) -> list[str]:
    if not isinstance(value, list):
        raise InvalidFieldError("automations must be a list")
    ids = []
    for item in value:
        if isinstance(item, dict):
            item = item.get("id")
        if not isinstance(item, str):
            raise InvalidFieldError(f"Not an automation id: {item!r}")
        ids.append(item)
    return ids


def validate_field(field: str, value: Any) -> Any:
    """
    Check a value written to a top-level OnboardingData field.

    Fields with a form go through it; automations are rebuilt from the
    catalog under the cap; everything else must match the field's type.
    Returns the value to store.
    """
    if field == "automations":
        return select_automations(_automation_ids(value))

    try:
        if field == "name":
            if not isinstance(value, str):
                raise InvalidFieldError("name must be a string")
            return NameForm(name=value).name
        if field == "voice_profile":
            return VoiceProfileForm.model_validate(value).model_dump()
        form = FIELD_FORMS.get(field)
        if form is not None:
            return getattr(form.model_validate({field: value}), field)
        return TypeAdapter(_FIELD_TYPES[field]).validate_python(value, strict=True)
    except ValidationError as e:
        raise InvalidFieldError(f"Invalid {field}: {e.errors()[0]['msg']}") from e


# =============================================================================
# Step Gating
# =============================================================================

def _has_name(data: OnboardingData) -> bool:
    return bool(data.name.strip())


STEP_GATES: dict[StepId, Callable[[OnboardingData], bool]] = {
    StepId.NAME: _has_name,
}


def can_leave_step(step: StepId, data: OnboardingData) -> bool:
    """Whether the user may advance past `step` with the data collected so far."""
    gate = STEP_GATES.get(step)
    if gate is None:
        return True
    allowed = gate(data)
    if not allowed:
        logger.debug(f"Step {step.value} gated: required input missing")
    return allowed


def get_form_options() -> dict:
    """Options for the choice-based steps, for frontend rendering."""
    return {
        "primary_intents": PRIMARY_INTENTS,
        "north_star_metrics": NORTH_STAR_METRICS,
        "assistant_styles": ASSISTANT_STYLES,
        "autonomy_levels": AUTONOMY_LEVELS,
        "max_name_length": MAX_NAME_LENGTH,
    }
