"""
Onboarding Data Definition.

OnboardingData is the single record built up across the onboarding steps and
handed off at completion. Every field has a default so the record is
completion-ready even when steps were skipped.

WHAT GETS WIRED TO THE BACKEND:
- everything except cognitive_discovery → user_preferences row
- name → profiles row

WHAT STAYS LOCAL:
- cognitive_discovery → only used to build the adaptation profile
"""

from dataclasses import dataclass, field, asdict, fields
from typing import Any
import json

from .signals import CognitiveDiscoverySignals
from .steps import SetupMode

ONBOARDING_VERSION = 1


@dataclass
class OnboardingData:
    """Everything collected during onboarding."""

    # =========================================================================
    # Setup
    # =========================================================================

    setup_mode: SetupMode = SetupMode.GUIDED

    # =========================================================================
    # Identity & Intent
    # =========================================================================

    name: str = ""
    primary_intents: list[str] = field(default_factory=list)
    # increase-income, improve-sleep, build-focus, automate-life, track-privately, digital-twin
    north_star_metrics: list[str] = field(default_factory=list)

    # =========================================================================
    # Personality & Communication
    # =========================================================================

    assistant_style: str = "executive"  # executive | coach | muse | analyst
    friction_profile: dict = field(default_factory=lambda: {
        "push_intensity": "gentle",
        "action_mode": "ask-first",
        "verbosity": "minimal",
        "alert_frequency": "daily-summary",
    })
    voice_profile: dict = field(default_factory=lambda: {
        "gender": "female",
        "speed": 1.0,  # 0.5 - 2.0
        "warmth": 70,  # 0 - 100
    })
    sensory_prefs: dict = field(default_factory=lambda: {
        "ambient_sound": False,
        "haptics": "subtle",
    })

    # =========================================================================
    # Time & Rhythm
    # =========================================================================

    daily_rhythm: dict = field(default_factory=lambda: {
        "template": "early-bird",
        "wake_time": "06:30",
        "sleep_time": "22:30",
        "work_start": "09:00",
        "work_end": "18:00",
        "focus_blocks": [{"start": "09:30", "end": "11:00"}],
        "meal_windows": [
            {"start": "07:00", "end": "08:00"},
            {"start": "12:30", "end": "13:30"},
            {"start": "19:00", "end": "20:00"},
        ],
    })
    calendar_connected: bool = False

    # =========================================================================
    # Devices & Integrations
    # =========================================================================

    integrations: list[dict] = field(default_factory=list)
    # Each: {"provider": str, "status": str, "scope": str, "automation_rights": str}

    # =========================================================================
    # Module personalization (deep mode only; None when not visited)
    # =========================================================================

    wealth_profile: dict | None = None
    health_profile: dict | None = None
    focus_profile: dict | None = None
    sovereignty_profile: dict = field(default_factory=lambda: {
        "data_mode": "hybrid",
        "retention_days": 90,
        "memory_policy": {
            "remember_goals": True,
            "store_sensitive": False,
            "auto_delete_logs": True,
        },
    })

    # =========================================================================
    # Automation
    # =========================================================================

    autonomy_level: str = "suggest"  # observe | suggest | act | autopilot
    guardrails: dict = field(default_factory=lambda: {
        "never_spend_without_approval": True,
        "never_message_without_approval": True,
        "can_adjust_calendar": False,
        "can_enable_focus_mode": True,
    })
    automations: list[dict] = field(default_factory=list)
    # Enabled AutomationTemplate dicts, at most MAX_ENABLED_AUTOMATIONS

    # =========================================================================
    # Emotional personalization
    # =========================================================================

    avatar_style: str = "orb"  # orb | human | abstract
    presence_style: str = "calm"  # calm | sharp | playful | mysterious
    signature_phrase: str | None = None
    morning_ritual: bool = True
    theme: str = "dark"  # dark | light | auto

    # =========================================================================
    # Cognitive discovery
    # =========================================================================

    cognitive_discovery: CognitiveDiscoverySignals = field(
        default_factory=CognitiveDiscoverySignals
    )

    # =========================================================================
    # METADATA
    # =========================================================================

    completed_at: str | None = None
    onboarding_version: int = ONBOARDING_VERSION

    def to_dict(self) -> dict:
        """Serialize for storage/transfer."""
        data = asdict(self)
        data["setup_mode"] = self.setup_mode.value
        data["cognitive_discovery"] = self.cognitive_discovery.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "OnboardingData":
        """
        Deserialize from dict.

        Unknown keys are ignored so older/newer records still load.
        """
        known = {f.name for f in fields(cls)}
        data = {k: v for k, v in data.items() if k in known}
        if "setup_mode" in data:
            data["setup_mode"] = SetupMode(data["setup_mode"])
        if "cognitive_discovery" in data:
            data["cognitive_discovery"] = CognitiveDiscoverySignals.from_dict(
                data["cognitive_discovery"]
            )
        return cls(**data)

    def to_json(self) -> str:
        """Serialize to JSON string."""
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, json_str: str) -> "OnboardingData":
        """Deserialize from JSON string."""
        return cls.from_dict(json.loads(json_str))

    def to_db_row(self) -> dict[str, Any]:
        """Columns for the user_preferences table."""
        data = self.to_dict()
        data.pop("name")
        data.pop("cognitive_discovery")
        return data


def field_names() -> set[str]:
    """Top-level fields a step may update."""
    return {f.name for f in fields(OnboardingData)} - {"cognitive_discovery", "completed_at", "onboarding_version"}
