"""
Automation Templates for Onboarding.

Fixed catalog of starter automations. Users pick up to three; everything else
can be enabled later from the Automations page.
"""

from dataclasses import dataclass, asdict
from typing import Literal

from .errors import InvalidFieldError, UnknownAutomationError

AutomationCategory = Literal["health", "focus", "wealth", "system"]


@dataclass(frozen=True)
class AutomationTemplate:
    """A starter automation."""
    id: str
    category: AutomationCategory
    name: str
    trigger: str
    action: str
    description: str

    def to_dict(self, enabled: bool = True) -> dict:
        return {**asdict(self), "enabled": enabled}


AUTOMATION_TEMPLATES: tuple[AutomationTemplate, ...] = (
    # Health & Recovery
    AutomationTemplate(
        id="sleep-low-adjust",
        category="health",
        name="Sleep Score Recovery",
        trigger="Sleep score drops below 70%",
        action="Lighten tomorrow's schedule + earlier wind-down reminder",
        description="When sleep quality dips, the next day's workload is lightened and a wind-down reminder goes out earlier.",
    ),
    AutomationTemplate(
        id="stress-high-protocol",
        category="health",
        name="Stress Response Protocol",
        trigger="HRV drops or stress markers spike",
        action="Breathing exercise + reschedule non-urgent tasks",
        description="Offers a two-minute breathing protocol and moves non-critical tasks to calmer slots when wearables report stress.",
    ),
    AutomationTemplate(
        id="energy-dip-alert",
        category="health",
        name="Energy Dip Protection",
        trigger="Predicted energy crash in 30 minutes",
        action="Suggest break + hydration + light movement",
        description="Predicts energy dips from historical patterns and suggests a micro-break before they hit.",
    ),
    AutomationTemplate(
        id="recovery-day-mode",
        category="health",
        name="Recovery Day Mode",
        trigger="3+ consecutive high-intensity days detected",
        action="Block focus slots + suggest recovery activities",
        description="Tracks cumulative load across work and exercise and makes room for recovery before burnout.",
    ),
    # Focus & Productivity
    AutomationTemplate(
        id="focus-window-silence",
        category="focus",
        name="Focus Window Guard",
        trigger="Scheduled focus block starting",
        action="Enable DND + silence notifications + surface priority tasks",
        description="Silences distractions and surfaces the most important tasks when a deep work block begins.",
    ),
    AutomationTemplate(
        id="task-pile-intervention",
        category="focus",
        name="Task Pile Intervention",
        trigger="Overdue tasks exceed threshold",
        action="Triage assistant + reschedule or delegate suggestions",
        description="Helps triage a growing backlog: what to reschedule, what to delegate, what needs attention today.",
    ),
    AutomationTemplate(
        id="context-switch-guard",
        category="focus",
        name="Context Switch Guardian",
        trigger="Rapid task switching detected",
        action="Gentle pause + single-task suggestion",
        description="Notices bouncing between too many things and suggests settling on one task.",
    ),
    AutomationTemplate(
        id="deep-work-streak",
        category="focus",
        name="Deep Work Streak Tracker",
        trigger="90-minute focus block completed",
        action="Log achievement + suggest break + celebrate win",
        description="Logs focus streaks, suggests a restorative break and records the win.",
    ),
    # Wealth & Business
    AutomationTemplate(
        id="revenue-spike-alert",
        category="wealth",
        name="Revenue Spike Analysis",
        trigger="Unusual revenue increase detected",
        action="Analyze source + summarize + suggest amplification",
        description="Investigates unexpected revenue and suggests how to repeat it.",
    ),
    AutomationTemplate(
        id="revenue-drop-alert",
        category="wealth",
        name="Revenue Drop Warning",
        trigger="Revenue 20% below weekly average",
        action="Diagnostic report + suggest recovery actions",
        description="Flags revenue dips early with likely causes and concrete recovery actions.",
    ),
    AutomationTemplate(
        id="expense-anomaly",
        category="wealth",
        name="Expense Anomaly Detection",
        trigger="Unusual charge or subscription increase",
        action="Alert + show context + suggest action",
        description="Catches unexpected charges, subscription price hikes and duplicate payments.",
    ),
    AutomationTemplate(
        id="opportunity-scout",
        category="wealth",
        name="Opportunity Scout",
        trigger="New lead or high-value opportunity detected",
        action="Priority notification + background research + suggested response",
        description="Researches promising opportunities and drafts a response strategy.",
    ),
    # System & Daily Flow
    AutomationTemplate(
        id="morning-briefing",
        category="system",
        name="Morning Briefing",
        trigger="15 minutes after wake time",
        action="Personalized daily summary + energy forecast + priorities",
        description="A daily briefing with overnight wins, the day's energy forecast and top priorities.",
    ),
    AutomationTemplate(
        id="evening-wind-down",
        category="system",
        name="Evening Wind-Down",
        trigger="2 hours before sleep time",
        action="Tomorrow prep + inbox zero + win celebration",
        description="Preps tomorrow, celebrates today's wins and clears mental clutter before rest.",
    ),
    AutomationTemplate(
        id="device-disconnect",
        category="system",
        name="Device Recovery",
        trigger="Wearable or connected device goes offline",
        action="Notify + attempt reconnection + log gap",
        description="Reconnects dropped devices and logs data gaps so insights stay accurate.",
    ),
    AutomationTemplate(
        id="weekly-review-prep",
        category="system",
        name="Weekly Review Prep",
        trigger="Sunday evening (configurable)",
        action="Compile week summary + next week preview + suggest adjustments",
        description="Prepares a weekly review: what worked, what didn't, and adjustments for next week.",
    ),
)

TEMPLATES_BY_ID = {t.id: t for t in AUTOMATION_TEMPLATES}

MAX_ENABLED_AUTOMATIONS = 3


def get_automation_options(category: AutomationCategory | None = None) -> list[dict]:
    """Catalog entries for UI display, optionally filtered by category."""
    return [
        t.to_dict(enabled=False)
        for t in AUTOMATION_TEMPLATES
        if category is None or t.category == category
    ]


def toggle_automation(selected: list[dict], template_id: str) -> tuple[list[dict], bool]:
    """
    Enable or disable a template in the selected automations.

    Args:
        selected: Currently enabled automations (template dicts)
        template_id: Template to toggle

    Returns:
        (new selection, changed). Enabling past the cap leaves the selection
        unchanged and returns changed=False.
    """
    template = TEMPLATES_BY_ID.get(template_id)
    if template is None:
        raise UnknownAutomationError(f"Unknown automation template: {template_id}")

    if any(a.get("id") == template_id for a in selected):
        return [a for a in selected if a.get("id") != template_id], True

    if len(selected) >= MAX_ENABLED_AUTOMATIONS:
        return list(selected), False

    return [*selected, template.to_dict(enabled=True)], True


def validate_automation_selection(template_ids: list[str]) -> list[str]:
    """
    Validate a batch selection, e.g. a whole list written from a client.

    Duplicates are collapsed. Unknown ids raise UnknownAutomationError and a
    selection over the cap raises InvalidFieldError.
    """
    valid: list[str] = []
    for template_id in template_ids:
        tid = (template_id or "").strip()
        if tid not in TEMPLATES_BY_ID:
            raise UnknownAutomationError(f"Unknown automation template: {template_id}")
        if tid not in valid:
            valid.append(tid)
    if len(valid) > MAX_ENABLED_AUTOMATIONS:
        raise InvalidFieldError(
            f"At most {MAX_ENABLED_AUTOMATIONS} automations can be enabled, got {len(valid)}"
        )
    return valid


def select_automations(template_ids: list[str]) -> list[dict]:
    """Enabled automation dicts for a validated batch selection, in catalog form."""
    return [
        TEMPLATES_BY_ID[tid].to_dict(enabled=True)
        for tid in validate_automation_selection(template_ids)
    ]
