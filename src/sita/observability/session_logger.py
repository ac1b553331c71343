"""
SITA Core - Session Logger.

Lightweight observability for onboarding sessions.

Features:
- One JSONL file per onboarding session (easy to parse, tail -f friendly)
- Step transitions with the step identifier, not just the index
- Smart truncation of large objects (onboarding records are big)
- Remote save outcomes

Usage:
    from sita.observability.session_logger import SessionLogger

    log = SessionLogger()  # Creates timestamped log file
    log.event("step_changed", mode="guided", from_index=3, to_index=4)

    # At end of session
    log.close()

Log format (JSONL):
    {"ts": "2026-01-01T17:30:00", "event": "step_changed", "mode": "guided", ...}
"""

import json
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any


# =============================================================================
# Configuration
# =============================================================================

# Max string length before truncation
MAX_STRING_LEN = 200

# Max list items to show
MAX_LIST_ITEMS = 5

# Max dict keys to show
MAX_DICT_KEYS = 12

# Fields to always truncate heavily (contain large content)
HEAVY_FIELDS = {
    "description", "record", "data", "signature_phrase", "daily_rhythm",
}


# =============================================================================
# Truncation
# =============================================================================


def _shorten(text: str, limit: int = MAX_STRING_LEN) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + f"... ({len(text)} chars)"


def _truncate_value(value: Any, depth: int = 0) -> Any:
    """
    Shrink an event field for the log line.

    Enums log by value and records (OnboardingData, SignalAnswer, profiles)
    through their to_dict(). Long strings, lists and dicts are cut down;
    HEAVY_FIELDS inside a dict collapse to a size marker.
    """
    if depth > 3:
        return "<nested>"
    if isinstance(value, Enum):
        value = value.value
    elif hasattr(value, "to_dict"):
        value = value.to_dict()

    if value is None or isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, str):
        return _shorten(value)

    if isinstance(value, (list, tuple)):
        head = [_truncate_value(v, depth + 1) for v in value[:MAX_LIST_ITEMS]]
        if len(value) > MAX_LIST_ITEMS:
            head.append(f"... +{len(value) - MAX_LIST_ITEMS} more")
        return head

    if isinstance(value, dict):
        result = {}
        for k in list(value)[:MAX_DICT_KEYS]:
            v = value[k]
            if k in HEAVY_FIELDS and isinstance(v, (dict, list)):
                result[k] = f"<{type(v).__name__} len={len(v)}>"
            elif k in HEAVY_FIELDS and isinstance(v, str):
                result[k] = _shorten(v, 50)
            else:
                result[k] = _truncate_value(v, depth + 1)
        if len(value) > MAX_DICT_KEYS:
            result["_truncated"] = f"+{len(value) - MAX_DICT_KEYS} keys"
        return result

    return _shorten(str(value))


# =============================================================================
# Session Logger
# =============================================================================


class SessionLogger:
    """
    Per-session logger that writes JSONL to a file.

    Implements the onboarding observer port (`event`).
    """

    def __init__(
        self,
        session_id: str | None = None,
        log_dir: Path | str = Path("session_logs"),
        enabled: bool = True,
    ):
        """
        Initialize session logger.

        Args:
            session_id: Optional custom session ID. Default: timestamp-based.
            log_dir: Directory for the JSONL files.
            enabled: If False, all logging is no-op.
        """
        self.enabled = enabled
        self._event_count = 0
        self.log_file = None
        self.log_path: Path | None = None

        if not enabled:
            return

        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)

        if session_id is None:
            session_id = datetime.now().strftime("%Y%m%d_%H%M%S")

        self.session_id = session_id
        self.log_path = log_dir / f"onboarding_{session_id}.jsonl"
        self.log_file = open(self.log_path, "a", encoding="utf-8")

        self._write({
            "event": "session_start",
            "session_id": session_id,
        })

    def _write(self, data: dict) -> None:
        """Write a log entry."""
        if not self.enabled or self.log_file is None:
            return

        entry = {
            "ts": datetime.now().isoformat(),
            **data,
        }
        self.log_file.write(json.dumps(entry, default=str) + "\n")
        self.log_file.flush()  # Ensure it's written for tail -f

    def event(self, name: str, **fields: Any) -> None:
        """Log an onboarding event."""
        self._event_count += 1
        self._write({
            "event": name,
            "seq": self._event_count,
            **_truncate_value(fields),
        })

    def close(self) -> str | None:
        """Close the log file. Returns log path."""
        if self.log_file:
            self._write({"event": "session_end", "total_events": self._event_count})
            self.log_file.close()
            self.log_file = None
            return str(self.log_path)
        return None
