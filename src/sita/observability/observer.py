"""
SITA Core - Observer port.

The onboarding engine reports what happened (step changes, discarded
progress, remote save outcomes) through an injected observer instead of
logging directly, so tests can capture events and production can fan out to
stdlib logging and JSONL session files.
"""

import logging
from typing import Any, Protocol, runtime_checkable

# Events that indicate something degraded, logged at WARNING
WARNING_EVENTS = {
    "progress_discarded",
    "remote_save_failed",
}


@runtime_checkable
class OnboardingObserver(Protocol):
    """Receives named events with keyword fields."""

    def event(self, name: str, **fields: Any) -> None: ...


class LoggingObserver:
    """Observer backed by stdlib logging."""

    def __init__(self, logger: logging.Logger | None = None):
        self.logger = logger or logging.getLogger("sita.onboarding")

    def event(self, name: str, **fields: Any) -> None:
        level = logging.WARNING if name in WARNING_EVENTS else logging.INFO
        detail = " ".join(f"{k}={v}" for k, v in fields.items())
        self.logger.log(level, f"{name} {detail}".rstrip())

    def close(self) -> None:
        """Nothing to release; loggers are process-wide."""


class MultiObserver:
    """Fan out to several observers. A failing observer never breaks the others."""

    def __init__(self, *observers: OnboardingObserver):
        self.observers = list(observers)

    def event(self, name: str, **fields: Any) -> None:
        for observer in self.observers:
            try:
                observer.event(name, **fields)
            except Exception as e:
                logging.getLogger(__name__).warning(f"Observer {observer!r} failed on {name}: {e}")

    def close(self) -> None:
        """Close every observer that holds a resource (e.g. a session log file)."""
        for observer in self.observers:
            close = getattr(observer, "close", None)
            if close is not None:
                close()


def default_observer(session_id: str | None = None) -> OnboardingObserver:
    """Logging observer, plus a JSONL session log when SITA_LOG_SESSIONS is set."""
    from sita.config import settings
    from sita.observability.session_logger import SessionLogger

    if settings.sita_log_sessions:
        return MultiObserver(
            LoggingObserver(),
            SessionLogger(session_id=session_id, log_dir=settings.event_log_dir),
        )
    return LoggingObserver()
