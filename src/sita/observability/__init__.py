"""
SITA Core - Observability Package.

Provides:
- Observer port for onboarding events
- Stdlib logging observer
- JSONL per-session logger
"""

from sita.observability.observer import (
    LoggingObserver,
    MultiObserver,
    OnboardingObserver,
    default_observer,
)
from sita.observability.session_logger import SessionLogger

__all__ = [
    "LoggingObserver",
    "MultiObserver",
    "OnboardingObserver",
    "SessionLogger",
    "default_observer",
]
