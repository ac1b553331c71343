"""
Onboarding Progress Persistence.

A minimal resumable checkpoint ({step, mode, timestamp}) written to the local
durable channel on every committed step change, plus the in-progress
OnboardingData draft so a resumed session keeps its answers.

Recovery rules:
- Corrupt or drifted payloads read as "no saved progress" and are cleared.
- Checkpoints older than the TTL (24h default), or that never got past the
  mode-selection step, are stale: treated as absent and deleted on detection.
- Reads never raise to the caller.
"""

import logging
import time
from typing import Callable

from pydantic import BaseModel, ConfigDict, Field

from sita.observability import OnboardingObserver
from sita.storage import DRAFT_KEY, PROGRESS_KEY, LocalChannel

from .payload import OnboardingData
from .steps import MODE_SELECTION_INDEX, SetupMode

logger = logging.getLogger(__name__)

HOUR_MS = 60 * 60 * 1000


def now_ms() -> int:
    """Current epoch time in milliseconds."""
    return int(time.time() * 1000)


class SavedProgress(BaseModel):
    """Resumable checkpoint."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    step: int = Field(ge=0)
    mode: SetupMode
    timestamp: int = Field(ge=0)  # epoch ms


class ProgressStore:
    """
    Save/restore of onboarding progress on a single namespaced slot.

    One owner at a time (the onboarding session). Concurrent owners race;
    last writer wins.
    """

    def __init__(
        self,
        channel: LocalChannel,
        clock: Callable[[], int] = now_ms,
        ttl_hours: int = 24,
        min_step: int = MODE_SELECTION_INDEX,
        observer: OnboardingObserver | None = None,
        key: str = PROGRESS_KEY,
        draft_key: str = DRAFT_KEY,
    ):
        self.channel = channel
        self.clock = clock
        self.ttl_ms = ttl_hours * HOUR_MS
        self.min_step = min_step
        self.observer = observer
        self.key = key
        self.draft_key = draft_key

    @classmethod
    def from_settings(
        cls,
        channel: LocalChannel,
        clock: Callable[[], int] = now_ms,
        observer: OnboardingObserver | None = None,
    ) -> "ProgressStore":
        from sita.config import settings

        return cls(
            channel,
            clock=clock,
            ttl_hours=settings.progress_ttl_hours,
            min_step=settings.progress_min_step,
            observer=observer,
        )

    def _emit(self, name: str, **fields) -> None:
        if self.observer is not None:
            self.observer.event(name, **fields)

    # =========================================================================
    # Write
    # =========================================================================

    def save(self, progress: SavedProgress, draft: OnboardingData | None = None) -> None:
        """Overwrite the checkpoint (and draft, when given)."""
        self.channel.set(self.key, progress.model_dump_json())
        if draft is not None:
            self.channel.set(self.draft_key, draft.to_json())

    def clear(self) -> None:
        """Remove checkpoint and draft. Idempotent."""
        self.channel.remove(self.key)
        self.channel.remove(self.draft_key)

    # =========================================================================
    # Read
    # =========================================================================

    def is_fresh(self, progress: SavedProgress, now: int | None = None) -> bool:
        """Young enough and far enough along to offer a resume."""
        now = self.clock() if now is None else now
        return (now - progress.timestamp) < self.ttl_ms and progress.step > self.min_step

    def restore(self) -> SavedProgress | None:
        """
        Load the checkpoint if it is valid and fresh.

        Malformed and stale checkpoints are deleted and reported as absent.
        """
        raw = self.channel.get(self.key)
        if raw is None:
            return None

        try:
            progress = SavedProgress.model_validate_json(raw)
        except ValueError as e:
            logger.warning(f"Discarding malformed onboarding progress: {e}")
            self._emit("progress_discarded", reason="malformed")
            self.clear()
            return None

        if not self.is_fresh(progress):
            age_hours = (self.clock() - progress.timestamp) / HOUR_MS
            logger.info(
                f"Discarding stale onboarding progress (step={progress.step}, age={age_hours:.1f}h)"
            )
            self._emit("progress_discarded", reason="stale", step=progress.step, mode=progress.mode)
            self.clear()
            return None

        return progress

    def restore_draft(self) -> OnboardingData | None:
        """Load the draft record saved alongside the checkpoint."""
        raw = self.channel.get(self.draft_key)
        if raw is None:
            return None
        try:
            return OnboardingData.from_json(raw)
        except (ValueError, TypeError, AttributeError) as e:
            logger.warning(f"Discarding malformed onboarding draft: {e}")
            self._emit("progress_discarded", reason="malformed_draft")
            self.channel.remove(self.draft_key)
            return None
