"""
Onboarding Completion Pipeline.

Runs once when the flow reaches its terminal step:

1. Stamp completed_at on the finalized record
2. Write the completed flag, user name and full record to the local channel
   (synchronous; this is the durability guarantee, so it must succeed)
3. Forward the record to the hosted backend (best effort, bounded by a
   timeout; failures are reported to the observer and swallowed)
4. Call the caller's on_complete with the finalized record, whatever step 3
   returned
"""

import asyncio
import dataclasses
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Literal, Union

import httpx

from sita.observability import LoggingObserver, OnboardingObserver
from sita.storage import ONBOARDED_KEY, RECORD_KEY, USER_NAME_KEY, LocalChannel

from .payload import OnboardingData
from .remote import RemotePersistence, RemoteRejectedError

logger = logging.getLogger(__name__)


# =============================================================================
# Result Types
# =============================================================================

FailureKind = Literal["network", "timeout", "rejected", "error"]


@dataclass(frozen=True)
class RemoteOk:
    """Both remote writes succeeded."""


@dataclass(frozen=True)
class RemoteFailure:
    """A remote write failed. The local record is still the committed truth."""
    reason: str
    kind: FailureKind = "error"


@dataclass(frozen=True)
class RemoteSkipped:
    """No remote write was attempted."""
    reason: str


RemoteOutcome = Union[RemoteOk, RemoteFailure, RemoteSkipped]


@dataclass(frozen=True)
class CompletionResult:
    record: OnboardingData
    remote: RemoteOutcome


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def classify_failure(error: BaseException) -> FailureKind:
    """Bucket a remote exception for logging. All kinds are handled the same way."""
    if isinstance(error, asyncio.TimeoutError):
        return "timeout"
    if isinstance(error, RemoteRejectedError):
        return "rejected"
    if isinstance(error, (httpx.TransportError, ConnectionError, OSError)):
        return "network"
    return "error"


# =============================================================================
# Pipeline
# =============================================================================


class CompletionPipeline:
    """Finalize-and-handoff for a completed onboarding record."""

    def __init__(
        self,
        channel: LocalChannel,
        on_complete: Callable[[OnboardingData], None],
        remote: RemotePersistence | None = None,
        user_id: str | None = None,
        observer: OnboardingObserver | None = None,
        remote_timeout: float = 10.0,
        now: Callable[[], datetime] = _utc_now,
    ):
        self.channel = channel
        self.on_complete = on_complete
        self.remote = remote
        self.user_id = user_id
        self.observer = observer or LoggingObserver()
        self.remote_timeout = remote_timeout
        self.now = now

    def finalize(self, data: OnboardingData) -> OnboardingData:
        """Copy of the record with completed_at stamped."""
        return dataclasses.replace(data, completed_at=self.now().isoformat())

    def write_local(self, record: OnboardingData) -> None:
        """Write the completion keys. Raises if the channel can't be written."""
        self.channel.set(ONBOARDED_KEY, json.dumps(True))
        self.channel.set(USER_NAME_KEY, record.name)
        self.channel.set(RECORD_KEY, record.to_json())
        self.observer.event(
            "completion_local_saved",
            setup_mode=record.setup_mode,
            completed_at=record.completed_at,
        )

    async def _push(self, record: OnboardingData) -> None:
        await self.remote.save_preferences(self.user_id, record)
        if record.name:
            await self.remote.save_profile_name(self.user_id, record.name)

    async def push_remote(self, record: OnboardingData) -> RemoteOutcome:
        """Best-effort remote save. Never raises."""
        if self.remote is None:
            return RemoteSkipped(reason="remote persistence not configured")
        if not self.user_id:
            return RemoteSkipped(reason="no authenticated user")

        try:
            await asyncio.wait_for(self._push(record), timeout=self.remote_timeout)
        except Exception as e:
            kind = classify_failure(e)
            reason = str(e) or type(e).__name__
            logger.warning(f"Remote onboarding save failed ({kind}) for user {self.user_id}: {reason}")
            return RemoteFailure(reason=reason, kind=kind)
        return RemoteOk()

    async def handoff(self, record: OnboardingData) -> CompletionResult:
        """Remote save and on_complete for a record already written locally."""
        outcome = await self.push_remote(record)
        if isinstance(outcome, RemoteFailure):
            self.observer.event("remote_save_failed", reason=outcome.reason, kind=outcome.kind)
        elif isinstance(outcome, RemoteSkipped):
            self.observer.event("remote_save_skipped", reason=outcome.reason)
        else:
            self.observer.event("remote_save_ok", user_id=self.user_id)

        self.on_complete(record)
        return CompletionResult(record=record, remote=outcome)

    async def run(self, data: OnboardingData) -> CompletionResult:
        """Run all four steps in order."""
        record = self.finalize(data)
        self.write_local(record)
        return await self.handoff(record)


def is_onboarded(channel: LocalChannel) -> bool:
    """What the app shell checks to decide whether to show onboarding at all."""
    raw = channel.get(ONBOARDED_KEY)
    if raw is None:
        return False
    try:
        return json.loads(raw) is True
    except ValueError:
        return raw == "true"


def load_completed_record(channel: LocalChannel) -> OnboardingData | None:
    """The locally cached finalized record, if any."""
    raw = channel.get(RECORD_KEY)
    if raw is None:
        return None
    try:
        return OnboardingData.from_json(raw)
    except (ValueError, TypeError, AttributeError) as e:
        logger.warning(f"Cached onboarding record unreadable: {e}")
        return None
