"""
Remote persistence for completed onboarding.

The completion pipeline hands the finalized record to a RemotePersistence
implementation. Both operations are idempotent upserts keyed by user_id and
safe to retry; both may raise, and the pipeline swallows that.

The supabase client is synchronous, so each request runs in a worker thread.
That keeps the event loop free and lets the pipeline timeout cancel the wait.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Protocol, runtime_checkable

from .payload import OnboardingData

logger = logging.getLogger(__name__)


@runtime_checkable
class RemotePersistence(Protocol):
    """Hosted backend writes consumed by the completion pipeline."""

    async def save_preferences(self, user_id: str, data: OnboardingData) -> None: ...

    async def save_profile_name(self, user_id: str, name: str) -> None: ...


class RemoteRejectedError(Exception):
    """The backend answered but refused the write (validation, RLS, constraint)."""


class SupabasePersistence:
    """Writes to the user_preferences and profiles tables."""

    def __init__(self, client=None):
        self._client = client

    @property
    def client(self):
        if self._client is None:
            from sita.db.client import get_client

            self._client = get_client()
        return self._client

    async def save_preferences(self, user_id: str, data: OnboardingData) -> None:
        """Upsert the preferences row for a user."""
        row = {
            **data.to_db_row(),
            "user_id": user_id,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        query = self.client.table("user_preferences").upsert(row, on_conflict="user_id")
        result = await asyncio.to_thread(query.execute)
        if result is None or not getattr(result, "data", None):
            raise RemoteRejectedError(f"user_preferences upsert returned no rows for user {user_id}")
        logger.info(f"Saved onboarding preferences for user {user_id}")

    async def save_profile_name(self, user_id: str, name: str) -> None:
        """Upsert the display name on the user's profile."""
        query = self.client.table("profiles").upsert(
            {
                "user_id": user_id,
                "name": name,
                "updated_at": datetime.now(timezone.utc).isoformat(),
            },
            on_conflict="user_id",
        )
        result = await asyncio.to_thread(query.execute)
        if result is None or not getattr(result, "data", None):
            raise RemoteRejectedError(f"profiles upsert returned no rows for user {user_id}")
        logger.info(f"Saved profile name for user {user_id}")
