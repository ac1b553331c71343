"""
Pytest configuration and fixtures for SITA onboarding tests.
"""

import asyncio
import os
from typing import Any

import pytest

# Set test environment before importing sita modules
os.environ["SITA_ENV"] = "development"
os.environ.pop("SUPABASE_URL", None)
os.environ.pop("SUPABASE_ANON_KEY", None)

from sita.storage import MemoryChannel  # noqa: E402

from onboarding.session import OnboardingSession  # noqa: E402
from onboarding.steps import SetupMode  # noqa: E402

START_MS = 1_700_000_000_000
HOUR_MS = 60 * 60 * 1000


def run(coro):
    """Run a coroutine to completion (no pytest-asyncio)."""
    return asyncio.run(coro)


class FakeClock:
    """Controllable epoch-ms clock."""

    def __init__(self, start: int = START_MS):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class RecordingObserver:
    """Captures observer events for assertions."""

    def __init__(self):
        self.events: list[tuple[str, dict[str, Any]]] = []

    def event(self, name: str, **fields: Any) -> None:
        self.events.append((name, fields))

    def names(self) -> list[str]:
        return [name for name, _ in self.events]

    def of(self, name: str) -> list[dict[str, Any]]:
        return [fields for n, fields in self.events if n == name]


class FakeRemote:
    """RemotePersistence double. Set `error` to make every call raise it."""

    def __init__(self, error: Exception | None = None, delay: float = 0.0):
        self.error = error
        self.delay = delay
        self.preferences: list[tuple[str, Any]] = []
        self.names: list[tuple[str, str]] = []

    async def save_preferences(self, user_id, data) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        self.preferences.append((user_id, data))

    async def save_profile_name(self, user_id, name) -> None:
        if self.error is not None:
            raise self.error
        self.names.append((user_id, name))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def channel():
    return MemoryChannel()


@pytest.fixture
def observer():
    return RecordingObserver()


@pytest.fixture
def remote():
    return FakeRemote()


@pytest.fixture
def completed():
    """Records passed to on_complete."""
    return []


@pytest.fixture
def make_session(channel, clock, observer, remote, completed):
    """Factory for sessions sharing the same channel (simulates restarts)."""

    def _make(**overrides) -> OnboardingSession:
        kwargs = dict(
            on_complete=completed.append,
            remote=remote,
            user_id="user-1",
            observer=observer,
            clock=clock,
        )
        kwargs.update(overrides)
        return OnboardingSession(channel, **kwargs)

    return _make


@pytest.fixture
def session(make_session):
    s = make_session()
    s.start_fresh()
    return s


def enter_mode(session: OnboardingSession, mode: SetupMode, name: str = "Ada") -> None:
    """Walk from the entry step to the name step in `mode` and fill in the name."""
    session.advance()
    session.advance()
    session.choose_mode(mode)
    session.advance()
    session.update("name", name)


def walk_to(session: OnboardingSession, index: int) -> None:
    """Advance until the session sits on `index`."""
    while session.step_index < index:
        assert session.advance(), f"stuck at {session.current_step.value}"
