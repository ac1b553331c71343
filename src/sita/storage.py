"""
SITA Core - Local durable channel.

A namespaced string key/value store. This is the only place
that touches the local persistence medium; callers go through a channel
instance owned by the onboarding session instead of reaching for raw keys.

Two implementations:
- MemoryChannel: process-local dict (tests, ephemeral sessions)
- JsonFileChannel: one JSON document on disk, replaced atomically on write
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)


# =============================================================================
# Keys
# =============================================================================

PROGRESS_KEY = "sita_onboarding_progress"
DRAFT_KEY = "sita_onboarding_draft"
ONBOARDED_KEY = "sita_onboarded"
USER_NAME_KEY = "sita_user_name"
RECORD_KEY = "sita_onboarding_data"


# =============================================================================
# Channel Protocol
# =============================================================================


@runtime_checkable
class LocalChannel(Protocol):
    """String-keyed durable storage."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryChannel:
    """In-memory channel. Survives only as long as the instance."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


class JsonFileChannel:
    """
    File-backed channel.

    The whole store is one JSON object. Every write rewrites the file through
    a temp file + os.replace so a crash mid-write leaves the previous version.
    A corrupt file reads as empty and is overwritten on the next write.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path).expanduser()

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Local store at {self.path} unreadable, treating as empty: {e}")
            return {}
        if not isinstance(data, dict):
            return {}
        return {k: v for k, v in data.items() if isinstance(v, str)}

    def _write(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, self.path)
        except OSError:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    def get(self, key: str) -> str | None:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._write(data)

    def remove(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._write(data)


def default_channel() -> LocalChannel:
    """File channel at the configured location."""
    from sita.config import settings

    return JsonFileChannel(settings.local_store_path)
