"""
Durable key/value persistence for the session token and cached profile.

Two implementations share the ``CredentialStore`` protocol:

* ``MemoryCredentialStore`` keeps everything in a dict (tests, throwaway runs).
* ``FileCredentialStore`` writes a single JSON object to disk, which is what the
  CLI uses between invocations.

Neither knows anything about sessions; they only move strings around.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Protocol, runtime_checkable

__all__ = [
    "CredentialStore",
    "FileCredentialStore",
    "MemoryCredentialStore",
]

logger = logging.getLogger(__name__)


@runtime_checkable
class CredentialStore(Protocol):
    """Async string key/value store."""

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str) -> None: ...

    async def remove(self, key: str) -> None: ...


class MemoryCredentialStore:
    """Dict-backed store; lost when the process exits."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)


class FileCredentialStore:
    """
    Store backed by one JSON file.

    Every write rewrites the whole file through a temporary sibling and an
    atomic ``os.replace`` so a crash never leaves half a token on disk.  An
    unreadable file is treated as empty and overwritten by the next write.
    File access runs in a worker thread via ``asyncio.to_thread``.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path).expanduser()

    async def get(self, key: str) -> str | None:
        value = (await asyncio.to_thread(self._read) or {}).get(key)
        return value if isinstance(value, str) else None

    async def set(self, key: str, value: str) -> None:
        await asyncio.to_thread(self._update, key, value)

    async def remove(self, key: str) -> None:
        await asyncio.to_thread(self._update, key, None)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _update(self, key: str, value: str | None) -> None:
        raw = self._read()
        data = raw if raw is not None else {}
        if value is not None:
            data[key] = value
        elif key in data:
            del data[key]
        elif raw is not None:
            return
        self._dump(data)

    def _read(self) -> dict[str, object] | None:
        """Return the stored object, ``{}`` if there is no file, or None if it is unreadable."""
        if not self.path.exists():
            return {}
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        except ValueError:
            raw = None
        if not isinstance(raw, dict):
            logger.warning("%s is not a JSON object; treating it as empty", self.path)
            return None
        return raw

    def _dump(self, data: dict[str, object]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")
        os.replace(tmp, self.path)
        logger.debug("Wrote %d key(s) to %s", len(data), self.path)
