"""Durable key/value storage for run artifacts and step checkpoints.

The workflow only relies on the contract: `put` is at-least-once and `get`
reads its own writes. Values are JSON documents.
"""

from __future__ import annotations

import asyncio
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Protocol
from urllib.parse import quote


class DurableStore(Protocol):
    """Key/value persistence used for artifacts and checkpoints."""

    async def put(self, key: str, value: dict[str, Any]) -> None:
        ...

    async def get(self, key: str) -> dict[str, Any] | None:
        ...


class InMemoryStore:
    """Process-local store. Values are copied through JSON so callers never share state."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    async def put(self, key: str, value: dict[str, Any]) -> None:
        self._data[key] = json.dumps(value, default=str)

    async def get(self, key: str) -> dict[str, Any] | None:
        raw = self._data.get(key)
        return None if raw is None else json.loads(raw)

    def keys(self) -> list[str]:
        return sorted(self._data)


class FileStore:
    """One JSON file per key under `root`.

    Writes go to a temp file in the same directory and are moved into place, so
    readers see either the old or the new document.
    """

    def __init__(self, root: str | os.PathLike[str]):
        self.root = Path(root)

    def _path(self, key: str) -> Path:
        return self.root / f"{quote(key, safe='')}.json"

    def _write(self, key: str, value: dict[str, Any]) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        fd, tmp = tempfile.mkstemp(dir=self.root, prefix=".tmp-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(value, fh, ensure_ascii=False, default=str)
            os.replace(tmp, path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def _read(self, key: str) -> dict[str, Any] | None:
        path = self._path(key)
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None

    async def put(self, key: str, value: dict[str, Any]) -> None:
        await asyncio.to_thread(self._write, key, value)

    async def get(self, key: str) -> dict[str, Any] | None:
        return await asyncio.to_thread(self._read, key)
