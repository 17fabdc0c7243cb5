"""Key-value stores holding knowledge base documents.

The knowledge base is two JSON documents looked up by key. Files are read in
a worker thread so the event loop is never blocked.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict

LOG = logging.getLogger("triager.knowledge.store")


class KeyValueStore(ABC):
    """Read-only key-value lookup."""

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the value stored under key, or None when absent."""
        ...


class FileKeyValueStore(KeyValueStore):
    """One file per key under a base directory (e.g. kb/team_rules.json)."""

    def __init__(self, base_dir: Path) -> None:
        self._base_dir = Path(base_dir)

    def _path(self, key: str) -> Path:
        path = (self._base_dir / key).resolve()
        if self._base_dir.resolve() not in path.parents:
            raise ValueError(f"Key escapes knowledge base directory: {key}")
        return path

    def _read(self, key: str) -> str | None:
        path = self._path(key)
        if not path.is_file():
            return None
        return path.read_text(encoding="utf-8")

    async def get(self, key: str) -> str | None:
        value = await asyncio.to_thread(self._read, key)
        LOG.debug("KV get %s: %s", key, "hit" if value is not None else "miss")
        return value


class MemoryKeyValueStore(KeyValueStore):
    """Dict-backed store, for embedding and tests."""

    def __init__(self, data: Dict[str, str] | None = None) -> None:
        self._data = dict(data or {})

    def put(self, key: str, value: str) -> None:
        self._data[key] = value

    async def get(self, key: str) -> str | None:
        return self._data.get(key)
