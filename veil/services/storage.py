"""
Async key/value storage.

The wallet core only assumes async get/set/remove by string key, plus a
prefix scan for listing ledger entries and wallet records. Values must be
JSON-serializable.
"""

from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Base storage interface"""

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        pass

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        pass

    @abstractmethod
    async def remove(self, key: str) -> None:
        pass

    @abstractmethod
    async def items(self, prefix: str = "") -> List[Tuple[str, Any]]:
        """All (key, value) pairs whose key starts with ``prefix``."""
        pass


class MemoryKeyValueStore(KeyValueStore):
    """In-process store; contents are lost on exit."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = {k: _copy(v) for k, v in (initial or {}).items()}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Optional[Any]:
        async with self._lock:
            return _copy(self._data.get(key))

    async def set(self, key: str, value: Any) -> None:
        async with self._lock:
            self._data[key] = _copy(value)

    async def remove(self, key: str) -> None:
        async with self._lock:
            self._data.pop(key, None)

    async def items(self, prefix: str = "") -> List[Tuple[str, Any]]:
        async with self._lock:
            return [(k, _copy(v)) for k, v in self._data.items() if k.startswith(prefix)]

    def size(self) -> int:
        return len(self._data)


class JsonFileKeyValueStore(MemoryKeyValueStore):
    """Store persisted to a single JSON document, rewritten on every write."""

    def __init__(self, path: Path):
        self.path = Path(path)
        initial: Dict[str, Any] = {}
        if self.path.exists():
            raw = self.path.read_text(encoding="utf-8")
            if raw.strip():
                initial = json.loads(raw)
        super().__init__(initial)

    async def set(self, key: str, value: Any) -> None:
        async with self._lock:
            self._data[key] = _copy(value)
            await self._flush()

    async def remove(self, key: str) -> None:
        async with self._lock:
            if self._data.pop(key, None) is not None:
                await self._flush()

    async def _flush(self) -> None:
        # Serialize under the lock; only the file I/O leaves the event loop.
        document = json.dumps(self._data, indent=2, sort_keys=True)
        await asyncio.to_thread(self._write, document)

    def _write(self, document: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(document, encoding="utf-8")
        tmp.replace(self.path)


def _copy(value: Any) -> Any:
    # Stored values are JSON documents; hand out detached copies.
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return json.loads(json.dumps(value))
