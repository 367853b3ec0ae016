"""
Storage adapter for the privacy SDK.

The SDK reads its UTXO cache synchronously (``get_item``) but the wallet's
key/value store is async. This adapter keeps a namespaced in-memory mirror
that is populated before SDK calls and written through on every change.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from ..services.storage import KeyValueStore

logger = logging.getLogger(__name__)

PRIVACY_STORAGE_PREFIX = "privacycash:"


def fetch_offset_key(public_key: str) -> str:
    return f"fetch_offset{public_key}"


def encrypted_outputs_key(public_key: str) -> str:
    return f"encrypted_outputs{public_key}"


def utxo_cache_keys(public_key: str) -> List[str]:
    return [fetch_offset_key(public_key), encrypted_outputs_key(public_key)]


class PrivacyStorage:
    """Namespaced view of a ``KeyValueStore`` with a synchronous read cache."""

    def __init__(self, store: KeyValueStore, prefix: str = PRIVACY_STORAGE_PREFIX):
        self._store = store
        self._prefix = prefix
        self._cache: Dict[str, Optional[str]] = {}

    def __len__(self) -> int:
        return len(self._cache)

    def _storage_key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def key(self, index: int) -> Optional[str]:
        keys = list(self._cache.keys())
        return keys[index] if 0 <= index < len(keys) else None

    def get_item(self, key: str) -> Optional[str]:
        # Only cached keys are visible; call preload_for() before SDK work.
        return self._cache.get(key)

    async def set_item(self, key: str, value: str) -> None:
        self._cache[key] = value
        try:
            await self._store.set(self._storage_key(key), value)
        except Exception:
            self._cache.pop(key, None)
            logger.error("Failed to persist privacy storage item %s", key, exc_info=True)
            raise

    async def remove_item(self, key: str) -> None:
        self._cache.pop(key, None)
        await self._store.remove(self._storage_key(key))

    async def clear(self) -> None:
        self._cache.clear()
        for storage_key, _ in await self._store.items(self._prefix):
            await self._store.remove(storage_key)

    async def initialize(self) -> None:
        """Mirror every namespaced item into the cache."""
        for storage_key, value in await self._store.items(self._prefix):
            self._cache[storage_key[len(self._prefix):]] = value

    async def preload_for(self, public_key: str) -> None:
        """Cache every item belonging to ``public_key``."""
        loaded = 0
        for storage_key, value in await self._store.items(self._prefix):
            sdk_key = storage_key[len(self._prefix):]
            if public_key in sdk_key:
                self._cache[sdk_key] = value
                loaded += 1
        logger.debug("Preloaded %d privacy storage item(s) for %s", loaded, public_key)

    def evict(self, public_key: str) -> None:
        """Drop cached items for ``public_key`` without touching the store."""
        for key in [k for k in self._cache if public_key in k]:
            del self._cache[key]
