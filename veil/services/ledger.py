"""
Transaction Ledger

Append-only record of every orchestrated operation and observed balance
change. Entries are created once and afterwards only change ``status``
(and gain an ``error``); nothing in the core deletes them.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import string
import time
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from ..core.networks import Network
from .storage import KeyValueStore

logger = logging.getLogger(__name__)

TX_KEY_PREFIX = "tx:"

_BASE36 = string.digits + string.ascii_lowercase


class TransactionType(str, Enum):
    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"
    DEPOSIT_AND_WITHDRAW = "deposit_and_withdraw"
    TRANSFER = "transfer"
    INCOMING = "incoming"
    SWAP = "swap"


class TransactionStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class LedgerEntry(BaseModel):
    id: str = Field(description="Unique entry id")
    type: TransactionType
    timestamp: int = Field(description="Unix timestamp in milliseconds")
    amount: Decimal = Field(description="Amount in token units (SOL, ETH, AVAX, ...)")
    from_address: Optional[str] = None
    to_address: Optional[str] = None
    wallet_index: Optional[int] = None
    signature: Optional[str] = Field(default=None, description="Transaction signature or hash")
    deposit_signature: Optional[str] = Field(
        default=None,
        description="Deposit leg of a deposit_and_withdraw operation",
    )
    status: TransactionStatus = TransactionStatus.PENDING
    error: Optional[str] = None
    private_balance_before: Optional[Decimal] = None
    private_balance_after: Optional[Decimal] = None
    network: Optional[Network] = None
    symbol: Optional[str] = None


def generate_transaction_id() -> str:
    """``<ms epoch>-<9 random base36 chars>``"""
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"{now_ms()}-{suffix}"


def now_ms() -> int:
    return int(time.time() * 1000)


class LedgerConflict(ValueError):
    """An entry with the same id already exists."""


class TransactionLedger:
    """Persists ledger entries under ``tx:<id>`` keys."""

    def __init__(self, store: KeyValueStore):
        self._store = store
        self._lock = asyncio.Lock()

    @staticmethod
    def _key(entry_id: str) -> str:
        return f"{TX_KEY_PREFIX}{entry_id}"

    async def record(self, entry: LedgerEntry) -> LedgerEntry:
        """Insert a new entry; existing ids are never overwritten."""
        async with self._lock:
            key = self._key(entry.id)
            if await self._store.get(key) is not None:
                raise LedgerConflict(f"Ledger entry {entry.id} already exists")
            await self._store.set(key, entry.model_dump(mode="json"))
        logger.info(
            "Recorded %s entry %s (%s %s, status=%s)",
            entry.type.value, entry.id, entry.amount, entry.symbol or "", entry.status.value,
        )
        return entry

    async def get(self, entry_id: str) -> Optional[LedgerEntry]:
        raw = await self._store.get(self._key(entry_id))
        return LedgerEntry.model_validate(raw) if raw else None

    async def get_all(self) -> List[LedgerEntry]:
        """All entries, newest first."""
        entries: List[LedgerEntry] = []
        for key, raw in await self._store.items(TX_KEY_PREFIX):
            try:
                entries.append(LedgerEntry.model_validate(raw))
            except ValueError as exc:
                logger.warning("Skipping malformed ledger entry %s: %s", key, exc)
        return sorted(entries, key=lambda e: e.timestamp, reverse=True)

    async def get_by_type(self, tx_type: TransactionType) -> List[LedgerEntry]:
        return [e for e in await self.get_all() if e.type == tx_type]

    async def get_by_wallet(self, wallet_index: int) -> List[LedgerEntry]:
        return [e for e in await self.get_all() if e.wallet_index == wallet_index]

    async def get_by_date_range(self, start_ms: int, end_ms: int) -> List[LedgerEntry]:
        return [e for e in await self.get_all() if start_ms <= e.timestamp <= end_ms]

    async def update_status(
        self,
        entry_id: str,
        status: TransactionStatus,
        error: Optional[str] = None,
    ) -> bool:
        """Transition an entry's status. Returns False for unknown ids."""
        async with self._lock:
            key = self._key(entry_id)
            raw = await self._store.get(key)
            if not raw:
                return False
            entry = LedgerEntry.model_validate(raw)
            entry.status = status
            if error:
                entry.error = error
            await self._store.set(key, entry.model_dump(mode="json"))
        return True
