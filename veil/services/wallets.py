"""
Burner wallet records.

Wallet records are owned by wallet storage; the core only reads them and
updates ``balance``. Balance writes are serialized per wallet so monitor
ticks and post-operation refreshes never lose each other's updates.
"""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

from ..core.networks import Network
from .storage import KeyValueStore

logger = logging.getLogger(__name__)

WALLET_KEY_PREFIX = "burner:"


class Wallet(BaseModel):
    index: int = Field(description="HD derivation index")
    network: Network = Field(description="Network the wallet lives on")
    address: str = Field(description="Full wallet address")
    balance: Decimal = Field(default=Decimal("0"), description="Last persisted balance in display units")
    is_active: bool = Field(default=False, description="Currently selected wallet for its network")
    archived: bool = Field(default=False, description="Hidden from the wallet list and not monitored")
    id: int = Field(default=0, description="Creation order; newer wallets have larger ids")
    site: str = Field(default="", description="Site the burner was created for")

    @property
    def key(self) -> str:
        return wallet_key(self.network, self.index)


def wallet_key(network: Network, index: int) -> str:
    return f"{WALLET_KEY_PREFIX}{network.value}:{index}"


class WalletStore:
    """Reads and writes wallet records in a key/value store."""

    def __init__(self, store: KeyValueStore):
        self._store = store
        self._locks: Dict[Tuple[Network, int], asyncio.Lock] = {}

    def lock_for(self, network: Network, index: int) -> asyncio.Lock:
        key = (network, index)
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
        return self._locks[key]

    async def store_wallet(self, wallet: Wallet) -> None:
        await self._store.set(wallet.key, wallet.model_dump(mode="json"))

    async def get_wallet(self, network: Network, index: int) -> Optional[Wallet]:
        raw = await self._store.get(wallet_key(network, index))
        return Wallet.model_validate(raw) if raw else None

    async def get_all(
        self,
        network: Optional[Network] = None,
        *,
        include_archived: bool = False,
    ) -> List[Wallet]:
        """Wallets newest first, excluding archived ones unless asked."""
        wallets: List[Wallet] = []
        for key, raw in await self._store.items(WALLET_KEY_PREFIX):
            try:
                wallet = Wallet.model_validate(raw)
            except ValueError as exc:
                logger.warning("Skipping malformed wallet record %s: %s", key, exc)
                continue
            if wallet.archived and not include_archived:
                continue
            if network is not None and wallet.network is not network:
                continue
            wallets.append(wallet)
        return sorted(wallets, key=lambda w: (w.id, w.index), reverse=True)

    async def update_balance(self, network: Network, index: int, balance: Decimal) -> Optional[Decimal]:
        """Persist a new balance and return the previously persisted one.

        Returns ``None`` when the wallet record does not exist.
        """
        async with self.lock_for(network, index):
            wallet = await self.get_wallet(network, index)
            if wallet is None:
                return None
            previous = wallet.balance
            if previous != balance:
                wallet.balance = balance
                await self.store_wallet(wallet)
            return previous
