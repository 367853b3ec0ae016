"""
Application context.

Wires the long-lived service objects together once per process. Services
receive their collaborators explicitly; nothing reaches for module globals
except ``settings`` as the default configuration.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from .config import Settings, settings as default_settings
from .privacy import PrivacySdk, PrivacyStorage, TransactionOrchestrator
from .rpc import RpcClientRegistry
from .services import (
    BalanceMonitor,
    ChainBalanceReader,
    JsonFileKeyValueStore,
    KeyValueStore,
    MemoryKeyValueStore,
    TransactionLedger,
    WalletStore,
)

logger = logging.getLogger(__name__)


def build_store(settings: Settings) -> KeyValueStore:
    if settings.storage_path:
        return JsonFileKeyValueStore(settings.storage_path)
    return MemoryKeyValueStore()


class AppContext:
    """Owns the RPC clients, stores and background monitor."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        store: Optional[KeyValueStore] = None,
        sdk: Optional[PrivacySdk] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.settings = settings or default_settings
        self.store = store if store is not None else build_store(self.settings)
        self._http = http_client or httpx.AsyncClient(timeout=self.settings.rpc_request_timeout_seconds)
        self._owns_http = http_client is None

        self.registry = RpcClientRegistry(self.settings, http_client=self._http)
        self.balances = ChainBalanceReader(self.registry)
        self.wallets = WalletStore(self.store)
        self.ledger = TransactionLedger(self.store)
        self.monitor = BalanceMonitor(
            self.balances,
            self.wallets,
            self.ledger,
            interval_ms=self.settings.balance_check_interval_ms,
            wallet_pause_seconds=self.settings.balance_monitor_wallet_pause_ms / 1000.0,
        )

        self.orchestrator: Optional[TransactionOrchestrator] = None
        if sdk is not None:
            self.orchestrator = TransactionOrchestrator(
                sdk,
                self.registry.solana(),
                PrivacyStorage(self.store),
                ledger=self.ledger,
                wallets=self.wallets,
                balance_reader=self.balances,
                settings=self.settings,
            )

    async def __aenter__(self) -> "AppContext":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.monitor.aclose()
        if self.orchestrator is not None:
            await self.orchestrator.teardown()
        await self.registry.aclose()
        if self._owns_http:
            await self._http.aclose()
        logger.debug("Application context closed")
