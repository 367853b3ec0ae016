"""
Background balance monitor.

Periodically re-reads the public balance of every tracked burner wallet,
persists changes and records an ``incoming`` ledger entry whenever a balance
grows past its persisted value.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..config import clamp_interval_ms, settings
from ..core.networks import Network, native_symbol
from .balances import ChainBalanceReader
from .ledger import (
    LedgerEntry,
    TransactionLedger,
    TransactionStatus,
    TransactionType,
    generate_transaction_id,
    now_ms,
)
from .wallets import Wallet, WalletStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BalanceUpdate:
    network: Network
    index: int
    address: str
    previous: Decimal
    current: Decimal
    incoming: Optional[Decimal] = None


class BalanceMonitor:
    """Cooperative poller over all non-archived wallets."""

    def __init__(
        self,
        reader: ChainBalanceReader,
        wallets: WalletStore,
        ledger: TransactionLedger,
        *,
        interval_ms: Optional[int] = None,
        wallet_pause_seconds: Optional[float] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._reader = reader
        self._wallets = wallets
        self._ledger = ledger
        self._interval_ms = clamp_interval_ms(
            interval_ms if interval_ms is not None else settings.balance_check_interval_ms
        )
        if wallet_pause_seconds is None:
            wallet_pause_seconds = settings.balance_monitor_wallet_pause_ms / 1000.0
        self._wallet_pause = wallet_pause_seconds
        self._sleep = sleep
        self._last_checked: Dict[str, Decimal] = {}
        self._tick_lock = asyncio.Lock()
        self._lifecycle_lock = asyncio.Lock()
        self._loop_task: Optional[asyncio.Task] = None

    @property
    def interval_seconds(self) -> float:
        return self._interval_ms / 1000.0

    @property
    def is_monitoring(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    # ---------------------------
    # Lifecycle
    # ---------------------------
    async def start(self) -> None:
        async with self._lifecycle_lock:
            if self.is_monitoring:
                logger.debug("Balance monitor already running")
                return
            logger.info("Starting balance monitor (interval %.0fs)", self.interval_seconds)
            self._loop_task = asyncio.create_task(self._run_loop(), name="balance-monitor-loop")

    async def stop(self) -> None:
        async with self._lifecycle_lock:
            task, self._loop_task = self._loop_task, None
            if task is None:
                return
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            logger.info("Balance monitor stopped")

    async def aclose(self) -> None:
        await self.stop()
        self._last_checked.clear()

    async def _run_loop(self) -> None:
        while True:
            try:
                await self.check_balances()
            except asyncio.CancelledError:
                raise
            except Exception as exc:  # noqa: BLE001
                logger.error("Balance check tick failed: %s", exc, exc_info=True)
            await self._sleep(self.interval_seconds)

    # ---------------------------
    # Ticks
    # ---------------------------
    async def check_balances(self) -> List[BalanceUpdate]:
        """Run one tick over every tracked wallet and return the changes."""
        async with self._tick_lock:
            wallets = await self._wallets.get_all()
            updates: List[BalanceUpdate] = []
            for position, wallet in enumerate(wallets):
                try:
                    update = await self._check_wallet(wallet)
                except asyncio.CancelledError:
                    raise
                except Exception as exc:  # noqa: BLE001
                    logger.warning(
                        "Balance check failed for %s wallet %d: %s",
                        wallet.network.value, wallet.index, exc,
                    )
                else:
                    if update is not None:
                        updates.append(update)

                if len(wallets) > 1 and position < len(wallets) - 1:
                    await self._sleep(self._wallet_pause)
            return updates

    async def _check_wallet(self, wallet: Wallet) -> Optional[BalanceUpdate]:
        cache_key = f"{wallet.network.value}:{wallet.index}"
        current = await self._reader.get_balance(wallet)
        last_checked = self._last_checked.get(cache_key, wallet.balance)

        if current == last_checked:
            return None

        previous = await self._wallets.update_balance(wallet.network, wallet.index, current)
        self._last_checked[cache_key] = current
        if previous is None:
            logger.debug("Wallet %s disappeared during balance check", cache_key)
            return None

        incoming: Optional[Decimal] = None
        if current > previous:
            incoming = current - previous
            await self._ledger.record(
                LedgerEntry(
                    id=generate_transaction_id(),
                    type=TransactionType.INCOMING,
                    timestamp=now_ms(),
                    amount=incoming,
                    to_address=wallet.address,
                    wallet_index=wallet.index,
                    status=TransactionStatus.CONFIRMED,
                    network=wallet.network,
                    symbol=native_symbol(wallet.network),
                )
            )
            logger.info(
                "Incoming %s %s detected on %s wallet %d",
                incoming, native_symbol(wallet.network), wallet.network.value, wallet.index,
            )

        return BalanceUpdate(
            network=wallet.network,
            index=wallet.index,
            address=wallet.address,
            previous=previous,
            current=current,
            incoming=incoming,
        )
