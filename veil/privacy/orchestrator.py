"""
Transaction Orchestrator

Sequences privacy pool deposits and withdrawals through the external SDK.

Each SDK call runs through the Solana ``ResilientRpcClient``. When the
signed transaction misses its blockhash window (proof generation is slow
enough for this to happen), the whole call is repeated so the SDK builds a
fresh proof against a fresh blockhash.

``deposit_and_withdraw`` waits for the deposit to become visible through the
SDK read path before withdrawing, polling the private balance with a
tolerance for fees.
"""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal
from typing import Any, Awaitable, Callable, Optional, TypeVar

from ..config import Settings, settings as default_settings
from ..core.networks import Network, lamports_to_sol, native_symbol
from ..logging_config import operation_context
from ..core.recovery import (
    IndexingTimeout,
    NotInitialized,
    PollSchedule,
    RpcExhausted,
    SdkFailure,
    is_blockhash_expired,
    poll_until,
)
from ..rpc import ResilientRpcClient, SolanaConnection
from ..services.address import normalize_address
from ..services.balances import ChainBalanceReader
from ..services.ledger import (
    LedgerEntry,
    TransactionLedger,
    TransactionStatus,
    TransactionType,
    generate_transaction_id,
    now_ms,
)
from ..services.wallets import Wallet, WalletStore
from .sdk import (
    DepositAndWithdrawResult,
    DepositResult,
    PrivacySdk,
    WalletIdentity,
    WithdrawResult,
    lamports_from_balance,
    parse_result,
)
from .session import OrchestratorSession
from .storage import PrivacyStorage, utxo_cache_keys

T = TypeVar("T")

logger = logging.getLogger(__name__)


def _root_cause(error: BaseException) -> BaseException:
    if isinstance(error, RpcExhausted):
        return error.last_error
    return error


class TransactionOrchestrator:
    """Privacy deposit/withdraw sequencing bound to one wallet session."""

    def __init__(
        self,
        sdk: PrivacySdk,
        rpc: ResilientRpcClient[SolanaConnection],
        storage: PrivacyStorage,
        *,
        ledger: Optional[TransactionLedger] = None,
        wallets: Optional[WalletStore] = None,
        balance_reader: Optional[ChainBalanceReader] = None,
        settings: Optional[Settings] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self._sdk = sdk
        self._rpc = rpc
        self._storage = storage
        self._ledger = ledger
        self._wallets = wallets
        self._balance_reader = balance_reader
        self._settings = settings or default_settings
        self._sleep = sleep
        self._session: Optional[OrchestratorSession] = None
        self._bind_lock = asyncio.Lock()

    # ---------------------------
    # Session lifecycle
    # ---------------------------
    @property
    def session(self) -> Optional[OrchestratorSession]:
        return self._session

    @property
    def is_initialized(self) -> bool:
        return self._session is not None and self._session.is_active

    @property
    def current_public_key(self) -> Optional[str]:
        return self._session.public_key if self._session else None

    async def bind(self, identity: WalletIdentity, wallet: Optional[Wallet] = None) -> OrchestratorSession:
        """Bind a wallet identity, tearing down any session for another wallet."""
        async with self._bind_lock:
            current = self._session
            if current is not None and current.is_active and current.public_key == identity.public_key:
                same_wallet = (current.wallet.key if current.wallet else None) == (wallet.key if wallet else None)
                if same_wallet:
                    logger.debug("Already bound to %s", identity.public_key)
                    return current

            if current is not None:
                logger.info("Switching privacy session from %s to %s", current.public_key, identity.public_key)
                self._teardown_locked()

            await self._storage.preload_for(identity.public_key)
            encryption_service = self._sdk.create_encryption_service()
            keys = encryption_service.derive_encryption_key_from_wallet(identity.keypair)

            session = OrchestratorSession(identity, encryption_service, keys, wallet)
            self._session = session
            logger.info("Privacy session bound to %s", identity.public_key)
            return session

    async def teardown(self) -> None:
        async with self._bind_lock:
            self._teardown_locked()

    def _teardown_locked(self) -> None:
        session, self._session = self._session, None
        if session is None:
            return
        session.release()
        self._storage.evict(session.public_key)

    def _require_session(self) -> OrchestratorSession:
        session = self._session
        if session is None or not session.is_active:
            raise NotInitialized()
        return session

    # ---------------------------
    # Operations
    # ---------------------------
    async def deposit(self, lamports: int) -> DepositResult:
        """Deposit SOL into the privacy pool."""
        session = self._require_session()
        _check_amount(lamports)
        with operation_context(operation="deposit", public_key=session.public_key):
            return await self._run_deposit(session, lamports)

    async def _run_deposit(self, session: OrchestratorSession, lamports: int) -> DepositResult:
        logger.info("Starting deposit of %d lamports from %s", lamports, session.public_key)

        try:
            result = await self._deposit(session, lamports)
        except Exception as exc:
            await self._record(session, TransactionType.DEPOSIT, lamports, TransactionStatus.FAILED, error=str(exc))
            raise

        await self._record(
            session, TransactionType.DEPOSIT, lamports, TransactionStatus.CONFIRMED, signature=result.tx
        )
        await self._refresh_wallet_balance(session)
        return result

    async def withdraw(self, lamports: int, recipient: Optional[str] = None) -> WithdrawResult:
        """Withdraw SOL from the privacy pool to ``recipient`` (self by default)."""
        session = self._require_session()
        _check_amount(lamports)
        target = normalize_address(recipient, Network.SOLANA) if recipient else session.public_key
        with operation_context(operation="withdraw", public_key=session.public_key):
            return await self._run_withdraw(session, lamports, target)

    async def _run_withdraw(self, session: OrchestratorSession, lamports: int, target: str) -> WithdrawResult:
        logger.info("Starting withdraw of %d lamports to %s", lamports, target)

        try:
            result = await self._withdraw(session, lamports, target)
        except Exception as exc:
            await self._record(
                session, TransactionType.WITHDRAW, lamports, TransactionStatus.FAILED,
                to_address=target, error=str(exc),
            )
            raise

        await self._record(
            session, TransactionType.WITHDRAW, lamports, TransactionStatus.CONFIRMED,
            to_address=result.recipient, signature=result.tx,
        )
        await self._refresh_wallet_balance(session)
        return result

    async def deposit_and_withdraw(
        self,
        lamports: int,
        recipient: Optional[str] = None,
    ) -> DepositAndWithdrawResult:
        """Deposit, wait until the pool indexes it, then withdraw.

        Raises:
            IndexingTimeout: The deposit landed but never became visible;
                ``deposit_tx`` identifies it for a manual withdraw.
            SdkFailure: A failed step. When the withdraw fails after a
                successful deposit, ``deposit_tx`` is set.
        """
        session = self._require_session()
        _check_amount(lamports)
        target = normalize_address(recipient, Network.SOLANA) if recipient else session.public_key
        with operation_context(operation="deposit_and_withdraw", public_key=session.public_key):
            return await self._run_deposit_and_withdraw(session, lamports, target)

    async def _run_deposit_and_withdraw(
        self,
        session: OrchestratorSession,
        lamports: int,
        target: str,
    ) -> DepositAndWithdrawResult:
        logger.info("Starting deposit and withdraw of %d lamports to %s", lamports, target)

        deposit: Optional[DepositResult] = None
        try:
            deposit = await self._deposit(session, lamports)
            logger.info("Deposit landed: %s", deposit.tx)

            try:
                await self._wait_for_indexing(lamports, deposit.tx)
                withdraw = await self._withdraw(session, lamports, target)
            except IndexingTimeout:
                raise
            except SdkFailure as exc:
                raise SdkFailure(
                    exc.message,
                    operation="withdraw",
                    attempts=exc.attempts,
                    deposit_tx=deposit.tx,
                ) from exc
            except Exception as exc:
                # Anything after the deposit landed must still name it.
                raise SdkFailure(
                    str(exc),
                    operation="deposit_and_withdraw",
                    deposit_tx=deposit.tx,
                ) from exc
        except Exception as exc:
            await self._record(
                session, TransactionType.DEPOSIT_AND_WITHDRAW, lamports, TransactionStatus.FAILED,
                to_address=target, error=str(exc),
                deposit_signature=deposit.tx if deposit else None,
            )
            if deposit is not None:
                await self._refresh_wallet_balance(session)
            raise

        await self._record(
            session, TransactionType.DEPOSIT_AND_WITHDRAW, lamports, TransactionStatus.CONFIRMED,
            to_address=withdraw.recipient, signature=withdraw.tx, deposit_signature=deposit.tx,
        )
        await self._refresh_wallet_balance(session)
        return DepositAndWithdrawResult(
            deposit_tx=deposit.tx,
            withdraw_tx=withdraw.tx,
            recipient=withdraw.recipient,
            amount_in_lamports=withdraw.amount_in_lamports,
        )

    async def get_private_balance(self) -> Decimal:
        """Private pool balance of the bound wallet, in SOL."""
        session = self._require_session()

        async def op(conn: SolanaConnection) -> int:
            utxos = await self._sdk.get_utxos(
                public_key=session.public_key,
                connection=conn,
                encryption_service=session.encryption_service,
                storage=self._storage,
            )
            logger.debug("Found %d UTXO(s) for %s", len(utxos), session.public_key)
            return lamports_from_balance(self._sdk.get_balance_from_utxos(utxos))

        lamports = await self._rpc.execute(op, label="get_utxos")
        return lamports_to_sol(lamports)

    async def clear_cache(self) -> None:
        """Forget cached UTXO scan state so the next read rescans."""
        session = self._session
        if session is None:
            return
        for key in utxo_cache_keys(session.public_key):
            await self._storage.remove_item(key)

    # ---------------------------
    # Internals
    # ---------------------------
    async def _deposit(self, session: OrchestratorSession, lamports: int) -> DepositResult:
        async def call(conn: SolanaConnection, attempt: int) -> DepositResult:
            logger.info("Calling deposit (attempt %d) via %s", attempt, conn.url)
            raw = await self._sdk.deposit(
                amount_in_lamports=lamports,
                connection=conn,
                encryption_service=session.encryption_service,
                public_key=session.public_key,
                transaction_signer=session.identity.sign,
                key_base_path=self._settings.circuit_base_path,
                storage=self._storage,
                signer=session.public_key,
            )
            return parse_result(DepositResult, raw)

        return await self._with_blockhash_retry("deposit", call)

    async def _withdraw(self, session: OrchestratorSession, lamports: int, recipient: str) -> WithdrawResult:
        async def call(conn: SolanaConnection, attempt: int) -> WithdrawResult:
            logger.info("Calling withdraw (attempt %d) via %s", attempt, conn.url)
            raw = await self._sdk.withdraw(
                recipient=recipient,
                amount_in_lamports=lamports,
                connection=conn,
                encryption_service=session.encryption_service,
                public_key=session.public_key,
                key_base_path=self._settings.circuit_base_path,
                storage=self._storage,
            )
            return parse_result(WithdrawResult, raw)

        return await self._with_blockhash_retry("withdraw", call)

    async def _with_blockhash_retry(
        self,
        operation: str,
        call: Callable[[SolanaConnection, int], Awaitable[T]],
    ) -> T:
        max_attempts = self._settings.blockhash_max_attempts

        for attempt in range(1, max_attempts + 1):
            try:
                return await self._rpc.execute(
                    lambda conn, attempt=attempt: call(conn, attempt),
                    label=operation,
                )
            except Exception as exc:
                cause = _root_cause(exc)
                if isinstance(cause, NotInitialized):
                    raise cause from exc

                logger.warning("%s attempt %d/%d failed: %s", operation, attempt, max_attempts, cause)
                if is_blockhash_expired(exc) and attempt < max_attempts:
                    wait = attempt * self._settings.blockhash_retry_delay_seconds
                    logger.info("Blockhash expired, rebuilding %s in %.1fs", operation, wait)
                    await self._sleep(wait)
                    continue

                logger.error("%s failed after %d attempt(s): %s", operation, attempt, cause)
                raise SdkFailure(str(cause), operation=operation, attempts=attempt) from exc

        raise SdkFailure(f"{operation} failed after all retries", operation=operation, attempts=max_attempts)

    async def _wait_for_indexing(self, lamports: int, deposit_tx: str) -> None:
        expected = lamports_to_sol(lamports)
        threshold = expected * Decimal(str(self._settings.indexing_tolerance))
        schedule = PollSchedule(
            max_polls=self._settings.indexing_max_polls,
            fast_polls=self._settings.indexing_fast_poll_count,
            initial_interval_seconds=self._settings.indexing_fast_poll_interval_seconds,
            interval_seconds=self._settings.indexing_poll_interval_seconds,
        )

        await self.clear_cache()
        logger.info("Waiting for deposit %s to be indexed", deposit_tx)
        await self._sleep(self._settings.deposit_settle_delay_seconds)

        async def read() -> Decimal:
            await self.clear_cache()
            return await self.get_private_balance()

        outcome = await poll_until(
            read,
            lambda balance: balance >= threshold,
            schedule,
            sleep=self._sleep,
            label="Private balance",
        )
        if outcome.satisfied:
            return

        observed = outcome.last_value if outcome.last_value is not None else Decimal("0")
        try:
            observed = await read()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Could not refresh private balance after polling: %s", exc)
        raise IndexingTimeout(observed, expected, deposit_tx=deposit_tx, polls=outcome.polls)

    async def _record(
        self,
        session: OrchestratorSession,
        tx_type: TransactionType,
        lamports: int,
        status: TransactionStatus,
        *,
        signature: Optional[str] = None,
        deposit_signature: Optional[str] = None,
        to_address: Optional[str] = None,
        error: Optional[str] = None,
    ) -> None:
        if self._ledger is None:
            return
        entry = LedgerEntry(
            id=generate_transaction_id(),
            type=tx_type,
            timestamp=now_ms(),
            amount=lamports_to_sol(lamports),
            from_address=session.public_key,
            to_address=to_address,
            wallet_index=session.wallet.index if session.wallet else None,
            signature=signature,
            deposit_signature=deposit_signature,
            status=status,
            error=error,
            network=Network.SOLANA,
            symbol=native_symbol(Network.SOLANA),
        )
        try:
            await self._ledger.record(entry)
        except Exception as exc:  # noqa: BLE001
            logger.error("Failed to record %s ledger entry: %s", tx_type.value, exc, exc_info=True)

    async def _refresh_wallet_balance(self, session: OrchestratorSession) -> None:
        wallet = session.wallet
        if wallet is None or self._wallets is None or self._balance_reader is None:
            return
        try:
            balance = await self._balance_reader.get_balance(wallet)
            await self._wallets.update_balance(wallet.network, wallet.index, balance)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Balance refresh for wallet %d failed: %s", wallet.index, exc)


def _check_amount(lamports: int) -> None:
    if not isinstance(lamports, int) or isinstance(lamports, bool) or lamports <= 0:
        raise ValueError(f"Amount must be a positive number of lamports, got {lamports!r}")
