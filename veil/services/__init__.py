"""Wallet-facing services: balances, wallet records, ledger and monitoring."""

from .balances import ChainBalanceReader
from .ledger import (
    LedgerConflict,
    LedgerEntry,
    TransactionLedger,
    TransactionStatus,
    TransactionType,
    generate_transaction_id,
)
from .monitor import BalanceMonitor, BalanceUpdate
from .storage import JsonFileKeyValueStore, KeyValueStore, MemoryKeyValueStore
from .wallets import Wallet, WalletStore

__all__ = [
    "ChainBalanceReader",
    "LedgerConflict",
    "LedgerEntry",
    "TransactionLedger",
    "TransactionStatus",
    "TransactionType",
    "generate_transaction_id",
    "BalanceMonitor",
    "BalanceUpdate",
    "JsonFileKeyValueStore",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "Wallet",
    "WalletStore",
]
