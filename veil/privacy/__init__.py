"""Privacy pool orchestration: sessions, SDK contract and storage adapter."""

from .orchestrator import TransactionOrchestrator
from .sdk import (
    DepositAndWithdrawResult,
    DepositResult,
    EncryptionService,
    PrivacySdk,
    WalletIdentity,
    WithdrawResult,
)
from .session import OrchestratorSession
from .storage import PRIVACY_STORAGE_PREFIX, PrivacyStorage

__all__ = [
    "TransactionOrchestrator",
    "DepositAndWithdrawResult",
    "DepositResult",
    "EncryptionService",
    "PrivacySdk",
    "WalletIdentity",
    "WithdrawResult",
    "OrchestratorSession",
    "PRIVACY_STORAGE_PREFIX",
    "PrivacyStorage",
]
