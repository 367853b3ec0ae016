"""Wallet session for the transaction orchestrator."""

from __future__ import annotations

import logging
from typing import Any, Optional

from ..core.recovery import NotInitialized
from ..services.wallets import Wallet
from .sdk import EncryptionService, WalletIdentity

logger = logging.getLogger(__name__)


class OrchestratorSession:
    """
    One wallet identity and the encryption keys derived from it.

    Sessions are never rebound; switching wallets releases this session and
    builds a new one. A released session refuses to hand out its keys.
    """

    def __init__(
        self,
        identity: WalletIdentity,
        encryption_service: EncryptionService,
        encryption_keys: Any = None,
        wallet: Optional[Wallet] = None,
    ):
        self._identity = identity
        self._encryption_service: Optional[EncryptionService] = encryption_service
        self._encryption_keys = encryption_keys
        self._wallet = wallet

    def __repr__(self) -> str:
        state = "active" if self.is_active else "released"
        return f"OrchestratorSession({self._identity.public_key!r}, {state})"

    @property
    def identity(self) -> WalletIdentity:
        return self._identity

    @property
    def public_key(self) -> str:
        return self._identity.public_key

    @property
    def wallet(self) -> Optional[Wallet]:
        return self._wallet

    @property
    def is_active(self) -> bool:
        return self._encryption_service is not None

    @property
    def encryption_service(self) -> EncryptionService:
        if self._encryption_service is None:
            raise NotInitialized(f"Session for {self.public_key} has been released")
        return self._encryption_service

    def release(self) -> None:
        if self._encryption_service is None:
            return
        self._encryption_service = None
        self._encryption_keys = None
        logger.info("Released privacy session for %s", self.public_key)
