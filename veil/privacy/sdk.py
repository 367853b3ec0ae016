"""
Privacy SDK contract.

The zero-knowledge privacy pool SDK is an external collaborator. The
orchestrator only needs the operations below; concrete bindings (or test
doubles) implement them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Mapping, Protocol, Union

from pydantic import BaseModel, ConfigDict, Field

TransactionSigner = Callable[[Any], Awaitable[Any]]


@dataclass(frozen=True)
class WalletIdentity:
    """A wallet able to sign for the privacy pool.

    ``keypair`` is handed to the SDK for encryption key derivation and is
    never logged; ``sign`` signs a prepared transaction.
    """

    public_key: str
    keypair: Any = field(repr=False, compare=False)
    sign: TransactionSigner = field(repr=False, compare=False)


class EncryptionService(Protocol):
    def derive_encryption_key_from_wallet(self, keypair: Any) -> Any:
        ...


class PrivacySdk(Protocol):
    """Operations of the privacy pool SDK used by the orchestrator."""

    def create_encryption_service(self) -> EncryptionService:
        ...

    async def deposit(
        self,
        *,
        amount_in_lamports: int,
        connection: Any,
        encryption_service: EncryptionService,
        public_key: str,
        transaction_signer: TransactionSigner,
        key_base_path: str,
        storage: Any,
        signer: str,
    ) -> Any:
        ...

    async def withdraw(
        self,
        *,
        recipient: str,
        amount_in_lamports: int,
        connection: Any,
        encryption_service: EncryptionService,
        public_key: str,
        key_base_path: str,
        storage: Any,
    ) -> Any:
        ...

    async def get_utxos(
        self,
        *,
        public_key: str,
        connection: Any,
        encryption_service: EncryptionService,
        storage: Any,
    ) -> List[Any]:
        ...

    def get_balance_from_utxos(self, utxos: List[Any]) -> Union[int, Mapping[str, Any]]:
        ...


class DepositResult(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    tx: str = Field(description="Deposit transaction signature")


class WithdrawResult(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    tx: str = Field(description="Withdraw transaction signature")
    is_partial: bool = False
    recipient: str
    amount_in_lamports: int
    fee_in_lamports: int = 0


class DepositAndWithdrawResult(BaseModel):
    deposit_tx: str
    withdraw_tx: str
    recipient: str
    amount_in_lamports: int


def lamports_from_balance(value: Union[int, Mapping[str, Any], Any]) -> int:
    """Normalize ``get_balance_from_utxos`` output to an integer."""
    if isinstance(value, Mapping):
        value = value.get("lamports", 0)
    elif not isinstance(value, int) and hasattr(value, "lamports"):
        value = value.lamports
    return int(value or 0)


def parse_result(model: type, raw: Any) -> Any:
    if isinstance(raw, model):
        return raw
    return model.model_validate(raw, from_attributes=not isinstance(raw, Mapping))


__all__ = [
    "TransactionSigner",
    "WalletIdentity",
    "EncryptionService",
    "PrivacySdk",
    "DepositResult",
    "WithdrawResult",
    "DepositAndWithdrawResult",
    "lamports_from_balance",
    "parse_result",
]
