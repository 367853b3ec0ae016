"""Helpers for validating and normalizing wallet addresses."""

from __future__ import annotations

import re
from functools import lru_cache

from ..core.networks import Network
from ..core.recovery import InvalidAddress

_BASE58_ALPHABET = set("123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz")

_EVM_ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")


def is_valid_evm_address(address: str) -> bool:
    return bool(address) and bool(_EVM_ADDRESS_RE.fullmatch(address.strip()))


@lru_cache(maxsize=128)
def is_valid_solana_address(address: str) -> bool:
    if not address:
        return False
    length = len(address)
    if length < 32 or length > 44:
        return False
    return all(ch in _BASE58_ALPHABET for ch in address)


def is_valid_address_for_network(address: str, network: Network) -> bool:
    if not isinstance(address, str) or not address:
        return False
    if network is Network.SOLANA:
        return is_valid_solana_address(address)
    return is_valid_evm_address(address)


def normalize_address(address: str, network: Network) -> str:
    """Validate an address and return its canonical form.

    EVM addresses are lowercased; Solana addresses are case-sensitive and
    returned as-is.

    Raises:
        InvalidAddress: If the address is malformed for the network.
    """
    candidate = address.strip() if isinstance(address, str) else address
    if not is_valid_address_for_network(candidate, network):
        raise InvalidAddress(str(address), network.value)
    if network.is_evm:
        return candidate.lower()
    return candidate


__all__ = [
    "is_valid_evm_address",
    "is_valid_solana_address",
    "is_valid_address_for_network",
    "normalize_address",
]
