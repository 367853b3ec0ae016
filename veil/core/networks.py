"""
Network identification and unit conversion.

Four logical networks are supported:
- Solana mainnet (native unit: lamports, 9 decimals)
- Ethereum, Arbitrum One and Avalanche C-Chain (native unit: wei, 18 decimals)

Balances cross the RPC boundary as integers in the smallest unit and are
stored on wallet records and ledger entries as ``Decimal`` display units.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Dict, Union


class Network(str, Enum):
    SOLANA = "solana"
    ETHEREUM = "ethereum"
    ARBITRUM = "arbitrum"
    AVALANCHE = "avalanche"

    @property
    def is_evm(self) -> bool:
        return self is not Network.SOLANA


@dataclass(frozen=True)
class NetworkMetadata:
    name: str
    symbol: str
    decimals: int
    chain_id: Union[int, str]


NETWORK_METADATA: Dict[Network, NetworkMetadata] = {
    Network.SOLANA: NetworkMetadata(name="Solana", symbol="SOL", decimals=9, chain_id="solana"),
    Network.ETHEREUM: NetworkMetadata(name="Ethereum", symbol="ETH", decimals=18, chain_id=1),
    Network.ARBITRUM: NetworkMetadata(name="Arbitrum One", symbol="ETH", decimals=18, chain_id=42161),
    Network.AVALANCHE: NetworkMetadata(name="Avalanche C-Chain", symbol="AVAX", decimals=18, chain_id=43114),
}

LAMPORTS_PER_SOL = 10**9

_ALIASES = {
    "sol": Network.SOLANA,
    "solana": Network.SOLANA,
    "eth": Network.ETHEREUM,
    "ethereum": Network.ETHEREUM,
    "mainnet": Network.ETHEREUM,
    "arb": Network.ARBITRUM,
    "arbitrum": Network.ARBITRUM,
    "arbitrum-one": Network.ARBITRUM,
    "avax": Network.AVALANCHE,
    "avalanche": Network.AVALANCHE,
}


def normalize_network(value: Union[str, Network]) -> Network:
    """Collapse user-provided network identifiers into a ``Network``.

    Raises:
        ValueError: If the identifier is not recognized.
    """
    if isinstance(value, Network):
        return value
    network = _ALIASES.get(str(value).strip().lower())
    if network is None:
        raise ValueError(f"Unsupported network: {value!r}")
    return network


def native_symbol(network: Network) -> str:
    return NETWORK_METADATA[network].symbol


def from_base_units(network: Network, amount: int) -> Decimal:
    """Convert lamports / wei into display units."""
    return Decimal(int(amount)) / (Decimal(10) ** NETWORK_METADATA[network].decimals)


def to_base_units(network: Network, amount: Decimal) -> int:
    """Convert display units into lamports / wei, truncating dust."""
    scaled = Decimal(amount) * (Decimal(10) ** NETWORK_METADATA[network].decimals)
    return int(scaled)


def lamports_to_sol(lamports: int) -> Decimal:
    return from_base_units(Network.SOLANA, lamports)


__all__ = [
    "Network",
    "NetworkMetadata",
    "NETWORK_METADATA",
    "LAMPORTS_PER_SOL",
    "normalize_network",
    "native_symbol",
    "from_base_units",
    "to_base_units",
    "lamports_to_sol",
]
