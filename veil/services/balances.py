"""
On-chain balance reads.

Native balances come back in the network's smallest unit (lamports / wei).
Token balances are raw token base units; callers apply token decimals.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from ..core.networks import Network, from_base_units, normalize_network
from ..rpc import EvmConnection, RpcClientRegistry, SolanaConnection
from .address import normalize_address
from .wallets import Wallet

logger = logging.getLogger(__name__)

# keccak256("balanceOf(address)")[:4]
BALANCE_OF_SELECTOR = "0x70a08231"


def _encode_address(address: str) -> str:
    return address.lower().replace("0x", "").zfill(64)


def encode_balance_of(owner: str) -> str:
    return BALANCE_OF_SELECTOR + _encode_address(owner)


def decode_uint256(result: Optional[str]) -> int:
    """Decode an ``eth_call`` word; empty results decode to 0."""
    if not result or result == "0x":
        return 0
    return int(result, 16)


def sum_token_accounts(accounts: List[Dict[str, Any]]) -> int:
    total = 0
    for account in accounts:
        info = (
            account.get("account", {})
            .get("data", {})
            .get("parsed", {})
            .get("info", {})
        )
        amount = (info.get("tokenAmount") or {}).get("amount")
        if amount is not None:
            total += int(amount)
    return total


class ChainBalanceReader:
    """Reads native and token balances through the resilient RPC clients."""

    def __init__(self, registry: RpcClientRegistry):
        self._registry = registry

    async def get_native_balance(self, network: Union[str, Network], address: str) -> int:
        network = normalize_network(network)
        address = normalize_address(address, network)
        client = self._registry.get(network)

        if network is Network.SOLANA:
            async def op(conn: SolanaConnection) -> int:
                return await conn.get_balance(address)
        else:
            async def op(conn: EvmConnection) -> int:
                return await conn.get_balance(address)

        return await client.execute(op, label=f"get_balance({address[:8]}...)")

    async def get_token_balance(
        self,
        network: Union[str, Network],
        token_address: str,
        owner_address: str,
    ) -> int:
        network = normalize_network(network)
        token = normalize_address(token_address, network)
        owner = normalize_address(owner_address, network)
        client = self._registry.get(network)

        if network is Network.SOLANA:
            async def op(conn: SolanaConnection) -> int:
                return sum_token_accounts(await conn.get_token_accounts_by_owner(owner, token))
        else:
            data = encode_balance_of(owner)

            async def op(conn: EvmConnection) -> int:
                return decode_uint256(await conn.eth_call(token, data))

        return await client.execute(op, label=f"token_balance({token[:8]}...)")

    async def get_balance(self, wallet: Wallet) -> Decimal:
        """Native balance of a wallet record in display units."""
        raw = await self.get_native_balance(wallet.network, wallet.address)
        return from_base_units(wallet.network, raw)
