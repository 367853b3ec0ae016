"""
Per-network client registry.

One long-lived ``ResilientRpcClient`` per network, created lazily from
settings and owned by the application context.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Union

import httpx

from ..config import Settings, settings as default_settings
from ..core.networks import Network, normalize_network
from ..core.recovery import RetryPolicy, evm_retry_policy, solana_retry_policy
from .client import ResilientRpcClient
from .endpoints import EndpointPool
from .jsonrpc import EvmConnection, SolanaConnection

logger = logging.getLogger(__name__)


def default_policy_for(network: Network, settings: Settings) -> RetryPolicy:
    """Solana clients retry everything; EVM clients classify failures."""
    factory = solana_retry_policy if network is Network.SOLANA else evm_retry_policy
    return factory(
        max_attempts=settings.rpc_max_retries,
        base_delay_seconds=settings.rpc_retry_delay_seconds,
    )


class RpcClientRegistry:
    """Creates and caches one resilient client per network."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        policies: Optional[Dict[Network, RetryPolicy]] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self._settings = settings or default_settings
        self._http = http_client
        self._policies = dict(policies or {})
        self._sleep = sleep
        self._clients: Dict[Network, ResilientRpcClient] = {}

    def get(self, network: Union[str, Network]) -> ResilientRpcClient:
        network = normalize_network(network)
        client = self._clients.get(network)
        if client is None:
            client = self._create(network)
            self._clients[network] = client
        return client

    def solana(self) -> ResilientRpcClient[SolanaConnection]:
        return self.get(Network.SOLANA)

    def _create(self, network: Network) -> ResilientRpcClient:
        pool = EndpointPool.of(self._settings.rpc_urls_for(network), network=network)
        policy = self._policies.get(network) or default_policy_for(network, self._settings)
        factory = SolanaConnection if network is Network.SOLANA else EvmConnection
        logger.info(
            "Created %s RPC client with %d endpoint(s), policy=%s",
            network.value, len(pool), policy.name,
        )
        return ResilientRpcClient(
            pool,
            policy,
            factory,
            http_client=self._http,
            timeout_s=self._settings.rpc_request_timeout_seconds,
            sleep=self._sleep,
        )

    def clear_caches(self) -> None:
        for client in self._clients.values():
            client.clear_cache()

    async def aclose(self) -> None:
        clients = list(self._clients.values())
        self._clients.clear()
        for client in clients:
            await client.aclose()
