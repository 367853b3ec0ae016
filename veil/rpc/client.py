"""
Resilient RPC client.

Runs a caller-supplied operation against a randomly chosen endpoint and, on
failure, retries against an endpoint not yet tried in this call, following
the client's ``RetryPolicy``.

Usage:
    client = ResilientRpcClient(
        EndpointPool.of(["https://a", "https://b"]),
        solana_retry_policy(),
        SolanaConnection,
    )
    lamports = await client.execute(lambda conn: conn.get_balance(address))
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Awaitable, Callable, Dict, Generic, Iterable, Optional, Set, TypeVar, Union

import httpx

from ..core.recovery import RetryPolicy, RpcExhausted
from .endpoints import EndpointPool
from .jsonrpc import JsonRpcConnection

T = TypeVar("T")
C = TypeVar("C", bound=JsonRpcConnection)

ConnectionFactory = Callable[[str, httpx.AsyncClient], C]
Sleep = Callable[[float], Awaitable[Any]]

logger = logging.getLogger(__name__)


class ResilientRpcClient(Generic[C]):
    """
    Executes operations across an endpoint pool with retry and backoff.

    Features:
    - Random endpoint per attempt, never repeating one within a call
      until the pool is exhausted
    - Policy-driven failure classification and backoff
    - Per-URL connection cache (pure optimisation, safe to clear anytime)
    """

    def __init__(
        self,
        pool: Union[EndpointPool, Iterable[str]],
        policy: RetryPolicy,
        connection_factory: ConnectionFactory,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout_s: float = 30.0,
        sleep: Sleep = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ):
        self._pool = pool if isinstance(pool, EndpointPool) else EndpointPool.of(pool)
        self._policy = policy
        self._connection_factory = connection_factory
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout_s)
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._connections: Dict[str, C] = {}

    @property
    def pool(self) -> EndpointPool:
        return self._pool

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    @property
    def name(self) -> str:
        return self._pool.network.value if self._pool.network else self._policy.name

    def get_rpc_urls(self) -> list[str]:
        return list(self._pool)

    def get_connection(self, url: str) -> C:
        connection = self._connections.get(url)
        if connection is None:
            connection = self._connection_factory(url, self._http)
            self._connections[url] = connection
        return connection

    async def execute(
        self,
        operation: Callable[[C], Awaitable[T]],
        *,
        max_attempts: Optional[int] = None,
        label: str = "rpc",
    ) -> T:
        """Run ``operation`` with endpoint rotation.

        Args:
            operation: Coroutine function receiving a connection handle
            max_attempts: Override the policy attempt cap for this call
            label: Name used in diagnostic logs

        Raises:
            RpcExhausted: Every attempt failed with a retryable error
            Exception: A non-retryable error, re-raised unchanged
        """
        attempts = max_attempts or self._policy.max_attempts
        tried: Set[int] = set()
        last_error: Optional[BaseException] = None
        url: Optional[str] = None

        for attempt in range(attempts):
            index = self._pool.pick(tried, self._rng)
            tried.add(index)
            url = self._pool[index]
            connection = self.get_connection(url)

            try:
                result = await operation(connection)
            except Exception as e:
                last_error = e

                if not self._policy.should_retry(e):
                    logger.error(
                        "[%s] %s failed on %s with non-retryable error: %s",
                        self.name, label, url, e,
                    )
                    raise

                if attempt < attempts - 1:
                    delay = self._policy.get_delay(attempt, e, self._rng)
                    logger.warning(
                        "[%s] %s attempt %d/%d failed on %s: %s. Retrying in %.1fs on a new endpoint",
                        self.name, label, attempt + 1, attempts, url, e, delay,
                    )
                    await self._sleep(delay)
            else:
                if attempt > 0:
                    logger.info(
                        "[%s] %s succeeded on %s after %d attempt(s)",
                        self.name, label, url, attempt + 1,
                    )
                return result

        logger.error("[%s] %s failed after %d attempts: %s", self.name, label, attempts, last_error)
        raise RpcExhausted(
            last_error or RuntimeError("Failed after all retries"),
            attempts=attempts,
            endpoint=url,
            network=self._pool.network.value if self._pool.network else None,
        ) from last_error

    async def test_connection(self) -> bool:
        """Single-attempt reachability check."""
        try:
            await self.execute(lambda conn: conn.ping(), max_attempts=1, label="ping")
            return True
        except Exception as e:  # noqa: BLE001
            logger.info("[%s] connection test failed: %s", self.name, e)
            return False

    def clear_cache(self) -> None:
        self._connections.clear()

    async def aclose(self) -> None:
        self.clear_cache()
        if self._owns_http:
            await self._http.aclose()
