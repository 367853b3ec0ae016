"""
Tests for ResilientRpcClient

Connections are plain fakes so the tests exercise endpoint rotation and
retry decisions without any HTTP.
"""

import random
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from veil.core.recovery import (
    ErrorCategory,
    RpcExhausted,
    RpcTransient,
    evm_retry_policy,
    immediate_retry_policy,
    solana_retry_policy,
)
from veil.rpc import EndpointPool, ResilientRpcClient

URLS = ["https://rpc-a", "https://rpc-b", "https://rpc-c"]


def fake_connection(url, http):
    return SimpleNamespace(url=url, ping=AsyncMock(return_value=1))


def make_client(urls=URLS, policy=None, sleep=None, seed=0):
    return ResilientRpcClient(
        EndpointPool.of(urls),
        policy or solana_retry_policy().with_overrides(max_jitter_seconds=0.0),
        fake_connection,
        http_client=MagicMock(),
        sleep=sleep or AsyncMock(),
        rng=random.Random(seed),
    )


# =============================================================================
# execute
# =============================================================================

class TestExecute:
    """Tests for endpoint rotation and retry."""

    @pytest.mark.asyncio
    async def test_first_attempt_success(self):
        sleep = AsyncMock()
        client = make_client(sleep=sleep)

        result = await client.execute(AsyncMock(return_value=42))

        assert result == 42
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_exhaustion_tries_distinct_endpoints(self):
        sleep = AsyncMock()
        client = make_client(sleep=sleep)
        tried = []

        async def op(conn):
            tried.append(conn.url)
            raise RpcTransient(f"Solana RPC error: 503 on {conn.url}")

        with pytest.raises(RpcExhausted) as exc_info:
            await client.execute(op)

        error = exc_info.value
        assert error.attempts == 3
        assert len(tried) == 3
        assert set(tried) == set(URLS)
        assert error.endpoint == tried[-1]
        assert isinstance(error.last_error, RpcTransient)
        assert error.__cause__ is error.last_error
        assert sleep.await_count == 2

    @pytest.mark.asyncio
    async def test_backoff_delays(self):
        sleep = AsyncMock()
        policy = solana_retry_policy(base_delay_seconds=1.0).with_overrides(max_jitter_seconds=0.0)
        client = make_client(policy=policy, sleep=sleep)

        with pytest.raises(RpcExhausted):
            await client.execute(AsyncMock(side_effect=RpcTransient("503")))

        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_rate_limit_backs_off_harder(self):
        sleep = AsyncMock()
        policy = solana_retry_policy(base_delay_seconds=1.0).with_overrides(max_jitter_seconds=0.0)
        client = make_client(policy=policy, sleep=sleep)
        error = RpcTransient("429", category=ErrorCategory.RATE_LIMIT)

        with pytest.raises(RpcExhausted):
            await client.execute(AsyncMock(side_effect=error))

        assert [c.args[0] for c in sleep.await_args_list] == [3.0, 6.0]

    @pytest.mark.asyncio
    async def test_success_regardless_of_endpoint_order(self):
        # One healthy endpoint among three must always be reached within 3 attempts.
        for seed in range(25):
            client = make_client(seed=seed)

            async def op(conn):
                if conn.url != "https://rpc-b":
                    raise RpcTransient("503")
                return conn.url

            assert await client.execute(op) == "https://rpc-b"

    @pytest.mark.asyncio
    async def test_non_retryable_raises_immediately(self):
        sleep = AsyncMock()
        client = make_client(policy=evm_retry_policy(), sleep=sleep)
        op = AsyncMock(side_effect=ValueError("execution reverted"))

        with pytest.raises(ValueError, match="execution reverted"):
            await client.execute(op)

        assert op.await_count == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_single_endpoint_pool(self):
        client = make_client(urls=["https://only"], policy=immediate_retry_policy(3))
        tried = []

        async def op(conn):
            tried.append(conn.url)
            raise RpcTransient("503")

        with pytest.raises(RpcExhausted):
            await client.execute(op)

        assert tried == ["https://only"] * 3

    @pytest.mark.asyncio
    async def test_max_attempts_override(self):
        client = make_client(policy=immediate_retry_policy(3))
        op = AsyncMock(side_effect=RpcTransient("503"))

        with pytest.raises(RpcExhausted) as exc_info:
            await client.execute(op, max_attempts=1)

        assert op.await_count == 1
        assert exc_info.value.attempts == 1

    @pytest.mark.asyncio
    async def test_recovers_after_failure(self):
        client = make_client(policy=immediate_retry_policy(3))
        op = AsyncMock(side_effect=[RpcTransient("503"), "ok"])

        assert await client.execute(op) == "ok"
        assert op.await_count == 2


# =============================================================================
# Connections and lifecycle
# =============================================================================

class TestConnections:
    def test_urls(self):
        assert make_client().get_rpc_urls() == URLS

    def test_connection_cache(self):
        client = make_client()

        first = client.get_connection("https://rpc-a")
        assert client.get_connection("https://rpc-a") is first

        client.clear_cache()
        assert client.get_connection("https://rpc-a") is not first

    @pytest.mark.asyncio
    async def test_connection_test_success(self):
        assert await make_client().test_connection() is True

    @pytest.mark.asyncio
    async def test_connection_test_failure(self):
        def broken(url, http):
            return SimpleNamespace(url=url, ping=AsyncMock(side_effect=RpcTransient("down")))

        client = ResilientRpcClient(
            EndpointPool.of(URLS), solana_retry_policy(), broken, http_client=MagicMock(), sleep=AsyncMock()
        )

        assert await client.test_connection() is False

    @pytest.mark.asyncio
    async def test_aclose_leaves_shared_http_client_open(self):
        http = MagicMock()
        http.aclose = AsyncMock()
        client = ResilientRpcClient(EndpointPool.of(URLS), solana_retry_policy(), fake_connection, http_client=http)

        await client.aclose()

        http.aclose.assert_not_awaited()
