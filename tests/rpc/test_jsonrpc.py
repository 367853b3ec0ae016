"""Tests for JSON-RPC connections using httpx.MockTransport."""

import json

import httpx
import pytest

from veil.core.recovery import ErrorCategory, RpcTransient, is_rate_limit_error
from veil.rpc import EvmConnection, JsonRpcConnection, JsonRpcError, SolanaConnection

SOLANA_URL = "https://solana.test"
EVM_URL = "https://evm.test"


def rpc_handler(result=None, *, status=200, error=None, seen=None):
    def handler(request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        if seen is not None:
            seen.append(payload)
        if status != 200:
            return httpx.Response(status, text="nope")
        body = {"jsonrpc": "2.0", "id": payload["id"]}
        if error is not None:
            body["error"] = error
        else:
            body["result"] = result
        return httpx.Response(200, json=body)

    return handler


def http_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestJsonRpcConnection:
    def test_base_connection_needs_a_ping(self):
        with pytest.raises(TypeError):
            JsonRpcConnection(SOLANA_URL, None)


class TestSolanaConnection:
    @pytest.mark.asyncio
    async def test_get_balance(self):
        seen = []
        async with http_client(rpc_handler({"context": {"slot": 1}, "value": 2_500_000_000}, seen=seen)) as http:
            conn = SolanaConnection(SOLANA_URL, http)
            lamports = await conn.get_balance("11111111111111111111111111111111")

        assert lamports == 2_500_000_000
        assert seen[0]["method"] == "getBalance"
        assert seen[0]["jsonrpc"] == "2.0"
        assert seen[0]["params"][0] == "11111111111111111111111111111111"
        assert seen[0]["params"][1] == {"commitment": "confirmed"}

    @pytest.mark.asyncio
    async def test_ping_uses_get_slot(self):
        seen = []
        async with http_client(rpc_handler(123, seen=seen)) as http:
            assert await SolanaConnection(SOLANA_URL, http).ping() == 123

        assert seen[0]["method"] == "getSlot"

    @pytest.mark.asyncio
    async def test_rate_limit_status(self):
        async with http_client(rpc_handler(status=429)) as http:
            with pytest.raises(RpcTransient) as exc_info:
                await SolanaConnection(SOLANA_URL, http).get_slot()

        error = exc_info.value
        assert error.category == ErrorCategory.RATE_LIMIT
        assert error.status_code == 429
        assert error.endpoint == SOLANA_URL
        assert is_rate_limit_error(error)

    @pytest.mark.asyncio
    async def test_server_error_status(self):
        async with http_client(rpc_handler(status=503)) as http:
            with pytest.raises(RpcTransient) as exc_info:
                await SolanaConnection(SOLANA_URL, http).get_slot()

        assert exc_info.value.category == ErrorCategory.NETWORK

    @pytest.mark.asyncio
    async def test_rpc_error_body(self):
        error = {"code": -32602, "message": "Invalid param: WrongSize"}
        async with http_client(rpc_handler(error=error)) as http:
            with pytest.raises(JsonRpcError) as exc_info:
                await SolanaConnection(SOLANA_URL, http).get_balance("11111111111111111111111111111111")

        assert str(exc_info.value) == "Invalid param: WrongSize"
        assert exc_info.value.code == -32602

    @pytest.mark.asyncio
    async def test_token_accounts_request(self):
        seen = []
        async with http_client(rpc_handler({"value": []}, seen=seen)) as http:
            accounts = await SolanaConnection(SOLANA_URL, http).get_token_accounts_by_owner("owner", "mint")

        assert accounts == []
        assert seen[0]["method"] == "getTokenAccountsByOwner"
        assert seen[0]["params"][1] == {"mint": "mint"}
        assert seen[0]["params"][2]["encoding"] == "jsonParsed"


class TestEvmConnection:
    @pytest.mark.asyncio
    async def test_get_balance_hex(self):
        seen = []
        async with http_client(rpc_handler("0xde0b6b3a7640000", seen=seen)) as http:
            wei = await EvmConnection(EVM_URL, http).get_balance("0x" + "ab" * 20)

        assert wei == 10**18
        assert seen[0]["method"] == "eth_getBalance"
        assert seen[0]["params"] == ["0x" + "ab" * 20, "latest"]

    @pytest.mark.asyncio
    async def test_invalid_balance_result(self):
        async with http_client(rpc_handler(None)) as http:
            with pytest.raises(JsonRpcError):
                await EvmConnection(EVM_URL, http).get_balance("0x" + "ab" * 20)

    @pytest.mark.asyncio
    async def test_client_error_is_not_transient(self):
        async with http_client(rpc_handler(status=400)) as http:
            with pytest.raises(JsonRpcError) as exc_info:
                await EvmConnection(EVM_URL, http).block_number()

        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_eth_call_params(self):
        seen = []
        async with http_client(rpc_handler("0x", seen=seen)) as http:
            result = await EvmConnection(EVM_URL, http).eth_call("0x" + "cd" * 20, "0x70a08231")

        assert result == "0x"
        assert seen[0]["params"] == [{"to": "0x" + "cd" * 20, "data": "0x70a08231"}, "latest"]
