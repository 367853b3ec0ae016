"""
JSON-RPC connection handles.

A connection binds one endpoint URL to a shared ``httpx.AsyncClient``. It
holds no other state, so dropping and recreating one is always safe.
"""

from __future__ import annotations

import itertools
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import httpx

from ..core.recovery import ErrorCategory, RpcTransient

_RATE_LIMIT_STATUSES = {403, 429}
_SERVER_STATUSES = {500, 502, 503, 504}


class JsonRpcError(Exception):
    """The endpoint answered but the call itself failed."""

    def __init__(
        self,
        message: str,
        code: Optional[int] = None,
        endpoint: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.code = code
        self.endpoint = endpoint
        self.status_code = status_code


class JsonRpcConnection(ABC):
    """Minimal JSON-RPC 2.0 client over HTTP POST."""

    label = "JSON"

    _ids = itertools.count(1)

    def __init__(self, url: str, http_client: httpx.AsyncClient):
        self.url = url
        self._http = http_client

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.url!r})"

    async def call(self, method: str, params: Optional[List[Any]] = None) -> Any:
        payload: Dict[str, Any] = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params or [],
        }

        response = await self._http.post(
            self.url,
            json=payload,
            headers={"Content-Type": "application/json"},
        )

        status = response.status_code
        if status in _RATE_LIMIT_STATUSES:
            raise RpcTransient(
                f"{self.label} RPC error: {status} (rate limit)",
                category=ErrorCategory.RATE_LIMIT,
                endpoint=self.url,
                status_code=status,
            )
        if status in _SERVER_STATUSES:
            raise RpcTransient(
                f"{self.label} RPC error: {status}",
                category=ErrorCategory.NETWORK,
                endpoint=self.url,
                status_code=status,
            )
        if status >= 400:
            raise JsonRpcError(
                f"{self.label} RPC error: HTTP {status}",
                endpoint=self.url,
                status_code=status,
            )

        data = response.json()
        if not isinstance(data, dict):
            raise JsonRpcError(f"Unexpected {method} response", endpoint=self.url)

        error = data.get("error")
        if error:
            if isinstance(error, dict):
                message = error.get("message") or f"{method} failed"
                code = error.get("code")
            else:
                message, code = str(error), None
            raise JsonRpcError(message, code=code, endpoint=self.url)

        return data.get("result")

    @abstractmethod
    async def ping(self) -> Any:
        """Cheapest call that proves the endpoint answers."""


class SolanaConnection(JsonRpcConnection):
    """Solana JSON-RPC methods used by the wallet core."""

    label = "Solana"

    def __init__(self, url: str, http_client: httpx.AsyncClient, commitment: str = "confirmed"):
        super().__init__(url, http_client)
        self.commitment = commitment

    async def get_balance(self, public_key: str) -> int:
        """Native balance in lamports."""
        result = await self.call("getBalance", [public_key, {"commitment": self.commitment}])
        value = result.get("value") if isinstance(result, dict) else result
        if not isinstance(value, int):
            raise JsonRpcError("Invalid getBalance result", endpoint=self.url)
        return value

    async def get_slot(self) -> int:
        return int(await self.call("getSlot", [{"commitment": self.commitment}]))

    async def get_latest_blockhash(self) -> Dict[str, Any]:
        result = await self.call("getLatestBlockhash", [{"commitment": self.commitment}])
        return result.get("value") or {}

    async def get_token_accounts_by_owner(self, owner: str, mint: str) -> List[Dict[str, Any]]:
        result = await self.call(
            "getTokenAccountsByOwner",
            [owner, {"mint": mint}, {"encoding": "jsonParsed", "commitment": self.commitment}],
        )
        return list((result or {}).get("value") or [])

    async def ping(self) -> int:
        return await self.get_slot()


class EvmConnection(JsonRpcConnection):
    """Ethereum-style JSON-RPC methods used by the wallet core."""

    label = "EVM"

    async def get_balance(self, address: str, block: str = "latest") -> int:
        """Native balance in wei."""
        result = await self.call("eth_getBalance", [address, block])
        if not isinstance(result, str):
            raise JsonRpcError("Invalid eth_getBalance result", endpoint=self.url)
        return int(result, 16)

    async def eth_call(self, to: str, data: str, block: str = "latest") -> Optional[str]:
        return await self.call("eth_call", [{"to": to, "data": data}, block])

    async def block_number(self) -> int:
        return int(await self.call("eth_blockNumber"), 16)

    async def ping(self) -> int:
        return await self.block_number()
