"""Multi-endpoint JSON-RPC layer for Solana and EVM networks."""

from .client import ResilientRpcClient
from .endpoints import EndpointPool
from .jsonrpc import EvmConnection, JsonRpcConnection, JsonRpcError, SolanaConnection
from .registry import RpcClientRegistry, default_policy_for

__all__ = [
    "ResilientRpcClient",
    "EndpointPool",
    "JsonRpcConnection",
    "JsonRpcError",
    "SolanaConnection",
    "EvmConnection",
    "RpcClientRegistry",
    "default_policy_for",
]
