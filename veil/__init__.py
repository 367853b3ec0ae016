"""Veil wallet core: resilient RPC, privacy orchestration and balance monitoring."""

__version__ = "0.1.0"
