"""Core primitives shared by the RPC, privacy and monitoring layers."""
