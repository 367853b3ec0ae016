#!/usr/bin/env python3
"""Command line tools for poking at the wallet core locally"""

import argparse
import asyncio
import sys
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from .context import AppContext
from .core.networks import NETWORK_METADATA, from_base_units, native_symbol, normalize_network
from .core.recovery import user_message
from .logging_config import setup_logging
from .services import LedgerEntry, TransactionType


def _format_amount(amount: Decimal, places: int = 6) -> str:
    return f"{amount:,.{places}f}"


def print_entries(entries: List[LedgerEntry]) -> None:
    if not entries:
        print("No transactions recorded")
        return

    print(f"\n{'When':<20} {'Type':<22} {'Amount':>16} {'Status':<10} Signature")
    print("-" * 90)
    for entry in entries:
        when = datetime.fromtimestamp(entry.timestamp / 1000, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
        amount = f"{_format_amount(entry.amount)} {entry.symbol or ''}".strip()
        print(f"{when:<20} {entry.type.value:<22} {amount:>16} {entry.status.value:<10} {entry.signature or '-'}")
        if entry.error:
            print(f"    error: {entry.error}")


async def cli_balance(ctx: AppContext, network: str, address: str) -> None:
    net = normalize_network(network)
    raw = await ctx.balances.get_native_balance(net, address)
    print(f"{address} ({NETWORK_METADATA[net].name})")
    print(f"Balance: {_format_amount(from_base_units(net, raw))} {native_symbol(net)} ({raw} base units)")


async def cli_token_balance(ctx: AppContext, network: str, token: str, owner: str) -> None:
    raw = await ctx.balances.get_token_balance(network, token, owner)
    print(f"Token {token}")
    print(f"Owner {owner}: {raw} base units")


async def cli_check_balances(ctx: AppContext) -> None:
    wallets = await ctx.wallets.get_all()
    print(f"Checking {len(wallets)} wallet(s)...")
    updates = await ctx.monitor.check_balances()
    if not updates:
        print("No balance changes")
        return
    for update in updates:
        symbol = native_symbol(update.network)
        line = f"{update.network.value}:{update.index} {update.previous} -> {update.current} {symbol}"
        if update.incoming is not None:
            line += f" (incoming {update.incoming} {symbol})"
        print(line)


async def cli_history(ctx: AppContext, tx_type: Optional[str], wallet_index: Optional[int]) -> None:
    if tx_type:
        entries = await ctx.ledger.get_by_type(TransactionType(tx_type))
    else:
        entries = await ctx.ledger.get_all()
    if wallet_index is not None:
        entries = [e for e in entries if e.wallet_index == wallet_index]
    print_entries(entries)


async def cli_ping(ctx: AppContext, network: str) -> None:
    client = ctx.registry.get(network)
    print(f"Endpoints for {client.name}:")
    for url in client.get_rpc_urls():
        print(f"  {url}")
    ok = await client.test_connection()
    print("Reachable" if ok else "Unreachable")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Veil wallet core CLI")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    subparsers = parser.add_subparsers(dest="command")

    balance_parser = subparsers.add_parser("balance", help="Native balance of an address")
    balance_parser.add_argument("network", help="solana, ethereum, arbitrum or avalanche")
    balance_parser.add_argument("address", help="Wallet address")

    token_parser = subparsers.add_parser("token-balance", help="Token balance of an owner")
    token_parser.add_argument("network", help="Network")
    token_parser.add_argument("token", help="Token contract or mint address")
    token_parser.add_argument("owner", help="Owner address")

    subparsers.add_parser("check-balances", help="Run one balance monitor tick")

    history_parser = subparsers.add_parser("history", help="List ledger entries")
    history_parser.add_argument("--type", dest="tx_type", choices=[t.value for t in TransactionType])
    history_parser.add_argument("--wallet", dest="wallet_index", type=int, help="Wallet index")

    ping_parser = subparsers.add_parser("ping", help="Test RPC reachability")
    ping_parser.add_argument("network", help="Network")

    return parser


async def run(args: argparse.Namespace) -> int:
    async with AppContext() as ctx:
        if args.command == "balance":
            await cli_balance(ctx, args.network, args.address)
        elif args.command == "token-balance":
            await cli_token_balance(ctx, args.network, args.token, args.owner)
        elif args.command == "check-balances":
            await cli_check_balances(ctx)
        elif args.command == "history":
            await cli_history(ctx, args.tx_type, args.wallet_index)
        elif args.command == "ping":
            await cli_ping(ctx, args.network)
        else:
            print(f"Unknown command: {args.command}")
            return 2
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    setup_logging(args.log_level)
    try:
        return asyncio.run(run(args))
    except (ValueError, KeyError) as e:
        print(f"Error: {e}")
        return 2
    except Exception as e:  # noqa: BLE001
        print(f"Error: {user_message(e)} ({e})")
        return 1


if __name__ == "__main__":
    sys.exit(main())
