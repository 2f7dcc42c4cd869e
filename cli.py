#!/usr/bin/env python3
"""Command line entry point for quoted swaps, wallet rebalances and balance reads"""

import argparse
import asyncio
import sys
from typing import List, Tuple

from pydantic import ValidationError

from basketswap.config import settings
from basketswap.core.execution import ExecutionError, Receipt, TokenBalance, read_balances
from basketswap.core.execution.factory import (
    build_gateway,
    build_provider,
    build_rebalance_flow,
    build_signer,
    build_swap_flow,
)
from basketswap.logging_config import setup_logging
from basketswap.types.requests import BaseEntry, RebalanceRequest, SwapQuoteRequest, TargetEntry


def _split_pair(value: str, flag: str) -> Tuple[str, str]:
    token, sep, amount = value.partition(":")
    if not sep or not token or not amount:
        raise argparse.ArgumentTypeError(f"{flag} expects TOKEN:VALUE, got {value!r}")
    return token, amount


def parse_base_entry(value: str) -> BaseEntry:
    token, amount = _split_pair(value, "--base")
    try:
        return BaseEntry(token_address=token, amount=int(amount))
    except (ValueError, ValidationError) as exc:
        raise argparse.ArgumentTypeError(f"Invalid --base {value!r}: {exc}") from exc


def parse_target_entry(value: str) -> TargetEntry:
    token, allocation = _split_pair(value, "--target")
    try:
        return TargetEntry(token_address=token, allocation=float(allocation))
    except (ValueError, ValidationError) as exc:
        raise argparse.ArgumentTypeError(f"Invalid --target {value!r}: {exc}") from exc


def print_balances(title: str, balances: List[TokenBalance]) -> None:
    print(f"\n{title}")
    print("-" * 50)
    for balance in balances:
        print(f"{balance.label}: {balance.formatted}")


def print_receipt(receipt: Receipt) -> None:
    """Pretty print a transaction receipt"""
    icon = "✅" if receipt.is_success else "❌"
    print(f"\n{icon} Transaction {receipt.status.value}")
    print("=" * 50)
    print(f"Hash:     {receipt.transaction_hash}")
    print(f"Block:    {receipt.block_number}")
    print(f"Gas used: {receipt.gas_used:,}")


async def cli_swap(args: argparse.Namespace) -> int:
    """Quote and execute a single token swap"""
    signer = build_signer()
    provider = build_provider()
    gateway = build_gateway()
    try:
        request = SwapQuoteRequest(
            sell_token=args.sell_token,
            buy_token=args.buy_token,
            sell_amount=args.amount,
            taker=args.taker or signer.address,
            tx_origin=signer.address,
            max_slippage_bps=args.max_slippage_bps,
            max_price_impact_bps=settings.max_price_impact_bps,
            min_expiry_sec=settings.min_expiry_sec,
        )
        print(f"🔄 Swapping {request.sell_amount} of {request.sell_token} for {request.buy_token}...")
        receipt = await build_swap_flow(provider, gateway, signer).execute(request)
        print_receipt(receipt)
        return 0 if receipt.is_success else 1
    finally:
        await provider.close()
        await gateway.close()


async def cli_rebalance(args: argparse.Namespace) -> int:
    """Request and execute a wallet rebalancing"""
    signer = build_signer()
    provider = build_provider()
    gateway = build_gateway()
    try:
        request = RebalanceRequest(
            signer=signer.address,
            wallet=args.wallet or signer.address,
            base_entries=args.base,
            target_entries=args.target,
            max_slippage=args.max_slippage,
            max_price_impact=args.max_price_impact,
        )
        print(
            f"⚖️  Rebalancing {len(request.base_entries)} sold token(s) into "
            f"{len(request.target_entries)} target(s)..."
        )
        tokens = list(dict.fromkeys(
            [entry.token_address for entry in request.base_entries]
            + [entry.token_address for entry in request.target_entries]
        ))
        print_balances("Balances before rebalancing:", await read_balances(gateway, tokens, request.wallet))

        receipt = await build_rebalance_flow(provider, gateway, signer).execute(request)
        print_receipt(receipt)

        print_balances("Balances after rebalancing:", await read_balances(gateway, tokens, request.wallet))
        return 0 if receipt.is_success else 1
    finally:
        await provider.close()
        await gateway.close()


async def cli_balances(args: argparse.Namespace) -> int:
    """Print token balances of an owner"""
    gateway = build_gateway()
    try:
        owner = args.owner or build_signer().address
        print(f"🔍 Reading balances for {owner}...")
        balances = await read_balances(gateway, args.tokens, owner)
        print_balances("Balances:", balances)
        return 0
    finally:
        await gateway.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Execute quoted swaps and wallet rebalances")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    subparsers = parser.add_subparsers(dest="command", required=True)

    swap = subparsers.add_parser("swap", help="Quote and execute a single swap")
    swap.add_argument("sell_token", help="Token to sell")
    swap.add_argument("buy_token", help="Token to buy")
    swap.add_argument("amount", type=int, help="Sell amount in base units")
    swap.add_argument("--taker", help="Holder of the sell token (defaults to the signer)")
    swap.add_argument("--max-slippage-bps", type=int, default=settings.max_slippage_bps)
    swap.set_defaults(handler=cli_swap)

    rebalance = subparsers.add_parser("rebalance", help="Rebalance a wallet into target allocations")
    rebalance.add_argument(
        "--base",
        action="append",
        required=True,
        type=parse_base_entry,
        metavar="TOKEN:AMOUNT",
        help="Token and base-unit amount to sell (repeatable)",
    )
    rebalance.add_argument(
        "--target",
        action="append",
        required=True,
        type=parse_target_entry,
        metavar="TOKEN:ALLOCATION",
        help="Token to buy and its share, e.g. 0.5 (repeatable)",
    )
    rebalance.add_argument("--wallet", help="Wallet to rebalance (defaults to the signer)")
    rebalance.add_argument("--max-slippage", type=float, default=0.01)
    rebalance.add_argument("--max-price-impact", type=float, default=0.05)
    rebalance.set_defaults(handler=cli_rebalance)

    balances = subparsers.add_parser("balances", help="Read ERC20 balances")
    balances.add_argument("tokens", nargs="+", help="Token addresses")
    balances.add_argument("--owner", help="Owner address (defaults to the signer)")
    balances.set_defaults(handler=cli_balances)

    return parser


def main(argv: List[str] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)

    try:
        return asyncio.run(args.handler(args))
    except ValidationError as e:
        print(f"❌ Invalid request: {e}")
        return 1
    except ExecutionError as e:
        print(f"❌ Error: {e}")
        return 1
    except KeyboardInterrupt:
        print("\n👋 Interrupted")
        return 1


if __name__ == "__main__":
    sys.exit(main())
