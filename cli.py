#!/usr/bin/env python3
"""CLI for submitting the approve, swap and add-liquidity bundle"""

import argparse
import asyncio
import signal
import sys
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from flashbundle.config import Settings
from flashbundle.core.execution.executor import BundlePipeline
from flashbundle.core.execution.models import BundleRunResult
from flashbundle.core.execution.signer import load_account
from flashbundle.core.recovery import BundleError, CancellationError, RunContext
from flashbundle.logging_config import setup_logging
from flashbundle.services.evm import wei_to_eth

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CANCELLED = 130


def _decimal(value: str) -> Decimal:
    try:
        return Decimal(value)
    except InvalidOperation as e:
        raise argparse.ArgumentTypeError(f"invalid number format: {value}") from e


def settings_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    """Map CLI flags onto Settings fields; unset flags keep env/.env values."""
    mapping = {
        "eoa_key": "eoa_private_key",
        "flashbots_key": "flashbots_signer_key",
        "token": "token_address",
        "eth_amount": "eth_amount",
        "slippage": "slippage",
        "deadline": "deadline_seconds",
        "funding": "liquidity_funding",
        "log_level": "log_level",
    }
    return {
        field: getattr(args, flag)
        for flag, field in mapping.items()
        if getattr(args, flag, None) is not None
    }


def print_plan(settings: Settings) -> None:
    print("📋 Transaction Plan:")
    print(f"   • Swap {wei_to_eth(settings.eth_amount_wei)} ETH budget → {settings.token_address}")
    print("   • Add liquidity with received tokens + remaining ETH")
    print(f"   • Liquidity funding: {settings.liquidity_funding}")
    print(f"   • Slippage tolerance: {settings.slippage * 100:.2f}%")


def print_result(result: BundleRunResult) -> None:
    bundle = result.bundle
    print(f"\n📦 Bundle for block {bundle.target_block_number}")
    for tx in bundle.transactions:
        print(f"   {tx.spec.nonce}: {tx.spec.operation.value:<14} {tx.hash} (gas {tx.spec.gas_limit})")
    print(f"   Simulated gas used: {result.simulation.total_gas_used}")

    if not result.sent:
        print("🧪 Simulation only, bundle not sent")
        return

    print(f"🎯 Bundle hash: {result.bundle_hash} (attempts: {result.send_attempts})")
    if result.inclusion:
        for status in result.inclusion.statuses:
            print(f"   ✅ {status.tx_hash} in block {status.block_number}")
        print(f"🎉 All transactions confirmed in {result.inclusion.elapsed_seconds:.1f}s")


def print_key_help() -> None:
    print("❌ Please set your actual private keys!")
    print("Usage examples:")
    print("  python cli.py run --eoa-key=0x123... --flashbots-key=0x456...")
    print("  Or set environment variables: EOA_PRIVATE_KEY and FLASHBOTS_SIGNER_KEY")


async def cli_run(settings: Settings, simulate_only: bool = False) -> int:
    """Run the pipeline once with SIGINT/SIGTERM wired to cancellation."""
    run_context = RunContext()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, run_context.cancel)

    pipeline = BundlePipeline(settings, run_context=run_context)
    try:
        result = await pipeline.run(simulate_only=simulate_only)
    except CancellationError as e:
        print(f"\n🛑 {e}")
        return EXIT_CANCELLED
    except BundleError as e:
        sent = "bundle was sent" if e.bundle_sent else "nothing was sent"
        stage = e.stage.value if e.stage else "unknown"
        print(f"\n❌ Execution failed at {stage} ({sent}): {e}")
        return EXIT_FAILED
    finally:
        await pipeline.close()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)

    print_result(result)
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Flashbots bundle CLI")
    subparsers = parser.add_subparsers(dest="command")

    run_parser = subparsers.add_parser("run", help="Build, simulate, send and monitor the bundle")
    run_parser.add_argument("--eoa-key", help="Private key of the sending account")
    run_parser.add_argument("--flashbots-key", help="Relay identity signing key")
    run_parser.add_argument("--token", help="Token to buy and pair with ETH")
    run_parser.add_argument("--eth-amount", type=_decimal, help="Total ETH budget (e.g. 0.002)")
    run_parser.add_argument("--slippage", type=float, help="Slippage tolerance as a fraction (e.g. 0.01)")
    run_parser.add_argument("--deadline", type=int, help="Router deadline in seconds from now")
    run_parser.add_argument("--funding", choices=["split", "reserve_ratio"], help="Liquidity ETH funding policy")
    run_parser.add_argument("--simulate-only", action="store_true", help="Stop after a successful simulation")
    run_parser.add_argument("--log-level", help="Logging level (DEBUG, INFO, ...)")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return EXIT_OK

    try:
        settings = Settings(**settings_overrides(args))
    except ValidationError as e:
        print(f"❌ Configuration error: {e}")
        return EXIT_FAILED

    setup_logging(settings.log_level)

    if not settings.has_keys:
        print_key_help()
        return EXIT_FAILED

    try:
        eoa = load_account(settings.eoa_private_key)
        load_account(settings.flashbots_signer_key)
    except ValueError as e:
        print(f"❌ Invalid private key: {e}")
        return EXIT_FAILED

    print("🚀 Flashbots Atomic Uniswap V2 Operations")
    print("=" * 50)
    print(f"✅ EOA Address: {eoa.address}")
    print_plan(settings)

    return asyncio.run(cli_run(settings, simulate_only=args.simulate_only))


if __name__ == "__main__":
    sys.exit(main())
