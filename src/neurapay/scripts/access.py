# src/neurapay/scripts/access.py
"""Terminal client: browse the catalog, pay for a service and watch access."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence

from neurapay.core.errors import NeuraPayError
from neurapay.core.settings import settings
from neurapay.services.chain import ChainReader, ChainWriter
from neurapay.services.countdown import CountdownState
from neurapay.services.reconciliation import AccessOrchestrator, AccessResolution
from neurapay.services.tracker_client import AccessTrackerClient
from neurapay.services.wallet import (
    WalletProvider,
    build_wallet_providers,
    choose_wallet_provider,
    connect_wallet,
    load_network_config,
)

logger = logging.getLogger("neurapay.cli")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="neurapay-access", description=__doc__)
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("catalog", help="List active services registered on the contract")

    check = sub.add_parser("check", help="Show current access for a wallet")
    check.add_argument("wallet")
    check.add_argument("service_id", type=int)

    pay = sub.add_parser("pay", help="Pay for a service with the configured wallet")
    pay.add_argument("service_id", type=int)
    pay.add_argument("--price", help="Amount to send; defaults to the listed price")
    pay.add_argument("--wallet", dest="preferred", help="Wallet adapter to prefer (local, node)")
    pay.add_argument("--watch", action="store_true", help="Count down until access expires")
    return parser


def _describe(resolution: AccessResolution) -> str:
    if not resolution.granted:
        return "no access"
    if resolution.expires_at is None:
        return f"access granted (expiry unknown, via {resolution.source})"
    return f"access until {resolution.expires_at.isoformat()} (via {resolution.source})"


def _print_tick(state: CountdownState) -> None:
    if state.has_access:
        print(f"\r{state.display} remaining", end="", flush=True)
    else:
        print("\raccess expired      ")


def run_catalog(reader: ChainReader) -> int:
    listings = reader.get_service_catalog()
    if not listings:
        print("No active services.")
        return 0
    for listing in listings:
        print(
            f"{listing.id:>3}  {listing.name:<24} {listing.category:<14} "
            f"{listing.price_display} {settings.chain_currency_symbol}"
        )
    return 0


async def run_check(orchestrator: AccessOrchestrator, wallet: str, service_id: int) -> int:
    resolution = await orchestrator.check_access(wallet, service_id)
    print(_describe(resolution))
    return 0 if resolution.granted else 1


async def run_pay(
    orchestrator: AccessOrchestrator,
    provider: WalletProvider | None,
    service_id: int,
    price: str | None,
    *,
    watch: bool = False,
) -> int:
    wallet = await asyncio.to_thread(connect_wallet, provider, load_network_config())
    if price is None:
        listing = await asyncio.to_thread(orchestrator.chain_reader.get_service, service_id)
        price = listing.price_display

    print(f"Paying {price} {settings.chain_currency_symbol} for service {service_id} from {wallet}")
    resolution = await orchestrator.request_access(wallet, service_id, price)
    print(f"Confirmed {resolution.tx_hash}: {_describe(resolution)}")

    if watch and resolution.expires_at is not None:
        countdown = await orchestrator.watch(
            wallet, service_id, resolution.expires_at, on_tick=_print_tick
        )
        await countdown.wait()
    return 0


async def _run(args: argparse.Namespace) -> int:
    reader = ChainReader()
    if args.command == "catalog":
        return await asyncio.to_thread(run_catalog, reader)

    provider = None
    if args.command == "pay":
        provider = choose_wallet_provider(
            build_wallet_providers(), preferred=args.preferred or settings.preferred_wallet
        )

    orchestrator = AccessOrchestrator(
        chain_reader=reader,
        tracker=AccessTrackerClient(),
        chain_writer=ChainWriter(provider) if provider is not None else None,
    )
    try:
        if args.command == "check":
            return await run_check(orchestrator, args.wallet, args.service_id)
        return await run_pay(orchestrator, provider, args.service_id, args.price, watch=args.watch)
    finally:
        await orchestrator.close()


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        return asyncio.run(_run(args))
    except NeuraPayError as exc:
        logger.debug("Command failed", exc_info=True)
        print(exc.user_message, file=sys.stderr)
        return 1
    except ValueError as exc:
        print(f"Invalid input: {exc}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
