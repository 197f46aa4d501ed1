"""
Command-line entry point

Collects the wallet key, recipient and interval (flags, env or interactive
prompts), then runs the transfer schedule until SIGINT/SIGTERM.
"""

import argparse
import asyncio
import os
import signal
import sys
from typing import Callable, List, Optional, Tuple

from loguru import logger
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from .config import (
    CLUSTER_URLS,
    ScheduleConfig,
    generate_keypair,
    lamports_to_sol,
    load_config,
    parse_destination,
    parse_interval,
    parse_keypair,
    resolve_rpc_url,
)
from .errors import ValidationError
from .network_session import SolanaSession
from .scheduler import TransferScheduler, graceful_shutdown
from .transfer_executor import TransferExecutor


PRIVATE_KEY_ENV = 'PERIODIC_TRANSFER_PRIVATE_KEY'


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='periodic-transfer',
        description="Send a fixed amount of SOL to a recipient on a fixed interval"
    )
    parser.add_argument("--config", help="YAML file with schedule settings")
    key_group = parser.add_mutually_exclusive_group()
    key_group.add_argument("--private-key", help=f"Base58 secret key (or set {PRIVATE_KEY_ENV})")
    key_group.add_argument("--generate-keypair", action="store_true", help="Create a new wallet")
    parser.add_argument("--recipient", help="Recipient address (Base58)")
    parser.add_argument("--interval", help="Interval between transfers (minutes)")
    endpoint_group = parser.add_mutually_exclusive_group()
    endpoint_group.add_argument("--cluster", choices=sorted(CLUSTER_URLS), help="Public cluster to use")
    endpoint_group.add_argument("--rpc-url", help="Custom RPC endpoint")
    parser.add_argument("--amount", type=int, help="Lamports per transfer")
    parser.add_argument("--reserve", type=int, help="Lamports to keep in the wallet")
    parser.add_argument("--max-attempts", type=int, help="Submissions per transfer before giving up")
    parser.add_argument("--log-level", default="INFO", help="Log level (DEBUG, INFO, WARNING, ...)")
    return parser


def configure_logging(level: str):
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | {message}"
    )


def collect_inputs(
    args: argparse.Namespace,
    input_fn: Callable[[str], str] = input
) -> Tuple[Keypair, Pubkey, float, bool]:
    """
    Resolve wallet, recipient and interval, prompting for anything missing

    Returns:
        (sender keypair, recipient, interval minutes, wallet was generated)

    Raises:
        ValidationError: any input is malformed
    """
    generated = False
    private_key = args.private_key or os.environ.get(PRIVATE_KEY_ENV)

    if private_key:
        sender = parse_keypair(private_key)
    elif args.generate_keypair:
        sender = generate_keypair()
        generated = True
    else:
        answer = input_fn("Do you want to use your own private key? (yes/no): ")
        if answer.strip().lower() == 'yes':
            sender = parse_keypair(input_fn("Enter your wallet private key (Base58): "))
        else:
            sender = generate_keypair()
            generated = True

    if generated:
        print("\n--- Wallet Created ---")
        print(f"Public Key (Address): {sender.pubkey()}")
        print("\nTo use this program, send SOL to the above wallet address.")
        print("You can fund it from an exchange or transfer from another wallet.")
        print("\nThe program will start sending once the wallet is funded.\n")

    recipient = args.recipient or input_fn("Enter the recipient address (Base58): ")
    destination = parse_destination(recipient)

    interval = args.interval or input_fn("Enter the time interval (in minutes): ")
    interval_minutes = parse_interval(interval)

    return sender, destination, interval_minutes, generated


async def run(config: ScheduleConfig, sender: Keypair, destination: Pubkey):
    """Run the schedule until cancelled by a signal"""
    session = SolanaSession(config.rpc_url, config.commitment)
    await session.check_health()

    executor = TransferExecutor(
        session,
        max_attempts=config.max_attempts,
        max_elapsed_seconds=config.max_elapsed_seconds,
        retry_delay_seconds=config.retry_delay_seconds,
    )
    scheduler = TransferScheduler(session, executor, sender, destination, config)
    task = asyncio.create_task(scheduler.run_forever())

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, task.cancel)
        except NotImplementedError:
            # Windows: KeyboardInterrupt reaches asyncio.run instead
            pass

    try:
        await task
    except asyncio.CancelledError:
        logger.info("Shutdown requested")
    finally:
        await graceful_shutdown(task, session)


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    print("\n--- Solana Automated Wallet ---\n")

    try:
        sender, destination, interval_minutes, _ = collect_inputs(args)
        endpoint = args.rpc_url or args.cluster
        config = load_config(args.config, overrides={
            'interval_minutes': interval_minutes,
            'transfer_lamports': args.amount,
            'reserve_lamports': args.reserve,
            'max_attempts': args.max_attempts,
            'rpc_url': resolve_rpc_url(endpoint) if endpoint else None,
        })
    except ValidationError as e:
        logger.error(f"✗ {e}")
        return 1

    print("\n--- Wallet and Recipient Details ---")
    print(f"Your Public Key: {sender.pubkey()}")
    print(f"Recipient Address: {destination}")
    print(f"Time Interval: {config.interval_minutes} minutes")
    print(f"Amount: {config.transfer_lamports} lamports ({lamports_to_sol(config.transfer_lamports)} SOL)")
    print(f"Reserve: {config.reserve_lamports} lamports")
    print(f"RPC Endpoint: {config.rpc_url}")
    print("\nStarting automated transaction monitoring...\n")

    try:
        asyncio.run(run(config, sender, destination))
    except KeyboardInterrupt:
        logger.info("Interrupted")

    return 0
