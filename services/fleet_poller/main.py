#!/usr/bin/env python3
"""
Fleet Poller Service - Periodic Offline Check for the Vending Fleet

Runs the monitor loop:
1. At startup: ensure a session token, check for offline machines
2. Every POLL_INTERVAL_MINUTES (default 30): repeat
3. Offline machines are handed to the notifier (logs by default)

A failed cycle (upstream error, unreadable cache) is logged and the loop waits
for the next interval. Cycles never overlap: the next sleep starts only after
the current cycle has finished.

Usage:
------
    python -m services.fleet_poller.main              # Run the loop
    python -m services.fleet_poller.main --once       # Single cycle, then exit
    python -m services.fleet_poller.main --vends 5    # Print slots with >= 5 vends
    python -m services.fleet_poller.main --cash       # Print banknote totals
"""

import os
import sys
import time
import signal
import argparse
import logging
from typing import Callable, Dict, List

# Ensure project root is in path for imports when running as script
_project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from unicum.aggregator import StateAggregator
from unicum.config_loader import ConfigLoader, DEFAULT_CONFIG_PATH
from unicum.credential_manager import CredentialManager
from unicum.errors import CacheError, ConfigurationError, UpstreamError
from unicum.logger_service import setup_logging
from unicum.machine_directory import MachineDirectory
from unicum.models import OfflineReport, ProductState
from unicum.unicum_client import UnicumClient

logger = logging.getLogger(__name__)

Notifier = Callable[[str], None]

# Global flag for graceful shutdown
shutdown_requested = False


def signal_handler(signum, frame):
    """Handle shutdown signals (CTRL+C, SIGTERM)."""
    global shutdown_requested
    logger.info(f"Shutdown signal received ({signum}). Exiting after current cycle...")
    shutdown_requested = True


def log_notifier(message: str):
    """Default notifier: write the alert to the log."""
    logger.warning(f"NOTIFY: {message}")


def build_components(config: dict):
    """Wire credential manager, client, directory and aggregator from config."""
    manager = CredentialManager(config)
    client = UnicumClient(config, manager)
    directory = MachineDirectory(client, config["unicum"]["cache_dir"])
    aggregator = StateAggregator(client, directory)
    return manager, directory, aggregator


def run_poll_cycle(
    manager: CredentialManager,
    aggregator: StateAggregator,
    notify: Notifier = log_notifier
) -> OfflineReport:
    """
    One monitor cycle: make sure the token is usable, then check the fleet.

    Raises:
        UpstreamError: Login or listing failed
        CacheError: Token cache unreadable
    """
    manager.ensure_credential()
    report = aggregator.check_offline()

    if report.message:
        notify(report.message)
    return report


def format_vends_report(
    report: Dict[int, List[ProductState]],
    directory: MachineDirectory,
    threshold: int
) -> str:
    """
    Plain-text rendering of a vends_over() result.

    Machines without qualifying slots are left out. Names come from the
    directory snapshot; unknown ids are shown as "#<id>".
    """
    lines = [f"Slots sold at least {threshold} times"]
    for machine_id, products in report.items():
        if not products:
            continue
        name = directory.machine_name(machine_id) or f"#{machine_id}"
        lines.append(f"{name}:")
        for product in products:
            lines.append(f" - x{product.vends} [{product.selection}] {product.name}")
    return "\n".join(lines)


def format_cash_report(amounts: Dict[int, float], directory: MachineDirectory) -> str:
    lines = ["Banknote totals"]
    for machine_id, amount in amounts.items():
        name = directory.machine_name(machine_id) or f"#{machine_id}"
        lines.append(f"{name}: {amount:.2f}")
    return "\n".join(lines)


def run_fleet_poller(
    config: dict,
    manager: CredentialManager,
    aggregator: StateAggregator,
    notify: Notifier = log_notifier,
    sleep: Callable[[float], None] = time.sleep
):
    """
    Main loop for the poller service.

    Args:
        config: Configuration dict (uses poller.interval_minutes)
        manager: Credential manager (already initialised)
        aggregator: Report builder
        notify: Callable receiving offline alerts
        sleep: Delay function between cycles
    """
    global shutdown_requested

    interval_seconds = config["poller"]["interval_minutes"] * 60
    cycles = 0
    consecutive_failures = 0

    logger.info("=" * 60)
    logger.info("FLEET POLLER STARTING")
    logger.info(f"Poll interval: {interval_seconds}s")
    logger.info(f"Cache directory: {config['unicum']['cache_dir']}")
    logger.info("=" * 60)

    while not shutdown_requested:
        cycles += 1
        try:
            report = run_poll_cycle(manager, aggregator, notify)
            consecutive_failures = 0
            if report.all_online:
                logger.info(f"Cycle {cycles}: all machines online")
        except (UpstreamError, CacheError) as e:
            consecutive_failures += 1
            logger.error(f"Cycle {cycles} failed ({consecutive_failures} in a row): {e}")

        if shutdown_requested:
            break
        sleep(interval_seconds)

    logger.info("Fleet poller stopped")


def main():
    """Entry point for the fleet poller service."""
    parser = argparse.ArgumentParser(
        description="Unicum vending fleet monitor",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m services.fleet_poller.main              Run the poll loop
  python -m services.fleet_poller.main --once       Run one cycle and exit
  python -m services.fleet_poller.main --vends 5    Print slots with >= 5 vends
  python -m services.fleet_poller.main --cash       Print banknote totals
        """
    )
    parser.add_argument(
        "--config", "-c",
        default=DEFAULT_CONFIG_PATH,
        help=f"Path to optional settings file (default: {DEFAULT_CONFIG_PATH})"
    )
    parser.add_argument("--once", action="store_true", help="Run a single poll cycle and exit")
    parser.add_argument(
        "--vends",
        type=int,
        nargs="?",
        const=-1,
        help="Print slots sold at least N times (default: configured threshold) and exit"
    )
    parser.add_argument("--cash", action="store_true", help="Print banknote totals and exit")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable DEBUG logging")
    args = parser.parse_args()

    try:
        config = ConfigLoader(args.config).load_config()
    except ConfigurationError as e:
        print(f"Configuration Error: {e}", file=sys.stderr)
        sys.exit(1)

    if args.verbose:
        config["logging"]["log_level"] = "DEBUG"
    setup_logging(config)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        manager, directory, aggregator = build_components(config)
    except ConfigurationError as e:
        logger.error(f"Configuration Error: {e}")
        sys.exit(1)

    try:
        manager.init()

        if args.vends is not None:
            threshold = config["poller"]["vends_threshold"] if args.vends < 0 else args.vends
            print(format_vends_report(aggregator.vends_over(threshold), directory, threshold))
        elif args.cash:
            print(format_cash_report(aggregator.cash_amounts(), directory))
        elif args.once:
            run_poll_cycle(manager, aggregator)
        else:
            run_fleet_poller(config, manager, aggregator)
    except (UpstreamError, CacheError) as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
