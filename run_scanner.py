#!/usr/bin/env python3
"""
Cross-DEX arbitrage scanner CLI.

Scans the configured pair across V2-style exchanges on a fixed interval,
stores every simulated direction in SQLite and serves the read API.

Usage:
    python3 run_scanner.py run
    python3 run_scanner.py --config configs/polygon_weth_usdc.yaml run --once
    python3 run_scanner.py serve
    python3 run_scanner.py check
    python3 run_scanner.py analyze --csv data
    python3 run_scanner.py clean-db --days 30
"""

import argparse
import asyncio
import signal
import sys
from dataclasses import replace
from typing import Optional

import uvicorn
from dotenv import load_dotenv

import logging_config
from dex.adapters import Web3PoolStateSource, connect_web3
from dex.analysis import build_report, export_profitable_csv, format_report
from dex.config import DEFAULT_CONFIG_PATH, ScannerConfig, load_config
from dex.runner import ScanScheduler, build_orchestrator
from dex.setup_check import format_check_results, run_setup_check
from dex.store import ResultStore
from pair_arbitrage.exceptions import PairArbitrageError
from pair_arbitrage.utils import get_current_timestamp_ms, get_logger, utc_today
from pair_arbitrage.version import __version__
from web_server import build_server, create_app

logger = get_logger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Cross-DEX pair arbitrage scanner",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Scan and serve the API on the configured port
  python3 run_scanner.py run

  # Single scan (for testing/CI)
  python3 run_scanner.py run --once

  # Verify the setup before the first run
  python3 run_scanner.py check

  # Performance report with CSV export
  python3 run_scanner.py analyze --csv data
        """,
    )

    parser.add_argument(
        "--config",
        default=DEFAULT_CONFIG_PATH,
        help=f"Path to config YAML file (default: {DEFAULT_CONFIG_PATH})",
    )
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument(
        "--debug", action="store_true", help="Verbose logging (per-direction spreads)"
    )
    verbosity.add_argument(
        "--quiet", action="store_true", help="Only log warnings and errors"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser("run", help="Start the periodic scanner")
    run.add_argument(
        "--once",
        action="store_true",
        help="Run a single scan pass and exit (overrides config setting)",
    )
    run.add_argument(
        "--no-api", action="store_true", help="Do not serve the read API alongside the scanner"
    )

    subparsers.add_parser("serve", help="Serve the read API only")
    subparsers.add_parser(
        "check", help="Verify RPC, token addresses, pair contracts and the database"
    )

    analyze = subparsers.add_parser("analyze", help="Print a performance report")
    analyze.add_argument(
        "--limit", type=int, default=1000, help="Recent scan records to analyze (default: 1000)"
    )
    analyze.add_argument(
        "--csv", metavar="DIR", help="Export profitable opportunities to a CSV file in DIR"
    )

    clean = subparsers.add_parser("clean-db", help="Delete old scan records and price feeds")
    clean.add_argument(
        "--days", type=int, default=30, help="Keep this many days of data (default: 30)"
    )

    return parser.parse_args(argv)


async def record_settings(store: ResultStore, config: ScannerConfig) -> None:
    """Store the effective tunables in the bot_config table."""
    settings = [
        ("bot_version", __version__, "Bot version"),
        ("pair", config.pair_name, "Scanned pair"),
        ("min_profit_threshold", config.min_profit_threshold, "Minimum profit threshold in USD"),
        ("trade_amount", config.trade_size, "Base asset amount simulated per direction"),
        ("gas_usd_estimate", config.gas_usd_per_leg, "Gas cost per swap in USD"),
        ("poll_interval_ms", int(config.poll_interval_sec * 1000), "Polling interval in milliseconds"),
    ]
    for key, value, description in settings:
        await store.set_config_value(key, str(value), description)


async def run_scan_loop(config: ScannerConfig, serve_api: bool) -> None:
    """Run the scheduler (and optionally the API) until SIGINT/SIGTERM."""
    source = Web3PoolStateSource(connect_web3(config.require_rpc_url()))

    async with ResultStore(config.db_path) as store:
        await record_settings(store, config)

        orchestrator = build_orchestrator(config, source, store)
        scheduler = ScanScheduler(orchestrator, config.poll_interval_sec, once=config.once)

        server = None
        if serve_api and not config.once:
            server = build_server(create_app(config, store), config.api_host, config.api_port)
            logger.info(f"API listening on http://{config.api_host}:{config.api_port}")

        def shutdown() -> None:
            scheduler.stop()
            if server is not None:
                server.should_exit = True

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, shutdown)
            except NotImplementedError:
                # Windows event loops have no signal handlers; Ctrl+C raises instead
                pass

        async def serve_api_until_exit() -> None:
            # uvicorn may take over SIGINT while serving; stop scanning when it exits
            await server.serve()
            scheduler.stop()

        jobs = [scheduler.run_forever()]
        if server is not None:
            jobs.append(serve_api_until_exit())
        await asyncio.gather(*jobs)


async def analyze(config: ScannerConfig, limit: int, csv_dir: Optional[str]) -> None:
    async with ResultStore(config.db_path) as store:
        scans = await store.recent_scans(limit)
        daily = await store.daily_summary(7)

    report = build_report(scans, daily, now_ms=get_current_timestamp_ms())
    print("\nARBITRAGE SCANNER PERFORMANCE ANALYSIS\n")
    print(format_report(report))

    if csv_dir:
        path = export_profitable_csv(scans, csv_dir, utc_today())
        print(f"\nExported {report.profitable_scans} profitable opportunities to: {path}")


async def clean_db(config: ScannerConfig, days: int) -> int:
    async with ResultStore(config.db_path) as store:
        return await store.clean_old_data(days)


def main(argv=None) -> int:
    """
    Main entry point.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    load_dotenv()
    args = parse_args(argv)

    if args.debug:
        logging_config.setup_debug()
    elif args.quiet:
        logging_config.setup_minimal()
    else:
        logging_config.setup()

    try:
        config = load_config(args.config)
    except PairArbitrageError as e:
        print(f"❌ Config error: {e}", file=sys.stderr)
        return 1

    try:
        if args.command == "run":
            if args.once:
                config = replace(config, once=True)
            asyncio.run(run_scan_loop(config, serve_api=not args.no_api))

        elif args.command == "serve":
            uvicorn.run(create_app(config), host=config.api_host, port=config.api_port)

        elif args.command == "check":
            print("\n🧪 TESTING ARBITRAGE SCANNER SETUP\n")
            results = asyncio.run(run_setup_check(config))
            print(format_check_results(results))
            if not all(r.ok for r in results):
                return 1

        elif args.command == "analyze":
            asyncio.run(analyze(config, args.limit, args.csv))

        elif args.command == "clean-db":
            removed = asyncio.run(clean_db(config, args.days))
            print(f"✅ Removed {removed} records older than {args.days} days")

    except KeyboardInterrupt:
        print("\n\n⏸ Stopped by user")
        return 0
    except (PairArbitrageError, ValueError) as e:
        print(f"❌ {args.command} failed: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
