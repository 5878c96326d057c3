#!/usr/bin/env python3
"""
Spot Grid Trading - Live Runner

Places a buy at every grid level, pairs each filled buy with a sell one
grid-profit higher, re-arms the buy when the sell fills, and cancels
everything on shutdown.

Usage:
    python run_live.py --config config/grid.example.yaml
    python run_live.py --lower 40000 --upper 42000 --grids 3 --investment 300 --dry-run
"""

import argparse
import os
import signal
import sys
from dataclasses import replace
from datetime import datetime
from pathlib import Path

from dotenv import load_dotenv

from exchange.bitget import BitgetClient
from spotgrid.audit.journal import AuditJournal
from spotgrid.config.loader import load_config, save_config_snapshot
from spotgrid.config.schema import AppConfig
from spotgrid.exceptions import ExchangeError, InvalidConfiguration
from spotgrid.execution.sim_exchange import SimExchange
from spotgrid.models.snapshot import RunSnapshot
from spotgrid.runtime.controller import StrategyController
from spotgrid.runtime.event_loop import PollingLoop
from spotgrid.utils.symbols import split_symbol
from spotgrid.utils.timeutils import generate_session_id


STATUS_INTERVAL_SECONDS = 60.0


def build_config(args: argparse.Namespace) -> AppConfig:
    """Load YAML config (if given) and apply command-line overrides."""
    config = load_config(args.config) if args.config else AppConfig()

    overrides = {
        "symbol": args.symbol,
        "lower_price": args.lower,
        "upper_price": args.upper,
        "grid_count": args.grids,
        "investment": args.investment,
        "profit_per_grid": args.profit,
    }
    overrides = {k: v for k, v in overrides.items() if v is not None}
    if overrides:
        config = replace(config, grid=replace(config.grid, **overrides))

    if args.dry_run:
        config = replace(config, exchange=replace(config.exchange, dry_run=True))
    if args.output_dir:
        config = replace(config, runtime=replace(config.runtime, output_dir=args.output_dir))

    return config


def create_client(config: AppConfig):
    """
    Create the exchange client.

    Dry-run uses a SimExchange driven by live Bitget prices (public API,
    no credentials needed). Live trading requires credentials.
    """
    timeout_ms = config.exchange.request_timeout_ms
    market_type = config.exchange.market_type

    if config.exchange.dry_run:
        public_client = BitgetClient(market_type=market_type, timeout_ms=timeout_ms)
        _, quote = split_symbol(config.grid.symbol)
        return SimExchange(
            quote_balance=config.exchange.sim_quote_balance,
            quote_asset=quote,
            price_source=public_client.get_last_price,
        )

    api_key = os.getenv("BITGET_API_KEY")
    api_secret = os.getenv("BITGET_API_SECRET")
    passphrase = os.getenv("BITGET_PASSPHRASE")

    if not all([api_key, api_secret, passphrase]):
        print("\n[ERROR] Missing API credentials!")
        print("Please check your .env file contains:")
        print("  BITGET_API_KEY")
        print("  BITGET_API_SECRET")
        print("  BITGET_PASSPHRASE")
        print("Or run with --dry-run")
        sys.exit(1)

    return BitgetClient(
        api_key,
        api_secret,
        passphrase,
        market_type=market_type,
        timeout_ms=timeout_ms,
    )


def print_status(snapshot: RunSnapshot, show_levels: bool = False) -> None:
    """Print current status."""
    print(f"\n{'=' * 80}")
    print(f"[{snapshot.timestamp.strftime('%Y-%m-%d %H:%M:%S')}] {snapshot.symbol} Status")
    print(f"{'=' * 80}")
    print(f"State: {snapshot.state.name} | Health: {snapshot.health.name}")

    if snapshot.ticker:
        print(f"Last Price: ${snapshot.ticker.last:,.2f} ({snapshot.ticker.change_24h:+.2f}% 24h)")

    for balance in snapshot.balances:
        print(f"Balance {balance.coin}: {balance.available:,.6f} available, {balance.frozen:,.6f} frozen")

    stats = snapshot.stats
    print(f"Active Orders: {stats.buy_orders} buy, {stats.sell_orders} sell")
    print(f"Fills: {stats.fills} | Completed Cycles: {stats.completed_cycles}")

    if stats.pending_levels:
        print(f"Pending Retry: {stats.pending_levels} levels")
    if snapshot.last_error:
        print(f"Last Error: {snapshot.last_error}")

    if show_levels and snapshot.levels:
        df = snapshot.to_frame()
        print()
        print(df[["price", "fill_state", "buy_order_ref", "sell_order_ref", "last_error"]].to_string())

    print(f"{'=' * 80}\n")


def main():
    """Main entry point."""
    # Load environment variables from .env file
    load_dotenv()

    parser = argparse.ArgumentParser(description="Spot Grid Trading")
    parser.add_argument("--config", type=str, default=None, help="YAML config file")
    parser.add_argument("--symbol", type=str, default=None, help="Trading symbol (e.g. BTCUSDT)")
    parser.add_argument("--lower", type=float, default=None, help="Lower price")
    parser.add_argument("--upper", type=float, default=None, help="Upper price")
    parser.add_argument("--grids", type=int, default=None, help="Grid count")
    parser.add_argument("--investment", type=float, default=None, help="Investment (quote)")
    parser.add_argument("--profit", type=float, default=None, help="Profit per grid (%%)")
    parser.add_argument("--dry-run", action="store_true", help="Dry run mode (simulated fills on live prices)")
    parser.add_argument("--output-dir", type=str, default=None, help="Audit output directory")

    args = parser.parse_args()

    config = build_config(args)
    session_id = generate_session_id()
    output_dir = Path(config.runtime.output_dir) / session_id

    print(f"\n{'=' * 80}")
    print(f"Spot Grid Trader - {'DRY RUN' if config.exchange.dry_run else 'LIVE TRADING'}")
    print(f"{'=' * 80}")
    print(f"Exchange: {config.exchange.exchange} ({config.exchange.market_type})")
    print(f"Symbol: {config.grid.symbol}")
    print(f"Range: ${config.grid.lower_price:,.2f} - ${config.grid.upper_price:,.2f}")
    print(f"Grids: {config.grid.grid_count} | Investment: ${config.grid.investment:,.2f}")
    print(f"Profit per grid: {config.grid.profit_per_grid}%")
    print(f"Output: {output_dir}")
    print(f"{'=' * 80}\n")

    try:
        client = create_client(config)
    except ExchangeError as e:
        print(f"[ERROR] Cannot connect to exchange: {e}")
        sys.exit(1)

    with AuditJournal(str(output_dir)) as journal:
        save_config_snapshot(config, str(output_dir / "config_snapshot.yaml"))

        controller = StrategyController.from_app_config(
            config,
            client,
            audit_journal=journal,
            session_id=session_id,
        )

        try:
            controller.start()
        except InvalidConfiguration as e:
            print("\n[ERROR] Invalid configuration:")
            for error in e.errors:
                print(f"  - {error}")
            sys.exit(2)

        loop = PollingLoop(controller)

        def handle_signal(signum, frame):
            print(f"\n[STOP] Received signal {signum}")
            loop.stop(timeout=0)

        signal.signal(signal.SIGINT, handle_signal)
        signal.signal(signal.SIGTERM, handle_signal)

        loop.start_background()

        status_count = 0
        try:
            while not loop.wait(STATUS_INTERVAL_SECONDS):
                if not loop.is_running:
                    break
                status_count += 1
                print_status(controller.snapshot(), show_levels=status_count % 10 == 0)
        finally:
            loop.stop()
            print("\n[CLEANUP] Cancelling all orders...")
            report = controller.stop()
            for error in report.errors:
                print(f"  [WARN] {error}")
            print_status(controller.snapshot(), show_levels=True)
            print(f"[{datetime.now().strftime('%H:%M:%S')}] Audit events: {journal.event_count}")


if __name__ == "__main__":
    main()
