#!/usr/bin/env python3
"""
Multi-Wallet Swap Bot
=====================
Repeats token swaps through a router for every configured account and
route.

Usage:
    python bot.py                       # defaults: 0.003, 2 swaps, 3000ms
    python bot.py 0.01 5 10000          # amount, swaps per route, delay (ms)
    python bot.py --config bot.yaml --env-file .env

Accounts, router and routes come from the environment (or .env / YAML):
    RPC_URL, PRIVATE_KEYS, ROUTER_ADDRESS, ROUTES=tokenIn>tokenOut,...
"""

import sys
import time
import argparse
from pathlib import Path
from dataclasses import dataclass, field
from typing import Callable, Dict, Any, List, Optional

from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich import box

from chain_client import ChainClient
from config import Config, ConfigManager, DEFAULT_CONFIG
from routes import Route, parse_routes
from swapper import AttemptResult, SwapOrchestrator, SwapOutcome
from wallet import SwapAccount, load_accounts
from utils import (
    logger,
    setup_logging,
    ConfigurationError,
    SwapBotError,
    format_address,
    format_duration_ms,
)

console = Console()

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_CONFIG = 2
EXIT_INTERRUPTED = 130


@dataclass
class RunStats:
    """Outcome counters for one run."""
    total_attempts: int = 0
    confirmed: int = 0
    failed: int = 0
    submission_errors: int = 0
    skipped: int = 0
    account_stats: Dict[str, Dict[str, int]] = field(default_factory=dict)

    @property
    def success_rate(self) -> float:
        submitted = self.total_attempts - self.skipped
        if submitted == 0:
            return 0.0
        return (self.confirmed / submitted) * 100

    def record(self, result: AttemptResult):
        self.total_attempts += 1
        if result.outcome is SwapOutcome.CONFIRMED:
            self.confirmed += 1
        elif result.outcome is SwapOutcome.FAILED:
            self.failed += 1
        elif result.outcome is SwapOutcome.SUBMISSION_ERROR:
            self.submission_errors += 1
        else:
            self.skipped += 1

        per_account = self.account_stats.setdefault(
            result.account, {outcome.value: 0 for outcome in SwapOutcome}
        )
        per_account[result.outcome.value] += 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total_attempts': self.total_attempts,
            'confirmed': self.confirmed,
            'failed': self.failed,
            'submission_errors': self.submission_errors,
            'skipped': self.skipped,
            'success_rate': self.success_rate,
            'account_stats': self.account_stats,
        }


class SwapRunner:
    """
    Drives accounts x routes x swap_count through the orchestrator.

    Attempts run one at a time in configured order. The configured delay is
    applied after every attempt, the last one included.
    """

    def __init__(
        self,
        config: Config,
        orchestrator: SwapOrchestrator,
        accounts: List[SwapAccount],
        routes: List[Route],
        sleep: Callable[[float], None] = time.sleep
    ):
        self.config = config
        self.orchestrator = orchestrator
        self.accounts = accounts
        self.routes = routes
        self._sleep = sleep
        self.stats = RunStats()

    def run(self) -> RunStats:
        """Execute every attempt; fatal read errors propagate to the caller."""
        delay_seconds = self.config.delay_ms / 1000
        swap_count = self.config.swap_count

        for account in self.accounts:
            logger.info(f"🔐 Account: {account.address}")

            for route in self.routes:
                for iteration in range(swap_count):
                    logger.info(
                        f"🚀 Swap {route.token_in} -> {route.token_out} "
                        f"#{iteration + 1}/{swap_count}"
                    )
                    result = self.orchestrator.execute_attempt(account, route, iteration)
                    self.stats.record(result)
                    self._sleep(delay_seconds)

        return self.stats


def get_stats_table(stats: RunStats) -> Table:
    """Rich table summarising a run."""
    table = Table(title="Swap Run Statistics", box=box.ROUNDED)

    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Attempts", str(stats.total_attempts))
    table.add_row("Confirmed", str(stats.confirmed))
    table.add_row("Failed", str(stats.failed))
    table.add_row("Submission Errors", str(stats.submission_errors))
    table.add_row("Skipped (balance)", str(stats.skipped))
    table.add_row("Success Rate", f"{stats.success_rate:.1f}%")

    return table


def print_banner(config: Config, accounts: List[SwapAccount], routes: List[Route]):
    console.print(Panel.fit(
        "[bold cyan]🔁 Multi-Wallet Swap Bot[/bold cyan]",
        box=box.DOUBLE
    ))
    console.print(f"\n[bold cyan]⚙️  Configuration[/bold cyan]")
    console.print(f"  Amount: {config.amount}")
    console.print(f"  Swaps/Route: {config.swap_count}")
    console.print(f"  Delay: {format_duration_ms(config.delay_ms)}")
    console.print(f"  Router: {format_address(config.router_address)}")
    console.print(f"  Accounts: {len(accounts)}")
    for route in routes:
        console.print(f"  Route: {route}")
    console.print()


def positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected an integer, got {value!r}")
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def non_negative_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected an integer, got {value!r}")
    if number < 0:
        raise argparse.ArgumentTypeError(f"must not be negative, got {number}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Repeated token swaps across wallets and routes",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # 2 swaps of 0.003 per route, 3s apart
  python bot.py

  # 5 swaps of 0.01 per route, 10s apart
  python bot.py 0.01 5 10000

  # Write an example YAML config
  python bot.py --init-config bot.yaml
        """
    )
    parser.add_argument('amount', nargs='?', help='Swap amount in token units (default: 0.003)')
    parser.add_argument('count', nargs='?', type=positive_int, help='Swaps per route (default: 2)')
    parser.add_argument('delay', nargs='?', type=non_negative_int, help='Delay between swaps in ms (default: 3000)')
    parser.add_argument('--config', type=Path, help='Path to YAML config')
    parser.add_argument('--env-file', type=Path, help='Path to .env file (default: search for .env)')
    parser.add_argument('--log-level', choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'], help='Log level')
    parser.add_argument('--log-file', help='Plain-text log file')
    parser.add_argument('--json-log', help='JSON-lines log file')
    parser.add_argument('--init-config', type=Path, metavar='PATH', help='Write an example YAML config and exit')
    return parser


def init_config_command(path: Path) -> int:
    if path.exists():
        console.print(f"[red]✗ Refusing to overwrite {path}[/red]")
        return EXIT_CONFIG
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(DEFAULT_CONFIG + "\n")
    console.print(f"[green]✓ Example config written to {path}[/green]")
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    if args.init_config:
        return init_config_command(args.init_config)

    overrides = {
        "amount": args.amount,
        "swap_count": args.count,
        "delay_ms": args.delay,
        "log_level": args.log_level,
        "log_file": args.log_file,
        "json_log_file": args.json_log,
    }

    try:
        config = ConfigManager(args.config, args.env_file).load(overrides)
        setup_logging(config.log_level, config.log_file, config.json_log_file)
        accounts = load_accounts(config.private_keys)
        routes = parse_routes(config.routes)
        client = ChainClient.connect(
            config.rpc_url,
            timeout=config.rpc_timeout_seconds,
            receipt_timeout=config.receipt_timeout_seconds,
        )
    except ConfigurationError as e:
        console.print(f"[red]✗ Configuration error: {e}[/red]")
        return EXIT_CONFIG

    print_banner(config, accounts, routes)

    orchestrator = SwapOrchestrator.from_config(client, config)
    runner = SwapRunner(config, orchestrator, accounts, routes)

    try:
        stats = runner.run()
    except KeyboardInterrupt:
        console.print("\n[yellow]⚠ Stopped by user[/yellow]")
        console.print(get_stats_table(runner.stats))
        return EXIT_INTERRUPTED
    except SwapBotError as e:
        logger.critical(f"Fatal error: {e}")
        console.print(get_stats_table(runner.stats))
        return EXIT_FATAL

    console.print(get_stats_table(stats))
    console.print("[bold green]✅ Run complete[/bold green]")
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
