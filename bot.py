#!/usr/bin/env python3
"""
R2 Testnet Bot
==============
Interactive bot that drives every configured wallet through repeated swaps,
liquidity additions or liquidity removals on the R2 Sepolia deployment.

Flow: pick an action, pick percentage / count / delay, pick the swap
direction or liquidity pair, then run each wallet in turn. Wallets and
iterations are strictly sequential; a delay follows only successful,
non-final iterations.

Usage:
    python bot.py
    python bot.py --config bot_config.yaml --keys-file .env
    python bot.py --init-config
"""

import sys
import html
import asyncio
import argparse
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Awaitable, Callable, List, Optional, Sequence

import yaml
from web3 import Web3
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich.prompt import Prompt, IntPrompt
from rich import box

from config import Config, ConfigManager
from contracts import Deployment, LiquidityPair, Token, R2_SEPOLIA
from logging_utils import MetricsCollector, print_metrics_summary
from notifier import TelegramNotifier
from tokens import TokenInspector
from trader import ActionExecutor, ActionResult
from utils import (
    console,
    logger,
    setup_logging,
    ConfigError,
    format_units,
    format_fixed,
    format_duration,
)
from venues import LiquidityVenue, UniswapV2Venue, venue_for
from wallet import WalletAccount, load_private_keys, connect, build_accounts


PERCENT_RANGE = (5, 100)
COUNT_RANGE = (1, 100)
DELAY_RANGE = (5, 100)

LP_BALANCE_PLACES = 20

EXIT_CHOICE = "Exit"


class ActionKind(Enum):
    SWAP = "SWAP R2 <-> USDC"
    ADD_LIQUIDITY = "ADD LIQUIDITY"
    REMOVE_LIQUIDITY = "REMOVE LIQUIDITY"


class Stage(Enum):
    SELECT_ACTION = "select_action"
    SELECT_PARAMETERS = "select_parameters"
    SELECT_TARGET = "select_target"
    EXECUTING = "executing"
    DONE = "done"


@dataclass(frozen=True)
class ActionRequest:
    """Everything the operator chose for this run."""
    kind: ActionKind
    percentage: int
    count: int
    delay_seconds: int
    token_in: Optional[Token] = None
    token_out: Optional[Token] = None
    pair: Optional[LiquidityPair] = None

    def __post_init__(self):
        for name, value, (low, high) in (
            ("percentage", self.percentage, PERCENT_RANGE),
            ("count", self.count, COUNT_RANGE),
            ("delay_seconds", self.delay_seconds, DELAY_RANGE),
        ):
            if not low <= value <= high:
                raise ValueError(f"{name} must be between {low} and {high}, got {value}")

        if self.kind is ActionKind.SWAP and (self.token_in is None or self.token_out is None):
            raise ValueError("Swap requires a direction")
        if self.kind is not ActionKind.SWAP and self.pair is None:
            raise ValueError(f"{self.kind.value} requires a liquidity pair")


class Prompter:
    """Console prompts. Re-asks until the answer is valid."""

    def __init__(self, console: Console):
        self.console = console

    def choose(self, message: str, options: Sequence[str]) -> str:
        self.console.print(f"\n[bold cyan]{message}[/bold cyan]")
        for number, option in enumerate(options, start=1):
            self.console.print(f"  {number}. {option}")
        answer = Prompt.ask(
            "Select",
            choices=[str(n) for n in range(1, len(options) + 1)],
            console=self.console
        )
        return options[int(answer) - 1]

    def ask_int(self, message: str, low: int, high: int) -> int:
        while True:
            value = IntPrompt.ask(message, console=self.console)
            if low <= value <= high:
                return value
            self.console.print(f"[red]Enter a number between {low} and {high}.[/red]")


class R2Bot:
    """Interactive orchestrator: prompts once, then runs every wallet."""

    def __init__(
        self,
        config: Config,
        deployment: Deployment,
        web3: Web3,
        accounts: List[WalletAccount],
        notifier: TelegramNotifier,
        prompter: Optional[Prompter] = None,
        inspector: Optional[TokenInspector] = None,
        executor: Optional[ActionExecutor] = None,
        sleep: Callable[[float], Awaitable] = asyncio.sleep,
        console: Console = console
    ):
        self.config = config
        self.deployment = deployment
        self.web3 = web3
        self.accounts = accounts
        self.notifier = notifier
        self.console = console
        self.prompter = prompter or Prompter(console)
        self.inspector = inspector or TokenInspector(web3, deployment)
        self.executor = executor or ActionExecutor(config, self.inspector, notifier)
        self.sleep = sleep
        self.metrics = MetricsCollector()
        self.stage = Stage.SELECT_ACTION

    # Display

    def print_banner(self):
        addresses = ", ".join(a.address for a in self.accounts)
        self.console.print(Panel.fit(
            "[bold green]R2 Money Auto Transaction Bot[/bold green]\n"
            "[dim]Sepolia testnet | swaps and liquidity[/dim]",
            box=box.DOUBLE
        ))
        self.console.print(f"[cyan]Wallet Addresses: {addresses}[/cyan]")

    def display_balances(self, account: WalletAccount):
        table = Table(title=f"Token Balances for {account.address}", box=box.ROUNDED)
        table.add_column("Token", style="cyan")
        table.add_column("Balance", style="yellow", justify="right")

        for token in self.deployment.tokens.values():
            info = self.inspector.inspect(token.address, account.address)
            table.add_row(token.symbol, format_units(info.balance, info.decimals))

        for pair in self.deployment.pairs.values():
            info = self.inspector.inspect(pair.lp_token, account.address)
            if pair.staked_hint and info.balance == 0:
                balance = pair.staked_hint
            else:
                balance = format_fixed(info.balance, info.decimals, places=LP_BALANCE_PLACES)
            table.add_row(pair.balance_label, balance)

        self.console.print(table)

    def print_request(self, request: ActionRequest):
        self.console.print("[cyan]Transaction Configuration:[/cyan]")
        self.console.print(f"  Token Percentage: [yellow]{request.percentage}%[/yellow]")
        self.console.print(f"  Transactions per Wallet: [yellow]{request.count}[/yellow]")
        self.console.print(f"  Delay Between Transactions: [yellow]{format_duration(request.delay_seconds)}[/yellow]")
        if request.kind is ActionKind.SWAP:
            self.console.print(f"  Direction: [yellow]{request.token_in.symbol} -> {request.token_out.symbol}[/yellow]")
        else:
            self.console.print(f"  Pair: [yellow]{request.pair.name}[/yellow]")

    # Prompts

    def select_request(self) -> Optional[ActionRequest]:
        """Walk the prompt stages; None when the operator chose to exit."""
        self.stage = Stage.SELECT_ACTION
        options = [kind.value for kind in ActionKind] + [EXIT_CHOICE]
        choice = self.prompter.choose("Choose transaction type:", options)
        if choice == EXIT_CHOICE:
            self.stage = Stage.DONE
            return None
        kind = ActionKind(choice)

        self.stage = Stage.SELECT_PARAMETERS
        percentage = self.prompter.ask_int("Enter token percentage to use (5-100%)", *PERCENT_RANGE)
        count = self.prompter.ask_int("Enter number of transactions to run per wallet (1-100)", *COUNT_RANGE)
        delay = self.prompter.ask_int("Enter delay between transactions in seconds (5-100)", *DELAY_RANGE)

        self.stage = Stage.SELECT_TARGET
        if kind is ActionKind.SWAP:
            first, second = (self.deployment.token(s) for s in self.deployment.swap_symbols)
            directions = {
                f"{first.symbol} -> {second.symbol}": (first, second),
                f"{second.symbol} -> {first.symbol}": (second, first),
            }
            direction = self.prompter.choose("Choose swap direction:", list(directions))
            token_in, token_out = directions[direction]
            return ActionRequest(kind, percentage, count, delay, token_in=token_in, token_out=token_out)

        pair_name = self.prompter.choose(f"Choose pair for {kind.value}:", list(self.deployment.pairs))
        return ActionRequest(kind, percentage, count, delay, pair=self.deployment.pair(pair_name))

    # Execution

    def build_action(self, request: ActionRequest) -> Callable[[WalletAccount], Awaitable[ActionResult]]:
        """Bind the request to one executor call; the venue is chosen here, once."""
        if request.kind is ActionKind.SWAP:
            router = UniswapV2Venue(self.web3, self.deployment.swap_router)
            return lambda account: self.executor.swap(
                account, router, request.token_in, request.token_out, request.percentage
            )

        venue: LiquidityVenue = venue_for(request.pair, self.web3)
        if request.kind is ActionKind.ADD_LIQUIDITY:
            return lambda account: self.executor.add_liquidity(
                account, request.pair, venue, request.percentage
            )
        return lambda account: self.executor.remove_liquidity(
            account, request.pair, venue, request.percentage
        )

    async def run_wallet(
        self,
        account: WalletAccount,
        action: Callable[[WalletAccount], Awaitable[ActionResult]],
        request: ActionRequest
    ) -> int:
        """Run ``request.count`` iterations for one wallet; returns the success count."""
        self.console.print(f"\n[bold white on cyan] Processing Wallet: {account.address} [/bold white on cyan]")
        success_count = 0

        for i in range(request.count):
            self.console.print(
                f"\n[bold cyan]=== Transaction #{i + 1} / {request.count} for Wallet {account.address} ===[/bold cyan]"
            )
            metric = self.metrics.start(request.kind.value, account.address)
            try:
                result = await action(account)
            except Exception as e:
                logger.error(f"Transaction #{i + 1} failed for wallet {account.address}: {e}")
                self.notifier.notify(f"❌ Transaction #{i + 1} failed for wallet {account.address}: {html.escape(str(e))}")
                result = ActionResult.failed(str(e))

            metric.finalize(success=result.success, error=result.error, tx_hash=result.tx_hash)
            self.metrics.add_metric(metric)

            if result.success:
                success_count += 1
                if i < request.count - 1:
                    self.console.print(f"[dim]Waiting {request.delay_seconds} seconds before next transaction...[/dim]")
                    await self.sleep(request.delay_seconds)

        self.console.print(
            f"\n[cyan]Wallet {account.address} completed {success_count} of {request.count} transactions.[/cyan]"
        )
        return success_count

    async def execute(self, request: ActionRequest) -> int:
        """Run every wallet in order; returns the total success count."""
        self.stage = Stage.EXECUTING
        action = self.build_action(request)
        total = 0
        for account in self.accounts:
            total += await self.run_wallet(account, action, request)
        return total

    async def run(self) -> int:
        """Full interactive session. Returns the process exit status."""
        self.print_banner()
        self.notifier.notify(
            "🚀 Script Started\n"
            f"👛 Wallets: {', '.join(a.address for a in self.accounts)}\n"
            f"🔑 Number of Wallets: {len(self.accounts)}"
        )

        for account in self.accounts:
            self.display_balances(account)

        request = self.select_request()
        if request is None:
            self.console.print("[cyan]Goodbye![/cyan]")
            self.notifier.notify("👋 Script terminated by user.")
            return 0

        self.print_request(request)
        await self.execute(request)
        self.stage = Stage.DONE

        self.console.print("\n[bold green]All requested transactions completed![/bold green]")
        self.notifier.notify(f"🎉 All transactions completed. Processed {len(self.accounts)} wallets.")
        print_metrics_summary(self.metrics, self.console)

        for account in self.accounts:
            self.display_balances(account)
        return 0


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="R2 Testnet Bot (Sepolia)")
    parser.add_argument('--config', default='./bot_config.yaml', help='Path to YAML bot config')
    parser.add_argument('--keys-file', help='Key file with PRIVATE_KEY=0x... lines (overrides config)')
    parser.add_argument('--log-level', choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Log level (overrides config)')
    parser.add_argument('--init-config', action='store_true',
                        help='Write the default config file and exit')
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    manager = ConfigManager(Path(args.config))

    if args.init_config:
        return 0 if manager.write_default() else 1

    try:
        config = manager.load_config()
    except (OSError, ValueError, yaml.YAMLError) as e:
        logger.error(f"Error loading config {args.config}: {e}")
        return 1

    if args.keys_file:
        config.keys_file = args.keys_file
    if args.log_level:
        config.log_level = args.log_level
    setup_logging(config.log_level, config.log_file)

    notifier = TelegramNotifier(
        config.telegram_bot_token,
        config.telegram_chat_id,
        timeout=config.notification_timeout
    )
    if not config.notifications_enabled:
        logger.info("Telegram notifications disabled (telegram_bot_token / telegram_chat_id not set)")

    try:
        keys = load_private_keys(config.keys_file)
        web3 = connect(config.rpc_url)
        accounts = build_accounts(keys, web3)
    except ConfigError as e:
        logger.error(str(e))
        return 1

    bot = R2Bot(config, R2_SEPOLIA, web3, accounts, notifier)
    try:
        return asyncio.run(bot.run())
    except KeyboardInterrupt:
        console.print("\n[yellow]Bot stopped by user[/yellow]")
        return 130
    except Exception as e:
        logger.exception(f"Fatal Error: {e}")
        notifier.notify(f"❌ Fatal Error: {html.escape(str(e))}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
