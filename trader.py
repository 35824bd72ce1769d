"""
Trading Logic Module

Swap, add-liquidity and remove-liquidity actions for one wallet.

Every action follows the same pipeline: read balances, size the amount as a
percentage of the balance, make sure the venue is approved, derive a
slippage-protected minimum, submit with a fixed gas limit, wait for the
receipt, then log and notify. A failure at any step ends the action with a
failed ``ActionResult``; nothing here raises to the caller.
"""

import html
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

from config import Config
from contracts import LiquidityPair, Token
from notifier import TelegramNotifier
from tokens import TokenInspector
from utils import logger, percentage_of, apply_slippage, format_units, tx_url
from venues import LiquidityVenue, UniswapV2Venue
from wallet import WalletAccount


@dataclass
class ActionResult:
    """Result of a single action attempt."""
    success: bool
    tx_hash: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def failed(cls, error: str) -> "ActionResult":
        return cls(success=False, error=error)


class ActionExecutor:
    """
    Executes the three DEX actions against the R2 deployment.

    The notifier is fire-and-forget: its return value is ignored so a
    delivery problem can never turn a successful action into a failure.
    """

    def __init__(
        self,
        config: Config,
        inspector: TokenInspector,
        notifier: TelegramNotifier,
        clock: Callable[[], float] = time.time
    ):
        self.config = config
        self.inspector = inspector
        self.notifier = notifier
        self.clock = clock

    def _deadline(self) -> int:
        return int(self.clock()) + self.config.deadline_seconds

    def _link(self, tx_hash: str) -> str:
        return tx_url(self.config.explorer_url, tx_hash)

    def _send(self, account: WalletAccount, call, gas_limit: Optional[int] = None) -> str:
        """Build, sign and broadcast ``call``; returns the transaction hash."""
        params = {
            'from': account.address,
            'nonce': account.get_nonce(),
        }
        if gas_limit:
            params['gas'] = gas_limit

        transaction = call.build_transaction(params)
        return account.sign_and_send(transaction)

    def _confirm(self, account: WalletAccount, tx_hash: str):
        return account.wait_for_receipt(tx_hash, timeout=self.config.receipt_timeout_seconds)

    def _approval_failed(self, action: str, account: WalletAccount, symbol: str) -> ActionResult:
        error = f"Approval of {symbol} failed"
        self.notifier.notify(f"❌ {action} failed for wallet {account.address}: {error}")
        return ActionResult.failed(error)

    async def ensure_approval(
        self,
        account: WalletAccount,
        token_address: str,
        spender: str,
        amount: int
    ) -> bool:
        """
        Make sure ``spender`` may move ``amount`` of the token.

        Skips the approval when the current allowance already covers the
        amount, otherwise approves exactly ``amount`` and waits for the
        receipt.

        Returns:
            True when the allowance is sufficient afterwards
        """
        symbol = token_address
        try:
            symbol = self.inspector.inspect(token_address, account.address).symbol
            current = self.inspector.allowance(token_address, account.address, spender)
            if current >= amount:
                logger.info(f"Approval already sufficient for {symbol} ({current}), no new approval needed")
                return True

            logger.info(f"Requesting approval for {symbol} for wallet {account.address}...")
            token = self.inspector.contract(token_address)
            tx_hash = self._send(account, token.functions.approve(spender, amount))
            logger.info(f"Sending approval transaction: {self._link(tx_hash)}")
            self._confirm(account, tx_hash)
            logger.info(f"{symbol} approval successful: {self._link(tx_hash)}")
            return True
        except Exception as e:
            logger.error(f"Failed to approve token {symbol}: {e}")
            return False

    async def swap(
        self,
        account: WalletAccount,
        venue: UniswapV2Venue,
        token_in: Token,
        token_out: Token,
        percentage: int
    ) -> ActionResult:
        """Swap ``percentage`` of the ``token_in`` balance into ``token_out``."""
        logger.info(f"Starting SWAP for wallet {account.address}...")
        info_in = self.inspector.inspect(token_in.address, account.address)
        info_out = self.inspector.inspect(token_out.address, account.address)

        if info_in.balance == 0:
            logger.warning(f"Wallet {account.address} has no {info_in.symbol} to swap")
            return ActionResult.failed(f"No {info_in.symbol} balance")

        amount_in = percentage_of(info_in.balance, percentage)
        if amount_in == 0:
            logger.warning(f"Calculated swap amount for {info_in.symbol} is zero after percentage")
            return ActionResult.failed("Swap amount is zero")

        formatted_in = format_units(amount_in, info_in.decimals)
        logger.info(f"Will swap {formatted_in} {info_in.symbol} to {info_out.symbol}")

        if not await self.ensure_approval(account, token_in.address, venue.spender, amount_in):
            return self._approval_failed("SWAP", account, info_in.symbol)

        path = [token_in.address, token_out.address]
        try:
            quoted = venue.quote_swap(amount_in, path)
            logger.info(f"Estimated swap output: {format_units(quoted, info_out.decimals)} {info_out.symbol}")
        except Exception as e:
            logger.warning(f"getAmountsOut failed, swapping without output minimum: {e}")
            quoted = 0

        amount_out_min = apply_slippage(quoted, self.config.swap_slippage_bps)
        logger.info(f"Slippage tolerance: {self.config.swap_slippage_bps / 100}% (min out {amount_out_min})")

        try:
            call = venue.swap(amount_in, amount_out_min, path, account.address, self._deadline())
            tx_hash = self._send(account, call, self.config.swap_gas_limit)
            logger.info(f"Sending swap transaction: {self._link(tx_hash)}")
            self._confirm(account, tx_hash)
        except Exception as e:
            logger.error(f"SWAP failed: {e}")
            self.notifier.notify(f"❌ SWAP failed for wallet {account.address}: {html.escape(str(e))}")
            return ActionResult.failed(str(e))

        logger.info(f"SWAP successful! Transaction: {self._link(tx_hash)}")
        self.notifier.notify(
            f"✅ SWAP successful for wallet {account.address}: "
            f"{formatted_in} {info_in.symbol} -> {info_out.symbol}\n"
            f"Transaction: {self._link(tx_hash)}"
        )
        return ActionResult(success=True, tx_hash=tx_hash)

    async def add_liquidity(
        self,
        account: WalletAccount,
        pair: LiquidityPair,
        venue: LiquidityVenue,
        percentage: int
    ) -> ActionResult:
        """Deposit ``percentage`` of both token balances into the pair's venue."""
        logger.info(f"Starting ADD LIQUIDITY ({pair.name}) for wallet {account.address}...")
        lp_info = self.inspector.inspect(pair.lp_token, account.address)
        info_a = self.inspector.inspect(pair.token_a.address, account.address)
        info_b = self.inspector.inspect(pair.token_b.address, account.address)

        if info_a.balance == 0 or info_b.balance == 0:
            logger.warning(f"Insufficient {info_a.symbol} or {info_b.symbol} to add liquidity")
            return ActionResult.failed("Insufficient token balance")

        amount_a = percentage_of(info_a.balance, percentage)
        amount_b = percentage_of(info_b.balance, percentage)
        if amount_a == 0 or amount_b == 0:
            logger.warning("Calculated token amounts for liquidity addition are zero after percentage")
            return ActionResult.failed("Liquidity amount is zero")

        description = (
            f"{format_units(amount_a, info_a.decimals)} {info_a.symbol} and "
            f"{format_units(amount_b, info_b.decimals)} {info_b.symbol}"
        )
        logger.info(f"Adding {description} to liquidity (receiving {lp_info.symbol})")

        if not await self.ensure_approval(account, pair.token_a.address, venue.spender, amount_a):
            return self._approval_failed("ADD LIQUIDITY", account, info_a.symbol)
        if not await self.ensure_approval(account, pair.token_b.address, venue.spender, amount_b):
            return self._approval_failed("ADD LIQUIDITY", account, info_b.symbol)

        estimated = venue.estimate_mint(pair, amount_a, amount_b)
        min_mint = apply_slippage(estimated, self.config.liquidity_slippage_bps)
        if estimated:
            logger.info(f"Estimated LP tokens: {estimated}, minimum mint: {min_mint}")

        try:
            call = venue.add_liquidity(pair, amount_a, amount_b, min_mint, account.address, self._deadline())
            tx_hash = self._send(account, call, self.config.liquidity_gas_limit)
            logger.info(f"Sending add liquidity transaction: {self._link(tx_hash)}")
            self._confirm(account, tx_hash)
        except Exception as e:
            logger.error(f"ADD LIQUIDITY failed: {e}")
            self.notifier.notify(f"❌ ADD LIQUIDITY failed for wallet {account.address}: {html.escape(str(e))}")
            return ActionResult.failed(str(e))

        logger.info(f"ADD LIQUIDITY successful! Transaction: {self._link(tx_hash)}")
        self.notifier.notify(
            f"✅ ADD LIQUIDITY successful for wallet {account.address}: {description}\n"
            f"Transaction: {self._link(tx_hash)}"
        )
        return ActionResult(success=True, tx_hash=tx_hash)

    async def remove_liquidity(
        self,
        account: WalletAccount,
        pair: LiquidityPair,
        venue: LiquidityVenue,
        percentage: int
    ) -> ActionResult:
        """Burn ``percentage`` of the pair's LP balance."""
        logger.info(f"Starting REMOVE LIQUIDITY for {pair.name} for wallet {account.address}...")
        lp_info = self.inspector.inspect(pair.lp_token, account.address)

        if lp_info.balance == 0:
            logger.warning(
                f"Wallet {account.address} has no LP tokens ({lp_info.symbol}) to remove for {pair.name}"
            )
            return ActionResult.failed("No LP balance")

        lp_amount = percentage_of(lp_info.balance, percentage)
        if lp_amount == 0:
            logger.warning("Calculated LP token amount for removal is zero after percentage")
            return ActionResult.failed("LP amount is zero")

        formatted_lp = format_units(lp_amount, lp_info.decimals)
        logger.info(f"Removing {formatted_lp} LP tokens ({lp_info.symbol})")

        if not await self.ensure_approval(account, pair.lp_token, venue.spender, lp_amount):
            return self._approval_failed("REMOVE LIQUIDITY", account, lp_info.symbol)

        expected = venue.estimate_withdrawal(pair, lp_amount)
        min_amounts: List[int] = [
            apply_slippage(amount, self.config.liquidity_slippage_bps) for amount in expected
        ]

        try:
            call = venue.remove_liquidity(pair, lp_amount, min_amounts, account.address, self._deadline())
            tx_hash = self._send(account, call, self.config.liquidity_gas_limit)
            logger.info(f"Sending remove liquidity transaction: {self._link(tx_hash)}")
            self._confirm(account, tx_hash)
        except Exception as e:
            logger.error(f"REMOVE LIQUIDITY failed for {pair.name}: {e}")
            self.notifier.notify(f"❌ REMOVE LIQUIDITY failed for wallet {account.address}: {html.escape(str(e))}")
            return ActionResult.failed(str(e))

        logger.info(f"REMOVE LIQUIDITY successful! Transaction: {self._link(tx_hash)}")
        self.notifier.notify(
            f"✅ REMOVE LIQUIDITY successful for wallet {account.address}: "
            f"{formatted_lp} {lp_info.symbol}\n"
            f"Transaction: {self._link(tx_hash)}"
        )
        return ActionResult(success=True, tx_hash=tx_hash)
