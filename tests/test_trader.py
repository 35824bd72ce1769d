"""
Tests for the swap and liquidity actions.

Actions are coroutines; each test drives one with asyncio.run.
"""

import asyncio
import sys
from pathlib import Path

# Add parent to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from conftest import TX_HASH, WALLET, make_inspector
from contracts import R2_SEPOLIA, R2, USDC, R2USD
from tokens import TokenInfo
from trader import ActionExecutor, ActionResult
from venues import UniswapV2Venue, CurvePoolVenue

NOW = 1_700_000_000
ROUTER = R2_SEPOLIA.swap_router


def executor_for(config, inspector, notifier):
    return ActionExecutor(config, inspector, notifier, clock=lambda: NOW)


def router_venue(web3, quote=None):
    venue = UniswapV2Venue(web3, ROUTER)
    if quote is not None:
        venue.contract.functions.getAmountsOut.return_value.call.return_value = [0, quote]
    return venue


class TestEnsureApproval:

    def test_sufficient_allowance_skips_approval(self, config, account, notifier):
        inspector = make_inspector({R2.address: TokenInfo("R2", 18, 1000)}, allowance=100)
        executor = executor_for(config, inspector, notifier)

        assert asyncio.run(executor.ensure_approval(account, R2.address, ROUTER, 100)) is True
        account.sign_and_send.assert_not_called()

    def test_insufficient_allowance_approves_exact_amount(self, config, account, notifier):
        inspector = make_inspector({R2.address: TokenInfo("R2", 18, 1000)}, allowance=99)
        executor = executor_for(config, inspector, notifier)

        assert asyncio.run(executor.ensure_approval(account, R2.address, ROUTER, 100)) is True

        approve = inspector.contract.return_value.functions.approve
        approve.assert_called_once_with(ROUTER, 100)
        approve.return_value.build_transaction.assert_called_once_with({'from': WALLET, 'nonce': 7})
        account.wait_for_receipt.assert_called_once_with(TX_HASH, timeout=config.receipt_timeout_seconds)

    def test_failed_approval_returns_false(self, config, account, notifier):
        inspector = make_inspector({R2.address: TokenInfo("R2", 18, 1000)}, allowance=0)
        account.wait_for_receipt.side_effect = RuntimeError("reverted")
        executor = executor_for(config, inspector, notifier)

        assert asyncio.run(executor.ensure_approval(account, R2.address, ROUTER, 100)) is False

    def test_allowance_read_failure_returns_false(self, config, account, notifier):
        inspector = make_inspector({})
        inspector.allowance.side_effect = ValueError("rpc down")
        executor = executor_for(config, inspector, notifier)

        assert asyncio.run(executor.ensure_approval(account, R2.address, ROUTER, 100)) is False
        account.sign_and_send.assert_not_called()


class TestSwap:

    def test_swap_ten_percent(self, config, account, notifier, web3):
        inspector = make_inspector({
            R2.address: TokenInfo("R2", 18, 1000),
            USDC.address: TokenInfo("USDC", 6, 0),
        }, allowance=10 ** 30)
        venue = router_venue(web3, quote=200)
        executor = executor_for(config, inspector, notifier)

        result = asyncio.run(executor.swap(account, venue, R2, USDC, 10))

        assert result == ActionResult(success=True, tx_hash=TX_HASH)
        swap_call = venue.contract.functions.swapExactTokensForTokens
        swap_call.assert_called_once_with(
            100, 199, [R2.address, USDC.address], WALLET, NOW + 1200
        )
        swap_call.return_value.build_transaction.assert_called_once_with(
            {'from': WALLET, 'nonce': 7, 'gas': 350000}
        )
        assert "SWAP successful" in notifier.notify.call_args[0][0]
        assert f"https://sepolia.etherscan.io/tx/{TX_HASH}" in notifier.notify.call_args[0][0]

    def test_zero_balance_does_nothing(self, config, account, notifier, web3):
        inspector = make_inspector({
            USDC.address: TokenInfo("USDC", 6, 0),
            R2.address: TokenInfo("R2", 18, 1000),
        })
        executor = executor_for(config, inspector, notifier)

        result = asyncio.run(executor.swap(account, router_venue(web3), USDC, R2, 50))

        assert result.success is False
        inspector.allowance.assert_not_called()
        account.sign_and_send.assert_not_called()

    def test_amount_floors_to_zero(self, config, account, notifier, web3):
        inspector = make_inspector({R2.address: TokenInfo("R2", 18, 19)})
        executor = executor_for(config, inspector, notifier)

        result = asyncio.run(executor.swap(account, router_venue(web3), R2, USDC, 5))

        assert result.success is False
        account.sign_and_send.assert_not_called()

    def test_quote_failure_means_no_minimum(self, config, account, notifier, web3):
        inspector = make_inspector({R2.address: TokenInfo("R2", 18, 1000)}, allowance=10 ** 30)
        venue = router_venue(web3)
        venue.contract.functions.getAmountsOut.return_value.call.side_effect = ValueError("revert")
        executor = executor_for(config, inspector, notifier)

        result = asyncio.run(executor.swap(account, venue, R2, USDC, 50))

        assert result.success is True
        assert venue.contract.functions.swapExactTokensForTokens.call_args[0][1] == 0

    def test_approval_failure_stops_swap(self, config, account, notifier, web3):
        inspector = make_inspector({R2.address: TokenInfo("R2", 18, 1000)}, allowance=0)
        account.sign_and_send.side_effect = ValueError("insufficient funds for gas")
        venue = router_venue(web3, quote=200)
        executor = executor_for(config, inspector, notifier)

        result = asyncio.run(executor.swap(account, venue, R2, USDC, 10))

        assert result.success is False
        assert result.error == "Approval of R2 failed"
        venue.contract.functions.swapExactTokensForTokens.assert_not_called()
        assert "SWAP failed" in notifier.notify.call_args[0][0]

    def test_reverted_swap_reports_failure(self, config, account, notifier, web3):
        inspector = make_inspector({R2.address: TokenInfo("R2", 18, 1000)}, allowance=10 ** 30)
        account.wait_for_receipt.side_effect = RuntimeError("Transaction reverted")
        executor = executor_for(config, inspector, notifier)

        result = asyncio.run(executor.swap(account, router_venue(web3, quote=200), R2, USDC, 10))

        assert result.success is False
        assert "Transaction reverted" in result.error
        assert "SWAP failed" in notifier.notify.call_args[0][0]

    def test_failure_text_escaped_for_telegram(self, config, account, notifier, web3):
        inspector = make_inspector({R2.address: TokenInfo("R2", 18, 1000)}, allowance=10 ** 30)
        account.wait_for_receipt.side_effect = RuntimeError("<revert> & more")
        executor = executor_for(config, inspector, notifier)

        result = asyncio.run(executor.swap(account, router_venue(web3, quote=200), R2, USDC, 10))

        assert result.error == "<revert> & more"
        message = notifier.notify.call_args[0][0]
        assert "&lt;revert&gt; &amp; more" in message
        assert "<revert>" not in message

    def test_notifier_failure_does_not_change_result(self, config, account, notifier, web3):
        inspector = make_inspector({R2.address: TokenInfo("R2", 18, 1000)}, allowance=10 ** 30)
        notifier.notify.return_value = False
        executor = executor_for(config, inspector, notifier)

        result = asyncio.run(executor.swap(account, router_venue(web3, quote=200), R2, USDC, 10))

        assert result.success is True


class TestAddLiquidity:

    def test_curve_pool_orders_amounts_and_sets_minimum(self, config, account, notifier, web3):
        pair = R2_SEPOLIA.pair("USDC-R2USD")
        inspector = make_inspector({
            pair.lp_token: TokenInfo("USDC-R2USD LP", 18, 0),
            USDC.address: TokenInfo("USDC", 6, 1000),
            R2USD.address: TokenInfo("R2USD", 6, 2000),
        }, allowance=10 ** 30)
        venue = CurvePoolVenue(web3, pair.venue_address)
        venue.contract.functions.calc_token_amount.return_value.call.return_value = 1000
        executor = executor_for(config, inspector, notifier)

        result = asyncio.run(executor.add_liquidity(account, pair, venue, 50))

        assert result.success is True
        venue.contract.functions.calc_token_amount.assert_called_once_with([1000, 500], True)
        venue.contract.functions.add_liquidity.assert_called_once_with([1000, 500], 950, WALLET)
        venue.contract.functions.add_liquidity.return_value.build_transaction.assert_called_once_with(
            {'from': WALLET, 'nonce': 7, 'gas': 750000}
        )

    def test_router_pair(self, config, account, notifier, web3):
        pair = R2_SEPOLIA.pair("R2-USDC")
        inspector = make_inspector({
            R2.address: TokenInfo("R2", 18, 400),
            USDC.address: TokenInfo("USDC", 6, 800),
        }, allowance=10 ** 30)
        venue = UniswapV2Venue(web3, pair.venue_address)
        executor = executor_for(config, inspector, notifier)

        result = asyncio.run(executor.add_liquidity(account, pair, venue, 25))

        assert result.success is True
        venue.contract.functions.addLiquidity.assert_called_once_with(
            R2.address, USDC.address, 100, 200, 0, 0, WALLET, NOW + 1200
        )

    def test_both_tokens_approved(self, config, account, notifier, web3):
        pair = R2_SEPOLIA.pair("R2-USDC")
        inspector = make_inspector({
            R2.address: TokenInfo("R2", 18, 400),
            USDC.address: TokenInfo("USDC", 6, 800),
        }, allowance=0)
        executor = executor_for(config, inspector, notifier)

        result = asyncio.run(executor.add_liquidity(account, pair, UniswapV2Venue(web3, ROUTER), 25))

        assert result.success is True
        approve = inspector.contract.return_value.functions.approve
        assert [c[0] for c in approve.call_args_list] == [(ROUTER, 100), (ROUTER, 200)]

    def test_missing_token_balance(self, config, account, notifier, web3):
        pair = R2_SEPOLIA.pair("R2-USDC")
        inspector = make_inspector({
            R2.address: TokenInfo("R2", 18, 400),
            USDC.address: TokenInfo("USDC", 6, 0),
        })
        executor = executor_for(config, inspector, notifier)

        result = asyncio.run(executor.add_liquidity(account, pair, UniswapV2Venue(web3, ROUTER), 50))

        assert result.success is False
        inspector.allowance.assert_not_called()
        account.sign_and_send.assert_not_called()

    def test_amounts_floor_to_zero(self, config, account, notifier, web3):
        pair = R2_SEPOLIA.pair("R2-USDC")
        inspector = make_inspector({
            R2.address: TokenInfo("R2", 18, 19),
            USDC.address: TokenInfo("USDC", 6, 19),
        })
        venue = UniswapV2Venue(web3, pair.venue_address)
        executor = executor_for(config, inspector, notifier)

        result = asyncio.run(executor.add_liquidity(account, pair, venue, 5))

        assert result.success is False
        assert result.error == "Liquidity amount is zero"
        inspector.allowance.assert_not_called()
        account.sign_and_send.assert_not_called()
        venue.contract.functions.addLiquidity.assert_not_called()

    def test_second_approval_failure_stops_deposit(self, config, account, notifier, web3):
        pair = R2_SEPOLIA.pair("R2-USDC")
        inspector = make_inspector({
            R2.address: TokenInfo("R2", 18, 400),
            USDC.address: TokenInfo("USDC", 6, 800),
        })
        inspector.allowance.side_effect = [10 ** 30, 0]
        account.sign_and_send.side_effect = ValueError("insufficient funds for gas")
        venue = UniswapV2Venue(web3, pair.venue_address)
        executor = executor_for(config, inspector, notifier)

        result = asyncio.run(executor.add_liquidity(account, pair, venue, 25))

        assert result.success is False
        assert result.error == "Approval of USDC failed"
        inspector.contract.return_value.functions.approve.assert_called_once_with(pair.venue_address, 200)
        # Only the USDC approval was attempted
        assert account.sign_and_send.call_count == 1
        venue.contract.functions.addLiquidity.assert_not_called()
        assert "ADD LIQUIDITY failed" in notifier.notify.call_args[0][0]


class TestRemoveLiquidity:

    def test_curve_pool_proportional_minimums(self, config, account, notifier, web3):
        pair = R2_SEPOLIA.pair("R2USD-sR2USD")
        inspector = make_inspector({
            pair.lp_token: TokenInfo("sR2USD-R2USD", 18, 2000),
        }, allowance=10 ** 30)
        venue = CurvePoolVenue(web3, pair.venue_address)
        venue.contract.functions.get_balances.return_value.call.return_value = [4000, 6000]
        venue.contract.functions.totalSupply.return_value.call.return_value = 10000
        executor = executor_for(config, inspector, notifier)

        result = asyncio.run(executor.remove_liquidity(account, pair, venue, 50))

        assert result.success is True
        # 1000 LP of 10000 -> [400, 600], less 5%
        venue.contract.functions.remove_liquidity_imbalance.assert_called_once_with(
            [380, 570], 1000, WALLET
        )

    def test_curve_empty_supply_means_zero_minimums(self, config, account, notifier, web3):
        pair = R2_SEPOLIA.pair("USDC-R2USD")
        inspector = make_inspector({pair.lp_token: TokenInfo("LP", 18, 2000)}, allowance=10 ** 30)
        venue = CurvePoolVenue(web3, pair.venue_address)
        venue.contract.functions.get_balances.return_value.call.return_value = [4000, 6000]
        venue.contract.functions.totalSupply.return_value.call.return_value = 0
        executor = executor_for(config, inspector, notifier)

        result = asyncio.run(executor.remove_liquidity(account, pair, venue, 100))

        assert result.success is True
        venue.contract.functions.remove_liquidity_imbalance.assert_called_once_with([0, 0], 2000, WALLET)

    def test_router_pair_uses_pair_tokens(self, config, account, notifier, web3):
        pair = R2_SEPOLIA.pair("R2-R2USD")
        inspector = make_inspector({pair.lp_token: TokenInfo("R2-R2USD LP", 18, 300)}, allowance=10 ** 30)
        venue = UniswapV2Venue(web3, pair.venue_address)
        executor = executor_for(config, inspector, notifier)

        result = asyncio.run(executor.remove_liquidity(account, pair, venue, 10))

        assert result.success is True
        venue.contract.functions.removeLiquidity.assert_called_once_with(
            R2.address, R2USD.address, 30, 0, 0, WALLET, NOW + 1200
        )

    def test_lp_approved_to_venue(self, config, account, notifier, web3):
        pair = R2_SEPOLIA.pair("USDC-R2USD")
        inspector = make_inspector({pair.lp_token: TokenInfo("LP", 18, 2000)}, allowance=0)
        venue = CurvePoolVenue(web3, pair.venue_address)
        venue.contract.functions.totalSupply.return_value.call.return_value = 0
        executor = executor_for(config, inspector, notifier)

        asyncio.run(executor.remove_liquidity(account, pair, venue, 50))

        inspector.contract.assert_called_with(pair.lp_token)
        inspector.contract.return_value.functions.approve.assert_called_once_with(pair.venue_address, 1000)

    def test_no_lp_balance(self, config, account, notifier, web3):
        pair = R2_SEPOLIA.pair("R2-R2USD")
        inspector = make_inspector({})
        executor = executor_for(config, inspector, notifier)

        result = asyncio.run(executor.remove_liquidity(account, pair, UniswapV2Venue(web3, ROUTER), 50))

        assert result.success is False
        account.sign_and_send.assert_not_called()
        notifier.notify.assert_not_called()

    def test_amount_floors_to_zero(self, config, account, notifier, web3):
        pair = R2_SEPOLIA.pair("R2-R2USD")
        inspector = make_inspector({pair.lp_token: TokenInfo("R2-R2USD LP", 18, 19)})
        venue = UniswapV2Venue(web3, pair.venue_address)
        executor = executor_for(config, inspector, notifier)

        result = asyncio.run(executor.remove_liquidity(account, pair, venue, 5))

        assert result.success is False
        assert result.error == "LP amount is zero"
        inspector.allowance.assert_not_called()
        account.sign_and_send.assert_not_called()
        venue.contract.functions.removeLiquidity.assert_not_called()

    def test_lp_approval_failure_stops_withdrawal(self, config, account, notifier, web3):
        pair = R2_SEPOLIA.pair("USDC-R2USD")
        inspector = make_inspector({pair.lp_token: TokenInfo("LP", 18, 2000)}, allowance=0)
        account.sign_and_send.side_effect = ValueError("insufficient funds for gas")
        venue = CurvePoolVenue(web3, pair.venue_address)
        executor = executor_for(config, inspector, notifier)

        result = asyncio.run(executor.remove_liquidity(account, pair, venue, 50))

        assert result.success is False
        assert result.error == "Approval of LP failed"
        assert account.sign_and_send.call_count == 1
        venue.contract.functions.remove_liquidity_imbalance.assert_not_called()
        assert "REMOVE LIQUIDITY failed" in notifier.notify.call_args[0][0]

