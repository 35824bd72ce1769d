#!/usr/bin/env python3
"""
Liquidity Venues
================
The R2 pairs live behind two contract shapes:

- Uniswap V2 style router (R2-USDC, R2-R2USD): addLiquidity / removeLiquidity /
  swapExactTokensForTokens / getAmountsOut
- Curve style stable pool (USDC-R2USD, R2USD-sR2USD): add_liquidity /
  remove_liquidity_imbalance / get_balances / totalSupply / calc_token_amount

A venue is picked once per pair and hides which shape it talks to. Venues only
build contract calls and estimates; signing and sending stay in the trader.
"""

from abc import ABC, abstractmethod
from typing import List

from web3 import Web3

from contracts import LiquidityPair, VenueKind
from utils import logger


# Uniswap V2 Router ABI (subset used by the bot)
UNISWAP_V2_ROUTER_ABI = [
    {
        "inputs": [
            {"internalType": "address", "name": "tokenA", "type": "address"},
            {"internalType": "address", "name": "tokenB", "type": "address"},
            {"internalType": "uint256", "name": "amountADesired", "type": "uint256"},
            {"internalType": "uint256", "name": "amountBDesired", "type": "uint256"},
            {"internalType": "uint256", "name": "amountAMin", "type": "uint256"},
            {"internalType": "uint256", "name": "amountBMin", "type": "uint256"},
            {"internalType": "address", "name": "to", "type": "address"},
            {"internalType": "uint256", "name": "deadline", "type": "uint256"}
        ],
        "name": "addLiquidity",
        "outputs": [
            {"internalType": "uint256", "name": "amountA", "type": "uint256"},
            {"internalType": "uint256", "name": "amountB", "type": "uint256"},
            {"internalType": "uint256", "name": "liquidity", "type": "uint256"}
        ],
        "stateMutability": "nonpayable",
        "type": "function"
    },
    {
        "inputs": [
            {"internalType": "address", "name": "tokenA", "type": "address"},
            {"internalType": "address", "name": "tokenB", "type": "address"},
            {"internalType": "uint256", "name": "liquidity", "type": "uint256"},
            {"internalType": "uint256", "name": "amountAMin", "type": "uint256"},
            {"internalType": "uint256", "name": "amountBMin", "type": "uint256"},
            {"internalType": "address", "name": "to", "type": "address"},
            {"internalType": "uint256", "name": "deadline", "type": "uint256"}
        ],
        "name": "removeLiquidity",
        "outputs": [
            {"internalType": "uint256", "name": "amountA", "type": "uint256"},
            {"internalType": "uint256", "name": "amountB", "type": "uint256"}
        ],
        "stateMutability": "nonpayable",
        "type": "function"
    },
    {
        "inputs": [
            {"internalType": "uint256", "name": "amountIn", "type": "uint256"},
            {"internalType": "uint256", "name": "amountOutMin", "type": "uint256"},
            {"internalType": "address[]", "name": "path", "type": "address[]"},
            {"internalType": "address", "name": "to", "type": "address"},
            {"internalType": "uint256", "name": "deadline", "type": "uint256"}
        ],
        "name": "swapExactTokensForTokens",
        "outputs": [{"internalType": "uint256[]", "name": "amounts", "type": "uint256[]"}],
        "stateMutability": "nonpayable",
        "type": "function"
    },
    {
        "inputs": [
            {"internalType": "uint256", "name": "amountIn", "type": "uint256"},
            {"internalType": "address[]", "name": "path", "type": "address[]"}
        ],
        "name": "getAmountsOut",
        "outputs": [{"internalType": "uint256[]", "name": "amounts", "type": "uint256[]"}],
        "stateMutability": "view",
        "type": "function"
    }
]

# Curve stable pool ABI (subset used by the bot)
CURVE_POOL_ABI = [
    {
        "stateMutability": "nonpayable",
        "type": "function",
        "name": "add_liquidity",
        "inputs": [
            {"name": "_amounts", "type": "uint256[]"},
            {"name": "_min_mint_amount", "type": "uint256"},
            {"name": "_receiver", "type": "address"}
        ],
        "outputs": [{"name": "", "type": "uint256"}]
    },
    {
        "stateMutability": "nonpayable",
        "type": "function",
        "name": "remove_liquidity_imbalance",
        "inputs": [
            {"name": "_amounts", "type": "uint256[]"},
            {"name": "_max_burn_amount", "type": "uint256"},
            {"name": "_receiver", "type": "address"}
        ],
        "outputs": [{"name": "", "type": "uint256"}]
    },
    {
        "stateMutability": "view",
        "type": "function",
        "name": "get_balances",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256[]"}]
    },
    {
        "stateMutability": "view",
        "type": "function",
        "name": "totalSupply",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256"}]
    },
    {
        "stateMutability": "view",
        "type": "function",
        "name": "calc_token_amount",
        "inputs": [
            {"name": "_amounts", "type": "uint256[]"},
            {"name": "_is_deposit", "type": "bool"}
        ],
        "outputs": [{"name": "", "type": "uint256"}]
    }
]


class LiquidityVenue(ABC):
    """Contract a pair's liquidity is added to and removed from."""

    kind: VenueKind
    abi: list

    def __init__(self, web3: Web3, address: str):
        self.web3 = web3
        self.address = web3.to_checksum_address(address)
        self.contract = web3.eth.contract(address=self.address, abi=self.abi)

    @property
    def spender(self) -> str:
        """Address that must be approved to pull the bot's tokens."""
        return self.address

    @abstractmethod
    def estimate_mint(self, pair: LiquidityPair, amount_a: int, amount_b: int) -> int:
        """Expected LP tokens for a deposit; 0 means no minimum."""

    @abstractmethod
    def estimate_withdrawal(self, pair: LiquidityPair, lp_amount: int) -> List[int]:
        """Expected per-coin amounts for burning ``lp_amount``; zeros mean no minimum."""

    @abstractmethod
    def add_liquidity(self, pair: LiquidityPair, amount_a: int, amount_b: int,
                      min_mint: int, recipient: str, deadline: int):
        """Build the deposit call."""

    @abstractmethod
    def remove_liquidity(self, pair: LiquidityPair, lp_amount: int,
                         min_amounts: List[int], recipient: str, deadline: int):
        """Build the withdrawal call."""


class UniswapV2Venue(LiquidityVenue):
    """Uniswap V2 style router. Liquidity minimums are always zero here."""

    kind = VenueKind.UNISWAP_V2
    abi = UNISWAP_V2_ROUTER_ABI

    def quote_swap(self, amount_in: int, path: List[str]) -> int:
        """Expected output of the last hop of ``path``."""
        amounts = self.contract.functions.getAmountsOut(amount_in, path).call()
        return int(amounts[-1])

    def swap(self, amount_in: int, min_out: int, path: List[str], recipient: str, deadline: int):
        return self.contract.functions.swapExactTokensForTokens(
            amount_in, min_out, path, recipient, deadline
        )

    def estimate_mint(self, pair: LiquidityPair, amount_a: int, amount_b: int) -> int:
        return 0

    def estimate_withdrawal(self, pair: LiquidityPair, lp_amount: int) -> List[int]:
        return [0, 0]

    def add_liquidity(self, pair: LiquidityPair, amount_a: int, amount_b: int,
                      min_mint: int, recipient: str, deadline: int):
        return self.contract.functions.addLiquidity(
            pair.token_a.address,
            pair.token_b.address,
            amount_a,
            amount_b,
            0,
            0,
            recipient,
            deadline
        )

    def remove_liquidity(self, pair: LiquidityPair, lp_amount: int,
                         min_amounts: List[int], recipient: str, deadline: int):
        return self.contract.functions.removeLiquidity(
            pair.token_a.address,
            pair.token_b.address,
            lp_amount,
            min_amounts[0],
            min_amounts[1],
            recipient,
            deadline
        )


class CurvePoolVenue(LiquidityVenue):
    """Curve style two-coin stable pool; the pool contract is also the LP token."""

    kind = VenueKind.CURVE
    abi = CURVE_POOL_ABI

    def pool_amounts(self, pair: LiquidityPair, amount_a: int, amount_b: int) -> List[int]:
        """Order the pair's amounts the way the pool indexes its coins."""
        by_token = {
            pair.token_a.address.lower(): amount_a,
            pair.token_b.address.lower(): amount_b,
        }
        order = pair.coin_order or (pair.token_a.address, pair.token_b.address)
        return [by_token[coin.lower()] for coin in order]

    def estimate_mint(self, pair: LiquidityPair, amount_a: int, amount_b: int) -> int:
        amounts = self.pool_amounts(pair, amount_a, amount_b)
        try:
            return int(self.contract.functions.calc_token_amount(amounts, True).call())
        except Exception as e:
            logger.warning(f"calc_token_amount failed, adding without mint minimum: {e}")
            return 0

    def estimate_withdrawal(self, pair: LiquidityPair, lp_amount: int) -> List[int]:
        try:
            balances = self.contract.functions.get_balances().call()
            total_supply = int(self.contract.functions.totalSupply().call())
        except Exception as e:
            logger.warning(f"Pool state read failed, removing without minimums: {e}")
            return [0, 0]

        if total_supply == 0:
            return [0, 0]
        return [(int(balance) * lp_amount) // total_supply for balance in balances[:2]]

    def add_liquidity(self, pair: LiquidityPair, amount_a: int, amount_b: int,
                      min_mint: int, recipient: str, deadline: int):
        amounts = self.pool_amounts(pair, amount_a, amount_b)
        return self.contract.functions.add_liquidity(amounts, min_mint, recipient)

    def remove_liquidity(self, pair: LiquidityPair, lp_amount: int,
                         min_amounts: List[int], recipient: str, deadline: int):
        return self.contract.functions.remove_liquidity_imbalance(min_amounts, lp_amount, recipient)


VENUE_CLASSES = {
    VenueKind.UNISWAP_V2: UniswapV2Venue,
    VenueKind.CURVE: CurvePoolVenue,
}


def venue_for(pair: LiquidityPair, web3: Web3) -> LiquidityVenue:
    """Build the venue serving ``pair``."""
    return VENUE_CLASSES[pair.venue_kind](web3, pair.venue_address)
