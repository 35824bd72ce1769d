"""
R2 Deployment Registry
======================
Addresses of the R2 tokens, LP tokens and pools on Sepolia.

Everything here is frozen and built once at import; components receive the
``Deployment`` they work against instead of reaching for module globals.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple

from web3 import Web3


class VenueKind(Enum):
    """Interface shape of the contract behind a pair."""
    UNISWAP_V2 = "uniswap_v2"  # addLiquidity / removeLiquidity / swapExactTokensForTokens
    CURVE = "curve"  # add_liquidity / remove_liquidity_imbalance / get_balances


@dataclass(frozen=True)
class Token:
    symbol: str
    address: str


@dataclass(frozen=True)
class LiquidityPair:
    """A pool the bot can add liquidity to or remove it from."""
    name: str
    token_a: Token
    token_b: Token
    lp_token: str
    venue_kind: VenueKind
    venue_address: str
    # Curve pools order their coins independently of the pair name
    coin_order: Optional[Tuple[str, str]] = None
    staked_hint: Optional[str] = None
    # Balance table row label, when it differs from the LP label
    table_label: Optional[str] = None

    @property
    def lp_label(self) -> str:
        return f"{self.name} LP"

    @property
    def balance_label(self) -> str:
        return self.table_label or self.lp_label


@dataclass(frozen=True)
class Deployment:
    """Static description of the contracts the bot talks to."""
    tokens: Dict[str, Token]
    pairs: Dict[str, LiquidityPair]
    swap_router: str
    swap_symbols: Tuple[str, str]

    def token(self, symbol: str) -> Token:
        return self.tokens[symbol]

    def pair(self, name: str) -> LiquidityPair:
        return self.pairs[name]

    def lp_label_for(self, address: str) -> Optional[str]:
        """Fallback label for a known LP token address."""
        for pair in self.pairs.values():
            if pair.lp_token.lower() == address.lower():
                return pair.lp_label
        return None


def _addr(address: str) -> str:
    return Web3.to_checksum_address(address)


R2 = Token("R2", _addr("0xb816bB88f836EA75Ca4071B46FF285f690C43bb7"))
USDC = Token("USDC", _addr("0x8BEbFCBe5468F146533C182dF3DFbF5ff9BE00E2"))
R2USD = Token("R2USD", _addr("0x9e8FF356D35a2Da385C546d6Bf1D77ff85133365"))
SR2USD = Token("sR2USD", _addr("0x006CbF409CA275bA022111dB32BDAE054a97d488"))

R2_USDC_LP = _addr("0xCdfDD7dD24bABDD05A2ff4dfcf06384c5Ad661a9")
R2_R2USD_LP = _addr("0x9Ae18109312c1452D3f0952d7eC1e26D15211FE9")
USDC_R2USD_LP = _addr("0x47d1B0623bB3E557bF8544C159c9ae51D091F8a2")
R2USD_SR2USD_LP = _addr("0xe85A06C238439F981c90b2C91393b2F3c46e27FC")

SWAP_ROUTER_R2_USDC = _addr("0xeE567Fe1712Faf6149d80dA1E6934E354124CfE3")
# Curve pools are their own LP tokens
CURVE_POOL_USDC_R2USD = USDC_R2USD_LP
CURVE_POOL_R2USD_SR2USD = R2USD_SR2USD_LP


R2_SEPOLIA = Deployment(
    tokens={t.symbol: t for t in (R2, USDC, R2USD, SR2USD)},
    pairs={
        "R2-USDC": LiquidityPair(
            name="R2-USDC",
            token_a=R2,
            token_b=USDC,
            lp_token=R2_USDC_LP,
            venue_kind=VenueKind.UNISWAP_V2,
            venue_address=SWAP_ROUTER_R2_USDC,
        ),
        "R2-R2USD": LiquidityPair(
            name="R2-R2USD",
            token_a=R2,
            token_b=R2USD,
            lp_token=R2_R2USD_LP,
            venue_kind=VenueKind.UNISWAP_V2,
            venue_address=SWAP_ROUTER_R2_USDC,
            staked_hint="Not in wallet (likely staked/farmed)",
        ),
        "USDC-R2USD": LiquidityPair(
            name="USDC-R2USD",
            token_a=USDC,
            token_b=R2USD,
            lp_token=USDC_R2USD_LP,
            venue_kind=VenueKind.CURVE,
            venue_address=CURVE_POOL_USDC_R2USD,
            coin_order=(R2USD.address, USDC.address),
        ),
        "R2USD-sR2USD": LiquidityPair(
            name="R2USD-sR2USD",
            token_a=R2USD,
            token_b=SR2USD,
            lp_token=R2USD_SR2USD_LP,
            venue_kind=VenueKind.CURVE,
            venue_address=CURVE_POOL_R2USD_SR2USD,
            coin_order=(SR2USD.address, R2USD.address),
            table_label="sR2USD-R2USD LP",
        ),
    },
    swap_router=SWAP_ROUTER_R2_USDC,
    swap_symbols=("R2", "USDC"),
)
