"""
Token inspection: symbol, decimals and balance of an ERC20 for an owner.

Some LP tokens are not standard-compliant or sit in a farm rather than the
wallet, so reads can fail; the inspector then reports a labelled zero
balance instead of raising.
"""

from dataclasses import dataclass

from web3 import Web3

from contracts import Deployment
from utils import logger


ERC20_ABI = [
    {
        "constant": True,
        "inputs": [],
        "name": "symbol",
        "outputs": [{"name": "", "type": "string"}],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "constant": True,
        "inputs": [],
        "name": "decimals",
        "outputs": [{"name": "", "type": "uint8"}],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "constant": True,
        "inputs": [{"name": "_owner", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "balance", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "constant": True,
        "inputs": [
            {"name": "_owner", "type": "address"},
            {"name": "_spender", "type": "address"}
        ],
        "name": "allowance",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "constant": False,
        "inputs": [
            {"name": "_spender", "type": "address"},
            {"name": "_value", "type": "uint256"}
        ],
        "name": "approve",
        "outputs": [{"name": "", "type": "bool"}],
        "stateMutability": "nonpayable",
        "type": "function"
    }
]

FALLBACK_DECIMALS = 18


@dataclass(frozen=True)
class TokenInfo:
    """Snapshot of a token for one owner, taken at call time."""
    symbol: str
    decimals: int
    balance: int


class TokenInspector:
    """Reads ERC20 state. Never caches: every call hits the chain."""

    def __init__(self, web3: Web3, deployment: Deployment):
        self.web3 = web3
        self.deployment = deployment

    def contract(self, token_address: str):
        return self.web3.eth.contract(
            address=self.web3.to_checksum_address(token_address),
            abi=ERC20_ABI
        )

    def inspect(self, token_address: str, owner: str) -> TokenInfo:
        """
        Return symbol, decimals and balance of ``token_address`` for ``owner``.

        Falls back to the LP label of a known pair, or to an "Unknown"
        label, with 18 decimals and a zero balance when any read fails.
        """
        try:
            token = self.contract(token_address)
            symbol = token.functions.symbol().call()
            decimals = token.functions.decimals().call()
            balance = token.functions.balanceOf(owner).call()
            return TokenInfo(symbol=symbol, decimals=int(decimals), balance=int(balance))
        except Exception as e:
            logger.debug(f"Token read failed for {token_address}: {e}")
            return self.fallback(token_address)

    def fallback(self, token_address: str) -> TokenInfo:
        label = self.deployment.lp_label_for(token_address)
        if label is None:
            label = f"Unknown ({token_address[:6]}...)"
        return TokenInfo(symbol=label, decimals=FALLBACK_DECIMALS, balance=0)

    def allowance(self, token_address: str, owner: str, spender: str) -> int:
        return int(self.contract(token_address).functions.allowance(owner, spender).call())
