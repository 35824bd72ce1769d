"""
Shared fixtures for the R2 bot test suite.

Run with: pytest tests/ -v
"""

import io
import sys
from pathlib import Path
from unittest.mock import Mock, MagicMock

import pytest
from rich.console import Console

# Add parent to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from config import Config
from tokens import TokenInfo


WALLET = "0x1111111111111111111111111111111111111111"
TX_HASH = "0x" + "ab" * 32


@pytest.fixture
def config():
    return Config()


@pytest.fixture
def web3():
    """Web3 stand-in whose checksum helper is the identity."""
    w3 = MagicMock()
    w3.to_checksum_address.side_effect = lambda address: address
    return w3


@pytest.fixture
def account():
    acct = Mock()
    acct.address = WALLET
    acct.get_nonce.return_value = 7
    acct.sign_and_send.return_value = TX_HASH
    acct.wait_for_receipt.return_value = {'status': 1}
    return acct


@pytest.fixture
def notifier():
    n = Mock()
    n.notify.return_value = True
    return n


@pytest.fixture
def quiet_console():
    return Console(file=io.StringIO(), width=200)


def make_inspector(infos, allowance=0):
    """Inspector mock answering ``inspect`` from an address -> TokenInfo map."""
    inspector = Mock()
    inspector.inspect.side_effect = lambda address, owner: infos.get(
        address, TokenInfo(symbol="Unknown", decimals=18, balance=0)
    )
    inspector.allowance.return_value = allowance
    return inspector
