"""
Wallet Module - Key Loading and Signing Accounts
================================================
Reads signing keys from the plain key file and turns them into accounts
bound to one shared Web3 connection.

- Keys are validated against a strict ``0x`` + 64 hex pattern
- Malformed entries are skipped with a warning, never echoed in full
- Every loaded key is registered with the log redactor
"""

import re
from pathlib import Path
from typing import List, Union

from web3 import Web3
from eth_account import Account
from eth_account.signers.local import LocalAccount

from utils import logger, ConfigError, TransactionError, redact_key


KEY_PREFIX = "PRIVATE_KEY="
KEY_PATTERN = re.compile(r"^0x[0-9a-fA-F]{64}$")


def load_private_keys(keys_file: Union[str, Path]) -> List[str]:
    """
    Extract signing keys from a ``PRIVATE_KEY=0x...`` key file.

    Args:
        keys_file: Path to the key file

    Returns:
        Valid keys in file order (duplicates kept)

    Raises:
        ConfigError: If the file cannot be read or holds no valid key
    """
    path = Path(keys_file)
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Error reading key file {path}: {e}") from e

    keys: List[str] = []
    for line_no, raw in enumerate(content.replace("\r\n", "\n").split("\n"), start=1):
        line = raw.strip()
        if not line.startswith(KEY_PREFIX):
            continue

        key = line[len(KEY_PREFIX):].strip()
        if KEY_PATTERN.match(key):
            keys.append(key)
            logger.register_secret(key)
        else:
            logger.warning(
                f"Skipping invalid private key on line {line_no}: "
                f"{redact_key(line, 20)} (must be 0x followed by 64 hex chars)"
            )

    if not keys:
        raise ConfigError(
            f"No valid PRIVATE_KEY entries found in {path}. "
            f"Put each key on its own line as PRIVATE_KEY=0x..."
        )

    logger.info(f"Detected {len(keys)} private key(s)")
    return keys


def connect(rpc_url: str, timeout: int = 30) -> Web3:
    """Open the single HTTP connection shared by every account."""
    return Web3(Web3.HTTPProvider(rpc_url, request_kwargs={'timeout': timeout}))


class WalletAccount:
    """
    Signing identity bound to the shared Web3 connection.

    Provides the narrow interface the executors need: address, nonce,
    sign-and-send and receipt waiting.
    """

    def __init__(self, account: LocalAccount, web3: Web3, index: int = 0):
        self._account = account
        self.web3 = web3
        self.index = index

    @property
    def address(self) -> str:
        return self._account.address

    def get_nonce(self) -> int:
        return self.web3.eth.get_transaction_count(self.address, 'pending')

    def sign_and_send(self, transaction: dict) -> str:
        """Sign a built transaction, broadcast it and return the hex hash."""
        signed = self._account.sign_transaction(transaction)
        tx_hash = self.web3.eth.send_raw_transaction(signed.raw_transaction)
        return self.web3.to_hex(tx_hash)

    def wait_for_receipt(self, tx_hash: str, timeout: int = 600):
        """
        Block until the transaction is mined.

        Raises:
            TransactionError: If the receipt reports a failed status
        """
        receipt = self.web3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)
        if receipt['status'] != 1:
            raise TransactionError(f"Transaction reverted: {tx_hash}")
        return receipt

    def __repr__(self) -> str:
        return f"WalletAccount(index={self.index}, address={self.address})"


def build_accounts(private_keys: List[str], web3: Web3) -> List[WalletAccount]:
    """
    Derive one account per key; keys that fail derivation are dropped.

    Raises:
        ConfigError: If no account could be built
    """
    accounts: List[WalletAccount] = []
    for index, key in enumerate(private_keys, start=1):
        try:
            local = Account.from_key(key)
        except Exception as e:
            logger.warning(f"Invalid private key {index}: {redact_key(key)} - {e}")
            continue

        accounts.append(WalletAccount(local, web3, index=index))
        logger.info(f"Wallet {index} created: {local.address}")

    if not accounts:
        raise ConfigError("No valid wallets created from provided private keys")

    logger.info(f"Total valid wallets: {len(accounts)}")
    return accounts

