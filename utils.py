"""
Utility Module

Logging, exceptions, amount math and formatting helpers shared by the bot.

- Rich console logging plus a plain file log
- Secret redaction for every log message (private keys, bot tokens)
- Integer-exact percentage and slippage math (no floats touch balances)
"""

import os
import re
import logging
from decimal import Decimal
from typing import Optional

from rich.logging import RichHandler
from rich.console import Console


# Global console for Rich output
console = Console()

BPS_DENOMINATOR = 10_000


class ConfigError(Exception):
    """Fatal configuration problem (unreadable key file, no usable keys)."""
    pass


class TransactionError(Exception):
    """A submitted transaction was mined with a failing status."""
    pass


class SecureLogger:
    """
    Logger that sanitizes sensitive data from log messages.

    Private keys must never reach the console or the log file, even when a
    library error message echoes one back. Keys share their shape with
    transaction hashes, so they are redacted by exact value once registered.
    """

    SENSITIVE_PATTERNS = [
        (r'(?<!\d)\d{6,12}:[A-Za-z0-9_-]{30,}', '[BOT_TOKEN_REDACTED]'),
        (r'password["\']?\s*[:=]\s*["\']?[^\s"\']+', 'password=[REDACTED]'),
    ]

    def __init__(self, logger: logging.Logger):
        self._logger = logger
        self._secrets: set = set()

    def register_secret(self, secret: str):
        """Redact this exact value (with or without 0x prefix) from now on."""
        if not secret:
            return
        self._secrets.add(secret.lower())
        if secret.lower().startswith("0x"):
            self._secrets.add(secret[2:].lower())

    def _sanitize(self, msg) -> str:
        if not isinstance(msg, str):
            msg = str(msg)

        sanitized = msg
        for secret in sorted(self._secrets, key=len, reverse=True):
            sanitized = re.sub(re.escape(secret), '[PRIVATE_KEY_REDACTED]', sanitized, flags=re.IGNORECASE)
        for pattern, replacement in self.SENSITIVE_PATTERNS:
            sanitized = re.sub(pattern, replacement, sanitized, flags=re.IGNORECASE)
        return sanitized

    def debug(self, msg, *args, **kwargs):
        self._logger.debug(self._sanitize(msg), *args, **kwargs)

    def info(self, msg, *args, **kwargs):
        self._logger.info(self._sanitize(msg), *args, **kwargs)

    def warning(self, msg, *args, **kwargs):
        self._logger.warning(self._sanitize(msg), *args, **kwargs)

    def error(self, msg, *args, **kwargs):
        self._logger.error(self._sanitize(msg), *args, **kwargs)

    def exception(self, msg, *args, **kwargs):
        self._logger.exception(self._sanitize(msg), *args, **kwargs)

    def critical(self, msg, *args, **kwargs):
        self._logger.critical(self._sanitize(msg), *args, **kwargs)


def setup_logging(log_level: str = "INFO", log_file: Optional[str] = "./r2_bot.log") -> SecureLogger:
    """
    Configure the shared ``r2_bot`` logger with console and file output.

    Calling it again replaces the handlers, so the CLI can re-apply the level
    and file from the loaded configuration. Always returns the shared
    module-level SecureLogger.
    """
    base_logger = _base_logger
    base_logger.setLevel(getattr(logging, log_level.upper()))
    for handler in base_logger.handlers:
        handler.close()
    base_logger.handlers = []
    base_logger.propagate = False

    rich_handler = RichHandler(
        console=console,
        show_time=True,
        show_path=False,
        rich_tracebacks=True
    )
    rich_handler.setLevel(getattr(logging, log_level.upper()))
    rich_handler.setFormatter(logging.Formatter("%(message)s"))
    base_logger.addHandler(rich_handler)

    if log_file:
        log_path = os.path.abspath(log_file)
        os.makedirs(os.path.dirname(log_path) or ".", exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        ))
        base_logger.addHandler(file_handler)

    return logger


_base_logger = logging.getLogger("r2_bot")
logger = SecureLogger(_base_logger)

# Console-only until the CLI applies the configured level and file
setup_logging(log_file=None)


# Amount math

def percentage_of(balance: int, percentage: int) -> int:
    """Return ``floor(balance * percentage / 100)`` on raw integer units."""
    if balance < 0:
        raise ValueError(f"Balance cannot be negative, got {balance}")
    return (balance * percentage) // 100


def apply_slippage(amount: int, slippage_bps: int) -> int:
    """
    Lower bound for an estimated amount after a slippage tolerance.

    Args:
        amount: Quoted or estimated amount in raw units
        slippage_bps: Tolerance in basis points (50 = 0.5%)

    Returns:
        ``floor(amount * (10000 - slippage_bps) / 10000)``
    """
    if not 0 <= slippage_bps <= BPS_DENOMINATOR:
        raise ValueError(f"Slippage must be between 0 and {BPS_DENOMINATOR} bps, got {slippage_bps}")
    return (amount * (BPS_DENOMINATOR - slippage_bps)) // BPS_DENOMINATOR


# Formatting

def format_units(amount: int, decimals: int) -> str:
    """Format raw token units as a plain decimal string (``1500000, 6 -> 1.5``)."""
    if amount == 0:
        return "0"
    value = Decimal(amount).scaleb(-decimals).normalize()
    return format(value, "f")


def format_fixed(amount: int, decimals: int, places: int = 18) -> str:
    """Format raw units with a fixed number of decimal places (used for LP tokens)."""
    value = Decimal(amount).scaleb(-decimals)
    return f"{value:.{places}f}"


def redact_key(private_key: str, visible_chars: int = 8) -> str:
    """Show only the first few characters of a secret."""
    return private_key[:visible_chars] + "..."


def tx_url(explorer_url: str, tx_hash: str) -> str:
    """Block explorer link for a transaction hash."""
    return f"{explorer_url.rstrip('/')}/tx/{tx_hash}"


def format_duration(seconds: int) -> str:
    """Format duration in seconds to human-readable string."""
    if seconds < 60:
        return f"{seconds}s"
    minutes = seconds // 60
    secs = seconds % 60
    return f"{minutes}m {secs}s" if secs > 0 else f"{minutes}m"
