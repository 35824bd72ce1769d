"""
Configuration Management Module

Bot settings live in an optional YAML file and are loaded into a ``Config``
dataclass. Signing keys are NOT part of this file; they are read from the
plain key file named by ``keys_file`` (see ``wallet.load_private_keys``).
"""

import os
from pathlib import Path
from typing import Dict, Any, Optional
from dataclasses import dataclass

import yaml

import logging
logger = logging.getLogger("r2_bot.config")

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class Config:
    """Bot configuration settings."""

    # Network
    rpc_url: str = "https://eth-sepolia.public.blastapi.io"
    chain_id: int = 11155111
    explorer_url: str = "https://sepolia.etherscan.io/"

    # Signing keys (PRIVATE_KEY=0x... lines)
    keys_file: str = ".env"

    # Telegram notifications (disabled while either value is empty)
    telegram_bot_token: Optional[str] = None
    telegram_chat_id: Optional[str] = None
    notification_timeout: float = 10.0

    # Slippage, in basis points
    swap_slippage_bps: int = 50  # 0.5%
    liquidity_slippage_bps: int = 500  # 5.0%

    # Transaction settings
    swap_gas_limit: int = 350000
    liquidity_gas_limit: int = 750000
    deadline_seconds: int = 1200  # 20 minutes
    receipt_timeout_seconds: int = 600

    # Operation
    log_level: str = "INFO"
    log_file: str = "./r2_bot.log"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        """Create Config from dictionary."""
        # Filter only valid fields
        valid_fields = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**valid_fields)

    @property
    def notifications_enabled(self) -> bool:
        return bool(self.telegram_bot_token and self.telegram_chat_id)


class ConfigManager:
    """Reads and writes the YAML configuration file."""

    def __init__(self, config_path: Path = Path("./bot_config.yaml")):
        self.config_path = Path(config_path)

    def load_config(self) -> Config:
        """Load configuration, falling back to defaults when the file is absent."""
        if not self.config_path.exists():
            logger.info(f"No config file at {self.config_path}, using defaults")
            return Config()

        with open(self.config_path, 'r') as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ValueError(f"Config file must contain a mapping: {self.config_path}")

        config = Config.from_dict(data)
        if str(config.log_level).upper() not in LOG_LEVELS:
            raise ValueError(f"Invalid log_level {config.log_level!r}, expected one of {', '.join(LOG_LEVELS)}")

        logger.info(f"Configuration loaded from {self.config_path}")
        return config

    def write_default(self) -> bool:
        """Write the commented default template. Refuses to overwrite."""
        if self.config_path.exists():
            logger.warning(f"Config file already exists: {self.config_path}")
            return False

        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        self.config_path.write_text(DEFAULT_CONFIG + "\n")
        # Holds the Telegram token, owner read/write only
        os.chmod(self.config_path, 0o600)
        logger.info(f"Default configuration written to {self.config_path}")
        return True


# Default configuration template
DEFAULT_CONFIG = """
# R2 Testnet Bot Configuration
# Signing keys go in the keys file (PRIVATE_KEY=0x... per line), not here.

rpc_url: https://eth-sepolia.public.blastapi.io
chain_id: 11155111
explorer_url: https://sepolia.etherscan.io/
keys_file: .env

# Telegram notifications (leave empty to disable)
telegram_bot_token: null
telegram_chat_id: null
notification_timeout: 10.0

# Slippage (basis points)
swap_slippage_bps: 50
liquidity_slippage_bps: 500

# Transactions
swap_gas_limit: 350000
liquidity_gas_limit: 750000
deadline_seconds: 1200
receipt_timeout_seconds: 600

# Logging
log_level: INFO
log_file: ./r2_bot.log
""".strip()
