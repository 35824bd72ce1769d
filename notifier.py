"""
Telegram notifications.

Best effort only: one POST per message, no retries, and a failed delivery is
reported as ``False`` rather than raised, so it can never change the outcome
of the action being reported.
"""

from typing import Optional

import requests

from utils import logger

TELEGRAM_API_BASE = "https://api.telegram.org"


class TelegramNotifier:
    """Sends HTML-formatted messages to a single Telegram chat."""

    def __init__(
        self,
        bot_token: Optional[str],
        chat_id: Optional[str],
        timeout: float = 10.0,
        session: Optional[requests.Session] = None
    ):
        self.bot_token = bot_token
        self.chat_id = chat_id
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def enabled(self) -> bool:
        return bool(self.bot_token and self.chat_id)

    @property
    def endpoint(self) -> str:
        return f"{TELEGRAM_API_BASE}/bot{self.bot_token}/sendMessage"

    def notify(self, message: str) -> bool:
        """Deliver ``message``; True only when Telegram accepted it."""
        if not self.enabled:
            logger.debug("Telegram notifications disabled, message not sent")
            return False

        payload = {
            "chat_id": self.chat_id,
            "text": message,
            "parse_mode": "HTML"
        }

        try:
            response = self.session.post(self.endpoint, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            logger.debug(f"Telegram notification failed: {e}")
            return False

        if not response.ok:
            logger.debug(f"Telegram API error: {response.status_code} - {response.text[:200]}")
            return False
        return True
