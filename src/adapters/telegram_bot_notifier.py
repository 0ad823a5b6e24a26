"""Telegram Bot API confirmation adapter.

Uses the Bot API for delivery so confirmation requests can be routed via a bot
chat owned by the person who approves sends.
"""

from __future__ import annotations

import json
import urllib.error
import urllib.request

from adapters.notification_formatting import escape_md, format_confirmation
from core.models import MessageContext, ValidationResult


class TelegramBotConfirmer:
    """Confirmation adapter that sends requests via the Telegram Bot API."""

    escape = staticmethod(escape_md)

    def __init__(self, bot_token: str, chat_id: str, timeout: float = 10) -> None:
        self._bot_token = bot_token
        self._chat_id = chat_id
        self._timeout = timeout

    def _endpoint(self) -> str:
        return f"https://api.telegram.org/bot{self._bot_token}/sendMessage"

    def build_payload(self, text: str) -> dict:
        return {
            "chat_id": self._chat_id,
            "text": format_confirmation(text, mode="html"),
            "parse_mode": "HTML",
            "disable_web_page_preview": True,
        }

    async def send(self, context: MessageContext, result: ValidationResult, text: str) -> None:
        """Send the confirmation request via the Bot API."""

        data = json.dumps(self.build_payload(text)).encode("utf-8")
        request = urllib.request.Request(self._endpoint(), data=data, method="POST")
        request.add_header("Content-Type", "application/json")
        # Blocking call; confirmations are rare and the guard awaits delivery anyway.
        try:
            with urllib.request.urlopen(request, timeout=self._timeout):
                pass
        except urllib.error.HTTPError as e:
            body = e.read().decode("utf-8", errors="replace")
            raise RuntimeError(f"Bot API error {e.code}: {body}") from e
