"""Telegram confirmation adapter for Saved Messages.

Sends the Markdown confirmation request to the logged-in user's Saved Messages.
"""

from __future__ import annotations

from adapters.notification_formatting import escape_md, format_confirmation
from core.models import MessageContext, ValidationResult


class TelegramSavedMessagesConfirmer:
    """Confirmation adapter that sends requests to the user's Saved Messages."""

    escape = staticmethod(escape_md)

    def __init__(self, client, peer: str = "me") -> None:
        self._client = client
        self._peer = peer

    async def send(self, context: MessageContext, result: ValidationResult, text: str) -> None:
        message = format_confirmation(text, mode="markdown")
        await self._client.send_message(self._peer, message, parse_mode="Markdown")
