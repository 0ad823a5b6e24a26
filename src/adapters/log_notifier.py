"""Confirmation adapter that only writes to the log.

Used when no Telegram delivery is configured; the request still shows up in
the console or log file for whoever watches the host.
"""

from __future__ import annotations

import logging

from core.models import MessageContext, ValidationResult

LOGGER = logging.getLogger(__name__)


class LoggingConfirmer:
    async def send(self, context: MessageContext, result: ValidationResult, text: str) -> None:
        LOGGER.warning("[Messaging Safety] Confirmation request:\n%s", text)
