"""Ports (interfaces) used by the pre-send guard.

Ports define the minimal contracts for confirmation delivery so that the core
can be reused with different transports.
"""

from __future__ import annotations

from typing import Protocol

from core.models import MessageContext, ValidationResult


class ConfirmationPort(Protocol):
    """Delivers a confirmation request to the human in the loop.

    Adapters that render markup may also expose an `escape` callable; the
    guard applies it to message-derived values in the confirmation text.
    """

    async def send(self, context: MessageContext, result: ValidationResult, text: str) -> None:
        ...
