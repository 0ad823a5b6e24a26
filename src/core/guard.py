"""Pre-send guard used by the host send pipeline.

This module is integration-agnostic. It only relies on the confirmation port,
so the transport that actually reaches the human stays outside the core.

The guard enforces a strict contract:
1) allow  -> the send proceeds
2) block  -> the send is rejected with the rule's reason
3) ask    -> the send is withheld and a confirmation request is delivered
4) any error -> the send is rejected (fail closed, never fail open)
"""

from __future__ import annotations

import logging

from core.models import ALLOW, ASK, BLOCK, HookDecision, MessageContext, MessagingRules, ValidationResult
from core.ports import ConfirmationPort
from core.validator import MessageValidator

LOGGER = logging.getLogger(__name__)

VALIDATION_ERROR_REASON = "Validation error - message blocked for safety"


def decide(rules: MessagingRules, context: MessageContext) -> ValidationResult:
    """Validate one message against a rule table."""

    return MessageValidator(rules).validate(context)


class PreSendGuard:
    """Maps validation results to send decisions and routes confirmations."""

    def __init__(self, rules: MessagingRules, confirmer: ConfirmationPort) -> None:
        self._validator = MessageValidator(rules)
        self._confirmer = confirmer

    @property
    def rules(self) -> MessagingRules:
        return self._validator.rules

    def reload(self, rules: MessagingRules) -> None:
        """Bind a freshly loaded table.

        The new validator is fully built before the single reference swap, so
        a call in flight sees either the old table or the new one.
        """

        self._validator = MessageValidator(rules)
        LOGGER.info("Rule table reloaded (version %s)", rules.version)

    async def before_send(self, context: MessageContext) -> HookDecision:
        """Return whether the host may send this message."""

        validator = self._validator
        try:
            result = validator.validate(context)

            if result.action == ALLOW:
                return HookDecision(allow=True)

            if result.action == BLOCK:
                LOGGER.info("Blocked send to %s: %s", context.destination, result.reason)
                return HookDecision(allow=False, reason=result.reason)

            if result.action == ASK:
                text = validator.format_confirmation(
                    context, result, escape=getattr(self._confirmer, "escape", None)
                )
                await self._confirmer.send(context, result, text)
                LOGGER.info("Confirmation requested for send to %s", context.destination)
                return HookDecision(allow=False, reason=f"Confirmation required: {result.reason}")

            return HookDecision(allow=False, reason="Unknown validation result")
        except Exception:
            LOGGER.exception("Messaging safety validation error")
            return HookDecision(allow=False, reason=VALIDATION_ERROR_REASON)
