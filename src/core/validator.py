"""Message type classification and allow/block/ask decisions (core domain).

The validator is a pure function of (rule table, message context). It does no
I/O and keeps no state between calls, so one instance can serve any number of
callers while the table it holds stays read-only.

Note on the override code: it is a shared-secret substring, not a credential.
Anyone who puts it in a message bypasses every check.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Optional, Tuple

from core.models import (
    ALLOW,
    ASK,
    BLOCK,
    UNKNOWN_TYPE,
    WILDCARD,
    MessageContext,
    MessageTypeRule,
    MessagingRules,
    ValidationResult,
)

LOGGER = logging.getLogger(__name__)

PREVIEW_CHARS = 100


def _unescaped(value: str) -> str:
    return value


# Fallback keyword heuristics, checked in order against lower-cased content.
_KEYWORD_FALLBACK: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("digest", "🦾"), "digest.*"),
    (("reminder", "don't forget"), "reminder.*"),
    (("replying to", "in response to"), "reply.*"),
    (("revenue", "business"), "business.*"),
)


class MessageValidator:
    """Resolve the rule for a message and decide whether it may be sent."""

    def __init__(self, rules: MessagingRules) -> None:
        self._rules = rules

    @property
    def rules(self) -> MessagingRules:
        return self._rules

    def detect_message_type(self, content: str) -> str:
        """Return the classification path for `content`.

        Configured detection rules always win over the keyword fallback; within
        each stage the first match in declaration order is returned.
        """

        for rule in self._rules.detection_rules:
            for pattern in rule.patterns:
                if pattern.search(content):
                    return rule.classify_as

        lowered = content.lower()
        for keywords, message_type in _KEYWORD_FALLBACK:
            if any(keyword in lowered for keyword in keywords):
                return message_type

        return UNKNOWN_TYPE

    @staticmethod
    def parse_message_type(type_path: str) -> Tuple[str, str]:
        """Split "category.subtype" into its parts; subtype defaults to "*"."""

        category, _, subtype = type_path.partition(".")
        return category, subtype or WILDCARD

    def find_rule(self, type_path: str) -> Optional[MessageTypeRule]:
        """Exact subtype rule first, then the category wildcard, else None."""

        category, subtype = self.parse_message_type(type_path)
        category_rules = self._rules.message_types.get(category)
        if category_rules is None:
            return None

        if subtype != WILDCARD and subtype in category_rules:
            return category_rules[subtype]

        return category_rules.get(WILDCARD)

    @staticmethod
    def matches_destination(destination: str, pattern: str) -> bool:
        return pattern == WILDCARD or pattern == destination

    def is_destination_in_list(self, destination: str, patterns: Iterable[str]) -> bool:
        return any(self.matches_destination(destination, pattern) for pattern in patterns)

    def destination_name(self, destination: str) -> str:
        """Display name for a destination key, or the key itself when unknown."""

        entry = self._rules.destinations.get(destination)
        if entry is None or not entry.name:
            return destination
        return entry.name

    def validate(self, context: MessageContext) -> ValidationResult:
        """Decide allow/block/ask for one outgoing message.

        Checks run in a fixed order and the first one that applies wins:
        override code, unknown type, unknown destination, blocked,
        confirmation (skipped for replies), allowed, then ask by default.
        """

        rules = self._rules
        content = context.content
        destination = context.destination

        if rules.override_code in content:
            LOGGER.info("Override code used for %s", destination)
            return ValidationResult(allowed=True, action=ALLOW, reason="Override code used")

        message_type = self.detect_message_type(content)
        category, subtype = self.parse_message_type(message_type)
        rule = self.find_rule(message_type)

        if rule is None:
            return ValidationResult(
                allowed=False,
                action=rules.unknown_message_type.action,
                reason=f"No rules for message type: {message_type}",
                message_type=message_type,
                needs_confirmation=True,
            )

        if destination not in rules.destinations:
            return ValidationResult(
                allowed=False,
                action=rules.unknown_destination.action,
                reason=f"Unknown destination: {destination}",
                message_type=message_type,
                needs_confirmation=True,
            )

        matched_rule = f"{category}.{subtype}"
        destination_name = self.destination_name(destination)

        if self.is_destination_in_list(destination, rule.blocked_in):
            LOGGER.debug("%s blocked for %s by %s", message_type, destination, matched_rule)
            return ValidationResult(
                allowed=False,
                action=BLOCK,
                reason=rule.reason or f"{message_type} is blocked in {destination_name}",
                message_type=message_type,
                matched_rule=matched_rule,
                suggested_destination=rule.allowed_in[0] if rule.allowed_in else None,
                needs_confirmation=True,
            )

        if not context.is_reply and self.is_destination_in_list(destination, rule.requires_confirmation):
            return ValidationResult(
                allowed=False,
                action=ASK,
                reason=f"{destination_name} requires confirmation for {message_type}",
                message_type=message_type,
                matched_rule=matched_rule,
                needs_confirmation=True,
            )

        if self.is_destination_in_list(destination, rule.allowed_in):
            return ValidationResult(
                allowed=True,
                action=ALLOW,
                message_type=message_type,
                matched_rule=matched_rule,
            )

        return ValidationResult(
            allowed=False,
            action=ASK,
            reason=f"{message_type} not explicitly allowed in {destination_name}",
            message_type=message_type,
            needs_confirmation=True,
        )

    def format_confirmation(
        self,
        context: MessageContext,
        result: ValidationResult,
        escape: Optional[Callable[[str], str]] = None,
    ) -> str:
        """Build the Markdown confirmation request shown to a human.

        `escape` is applied to every interpolated value (names, type, reason,
        preview) so message content cannot restyle the template itself.
        """

        escape = escape or _unescaped
        content = context.content
        preview = escape(content[:PREVIEW_CHARS])
        if len(content) > PREVIEW_CHARS:
            preview += "..."

        lines = [
            "⚠️ **Send Confirmation Required**",
            "",
            f"**To:** {escape(self.destination_name(context.destination))}",
            f"**Type:** {escape(str(result.message_type))}",
            f"**Reason:** {escape(str(result.reason))}",
            "",
            "**Message:**",
            preview,
            "",
        ]

        if result.suggested_destination:
            lines.extend([f"**Suggested:** {escape(self.destination_name(result.suggested_destination))}", ""])

        lines.append("Reply **YES** to send, **NO** to cancel.")
        return "\n".join(lines)
