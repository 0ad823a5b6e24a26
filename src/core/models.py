"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any integration-specific types. The rule table types are frozen
and hold tuples and read-only mappings, so a loaded table can be shared by any
number of callers without locking.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import re
from types import MappingProxyType
from typing import Any, Literal, Mapping, Optional, Tuple

Action = Literal["allow", "block", "ask"]

ALLOW: Action = "allow"
BLOCK: Action = "block"
ASK: Action = "ask"
ACTIONS = frozenset({ALLOW, BLOCK, ASK})

PLATFORMS = frozenset({"telegram", "discord", "slack", "webchat"})

WILDCARD = "*"
UNKNOWN_TYPE = "unknown"

# Placeholder transport id written by hand-edited configs before the real id is known.
UNCONFIGURED_ID = "TBD"

_EMPTY: Mapping[str, Any] = MappingProxyType({})


@dataclass(frozen=True)
class Destination:
    """A named sendable target (chat, group, channel)."""

    key: str
    id: str
    platform: str
    name: str
    description: Optional[str] = None
    priority: int = 0
    topic_id: Optional[int] = None

    @property
    def is_configured(self) -> bool:
        return bool(self.id) and self.id != UNCONFIGURED_ID


@dataclass(frozen=True)
class MessageTypeRule:
    """Destination patterns for one category/subtype."""

    allowed_in: Tuple[str, ...] = ()
    blocked_in: Tuple[str, ...] = ()
    requires_confirmation: Tuple[str, ...] = ()
    content_patterns: Tuple[re.Pattern, ...] = ()
    reason: Optional[str] = None


# subtype name (including "*") -> rule
MessageTypeCategory = Mapping[str, MessageTypeRule]


@dataclass(frozen=True)
class DetectionRule:
    """Ordered content patterns that classify a message as `classify_as`."""

    name: str
    patterns: Tuple[re.Pattern, ...]
    classify_as: str


@dataclass(frozen=True)
class DefaultBehavior:
    action: Action
    message: Optional[str] = None


@dataclass(frozen=True)
class MessagingRules:
    """The rule table. Built once per load, never mutated afterwards."""

    version: str
    destinations: Mapping[str, Destination]
    message_types: Mapping[str, MessageTypeCategory]
    detection_rules: Tuple[DetectionRule, ...]
    unknown_message_type: DefaultBehavior
    unknown_destination: DefaultBehavior
    override_code: str


@dataclass(frozen=True)
class MessageContext:
    """One outgoing send attempt."""

    content: str
    destination: str
    channel: str
    is_reply: bool = False
    thread_id: Optional[str] = None
    metadata: Mapping[str, Any] = field(default_factory=lambda: _EMPTY)


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating a single MessageContext."""

    allowed: bool
    action: Action
    reason: Optional[str] = None
    message_type: Optional[str] = None
    matched_rule: Optional[str] = None
    suggested_destination: Optional[str] = None
    needs_confirmation: bool = False


@dataclass(frozen=True)
class HookDecision:
    """What the host send pipeline should do with the message."""

    allow: bool
    reason: Optional[str] = None
