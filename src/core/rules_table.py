"""Rule table construction (core domain).

The table is built from an already-parsed configuration mapping. File formats
live in the adapters; this module only checks the shape, compiles patterns and
freezes the result.
"""

from __future__ import annotations

import re
from types import MappingProxyType
from typing import Any, Mapping, Optional, Tuple

from core.models import (
    ACTIONS,
    PLATFORMS,
    DefaultBehavior,
    Destination,
    DetectionRule,
    MessageTypeRule,
    MessagingRules,
)


class RulesConfigError(ValueError):
    """Raised when the configuration cannot be turned into a rule table."""


def _require_mapping(value: Any, path: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise RulesConfigError(f"{path} must be a mapping")
    return value


def _require_str(value: Any, path: str) -> str:
    if not isinstance(value, str) or not value:
        raise RulesConfigError(f"{path} must be a non-empty string")
    return value


def _optional_str(value: Any, path: str) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise RulesConfigError(f"{path} must be a string")
    return value


def _string_list(value: Any, path: str) -> Tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise RulesConfigError(f"{path} must be a list of strings")
    return tuple(value)


def _compile_patterns(value: Any, path: str) -> Tuple[re.Pattern, ...]:
    compiled = []
    for index, raw in enumerate(_string_list(value, path)):
        try:
            compiled.append(re.compile(raw, re.IGNORECASE))
        except re.error as exc:
            raise RulesConfigError(f"{path}[{index}] is not a valid regex: {exc}") from exc
    return tuple(compiled)


def _build_destination(key: str, raw: Any) -> Destination:
    path = f"destinations.{key}"
    entry = _require_mapping(raw, path)
    platform = entry.get("platform", "telegram")
    if platform not in PLATFORMS:
        raise RulesConfigError(
            f"{path}.platform must be one of {', '.join(sorted(PLATFORMS))}, got {platform!r}"
        )
    # Telegram chat ids are often written as bare integers in hand-edited files.
    transport_id = entry.get("id", "")
    topic_id = entry.get("topic_id")
    if topic_id is not None and not isinstance(topic_id, int):
        try:
            topic_id = int(topic_id)
        except (TypeError, ValueError) as exc:
            raise RulesConfigError(f"{path}.topic_id must be an integer") from exc
    priority = entry.get("priority", 0)
    if not isinstance(priority, int) or isinstance(priority, bool):
        raise RulesConfigError(f"{path}.priority must be an integer")
    return Destination(
        key=key,
        id=str(transport_id) if transport_id is not None else "",
        platform=platform,
        name=_optional_str(entry.get("name"), f"{path}.name") or key,
        description=_optional_str(entry.get("description"), f"{path}.description"),
        priority=priority,
        topic_id=topic_id,
    )


def _build_type_rule(raw: Any, path: str) -> MessageTypeRule:
    entry = _require_mapping(raw, path)
    return MessageTypeRule(
        allowed_in=_string_list(entry.get("allowed_in"), f"{path}.allowed_in"),
        blocked_in=_string_list(entry.get("blocked_in"), f"{path}.blocked_in"),
        requires_confirmation=_string_list(
            entry.get("requires_confirmation"), f"{path}.requires_confirmation"
        ),
        content_patterns=_compile_patterns(entry.get("content_patterns"), f"{path}.content_patterns"),
        reason=_optional_str(entry.get("reason"), f"{path}.reason"),
    )


def _build_default(raw: Any, path: str) -> DefaultBehavior:
    entry = _require_mapping(raw if raw is not None else {"action": "ask"}, path)
    action = entry.get("action", "ask")
    if action not in ACTIONS:
        raise RulesConfigError(f"{path}.action must be one of ask, allow, block, got {action!r}")
    return DefaultBehavior(action=action, message=_optional_str(entry.get("message"), f"{path}.message"))


def build_rules_table(config: Mapping[str, Any]) -> MessagingRules:
    """Validate a parsed configuration and freeze it into a MessagingRules table.

    Unknown top-level keys (logging, notifications, ...) are ignored so the
    same file can carry application settings. Any schema violation raises
    RulesConfigError naming the offending path; no partial table is returned.
    """

    config = _require_mapping(config, "config")

    raw_destinations = _require_mapping(config.get("destinations", {}), "destinations")
    destinations = {
        str(key): _build_destination(str(key), raw) for key, raw in raw_destinations.items()
    }

    raw_types = _require_mapping(config.get("message_types", {}), "message_types")
    message_types = {}
    for category, raw_category in raw_types.items():
        subtypes = _require_mapping(raw_category, f"message_types.{category}")
        message_types[str(category)] = MappingProxyType(
            {
                str(subtype): _build_type_rule(raw_rule, f"message_types.{category}.{subtype}")
                for subtype, raw_rule in subtypes.items()
            }
        )

    raw_detection = config.get("detection_rules") or []
    if not isinstance(raw_detection, list):
        raise RulesConfigError("detection_rules must be a list")
    detection_rules = []
    for index, raw_rule in enumerate(raw_detection):
        path = f"detection_rules[{index}]"
        entry = _require_mapping(raw_rule, path)
        detection_rules.append(
            DetectionRule(
                name=_optional_str(entry.get("name"), f"{path}.name") or f"rule_{index}",
                patterns=_compile_patterns(entry.get("patterns"), f"{path}.patterns"),
                classify_as=_require_str(entry.get("classify_as"), f"{path}.classify_as"),
            )
        )

    defaults = _require_mapping(config.get("defaults", {}), "defaults")

    return MessagingRules(
        version=str(config.get("version", "1")),
        destinations=MappingProxyType(destinations),
        message_types=MappingProxyType(message_types),
        detection_rules=tuple(detection_rules),
        unknown_message_type=_build_default(
            defaults.get("unknown_message_type"), "defaults.unknown_message_type"
        ),
        unknown_destination=_build_default(
            defaults.get("unknown_destination"), "defaults.unknown_destination"
        ),
        override_code=_require_str(config.get("override_code"), "override_code"),
    )
