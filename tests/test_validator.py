from __future__ import annotations

from core.models import MessageContext, ValidationResult
from core.rules_table import build_rules_table
from core.validator import MessageValidator

OVERRIDE = "BOSS_OVERRIDE"


def _config(**overrides) -> dict:
    config = {
        "version": "1",
        "override_code": OVERRIDE,
        "destinations": {
            "boss_dm": {"id": "111", "platform": "telegram", "name": "Boss DM"},
            "ops_group": {"id": "-100222", "platform": "telegram", "name": "Ops Group"},
            "work_group": {"id": "-100333", "platform": "telegram", "name": "Work Group"},
        },
        "message_types": {
            "digest": {
                "*": {"allowed_in": ["boss_dm", "ops_group"], "blocked_in": ["work_group"]},
                "reddit": {
                    "allowed_in": ["ops_group", "boss_dm"],
                    "requires_confirmation": ["boss_dm"],
                },
            },
            "business": {
                "revenue": {
                    "allowed_in": ["boss_dm"],
                    "blocked_in": ["work_group"],
                    "reason": "Revenue stays private",
                },
            },
            "reminder": {
                "*": {"allowed_in": ["work_group"], "blocked_in": ["work_group"]},
            },
        },
        "detection_rules": [
            {"name": "reddit", "patterns": [r"\br/[a-z]+"], "classify_as": "digest.reddit"},
            {"name": "revenue", "patterns": [r"revenue"], "classify_as": "business.revenue"},
        ],
        "defaults": {
            "unknown_message_type": {"action": "block"},
            "unknown_destination": {"action": "ask"},
        },
    }
    config.update(overrides)
    return config


def _validator(**overrides) -> MessageValidator:
    return MessageValidator(build_rules_table(_config(**overrides)))


def _context(content: str, destination: str, is_reply: bool = False) -> MessageContext:
    return MessageContext(content=content, destination=destination, channel="telegram", is_reply=is_reply)


def test_digest_with_emoji_is_allowed_in_boss_dm() -> None:
    result = _validator().validate(_context("Morning digest 🦾", "boss_dm"))
    assert result.allowed is True
    assert result.action == "allow"
    assert result.message_type == "digest.*"
    assert result.matched_rule == "digest.*"
    assert result.needs_confirmation is False


def test_override_code_bypasses_unknown_destination() -> None:
    result = _validator().validate(_context(f"{OVERRIDE} urgent", "anything"))
    assert result == ValidationResult(allowed=True, action="allow", reason="Override code used")


def test_override_code_wins_over_block() -> None:
    result = _validator().validate(_context(f"weekly digest {OVERRIDE}", "work_group"))
    assert result.allowed is True
    assert result.reason == "Override code used"


def test_blocked_revenue_suggests_first_allowed_destination() -> None:
    result = _validator().validate(_context("quarterly revenue report", "work_group"))
    assert result.allowed is False
    assert result.action == "block"
    assert result.reason == "Revenue stays private"
    assert result.matched_rule == "business.revenue"
    assert result.suggested_destination == "boss_dm"
    assert result.needs_confirmation is True


def test_blocked_reason_is_generated_without_explicit_reason() -> None:
    result = _validator().validate(_context("daily digest", "work_group"))
    assert result.action == "block"
    assert result.reason == "digest.* is blocked in Work Group"
    assert result.suggested_destination == "boss_dm"


def test_block_wins_when_destination_is_also_allowed() -> None:
    result = _validator().validate(_context("reminder: standup", "work_group"))
    assert result.action == "block"
    assert result.allowed is False


def test_blocked_without_allowed_list_has_no_suggestion() -> None:
    config = _config()
    config["message_types"]["digest"]["*"] = {"blocked_in": ["*"]}
    result = MessageValidator(build_rules_table(config)).validate(_context("digest", "boss_dm"))
    assert result.action == "block"
    assert result.suggested_destination is None


def test_unknown_destination_uses_configured_default() -> None:
    result = _validator().validate(_context("weekly digest summary", "somewhere_else"))
    assert result.allowed is False
    assert result.action == "ask"
    assert result.reason == "Unknown destination: somewhere_else"
    assert result.message_type == "digest.*"
    assert result.needs_confirmation is True


def test_unknown_type_is_checked_before_unknown_destination() -> None:
    result = _validator().validate(_context("weekly summary", "somewhere_else"))
    assert result.action == "block"
    assert result.reason == "No rules for message type: unknown"
    assert result.message_type == "unknown"


def test_unknown_type_with_allow_default_is_still_not_allowed() -> None:
    validator = _validator(defaults={"unknown_message_type": {"action": "allow"}})
    result = validator.validate(_context("hello there", "boss_dm"))
    assert result.action == "allow"
    assert result.allowed is False
    assert result.needs_confirmation is True


def test_category_without_matching_rule_counts_as_unknown_type() -> None:
    # business has only a "revenue" subtype, so business.* finds nothing.
    result = _validator().validate(_context("business update", "boss_dm"))
    assert result.reason == "No rules for message type: business.*"


def test_confirmation_required_unless_reply() -> None:
    validator = _validator()
    asked = validator.validate(_context("top posts from r/programming thread", "boss_dm"))
    assert asked.action == "ask"
    assert asked.message_type == "digest.reddit"
    assert asked.matched_rule == "digest.reddit"
    assert asked.reason == "Boss DM requires confirmation for digest.reddit"

    replied = validator.validate(_context("top posts from r/programming thread", "boss_dm", is_reply=True))
    assert replied.action == "allow"
    assert replied.allowed is True


def test_reply_without_allow_falls_through_to_default_ask() -> None:
    config = _config()
    config["message_types"]["digest"]["reddit"]["allowed_in"] = ["ops_group"]
    validator = MessageValidator(build_rules_table(config))
    result = validator.validate(_context("r/python thread", "boss_dm", is_reply=True))
    assert result.action == "ask"
    assert result.matched_rule is None
    assert result.reason == "digest.reddit not explicitly allowed in Boss DM"


def test_not_explicitly_allowed_asks() -> None:
    config = _config()
    config["message_types"]["digest"]["*"] = {"allowed_in": ["ops_group"]}
    result = MessageValidator(build_rules_table(config)).validate(_context("digest", "boss_dm"))
    assert result.allowed is False
    assert result.action == "ask"
    assert result.needs_confirmation is True


def test_wildcard_pattern_matches_any_destination() -> None:
    config = _config()
    config["message_types"]["digest"]["*"] = {"allowed_in": ["*"]}
    result = MessageValidator(build_rules_table(config)).validate(_context("digest", "work_group"))
    assert result.action == "allow"


def test_detection_rule_beats_keyword_fallback() -> None:
    # "reminder" would classify as reminder.* without the detection rule.
    assert _validator().detect_message_type("reminder: check r/python") == "digest.reddit"


def test_detection_rules_are_checked_in_order() -> None:
    assert _validator().detect_message_type("revenue on r/startups") == "digest.reddit"


def test_keyword_fallback_precedence() -> None:
    validator = _validator(detection_rules=[])
    assert validator.detect_message_type("Digest and reminder") == "digest.*"
    assert validator.detect_message_type("Don't forget the business call") == "reminder.*"
    assert validator.detect_message_type("In response to your revenue question") == "reply.*"
    assert validator.detect_message_type("Business as usual") == "business.*"
    assert validator.detect_message_type("🦾") == "digest.*"
    assert validator.detect_message_type("hello") == "unknown"


def test_parse_message_type() -> None:
    parse = MessageValidator.parse_message_type
    assert parse("digest.reddit") == ("digest", "reddit")
    assert parse("digest.*") == ("digest", "*")
    assert parse("digest") == ("digest", "*")
    assert parse("unknown") == ("unknown", "*")


def test_find_rule_prefers_exact_subtype() -> None:
    validator = _validator()
    rules = validator.rules
    assert validator.find_rule("digest.reddit") is rules.message_types["digest"]["reddit"]
    assert validator.find_rule("digest.hackernews") is rules.message_types["digest"]["*"]
    assert validator.find_rule("digest.*") is rules.message_types["digest"]["*"]
    assert validator.find_rule("business.*") is None
    assert validator.find_rule("unknown") is None


def test_destination_matching_is_exact_and_case_sensitive() -> None:
    validator = _validator()
    assert validator.matches_destination("boss_dm", "boss_dm")
    assert validator.matches_destination("boss_dm", "*")
    assert not validator.matches_destination("boss_dm", "Boss_dm")
    assert not validator.matches_destination("boss_dm", "boss")
    assert not validator.is_destination_in_list("boss_dm", [])


def test_format_confirmation_short_content() -> None:
    validator = _validator()
    context = _context("quarterly revenue report", "work_group")
    result = validator.validate(context)
    text = validator.format_confirmation(context, result)
    assert text == (
        "⚠️ **Send Confirmation Required**\n\n"
        "**To:** Work Group\n"
        "**Type:** business.revenue\n"
        "**Reason:** Revenue stays private\n\n"
        "**Message:**\nquarterly revenue report\n\n"
        "**Suggested:** Boss DM\n\n"
        "Reply **YES** to send, **NO** to cancel."
    )


def test_format_confirmation_truncates_long_content() -> None:
    validator = _validator()
    content = "digest " + "x" * 200
    context = _context(content, "nowhere")
    result = validator.validate(context)
    text = validator.format_confirmation(context, result)
    assert f"**Message:**\n{content[:100]}...\n\n" in text
    assert content[:101] not in text
    assert "**To:** nowhere" in text
    assert "**Suggested:**" not in text


def test_format_confirmation_keeps_exactly_100_chars() -> None:
    validator = _validator()
    content = "digest" + "y" * 94
    context = _context(content, "nowhere")
    text = validator.format_confirmation(context, validator.validate(context))
    assert f"**Message:**\n{content}\n\n" in text
    assert "..." not in text


def test_validate_is_deterministic() -> None:
    validator = _validator()
    context = _context("r/python thread", "boss_dm")
    assert validator.validate(context) == validator.validate(context)


def test_parse_message_type_keeps_rest_after_first_dot() -> None:
    # Only the first dot separates category from subtype.
    assert MessageValidator.parse_message_type("digest.reddit.top") == ("digest", "reddit.top")
    assert MessageValidator.parse_message_type("digest.") == ("digest", "*")


def test_nested_subtype_path_falls_back_to_category_wildcard() -> None:
    validator = _validator()
    assert validator.find_rule("digest.reddit.top") is validator.rules.message_types["digest"]["*"]


def test_format_confirmation_escapes_interpolated_values() -> None:
    validator = _validator()
    context = _context("digest **bold** [x](y)", "nowhere")
    result = validator.validate(context)
    text = validator.format_confirmation(context, result, escape=lambda value: value.upper())
    assert "**Message:**\nDIGEST **BOLD** [X](Y)\n" in text
    assert "**To:** NOWHERE" in text
    assert "**Reason:** UNKNOWN DESTINATION: NOWHERE" in text
    # Template markup is never passed through the escaper.
    assert text.startswith("⚠️ **Send Confirmation Required**")
    assert text.endswith("Reply **YES** to send, **NO** to cancel.")
