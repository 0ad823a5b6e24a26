"""Application entry point for the sendguard command line."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from dataclasses import asdict
from logging.handlers import RotatingFileHandler
from typing import Any, Optional

from art import tprint

import settings
from adapters.config_store import (
    DestinationError,
    add_destination,
    get_destination_id,
    list_destinations,
    load_config_file,
    remove_destination,
    save_config_file,
    update_destination_id,
)
from adapters.log_notifier import LoggingConfirmer
from adapters.telegram_bot_notifier import TelegramBotConfirmer
from adapters.telegram_notifier import TelegramSavedMessagesConfirmer
from core.guard import VALIDATION_ERROR_REASON, PreSendGuard, decide
from core.models import ASK, PLATFORMS, MessageContext
from core.rules_table import RulesConfigError, build_rules_table

NAME = "SENDGUARD"
FONT = "tarty-1"

EXIT_ALLOWED = 0
EXIT_BLOCKED = 1
EXIT_CONFIG_ERROR = 2
EXIT_NEEDS_CONFIRMATION = 3


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


def _error(message: str) -> None:
    print(f"[ERROR] {message}", file=sys.stderr)


class _RedactingFormatter(logging.Formatter):
    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _collect_redaction_values(config: dict) -> list[str]:
    logging_cfg = config.get("logging", {}) or {}
    redact_cfg = logging_cfg.get("redact", {})
    if not redact_cfg.get("enabled", False):
        return []
    values = []
    for name in redact_cfg.get("patterns", []):
        value = os.getenv(name)
        if value:
            values.append(value)
    # The override code unlocks every send, so it never reaches a log line.
    override_code = config.get("override_code")
    if isinstance(override_code, str) and override_code:
        values.append(override_code)
    return sorted(set(values), key=len, reverse=True)


def _configure_logging(config: dict) -> None:
    logging_cfg = config.get("logging", {}) or {}
    if not logging_cfg.get("enabled", False):
        return

    level_name = str(logging_cfg.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    formatter = _RedactingFormatter(_collect_redaction_values(config), fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    if logging_cfg.get("console", True):
        # stderr keeps stdout clean for the decision output.
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = logging_cfg.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/sendguard.log")
        if not os.path.isabs(path):
            path = os.path.join(settings.PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        max_bytes = int(file_cfg.get("max_bytes", 5 * 1024 * 1024))
        backup_count = int(file_cfg.get("backup_count", 5))
        file_handler = RotatingFileHandler(
            path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers, force=True)


class _EchoConfirmer:
    """Print the confirmation request and optionally forward it for delivery."""

    def __init__(self, wrapped=None) -> None:
        self._wrapped = wrapped
        self.escape = getattr(wrapped, "escape", None)

    async def send(self, context, result, text) -> None:
        print(text)
        if self._wrapped is not None:
            await self._wrapped.send(context, result, text)


def _build_confirmer(config: dict) -> tuple[Any, Any]:
    """Select the confirmation adapter; returns (confirmer, telethon client or None)."""

    method, bot_chat_id = settings.notification_settings(config)
    if method == "bot":
        bot_token = os.getenv("BOT_API")
        if not bot_token:
            raise RuntimeError("BOT_API is required when notifications.method=bot")
        if not bot_chat_id:
            raise RuntimeError("notifications.bot_chat_id is required for bot notifications")
        return TelegramBotConfirmer(bot_token=bot_token, chat_id=str(bot_chat_id)), None
    if method == "saved_messages":
        from client import build_client

        client = build_client()
        return TelegramSavedMessagesConfirmer(client), client
    if method == "log":
        return LoggingConfirmer(), None
    raise RuntimeError("notifications.method must be 'log', 'saved_messages' or 'bot'")


async def _run_guard(guard: PreSendGuard, context: MessageContext, client) -> Any:
    if client is not None:
        await client.start()
    try:
        return await guard.before_send(context)
    finally:
        if client is not None:
            await client.disconnect()


def _load_config(path: str) -> Optional[dict]:
    try:
        return load_config_file(path)
    except FileNotFoundError as exc:
        _error(str(exc))
        _error("Create one with: sendguard init")
    except (OSError, ValueError) as exc:
        _error(f"Could not read config {path}: {exc}")
    return None


def _read_message(source: str) -> str:
    if source == "-":
        return sys.stdin.read()
    with open(source, "r", encoding="utf-8") as handle:
        return handle.read()


def _cmd_init(args: argparse.Namespace) -> int:
    _print_banner()
    path = args.config
    if os.path.exists(path):
        print(f"Config already exists: {path}")
        return EXIT_ALLOWED

    directory = os.path.dirname(os.path.abspath(path))
    os.makedirs(directory, exist_ok=True)
    save_config_file(path, load_config_file(settings.EXAMPLE_CONFIG_PATH))
    print(f"Copied default config to: {path}")
    print("Next steps:")
    print("1. Update destination ids (your Telegram chat ids)")
    print("2. Customize message type rules as needed")
    print("3. Test with: sendguard check <message_file> <destination>")
    return EXIT_ALLOWED


def _cmd_check(args: argparse.Namespace) -> int:
    config = _load_config(args.config)
    if config is None:
        return EXIT_CONFIG_ERROR
    _configure_logging(config)
    logger = logging.getLogger(__name__)

    try:
        rules = build_rules_table(config)
    except RulesConfigError as exc:
        _error(f"Invalid config: {exc}")
        return EXIT_CONFIG_ERROR

    try:
        content = _read_message(args.message)
    except (OSError, UnicodeDecodeError) as exc:
        _error(f"Message file not readable: {exc}")
        return EXIT_CONFIG_ERROR

    destination = rules.destinations.get(args.destination)
    if destination is not None and not destination.is_configured:
        _error(f"Destination '{args.destination}' has no valid id configured")
        return EXIT_CONFIG_ERROR

    context = MessageContext(
        content=content,
        destination=args.destination,
        channel=args.channel or (destination.platform if destination else "telegram"),
        is_reply=args.reply,
        thread_id=str(destination.topic_id) if destination and destination.topic_id else None,
    )

    client = None
    wrapped = None
    if args.notify:
        try:
            wrapped, client = _build_confirmer(config)
        except RuntimeError as exc:
            _error(str(exc))
            return EXIT_CONFIG_ERROR

    try:
        result = decide(rules, context)
    except Exception:
        logger.exception("Messaging safety validation error")
        print(json.dumps({"allow": False, "reason": VALIDATION_ERROR_REASON}))
        return EXIT_BLOCKED

    print(json.dumps(asdict(result), ensure_ascii=False, indent=2))

    guard = PreSendGuard(rules, _EchoConfirmer(wrapped))
    coro = _run_guard(guard, context, client)
    if client is not None:
        decision = client.loop.run_until_complete(coro)
    else:
        decision = asyncio.run(coro)

    if decision.allow:
        print(f"SEND_TO: {args.destination}")
        if destination is not None:
            print(f"SEND_ID: {destination.id}")
            if destination.topic_id is not None:
                print(f"TOPIC_ID: {destination.topic_id}")
        return EXIT_ALLOWED

    if result.action == ASK and decision.reason != VALIDATION_ERROR_REASON:
        return EXIT_NEEDS_CONFIRMATION
    print(f"BLOCKED: {decision.reason}")
    return EXIT_BLOCKED


def _print_destination(key: str, entry: dict) -> None:
    print(f"Name: {key}")
    print(f"  ID: {entry.get('id', '')}")
    if entry.get("topic_id") is not None:
        print(f"  Topic ID: {entry['topic_id']}")
    print(f"  Platform: {entry.get('platform', 'telegram')}")
    if entry.get("name") and entry["name"] != key:
        print(f"  Display name: {entry['name']}")
    if entry.get("description"):
        print(f"  Description: {entry['description']}")
    print("---")


def _cmd_destinations(args: argparse.Namespace) -> int:
    config = _load_config(args.config)
    if config is None:
        return EXIT_CONFIG_ERROR

    try:
        if args.action == "list":
            entries = list_destinations(config)
            if not entries:
                print("No destinations configured yet.")
                print("Add one with: sendguard destinations add <name> <id> [--platform P] [--topic-id N]")
            for key, entry in entries:
                _print_destination(key, entry)
            return EXIT_ALLOWED

        if args.action == "get":
            print(get_destination_id(config, args.name))
            return EXIT_ALLOWED

        if args.action == "add":
            add_destination(
                config,
                args.name,
                args.id,
                platform=args.platform,
                topic_id=args.topic_id,
                name=args.display_name,
                description=args.description,
                priority=args.priority,
            )
            message = f"Destination '{args.name}' added"
        elif args.action == "update":
            update_destination_id(config, args.name, args.id)
            message = f"Destination '{args.name}' updated"
        else:
            remove_destination(config, args.name)
            message = f"Destination '{args.name}' removed"
    except DestinationError as exc:
        _error(str(exc))
        return EXIT_BLOCKED

    # Never write a file the guard would refuse to load.
    try:
        build_rules_table(config)
    except RulesConfigError as exc:
        _error(f"Edit would leave an invalid config: {exc}")
        return EXIT_CONFIG_ERROR

    save_config_file(args.config, config)
    print(message)
    return EXIT_ALLOWED


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="sendguard")
    parser.add_argument("--config", default=settings.CONFIG_PATH, help="Path to the config file")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("init", help="Create a config file from the bundled defaults")

    check = subparsers.add_parser("check", help="Validate a message before sending it")
    check.add_argument("message", help="Path to a file with the message content, or - for stdin")
    check.add_argument("destination", help="Destination name from the config")
    check.add_argument("--reply", action="store_true", help="The message is a reply")
    check.add_argument("--channel", help="Channel tag (defaults to the destination platform)")
    check.add_argument(
        "--notify",
        action="store_true",
        help="Deliver confirmation requests through the configured notification method",
    )

    destinations = subparsers.add_parser("destinations", help="Manage destination entries")
    actions = destinations.add_subparsers(dest="action", required=True)
    actions.add_parser("list", aliases=["ls"], help="Show all configured destinations")
    add = actions.add_parser("add", help="Add a new destination")
    add.add_argument("name")
    add.add_argument("id")
    add.add_argument("--platform", default="telegram", choices=sorted(PLATFORMS))
    add.add_argument("--topic-id", type=int)
    add.add_argument("--display-name")
    add.add_argument("--description")
    add.add_argument("--priority", type=int, default=0)
    update = actions.add_parser("update", help="Update a destination id")
    update.add_argument("name")
    update.add_argument("id")
    remove = actions.add_parser("remove", aliases=["rm", "delete"], help="Remove a destination")
    remove.add_argument("name")
    get = actions.add_parser("get", help="Print a destination id")
    get.add_argument("name")

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command == "init":
        return _cmd_init(args)
    if args.command == "check":
        return _cmd_check(args)
    if args.command == "destinations":
        # Normalize aliases so handlers only see canonical names.
        args.action = {"ls": "list", "rm": "remove", "delete": "remove"}.get(args.action, args.action)
        return _cmd_destinations(args)

    _print_banner()
    parser.print_help()
    return EXIT_ALLOWED


if __name__ == "__main__":
    raise SystemExit(main())
