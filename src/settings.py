"""Static configuration for sendguard.

All user-editable settings (destinations, message type rules, defaults,
notifications, logging) live in a single config file for quick edits without
touching Python. Only paths and environment lookups are resolved here; the
file itself is read on demand so `sendguard init` works before it exists.
"""

import os

from dotenv import load_dotenv

load_dotenv()

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

# Where the active config lives. SENDGUARD_CONFIG may point at a .json or .yaml file.
CONFIG_PATH = os.getenv("SENDGUARD_CONFIG") or os.path.join(PROJECT_ROOT, "config.json")

# Bundled defaults copied by `sendguard init`.
EXAMPLE_CONFIG_PATH = os.path.join(PROJECT_ROOT, "config.example.json")

# Confirmation delivery: "log", "saved_messages" or "bot".
DEFAULT_NOTIFICATION_METHOD = "log"


def notification_settings(config: dict) -> tuple[str, object]:
    """Return (method, bot_chat_id) from the notifications section."""

    notifications = config.get("notifications", {}) or {}
    method = notifications.get("method", DEFAULT_NOTIFICATION_METHOD)
    # Bot chat id is only required when method=bot.
    return method, notifications.get("bot_chat_id")
