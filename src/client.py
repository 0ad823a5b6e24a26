"""Telegram client factory for sendguard.

Confirmation requests sent with notifications.method=saved_messages go to the
approver's own Saved Messages. Only a user session can write there (a bot has
no Saved Messages), so this builds a Telethon user client rather than using
the Bot API. The caller starts and disconnects it around a single check.
"""

from __future__ import annotations

import logging
import os
from typing import Optional

from dotenv import load_dotenv
from telethon import TelegramClient

DEFAULT_SESSION_NAME = "sendguard"


def build_client(session_name: Optional[str] = None) -> TelegramClient:
    """Create a user client from API_ID/API_HASH in the environment.

    The session file is named by `session_name`, then SESSION_NAME, then
    "sendguard"; the first `client.start()` runs Telethon's interactive login.
    """

    load_dotenv()

    api_id = os.getenv("API_ID")
    api_hash = os.getenv("API_HASH")
    if not api_id or not api_hash:
        raise RuntimeError("Missing API_ID or API_HASH in environment (needed for saved_messages)")
    if not api_id.isdigit():
        raise RuntimeError("API_ID must be numeric")

    session = session_name or os.getenv("SESSION_NAME") or DEFAULT_SESSION_NAME
    logging.getLogger(__name__).info("Initializing Telegram user session %s", session)

    return TelegramClient(session, int(api_id), api_hash)
