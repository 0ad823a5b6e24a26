"""Shared confirmation formatting helpers.

The validator renders confirmations as Markdown. Adapters pass `escape_md` as
the value escaper so message content cannot restyle the template, and
channels with a different markup convert here, which keeps the wording
identical regardless of delivery channel.
"""

from __future__ import annotations

import html
import re

_MD_SPECIAL = "*_[`"
_BOLD = re.compile(r"\*\*(.+?)\*\*")
_ESCAPED = re.compile(r"\\([*_\[`])")


def escape_md(value: str) -> str:
    """Backslash-escape the characters Telegram Markdown treats as markup."""

    for ch in _MD_SPECIAL:
        value = value.replace(ch, f"\\{ch}")
    return value


def markdown_to_html(text: str) -> str:
    """Escape `text` for Telegram HTML and turn **bold** spans into <b> tags.

    Characters escaped with `escape_md` never form a bold marker and are
    restored to their literal form.
    """

    converted = _BOLD.sub(r"<b>\1</b>", html.escape(text, quote=False))
    return _ESCAPED.sub(r"\1", converted)


def format_confirmation(text: str, mode: str) -> str:
    """Return the confirmation text formatted for the requested mode."""

    if mode == "markdown":
        return text
    if mode == "html":
        return markdown_to_html(text)
    raise ValueError(f"Unsupported notification format: {mode}")
