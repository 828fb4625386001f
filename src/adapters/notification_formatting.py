"""Shared alert formatting helpers.

Keeping formatting here prevents drift between delivery modes and keeps
alerts consistent regardless of whether they go to Saved Messages or a bot
chat.
"""

from __future__ import annotations

import html

from core.models import Alert


def _format_markdown(alert: Alert) -> str:
    """Create the Markdown alert body used by Saved Messages."""

    # Telegram Markdown is supported by passing parse_mode="Markdown".
    def escape_md(value: str) -> str:
        for ch in r"*[`":
            value = value.replace(ch, f"\\{ch}")
        return value

    lines = [
        f"**{escape_md(alert.title)}**",
        escape_md(alert.body),
        "",
        f"**Contests:** {alert.destination_url}",
        "",
        "__Reply to this message to dismiss it.__",
    ]
    return "\n".join(lines)


def _format_html(alert: Alert) -> str:
    """Create the HTML alert body used by the bot delivery mode."""

    safe_link = html.escape(alert.destination_url)
    parts = [
        f"<b>{html.escape(alert.title)}</b>",
        html.escape(alert.body),
        "",
        f"<b>Contests:</b> <a href=\"{safe_link}\">{safe_link}</a>",
    ]
    return "\n".join(parts)


def format_alert(alert: Alert, mode: str) -> str:
    """Return the alert formatted for the requested mode."""

    if mode == "markdown":
        return _format_markdown(alert)
    if mode == "html":
        return _format_html(alert)
    raise ValueError(f"Unsupported notification format: {mode}")


def format_destination(url: str, mode: str) -> str:
    """Return the message that surfaces the contests page after an acknowledgement."""

    if mode == "markdown":
        return f"**Open contests:** {url}"
    if mode == "html":
        safe_link = html.escape(url)
        return f"<b>Open contests:</b> <a href=\"{safe_link}\">{safe_link}</a>"
    raise ValueError(f"Unsupported notification format: {mode}")
