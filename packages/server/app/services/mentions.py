"""Mention extraction and safe HTML rendering for update content."""

from __future__ import annotations

import html
import re

# @ followed by one or more word characters
MENTION_PATTERN = re.compile(r"@(\w+)")


def extract_mentions(content: str) -> list[str]:
    """Return unique mentioned usernames in order of first appearance."""
    return list(dict.fromkeys(MENTION_PATTERN.findall(content)))


def content_to_html(content: str) -> str:
    """Render content as HTML.

    Order matters: escape ``&<>`` first, then wrap mentions, then convert
    newlines, so the injected markup is never escaped a second time.
    """
    escaped = html.escape(content, quote=False)
    wrapped = MENTION_PATTERN.sub(r'<span class="mention">@\1</span>', escaped)
    return wrapped.replace("\n", "<br>")
