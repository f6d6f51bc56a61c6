"""URL slug generation for teams and projects."""

from __future__ import annotations

import re
import secrets

_NON_WORD = re.compile(r"[^\w\s-]")
_SEPARATORS = re.compile(r"[\s_-]+")


def generate_slug(name: str) -> str:
    """Slugify a display name and append a short random suffix."""
    base = _NON_WORD.sub("", name.lower().strip())
    base = _SEPARATORS.sub("-", base).strip("-")
    suffix = secrets.token_hex(3)
    return f"{base}-{suffix}" if base else suffix
