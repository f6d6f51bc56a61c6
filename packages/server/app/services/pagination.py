"""Cursor helpers for feed pagination."""

from __future__ import annotations

import uuid
from typing import Optional

from app.core.config import get_settings
from app.core.errors import BadRequestError


def clamp_limit(limit: Optional[int]) -> int:
    """Apply the default page size and cap values into [1, max]."""
    settings = get_settings()
    if limit is None:
        return settings.feed_default_limit
    return max(1, min(limit, settings.feed_max_limit))


def encode_cursor(update_id: uuid.UUID) -> str:
    return str(update_id)


def decode_cursor(cursor: str) -> uuid.UUID:
    try:
        return uuid.UUID(cursor)
    except ValueError:
        raise BadRequestError("Invalid cursor")
