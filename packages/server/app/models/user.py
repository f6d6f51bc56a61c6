"""User model."""

from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import JSONType, TimestampMixin, UUIDMixin, utcnow


class User(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "users"

    username: str = Field(unique=True, index=True, nullable=False)  # stored lower-case
    email: str = Field(unique=True, index=True, nullable=False)  # stored lower-case
    display_name: Optional[str] = None
    avatar: Optional[str] = None
    bio: Optional[str] = None
    settings: dict = Field(default_factory=dict, sa_type=JSONType, nullable=False)
    last_active_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_type=sa.DateTime(timezone=True),
    )
