"""Status update (feed item) model and its reactions."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import JSONType, TimestampMixin, UUIDMixin, utcnow


class Update(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "updates"
    __table_args__ = (
        # Feed range scans: (scope, created_at desc, id desc)
        sa.Index("ix_updates_team_feed", "team_id", "created_at", "id"),
        sa.Index("ix_updates_project_feed", "project_id", "created_at", "id"),
    )

    project_id: uuid.UUID = Field(foreign_key="projects.id", nullable=False)
    team_id: Optional[uuid.UUID] = Field(default=None, foreign_key="teams.id")
    author_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    content: str = Field(nullable=False)
    content_html: str = Field(nullable=False, default="")
    category: str = Field(default="general", nullable=False)
    mood: str = Field(default="neutral", nullable=False)
    mentions: list = Field(default_factory=list, sa_type=JSONType, nullable=False)
    attachments: list = Field(default_factory=list, sa_type=JSONType, nullable=False)
    is_pinned: bool = Field(default=False, nullable=False)
    is_edited: bool = Field(default=False, nullable=False)
    edited_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))


class UpdateReaction(UUIDMixin, SQLModel, table=True):
    __tablename__ = "update_reactions"
    __table_args__ = (
        sa.UniqueConstraint("update_id", "user_id", "emoji", name="uq_update_reactions_user_emoji"),
    )

    update_id: uuid.UUID = Field(foreign_key="updates.id", nullable=False, index=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False)
    emoji: str = Field(nullable=False)
    created_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_type=sa.DateTime(timezone=True),
    )
