"""Invitation models for teams and projects."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import UUIDMixin, utcnow


class InviteBase(UUIDMixin, SQLModel):
    invited_by: uuid.UUID = Field(foreign_key="users.id", nullable=False)
    email: str = Field(nullable=False, index=True)  # case-folded
    role: str = Field(nullable=False)
    token: str = Field(unique=True, index=True, nullable=False)
    status: str = Field(default="pending", nullable=False, index=True)
    expires_at: datetime = Field(nullable=False, sa_type=sa.DateTime(timezone=True))
    accepted_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
    accepted_by: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")
    created_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_type=sa.DateTime(timezone=True),
    )


class TeamInvite(InviteBase, table=True):
    __tablename__ = "team_invites"

    team_id: uuid.UUID = Field(foreign_key="teams.id", nullable=False, index=True)


class ProjectInvite(InviteBase, table=True):
    __tablename__ = "project_invites"

    project_id: uuid.UUID = Field(foreign_key="projects.id", nullable=False, index=True)
