"""Project model and its collaborator join table."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import JSONType, TimestampMixin, UUIDMixin, utcnow


class Project(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "projects"
    __table_args__ = (sa.UniqueConstraint("team_id", "slug", name="uq_projects_team_slug"),)

    name: str = Field(nullable=False)
    slug: str = Field(nullable=False, index=True)
    description: Optional[str] = None
    owner_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    team_id: Optional[uuid.UUID] = Field(default=None, foreign_key="teams.id", index=True)
    status: str = Field(default="active", nullable=False)
    visibility: str = Field(default="team", nullable=False)
    color: Optional[str] = None
    tags: list = Field(default_factory=list, sa_type=JSONType, nullable=False)
    # NULL means no blanket grant; "none" is never stored
    all_users_access: Optional[str] = Field(default=None)  # view | edit
    share_token: Optional[str] = Field(default=None, unique=True, index=True)
    share_enabled: bool = Field(default=False, nullable=False)
    pinned_update_id: Optional[uuid.UUID] = None
    total_updates: int = Field(default=0, nullable=False)
    last_update_at: Optional[datetime] = Field(
        default=None, sa_type=sa.DateTime(timezone=True)
    )


class ProjectCollaborator(SQLModel, table=True):
    __tablename__ = "project_collaborators"

    project_id: uuid.UUID = Field(foreign_key="projects.id", primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", primary_key=True, index=True)
    role: str = Field(nullable=False, default="viewer")  # editor | viewer
    added_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_type=sa.DateTime(timezone=True),
    )
