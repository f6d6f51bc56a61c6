from enum import Enum
from typing import Optional
from pydantic import BaseModel


class TeamRole(str, Enum):
    ADMIN = "admin"
    MEMBER = "member"
    VIEWER = "viewer"


class ProjectRole(str, Enum):
    OWNER = "owner"
    EDITOR = "editor"
    VIEWER = "viewer"


class AllUsersAccess(str, Enum):
    VIEW = "view"
    EDIT = "edit"
    NONE = "none"


class InviteStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    EXPIRED = "expired"
    REVOKED = "revoked"


class ProjectStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class ProjectVisibility(str, Enum):
    PUBLIC = "public"
    TEAM = "team"
    PRIVATE = "private"


class UpdateCategory(str, Enum):
    PROGRESS = "progress"
    BLOCKER = "blocker"
    BUG = "bug"
    FEATURE = "feature"
    MILESTONE = "milestone"
    GENERAL = "general"


class UpdateMood(str, Enum):
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"
    URGENT = "urgent"


class AttachmentType(str, Enum):
    IMAGE = "image"
    FILE = "file"
    LINK = "link"


# Rank tables for "role X or higher" checks
TEAM_ROLE_RANK: dict[TeamRole, int] = {
    TeamRole.VIEWER: 1,
    TeamRole.MEMBER: 2,
    TeamRole.ADMIN: 3,
}

PROJECT_ROLE_RANK: dict[ProjectRole, int] = {
    ProjectRole.VIEWER: 1,
    ProjectRole.EDITOR: 2,
    ProjectRole.OWNER: 3,
}


class CursorPagination(BaseModel):
    next_cursor: Optional[str] = None
    has_more: bool
    limit: int


class ErrorResponse(BaseModel):
    error: str
    detail: str
