"""
Team-related Pydantic schemas.

Covers: Team CRUD request/response, TeamSettings, member management.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from .common import ProjectVisibility, TeamRole
from .users import PublicUser


class TeamSettings(BaseModel):
    """Team-level settings. All fields optional with defaults."""

    is_public: bool = False
    allow_member_invites: bool = Field(
        default=False,
        description="Let members (not only admins) send invites",
    )
    default_project_visibility: ProjectVisibility = ProjectVisibility.TEAM


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class TeamCreateRequest(BaseModel):
    name: str = Field(..., min_length=2, max_length=50, description="Team display name")
    description: Optional[str] = Field(None, max_length=500)
    avatar: Optional[str] = None
    settings: Optional[TeamSettings] = None


class TeamUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=50)
    description: Optional[str] = Field(None, max_length=500)
    avatar: Optional[str] = None
    settings: Optional[dict] = Field(
        None,
        description="Partial settings update (deep-merged)",
    )


class MemberAdd(BaseModel):
    user_id: uuid.UUID
    role: TeamRole = TeamRole.MEMBER


class MemberRoleUpdate(BaseModel):
    role: TeamRole


class OwnershipTransfer(BaseModel):
    new_owner_id: uuid.UUID


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class TeamResponse(BaseModel):
    id: uuid.UUID
    name: str
    slug: str
    description: Optional[str] = None
    avatar: Optional[str] = None
    owner_id: uuid.UUID
    settings: TeamSettings
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class TeamListItem(BaseModel):
    id: uuid.UUID
    name: str
    slug: str
    role: TeamRole  # the requesting user's role in this team

    model_config = {"from_attributes": True}


class MemberResponse(BaseModel):
    user_id: uuid.UUID
    role: TeamRole
    joined_at: datetime
    is_owner: bool = False
    user: Optional[PublicUser] = None
