from typing import Optional, List
from pydantic import BaseModel, Field, field_validator
from uuid import UUID
from datetime import datetime
from .common import AllUsersAccess, ProjectRole, ProjectStatus, ProjectVisibility


class ProjectBase(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    visibility: ProjectVisibility = ProjectVisibility.TEAM
    color: Optional[str] = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$")
    tags: List[str] = Field(default_factory=list, max_length=10)


class ProjectCreate(ProjectBase):
    team_id: Optional[UUID] = None  # None for a personal project


class ProjectUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    status: Optional[ProjectStatus] = None
    visibility: Optional[ProjectVisibility] = None
    color: Optional[str] = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$")
    tags: Optional[List[str]] = Field(None, max_length=10)


class ProjectStats(BaseModel):
    total_updates: int = 0
    last_update_at: Optional[datetime] = None


class ProjectRead(ProjectBase):
    id: UUID
    slug: str
    owner_id: UUID
    team_id: Optional[UUID] = None
    status: ProjectStatus
    all_users_access: AllUsersAccess = AllUsersAccess.NONE
    share_enabled: bool = False
    pinned_update_id: Optional[UUID] = None
    stats: ProjectStats
    role: Optional[ProjectRole] = None  # the requesting user's role, when known
    created_at: datetime
    updated_at: datetime


class SharedProjectRead(BaseModel):
    """What an anonymous visitor sees through a public share link."""
    id: UUID
    name: str
    description: Optional[str] = None
    color: Optional[str] = None
    status: ProjectStatus
    stats: ProjectStats


class CollaboratorAdd(BaseModel):
    user_id: UUID
    role: ProjectRole = ProjectRole.VIEWER

    @field_validator("role")
    @classmethod
    def _not_owner(cls, v: ProjectRole) -> ProjectRole:
        if v == ProjectRole.OWNER:
            raise ValueError("Ownership cannot be granted as a collaborator role")
        return v


class CollaboratorRoleUpdate(BaseModel):
    role: ProjectRole

    @field_validator("role")
    @classmethod
    def _not_owner(cls, v: ProjectRole) -> ProjectRole:
        if v == ProjectRole.OWNER:
            raise ValueError("Ownership cannot be granted as a collaborator role")
        return v


class CollaboratorRead(BaseModel):
    user_id: UUID
    role: ProjectRole
    added_at: datetime


class AllUsersAccessUpdate(BaseModel):
    access: Optional[AllUsersAccess] = None  # null and "none" both clear the grant


class ShareRead(BaseModel):
    share_token: Optional[str] = None
    share_enabled: bool
