"""
Invitation schemas shared by team invites and project invites.

Covers: invite creation requests, responses, the preview payload shown
before acceptance and the invite lifecycle transition table.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, field_validator

from .common import InviteStatus, ProjectRole, TeamRole
from .users import PublicUser


# ---------------------------------------------------------------------------
# Lifecycle transitions
# ---------------------------------------------------------------------------

# Every transition starts from pending; pending -> pending is a resend.
INVITE_TRANSITIONS: dict[InviteStatus, list[InviteStatus]] = {
    InviteStatus.PENDING: [
        InviteStatus.ACCEPTED,
        InviteStatus.REVOKED,
        InviteStatus.EXPIRED,
        InviteStatus.PENDING,
    ],
    InviteStatus.ACCEPTED: [],
    InviteStatus.EXPIRED: [],
    InviteStatus.REVOKED: [],
}


def validate_invite_transition(
    current: InviteStatus, target: InviteStatus
) -> tuple[bool, str]:
    """Validate an invite lifecycle transition.

    Returns (is_valid, error_message).
    """
    if target in INVITE_TRANSITIONS.get(current, []):
        return True, ""
    return False, f"Invite is {current.value} and can no longer be {target.value}"


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class TeamInviteCreate(BaseModel):
    email: EmailStr
    role: TeamRole = TeamRole.MEMBER


class ProjectInviteCreate(BaseModel):
    email: EmailStr
    role: ProjectRole = ProjectRole.VIEWER

    @field_validator("role")
    @classmethod
    def _not_owner(cls, v: ProjectRole) -> ProjectRole:
        if v == ProjectRole.OWNER:
            raise ValueError("Project ownership cannot be granted by invite")
        return v


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class InviteRead(BaseModel):
    id: uuid.UUID
    scope_type: Literal["team", "project"]
    scope_id: uuid.UUID
    email: str
    role: str
    status: InviteStatus
    # Only set for the inviter on create/resend and for the invitee
    token: Optional[str] = None
    invited_by: uuid.UUID
    expires_at: datetime
    accepted_at: Optional[datetime] = None
    accepted_by: Optional[uuid.UUID] = None
    created_at: datetime


class InvitePreview(BaseModel):
    """Shown to the invitee before they commit to accepting."""
    scope_type: Literal["team", "project"]
    scope_id: uuid.UUID
    scope_name: str
    email: str
    role: str
    expires_at: datetime
    invited_by: Optional[PublicUser] = None
