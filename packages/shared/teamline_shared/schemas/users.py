"""User and public-profile schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field, UUID4


class UserSettings(BaseModel):
    email_notifications: bool = True
    push_notifications: bool = True
    theme: Literal["light", "dark", "system"] = "system"


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class UserCreateRequest(BaseModel):
    """Register a user in the directory."""
    username: str = Field(
        ...,
        min_length=3,
        max_length=30,
        pattern=r"^[A-Za-z0-9_]+$",
        description="Handle used for @mentions",
    )
    email: EmailStr
    display_name: Optional[str] = Field(default=None, max_length=100)


class UserUpdateRequest(BaseModel):
    """Partial profile edit."""
    display_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    avatar: Optional[str] = None
    bio: Optional[str] = Field(default=None, max_length=500)
    settings: Optional[dict] = Field(
        None,
        description="Partial settings update (merged into the stored settings)",
    )


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class PublicUser(BaseModel):
    """Public profile projection used to enrich feeds and member lists."""
    id: UUID4
    username: str
    email: str
    display_name: Optional[str] = None
    avatar: Optional[str] = None
    bio: Optional[str] = None
    last_active_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class UserRegisterResponse(BaseModel):
    user: PublicUser
    access_token: str
