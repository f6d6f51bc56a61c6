"""
Status update (feed item) schemas: create/edit requests, reactions,
feed query parameters and the paginated feed envelope.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import AnyHttpUrl, BaseModel, Field

from .common import AttachmentType, CursorPagination, UpdateCategory, UpdateMood
from .users import PublicUser

MAX_ATTACHMENTS = 10
MAX_CONTENT_LENGTH = 5000


class Attachment(BaseModel):
    type: AttachmentType
    url: AnyHttpUrl
    name: str = Field(..., max_length=255)
    thumbnail: Optional[AnyHttpUrl] = None


class UpdateCreate(BaseModel):
    project_id: UUID
    content: str = Field(..., min_length=1, max_length=MAX_CONTENT_LENGTH)
    category: UpdateCategory = UpdateCategory.GENERAL
    mood: UpdateMood = UpdateMood.NEUTRAL
    attachments: List[Attachment] = Field(default_factory=list, max_length=MAX_ATTACHMENTS)


class UpdateEdit(BaseModel):
    """Partial edit. Fields left unset are not touched."""
    content: Optional[str] = Field(None, min_length=1, max_length=MAX_CONTENT_LENGTH)
    category: Optional[UpdateCategory] = None
    mood: Optional[UpdateMood] = None
    attachments: Optional[List[Attachment]] = Field(None, max_length=MAX_ATTACHMENTS)


class ReactionAdd(BaseModel):
    emoji: str = Field(..., min_length=1, max_length=10)


class FeedQuery(BaseModel):
    cursor: Optional[str] = None
    limit: Optional[int] = Field(None, ge=1, le=100)
    category: Optional[UpdateCategory] = None


class ReactionRead(BaseModel):
    user_id: UUID
    emoji: str
    created_at: datetime


class UpdateRead(BaseModel):
    id: UUID
    project_id: UUID
    team_id: Optional[UUID] = None
    author_id: UUID
    author: Optional[PublicUser] = None
    content: str
    content_html: str
    category: UpdateCategory
    mood: UpdateMood
    mentions: List[UUID]
    attachments: List[dict]
    reactions: List[ReactionRead] = Field(default_factory=list)
    is_pinned: bool
    is_edited: bool
    edited_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class FeedResponse(BaseModel):
    data: List[UpdateRead]
    pagination: CursorPagination
