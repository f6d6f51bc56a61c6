"""
Status update endpoints.

GET    /api/v1/updates/feed                       — Merged feed across my teams
POST   /api/v1/updates                            — Post to a project (editor)
GET    /api/v1/updates/{updateId}                 — Single update (viewer)
PATCH  /api/v1/updates/{updateId}                 — Edit (author or project owner)
DELETE /api/v1/updates/{updateId}                 — Delete (author or project owner)
POST   /api/v1/updates/{updateId}/reactions       — React (viewer)
DELETE /api/v1/updates/{updateId}/reactions/{emoji} — Remove my reaction
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import feed_query, feed_response
from app.core.auth import get_principal
from app.core.database import get_session
from app.models.update import Update
from app.models.user import User
from app.services import feed as feed_service
from app.services.membership import require_project_role
from app.services.teams import list_user_team_ids
from teamline_shared.schemas.common import ProjectRole
from teamline_shared.schemas.updates import (
    FeedQuery,
    FeedResponse,
    ReactionAdd,
    UpdateCreate,
    UpdateEdit,
    UpdateRead,
)

router = APIRouter()


async def _read(session: AsyncSession, update: Update) -> UpdateRead:
    [item] = await feed_service.enrich_updates(session, [update])
    return item


@router.get("/feed", response_model=FeedResponse, tags=["Feed"])
async def my_feed(
    query: FeedQuery = Depends(feed_query),
    user: User = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    """Updates from every team I belong to, newest first."""
    team_ids = await list_user_team_ids(user.id, session)
    page = await feed_service.get_feed(session, feed_service.FeedScope.teams(team_ids), query)
    return await feed_response(session, page, query)


@router.post("", response_model=UpdateRead, status_code=201, tags=["Updates"])
async def create_update(
    body: UpdateCreate,
    user: User = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    project, _ = await require_project_role(session, body.project_id, user.id, ProjectRole.EDITOR)
    update = await feed_service.create_update(session, body, project, user.id)
    return await _read(session, update)


@router.get("/{updateId}", response_model=UpdateRead, tags=["Updates"])
async def get_update(
    updateId: uuid.UUID,
    user: User = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    update, _, _ = await feed_service.require_update_access(session, updateId, user.id)
    return await _read(session, update)


@router.patch("/{updateId}", response_model=UpdateRead, tags=["Updates"])
async def edit_update(
    updateId: uuid.UUID,
    body: UpdateEdit,
    user: User = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    update, _, role = await feed_service.require_update_access(session, updateId, user.id)
    feed_service.ensure_author_or_owner(update, user.id, role)
    update = await feed_service.edit_update(session, update, body)
    return await _read(session, update)


@router.delete("/{updateId}", status_code=204, tags=["Updates"])
async def delete_update(
    updateId: uuid.UUID,
    user: User = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    update, _, role = await feed_service.require_update_access(session, updateId, user.id)
    feed_service.ensure_author_or_owner(update, user.id, role)
    await feed_service.delete_update(session, update)


@router.post("/{updateId}/reactions", response_model=UpdateRead, tags=["Updates"])
async def add_reaction(
    updateId: uuid.UUID,
    body: ReactionAdd,
    user: User = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    update, _, _ = await feed_service.require_update_access(session, updateId, user.id)
    update = await feed_service.add_reaction(session, update, user.id, body.emoji)
    return await _read(session, update)


@router.delete("/{updateId}/reactions/{emoji}", response_model=UpdateRead, tags=["Updates"])
async def remove_reaction(
    updateId: uuid.UUID,
    emoji: str,
    user: User = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    update, _, _ = await feed_service.require_update_access(session, updateId, user.id)
    update = await feed_service.remove_reaction(session, update, user.id, emoji)
    return await _read(session, update)
