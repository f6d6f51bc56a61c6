"""
Anonymous read-only access through a public share link.

GET /api/v1/share/{token}        — Project summary
GET /api/v1/share/{token}/feed   — Project feed
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import feed_query, feed_response
from app.core.database import get_session
from app.services import sharing
from teamline_shared.schemas.projects import SharedProjectRead
from teamline_shared.schemas.updates import FeedQuery, FeedResponse

router = APIRouter()


@router.get("/{token}", response_model=SharedProjectRead, tags=["Sharing"])
async def get_shared_project(token: str, session: AsyncSession = Depends(get_session)):
    return sharing.to_shared_read(await sharing.resolve(token, session))


@router.get("/{token}/feed", response_model=FeedResponse, tags=["Sharing"])
async def get_shared_feed(
    token: str,
    query: FeedQuery = Depends(feed_query),
    session: AsyncSession = Depends(get_session),
):
    _, page = await sharing.get_shared_feed(token, query, session)
    return await feed_response(session, page, query)
