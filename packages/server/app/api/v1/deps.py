"""Shared request helpers for feed endpoints."""

from __future__ import annotations

from typing import Optional

from fastapi import Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.services import feed as feed_service
from app.services.pagination import clamp_limit
from teamline_shared.schemas.common import CursorPagination, UpdateCategory
from teamline_shared.schemas.updates import FeedQuery, FeedResponse


def feed_query(
    cursor: Optional[str] = Query(None, description="Id of the last update on the previous page"),
    limit: Optional[int] = Query(None, ge=1, le=100),
    category: Optional[UpdateCategory] = None,
) -> FeedQuery:
    return FeedQuery(cursor=cursor, limit=limit, category=category)


async def feed_response(
    session: AsyncSession, page: feed_service.FeedPage, query: FeedQuery
) -> FeedResponse:
    return FeedResponse(
        data=await feed_service.enrich_updates(session, page.items),
        pagination=CursorPagination(
            next_cursor=page.next_cursor,
            has_more=page.has_more,
            limit=clamp_limit(query.limit),
        ),
    )
