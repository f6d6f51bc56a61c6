"""
Public share gateway — anonymous read-only access to a project through a
share token.

A disabled share and an unknown token are indistinguishable to callers.
"""

from __future__ import annotations

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.auth import generate_token
from app.core.errors import ConflictError, NotFoundError
from app.models.base import utcnow
from app.models.project import Project
from app.services import feed
from teamline_shared.schemas.projects import ProjectStats, SharedProjectRead
from teamline_shared.schemas.updates import FeedQuery

log = structlog.get_logger()


async def _save(project: Project, session: AsyncSession) -> Project:
    project.updated_at = utcnow()
    session.add(project)
    try:
        await session.flush()
    except IntegrityError:
        raise ConflictError("Share token collision, retry")
    return project


async def enable(project: Project, session: AsyncSession) -> Project:
    """Turn sharing on, minting a token only if the project has none."""
    if not project.share_token:
        project.share_token = generate_token()
    project.share_enabled = True
    await _save(project, session)
    log.info("share.enabled", project_id=str(project.id))
    return project


async def disable(project: Project, session: AsyncSession) -> Project:
    """Turn sharing off. The token is kept so re-enabling restores the link."""
    project.share_enabled = False
    await _save(project, session)
    log.info("share.disabled", project_id=str(project.id))
    return project


async def regenerate(project: Project, session: AsyncSession) -> Project:
    """Mint a new token, invalidating the old link, and enable sharing."""
    project.share_token = generate_token()
    project.share_enabled = True
    await _save(project, session)
    log.info("share.regenerated", project_id=str(project.id))
    return project


async def resolve(token: str, session: AsyncSession) -> Project:
    result = await session.execute(
        select(Project).where(Project.share_token == token, Project.share_enabled == True)  # noqa: E712
    )
    project = result.scalar_one_or_none()
    if not project:
        raise NotFoundError("Shared project not found")
    return project


def to_shared_read(project: Project) -> SharedProjectRead:
    return SharedProjectRead(
        id=project.id,
        name=project.name,
        description=project.description,
        color=project.color,
        status=project.status,
        stats=ProjectStats(
            total_updates=project.total_updates,
            last_update_at=project.last_update_at,
        ),
    )


async def get_shared_feed(
    token: str, query: FeedQuery, session: AsyncSession
) -> tuple[Project, feed.FeedPage]:
    project = await resolve(token, session)
    page = await feed.get_feed(session, feed.FeedScope.project(project.id), query)
    return project, page
