"""
Feed service — status updates, reactions and cursor-paginated feeds.

Handles:
- Update create/edit with mention resolution and HTML rendering
- Feeds over a set of teams, a single team or a single project, ordered by
  (created_at desc, id desc) with keyset cursors
- Reaction add/remove with at most one entry per (user, emoji)
- Cascade deletes by scope and the project update counter
"""

from __future__ import annotations

import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Iterable, Literal, Optional, Sequence

import sqlalchemy as sa
import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import and_, or_, select

from app.core.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from app.models.base import utcnow
from app.models.project import Project
from app.models.update import Update, UpdateReaction
from app.services import identity
from app.services.membership import require_project_role
from app.services.mentions import content_to_html, extract_mentions
from app.services.pagination import clamp_limit, decode_cursor, encode_cursor
from teamline_shared.schemas.common import ProjectRole
from teamline_shared.schemas.updates import (
    FeedQuery,
    ReactionRead,
    UpdateCreate,
    UpdateEdit,
    UpdateRead,
)

log = structlog.get_logger()


@dataclass(frozen=True)
class FeedScope:
    """Which updates a feed covers."""

    kind: Literal["teams", "team", "project"]
    ids: tuple[uuid.UUID, ...]

    @classmethod
    def teams(cls, team_ids: Iterable[uuid.UUID]) -> "FeedScope":
        return cls("teams", tuple(team_ids))

    @classmethod
    def team(cls, team_id: uuid.UUID) -> "FeedScope":
        return cls("team", (team_id,))

    @classmethod
    def project(cls, project_id: uuid.UUID) -> "FeedScope":
        return cls("project", (project_id,))

    def clause(self):
        if self.kind == "teams":
            return Update.team_id.in_(self.ids)
        if self.kind == "team":
            return Update.team_id == self.ids[0]
        return Update.project_id == self.ids[0]


@dataclass
class FeedPage:
    items: list[Update] = field(default_factory=list)
    has_more: bool = False
    next_cursor: Optional[str] = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _resolve_mentions(session: AsyncSession, content: str) -> list[str]:
    mention_ids = await identity.resolve_usernames(extract_mentions(content), session)
    return [str(uid) for uid in mention_ids]


async def _bump_project_stats(
    session: AsyncSession, project_id: uuid.UUID, delta: int
) -> None:
    """Adjust the cached update counter in a single SQL statement."""
    now = utcnow()
    values = {"total_updates": Project.total_updates + delta, "updated_at": now}
    if delta > 0:
        values["last_update_at"] = now
    await session.execute(
        sa.update(Project).where(Project.id == project_id).values(**values)
    )


async def get_update_or_404(session: AsyncSession, update_id: uuid.UUID) -> Update:
    update = await session.get(Update, update_id)
    if not update:
        raise NotFoundError("Update not found")
    return update


async def require_update_access(
    session: AsyncSession,
    update_id: uuid.UUID,
    user_id: uuid.UUID,
    required: ProjectRole = ProjectRole.VIEWER,
) -> tuple[Update, Project, ProjectRole]:
    """Load an update and check the user's role on its project."""
    update = await get_update_or_404(session, update_id)
    project, role = await require_project_role(session, update.project_id, user_id, required)
    return update, project, role


def ensure_author_or_owner(update: Update, user_id: uuid.UUID, role: ProjectRole) -> None:
    if update.author_id != user_id and role != ProjectRole.OWNER:
        raise ForbiddenError("Only the author or the project owner can modify this update")


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------


async def create_update(
    session: AsyncSession,
    req: UpdateCreate,
    project: Project,
    author_id: uuid.UUID,
) -> Update:
    """Post an update to a project and bump the project's counter."""
    update = Update(
        project_id=project.id,
        team_id=project.team_id,
        author_id=author_id,
        content=req.content,
        content_html=content_to_html(req.content),
        category=req.category.value,
        mood=req.mood.value,
        mentions=await _resolve_mentions(session, req.content),
        attachments=[a.model_dump(mode="json") for a in req.attachments],
    )
    session.add(update)
    await session.flush()
    await _bump_project_stats(session, project.id, +1)

    log.info(
        "update.created",
        update_id=str(update.id),
        project_id=str(project.id),
        mentions=len(update.mentions),
    )
    return update


async def edit_update(session: AsyncSession, update: Update, req: UpdateEdit) -> Update:
    """Apply a partial edit. Content changes re-derive mentions and HTML."""
    changes = {
        k: v
        for k, v in req.model_dump(exclude_unset=True, mode="json").items()
        if v is not None
    }
    for key, value in changes.items():
        setattr(update, key, value)

    if "content" in changes:
        update.mentions = await _resolve_mentions(session, update.content)
        update.content_html = content_to_html(update.content)

    now = utcnow()
    update.is_edited = True
    update.edited_at = now
    update.updated_at = now
    session.add(update)
    await session.flush()

    log.info("update.edited", update_id=str(update.id), fields=sorted(changes))
    return update


async def delete_update(session: AsyncSession, update: Update) -> None:
    """Delete one update, its reactions, and decrement the project counter."""
    await session.execute(
        sa.delete(UpdateReaction).where(UpdateReaction.update_id == update.id)
    )
    await session.delete(update)
    await session.flush()

    await _bump_project_stats(session, update.project_id, -1)
    await session.execute(
        sa.update(Project)
        .where(Project.id == update.project_id, Project.pinned_update_id == update.id)
        .values(pinned_update_id=None)
    )
    log.info("update.deleted", update_id=str(update.id), project_id=str(update.project_id))


async def add_reaction(
    session: AsyncSession, update: Update, user_id: uuid.UUID, emoji: str
) -> Update:
    """Add a reaction, replacing any existing one for the same (user, emoji)."""
    await session.execute(
        sa.delete(UpdateReaction).where(
            UpdateReaction.update_id == update.id,
            UpdateReaction.user_id == user_id,
            UpdateReaction.emoji == emoji,
        )
    )
    session.add(UpdateReaction(update_id=update.id, user_id=user_id, emoji=emoji))
    update.updated_at = utcnow()
    session.add(update)
    try:
        await session.flush()
    except IntegrityError:
        raise ConflictError("Reaction already recorded")
    return update


async def remove_reaction(
    session: AsyncSession, update: Update, user_id: uuid.UUID, emoji: str
) -> Update:
    await session.execute(
        sa.delete(UpdateReaction).where(
            UpdateReaction.update_id == update.id,
            UpdateReaction.user_id == user_id,
            UpdateReaction.emoji == emoji,
        )
    )
    update.updated_at = utcnow()
    session.add(update)
    await session.flush()
    return update


async def set_pinned(session: AsyncSession, update: Update, is_pinned: bool) -> Update:
    """Toggle the pin flag. Single-pin bookkeeping belongs to the project."""
    update.is_pinned = is_pinned
    update.updated_at = utcnow()
    session.add(update)
    await session.flush()
    return update


async def _delete_where(session: AsyncSession, condition) -> int:
    update_ids = select(Update.id).where(condition)
    await session.execute(
        sa.delete(UpdateReaction).where(UpdateReaction.update_id.in_(update_ids))
    )
    result = await session.execute(sa.delete(Update).where(condition))
    return result.rowcount or 0


async def delete_by_project_id(session: AsyncSession, project_id: uuid.UUID) -> int:
    count = await _delete_where(session, Update.project_id == project_id)
    log.info("updates.deleted_for_project", project_id=str(project_id), count=count)
    return count


async def delete_by_team_id(session: AsyncSession, team_id: uuid.UUID) -> int:
    count = await _delete_where(session, Update.team_id == team_id)
    log.info("updates.deleted_for_team", team_id=str(team_id), count=count)
    return count


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def get_feed(
    session: AsyncSession, scope: FeedScope, query: FeedQuery
) -> FeedPage:
    """Return one page of a feed, newest first.

    Fetches limit + 1 rows to detect whether another page exists. The
    cursor is the id of the last returned update; the next page starts
    strictly after it in (created_at desc, id desc) order.
    """
    limit = clamp_limit(query.limit)
    if scope.kind == "teams" and not scope.ids:
        return FeedPage()

    conditions = [scope.clause()]
    if query.category:
        conditions.append(Update.category == query.category.value)

    if query.cursor:
        anchor_id = decode_cursor(query.cursor)
        anchor = (
            await session.execute(
                select(Update.created_at, Update.id).where(Update.id == anchor_id)
            )
        ).one_or_none()
        if anchor is None:
            raise BadRequestError("Invalid cursor")
        conditions.append(
            or_(
                Update.created_at < anchor.created_at,
                and_(Update.created_at == anchor.created_at, Update.id < anchor.id),
            )
        )

    stmt = (
        select(Update)
        .where(*conditions)
        .order_by(Update.created_at.desc(), Update.id.desc())
        .limit(limit + 1)
    )
    result = await session.execute(stmt)
    updates = list(result.scalars().all())

    has_more = len(updates) > limit
    if has_more:
        updates = updates[:limit]

    next_cursor = encode_cursor(updates[-1].id) if has_more and updates else None
    return FeedPage(items=updates, has_more=has_more, next_cursor=next_cursor)


async def enrich_updates(
    session: AsyncSession, updates: Sequence[Update]
) -> list[UpdateRead]:
    """Attach author profiles and reactions in two batched queries."""
    if not updates:
        return []

    authors = await identity.get_public_map((u.author_id for u in updates), session)

    result = await session.execute(
        select(UpdateReaction)
        .where(UpdateReaction.update_id.in_([u.id for u in updates]))
        .order_by(UpdateReaction.created_at)
    )
    reactions: dict[uuid.UUID, list[ReactionRead]] = defaultdict(list)
    for r in result.scalars().all():
        reactions[r.update_id].append(
            ReactionRead(user_id=r.user_id, emoji=r.emoji, created_at=r.created_at)
        )

    return [
        UpdateRead(
            id=u.id,
            project_id=u.project_id,
            team_id=u.team_id,
            author_id=u.author_id,
            author=authors.get(u.author_id),
            content=u.content,
            content_html=u.content_html,
            category=u.category,
            mood=u.mood,
            mentions=u.mentions or [],
            attachments=u.attachments or [],
            reactions=reactions.get(u.id, []),
            is_pinned=u.is_pinned,
            is_edited=u.is_edited,
            edited_at=u.edited_at,
            created_at=u.created_at,
            updated_at=u.updated_at,
        )
        for u in updates
    ]
