"""
Identity directory — user registration, lookups and public profile
projection used to enrich feeds and member lists.
"""

from __future__ import annotations

import uuid
from typing import Iterable, Optional

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import or_, select

from app.core.errors import ConflictError, NotFoundError
from app.models.base import utcnow
from app.models.user import User
from teamline_shared.schemas.users import (
    PublicUser,
    UserCreateRequest,
    UserSettings,
    UserUpdateRequest,
)

log = structlog.get_logger()


def to_public(user: User) -> PublicUser:
    """Project a user onto the fields safe to show other users."""
    return PublicUser.model_validate(user)


async def create_user(req: UserCreateRequest, session: AsyncSession) -> User:
    """Register a user. Username and email are stored case-folded."""
    username = req.username.lower()
    email = req.email.lower()

    existing = await session.execute(
        select(User).where(or_(User.username == username, User.email == email))
    )
    if existing.scalars().first():
        raise ConflictError("Username or email already registered")

    user = User(
        username=username,
        email=email,
        display_name=req.display_name or req.username,
        settings=UserSettings().model_dump(),
    )
    session.add(user)
    try:
        await session.flush()
    except IntegrityError:
        raise ConflictError("Username or email already registered")

    log.info("user.created", user_id=str(user.id), username=username)
    return user


async def get_user(user_id: uuid.UUID, session: AsyncSession) -> User:
    user = await session.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


async def find_by_username(username: str, session: AsyncSession) -> Optional[User]:
    result = await session.execute(select(User).where(User.username == username.lower()))
    return result.scalar_one_or_none()


async def find_by_email(email: str, session: AsyncSession) -> Optional[User]:
    result = await session.execute(select(User).where(User.email == email.lower()))
    return result.scalar_one_or_none()


async def resolve_usernames(
    usernames: Iterable[str], session: AsyncSession
) -> list[uuid.UUID]:
    """Map usernames to user ids, silently dropping unknown names."""
    folded = list(dict.fromkeys(name.lower() for name in usernames))
    if not folded:
        return []
    result = await session.execute(
        select(User.id, User.username).where(User.username.in_(folded))
    )
    by_name = {username: user_id for user_id, username in result.all()}
    return [by_name[name] for name in folded if name in by_name]


async def get_public_map(
    user_ids: Iterable[uuid.UUID], session: AsyncSession
) -> dict[uuid.UUID, PublicUser]:
    """Batch-load public profiles keyed by user id."""
    ids = list(set(user_ids))
    if not ids:
        return {}
    result = await session.execute(select(User).where(User.id.in_(ids)))
    return {u.id: to_public(u) for u in result.scalars().all()}


async def update_profile(
    user: User, req: UserUpdateRequest, session: AsyncSession
) -> User:
    """Apply a partial profile edit; settings are merged, not replaced."""
    changes = req.model_dump(exclude_unset=True, exclude={"settings"})
    for field, value in changes.items():
        setattr(user, field, value)

    if req.settings is not None:
        merged = {**(user.settings or {}), **req.settings}
        user.settings = UserSettings.model_validate(merged).model_dump()

    user.updated_at = utcnow()
    session.add(user)
    await session.flush()

    log.info("user.updated", user_id=str(user.id))
    return user
