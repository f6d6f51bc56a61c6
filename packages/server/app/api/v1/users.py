"""
User directory endpoints.

POST   /api/v1/users              — Register a user (returns an access token)
GET    /api/v1/users/me           — Current user's profile
PATCH  /api/v1/users/me           — Edit profile / settings
GET    /api/v1/users/me/invites   — Pending team and project invites for my email
GET    /api/v1/users/{userId}     — Public profile
"""

from __future__ import annotations

import uuid
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import create_access_token, get_principal
from app.core.database import get_session
from app.models.user import User
from app.services import identity
from app.services.invites import project_invites, team_invites
from teamline_shared.schemas.invites import InviteRead
from teamline_shared.schemas.users import (
    PublicUser,
    UserCreateRequest,
    UserRegisterResponse,
    UserUpdateRequest,
)

router = APIRouter()


@router.post("", response_model=UserRegisterResponse, status_code=201, tags=["Users"])
async def register_user(
    body: UserCreateRequest,
    session: AsyncSession = Depends(get_session),
):
    """Register a user. Credential handling lives with the login provider."""
    user = await identity.create_user(body, session)
    return UserRegisterResponse(
        user=identity.to_public(user),
        access_token=create_access_token(user.id),
    )


@router.get("/me", response_model=PublicUser, tags=["Users"])
async def get_me(user: User = Depends(get_principal)):
    return identity.to_public(user)


@router.patch("/me", response_model=PublicUser, tags=["Users"])
async def update_me(
    body: UserUpdateRequest,
    user: User = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    user = await identity.update_profile(user, body, session)
    return identity.to_public(user)


@router.get("/me/invites", response_model=List[InviteRead], tags=["Users"])
async def my_pending_invites(
    user: User = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    """Live invites addressed to the current user's email, newest first."""
    items = [
        team_invites.to_read(i, with_token=True)
        for i in await team_invites.list_pending_for_email(session, user.email)
    ] + [
        project_invites.to_read(i, with_token=True)
        for i in await project_invites.list_pending_for_email(session, user.email)
    ]
    return sorted(items, key=lambda i: i.created_at, reverse=True)


@router.get("/{userId}", response_model=PublicUser, tags=["Users"])
async def get_user(
    userId: uuid.UUID,
    _: User = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    return identity.to_public(await identity.get_user(userId, session))
