"""
Invite acceptance endpoints, addressed by token.

GET  /api/v1/invites/{token}                  — Team invite preview (no auth)
POST /api/v1/invites/{token}/accept           — Join the team
GET  /api/v1/project-invites/{token}          — Project invite preview (no auth)
POST /api/v1/project-invites/{token}/accept   — Become a collaborator
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.teams import team_response
from app.core.auth import get_principal
from app.core.database import get_session
from app.models.user import User
from app.services import projects as project_service
from app.services import teams as team_service
from app.services.membership import get_project_role
from teamline_shared.schemas.invites import InvitePreview
from teamline_shared.schemas.projects import ProjectRead
from teamline_shared.schemas.teams import TeamResponse

router = APIRouter()


@router.get("/invites/{token}", response_model=InvitePreview, tags=["Invites"])
async def preview_team_invite(token: str, session: AsyncSession = Depends(get_session)):
    return await team_service.preview_team_invite(token, session)


@router.post("/invites/{token}/accept", response_model=TeamResponse, tags=["Invites"])
async def accept_team_invite(
    token: str,
    user: User = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    team = await team_service.accept_team_invite(token, user, session)
    return team_response(team)


@router.get("/project-invites/{token}", response_model=InvitePreview, tags=["Invites"])
async def preview_project_invite(token: str, session: AsyncSession = Depends(get_session)):
    return await project_service.preview_project_invite(token, session)


@router.post("/project-invites/{token}/accept", response_model=ProjectRead, tags=["Invites"])
async def accept_project_invite(
    token: str,
    user: User = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    project = await project_service.accept_project_invite(token, user, session)
    return project_service.to_read(project, await get_project_role(session, project, user.id))
