"""
Team endpoints.

GET    /api/v1/teams                                 — Teams I belong to
POST   /api/v1/teams                                 — Create a team (creator becomes owner/admin)
GET    /api/v1/teams/{teamId}                        — Team details (viewer)
PATCH  /api/v1/teams/{teamId}                        — Update name/settings (admin)
DELETE /api/v1/teams/{teamId}                        — Delete team and all its data (owner)
GET    /api/v1/teams/{teamId}/members                — Member list (viewer)
POST   /api/v1/teams/{teamId}/members                — Add member (admin)
PATCH  /api/v1/teams/{teamId}/members/{userId}       — Change role (admin)
DELETE /api/v1/teams/{teamId}/members/{userId}       — Remove member (admin)
POST   /api/v1/teams/{teamId}/leave                  — Leave the team
POST   /api/v1/teams/{teamId}/transfer               — Transfer ownership (owner)
GET    /api/v1/teams/{teamId}/projects               — Projects visible to me
GET    /api/v1/teams/{teamId}/feed                   — Team feed (viewer)
GET    /api/v1/teams/{teamId}/invites                — Invites (admin)
POST   /api/v1/teams/{teamId}/invites                — Invite by email
DELETE /api/v1/teams/{teamId}/invites/{inviteId}     — Revoke (admin)
POST   /api/v1/teams/{teamId}/invites/{inviteId}/resend — Rotate token (admin)
"""

from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import feed_query, feed_response
from app.core.auth import get_principal
from app.core.database import get_session
from app.core.errors import NotFoundError
from app.models.team import Team
from app.models.user import User
from app.services import feed as feed_service
from app.services import projects as project_service
from app.services import teams as team_service
from app.services.invites import team_invites
from app.services.membership import require_team_owner, require_team_role
from teamline_shared.schemas.common import InviteStatus, TeamRole
from teamline_shared.schemas.invites import InviteRead, TeamInviteCreate
from teamline_shared.schemas.projects import ProjectRead
from teamline_shared.schemas.teams import (
    MemberAdd,
    MemberResponse,
    MemberRoleUpdate,
    OwnershipTransfer,
    TeamCreateRequest,
    TeamListItem,
    TeamResponse,
    TeamSettings,
    TeamUpdateRequest,
)
from teamline_shared.schemas.updates import FeedQuery, FeedResponse

router = APIRouter()


def team_response(team: Team) -> TeamResponse:
    return TeamResponse(
        id=team.id,
        name=team.name,
        slug=team.slug,
        description=team.description,
        avatar=team.avatar,
        owner_id=team.owner_id,
        settings=TeamSettings.model_validate(team.settings or {}),
        created_at=team.created_at,
        updated_at=team.updated_at,
    )


# ---------------------------------------------------------------------------
# Team CRUD
# ---------------------------------------------------------------------------


@router.get("", response_model=List[TeamListItem], tags=["Teams"])
async def list_teams(
    user: User = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    return await team_service.list_user_teams(user.id, session)


@router.post("", response_model=TeamResponse, status_code=201, tags=["Teams"])
async def create_team(
    body: TeamCreateRequest,
    user: User = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    """Create a team. The creator becomes its owner and an admin member."""
    team = await team_service.create_team(body, user.id, session)
    return team_response(team)


@router.get("/{teamId}", response_model=TeamResponse, tags=["Teams"])
async def get_team(
    teamId: uuid.UUID,
    user: User = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    team, _ = await require_team_role(session, teamId, user.id)
    return team_response(team)


@router.patch("/{teamId}", response_model=TeamResponse, tags=["Teams"])
async def update_team(
    teamId: uuid.UUID,
    body: TeamUpdateRequest,
    user: User = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    """Update team fields (Admin only). Settings are deep-merged."""
    team, _ = await require_team_role(session, teamId, user.id, TeamRole.ADMIN)
    team = await team_service.update_team(team, body, session)
    return team_response(team)


@router.delete("/{teamId}", status_code=204, tags=["Teams"])
async def delete_team(
    teamId: uuid.UUID,
    user: User = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    """Delete the team with its projects, updates, invites and members (Owner only)."""
    team = await require_team_owner(session, teamId, user.id)
    await team_service.delete_team(team, session)


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------


@router.get("/{teamId}/members", response_model=List[MemberResponse], tags=["Teams"])
async def list_members(
    teamId: uuid.UUID,
    user: User = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    team, _ = await require_team_role(session, teamId, user.id)
    return await team_service.list_members(team, session)


@router.post("/{teamId}/members", status_code=201, tags=["Teams"])
async def add_member(
    teamId: uuid.UUID,
    body: MemberAdd,
    user: User = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    team, _ = await require_team_role(session, teamId, user.id, TeamRole.ADMIN)
    member = await team_service.add_member(team, body.user_id, body.role, session)
    return {"user_id": member.user_id, "role": member.role}


@router.patch("/{teamId}/members/{userId}", tags=["Teams"])
async def update_member_role(
    teamId: uuid.UUID,
    userId: uuid.UUID,
    body: MemberRoleUpdate,
    user: User = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    team, _ = await require_team_role(session, teamId, user.id, TeamRole.ADMIN)
    member = await team_service.update_member_role(team, userId, body.role, session)
    return {"user_id": member.user_id, "role": member.role}


@router.delete("/{teamId}/members/{userId}", status_code=204, tags=["Teams"])
async def remove_member(
    teamId: uuid.UUID,
    userId: uuid.UUID,
    user: User = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    team, _ = await require_team_role(session, teamId, user.id, TeamRole.ADMIN)
    await team_service.remove_member(team, userId, session)


@router.post("/{teamId}/leave", status_code=204, tags=["Teams"])
async def leave_team(
    teamId: uuid.UUID,
    user: User = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    team, _ = await require_team_role(session, teamId, user.id)
    await team_service.leave_team(team, user.id, session)


@router.post("/{teamId}/transfer", response_model=TeamResponse, tags=["Teams"])
async def transfer_ownership(
    teamId: uuid.UUID,
    body: OwnershipTransfer,
    user: User = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    team = await require_team_owner(session, teamId, user.id)
    team = await team_service.transfer_ownership(team, body.new_owner_id, session)
    return team_response(team)


# ---------------------------------------------------------------------------
# Projects and feed
# ---------------------------------------------------------------------------


@router.get("/{teamId}/projects", response_model=List[ProjectRead], tags=["Teams"])
async def list_team_projects(
    teamId: uuid.UUID,
    user: User = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    await require_team_role(session, teamId, user.id)
    rows = await project_service.list_team_projects(teamId, user.id, session)
    return [project_service.to_read(project, role) for project, role in rows]


@router.get("/{teamId}/feed", response_model=FeedResponse, tags=["Feed"])
async def team_feed(
    teamId: uuid.UUID,
    query: FeedQuery = Depends(feed_query),
    user: User = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    await require_team_role(session, teamId, user.id)
    page = await feed_service.get_feed(session, feed_service.FeedScope.team(teamId), query)
    return await feed_response(session, page, query)


# ---------------------------------------------------------------------------
# Invites
# ---------------------------------------------------------------------------


async def _team_invite(session: AsyncSession, team: Team, invite_id: uuid.UUID):
    invite = await team_invites.get(session, invite_id)
    if invite.team_id != team.id:
        raise NotFoundError("Invite not found")
    return invite


@router.get("/{teamId}/invites", response_model=List[InviteRead], tags=["Invites"])
async def list_team_invites(
    teamId: uuid.UUID,
    status: Optional[InviteStatus] = None,
    user: User = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    team, _ = await require_team_role(session, teamId, user.id, TeamRole.ADMIN)
    invites = await team_invites.list_for_scope(session, team.id, status)
    return [team_invites.to_read(i) for i in invites]


@router.post("/{teamId}/invites", response_model=InviteRead, status_code=201, tags=["Invites"])
async def create_team_invite(
    teamId: uuid.UUID,
    body: TeamInviteCreate,
    user: User = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    """Invite an email address. Members may invite when the team allows it."""
    team, role = await require_team_role(session, teamId, user.id)
    invite = await team_service.create_team_invite(team, body, user.id, role, session)
    return team_invites.to_read(invite, with_token=True)


@router.delete("/{teamId}/invites/{inviteId}", response_model=InviteRead, tags=["Invites"])
async def revoke_team_invite(
    teamId: uuid.UUID,
    inviteId: uuid.UUID,
    user: User = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    team, _ = await require_team_role(session, teamId, user.id, TeamRole.ADMIN)
    await _team_invite(session, team, inviteId)
    return team_invites.to_read(await team_invites.revoke(session, inviteId))


@router.post("/{teamId}/invites/{inviteId}/resend", response_model=InviteRead, tags=["Invites"])
async def resend_team_invite(
    teamId: uuid.UUID,
    inviteId: uuid.UUID,
    user: User = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    team, _ = await require_team_role(session, teamId, user.id, TeamRole.ADMIN)
    await _team_invite(session, team, inviteId)
    return team_invites.to_read(await team_invites.resend(session, inviteId), with_token=True)
