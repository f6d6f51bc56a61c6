"""
Team service — team CRUD, member management and team invites.

The owner always holds an admin membership row. Member management never
demotes or removes the owner; ownership moves only through
``transfer_ownership``.
"""

from __future__ import annotations

import uuid

import sqlalchemy as sa
import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from app.core.slugs import generate_slug
from app.models.base import utcnow
from app.models.project import Project
from app.models.team import Team, TeamMember
from app.models.user import User
from app.services import feed, identity, projects
from app.services.invites import Invite, team_invites
from app.services.membership import get_team_or_404, team_role_at_least
from teamline_shared.schemas.common import TeamRole
from teamline_shared.schemas.invites import InvitePreview, TeamInviteCreate
from teamline_shared.schemas.teams import (
    MemberResponse,
    TeamCreateRequest,
    TeamSettings,
    TeamUpdateRequest,
)

log = structlog.get_logger()


def _deep_merge(base: dict, patch: dict) -> dict:
    """JSON Merge Patch style deep merge."""
    result = base.copy()
    for key, value in patch.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


async def _get_member(
    team_id: uuid.UUID, user_id: uuid.UUID, session: AsyncSession
) -> TeamMember | None:
    return await session.get(TeamMember, (team_id, user_id))


# ---------------------------------------------------------------------------
# Teams
# ---------------------------------------------------------------------------


async def create_team(
    req: TeamCreateRequest, owner_id: uuid.UUID, session: AsyncSession
) -> Team:
    """Create a team and make the creator its admin owner."""
    team = Team(
        name=req.name,
        slug=generate_slug(req.name),
        description=req.description,
        avatar=req.avatar,
        owner_id=owner_id,
        settings=(req.settings or TeamSettings()).model_dump(mode="json"),
    )
    session.add(team)
    await session.flush()

    session.add(TeamMember(team_id=team.id, user_id=owner_id, role=TeamRole.ADMIN.value))
    await session.flush()

    log.info("team.created", team_id=str(team.id), slug=team.slug, owner_id=str(owner_id))
    return team


async def get_team(team_id: uuid.UUID, session: AsyncSession) -> Team:
    return await get_team_or_404(session, team_id)


async def list_user_teams(user_id: uuid.UUID, session: AsyncSession) -> list[dict]:
    """List all teams a user belongs to, with their role."""
    result = await session.execute(
        select(Team, TeamMember.role)
        .join(TeamMember, TeamMember.team_id == Team.id)
        .where(TeamMember.user_id == user_id)
        .order_by(Team.name)
    )
    return [
        {"id": team.id, "name": team.name, "slug": team.slug, "role": role}
        for team, role in result.all()
    ]


async def list_user_team_ids(user_id: uuid.UUID, session: AsyncSession) -> list[uuid.UUID]:
    result = await session.execute(
        select(TeamMember.team_id).where(TeamMember.user_id == user_id)
    )
    return list(result.scalars().all())


async def update_team(
    team: Team, req: TeamUpdateRequest, session: AsyncSession
) -> Team:
    """Update team fields; settings are deep-merged and re-validated."""
    changes = req.model_dump(exclude_unset=True, exclude={"settings"})
    for key, value in changes.items():
        if value is not None:
            setattr(team, key, value)

    if req.settings is not None:
        merged = _deep_merge(team.settings or {}, req.settings)
        team.settings = TeamSettings.model_validate(merged).model_dump(mode="json")

    team.updated_at = utcnow()
    session.add(team)
    await session.flush()

    log.info("team.updated", team_id=str(team.id))
    return team


async def delete_team(team: Team, session: AsyncSession) -> None:
    """Delete a team and everything it owns.

    Updates go first, then each project with its children, then invites
    and members, then the team row.
    """
    await feed.delete_by_team_id(session, team.id)

    result = await session.execute(select(Project).where(Project.team_id == team.id))
    for project in result.scalars().all():
        await projects.delete_project(project, session)

    await team_invites.delete_for_scope(session, team.id)
    await session.execute(sa.delete(TeamMember).where(TeamMember.team_id == team.id))
    await session.delete(team)
    await session.flush()

    log.info("team.deleted", team_id=str(team.id), slug=team.slug)


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------


async def list_members(team: Team, session: AsyncSession) -> list[MemberResponse]:
    result = await session.execute(
        select(TeamMember)
        .where(TeamMember.team_id == team.id)
        .order_by(TeamMember.joined_at)
    )
    members = result.scalars().all()
    users = await identity.get_public_map((m.user_id for m in members), session)
    return [
        MemberResponse(
            user_id=m.user_id,
            role=TeamRole(m.role),
            joined_at=m.joined_at,
            is_owner=m.user_id == team.owner_id,
            user=users.get(m.user_id),
        )
        for m in members
    ]


async def add_member(
    team: Team, user_id: uuid.UUID, role: TeamRole, session: AsyncSession
) -> TeamMember:
    await identity.get_user(user_id, session)
    if await _get_member(team.id, user_id, session):
        raise ConflictError("User is already a member of this team")

    member = TeamMember(team_id=team.id, user_id=user_id, role=role.value)
    session.add(member)
    await session.flush()

    log.info("team.member_added", team_id=str(team.id), user_id=str(user_id), role=role.value)
    return member


async def update_member_role(
    team: Team, user_id: uuid.UUID, role: TeamRole, session: AsyncSession
) -> TeamMember:
    if user_id == team.owner_id:
        raise BadRequestError("Cannot change the team owner's role")

    member = await _get_member(team.id, user_id, session)
    if not member:
        raise NotFoundError("Member not found")

    member.role = role.value
    session.add(member)
    await session.flush()

    log.info("team.member_role_changed", team_id=str(team.id), user_id=str(user_id), role=role.value)
    return member


async def remove_member(team: Team, user_id: uuid.UUID, session: AsyncSession) -> None:
    if user_id == team.owner_id:
        raise BadRequestError("Cannot remove the team owner")

    member = await _get_member(team.id, user_id, session)
    if not member:
        raise NotFoundError("Member not found")

    await session.delete(member)
    await session.flush()
    log.info("team.member_removed", team_id=str(team.id), user_id=str(user_id))


async def leave_team(team: Team, user_id: uuid.UUID, session: AsyncSession) -> None:
    if user_id == team.owner_id:
        raise BadRequestError("The owner cannot leave the team; transfer ownership first")

    member = await _get_member(team.id, user_id, session)
    if not member:
        raise NotFoundError("You are not a member of this team")

    await session.delete(member)
    await session.flush()
    log.info("team.member_left", team_id=str(team.id), user_id=str(user_id))


async def transfer_ownership(
    team: Team, new_owner_id: uuid.UUID, session: AsyncSession
) -> Team:
    """Hand the team to an existing member. The old owner stays an admin."""
    if new_owner_id == team.owner_id:
        raise BadRequestError("User already owns this team")

    member = await _get_member(team.id, new_owner_id, session)
    if not member:
        raise BadRequestError("New owner must already be a member of the team")

    previous = team.owner_id
    member.role = TeamRole.ADMIN.value
    team.owner_id = new_owner_id
    team.updated_at = utcnow()
    session.add_all([member, team])
    await session.flush()

    log.info(
        "team.ownership_transferred",
        team_id=str(team.id),
        from_user=str(previous),
        to_user=str(new_owner_id),
    )
    return team


# ---------------------------------------------------------------------------
# Invites
# ---------------------------------------------------------------------------


async def create_team_invite(
    team: Team,
    req: TeamInviteCreate,
    inviter_id: uuid.UUID,
    inviter_role: TeamRole,
    session: AsyncSession,
) -> Invite:
    """Invite an email address. Admins may always invite; members only
    when the team allows it."""
    settings = TeamSettings.model_validate(team.settings or {})
    required = TeamRole.MEMBER if settings.allow_member_invites else TeamRole.ADMIN
    if not team_role_at_least(inviter_role, required):
        raise ForbiddenError(f"Requires {required.value} role or higher to invite")

    existing_user = await identity.find_by_email(req.email, session)
    if existing_user and await _get_member(team.id, existing_user.id, session):
        raise ConflictError("User is already a member of this team")

    return await team_invites.create(session, team.id, req.email, req.role.value, inviter_id)


async def preview_team_invite(token: str, session: AsyncSession) -> InvitePreview:
    invite = await team_invites.get_live(session, token)
    team = await get_team_or_404(session, invite.team_id)
    inviter = await identity.get_public_map([invite.invited_by], session)
    return InvitePreview(
        scope_type="team",
        scope_id=team.id,
        scope_name=team.name,
        email=invite.email,
        role=invite.role,
        expires_at=invite.expires_at,
        invited_by=inviter.get(invite.invited_by),
    )


async def accept_team_invite(token: str, user: User, session: AsyncSession) -> Team:
    """Accept an invite, then add the user with the invited role."""
    invite = await team_invites.get_live(session, token)
    if invite.email != user.email.lower():
        raise ForbiddenError("This invite was sent to a different email address")
    if await _get_member(invite.team_id, user.id, session):
        raise BadRequestError("You are already a member of this team")

    invite = await team_invites.accept(session, token, user.id)
    team = await get_team_or_404(session, invite.team_id)
    session.add(TeamMember(team_id=team.id, user_id=user.id, role=invite.role))
    await session.flush()

    log.info("team.member_joined", team_id=str(team.id), user_id=str(user.id), role=invite.role)
    return team
