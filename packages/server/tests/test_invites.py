"""
Tests for the invitation engine and invite acceptance flows.

Tests cover:
- Lifecycle transition table
- Accept / revoke / resend / expire as conditional updates
- Failed transitions leave the invite untouched
- Team and project invite acceptance adds the member exactly once
"""

from __future__ import annotations

import uuid
from datetime import timedelta

import pytest

from app.core.errors import (
    BadRequestError,
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
)
from app.models.base import utcnow
from app.services import projects, teams
from app.services.invites import project_invites, team_invites
from app.services.membership import get_project_role, get_team_role
from teamline_shared.schemas.common import InviteStatus, ProjectRole, TeamRole
from teamline_shared.schemas.invites import (
    INVITE_TRANSITIONS,
    ProjectInviteCreate,
    TeamInviteCreate,
    validate_invite_transition,
)


class TestInviteTransitions:
    """Only pending invites can move."""

    def test_pending_transitions(self):
        allowed = INVITE_TRANSITIONS[InviteStatus.PENDING]
        assert set(allowed) == {
            InviteStatus.ACCEPTED,
            InviteStatus.REVOKED,
            InviteStatus.EXPIRED,
            InviteStatus.PENDING,
        }

    @pytest.mark.parametrize(
        "status", [InviteStatus.ACCEPTED, InviteStatus.EXPIRED, InviteStatus.REVOKED]
    )
    def test_terminal_states(self, status):
        ok, msg = validate_invite_transition(status, InviteStatus.ACCEPTED)
        assert not ok
        assert status.value in msg


@pytest.fixture
async def team_setup(session, make_user, make_team):
    owner = await make_user("alice")
    invitee = await make_user("bob")
    team = await make_team(owner)
    return owner, invitee, team


class TestInvitationEngine:
    @pytest.mark.asyncio
    async def test_create_defaults(self, session, team_setup):
        owner, _, team = team_setup
        invite = await team_invites.create(session, team.id, "New@Example.com", "member", owner.id)

        assert invite.status == InviteStatus.PENDING.value
        assert invite.email == "new@example.com"
        assert len(invite.token) >= 40
        assert await team_invites.is_valid(session, invite.token)

    @pytest.mark.asyncio
    async def test_duplicate_pending_conflicts(self, session, team_setup):
        owner, _, team = team_setup
        await team_invites.create(session, team.id, "x@example.com", "member", owner.id)
        with pytest.raises(ConflictError):
            await team_invites.create(session, team.id, "X@example.com", "viewer", owner.id)

    @pytest.mark.asyncio
    async def test_accept_once(self, session, team_setup):
        owner, invitee, team = team_setup
        invite = await team_invites.create(session, team.id, invitee.email, "member", owner.id)

        accepted = await team_invites.accept(session, invite.token, invitee.id)
        assert accepted.status == InviteStatus.ACCEPTED.value
        assert accepted.accepted_by == invitee.id
        assert accepted.accepted_at is not None

        with pytest.raises(InvalidStateError, match="accepted"):
            await team_invites.accept(session, invite.token, invitee.id)

    @pytest.mark.asyncio
    async def test_accept_unknown_token(self, session, team_setup):
        _, invitee, _ = team_setup
        with pytest.raises(NotFoundError):
            await team_invites.accept(session, "no-such-token", invitee.id)

    @pytest.mark.asyncio
    async def test_accept_revoked_has_no_effect(self, session, team_setup):
        owner, invitee, team = team_setup
        invite = await team_invites.create(session, team.id, invitee.email, "member", owner.id)
        await team_invites.revoke(session, invite.id)

        with pytest.raises(InvalidStateError, match="revoked"):
            await team_invites.accept(session, invite.token, invitee.id)

        invite = await team_invites.get(session, invite.id)
        assert invite.status == InviteStatus.REVOKED.value
        assert invite.accepted_by is None

    @pytest.mark.asyncio
    async def test_accept_past_expiry(self, session, team_setup):
        owner, invitee, team = team_setup
        invite = await team_invites.create(session, team.id, invitee.email, "member", owner.id)
        invite.expires_at = utcnow() - timedelta(hours=1)
        session.add(invite)
        await session.flush()

        assert not await team_invites.is_valid(session, invite.token)
        with pytest.raises(InvalidStateError, match="expired"):
            await team_invites.accept(session, invite.token, invitee.id)

    @pytest.mark.asyncio
    async def test_resend_rotates_token(self, session, team_setup):
        owner, invitee, team = team_setup
        invite = await team_invites.create(session, team.id, invitee.email, "member", owner.id)
        old_token = invite.token

        resent = await team_invites.resend(session, invite.id)
        assert resent.token != old_token
        assert resent.status == InviteStatus.PENDING.value

        with pytest.raises(NotFoundError):
            await team_invites.accept(session, old_token, invitee.id)
        assert (await team_invites.accept(session, resent.token, invitee.id)).status == "accepted"

    @pytest.mark.asyncio
    async def test_resend_and_revoke_require_pending(self, session, team_setup):
        owner, invitee, team = team_setup
        invite = await team_invites.create(session, team.id, invitee.email, "member", owner.id)
        await team_invites.accept(session, invite.token, invitee.id)

        with pytest.raises(InvalidStateError):
            await team_invites.resend(session, invite.id)
        with pytest.raises(InvalidStateError):
            await team_invites.revoke(session, invite.id)
        with pytest.raises(NotFoundError):
            await team_invites.revoke(session, uuid.uuid4())

    @pytest.mark.asyncio
    async def test_expire_old_only_touches_stale_pending(self, session, team_setup):
        owner, invitee, team = team_setup
        stale = await team_invites.create(session, team.id, "stale@example.com", "member", owner.id)
        fresh = await team_invites.create(session, team.id, "fresh@example.com", "member", owner.id)
        done = await team_invites.create(session, team.id, invitee.email, "member", owner.id)
        await team_invites.accept(session, done.token, invitee.id)

        stale.expires_at = utcnow() - timedelta(days=1)
        session.add(stale)
        await session.flush()

        assert await team_invites.expire_old(session) == 1
        assert (await team_invites.get_by_token(session, stale.token)) is not None

        statuses = {
            i.email: i.status
            for i in await team_invites.list_for_scope(session, team.id)
        }
        await session.refresh(stale)
        assert stale.status == InviteStatus.EXPIRED.value
        assert statuses["fresh@example.com"] == InviteStatus.PENDING.value
        assert fresh.status == InviteStatus.PENDING.value

    @pytest.mark.asyncio
    async def test_list_pending_for_email(self, session, team_setup):
        owner, invitee, team = team_setup
        await team_invites.create(session, team.id, invitee.email, "member", owner.id)
        pending = await team_invites.list_pending_for_email(session, invitee.email.upper())
        assert [i.team_id for i in pending] == [team.id]


class TestTeamInviteFlow:
    """Invite, accept, and the membership that results."""

    @pytest.mark.asyncio
    async def test_invite_accept_joins_with_role(self, session, team_setup):
        owner, invitee, team = team_setup
        invite = await teams.create_team_invite(
            team, TeamInviteCreate(email=invitee.email, role=TeamRole.VIEWER), owner.id, TeamRole.ADMIN, session
        )
        joined = await teams.accept_team_invite(invite.token, invitee, session)

        assert joined.id == team.id
        assert await get_team_role(session, team, invitee.id) == TeamRole.VIEWER

        with pytest.raises(InvalidStateError):
            await teams.accept_team_invite(invite.token, invitee, session)

    @pytest.mark.asyncio
    async def test_accept_requires_matching_email(self, session, make_user, team_setup):
        owner, invitee, team = team_setup
        other = await make_user("carol")
        invite = await teams.create_team_invite(
            team, TeamInviteCreate(email=invitee.email), owner.id, TeamRole.ADMIN, session
        )
        with pytest.raises(ForbiddenError):
            await teams.accept_team_invite(invite.token, other, session)

    @pytest.mark.asyncio
    async def test_accepted_token_is_spent_for_everyone(self, session, make_user, team_setup):
        """Once bob accepts, carol gets InvalidState rather than an email mismatch."""
        owner, invitee, team = team_setup
        carol = await make_user("carol")
        invite = await teams.create_team_invite(
            team, TeamInviteCreate(email=invitee.email, role=TeamRole.MEMBER), owner.id, TeamRole.ADMIN, session
        )
        await teams.accept_team_invite(invite.token, invitee, session)

        with pytest.raises(InvalidStateError):
            await teams.accept_team_invite(invite.token, carol, session)
        assert await get_team_role(session, team, carol.id) is None
        assert (await team_invites.get(session, invite.id)).accepted_by == invitee.id

    @pytest.mark.asyncio
    async def test_unknown_token_not_found(self, session, team_setup):
        _, invitee, _ = team_setup
        with pytest.raises(NotFoundError):
            await teams.accept_team_invite("no-such-token", invitee, session)

    @pytest.mark.asyncio
    async def test_existing_member_cannot_accept_pending_invite(self, session, team_setup):
        owner, invitee, team = team_setup
        invite = await teams.create_team_invite(
            team, TeamInviteCreate(email=invitee.email), owner.id, TeamRole.ADMIN, session
        )
        await teams.add_member(team, invitee.id, TeamRole.MEMBER, session)

        with pytest.raises(BadRequestError):
            await teams.accept_team_invite(invite.token, invitee, session)
        assert (await team_invites.get(session, invite.id)).status == InviteStatus.PENDING.value

    @pytest.mark.asyncio
    async def test_members_cannot_invite_by_default(self, session, team_setup):
        owner, invitee, team = team_setup
        with pytest.raises(ForbiddenError):
            await teams.create_team_invite(
                team, TeamInviteCreate(email="x@example.com"), invitee.id, TeamRole.MEMBER, session
            )

    @pytest.mark.asyncio
    async def test_members_can_invite_when_allowed(self, session, team_setup):
        from teamline_shared.schemas.teams import TeamUpdateRequest

        owner, invitee, team = team_setup
        await teams.update_team(
            team, TeamUpdateRequest(settings={"allow_member_invites": True}), session
        )
        invite = await teams.create_team_invite(
            team, TeamInviteCreate(email="x@example.com"), invitee.id, TeamRole.MEMBER, session
        )
        assert invite.invited_by == invitee.id

    @pytest.mark.asyncio
    async def test_existing_member_conflicts(self, session, team_setup):
        owner, _, team = team_setup
        with pytest.raises(ConflictError):
            await teams.create_team_invite(
                team, TeamInviteCreate(email=owner.email), owner.id, TeamRole.ADMIN, session
            )

    @pytest.mark.asyncio
    async def test_preview(self, session, team_setup):
        owner, invitee, team = team_setup
        invite = await teams.create_team_invite(
            team, TeamInviteCreate(email=invitee.email), owner.id, TeamRole.ADMIN, session
        )
        preview = await teams.preview_team_invite(invite.token, session)
        assert preview.scope_name == team.name
        assert preview.invited_by.username == "alice"

    @pytest.mark.asyncio
    async def test_preview_refuses_dead_invites(self, session, team_setup):
        owner, invitee, team = team_setup
        revoked = await teams.create_team_invite(
            team, TeamInviteCreate(email=invitee.email), owner.id, TeamRole.ADMIN, session
        )
        await team_invites.revoke(session, revoked.id)
        with pytest.raises(InvalidStateError):
            await teams.preview_team_invite(revoked.token, session)

        stale = await teams.create_team_invite(
            team, TeamInviteCreate(email="late@example.com"), owner.id, TeamRole.ADMIN, session
        )
        stale.expires_at = utcnow() - timedelta(hours=1)
        session.add(stale)
        await session.flush()
        with pytest.raises(InvalidStateError):
            await teams.preview_team_invite(stale.token, session)

        with pytest.raises(NotFoundError):
            await teams.preview_team_invite("no-such-token", session)


class TestProjectInviteFlow:
    @pytest.mark.asyncio
    async def test_accept_grants_collaborator_role(self, session, make_user, make_project):
        owner = await make_user("alice")
        invitee = await make_user("bob")
        project = await make_project(owner)

        invite = await projects.create_project_invite(
            project, ProjectInviteCreate(email=invitee.email, role=ProjectRole.EDITOR), owner.id, session
        )
        assert invite.project_id == project.id
        await projects.accept_project_invite(invite.token, invitee, session)

        assert await get_project_role(session, project, invitee.id) == ProjectRole.EDITOR
        assert (await project_invites.get(session, invite.id)).status == "accepted"

    @pytest.mark.asyncio
    async def test_spent_and_revoked_tokens(self, session, make_user, make_project):
        owner = await make_user("alice")
        invitee = await make_user("bob")
        carol = await make_user("carol")
        project = await make_project(owner)

        invite = await projects.create_project_invite(
            project, ProjectInviteCreate(email=invitee.email), owner.id, session
        )
        await projects.accept_project_invite(invite.token, invitee, session)
        with pytest.raises(InvalidStateError):
            await projects.accept_project_invite(invite.token, carol, session)
        with pytest.raises(InvalidStateError):
            await projects.preview_project_invite(invite.token, session)

        revoked = await projects.create_project_invite(
            project, ProjectInviteCreate(email=carol.email), owner.id, session
        )
        assert (await projects.preview_project_invite(revoked.token, session)).scope_name == project.name
        await project_invites.revoke(session, revoked.id)
        with pytest.raises(InvalidStateError):
            await projects.preview_project_invite(revoked.token, session)
        assert await get_project_role(session, project, carol.id) is None

    @pytest.mark.asyncio
    async def test_owner_email_conflicts(self, session, make_user, make_project):
        owner = await make_user("alice")
        project = await make_project(owner)
        with pytest.raises(ConflictError):
            await projects.create_project_invite(
                project, ProjectInviteCreate(email=owner.email), owner.id, session
            )

    def test_owner_role_rejected(self):
        with pytest.raises(ValueError):
            ProjectInviteCreate(email="x@example.com", role=ProjectRole.OWNER)
