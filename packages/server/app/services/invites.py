"""
Invitation engine — time-bounded tokens that grant scope membership.

One ``InvitationEngine`` is instantiated per invite table. Every state
change is a single conditional UPDATE keyed on ``status = 'pending'`` so
that concurrent callers race safely: exactly one wins, the rest see the
row's new state and get ``InvalidStateError``.

Adding the member or collaborator after a successful accept is the
caller's job (see ``teams.accept_team_invite`` and
``projects.accept_project_invite``).
"""

from __future__ import annotations

import uuid
from datetime import timedelta
from typing import Literal, Optional, Type, Union

import sqlalchemy as sa
import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.auth import generate_token
from app.core.config import get_settings
from app.core.errors import ConflictError, InvalidStateError, NotFoundError
from app.models.base import utcnow
from app.models.invite import ProjectInvite, TeamInvite
from teamline_shared.schemas.common import InviteStatus
from teamline_shared.schemas.invites import InviteRead, validate_invite_transition

log = structlog.get_logger()

Invite = Union[TeamInvite, ProjectInvite]


class InvitationEngine:
    def __init__(
        self,
        model: Type[Invite],
        scope_type: Literal["team", "project"],
        scope_field: str,
    ):
        self.model = model
        self.scope_type = scope_type
        self.scope_field = scope_field

    @property
    def scope_column(self):
        return getattr(self.model, self.scope_field)

    def scope_id_of(self, invite: Invite) -> uuid.UUID:
        return getattr(invite, self.scope_field)

    def to_read(self, invite: Invite, *, with_token: bool = False) -> InviteRead:
        return InviteRead(
            id=invite.id,
            scope_type=self.scope_type,
            scope_id=self.scope_id_of(invite),
            email=invite.email,
            role=invite.role,
            status=InviteStatus(invite.status),
            token=invite.token if with_token else None,
            invited_by=invite.invited_by,
            expires_at=invite.expires_at,
            accepted_at=invite.accepted_at,
            accepted_by=invite.accepted_by,
            created_at=invite.created_at,
        )

    # -- lookups -------------------------------------------------------------

    async def get(self, session: AsyncSession, invite_id: uuid.UUID) -> Invite:
        invite = await session.get(self.model, invite_id)
        if not invite:
            raise NotFoundError("Invite not found")
        return invite

    async def get_by_token(self, session: AsyncSession, token: str) -> Optional[Invite]:
        result = await session.execute(
            select(self.model)
            .where(self.model.token == token)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def find_pending(
        self, session: AsyncSession, scope_id: uuid.UUID, email: str
    ) -> Optional[Invite]:
        """An unexpired pending invite for this email in this scope, if any."""
        result = await session.execute(
            select(self.model).where(
                self.scope_column == scope_id,
                self.model.email == email.lower(),
                self.model.status == InviteStatus.PENDING.value,
                self.model.expires_at > utcnow(),
            )
        )
        return result.scalars().first()

    async def list_for_scope(
        self,
        session: AsyncSession,
        scope_id: uuid.UUID,
        status: Optional[InviteStatus] = None,
    ) -> list[Invite]:
        stmt = select(self.model).where(self.scope_column == scope_id)
        if status is not None:
            stmt = stmt.where(self.model.status == status.value)
        result = await session.execute(stmt.order_by(self.model.created_at.desc()))
        return list(result.scalars().all())

    async def list_pending_for_email(self, session: AsyncSession, email: str) -> list[Invite]:
        result = await session.execute(
            select(self.model)
            .where(
                self.model.email == email.lower(),
                self.model.status == InviteStatus.PENDING.value,
                self.model.expires_at > utcnow(),
            )
            .order_by(self.model.created_at.desc())
        )
        return list(result.scalars().all())

    async def is_valid(self, session: AsyncSession, token: str) -> bool:
        """True when the token exists, is pending and has not expired."""
        result = await session.execute(
            select(self.model.id).where(
                self.model.token == token,
                self.model.status == InviteStatus.PENDING.value,
                self.model.expires_at > utcnow(),
            )
        )
        return result.scalar_one_or_none() is not None

    async def get_live(self, session: AsyncSession, token: str) -> Invite:
        """The invite behind ``token``, provided it can still be accepted.

        Raises NotFound for an unknown token and InvalidState for one that
        was accepted, revoked or has expired.
        """
        invite = await self.get_by_token(session, token)
        if invite is None:
            raise NotFoundError("Invite not found")
        if not await self.is_valid(session, token):
            if invite.status == InviteStatus.PENDING.value:
                raise InvalidStateError("Invite has expired")
            raise InvalidStateError(f"Invite has been {invite.status}")
        return invite

    # -- lifecycle -----------------------------------------------------------

    async def create(
        self,
        session: AsyncSession,
        scope_id: uuid.UUID,
        email: str,
        role: str,
        invited_by: uuid.UUID,
    ) -> Invite:
        """Issue a pending invite. A live pending invite for the same email
        and scope is a conflict."""
        email = email.lower()
        if await self.find_pending(session, scope_id, email):
            raise ConflictError("An invite is already pending for this email")

        invite = self.model(
            **{self.scope_field: scope_id},
            invited_by=invited_by,
            email=email,
            role=role,
            token=generate_token(),
            status=InviteStatus.PENDING.value,
            expires_at=utcnow() + timedelta(days=get_settings().invite_expiry_days),
        )
        session.add(invite)
        try:
            await session.flush()
        except IntegrityError:
            raise ConflictError("Invite token collision, retry")

        log.info(
            "invite.created",
            scope=self.scope_type,
            scope_id=str(scope_id),
            invite_id=str(invite.id),
            role=role,
        )
        return invite

    async def _reject(
        self, session: AsyncSession, invite: Optional[Invite], target: InviteStatus
    ) -> None:
        """Explain why a conditional update matched no row."""
        if invite is None:
            raise NotFoundError("Invite not found")
        # Fresh read; the row may have moved under us
        await session.refresh(invite)
        current = InviteStatus(invite.status)
        if current == InviteStatus.PENDING and target == InviteStatus.ACCEPTED:
            raise InvalidStateError("Invite has expired")
        ok, msg = validate_invite_transition(current, target)
        if not ok:
            raise InvalidStateError(msg)
        raise InvalidStateError(f"Invite could not be {target.value}")

    async def _load(self, session: AsyncSession, invite_id: uuid.UUID) -> Invite:
        invite = await session.get(self.model, invite_id, populate_existing=True)
        if not invite:
            raise NotFoundError("Invite not found")
        return invite

    async def accept(self, session: AsyncSession, token: str, user_id: uuid.UUID) -> Invite:
        """Move a live pending invite to accepted. Exactly one concurrent
        caller succeeds."""
        now = utcnow()
        result = await session.execute(
            sa.update(self.model)
            .where(
                self.model.token == token,
                self.model.status == InviteStatus.PENDING.value,
                self.model.expires_at > now,
            )
            .values(
                status=InviteStatus.ACCEPTED.value,
                accepted_at=now,
                accepted_by=user_id,
            )
            .returning(self.model.id)
            .execution_options(synchronize_session=False)
        )
        invite_id = result.scalar_one_or_none()
        if invite_id is None:
            await self._reject(
                session, await self.get_by_token(session, token), InviteStatus.ACCEPTED
            )

        invite = await self._load(session, invite_id)
        log.info(
            "invite.accepted",
            scope=self.scope_type,
            invite_id=str(invite.id),
            user_id=str(user_id),
        )
        return invite

    async def revoke(self, session: AsyncSession, invite_id: uuid.UUID) -> Invite:
        result = await session.execute(
            sa.update(self.model)
            .where(
                self.model.id == invite_id,
                self.model.status == InviteStatus.PENDING.value,
            )
            .values(status=InviteStatus.REVOKED.value)
            .returning(self.model.id)
            .execution_options(synchronize_session=False)
        )
        if result.scalar_one_or_none() is None:
            await self._reject(
                session, await session.get(self.model, invite_id), InviteStatus.REVOKED
            )

        log.info("invite.revoked", scope=self.scope_type, invite_id=str(invite_id))
        return await self._load(session, invite_id)

    async def resend(self, session: AsyncSession, invite_id: uuid.UUID) -> Invite:
        """Rotate the token and restart the expiry window."""
        result = await session.execute(
            sa.update(self.model)
            .where(
                self.model.id == invite_id,
                self.model.status == InviteStatus.PENDING.value,
            )
            .values(
                token=generate_token(),
                expires_at=utcnow() + timedelta(days=get_settings().invite_expiry_days),
            )
            .returning(self.model.id)
            .execution_options(synchronize_session=False)
        )
        if result.scalar_one_or_none() is None:
            await self._reject(
                session, await session.get(self.model, invite_id), InviteStatus.PENDING
            )

        log.info("invite.resent", scope=self.scope_type, invite_id=str(invite_id))
        return await self._load(session, invite_id)

    async def expire_old(self, session: AsyncSession) -> int:
        """Bulk-move pending invites past their expiry to expired."""
        result = await session.execute(
            sa.update(self.model)
            .where(
                self.model.status == InviteStatus.PENDING.value,
                self.model.expires_at < utcnow(),
            )
            .values(status=InviteStatus.EXPIRED.value)
            .execution_options(synchronize_session=False)
        )
        count = result.rowcount or 0
        if count:
            log.info("invites.expired", scope=self.scope_type, count=count)
        return count

    async def delete_for_scope(self, session: AsyncSession, scope_id: uuid.UUID) -> int:
        result = await session.execute(
            sa.delete(self.model).where(self.scope_column == scope_id)
        )
        return result.rowcount or 0


team_invites = InvitationEngine(TeamInvite, "team", "team_id")
project_invites = InvitationEngine(ProjectInvite, "project", "project_id")
