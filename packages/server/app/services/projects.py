"""
Project service — project CRUD, collaborators, all-users access, the
single pinned update and project invites.
"""

from __future__ import annotations

import uuid
from typing import Optional

import sqlalchemy as sa
import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import or_, select

from app.core.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from app.core.slugs import generate_slug
from app.models.base import utcnow
from app.models.project import Project, ProjectCollaborator
from app.models.update import Update
from app.models.user import User
from app.services import feed, identity
from app.services.invites import Invite, project_invites
from app.services.membership import (
    get_project_or_404,
    normalize_all_users_access,
    resolve_project_role,
)
from teamline_shared.schemas.common import AllUsersAccess, ProjectRole, ProjectStatus
from teamline_shared.schemas.invites import InvitePreview, ProjectInviteCreate
from teamline_shared.schemas.projects import (
    CollaboratorRead,
    ProjectCreate,
    ProjectRead,
    ProjectStats,
    ProjectUpdate,
)

log = structlog.get_logger()


def to_read(project: Project, role: Optional[ProjectRole] = None) -> ProjectRead:
    return ProjectRead(
        id=project.id,
        name=project.name,
        slug=project.slug,
        description=project.description,
        visibility=project.visibility,
        color=project.color,
        tags=project.tags or [],
        owner_id=project.owner_id,
        team_id=project.team_id,
        status=project.status,
        all_users_access=project.all_users_access or AllUsersAccess.NONE,
        share_enabled=project.share_enabled,
        pinned_update_id=project.pinned_update_id,
        stats=ProjectStats(
            total_updates=project.total_updates,
            last_update_at=project.last_update_at,
        ),
        role=role,
        created_at=project.created_at,
        updated_at=project.updated_at,
    )


async def _get_collaborator(
    project_id: uuid.UUID, user_id: uuid.UUID, session: AsyncSession
) -> ProjectCollaborator | None:
    return await session.get(ProjectCollaborator, (project_id, user_id))


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------


async def create_project(
    req: ProjectCreate,
    owner_id: uuid.UUID,
    team_id: Optional[uuid.UUID],
    session: AsyncSession,
) -> Project:
    """Create a project. Team membership is checked by the caller."""
    project = Project(
        name=req.name,
        slug=generate_slug(req.name),
        description=req.description,
        owner_id=owner_id,
        team_id=team_id,
        status=ProjectStatus.ACTIVE.value,
        visibility=req.visibility.value,
        color=req.color,
        tags=req.tags,
    )
    session.add(project)
    try:
        await session.flush()
    except IntegrityError:
        raise ConflictError("Project slug already taken")

    log.info(
        "project.created",
        project_id=str(project.id),
        team_id=str(team_id) if team_id else None,
        owner_id=str(owner_id),
    )
    return project


async def get_project(project_id: uuid.UUID, session: AsyncSession) -> Project:
    return await get_project_or_404(session, project_id)


async def _with_roles(
    projects: list[Project], user_id: uuid.UUID, session: AsyncSession
) -> list[tuple[Project, ProjectRole]]:
    """Resolve the user's role on each project, dropping inaccessible ones."""
    if not projects:
        return []
    result = await session.execute(
        select(ProjectCollaborator).where(
            ProjectCollaborator.user_id == user_id,
            ProjectCollaborator.project_id.in_([p.id for p in projects]),
        )
    )
    grants = result.scalars().all()
    out = []
    for project in projects:
        role = resolve_project_role(
            project, user_id, [g for g in grants if g.project_id == project.id]
        )
        if role is not None:
            out.append((project, role))
    return out


async def list_team_projects(
    team_id: uuid.UUID, user_id: uuid.UUID, session: AsyncSession
) -> list[tuple[Project, ProjectRole]]:
    """Projects in a team that the user can see."""
    result = await session.execute(
        select(Project).where(Project.team_id == team_id).order_by(Project.created_at.desc())
    )
    return await _with_roles(list(result.scalars().all()), user_id, session)


async def list_accessible_projects(
    user_id: uuid.UUID, session: AsyncSession
) -> list[tuple[Project, ProjectRole]]:
    """Every project the user owns, collaborates on or reaches via all-users access."""
    collaborating = select(ProjectCollaborator.project_id).where(
        ProjectCollaborator.user_id == user_id
    )
    result = await session.execute(
        select(Project)
        .where(
            or_(
                Project.owner_id == user_id,
                Project.id.in_(collaborating),
                Project.all_users_access.is_not(None),
            )
        )
        .order_by(Project.created_at.desc())
    )
    return await _with_roles(list(result.scalars().all()), user_id, session)


async def update_project(
    project: Project, req: ProjectUpdate, session: AsyncSession
) -> Project:
    changes = req.model_dump(exclude_unset=True, mode="json")
    for key, value in changes.items():
        if value is not None:
            setattr(project, key, value)

    project.updated_at = utcnow()
    session.add(project)
    await session.flush()

    log.info("project.updated", project_id=str(project.id), fields=sorted(changes))
    return project


async def delete_project(project: Project, session: AsyncSession) -> None:
    """Delete a project with its updates, collaborators and invites."""
    await feed.delete_by_project_id(session, project.id)
    await session.execute(
        sa.delete(ProjectCollaborator).where(ProjectCollaborator.project_id == project.id)
    )
    await project_invites.delete_for_scope(session, project.id)
    await session.delete(project)
    await session.flush()

    log.info("project.deleted", project_id=str(project.id))


# ---------------------------------------------------------------------------
# Access grants
# ---------------------------------------------------------------------------


async def list_collaborators(project: Project, session: AsyncSession) -> list[CollaboratorRead]:
    result = await session.execute(
        select(ProjectCollaborator)
        .where(ProjectCollaborator.project_id == project.id)
        .order_by(ProjectCollaborator.added_at)
    )
    return [
        CollaboratorRead(user_id=c.user_id, role=ProjectRole(c.role), added_at=c.added_at)
        for c in result.scalars().all()
    ]


async def add_collaborator(
    project: Project, user_id: uuid.UUID, role: ProjectRole, session: AsyncSession
) -> ProjectCollaborator:
    if user_id == project.owner_id:
        raise BadRequestError("The owner cannot be added as a collaborator")
    await identity.get_user(user_id, session)
    if await _get_collaborator(project.id, user_id, session):
        raise ConflictError("User is already a collaborator")

    collaborator = ProjectCollaborator(project_id=project.id, user_id=user_id, role=role.value)
    session.add(collaborator)
    await session.flush()

    log.info("project.collaborator_added", project_id=str(project.id), user_id=str(user_id), role=role.value)
    return collaborator


async def update_collaborator_role(
    project: Project, user_id: uuid.UUID, role: ProjectRole, session: AsyncSession
) -> ProjectCollaborator:
    if user_id == project.owner_id:
        raise BadRequestError("Cannot change the project owner's role")
    collaborator = await _get_collaborator(project.id, user_id, session)
    if not collaborator:
        raise NotFoundError("Collaborator not found")

    collaborator.role = role.value
    session.add(collaborator)
    await session.flush()
    return collaborator


async def remove_collaborator(
    project: Project, user_id: uuid.UUID, session: AsyncSession
) -> None:
    if user_id == project.owner_id:
        raise BadRequestError("Cannot remove the project owner")
    collaborator = await _get_collaborator(project.id, user_id, session)
    if not collaborator:
        raise NotFoundError("Collaborator not found")

    await session.delete(collaborator)
    await session.flush()
    log.info("project.collaborator_removed", project_id=str(project.id), user_id=str(user_id))


async def set_all_users_access(
    project: Project, access: Optional[AllUsersAccess], session: AsyncSession
) -> Project:
    """Set or clear the blanket grant. "none" is stored as NULL."""
    normalized = normalize_all_users_access(access.value if access else None)
    project.all_users_access = normalized.value if normalized else None
    project.updated_at = utcnow()
    session.add(project)
    await session.flush()

    log.info("project.all_users_access_set", project_id=str(project.id), access=project.all_users_access)
    return project


# ---------------------------------------------------------------------------
# Pinned update
# ---------------------------------------------------------------------------


async def pin_update(project: Project, update: Update, session: AsyncSession) -> Project:
    """Pin one update; any previously pinned update is unpinned."""
    if update.project_id != project.id:
        raise BadRequestError("Update does not belong to this project")

    if project.pinned_update_id and project.pinned_update_id != update.id:
        previous = await session.get(Update, project.pinned_update_id)
        if previous:
            await feed.set_pinned(session, previous, False)

    await feed.set_pinned(session, update, True)
    project.pinned_update_id = update.id
    project.updated_at = utcnow()
    session.add(project)
    await session.flush()

    log.info("project.update_pinned", project_id=str(project.id), update_id=str(update.id))
    return project


async def unpin_update(project: Project, session: AsyncSession) -> Project:
    if project.pinned_update_id:
        pinned = await session.get(Update, project.pinned_update_id)
        if pinned:
            await feed.set_pinned(session, pinned, False)
        project.pinned_update_id = None
        project.updated_at = utcnow()
        session.add(project)
        await session.flush()
    return project


# ---------------------------------------------------------------------------
# Invites
# ---------------------------------------------------------------------------


async def _has_direct_access(project: Project, user_id: uuid.UUID, session: AsyncSession) -> bool:
    if project.owner_id == user_id:
        return True
    return await _get_collaborator(project.id, user_id, session) is not None


async def create_project_invite(
    project: Project,
    req: ProjectInviteCreate,
    inviter_id: uuid.UUID,
    session: AsyncSession,
) -> Invite:
    existing_user = await identity.find_by_email(req.email, session)
    if existing_user and await _has_direct_access(project, existing_user.id, session):
        raise ConflictError("User already has access to this project")

    return await project_invites.create(
        session, project.id, req.email, req.role.value, inviter_id
    )


async def preview_project_invite(token: str, session: AsyncSession) -> InvitePreview:
    invite = await project_invites.get_live(session, token)
    project = await get_project_or_404(session, invite.project_id)
    inviter = await identity.get_public_map([invite.invited_by], session)
    return InvitePreview(
        scope_type="project",
        scope_id=project.id,
        scope_name=project.name,
        email=invite.email,
        role=invite.role,
        expires_at=invite.expires_at,
        invited_by=inviter.get(invite.invited_by),
    )


async def accept_project_invite(token: str, user: User, session: AsyncSession) -> Project:
    """Accept an invite, then grant the collaborator role."""
    invite = await project_invites.get_live(session, token)
    if invite.email != user.email.lower():
        raise ForbiddenError("This invite was sent to a different email address")

    project = await get_project_or_404(session, invite.project_id)
    if await _has_direct_access(project, user.id, session):
        raise BadRequestError("You already have access to this project")

    invite = await project_invites.accept(session, token, user.id)
    session.add(ProjectCollaborator(project_id=project.id, user_id=user.id, role=invite.role))
    await session.flush()

    log.info("project.collaborator_joined", project_id=str(project.id), user_id=str(user.id), role=invite.role)
    return project
