"""
Membership resolver — effective role of a user within a team or project.

Resolution functions are pure and report a missing capability as ``None``.
The ``require_*`` helpers load the scope, resolve the role and turn an
absence into the matching service error for the caller.
"""

from __future__ import annotations

import uuid
from typing import Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import BadRequestError, ForbiddenError, NotFoundError
from app.models.project import Project, ProjectCollaborator
from app.models.team import Team, TeamMember
from teamline_shared.schemas.common import (
    AllUsersAccess,
    PROJECT_ROLE_RANK,
    ProjectRole,
    TEAM_ROLE_RANK,
    TeamRole,
)


# ---------------------------------------------------------------------------
# Pure resolution
# ---------------------------------------------------------------------------


def team_role_at_least(actual: Optional[TeamRole], required: TeamRole) -> bool:
    if actual is None:
        return False
    return TEAM_ROLE_RANK[actual] >= TEAM_ROLE_RANK[required]


def project_role_at_least(actual: Optional[ProjectRole], required: ProjectRole) -> bool:
    if actual is None:
        return False
    return PROJECT_ROLE_RANK[actual] >= PROJECT_ROLE_RANK[required]


def normalize_all_users_access(value: Optional[str]) -> Optional[AllUsersAccess]:
    """Unset and "none" are the same logical state: no blanket grant."""
    if value is None:
        return None
    access = AllUsersAccess(value)
    return None if access == AllUsersAccess.NONE else access


def resolve_team_role(
    members: Iterable[TeamMember], user_id: uuid.UUID
) -> Optional[TeamRole]:
    for member in members:
        if member.user_id == user_id:
            return TeamRole(member.role)
    return None


def resolve_project_role(
    project: Project,
    user_id: uuid.UUID,
    collaborators: Iterable[ProjectCollaborator],
) -> Optional[ProjectRole]:
    """Resolve a project role.

    Precedence: ownership, then an explicit collaborator grant, then the
    project's all-users grant (edit before view). Anything else is no access.
    """
    if project.owner_id == user_id:
        return ProjectRole.OWNER

    for collaborator in collaborators:
        if collaborator.user_id == user_id:
            return ProjectRole(collaborator.role)

    access = normalize_all_users_access(project.all_users_access)
    if access == AllUsersAccess.EDIT:
        return ProjectRole.EDITOR
    if access == AllUsersAccess.VIEW:
        return ProjectRole.VIEWER
    return None


# ---------------------------------------------------------------------------
# Loaders
# ---------------------------------------------------------------------------


async def get_team_or_404(session: AsyncSession, team_id: uuid.UUID) -> Team:
    team = await session.get(Team, team_id)
    if not team:
        raise NotFoundError("Team not found")
    return team


async def get_project_or_404(session: AsyncSession, project_id: uuid.UUID) -> Project:
    project = await session.get(Project, project_id)
    if not project:
        raise NotFoundError("Project not found")
    return project


async def get_team_role(
    session: AsyncSession, team: Team, user_id: uuid.UUID
) -> Optional[TeamRole]:
    result = await session.execute(
        select(TeamMember).where(
            TeamMember.team_id == team.id, TeamMember.user_id == user_id
        )
    )
    return resolve_team_role(result.scalars().all(), user_id)


async def get_project_role(
    session: AsyncSession, project: Project, user_id: uuid.UUID
) -> Optional[ProjectRole]:
    result = await session.execute(
        select(ProjectCollaborator).where(
            ProjectCollaborator.project_id == project.id,
            ProjectCollaborator.user_id == user_id,
        )
    )
    return resolve_project_role(project, user_id, result.scalars().all())


# ---------------------------------------------------------------------------
# Guards
# ---------------------------------------------------------------------------


async def require_team_role(
    session: AsyncSession,
    team_id: Optional[uuid.UUID],
    user_id: uuid.UUID,
    required: TeamRole = TeamRole.VIEWER,
) -> tuple[Team, TeamRole]:
    """Load a team and check the user holds ``required`` or higher."""
    if team_id is None:
        raise BadRequestError("Team ID is required")
    team = await get_team_or_404(session, team_id)
    role = await get_team_role(session, team, user_id)
    if role is None:
        raise ForbiddenError("You are not a member of this team")
    if not team_role_at_least(role, required):
        raise ForbiddenError(f"Requires {required.value} role or higher")
    return team, role


async def require_team_owner(
    session: AsyncSession, team_id: Optional[uuid.UUID], user_id: uuid.UUID
) -> Team:
    if team_id is None:
        raise BadRequestError("Team ID is required")
    team = await get_team_or_404(session, team_id)
    if team.owner_id != user_id:
        raise ForbiddenError("Only the team owner can perform this action")
    return team


async def require_project_role(
    session: AsyncSession,
    project_id: Optional[uuid.UUID],
    user_id: uuid.UUID,
    required: ProjectRole = ProjectRole.VIEWER,
) -> tuple[Project, ProjectRole]:
    """Load a project and check the user holds ``required`` or higher."""
    if project_id is None:
        raise BadRequestError("Project ID is required")
    project = await get_project_or_404(session, project_id)
    role = await get_project_role(session, project, user_id)
    if role is None:
        raise ForbiddenError("You do not have access to this project")
    if not project_role_at_least(role, required):
        raise ForbiddenError(f"Requires {required.value} role or higher")
    return project, role
