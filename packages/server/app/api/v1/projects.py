"""
Project endpoints: CRUD, collaborators, all-users access, sharing, pins,
project feed and project invites.

Access is resolved per project: owner, then collaborator grant, then the
project's all-users grant. Team membership alone does not open a project.
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
from app.models.project import Project
from app.models.user import User
from app.services import feed as feed_service
from app.services import projects as project_service
from app.services import sharing
from app.services.invites import project_invites
from app.services.membership import require_project_role, require_team_role
from teamline_shared.schemas.common import InviteStatus, ProjectRole, TeamRole
from teamline_shared.schemas.invites import InviteRead, ProjectInviteCreate
from teamline_shared.schemas.projects import (
    AllUsersAccessUpdate,
    CollaboratorAdd,
    CollaboratorRead,
    CollaboratorRoleUpdate,
    ProjectCreate,
    ProjectRead,
    ProjectUpdate,
    ShareRead,
)
from teamline_shared.schemas.updates import FeedQuery, FeedResponse

router = APIRouter()


# ---------------------------------------------------------------------------
# Project CRUD
# ---------------------------------------------------------------------------


@router.get("", response_model=List[ProjectRead], tags=["Projects"])
async def list_projects(
    user: User = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    """Every project I own, collaborate on or can reach through all-users access."""
    rows = await project_service.list_accessible_projects(user.id, session)
    return [project_service.to_read(project, role) for project, role in rows]


@router.post("", response_model=ProjectRead, status_code=201, tags=["Projects"])
async def create_project(
    body: ProjectCreate,
    user: User = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    """Create a project, personal or inside a team where I am at least a member."""
    if body.team_id is not None:
        await require_team_role(session, body.team_id, user.id, TeamRole.MEMBER)
    project = await project_service.create_project(body, user.id, body.team_id, session)
    return project_service.to_read(project, ProjectRole.OWNER)


@router.get("/{projectId}", response_model=ProjectRead, tags=["Projects"])
async def get_project(
    projectId: uuid.UUID,
    user: User = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    project, role = await require_project_role(session, projectId, user.id)
    return project_service.to_read(project, role)


@router.patch("/{projectId}", response_model=ProjectRead, tags=["Projects"])
async def update_project(
    projectId: uuid.UUID,
    body: ProjectUpdate,
    user: User = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    project, role = await require_project_role(session, projectId, user.id, ProjectRole.EDITOR)
    project = await project_service.update_project(project, body, session)
    return project_service.to_read(project, role)


@router.delete("/{projectId}", status_code=204, tags=["Projects"])
async def delete_project(
    projectId: uuid.UUID,
    user: User = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    project, _ = await require_project_role(session, projectId, user.id, ProjectRole.OWNER)
    await project_service.delete_project(project, session)


@router.get("/{projectId}/feed", response_model=FeedResponse, tags=["Feed"])
async def project_feed(
    projectId: uuid.UUID,
    query: FeedQuery = Depends(feed_query),
    user: User = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    await require_project_role(session, projectId, user.id)
    page = await feed_service.get_feed(session, feed_service.FeedScope.project(projectId), query)
    return await feed_response(session, page, query)


# ---------------------------------------------------------------------------
# Access grants (owner only)
# ---------------------------------------------------------------------------


@router.get("/{projectId}/collaborators", response_model=List[CollaboratorRead], tags=["Projects"])
async def list_collaborators(
    projectId: uuid.UUID,
    user: User = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    project, _ = await require_project_role(session, projectId, user.id)
    return await project_service.list_collaborators(project, session)


@router.post(
    "/{projectId}/collaborators",
    response_model=CollaboratorRead,
    status_code=201,
    tags=["Projects"],
)
async def add_collaborator(
    projectId: uuid.UUID,
    body: CollaboratorAdd,
    user: User = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    project, _ = await require_project_role(session, projectId, user.id, ProjectRole.OWNER)
    c = await project_service.add_collaborator(project, body.user_id, body.role, session)
    return CollaboratorRead(user_id=c.user_id, role=c.role, added_at=c.added_at)


@router.patch(
    "/{projectId}/collaborators/{userId}",
    response_model=CollaboratorRead,
    tags=["Projects"],
)
async def update_collaborator(
    projectId: uuid.UUID,
    userId: uuid.UUID,
    body: CollaboratorRoleUpdate,
    user: User = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    project, _ = await require_project_role(session, projectId, user.id, ProjectRole.OWNER)
    c = await project_service.update_collaborator_role(project, userId, body.role, session)
    return CollaboratorRead(user_id=c.user_id, role=c.role, added_at=c.added_at)


@router.delete("/{projectId}/collaborators/{userId}", status_code=204, tags=["Projects"])
async def remove_collaborator(
    projectId: uuid.UUID,
    userId: uuid.UUID,
    user: User = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    project, _ = await require_project_role(session, projectId, user.id, ProjectRole.OWNER)
    await project_service.remove_collaborator(project, userId, session)


@router.put("/{projectId}/all-users-access", response_model=ProjectRead, tags=["Projects"])
async def set_all_users_access(
    projectId: uuid.UUID,
    body: AllUsersAccessUpdate,
    user: User = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    """Grant every signed-in user view or edit access; null or "none" clears it."""
    project, role = await require_project_role(session, projectId, user.id, ProjectRole.OWNER)
    project = await project_service.set_all_users_access(project, body.access, session)
    return project_service.to_read(project, role)


# ---------------------------------------------------------------------------
# Public sharing (owner only)
# ---------------------------------------------------------------------------


def _share_read(project: Project) -> ShareRead:
    return ShareRead(share_token=project.share_token, share_enabled=project.share_enabled)


@router.post("/{projectId}/share", response_model=ShareRead, tags=["Sharing"])
async def enable_share(
    projectId: uuid.UUID,
    user: User = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    project, _ = await require_project_role(session, projectId, user.id, ProjectRole.OWNER)
    return _share_read(await sharing.enable(project, session))


@router.delete("/{projectId}/share", response_model=ShareRead, tags=["Sharing"])
async def disable_share(
    projectId: uuid.UUID,
    user: User = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    project, _ = await require_project_role(session, projectId, user.id, ProjectRole.OWNER)
    return _share_read(await sharing.disable(project, session))


@router.post("/{projectId}/share/regenerate", response_model=ShareRead, tags=["Sharing"])
async def regenerate_share(
    projectId: uuid.UUID,
    user: User = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    project, _ = await require_project_role(session, projectId, user.id, ProjectRole.OWNER)
    return _share_read(await sharing.regenerate(project, session))


# ---------------------------------------------------------------------------
# Pinned update
# ---------------------------------------------------------------------------


@router.put("/{projectId}/pin/{updateId}", response_model=ProjectRead, tags=["Projects"])
async def pin_update(
    projectId: uuid.UUID,
    updateId: uuid.UUID,
    user: User = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    project, role = await require_project_role(session, projectId, user.id, ProjectRole.EDITOR)
    update = await feed_service.get_update_or_404(session, updateId)
    project = await project_service.pin_update(project, update, session)
    return project_service.to_read(project, role)


@router.delete("/{projectId}/pin", response_model=ProjectRead, tags=["Projects"])
async def unpin_update(
    projectId: uuid.UUID,
    user: User = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    project, role = await require_project_role(session, projectId, user.id, ProjectRole.EDITOR)
    project = await project_service.unpin_update(project, session)
    return project_service.to_read(project, role)


# ---------------------------------------------------------------------------
# Invites (editor or higher)
# ---------------------------------------------------------------------------


async def _project_invite(session: AsyncSession, project: Project, invite_id: uuid.UUID):
    invite = await project_invites.get(session, invite_id)
    if invite.project_id != project.id:
        raise NotFoundError("Invite not found")
    return invite


@router.get("/{projectId}/invites", response_model=List[InviteRead], tags=["Invites"])
async def list_project_invites(
    projectId: uuid.UUID,
    status: Optional[InviteStatus] = None,
    user: User = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    project, _ = await require_project_role(session, projectId, user.id, ProjectRole.EDITOR)
    invites = await project_invites.list_for_scope(session, project.id, status)
    return [project_invites.to_read(i) for i in invites]


@router.post(
    "/{projectId}/invites",
    response_model=InviteRead,
    status_code=201,
    tags=["Invites"],
)
async def create_project_invite(
    projectId: uuid.UUID,
    body: ProjectInviteCreate,
    user: User = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    project, _ = await require_project_role(session, projectId, user.id, ProjectRole.EDITOR)
    invite = await project_service.create_project_invite(project, body, user.id, session)
    return project_invites.to_read(invite, with_token=True)


@router.delete("/{projectId}/invites/{inviteId}", response_model=InviteRead, tags=["Invites"])
async def revoke_project_invite(
    projectId: uuid.UUID,
    inviteId: uuid.UUID,
    user: User = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    project, _ = await require_project_role(session, projectId, user.id, ProjectRole.EDITOR)
    await _project_invite(session, project, inviteId)
    return project_invites.to_read(await project_invites.revoke(session, inviteId))


@router.post(
    "/{projectId}/invites/{inviteId}/resend",
    response_model=InviteRead,
    tags=["Invites"],
)
async def resend_project_invite(
    projectId: uuid.UUID,
    inviteId: uuid.UUID,
    user: User = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    project, _ = await require_project_role(session, projectId, user.id, ProjectRole.EDITOR)
    await _project_invite(session, project, inviteId)
    return project_invites.to_read(await project_invites.resend(session, inviteId), with_token=True)
