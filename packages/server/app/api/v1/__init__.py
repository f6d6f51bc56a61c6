"""
API v1 Router

Team-scoped and project-scoped resources are addressed by id; invite
acceptance and public share links are addressed by token.
"""

from fastapi import APIRouter
from . import invites, projects, share, teams, updates, users

router = APIRouter()

router.include_router(users.router, prefix="/users")
router.include_router(teams.router, prefix="/teams")
router.include_router(projects.router, prefix="/projects")
router.include_router(updates.router, prefix="/updates")
router.include_router(share.router, prefix="/share")
router.include_router(invites.router)


@router.get("/", tags=["API"])
async def api_root():
    """API root — returns version and available endpoints."""
    return {
        "api": "v1",
        "version": "0.1.0",
        "endpoints": [
            "/users",
            "/teams",
            "/projects",
            "/updates",
            "/updates/feed",
            "/invites/{token}",
            "/project-invites/{token}",
            "/share/{token}",
        ],
    }
