"""
Shared fixtures — in-memory SQLite per test, factories and an HTTP client
bound to the same database.
"""

from __future__ import annotations

from typing import Optional

import pytest
from httpx import ASGITransport, AsyncClient

from app.core.auth import create_access_token
from app.core.database import (
    build_engine,
    build_session_factory,
    get_session,
    init_db,
    session_scope,
)
from app.main import app as fastapi_app
from app.models.project import Project
from app.models.team import Team
from app.models.user import User
from app.services import identity, projects, teams
from teamline_shared.schemas.projects import ProjectCreate
from teamline_shared.schemas.teams import TeamCreateRequest
from teamline_shared.schemas.users import UserCreateRequest


@pytest.fixture
async def engine():
    engine = build_engine("sqlite+aiosqlite://")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


@pytest.fixture
async def client(session_factory):
    async def override_get_session():
        async with session_scope(session_factory) as s:
            yield s

    fastapi_app.dependency_overrides[get_session] = override_get_session
    async with AsyncClient(transport=ASGITransport(app=fastapi_app), base_url="http://test") as ac:
        yield ac
    fastapi_app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_user(session):
    async def _make(username: str, email: Optional[str] = None) -> User:
        req = UserCreateRequest(username=username, email=email or f"{username}@example.com")
        return await identity.create_user(req, session)

    return _make


@pytest.fixture
def make_team(session):
    async def _make(owner: User, name: str = "Platform Team") -> Team:
        return await teams.create_team(TeamCreateRequest(name=name), owner.id, session)

    return _make


@pytest.fixture
def make_project(session):
    async def _make(owner: User, team: Optional[Team] = None, name: str = "Launch") -> Project:
        team_id = team.id if team else None
        return await projects.create_project(
            ProjectCreate(name=name, team_id=team_id), owner.id, team_id, session
        )

    return _make


@pytest.fixture
def headers_for():
    """Bearer headers for a user id."""

    def _headers(user_id) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user_id)}"}

    return _headers
