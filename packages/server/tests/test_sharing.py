"""
Tests for the public share gateway.
"""

from __future__ import annotations

import pytest

from app.core.errors import NotFoundError
from app.services import feed, sharing
from teamline_shared.schemas.updates import FeedQuery, UpdateCreate


@pytest.fixture
async def project(session, make_user, make_project):
    owner = await make_user("alice")
    return await make_project(owner)


class TestShareLifecycle:
    @pytest.mark.asyncio
    async def test_enable_mints_once(self, session, project):
        await sharing.enable(project, session)
        token = project.share_token
        assert token and project.share_enabled

        await sharing.enable(project, session)
        assert project.share_token == token
        assert (await sharing.resolve(token, session)).id == project.id

    @pytest.mark.asyncio
    async def test_disable_keeps_token_but_hides(self, session, project):
        await sharing.enable(project, session)
        token = project.share_token

        await sharing.disable(project, session)
        assert project.share_token == token
        with pytest.raises(NotFoundError):
            await sharing.resolve(token, session)

        # Re-enabling restores the same link
        await sharing.enable(project, session)
        assert (await sharing.resolve(token, session)).id == project.id

    @pytest.mark.asyncio
    async def test_regenerate_invalidates_old_link(self, session, project):
        await sharing.enable(project, session)
        old = project.share_token
        await sharing.disable(project, session)

        await sharing.regenerate(project, session)
        assert project.share_enabled is True
        assert project.share_token != old
        with pytest.raises(NotFoundError):
            await sharing.resolve(old, session)

    @pytest.mark.asyncio
    async def test_unknown_token(self, session):
        with pytest.raises(NotFoundError):
            await sharing.resolve("nope", session)


class TestSharedFeed:
    @pytest.mark.asyncio
    async def test_feed_through_share(self, session, project):
        owner_id = project.owner_id
        update = await feed.create_update(
            session, UpdateCreate(project_id=project.id, content="shipped"), project, owner_id
        )
        await sharing.enable(project, session)

        shared, page = await sharing.get_shared_feed(project.share_token, FeedQuery(), session)
        assert shared.id == project.id
        assert [u.id for u in page.items] == [update.id]

        await sharing.disable(project, session)
        with pytest.raises(NotFoundError):
            await sharing.get_shared_feed(project.share_token, FeedQuery(), session)
