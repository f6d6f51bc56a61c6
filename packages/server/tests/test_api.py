"""
HTTP-level tests: routing, authentication, error mapping and the main
user journeys through the API.
"""

from __future__ import annotations

import uuid

import pytest
from httpx import AsyncClient


async def _register(client: AsyncClient, username: str) -> tuple[str, dict[str, str]]:
    resp = await client.post(
        "/api/v1/users",
        json={"username": username, "email": f"{username}@example.com"},
    )
    assert resp.status_code == 201, resp.text
    body = resp.json()
    return body["user"]["id"], {"Authorization": f"Bearer {body['access_token']}"}


class TestAuthentication:
    @pytest.mark.asyncio
    async def test_missing_token(self, client):
        resp = await client.get("/api/v1/users/me")
        assert resp.status_code == 401

    @pytest.mark.asyncio
    async def test_garbage_token(self, client):
        resp = await client.get("/api/v1/users/me", headers={"Authorization": "Bearer nope"})
        assert resp.status_code == 401

    @pytest.mark.asyncio
    async def test_unknown_user(self, client, headers_for):
        resp = await client.get("/api/v1/users/me", headers=headers_for(uuid.uuid4()))
        assert resp.status_code == 401

    @pytest.mark.asyncio
    async def test_me(self, client):
        user_id, headers = await _register(client, "alice")
        resp = await client.get("/api/v1/users/me", headers=headers)
        assert resp.status_code == 200
        assert resp.json()["id"] == user_id

    @pytest.mark.asyncio
    async def test_duplicate_registration_is_409(self, client):
        await _register(client, "alice")
        resp = await client.post(
            "/api/v1/users", json={"username": "Alice", "email": "x@example.com"}
        )
        assert resp.status_code == 409
        assert resp.json()["error"] == "conflict"


class TestErrorMapping:
    @pytest.mark.asyncio
    async def test_not_found_body(self, client):
        _, headers = await _register(client, "alice")
        resp = await client.get(f"/api/v1/teams/{uuid.uuid4()}", headers=headers)
        assert resp.status_code == 404
        assert resp.json() == {"error": "not_found", "detail": "Team not found"}

    @pytest.mark.asyncio
    async def test_limit_out_of_range_rejected_at_boundary(self, client):
        _, headers = await _register(client, "alice")
        for limit in (0, 101):
            resp = await client.get(f"/api/v1/updates/feed?limit={limit}", headers=headers)
            assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_bad_cursor_is_400(self, client):
        _, headers = await _register(client, "alice")
        resp = await client.get("/api/v1/updates/feed?cursor=zzz", headers=headers)
        # No teams means an empty feed short-circuits before the cursor is read
        assert resp.status_code == 200

        team = (await client.post("/api/v1/teams", json={"name": "Core"}, headers=headers)).json()
        resp = await client.get(f"/api/v1/teams/{team['id']}/feed?cursor=zzz", headers=headers)
        assert resp.status_code == 400
        assert resp.json()["error"] == "bad_request"


class TestTeamInviteJourney:
    """Owner invites, invitee previews and accepts, second accept is refused."""

    @pytest.mark.asyncio
    async def test_invite_and_accept(self, client):
        _, alice = await _register(client, "alice")
        _, bob = await _register(client, "bob")

        team = (await client.post("/api/v1/teams", json={"name": "Core"}, headers=alice)).json()

        resp = await client.post(
            f"/api/v1/teams/{team['id']}/invites",
            json={"email": "bob@example.com", "role": "member"},
            headers=alice,
        )
        assert resp.status_code == 201
        token = resp.json()["token"]

        # Members without allow_member_invites cannot invite
        resp = await client.post(
            f"/api/v1/teams/{team['id']}/invites", json={"email": "x@example.com"}, headers=bob
        )
        assert resp.status_code == 403

        preview = await client.get(f"/api/v1/invites/{token}")
        assert preview.status_code == 200
        assert preview.json()["scope_name"] == "Core"

        mine = await client.get("/api/v1/users/me/invites", headers=bob)
        assert [i["token"] for i in mine.json()] == [token]

        resp = await client.post(f"/api/v1/invites/{token}/accept", headers=bob)
        assert resp.status_code == 200
        assert resp.json()["id"] == team["id"]

        teams = (await client.get("/api/v1/teams", headers=bob)).json()
        assert [(t["id"], t["role"]) for t in teams] == [(team["id"], "member")]

        # A spent token is refused for everyone, whatever their email
        _, carol = await _register(client, "carol")
        for headers in (bob, carol):
            resp = await client.post(f"/api/v1/invites/{token}/accept", headers=headers)
            assert resp.status_code == 409
            assert resp.json()["error"] == "invalid_state"
        assert (await client.get(f"/api/v1/invites/{token}")).status_code == 409

        members = (await client.get(f"/api/v1/teams/{team['id']}/members", headers=bob)).json()
        assert sorted(m["user"]["username"] for m in members) == ["alice", "bob"]

        # Owner guard surfaces as 400
        owner = next(m for m in members if m["is_owner"])
        resp = await client.delete(
            f"/api/v1/teams/{team['id']}/members/{owner['user_id']}", headers=alice
        )
        assert resp.status_code == 400
        resp = await client.post(f"/api/v1/teams/{team['id']}/leave", headers=alice)
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_revoked_invite_is_409(self, client):
        _, alice = await _register(client, "alice")
        _, bob = await _register(client, "bob")
        team = (await client.post("/api/v1/teams", json={"name": "Core"}, headers=alice)).json()
        invite = (
            await client.post(
                f"/api/v1/teams/{team['id']}/invites",
                json={"email": "bob@example.com"},
                headers=alice,
            )
        ).json()
        assert invite["token"]

        # Admin listings never carry the token
        listed = (await client.get(f"/api/v1/teams/{team['id']}/invites", headers=alice)).json()
        assert [(i["id"], i["token"]) for i in listed] == [(invite["id"], None)]

        resp = await client.delete(
            f"/api/v1/teams/{team['id']}/invites/{invite['id']}", headers=alice
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "revoked"
        assert resp.json()["token"] is None

        resp = await client.post(f"/api/v1/invites/{invite['token']}/accept", headers=bob)
        assert resp.status_code == 409
        assert resp.json()["error"] == "invalid_state"


class TestProjectJourney:
    @pytest.mark.asyncio
    async def test_access_updates_and_sharing(self, client):
        _, alice = await _register(client, "alice")
        bob_id, bob = await _register(client, "bob")

        project = (
            await client.post("/api/v1/projects", json={"name": "Launch"}, headers=alice)
        ).json()
        pid = project["id"]
        assert project["role"] == "owner"
        assert project["all_users_access"] == "none"

        assert (await client.get(f"/api/v1/projects/{pid}", headers=bob)).status_code == 403

        resp = await client.put(
            f"/api/v1/projects/{pid}/all-users-access", json={"access": "view"}, headers=alice
        )
        assert resp.json()["all_users_access"] == "view"

        resp = await client.get(f"/api/v1/projects/{pid}", headers=bob)
        assert resp.status_code == 200
        assert resp.json()["role"] == "viewer"

        resp = await client.post(
            "/api/v1/updates", json={"project_id": pid, "content": "nope"}, headers=bob
        )
        assert resp.status_code == 403

        resp = await client.post(
            "/api/v1/updates",
            json={"project_id": pid, "content": "thanks @bob", "category": "milestone"},
            headers=alice,
        )
        assert resp.status_code == 201
        update = resp.json()
        assert update["mentions"] == [bob_id]
        assert update["author"]["username"] == "alice"

        resp = await client.post(
            f"/api/v1/updates/{update['id']}/reactions", json={"emoji": "🎉"}, headers=bob
        )
        assert [r["emoji"] for r in resp.json()["reactions"]] == ["🎉"]

        # Viewers cannot edit someone else's update
        resp = await client.patch(
            f"/api/v1/updates/{update['id']}", json={"content": "edited"}, headers=bob
        )
        assert resp.status_code == 403

        feed = (await client.get(f"/api/v1/projects/{pid}/feed", headers=bob)).json()
        assert [u["id"] for u in feed["data"]] == [update["id"]]
        assert feed["pagination"] == {"next_cursor": None, "has_more": False, "limit": 20}

        share = (await client.post(f"/api/v1/projects/{pid}/share", headers=alice)).json()
        assert share["share_enabled"] is True

        public = await client.get(f"/api/v1/share/{share['share_token']}/feed")
        assert public.status_code == 200
        assert [u["id"] for u in public.json()["data"]] == [update["id"]]

        await client.delete(f"/api/v1/projects/{pid}/share", headers=alice)
        resp = await client.get(f"/api/v1/share/{share['share_token']}")
        assert resp.status_code == 404

        project = (await client.get(f"/api/v1/projects/{pid}", headers=alice)).json()
        assert project["stats"]["total_updates"] == 1

        resp = await client.delete(f"/api/v1/updates/{update['id']}", headers=alice)
        assert resp.status_code == 204
        project = (await client.get(f"/api/v1/projects/{pid}", headers=alice)).json()
        assert project["stats"]["total_updates"] == 0

    @pytest.mark.asyncio
    async def test_team_project_requires_membership(self, client):
        _, alice = await _register(client, "alice")
        _, bob = await _register(client, "bob")
        team = (await client.post("/api/v1/teams", json={"name": "Core"}, headers=alice)).json()

        resp = await client.post(
            "/api/v1/projects", json={"name": "Sneaky", "team_id": team["id"]}, headers=bob
        )
        assert resp.status_code == 403

        resp = await client.post(
            "/api/v1/projects", json={"name": "Roadmap", "team_id": team["id"]}, headers=alice
        )
        assert resp.status_code == 201
        listed = (await client.get(f"/api/v1/teams/{team['id']}/projects", headers=alice)).json()
        assert [p["name"] for p in listed] == ["Roadmap"]
