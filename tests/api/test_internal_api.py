"""Internal service endpoints: user sync and the activity event feed."""

from __future__ import annotations

import pytest
from httpx import AsyncClient

SERVICE_ID = 1


class TestUserSync:
    @pytest.mark.asyncio
    async def test_create_then_update(self, client: AsyncClient, seeded, auth_headers):
        headers = auth_headers(SERVICE_ID, "admin")

        created = await client.put("/api/v1/internal/users/42", json={"username": "grace"}, headers=headers)
        assert created.status_code == 200
        assert created.json() == {"id": 42, "username": "grace", "created": True, "current_level": 1}

        updated = await client.put(
            "/api/v1/internal/users/42", json={"username": "grace.h", "full_name": "Grace H"}, headers=headers
        )
        assert updated.json()["created"] is False
        assert updated.json()["username"] == "grace.h"

        profile = await client.get("/api/v1/gamification/profile", headers=auth_headers(42))
        assert profile.json()["points"]["total_points"] == 50

    @pytest.mark.asyncio
    async def test_requires_admin_role(self, client: AsyncClient, auth_headers):
        response = await client.put(
            "/api/v1/internal/users/43", json={"username": "mallory"}, headers=auth_headers(SERVICE_ID)
        )
        assert response.status_code == 403


class TestActivityEvents:
    @pytest.mark.asyncio
    async def test_blog_published(self, client: AsyncClient, seeded, make_user, auth_headers):
        user_id = await make_user("writer")
        response = await client.post(
            "/api/v1/internal/events",
            json={"event_type": "blog_published", "user_id": user_id, "item_id": "b-1", "title": "Hello"},
            headers=auth_headers(SERVICE_ID, "admin"),
        )
        assert response.status_code == 200
        data = response.json()
        assert data["accepted"] is True
        assert data["outcome"]["points_awarded"] == 300
        assert [b["name"] for b in data["outcome"]["badges_earned"]] == ["Blogger"]

    @pytest.mark.asyncio
    async def test_item_id_required(self, client: AsyncClient, auth_headers):
        response = await client.post(
            "/api/v1/internal/events",
            json={"event_type": "course_completed", "user_id": 5},
            headers=auth_headers(SERVICE_ID, "admin"),
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_quiz_needs_score(self, client: AsyncClient, auth_headers):
        response = await client.post(
            "/api/v1/internal/events",
            json={"event_type": "quiz_passed", "user_id": 5, "item_id": "q-1"},
            headers=auth_headers(SERVICE_ID, "admin"),
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_unknown_user_is_not_accepted(self, client: AsyncClient, auth_headers):
        response = await client.post(
            "/api/v1/internal/events",
            json={"event_type": "login", "user_id": 5555},
            headers=auth_headers(SERVICE_ID, "admin"),
        )
        assert response.status_code == 200
        assert response.json() == {"accepted": False, "outcome": None}

    @pytest.mark.asyncio
    async def test_unknown_event_type(self, client: AsyncClient, auth_headers):
        response = await client.post(
            "/api/v1/internal/events",
            json={"event_type": "video_liked", "user_id": 5},
            headers=auth_headers(SERVICE_ID, "admin"),
        )
        assert response.status_code == 422
