"""Gamification API tests: learner views and admin management."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient

BASE = "/api/v1/gamification"


class TestPublicAndAuth:
    @pytest.mark.asyncio
    async def test_levels_are_public(self, client: AsyncClient):
        response = await client.get(f"{BASE}/levels")
        assert response.status_code == 200
        levels = response.json()["levels"]
        assert len(levels) == 20
        assert levels[0] == {"level": 1, "points_required": 100, "cumulative": 0}

    @pytest.mark.asyncio
    async def test_profile_requires_token(self, client: AsyncClient):
        response = await client.get(f"{BASE}/profile")
        assert response.status_code in (401, 403)

    @pytest.mark.asyncio
    async def test_garbage_token(self, client: AsyncClient):
        response = await client.get(f"{BASE}/profile", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_unknown_user_token(self, client: AsyncClient, auth_headers):
        response = await client.get(f"{BASE}/profile", headers=auth_headers(31337))
        assert response.status_code == 401
        assert response.json()["detail"] == "User not found"

    @pytest.mark.asyncio
    async def test_admin_routes_reject_learners(self, client: AsyncClient, make_user, auth_headers):
        user_id = await make_user("curious")
        response = await client.get(f"{BASE}/admin/stats", headers=auth_headers(user_id))
        assert response.status_code == 403


class TestLearnerViews:
    @pytest.mark.asyncio
    async def test_profile_after_registration(self, client: AsyncClient, seeded, make_user, auth_headers):
        user_id = await make_user("newbie")
        response = await client.get(f"{BASE}/profile", headers=auth_headers(user_id))
        assert response.status_code == 200
        data = response.json()
        assert data["user"]["username"] == "newbie"
        assert data["points"]["total_points"] == 50
        assert data["points"]["level"] == 1
        assert data["points"]["points_to_next_level"] == 100
        assert [b["badge"]["name"] for b in data["badges"]] == ["Welcome"]
        assert [b["name"] for b in data["displayed_badges"]] == ["Welcome"]
        assert data["streak"]["current_streak"] == 0
        assert data["recent_transactions"][0]["kind"] == "bonus"
        assert data["rank"] == 1

    @pytest.mark.asyncio
    async def test_profile_creates_missing_account(self, client: AsyncClient, make_user, auth_headers):
        user_id = await make_user("bare", initialize=False)
        response = await client.get(f"{BASE}/profile", headers=auth_headers(user_id))
        assert response.status_code == 200
        assert response.json()["points"]["total_points"] == 0

    @pytest.mark.asyncio
    async def test_badges_and_shelf(self, client: AsyncClient, seeded, make_user, auth_headers):
        user_id = await make_user("shelver")
        headers = auth_headers(user_id)

        badges = (await client.get(f"{BASE}/badges", headers=headers)).json()
        assert badges["total_earned"] == 1
        assert badges["total_available"] == 12
        welcome_id = badges["earned"][0]["badge"]["id"]
        assert badges["displayed_badge_ids"] == [welcome_id]
        assert badges["earned"][0]["displayed"] is True

        cleared = await client.patch(f"{BASE}/displayed-badges", json={"badge_ids": []}, headers=headers)
        assert cleared.json() == {"displayed_badge_ids": []}
        after = (await client.get(f"{BASE}/badges", headers=headers)).json()
        assert after["earned"][0]["displayed"] is False

        unearned = await client.patch(f"{BASE}/displayed-badges", json={"badge_ids": [welcome_id + 1]}, headers=headers)
        assert unearned.status_code == 422
        assert unearned.json()["error"] == "validation_error"

    @pytest.mark.asyncio
    async def test_points_history_pagination(self, client: AsyncClient, admin_headers, make_user, auth_headers):
        user_id = await make_user("historian")
        for n in range(3):
            await client.post(
                f"{BASE}/award-points",
                json={"user_id": user_id, "amount": 10 + n, "category": "quiz", "description": f"Quiz {n}"},
                headers=admin_headers,
            )

        response = await client.get(f"{BASE}/points-history?page=1&limit=2", headers=auth_headers(user_id))
        data = response.json()
        assert data["total"] == 3
        assert data["pages"] == 2
        assert [e["amount"] for e in data["entries"]] == [12, 11]

    @pytest.mark.asyncio
    async def test_streak_refresh(self, client: AsyncClient, make_user, auth_headers):
        user_id = await make_user("streaker")
        headers = auth_headers(user_id)

        before = (await client.get(f"{BASE}/streak", headers=headers)).json()
        assert before["current_streak"] == 0

        after = (await client.post(f"{BASE}/streak/refresh", headers=headers)).json()
        assert after["current_streak"] == 1
        assert after["history"][0]["activities"] == ["login"]

        board = await client.post(f"{BASE}/leaderboard/streaks", json={"user_ids": [user_id]}, headers=headers)
        assert board.json()["streaks"] == [{"user_id": user_id, "current_streak": 1, "longest_streak": 1}]

    @pytest.mark.asyncio
    async def test_leaderboard(self, client: AsyncClient, admin_headers, make_user, auth_headers):
        first = await make_user("first")
        second = await make_user("second")
        for user_id, amount in ((first, 300), (second, 100)):
            await client.post(
                f"{BASE}/award-points", json={"user_id": user_id, "amount": amount}, headers=admin_headers
            )

        response = await client.get(f"{BASE}/leaderboard?limit=1&page=2", headers=auth_headers(first))
        data = response.json()
        assert data["total"] == 2
        assert [(e["rank"], e["user"]["username"]) for e in data["entries"]] == [(2, "second")]


class TestAdminBadges:
    @pytest.mark.asyncio
    async def test_badge_lifecycle(self, client: AsyncClient, admin_headers, make_user):
        payload = {
            "name": "Night Owl",
            "description": "Studied after midnight",
            "icon": "badges/owl.png",
            "category": "special",
            "level": 2,
            "points_awarded": 20,
            "criteria": "study:night:01",
        }
        created = await client.post(f"{BASE}/badges", json=payload, headers=admin_headers)
        assert created.status_code == 201
        badge = created.json()
        assert badge["criteria"] == "study:night:1"

        duplicate = await client.post(f"{BASE}/badges", json=payload, headers=admin_headers)
        assert duplicate.status_code == 409
        assert duplicate.json()["error"] == "invalid_state"

        bad = await client.post(f"{BASE}/badges", json={**payload, "name": "Bad", "criteria": "nope"}, headers=admin_headers)
        assert bad.status_code == 422

        renamed = await client.put(f"{BASE}/badges/{badge['id']}", json={"name": "Night Hawk"}, headers=admin_headers)
        assert renamed.json()["name"] == "Night Hawk"

        user_id = await make_user("owl")
        awarded = await client.post(
            f"{BASE}/award-badge", json={"user_id": user_id, "badge_id": badge["id"]}, headers=admin_headers
        )
        assert awarded.status_code == 200
        assert awarded.json()["already_awarded"] is False
        assert awarded.json()["outcome"]["points_awarded"] == 20

        again = await client.post(
            f"{BASE}/award-badge", json={"user_id": user_id, "badge_id": badge["id"]}, headers=admin_headers
        )
        assert again.json()["already_awarded"] is True

        deleted = await client.delete(f"{BASE}/badges/{badge['id']}", headers=admin_headers)
        assert deleted.status_code == 204
        assert (await client.get(f"{BASE}/admin/badges", headers=admin_headers)).json() == []

    @pytest.mark.asyncio
    async def test_award_points_validation(self, client: AsyncClient, admin_headers, make_user):
        user_id = await make_user("validated")
        zero = await client.post(f"{BASE}/award-points", json={"user_id": user_id, "amount": 0}, headers=admin_headers)
        assert zero.status_code == 422

        ghost = await client.post(f"{BASE}/award-points", json={"user_id": 999999, "amount": 5}, headers=admin_headers)
        assert ghost.status_code == 404

        ok = await client.post(
            f"{BASE}/award-points", json={"user_id": user_id, "amount": 120, "category": "attendance"},
            headers=admin_headers,
        )
        data = ok.json()
        assert data["points_awarded"] == 120
        assert data["level"] == 2
        assert data["levels_crossed"] == [2]


class TestAdminChallenges:
    @pytest.mark.asyncio
    async def test_challenge_flow(self, client: AsyncClient, admin_headers, make_user, auth_headers):
        user_id = await make_user("challenger")
        now = datetime.now(timezone.utc)
        created = await client.post(
            f"{BASE}/challenges",
            json={
                "title": "Two quizzes",
                "description": "Pass two quizzes today",
                "type": "daily",
                "activity_type": "quiz",
                "target_count": 2,
                "reward_points": 40,
                "start_date": (now - timedelta(hours=1)).isoformat(),
                "end_date": (now + timedelta(days=1)).isoformat(),
            },
            headers=admin_headers,
        )
        assert created.status_code == 201
        challenge_id = created.json()["id"]

        mine = (await client.get(f"{BASE}/challenges", headers=auth_headers(user_id))).json()
        assert [(c["challenge"]["id"], c["progress"]) for c in mine] == [(challenge_id, 0)]

        for _ in range(2):
            result = await client.post(
                f"{BASE}/award-points",
                json={"user_id": user_id, "amount": 10, "category": "quiz"},
                headers=admin_headers,
            )
        assert result.json()["challenges_completed"] == [challenge_id]
        assert result.json()["points_awarded"] == 50

        done = (await client.get(f"{BASE}/challenges?status=completed", headers=auth_headers(user_id))).json()
        assert done[0]["is_completed"] is True

        stats = (await client.get(f"{BASE}/admin/stats", headers=admin_headers)).json()
        assert stats["total_challenges_completed"] == 1
        assert stats["top_challenges"] == [{"challenge_id": challenge_id, "title": "Two quizzes", "completions": 1}]
        assert stats["points_by_category"]["quiz"] == 20

        listed = (await client.get(f"{BASE}/admin/challenges?status=active", headers=admin_headers)).json()
        assert [c["id"] for c in listed] == [challenge_id]

        updated = await client.put(
            f"{BASE}/challenges/{challenge_id}", json={"target_count": 3}, headers=admin_headers
        )
        assert updated.json()["target_count"] == 3

        assert (await client.delete(f"{BASE}/challenges/{challenge_id}", headers=admin_headers)).status_code == 204
        assert (await client.delete(f"{BASE}/challenges/{challenge_id}", headers=admin_headers)).status_code == 404

    @pytest.mark.asyncio
    async def test_end_before_start(self, client: AsyncClient, admin_headers):
        now = datetime.now(timezone.utc)
        response = await client.post(
            f"{BASE}/challenges",
            json={
                "title": "Backwards",
                "description": "Ends before it starts",
                "activity_type": "quiz",
                "target_count": 1,
                "start_date": now.isoformat(),
                "end_date": (now - timedelta(days=1)).isoformat(),
            },
            headers=admin_headers,
        )
        assert response.status_code == 422
