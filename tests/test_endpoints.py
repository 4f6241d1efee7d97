"""Endpoint tests — FastAPI app via httpx."""

from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient

from journey.auth import presented_key
from journey.config import settings
from journey.main import app
from journey.tracker.models import DayState


class TestStateEndpoint:
    @pytest.mark.asyncio
    async def test_fresh_state(self, client):
        resp = await client.get("/activity/state")
        assert resp.status_code == 200
        body = resp.json()
        assert body["today"] == "2026-10-14"
        assert body["selected_day"] == "2026-10-14"
        assert body["period_start"] == "2026-10-11"
        assert body["period_end"] == "2026-10-18"
        assert body["freezes_left"] == 2
        assert body["streak"] == 0
        assert body["can_log_learned"] is True
        assert len(body["week"]) == 7
        assert body["goal"] == {"title": "", "duration": "week", "created_at": None, "start_at": None}

    @pytest.mark.asyncio
    async def test_tracker_not_initialized(self):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            resp = await ac.get("/activity/state")
        assert resp.status_code == 503


class TestLogEndpoints:
    @pytest.mark.asyncio
    async def test_learned(self, client, tracker):
        resp = await client.post("/activity/learned")
        assert resp.status_code == 200
        body = resp.json()
        assert body["streak"] == 1
        assert body["learned_in_period"] == 1
        assert body["can_log_learned"] is False
        today = next(d for d in body["week"] if d["is_today"])
        assert today["state"] == "learned"
        assert tracker.state_of(tracker.today()) is DayState.learned

    @pytest.mark.asyncio
    async def test_frozen(self, client):
        resp = await client.post("/activity/frozen")
        body = resp.json()
        assert body["freezes_left"] == 1
        assert body["frozen_in_period"] == 1
        assert body["streak"] == 1

    @pytest.mark.asyncio
    async def test_frozen_over_quota_is_silent(self, client, tracker):
        await client.post("/activity/frozen")
        await client.post("/activity/shift", json={"days": -1})
        await client.post("/activity/frozen")
        await client.post("/activity/shift", json={"days": -1})
        resp = await client.post("/activity/frozen")
        assert resp.status_code == 200
        body = resp.json()
        assert body["freezes_left"] == 0
        assert body["frozen_in_period"] == 2
        assert tracker.state_of(tracker.selected_day) is DayState.none


class TestSelectionEndpoints:
    @pytest.mark.asyncio
    async def test_select_other_day_ignored(self, client):
        resp = await client.post("/activity/select", json={"day": "2026-10-13"})
        assert resp.status_code == 200
        assert resp.json()["selected_day"] == "2026-10-14"

    @pytest.mark.asyncio
    async def test_shift_and_select_back(self, client):
        resp = await client.post("/activity/shift", json={"days": -7})
        assert resp.json()["selected_day"] == "2026-10-07"
        assert resp.json()["can_log_learned"] is False
        resp = await client.post("/activity/select", json={"day": "2026-10-14"})
        assert resp.json()["selected_day"] == "2026-10-14"

    @pytest.mark.asyncio
    async def test_shift_defaults_to_a_week(self, client):
        resp = await client.post("/activity/shift", json={})
        assert resp.json()["selected_day"] == "2026-10-21"

    @pytest.mark.asyncio
    async def test_show_month(self, client):
        resp = await client.post("/activity/month", json={"year": 2026, "month": 2})
        body = resp.json()
        assert body["month"] == "2026-02-01"
        assert body["selected_day"] == "2026-10-14"

    @pytest.mark.asyncio
    async def test_show_month_invalid(self, client):
        resp = await client.post("/activity/month", json={"year": 2026, "month": 0})
        assert resp.status_code == 422


class TestQueryEndpoints:
    @pytest.mark.asyncio
    async def test_day(self, client, tracker):
        tracker.log_learned()
        resp = await client.get("/activity/days/2026-10-14")
        assert resp.status_code == 200
        assert resp.json()["state"] == "learned"

    @pytest.mark.asyncio
    async def test_day_unlogged(self, client):
        resp = await client.get("/activity/days/2020-01-01")
        assert resp.json()["state"] == "none"

    @pytest.mark.asyncio
    async def test_day_malformed(self, client):
        resp = await client.get("/activity/days/yesterday")
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_week(self, client):
        resp = await client.get("/activity/week?day=2026-01-01")
        days = [d["day"] for d in resp.json()]
        assert days[0] == "2025-12-28"
        assert days[-1] == "2026-01-03"

    @pytest.mark.asyncio
    async def test_months_span(self, client):
        resp = await client.get("/activity/months")
        months = resp.json()
        assert months[0] == "2026-05-01"
        assert months[-1] == "2027-04-01"

    @pytest.mark.asyncio
    async def test_month_grid(self, client):
        resp = await client.get("/activity/months/2026/10")
        body = resp.json()
        assert body["title"] == "October 2026"
        assert body["cells"][:4] == [None, None, None, None]
        assert body["cells"][4]["day"] == "2026-10-01"
        assert len(body["cells"]) == 35

    @pytest.mark.asyncio
    async def test_month_grid_invalid(self, client):
        resp = await client.get("/activity/months/2026/13")
        assert resp.status_code == 422


class TestGoalEndpoints:
    @pytest.mark.asyncio
    async def test_commit_goal(self, client):
        resp = await client.put("/activity/goal", json={"title": "Swift", "duration": "month"})
        assert resp.status_code == 200
        goal = resp.json()["goal"]
        assert goal["title"] == "Swift"
        assert goal["duration"] == "month"
        assert goal["created_at"] is not None

    @pytest.mark.asyncio
    async def test_goal_change_resets(self, client):
        await client.put("/activity/goal", json={"title": "Swift", "duration": "week"})
        await client.post("/activity/learned")
        resp = await client.put("/activity/goal", json={"title": "Rust", "duration": "week"})
        body = resp.json()
        assert body["streak"] == 0
        assert body["learned_in_period"] == 0

    @pytest.mark.asyncio
    async def test_same_goal_keeps_log(self, client):
        await client.put("/activity/goal", json={"title": "Swift", "duration": "week"})
        await client.post("/activity/learned")
        resp = await client.put("/activity/goal", json={"title": "Swift", "duration": "week"})
        assert resp.json()["streak"] == 1

    @pytest.mark.asyncio
    async def test_blank_goal_422(self, client):
        resp = await client.put("/activity/goal", json={"title": " ", "duration": "week"})
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_goal_start(self, client):
        resp = await client.put("/activity/goal/start", json={"start_at": "2026-01-20T00:00:00Z"})
        assert resp.json()["goal"]["start_at"].startswith("2026-01-20")
        months = (await client.get("/activity/months")).json()
        assert months[0] == "2025-08-01"

    @pytest.mark.asyncio
    async def test_reset(self, client):
        await client.post("/activity/learned")
        resp = await client.post("/activity/reset")
        body = resp.json()
        assert body["streak"] == 0
        assert body["last_log_at"] is None


class TestAuth:
    @pytest.mark.asyncio
    async def test_key_required_when_configured(self, client, monkeypatch):
        monkeypatch.setattr(settings, "journey_api_key", "secret")
        resp = await client.get("/activity/state")
        assert resp.status_code == 401

    @pytest.mark.asyncio
    async def test_header_key(self, client, monkeypatch):
        monkeypatch.setattr(settings, "journey_api_key", "secret")
        resp = await client.get("/activity/state", headers={"X-API-Key": "secret"})
        assert resp.status_code == 200

    @pytest.mark.asyncio
    async def test_bearer_key(self, client, monkeypatch):
        monkeypatch.setattr(settings, "journey_api_key", "secret")
        resp = await client.get("/activity/state", headers={"Authorization": "Bearer secret"})
        assert resp.status_code == 200

    @pytest.mark.asyncio
    async def test_wrong_key_rejected(self, client, monkeypatch):
        monkeypatch.setattr(settings, "journey_api_key", "secret")
        resp = await client.get("/activity/state", headers={"X-API-Key": "secreT"})
        assert resp.status_code == 401
        assert resp.headers["www-authenticate"] == "Bearer"

    @pytest.mark.asyncio
    async def test_bearer_scheme_case_insensitive(self, client, monkeypatch):
        monkeypatch.setattr(settings, "journey_api_key", "secret")
        resp = await client.get("/activity/state", headers={"Authorization": "bearer secret"})
        assert resp.status_code == 200

    def test_presented_key_ignores_other_schemes(self):
        assert presented_key(None, "Basic c2VjcmV0") is None
        assert presented_key(None, "Bearer ") is None
        assert presented_key(" secret ", "Bearer other") == "secret"


class TestHealthEndpoint:
    @pytest.mark.asyncio
    async def test_health(self, client):
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}

    @pytest.mark.asyncio
    async def test_root_lists_activity_routes(self, client):
        resp = await client.get("/")
        activity = resp.json()["activity"]
        assert activity["state"] == "/activity/state"
        assert activity["show_month"] == "/activity/month"
        assert activity["goal_start"] == "/activity/goal/start"
