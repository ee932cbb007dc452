"""
HTTP endpoint integration tests for the betfeed API.

These tests verify that FastAPI endpoints:
- Return the response shapes the front end expects
- Map domain errors to the right status codes
- Keep misuse of the sync controls out of the 5xx range

Uses FastAPI TestClient for in-memory HTTP testing.
"""
import json
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

sys.path.insert(0, str(Path(__file__).parent.parent))
from conftest import race_item

from betfeed.core.config import get_game_registry
from betfeed.core.database import get_db, get_session_factory
from betfeed.main import app
from betfeed.models import Event, GameResult
from betfeed.services.feed.feed_client import get_feed_client
from betfeed.services.sync.orchestrator import SyncOrchestrator, get_orchestrator


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def orchestrator(registry, feed_client, session_factory) -> SyncOrchestrator:
    return SyncOrchestrator(registry, feed_client, session_factory)


@pytest.fixture
def client(session_factory, registry, feed_client, orchestrator):
    """TestClient wired to the in-memory database and a mocked feed."""

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_game_registry] = lambda: registry
    app.dependency_overrides[get_feed_client] = lambda: feed_client
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator

    yield TestClient(app)

    app.dependency_overrides.clear()


@pytest.fixture
def stored_events(db_session):
    """Two MotorRacing events, the older one finished with a result."""
    db_session.add_all([
        Event(
            event_id="90-6-1", game_name="MotorRacing", game_number=1,
            start_time=datetime(2025, 10, 9, 10, 0, tzinfo=timezone.utc), is_finished=True,
            status_value=3, raw_payload={"ID": "90-6-1"},
        ),
        Event(
            event_id="90-6-2", game_name="MotorRacing", game_number=2,
            start_time=datetime(2025, 10, 9, 10, 4, tzinfo=timezone.utc), is_finished=False,
            status_value=1, raw_payload={"ID": "90-6-2"},
        ),
        GameResult(
            event_id="90-6-1", game_name="MotorRacing", result_type="winner",
            winning_values={"winner": "3"}, game_number=1,
        ),
    ])
    db_session.commit()


# =============================================================================
# HEALTH
# =============================================================================

class TestHealth:

    def test_healthz(self, client):
        response = client.get("/healthz")
        assert response.status_code == 200
        assert response.json()["ok"] is True
        assert "X-Correlation-ID" in response.headers

    def test_connectivity(self, client, feed_client):
        feed_client.check_connection.return_value = False

        data = client.get("/test").json()

        assert data["database"] == "connected"
        assert data["api"] == "error"

    def test_metrics_exposed(self, client):
        response = client.get("/metrics")
        assert response.status_code == 200
        assert "betfeed_sync_cycles_total" in response.text


# =============================================================================
# EVENTS AND RESULTS
# =============================================================================

class TestEvents:

    def test_list_newest_first(self, client, stored_events):
        data = client.get("/events").json()

        assert data["success"] is True
        assert data["count"] == 2
        assert [e["event_id"] for e in data["events"]] == ["90-6-2", "90-6-1"]
        assert "raw_payload" not in data["events"][0]

    def test_finished_filter(self, client, stored_events):
        assert [e["event_id"] for e in client.get("/events?finished=true").json()["events"]] == ["90-6-1"]
        assert [e["event_id"] for e in client.get("/events?finished=false").json()["events"]] == ["90-6-2"]

    def test_time_window(self, client, stored_events):
        data = client.get("/events", params={"from": "2025-10-09T10:02:00+00:00"}).json()
        assert [e["event_id"] for e in data["events"]] == ["90-6-2"]

    def test_single_event(self, client, stored_events):
        data = client.get("/events/90-6-1").json()
        assert data["event"]["game_number"] == 1
        assert data["raw"] == {"ID": "90-6-1"}

    def test_event_not_found(self, client):
        response = client.get("/events/missing")
        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "Event not found"}

    def test_events_with_results(self, client, stored_events):
        events = {e["event_id"]: e for e in client.get("/api/events-with-results").json()["events"]}

        assert events["90-6-1"]["result_type"] == "winner"
        assert events["90-6-1"]["winning_values"] == {"winner": "3"}
        assert events["90-6-2"]["result_type"] is None

    def test_results(self, client, stored_events):
        data = client.get("/api/results", params={"game_name": "MotorRacing"}).json()
        assert data["count"] == 1
        assert client.get("/api/results/90-6-1").json()["result"]["result_type"] == "winner"
        assert client.get("/api/results/90-6-2").status_code == 404


class TestGames:

    def test_games(self, client):
        data = client.get("/api/games").json()

        assert [g["TYPE_NAME"] for g in data["games"]] == ["MotorRacing", "SmartPlayKeno"]
        assert data["currentGame"]["TYPE_NAME"] == "MotorRacing"
        assert data["defaults"]["OFFSET_SECONDS"] == 10800


# =============================================================================
# SYNC CONTROL
# =============================================================================

class TestSyncControl:

    def test_stop_when_idle(self, client):
        response = client.post("/api/robust-auto-sync/stop")
        assert response.status_code == 200
        assert response.json() == {"success": False, "error": "Robust auto-sync not active"}

    def test_status_and_stats_when_idle(self, client):
        status = client.get("/api/robust-auto-sync/status").json()
        assert status["success"] is True
        assert status["active"] is False
        assert len(status["games"]) == 2

        stats = client.get("/api/robust-auto-sync/stats").json()
        assert stats["stats"]["totalCycles"] == 0

    def test_manual_sync(self, client, feed_client):
        feed_client.get_events_by_type.return_value = {"Data": [race_item("90-6-9")]}

        data = client.post("/api/robust-auto-sync/manual/MotorRacing").json()

        assert data["success"] is True
        assert data["newGames"] == 1

    def test_manual_sync_unknown_game(self, client):
        response = client.post("/api/robust-auto-sync/manual/Nope")
        assert response.status_code == 404
        assert response.json()["success"] is False

    def test_manual_sync_disabled_game(self, client):
        response = client.post("/api/robust-auto-sync/manual/HorseRacingRouletteV2")
        assert response.status_code == 200
        assert response.json() == {"success": False, "error": "Game HorseRacingRouletteV2 is not enabled"}


# =============================================================================
# BOOKING
# =============================================================================

class TestBooking:

    def test_book_and_fetch(self, client, bet_object):
        response = client.post("/booking", json={"BetObject": json.dumps(bet_object)})

        assert response.status_code == 200
        body = response.json()
        assert body["StatusCode"] == 0
        slip_id = body["Content"]["ID"]

        slip = client.get(f"/api/betslips/{slip_id}").json()["betSlip"]
        assert slip["redeem_code"] == body["Content"]["RedeemCode"]
        assert len(slip["selections"]) == 2
        assert slip["history"][0]["status_to"] == "pending"

        listing = client.get("/api/betslips").json()
        assert listing["count"] == 1
        assert listing["betSlips"][0]["selection_count"] == 2

    def test_malformed_bet_object(self, client):
        response = client.post("/booking", json={"BetObject": "{not json"})

        assert response.status_code == 400
        assert response.json()["StatusCode"] == 1
        assert response.json()["Error"] == "Invalid bet object format"

    def test_empty_slip_is_a_server_error(self, client):
        response = client.post("/booking", json={"BetObject": json.dumps({"SingleBets": []})})

        assert response.status_code == 500
        assert response.json()["Error"] == "Internal server error"

    def test_status_update(self, client, bet_object):
        slip_id = client.post("/booking", json={"BetObject": json.dumps(bet_object)}).json()["Content"]["ID"]

        response = client.put(f"/api/betslips/{slip_id}/status", json={"status": "settled", "changedBy": "cashier"})

        assert response.json() == {
            "success": True,
            "result": {"id": 1, "slip_id": slip_id, "status": "settled"},
        }

    def test_status_update_requires_status(self, client):
        response = client.put("/api/betslips/any/status", json={})
        assert response.status_code == 400
        assert response.json()["error"] == "Status is required"

    def test_status_update_unknown_slip(self, client):
        response = client.put("/api/betslips/missing/status", json={"status": "settled"})
        assert response.status_code == 404

    def test_unknown_slip(self, client):
        assert client.get("/api/betslips/missing").status_code == 404
