"""Smoke tests for API routes."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from lingua_progress.admission.rate_limiter import RateLimiter
from lingua_progress.errors import StoreUnavailable
from lingua_progress.main import app
from lingua_progress.models.analysis import TutorReply
from lingua_progress.orchestrator import SessionOrchestrator
from lingua_progress.progress.analytics import EventCounter


@pytest.fixture
def orchestrator(store, ledger, leaderboard, clock):
    tutor = MagicMock()
    tutor.reply = AsyncMock(return_value=TutorReply(reply="Hello!"))
    return SessionOrchestrator(
        ledger,
        RateLimiter(store, max_attempts=2, window_seconds=60, clock=clock),
        leaderboard,
        tutor,
        EventCounter(store, clock=clock),
    )


@pytest.fixture
def client(orchestrator):
    with patch("lingua_progress.api.routes.get_orchestrator", return_value=orchestrator):
        with TestClient(app) as c:
            yield c


class TestHealthCheck:
    def test_health_returns_ok(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestMessages:
    def test_reply(self, client):
        response = client.post("/api/users/u1/messages", json={"text": "hi"})
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "reply"
        assert data["reply"] == "Hello!"
        assert data["streak"] == 1

    def test_rate_limited_returns_429(self, client):
        for _ in range(2):
            assert client.post("/api/users/u1/messages", json={"text": "hi"}).status_code == 200
        response = client.post("/api/users/u1/messages", json={"text": "hi"})
        assert response.status_code == 429
        assert int(response.headers["Retry-After"]) > 0
        assert response.json()["status"] == "rate_limited"

    def test_empty_text_rejected(self, client):
        response = client.post("/api/users/u1/messages", json={"text": ""})
        assert response.status_code == 422

    def test_store_unavailable_returns_503(self, client, orchestrator):
        orchestrator.ledger.store.get = AsyncMock(side_effect=StoreUnavailable("down"))
        response = client.post("/api/users/u1/messages", json={"text": "hi"})
        assert response.status_code == 503
        assert response.json() == {"error": "Storage temporarily unavailable"}


class TestSettingsRoutes:
    def test_session_defaults(self, client):
        response = client.get("/api/users/new/session")
        assert response.status_code == 200
        data = response.json()
        assert data["language"] == "english"
        assert data["progress"]["streak"] == 0

    def test_unsupported_language(self, client):
        response = client.put("/api/users/u1/language", json={"language": "klingon"})
        assert response.status_code == 400

    def test_set_language(self, client):
        response = client.put("/api/users/u1/language", json={"language": "spanish"})
        assert response.json() == {"language": "spanish"}

    def test_invalid_reminder_time(self, client):
        response = client.put(
            "/api/users/u1/reminder",
            json={"daily_reminder": True, "reminder_time": "25:99"},
        )
        assert response.status_code == 400

    def test_set_mode(self, client):
        response = client.put("/api/users/u1/mode", json={"mode": "structured"})
        assert response.json() == {"mode": "structured"}


class TestQuizRoutes:
    def test_quiz_without_vocabulary(self, client):
        response = client.post("/api/users/u1/quiz")
        assert response.status_code == 409

    def test_skip_without_quiz(self, client):
        response = client.delete("/api/users/u1/quiz")
        assert response.json() == {"skipped": False}


class TestLeaderboardRoute:
    def test_empty_leaderboard(self, client):
        response = client.get("/api/leaderboard")
        assert response.status_code == 200
        assert response.json() == []
