"""Integration tests for the FastAPI read surface.

Uses FastAPI's TestClient (backed by httpx).  The lifespan is not started, so
no files are read; each test fills ``main.state`` directly.
"""

from __future__ import annotations

import importlib
import os
from types import ModuleType
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from civic_score.dataset import Dataset
from civic_score.models import (
    IssuePosition,
    MemberScores,
    StateScore,
)

# ── Helpers ───────────────────────────────────────────────────────────────────


def _make_client(**env_overrides: str) -> tuple[TestClient, ModuleType]:
    """Build a fresh TestClient, reloading ``config`` then ``main`` so env
    overrides (API key, CORS origins, run log path) take effect.
    """
    with patch.dict(os.environ, env_overrides):
        import civic_score.config as _cfg_mod
        import civic_score.main as _main_mod

        importlib.reload(_cfg_mod)
        importlib.reload(_main_mod)
        return TestClient(_main_mod.app, raise_server_exceptions=False), _main_mod


def _fill(main: ModuleType, dataset: Dataset) -> None:
    main.state.dataset = dataset
    store = main.state.store
    store.save_member_scores(MemberScores("m1", 63, 50, 100, 50, 50, votes_cast=1))
    store.save_member_scores(MemberScores("m1", 90, 50, 100, 50, 50, user_id="u1"))
    store.replace_positions("m1", [IssuePosition("m1", "i-health", 2.0, 1)])
    store.replace_state_scores([StateScore("TX", 55, 1), StateScore("CA", 63, 1)])


@pytest.fixture()
def api(small_dataset: Dataset, tmp_path) -> tuple[TestClient, ModuleType]:
    client, main = _make_client(CIVIC_API_KEY="", CIVIC_RUN_LOG=str(tmp_path / "runs.jsonl"))
    _fill(main, small_dataset)
    return client, main


@pytest.fixture()
def client(api: tuple[TestClient, ModuleType]) -> TestClient:
    return api[0]


# ── Health ────────────────────────────────────────────────────────────────────


class TestHealthEndpoint:
    def test_returns_ok(self, client: TestClient) -> None:
        resp = client.get("/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "ok"
        assert body["ready"] is True
        assert body["members"] == 2
        assert body["positions"] == 1

    def test_not_ready_when_empty(self) -> None:
        client, _ = _make_client(CIVIC_API_KEY="")
        assert client.get("/health").json()["ready"] is False


class TestCORS:
    def test_cors_headers_present(self, client: TestClient) -> None:
        resp = client.options(
            "/health",
            headers={"Origin": "http://localhost:3000", "Access-Control-Request-Method": "GET"},
        )
        assert "access-control-allow-origin" in resp.headers


class TestAPIKeyAuth:
    def test_rejects_without_key(self) -> None:
        client, _ = _make_client(CIVIC_API_KEY="s3cret")
        assert client.get("/states").status_code == 401

    def test_rejects_wrong_key(self) -> None:
        client, _ = _make_client(CIVIC_API_KEY="s3cret")
        assert client.get("/states", headers={"X-API-Key": "nope"}).status_code == 401

    def test_accepts_correct_key(self) -> None:
        client, _ = _make_client(CIVIC_API_KEY="s3cret")
        assert client.get("/states", headers={"X-API-Key": "s3cret"}).status_code == 200

    def test_health_exempt_from_auth(self) -> None:
        client, _ = _make_client(CIVIC_API_KEY="s3cret")
        assert client.get("/health").status_code == 200


# ── Scores ────────────────────────────────────────────────────────────────────


class TestMemberScores:
    def test_default_record(self, client: TestClient) -> None:
        body = client.get("/members/m1/scores").json()
        assert body["overall_score"] == 63
        assert body["user_id"] is None
        assert body["level"] == "average"

    def test_user_record(self, client: TestClient) -> None:
        body = client.get("/members/m1/scores", params={"user_id": "u1"}).json()
        assert body["overall_score"] == 90
        assert body["level"] == "excellent"

    def test_unknown_user_falls_back_to_default(self, client: TestClient) -> None:
        body = client.get("/members/m1/scores", params={"user_id": "ghost"}).json()
        assert body["overall_score"] == 63

    def test_weights_recompose(self, client: TestClient) -> None:
        resp = client.get(
            "/members/m1/scores",
            params={"productivity": 0, "attendance": 100, "bipartisanship": 0, "issue_alignment": 0},
        )
        assert resp.status_code == 200
        assert resp.json()["overall_score"] == 100

    def test_invalid_weights_rejected(self, client: TestClient) -> None:
        resp = client.get("/members/m1/scores", params={"productivity": 90})
        assert resp.status_code == 422
        assert "sum to 100" in resp.json()["detail"]

    def test_unknown_member(self, client: TestClient) -> None:
        assert client.get("/members/nobody/scores").status_code == 404


class TestPositions:
    def test_positions_with_slugs(self, client: TestClient) -> None:
        body = client.get("/members/m1/positions").json()
        assert body["member_id"] == "m1"
        assert body["positions"][0]["issue_slug"] == "healthcare"
        assert body["positions"][0]["score_value"] == 2.0

    def test_no_positions(self, client: TestClient) -> None:
        assert client.get("/members/m2/positions").json()["positions"] == []


# ── Alignment ─────────────────────────────────────────────────────────────────


class TestAlignment:
    def test_computed_and_cached(self, api: tuple[TestClient, ModuleType]) -> None:
        client, main = api
        resp = client.get("/alignment/u1/m1")
        assert resp.status_code == 200
        body = resp.json()
        assert body["overall_alignment"] == 100
        assert body["breakdown"] == {"healthcare": 100}
        assert main.state.store.get_alignment("u1", "m1") is not None

    def test_not_enough_data(self, client: TestClient) -> None:
        resp = client.get("/alignment/u1/m2")
        assert resp.status_code == 404

    def test_user_without_answers(self, client: TestClient) -> None:
        assert client.get("/alignment/nobody/m1").status_code == 404


# ── States & runs ─────────────────────────────────────────────────────────────


class TestStates:
    def test_sorted_by_state(self, client: TestClient) -> None:
        body = client.get("/states").json()
        assert [s["state"] for s in body] == ["CA", "TX"]


class TestRuns:
    def test_empty_log(self, client: TestClient) -> None:
        assert client.get("/runs").json() == []
