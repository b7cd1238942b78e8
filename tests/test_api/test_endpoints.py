"""Endpoint tests for the trade-cluster API.

The app is built around an in-memory store, and the orchestrator dependency
is overridden with zero delays. Exchange HTTP calls are mocked with respx.
"""

from __future__ import annotations

import asyncio

import httpx
import pytest
import respx
from fastapi.testclient import TestClient

from tradeclusters.api.deps import get_orchestrator, limiter
from tradeclusters.api.main import create_app
from tradeclusters.connectors.base import now_ms
from tradeclusters.ingestion.backfill import BackfillOrchestrator
from tradeclusters.store import MemoryTradeStore

HOUR = 3_600_000
START = 1_700_000_000_000 - (1_700_000_000_000 % HOUR)


# ---------------------------------------------------------------------------
# Test app fixture
# ---------------------------------------------------------------------------
@pytest.fixture
def store() -> MemoryTradeStore:
    return MemoryTradeStore()


@pytest.fixture
def client(store):
    """TestClient over a memory store with an undelayed orchestrator."""
    app = create_app(store=store)
    orchestrator = BackfillOrchestrator(
        store, politeness_delay_ms=0, backoff_min_ms=0, backoff_max_ms=0
    )
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    limiter.reset()

    with TestClient(app, raise_server_exceptions=False) as c:
        yield c


def _binance_handler(request: httpx.Request) -> httpx.Response:
    start = int(request.url.params["startTime"])
    return httpx.Response(
        200, json=[{"a": start // 1000, "p": "100.0", "q": "1.5", "T": start, "m": False}]
    )


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------
class TestHealth:
    def test_health(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["ok"] is True
        assert isinstance(body["now"], int)


# ---------------------------------------------------------------------------
# POST /api/backfill
# ---------------------------------------------------------------------------
class TestBackfill:
    def test_success(self, client, store):
        with respx.mock(base_url="https://fapi.binance.com") as mock:
            mock.get("/fapi/v1/aggTrades").mock(side_effect=_binance_handler)
            resp = client.post(
                "/api/backfill",
                json={
                    "symbol": "BTCUSDT",
                    "exchange": "binance",
                    "startTs": START,
                    "endTs": START + 2 * HOUR,
                },
            )

        assert resp.status_code == 200
        body = resp.json()
        assert body["ok"] is True
        assert body["complete"] is True
        assert body["written"] == 2
        assert body["fetched"] == 2
        assert body["errors"] == []
        assert "backfill done" in body["message"]
        assert len(store) == 2

    def test_partial_failure_reports_windows(self, client):
        def handler(request: httpx.Request) -> httpx.Response:
            if int(request.url.params["startTime"]) == START:
                return httpx.Response(500)
            return _binance_handler(request)

        with respx.mock(base_url="https://fapi.binance.com") as mock:
            mock.get("/fapi/v1/aggTrades").mock(side_effect=handler)
            resp = client.post(
                "/api/backfill",
                json={"symbol": "BTCUSDT", "exchange": "binance",
                      "startTs": START, "endTs": START + 2 * HOUR},
            )

        assert resp.status_code == 200
        body = resp.json()
        assert body["ok"] is True
        assert body["complete"] is False
        assert body["written"] == 1
        assert body["errors"] == [
            {"start": START, "end": START + HOUR - 1, "attempts": 3,
             "error": body["errors"][0]["error"]}
        ]
        assert "500" in body["errors"][0]["error"]

    @pytest.mark.parametrize(
        "payload, message",
        [
            ({"exchange": "binance"}, "symbol is required"),
            ({"symbol": "BTCUSDT"}, "exchange is required"),
            ({"symbol": "BTCUSDT", "exchange": "kraken"}, "kraken"),
            ({"symbol": "BTCUSDT", "exchange": "binance",
              "startTs": START, "endTs": START}, "before"),
        ],
    )
    def test_bad_requests_return_400(self, client, payload, message):
        resp = client.post("/api/backfill", json=payload)
        assert resp.status_code == 400
        assert message in resp.json()["error"]

    def test_recent_only_failure_returns_500(self, client):
        with respx.mock(base_url="https://www.okx.com") as mock:
            route = mock.get("/api/v5/market/trades").respond(503)
            resp = client.post(
                "/api/backfill", json={"symbol": "BTCUSDT", "exchange": "okx"}
            )

        assert resp.status_code == 500
        assert "503" in resp.json()["error"]
        assert route.call_count == 2

    def test_rate_limited(self, client):
        statuses = [client.post("/api/backfill", json={}).status_code for _ in range(31)]
        assert statuses[:30] == [400] * 30
        assert statuses[30] == 429


# ---------------------------------------------------------------------------
# GET /api/top-clusters
# ---------------------------------------------------------------------------
class TestTopClusters:
    def test_returns_ranked_clusters(self, client, store, make_trade):
        ts = now_ms() - 60_000
        asyncio.run(
            store.insert_many(
                [
                    make_trade("1", price=100.2, quantity=2.0, timestamp=ts),
                    make_trade("2", price=100.4, quantity=3.0, timestamp=ts + 10),
                    make_trade("3", price=100.6, quantity=1.0, timestamp=ts + 5),
                ]
            )
        )

        resp = client.get("/api/top-clusters", params={"symbol": "BTCUSDT", "exchange": "binance"})

        assert resp.status_code == 200
        assert resp.json() == {
            "symbol": "BTCUSDT",
            "exchange": "binance",
            "clusters": [
                {"price": 100.0, "volume": 5.0, "lastTs": ts + 10},
                {"price": 101.0, "volume": 1.0, "lastTs": ts + 5},
            ],
        }

    def test_limit_and_bucket_params(self, client, store, make_trade):
        ts = now_ms() - 1_000
        asyncio.run(
            store.insert_many(
                [make_trade(str(i), price=100.0 + i, quantity=float(i), timestamp=ts)
                 for i in range(1, 6)]
            )
        )

        resp = client.get("/api/top-clusters", params={"limit": 1, "bucket": 10})

        clusters = resp.json()["clusters"]
        assert clusters == [{"price": 100.0, "volume": 10.0, "lastTs": ts}]

    def test_large_limit_returns_every_bucket(self, client, store, make_trade):
        ts = now_ms() - 1_000
        asyncio.run(
            store.insert_many(
                [make_trade(str(i), price=100.0 + i, timestamp=ts) for i in range(3)]
            )
        )

        resp = client.get("/api/top-clusters", params={"limit": 5000})

        assert resp.status_code == 200
        assert len(resp.json()["clusters"]) == 3

    def test_defaults_with_empty_store(self, client):
        resp = client.get("/api/top-clusters")
        assert resp.status_code == 200
        assert resp.json() == {"symbol": "BTCUSDT", "exchange": "binance", "clusters": []}

    @pytest.mark.parametrize(
        "params",
        [{"limit": 0}, {"periodMs": -1}, {"bucket": 0}, {"bucket": "abc"}, {"limit": "x"}],
    )
    def test_invalid_params_return_422(self, client, params):
        assert client.get("/api/top-clusters", params=params).status_code == 422
