"""Tests for the internal API — /health, /status and /candles."""

import asyncio

import pytest
from fastapi.testclient import TestClient

from signalcore.api.routers import configure_routers, reset_engine_statuses, update_engine_status
from signalcore.engine import CandleClosed
from signalcore.main import app

client = TestClient(app)


@pytest.fixture(autouse=True)
def _reset_state():
    reset_engine_statuses()
    configure_routers(candle_queue=None)
    yield
    reset_engine_statuses()
    configure_routers(candle_queue=None)


def _candle_body(**overrides):
    body = {
        "symbol": "BTCUSDT",
        "interval": "5m",
        "timestamp": 1_700_000_000_000,
        "open": 100.0,
        "high": 101.0,
        "low": 99.0,
        "close": 100.5,
        "volume": 12.0,
    }
    body.update(overrides)
    return body


class TestHealth:
    def test_health(self):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}


class TestStatusEndpoints:
    def test_empty(self):
        assert client.get("/status").json() == {"engines": {}}

    def test_reports_engine_status(self):
        update_engine_status("BTCUSDT", running=True, event_count=3)
        data = client.get("/status").json()
        status = data["engines"]["BTCUSDT"]
        assert status["running"] is True
        assert status["event_count"] == 3
        assert status["pending_entries"] == 0

    def test_symbol_status(self):
        update_engine_status("ETHUSDT", last_action="pending")
        resp = client.get("/status/ETHUSDT")
        assert resp.status_code == 200
        assert resp.json()["last_action"] == "pending"

    def test_unknown_symbol_404(self):
        assert client.get("/status/DOGEUSDT").status_code == 404


class TestCandlesEndpoint:
    def test_no_engine_attached(self):
        assert client.post("/candles", json=_candle_body()).status_code == 503

    def test_enqueues_candle(self):
        queue = asyncio.Queue()
        configure_routers(candle_queue=queue)
        resp = client.post("/candles", json=_candle_body())
        assert resp.status_code == 200
        assert resp.json() == {"status": "queued", "queue_size": 1}

        event = queue.get_nowait()
        assert isinstance(event, CandleClosed)
        assert event.symbol == "BTCUSDT"
        assert event.interval == "5m"
        assert event.candle.close == 100.5

    def test_missing_fields(self):
        configure_routers(candle_queue=asyncio.Queue())
        body = _candle_body()
        del body["close"]
        data = client.post("/candles", json=body).json()
        assert data["status"] == "error"
        assert "close" in data["errors"][0]

    def test_bad_interval(self):
        configure_routers(candle_queue=asyncio.Queue())
        data = client.post("/candles", json=_candle_body(interval="1h")).json()
        assert data == {"status": "error", "errors": ["interval must be 5m or 1m"]}

    def test_non_numeric_price(self):
        configure_routers(candle_queue=asyncio.Queue())
        data = client.post("/candles", json=_candle_body(high="abc")).json()
        assert data["status"] == "error"
