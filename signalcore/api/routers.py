"""Internal API routers — /status and /candles endpoints.

No business logic.  Reads engine status published by the engines and
forwards candle-close events to the engine queue.
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, HTTPException

logger = logging.getLogger("signalcore.api")
router = APIRouter()

# ── Shared state (set during app startup) ────────────────────────────────

_DEFAULT_ENGINE_STATUS: dict = {
    "running": False,
    "mode": "idle",
    "event_count": 0,
    "last_event_at": None,
    "last_close": None,
    "last_action": None,
    "last_reason": None,
    "last_order_at": None,
    "pending_entries": 0,
    "position_open": False,
}

# Keyed by symbol → status dict
_engine_statuses: dict[str, dict] = {}

_candle_queue: Optional[asyncio.Queue] = None  # Set via configure_routers()


def configure_routers(candle_queue: Optional[asyncio.Queue] = None) -> None:
    """Inject the engine's event queue from the application startup."""
    global _candle_queue  # noqa: PLW0603
    _candle_queue = candle_queue


def update_engine_status(symbol: str, **fields) -> None:
    """Update individual fields of a symbol's status dict."""
    if symbol not in _engine_statuses:
        _engine_statuses[symbol] = {**_DEFAULT_ENGINE_STATUS, "symbol": symbol}
    _engine_statuses[symbol].update(fields)


def reset_engine_statuses() -> None:
    _engine_statuses.clear()


# ── Endpoints ────────────────────────────────────────────────────────────


@router.get("/status")
async def get_status():
    """Return status for all engines."""
    return {"engines": dict(_engine_statuses)}


@router.get("/status/{symbol}")
async def get_symbol_status(symbol: str):
    """Return status for a single symbol."""
    status = _engine_statuses.get(symbol)
    if status is None:
        raise HTTPException(status_code=404, detail=f"Unknown symbol: {symbol}")
    return status


@router.post("/candles")
async def post_candle(body: dict):
    """Enqueue a closed candle for the engine.

    Body: ``symbol``, ``interval`` ("5m" or "1m"), ``timestamp`` (epoch ms),
    ``open``, ``high``, ``low``, ``close`` and optional ``volume``.
    """
    # imported here to avoid a cycle: the engine publishes status through this module
    from signalcore.engine import CandleClosed
    from signalcore.strategy.models import CandleData

    if _candle_queue is None:
        raise HTTPException(status_code=503, detail="No engine attached")

    errors = []
    missing = [
        k for k in ("symbol", "timestamp", "open", "high", "low", "close")
        if k not in body
    ]
    if missing:
        errors.append(f"missing field(s): {', '.join(missing)}")
    interval = body.get("interval", "5m")
    if interval not in ("5m", "1m"):
        errors.append("interval must be 5m or 1m")
    if errors:
        return {"status": "error", "errors": errors}

    try:
        candle = CandleData(
            timestamp=int(body["timestamp"]),
            open=float(body["open"]),
            high=float(body["high"]),
            low=float(body["low"]),
            close=float(body["close"]),
            volume=float(body.get("volume", 0.0)),
        )
    except (TypeError, ValueError) as exc:
        return {"status": "error", "errors": [str(exc)]}

    await _candle_queue.put(CandleClosed(str(body["symbol"]), interval, candle))
    return {"status": "queued", "queue_size": _candle_queue.qsize()}
