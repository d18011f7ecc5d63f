"""SignalCore — application entry point.

Boots the FastAPI internal server and provides the CLI entry point for
backtest and serve modes.
"""

import logging

from fastapi import FastAPI

from signalcore.api.routers import router

app = FastAPI(title="SignalCore Internal API", version="0.1.0")
app.include_router(router)

logger = logging.getLogger("signalcore")


@app.get("/health")
async def health():
    """Liveness probe."""
    return {"status": "ok"}


# ── CLI ──────────────────────────────────────────────────────────────────


def _run_cli(argv: list[str] | None = None) -> None:
    """Parse CLI arguments and dispatch to the appropriate mode."""
    import argparse
    import asyncio

    from signalcore.config import load_config, load_settings

    parser = argparse.ArgumentParser(description="SignalCore trading bot core")
    parser.add_argument(
        "--mode",
        choices=["backtest", "serve"],
        default="serve",
        help="Run mode (default: serve)",
    )
    parser.add_argument("--candles", help="5m candle CSV for backtest mode")
    parser.add_argument("--candles-1m", help="Optional 1m candle CSV for backtest mode")
    parser.add_argument("--env", help="Path to a .env file")
    args = parser.parse_args(argv)

    config = load_config(args.env)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    settings = load_settings(config.settings_path).with_env(config)

    if args.mode == "backtest":
        if not args.candles:
            parser.error("--candles is required in backtest mode")
        run_backtest(settings, args.candles, args.candles_1m)
    else:
        asyncio.run(_serve(settings, config.api_port))


def run_backtest(settings, candles_path: str, candles_1m_path: str | None = None):
    """Load candles, replay them through the default coordinator, log the summary."""
    from signalcore.backtest.engine import BacktestEngine
    from signalcore.data.candles import load_candles_csv
    from signalcore.strategy.confirmation import EntryConfirmationManager
    from signalcore.strategy.registry import build_coordinator

    candles = load_candles_csv(candles_path)
    candles_1m = load_candles_csv(candles_1m_path) if candles_1m_path else []

    engine = BacktestEngine(
        build_coordinator(settings),
        settings.backtest,
        EntryConfirmationManager(settings.entry_confirmation),
    )
    result = engine.run(candles, candles_1m)
    summary = result.summary
    logger.info(
        "Backtest complete: %d trades, PnL: $%.2f, Win rate: %.1f%%, "
        "Profit factor: %s, Max drawdown: %.2f%%",
        summary["total_trades"],
        summary["total_pnl"],
        summary["win_rate"],
        summary["profit_factor"],
        summary["max_drawdown"],
    )
    return result


async def _serve(settings, port: int = 8080) -> None:
    """Start the API server and the trading engine concurrently."""
    import asyncio

    import uvicorn

    from signalcore.api.routers import configure_routers, update_engine_status
    from signalcore.engine import PaperExecutor, TradingEngine
    from signalcore.strategy.confirmation import EntryConfirmationManager
    from signalcore.strategy.registry import build_coordinator

    queue: asyncio.Queue = asyncio.Queue()
    engine = TradingEngine(
        build_coordinator(settings),
        EntryConfirmationManager(settings.entry_confirmation),
        PaperExecutor(),
        settings.backtest,
    )
    configure_routers(candle_queue=queue)
    update_engine_status(engine.symbol, mode="paper")

    server = uvicorn.Server(
        uvicorn.Config(app, host="0.0.0.0", port=port, log_level="info")
    )

    async def _run_server():
        await server.serve()
        # server stopped: release the engine loop
        await queue.put(None)

    logger.info("Starting SignalCore for %s on port %d", engine.symbol, port)
    _, events = await asyncio.gather(
        _run_server(),
        engine.run(queue),
        return_exceptions=True,
    )
    processed = len(events) if isinstance(events, list) else 0
    logger.info("SignalCore stopped after %d event(s).", processed)


if __name__ == "__main__":
    _run_cli()
