"""Candle loading from CSV with pandas."""

import logging
from pathlib import Path

import pandas as pd

from signalcore.strategy.models import CandleData

logger = logging.getLogger("signalcore.data")

REQUIRED_COLUMNS = ("timestamp", "open", "high", "low", "close")


def _to_epoch_ms(column: pd.Series) -> pd.Series:
    if pd.api.types.is_numeric_dtype(column):
        return column.astype("int64")
    parsed = pd.to_datetime(column, utc=True)
    return (parsed - pd.Timestamp(0, tz="UTC")) // pd.Timedelta(milliseconds=1)


def frame_to_candles(frame: pd.DataFrame) -> list[CandleData]:
    """Convert an OHLCV frame into ``CandleData`` sorted by time.

    ``timestamp`` may hold epoch milliseconds or datetime strings.  A
    missing ``volume`` column is read as zero volume.

    Raises ``ValueError`` when a required column is missing.
    """
    columns = {c.lower(): c for c in frame.columns}
    missing = [c for c in REQUIRED_COLUMNS if c not in columns]
    if missing:
        raise ValueError(f"Missing candle column(s): {', '.join(missing)}")

    data = frame.rename(columns={v: k for k, v in columns.items()})
    if "volume" not in data.columns:
        data = data.assign(volume=0.0)
    data = data.dropna(subset=list(REQUIRED_COLUMNS))
    data = data.assign(timestamp=_to_epoch_ms(data["timestamp"]))
    data = data.sort_values("timestamp", kind="stable").drop_duplicates("timestamp", keep="last")

    return [
        CandleData(
            timestamp=int(row.timestamp),
            open=float(row.open),
            high=float(row.high),
            low=float(row.low),
            close=float(row.close),
            volume=float(row.volume),
        )
        for row in data.itertuples(index=False)
    ]


def load_candles_csv(path: str | Path) -> list[CandleData]:
    """Read candles from a CSV file with OHLCV columns."""
    frame = pd.read_csv(path)
    candles = frame_to_candles(frame)
    logger.info("Loaded %d candles from %s", len(candles), path)
    return candles
