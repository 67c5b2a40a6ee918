from __future__ import annotations

import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import List, Optional, Union

import pandas as pd
import requests

from .models import Candle

_COLUMN_ALIASES = {
    "date": "date",
    "open": "open",
    "high": "high",
    "low": "low",
    "close": "close",
    "volume": "volume",
    "adj close": "adj_close",
    "adj_close": "adj_close",
    "adjclose": "adj_close",
}

def candles_from_frame(df: pd.DataFrame) -> List[Candle]:
    """Convert an OHLCV frame (date index or `date` column) into ascending candles.

    Rows with a missing open/high/low/close are dropped.
    """
    if df is None or df.empty:
        return []
    frame = df.copy()
    if "date" not in {str(c).strip().lower() for c in frame.columns}:
        frame = frame.reset_index()
    frame.columns = [_COLUMN_ALIASES.get(str(c).strip().lower(), str(c).strip().lower()) for c in frame.columns]
    if "date" not in frame.columns:
        # reset_index() names an unnamed index "index"
        frame = frame.rename(columns={"index": "date"})
    missing = [c for c in ("date", "open", "high", "low", "close") if c not in frame.columns]
    if missing:
        raise ValueError(f"price frame is missing column(s): {', '.join(missing)}")

    frame["date"] = pd.to_datetime(frame["date"], errors="coerce").dt.strftime("%Y-%m-%d")
    frame = frame.dropna(subset=["date", "open", "high", "low", "close"])
    frame = frame.sort_values("date").drop_duplicates(subset=["date"], keep="last")

    has_volume = "volume" in frame.columns
    has_adj = "adj_close" in frame.columns
    out: List[Candle] = []
    for row in frame.itertuples(index=False):
        volume = getattr(row, "volume") if has_volume else 0.0
        adj = getattr(row, "adj_close") if has_adj else None
        out.append(
            Candle(
                date=str(row.date),
                open=float(row.open),
                high=float(row.high),
                low=float(row.low),
                close=float(row.close),
                volume=0.0 if pd.isna(volume) else float(volume),
                adj_close=None if adj is None or pd.isna(adj) else float(adj),
            )
        )
    return out

def load_candles_csv(path: Union[str, Path]) -> List[Candle]:
    """Read an OHLCV CSV with a Date column (any capitalisation)."""
    return candles_from_frame(pd.read_csv(path))

def fetch_candles(symbol: str, days: int = 365, end: Optional[datetime] = None) -> List[Candle]:
    """Daily candles for the last `days` calendar days.

    Provider errors are logged and yield an empty list.
    """
    import FinanceDataReader as fdr  # type: ignore

    end_dt = end or datetime.now()
    start_dt = end_dt - timedelta(days=int(days))
    try:
        df = fdr.DataReader(symbol, start_dt.strftime("%Y-%m-%d"), end_dt.strftime("%Y-%m-%d"))
    except Exception as exc:
        logging.warning("price fetch failed %s: %s", symbol, exc)
        return []
    candles = candles_from_frame(df)
    if not candles:
        logging.warning("no price data for %s", symbol)
    return candles

def fetch_fear_greed(url: str, timeout: float = 30.0) -> Optional[int]:
    """Latest fear & greed index (0-100) or None when unavailable."""
    try:
        resp = requests.get(url, timeout=timeout)
        if not resp.ok:
            logging.warning("fear/greed fetch failed: %s %s", resp.status_code, resp.text[:200])
            return None
        payload = resp.json()
        return int(payload["data"][0]["value"])
    except (requests.RequestException, ValueError, KeyError, IndexError, TypeError) as exc:
        logging.warning("fear/greed fetch error: %s", exc)
        return None
