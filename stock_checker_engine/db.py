from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from .models import Candle

def connect(db_path: str) -> sqlite3.Connection:
    if db_path != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    return conn

def ensure_schema(conn: sqlite3.Connection, table: str = "daily_price") -> None:
    conn.execute(
        f"CREATE TABLE IF NOT EXISTS {table} ("
        "code TEXT NOT NULL, date TEXT NOT NULL, "
        "open REAL, high REAL, low REAL, close REAL, volume REAL, adj_close REAL, "
        "PRIMARY KEY (code, date))"
    )

def list_codes(conn: sqlite3.Connection, table: str = "daily_price", min_rows: int = 1) -> List[Tuple[str, int]]:
    """Return [(code, n_rows), ...]"""
    cur = conn.execute(
        f"SELECT code, COUNT(*) as n FROM {table} GROUP BY code HAVING n >= ? ORDER BY code",
        (int(min_rows),),
    )
    return [(str(r[0]), int(r[1])) for r in cur.fetchall()]

def upsert_candles(conn: sqlite3.Connection, code: str, candles: Iterable[Candle], table: str = "daily_price") -> int:
    rows = [(code, c.date, c.open, c.high, c.low, c.close, c.volume, c.adj_close) for c in candles]
    if not rows:
        return 0
    conn.executemany(
        f"INSERT OR REPLACE INTO {table} (code, date, open, high, low, close, volume, adj_close) "
        "VALUES (?,?,?,?,?,?,?,?)",
        rows,
    )
    conn.commit()
    return len(rows)

def fetch_candles(
    conn: sqlite3.Connection,
    code: str,
    table: str = "daily_price",
    limit: Optional[int] = None,
) -> List[Candle]:
    """Candles for a code in ascending date order.

    With `limit`, the most recent `limit` rows are returned (still ascending).
    """
    lim_sql = f" LIMIT {int(limit)}" if limit is not None else ""
    cur = conn.execute(
        f"SELECT date, open, high, low, close, volume, adj_close FROM {table} "
        f"WHERE code=? ORDER BY date DESC{lim_sql}",
        (code,),
    )
    rows = list(reversed(cur.fetchall()))
    return [
        Candle(
            date=str(r[0]),
            open=float(r[1]),
            high=float(r[2]),
            low=float(r[3]),
            close=float(r[4]),
            volume=float(r[5] or 0.0),
            adj_close=None if r[6] is None else float(r[6]),
        )
        for r in rows
    ]
