from __future__ import annotations

import math
from datetime import date, timedelta
from typing import List, Sequence

import pytest

from stock_checker_engine.models import Candle


def candles_from_closes(closes: Sequence[float], spread: float = 2.0, start: str = "2024-01-01") -> List[Candle]:
    """One candle per calendar day with high/low at close +/- spread."""
    d0 = date.fromisoformat(start)
    return [
        Candle(
            date=(d0 + timedelta(days=i)).isoformat(),
            open=float(c),
            high=float(c) + spread,
            low=float(c) - spread,
            close=float(c),
            volume=1000.0,
        )
        for i, c in enumerate(closes)
    ]


@pytest.fixture
def make_candles():
    return candles_from_closes


@pytest.fixture
def declining_candles():
    # closes 100, 99, ..., 70
    return candles_from_closes([100.0 - i for i in range(31)])


@pytest.fixture
def flat_candles():
    return candles_from_closes([100.0] * 80, spread=0.0)


@pytest.fixture
def trending_candles():
    # gentle uptrend with a 20-bar cycle
    closes = [100.0 + 0.1 * i + 3.0 * math.sin(i * 2 * math.pi / 20) for i in range(260)]
    return candles_from_closes(closes, spread=1.0)
