from __future__ import annotations

import math
from typing import Callable, Dict, Sequence, Tuple

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from .models import IndicatorSnapshot

RSI_PERIOD = 14
STOCH_PERIOD = 14
STOCH_SIGNAL_PERIOD = 3
BB_PERIOD = 20
BB_STD = 2.0
WILLIAMS_PERIOD = 14
ATR_PERIOD = 14
DONCHIAN_PERIOD = 20
MA_PERIOD = 20
MACD_FAST = 12
MACD_SLOW = 26
MACD_SIGNAL = 9

def _on_valid_tail(func: Callable[..., np.ndarray], values: np.ndarray, *args, **kwargs) -> np.ndarray:
    """Apply a rolling function to the part of `values` after its leading NaNs."""
    out = np.full(len(values), np.nan)
    finite = np.flatnonzero(~np.isnan(values))
    if len(finite) == 0:
        return out
    start = int(finite[0])
    out[start:] = func(values[start:], *args, **kwargs)
    return out

def rolling_sma(values: Sequence[float], period: int) -> np.ndarray:
    """Simple moving average aligned to each index (NaN until enough bars)."""
    arr = np.asarray(values, dtype=float)
    n = len(arr)
    out = np.full(n, np.nan)
    if n < period or period <= 0:
        return out
    cumsum = np.cumsum(arr)
    out[period - 1 :] = (cumsum[period - 1 :] - np.concatenate(([0.0], cumsum[: -period]))) / period
    return out

def _ema(arr: np.ndarray, period: int, sma_seed: bool) -> np.ndarray:
    n = len(arr)
    out = np.full(n, np.nan)
    if n < period or period <= 0:
        return out
    k = 2.0 / (period + 1)
    prev = float(arr[:period].mean()) if sma_seed else float(arr[period - 1])
    out[period - 1] = prev
    for i in range(period, n):
        prev += k * (float(arr[i]) - prev)
        out[i] = prev
    return out

def rolling_ema(values: Sequence[float], period: int, sma_seed: bool = False) -> np.ndarray:
    """Exponential moving average with k = 2/(period+1).

    The first value sits at the end of the first full window and is seeded
    either with that window's last close (`sma_seed=False`) or with its
    mean. Leading NaNs in `values` are skipped, so the function can be
    chained onto another indicator (MACD signal line).
    """
    arr = np.asarray(values, dtype=float)
    return _on_valid_tail(_ema, arr, period, sma_seed)

def _rsi_value(avg_gain: float, avg_loss: float) -> float:
    if avg_gain == 0.0 and avg_loss == 0.0:
        return 50.0
    if avg_loss == 0.0:
        return 100.0
    rs = avg_gain / avg_loss
    return 100.0 - (100.0 / (1.0 + rs))

def rsi_wilder(closes: Sequence[float], period: int = RSI_PERIOD) -> np.ndarray:
    """RSI with Wilder smoothing.

    The first average is the simple mean of the first `period` gains/losses,
    later values use avg = (prev * (period - 1) + x) / period.
    NaN until index == period.
    """
    c = np.asarray(closes, dtype=float)
    n = len(c)
    out = np.full(n, np.nan)
    if n < period + 1 or period <= 0:
        return out

    d = np.diff(c)
    gains = np.clip(d, 0, None)
    losses = np.clip(-d, 0, None)

    avg_gain = float(gains[:period].mean())
    avg_loss = float(losses[:period].mean())
    out[period] = _rsi_value(avg_gain, avg_loss)
    for i in range(period + 1, n):
        avg_gain = (avg_gain * (period - 1) + gains[i - 1]) / period
        avg_loss = (avg_loss * (period - 1) + losses[i - 1]) / period
        out[i] = _rsi_value(avg_gain, avg_loss)
    return out

def _window_extremes(highs: np.ndarray, lows: np.ndarray, period: int) -> Tuple[np.ndarray, np.ndarray]:
    hh = sliding_window_view(highs, period).max(axis=1)
    ll = sliding_window_view(lows, period).min(axis=1)
    return hh, ll

def stochastic_k(
    highs: Sequence[float], lows: Sequence[float], closes: Sequence[float], period: int = STOCH_PERIOD
) -> np.ndarray:
    """%K = (close - lowest low) / (highest high - lowest low) * 100; 50 on a zero range."""
    h = np.asarray(highs, dtype=float)
    l = np.asarray(lows, dtype=float)
    c = np.asarray(closes, dtype=float)
    n = len(c)
    out = np.full(n, np.nan)
    if n < period or period <= 0:
        return out
    hh, ll = _window_extremes(h, l, period)
    rng = hh - ll
    cur = c[period - 1 :]
    safe = np.where(rng == 0, 1.0, rng)
    out[period - 1 :] = np.where(rng == 0, 50.0, (cur - ll) / safe * 100.0)
    return out

def stochastic_d(k_values: Sequence[float], period: int = STOCH_SIGNAL_PERIOD) -> np.ndarray:
    """%D: simple moving average of %K."""
    k = np.asarray(k_values, dtype=float)
    return _on_valid_tail(rolling_sma, k, period)

def williams_r(
    highs: Sequence[float], lows: Sequence[float], closes: Sequence[float], period: int = WILLIAMS_PERIOD
) -> np.ndarray:
    """%R = (highest high - close) / (highest high - lowest low) * -100; -50 on a zero range."""
    h = np.asarray(highs, dtype=float)
    l = np.asarray(lows, dtype=float)
    c = np.asarray(closes, dtype=float)
    n = len(c)
    out = np.full(n, np.nan)
    if n < period or period <= 0:
        return out
    hh, ll = _window_extremes(h, l, period)
    rng = hh - ll
    cur = c[period - 1 :]
    safe = np.where(rng == 0, 1.0, rng)
    out[period - 1 :] = np.where(rng == 0, -50.0, (hh - cur) / safe * -100.0)
    return out

def bollinger_bands(
    closes: Sequence[float], period: int = BB_PERIOD, num_std: float = BB_STD
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """(lower, middle, upper) using the population standard deviation."""
    c = np.asarray(closes, dtype=float)
    n = len(c)
    lower = np.full(n, np.nan)
    middle = np.full(n, np.nan)
    upper = np.full(n, np.nan)
    if n < period or period <= 0:
        return lower, middle, upper
    win = sliding_window_view(c, period)
    mid = win.mean(axis=1)
    std = win.std(axis=1)
    middle[period - 1 :] = mid
    lower[period - 1 :] = mid - num_std * std
    upper[period - 1 :] = mid + num_std * std
    return lower, middle, upper

def true_range(highs: Sequence[float], lows: Sequence[float], closes: Sequence[float]) -> np.ndarray:
    """TR = max(high-low, |high-prev_close|, |low-prev_close|); TR[0] is NaN."""
    h = np.asarray(highs, dtype=float)
    l = np.asarray(lows, dtype=float)
    c = np.asarray(closes, dtype=float)
    n = len(c)
    out = np.full(n, np.nan)
    if n < 2:
        return out
    prev_close = c[:-1]
    out[1:] = np.maximum(h[1:] - l[1:], np.maximum(np.abs(h[1:] - prev_close), np.abs(l[1:] - prev_close)))
    return out

def atr_wilder(
    highs: Sequence[float], lows: Sequence[float], closes: Sequence[float], period: int = ATR_PERIOD
) -> np.ndarray:
    """ATR with Wilder smoothing over true ranges starting at the second bar.
    NaN until index >= period.
    """
    tr = true_range(highs, lows, closes)
    n = len(tr)
    out = np.full(n, np.nan)
    if n < period + 1 or period <= 0:
        return out
    prev = float(tr[1 : period + 1].mean())
    out[period] = prev
    for i in range(period + 1, n):
        prev = (prev * (period - 1) + float(tr[i])) / period
        out[i] = prev
    return out

def donchian_channel(
    highs: Sequence[float], lows: Sequence[float], period: int = DONCHIAN_PERIOD
) -> Tuple[np.ndarray, np.ndarray]:
    """(lower, upper) over the trailing window including the current bar."""
    h = np.asarray(highs, dtype=float)
    l = np.asarray(lows, dtype=float)
    n = len(h)
    lower = np.full(n, np.nan)
    upper = np.full(n, np.nan)
    if n < period or period <= 0:
        return lower, upper
    hh, ll = _window_extremes(h, l, period)
    upper[period - 1 :] = hh
    lower[period - 1 :] = ll
    return lower, upper

def macd(
    closes: Sequence[float], fast: int = MACD_FAST, slow: int = MACD_SLOW, signal: int = MACD_SIGNAL
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """(macd line, signal line, histogram); EMA lines are SMA-seeded."""
    c = np.asarray(closes, dtype=float)
    line = rolling_ema(c, fast, sma_seed=True) - rolling_ema(c, slow, sma_seed=True)
    sig = rolling_ema(line, signal, sma_seed=True)
    return line, sig, line - sig

def compute_indicator_series(
    closes: Sequence[float], highs: Sequence[float], lows: Sequence[float]
) -> Dict[str, np.ndarray]:
    """Every indicator at every bar (NaN where its lookback is not yet met).

    Keys match the IndicatorSnapshot field names.
    """
    c = np.asarray(closes, dtype=float)
    h = np.asarray(highs, dtype=float)
    l = np.asarray(lows, dtype=float)
    if not (len(c) == len(h) == len(l)):
        raise ValueError(f"closes/highs/lows length mismatch: {len(c)}/{len(h)}/{len(l)}")

    k = stochastic_k(h, l, c)
    bb_lower, bb_middle, bb_upper = bollinger_bands(c)
    donch_lower, donch_upper = donchian_channel(h, l)
    macd_line, macd_signal, macd_hist = macd(c)
    return {
        "rsi": rsi_wilder(c),
        "stochastic_k": k,
        "stochastic_d": stochastic_d(k),
        "bb_lower": bb_lower,
        "bb_middle": bb_middle,
        "bb_upper": bb_upper,
        "donch_lower": donch_lower,
        "donch_upper": donch_upper,
        "williams_r": williams_r(h, l, c),
        "atr": atr_wilder(h, l, c),
        "macd": macd_line,
        "macd_signal": macd_signal,
        "macd_histogram": macd_hist,
        "sma20": rolling_sma(c, MA_PERIOD),
        "ema20": rolling_ema(c, MA_PERIOD),
    }

def _last(arr: np.ndarray, fallback: float) -> float:
    if len(arr) == 0:
        return float(fallback)
    v = float(arr[-1])
    return v if math.isfinite(v) else float(fallback)

def _short_ema(c: np.ndarray) -> float:
    prev = float(c[0])
    k = 2.0 / (MA_PERIOD + 1)
    for x in c[1:]:
        prev += k * (float(x) - prev)
    return prev

def snapshot_at(series: Dict[str, np.ndarray], i: int) -> IndicatorSnapshot:
    """Snapshot of precomputed series at bar `i` (all lookbacks must be met)."""
    return IndicatorSnapshot(**{name: float(arr[i]) for name, arr in series.items()})

def compute_indicators(
    closes: Sequence[float], highs: Sequence[float], lows: Sequence[float]
) -> IndicatorSnapshot:
    """Indicator state at the latest bar.

    Never raises on short history and never returns NaN: oscillators fall
    back to their neutral value (RSI/%K 50, %R -50), ATR and MACD to 0, and
    the price bands / averages are computed over whatever bars exist.
    """
    c = np.asarray(closes, dtype=float)
    h = np.asarray(highs, dtype=float)
    l = np.asarray(lows, dtype=float)
    s = compute_indicator_series(c, h, l)

    if len(c):
        tail_c = c[-BB_PERIOD:]
        mid_fb = float(tail_c.mean())
        std_fb = float(tail_c.std())
        donch_lower_fb = float(l[-DONCHIAN_PERIOD:].min())
        donch_upper_fb = float(h[-DONCHIAN_PERIOD:].max())
        sma_fb = float(c[-MA_PERIOD:].mean())
        ema_fb = _short_ema(c)
    else:
        mid_fb = std_fb = donch_lower_fb = donch_upper_fb = sma_fb = ema_fb = 0.0

    macd_line = _last(s["macd"], 0.0)
    if math.isfinite(_last(s["macd_signal"], math.nan)):
        macd_sig = _last(s["macd_signal"], 0.0)
        macd_hist = _last(s["macd_histogram"], 0.0)
    else:
        macd_sig = 0.0
        macd_hist = 0.0

    return IndicatorSnapshot(
        rsi=_last(s["rsi"], 50.0),
        stochastic_k=_last(s["stochastic_k"], 50.0),
        stochastic_d=_last(s["stochastic_d"], 50.0),
        bb_lower=_last(s["bb_lower"], mid_fb - BB_STD * std_fb),
        bb_middle=_last(s["bb_middle"], mid_fb),
        bb_upper=_last(s["bb_upper"], mid_fb + BB_STD * std_fb),
        donch_lower=_last(s["donch_lower"], donch_lower_fb),
        donch_upper=_last(s["donch_upper"], donch_upper_fb),
        williams_r=_last(s["williams_r"], -50.0),
        atr=_last(s["atr"], 0.0),
        macd=macd_line,
        macd_signal=macd_sig,
        macd_histogram=macd_hist,
        sma20=_last(s["sma20"], sma_fb),
        ema20=_last(s["ema20"], ema_fb),
    )
