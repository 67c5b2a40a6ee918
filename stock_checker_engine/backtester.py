from __future__ import annotations

import math
from typing import Dict, List, Optional, Sequence

import numpy as np

from .indicators import compute_indicator_series, snapshot_at
from .models import BUY, HOLD, SELL, BacktestMetrics, Candle, Trade
from .params import OptimizationParams
from .patterns import MAX_PATTERN_WINDOW, find_patterns, score_patterns
from .scoring import score_decision

# First bar that gets a signal: MACD(26) + signal(9) lookback plus margin.
SIGNAL_START_INDEX = 50
DEFAULT_INITIAL_CAPITAL = 10000.0
# Historical sentiment is not available; every bar is scored as neutral.
NEUTRAL_SENTIMENT = 50.0
ANNUALIZATION = math.sqrt(252)

class Backtester:
    """Long-only replay of one price series through the scoring engine.

    Indicator series and per-bar pattern hits do not depend on the candidate
    params, so they are computed once and reused by every `run`.
    """

    def __init__(
        self,
        candles: Sequence[Candle],
        start_index: int = SIGNAL_START_INDEX,
        sentiment: Optional[float] = NEUTRAL_SENTIMENT,
    ):
        self.candles = list(candles)
        self.start_index = max(0, int(start_index))
        self.sentiment = sentiment
        self.closes = np.asarray([c.close for c in self.candles], dtype=float)
        self.highs = np.asarray([c.high for c in self.candles], dtype=float)
        self.lows = np.asarray([c.low for c in self.candles], dtype=float)
        self.dates = [c.date for c in self.candles]
        self.series = compute_indicator_series(self.closes, self.highs, self.lows)
        self._patterns: Dict[int, List[str]] = {}
        for i in range(self.start_index, len(self.candles)):
            lo = max(0, i - MAX_PATTERN_WINDOW + 1)
            found = find_patterns(self.highs[lo : i + 1], self.lows[lo : i + 1], self.closes[lo : i + 1])
            if found:
                self._patterns[i] = found

    def _ready(self, i: int) -> bool:
        return all(math.isfinite(float(arr[i])) for arr in self.series.values())

    def generate_signals(self, params: OptimizationParams) -> List[str]:
        """One BUY/SELL/HOLD per bar; bars before the start index stay HOLD."""
        signals = [HOLD] * len(self.candles)
        for i in range(self.start_index, len(self.candles)):
            if not self._ready(i):
                continue
            pattern_score = score_patterns(self._patterns.get(i, ()), params.pattern_weights)
            decision = score_decision(
                snapshot_at(self.series, i),
                float(self.closes[i]),
                pattern_score,
                self.sentiment,
                params.indicator_weights,
                params.thresholds,
            )
            signals[i] = decision.decision
        return signals

    def run(self, params: OptimizationParams, initial_capital: float = DEFAULT_INITIAL_CAPITAL) -> BacktestMetrics:
        signals = self.generate_signals(params)
        trades = simulate_trades(signals, self.closes, self.dates)
        return calculate_metrics(trades, initial_capital)

def _close_trade(entry_price: float, entry_date: str, exit_price: float, exit_date: str) -> Trade:
    profit = exit_price - entry_price
    pct = (profit / entry_price * 100.0) if entry_price else 0.0
    return Trade(
        entry_date=entry_date,
        exit_date=exit_date,
        entry_price=entry_price,
        exit_price=exit_price,
        direction="long",
        profit=profit,
        profit_percent=pct,
    )

def simulate_trades(signals: Sequence[str], closes: Sequence[float], dates: Sequence[str]) -> List[Trade]:
    """Flat -> Long on BUY, Long -> Flat on SELL, both at the bar's close.

    An open position at the last bar is closed against the last close.
    """
    if not (len(signals) == len(closes) == len(dates)):
        raise ValueError("signals/closes/dates length mismatch")

    trades: List[Trade] = []
    entry_price: Optional[float] = None
    entry_date = ""
    for signal, price, date in zip(signals, closes, dates):
        price = float(price)
        if entry_price is not None and signal == SELL:
            trades.append(_close_trade(entry_price, entry_date, price, date))
            entry_price = None
        elif entry_price is None and signal == BUY:
            entry_price = price
            entry_date = date

    if entry_price is not None:
        trades.append(_close_trade(entry_price, entry_date, float(closes[-1]), dates[-1]))
    return trades

def calculate_metrics(trades: Sequence[Trade], initial_capital: float = DEFAULT_INITIAL_CAPITAL) -> BacktestMetrics:
    """Trade-level performance with full reinvestment.

    Sharpe is mean/stddev of per-trade returns times sqrt(252); this
    annualises trade returns, not daily ones.
    """
    n = len(trades)
    if n == 0:
        return BacktestMetrics(0.0, 0.0, 0.0, 0, 0.0, 0.0)

    rets = np.asarray([t.profit_percent / 100.0 for t in trades], dtype=float)
    std = float(rets.std())
    sharpe = float(rets.mean() / std * ANNUALIZATION) if std > 0 else 0.0

    eq = float(initial_capital) * np.cumprod(1.0 + rets)
    peak = np.maximum.accumulate(np.concatenate(([float(initial_capital)], eq)))[1:]
    dd = (peak - eq) / peak
    mdd = float(dd.max()) * 100.0

    wins = int(sum(1 for t in trades if t.profit > 0))
    gross_profit = float(rets[rets > 0].sum())
    gross_loss = float(-rets[rets < 0].sum())
    pf = gross_profit / gross_loss if gross_loss > 0 else 0.0

    return BacktestMetrics(
        sharpe_ratio=sharpe,
        max_drawdown=mdd,
        win_rate=wins / n * 100.0,
        total_trades=n,
        profit_factor=float(pf),
        total_return=float((eq[-1] - initial_capital) / initial_capital),
    )

def generate_signals(
    candles: Sequence[Candle],
    params: OptimizationParams,
    start_index: int = SIGNAL_START_INDEX,
    sentiment: Optional[float] = NEUTRAL_SENTIMENT,
) -> List[str]:
    return Backtester(candles, start_index=start_index, sentiment=sentiment).generate_signals(params)

def run_backtest(
    candles: Sequence[Candle],
    params: OptimizationParams,
    initial_capital: float = DEFAULT_INITIAL_CAPITAL,
    start_index: int = SIGNAL_START_INDEX,
    sentiment: Optional[float] = NEUTRAL_SENTIMENT,
) -> BacktestMetrics:
    """Signals -> trades -> metrics for one candidate parameter set."""
    return Backtester(candles, start_index=start_index, sentiment=sentiment).run(params, initial_capital)
