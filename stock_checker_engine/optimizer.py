from __future__ import annotations

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np

from .backtester import DEFAULT_INITIAL_CAPITAL, NEUTRAL_SENTIMENT, SIGNAL_START_INDEX, Backtester
from .models import BacktestMetrics, CalibrationParams, Candle
from .params import (
    FEAR_GREED_WEIGHT_RANGE,
    INDICATOR_KEYS,
    INDICATOR_WEIGHT_RANGE,
    INTERCEPT_RANGE,
    PATTERN_KEYS,
    PATTERN_WEIGHT_RANGE,
    SLOPE_RANGE,
    THRESHOLD_RANGE,
    IndicatorWeights,
    OptimizationParams,
    PatternWeights,
    Thresholds,
)

MIN_BARS = 200
DEFAULT_TRIALS = 50
DEFAULT_STRATEGY_NAME = "stock_checker_score"

class InsufficientDataError(ValueError):
    """Not enough bars for a meaningful backtest."""

class OptimizationError(RuntimeError):
    """No trial produced a finite objective."""

@dataclass
class OptimizationResult:
    strategy: str
    symbol: str
    best_value: float
    best_params: OptimizationParams
    n_trials: int
    metrics: BacktestMetrics

    def to_dict(self) -> Dict[str, Any]:
        return {
            "strategy": self.strategy,
            "symbol": self.symbol,
            "bestValue": self.best_value,
            "bestParams": self.best_params.to_dict(),
            "nTrials": self.n_trials,
            "metrics": self.metrics.to_dict(),
        }

@dataclass
class SearchOutcome:
    best_index: int
    best_value: float
    best_params: OptimizationParams
    best_metrics: Any
    n_trials: int
    n_valid: int

def objective_value(
    metrics: BacktestMetrics,
    max_drawdown_limit: float = 30.0,
    sharpe_weight: float = 0.7,
    drawdown_weight: float = 0.3,
) -> float:
    """sharpe*0.7 - drawdown%*0.01*0.3; -inf once drawdown exceeds the limit."""
    sharpe = 0.0 if math.isnan(metrics.sharpe_ratio) else metrics.sharpe_ratio
    dd = 100.0 if math.isnan(metrics.max_drawdown) else metrics.max_drawdown
    if dd > max_drawdown_limit:
        return -math.inf
    return sharpe * sharpe_weight - dd * 0.01 * drawdown_weight

class SearchStrategy:
    """Source of candidate parameter sets for `search`."""

    name = "base"

    def propose(self, n_trials: int) -> List[OptimizationParams]:
        raise NotImplementedError

class RandomSearch(SearchStrategy):
    """Uniform random sampling of every weight, threshold and calibration value."""

    name = "random"

    def __init__(self, seed: Optional[int] = None, rng: Optional[np.random.Generator] = None):
        self.rng = rng if rng is not None else np.random.default_rng(seed)

    def _uniform(self, bounds: Tuple[float, float]) -> float:
        lo, hi = bounds
        return float(self.rng.uniform(lo, hi))

    def sample(self) -> OptimizationParams:
        indicator = {
            attr: self._uniform(FEAR_GREED_WEIGHT_RANGE if key == "fearGreed" else INDICATOR_WEIGHT_RANGE)
            for key, attr in INDICATOR_KEYS.items()
        }
        pattern = {attr: self._uniform(PATTERN_WEIGHT_RANGE) for attr in PATTERN_KEYS.values()}
        t_lo, t_hi = THRESHOLD_RANGE
        return OptimizationParams(
            indicator_weights=IndicatorWeights(**indicator),
            pattern_weights=PatternWeights(**pattern),
            thresholds=Thresholds(
                buy=int(self.rng.integers(t_lo, t_hi, endpoint=True)),
                sell=int(self.rng.integers(t_lo, t_hi, endpoint=True)),
            ),
            calibration=CalibrationParams(
                slope=self._uniform(SLOPE_RANGE),
                intercept=self._uniform(INTERCEPT_RANGE),
            ),
        )

    def propose(self, n_trials: int) -> List[OptimizationParams]:
        return [self.sample() for _ in range(max(0, int(n_trials)))]

def search(
    objective: Callable[[OptimizationParams], Tuple[float, Any]],
    strategy: SearchStrategy,
    n_trials: int,
    max_workers: int = 1,
) -> SearchOutcome:
    """Evaluate `n_trials` proposals and keep the best.

    `objective` returns (value, payload). All proposals are drawn before any
    is evaluated, and the earliest trial wins exact ties, so the result does
    not depend on `max_workers`.
    """
    candidates = strategy.propose(n_trials)
    if max_workers > 1 and len(candidates) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            results = list(pool.map(objective, candidates))
    else:
        results = [objective(p) for p in candidates]

    best_index = -1
    best_value = -math.inf
    n_valid = 0
    for i, (value, _payload) in enumerate(results):
        if math.isfinite(value):
            n_valid += 1
        if value > best_value:
            best_value = value
            best_index = i
            logging.info("new best trial %d: value=%.4f", i, value)
        if i % 10 == 0:
            logging.info("trial %d/%d complete", i, len(results))

    if best_index < 0 or not math.isfinite(best_value):
        raise OptimizationError(
            f"optimization failed to find valid parameters ({len(results)} trials, none finite)"
        )
    return SearchOutcome(
        best_index=best_index,
        best_value=best_value,
        best_params=candidates[best_index],
        best_metrics=results[best_index][1],
        n_trials=len(results),
        n_valid=n_valid,
    )

def optimize(
    symbol: str,
    candles: Sequence[Candle],
    n_trials: int = DEFAULT_TRIALS,
    strategy: Optional[SearchStrategy] = None,
    *,
    strategy_name: str = DEFAULT_STRATEGY_NAME,
    min_bars: int = MIN_BARS,
    initial_capital: float = DEFAULT_INITIAL_CAPITAL,
    start_index: int = SIGNAL_START_INDEX,
    sentiment: Optional[float] = NEUTRAL_SENTIMENT,
    max_drawdown_limit: float = 30.0,
    sharpe_weight: float = 0.7,
    drawdown_weight: float = 0.3,
    max_workers: int = 1,
    seed: Optional[int] = None,
) -> OptimizationResult:
    """Search scoring params that maximise the risk-adjusted backtest objective.

    Raises InsufficientDataError below `min_bars` bars and OptimizationError
    when no trial stays within the drawdown limit.
    """
    if len(candles) < min_bars:
        raise InsufficientDataError(f"insufficient data for {symbol}: {len(candles)} bars (need {min_bars})")

    logging.info("starting optimization for %s on %s (%d trials)", strategy_name, symbol, n_trials)
    backtester = Backtester(candles, start_index=start_index, sentiment=sentiment)

    def _objective(params: OptimizationParams) -> Tuple[float, BacktestMetrics]:
        metrics = backtester.run(params, initial_capital)
        value = objective_value(
            metrics,
            max_drawdown_limit=max_drawdown_limit,
            sharpe_weight=sharpe_weight,
            drawdown_weight=drawdown_weight,
        )
        return value, metrics

    outcome = search(_objective, strategy or RandomSearch(seed=seed), n_trials, max_workers=max_workers)
    m: BacktestMetrics = outcome.best_metrics
    logging.info(
        "best trial %d: value=%.4f sharpe=%.2f dd=%.2f%% trades=%d (%d/%d valid)",
        outcome.best_index,
        outcome.best_value,
        m.sharpe_ratio,
        m.max_drawdown,
        m.total_trades,
        outcome.n_valid,
        outcome.n_trials,
    )
    return OptimizationResult(
        strategy=strategy_name,
        symbol=symbol,
        best_value=outcome.best_value,
        best_params=outcome.best_params,
        n_trials=outcome.n_trials,
        metrics=m,
    )
