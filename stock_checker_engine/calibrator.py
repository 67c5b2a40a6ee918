"""Platt scaling: raw opinion scores -> calibrated probabilities."""

from __future__ import annotations

import math
from typing import Optional, Sequence

from .models import BUY, HOLD, SELL, CalibrationParams, CalibrationResult, ProbabilityResult

SLOPE_GRID = (0.005, 0.01, 0.015, 0.02)
INTERCEPT_GRID = (-2.0, -1.5, -1.0, -0.5, 0.0)
DEFAULT_CALIBRATION = CalibrationParams()

def sigmoid(score: float, slope: float = 0.01, intercept: float = -1.0) -> float:
    z = slope * score + intercept
    if z >= 0:
        return 1.0 / (1.0 + math.exp(-z))
    ez = math.exp(z)
    return ez / (1.0 + ez)

def brier_score(
    scores: Sequence[float], outcomes: Sequence[bool], slope: float, intercept: float
) -> float:
    total = 0.0
    for s, o in zip(scores, outcomes):
        total += (sigmoid(s, slope, intercept) - (1.0 if o else 0.0)) ** 2
    return total / len(scores)

def fit_platt_scaling(
    scores: Sequence[float],
    outcomes: Sequence[bool],
    slopes: Sequence[float] = SLOPE_GRID,
    intercepts: Sequence[float] = INTERCEPT_GRID,
) -> CalibrationResult:
    """Grid-search the (slope, intercept) pair with the lowest mean Brier score.

    Single in-sample fit. Empty input returns the default pair with no
    Brier score. The first minimum in grid order wins ties.
    """
    if len(scores) != len(outcomes):
        raise ValueError(f"scores/outcomes length mismatch: {len(scores)} != {len(outcomes)}")
    if len(scores) == 0:
        return CalibrationResult(DEFAULT_CALIBRATION.slope, DEFAULT_CALIBRATION.intercept, None)

    best_brier = math.inf
    best = DEFAULT_CALIBRATION
    for slope in slopes:
        for intercept in intercepts:
            b = brier_score(scores, outcomes, slope, intercept)
            if b < best_brier:
                best_brier = b
                best = CalibrationParams(slope=float(slope), intercept=float(intercept))
    return CalibrationResult(best.slope, best.intercept, best_brier)

def confidence_tier(max_probability: float) -> str:
    if max_probability >= 75:
        return "very-high"
    if max_probability >= 60:
        return "high"
    if max_probability >= 40:
        return "medium"
    return "low"

def to_probabilities(
    buy_score: float,
    sell_score: float,
    slope: float = DEFAULT_CALIBRATION.slope,
    intercept: float = DEFAULT_CALIBRATION.intercept,
    calibration: Optional[CalibrationParams] = None,
) -> ProbabilityResult:
    """Three-way BUY/SELL/HOLD probabilities in percent, summing to 100.

    Each side is squashed independently; HOLD takes whatever probability
    mass is left (never negative) and the three are renormalised.
    """
    if calibration is not None:
        slope, intercept = calibration.slope, calibration.intercept
    buy_p = sigmoid(buy_score, slope, intercept)
    sell_p = sigmoid(sell_score, slope, intercept)
    hold_p = max(0.0, 1.0 - buy_p - sell_p)

    total = buy_p + sell_p + hold_p
    buy_pct = buy_p / total * 100.0
    sell_pct = sell_p / total * 100.0
    buy_r = round(buy_pct, 1)
    sell_r = round(sell_pct, 1)
    # hold absorbs the rounding so the three still add up to 100
    hold_r = max(0.0, round(100.0 - buy_r - sell_r, 1))

    return ProbabilityResult(
        buy_probability=buy_r,
        sell_probability=sell_r,
        hold_probability=hold_r,
        confidence=confidence_tier(max(buy_pct, sell_pct)),
    )

def decision_from_probabilities(result: ProbabilityResult) -> str:
    b, s, h = result.buy_probability, result.sell_probability, result.hold_probability
    if b > s and b > h:
        return BUY
    if s > b and s > h:
        return SELL
    return HOLD
