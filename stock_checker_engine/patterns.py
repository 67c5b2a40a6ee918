"""Bullish chart pattern predicates over the most recent bars.

Each detector looks only at a fixed trailing window and returns False when
the series is shorter than that window.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from .models import PatternResult
from .params import PatternWeights

def is_ascending_triangle(highs: Sequence[float], lows: Sequence[float]) -> bool:
    """Flat top (last 5 highs within 1%) with non-decreasing lows."""
    recent_highs = list(highs[-5:])
    recent_lows = list(lows[-5:])
    if len(recent_highs) < 5 or len(recent_lows) < 5:
        return False
    max_high = max(recent_highs)
    min_high = min(recent_highs)
    if max_high <= 0:
        return False
    flat_top = (max_high - min_high) / max_high < 0.01
    rising_lows = all(recent_lows[i] >= recent_lows[i - 1] for i in range(1, len(recent_lows)))
    return flat_top and rising_lows

def is_bullish_flag(closes: Sequence[float]) -> bool:
    """>5% run-up from the start of the last 10 closes, total range under 5%."""
    recent = list(closes[-10:])
    if len(recent) < 10:
        return False
    first = recent[0]
    hi = max(recent)
    lo = min(recent)
    if first <= 0 or hi <= 0:
        return False
    strong_up = (hi - first) / first > 0.05
    tight_range = (hi - lo) / hi < 0.05
    return strong_up and tight_range

def is_double_bottom(lows: Sequence[float]) -> bool:
    recent = list(lows[-20:])
    if len(recent) < 20:
        return False
    first_min = min(recent[:10])
    second_min = min(recent[10:])
    mean = (first_min + second_min) / 2
    if mean <= 0:
        return False
    return abs(first_min - second_min) / mean < 0.02

def is_falling_wedge(highs: Sequence[float], lows: Sequence[float]) -> bool:
    """Last 6 highs and lows strictly falling, highs falling faster than lows."""
    recent_highs = list(highs[-6:])
    recent_lows = list(lows[-6:])
    if len(recent_highs) < 6 or len(recent_lows) < 6:
        return False
    lower_highs = all(recent_highs[i] < recent_highs[i - 1] for i in range(1, 6))
    lower_lows = all(recent_lows[i] < recent_lows[i - 1] for i in range(1, 6))
    high_slope = recent_highs[0] - recent_highs[-1]
    low_slope = recent_lows[0] - recent_lows[-1]
    return lower_highs and lower_lows and high_slope > low_slope

def is_island_reversal(closes: Sequence[float]) -> bool:
    """5% gap down between closes 0->1 then 5% gap up between closes 2->3 (last 5)."""
    recent = list(closes[-5:])
    if len(recent) < 5:
        return False
    gap_down = recent[1] < recent[0] * 0.95
    gap_up = recent[3] > recent[2] * 1.05
    return gap_down and gap_up

# (name, weight attribute, predicate over (highs, lows, closes)); order is part of the output
_DETECTORS: Tuple[Tuple[str, str, Callable[[Sequence[float], Sequence[float], Sequence[float]], bool]], ...] = (
    ("AscendingTriangle", "ascending_triangle", lambda h, l, c: is_ascending_triangle(h, l)),
    ("BullishFlag", "bullish_flag", lambda h, l, c: is_bullish_flag(c)),
    ("DoubleBottom", "double_bottom", lambda h, l, c: is_double_bottom(l)),
    ("FallingWedge", "falling_wedge", lambda h, l, c: is_falling_wedge(h, l)),
    ("IslandReversal", "island_reversal", lambda h, l, c: is_island_reversal(c)),
)

PATTERN_NAMES: Tuple[str, ...] = tuple(name for name, _, _ in _DETECTORS)
_WEIGHT_ATTR: Dict[str, str] = {name: attr for name, attr, _ in _DETECTORS}

# longest detector window; older bars never change the result
MAX_PATTERN_WINDOW = 20

def find_patterns(highs: Sequence[float], lows: Sequence[float], closes: Sequence[float]) -> List[str]:
    """Names of the detectors that fire, in detection order."""
    return [name for name, _, predicate in _DETECTORS if predicate(highs, lows, closes)]

def score_patterns(names: Iterable[str], weights: PatternWeights) -> float:
    return float(sum(getattr(weights, _WEIGHT_ATTR[name]) for name in names))

def detect_patterns(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    weights: Optional[Union[PatternWeights, Mapping[str, Any]]] = None,
) -> PatternResult:
    """Run every detector in fixed order, summing the weights of those that fire.

    `weights` may be a PatternWeights or a partial JSON-keyed mapping that is
    merged onto the defaults (unknown keys raise ValueError).
    """
    if weights is None:
        w = PatternWeights()
    elif isinstance(weights, PatternWeights):
        w = weights
    else:
        w = PatternWeights.from_dict(weights)

    found = find_patterns(highs, lows, closes)
    return PatternResult(score=score_patterns(found, w), patterns=found)
