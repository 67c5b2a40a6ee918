"""Scoring parameters and their JSON form.

Weights are plain frozen dataclasses threaded through every call that
scores a bar. The JSON keys (camelCase) must stay exactly as written here,
persisted configuration files depend on them.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Mapping, Optional, Tuple, Type, TypeVar

from .models import CalibrationParams

T = TypeVar("T")

# json key -> attribute name, in persisted order
INDICATOR_KEYS: Dict[str, str] = {
    "rsi": "rsi",
    "stochastic": "stochastic",
    "bollinger": "bollinger",
    "donchian": "donchian",
    "williamsR": "williams_r",
    "fearGreed": "fear_greed",
    "macd": "macd",
    "sma": "sma",
    "ema": "ema",
}

PATTERN_KEYS: Dict[str, str] = {
    "ascendingTriangle": "ascending_triangle",
    "bullishFlag": "bullish_flag",
    "doubleBottom": "double_bottom",
    "fallingWedge": "falling_wedge",
    "islandReversal": "island_reversal",
}

def merge_weights(
    defaults: Mapping[str, float],
    override: Optional[Mapping[str, Any]],
    kind: str = "weights",
) -> Dict[str, float]:
    """Overlay `override` on `defaults`, rejecting keys that `defaults` lacks.

    Raises ValueError for unknown keys, non-numeric values and negative
    weights.
    """
    merged = {k: float(v) for k, v in defaults.items()}
    if not override:
        return merged
    unknown = sorted(set(override) - set(defaults))
    if unknown:
        raise ValueError(f"unknown {kind} key(s): {', '.join(unknown)} (known: {', '.join(defaults)})")
    for key, value in override.items():
        try:
            num = float(value)
        except (TypeError, ValueError):
            raise ValueError(f"{kind}.{key} must be a number, got {value!r}") from None
        if math.isnan(num) or num < 0:
            raise ValueError(f"{kind}.{key} must be a non-negative number, got {value!r}")
        merged[key] = num
    return merged

def _from_json_keys(cls: Type[T], keys: Mapping[str, str], data: Optional[Mapping[str, Any]], kind: str) -> T:
    defaults = cls()  # type: ignore[call-arg]
    base = {k: getattr(defaults, attr) for k, attr in keys.items()}
    merged = merge_weights(base, data, kind=kind)
    return cls(**{keys[k]: v for k, v in merged.items()})  # type: ignore[call-arg]

def _check_non_negative(obj: Any) -> None:
    for f in fields(obj):
        v = getattr(obj, f.name)
        if v < 0:
            raise ValueError(f"{type(obj).__name__}.{f.name} must be non-negative, got {v}")

@dataclass(frozen=True)
class IndicatorWeights:
    rsi: float = 79.0
    stochastic: float = 76.0
    bollinger: float = 78.0
    donchian: float = 74.0
    williams_r: float = 72.0
    fear_greed: float = 50.0
    macd: float = 70.0
    sma: float = 65.0
    ema: float = 65.0

    def __post_init__(self) -> None:
        _check_non_negative(self)

    def to_dict(self) -> Dict[str, float]:
        return {k: getattr(self, attr) for k, attr in INDICATOR_KEYS.items()}

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "IndicatorWeights":
        return _from_json_keys(cls, INDICATOR_KEYS, data, "indicatorWeights")

@dataclass(frozen=True)
class PatternWeights:
    ascending_triangle: float = 75.0
    bullish_flag: float = 75.0
    double_bottom: float = 70.0
    falling_wedge: float = 70.0
    island_reversal: float = 73.0

    def __post_init__(self) -> None:
        _check_non_negative(self)

    def to_dict(self) -> Dict[str, float]:
        return {k: getattr(self, attr) for k, attr in PATTERN_KEYS.items()}

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "PatternWeights":
        return _from_json_keys(cls, PATTERN_KEYS, data, "patternWeights")

@dataclass(frozen=True)
class Thresholds:
    buy: int = 200
    sell: int = 200

    def __post_init__(self) -> None:
        for name in ("buy", "sell"):
            v = getattr(self, name)
            if isinstance(v, bool) or not isinstance(v, int) or v <= 0:
                raise ValueError(f"thresholds.{name} must be a positive integer, got {v!r}")

    def to_dict(self) -> Dict[str, int]:
        return {"buy": self.buy, "sell": self.sell}

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "Thresholds":
        merged = merge_weights({"buy": 200, "sell": 200}, data, kind="thresholds")
        out = {}
        for k, v in merged.items():
            if not float(v).is_integer():
                raise ValueError(f"thresholds.{k} must be an integer, got {v!r}")
            out[k] = int(v)
        return cls(**out)

def calibration_from_dict(data: Optional[Mapping[str, Any]]) -> CalibrationParams:
    base = CalibrationParams()
    if not data:
        return base
    unknown = sorted(set(data) - {"slope", "intercept"})
    if unknown:
        raise ValueError(f"unknown calibration key(s): {', '.join(unknown)}")
    return CalibrationParams(
        slope=float(data.get("slope", base.slope)),
        intercept=float(data.get("intercept", base.intercept)),
    )

@dataclass(frozen=True)
class OptimizationParams:
    indicator_weights: IndicatorWeights = field(default_factory=IndicatorWeights)
    pattern_weights: PatternWeights = field(default_factory=PatternWeights)
    thresholds: Thresholds = field(default_factory=Thresholds)
    calibration: CalibrationParams = field(default_factory=CalibrationParams)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "indicatorWeights": self.indicator_weights.to_dict(),
            "patternWeights": self.pattern_weights.to_dict(),
            "thresholds": self.thresholds.to_dict(),
            "calibration": self.calibration.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "OptimizationParams":
        """Build params from the persisted JSON shape; missing sections use defaults."""
        unknown = sorted(set(data) - {"indicatorWeights", "patternWeights", "thresholds", "calibration"})
        if unknown:
            raise ValueError(f"unknown params section(s): {', '.join(unknown)}")
        return cls(
            indicator_weights=IndicatorWeights.from_dict(data.get("indicatorWeights")),
            pattern_weights=PatternWeights.from_dict(data.get("patternWeights")),
            thresholds=Thresholds.from_dict(data.get("thresholds")),
            calibration=calibration_from_dict(data.get("calibration")),
        )

@dataclass(frozen=True)
class RiskConfig:
    risk_multiplier: float = 1.5
    reward_multiplier: float = 2.0
    trailing_multiplier: float = 1.2
    trailing_activation_multiplier: float = 0.5

# Sampling ranges used by the random search: (low, high)
INDICATOR_WEIGHT_RANGE: Tuple[float, float] = (50.0, 100.0)
FEAR_GREED_WEIGHT_RANGE: Tuple[float, float] = (20.0, 80.0)
PATTERN_WEIGHT_RANGE: Tuple[float, float] = (50.0, 100.0)
THRESHOLD_RANGE: Tuple[int, int] = (150, 250)
SLOPE_RANGE: Tuple[float, float] = (0.005, 0.02)
INTERCEPT_RANGE: Tuple[float, float] = (-2.0, 0.0)
