from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

BUY = "BUY"
SELL = "SELL"
HOLD = "HOLD"

@dataclass(frozen=True)
class Candle:
    date: str  # YYYY-MM-DD
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0
    adj_close: Optional[float] = None

@dataclass(frozen=True)
class IndicatorSnapshot:
    """Indicator values at the latest bar of a series."""

    rsi: float
    stochastic_k: float
    stochastic_d: float
    bb_lower: float
    bb_middle: float
    bb_upper: float
    donch_lower: float
    donch_upper: float
    williams_r: float
    atr: float
    macd: float
    macd_signal: float
    macd_histogram: float
    sma20: float
    ema20: float

    def to_dict(self) -> Dict[str, float]:
        return {
            "rsi": self.rsi,
            "stochasticK": self.stochastic_k,
            "stochasticD": self.stochastic_d,
            "bbLower": self.bb_lower,
            "bbMiddle": self.bb_middle,
            "bbUpper": self.bb_upper,
            "donchLower": self.donch_lower,
            "donchUpper": self.donch_upper,
            "williamsR": self.williams_r,
            "atr": self.atr,
            "macd": self.macd,
            "macdSignal": self.macd_signal,
            "macdHistogram": self.macd_histogram,
            "sma20": self.sma20,
            "ema20": self.ema20,
        }

@dataclass
class PatternResult:
    score: float = 0.0
    patterns: List[str] = field(default_factory=list)

@dataclass(frozen=True)
class Decision:
    decision: str
    score: float
    buy_score: float
    sell_score: float

@dataclass(frozen=True)
class RiskEnvelope:
    stop_loss: float
    take_profit: float
    trailing_stop: float
    trailing_start: float

    def to_dict(self) -> Dict[str, float]:
        return {
            "stopLoss": self.stop_loss,
            "takeProfit": self.take_profit,
            "trailingStop": self.trailing_stop,
            "trailingStart": self.trailing_start,
        }

@dataclass(frozen=True)
class ProbabilityResult:
    buy_probability: float
    sell_probability: float
    hold_probability: float
    confidence: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "buyProbability": self.buy_probability,
            "sellProbability": self.sell_probability,
            "holdProbability": self.hold_probability,
            "confidence": self.confidence,
        }

@dataclass(frozen=True)
class CalibrationParams:
    slope: float = 0.01
    intercept: float = -1.0

    def to_dict(self) -> Dict[str, float]:
        return {"slope": self.slope, "intercept": self.intercept}

@dataclass(frozen=True)
class CalibrationResult:
    slope: float
    intercept: float
    brier_score: Optional[float]

    @property
    def params(self) -> CalibrationParams:
        return CalibrationParams(slope=self.slope, intercept=self.intercept)

    def to_dict(self) -> Dict[str, Any]:
        return {"slope": self.slope, "intercept": self.intercept, "brierScore": self.brier_score}

@dataclass(frozen=True)
class Trade:
    entry_date: str
    exit_date: str
    entry_price: float
    exit_price: float
    direction: str
    profit: float
    profit_percent: float

@dataclass
class BacktestMetrics:
    sharpe_ratio: float
    max_drawdown: float  # percent
    win_rate: float  # percent
    total_trades: int
    profit_factor: float
    total_return: float  # fraction

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sharpeRatio": self.sharpe_ratio,
            "maxDrawdown": self.max_drawdown,
            "winRate": self.win_rate,
            "totalTrades": self.total_trades,
            "profitFactor": self.profit_factor,
            "return": self.total_return,
        }

@dataclass(frozen=True)
class PredictionRecord:
    date: str
    ticker: str
    opinion: str
    close: float
    score: Optional[float] = None

@dataclass(frozen=True)
class MatchedPrediction:
    prediction: PredictionRecord
    future_price: float
    outcome_date: str
    change: float
    is_correct: bool

@dataclass
class AccuracyMetrics:
    hit_rate: float = 0.0
    precision: float = 0.0
    recall: float = 0.0
    f1_score: float = 0.0
    total_predictions: int = 0
    correct_predictions: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hitRate": self.hit_rate,
            "precision": self.precision,
            "recall": self.recall,
            "f1Score": self.f1_score,
            "totalPredictions": self.total_predictions,
            "correctPredictions": self.correct_predictions,
        }
