"""Score past predictions against the prices that followed them.

A BUY counts as correct when the close 5-10 calendar days later is more
than 2% above the prediction's close, a SELL when it is more than 2% below.
Predictions without a later close in that window are left out of the
sample, not counted as wrong.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .models import BUY, HOLD, SELL, AccuracyMetrics, Candle, MatchedPrediction, PredictionRecord

CORRECT_CHANGE = 0.02
SEARCH_EXTRA_DAYS = 5

PriceHistory = Mapping[str, Mapping[str, float]]

@dataclass
class EvaluationReport:
    metrics: AccuracyMetrics
    matched: List[MatchedPrediction] = field(default_factory=list)
    n_supplied: int = 0
    n_eligible: int = 0  # non-HOLD predictions
    n_matched: int = 0

    @property
    def drop_rate(self) -> float:
        """Share of eligible predictions that found no future price."""
        if self.n_eligible == 0:
            return 0.0
        return 1.0 - self.n_matched / self.n_eligible

    def to_dict(self) -> Dict[str, object]:
        return {
            "metrics": self.metrics.to_dict(),
            "supplied": self.n_supplied,
            "eligible": self.n_eligible,
            "matched": self.n_matched,
            "dropRate": round(self.drop_rate, 4),
        }

def build_price_history(candles_by_ticker: Mapping[str, Sequence[Candle]]) -> Dict[str, Dict[str, float]]:
    """{ticker: {YYYY-MM-DD: close}}"""
    return {ticker: {c.date: float(c.close) for c in candles} for ticker, candles in candles_by_ticker.items()}

def _find_future_close(
    history: Mapping[str, float], start: date, days_forward: int
) -> Optional[Tuple[str, float]]:
    for offset in range(days_forward, days_forward + SEARCH_EXTRA_DAYS + 1):
        key = (start + timedelta(days=offset)).isoformat()
        if key in history:
            return key, float(history[key])
    return None

def is_correct(opinion: str, change: float) -> bool:
    if opinion == BUY:
        return change > CORRECT_CHANGE
    if opinion == SELL:
        return change < -CORRECT_CHANGE
    return False

def match_predictions(
    predictions: Iterable[PredictionRecord],
    price_history: PriceHistory,
    days_forward: int = 5,
) -> List[MatchedPrediction]:
    matched: List[MatchedPrediction] = []
    for p in predictions:
        if p.opinion == HOLD:
            continue
        history = price_history.get(p.ticker)
        if not history:
            continue
        try:
            start = date.fromisoformat(str(p.date)[:10])
        except ValueError:
            continue
        current = float(p.close)
        if current == 0:
            continue
        found = _find_future_close(history, start, days_forward)
        if found is None:
            continue
        outcome_date, future = found
        change = (future - current) / current
        matched.append(
            MatchedPrediction(
                prediction=p,
                future_price=future,
                outcome_date=outcome_date,
                change=change,
                is_correct=is_correct(p.opinion, change),
            )
        )
    return matched

def calculate_metrics(matched: Sequence[MatchedPrediction]) -> AccuracyMetrics:
    """Hit rate over the matched sample.

    precision and recall are both hit_rate/100: a single accuracy proxy,
    not a per-class confusion matrix.
    """
    total = len(matched)
    if total == 0:
        return AccuracyMetrics()
    correct = sum(1 for m in matched if m.is_correct)
    hit_rate = correct / total * 100.0
    precision = hit_rate / 100.0
    recall = hit_rate / 100.0
    f1 = 0.0 if precision + recall == 0 else 2 * precision * recall / (precision + recall)
    return AccuracyMetrics(
        hit_rate=hit_rate,
        precision=precision,
        recall=recall,
        f1_score=f1,
        total_predictions=total,
        correct_predictions=correct,
    )

def match_and_evaluate(
    predictions: Sequence[PredictionRecord],
    price_history: PriceHistory,
    days_forward: int = 5,
) -> EvaluationReport:
    matched = match_predictions(predictions, price_history, days_forward=days_forward)
    return EvaluationReport(
        metrics=calculate_metrics(matched),
        matched=matched,
        n_supplied=len(predictions),
        n_eligible=sum(1 for p in predictions if p.opinion != HOLD),
        n_matched=len(matched),
    )

def calibration_samples(matched: Iterable[MatchedPrediction]) -> Tuple[List[float], List[bool]]:
    """(scores, outcomes) for matched predictions that recorded a score."""
    scores: List[float] = []
    outcomes: List[bool] = []
    for m in matched:
        if m.prediction.score is None:
            continue
        scores.append(float(m.prediction.score))
        outcomes.append(bool(m.is_correct))
    return scores, outcomes
