from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Any, Callable, Dict, List, Optional, Sequence

from .calibrator import to_probabilities
from .data import fetch_candles
from .indicators import compute_indicators
from .models import Candle
from .params import OptimizationParams, RiskConfig
from .patterns import detect_patterns
from .scoring import build_risk_envelope, score_decision

CandleLoader = Callable[[str, int], List[Candle]]

def analyze_candles(
    ticker: str,
    candles: Sequence[Candle],
    sentiment: Optional[float],
    params: OptimizationParams,
    risk: Optional[RiskConfig] = None,
) -> Dict[str, Any]:
    """Opinion, risk envelope and probabilities for the latest bar of `candles`."""
    if not candles:
        return {"ok": False, "ticker": ticker, "error": "no_price_data"}

    latest = candles[-1]
    closes = [c.close for c in candles]
    highs = [c.high for c in candles]
    lows = [c.low for c in candles]

    snap = compute_indicators(closes, highs, lows)
    patterns = detect_patterns(highs, lows, closes, params.pattern_weights)
    decision = score_decision(
        snap,
        latest.close,
        patterns.score,
        sentiment,
        params.indicator_weights,
        params.thresholds,
    )
    envelope = build_risk_envelope(latest.close, snap.atr, decision.decision, risk)
    probs = to_probabilities(decision.buy_score, decision.sell_score, calibration=params.calibration)

    return {
        "ok": True,
        "ticker": ticker,
        "date": latest.date,
        "close": latest.close,
        "volume": latest.volume,
        "bars": len(candles),
        "fear_greed": sentiment,
        "indicators": asdict(snap),
        "patterns": list(patterns.patterns),
        "pattern_score": patterns.score,
        "opinion": decision.decision,
        "score": decision.score,
        "buy_score": decision.buy_score,
        "sell_score": decision.sell_score,
        "risk": asdict(envelope),
        "probabilities": asdict(probs),
    }

def recommend_ticker(
    ticker: str,
    params: OptimizationParams,
    sentiment: Optional[float],
    *,
    days: int = 365,
    risk: Optional[RiskConfig] = None,
    loader: Optional[CandleLoader] = None,
) -> Dict[str, Any]:
    logging.info("processing ticker %s", ticker)
    candles = (loader or fetch_candles)(ticker, days)
    if not candles:
        logging.warning("no price data for %s", ticker)
    return analyze_candles(ticker, candles, sentiment, params, risk)

def to_prediction_record(result: Dict[str, Any]) -> Dict[str, Any]:
    """Feedback-file row for one analysis result (read back by the evaluator)."""
    ind = result["indicators"]
    probs = result["probabilities"]
    return {
        "ticker": result["ticker"],
        "date": result["date"],
        "opinion": result["opinion"],
        "score": result["score"],
        "buyProbability": probs["buy_probability"],
        "sellProbability": probs["sell_probability"],
        "holdProbability": probs["hold_probability"],
        "confidence": probs["confidence"],
        "close": result["close"],
        "indicators": {
            "rsi": ind["rsi"],
            "stochasticK": ind["stochastic_k"],
            "williamsR": ind["williams_r"],
            "patternScore": result["pattern_score"],
            "macd": ind["macd"],
            "macdSignal": ind["macd_signal"],
            "macdHistogram": ind["macd_histogram"],
            "sma20": ind["sma20"],
            "ema20": ind["ema20"],
        },
    }
