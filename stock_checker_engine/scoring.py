from __future__ import annotations

from typing import Optional

from .models import BUY, HOLD, SELL, Decision, IndicatorSnapshot, RiskEnvelope
from .params import IndicatorWeights, RiskConfig, Thresholds

def score_decision(
    snapshot: IndicatorSnapshot,
    close: float,
    pattern_score: float,
    sentiment: Optional[float],
    weights: IndicatorWeights,
    thresholds: Thresholds,
) -> Decision:
    """Weighted BUY/SELL/HOLD opinion for one bar.

    Buy and sell scores accumulate independently; patterns are bullish-only
    and add to the buy side. A missing sentiment counts as 0. BUY is checked
    first, so equal qualifying scores resolve to BUY.
    """
    s = snapshot
    fg = 0.0 if sentiment is None else float(sentiment)
    # a zero-width band cannot be pierced
    bb_open = s.bb_upper > s.bb_lower
    donch_open = s.donch_upper > s.donch_lower

    buy_score = 0.0
    if s.rsi < 30:
        buy_score += weights.rsi
    if s.stochastic_k < 20:
        buy_score += weights.stochastic
    if bb_open and close <= s.bb_lower:
        buy_score += weights.bollinger
    if donch_open and close <= s.donch_lower:
        buy_score += weights.donchian
    if s.williams_r < -80:
        buy_score += weights.williams_r
    if fg < 40:
        buy_score += weights.fear_greed
    if s.macd_histogram > 0:
        buy_score += weights.macd
    if close > s.sma20:
        buy_score += weights.sma
    if close > s.ema20:
        buy_score += weights.ema
    buy_score += pattern_score

    sell_score = 0.0
    if s.rsi > 70:
        sell_score += weights.rsi
    if s.stochastic_k > 80:
        sell_score += weights.stochastic
    if bb_open and close >= s.bb_upper:
        sell_score += weights.bollinger
    if donch_open and close >= s.donch_upper:
        sell_score += weights.donchian
    if s.williams_r > -20:
        sell_score += weights.williams_r
    if fg > 60:
        sell_score += weights.fear_greed
    if s.macd_histogram < 0:
        sell_score += weights.macd
    if close < s.sma20:
        sell_score += weights.sma
    if close < s.ema20:
        sell_score += weights.ema

    if buy_score >= thresholds.buy and buy_score >= sell_score:
        return Decision(BUY, buy_score, buy_score, sell_score)
    if sell_score >= thresholds.sell and sell_score > buy_score:
        return Decision(SELL, sell_score, buy_score, sell_score)
    return Decision(HOLD, max(buy_score, sell_score), buy_score, sell_score)

def build_risk_envelope(
    close: float,
    atr: float,
    decision: str,
    risk: Optional[RiskConfig] = None,
) -> RiskEnvelope:
    """ATR-based stop/target levels; SELL points them down, BUY and HOLD up."""
    r = risk or RiskConfig()
    direction = -1 if decision == SELL else 1
    risk_amt = atr * r.risk_multiplier
    reward = risk_amt * r.reward_multiplier

    stop_loss = close - risk_amt * direction
    take_profit = close + reward * direction
    trailing_candidate = close - r.trailing_multiplier * atr * direction
    if direction == 1:
        trailing_stop = min(stop_loss, trailing_candidate)
    else:
        trailing_stop = max(stop_loss, trailing_candidate)
    trailing_start = close + r.trailing_activation_multiplier * atr * direction

    return RiskEnvelope(
        stop_loss=stop_loss,
        take_profit=take_profit,
        trailing_stop=trailing_stop,
        trailing_start=trailing_start,
    )
