"""
Scoring engine tests: weighted opinion and ATR risk envelope.
"""

from dataclasses import replace

import pytest

from stock_checker_engine.models import BUY, HOLD, SELL, IndicatorSnapshot
from stock_checker_engine.params import IndicatorWeights, Thresholds


def neutral_snapshot(**overrides) -> IndicatorSnapshot:
    """Every indicator sits inside its no-vote zone for a close of 100."""
    base = IndicatorSnapshot(
        rsi=50.0,
        stochastic_k=50.0,
        stochastic_d=50.0,
        bb_lower=90.0,
        bb_middle=100.0,
        bb_upper=110.0,
        donch_lower=85.0,
        donch_upper=115.0,
        williams_r=-50.0,
        atr=2.0,
        macd=0.0,
        macd_signal=0.0,
        macd_histogram=0.0,
        sma20=100.0,
        ema20=100.0,
    )
    return replace(base, **overrides)


# ════════════════════════════════════════════════
#  score_decision
# ════════════════════════════════════════════════


class TestScoreDecision:

    def test_neutral_is_hold_with_zero_scores(self):
        from stock_checker_engine.scoring import score_decision
        d = score_decision(neutral_snapshot(), 100.0, 0.0, 50, IndicatorWeights(), Thresholds())
        assert d.decision == HOLD
        assert d.buy_score == 0.0
        assert d.sell_score == 0.0
        assert d.score == 0.0

    def test_rsi_oversold_adds_exactly_its_weight(self):
        from stock_checker_engine.scoring import score_decision
        w = IndicatorWeights()
        before = score_decision(neutral_snapshot(), 100.0, 0.0, 50, w, Thresholds())
        after = score_decision(neutral_snapshot(rsi=25.0), 100.0, 0.0, 50, w, Thresholds())
        assert after.buy_score - before.buy_score == pytest.approx(w.rsi)
        assert after.sell_score == before.sell_score

    def test_missing_sentiment_counts_as_fear(self):
        from stock_checker_engine.scoring import score_decision
        d = score_decision(neutral_snapshot(), 100.0, 0.0, None, IndicatorWeights(), Thresholds())
        assert d.buy_score == pytest.approx(IndicatorWeights().fear_greed)
        assert d.decision == HOLD

    def test_greed_adds_to_sell(self):
        from stock_checker_engine.scoring import score_decision
        d = score_decision(neutral_snapshot(), 100.0, 0.0, 75, IndicatorWeights(), Thresholds())
        assert d.sell_score == pytest.approx(IndicatorWeights().fear_greed)

    def test_overbought_is_sell(self):
        from stock_checker_engine.scoring import score_decision
        snap = neutral_snapshot(rsi=75.0, stochastic_k=85.0, williams_r=-10.0)
        d = score_decision(snap, 100.0, 0.0, 50, IndicatorWeights(), Thresholds())
        assert d.decision == SELL
        assert d.sell_score == pytest.approx(79 + 76 + 72)
        assert d.score == d.sell_score

    def test_band_touches(self):
        from stock_checker_engine.scoring import score_decision
        w = IndicatorWeights()
        d = score_decision(neutral_snapshot(), 84.0, 0.0, 50, w, Thresholds())
        # below both lower bands, and below sma/ema on the sell side
        assert d.buy_score == pytest.approx(w.bollinger + w.donchian)
        assert d.sell_score == pytest.approx(w.sma + w.ema)

    def test_zero_width_bands_never_vote(self):
        from stock_checker_engine.scoring import score_decision
        snap = neutral_snapshot(bb_lower=100.0, bb_upper=100.0, donch_lower=100.0, donch_upper=100.0)
        d = score_decision(snap, 100.0, 0.0, 50, IndicatorWeights(), Thresholds())
        assert d.buy_score == 0.0
        assert d.sell_score == 0.0

    def test_trend_votes(self):
        from stock_checker_engine.scoring import score_decision
        w = IndicatorWeights()
        d = score_decision(neutral_snapshot(macd_histogram=0.5), 101.0, 0.0, 50, w, Thresholds())
        assert d.buy_score == pytest.approx(w.macd + w.sma + w.ema)
        d = score_decision(neutral_snapshot(macd_histogram=-0.5), 99.0, 0.0, 50, w, Thresholds())
        assert d.sell_score == pytest.approx(w.macd + w.sma + w.ema)

    def test_pattern_score_is_buy_side_only(self):
        from stock_checker_engine.scoring import score_decision
        d = score_decision(neutral_snapshot(), 100.0, 250.0, 50, IndicatorWeights(), Thresholds())
        assert d.decision == BUY
        assert d.buy_score == 250.0
        assert d.sell_score == 0.0

    def test_tie_resolves_to_buy(self):
        from stock_checker_engine.scoring import score_decision
        w = IndicatorWeights(rsi=100.0, stochastic=100.0)
        snap = neutral_snapshot(rsi=25.0, stochastic_k=90.0)
        d = score_decision(snap, 100.0, 0.0, 50, w, Thresholds(buy=100, sell=100))
        assert d.buy_score == d.sell_score == 100.0
        assert d.decision == BUY

    def test_below_threshold_is_hold(self):
        from stock_checker_engine.scoring import score_decision
        snap = neutral_snapshot(rsi=25.0, stochastic_k=10.0)
        d = score_decision(snap, 100.0, 0.0, 50, IndicatorWeights(), Thresholds())
        assert d.buy_score == pytest.approx(155.0)
        assert d.decision == HOLD
        assert d.score == pytest.approx(155.0)

    def test_declining_series_is_buy(self, declining_candles):
        from stock_checker_engine.indicators import compute_indicators
        from stock_checker_engine.scoring import score_decision
        c = [x.close for x in declining_candles]
        h = [x.high for x in declining_candles]
        l = [x.low for x in declining_candles]
        snap = compute_indicators(c, h, l)
        w = IndicatorWeights()
        d = score_decision(snap, c[-1], 0.0, 50, w, Thresholds())
        assert d.decision == BUY
        assert d.buy_score == pytest.approx(w.rsi + w.stochastic + w.williams_r)
        assert d.sell_score == pytest.approx(w.sma + w.ema)

    def test_constant_series_never_signals(self, flat_candles):
        from stock_checker_engine.indicators import compute_indicators
        from stock_checker_engine.scoring import score_decision
        c = [x.close for x in flat_candles]
        snap = compute_indicators(c, c, c)
        for sentiment in (50, None):
            d = score_decision(snap, c[-1], 0.0, sentiment, IndicatorWeights(), Thresholds())
            assert d.decision == HOLD


# ════════════════════════════════════════════════
#  RISK ENVELOPE
# ════════════════════════════════════════════════


class TestRiskEnvelope:

    def test_buy_levels(self):
        from stock_checker_engine.scoring import build_risk_envelope
        env = build_risk_envelope(100.0, 2.0, BUY)
        assert env.stop_loss == pytest.approx(97.0)
        assert env.take_profit == pytest.approx(106.0)
        assert env.trailing_stop == pytest.approx(97.0)
        assert env.trailing_start == pytest.approx(101.0)

    def test_sell_levels_point_down(self):
        from stock_checker_engine.scoring import build_risk_envelope
        env = build_risk_envelope(100.0, 2.0, SELL)
        assert env.stop_loss == pytest.approx(103.0)
        assert env.take_profit == pytest.approx(94.0)
        assert env.trailing_stop == pytest.approx(103.0)
        assert env.trailing_start == pytest.approx(99.0)

    def test_hold_uses_long_orientation(self):
        from stock_checker_engine.scoring import build_risk_envelope
        assert build_risk_envelope(100.0, 2.0, HOLD) == build_risk_envelope(100.0, 2.0, BUY)

    def test_tighter_trailing_multiplier_wins(self):
        from stock_checker_engine.params import RiskConfig
        from stock_checker_engine.scoring import build_risk_envelope
        env = build_risk_envelope(100.0, 2.0, BUY, RiskConfig(risk_multiplier=1.0, trailing_multiplier=2.0))
        assert env.stop_loss == pytest.approx(98.0)
        assert env.trailing_stop == pytest.approx(96.0)

    def test_zero_atr_collapses_to_close(self):
        from stock_checker_engine.scoring import build_risk_envelope
        env = build_risk_envelope(50.0, 0.0, BUY)
        assert env.to_dict() == {"stopLoss": 50.0, "takeProfit": 50.0, "trailingStop": 50.0, "trailingStart": 50.0}
