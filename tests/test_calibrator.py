"""
Calibration tests: Platt grid fit, probabilities and confidence tiers.
"""

import math

import pytest


class TestSigmoid:

    def test_midpoint(self):
        from stock_checker_engine.calibrator import sigmoid
        assert sigmoid(100.0, 0.01, -1.0) == pytest.approx(0.5)

    def test_extremes_do_not_overflow(self):
        from stock_checker_engine.calibrator import sigmoid
        assert sigmoid(1e12) == pytest.approx(1.0)
        assert sigmoid(-1e12) == pytest.approx(0.0)


# ════════════════════════════════════════════════
#  fit_platt_scaling
# ════════════════════════════════════════════════


class TestFitPlattScaling:

    def test_separable_scores_beat_coin_flip(self):
        from stock_checker_engine.calibrator import fit_platt_scaling
        result = fit_platt_scaling([10, 10, 10, -10, -10, -10], [True, True, True, False, False, False])
        assert result.brier_score < 0.25
        assert (result.slope, result.intercept) == (0.02, 0.0)

    def test_empty_returns_default_without_brier(self):
        from stock_checker_engine.calibrator import fit_platt_scaling
        result = fit_platt_scaling([], [])
        assert (result.slope, result.intercept, result.brier_score) == (0.01, -1.0, None)

    def test_length_mismatch_raises(self):
        from stock_checker_engine.calibrator import fit_platt_scaling
        with pytest.raises(ValueError):
            fit_platt_scaling([1.0, 2.0], [True])

    def test_first_minimum_wins_ties(self):
        from stock_checker_engine.calibrator import fit_platt_scaling
        # score 0 makes every slope equivalent; the first slope in the grid is kept
        result = fit_platt_scaling([0.0, 0.0], [False, False])
        assert result.slope == 0.005
        assert result.intercept == -2.0

    def test_brier_score_value(self):
        from stock_checker_engine.calibrator import brier_score
        assert brier_score([100.0, 100.0], [True, False], 0.01, -1.0) == pytest.approx(0.25)

    def test_result_params(self):
        from stock_checker_engine.calibrator import fit_platt_scaling
        from stock_checker_engine.models import CalibrationParams
        result = fit_platt_scaling([250.0, 50.0], [True, False])
        assert result.params == CalibrationParams(slope=result.slope, intercept=result.intercept)
        assert set(result.to_dict()) == {"slope", "intercept", "brierScore"}


# ════════════════════════════════════════════════
#  PROBABILITIES
# ════════════════════════════════════════════════


class TestToProbabilities:

    @pytest.mark.parametrize(
        "buy,sell",
        [(0, 0), (227, 130), (150, 400), (1e9, 1e9), (1e9, -1e9), (-1e9, -1e9), (-1e9, 1e9)],
    )
    def test_sums_to_hundred(self, buy, sell):
        from stock_checker_engine.calibrator import to_probabilities
        p = to_probabilities(buy, sell)
        total = p.buy_probability + p.sell_probability + p.hold_probability
        assert abs(total - 100.0) <= 0.1
        for v in (p.buy_probability, p.sell_probability, p.hold_probability):
            assert 0.0 <= v <= 100.0

    def test_sides_are_independent(self):
        from stock_checker_engine.calibrator import sigmoid, to_probabilities
        p = to_probabilities(0.0, 0.0)
        # 0.2689 each, hold takes the rest
        assert p.buy_probability == p.sell_probability == pytest.approx(round(sigmoid(0.0) * 100, 1))
        assert p.hold_probability == pytest.approx(100 - 2 * p.buy_probability)

    def test_both_saturated_splits_evenly(self):
        from stock_checker_engine.calibrator import to_probabilities
        p = to_probabilities(1e9, 1e9)
        assert p.buy_probability == 50.0
        assert p.sell_probability == 50.0
        assert p.hold_probability == 0.0

    def test_calibration_overrides_slope_intercept(self):
        from stock_checker_engine.calibrator import to_probabilities
        from stock_checker_engine.models import CalibrationParams
        a = to_probabilities(200, 50, slope=0.02, intercept=-2.0)
        b = to_probabilities(200, 50, calibration=CalibrationParams(slope=0.02, intercept=-2.0))
        assert a == b

    @pytest.mark.parametrize(
        "p,tier",
        [(75.0, "very-high"), (74.9, "high"), (60.0, "high"), (40.0, "medium"), (39.9, "low"), (0.0, "low")],
    )
    def test_confidence_tiers(self, p, tier):
        from stock_checker_engine.calibrator import confidence_tier
        assert confidence_tier(p) == tier

    def test_confidence_from_larger_side(self):
        from stock_checker_engine.calibrator import to_probabilities
        assert to_probabilities(1e9, -1e9).confidence == "very-high"
        assert to_probabilities(-1e9, -1e9).confidence == "low"

    def test_decision_from_probabilities(self):
        from stock_checker_engine.calibrator import decision_from_probabilities
        from stock_checker_engine.models import BUY, HOLD, SELL, ProbabilityResult
        assert decision_from_probabilities(ProbabilityResult(60.0, 20.0, 20.0, "high")) == BUY
        assert decision_from_probabilities(ProbabilityResult(20.0, 60.0, 20.0, "high")) == SELL
        assert decision_from_probabilities(ProbabilityResult(20.0, 20.0, 60.0, "low")) == HOLD
        assert decision_from_probabilities(ProbabilityResult(40.0, 40.0, 20.0, "medium")) == HOLD

    def test_no_nan(self):
        from stock_checker_engine.calibrator import to_probabilities
        p = to_probabilities(1e308, -1e308)
        assert not any(math.isnan(v) for v in (p.buy_probability, p.sell_probability, p.hold_probability))
