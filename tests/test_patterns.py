"""
Chart pattern detector tests.
"""

import pytest


# ════════════════════════════════════════════════
#  PREDICATES
# ════════════════════════════════════════════════


class TestPredicates:

    def test_ascending_triangle(self):
        from stock_checker_engine.patterns import is_ascending_triangle
        highs = [100.0, 100.2, 100.1, 100.3, 100.2]
        assert is_ascending_triangle(highs, [95.0, 96.0, 97.0, 98.0, 99.0])
        assert not is_ascending_triangle(highs, [95.0, 96.0, 94.0, 98.0, 99.0])
        assert not is_ascending_triangle([90.0, 100.0, 100.0, 100.0, 100.0], [95.0, 96.0, 97.0, 98.0, 99.0])

    def test_bullish_flag(self):
        from stock_checker_engine.patterns import is_bullish_flag
        assert is_bullish_flag([100, 101, 102, 103, 104, 105.1, 105, 104.8, 105, 105.1])
        # run-up too small
        assert not is_bullish_flag([100, 101, 102, 103, 104, 104.5, 104, 104.8, 104.9, 104.7])

    def test_double_bottom(self):
        from stock_checker_engine.patterns import is_double_bottom
        lows = [55, 53, 50, 52, 54, 56, 57, 58, 57, 56, 54, 52, 50.5, 52, 54, 56, 57, 58, 59, 60]
        assert is_double_bottom(lows)
        lows[12] = 45.0
        assert not is_double_bottom(lows)

    def test_falling_wedge(self):
        from stock_checker_engine.patterns import is_falling_wedge
        highs = [110.0, 108.0, 106.0, 104.0, 102.0, 100.0]
        lows = [100.0, 99.0, 98.0, 97.0, 96.0, 95.0]
        assert is_falling_wedge(highs, lows)
        # lows falling faster than highs
        assert not is_falling_wedge(lows, highs[:1] + [h - 5 for h in highs[1:]])

    def test_island_reversal(self):
        from stock_checker_engine.patterns import is_island_reversal
        assert is_island_reversal([100.0, 90.0, 91.0, 100.0, 101.0])
        assert not is_island_reversal([100.0, 99.0, 98.0, 99.0, 100.0])

    def test_short_series_never_fires(self):
        from stock_checker_engine.patterns import (
            is_ascending_triangle,
            is_bullish_flag,
            is_double_bottom,
            is_falling_wedge,
            is_island_reversal,
        )
        assert not is_ascending_triangle([1.0] * 4, [1.0] * 4)
        assert not is_bullish_flag([1.0] * 9)
        assert not is_double_bottom([1.0] * 19)
        assert not is_falling_wedge([1.0] * 5, [1.0] * 5)
        assert not is_island_reversal([1.0] * 4)

    def test_non_positive_prices_do_not_divide_by_zero(self):
        from stock_checker_engine.patterns import is_ascending_triangle, is_bullish_flag, is_double_bottom
        assert not is_ascending_triangle([0.0] * 5, [0.0] * 5)
        assert not is_bullish_flag([0.0] * 10)
        assert not is_double_bottom([0.0] * 20)


# ════════════════════════════════════════════════
#  detect_patterns
# ════════════════════════════════════════════════


class TestDetectPatterns:

    HIGHS = [110.0, 110.5, 110.2, 110.4, 110.3]
    LOWS = [80.0, 81.0, 82.0, 83.0, 84.0]
    CLOSES = [100.0, 90.0, 91.0, 100.0, 101.0]

    def test_fixed_order_and_weighted_score(self):
        from stock_checker_engine.patterns import detect_patterns
        result = detect_patterns(self.HIGHS, self.LOWS, self.CLOSES)
        assert result.patterns == ["AscendingTriangle", "IslandReversal"]
        assert result.score == pytest.approx(75.0 + 73.0)

    def test_partial_mapping_overrides_defaults(self):
        from stock_checker_engine.patterns import detect_patterns
        result = detect_patterns(self.HIGHS, self.LOWS, self.CLOSES, {"islandReversal": 10})
        assert result.score == pytest.approx(85.0)

    def test_unknown_weight_key_raises(self):
        from stock_checker_engine.patterns import detect_patterns
        with pytest.raises(ValueError):
            detect_patterns(self.HIGHS, self.LOWS, self.CLOSES, {"headAndShoulders": 10})

    def test_nothing_found(self):
        from stock_checker_engine.patterns import detect_patterns
        result = detect_patterns([1.0, 2.0], [0.5, 1.5], [1.0, 2.0])
        assert result.patterns == []
        assert result.score == 0.0

    def test_pattern_names_order(self):
        from stock_checker_engine.patterns import PATTERN_NAMES
        assert PATTERN_NAMES == (
            "AscendingTriangle",
            "BullishFlag",
            "DoubleBottom",
            "FallingWedge",
            "IslandReversal",
        )
