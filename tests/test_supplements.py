"""
SUPPLEMENTARY SIGNAL TESTS
Directional bands, wall detection, next-regime probability

Run:
    python -m pytest tests/test_supplements.py -v
"""
import pytest
import sys
import os

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


def make_snapshot(rows, price=100.0):
    from microalpha.core.models import Snapshot
    return Snapshot.from_raw(
        [{"price": p, "volume": v, "side": s} for p, v, s in rows],
        price, "BTC", "1m",
    )


# ============================================================
# A. DIRECTION
# ============================================================

class TestDirection:
    """Book imbalance over exclusive bands"""

    def test_mixed_bands(self):
        from microalpha.analytics.processors.direction import analyze_direction
        from microalpha.analytics.models import Bias

        snap = make_snapshot([
            (97.0, 100.0, "support"),
            (103.0, 10.0, "resistance"),
            (90.0, 10.0, "support"),
            (110.0, 100.0, "resistance"),
        ])
        result = analyze_direction(snap)

        assert result.short.bias == Bias.BULLISH
        assert result.short.ratio == pytest.approx(90.0 / 110.0 * 100.0)
        assert result.medium.bias == Bias.BEARISH
        assert result.long.bias == Bias.NEUTRAL
        # 40 - 35 = 5, inside the +/-20 neutral zone
        assert result.overall_bias == Bias.NEUTRAL
        assert result.confidence == "low"

    def test_all_bands_bullish(self):
        from microalpha.analytics.processors.direction import analyze_direction
        from microalpha.analytics.models import Bias

        snap = make_snapshot([
            (97.0, 10.0, "support"),
            (90.0, 10.0, "support"),
            (80.0, 10.0, "support"),
        ])
        result = analyze_direction(snap)

        assert result.overall_bias == Bias.BULLISH
        assert result.confidence == "high"
        assert result.long.support.price == 80.0

    def test_bands_exclusive(self):
        """A level is counted in exactly one band"""
        from microalpha.analytics.processors.direction import analyze_direction

        snap = make_snapshot([(96.0, 10.0, "support"), (104.0, 5.0, "resistance")])
        result = analyze_direction(snap)

        assert result.short.bid_volume == 10.0
        assert result.medium.bid_volume == 0.0
        assert result.long.bid_volume == 0.0
        assert result.short.resistance.price == 104.0

    def test_empty_book(self):
        from microalpha.analytics.processors.direction import analyze_direction
        from microalpha.analytics.models import Bias

        result = analyze_direction(make_snapshot([]))

        assert result.overall_bias == Bias.NEUTRAL
        assert result.short.ratio == 0.0


# ============================================================
# B. WALLS
# ============================================================

class TestWalls:
    """Wall detection and level strength"""

    def _book(self):
        return make_snapshot([
            (99.9, 10.0, "support"),
            (99.8, 100.0, "support"),
            (99.7, 10.0, "support"),
            (99.6, 10.0, "support"),
            (100.1, 10.0, "resistance"),
            (100.2, 10.0, "resistance"),
            (100.3, 10.0, "resistance"),
        ])

    def test_bid_wall_found(self):
        from microalpha.analytics.processors.walls import analyze_walls

        result = analyze_walls(self._book())

        assert result.bid_wall is not None
        assert result.bid_wall.price == 99.8
        assert result.bid_wall.multiple == pytest.approx(100.0 / 32.5)
        # 100 - 0.2/0.3*50 -> 67, plus (3.08 - 1.8) * 15 -> 19
        assert result.bid_wall.proximity == 86
        assert result.ask_wall is None

    def test_spread_and_imbalance(self):
        from microalpha.analytics.processors.walls import analyze_walls

        result = analyze_walls(self._book())

        assert result.spread_pct == pytest.approx(0.2)
        assert result.spread_bps == pytest.approx(20.0)
        assert result.level_imbalance_pct == pytest.approx((130 - 30) / 160 * 100)
        assert result.support_score > result.resistance_score

    def test_scores_bounded(self):
        from microalpha.analytics.processors.walls import analyze_walls

        result = analyze_walls(self._book())

        assert 0 <= result.support_score <= 100
        assert 0 <= result.resistance_score <= 100

    def test_proximity_outer_band(self):
        from microalpha.analytics.processors.walls import wall_proximity
        from microalpha.analytics.models import Wall

        assert wall_proximity(Wall(distance_pct=0.4, multiple=2.0)) == 35
        assert wall_proximity(Wall(distance_pct=0.6, multiple=9.0)) == 0

    def test_wall_half_point_rounds_up(self):
        """Proximity 45 contributes 23, not 22"""
        from microalpha.analytics.processors.walls import analyze_walls

        snap = make_snapshot([
            (99.667, 100.0, "support"),
            (99.4, 10.0, "support"),
            (99.3, 10.0, "support"),
            (99.2, 10.0, "support"),
        ])
        result = analyze_walls(snap)

        assert result.bid_wall.price == 99.667
        assert result.bid_wall.proximity == 45
        # 23 from the wall, +15 one-sided stack, -10 bid gap
        assert result.support_score == 28

    def test_empty_book(self):
        from microalpha.analytics.processors.walls import analyze_walls

        result = analyze_walls(make_snapshot([]))

        assert result.bid_wall is None
        assert result.spread_pct is None
        assert result.support_score == 0


# ============================================================
# C. PROBABILITY
# ============================================================

class TestProbability:
    """Next-regime probability"""

    def test_neutral(self):
        from microalpha.analytics.processors.probability import calc_probability
        from microalpha.analytics.models import LDResult, BPRResult, FairValue

        result = calc_probability(LDResult(), BPRResult(), FairValue(price=100.0), None)

        assert result.raw == 50.0
        assert result.components == (0.0, 0.0, 0.0, 0.0)

    def test_bpr_capped(self):
        from microalpha.analytics.processors.probability import calc_probability
        from microalpha.analytics.models import LDResult, BPRResult, FairValue

        result = calc_probability(LDResult(), BPRResult(ratio=3.0), FairValue(price=100.0), None)

        assert result.raw == pytest.approx(70.0)

    def test_spread_points(self):
        from microalpha.analytics.processors.probability import calc_probability
        from microalpha.analytics.models import LDResult, BPRResult, FairValue

        tight = calc_probability(LDResult(), BPRResult(), FairValue(price=100.0), 0.01)
        wide = calc_probability(LDResult(), BPRResult(), FairValue(price=100.0), 0.5)

        assert tight.raw == 55.0
        assert wide.raw == 45.0

    def test_momentum_and_fair_value(self):
        from microalpha.analytics.processors.probability import calc_probability
        from microalpha.analytics.models import LDResult, BPRResult, FairValue

        ld = LDResult(near_bid=10.0, near_ask=0.0, far_bid=0.0, far_ask=10.0)
        stretched = FairValue(price=101.0, vwmp=100.0)

        assert calc_probability(ld, BPRResult(), FairValue(price=100.0), None).raw == 100.0
        assert calc_probability(LDResult(), BPRResult(), stretched, None).raw == pytest.approx(45.0)

    def test_tracker_min_delta(self):
        """Reported value holds until raw moves by min_delta"""
        from microalpha.analytics.processors.probability import ProbabilityTracker
        from microalpha.analytics.models import ProbabilityResult

        tracker = ProbabilityTracker(min_delta=5.0)

        assert tracker.update(ProbabilityResult(raw=50.0)).reported == 50.0
        assert tracker.update(ProbabilityResult(raw=53.0)).reported == 50.0
        assert tracker.update(ProbabilityResult(raw=56.0)).reported == 56.0

        tracker.reset()
        assert tracker.update(ProbabilityResult(raw=10.0)).reported == 10.0
