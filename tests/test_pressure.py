"""
PRESSURE & FAIR VALUE TESTS
BPR, LD, velocity classification, Mid / VWMP / IFV

Run:
    python -m pytest tests/test_pressure.py -v
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
        price, "BTC", "1m", timestamp_ms=0,
    )


# ============================================================
# A. BOOK PRESSURE RATIO
# ============================================================

class TestBPR:
    """Test book pressure ratio"""

    def test_ratio_scenario(self):
        """bidVolume=300, askVolume=100 -> ratio 3.0"""
        from microalpha.analytics.processors.pressure import calc_bpr

        snap = make_snapshot([
            (99.0, 100.0, "support"),
            (98.0, 200.0, "support"),
            (101.0, 100.0, "resistance"),
        ])
        result = calc_bpr(snap)

        assert result.bid_volume == 300.0
        assert result.ask_volume == 100.0
        assert result.ratio == pytest.approx(3.0)

    def test_zero_resistance_defaults_to_one(self):
        """No resistance volume -> ratio 1, no division by zero"""
        from microalpha.analytics.processors.pressure import calc_bpr

        for rows in (
            [(99.0, 50.0, "support")],
            [(99.0, 50.0, "support"), (98.0, 1e9, "support")],
            [],
        ):
            assert calc_bpr(make_snapshot(rows)).ratio == 1.0

    def test_empty_snapshot(self):
        """Empty input returns neutral defaults"""
        from microalpha.analytics.processors.pressure import calc_bpr

        result = calc_bpr(make_snapshot([], price=0))

        assert result.ratio == 1.0
        assert result.bid_volume == 0.0


# ============================================================
# B. LIQUIDITY DELTA
# ============================================================

class TestLD:
    """Test liquidity delta and velocity view"""

    def test_ld_scenario(self):
        """price 100, support 99x50, resistance 101x10 -> 50/2 - 10/2 = 20"""
        from microalpha.analytics.processors.pressure import calc_ld

        snap = make_snapshot([(99.0, 50.0, "support"), (101.0, 10.0, "resistance")])

        assert calc_ld(snap).delta == pytest.approx(20.0)

    def test_mirrored_book_exact_zero(self):
        """Equal volume at equal distances on both sides nets to exactly 0.0"""
        from microalpha.analytics.processors.pressure import calc_ld
        from microalpha.analytics.models import VelocityType

        snap = make_snapshot([
            (99.0, 10.0, "support"),
            (98.0, 10.0, "support"),
            (101.0, 10.0, "resistance"),
            (102.0, 10.0, "resistance"),
        ])
        result = calc_ld(snap)

        assert result.delta == 0.0
        assert result.near_delta == 0.0
        assert result.far_delta == 0.0
        assert result.velocity_type == VelocityType.NEUTRAL

    def test_aggressive_near(self):
        """Near-band pressure dominates"""
        from microalpha.analytics.processors.pressure import calc_ld
        from microalpha.analytics.models import VelocityType

        snap = make_snapshot([(99.5, 100.0, "support"), (100.5, 10.0, "resistance")])
        result = calc_ld(snap)

        assert result.far_delta == 0.0
        assert result.near_delta > 10
        assert result.velocity_type == VelocityType.AGGRESSIVE_NEAR

    def test_spoof_far(self):
        """Far-band pressure dominates"""
        from microalpha.analytics.processors.pressure import calc_ld
        from microalpha.analytics.models import VelocityType

        snap = make_snapshot([(95.0, 1000.0, "support"), (100.2, 1.0, "resistance")])
        result = calc_ld(snap)

        # 1000 * exp(-2.5) * 0.3
        assert result.far_delta == pytest.approx(24.6, abs=0.1)
        assert result.velocity_type == VelocityType.SPOOF_FAR

    def test_mixed(self):
        """Comparable near and far magnitudes"""
        from microalpha.analytics.processors.pressure import calc_ld
        from microalpha.analytics.models import VelocityType

        # near: 20 * exp(-0.25) = 15.6 ; far: 100 * exp(-1) * 0.3 = 11.0
        snap = make_snapshot([(99.5, 20.0, "support"), (98.0, 100.0, "support")])

        assert calc_ld(snap).velocity_type == VelocityType.MIXED

    def test_small_magnitude_neutral(self):
        """Below the 10-unit minimum -> neutral"""
        from microalpha.analytics.processors.pressure import calc_ld
        from microalpha.analytics.models import VelocityType

        snap = make_snapshot([(99.5, 2.0, "support"), (100.5, 1.0, "resistance")])

        assert calc_ld(snap).velocity_type == VelocityType.NEUTRAL

    def test_velocity_delta_sum(self):
        """velocity_delta = near + far"""
        from microalpha.analytics.processors.pressure import calc_ld

        snap = make_snapshot([
            (99.5, 20.0, "support"),
            (97.0, 80.0, "support"),
            (102.0, 40.0, "resistance"),
        ])
        result = calc_ld(snap)

        assert result.velocity_delta == pytest.approx(result.near_delta + result.far_delta)

    def test_empty(self):
        """Empty book -> delta 0, neutral"""
        from microalpha.analytics.processors.pressure import calc_ld
        from microalpha.analytics.models import VelocityType

        result = calc_ld(make_snapshot([]))

        assert result.delta == 0.0
        assert result.velocity_type == VelocityType.NEUTRAL


# ============================================================
# C. FAIR VALUE
# ============================================================

class TestFairValue:
    """Test Mid / VWMP / IFV estimators"""

    def test_mid(self):
        from microalpha.analytics.processors.fair_value import calc_mid

        snap = make_snapshot([(99.0, 1.0, "support"), (101.0, 1.0, "resistance")])

        assert calc_mid(snap) == 100.0

    def test_mid_unavailable(self):
        """One-sided book -> None, never zero"""
        from microalpha.analytics.processors.fair_value import calc_mid

        assert calc_mid(make_snapshot([(99.0, 1.0, "support")])) is None

    def test_vwmp(self):
        """Side VWAPs blended by side volume"""
        from microalpha.analytics.processors.fair_value import calc_vwmp

        snap = make_snapshot([
            (99.0, 10.0, "support"),
            (98.0, 30.0, "support"),
            (101.0, 20.0, "resistance"),
        ])
        # bid vwap 98.25 x 40, ask vwap 101 x 20
        expected = (98.25 * 40 + 101.0 * 20) / 60

        assert calc_vwmp(snap) == pytest.approx(expected)

    def test_vwmp_range_filter(self):
        """Levels beyond the range are ignored"""
        from microalpha.analytics.processors.fair_value import calc_vwmp

        snap = make_snapshot([
            (99.0, 10.0, "support"),
            (50.0, 1e6, "support"),
            (101.0, 10.0, "resistance"),
        ])

        assert calc_vwmp(snap) == pytest.approx(100.0)

    def test_vwmp_requires_both_sides(self):
        from microalpha.analytics.processors.fair_value import calc_vwmp

        snap = make_snapshot([(99.0, 10.0, "support"), (98.0, 10.0, "support")])

        assert calc_vwmp(snap) is None

    def test_ifv_top_levels(self):
        """IFV uses only the top-N levels by volume"""
        from microalpha.analytics.processors.fair_value import calc_ifv

        snap = make_snapshot([
            (99.0, 100.0, "support"),
            (101.0, 100.0, "resistance"),
            (95.0, 1.0, "support"),
        ])

        assert calc_ifv(snap, top_n=2) == pytest.approx(100.0)
        assert calc_ifv(snap, top_n=3) < 100.0

    def test_ifv_insufficient(self):
        """Fewer than two in-range levels -> None"""
        from microalpha.analytics.processors.fair_value import calc_ifv

        assert calc_ifv(make_snapshot([(99.0, 1.0, "support")])) is None
        assert calc_ifv(make_snapshot([(99.0, 1.0, "support"), (50.0, 1.0, "support")])) is None

    def test_extension(self):
        """ext = (price - fair) / fair"""
        from microalpha.analytics.models import FairValue

        fv = FairValue(price=102.0, vwmp=100.0, ifv=None)

        assert fv.vwmp_ext == pytest.approx(0.02)
        assert fv.ifv_ext is None
