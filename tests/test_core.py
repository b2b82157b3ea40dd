"""
CORE MODEL TESTS
Level parsing, snapshot validation and views

Run:
    python -m pytest tests/test_core.py -v
"""
import math
import sys
import os

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


class TestLevel:
    """Test Level model"""

    def test_level_from_dict(self):
        """Test parsing a level row with bid/size spelling"""
        from microalpha.core.models import Level, LevelSide

        level = Level.from_dict({"price": "99.5", "size": "12", "side": "bid"})

        assert level is not None
        assert level.price == 99.5
        assert level.volume == 12.0
        assert level.side == LevelSide.SUPPORT
        assert level.is_support

    def test_level_from_dict_type_key(self):
        """Test 'type' key and resistance spelling"""
        from microalpha.core.models import Level, LevelSide

        level = Level.from_dict({"price": 101, "volume": 3, "type": "resistance"})

        assert level.side == LevelSide.RESISTANCE
        assert not level.is_support

    def test_level_from_dict_invalid(self):
        """Unparseable rows return None"""
        from microalpha.core.models import Level

        assert Level.from_dict({"price": 100, "volume": 1, "side": "sideways"}) is None
        assert Level.from_dict({"volume": 1, "side": "bid"}) is None
        assert Level.from_dict({"price": "abc", "volume": 1, "side": "ask"}) is None

    def test_distance_pct(self):
        """Distance is absolute percent of current price"""
        from microalpha.core.models import Level, LevelSide

        level = Level(price=98.0, volume=1.0, side=LevelSide.SUPPORT)

        assert abs(level.distance_pct(100.0) - 2.0) < 1e-9


class TestSnapshot:
    """Test Snapshot validation"""

    def test_degenerate_levels_dropped(self):
        """Non-positive and non-finite levels are filtered silently"""
        from microalpha.core.models import Snapshot

        snap = Snapshot.from_raw(
            [
                {"price": 99, "volume": 5, "side": "support"},
                {"price": 0, "volume": 5, "side": "support"},
                {"price": -1, "volume": 5, "side": "support"},
                {"price": 98, "volume": 0, "side": "support"},
                {"price": 97, "volume": -3, "side": "support"},
                {"price": float("nan"), "volume": 3, "side": "resistance"},
                {"price": 101, "volume": float("inf"), "side": "resistance"},
                {"price": 102, "volume": 2, "side": "resistance"},
            ],
            100.0,
            "BTC",
            "1m",
            timestamp_ms=1,
        )

        assert len(snap.levels) == 2
        assert [lvl.price for lvl in snap.levels] == [99.0, 102.0]

    def test_levels_sorted_ascending(self):
        """Levels are kept sorted by price"""
        from microalpha.core.models import Snapshot

        snap = Snapshot.from_raw(
            [
                {"price": 103, "volume": 1, "side": "ask"},
                {"price": 97, "volume": 1, "side": "bid"},
                {"price": 101, "volume": 1, "side": "ask"},
            ],
            100.0, "ETH", "5m",
        )

        assert [lvl.price for lvl in snap.levels] == [97.0, 101.0, 103.0]

    def test_bad_price_empties_snapshot(self):
        """Non-positive current price yields an empty snapshot"""
        from microalpha.core.models import Snapshot

        rows = [{"price": 99, "volume": 1, "side": "bid"}]

        assert Snapshot.from_raw(rows, 0, "BTC", "1m").is_empty
        assert Snapshot.from_raw(rows, -5, "BTC", "1m").is_empty
        assert Snapshot.from_raw(rows, "abc", "BTC", "1m").is_empty
        assert Snapshot.from_raw(rows, float("nan"), "BTC", "1m").current_price == 0.0

    def test_best_bid_ask_spread(self):
        """best_bid = max support, best_ask = min resistance"""
        from microalpha.core.models import Snapshot

        snap = Snapshot.from_raw(
            [
                {"price": 98, "volume": 1, "side": "support"},
                {"price": 99, "volume": 1, "side": "support"},
                {"price": 101, "volume": 1, "side": "resistance"},
                {"price": 104, "volume": 1, "side": "resistance"},
            ],
            100.0, "BTC", "1m",
        )

        assert snap.best_bid == 99.0
        assert snap.best_ask == 101.0
        assert snap.spread == 2.0
        assert len(snap.supports) == 2
        assert len(snap.resistances) == 2

    def test_one_sided_book(self):
        """Missing side gives None best price and spread"""
        from microalpha.core.models import Snapshot

        snap = Snapshot.from_raw([{"price": 99, "volume": 1, "side": "bid"}], 100.0, "BTC", "1m")

        assert snap.best_ask is None
        assert snap.spread is None

    def test_in_range(self):
        """in_range filters by percent distance"""
        from microalpha.core.models import Snapshot

        snap = Snapshot.from_raw(
            [
                {"price": 80, "volume": 1, "side": "bid"},
                {"price": 90, "volume": 1, "side": "bid"},
                {"price": 110, "volume": 1, "side": "ask"},
                {"price": 130, "volume": 1, "side": "ask"},
            ],
            100.0, "BTC", "1m",
        )

        prices = [lvl.price for lvl in snap.in_range(15.0)]
        assert prices == [90.0, 110.0]

    def test_to_dict(self):
        """Serialization keeps levels and context"""
        from microalpha.core.models import Snapshot

        snap = Snapshot.from_raw([{"price": 99, "volume": 2, "side": "bid"}], 100.0, "BTC", "1m", 42)
        data = snap.to_dict()

        assert data["symbol"] == "BTC"
        assert data["timestamp_ms"] == 42
        assert data["levels"][0] == {"price": 99.0, "volume": 2.0, "side": "support"}
        assert not math.isnan(data["current_price"])
