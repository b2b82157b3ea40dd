"""
Data models for order book depth ingestion
Levels arrive pre-aggregated from the transport layer as support / resistance
"""
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional
from enum import Enum
import math
import time


class LevelSide(Enum):
    SUPPORT = "support"        # Resting bids
    RESISTANCE = "resistance"  # Resting asks

    @classmethod
    def parse(cls, value: Any) -> Optional["LevelSide"]:
        """Accept enum, 'support'/'resistance' or 'bid'/'ask' spellings"""
        if isinstance(value, LevelSide):
            return value
        text = str(value).strip().lower()
        if text in ("support", "bid", "bids", "buy"):
            return cls.SUPPORT
        if text in ("resistance", "ask", "asks", "sell"):
            return cls.RESISTANCE
        return None


@dataclass(slots=True)
class Level:
    """Single aggregated price level"""
    price: float
    volume: float
    side: LevelSide

    @property
    def is_support(self) -> bool:
        return self.side == LevelSide.SUPPORT

    def distance_pct(self, current_price: float) -> float:
        """Absolute distance from current price, in percent"""
        return abs(self.price - current_price) / current_price * 100.0

    def to_dict(self) -> dict:
        return {
            "price": self.price,
            "volume": self.volume,
            "side": self.side.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Optional["Level"]:
        """
        Parse {price, volume|size, side|type}. Returns None when the row
        cannot be interpreted at all.
        """
        side = LevelSide.parse(data.get("side", data.get("type")))
        if side is None:
            return None
        try:
            price = float(data["price"])
            volume = float(data.get("volume", data.get("size", 0.0)))
        except (KeyError, TypeError, ValueError):
            return None
        return cls(price=price, volume=volume, side=side)


def is_valid_level(level: Level) -> bool:
    """Degenerate levels (non-positive / non-finite) are dropped at ingestion"""
    return (
        math.isfinite(level.price)
        and math.isfinite(level.volume)
        and level.price > 0
        and level.volume > 0
    )


@dataclass
class Snapshot:
    """
    Order book depth snapshot + live price for one (symbol, timeframe)
    Levels are kept sorted by price ascending after validation
    """
    levels: List[Level]
    current_price: float
    symbol: str
    timeframe: str
    timestamp_ms: int = field(default_factory=lambda: int(time.time() * 1000))

    def __post_init__(self):
        if not math.isfinite(self.current_price) or self.current_price <= 0:
            self.current_price = 0.0
            self.levels = []
            return
        self.levels = sorted(
            (lvl for lvl in self.levels if is_valid_level(lvl)),
            key=lambda lvl: lvl.price,
        )

    @classmethod
    def from_raw(
        cls,
        levels: Iterable[Any],
        current_price: float,
        symbol: str,
        timeframe: str,
        timestamp_ms: Optional[int] = None,
    ) -> "Snapshot":
        """Build from Level objects or dict rows; unparseable rows are skipped"""
        parsed: List[Level] = []
        for row in levels or []:
            if isinstance(row, Level):
                parsed.append(row)
            elif isinstance(row, dict):
                lvl = Level.from_dict(row)
                if lvl is not None:
                    parsed.append(lvl)
        try:
            price = float(current_price)
        except (TypeError, ValueError):
            price = 0.0
        if timestamp_ms is None:
            timestamp_ms = int(time.time() * 1000)
        return cls(
            levels=parsed,
            current_price=price,
            symbol=symbol,
            timeframe=timeframe,
            timestamp_ms=timestamp_ms,
        )

    @property
    def is_empty(self) -> bool:
        return not self.levels

    @property
    def supports(self) -> List[Level]:
        return [lvl for lvl in self.levels if lvl.side == LevelSide.SUPPORT]

    @property
    def resistances(self) -> List[Level]:
        return [lvl for lvl in self.levels if lvl.side == LevelSide.RESISTANCE]

    @property
    def best_bid(self) -> Optional[float]:
        supports = self.supports
        return max(lvl.price for lvl in supports) if supports else None

    @property
    def best_ask(self) -> Optional[float]:
        resistances = self.resistances
        return min(lvl.price for lvl in resistances) if resistances else None

    @property
    def spread(self) -> Optional[float]:
        if self.best_bid is not None and self.best_ask is not None:
            return self.best_ask - self.best_bid
        return None

    def in_range(self, range_pct: float) -> List[Level]:
        """Levels within +/- range_pct % of current price"""
        if self.current_price <= 0:
            return []
        return [lvl for lvl in self.levels if lvl.distance_pct(self.current_price) <= range_pct]

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "timeframe": self.timeframe,
            "timestamp_ms": self.timestamp_ms,
            "current_price": self.current_price,
            "levels": [lvl.to_dict() for lvl in self.levels],
        }
