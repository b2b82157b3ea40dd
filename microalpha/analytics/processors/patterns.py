"""
LD Pattern Detector - Divergence, absorption/displacement, clustering, spoof
Works over a bounded history of (time, ld, price)
"""
import math
from collections import deque
from dataclasses import dataclass
from typing import List, Optional

from config import settings
from microalpha.core.models import Snapshot, LevelSide
from microalpha.analytics.models import (
    PatternResult, Divergence, AbsorptionType, VelocityType, Cluster, LDResult,
)


# Divergence
DIV_RECENT = 3
DIV_PRICE_PCT = 0.002      # 0.2% beyond prior extreme
DIV_LD_UNITS = 5.0

# Absorption / displacement
ABS_PRICE_PCT = 0.001      # 0.1%
ABS_LD_UNITS = 10.0

# Clustering
CLUSTER_BAND = 0.005       # 0.5% of the cluster's first price
CLUSTER_MIN_ORDERS = 3

# Spoof footprint
SPOOF_LOOKBACK = 5
SPOOF_SHRINK = 0.5         # Wall lost >= 50%
SPOOF_PRICE_PCT = 0.001

# Projection
PROJECTION_STEPS = 3
PROJECTION_DECAY = 0.7

NEAR_BAND_PCT = 1.0


@dataclass(slots=True)
class LDHistoryEntry:
    """One observation in the LD history"""
    time_ms: int
    ld: float
    price: float
    near_delta: float = 0.0
    far_delta: float = 0.0
    far_wall: float = 0.0      # Largest single far-band level


def find_clusters(snapshot: Snapshot, range_pct: Optional[float] = None) -> List[Cluster]:
    """
    Group consecutive same-side levels (walking away from price) that sit
    within 0.5% of the cluster's first price; keep groups of >= 3 orders
    """
    if range_pct is None:
        range_pct = settings.FAIR_VALUE_RANGE_PCT
    price = snapshot.current_price
    if price <= 0:
        return []

    in_range = snapshot.in_range(range_pct)
    clusters: List[Cluster] = []
    for side in (LevelSide.SUPPORT, LevelSide.RESISTANCE):
        levels = [lvl for lvl in in_range if lvl.side == side]
        levels.sort(key=lambda lvl: abs(lvl.price - price))

        group = []
        for lvl in levels:
            if group and abs(lvl.price - group[0].price) / group[0].price > CLUSTER_BAND:
                clusters.extend(_make_cluster(group, side, price))
                group = []
            group.append(lvl)
        clusters.extend(_make_cluster(group, side, price))
    return clusters


def _make_cluster(group, side: LevelSide, price: float) -> List[Cluster]:
    if len(group) < CLUSTER_MIN_ORDERS:
        return []
    volume = sum(lvl.volume for lvl in group)
    vwap = sum(lvl.price * lvl.volume for lvl in group) / volume
    d = abs(vwap - price) / price * 100.0
    count = len(group)
    return [Cluster(
        side=side.value,
        price=vwap,
        volume=volume,
        count=count,
        weight=count * math.exp(-d / 2.0),
    )]


def cluster_weighted_ld(clusters: List[Cluster]) -> float:
    """Sum of +/- volume * count * distance decay"""
    total = 0.0
    for c in clusters:
        sign = 1.0 if c.side == LevelSide.SUPPORT.value else -1.0
        total += sign * c.volume * c.weight
    return total


def project_ld(ld: float, roc: float, steps: int = PROJECTION_STEPS) -> List[float]:
    """ld + sum(roc * 0.7^k) for k = 1..n, one value per step"""
    out = []
    value = ld
    for k in range(1, steps + 1):
        value += roc * PROJECTION_DECAY ** k
        out.append(value)
    return out


class LDPatternDetector:
    """
    Tracks LD history for one (symbol, timeframe) and detects patterns
    """

    def __init__(
        self,
        divergence_size: Optional[int] = None,
        footprint_size: Optional[int] = None,
    ):
        self._history: deque[LDHistoryEntry] = deque(
            maxlen=divergence_size or settings.DIVERGENCE_HISTORY
        )
        self._footprint: deque[LDHistoryEntry] = deque(
            maxlen=footprint_size or settings.FOOTPRINT_HISTORY
        )
        self._last = PatternResult()

    @property
    def history(self) -> List[LDHistoryEntry]:
        return list(self._history)

    def update(
        self,
        snapshot: Snapshot,
        ld: LDResult,
        ld_roc: float,
        timestamp_ms: int,
    ) -> PatternResult:
        entry = LDHistoryEntry(
            time_ms=timestamp_ms,
            ld=ld.delta,
            price=snapshot.current_price,
            near_delta=ld.near_delta,
            far_delta=ld.far_delta,
            far_wall=self._far_wall(snapshot),
        )
        self._history.append(entry)
        self._footprint.append(entry)

        clusters = find_clusters(snapshot)
        cluster_ld = cluster_weighted_ld(clusters)
        cluster_backed = cluster_ld != 0 and ld.delta != 0 and (cluster_ld > 0) == (ld.delta > 0)

        self._last = PatternResult(
            divergence=self.detect_divergence(),
            absorption=self.detect_absorption(),
            projection=project_ld(ld.delta, ld_roc),
            cluster_backed=cluster_backed,
            velocity_type=ld.velocity_type,
            cluster_ld=cluster_ld,
            clusters=clusters,
            spoof_risk=self.detect_spoof(ld.velocity_type),
        )
        return self._last

    def get_patterns(self) -> PatternResult:
        return self._last

    def reset(self) -> None:
        self._history.clear()
        self._footprint.clear()
        self._last = PatternResult()

    @staticmethod
    def _far_wall(snapshot: Snapshot) -> float:
        price = snapshot.current_price
        far = [
            lvl.volume for lvl in snapshot.in_range(settings.FAIR_VALUE_RANGE_PCT)
            if lvl.distance_pct(price) > NEAR_BAND_PCT
        ]
        return max(far) if far else 0.0

    # ========== DETECTORS ==========

    def detect_divergence(self) -> Divergence:
        """
        Windowed: last 3 extremes vs the prior window's extremes.
        Falls back to a 3-sample monotone check.
        """
        hist = list(self._history)
        if len(hist) >= DIV_RECENT * 2:
            recent = hist[-DIV_RECENT:]
            prior = hist[:-DIV_RECENT]

            prior_low = min(e.price for e in prior)
            prior_high = max(e.price for e in prior)
            prior_ld_low = min(e.ld for e in prior)
            prior_ld_high = max(e.ld for e in prior)

            recent_low = min(e.price for e in recent)
            recent_high = max(e.price for e in recent)
            recent_ld_low = min(e.ld for e in recent)
            recent_ld_high = max(e.ld for e in recent)

            if (
                recent_low < prior_low * (1 - DIV_PRICE_PCT)
                and recent_ld_low > prior_ld_low + DIV_LD_UNITS
            ):
                return Divergence.BULLISH
            if (
                recent_high > prior_high * (1 + DIV_PRICE_PCT)
                and recent_ld_high < prior_ld_high - DIV_LD_UNITS
            ):
                return Divergence.BEARISH

        if len(hist) >= 3:
            a, b, c = hist[-3:]
            if a.price > b.price > c.price and a.ld < b.ld < c.ld:
                return Divergence.BULLISH
            if a.price < b.price < c.price and a.ld > b.ld > c.ld:
                return Divergence.BEARISH
        return Divergence.NONE

    def detect_absorption(self) -> Optional[AbsorptionType]:
        """Tick-over-tick price / LD change classification"""
        if len(self._history) < 2:
            return None
        prev, cur = self._history[-2], self._history[-1]
        if prev.price <= 0:
            return None

        dp = (cur.price - prev.price) / prev.price
        dld = cur.ld - prev.ld
        price_up = dp > ABS_PRICE_PCT
        price_down = dp < -ABS_PRICE_PCT
        ld_up = dld > ABS_LD_UNITS
        ld_down = dld < -ABS_LD_UNITS

        if price_up and not ld_down:
            return AbsorptionType.DISPLACEMENT_UP
        if price_down and not ld_up:
            return AbsorptionType.DISPLACEMENT_DOWN
        if ld_down and not price_down:
            # Sell pressure absorbed: LD falls, price holds
            return AbsorptionType.ABSORPTION_SELL
        if ld_up and not price_up:
            return AbsorptionType.ABSORPTION_BUY
        return AbsorptionType.ABSORPTION_NEUTRAL

    def detect_spoof(self, velocity_type: VelocityType) -> bool:
        """Far-dominant pressure, or a far wall pulled while price sat still"""
        if velocity_type == VelocityType.SPOOF_FAR:
            return True
        if len(self._footprint) < 2:
            return False

        cur = self._footprint[-1]
        window = list(self._footprint)[-SPOOF_LOOKBACK - 1:-1]
        for past in window:
            if past.far_wall <= 0 or past.price <= 0:
                continue
            shrank = cur.far_wall <= past.far_wall * (1 - SPOOF_SHRINK)
            still = abs(cur.price - past.price) / past.price < SPOOF_PRICE_PCT
            if shrank and still:
                return True
        return False
