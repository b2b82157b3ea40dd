"""
Directional Analysis - Book imbalance over exclusive distance bands
short 0-5%, medium 5-15%, long 15-30%; a level belongs to one band only
"""
from typing import Optional

from microalpha.core.models import Snapshot
from microalpha.analytics.models import DirectionBand, DirectionResult, Bias, LevelTarget


BANDS = {
    "short": (0.0, 5.0),
    "medium": (5.0, 15.0),
    "long": (15.0, 30.0),
}
BAND_WEIGHTS = {"short": 40.0, "medium": 35.0, "long": 25.0}
BAND_BIAS_RATIO = 15.0
OVERALL_THRESHOLD = 20.0


def _in_band(price: float, current: float, is_support: bool, inner: float, outer: float) -> bool:
    if is_support:
        return current * (1 - outer / 100) <= price < current * (1 - inner / 100)
    return current * (1 + inner / 100) < price <= current * (1 + outer / 100)


def analyze_band(snapshot: Snapshot, inner_pct: float, outer_pct: float) -> DirectionBand:
    price = snapshot.current_price
    band = DirectionBand(inner_pct=inner_pct, outer_pct=outer_pct)
    if price <= 0:
        return band

    best_support: Optional[LevelTarget] = None
    best_resistance: Optional[LevelTarget] = None
    for lvl in snapshot.levels:
        if not _in_band(lvl.price, price, lvl.is_support, inner_pct, outer_pct):
            continue
        target = LevelTarget(price=lvl.price, volume=lvl.volume, distance_pct=lvl.distance_pct(price))
        if lvl.is_support:
            band.bid_volume += lvl.volume
            if best_support is None or lvl.volume > best_support.volume:
                best_support = target
        else:
            band.ask_volume += lvl.volume
            if best_resistance is None or lvl.volume > best_resistance.volume:
                best_resistance = target

    total = band.bid_volume + band.ask_volume
    band.ratio = (band.bid_volume - band.ask_volume) / total * 100.0 if total > 0 else 0.0
    if band.ratio > BAND_BIAS_RATIO:
        band.bias = Bias.BULLISH
    elif band.ratio < -BAND_BIAS_RATIO:
        band.bias = Bias.BEARISH
    band.support = best_support
    band.resistance = best_resistance
    return band


def analyze_direction(snapshot: Snapshot) -> DirectionResult:
    bands = {name: analyze_band(snapshot, *bounds) for name, bounds in BANDS.items()}

    score = 0.0
    for name, band in bands.items():
        if band.bias == Bias.BULLISH:
            score += BAND_WEIGHTS[name]
        elif band.bias == Bias.BEARISH:
            score -= BAND_WEIGHTS[name]

    if score > OVERALL_THRESHOLD:
        overall = Bias.BULLISH
    elif score < -OVERALL_THRESHOLD:
        overall = Bias.BEARISH
    else:
        overall = Bias.NEUTRAL

    biases = [b.bias for b in bands.values()]
    bullish = biases.count(Bias.BULLISH)
    bearish = biases.count(Bias.BEARISH)
    if bullish == 3 or bearish == 3:
        confidence = "high"
    elif bullish >= 2 or bearish >= 2:
        confidence = "medium"
    else:
        confidence = "low"

    return DirectionResult(
        short=bands["short"],
        medium=bands["medium"],
        long=bands["long"],
        overall_bias=overall,
        confidence=confidence,
    )
