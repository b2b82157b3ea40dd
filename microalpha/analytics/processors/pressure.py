"""
Pressure Calculators - Book pressure ratio (BPR) and liquidity delta (LD)
Pure functions over a depth snapshot
"""
import math

from microalpha.core.models import Snapshot
from microalpha.analytics.models import BPRResult, LDResult, VelocityType


NEAR_BAND_PCT = 1.0        # Levels within 1% count as near
FAR_DISCOUNT = 0.3         # Far-band contributions are discounted
DOMINANCE_RATIO = 1.5      # |near| vs |far| dominance rule
MIN_VELOCITY = 10.0        # Below = neutral


def calc_bpr(snapshot: Snapshot) -> BPRResult:
    """
    Book pressure ratio = total support volume / total resistance volume
    Defaults to 1.0 when there is no resistance volume
    """
    bid_volume = 0.0
    ask_volume = 0.0
    for level in snapshot.levels:
        if level.price <= 0:
            continue
        if level.is_support:
            bid_volume += level.volume
        else:
            ask_volume += level.volume

    ratio = bid_volume / ask_volume if ask_volume > 0 else 1.0
    return BPRResult(ratio=ratio, bid_volume=bid_volume, ask_volume=ask_volume)


def classify_velocity(near_delta: float, far_delta: float) -> VelocityType:
    near = abs(near_delta)
    far = abs(far_delta)
    if max(near, far) < MIN_VELOCITY:
        return VelocityType.NEUTRAL
    if near > DOMINANCE_RATIO * far:
        return VelocityType.AGGRESSIVE_NEAR
    if far > DOMINANCE_RATIO * near:
        return VelocityType.SPOOF_FAR
    return VelocityType.MIXED


def calc_ld(snapshot: Snapshot) -> LDResult:
    """
    Liquidity delta: sum of v/(1+dist%) for supports minus resistances.
    The velocity view re-weights by exp(-dist/2), split at 1% into near
    and far bands, far band x0.3.
    """
    price = snapshot.current_price
    if price <= 0 or snapshot.is_empty:
        return LDResult()

    bid_weighted = 0.0
    ask_weighted = 0.0
    near_bid = 0.0
    near_ask = 0.0
    far_bid = 0.0
    far_ask = 0.0

    for level in snapshot.levels:
        d = level.distance_pct(price)
        weighted = level.volume / (1.0 + d)
        if level.is_support:
            bid_weighted += weighted
        else:
            ask_weighted += weighted

        decayed = level.volume * math.exp(-d / 2.0)
        if d <= NEAR_BAND_PCT:
            if level.is_support:
                near_bid += decayed
            else:
                near_ask += decayed
        else:
            if level.is_support:
                far_bid += decayed * FAR_DISCOUNT
            else:
                far_ask += decayed * FAR_DISCOUNT

    delta = bid_weighted - ask_weighted
    near_delta = near_bid - near_ask
    far_delta = far_bid - far_ask

    return LDResult(
        delta=delta,
        near_delta=near_delta,
        far_delta=far_delta,
        near_bid=near_bid,
        near_ask=near_ask,
        far_bid=far_bid,
        far_ask=far_ask,
        velocity_delta=near_delta + far_delta,
        velocity_type=classify_velocity(near_delta, far_delta),
    )
