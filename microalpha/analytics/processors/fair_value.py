"""
Fair Value Estimators - Mid, VWMP, IFV
Every estimator returns None (never zero) when data is insufficient
"""
from typing import Optional

from config import settings
from microalpha.core.models import Snapshot
from microalpha.analytics.models import FairValue


def calc_mid(snapshot: Snapshot) -> Optional[float]:
    """(best bid + best ask) / 2"""
    best_bid = snapshot.best_bid
    best_ask = snapshot.best_ask
    if best_bid is None or best_ask is None:
        return None
    return (best_bid + best_ask) / 2.0


def calc_vwmp(snapshot: Snapshot, range_pct: Optional[float] = None) -> Optional[float]:
    """
    Volume-weighted mid price
    Each side's own VWAP, blended by that side's total in-range volume
    """
    if range_pct is None:
        range_pct = settings.FAIR_VALUE_RANGE_PCT

    bid_vol = ask_vol = 0.0
    bid_notional = ask_notional = 0.0
    for level in snapshot.in_range(range_pct):
        if level.is_support:
            bid_vol += level.volume
            bid_notional += level.price * level.volume
        else:
            ask_vol += level.volume
            ask_notional += level.price * level.volume

    if bid_vol <= 0 or ask_vol <= 0:
        return None

    bid_vwap = bid_notional / bid_vol
    ask_vwap = ask_notional / ask_vol
    return (bid_vwap * bid_vol + ask_vwap * ask_vol) / (bid_vol + ask_vol)


def calc_ifv(
    snapshot: Snapshot,
    range_pct: Optional[float] = None,
    top_n: Optional[int] = None,
) -> Optional[float]:
    """Implied fair value = VWAP of the top-N in-range levels by volume"""
    if range_pct is None:
        range_pct = settings.FAIR_VALUE_RANGE_PCT
    if top_n is None:
        top_n = settings.IFV_TOP_LEVELS

    levels = sorted(snapshot.in_range(range_pct), key=lambda lvl: lvl.volume, reverse=True)[:top_n]
    if len(levels) < 2:
        return None

    total = sum(lvl.volume for lvl in levels)
    if total <= 0:
        return None
    return sum(lvl.price * lvl.volume for lvl in levels) / total


def calc_fair_value(
    snapshot: Snapshot,
    range_pct: Optional[float] = None,
    top_n: Optional[int] = None,
) -> FairValue:
    return FairValue(
        price=snapshot.current_price,
        mid=calc_mid(snapshot),
        vwmp=calc_vwmp(snapshot, range_pct),
        ifv=calc_ifv(snapshot, range_pct, top_n),
    )
