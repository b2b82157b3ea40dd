"""
Wall Detection - Outsized resting levels near price and level strength scores
"""
from typing import List, Optional

from microalpha.core.models import Snapshot, Level
from microalpha.analytics.models import Wall, WallAnalysis
from microalpha.analytics.processors.normalizer import round_half_up


WALL_SEARCH_PCT = 0.5        # Walls searched within 0.5% of price
WALL_MIN_MULTIPLE = 1.8      # x average size of the nearest 20 levels
WALL_AVG_LEVELS = 20
STACK_LEVELS = 5
VACUUM_GAP_BPS = 5.0


def _find_wall(levels: List[Level], price: float) -> Optional[Wall]:
    """levels ordered nearest-first"""
    sizes = [lvl.volume for lvl in levels[:WALL_AVG_LEVELS]]
    if not sizes:
        return None
    avg = sum(sizes) / len(sizes)

    best: Optional[Wall] = None
    for lvl in levels:
        d = lvl.distance_pct(price)
        if d <= 0 or d >= WALL_SEARCH_PCT:
            continue
        multiple = lvl.volume / avg if avg > 0 else 0.0
        if multiple >= WALL_MIN_MULTIPLE and (best is None or multiple > best.multiple):
            best = Wall(price=lvl.price, size=lvl.volume, multiple=multiple, distance_pct=d)
    if best is not None:
        best.proximity = wall_proximity(best)
    return best


def wall_proximity(wall: Wall) -> int:
    """0-100, higher = price closer to a stronger wall"""
    if wall.distance_pct < 0.3:
        score = round_half_up(100 - wall.distance_pct / 0.3 * 50)
        score += min(30, round_half_up((wall.multiple - WALL_MIN_MULTIPLE) * 15))
        return int(min(100, score))
    if wall.distance_pct < 0.5:
        return round_half_up(50 - (wall.distance_pct - 0.3) / 0.2 * 30)
    return 0


def analyze_walls(snapshot: Snapshot) -> WallAnalysis:
    price = snapshot.current_price
    result = WallAnalysis()
    if price <= 0 or snapshot.is_empty:
        return result

    bids = sorted(snapshot.supports, key=lambda lvl: -lvl.price)
    asks = sorted(snapshot.resistances, key=lambda lvl: lvl.price)

    result.bid_wall = _find_wall(bids, price)
    result.ask_wall = _find_wall(asks, price)

    mid = None
    if bids and asks:
        mid = (bids[0].price + asks[0].price) / 2.0
        result.spread_pct = (asks[0].price - bids[0].price) / mid * 100.0
        result.spread_bps = result.spread_pct * 100.0

    if len(bids) >= 2:
        result.bid_gap_bps = (bids[0].price - bids[1].price) / bids[0].price * 10000.0
    if len(asks) >= 2:
        result.ask_gap_bps = (asks[1].price - asks[0].price) / asks[0].price * 10000.0

    bid_stack = sum(lvl.volume for lvl in bids[:STACK_LEVELS])
    ask_stack = sum(lvl.volume for lvl in asks[:STACK_LEVELS])
    stack_total = bid_stack + ask_stack
    if stack_total > 0:
        result.level_imbalance_pct = (bid_stack - ask_stack) / stack_total * 100.0

    support = 0
    resistance = 0
    if result.bid_wall:
        support += round_half_up(result.bid_wall.proximity * 0.5)
    if result.ask_wall:
        resistance += round_half_up(result.ask_wall.proximity * 0.5)

    if bids:
        to_bid = (price - bids[0].price) / price * 100.0
        if to_bid < 0.05:
            support += 20
        elif to_bid < 0.1:
            support += 10
    if asks:
        to_ask = (asks[0].price - price) / price * 100.0
        if to_ask < 0.05:
            resistance += 20
        elif to_ask < 0.1:
            resistance += 10

    if result.level_imbalance_pct > 30:
        support += 15
    elif result.level_imbalance_pct > 15:
        support += 8
    if result.level_imbalance_pct < -30:
        resistance += 15
    elif result.level_imbalance_pct < -15:
        resistance += 8

    if result.spread_pct is not None:
        if result.spread_pct < 0.02:
            support += 15
            resistance += 15
        elif result.spread_pct < 0.05:
            support += 8
            resistance += 8

    # Gapped side is easier to break through
    if result.bid_gap_bps > VACUUM_GAP_BPS:
        support -= 10
    if result.ask_gap_bps > VACUUM_GAP_BPS:
        resistance -= 10

    result.support_score = int(max(0, min(100, support)))
    result.resistance_score = int(max(0, min(100, resistance)))
    return result
