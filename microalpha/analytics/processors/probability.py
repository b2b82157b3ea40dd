"""
Next-Regime Probability - Likelihood (0-100) of a bullish transition
50 = neutral; reported value only moves by at least prob_min_delta
"""
from typing import Optional

from microalpha.analytics.models import LDResult, BPRResult, FairValue, ProbabilityResult
from microalpha.analytics.processors.normalizer import clamp


MOMENTUM_SCALE = 25.0
BPR_SCALE = 20.0
BPR_CAP = 20.0
FAIR_VALUE_SCALE = 5.0
SPREAD_TIGHT_PCT = 0.05
SPREAD_WIDE_PCT = 0.2
SPREAD_POINTS = 5.0


def calc_probability(
    ld: LDResult,
    bpr: BPRResult,
    fair_value: FairValue,
    spread_pct: Optional[float],
) -> ProbabilityResult:
    near_total = ld.near_bid + ld.near_ask
    far_total = ld.far_bid + ld.far_ask
    if near_total > 0 and far_total > 0:
        near_far = (ld.near_bid - ld.near_ask) / near_total - (ld.far_bid - ld.far_ask) / far_total
    else:
        near_far = 0.0
    momentum = near_far * MOMENTUM_SCALE

    bpr_pts = clamp((bpr.ratio - 1.0) * BPR_SCALE, -BPR_CAP, BPR_CAP)

    vs_vwmp_pct = (fair_value.vwmp_ext or 0.0) * 100.0
    fair_pts = -vs_vwmp_pct * FAIR_VALUE_SCALE

    spread_pts = 0.0
    if spread_pct is not None:
        if spread_pct < SPREAD_TIGHT_PCT:
            spread_pts = SPREAD_POINTS
        elif spread_pct > SPREAD_WIDE_PCT:
            spread_pts = -SPREAD_POINTS

    raw = clamp(50.0 + momentum + bpr_pts + fair_pts + spread_pts, 0.0, 100.0)
    return ProbabilityResult(
        raw=raw,
        reported=raw,
        components=(momentum, bpr_pts, fair_pts, spread_pts),
    )


class ProbabilityTracker:
    """Holds the reported probability steady until it moves by min_delta"""

    def __init__(self, min_delta: float = 0.0):
        self.min_delta = min_delta
        self._reported: Optional[float] = None

    def update(self, result: ProbabilityResult) -> ProbabilityResult:
        if self._reported is None or abs(result.raw - self._reported) >= self.min_delta:
            self._reported = result.raw
        result.reported = self._reported
        return result

    def reset(self) -> None:
        self._reported = None
