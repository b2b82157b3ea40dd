"""
Alpha Score Composer - Weighted blend of LD / BPR / IFV / VWMP norms
Produces the 0-100 directional score and its label
"""
from typing import Dict, Optional

from config import settings
from microalpha.analytics.models import (
    AlphaScoreResult, AlphaLabel, FairValue, NormalizedValue,
)
from microalpha.analytics.processors.normalizer import EMAState, clamp, round_half_up


BASE_WEIGHTS: Dict[str, float] = {
    "ld": 0.40,
    "bpr": 0.25,
    "ifv": 0.25,
    "vwmp": 0.10,
}

# Discount multipliers for uncalibrated / saturated components
LD_DISCOUNT = 0.5
BPR_DISCOUNT = 0.6
SATURATION_LOW = 0.05
SATURATION_HIGH = 0.95
WEIGHT_FLOOR_FRAC = 0.15   # Of the pre-floor total

VWMP_BAND = 0.05           # +/-5% maps onto [0,1]
IFV_BAND = 0.10            # +/-10%

BEARISH_MAX = 30
BULLISH_MIN = 70


def vwmp_norm(ext: Optional[float]) -> float:
    """Price above VWMP is bearish (stretched), below is bullish"""
    if ext is None:
        return 0.5
    return clamp(0.5 - ext / (2.0 * VWMP_BAND))


def ifv_norm(ext: Optional[float]) -> float:
    if ext is None:
        return 0.5
    return clamp(0.5 - ext / (2.0 * IFV_BAND))


def ifv_ema_alpha(price: float) -> float:
    """Heavier smoothing for low-priced assets (noisier relative ticks)"""
    if price >= 1000:
        return 0.3
    if price >= 1:
        return 0.2
    return 0.1


def _saturated(norm: float) -> bool:
    return norm < SATURATION_LOW or norm > SATURATION_HIGH


def compute_weights(
    ld: NormalizedValue,
    bpr: NormalizedValue,
    base: Optional[Dict[str, float]] = None,
) -> Dict[str, float]:
    """
    Discount, floor at 15% of the pre-floor total, renormalize to 1
    """
    weights = dict(base or BASE_WEIGHTS)
    if not ld.calibrated or _saturated(ld.value):
        weights["ld"] *= LD_DISCOUNT
    if not bpr.calibrated or _saturated(bpr.value):
        weights["bpr"] *= BPR_DISCOUNT

    total = sum(weights.values())
    floor = WEIGHT_FLOOR_FRAC * total
    weights = {k: max(w, floor) for k, w in weights.items()}

    total = sum(weights.values())
    return {k: w / total for k, w in weights.items()}


def compose_score(norms: Dict[str, float], weights: Dict[str, float]) -> int:
    raw = sum(weights[k] * norms.get(k, 0.5) for k in weights)
    return int(clamp(round_half_up(100.0 * raw), 0, 100))


def label_for(score: Optional[int]) -> AlphaLabel:
    if score is None:
        return AlphaLabel.ANALYZING
    if score <= BEARISH_MAX:
        return AlphaLabel.BEARISH
    if score >= BULLISH_MIN:
        return AlphaLabel.BULLISH
    return AlphaLabel.NEUTRAL


class AlphaScorer:
    """
    Stateful composer for one key: owns the IFV smoothing EMA and the
    presentation rate gate
    """

    def __init__(self, display_interval_ms: Optional[int] = None):
        self.display_interval_ms = (
            display_interval_ms if display_interval_ms is not None
            else settings.ALPHA_DISPLAY_INTERVAL_MS
        )
        self._ifv_ema = EMAState(alpha=0.2)
        self._last_display_ms: Optional[int] = None
        self._display_score: Optional[int] = None

    def score(
        self,
        ld: NormalizedValue,
        bpr: NormalizedValue,
        fair_value: FairValue,
        timestamp_ms: int,
        has_levels: bool = True,
    ) -> AlphaScoreResult:
        if not has_levels:
            return self.hold()

        ifv_ext = fair_value.ifv_ext
        if ifv_ext is None:
            ifv = 0.5
        else:
            self._ifv_ema.alpha = ifv_ema_alpha(fair_value.price)
            ifv = self._ifv_ema.update(ifv_norm(ifv_ext))

        norms = {
            "ld": ld.value,
            "bpr": bpr.value,
            "ifv": ifv,
            "vwmp": vwmp_norm(fair_value.vwmp_ext),
        }
        weights = compute_weights(ld, bpr)
        score = compose_score(norms, weights)

        # Presentation gate only - the pipeline above always runs
        if (
            self._last_display_ms is None
            or timestamp_ms - self._last_display_ms >= self.display_interval_ms
            or timestamp_ms < self._last_display_ms
        ):
            self._display_score = score
            self._last_display_ms = timestamp_ms

        return AlphaScoreResult(
            score=score,
            label=label_for(score),
            component_norms=norms,
            weights=weights,
            display_score=self._display_score,
            calibrated=ld.calibrated and bpr.calibrated,
        )

    def hold(self) -> AlphaScoreResult:
        """No levels this tick: no score, last presented value carried"""
        return AlphaScoreResult(
            score=None,
            label=AlphaLabel.ANALYZING,
            display_score=self._display_score,
        )

    def reset_ema(self) -> None:
        self._ifv_ema.reset()

    def reset(self) -> None:
        self._ifv_ema.reset()
        self._last_display_ms = None
        self._display_score = None
