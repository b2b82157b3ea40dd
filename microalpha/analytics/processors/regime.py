"""
Regime Classifier - Ordered rule matrix with hysteresis
=======================================================

Rules are evaluated top to bottom, first match wins:
1. VACUUM_DOWN / VACUUM_UP  - gapped, thin side (absolute thresholds)
2. EXPANSION                - flow acceleration (z-score / ROC triggers)
3. COMPRESSION              - tight book, flat flow
4. ACCUMULATION / DISTRIBUTION
5. UPTREND / DOWNTREND
6. MEAN_REVERSION
7. NEUTRAL                  - default

tm-relative thresholds are scaled by the mode's threshold multiplier.
A detected regime only replaces the committed one after
regime_min_ticks consecutive agreeing ticks.
"""
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple
import structlog

from config import settings
from microalpha.core.models import Snapshot
from microalpha.analytics.models import (
    RegimeType, RegimeResult, FairValue, ZScoreValue, Mode,
)
from microalpha.analytics.profiles import ModeProfile, get_profile

logger = structlog.get_logger(__name__)


# Absolute thresholds (not tm-scaled)
VACUUM_MIN_LEVELS = 3
VACUUM_GAP = 0.06            # Fraction of price
VACUUM_MAX_SHARE = 40.0      # % of in-range volume
ACCUMULATION_SHARE = 55.0
EXPANSION_Z = 2.0
COMPRESSION_Z = 1.5
TREND_ALPHA_HIGH = 65.0
TREND_ALPHA_LOW = 35.0
TREND_BPR_HIGH = 1.1
TREND_BPR_LOW = 0.9
MR_ALPHA_LOW = 40.0
MR_ALPHA_HIGH = 60.0
MR_VWMP_EXT = 0.03
MR_IFV_EXT = 0.06

# tm-relative thresholds (multiplied by ModeProfile.threshold_mult)
EXPANSION_BPR_ROC = 0.10
EXPANSION_ALPHA_ROC = 3.0
COMPRESSION_EXT = 0.02
COMPRESSION_GAP = 0.02
COMPRESSION_BPR_ROC = 0.05


@dataclass
class RegimeInputs:
    """All inputs needed for regime classification"""
    # Flow
    ld: float = 0.0
    ld_roc: float = 0.0
    ld_roc_z: float = 0.0
    z_calibrated: bool = False
    bpr: float = 1.0
    bpr_roc: float = 0.0
    alpha: float = 50.0
    alpha_roc: float = 0.0

    # Fair value (fractions of price, None = unavailable)
    price: float = 0.0
    vwmp_ext: Optional[float] = None
    ifv_ext: Optional[float] = None

    # Book structure within the fair value range
    support_count: int = 0
    resist_count: int = 0
    support_gap: float = 0.0
    resist_gap: float = 0.0
    support_share: float = 0.0
    resist_share: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return {
            "ld": self.ld,
            "ld_roc": self.ld_roc,
            "ld_roc_z": self.ld_roc_z,
            "z_calibrated": float(self.z_calibrated),
            "bpr": self.bpr,
            "bpr_roc": self.bpr_roc,
            "alpha": self.alpha,
            "alpha_roc": self.alpha_roc,
            "price": self.price,
            "vwmp_ext": self.vwmp_ext,
            "ifv_ext": self.ifv_ext,
            "support_count": self.support_count,
            "resist_count": self.resist_count,
            "support_gap": self.support_gap,
            "resist_gap": self.resist_gap,
            "support_share": self.support_share,
            "resist_share": self.resist_share,
        }


def largest_gap(prices: List[float], current_price: float) -> float:
    """
    Largest hole walking away from price, as a fraction of price.
    prices must be ordered nearest-first.
    """
    if not prices or current_price <= 0:
        return 0.0
    gap = 0.0
    prev = current_price
    for p in prices:
        gap = max(gap, abs(prev - p) / current_price)
        prev = p
    return gap


def build_regime_inputs(
    snapshot: Snapshot,
    fair_value: FairValue,
    ld: float,
    ld_roc: float,
    ld_roc_z: ZScoreValue,
    bpr: float,
    bpr_roc: float,
    alpha: Optional[float],
    alpha_roc: float,
    range_pct: Optional[float] = None,
) -> RegimeInputs:
    """Derive gap / share / count structure from the snapshot"""
    if range_pct is None:
        range_pct = settings.FAIR_VALUE_RANGE_PCT
    price = snapshot.current_price

    in_range = snapshot.in_range(range_pct)
    supports = sorted((lvl for lvl in in_range if lvl.is_support), key=lambda lvl: -lvl.price)
    resists = sorted((lvl for lvl in in_range if not lvl.is_support), key=lambda lvl: lvl.price)

    support_vol = sum(lvl.volume for lvl in supports)
    resist_vol = sum(lvl.volume for lvl in resists)
    total = support_vol + resist_vol

    return RegimeInputs(
        ld=ld,
        ld_roc=ld_roc,
        ld_roc_z=ld_roc_z.z,
        z_calibrated=ld_roc_z.calibrated,
        bpr=bpr,
        bpr_roc=bpr_roc,
        alpha=alpha if alpha is not None else 50.0,
        alpha_roc=alpha_roc,
        price=price,
        vwmp_ext=fair_value.vwmp_ext,
        ifv_ext=fair_value.ifv_ext,
        support_count=len(supports),
        resist_count=len(resists),
        support_gap=largest_gap([lvl.price for lvl in supports], price),
        resist_gap=largest_gap([lvl.price for lvl in resists], price),
        support_share=support_vol / total * 100.0 if total > 0 else 0.0,
        resist_share=resist_vol / total * 100.0 if total > 0 else 0.0,
    )


# ============================================================
# RULES
# ============================================================

def _vacuum_down(x: RegimeInputs, tm: float) -> bool:
    return (
        x.support_count >= VACUUM_MIN_LEVELS
        and x.support_gap > VACUUM_GAP
        and x.support_share < VACUUM_MAX_SHARE
    )


def _vacuum_up(x: RegimeInputs, tm: float) -> bool:
    return (
        x.resist_count >= VACUUM_MIN_LEVELS
        and x.resist_gap > VACUUM_GAP
        and x.resist_share < VACUUM_MAX_SHARE
    )


def expansion_trigger(x: RegimeInputs, tm: float) -> int:
    """Signed trigger: +1 / -1 from the first firing condition, 0 = none"""
    if x.z_calibrated and abs(x.ld_roc_z) > EXPANSION_Z:
        return 1 if x.ld_roc_z > 0 else -1
    if abs(x.bpr_roc) > EXPANSION_BPR_ROC * tm:
        return 1 if x.bpr_roc > 0 else -1
    if abs(x.alpha_roc) > EXPANSION_ALPHA_ROC * tm:
        return 1 if x.alpha_roc > 0 else -1
    return 0


def _expansion(x: RegimeInputs, tm: float) -> bool:
    return expansion_trigger(x, tm) != 0


def _compression(x: RegimeInputs, tm: float) -> bool:
    if x.vwmp_ext is None:
        return False
    return (
        abs(x.vwmp_ext) < COMPRESSION_EXT * tm
        and x.support_gap < COMPRESSION_GAP * tm
        and x.resist_gap < COMPRESSION_GAP * tm
        and abs(x.ld_roc_z) < COMPRESSION_Z
        and abs(x.bpr_roc) < COMPRESSION_BPR_ROC * tm
    )


def _accumulation(x: RegimeInputs, tm: float) -> bool:
    if x.vwmp_ext is None or x.ifv_ext is None:
        return False
    return (
        x.ld > 0
        and x.ld_roc > 0
        and x.vwmp_ext < 0
        and x.ifv_ext < 0
        and x.support_share > ACCUMULATION_SHARE
    )


def _distribution(x: RegimeInputs, tm: float) -> bool:
    if x.vwmp_ext is None or x.ifv_ext is None:
        return False
    return (
        x.ld < 0
        and x.ld_roc < 0
        and x.vwmp_ext > 0
        and x.ifv_ext > 0
        and x.resist_share > ACCUMULATION_SHARE
    )


def _uptrend(x: RegimeInputs, tm: float) -> bool:
    ifv_ext = x.ifv_ext or 0.0
    return (
        x.alpha > TREND_ALPHA_HIGH
        and x.ld_roc > 0
        and x.bpr > TREND_BPR_HIGH
        and ifv_ext >= 0
    )


def _downtrend(x: RegimeInputs, tm: float) -> bool:
    ifv_ext = x.ifv_ext or 0.0
    return (
        x.alpha < TREND_ALPHA_LOW
        and x.ld_roc < 0
        and x.bpr < TREND_BPR_LOW
        and ifv_ext <= 0
    )


def _mean_reversion(x: RegimeInputs, tm: float) -> bool:
    vwmp_ext = x.vwmp_ext or 0.0
    ifv_ext = x.ifv_ext or 0.0
    return (
        MR_ALPHA_LOW < x.alpha < MR_ALPHA_HIGH
        and (abs(vwmp_ext) > MR_VWMP_EXT or abs(ifv_ext) > MR_IFV_EXT)
    )


def _always(x: RegimeInputs, tm: float) -> bool:
    return True


RegimeRule = Tuple[str, Callable[[RegimeInputs, float], bool], RegimeType]

REGIME_RULES: List[RegimeRule] = [
    ("vacuum_down", _vacuum_down, RegimeType.VACUUM_DOWN),
    ("vacuum_up", _vacuum_up, RegimeType.VACUUM_UP),
    ("expansion", _expansion, RegimeType.EXPANSION),
    ("compression", _compression, RegimeType.COMPRESSION),
    ("accumulation", _accumulation, RegimeType.ACCUMULATION),
    ("distribution", _distribution, RegimeType.DISTRIBUTION),
    ("uptrend", _uptrend, RegimeType.UPTREND),
    ("downtrend", _downtrend, RegimeType.DOWNTREND),
    ("mean_reversion", _mean_reversion, RegimeType.MEAN_REVERSION),
    ("neutral", _always, RegimeType.NEUTRAL),
]


def regime_direction(regime: RegimeType, x: RegimeInputs, tm: float) -> int:
    if regime in (RegimeType.VACUUM_UP, RegimeType.ACCUMULATION, RegimeType.UPTREND):
        return 1
    if regime in (RegimeType.VACUUM_DOWN, RegimeType.DISTRIBUTION, RegimeType.DOWNTREND):
        return -1
    if regime == RegimeType.EXPANSION:
        return expansion_trigger(x, tm)
    if regime == RegimeType.MEAN_REVERSION:
        # Expected reversion back toward fair value
        ext = x.vwmp_ext if abs(x.vwmp_ext or 0.0) > MR_VWMP_EXT else x.ifv_ext
        if ext:
            return -1 if ext > 0 else 1
    return 0


def detect_regime(x: RegimeInputs, tm: float) -> Tuple[str, RegimeType, int]:
    """Raw (pre-hysteresis) classification: (rule, type, direction)"""
    for name, predicate, regime in REGIME_RULES:
        if predicate(x, tm):
            return name, regime, regime_direction(regime, x, tm)
    return "neutral", RegimeType.NEUTRAL, 0


def thresholds_for(profile: ModeProfile) -> Dict[str, float]:
    tm = profile.threshold_mult
    return {
        "threshold_mult": tm,
        "regime_min_ticks": profile.regime_min_ticks,
        "vacuum_gap": VACUUM_GAP,
        "vacuum_max_share": VACUUM_MAX_SHARE,
        "expansion_z": EXPANSION_Z,
        "expansion_bpr_roc": EXPANSION_BPR_ROC * tm,
        "expansion_alpha_roc": EXPANSION_ALPHA_ROC * tm,
        "compression_ext": COMPRESSION_EXT * tm,
        "compression_gap": COMPRESSION_GAP * tm,
        "compression_z": COMPRESSION_Z,
        "compression_bpr_roc": COMPRESSION_BPR_ROC * tm,
        "accumulation_share": ACCUMULATION_SHARE,
        "trend_alpha_high": TREND_ALPHA_HIGH,
        "trend_alpha_low": TREND_ALPHA_LOW,
    }


# ============================================================
# HYSTERESIS
# ============================================================

@dataclass
class RegimeState:
    """Committed regime with pending transition tracking"""
    committed: RegimeType = RegimeType.NEUTRAL
    committed_direction: int = 0
    pending: Optional[RegimeType] = None
    pending_direction: int = 0
    pending_ticks: int = 0
    tick_count: int = 0
    mode: Mode = Mode.INVESTOR


class RegimeClassifier:
    """
    Rule-matrix classifier with persistence for one (symbol, timeframe)

    Same type as committed: pending cleared
    Different type: pending counter tracks consecutive agreement
    Pending reaches regime_min_ticks: commit
    """

    def __init__(self, profile: Optional[ModeProfile] = None, symbol: str = ""):
        self.profile = profile or get_profile(settings.DEFAULT_MODE)
        self.symbol = symbol
        self.state = RegimeState(mode=self.profile.mode)

    def set_profile(self, profile: ModeProfile) -> None:
        self.profile = profile
        self.state.mode = profile.mode
        self.reset_pending()

    def reset_pending(self) -> None:
        """Drop pending transition and tick counter, keep the committed regime"""
        self.state.pending = None
        self.state.pending_direction = 0
        self.state.pending_ticks = 0
        self.state.tick_count = 0

    def reset(self) -> None:
        self.state = RegimeState(mode=self.profile.mode)

    def classify(self, inputs: RegimeInputs) -> RegimeResult:
        tm = self.profile.threshold_mult
        rule, detected, direction = detect_regime(inputs, tm)
        self._apply_transition(detected, direction)
        return self._result(detected, rule)

    def current(self) -> RegimeResult:
        """Committed regime without consuming a tick"""
        return self._result(self.state.committed, "hold")

    def _result(self, raw_type: RegimeType, rule: str) -> RegimeResult:
        state = self.state
        return RegimeResult(
            type=state.committed,
            direction=state.committed_direction,
            raw_type=raw_type,
            rule=rule,
            pending_type=state.pending,
            pending_ticks=state.pending_ticks,
            analyzing=state.tick_count < self.profile.regime_min_ticks,
            thresholds_used=thresholds_for(self.profile),
        )

    def _apply_transition(self, detected: RegimeType, direction: int) -> None:
        state = self.state
        state.tick_count += 1

        if detected == state.committed:
            state.committed_direction = direction
            state.pending = None
            state.pending_direction = 0
            state.pending_ticks = 0
            return

        if state.pending == detected:
            state.pending_ticks += 1
        else:
            state.pending = detected
            state.pending_ticks = 1
        state.pending_direction = direction

        if state.pending_ticks >= self.profile.regime_min_ticks:
            old = state.committed
            state.committed = detected
            state.committed_direction = direction
            state.pending = None
            state.pending_direction = 0
            state.pending_ticks = 0
            logger.info(
                "regime_committed",
                symbol=self.symbol,
                old=old.value,
                new=detected.value,
                mode=self.profile.mode.value,
            )
