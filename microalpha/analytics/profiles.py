"""
Mode and consensus profiles
One immutable profile per mode so every threshold set is enumerable
"""
from dataclasses import dataclass
from typing import Dict, Union
import structlog

from microalpha.analytics.models import Mode, ConsensusWeighting

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ModeProfile:
    """Sensitivity settings for one mode"""
    mode: Mode
    roc_window: int           # Ticks averaged for LD/BPR/alpha ROC
    regime_min_ticks: int     # Consecutive agreeing ticks to commit a regime
    threshold_mult: float     # tm - scales tm-relative regime thresholds
    prob_min_delta: float     # Min change before reported probability moves

    # Normalizer smoothing (BPR / LD norms)
    ema_alpha: float
    step_max: float           # Max EMA move per tick
    min_floor: float          # Floor once calibrated

    def to_dict(self) -> Dict[str, float]:
        return {
            "mode": self.mode.value,
            "roc_window": self.roc_window,
            "regime_min_ticks": self.regime_min_ticks,
            "threshold_mult": self.threshold_mult,
            "prob_min_delta": self.prob_min_delta,
            "ema_alpha": self.ema_alpha,
            "step_max": self.step_max,
            "min_floor": self.min_floor,
        }


MODE_PROFILES: Dict[Mode, ModeProfile] = {
    # Market maker - fastest, most sensitive
    Mode.MARKET_MAKER: ModeProfile(
        mode=Mode.MARKET_MAKER,
        roc_window=2,
        regime_min_ticks=1,
        threshold_mult=0.3,
        prob_min_delta=2.0,
        ema_alpha=0.5,
        step_max=0.15,
        min_floor=0.02,
    ),

    # Swing trader
    Mode.SWING_TRADER: ModeProfile(
        mode=Mode.SWING_TRADER,
        roc_window=4,
        regime_min_ticks=3,
        threshold_mult=1.5,
        prob_min_delta=5.0,
        ema_alpha=0.3,
        step_max=0.08,
        min_floor=0.03,
    ),

    # Investor - slowest, least sensitive
    Mode.INVESTOR: ModeProfile(
        mode=Mode.INVESTOR,
        roc_window=6,
        regime_min_ticks=5,
        threshold_mult=5.0,
        prob_min_delta=8.0,
        ema_alpha=0.15,
        step_max=0.05,
        min_floor=0.05,
    ),
}

DEFAULT_MODE = Mode.INVESTOR


def parse_mode(mode: Union[Mode, str, None]) -> Mode:
    """Resolve a Mode from enum or name; unknown values fall back to Investor"""
    if isinstance(mode, Mode):
        return mode
    text = str(mode).strip().lower().replace("-", "_").replace(" ", "_")
    aliases = {
        "mm": Mode.MARKET_MAKER,
        "marketmaker": Mode.MARKET_MAKER,
        "swing": Mode.SWING_TRADER,
        "swingtrader": Mode.SWING_TRADER,
        "htf": Mode.INVESTOR,
    }
    for m in Mode:
        if text == m.value:
            return m
    if text in aliases:
        return aliases[text]
    logger.warning("mode_fallback", requested=str(mode), fallback=DEFAULT_MODE.value)
    return DEFAULT_MODE


def get_profile(mode: Union[Mode, str, None]) -> ModeProfile:
    """Get profile for a mode, fallback to Investor"""
    return MODE_PROFILES.get(parse_mode(mode), MODE_PROFILES[DEFAULT_MODE])


# ============================================================
# CONSENSUS WEIGHTING
# ============================================================

@dataclass(frozen=True)
class ConsensusProfile:
    """Weights applied to MM / Swing / HTF biases"""
    weighting: ConsensusWeighting
    mm: float
    swing: float
    htf: float


CONSENSUS_PROFILES: Dict[ConsensusWeighting, ConsensusProfile] = {
    ConsensusWeighting.AGGRESSIVE: ConsensusProfile(ConsensusWeighting.AGGRESSIVE, 0.55, 0.30, 0.15),
    ConsensusWeighting.CONSERVATIVE: ConsensusProfile(ConsensusWeighting.CONSERVATIVE, 1 / 3, 1 / 3, 1 / 3),
    ConsensusWeighting.BALANCED: ConsensusProfile(ConsensusWeighting.BALANCED, 0.40, 0.35, 0.25),
}


def parse_weighting(weighting: Union[ConsensusWeighting, str, None]) -> ConsensusWeighting:
    if isinstance(weighting, ConsensusWeighting):
        return weighting
    text = str(weighting).strip().lower()
    for w in ConsensusWeighting:
        if text == w.value:
            return w
    logger.warning("weighting_fallback", requested=str(weighting), fallback="balanced")
    return ConsensusWeighting.BALANCED


def get_consensus_profile(weighting: Union[ConsensusWeighting, str, None]) -> ConsensusProfile:
    return CONSENSUS_PROFILES[parse_weighting(weighting)]
