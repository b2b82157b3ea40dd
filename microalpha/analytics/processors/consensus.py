"""
Multi-Timeframe Consensus - MM / Swing / HTF biases blended into one signal

MM     microstructure: LD core, BPR tiers, LD_ROC, cluster/velocity, near pressure
Swing  alpha deviation, fair value stretch, breakout/breakdown structure
HTF    regime baseline, IFV stretch, flow confirmation
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Union

import numpy as np

from microalpha.analytics.models import (
    ConsensusResult, ConsensusWeighting, ConfidenceLabel, Alignment,
    RegimeType, VelocityType, ZScoreValue,
)
from microalpha.analytics.profiles import get_consensus_profile
from microalpha.analytics.processors.normalizer import clamp


# MM tier tables: (threshold, points), checked high to low
LD_TIERS: List[Tuple[float, float]] = [(0.6, 60.0), (0.4, 45.0), (0.2, 30.0), (0.05, 15.0)]
BPR_TIERS: List[Tuple[float, float]] = [(2.0, 25.0), (1.5, 18.0), (1.2, 12.0), (1.05, 6.0)]

ROC_Z_SCALE = 7.5
ROC_CAP = 15.0
ROC_UNCALIBRATED = 5.0
CLUSTER_AGREE = 15.0
CLUSTER_DISAGREE = 10.0
CLUSTER_SINGLE = 5.0
NEAR_PRESSURE = 10.0

ALPHA_SCALE = 1.2
ALPHA_CAP = 60.0
IFV_STRETCH_SCALE = 250.0
VWMP_TWEAK_SCALE = 100.0
VWMP_TWEAK_CAP = 5.0
STRETCH_CAP = 25.0
STRUCTURE_CAP = 20.0

HTF_BASELINE: Dict[RegimeType, float] = {
    RegimeType.UPTREND: 60.0,
    RegimeType.DOWNTREND: -60.0,
    RegimeType.ACCUMULATION: 40.0,
    RegimeType.DISTRIBUTION: -40.0,
    RegimeType.VACUUM_UP: 45.0,
    RegimeType.VACUUM_DOWN: -45.0,
}
HTF_EXPANSION = 50.0
HTF_STRETCH_SCALE = 300.0
HTF_STRETCH_CAP = 30.0
FLOW_CONFIRM = 10.0
FLOW_OPPOSE = 5.0

ALIGN_DEADBAND = 10.0
CONFIDENCE_HIGH = 70.0
CONFIDENCE_MED = 40.0


def _sign(x: float) -> int:
    if x > 0:
        return 1
    if x < 0:
        return -1
    return 0


def _tier(value: float, tiers: List[Tuple[float, float]]) -> float:
    for threshold, points in tiers:
        if value >= threshold:
            return points
    return 0.0


@dataclass
class ConsensusInputs:
    """Signals consumed by the three bias calculators"""
    ld: float = 0.0
    ld_norm: float = 0.5
    ld_roc: float = 0.0
    ld_roc_z: ZScoreValue = field(default_factory=ZScoreValue)
    bpr: float = 1.0
    cluster_ld: float = 0.0
    velocity_type: VelocityType = VelocityType.NEUTRAL
    velocity_delta: float = 0.0
    near_bid: float = 0.0
    near_ask: float = 0.0
    alpha: Optional[float] = None
    ifv_ext: Optional[float] = None
    vwmp_ext: Optional[float] = None
    dist_up_pct: Optional[float] = None     # Nearest resistance (breakout)
    dist_down_pct: Optional[float] = None   # Nearest support (breakdown)
    regime: RegimeType = RegimeType.NEUTRAL
    regime_direction: int = 0


def mm_bias(x: ConsensusInputs) -> Tuple[float, Dict[str, float]]:
    s = (x.ld_norm - 0.5) * 2.0
    ld_core = _sign(s) * _tier(abs(s), LD_TIERS)

    if x.bpr >= 1.0:
        bpr_pts = _tier(x.bpr, BPR_TIERS)
    elif x.bpr > 0:
        bpr_pts = -_tier(1.0 / x.bpr, BPR_TIERS)
    else:
        bpr_pts = 0.0

    if x.ld_roc_z.calibrated:
        roc_pts = clamp(x.ld_roc_z.z * ROC_Z_SCALE, -ROC_CAP, ROC_CAP)
    else:
        roc_pts = _sign(x.ld_roc) * ROC_UNCALIBRATED

    partial = ld_core + bpr_pts + roc_pts
    cluster_dir = _sign(x.cluster_ld)
    vel_dir = 0 if x.velocity_type == VelocityType.NEUTRAL else _sign(x.velocity_delta)
    if cluster_dir and vel_dir:
        if cluster_dir == vel_dir:
            cluster_pts = CLUSTER_AGREE * cluster_dir
        else:
            cluster_pts = -CLUSTER_DISAGREE * _sign(partial)
    elif cluster_dir or vel_dir:
        cluster_pts = CLUSTER_SINGLE * (cluster_dir or vel_dir)
    else:
        cluster_pts = 0.0

    near_total = x.near_bid + x.near_ask
    near_pts = (x.near_bid - x.near_ask) / near_total * NEAR_PRESSURE if near_total > 0 else 0.0

    components = {
        "ld_core": ld_core,
        "bpr": bpr_pts,
        "ld_roc": roc_pts,
        "cluster_velocity": cluster_pts,
        "near_pressure": near_pts,
    }
    return clamp(sum(components.values()), -100.0, 100.0), components


def swing_bias(x: ConsensusInputs) -> Tuple[float, Dict[str, float]]:
    if x.alpha is None:
        alpha_pts = 0.0
    else:
        alpha_pts = clamp((x.alpha - 50.0) * ALPHA_SCALE, -ALPHA_CAP, ALPHA_CAP)

    stretch = 0.0
    if x.ifv_ext is not None:
        stretch -= x.ifv_ext * IFV_STRETCH_SCALE
    if x.vwmp_ext is not None:
        stretch += clamp(-x.vwmp_ext * VWMP_TWEAK_SCALE, -VWMP_TWEAK_CAP, VWMP_TWEAK_CAP)
    stretch = clamp(stretch, -STRETCH_CAP, STRETCH_CAP)

    structure = 0.0
    up, down = x.dist_up_pct, x.dist_down_pct
    if up is not None and down is not None and up + down > 0:
        # Far resistance + near support = room to run up
        structure = STRUCTURE_CAP * (up - down) / (up + down)

    components = {"alpha": alpha_pts, "stretch": stretch, "structure": structure}
    return clamp(sum(components.values()), -100.0, 100.0), components


def htf_bias(x: ConsensusInputs) -> Tuple[float, Dict[str, float]]:
    if x.regime == RegimeType.EXPANSION:
        baseline = HTF_EXPANSION * x.regime_direction
    else:
        baseline = HTF_BASELINE.get(x.regime, 0.0)

    stretch = 0.0
    if x.ifv_ext is not None:
        stretch = clamp(-x.ifv_ext * HTF_STRETCH_SCALE, -HTF_STRETCH_CAP, HTF_STRETCH_CAP)

    flow = 0.0
    base_dir = _sign(baseline)
    ld_dir = _sign(x.ld)
    if base_dir and ld_dir:
        flow = FLOW_CONFIRM * base_dir if ld_dir == base_dir else -FLOW_OPPOSE * base_dir

    components = {"baseline": baseline, "stretch": stretch, "flow": flow}
    return clamp(sum(components.values()), -100.0, 100.0), components


def confidence_from(biases: List[float]) -> Tuple[float, ConfidenceLabel]:
    """100 * (1 - population std / 100), clamped"""
    std = float(np.std(np.asarray(biases, dtype=np.float64)))
    confidence = clamp(100.0 * (1.0 - std / 100.0), 0.0, 100.0)
    if confidence >= CONFIDENCE_HIGH:
        return confidence, ConfidenceLabel.HIGH
    if confidence >= CONFIDENCE_MED:
        return confidence, ConfidenceLabel.MED
    return confidence, ConfidenceLabel.LOW


def alignment_from(biases: List[float]) -> Alignment:
    dirs = [1 if b > ALIGN_DEADBAND else -1 if b < -ALIGN_DEADBAND else 0 for b in biases]
    if all(d == 1 for d in dirs) or all(d == -1 for d in dirs):
        return Alignment.ALIGNED
    if 1 in dirs and -1 in dirs:
        return Alignment.FRACTURED
    return Alignment.SPLIT


def combine(
    mm: float,
    swing: float,
    htf: float,
    weighting: Union[ConsensusWeighting, str] = ConsensusWeighting.BALANCED,
) -> ConsensusResult:
    """Blend three biases with the selected weighting profile"""
    profile = get_consensus_profile(weighting)
    consensus = clamp(
        profile.mm * mm + profile.swing * swing + profile.htf * htf,
        -100.0,
        100.0,
    )
    biases = [mm, swing, htf]
    confidence, label = confidence_from(biases)
    return ConsensusResult(
        mm_bias=mm,
        swing_bias=swing,
        htf_bias=htf,
        consensus=consensus,
        confidence=confidence,
        confidence_label=label,
        alignment=alignment_from(biases),
        weighting=profile.weighting,
    )


def compute_consensus(
    inputs: ConsensusInputs,
    weighting: Union[ConsensusWeighting, str] = ConsensusWeighting.BALANCED,
) -> ConsensusResult:
    mm, mm_parts = mm_bias(inputs)
    swing, swing_parts = swing_bias(inputs)
    htf, htf_parts = htf_bias(inputs)

    result = combine(mm, swing, htf, weighting)
    for prefix, parts in (("mm", mm_parts), ("swing", swing_parts), ("htf", htf_parts)):
        for k, v in parts.items():
            result.components[f"{prefix}_{k}"] = v
    return result
