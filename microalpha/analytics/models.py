"""
Analytics Data Models - Signal enums and result objects
All results expose to_dict() for the rendering / advisory layers
"""
from dataclasses import dataclass, field
from typing import List, Optional, Dict, Any, Tuple
from enum import Enum


class Mode(Enum):
    """Sensitivity profile selected by the user"""
    MARKET_MAKER = "market_maker"
    SWING_TRADER = "swing_trader"
    INVESTOR = "investor"


class ConsensusWeighting(Enum):
    """Weighting profile for the multi-timeframe consensus"""
    AGGRESSIVE = "aggressive"
    CONSERVATIVE = "conservative"
    BALANCED = "balanced"


class RegimeType(Enum):
    """Market microstructure regime"""
    VACUUM_DOWN = "VACUUM_DOWN"        # Thin, gapped support - crash risk
    VACUUM_UP = "VACUUM_UP"            # Thin, gapped resistance - squeeze risk
    EXPANSION = "EXPANSION"            # Flow accelerating, direction in RegimeResult
    COMPRESSION = "COMPRESSION"        # Tight book, flat flow - coiling
    ACCUMULATION = "ACCUMULATION"      # Bids building below fair value
    DISTRIBUTION = "DISTRIBUTION"      # Asks building above fair value
    UPTREND = "UPTREND"
    DOWNTREND = "DOWNTREND"
    MEAN_REVERSION = "MEAN_REVERSION"  # Neutral alpha, stretched from fair value
    NEUTRAL = "NEUTRAL"


class VelocityType(Enum):
    AGGRESSIVE_NEAR = "aggressive_near"  # Pressure concentrated within 1%
    SPOOF_FAR = "spoof_far"              # Pressure sits in far walls
    MIXED = "mixed"
    NEUTRAL = "neutral"


class Divergence(Enum):
    NONE = "none"
    BULLISH = "bullish"   # Price lower low, LD higher low
    BEARISH = "bearish"   # Price higher high, LD lower high


class AbsorptionType(Enum):
    DISPLACEMENT_UP = "displacement_up"        # Price and LD rising together
    DISPLACEMENT_DOWN = "displacement_down"    # Price and LD falling together
    ABSORPTION_SELL = "absorption_sell"        # LD falling, price holds
    ABSORPTION_BUY = "absorption_buy"          # LD rising, price holds
    ABSORPTION_NEUTRAL = "absorption_neutral"


class Bias(Enum):
    BULLISH = "bullish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"


class AlphaLabel(Enum):
    BULLISH = "Bullish"
    BEARISH = "Bearish"
    NEUTRAL = "Neutral"
    ANALYZING = "Analyzing"


class ConfidenceLabel(Enum):
    HIGH = "High"
    MED = "Med"
    LOW = "Low"


class Alignment(Enum):
    ALIGNED = "Aligned"      # All three biases agree
    SPLIT = "Split"          # Partial agreement / neutral leg
    FRACTURED = "Fractured"  # Bullish and bearish legs at once


# ============================================================
# CALCULATOR OUTPUTS
# ============================================================

@dataclass(slots=True)
class BPRResult:
    """Book pressure ratio"""
    ratio: float = 1.0
    bid_volume: float = 0.0
    ask_volume: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return {
            "ratio": self.ratio,
            "bid_volume": self.bid_volume,
            "ask_volume": self.ask_volume,
        }


@dataclass(slots=True)
class LDResult:
    """Liquidity delta with near/far velocity view"""
    delta: float = 0.0            # Sum of v/(1+dist%) bids minus asks
    near_delta: float = 0.0       # exp(-d/2) weighted, within 1%
    far_delta: float = 0.0        # exp(-d/2) weighted beyond 1%, x0.3
    near_bid: float = 0.0
    near_ask: float = 0.0
    far_bid: float = 0.0          # Discounted x0.3
    far_ask: float = 0.0
    velocity_delta: float = 0.0   # near_delta + far_delta
    velocity_type: VelocityType = VelocityType.NEUTRAL

    def to_dict(self) -> Dict[str, Any]:
        return {
            "delta": self.delta,
            "near_delta": self.near_delta,
            "far_delta": self.far_delta,
            "near_bid": self.near_bid,
            "near_ask": self.near_ask,
            "far_bid": self.far_bid,
            "far_ask": self.far_ask,
            "velocity_delta": self.velocity_delta,
            "velocity_type": self.velocity_type.value,
        }


@dataclass(slots=True)
class FairValue:
    """Fair value estimates; None = unavailable, never zero"""
    price: float = 0.0
    mid: Optional[float] = None
    vwmp: Optional[float] = None
    ifv: Optional[float] = None

    @staticmethod
    def _ext(price: float, fair: Optional[float]) -> Optional[float]:
        if fair is None or fair <= 0 or price <= 0:
            return None
        return (price - fair) / fair

    @property
    def vwmp_ext(self) -> Optional[float]:
        """(price - VWMP) / VWMP as a fraction"""
        return self._ext(self.price, self.vwmp)

    @property
    def ifv_ext(self) -> Optional[float]:
        return self._ext(self.price, self.ifv)

    @property
    def mid_ext(self) -> Optional[float]:
        return self._ext(self.price, self.mid)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mid": self.mid,
            "vwmp": self.vwmp,
            "ifv": self.ifv,
            "vwmp_ext": self.vwmp_ext,
            "ifv_ext": self.ifv_ext,
        }


@dataclass(slots=True)
class NormalizedValue:
    """Output of the adaptive normalizer"""
    value: float = 0.5            # Smoothed [0,1]
    raw_mapped: float = 0.5       # Pre-EMA mapping
    calibrated: bool = False
    samples: int = 0


@dataclass(slots=True)
class ZScoreValue:
    z: float = 0.0
    calibrated: bool = False


# ============================================================
# COMPONENT RESULTS
# ============================================================

@dataclass
class AlphaScoreResult:
    """Composite 0-100 alpha score"""
    score: Optional[int] = None
    label: AlphaLabel = AlphaLabel.ANALYZING
    component_norms: Dict[str, float] = field(default_factory=dict)
    weights: Dict[str, float] = field(default_factory=dict)
    display_score: Optional[int] = None   # Rate-gated value for presentation
    calibrated: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "label": self.label.value,
            "component_norms": dict(self.component_norms),
            "weights": dict(self.weights),
            "display_score": self.display_score,
            "calibrated": self.calibrated,
        }


@dataclass
class RegimeResult:
    """Committed regime after hysteresis"""
    type: RegimeType = RegimeType.NEUTRAL
    direction: int = 0                      # +1 / -1 for directional regimes
    raw_type: RegimeType = RegimeType.NEUTRAL
    rule: str = "neutral"                   # Rule that produced raw_type
    pending_type: Optional[RegimeType] = None
    pending_ticks: int = 0
    analyzing: bool = True
    thresholds_used: Dict[str, float] = field(default_factory=dict)

    @property
    def label(self) -> str:
        if self.analyzing:
            return "analyzing"
        return self.type.value

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "label": self.label,
            "direction": self.direction,
            "raw_type": self.raw_type.value,
            "rule": self.rule,
            "pending_type": self.pending_type.value if self.pending_type else None,
            "pending_ticks": self.pending_ticks,
            "analyzing": self.analyzing,
            "thresholds_used": dict(self.thresholds_used),
        }


@dataclass(slots=True)
class Cluster:
    """Group of levels within 0.5% of each other on one side"""
    side: str
    price: float          # Volume-weighted price of the cluster
    volume: float
    count: int
    weight: float         # count * distance decay

    def to_dict(self) -> Dict[str, Any]:
        return {
            "side": self.side,
            "price": self.price,
            "volume": self.volume,
            "count": self.count,
            "weight": self.weight,
        }


@dataclass
class PatternResult:
    """LD history patterns"""
    divergence: Divergence = Divergence.NONE
    absorption: Optional[AbsorptionType] = None
    projection: List[float] = field(default_factory=list)
    cluster_backed: bool = False
    velocity_type: VelocityType = VelocityType.NEUTRAL
    cluster_ld: float = 0.0
    clusters: List[Cluster] = field(default_factory=list)
    spoof_risk: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "divergence": self.divergence.value,
            "absorption": self.absorption.value if self.absorption else None,
            "projection": list(self.projection),
            "cluster_backed": self.cluster_backed,
            "velocity_type": self.velocity_type.value,
            "cluster_ld": self.cluster_ld,
            "clusters": [c.to_dict() for c in self.clusters],
            "spoof_risk": self.spoof_risk,
        }


@dataclass
class ConsensusResult:
    """Multi-timeframe consensus signal"""
    mm_bias: float = 0.0
    swing_bias: float = 0.0
    htf_bias: float = 0.0
    consensus: float = 0.0
    confidence: float = 0.0
    confidence_label: ConfidenceLabel = ConfidenceLabel.LOW
    alignment: Alignment = Alignment.SPLIT
    weighting: ConsensusWeighting = ConsensusWeighting.BALANCED
    components: Dict[str, float] = field(default_factory=dict)

    @property
    def bias(self) -> Bias:
        if self.consensus > 10:
            return Bias.BULLISH
        if self.consensus < -10:
            return Bias.BEARISH
        return Bias.NEUTRAL

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mm_bias": self.mm_bias,
            "swing_bias": self.swing_bias,
            "htf_bias": self.htf_bias,
            "consensus": self.consensus,
            "confidence": self.confidence,
            "confidence_label": self.confidence_label.value,
            "alignment": self.alignment.value,
            "weighting": self.weighting.value,
            "bias": self.bias.value,
            "components": dict(self.components),
        }


# ============================================================
# SUPPLEMENTARY SIGNALS
# ============================================================

@dataclass(slots=True)
class LevelTarget:
    price: float
    volume: float
    distance_pct: float

    def to_dict(self) -> Dict[str, float]:
        return {"price": self.price, "volume": self.volume, "distance_pct": self.distance_pct}


@dataclass
class DirectionBand:
    """Imbalance inside one exclusive distance band"""
    inner_pct: float
    outer_pct: float
    bid_volume: float = 0.0
    ask_volume: float = 0.0
    ratio: float = 0.0                 # -100..+100
    bias: Bias = Bias.NEUTRAL
    support: Optional[LevelTarget] = None
    resistance: Optional[LevelTarget] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "inner_pct": self.inner_pct,
            "outer_pct": self.outer_pct,
            "bid_volume": self.bid_volume,
            "ask_volume": self.ask_volume,
            "ratio": self.ratio,
            "bias": self.bias.value,
            "support": self.support.to_dict() if self.support else None,
            "resistance": self.resistance.to_dict() if self.resistance else None,
        }


@dataclass
class DirectionResult:
    short: DirectionBand
    medium: DirectionBand
    long: DirectionBand
    overall_bias: Bias = Bias.NEUTRAL
    confidence: str = "low"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "short": self.short.to_dict(),
            "medium": self.medium.to_dict(),
            "long": self.long.to_dict(),
            "overall_bias": self.overall_bias.value,
            "confidence": self.confidence,
        }


@dataclass(slots=True)
class Wall:
    price: float = 0.0
    size: float = 0.0
    multiple: float = 0.0
    distance_pct: float = 999.0
    proximity: int = 0

    def to_dict(self) -> Dict[str, float]:
        return {
            "price": self.price,
            "size": self.size,
            "multiple": self.multiple,
            "distance_pct": self.distance_pct,
            "proximity": self.proximity,
        }


@dataclass
class WallAnalysis:
    """Wall detection and level strength scores"""
    bid_wall: Optional[Wall] = None
    ask_wall: Optional[Wall] = None
    spread_pct: Optional[float] = None
    spread_bps: Optional[float] = None
    bid_gap_bps: float = 0.0
    ask_gap_bps: float = 0.0
    level_imbalance_pct: float = 0.0
    support_score: int = 0
    resistance_score: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bid_wall": self.bid_wall.to_dict() if self.bid_wall else None,
            "ask_wall": self.ask_wall.to_dict() if self.ask_wall else None,
            "spread_pct": self.spread_pct,
            "spread_bps": self.spread_bps,
            "bid_gap_bps": self.bid_gap_bps,
            "ask_gap_bps": self.ask_gap_bps,
            "level_imbalance_pct": self.level_imbalance_pct,
            "support_score": self.support_score,
            "resistance_score": self.resistance_score,
        }


@dataclass(slots=True)
class ProbabilityResult:
    """Next-regime (bullish transition) probability, 0-100"""
    raw: float = 50.0
    reported: float = 50.0
    components: Tuple[float, float, float, float] = (0.0, 0.0, 0.0, 0.0)

    def to_dict(self) -> Dict[str, Any]:
        momentum, bpr, fair_value, spread = self.components
        return {
            "raw": self.raw,
            "reported": self.reported,
            "momentum": momentum,
            "bpr": bpr,
            "fair_value": fair_value,
            "spread": spread,
        }


# ============================================================
# ENGINE OUTPUT
# ============================================================

@dataclass
class EngineOutput:
    """
    Complete analytics output for one tick
    Emitted once per update_levels() call
    """
    symbol: str
    timeframe: str
    timestamp_ms: int
    price: float
    alpha: AlphaScoreResult
    regime: RegimeResult
    consensus: ConsensusResult
    patterns: PatternResult
    bpr: BPRResult = field(default_factory=BPRResult)
    ld: LDResult = field(default_factory=LDResult)
    fair_value: FairValue = field(default_factory=FairValue)
    direction: Optional[DirectionResult] = None
    walls: Optional[WallAnalysis] = None
    probability: Optional[ProbabilityResult] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def status(self) -> str:
        return "warming_up" if self.warnings else "ready"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "symbol": self.symbol,
            "timeframe": self.timeframe,
            "timestamp_ms": self.timestamp_ms,
            "price": self.price,
            "status": self.status,
            "alpha": self.alpha.to_dict(),
            "regime": self.regime.to_dict(),
            "consensus": self.consensus.to_dict(),
            "patterns": self.patterns.to_dict(),
            "bpr": self.bpr.to_dict(),
            "ld": self.ld.to_dict(),
            "fair_value": self.fair_value.to_dict(),
            "direction": self.direction.to_dict() if self.direction else None,
            "walls": self.walls.to_dict() if self.walls else None,
            "probability": self.probability.to_dict() if self.probability else None,
            "warnings": list(self.warnings),
        }

    def to_flat_dict(self) -> Dict[str, Any]:
        """Flattened dict for UI display"""
        flat = {
            "timestamp_ms": self.timestamp_ms,
            "symbol": self.symbol,
            "timeframe": self.timeframe,
            "price": self.price,
            "status": self.status,
            "alpha_score": self.alpha.score,
            "alpha_label": self.alpha.label.value,
            "regime": self.regime.label,
            "consensus": self.consensus.consensus,
            "confidence": self.consensus.confidence,
            "alignment": self.consensus.alignment.value,
        }
        for name, block in [
            ("bpr", self.bpr),
            ("ld", self.ld),
            ("fv", self.fair_value),
        ]:
            for k, v in block.to_dict().items():
                flat[f"{name}_{k}"] = v
        for k, v in self.alpha.component_norms.items():
            flat[f"norm_{k}"] = v
        return flat
