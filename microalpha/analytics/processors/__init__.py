"""Analytics Signal Processors"""
from .pressure import calc_bpr, calc_ld
from .fair_value import calc_mid, calc_vwmp, calc_ifv, calc_fair_value
from .normalizer import AdaptiveNormalizer, ZScoreTracker, RocBuffer, EMAState
from .alpha_score import AlphaScorer
from .regime import RegimeClassifier, RegimeInputs, REGIME_RULES, build_regime_inputs
from .patterns import LDPatternDetector
from .consensus import ConsensusInputs, compute_consensus
from .direction import analyze_direction
from .walls import analyze_walls
from .probability import calc_probability, ProbabilityTracker

__all__ = [
    "calc_bpr",
    "calc_ld",
    "calc_mid",
    "calc_vwmp",
    "calc_ifv",
    "calc_fair_value",
    "AdaptiveNormalizer",
    "ZScoreTracker",
    "RocBuffer",
    "EMAState",
    "AlphaScorer",
    "RegimeClassifier",
    "RegimeInputs",
    "REGIME_RULES",
    "build_regime_inputs",
    "LDPatternDetector",
    "ConsensusInputs",
    "compute_consensus",
    "analyze_direction",
    "analyze_walls",
    "calc_probability",
    "ProbabilityTracker",
]
