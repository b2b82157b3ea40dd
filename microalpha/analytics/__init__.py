"""
Microstructure Analytics: Pressure, Fair Value, Alpha, Regime & Consensus

Usage:
    # Synthetic replay to the console
    python run_tests.py demo

    # In code
    engine = AnalyticsEngine(mode="swing_trader")
    output = engine.update_levels(levels, price, "BTC", "1m")
"""
from .models import (
    Mode, ConsensusWeighting, RegimeType, VelocityType, Divergence,
    AbsorptionType, Bias, AlphaLabel, ConfidenceLabel, Alignment,
    BPRResult, LDResult, FairValue, NormalizedValue, ZScoreValue,
    AlphaScoreResult, RegimeResult, PatternResult, ConsensusResult,
    DirectionResult, WallAnalysis, ProbabilityResult, EngineOutput,
)
from .profiles import ModeProfile, MODE_PROFILES, get_profile
from .orchestrator import AnalyticsEngine, EngineState

__all__ = [
    # Main
    "AnalyticsEngine",
    "EngineState",
    "EngineOutput",
    # Profiles
    "ModeProfile",
    "MODE_PROFILES",
    "get_profile",
    # Results
    "BPRResult",
    "LDResult",
    "FairValue",
    "NormalizedValue",
    "ZScoreValue",
    "AlphaScoreResult",
    "RegimeResult",
    "PatternResult",
    "ConsensusResult",
    "DirectionResult",
    "WallAnalysis",
    "ProbabilityResult",
    # Enums
    "Mode",
    "ConsensusWeighting",
    "RegimeType",
    "VelocityType",
    "Divergence",
    "AbsorptionType",
    "Bias",
    "AlphaLabel",
    "ConfidenceLabel",
    "Alignment",
]
