"""
MicroAlpha Configuration
"""
from pydantic_settings import BaseSettings
from pydantic import Field
from typing import Tuple
from pathlib import Path


class Settings(BaseSettings):
    # Project paths
    PROJECT_ROOT: Path = Path(__file__).parent.parent

    # Adaptive normalizer
    SAMPLE_WINDOW_SIZE: int = 500          # Raw samples kept per (symbol, timeframe)
    CALIBRATION_MIN_SAMPLES: int = 20      # Below = legacy linear range
    IQR_FENCE_MULT: float = 4.0            # Percentile bounds clamped to median +/- k*IQR
    LEGACY_BPR_RANGE: Tuple[float, float] = (0.0, 2.0)
    LEGACY_LD_RANGE: Tuple[float, float] = (-500.0, 500.0)

    # LD rate-of-change z-score
    ZSCORE_ALPHA: float = 0.1
    ZSCORE_WARMUP: int = 15

    # Fair value estimators
    FAIR_VALUE_RANGE_PCT: float = 15.0     # +/- % of price considered for VWMP/IFV
    IFV_TOP_LEVELS: int = 10

    # LD history buffers
    DIVERGENCE_HISTORY: int = 20
    FOOTPRINT_HISTORY: int = 50

    # Presentation gate for the reported alpha score (snapshot time, ms)
    ALPHA_DISPLAY_INTERVAL_MS: int = 1000

    # Start-up profiles
    DEFAULT_MODE: str = "investor"         # market_maker | swing_trader | investor
    DEFAULT_WEIGHTING: str = "balanced"    # aggressive | conservative | balanced

    # Demo runner
    DEMO_SYMBOLS: list = Field(default_factory=lambda: ["BTC", "ETH", "DOGE"])
    DEMO_TIMEFRAME: str = "1m"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
