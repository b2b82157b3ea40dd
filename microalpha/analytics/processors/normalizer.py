"""
Adaptive Normalizer - Rolling percentile mapping + EMA smoothing
Maps raw BPR / LD onto [0,1] without per-asset constants

Pipeline per sample:
1. Append to bounded window (drop-oldest)
2. < min_samples: linear map inside the legacy range
3. >= min_samples: p5/p95 bounds, IQR fence, linear map, smoothstep
4. EMA with per-tick step clamp, floored once calibrated
"""
import math
from collections import deque
from typing import Iterable, Optional, Tuple

import numpy as np
import structlog

from config import settings
from microalpha.analytics.models import NormalizedValue, ZScoreValue

logger = structlog.get_logger(__name__)


def clamp(x: float, lo: float = 0.0, hi: float = 1.0) -> float:
    return max(lo, min(hi, x))


def round_half_up(x: float) -> int:
    """Ties round upward: 62.5 -> 63, 2.5 -> 3"""
    return int(math.floor(x + 0.5))


def smoothstep(x: float) -> float:
    """x^2 (3 - 2x) on [0,1]"""
    x = clamp(x)
    return x * x * (3.0 - 2.0 * x)


def linear_map(value: float, lo: float, hi: float) -> float:
    """Map value into [0,1] over [lo, hi]; degenerate span maps to 0.5"""
    span = hi - lo
    if span <= 1e-12:
        return 0.5
    return clamp((value - lo) / span)


def percentile_bounds(samples: Iterable[float], fence_mult: float = 4.0) -> Tuple[float, float]:
    """
    5th / 95th percentiles (linear interpolation), each clamped into
    [median - k*IQR, median + k*IQR]
    """
    arr = np.asarray(list(samples), dtype=np.float64)
    if arr.size == 0:
        return 0.0, 0.0
    p5, p25, p50, p75, p95 = np.percentile(arr, [5, 25, 50, 75, 95])
    iqr = p75 - p25
    fence_lo = p50 - fence_mult * iqr
    fence_hi = p50 + fence_mult * iqr
    lo = clamp(float(p5), fence_lo, fence_hi)
    hi = clamp(float(p95), fence_lo, fence_hi)
    return lo, hi


class EMAState:
    """Plain exponential moving average; value is None until first update"""

    def __init__(self, alpha: float, value: Optional[float] = None):
        self.alpha = alpha
        self.value = value

    def update(self, x: float) -> float:
        if self.value is None:
            self.value = x
        else:
            self.value += self.alpha * (x - self.value)
        return self.value

    def reset(self) -> None:
        self.value = None


class AdaptiveNormalizer:
    """
    Self-calibrating [0,1] normalizer for one raw signal of one
    (symbol, timeframe) key
    """

    def __init__(
        self,
        alpha: float,
        step_max: float,
        min_floor: float,
        legacy_range: Tuple[float, float],
        window_size: Optional[int] = None,
        min_samples: Optional[int] = None,
        fence_mult: Optional[float] = None,
        name: str = "",
    ):
        self.alpha = alpha
        self.step_max = step_max
        self.min_floor = min_floor
        self.legacy_range = tuple(legacy_range)
        self.window_size = window_size or settings.SAMPLE_WINDOW_SIZE
        self.min_samples = min_samples or settings.CALIBRATION_MIN_SAMPLES
        self.fence_mult = fence_mult if fence_mult is not None else settings.IQR_FENCE_MULT
        self.name = name

        self._samples: deque[float] = deque(maxlen=self.window_size)
        self._ema: Optional[float] = None
        self._last = NormalizedValue()

    @property
    def samples(self) -> int:
        return len(self._samples)

    @property
    def calibrated(self) -> bool:
        return len(self._samples) >= self.min_samples

    @property
    def value(self) -> Optional[float]:
        return self._ema

    def bounds(self) -> Tuple[float, float]:
        """Current mapping bounds (legacy range until calibrated)"""
        if not self.calibrated:
            return self.legacy_range
        return percentile_bounds(self._samples, self.fence_mult)

    def set_smoothing(self, alpha: float, step_max: float, min_floor: float) -> None:
        self.alpha = alpha
        self.step_max = step_max
        self.min_floor = min_floor

    def update(self, raw: float) -> NormalizedValue:
        """Add a raw sample and return the smoothed normalized value"""
        if raw is None or not math.isfinite(raw):
            return self._last

        was_calibrated = self.calibrated
        self._samples.append(float(raw))
        calibrated = self.calibrated
        if calibrated and not was_calibrated:
            logger.debug("normalizer_calibrated", signal=self.name, samples=len(self._samples))

        lo, hi = self.bounds()
        mapped = linear_map(raw, lo, hi)
        if calibrated:
            mapped = smoothstep(mapped)

        if self._ema is None:
            ema = mapped
        else:
            step = self.alpha * (mapped - self._ema)
            ema = self._ema + clamp(step, -self.step_max, self.step_max)
        if calibrated:
            ema = max(ema, self.min_floor)
        self._ema = clamp(ema)

        self._last = NormalizedValue(
            value=self._ema,
            raw_mapped=mapped,
            calibrated=calibrated,
            samples=len(self._samples),
        )
        return self._last

    def reset_ema(self) -> None:
        """Drop smoothing state, keep the sample window"""
        self._ema = None

    def reset(self) -> None:
        self._samples.clear()
        self._ema = None
        self._last = NormalizedValue()


class ZScoreTracker:
    """
    Running z-score with EMA mean / variance
    z is measured against the state before the sample is absorbed
    """

    def __init__(self, alpha: Optional[float] = None, warmup_min: Optional[int] = None):
        self.alpha = alpha if alpha is not None else settings.ZSCORE_ALPHA
        self.warmup_min = warmup_min if warmup_min is not None else settings.ZSCORE_WARMUP
        self.ema_mean = 0.0
        self.ema_var = 1.0
        self.warmup_count = 0

    @property
    def calibrated(self) -> bool:
        return self.warmup_count >= self.warmup_min

    def update(self, x: float) -> ZScoreValue:
        if x is None or not math.isfinite(x):
            return ZScoreValue(z=0.0, calibrated=self.calibrated)

        diff = x - self.ema_mean
        std = math.sqrt(self.ema_var) if self.ema_var > 0 else 0.0
        z = diff / std if std > 1e-12 else 0.0

        self.ema_mean += self.alpha * diff
        self.ema_var = (1.0 - self.alpha) * (self.ema_var + self.alpha * diff * diff)
        self.warmup_count += 1

        if not self.calibrated:
            return ZScoreValue(z=0.0, calibrated=False)
        return ZScoreValue(z=z, calibrated=True)

    def reset(self) -> None:
        self.ema_mean = 0.0
        self.ema_var = 1.0
        self.warmup_count = 0


class RocBuffer:
    """Rate of change = mean of consecutive deltas over the last window+1 values"""

    def __init__(self, window: int):
        self.window = max(1, int(window))
        self._values: deque[float] = deque(maxlen=self.window + 1)

    def __len__(self) -> int:
        return len(self._values)

    def push(self, value: float) -> float:
        if value is not None and math.isfinite(value):
            self._values.append(float(value))
        return self.value()

    def value(self) -> float:
        if len(self._values) < 2:
            return 0.0
        # Telescoping sum of deltas
        return (self._values[-1] - self._values[0]) / (len(self._values) - 1)

    def resize(self, window: int) -> None:
        self.window = max(1, int(window))
        self._values = deque(maxlen=self.window + 1)

    def reset(self) -> None:
        self._values.clear()
