"""
Analytics Orchestrator - Runs the signal pipeline per depth snapshot
Owns the keyed (symbol, timeframe) state store and the public entry points
"""
import math
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union
import structlog

from config import settings as default_settings
from config.settings import Settings
from microalpha.core.models import Snapshot
from microalpha.analytics.models import (
    Mode, ConsensusWeighting, EngineOutput, AlphaScoreResult, RegimeResult,
    ConsensusResult, PatternResult,
)
from microalpha.analytics.profiles import (
    ModeProfile, get_profile, parse_weighting,
)
from microalpha.analytics.processors.pressure import calc_bpr, calc_ld
from microalpha.analytics.processors.fair_value import calc_fair_value
from microalpha.analytics.processors.normalizer import (
    AdaptiveNormalizer, ZScoreTracker, RocBuffer,
)
from microalpha.analytics.processors.alpha_score import AlphaScorer
from microalpha.analytics.processors.regime import RegimeClassifier, build_regime_inputs
from microalpha.analytics.processors.patterns import LDPatternDetector
from microalpha.analytics.processors.consensus import ConsensusInputs, compute_consensus
from microalpha.analytics.processors.direction import analyze_direction
from microalpha.analytics.processors.walls import analyze_walls
from microalpha.analytics.processors.probability import calc_probability, ProbabilityTracker

logger = structlog.get_logger(__name__)

StateKey = Tuple[str, str]


@dataclass
class EngineState:
    """All mutable signal state for one (symbol, timeframe)"""
    symbol: str
    timeframe: str
    ld_norm: AdaptiveNormalizer
    bpr_norm: AdaptiveNormalizer
    ld_roc_z: ZScoreTracker
    ld_roc: RocBuffer
    bpr_roc: RocBuffer
    alpha_roc: RocBuffer
    alpha: AlphaScorer
    regime: RegimeClassifier
    patterns: LDPatternDetector
    probability: ProbabilityTracker
    tick_count: int = 0
    last_update_ms: int = 0
    last_output: Optional[EngineOutput] = None

    @classmethod
    def create(
        cls,
        symbol: str,
        timeframe: str,
        profile: ModeProfile,
        config: Settings,
    ) -> "EngineState":
        def normalizer(name: str, legacy_range) -> AdaptiveNormalizer:
            return AdaptiveNormalizer(
                alpha=profile.ema_alpha,
                step_max=profile.step_max,
                min_floor=profile.min_floor,
                legacy_range=legacy_range,
                window_size=config.SAMPLE_WINDOW_SIZE,
                min_samples=config.CALIBRATION_MIN_SAMPLES,
                fence_mult=config.IQR_FENCE_MULT,
                name=name,
            )

        return cls(
            symbol=symbol,
            timeframe=timeframe,
            ld_norm=normalizer("ld", config.LEGACY_LD_RANGE),
            bpr_norm=normalizer("bpr", config.LEGACY_BPR_RANGE),
            ld_roc_z=ZScoreTracker(alpha=config.ZSCORE_ALPHA, warmup_min=config.ZSCORE_WARMUP),
            ld_roc=RocBuffer(profile.roc_window),
            bpr_roc=RocBuffer(profile.roc_window),
            alpha_roc=RocBuffer(profile.roc_window),
            alpha=AlphaScorer(display_interval_ms=config.ALPHA_DISPLAY_INTERVAL_MS),
            regime=RegimeClassifier(profile, symbol=symbol),
            patterns=LDPatternDetector(
                divergence_size=config.DIVERGENCE_HISTORY,
                footprint_size=config.FOOTPRINT_HISTORY,
            ),
            probability=ProbabilityTracker(profile.prob_min_delta),
        )

    def apply_profile(self, profile: ModeProfile) -> None:
        """Mode change: new smoothing, fresh ROC / EMA / pending state, windows kept"""
        for norm in (self.ld_norm, self.bpr_norm):
            norm.set_smoothing(profile.ema_alpha, profile.step_max, profile.min_floor)
            norm.reset_ema()
        for roc in (self.ld_roc, self.bpr_roc, self.alpha_roc):
            roc.resize(profile.roc_window)
        self.alpha.reset_ema()
        self.regime.set_profile(profile)
        self.probability.min_delta = profile.prob_min_delta


class AnalyticsEngine:
    """
    Microstructure analytics engine

    Responsibilities:
    - Receive depth snapshots + live price from the transport layer
    - Run pressure, fair value, normalization, alpha, regime, pattern
      and consensus computations for the active (symbol, timeframe)
    - Hard-reset state on context switches
    - Never raise into the caller; degrade to a warming-up output
    """

    def __init__(
        self,
        mode: Union[Mode, str, None] = None,
        weighting: Union[ConsensusWeighting, str, None] = None,
        config: Optional[Settings] = None,
    ):
        self.config = config or default_settings
        self.profile = get_profile(mode if mode is not None else self.config.DEFAULT_MODE)
        self.weighting = parse_weighting(
            weighting if weighting is not None else self.config.DEFAULT_WEIGHTING
        )

        self._states: Dict[StateKey, EngineState] = {}
        self._active_key: Optional[StateKey] = None

        # Stats
        self._output_count = 0
        self._error_count = 0
        self._reset_count = 0
        self._processing_times: deque[float] = deque(maxlen=100)

        logger.info(
            "analytics_engine_initialized",
            mode=self.profile.mode.value,
            weighting=self.weighting.value,
        )

    @property
    def mode(self) -> Mode:
        return self.profile.mode

    @property
    def active_key(self) -> Optional[StateKey]:
        return self._active_key

    # ========== INGESTION ==========

    def update_levels(
        self,
        levels: Iterable[Any],
        current_price: float,
        symbol: str,
        timeframe: str,
        timestamp_ms: Optional[int] = None,
    ) -> EngineOutput:
        """Process one depth snapshot; always returns an output"""
        key = (symbol, timeframe)
        start = time.perf_counter()
        try:
            if self._active_key is not None and key != self._active_key:
                self._reset_key(self._active_key, reason="key_switch")
            self._active_key = key

            state = self._states.get(key)
            if state is None:
                state = EngineState.create(symbol, timeframe, self.profile, self.config)
                self._states[key] = state

            snapshot = Snapshot.from_raw(levels, current_price, symbol, timeframe, timestamp_ms)
            output = self._process(state, snapshot)

            state.last_output = output
            state.last_update_ms = snapshot.timestamp_ms
            self._output_count += 1
            return output
        except Exception as e:
            self._error_count += 1
            logger.error("pipeline_error", symbol=symbol, timeframe=timeframe, error=str(e))
            state = self._states.get(key)
            if state is not None and state.last_output is not None:
                return state.last_output
            return self._neutral_output(symbol, timeframe, timestamp_ms, current_price, ["pipeline_error"])
        finally:
            self._processing_times.append(time.perf_counter() - start)

    def _process(self, state: EngineState, snapshot: Snapshot) -> EngineOutput:
        ts = snapshot.timestamp_ms

        if snapshot.is_empty:
            # Insufficient data: hold state, nothing is advanced
            output = self._neutral_output(
                snapshot.symbol, snapshot.timeframe, ts, snapshot.current_price, ["no_levels"],
            )
            output.regime = state.regime.current()
            output.alpha = state.alpha.hold()
            return output

        state.tick_count += 1
        cfg = self.config

        bpr = calc_bpr(snapshot)
        ld = calc_ld(snapshot)
        fair_value = calc_fair_value(snapshot, cfg.FAIR_VALUE_RANGE_PCT, cfg.IFV_TOP_LEVELS)

        ld_norm = state.ld_norm.update(ld.delta)
        bpr_norm = state.bpr_norm.update(bpr.ratio)

        ld_roc = state.ld_roc.push(ld.delta)
        ld_roc_z = state.ld_roc_z.update(ld_roc)
        bpr_roc = state.bpr_roc.push(bpr.ratio)

        alpha = state.alpha.score(ld_norm, bpr_norm, fair_value, ts, has_levels=True)
        alpha_roc = state.alpha_roc.push(alpha.score)

        regime_inputs = build_regime_inputs(
            snapshot,
            fair_value,
            ld=ld.delta,
            ld_roc=ld_roc,
            ld_roc_z=ld_roc_z,
            bpr=bpr.ratio,
            bpr_roc=bpr_roc,
            alpha=alpha.score,
            alpha_roc=alpha_roc,
            range_pct=cfg.FAIR_VALUE_RANGE_PCT,
        )
        regime = state.regime.classify(regime_inputs)
        patterns = state.patterns.update(snapshot, ld, ld_roc, ts)

        walls = analyze_walls(snapshot)
        direction = analyze_direction(snapshot)
        probability = state.probability.update(
            calc_probability(ld, bpr, fair_value, walls.spread_pct)
        )

        price = snapshot.current_price
        best_ask = snapshot.best_ask
        best_bid = snapshot.best_bid
        consensus = compute_consensus(
            ConsensusInputs(
                ld=ld.delta,
                ld_norm=ld_norm.value,
                ld_roc=ld_roc,
                ld_roc_z=ld_roc_z,
                bpr=bpr.ratio,
                cluster_ld=patterns.cluster_ld,
                velocity_type=ld.velocity_type,
                velocity_delta=ld.velocity_delta,
                near_bid=ld.near_bid,
                near_ask=ld.near_ask,
                alpha=alpha.score,
                ifv_ext=fair_value.ifv_ext,
                vwmp_ext=fair_value.vwmp_ext,
                dist_up_pct=abs(best_ask - price) / price * 100.0 if best_ask is not None else None,
                dist_down_pct=abs(price - best_bid) / price * 100.0 if best_bid is not None else None,
                regime=regime.type,
                regime_direction=regime.direction,
            ),
            self.weighting,
        )

        warnings: List[str] = []
        if not ld_norm.calibrated:
            warnings.append("ld_uncalibrated")
        if not bpr_norm.calibrated:
            warnings.append("bpr_uncalibrated")
        if not ld_roc_z.calibrated:
            warnings.append("ld_roc_z_warming_up")

        return EngineOutput(
            symbol=snapshot.symbol,
            timeframe=snapshot.timeframe,
            timestamp_ms=ts,
            price=price,
            alpha=alpha,
            regime=regime,
            consensus=consensus,
            patterns=patterns,
            bpr=bpr,
            ld=ld,
            fair_value=fair_value,
            direction=direction,
            walls=walls,
            probability=probability,
            warnings=warnings,
        )

    def _neutral_output(
        self,
        symbol: str,
        timeframe: str,
        timestamp_ms: Optional[int],
        price: Any,
        warnings: List[str],
    ) -> EngineOutput:
        try:
            price = float(price)
        except (TypeError, ValueError):
            price = 0.0
        if not math.isfinite(price):
            price = 0.0
        return EngineOutput(
            symbol=symbol,
            timeframe=timeframe,
            timestamp_ms=timestamp_ms if timestamp_ms is not None else int(time.time() * 1000),
            price=price,
            alpha=AlphaScoreResult(),
            regime=RegimeResult(),
            consensus=ConsensusResult(weighting=self.weighting),
            patterns=PatternResult(),
            warnings=list(warnings),
        )

    # ========== CONTEXT CONTROL ==========

    def _reset_key(self, key: StateKey, reason: str) -> None:
        self._states.pop(key, None)
        self._reset_count += 1
        logger.info("context_reset", symbol=key[0], timeframe=key[1], reason=reason)

    def on_symbol_changed(self, symbol: str) -> None:
        """Discard state for the active key"""
        if self._active_key is None:
            return
        old_symbol, timeframe = self._active_key
        self._reset_key(self._active_key, reason="symbol_changed")
        self._active_key = (symbol, timeframe)
        logger.info("symbol_changed", old=old_symbol, new=symbol)

    def on_timeframe_changed(self, timeframe: str) -> None:
        if self._active_key is None:
            return
        symbol, old_timeframe = self._active_key
        self._reset_key(self._active_key, reason="timeframe_changed")
        self._active_key = (symbol, timeframe)
        logger.info("timeframe_changed", old=old_timeframe, new=timeframe)

    def set_mode(self, mode: Union[Mode, str]) -> ModeProfile:
        """Switch sensitivity profile; unknown modes fall back to Investor"""
        self.profile = get_profile(mode)
        for state in self._states.values():
            state.apply_profile(self.profile)
        logger.info("mode_changed", mode=self.profile.mode.value)
        return self.profile

    def set_consensus_weighting(self, weighting: Union[ConsensusWeighting, str]) -> ConsensusWeighting:
        self.weighting = parse_weighting(weighting)
        logger.info("consensus_weighting_changed", weighting=self.weighting.value)
        return self.weighting

    # ========== PUBLIC API ==========

    def get_state(self, symbol: str, timeframe: str) -> Optional[EngineState]:
        return self._states.get((symbol, timeframe))

    def get_last_output(self) -> Optional[EngineOutput]:
        if self._active_key is None:
            return None
        state = self._states.get(self._active_key)
        return state.last_output if state else None

    def get_health_metrics(self) -> Dict[str, Any]:
        """Get engine health metrics"""
        avg_processing_time = 0.0
        if self._processing_times:
            avg_processing_time = sum(self._processing_times) / len(self._processing_times)

        state = self._states.get(self._active_key) if self._active_key else None
        return {
            "output_count": self._output_count,
            "error_count": self._error_count,
            "reset_count": self._reset_count,
            "avg_processing_time_ms": avg_processing_time * 1000,
            "active_key": list(self._active_key) if self._active_key else None,
            "keys_tracked": len(self._states),
            "mode": self.profile.mode.value,
            "weighting": self.weighting.value,
            "ld_samples": state.ld_norm.samples if state else 0,
            "bpr_samples": state.bpr_norm.samples if state else 0,
            "ld_roc_z_calibrated": state.ld_roc_z.calibrated if state else False,
            "regime": state.regime.state.committed.value if state else None,
        }
