"""
Analytics Runner - Synthetic depth replay through the engine

Generates a random-walk price with a lognormal-sized book around it and
prints engine output to the console. Used for demos and smoke checks.
"""
import logging
import sys
from typing import Dict, List, Optional

import numpy as np
import structlog

from config import settings
from microalpha.analytics.models import EngineOutput
from microalpha.analytics.orchestrator import AnalyticsEngine

logger = structlog.get_logger(__name__)

START_PRICES: Dict[str, float] = {
    "BTC": 65000.0,
    "ETH": 3200.0,
    "DOGE": 0.15,
}


def configure_logging(level: str = "INFO") -> None:
    """Console structlog setup for the runner"""
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper(), logging.INFO)
        ),
    )


def synthetic_levels(
    rng: np.random.Generator,
    price: float,
    n_levels: int = 25,
    step_pct: float = 0.15,
    skew: float = 0.0,
) -> List[dict]:
    """
    Book of n_levels per side spaced step_pct apart.
    skew > 0 fattens supports, skew < 0 fattens resistances.
    """
    levels = []
    for i in range(1, n_levels + 1):
        offset = price * step_pct / 100.0 * i
        base = rng.lognormal(mean=3.0, sigma=0.6)
        levels.append({
            "price": price - offset,
            "volume": float(base * (1.0 + max(skew, 0.0))),
            "side": "support",
        })
        base = rng.lognormal(mean=3.0, sigma=0.6)
        levels.append({
            "price": price + offset,
            "volume": float(base * (1.0 + max(-skew, 0.0))),
            "side": "resistance",
        })
    return levels


def print_output(output: EngineOutput) -> None:
    alpha = output.alpha.score if output.alpha.score is not None else "--"
    print(
        f"[{output.symbol}/{output.timeframe}] ${output.price:,.4f} | "
        f"Alpha: {alpha} ({output.alpha.label.value}) | "
        f"Regime: {output.regime.label} | "
        f"MCS: {output.consensus.consensus:+.1f} "
        f"({output.consensus.alignment.value}, {output.consensus.confidence_label.value})"
    )
    print(
        f"  BPR={output.bpr.ratio:.3f} LD={output.ld.delta:.1f} "
        f"Vel={output.ld.velocity_type.value} "
        f"Div={output.patterns.divergence.value} "
        f"Abs={output.patterns.absorption.value if output.patterns.absorption else '-'} "
        f"Warn={','.join(output.warnings) or '-'}"
    )


def run_replay(
    symbols: Optional[List[str]] = None,
    ticks: int = 120,
    mode: str = settings.DEFAULT_MODE,
    weighting: str = settings.DEFAULT_WEIGHTING,
    timeframe: str = settings.DEMO_TIMEFRAME,
    seed: int = 7,
    print_every: int = 10,
) -> Dict[str, EngineOutput]:
    """
    Replay each symbol in turn; every switch is a hard reset of the
    previous symbol's state
    """
    symbols = symbols or settings.DEMO_SYMBOLS
    rng = np.random.default_rng(seed)
    engine = AnalyticsEngine(mode=mode, weighting=weighting)

    last: Dict[str, EngineOutput] = {}
    ts = 1_700_000_000_000
    for symbol in symbols:
        price = START_PRICES.get(symbol, 100.0)
        drift = rng.normal(0.0, 0.0005)
        for i in range(ticks):
            price *= float(np.exp(rng.normal(drift, 0.001)))
            skew = float(np.tanh(drift * 2000.0))
            ts += 500
            output = engine.update_levels(
                synthetic_levels(rng, price, skew=skew),
                price,
                symbol,
                timeframe,
                timestamp_ms=ts,
            )
            if i % print_every == 0 or i == ticks - 1:
                print_output(output)
        last[symbol] = output

    logger.info("replay_complete", **engine.get_health_metrics())
    return last


if __name__ == "__main__":
    configure_logging()
    n = int(sys.argv[1]) if len(sys.argv) > 1 else 120
    replay_mode = sys.argv[2] if len(sys.argv) > 2 else settings.DEFAULT_MODE
    run_replay(ticks=n, mode=replay_mode)
