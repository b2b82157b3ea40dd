#!/usr/bin/env python
"""
MICROALPHA - TEST RUNNER

Unit tests:
    python run_tests.py core        # Snapshot ingestion + pressure / fair value
    python run_tests.py normalizer  # Adaptive normalizer, z-score, ROC
    python run_tests.py alpha       # Alpha score composer + mode profiles
    python run_tests.py regime      # Regime rule matrix + hysteresis
    python run_tests.py patterns    # LD divergence / absorption / clusters / spoof
    python run_tests.py consensus   # MM / Swing / HTF consensus
    python run_tests.py signals     # Direction, walls, probability
    python run_tests.py engine      # End-to-end engine + context resets

Replay:
    python run_tests.py demo [ticks] [mode]   # Synthetic depth replay to console

General:
    python run_tests.py all         # Run all unit tests
"""
import sys

# Add project root to path
sys.path.insert(0, '.')

SUITES = {
    "core": ["tests/test_core.py", "tests/test_pressure.py"],
    "normalizer": ["tests/test_normalizer.py"],
    "alpha": ["tests/test_alpha_score.py"],
    "regime": ["tests/test_regime.py"],
    "patterns": ["tests/test_patterns.py"],
    "consensus": ["tests/test_consensus.py"],
    "signals": ["tests/test_supplements.py"],
    "engine": ["tests/test_engine.py"],
}


def main():
    if len(sys.argv) < 2:
        print(__doc__)
        return

    test = sys.argv[1].lower()

    if test in SUITES:
        import pytest
        sys.exit(pytest.main(SUITES[test] + ["-v"]))

    elif test == "demo":
        from config import settings
        from microalpha.analytics.runner import configure_logging, run_replay
        ticks = int(sys.argv[2]) if len(sys.argv) > 2 else 120
        mode = sys.argv[3] if len(sys.argv) > 3 else settings.DEFAULT_MODE
        configure_logging()
        run_replay(ticks=ticks, mode=mode)

    elif test == "all":
        import pytest
        sys.exit(pytest.main(["tests", "-v"]))

    else:
        print(f"Unknown test: {test}")
        print(__doc__)


if __name__ == "__main__":
    main()
