"""
Verification: compare this package's scores against XGBoost Python predictions.

Workflow:
  1. Load the XGBoost model in Python
  2. Convert it to an Ensemble (tree flattening + offset calibration)
  3. Generate random test feature vectors (with optional NaN injection)
  4. Score with XGBoost Python → ground truth
  5. Score with score() and score_concurrently() → actual
  6. Summarise each strategy against the ground truth, and the strategies
     against each other (they must agree exactly)

NaN cells are dropped from the feature mapping, so they exercise the
missing-value branches.
"""

import logging
from typing import Optional

import numpy as np
import xgboost as xgb

from .ensemble import score, score_concurrently
from .xgb_import import feature_names_of, from_booster, load_booster

logger = logging.getLogger(__name__)


def verify(
    model_path: str,
    n_samples: int = 1000,
    tolerance: float = 1e-5,
    nan_fraction: float = 0.05,
    feature_names: Optional[list[str]] = None,
) -> dict:
    """
    End-to-end parity check of both scoring strategies against XGBoost.

    Args:
        model_path: Path to XGBoost model file
        n_samples: Number of random test samples
        tolerance: Maximum allowed absolute difference per sample
        nan_fraction: Fraction of feature values to set to NaN (tests missing handling)
        feature_names: Optional explicit feature name list

    Returns:
        dict with keys: success, n_samples, nan_fraction, tolerance, max_diff,
                        strategy_max_diff, expected_range, worst_samples, and
                        strategies (per-strategy max_diff, mean_diff, range)
    """
    booster = load_booster(model_path)
    return verify_booster(booster, n_samples, tolerance, nan_fraction, feature_names)


def verify_booster(
    booster: xgb.Booster,
    n_samples: int = 1000,
    tolerance: float = 1e-5,
    nan_fraction: float = 0.05,
    feature_names: Optional[list[str]] = None,
) -> dict:
    """Same as ``verify()`` for an in-memory booster."""
    names = feature_names or feature_names_of(booster)
    ensemble = from_booster(booster, names)

    rng = np.random.RandomState(42)
    X = rng.randn(n_samples, len(names)).astype(np.float32)
    X[rng.rand(*X.shape) < nan_fraction] = np.nan
    logger.info("Scoring %d rows with %d missing cells", n_samples, int(np.isnan(X).sum()))

    dmat = xgb.DMatrix(X, feature_names=booster.feature_names)
    expected = booster.predict(dmat).astype(np.float64)

    rows = [
        {name: float(v) for name, v in zip(names, row) if not np.isnan(v)}
        for row in X
    ]
    scores = {
        "sequential": np.array([score(ensemble, f) for f in rows]),
        "concurrent": np.array([score_concurrently(ensemble, f) for f in rows]),
    }

    strategies = {}
    for name, actual in scores.items():
        diffs = np.abs(expected - actual)
        strategies[name] = {
            "max_diff": float(diffs.max(initial=0.0)),
            "mean_diff": float(diffs.mean()) if n_samples else 0.0,
            "range": [float(actual.min(initial=np.inf)), float(actual.max(initial=-np.inf))],
        }

    # strategies must agree bit for bit
    strategy_max_diff = float(
        np.abs(scores["sequential"] - scores["concurrent"]).max(initial=0.0)
    )
    max_diff = max(s["max_diff"] for s in strategies.values())

    diffs = np.abs(expected - scores["sequential"])
    worst = np.argsort(diffs)[::-1][:5]
    return {
        "success": max_diff < tolerance and strategy_max_diff == 0.0,
        "n_samples": n_samples,
        "nan_fraction": nan_fraction,
        "tolerance": tolerance,
        "max_diff": max_diff,
        "strategy_max_diff": strategy_max_diff,
        "expected_range": [float(expected.min(initial=np.inf)), float(expected.max(initial=-np.inf))],
        "strategies": strategies,
        "worst_samples": [
            {
                "index": int(i),
                "expected": float(expected[i]),
                "sequential": float(scores["sequential"][i]),
                "concurrent": float(scores["concurrent"][i]),
            }
            for i in worst
        ],
    }
