"""
CLI for scoring feature vectors against a tree ensemble.

Usage:
    python -m pmml_scoring score  --model models/model.pmml --features '{"age": 45}'
    python -m pmml_scoring score  --model models/model.ubj --features-file rows.csv --concurrent
    python -m pmml_scoring verify --model models/model.ubj --n-samples 1000
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from .ensemble import score, score_concurrently
from .errors import ScoringError
from .model import Ensemble
from .pmml import load_pmml
from .verify import verify
from .xgb_import import load_xgboost

_XGBOOST_SUFFIXES = {".ubj", ".json", ".bin", ".model"}


def load_model(path: str, strict_version: bool = False) -> Ensemble:
    """Load a PMML document, or an XGBoost model file judged by its extension."""
    if Path(path).suffix.lower() in _XGBOOST_SUFFIXES:
        return load_xgboost(path)
    return load_pmml(path, strict_version=strict_version)


def cmd_score(args):
    """Score one feature mapping, or every row of a CSV file."""
    ensemble = load_model(args.model, strict_version=args.strict_version)
    print(f"Model:      {args.model}")
    print(f"  Version:  {ensemble.version.value}")
    print(f"  Trees:    {ensemble.num_trees}")
    print(f"  Offset:   {ensemble.offset:.8f}")

    if args.features_file:
        import pandas as pd
        from .frame import score_dataframe

        df = pd.read_csv(args.features_file)
        scored = score_dataframe(ensemble, df, concurrent=args.concurrent)
        if args.output:
            scored.to_csv(args.output, index=False)
            print(f"  Wrote {len(scored)} scored rows to {args.output}")
        else:
            print(scored[["probability", "error"]].to_string())
        if scored["error"].notna().any():
            sys.exit(1)
        return

    try:
        features = json.loads(args.features)
    except json.JSONDecodeError as exc:
        print(f"  FAILED: --features is not valid JSON: {exc}")
        sys.exit(1)
    if not isinstance(features, dict):
        print("  FAILED: --features must be a JSON object")
        sys.exit(1)
    scorer = score_concurrently if args.concurrent else score
    try:
        probability = scorer(ensemble, features)
    except ScoringError as exc:
        print(f"  FAILED: {type(exc).__name__}: {exc}")
        sys.exit(1)
    print(f"  Score:    {probability:.10f}")


def cmd_verify(args):
    """Verify this package's scores match XGBoost Python predictions."""
    print(f"Verifying model: {args.model}")
    print(f"  Samples:     {args.n_samples}")
    print(f"  NaN fraction: {args.nan_fraction:.0%}")
    print(f"  Tolerance:   {args.tolerance:.0e}")
    print()

    result = verify(
        args.model,
        n_samples=args.n_samples,
        tolerance=args.tolerance,
        nan_fraction=args.nan_fraction,
    )

    low, high = result["expected_range"]
    print(f"  {'xgboost':<12} range=[{low:.6f}, {high:.6f}]")
    for name, summary in result["strategies"].items():
        low, high = summary["range"]
        print(f"  {name:<12} range=[{low:.6f}, {high:.6f}]"
              f" max_diff={summary['max_diff']:.2e} mean_diff={summary['mean_diff']:.2e}")
    print(f"  Strategy diff: {result['strategy_max_diff']:.2e}")

    if result["success"]:
        print("  PASSED")
        return

    print("  FAILED, worst rows:")
    for s in result["worst_samples"]:
        print(f"    row {s['index']}: xgboost={s['expected']:.8f}"
              f" sequential={s['sequential']:.8f} concurrent={s['concurrent']:.8f}")
    sys.exit(1)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pmml_scoring",
        description="Score feature vectors with a gradient-boosted tree ensemble",
    )
    parser.add_argument(
        "--log-level", default="WARNING",
        help="Logging level (default: WARNING)",
    )
    sub = parser.add_subparsers(dest="command")
    sub.required = True

    # --- score ---
    score_p = sub.add_parser(
        "score",
        help="Score a feature mapping (JSON) or a CSV of feature rows",
    )
    score_p.add_argument(
        "--model", required=True,
        help="Path to a PMML document, or an XGBoost model file (.ubj, .json, .bin)",
    )
    src = score_p.add_mutually_exclusive_group(required=True)
    src.add_argument(
        "--features",
        help='Feature mapping as JSON, e.g. \'{"age": 45, "country": "NZ"}\'',
    )
    src.add_argument(
        "--features-file",
        help="CSV file with one feature row per line; empty cells are missing",
    )
    score_p.add_argument(
        "--output",
        help="Write scored CSV rows here instead of printing them",
    )
    score_p.add_argument(
        "--concurrent", action="store_true",
        help="Evaluate trees concurrently, one worker per tree",
    )
    score_p.add_argument(
        "--strict-version", action="store_true",
        help="Fail on PMML versions other than 4.2/4.3 instead of using offset 0",
    )
    score_p.set_defaults(func=cmd_score)

    # --- verify ---
    ver_p = sub.add_parser(
        "verify",
        help="Verify scores match XGBoost Python predictions",
    )
    ver_p.add_argument(
        "--model", required=True,
        help="Path to XGBoost model file",
    )
    ver_p.add_argument(
        "--n-samples", type=int, default=1000,
        help="Number of random test samples (default: 1000)",
    )
    ver_p.add_argument(
        "--tolerance", type=float, default=1e-5,
        help="Max allowed absolute prediction difference (default: 1e-5)",
    )
    ver_p.add_argument(
        "--nan-fraction", type=float, default=0.05,
        help="Fraction of feature values to set to NaN (default: 0.05)",
    )
    ver_p.set_defaults(func=cmd_verify)
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    args.func(args)


if __name__ == "__main__":
    main()
