"""
Batch scoring of DataFrame rows (offline scoring / backtesting).
"""

import logging

import pandas as pd

from .ensemble import score, score_concurrently
from .errors import ScoringError
from .model import Ensemble

logger = logging.getLogger(__name__)


def row_features(row: pd.Series) -> dict:
    """Turn a row into a feature mapping, dropping missing cells."""
    return {
        str(name): value.item() if hasattr(value, "item") else value
        for name, value in row.items()
        if not pd.isna(value)
    }


def score_dataframe(
    ensemble: Ensemble,
    df: pd.DataFrame,
    concurrent: bool = False,
) -> pd.DataFrame:
    """
    Score all rows in a DataFrame. Adds ``probability`` and ``error`` columns.

    A row that fails to score gets a NaN probability and the error message;
    the other rows are unaffected.
    """
    scorer = score_concurrently if concurrent else score
    probabilities = []
    errors = []
    for _, row in df.iterrows():
        try:
            probabilities.append(scorer(ensemble, row_features(row)))
            errors.append(None)
        except ScoringError as exc:
            probabilities.append(float("nan"))
            errors.append(str(exc))

    failed = sum(e is not None for e in errors)
    if failed:
        logger.warning("%d of %d rows failed to score", failed, len(df))

    result_df = df.copy()
    result_df["probability"] = probabilities
    result_df["error"] = errors
    return result_df
