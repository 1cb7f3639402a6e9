"""
Scoring (inference) for gradient-boosted decision-tree ensembles.

Evaluates an already-exported tree ensemble (PMML 4.2/4.3 or an XGBoost
booster) against a feature mapping and returns a logistic probability.

Usage:
    from pmml_scoring import load_pmml, score, score_concurrently

    model = load_pmml("models/model.pmml")
    p = score(model, {"age": 45, "country": "NZ"})
    p = score_concurrently(model, {"age": 45, "country": "NZ"})   # same value
"""

from .ensemble import logistic, margin, score, score_concurrently
from .errors import (
    MalformedTree,
    MissingFeature,
    ScoringError,
    TypeMismatch,
    UnsupportedModelVersion,
    UnsupportedPredicate,
)
from .model import Ensemble, Node, Operator, Predicate, SchemaVersion, Tree
from .pmml import load_pmml, parse_pmml
from .traversal import traverse

__all__ = [
    "Ensemble",
    "MalformedTree",
    "MissingFeature",
    "Node",
    "Operator",
    "Predicate",
    "SchemaVersion",
    "ScoringError",
    "Tree",
    "TypeMismatch",
    "UnsupportedModelVersion",
    "UnsupportedPredicate",
    "load_pmml",
    "logistic",
    "margin",
    "parse_pmml",
    "score",
    "score_concurrently",
    "traverse",
]
