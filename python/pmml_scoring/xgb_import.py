"""
Convert a trained XGBoost booster into an Ensemble.

Architecture:
    XGBoost Model (.ubj/.json/.bin) or in-memory Booster
        → get_dump(dump_format="json")      one JSON tree per boosting round
        → flatten nodes                     nodeid → Node(feature < split_condition)
        → calibrate base margin             XGBoost raw margin − local tree sum
        → Ensemble(version 4.3, offset = calibrated margin)

Split thresholds are rounded to float32, as XGBoost compares in single
precision. The base margin is measured rather than read from the config so
the conversion does not depend on how a given XGBoost release stores
base_score.
"""

import json
import logging
from typing import Optional

import numpy as np
import xgboost as xgb

from .ensemble import margin
from .model import Ensemble, Node, Predicate, Operator, SchemaVersion, Tree

logger = logging.getLogger(__name__)

# Objectives whose raw margin goes through the logistic link
_LOGISTIC_OBJECTIVES = {"binary:logistic", "binary:logitraw", "rank:pairwise", "rank:ndcg"}


def load_booster(model_path: str) -> xgb.Booster:
    booster = xgb.Booster()
    booster.load_model(model_path)
    return booster


def feature_names_of(booster: xgb.Booster) -> list[str]:
    """Names used as feature-mapping keys: the booster's own, else f0..fN."""
    if booster.feature_names:
        return list(booster.feature_names)
    return [f"f{i}" for i in range(booster.num_features())]


def objective_of(booster: xgb.Booster) -> str:
    config = json.loads(booster.save_config())
    obj_cfg = config["learner"].get("objective", {})
    if isinstance(obj_cfg, dict):
        return obj_cfg.get("name", "binary:logistic")
    return str(obj_cfg)


def _feature_name(split, feature_names: list[str]) -> str:
    """Map XGBoost's split field onto a feature-mapping key."""
    if isinstance(split, int):
        return feature_names[split]
    # "f0", "f12", etc. on boosters trained without names
    if split.startswith("f") and split[1:].isdigit() and split not in feature_names:
        return feature_names[int(split[1:])]
    return split


def _flatten(node: dict, feature_names: list[str], out: list[Node]):
    node_id = node["nodeid"]
    if "leaf" in node:
        out.append(Node(node_id=node_id, score=float(node["leaf"])))
        return

    out.append(Node(
        node_id=node_id,
        predicate=Predicate(
            field=_feature_name(node["split"], feature_names),
            operator=Operator.LESS_THAN,
            operand=float(np.float32(node["split_condition"])),
        ),
        true_child=node["yes"],
        false_child=node["no"],
        missing_child=node.get("missing", node["yes"]),
    ))
    for child in node.get("children", []):
        _flatten(child, feature_names, out)


def convert_tree(tree: dict, feature_names: list[str]) -> Tree:
    """Convert one tree from ``get_dump(dump_format="json")``."""
    nodes: list[Node] = []
    _flatten(tree, feature_names, nodes)
    return Tree.from_nodes(nodes)


def _calibrate_offset(
    booster: xgb.Booster,
    trees: list[Tree],
    feature_names: list[str],
) -> float:
    """
    Determine the base margin by comparing XGBoost's raw margin against the
    local tree sum on a sample row.
    """
    rng = np.random.RandomState(42)
    x = rng.randn(1, len(feature_names)).astype(np.float32)

    dmat = xgb.DMatrix(x, feature_names=booster.feature_names)
    raw_margin = float(booster.predict(dmat, output_margin=True)[0])

    features = dict(zip(feature_names, (float(v) for v in x[0])))
    tree_sum = margin(Ensemble(SchemaVersion.V4_3, 0.0, tuple(trees)), features)

    offset = raw_margin - tree_sum
    logger.info(
        "Calibrated offset=%.8f (raw_margin=%.8f, tree_sum=%.8f)",
        offset, raw_margin, tree_sum,
    )
    return offset


def from_booster(
    booster: xgb.Booster,
    feature_names: Optional[list[str]] = None,
) -> Ensemble:
    """Build an Ensemble equivalent to ``booster.predict`` for binary models."""
    objective = objective_of(booster)
    if objective.startswith("multi:"):
        raise ValueError(f"Multi-class objective {objective!r} is not supported")
    if objective not in _LOGISTIC_OBJECTIVES:
        logger.warning(
            "Objective %r does not use a logistic link; scores will still be "
            "passed through the logistic function", objective,
        )

    names = feature_names or feature_names_of(booster)
    raw = booster.get_dump(dump_format="json")
    trees = [convert_tree(json.loads(t), names) for t in raw]
    offset = _calibrate_offset(booster, trees, names)

    logger.info(
        "Converted XGBoost booster: %d trees, %d features, max depth %d",
        len(trees), len(names), max((t.depth for t in trees), default=0),
    )
    return Ensemble.build(SchemaVersion.V4_3.value, trees, rescale_constant=offset)


def load_xgboost(model_path: str, feature_names: Optional[list[str]] = None) -> Ensemble:
    """Load an XGBoost model file (.ubj, .json, .bin) as an Ensemble."""
    return from_booster(load_booster(model_path), feature_names)
