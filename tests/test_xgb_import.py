import numpy as np
import pytest
import xgboost as xgb

from pmml_scoring import MalformedTree, SchemaVersion, score, score_concurrently, traverse
from pmml_scoring.verify import verify, verify_booster
from pmml_scoring.xgb_import import convert_tree, from_booster, load_xgboost

FEATURES = ["age", "income", "tenure"]


def _train(feature_names=FEATURES, rounds=12):
    rng = np.random.RandomState(0)
    X = rng.randn(400, 3).astype(np.float32)
    y = (X[:, 0] + 0.5 * X[:, 1] - X[:, 2] > 0).astype(int)
    X[rng.rand(400, 3) < 0.1] = np.nan
    dtrain = xgb.DMatrix(X, label=y, feature_names=feature_names)
    params = {"objective": "binary:logistic", "max_depth": 3, "eta": 0.3, "seed": 0}
    return xgb.train(params, dtrain, num_boost_round=rounds)


@pytest.fixture(scope="module")
def booster():
    return _train()


def test_converts_every_round(booster):
    model = from_booster(booster)
    assert model.num_trees == 12
    assert model.version is SchemaVersion.V4_3


def test_matches_xgboost_predictions(booster):
    model = from_booster(booster)
    rng = np.random.RandomState(7)
    X = rng.randn(50, 3).astype(np.float32)
    X[rng.rand(50, 3) < 0.2] = np.nan
    expected = booster.predict(xgb.DMatrix(X, feature_names=FEATURES))

    for row, want in zip(X, expected):
        features = {n: float(v) for n, v in zip(FEATURES, row) if not np.isnan(v)}
        assert score(model, features) == pytest.approx(float(want), abs=1e-5)
        assert score_concurrently(model, features) == score(model, features)


def test_unnamed_features_use_f_prefix():
    model = from_booster(_train(feature_names=None, rounds=3))
    fields = {
        node.predicate.field
        for tree in model.trees
        for node in tree.nodes.values()
        if not node.is_leaf
    }
    assert fields <= {"f0", "f1", "f2"}


def test_missing_feature_takes_xgboost_default(booster):
    model = from_booster(booster)
    # every split has a default direction, so an empty mapping still scores
    assert 0.0 < score(model, {}) < 1.0


def test_convert_tree_from_dump():
    dump = {
        "nodeid": 0, "depth": 0, "split": "f1", "split_condition": 0.5,
        "yes": 1, "no": 2, "missing": 2,
        "children": [{"nodeid": 1, "leaf": -0.2}, {"nodeid": 2, "leaf": 0.3}],
    }
    tree = convert_tree(dump, ["a", "b"])
    root = tree.nodes[0]
    assert root.predicate.field == "b"
    assert root.missing_child == 2
    assert tree.depth == 1


def test_convert_tree_without_missing_defaults_to_yes():
    dump = {
        "nodeid": 0, "split": "a", "split_condition": 1.0, "yes": 1, "no": 2,
        "children": [{"nodeid": 1, "leaf": 1.0}, {"nodeid": 2, "leaf": 2.0}],
    }
    tree = convert_tree(dump, ["a"])
    assert tree.nodes[0].missing_child == 1


def test_dangling_missing_route_is_malformed():
    dump = {
        "nodeid": 0, "split": "a", "split_condition": 1.0, "yes": 1, "no": 2,
        "missing": 5,
        "children": [{"nodeid": 1, "leaf": 1.0}, {"nodeid": 2, "leaf": 2.0}],
    }
    tree = convert_tree(dump, ["a"])
    assert traverse(tree, {"a": 0.0}) == 1.0
    with pytest.raises(MalformedTree):
        traverse(tree, {})


def test_load_and_verify_from_disk(tmp_path, booster):
    path = tmp_path / "model.json"
    booster.save_model(str(path))
    model = load_xgboost(str(path))
    assert model.num_trees == 12

    result = verify(str(path), n_samples=100, nan_fraction=0.1)
    assert result["success"], result
    assert result["strategy_max_diff"] == 0.0
    assert set(result["strategies"]) == {"sequential", "concurrent"}
    assert len(result["worst_samples"]) == 5


def test_verify_booster_reports_ranges(booster):
    result = verify_booster(booster, n_samples=50, nan_fraction=0.0)
    assert result["success"]
    assert 0.0 < result["expected_range"][0] <= result["expected_range"][1] < 1.0
    assert result["max_diff"] < 1e-5
    for summary in result["strategies"].values():
        assert summary["range"][0] > 0.0
        assert summary["mean_diff"] <= summary["max_diff"]


def test_verify_injects_missing_cells(booster):
    result = verify_booster(booster, n_samples=200, nan_fraction=0.5)
    assert result["success"], result
    assert result["nan_fraction"] == 0.5


def test_multiclass_is_rejected():
    rng = np.random.RandomState(0)
    X = rng.randn(60, 2)
    y = rng.randint(0, 3, size=60)
    bst = xgb.train(
        {"objective": "multi:softprob", "num_class": 3, "max_depth": 2},
        xgb.DMatrix(X, label=y), num_boost_round=2,
    )
    with pytest.raises(ValueError):
        from_booster(bst)
