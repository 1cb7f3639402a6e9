import pytest

from pmml_scoring import (
    MalformedTree,
    MissingFeature,
    Node,
    Operator,
    Predicate,
    Tree,
    TypeMismatch,
    UnsupportedPredicate,
    traverse,
)
from pmml_scoring.traversal import evaluate_predicate


def _stump(predicate: Predicate, missing_child=None) -> Tree:
    return Tree.from_nodes([
        Node(node_id="n", predicate=predicate, true_child="t", false_child="f",
             missing_child=missing_child),
        Node(node_id="t", score=1.0),
        Node(node_id="f", score=0.0),
        Node(node_id="m", score=0.5),
    ])


def test_follows_true_branch(tree):
    assert traverse(tree, {"age": 45}) == 1.0


def test_follows_false_branch(tree):
    assert traverse(tree, {"age": 20}) == -1.0


def test_boundary_is_not_greater(tree):
    assert traverse(tree, {"age": 30}) == -1.0


def test_lone_leaf():
    assert traverse(Tree.leaf(0.42), {}) == 0.42


def test_numeric_string_is_coerced(tree):
    assert traverse(tree, {"age": " 45 "}) == 1.0


def test_non_numeric_string_is_type_mismatch(tree):
    with pytest.raises(TypeMismatch) as exc_info:
        traverse(tree, {"age": "old"})
    assert exc_info.value.feature == "age"


def test_missing_feature_without_branch(tree):
    with pytest.raises(MissingFeature) as exc_info:
        traverse(tree, {"height": 180})
    assert exc_info.value.feature == "age"
    assert exc_info.value.node_id == 0


@pytest.mark.parametrize("value", [None, float("nan")])
def test_none_and_nan_count_as_missing(tree, value):
    with pytest.raises(MissingFeature):
        traverse(tree, {"age": value})


def test_missing_feature_takes_missing_branch():
    tree = _stump(Predicate("age", Operator.LESS_THAN, 30.0), missing_child="m")
    assert traverse(tree, {}) == 0.5
    assert traverse(tree, {"age": float("nan")}) == 0.5
    assert traverse(tree, {"age": 10}) == 1.0


@pytest.mark.parametrize("op, operand, value, expected", [
    (Operator.EQUAL, 3.0, 3, True),
    (Operator.EQUAL, 3.0, "3", True),
    (Operator.EQUAL, 3.0, "03", False),
    (Operator.EQUAL, 3.0, "abc", False),
    (Operator.NOT_EQUAL, 3.0, "abc", True),
    (Operator.NOT_EQUAL, 3.0, 4, True),
    (Operator.LESS_THAN, 3.0, 3, False),
    (Operator.LESS_OR_EQUAL, 3.0, 3, True),
    (Operator.GREATER_THAN, 3.0, 2.5, False),
    (Operator.GREATER_OR_EQUAL, 3.0, 3.0, True),
    (Operator.EQUAL, "NZ", "NZ", True),
    (Operator.EQUAL, "NZ", "nz", False),
    (Operator.NOT_EQUAL, "NZ", "AU", True),
    (Operator.EQUAL, "true", True, True),
    (Operator.GREATER_THAN, 0.5, True, True),
    (Operator.IS_IN, frozenset({"a", "b"}), "a", True),
    (Operator.IS_IN, frozenset({"1", "2"}), 2, True),
    (Operator.IS_IN, frozenset({"1", "2"}), 2.0, True),
    (Operator.IS_NOT_IN, frozenset({"a", "b"}), "c", True),
    (Operator.IS_NOT_IN, frozenset({"a", "b"}), "b", False),
])
def test_operators(op, operand, value, expected):
    assert evaluate_predicate(Predicate("f", op, operand), value) is expected


def test_string_value_compares_against_operand_as_written():
    zip_code = Predicate("zip", Operator.EQUAL, 1.0, text="01")
    assert evaluate_predicate(zip_code, "01") is True
    assert evaluate_predicate(zip_code, "1") is False
    assert evaluate_predicate(zip_code, 1) is True


def test_operator_given_as_plain_string():
    assert evaluate_predicate(Predicate("f", "lessThan", 1.0), 0) is True


def test_unknown_operator_is_unsupported():
    tree = _stump(Predicate("age", "between", (1, 2)))
    with pytest.raises(UnsupportedPredicate) as exc_info:
        traverse(tree, {"age": 1})
    assert exc_info.value.operator == "between"


def test_set_operator_without_set_operand_is_unsupported():
    with pytest.raises(UnsupportedPredicate):
        evaluate_predicate(Predicate("f", Operator.IS_IN, "a"), "a")


def test_dangling_child_is_malformed():
    tree = Tree.from_nodes([
        Node(node_id=0, predicate=Predicate("x", Operator.LESS_THAN, 1.0),
             true_child=1, false_child=99),
        Node(node_id=1, score=1.0),
    ])
    assert traverse(tree, {"x": 0}) == 1.0
    with pytest.raises(MalformedTree) as exc_info:
        traverse(tree, {"x": 5})
    assert exc_info.value.node_id == 99


def test_absent_child_is_malformed():
    tree = Tree.from_nodes([
        Node(node_id=0, predicate=Predicate("x", Operator.LESS_THAN, 1.0), true_child=1),
        Node(node_id=1, score=1.0),
    ])
    with pytest.raises(MalformedTree):
        traverse(tree, {"x": 5})


def test_cycle_is_malformed_not_infinite():
    tree = Tree.from_nodes([
        Node(node_id="a", predicate=Predicate("x", Operator.LESS_THAN, 1.0),
             true_child="b", false_child="b"),
        Node(node_id="b", predicate=Predicate("x", Operator.LESS_THAN, 1.0),
             true_child="a", false_child="a"),
    ])
    with pytest.raises(MalformedTree):
        traverse(tree, {"x": 0})


def test_leaf_without_score_is_malformed():
    with pytest.raises(MalformedTree):
        traverse(Tree.from_nodes([Node(node_id=0)]), {})


def test_traversal_does_not_touch_features(tree):
    features = {"age": 45, "other": [1, 2]}
    traverse(tree, features)
    assert features == {"age": 45, "other": [1, 2]}


def test_depth(tree):
    assert tree.depth == 1
    assert Tree.leaf(1.0).depth == 0
