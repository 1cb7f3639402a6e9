"""
Single-tree evaluation.

Starting at the root, each decision node's predicate is tested against the
feature mapping and the matching child is followed until a leaf is reached.
Missing values (absent key, None or NaN) take the node's missing branch when
it has one, mirroring XGBoost's "missing" routing.

Coercion rules:
    lessThan / lessOrEqual / greaterThan / greaterOrEqual
        numeric; the feature must be a number or a numeric string.
    equal / notEqual
        numeric when both the feature value and the operand are numbers,
        otherwise exact string match against the operand as written.
    isIn / isNotIn
        exact string match against the operand set.

Booleans compare as 1/0 numerically and as "true"/"false" textually.
"""

import math
import numbers
import operator
from typing import Any, Callable, Mapping

from .errors import MalformedTree, MissingFeature, TypeMismatch, UnsupportedPredicate
from .model import Node, Operator, Predicate, Tree

_NUMERIC_RULES: dict[Operator, Callable[[float, float], bool]] = {
    Operator.EQUAL: operator.eq,
    Operator.NOT_EQUAL: operator.ne,
    Operator.LESS_THAN: operator.lt,
    Operator.LESS_OR_EQUAL: operator.le,
    Operator.GREATER_THAN: operator.gt,
    Operator.GREATER_OR_EQUAL: operator.ge,
}

_STRING_RULES: dict[Operator, Callable[[str, Any], bool]] = {
    Operator.EQUAL: operator.eq,
    Operator.NOT_EQUAL: operator.ne,
    Operator.IS_IN: lambda value, members: value in members,
    Operator.IS_NOT_IN: lambda value, members: value not in members,
}


def is_missing(value) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return False
    try:
        return math.isnan(value)
    except TypeError:
        return False


def _as_number(field: str, value) -> float:
    if isinstance(value, (bool, int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            pass
    else:
        # numpy scalars and Decimals
        try:
            return float(value)
        except (TypeError, ValueError):
            pass
    raise TypeMismatch(field, value, "a number")


def _as_string(value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _is_numeric_operand(operand) -> bool:
    return isinstance(operand, (int, float)) and not isinstance(operand, bool)


def _operand_text(predicate: Predicate) -> str:
    if predicate.text is not None:
        return predicate.text
    return _as_string(predicate.operand)


def _resolve_operator(predicate: Predicate, node_id=None) -> Operator:
    try:
        return Operator(predicate.operator)
    except ValueError:
        raise UnsupportedPredicate(predicate.operator, node_id) from None


def evaluate_predicate(predicate: Predicate, value, node_id=None) -> bool:
    """Apply ``predicate`` to a present (non-missing) feature value."""
    op = _resolve_operator(predicate, node_id)
    numeric = _NUMERIC_RULES.get(op)
    textual = _STRING_RULES.get(op)
    if textual is None or (
        _is_numeric_operand(predicate.operand)
        and isinstance(value, numbers.Number)
    ):
        operand = _as_number(predicate.field, predicate.operand)
        return numeric(_as_number(predicate.field, value), operand)

    if op.is_set:
        if not isinstance(predicate.operand, (set, frozenset, tuple, list)):
            raise UnsupportedPredicate(op, node_id)
        return textual(_as_string(value), predicate.operand)
    return textual(_as_string(value), _operand_text(predicate))


def _next_node(node: Node, features: Mapping[str, Any]):
    predicate = node.predicate
    _resolve_operator(predicate, node.node_id)
    value = features.get(predicate.field)

    if is_missing(value):
        if node.missing_child is None:
            raise MissingFeature(predicate.field, node.node_id)
        return node.missing_child

    outcome = evaluate_predicate(predicate, value, node.node_id)
    return node.true_child if outcome else node.false_child


def traverse(tree: Tree, features: Mapping[str, Any]) -> float:
    """
    Descend ``tree`` for ``features`` and return the reached leaf's score.

    Pure function of its arguments; safe to call concurrently on a shared
    tree. Raises a ``ScoringError`` subclass on any failure. A visit budget
    of one step per node turns cyclic references into ``MalformedTree``.
    """
    node_id = tree.root
    for _ in range(len(tree.nodes) + 1):
        if node_id is None:
            raise MalformedTree("decision node has no child for this outcome")
        node = tree.nodes.get(node_id)
        if node is None:
            raise MalformedTree(f"dangling reference to node {node_id!r}", node_id)
        if node.is_leaf:
            if node.score is None:
                raise MalformedTree(f"leaf {node_id!r} has no score", node_id)
            return float(node.score)
        node_id = _next_node(node, features)

    raise MalformedTree(
        f"no leaf reached after visiting {len(tree.nodes)} nodes (cycle?)", node_id,
    )
