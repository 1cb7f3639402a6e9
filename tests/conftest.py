import pytest

from pmml_scoring import Ensemble, Node, Operator, Predicate, SchemaVersion, Tree


def age_tree() -> Tree:
    """age > 30 → 1.0, else -1.0."""
    return Tree.from_nodes([
        Node(
            node_id=0,
            predicate=Predicate("age", Operator.GREATER_THAN, 30.0),
            true_child=1,
            false_child=2,
        ),
        Node(node_id=1, score=1.0),
        Node(node_id=2, score=-1.0),
    ])


@pytest.fixture
def tree() -> Tree:
    return age_tree()


@pytest.fixture
def ensemble() -> Ensemble:
    return Ensemble.build("4.2", [age_tree()], constant=0.0)


@pytest.fixture
def wide_ensemble() -> Ensemble:
    """Many small trees, some routing on a categorical feature."""
    trees = []
    for i in range(40):
        trees.append(Tree.from_nodes([
            Node(
                node_id="root",
                predicate=Predicate("x", Operator.LESS_OR_EQUAL, i / 10),
                true_child="cat",
                false_child="hi",
                missing_child="lo",
            ),
            Node(
                node_id="cat",
                predicate=Predicate("country", Operator.IS_IN, frozenset({"NZ", "AU"})),
                true_child="lo",
                false_child="hi",
            ),
            Node(node_id="lo", score=-0.01 * i),
            Node(node_id="hi", score=0.013 * (i % 7)),
        ]))
    return Ensemble(SchemaVersion.V4_3, 0.25, tuple(trees))
