"""
In-memory representation of a gradient-boosted tree ensemble.

Shape:
    Ensemble
        → version (SchemaVersion, resolved once into a single offset)
        → offset  (baseline added before the link function)
        → trees   (ordered tuple of Tree)
            → Tree: root id + {node_id: Node}
                → Node: predicate + true / false / missing child ids, or a leaf score

Children are referenced by id rather than by object so that a model with a
dangling reference can be represented and reported instead of crashing the
loader. Everything here is frozen; scoring never mutates a model.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Hashable, Mapping, Optional, Sequence

from .errors import UnsupportedModelVersion

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------

class Operator(str, Enum):
    """Comparison operators, named as they appear in PMML."""
    EQUAL = "equal"
    NOT_EQUAL = "notEqual"
    LESS_THAN = "lessThan"
    LESS_OR_EQUAL = "lessOrEqual"
    GREATER_THAN = "greaterThan"
    GREATER_OR_EQUAL = "greaterOrEqual"
    IS_IN = "isIn"
    IS_NOT_IN = "isNotIn"

    @property
    def is_set(self) -> bool:
        return self in (Operator.IS_IN, Operator.IS_NOT_IN)

    @property
    def is_ordering(self) -> bool:
        return self in (
            Operator.LESS_THAN,
            Operator.LESS_OR_EQUAL,
            Operator.GREATER_THAN,
            Operator.GREATER_OR_EQUAL,
        )


@dataclass(frozen=True)
class Predicate:
    """
    A per-node test: ``features[field] <operator> operand``.

    ``operator`` is normally an ``Operator``. Loaders keep unknown operator
    names as plain strings so the evaluator can report them.
    For set operators ``operand`` is a frozenset of strings. ``text`` keeps
    the operand as written in the model, for textual comparisons of
    categorical codes such as "01".
    """
    field: str
    operator: Any
    operand: Any = None
    text: Optional[str] = None


# ---------------------------------------------------------------------------
# Trees
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Node:
    """A decision node (``predicate`` set) or a leaf (``score`` set)."""
    node_id: Hashable
    predicate: Optional[Predicate] = None
    true_child: Optional[Hashable] = None
    false_child: Optional[Hashable] = None
    missing_child: Optional[Hashable] = None
    score: Optional[float] = None

    @property
    def is_leaf(self) -> bool:
        return self.predicate is None


@dataclass(frozen=True)
class Tree:
    root: Hashable
    nodes: Mapping[Hashable, Node]

    @classmethod
    def from_nodes(cls, nodes: Sequence[Node], root: Optional[Hashable] = None) -> "Tree":
        """Build a tree from a node list; the first node is the root unless given."""
        if not nodes:
            raise ValueError("a tree needs at least one node")
        index = {n.node_id: n for n in nodes}
        return cls(root=nodes[0].node_id if root is None else root, nodes=index)

    @classmethod
    def leaf(cls, score: float) -> "Tree":
        """A single-node tree that always contributes ``score``."""
        return cls(root=0, nodes={0: Node(node_id=0, score=score)})

    @property
    def depth(self) -> int:
        """Longest root-to-leaf path, counted in edges (0 for a lone leaf)."""
        def walk(node_id, seen) -> int:
            node = self.nodes.get(node_id)
            if node is None or node.is_leaf or node_id in seen:
                return 0
            seen = seen | {node_id}
            children = {node.true_child, node.false_child, node.missing_child} - {None}
            return 1 + max((walk(c, seen) for c in children), default=0)

        return walk(self.root, frozenset())


# ---------------------------------------------------------------------------
# Ensemble
# ---------------------------------------------------------------------------

class SchemaVersion(str, Enum):
    """PMML schema dialects that disagree on where the baseline lives."""
    V4_2 = "4.2"     # offset = Output/OutputField/Apply/Constant
    V4_3 = "4.3"     # offset = Targets/Target@rescaleConstant
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, version) -> "SchemaVersion":
        try:
            return cls(str(version))
        except ValueError:
            return cls.UNKNOWN


def resolve_offset(
    version,
    constant: float = 0.0,
    rescale_constant: float = 0.0,
    strict: bool = False,
) -> tuple["SchemaVersion", float]:
    """
    Pick the baseline offset for a schema version.

    Unrecognized versions fall back to an offset of 0.0 and log a warning;
    this silently changes every score, so ``strict=True`` raises
    ``UnsupportedModelVersion`` instead.
    """
    schema = SchemaVersion.parse(version)
    if schema is SchemaVersion.V4_2:
        return schema, float(constant)
    if schema is SchemaVersion.V4_3:
        return schema, float(rescale_constant)
    if strict:
        raise UnsupportedModelVersion(version)
    logger.warning(
        "Unrecognized schema version %r, using baseline offset 0.0", version,
    )
    return schema, 0.0


@dataclass(frozen=True)
class Ensemble:
    """A scorable model: resolved baseline offset plus ordered trees."""
    version: SchemaVersion
    offset: float
    trees: tuple[Tree, ...] = field(default_factory=tuple)

    @classmethod
    def build(
        cls,
        version,
        trees: Sequence[Tree],
        constant: float = 0.0,
        rescale_constant: float = 0.0,
        strict_version: bool = False,
    ) -> "Ensemble":
        """Construct an ensemble from raw version-dependent offset fields."""
        schema, offset = resolve_offset(
            version, constant, rescale_constant, strict=strict_version,
        )
        return cls(version=schema, offset=offset, trees=tuple(trees))

    @property
    def num_trees(self) -> int:
        return len(self.trees)
