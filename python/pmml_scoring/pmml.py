"""
PMML loader for gradient-boosted tree ensembles (schema 4.2 and 4.3).

Expected layout (as exported by JPMML / sklearn2pmml for XGBoost, LightGBM
and sklearn GBMs):

    PMML version="4.2|4.3"
      MiningModel                                   (model chain)
        Segmentation/Segment
          MiningModel                               (sum of trees)
            Targets/Target@rescaleConstant          → 4.3 baseline
            Output/OutputField/Apply/Constant       → 4.2 baseline
            Segmentation/Segment/TreeModel          → one Tree each
        Segmentation/Segment
          RegressionModel                           (logistic link, ignored)

PMML tree nodes are n-ary: children are tried in order and the first one
whose predicate holds wins. Each child list is compiled into a chain of
binary decisions so traversal only ever sees true/false/missing edges.
"""

import logging
import shlex
import xml.etree.ElementTree as ET
from dataclasses import replace
from pathlib import Path
from typing import Optional

from .model import Ensemble, Node, Operator, Predicate, Tree

logger = logging.getLogger(__name__)


def _local(tag: str) -> str:
    """Strip the ``{namespace}`` prefix ElementTree puts on tags."""
    return tag.rsplit("}", 1)[-1]


def _children(elem: ET.Element, name: str) -> list[ET.Element]:
    return [c for c in elem if _local(c.tag) == name]


def _first(elem: ET.Element, path: list[str]) -> Optional[ET.Element]:
    """Depth-first search for the first element matching a tag path."""
    if not path:
        return elem
    for child in _children(elem, path[0]):
        found = _first(child, path[1:])
        if found is not None:
            return found
    return None


def _iter_local(elem: ET.Element, name: str):
    return (e for e in elem.iter() if _local(e.tag) == name)


def _number(text: Optional[str]):
    """Numeric operands become floats, anything else stays a string."""
    if text is None:
        return None
    try:
        return float(text)
    except ValueError:
        return text


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------

_ALWAYS = "True"
_NEVER = "False"


def _parse_predicate(elem: ET.Element):
    """Return a Predicate, or the string "True"/"False" for constant predicates."""
    tag = _local(elem.tag)
    if tag in (_ALWAYS, _NEVER):
        return tag

    if tag == "SimplePredicate":
        op = elem.get("operator", "")
        return Predicate(
            field=elem.get("field", ""),
            operator=_known_operator(op),
            operand=_number(elem.get("value")),
            text=elem.get("value"),
        )

    if tag == "SimpleSetPredicate":
        array = _first(elem, ["Array"])
        members = frozenset(shlex.split(array.text or "")) if array is not None else frozenset()
        return Predicate(
            field=elem.get("field", ""),
            operator=_known_operator(elem.get("booleanOperator", "")),
            operand=members,
        )

    # CompoundPredicate and friends: traversal reports these as unsupported
    return Predicate(field=elem.get("field", ""), operator=tag)


def _known_operator(name: str):
    try:
        return Operator(name)
    except ValueError:
        return name


def _node_predicate(elem: ET.Element):
    for child in elem:
        if _local(child.tag) in (
            "True", "False", "SimplePredicate", "SimpleSetPredicate",
            "CompoundPredicate",
        ):
            return _parse_predicate(child)
    return _ALWAYS


# ---------------------------------------------------------------------------
# Trees
# ---------------------------------------------------------------------------

class _TreeBuilder:
    """Compiles one TreeModel's Node hierarchy into a flat Tree."""

    def __init__(self, default_child: bool):
        self.default_child = default_child
        self.nodes: list[Node] = []
        self.aliases: dict[str, str] = {}

    def _node_id(self, elem: ET.Element, path: str) -> str:
        return elem.get("id") or path

    def build(self, root: ET.Element) -> Tree:
        root_id = self._visit(root, "0")
        if root_id is None:
            raise ValueError("root Node has no satisfiable children")
        return Tree.from_nodes(self.nodes + self._alias_nodes(), root=root_id)

    def _alias_nodes(self) -> list[Node]:
        """
        Copies of the target node under each collapsed node's PMML id, so
        defaultChild references to a collapsed node still resolve.
        """
        index = {n.node_id: n for n in self.nodes}
        copies = []
        for alias, target in self.aliases.items():
            seen = {alias}
            while target in self.aliases and target not in seen:
                seen.add(target)
                target = self.aliases[target]
            if target in index:
                copies.append(replace(index[target], node_id=alias))
        return copies

    def _visit(self, elem: ET.Element, path: str) -> Optional[str]:
        node_id = self._node_id(elem, path)
        kids = _children(elem, "Node")
        if not kids:
            score = elem.get("score")
            self.nodes.append(Node(
                node_id=node_id,
                score=float(score) if score is not None else None,
            ))
            return node_id

        missing = None
        if self.default_child and elem.get("defaultChild") is not None:
            missing = elem.get("defaultChild")

        branches = []
        for i, kid in enumerate(kids):
            predicate = _node_predicate(kid)
            if predicate == _NEVER:
                continue
            kid_id = self._visit(kid, f"{path}.{i}")
            branches.append((predicate, kid_id))
            if predicate == _ALWAYS:
                break

        chained = self._chain(node_id, branches, missing)
        if chained is not None and chained != node_id:
            self.aliases[node_id] = chained
        return chained

    def _chain(self, node_id: str, branches, missing) -> Optional[str]:
        """
        Link ``branches`` as nested decisions. The first decision takes the
        parent's id; a chain that collapses to a single unconditional
        branch returns that branch's id and the caller aliases it.
        """
        if not branches:
            return None
        predicate, target = branches[0]
        if predicate == _ALWAYS:
            return target

        decision_id = node_id
        fallback = self._chain(f"{node_id}/else", branches[1:], missing)
        self.nodes.append(Node(
            node_id=decision_id,
            predicate=predicate,
            true_child=target,
            false_child=fallback,
            missing_child=missing,
        ))
        return decision_id


def _parse_tree(tree_model: ET.Element) -> Tree:
    root = _first(tree_model, ["Node"])
    if root is None:
        raise ValueError("TreeModel has no root Node")
    strategy = tree_model.get("missingValueStrategy", "none")
    builder = _TreeBuilder(default_child=strategy == "defaultChild")
    return builder.build(root)


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------

def _output_constant(root: ET.Element) -> Optional[ET.Element]:
    for output_field in _iter_local(root, "OutputField"):
        constant = _first(output_field, ["Apply", "Constant"])
        if constant is not None:
            return constant
    return None


def parse_pmml(text, strict_version: bool = False) -> Ensemble:
    """Build an Ensemble from a PMML document given as str or bytes."""
    root = ET.fromstring(text)
    version = root.get("version", "")

    tree_models = list(_iter_local(root, "TreeModel"))
    if not tree_models:
        raise ValueError("PMML document contains no TreeModel")
    trees = [_parse_tree(t) for t in tree_models]

    constant = 0.0
    const_elem = _output_constant(root)
    if const_elem is not None and const_elem.text:
        constant = float(const_elem.text)

    rescale_constant = 0.0
    target = next(_iter_local(root, "Target"), None)
    if target is not None and target.get("rescaleConstant") is not None:
        rescale_constant = float(target.get("rescaleConstant"))

    ensemble = Ensemble.build(
        version,
        trees,
        constant=constant,
        rescale_constant=rescale_constant,
        strict_version=strict_version,
    )
    logger.info(
        "Loaded PMML %s: %d trees, offset=%.8f",
        version, ensemble.num_trees, ensemble.offset,
    )
    return ensemble


def load_pmml(path: str, strict_version: bool = False) -> Ensemble:
    """Read a PMML file from disk."""
    model_path = Path(path)
    if not model_path.exists():
        raise FileNotFoundError(f"PMML model not found at {model_path}")
    return parse_pmml(model_path.read_bytes(), strict_version=strict_version)
