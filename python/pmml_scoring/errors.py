"""
Exceptions raised while scoring a tree ensemble.

Every failure aborts the whole score: callers get either a probability or
one of these exceptions, never a partial result.
"""


class ScoringError(Exception):
    """Base class for all scoring failures."""


class MissingFeature(ScoringError):
    """A reachable predicate needs a feature the caller did not supply."""

    def __init__(self, feature: str, node_id=None):
        self.feature = feature
        self.node_id = node_id
        super().__init__(
            f"feature {feature!r} is missing and node {node_id!r} "
            f"has no missing-value branch"
        )


class TypeMismatch(ScoringError):
    """A feature value cannot be coerced to what the operator needs."""

    def __init__(self, feature: str, value, expected: str):
        self.feature = feature
        self.value = value
        self.expected = expected
        super().__init__(
            f"feature {feature!r} has value {value!r}, expected {expected}"
        )


class UnsupportedPredicate(ScoringError):
    """The predicate operator or shape is not one the evaluator knows."""

    def __init__(self, operator, node_id=None):
        self.operator = operator
        self.node_id = node_id
        super().__init__(f"unsupported predicate {operator!r} at node {node_id!r}")


class MalformedTree(ScoringError):
    """A node reference is missing, dangling, or loops back on itself."""

    def __init__(self, message: str, node_id=None):
        self.node_id = node_id
        super().__init__(message)


class UnsupportedModelVersion(ScoringError):
    """Raised in strict mode for a schema version other than 4.2 / 4.3."""

    def __init__(self, version):
        self.version = version
        super().__init__(f"unsupported model schema version {version!r}")
