"""
Ensemble aggregation: baseline offset + Σ tree contributions → logistic link.

Two strategies with the same contract:

  score()              evaluates trees one after another on the caller's thread
  score_concurrently() fans out one worker per tree, joins on all of them,
                       then sums the results in tree order

Because the concurrent path sums in tree order rather than completion order,
both strategies return bit-identical probabilities for the same inputs.
"""

import logging
import math
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Any, Mapping

from .model import Ensemble
from .traversal import traverse

logger = logging.getLogger(__name__)

# exp() overflows a double just above this
_EXP_LIMIT = 709.0


def logistic(margin: float) -> float:
    """
    exp(margin) / (1 + exp(margin)).

    Saturates instead of overflowing: margins beyond ±709 return exactly
    1.0 or 0.0 (the nearest doubles to the true value), never NaN.
    """
    if margin > _EXP_LIMIT:
        return 1.0
    e = math.exp(margin)
    return e / (1.0 + e)


def margin(ensemble: Ensemble, features: Mapping[str, Any]) -> float:
    """Raw sum (offset + tree contributions) before the link function."""
    total = ensemble.offset
    for tree in ensemble.trees:
        total += traverse(tree, features)
    return total


def score(ensemble: Ensemble, features: Mapping[str, Any]) -> float:
    """
    Score sequentially. The first failing tree aborts the call and its
    ``ScoringError`` propagates; no partial sum is exposed.
    """
    total = margin(ensemble, features)
    logger.debug("Sequential margin=%.8f over %d trees", total, ensemble.num_trees)
    return logistic(total)


def margin_concurrently(ensemble: Ensemble, features: Mapping[str, Any]) -> float:
    """Concurrent counterpart of ``margin()``."""
    if not ensemble.trees:
        return ensemble.offset

    # One worker per tree, scoped to this call.
    with ThreadPoolExecutor(
        max_workers=ensemble.num_trees, thread_name_prefix="tree",
    ) as pool:
        futures = [pool.submit(traverse, tree, features) for tree in ensemble.trees]
        wait(futures)

    total = ensemble.offset
    for future in futures:
        # re-raises the worker's ScoringError; later results are discarded
        total += future.result()
    return total


def score_concurrently(ensemble: Ensemble, features: Mapping[str, Any]) -> float:
    """
    Same result as ``score()``, evaluating each tree on its own thread.

    Blocks until every tree has reported. If any tree fails, the error of
    the first failing tree (in tree order) is raised; sibling workers are
    not cancelled, their results are simply dropped.
    """
    total = margin_concurrently(ensemble, features)
    logger.debug("Concurrent margin=%.8f over %d trees", total, ensemble.num_trees)
    return logistic(total)
