"""
Projection Core - Value Alignment Calculator

Per-axis descriptive alignment of the two options with the user's values.
Purely descriptive: never used to rank or recommend an option.

Mathematical Definition (per axis v):
    baseDiff   = cos(A, axis_v) - cos(B, axis_v)
    amplified  = baseDiff · (1 + importance_v)                 (importance default 0.5)
    if node_v has fragments:
        confidence = min(fragmentCount / 10, 1)
        amplified *= 1 + avgValence · 0.5 · confidence
    alignment_v = clip((amplified / 4.0 + 1) / 2, 0, 1)

Interpretation:
    0.5 → neutral, > 0.5 leans toward A, < 0.5 leans toward B

Normalizer:
    With |baseDiff| ≤ 1, importance ≤ 1 and |avgValence| ≤ 1 the amplification
    is bounded by 1 · 2 · 1.5 = 3.0 (see theoretical_max_amplification), so
    4.0 leaves headroom. Opposite-pointing options can push |baseDiff| toward
    2; the final clip keeps those inside [0, 1].
"""

from __future__ import annotations
import logging
from typing import Dict, Mapping, Optional

from .errors import require
from .parameters import (
    ALIGNMENT_NORMALIZER,
    CONFIDENCE_SATURATION,
    DEFAULT_IMPORTANCE,
    VALENCE_ADJUSTMENT_SCALE,
)
from .utils import clip01
from .values import ValueAxis, ValueImportance, ValueNode
from .vectors import Embedding, cosine_similarity

logger = logging.getLogger(__name__)


def theoretical_max_amplification(base_diff_bound: float = 1.0,
                                  max_importance: float = 1.0,
                                  max_abs_valence: float = 1.0) -> float:
    """
    Upper bound of |amplifiedDiff| for the given input bounds.

    Confidence saturates at 1, so the valence factor peaks at
    1 + max_abs_valence · VALENCE_ADJUSTMENT_SCALE.
    """
    return (base_diff_bound
            * (1.0 + max_importance)
            * (1.0 + max_abs_valence * VALENCE_ADJUSTMENT_SCALE))


def node_confidence(node: ValueNode) -> float:
    return min(node.fragment_count / CONFIDENCE_SATURATION, 1.0)


def amplify(base_diff: float, explicit_importance: float,
            node: Optional[ValueNode] = None) -> float:
    """Scale a raw similarity difference by explicit and implicit importance."""
    amplified = base_diff * (1.0 + explicit_importance)
    if node is not None and node.fragment_count > 0:
        valence_adjustment = 1.0 + node.avg_valence * VALENCE_ADJUSTMENT_SCALE * node_confidence(node)
        amplified *= valence_adjustment
    return amplified


def normalize_alignment(amplified_diff: float,
                        normalizer: float = ALIGNMENT_NORMALIZER) -> float:
    return clip01((amplified_diff / normalizer + 1.0) / 2.0)


def compute_value_alignment(
    option_a: Embedding,
    option_b: Embedding,
    axis_embeddings: Mapping[ValueAxis, Embedding],
    importance: Optional[ValueImportance] = None,
    value_nodes: Optional[Mapping[ValueAxis, ValueNode]] = None,
) -> Dict[ValueAxis, float]:
    """
    Compute alignment for every value axis.

    Args:
        option_a: Embedding of option A
        option_b: Embedding of option B
        axis_embeddings: Embedding of each axis's canonical text (all 8 required)
        importance: The user's explicit importance profile (defaults apply if None)
        value_nodes: Implicit per-axis statistics, if any

    Returns:
        Map of all 8 axes to alignment in [0, 1]

    Raises:
        PreconditionError: if an axis embedding is missing
        DimensionMismatchError: if option and axis dimensions differ
    """
    nodes = value_nodes or {}
    result: Dict[ValueAxis, float] = {}

    for axis in ValueAxis:
        require(axis in axis_embeddings, f"Missing embedding for value axis {axis.name}")
        axis_embedding = axis_embeddings[axis]

        base_diff = (cosine_similarity(option_a, axis_embedding)
                     - cosine_similarity(option_b, axis_embedding))
        explicit = importance.get(axis) if importance is not None else DEFAULT_IMPORTANCE
        amplified = amplify(base_diff, explicit, nodes.get(axis))
        result[axis] = normalize_alignment(amplified)

    logger.debug(f"alignment: {', '.join(f'{a.key}={v:.3f}' for a, v in result.items())}")
    return result


def neutral_alignment() -> Dict[ValueAxis, float]:
    """Every axis at 0.5."""
    return {axis: 0.5 for axis in ValueAxis}
