"""
Projection Core - Pattern Fit Scorer

How well each option lines up with the user's historically similar fragments.

Mathematical Definition:
    priorityWeight_i = 1 + boost · max(0, cos(f_i, axis))    (1 if no priority axis)
    weight_i         = similarity_i · priorityWeight_i
    valenceWeight_i  = (1 + valence_i) / 2
    c_i^X            = cos(X, f_i) · weight_i · valenceWeight_i    for X ∈ {A, B}

    fit_X = clip(Σ c_i^X / Σ weight_i, 0, 1)

Defaults:
    - No evidence        → fitA = fitB = 0.5, totalWeight = 0, no contributions
    - Σ weight_i == 0    → fitA = fitB = 0.5, contributions still recorded
"""

from __future__ import annotations
import logging
from typing import List, Optional, Sequence

from .breakdown import FitBreakdown, FragmentContribution, top_contributions
from .evidence import EvidenceItem
from .parameters import (
    DEFAULT_PRIORITY_AXIS_BOOST,
    MAX_CONTRIBUTIONS,
    MAX_SUMMARY_LENGTH,
    NEUTRAL_SCORE,
)
from .utils import clip01, safe_truncate
from .vectors import Embedding, cosine_similarity

logger = logging.getLogger(__name__)


def priority_weight(fragment_embedding: Embedding,
                    priority_axis_embedding: Optional[Embedding],
                    boost: float = DEFAULT_PRIORITY_AXIS_BOOST) -> float:
    """
    Extra weight for fragments close to the user's priority axis.

    Only positive similarity boosts; fragments pointing away from the axis
    keep weight 1.0.
    """
    if priority_axis_embedding is None:
        return 1.0
    return 1.0 + boost * max(0.0, cosine_similarity(fragment_embedding, priority_axis_embedding))


def valence_weight(valence: float) -> float:
    """Map valence [-1, 1] to [0, 1]; positive memories weigh more."""
    return clip01((1.0 + valence) / 2.0)


def compute_fit(
    option_a: Embedding,
    option_b: Embedding,
    evidence: Sequence[EvidenceItem],
    priority_axis_embedding: Optional[Embedding] = None,
    priority_axis_boost: float = DEFAULT_PRIORITY_AXIS_BOOST,
    max_contributions: int = MAX_CONTRIBUTIONS,
) -> FitBreakdown:
    """
    Compute pattern fit for both options.

    Args:
        option_a: Embedding of option A
        option_b: Embedding of option B
        evidence: Similarity-sorted evidence items
        priority_axis_embedding: Embedding of the priority axis text, if any
        priority_axis_boost: Boost coefficient for the priority axis
        max_contributions: Cap on recorded fragment contributions

    Returns:
        FitBreakdown with fit scores in [0, 1] and top contributions
        sorted by contributionToA + contributionToB descending

    Raises:
        DimensionMismatchError: if any two combined embeddings differ in dimension
    """
    if not evidence:
        return FitBreakdown.empty(priority_axis_boost)

    score_a = 0.0
    score_b = 0.0
    total_weight = 0.0
    contributions: List[FragmentContribution] = []

    for item in evidence:
        p_weight = priority_weight(item.embedding, priority_axis_embedding, priority_axis_boost)
        weight = item.similarity * p_weight
        v_weight = valence_weight(item.valence)

        align_a = cosine_similarity(option_a, item.embedding)
        align_b = cosine_similarity(option_b, item.embedding)

        contribution_a = align_a * weight * v_weight
        contribution_b = align_b * weight * v_weight

        score_a += contribution_a
        score_b += contribution_b
        total_weight += weight

        contributions.append(FragmentContribution(
            fragment_id=item.id,
            fragment_summary=safe_truncate(item.text, MAX_SUMMARY_LENGTH),
            similarity=item.similarity,
            valence_weight=v_weight,
            priority_weight=p_weight,
            contribution_to_a=contribution_a,
            contribution_to_b=contribution_b,
        ))

    if total_weight > 0.0:
        fit_a = clip01(score_a / total_weight)
        fit_b = clip01(score_b / total_weight)
    else:
        fit_a = fit_b = NEUTRAL_SCORE

    logger.debug(f"fit: n={len(evidence)} total_weight={total_weight:.4f} "
                 f"fitA={fit_a:.4f} fitB={fit_b:.4f}")

    return FitBreakdown(
        fit_score_a=fit_a,
        fit_score_b=fit_b,
        total_weight=total_weight,
        priority_axis_boost=priority_axis_boost,
        top_contributions=tuple(top_contributions(contributions, max_contributions)),
    )
