"""
Value Profile Service

Maintains the two per-user value inputs the alignment calculator reads:
explicit importance ratings (set by the user on a 1-10 scale) and implicit
value nodes (accumulated from fragment valence per axis).
"""

from __future__ import annotations

from typing import Dict, Mapping, Sequence

from projection_core.errors import require
from projection_core.values import (
    Trend,
    ValueAxis,
    ValueImportance,
    ValueNode,
    normalize_from_scale,
)
from projection_service.logging_utils import get_logger
from projection_service.ports import ValueGraphStore, ValueImportanceStore

logger = get_logger(__name__)


class ValueProfileService:

    def __init__(self, importance_store: ValueImportanceStore, value_graph_store: ValueGraphStore):
        self.importance_store = importance_store
        self.value_graph_store = value_graph_store

    async def get_importance(self, user_id: str) -> ValueImportance:
        """Stored profile, or an empty one (every axis at the default)."""
        existing = await self.importance_store.get(user_id)
        return existing if existing is not None else ValueImportance(user_id=user_id)

    async def set_importance(self, user_id: str, ratings: Mapping[ValueAxis, float]) -> ValueImportance:
        """
        Merge 1-10 ratings into the user's profile.

        Axes not mentioned keep their previous value. Updating an existing
        profile bumps its version.

        Raises:
            PreconditionError: rating outside 1-10
        """
        for axis, rating in ratings.items():
            require(1.0 <= rating <= 10.0,
                    f"Importance for {axis.name} must be between 1 and 10, got: {rating}")

        existing = await self.importance_store.get(user_id)
        if existing is None:
            importance = ValueImportance.from_scale(user_id, ratings)
        else:
            importance = existing.update({axis: normalize_from_scale(v) for axis, v in ratings.items()})

        saved = await self.importance_store.save(importance)
        logger.debug(f"Value importance saved for {user_id}: v{saved.version}")
        return saved

    async def get_nodes(self, user_id: str) -> Dict[ValueAxis, ValueNode]:
        return await self.value_graph_store.get_nodes(user_id)

    async def record_fragment(self, user_id: str, axis: ValueAxis, valence: float,
                              weight: float = 1.0,
                              recent_valences: Sequence[float] = ()) -> ValueNode:
        """
        Fold one fragment's valence into the axis node.

        Args:
            user_id: Owner
            axis: Axis the fragment relates to
            valence: Fragment valence [-1, 1]
            weight: Relevance of the fragment to the axis [0, 1]
            recent_valences: Recent valences on this axis, newest first,
                including this fragment (drives the trend)
        """
        nodes = await self.value_graph_store.get_nodes(user_id)
        node = nodes.get(axis) or ValueNode(axis=axis)
        updated = node.update_with_fragment(valence, weight, Trend.compute(list(recent_valences)))
        await self.value_graph_store.save_node(user_id, updated)
        return updated
