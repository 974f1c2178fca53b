"""
Tests for value axes, importance profiles, value nodes and ValueProfileService.
"""

import pytest

from projection_core.errors import PreconditionError
from projection_core.values import (
    VALUE_AXIS_COUNT,
    Trend,
    ValueAxis,
    ValueImportance,
    ValueNode,
    denormalize_to_scale,
    normalize_from_scale,
)
from projection_service.values import ValueProfileService


class TestValueAxis:

    def test_eight_axes(self):
        assert len(ValueAxis.all()) == VALUE_AXIS_COUNT == 8

    def test_axis_text(self):
        assert ValueAxis.GROWTH.axis_text == (
            "Value axis: Growth/Learning. "
            "The drive to learn, improve, and develop new skills or knowledge")

    def test_from_name(self):
        assert ValueAxis.from_name("health") is ValueAxis.HEALTH
        assert ValueAxis.from_name(" Meaning ") is ValueAxis.MEANING
        assert ValueAxis.from_name("wealth") is None
        assert ValueAxis.from_name("") is None

    def test_key(self):
        assert ValueAxis.RELATIONSHIP.key == "relationship"


class TestScale:

    @pytest.mark.parametrize("rating,expected", [(1, 0.0), (10, 1.0), (5.5, 0.5), (0, 0.0), (12, 1.0)])
    def test_normalize(self, rating, expected):
        assert normalize_from_scale(rating) == pytest.approx(expected)

    def test_denormalize(self):
        assert denormalize_to_scale(0.0) == 1.0
        assert denormalize_to_scale(1.0) == 10.0
        assert denormalize_to_scale(normalize_from_scale(7.0)) == pytest.approx(7.0)


class TestValueImportance:

    def test_defaults(self):
        importance = ValueImportance(user_id="u")
        assert importance.get(ValueAxis.GROWTH) == 0.5
        assert not importance.has_explicit(ValueAxis.GROWTH)
        assert set(importance.all_importances().values()) == {0.5}

    def test_range_validated(self):
        with pytest.raises(PreconditionError):
            ValueImportance(user_id="u", importance={ValueAxis.GROWTH: 1.5})

    def test_update_merges(self):
        original = ValueImportance(user_id="u", importance={ValueAxis.GROWTH: 0.9,
                                                            ValueAxis.HEALTH: 0.1})
        updated = original.update({ValueAxis.HEALTH: 0.7})
        assert updated.get(ValueAxis.GROWTH) == 0.9
        assert updated.get(ValueAxis.HEALTH) == 0.7
        assert updated.version == 2
        assert original.get(ValueAxis.HEALTH) == 0.1

    def test_from_scale(self):
        importance = ValueImportance.from_scale("u", {ValueAxis.FINANCIAL: 10})
        assert importance.get(ValueAxis.FINANCIAL) == 1.0
        assert importance.has_explicit(ValueAxis.FINANCIAL)


class TestTrend:

    def test_too_few(self):
        assert Trend.compute([]) is Trend.NEUTRAL
        assert Trend.compute([0.9]) is Trend.NEUTRAL

    def test_rising(self):
        assert Trend.compute([0.8, 0.6, 0.0, -0.2]) is Trend.RISING

    def test_falling(self):
        assert Trend.compute([-0.5, 0.5]) is Trend.FALLING

    def test_flat(self):
        assert Trend.compute([0.3, 0.25, 0.3, 0.3]) is Trend.NEUTRAL


class TestValueNode:

    def test_valence_range(self):
        with pytest.raises(PreconditionError):
            ValueNode(axis=ValueAxis.GROWTH, avg_valence=1.5)
        with pytest.raises(PreconditionError):
            ValueNode(axis=ValueAxis.GROWTH, fragment_count=-1)

    def test_update_with_fragment(self):
        node = ValueNode(axis=ValueAxis.GROWTH, avg_valence=0.5, fragment_count=1)
        updated = node.update_with_fragment(1.0, 0.5, Trend.RISING)
        assert updated.avg_valence == pytest.approx((0.5 + 0.5) / 2)
        assert updated.fragment_count == 2
        assert updated.recent_trend is Trend.RISING
        assert updated.has_fragments

    def test_update_validates(self):
        node = ValueNode(axis=ValueAxis.GROWTH)
        with pytest.raises(PreconditionError):
            node.update_with_fragment(2.0, 1.0, Trend.NEUTRAL)
        with pytest.raises(PreconditionError):
            node.update_with_fragment(0.5, 1.5, Trend.NEUTRAL)


class TestValueProfileService:

    @pytest.fixture
    def service(self, importance_store, value_graph_store):
        return ValueProfileService(importance_store, value_graph_store)

    @pytest.mark.asyncio
    async def test_empty_profile(self, service):
        importance = await service.get_importance("u")
        assert importance.importance == {}
        assert importance.get(ValueAxis.MEANING) == 0.5

    @pytest.mark.asyncio
    async def test_set_then_merge(self, service):
        first = await service.set_importance("u", {ValueAxis.GROWTH: 10, ValueAxis.HEALTH: 1})
        assert first.version == 1
        assert first.get(ValueAxis.GROWTH) == 1.0

        second = await service.set_importance("u", {ValueAxis.HEALTH: 10})
        assert second.version == 2
        assert second.get(ValueAxis.GROWTH) == 1.0
        assert second.get(ValueAxis.HEALTH) == 1.0
        assert (await service.get_importance("u")) == second

    @pytest.mark.asyncio
    async def test_rating_out_of_scale(self, service):
        with pytest.raises(PreconditionError, match="between 1 and 10"):
            await service.set_importance("u", {ValueAxis.GROWTH: 11})

    @pytest.mark.asyncio
    async def test_record_fragment(self, service):
        node = await service.record_fragment("u", ValueAxis.AUTONOMY, 0.8)
        assert node.fragment_count == 1
        assert node.avg_valence == pytest.approx(0.8)

        node = await service.record_fragment("u", ValueAxis.AUTONOMY, -0.4,
                                             recent_valences=[-0.4, 0.8])
        assert node.fragment_count == 2
        assert node.avg_valence == pytest.approx(0.2)
        assert node.recent_trend is Trend.FALLING

        nodes = await service.get_nodes("u")
        assert nodes[ValueAxis.AUTONOMY] == node
        assert await service.get_nodes("someone-else") == {}
