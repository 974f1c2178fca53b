"""
Projection Core - Value Axes

The 8 fixed dimensions of personal values, the user's explicit importance
ratings for them, and the implicit per-axis statistics gathered from
fragments (value nodes).

The axis set is immutable: alignment reports always cover exactly these 8.
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Mapping, Optional, Sequence

from .errors import require
from .parameters import DEFAULT_IMPORTANCE
from .utils import clip, in_range


class ValueAxis(Enum):
    """One of the 8 fixed value dimensions."""

    GROWTH = ("Growth/Learning",
              "The drive to learn, improve, and develop new skills or knowledge")
    STABILITY = ("Stability/Predictability",
                 "The need for security, routine, and predictable outcomes")
    FINANCIAL = ("Financial/Reward",
                 "Concerns about money, compensation, and material rewards")
    AUTONOMY = ("Autonomy/Control",
                "The desire for independence, self-direction, and control over one's life")
    RELATIONSHIP = ("Relationship/Belonging",
                    "The need for social connection, belonging, and meaningful relationships")
    ACHIEVEMENT = ("Achievement/Recognition",
                   "The drive for accomplishment, status, and recognition from others")
    HEALTH = ("Health/Energy",
              "Concerns about physical and mental wellbeing, vitality, and energy levels")
    MEANING = ("Meaning/Contribution",
               "The search for purpose, meaning, and contribution to something larger than oneself")

    def __init__(self, display_name: str, description: str):
        self.display_name = display_name
        self.description = description

    @property
    def key(self) -> str:
        """Lowercase wire name (e.g. 'growth')."""
        return self.name.lower()

    @property
    def axis_text(self) -> str:
        """Canonical text embedded to obtain this axis's vector."""
        return f"Value axis: {self.display_name}. {self.description}"

    @classmethod
    def all(cls) -> list:
        return list(cls)

    @classmethod
    def from_name(cls, name: str) -> Optional["ValueAxis"]:
        """Case-insensitive lookup; None when no axis matches."""
        if not name:
            return None
        wanted = name.strip().upper()
        for axis in cls:
            if axis.name == wanted:
                return axis
        return None


VALUE_AXIS_COUNT = 8


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_from_scale(value: float, lo: float = 1.0, hi: float = 10.0) -> float:
    """Convert a 1-10 rating to [0, 1]."""
    return clip((value - lo) / (hi - lo), 0.0, 1.0)


def denormalize_to_scale(normalized: float, lo: float = 1.0, hi: float = 10.0) -> float:
    """Convert a [0, 1] importance back to the 1-10 display scale."""
    return clip(normalized * (hi - lo) + lo, lo, hi)


@dataclass(frozen=True)
class ValueImportance:
    """
    A user's explicit importance per axis, normalized to [0, 1].

    Partial: axes the user never rated fall back to DEFAULT_IMPORTANCE.
    """
    user_id: str
    importance: Mapping[ValueAxis, float] = field(default_factory=dict)
    version: int = 1
    updated_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self):
        for axis, value in self.importance.items():
            require(isinstance(axis, ValueAxis), f"Unknown value axis: {axis!r}")
            require(in_range(value, 0.0, 1.0),
                    f"Importance for {axis.name} must be between 0.0 and 1.0, got: {value}")
        require(self.version >= 1, "Version must be at least 1")
        object.__setattr__(self, "importance", dict(self.importance))

    def get(self, axis: ValueAxis) -> float:
        return self.importance.get(axis, DEFAULT_IMPORTANCE)

    def has_explicit(self, axis: ValueAxis) -> bool:
        return axis in self.importance

    def all_importances(self) -> Dict[ValueAxis, float]:
        return {axis: self.get(axis) for axis in ValueAxis}

    def update(self, new_importance: Mapping[ValueAxis, float],
               updated_at: Optional[datetime] = None) -> "ValueImportance":
        """Merge new values over the old ones and bump the version."""
        merged = dict(self.importance)
        merged.update(new_importance)
        return replace(self, importance=merged, version=self.version + 1,
                       updated_at=updated_at or _utcnow())

    @classmethod
    def from_scale(cls, user_id: str, ratings: Mapping[ValueAxis, float]) -> "ValueImportance":
        """Build from 1-10 ratings."""
        return cls(user_id=user_id,
                   importance={axis: normalize_from_scale(v) for axis, v in ratings.items()})


class Trend(Enum):
    RISING = "rising"
    FALLING = "falling"
    NEUTRAL = "neutral"

    @classmethod
    def compute(cls, recent_valences: Sequence[float], threshold: float = 0.1) -> "Trend":
        """
        Trend from recent valences (newest first).

        Compares the mean of the newer half against the older half.
        """
        if len(recent_valences) < 2:
            return cls.NEUTRAL
        midpoint = len(recent_valences) // 2
        newer = recent_valences[:midpoint]
        older = recent_valences[midpoint:]
        change = sum(newer) / len(newer) - sum(older) / len(older)
        if change > threshold:
            return cls.RISING
        if change < -threshold:
            return cls.FALLING
        return cls.NEUTRAL


@dataclass(frozen=True)
class ValueNode:
    """Implicit statistics for one axis, accumulated from the user's fragments."""
    axis: ValueAxis
    avg_valence: float = 0.0
    fragment_count: int = 0
    recent_trend: Trend = Trend.NEUTRAL

    def __post_init__(self):
        require(in_range(self.avg_valence, -1.0, 1.0),
                f"avgValence must be between -1.0 and 1.0, got: {self.avg_valence}")
        require(self.fragment_count >= 0, "fragmentCount cannot be negative")

    @property
    def has_fragments(self) -> bool:
        return self.fragment_count > 0

    def update_with_fragment(self, fragment_valence: float, weight: float,
                             new_trend: Trend) -> "ValueNode":
        """Weighted incremental average over one more fragment."""
        require(in_range(fragment_valence, -1.0, 1.0),
                "fragmentValence must be between -1.0 and 1.0")
        require(in_range(weight, 0.0, 1.0), "weight must be between 0.0 and 1.0")
        new_count = self.fragment_count + 1
        new_avg = (self.avg_valence * self.fragment_count + fragment_valence * weight) / new_count
        return replace(self, avg_valence=clip(new_avg, -1.0, 1.0),
                       fragment_count=new_count, recent_trend=new_trend)
