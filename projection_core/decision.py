"""
Projection Core - Decision Records

A binary A/B choice the user wants projected, with its computed result and
an optional cached explanation. A projection, never a recommendation.
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Optional

from .errors import require
from .scoring import DecisionResult
from .values import ValueAxis

MAX_TITLE_LENGTH = 500
MAX_OPTION_LENGTH = 2000


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def validate_decision_text(title: str, option_a: str, option_b: str) -> None:
    """Raise PreconditionError unless title and options are non-blank and within limits."""
    require(bool(title and title.strip()), "Decision title cannot be blank")
    require(bool(option_a and option_a.strip()), "Option A cannot be blank")
    require(bool(option_b and option_b.strip()), "Option B cannot be blank")
    require(len(title) <= MAX_TITLE_LENGTH,
            f"Title exceeds maximum length of {MAX_TITLE_LENGTH}")
    require(len(option_a) <= MAX_OPTION_LENGTH,
            f"Option A exceeds maximum length of {MAX_OPTION_LENGTH}")
    require(len(option_b) <= MAX_OPTION_LENGTH,
            f"Option B exceeds maximum length of {MAX_OPTION_LENGTH}")


def build_context_text(title: str, option_a: str, option_b: str,
                       priority_axis: Optional[ValueAxis] = None) -> str:
    """Text embedded to query the evidence store for similar fragments."""
    lines = [f"Decision: {title}", f"Option A: {option_a}", f"Option B: {option_b}"]
    if priority_axis is not None:
        lines.append(f"Priority: {priority_axis.display_name}")
    return "\n".join(lines)


@dataclass(frozen=True)
class DecisionExplanation:
    """Generated prose describing why the numbers came out as they did."""
    summary: str
    evidence_summary: str = ""
    value_summary: str = ""
    generated_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self):
        require(bool(self.summary and self.summary.strip()), "Summary cannot be blank")


@dataclass(frozen=True)
class Decision:
    id: str
    user_id: str
    title: str
    option_a: str
    option_b: str
    result: DecisionResult
    priority_axis: Optional[ValueAxis] = None
    created_at: datetime = field(default_factory=_utcnow)
    explanation: Optional[DecisionExplanation] = None

    def __post_init__(self):
        validate_decision_text(self.title, self.option_a, self.option_b)

    @property
    def context_text(self) -> str:
        return build_context_text(self.title, self.option_a, self.option_b, self.priority_axis)

    @property
    def has_explanation(self) -> bool:
        return self.explanation is not None

    def with_explanation(self, explanation: DecisionExplanation) -> "Decision":
        return replace(self, explanation=explanation)
