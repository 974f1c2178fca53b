"""
Request schemas for the orchestrating layer.

Pydantic models validate raw caller input before it reaches the services;
the core re-checks its own invariants at construction time.
"""

from typing import Dict, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from projection_core.decision import MAX_OPTION_LENGTH, MAX_TITLE_LENGTH
from projection_core.regret import FeedbackType
from projection_core.values import ValueAxis


def _non_blank(value: str, name: str) -> str:
    if not value or not value.strip():
        raise ValueError(f"{name} cannot be blank")
    return value


class UserScopedMixin(BaseModel):
    """Common parameter for every per-user request."""
    user_id: str = Field(..., min_length=1, description="Owner of the decision or settings")


class CreateDecisionRequest(UserScopedMixin):
    """
    Project a binary decision
    """
    title: str = Field(..., max_length=MAX_TITLE_LENGTH, description="What is being decided")
    option_a: str = Field(..., max_length=MAX_OPTION_LENGTH, description="First option")
    option_b: str = Field(..., max_length=MAX_OPTION_LENGTH, description="Second option")
    priority_axis: Optional[str] = Field(
        default=None,
        description="Value axis to emphasize (growth, stability, financial, autonomy, "
                    "relationship, achievement, health, meaning)"
    )

    @field_validator('title', 'option_a', 'option_b')
    @classmethod
    def not_blank(cls, value: str, info) -> str:
        return _non_blank(value, info.field_name)

    @field_validator('priority_axis')
    @classmethod
    def known_axis(cls, value: Optional[str]) -> Optional[str]:
        if value is None or value == "":
            return None
        if ValueAxis.from_name(value) is None:
            raise ValueError(f"Unknown value axis: {value}")
        return value

    def resolved_priority_axis(self) -> Optional[ValueAxis]:
        return ValueAxis.from_name(self.priority_axis) if self.priority_axis else None


class SubmitFeedbackRequest(UserScopedMixin):
    """
    Report how a decision turned out
    """
    decision_id: str = Field(..., min_length=1, description="Decision being rated")
    feedback_type: str = Field(..., description="SATISFIED, NEUTRAL or REGRET")

    @field_validator('feedback_type')
    @classmethod
    def known_type(cls, value: str) -> str:
        FeedbackType.from_name(value)
        return value.strip().upper()

    def resolved_feedback_type(self) -> FeedbackType:
        return FeedbackType.from_name(self.feedback_type)


class ValueImportanceUpdate(UserScopedMixin):
    """
    Set importance ratings (1-10) for some value axes
    """
    importance: Dict[str, float] = Field(..., description="Axis name -> rating on a 1-10 scale")

    @model_validator(mode='after')
    def check_ratings(self):
        if not self.importance:
            raise ValueError("At least one importance rating is required")
        for name, rating in self.importance.items():
            if ValueAxis.from_name(name) is None:
                raise ValueError(f"Unknown value axis: {name}")
            if not 1.0 <= rating <= 10.0:
                raise ValueError(f"Importance for {name} must be between 1 and 10, got: {rating}")
        return self

    def resolved_ratings(self) -> Dict[ValueAxis, float]:
        return {ValueAxis.from_name(name): rating for name, rating in self.importance.items()}
