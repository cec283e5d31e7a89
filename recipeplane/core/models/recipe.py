"""
Recipe models — metadata and the recipe transfer shape.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, Field

from recipeplane.core.models.execution import ExecutionRecord
from recipeplane.core.models.step import StepDTO, StepStatus


class RecipeMeta(BaseModel):
    """Human-readable recipe metadata."""

    summary: str = ""
    description: str = ""
    logo: str = ""


class RecipeStatus(StrEnum):
    """Aggregate status derived from a recipe's steps."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    APPLIED = "applied"
    REVERTED = "reverted"
    PARTIAL = "partial"
    FAILED = "failed"

    @classmethod
    def from_steps(cls, statuses: list[StepStatus]) -> RecipeStatus:
        """Derive the recipe status from its step statuses."""
        if not statuses:
            return cls.NOT_STARTED
        if any(s == StepStatus.FAILED for s in statuses):
            return cls.FAILED
        if any(s in (StepStatus.APPLYING, StepStatus.REVERTING) for s in statuses):
            return cls.IN_PROGRESS
        if all(s == StepStatus.APPLIED for s in statuses):
            return cls.APPLIED
        if all(s == StepStatus.REVERTED for s in statuses):
            return cls.REVERTED
        if all(s == StepStatus.NOT_STARTED for s in statuses):
            return cls.NOT_STARTED
        return cls.PARTIAL


class RecipeDTO(BaseModel):
    """Transfer representation of a recipe and its steps."""

    id: str
    name: str
    meta: RecipeMeta = Field(default_factory=RecipeMeta)
    status: RecipeStatus = RecipeStatus.NOT_STARTED
    steps: list[StepDTO] = Field(default_factory=list)
    execution: ExecutionRecord | None = None
