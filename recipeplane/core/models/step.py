"""
Step models — status codes and the step transfer shape.

A StepDTO is what crosses the system boundary for a single step.
Its ``settings`` are action-specific and opaque to the orchestrator.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class StepStatus(StrEnum):
    """Lifecycle status of a recipe step."""

    NOT_STARTED = "not_started"
    APPLYING = "applying"
    APPLIED = "applied"
    REVERTING = "reverting"
    REVERTED = "reverted"
    FAILED = "failed"


class StepStatusDTO(BaseModel):
    """Status code plus the message of the last transition."""

    code: StepStatus = StepStatus.NOT_STARTED
    message: str = ""


class StepDTO(BaseModel):
    """Transfer representation of one step."""

    type: str
    name: str
    description: str = ""
    status: StepStatusDTO = Field(default_factory=StepStatusDTO)
    settings: dict[str, Any] = Field(default_factory=dict)
