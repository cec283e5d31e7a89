"""
Instruction step — a manual action the operator performs themselves.
"""

from __future__ import annotations

from pydantic import BaseModel

from recipeplane.core.steps.base import Step, StepContext


class InstructionSettings(BaseModel):
    text: str
    url: str | None = None


class InstructionStep(Step):
    """Touches nothing; apply and revert only record the status."""

    type = "instruction"
    Settings = InstructionSettings
    settings: InstructionSettings

    def default_name(self) -> str:
        return "Manual instruction"

    def _apply(self, ctx: StepContext) -> str:
        return "Marked as done"

    def _revert(self, ctx: StepContext) -> str:
        return "Marked as undone"
