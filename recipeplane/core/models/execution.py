"""
Execution models — the observable handle of a whole-recipe run.

Install and uninstall run in the background. The ExecutionRecord is
what callers poll (or watch on the event stream) to learn how the run
went, step by step.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, Field


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class ExecutionStatus(StrEnum):
    """States of a whole-recipe execution."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"
    TIMED_OUT = "timed_out"

    @property
    def finished(self) -> bool:
        return self not in (ExecutionStatus.PENDING, ExecutionStatus.RUNNING)


Operation = Literal["install", "uninstall"]


class StepOutcome(BaseModel):
    """Result of applying or reverting one step during an execution."""

    index: int
    name: str = ""
    status: Literal["ok", "failed", "skipped"] = "ok"
    message: str = ""
    error: str | None = None
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    @property
    def failed(self) -> bool:
        return self.status == "failed"


class ExecutionRecord(BaseModel):
    """Task handle for one install or uninstall of a recipe."""

    execution_id: str
    recipe_id: str
    operation: Operation
    status: ExecutionStatus = ExecutionStatus.PENDING

    created_at: str = Field(default_factory=_now_iso)
    started_at: str | None = None
    ended_at: str | None = None

    failed_step: int | None = None   # first failing step index
    error: str | None = None
    outcomes: list[StepOutcome] = Field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.ok)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if o.failed)

    @property
    def skipped(self) -> int:
        return sum(1 for o in self.outcomes if o.status == "skipped")

    def mark_running(self) -> None:
        self.status = ExecutionStatus.RUNNING
        self.started_at = _now_iso()

    def finish(self, status: ExecutionStatus, error: str | None = None) -> None:
        self.status = status
        if error is not None:
            self.error = error
        self.ended_at = _now_iso()
