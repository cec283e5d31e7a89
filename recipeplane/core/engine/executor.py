"""
Step executor — the sequential apply/revert loop.

Shared by install and uninstall. The loop itself is single-threaded
and policy-driven; the execution service decides where it runs.

Flow:
    plan order → (cancel? deadline?) → apply/revert step → outcome → next

Ordering:
    install    applies steps in ascending index order
    uninstall  reverts steps in descending index order, so a step is
               undone before anything it depends on
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from collections.abc import Callable
from datetime import UTC, datetime

from recipeplane.core.errors import StepError
from recipeplane.core.models.execution import (
    ExecutionRecord,
    ExecutionStatus,
    Operation,
    StepOutcome,
)
from recipeplane.core.recipe import Recipe
from recipeplane.core.steps import StepContext

logger = logging.getLogger(__name__)

ContextFactory = Callable[[int], StepContext]
OutcomeCallback = Callable[[StepOutcome], None]


def plan_order(recipe: Recipe, operation: Operation) -> list[int]:
    """Step indices in the order ``operation`` must visit them."""
    indices = list(range(len(recipe)))
    if operation == "uninstall":
        indices.reverse()
    return indices


def run_steps(
    recipe: Recipe,
    operation: Operation,
    make_context: ContextFactory,
    record: ExecutionRecord,
    *,
    halt_on_failure: bool = True,
    cancel_event: threading.Event | None = None,
    deadline: float | None = None,
    on_outcome: OutcomeCallback | None = None,
) -> ExecutionRecord:
    """Apply or revert every step of ``recipe``, filling in ``record``.

    Cancellation and the deadline (a ``time.monotonic()`` value) are
    checked before each step; a running step is never interrupted.

    Args:
        recipe: The recipe to execute.
        operation: ``"install"`` (apply) or ``"uninstall"`` (revert).
        make_context: Builds the StepContext for a step index.
        record: Execution handle to update in place.
        halt_on_failure: Stop at the first failed step; the rest are skipped.
        cancel_event: Set by another thread to stop before the next step.
        deadline: Monotonic time after which no further step starts.
        on_outcome: Called after each outcome is recorded.

    Returns:
        The same ``record``, finished.
    """
    record.mark_running()
    order = plan_order(recipe, operation)
    stop_status: ExecutionStatus | None = None
    stop_reason = ""

    logger.info(
        "%s %s: %d steps", operation, recipe.id, len(order),
    )

    for pos, index in enumerate(order):
        if cancel_event is not None and cancel_event.is_set():
            stop_status, stop_reason = ExecutionStatus.CANCELLED, "cancelled"
        elif deadline is not None and time.monotonic() >= deadline:
            stop_status, stop_reason = ExecutionStatus.TIMED_OUT, "execution timed out"
        elif halt_on_failure and record.failed_step is not None:
            stop_reason = f"halted after step {record.failed_step} failed"

        if stop_reason:
            _skip_remaining(recipe, order[pos:], stop_reason, record, on_outcome)
            break

        step = recipe.step_at(index)
        outcome = StepOutcome(index=index, name=step.name)
        started = time.monotonic()
        try:
            if operation == "install":
                step.apply(make_context(index))
            else:
                step.revert(make_context(index))
            outcome.message = step.status_message
        except StepError as e:
            outcome.status = "failed"
            outcome.error = e.message
            if record.failed_step is None:
                record.failed_step = index
                record.error = e.message
            logger.warning(
                "%s %s: step %d (%s) failed: %s",
                operation, recipe.id, index, step.name, e.message,
            )
        outcome.duration_ms = int((time.monotonic() - started) * 1000)

        record.outcomes.append(outcome)
        marker = "✓" if outcome.ok else "✗"
        logger.info("%s %s[%d] %s → %s", marker, recipe.id, index, step.name, outcome.status)
        if on_outcome is not None:
            on_outcome(outcome)

    if stop_status is not None:
        record.finish(stop_status, error=record.error or stop_reason)
    elif record.failed_step is not None:
        record.finish(ExecutionStatus.FAILED)
    else:
        record.finish(ExecutionStatus.SUCCEEDED)

    logger.info(
        "%s %s finished: %s (%d ok, %d failed, %d skipped)",
        operation, recipe.id, record.status,
        record.succeeded, record.failed, record.skipped,
    )
    return record


def _skip_remaining(
    recipe: Recipe,
    indices: list[int],
    reason: str,
    record: ExecutionRecord,
    on_outcome: OutcomeCallback | None,
) -> None:
    for index in indices:
        outcome = StepOutcome(
            index=index,
            name=recipe.step_at(index).name,
            status="skipped",
            message=reason,
        )
        record.outcomes.append(outcome)
        logger.info("⊘ %s[%d] %s → skipped (%s)", recipe.id, index, outcome.name, reason)
        if on_outcome is not None:
            on_outcome(outcome)


def generate_execution_id() -> str:
    """Generate a unique execution ID."""
    now = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
    short = uuid.uuid4().hex[:6]
    return f"exec-{now}-{short}"
