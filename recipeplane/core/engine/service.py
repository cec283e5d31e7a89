"""
Recipe execution service — whole-recipe and single-step orchestration.

Install and uninstall are *triggered*, not confirmed: the call claims
the recipe, starts a background worker and returns the recipe's
current DTO straight away. Progress is observable through the
execution handle (``get_execution``), the event bus and the audit
ledger.

Concurrency rules:
    - One execution per recipe id at a time. Install, uninstall and the
      single-step operations all claim the same per-recipe lock without
      blocking; a second claimant gets ExecutionInProgress.
    - Different recipes run independently.
    - A worker checks for cancellation and its deadline between steps,
      never mid-step.
"""

from __future__ import annotations

import logging
import threading
import time
from pathlib import Path

from recipeplane.core.engine.executor import generate_execution_id, run_steps
from recipeplane.core.errors import ExecutionInProgress, StepError
from recipeplane.core.models.config import RecipePlaneConfig
from recipeplane.core.models.execution import (
    ExecutionRecord,
    ExecutionStatus,
    Operation,
    StepOutcome,
)
from recipeplane.core.models.recipe import RecipeDTO
from recipeplane.core.models.step import StepDTO
from recipeplane.core.persistence.audit import AuditEntry, AuditWriter
from recipeplane.core.provider import RecipeProvider
from recipeplane.core.recipe import Recipe
from recipeplane.core.services.event_bus import EventBus
from recipeplane.core.services.plugin_store import PluginStore
from recipeplane.core.services.settings_store import SettingsStore
from recipeplane.core.steps import StepContext

logger = logging.getLogger(__name__)

_STEP_EVENTS = {
    ("install", "ok"): "step:applied",
    ("uninstall", "ok"): "step:reverted",
    ("apply", "ok"): "step:applied",
    ("revert", "ok"): "step:reverted",
}


class RecipeExecutionService:
    """Orchestrates install/uninstall and single-step apply/revert."""

    def __init__(
        self,
        provider: RecipeProvider,
        plugins: PluginStore,
        settings: SettingsStore,
        *,
        bus: EventBus | None = None,
        audit: AuditWriter | None = None,
        halt_on_failure: bool = True,
        timeout_seconds: float = 600.0,
    ) -> None:
        self._provider = provider
        self._plugins = plugins
        self._settings = settings
        self._bus = bus or EventBus()
        self._audit = audit
        self.halt_on_failure = halt_on_failure
        self.timeout_seconds = timeout_seconds

        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}
        self._executions: dict[str, ExecutionRecord] = {}
        self._workers: dict[str, threading.Thread] = {}
        self._cancel_events: dict[str, threading.Event] = {}

    @classmethod
    def from_config(
        cls,
        config: RecipePlaneConfig,
        *,
        provider: RecipeProvider | None = None,
        bus: EventBus | None = None,
    ) -> RecipeExecutionService:
        """Wire the service and its stores from a loaded configuration."""
        state_dir = Path(config.state_dir)
        return cls(
            provider or RecipeProvider.from_config(config),
            PluginStore(plugins_dir=Path(config.plugins_dir), state_dir=state_dir),
            SettingsStore(state_dir=state_dir),
            bus=bus,
            audit=AuditWriter(state_dir=state_dir),
            halt_on_failure=config.execution.halt_on_failure,
            timeout_seconds=config.execution.timeout_seconds,
        )

    # ── Collaborators ───────────────────────────────────────────

    @property
    def provider(self) -> RecipeProvider:
        return self._provider

    @property
    def bus(self) -> EventBus:
        return self._bus

    @property
    def plugins(self) -> PluginStore:
        return self._plugins

    @property
    def settings(self) -> SettingsStore:
        return self._settings

    def _context(self, recipe_id: str, step_index: int | None = None) -> StepContext:
        return StepContext(
            plugins=self._plugins,
            settings=self._settings,
            recipe_id=recipe_id,
            step_index=step_index,
        )

    # ── Queries ─────────────────────────────────────────────────

    def list_recipes(self) -> list[RecipeDTO]:
        recipes = sorted(self._provider.get_all(), key=lambda r: r.id)
        return [self._recipe_dto(r) for r in recipes]

    def get_recipe(self, recipe_id: str) -> RecipeDTO:
        """Raises RecipeNotFound for an unknown id."""
        return self._recipe_dto(self._provider.require(recipe_id))

    def get_execution(self, recipe_id: str) -> ExecutionRecord | None:
        """Latest execution handle for the recipe (a copy), or None."""
        self._provider.require(recipe_id)
        with self._guard:
            record = self._executions.get(recipe_id)
            return record.model_copy(deep=True) if record else None

    def running(self) -> list[str]:
        """Recipe ids with an unfinished execution."""
        with self._guard:
            return sorted(
                rid for rid, rec in self._executions.items() if not rec.status.finished
            )

    def executions(self) -> list[ExecutionRecord]:
        """Latest execution of every recipe that has one."""
        with self._guard:
            return [r.model_copy(deep=True) for r in self._executions.values()]

    def _recipe_dto(self, recipe: Recipe) -> RecipeDTO:
        dto = recipe.to_dto(self._context(recipe.id))
        with self._guard:
            record = self._executions.get(recipe.id)
            dto.execution = record.model_copy(deep=True) if record else None
        return dto

    # ── Whole-recipe operations ─────────────────────────────────

    def install(self, recipe_id: str) -> RecipeDTO:
        """Trigger a background apply of every step, in ascending order.

        Raises:
            RecipeNotFound: Unknown id.
            ExecutionInProgress: The recipe is already being executed.
        """
        return self._start(self._provider.require(recipe_id), "install")

    def uninstall(self, recipe_id: str) -> RecipeDTO:
        """Trigger a background revert of every step, in descending order.

        Raises:
            RecipeNotFound: Unknown id.
            ExecutionInProgress: The recipe is already being executed.
        """
        return self._start(self._provider.require(recipe_id), "uninstall")

    def _start(self, recipe: Recipe, operation: Operation) -> RecipeDTO:
        lock = self._claim(recipe.id)
        record = ExecutionRecord(
            execution_id=generate_execution_id(),
            recipe_id=recipe.id,
            operation=operation,
        )
        cancel_event = threading.Event()
        worker = threading.Thread(
            target=self._run,
            args=(recipe, record, cancel_event, lock),
            name=f"recipe-{operation}-{recipe.id}",
            daemon=True,
        )
        with self._guard:
            self._executions[recipe.id] = record
            self._cancel_events[recipe.id] = cancel_event
            self._workers[recipe.id] = worker

        try:
            worker.start()
        except RuntimeError as e:
            lock.release()
            record.finish(ExecutionStatus.FAILED, error=f"Cannot start worker: {e}")
            raise

        logger.info("Queued %s of recipe %s (%s)", operation, recipe.id, record.execution_id)
        return self._recipe_dto(recipe)

    def _run(
        self,
        recipe: Recipe,
        record: ExecutionRecord,
        cancel_event: threading.Event,
        lock: threading.Lock,
    ) -> None:
        """Worker body. Owns ``lock`` and releases it when done."""
        started = time.monotonic()
        deadline = started + self.timeout_seconds if self.timeout_seconds > 0 else None
        try:
            self._publish("execution:started", record)
            run_steps(
                recipe,
                record.operation,
                lambda index: self._context(recipe.id, index),
                record,
                halt_on_failure=self.halt_on_failure,
                cancel_event=cancel_event,
                deadline=deadline,
                on_outcome=lambda outcome: self._on_outcome(record, outcome),
            )
        except Exception as e:
            logger.error(
                "%s of recipe %s crashed: %s", record.operation, recipe.id, e, exc_info=True,
            )
            record.finish(ExecutionStatus.FAILED, error=f"Unexpected error: {e}")
        finally:
            duration_ms = int((time.monotonic() - started) * 1000)
            try:
                self._write_audit(
                    operation_id=record.execution_id,
                    operation_type=record.operation,
                    recipe_id=recipe.id,
                    status=record.status,
                    outcomes=record.outcomes,
                    duration_ms=duration_ms,
                    errors=[o.error for o in record.outcomes if o.error],
                )
                self._publish("execution:done", record, duration_s=duration_ms / 1000)
            finally:
                lock.release()

        if record.status != ExecutionStatus.SUCCEEDED:
            logger.warning(
                "%s of recipe %s ended %s: %s",
                record.operation, recipe.id, record.status, record.error or "-",
            )

    def _on_outcome(self, record: ExecutionRecord, outcome: StepOutcome) -> None:
        event = _STEP_EVENTS.get((record.operation, outcome.status), f"step:{outcome.status}")
        self._bus.publish(
            event,
            key=record.recipe_id,
            data={"execution_id": record.execution_id, **outcome.model_dump(mode="json")},
        )

    # ── Execution control ───────────────────────────────────────

    def wait(self, recipe_id: str, timeout: float | None = None) -> ExecutionRecord | None:
        """Block until the recipe's current execution ends (or timeout)."""
        with self._guard:
            worker = self._workers.get(recipe_id)
        if worker is not None:
            worker.join(timeout)
        return self.get_execution(recipe_id)

    def cancel(self, recipe_id: str) -> bool:
        """Ask the running execution to stop before its next step.

        Returns:
            True if an unfinished execution was signalled.

        Raises:
            RecipeNotFound: Unknown id.
        """
        self._provider.require(recipe_id)
        with self._guard:
            record = self._executions.get(recipe_id)
            event = self._cancel_events.get(recipe_id)
        if record is None or event is None or record.status.finished:
            return False
        event.set()
        logger.info("Cancellation requested for recipe %s", recipe_id)
        return True

    def shutdown(self, timeout: float = 10.0) -> None:
        """Cancel every running execution and wait for the workers."""
        with self._guard:
            events = list(self._cancel_events.values())
            workers = list(self._workers.values())
        for event in events:
            event.set()
        deadline = time.monotonic() + timeout
        for worker in workers:
            worker.join(max(0.0, deadline - time.monotonic()))
        logger.info("Execution service stopped")

    # ── Single-step operations ──────────────────────────────────

    def apply_step(self, recipe_id: str, index: int) -> StepDTO:
        """Apply one step synchronously.

        Raises:
            RecipeNotFound, StepIndexOutOfRange, ExecutionInProgress,
            StepApplicationError.
        """
        return self._run_single(recipe_id, index, "apply")

    def revert_step(self, recipe_id: str, index: int) -> StepDTO:
        """Revert one step synchronously.

        Raises:
            RecipeNotFound, StepIndexOutOfRange, ExecutionInProgress,
            StepRevertError.
        """
        return self._run_single(recipe_id, index, "revert")

    def _run_single(self, recipe_id: str, index: int, action: str) -> StepDTO:
        recipe = self._provider.require(recipe_id)
        step = recipe.step_at(index)
        lock = self._claim(recipe.id)

        ctx = self._context(recipe.id, index)
        outcome = StepOutcome(index=index, name=step.name)
        started = time.monotonic()
        try:
            if action == "apply":
                step.apply(ctx)
            else:
                step.revert(ctx)
            outcome.message = step.status_message
        except StepError as e:
            outcome.status = "failed"
            outcome.error = e.message
            raise
        finally:
            outcome.duration_ms = int((time.monotonic() - started) * 1000)
            lock.release()
            self._write_audit(
                operation_id=generate_execution_id(),
                operation_type=f"{action}-step",
                recipe_id=recipe.id,
                status="succeeded" if outcome.ok else "failed",
                outcomes=[outcome],
                duration_ms=outcome.duration_ms,
                errors=[outcome.error] if outcome.error else [],
            )
            event = _STEP_EVENTS.get((action, outcome.status), f"step:{outcome.status}")
            self._bus.publish(event, key=recipe.id, data=outcome.model_dump(mode="json"))

        logger.info("✓ %s[%d] %s → %s", recipe.id, index, step.name, step.status)
        return step.to_dto(ctx)

    # ── Internal helpers ────────────────────────────────────────

    def _claim(self, recipe_id: str) -> threading.Lock:
        """Take the recipe's lock without blocking."""
        with self._guard:
            lock = self._locks.setdefault(recipe_id, threading.Lock())
        if not lock.acquire(blocking=False):
            raise ExecutionInProgress(recipe_id)
        return lock

    def _publish(self, event_type: str, record: ExecutionRecord, **kw: object) -> None:
        self._bus.publish(
            event_type, key=record.recipe_id, data=record.model_dump(mode="json"), **kw,
        )

    def _write_audit(
        self,
        *,
        operation_id: str,
        operation_type: str,
        recipe_id: str,
        status: str,
        outcomes: list[StepOutcome],
        duration_ms: int,
        errors: list[str],
    ) -> None:
        if self._audit is None:
            return
        self._audit.write(AuditEntry(
            operation_id=operation_id,
            operation_type=operation_type,
            recipe_id=recipe_id,
            steps_affected=[o.index for o in outcomes if o.status != "skipped"],
            status=str(status),
            steps_total=len(outcomes),
            steps_succeeded=sum(1 for o in outcomes if o.ok),
            steps_failed=sum(1 for o in outcomes if o.failed),
            duration_ms=duration_ms,
            errors=errors,
        ))
