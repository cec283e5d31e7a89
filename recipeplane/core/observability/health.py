"""
Health checker — aggregate system health from components.

Reports on the recipe registry, recipe executions, installed plugins
and the state directory. Used by ``GET /api/health`` and the ``health`` command.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from recipeplane.core.engine.service import RecipeExecutionService
from recipeplane.core.models.execution import ExecutionStatus

logger = logging.getLogger(__name__)


@dataclass
class ComponentHealth:
    """Health of a single component."""

    name: str
    status: str = "unknown"  # healthy, degraded, unhealthy, unknown
    message: str = ""
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status,
            "message": self.message,
            "details": self.details,
        }


@dataclass
class SystemHealth:
    """Aggregate health of the entire system."""

    status: str = "healthy"
    timestamp: str = ""
    components: list[ComponentHealth] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.timestamp:
            self.timestamp = datetime.now(UTC).isoformat()

    def add(self, component: ComponentHealth) -> None:
        self.components.append(component)
        self._recalculate()

    def _recalculate(self) -> None:
        statuses = [c.status for c in self.components]
        if any(s == "unhealthy" for s in statuses):
            self.status = "unhealthy"
        elif any(s == "degraded" for s in statuses):
            self.status = "degraded"
        elif all(s == "healthy" for s in statuses):
            self.status = "healthy"
        else:
            self.status = "unknown"

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "timestamp": self.timestamp,
            "components": [c.to_dict() for c in self.components],
        }


def check_registry(service: RecipeExecutionService) -> ComponentHealth:
    """An empty registry serves nothing useful."""
    count = len(service.provider)
    if count == 0:
        return ComponentHealth(
            name="recipes",
            status="degraded",
            message="No recipes registered",
        )
    return ComponentHealth(
        name="recipes",
        status="healthy",
        message=f"{count} recipes registered",
        details={"ids": service.provider.ids()},
    )


def check_executions(service: RecipeExecutionService) -> ComponentHealth:
    """Failed or timed-out latest executions degrade health."""
    records = service.executions()
    running = [r.recipe_id for r in records if not r.status.finished]
    failing = sorted(
        r.recipe_id for r in records
        if r.status in (ExecutionStatus.FAILED, ExecutionStatus.TIMED_OUT)
    )

    if failing:
        status = "degraded"
        message = f"{len(failing)} recipes with a failed last execution"
    elif running:
        status = "healthy"
        message = f"{len(running)} executions in progress"
    else:
        status = "healthy"
        message = "No executions in progress"

    return ComponentHealth(
        name="executions",
        status=status,
        message=message,
        details={"running": sorted(running), "failing": failing},
    )


def check_plugins(service: RecipeExecutionService) -> ComponentHealth:
    """Installed plugins, as recorded by the plugin store."""
    installed = service.plugins.list_installed()
    return ComponentHealth(
        name="plugins",
        status="healthy",
        message=f"{len(installed)} plugins installed",
        details={
            "installed": {r["plugin_id"]: r.get("version", "") for r in installed},
        },
    )


def check_state_dir(state_dir: Path) -> ComponentHealth:
    """The state directory must exist (or be creatable) and be writable."""
    probe = state_dir if state_dir.exists() else state_dir.parent
    if not probe.exists():
        return ComponentHealth(
            name="state_dir",
            status="unhealthy",
            message=f"{state_dir} does not exist and cannot be created",
        )
    if not os.access(probe, os.W_OK):
        return ComponentHealth(
            name="state_dir",
            status="unhealthy",
            message=f"{probe} is not writable",
        )
    return ComponentHealth(
        name="state_dir",
        status="healthy",
        message=str(state_dir),
    )


def check_system_health(
    service: RecipeExecutionService,
    state_dir: Path | None = None,
) -> SystemHealth:
    """Run all health checks and return aggregate status."""
    health = SystemHealth()
    health.add(check_registry(service))
    health.add(check_executions(service))
    health.add(check_plugins(service))
    if state_dir is not None:
        health.add(check_state_dir(state_dir))
    logger.debug("System health: %s", health.status)
    return health
