"""
Step base — the contract every recipe step implements.

A step is one apply/revert action inside a recipe. The base class owns
the status lifecycle; concrete steps only implement the action itself:

    apply:   not_started/... → applying → applied | failed
    revert:  applied/...     → reverting → reverted | failed

To create a new step type:
    1. Subclass Step, set ``type`` and ``Settings`` (a pydantic model)
    2. Implement ``_apply`` and ``_revert``
    3. Register the class in ``STEP_TYPES`` (recipeplane.core.steps)
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, ClassVar

from pydantic import BaseModel, ValidationError

from recipeplane.core.errors import StepApplicationError, StepRevertError
from recipeplane.core.models.step import StepDTO, StepStatus, StepStatusDTO
from recipeplane.core.services.plugin_store import PluginStore
from recipeplane.core.services.settings_store import SettingsStore

logger = logging.getLogger(__name__)


class StepSettingsError(ValueError):
    """Raised when a step is declared with invalid settings."""


@dataclass
class StepContext:
    """Everything a step needs to act on the instance.

    Built by the execution service for every apply/revert call.
    """

    plugins: PluginStore
    settings: SettingsStore
    recipe_id: str = ""
    step_index: int | None = None


class Step(ABC):
    """Abstract base class for all recipe steps.

    Steps raise on failure (StepApplicationError / StepRevertError);
    the failure message is also kept as the step's status message.
    """

    type: ClassVar[str] = ""
    Settings: ClassVar[type[BaseModel]]

    def __init__(
        self,
        name: str = "",
        description: str = "",
        settings: dict[str, Any] | None = None,
    ) -> None:
        try:
            self.settings = self.Settings.model_validate(settings or {})
        except ValidationError as e:
            raise StepSettingsError(
                f"Invalid settings for '{self.type}' step: {e}"
            ) from e
        self.name = name or self.default_name()
        self.description = description
        self._status = StepStatus.NOT_STARTED
        self._message = ""
        self._lock = threading.Lock()

    # ── Status ──────────────────────────────────────────────────

    @property
    def status(self) -> StepStatus:
        with self._lock:
            return self._status

    @property
    def status_message(self) -> str:
        with self._lock:
            return self._message

    def _set_status(self, status: StepStatus, message: str = "") -> None:
        with self._lock:
            self._status = status
            self._message = message

    # ── Capabilities ────────────────────────────────────────────

    def apply(self, ctx: StepContext) -> None:
        """Perform the step's forward action.

        Raises:
            StepApplicationError: If the action cannot complete.
        """
        self._set_status(StepStatus.APPLYING)
        try:
            message = self._apply(ctx)
        except StepApplicationError as e:
            self._set_status(StepStatus.FAILED, e.message)
            raise
        except Exception as e:
            self._set_status(StepStatus.FAILED, str(e))
            raise StepApplicationError(
                f"Step '{self.name}' failed to apply: {e}",
                step_name=self.name,
                recipe_id=ctx.recipe_id,
                step_index=ctx.step_index,
            ) from e
        self._set_status(StepStatus.APPLIED, message or "")

    def revert(self, ctx: StepContext) -> None:
        """Undo the step's forward action.

        Raises:
            StepRevertError: If the action cannot be undone.
        """
        self._set_status(StepStatus.REVERTING)
        try:
            message = self._revert(ctx)
        except StepRevertError as e:
            self._set_status(StepStatus.FAILED, e.message)
            raise
        except Exception as e:
            self._set_status(StepStatus.FAILED, str(e))
            raise StepRevertError(
                f"Step '{self.name}' failed to revert: {e}",
                step_name=self.name,
                recipe_id=ctx.recipe_id,
                step_index=ctx.step_index,
            ) from e
        self._set_status(StepStatus.REVERTED, message or "")

    def to_dto(self, ctx: StepContext | None = None) -> StepDTO:
        """Project the step into its transfer shape. Never fails."""
        with self._lock:
            status = StepStatusDTO(code=self._status, message=self._message)
        return StepDTO(
            type=self.type,
            name=self.name,
            description=self.description,
            status=status,
            settings=self.settings.model_dump(mode="json", exclude_none=True),
        )

    # ── Subclass hooks ──────────────────────────────────────────

    def default_name(self) -> str:
        return self.type

    @abstractmethod
    def _apply(self, ctx: StepContext) -> str | None:
        """Do the forward action. Return an optional status message."""

    @abstractmethod
    def _revert(self, ctx: StepContext) -> str | None:
        """Undo the forward action. Return an optional status message."""

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r} status={self.status}>"
