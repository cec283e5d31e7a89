"""
Recipe errors — the failure taxonomy of the control plane.

Every error carries the HTTP status it maps to. The mapping happens
once, at the web boundary (see ``routes_recipes``); core code only
raises.
"""

from __future__ import annotations


class RecipeError(Exception):
    """Base class for all recipe operation failures."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message}


class RecipeNotFound(RecipeError):
    """No recipe is registered under the requested identifier."""

    status_code = 404

    def __init__(self, recipe_id: str) -> None:
        super().__init__(f"Plugin recipe not found: '{recipe_id}'")
        self.recipe_id = recipe_id


class StepIndexOutOfRange(RecipeError):
    """A step index falls outside ``[0, len(steps))``."""

    status_code = 400

    def __init__(self, recipe_id: str, index: int, step_count: int) -> None:
        super().__init__(
            f"Step {index} is out of range for recipe '{recipe_id}' "
            f"({step_count} steps)"
        )
        self.recipe_id = recipe_id
        self.index = index
        self.step_count = step_count


class BadRequestError(RecipeError):
    """The request itself is malformed (e.g. a non-numeric step number)."""

    status_code = 400


class ExecutionInProgress(RecipeError):
    """Another execution already holds the recipe."""

    status_code = 409

    def __init__(self, recipe_id: str) -> None:
        super().__init__(
            f"Recipe '{recipe_id}' has an execution in progress"
        )
        self.recipe_id = recipe_id


class StepError(RecipeError):
    """A step's apply or revert action failed."""

    status_code = 500

    def __init__(
        self,
        message: str,
        *,
        step_name: str = "",
        recipe_id: str = "",
        step_index: int | None = None,
    ) -> None:
        super().__init__(message)
        self.step_name = step_name
        self.recipe_id = recipe_id
        self.step_index = step_index


class StepApplicationError(StepError):
    """Raised when a step cannot complete its forward action."""


class StepRevertError(StepError):
    """Raised when a step cannot undo its forward action."""


class ExecutionNotFound(RecipeError):
    """The recipe exists but has never been installed or uninstalled."""

    status_code = 404

    def __init__(self, recipe_id: str) -> None:
        super().__init__(f"Recipe '{recipe_id}' has not been executed")
        self.recipe_id = recipe_id
