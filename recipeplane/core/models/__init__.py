"""
Domain models — Pydantic types for the recipe control plane.

All models are re-exported here for convenient access:

    from recipeplane.core.models import RecipeDTO, StepDTO, ExecutionRecord
"""

from recipeplane.core.models.config import (
    ExecutionSettings,
    RecipePlaneConfig,
    RecipeSpec,
    StepSpec,
)
from recipeplane.core.models.execution import (
    ExecutionRecord,
    ExecutionStatus,
    StepOutcome,
)
from recipeplane.core.models.recipe import RecipeDTO, RecipeMeta, RecipeStatus
from recipeplane.core.models.step import StepDTO, StepStatus, StepStatusDTO

__all__ = [
    # execution.py
    "ExecutionRecord",
    "ExecutionSettings",
    "ExecutionStatus",
    # recipe.py
    "RecipeDTO",
    "RecipeMeta",
    # config.py
    "RecipePlaneConfig",
    "RecipeSpec",
    "RecipeStatus",
    # step.py
    "StepDTO",
    "StepOutcome",
    "StepSpec",
    "StepStatus",
    "StepStatusDTO",
]
