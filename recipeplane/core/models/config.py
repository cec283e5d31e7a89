"""
Configuration models — the validated shape of recipes.yml.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator

from recipeplane.core.models.recipe import RecipeMeta


class StepSpec(BaseModel):
    """A step declaration. ``type`` selects the step variant."""

    type: str
    name: str = ""
    description: str = ""
    settings: dict[str, Any] = Field(default_factory=dict)


class RecipeSpec(BaseModel):
    """A recipe declaration."""

    id: str
    name: str = ""
    meta: RecipeMeta = Field(default_factory=RecipeMeta)
    steps: list[StepSpec] = Field(default_factory=list)

    @field_validator("id")
    @classmethod
    def _id_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("recipe id must not be empty")
        if "/" in v:
            raise ValueError(f"recipe id must not contain '/': {v!r}")
        return v


class ExecutionSettings(BaseModel):
    """Whole-recipe execution policy."""

    halt_on_failure: bool = True
    timeout_seconds: float = Field(default=600.0, ge=0)


class RecipePlaneConfig(BaseModel):
    """Root configuration — loaded from recipes.yml.

    Paths are kept as declared; the loader resolves relative ones
    against the config file's directory.
    """

    name: str
    state_dir: str = ".state"
    plugins_dir: str = "data/plugins"
    execution: ExecutionSettings = Field(default_factory=ExecutionSettings)
    recipes: list[RecipeSpec] = Field(default_factory=list)
