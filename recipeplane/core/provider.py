"""
Recipe provider — the registry of known recipes.

The registry is read-mostly: populated once from configuration before
serving begins, optionally hot-reloaded later. Reloads build a fresh
mapping and swap it in (copy-on-write), so readers never see a
half-populated registry and never need a lock.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable

from recipeplane.core.errors import RecipeNotFound
from recipeplane.core.models.config import RecipePlaneConfig
from recipeplane.core.recipe import Recipe

logger = logging.getLogger(__name__)


class RecipeProvider:
    """Maps recipe identifiers to Recipe instances (ids unique)."""

    def __init__(self, recipes: Iterable[Recipe] = ()) -> None:
        self._write_lock = threading.Lock()
        self._recipes: dict[str, Recipe] = self._build(recipes)

    @classmethod
    def from_config(cls, config: RecipePlaneConfig) -> RecipeProvider:
        """Build a provider holding every recipe declared in the config."""
        provider = cls(Recipe.from_spec(spec) for spec in config.recipes)
        logger.info("Recipe registry loaded with %d recipes", len(provider))
        return provider

    @staticmethod
    def _build(recipes: Iterable[Recipe]) -> dict[str, Recipe]:
        mapping: dict[str, Recipe] = {}
        for recipe in recipes:
            if recipe.id in mapping:
                raise ValueError(f"Duplicate recipe id: '{recipe.id}'")
            mapping[recipe.id] = recipe
        return mapping

    # ── Reads (lock-free snapshot) ──────────────────────────────

    def get_all(self) -> list[Recipe]:
        """Every registered recipe. Order is not guaranteed."""
        return list(self._recipes.values())

    def get_by_id(self, recipe_id: str) -> Recipe | None:
        """The recipe registered under ``recipe_id``, or None."""
        return self._recipes.get(recipe_id)

    def require(self, recipe_id: str) -> Recipe:
        """Like get_by_id, but raises RecipeNotFound for a missing id."""
        recipe = self._recipes.get(recipe_id)
        if recipe is None:
            raise RecipeNotFound(recipe_id)
        return recipe

    def ids(self) -> list[str]:
        return sorted(self._recipes)

    def __len__(self) -> int:
        return len(self._recipes)

    def __contains__(self, recipe_id: object) -> bool:
        return recipe_id in self._recipes

    # ── Writes ──────────────────────────────────────────────────

    def register(self, recipe: Recipe) -> None:
        """Add one recipe.

        Raises:
            ValueError: If the id is already registered.
        """
        with self._write_lock:
            if recipe.id in self._recipes:
                raise ValueError(f"Duplicate recipe id: '{recipe.id}'")
            updated = dict(self._recipes)
            updated[recipe.id] = recipe
            self._recipes = updated
        logger.debug("Registered recipe: %s", recipe.id)

    def replace_all(self, recipes: Iterable[Recipe]) -> None:
        """Swap in a new set of recipes (hot reload)."""
        mapping = self._build(recipes)
        with self._write_lock:
            self._recipes = mapping
        logger.info("Recipe registry reloaded with %d recipes", len(mapping))
