"""
Recipe — a named, ordered sequence of steps.

A Recipe is data plus step objects, nothing more: it has no apply or
revert of its own. Ordering, concurrency and failure policy live in
the execution service one layer up.
"""

from __future__ import annotations

from collections.abc import Sequence

from recipeplane.core.errors import StepIndexOutOfRange
from recipeplane.core.models.config import RecipeSpec
from recipeplane.core.models.recipe import RecipeDTO, RecipeMeta, RecipeStatus
from recipeplane.core.steps import Step, StepContext, build_step


class Recipe:
    """An immutable, indexable sequence of steps with identity and metadata."""

    def __init__(
        self,
        recipe_id: str,
        steps: Sequence[Step],
        name: str = "",
        meta: RecipeMeta | None = None,
    ) -> None:
        self._id = recipe_id
        self._steps: tuple[Step, ...] = tuple(steps)
        self.name = name or recipe_id
        self.meta = meta or RecipeMeta()

    @classmethod
    def from_spec(cls, spec: RecipeSpec) -> Recipe:
        """Build a recipe (and its steps) from its declaration."""
        return cls(
            recipe_id=spec.id,
            steps=[build_step(s) for s in spec.steps],
            name=spec.name,
            meta=spec.meta,
        )

    @property
    def id(self) -> str:
        return self._id

    @property
    def steps(self) -> tuple[Step, ...]:
        return self._steps

    def __len__(self) -> int:
        return len(self._steps)

    def step_at(self, index: int) -> Step:
        """Random access by position.

        Raises:
            StepIndexOutOfRange: For any index outside ``[0, len(steps))``.
                Negative indices are rejected, not counted from the end.
        """
        if not 0 <= index < len(self._steps):
            raise StepIndexOutOfRange(self._id, index, len(self._steps))
        return self._steps[index]

    @property
    def status(self) -> RecipeStatus:
        return RecipeStatus.from_steps([s.status for s in self._steps])

    def to_dto(self, ctx: StepContext | None = None) -> RecipeDTO:
        """Serialize identity, metadata and every step. Side-effect free."""
        step_dtos = [s.to_dto(ctx) for s in self._steps]
        return RecipeDTO(
            id=self._id,
            name=self.name,
            meta=self.meta,
            status=RecipeStatus.from_steps([d.status.code for d in step_dtos]),
            steps=step_dtos,
        )

    def __repr__(self) -> str:
        return f"<Recipe id={self._id!r} steps={len(self._steps)}>"
