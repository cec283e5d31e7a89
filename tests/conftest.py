"""
Shared test fixtures and configuration.
"""

from __future__ import annotations

import textwrap
import threading
from pathlib import Path

import pytest
from pydantic import BaseModel

from recipeplane.core.engine.service import RecipeExecutionService
from recipeplane.core.persistence.audit import AuditWriter
from recipeplane.core.provider import RecipeProvider
from recipeplane.core.recipe import Recipe
from recipeplane.core.services.event_bus import EventBus
from recipeplane.core.services.plugin_store import PluginStore
from recipeplane.core.services.settings_store import SettingsStore
from recipeplane.core.steps import Step, StepContext


# ── Test step types ──────────────────────────────────────────────────


class _NoSettings(BaseModel):
    pass


class JournalStep(Step):
    """Records every apply/revert in a shared journal."""

    type = "journal"
    Settings = _NoSettings

    def __init__(self, name: str, journal: list[tuple[str, str]]) -> None:
        super().__init__(name=name)
        self.journal = journal

    def _apply(self, ctx: StepContext) -> str:
        self.journal.append(("apply", self.name))
        return f"{self.name} applied"

    def _revert(self, ctx: StepContext) -> str:
        self.journal.append(("revert", self.name))
        return f"{self.name} reverted"


class FailingStep(JournalStep):
    """Raises on both apply and revert."""

    def _apply(self, ctx: StepContext) -> str:
        self.journal.append(("apply", self.name))
        raise RuntimeError("boom")

    def _revert(self, ctx: StepContext) -> str:
        self.journal.append(("revert", self.name))
        raise RuntimeError("boom")


class GateStep(JournalStep):
    """Blocks until ``release`` is set; ``entered`` signals it started."""

    def __init__(self, name: str, journal: list[tuple[str, str]]) -> None:
        super().__init__(name, journal)
        self.entered = threading.Event()
        self.release = threading.Event()

    def _wait(self) -> None:
        self.entered.set()
        assert self.release.wait(5), "gate never released"

    def _apply(self, ctx: StepContext) -> str:
        self._wait()
        return super()._apply(ctx)

    def _revert(self, ctx: StepContext) -> str:
        self._wait()
        return super()._revert(ctx)


_KINDS = {"ok": JournalStep, "fail": FailingStep, "gate": GateStep}


# ── Fixtures ─────────────────────────────────────────────────────────


@pytest.fixture
def tmp_state_dir(tmp_path: Path) -> Path:
    """Return a temporary directory for state files."""
    state_dir = tmp_path / "state"
    state_dir.mkdir()
    return state_dir


@pytest.fixture
def plugins(tmp_path: Path, tmp_state_dir: Path) -> PluginStore:
    return PluginStore(plugins_dir=tmp_path / "plugins", state_dir=tmp_state_dir)


@pytest.fixture
def settings(tmp_state_dir: Path) -> SettingsStore:
    return SettingsStore(state_dir=tmp_state_dir)


@pytest.fixture
def ctx(plugins: PluginStore, settings: SettingsStore) -> StepContext:
    return StepContext(plugins=plugins, settings=settings, recipe_id="test", step_index=0)


@pytest.fixture
def journal() -> list[tuple[str, str]]:
    """Shared apply/revert journal for test steps."""
    return []


@pytest.fixture
def make_recipe(journal: list[tuple[str, str]]):  # type: ignore[no-untyped-def]
    """Build a recipe from step kinds: ``make_recipe("r", ["ok", "fail", "gate"])``.

    Steps are named s0, s1, ... and share the ``journal`` fixture.
    """

    def _make(recipe_id: str, kinds: list[str]) -> Recipe:
        steps = [_KINDS[k](f"s{i}", journal) for i, k in enumerate(kinds)]
        return Recipe(recipe_id, steps, name=recipe_id.title())

    return _make


@pytest.fixture
def make_service(plugins: PluginStore, settings: SettingsStore, tmp_state_dir: Path):  # type: ignore[no-untyped-def]
    """Build an execution service over the given recipes."""
    created: list[RecipeExecutionService] = []

    def _make(*recipes: Recipe, **kwargs) -> RecipeExecutionService:  # type: ignore[no-untyped-def]
        service = RecipeExecutionService(
            RecipeProvider(recipes),
            plugins,
            settings,
            bus=EventBus(),
            audit=AuditWriter(state_dir=tmp_state_dir),
            **kwargs,
        )
        created.append(service)
        return service

    yield _make

    for service in created:
        service.shutdown(timeout=5)


@pytest.fixture
def recipes_yml(tmp_path: Path) -> Path:
    """A recipes.yml with the enable-foo recipe and an instruction-only recipe."""
    config = tmp_path / "recipes.yml"
    config.write_text(textwrap.dedent("""\
        name: test-instance
        state_dir: .state
        plugins_dir: plugins
        recipes:
          - id: enable-foo
            name: Enable Foo
            meta:
              summary: Install foo and switch it on
            steps:
              - type: install-plugin
                settings:
                  plugin_id: foo
                  version: "1.2.0"
              - type: enable-feature-flag
                settings:
                  flag: foo-ui
              - type: set-setting
                settings:
                  section: foo
                  key: api_url
                  value: https://foo.example.org
          - id: checklist
            name: Checklist
            steps:
              - type: instruction
                name: Read the docs
                settings:
                  text: Read the foo documentation
    """))
    return config
