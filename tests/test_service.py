"""
Tests for RecipeExecutionService — background executions, single-flight,
single-step control, events and audit.
"""

from __future__ import annotations

import pytest

from recipeplane.core.errors import (
    ExecutionInProgress,
    RecipeNotFound,
    StepApplicationError,
    StepIndexOutOfRange,
    StepRevertError,
)
from recipeplane.core.models import ExecutionStatus, RecipeStatus, StepStatus
from recipeplane.core.persistence.audit import AuditWriter
from recipeplane.core.provider import RecipeProvider
from recipeplane.core.recipe import Recipe
from recipeplane.core.steps import EnableFeatureFlagStep, InstallPluginStep


class TestQueries:
    def test_list_sorted(self, make_recipe, make_service):
        service = make_service(make_recipe("b", []), make_recipe("a", ["ok"]))
        assert [d.id for d in service.list_recipes()] == ["a", "b"]

    def test_get_unknown(self, make_service):
        with pytest.raises(RecipeNotFound):
            make_service().get_recipe("nope")

    def test_no_execution_yet(self, make_recipe, make_service):
        service = make_service(make_recipe("a", ["ok"]))
        assert service.get_execution("a") is None
        assert service.get_recipe("a").execution is None


class TestInstallUninstall:
    def test_install_runs_in_background(self, make_recipe, make_service, journal):
        service = make_service(make_recipe("r", ["ok", "ok"]))
        dto = service.install("r")
        assert dto.id == "r"
        assert dto.execution is not None

        record = service.wait("r", timeout=5)
        assert record.status == ExecutionStatus.SUCCEEDED
        assert journal == [("apply", "s0"), ("apply", "s1")]
        assert service.get_recipe("r").status == RecipeStatus.APPLIED

    def test_uninstall_reverse_order(self, make_recipe, make_service, journal):
        service = make_service(make_recipe("r", ["ok", "ok", "ok"]))
        service.uninstall("r")
        record = service.wait("r", timeout=5)

        assert record.operation == "uninstall"
        assert journal == [("revert", "s2"), ("revert", "s1"), ("revert", "s0")]

    def test_unknown_recipe(self, make_service):
        service = make_service()
        with pytest.raises(RecipeNotFound):
            service.install("ghost")
        with pytest.raises(RecipeNotFound):
            service.uninstall("ghost")

    def test_failure_halts_by_default(self, make_recipe, make_service, journal):
        service = make_service(make_recipe("r", ["ok", "fail", "ok"]))
        service.install("r")
        record = service.wait("r", timeout=5)

        assert record.status == ExecutionStatus.FAILED
        assert record.failed_step == 1
        assert ("apply", "s2") not in journal
        assert service.get_recipe("r").status == RecipeStatus.FAILED

    def test_failure_continue_policy(self, make_recipe, make_service, journal):
        service = make_service(make_recipe("r", ["fail", "ok"]), halt_on_failure=False)
        service.install("r")
        service.wait("r", timeout=5)
        assert ("apply", "s1") in journal

    def test_second_install_rejected_while_running(self, make_recipe, make_service):
        recipe = make_recipe("r", ["gate", "ok"])
        gate = recipe.step_at(0)
        service = make_service(recipe)

        service.install("r")
        assert gate.entered.wait(5)
        try:
            with pytest.raises(ExecutionInProgress) as exc_info:
                service.install("r")
            assert exc_info.value.status_code == 409
            with pytest.raises(ExecutionInProgress):
                service.uninstall("r")
            with pytest.raises(ExecutionInProgress):
                service.apply_step("r", 1)
            assert service.running() == ["r"]
        finally:
            gate.release.set()

        assert service.wait("r", timeout=5).status == ExecutionStatus.SUCCEEDED
        assert service.running() == []

    def test_lock_released_after_run(self, make_recipe, make_service):
        service = make_service(make_recipe("r", ["ok"]))
        service.install("r")
        service.wait("r", timeout=5)
        service.uninstall("r")
        assert service.wait("r", timeout=5).status == ExecutionStatus.SUCCEEDED

    def test_other_recipes_run_independently(self, make_recipe, make_service):
        slow = make_recipe("slow", ["gate"])
        service = make_service(slow, make_recipe("fast", ["ok"]))

        service.install("slow")
        assert slow.step_at(0).entered.wait(5)
        try:
            service.install("fast")
            assert service.wait("fast", timeout=5).status == ExecutionStatus.SUCCEEDED
        finally:
            slow.step_at(0).release.set()

    def test_cancel_stops_before_next_step(self, make_recipe, make_service, journal):
        recipe = make_recipe("r", ["gate", "ok"])
        gate = recipe.step_at(0)
        service = make_service(recipe)

        service.install("r")
        assert gate.entered.wait(5)
        assert service.cancel("r") is True
        gate.release.set()

        record = service.wait("r", timeout=5)
        assert record.status == ExecutionStatus.CANCELLED
        assert journal == [("apply", "s0")]
        assert [o.status for o in record.outcomes] == ["ok", "skipped"]

    def test_cancel_without_execution(self, make_recipe, make_service):
        service = make_service(make_recipe("r", ["ok"]))
        assert service.cancel("r") is False
        with pytest.raises(RecipeNotFound):
            service.cancel("ghost")

    def test_timeout_between_steps(self, make_recipe, make_service, journal):
        recipe = make_recipe("r", ["gate", "ok"])
        gate = recipe.step_at(0)
        service = make_service(recipe, timeout_seconds=0.05)

        service.install("r")
        assert gate.entered.wait(5)
        gate.release.wait(0.2)  # let the deadline pass mid-step
        gate.release.set()

        record = service.wait("r", timeout=5)
        assert record.status == ExecutionStatus.TIMED_OUT
        assert journal == [("apply", "s0")]

    def test_execution_handle_is_a_copy(self, make_recipe, make_service):
        service = make_service(make_recipe("r", ["ok"]))
        service.install("r")
        record = service.wait("r", timeout=5)
        record.outcomes.clear()
        assert len(service.get_execution("r").outcomes) == 1


class TestSingleStep:
    def test_apply_and_revert(self, make_recipe, make_service, journal):
        service = make_service(make_recipe("r", ["ok", "ok"]))

        dto = service.apply_step("r", 1)
        assert dto.name == "s1"
        assert dto.status.code == StepStatus.APPLIED
        assert service.get_recipe("r").status == RecipeStatus.PARTIAL

        dto = service.revert_step("r", 1)
        assert dto.status.code == StepStatus.REVERTED
        assert journal == [("apply", "s1"), ("revert", "s1")]

    @pytest.mark.parametrize("index", [-1, 2])
    def test_out_of_range(self, make_recipe, make_service, index: int):
        service = make_service(make_recipe("r", ["ok", "ok"]))
        with pytest.raises(StepIndexOutOfRange):
            service.apply_step("r", index)
        with pytest.raises(StepIndexOutOfRange):
            service.revert_step("r", index)

    def test_unknown_recipe(self, make_service):
        with pytest.raises(RecipeNotFound):
            make_service().apply_step("ghost", 0)

    def test_step_failure_propagates(self, make_recipe, make_service):
        service = make_service(make_recipe("r", ["fail"]))
        with pytest.raises(StepApplicationError):
            service.apply_step("r", 0)
        # Lock was released
        with pytest.raises(StepApplicationError):
            service.apply_step("r", 0)

    def test_single_step_does_not_create_execution(self, make_recipe, make_service):
        service = make_service(make_recipe("r", ["ok"]))
        service.apply_step("r", 0)
        assert service.get_execution("r") is None


class TestEventsAndAudit:
    def test_install_events(self, make_recipe, make_service):
        service = make_service(make_recipe("r", ["ok", "fail", "ok"]))
        service.install("r")
        service.wait("r", timeout=5)

        types = [e["type"] for e in service.bus.recent()]
        assert types == [
            "execution:started",
            "step:applied",
            "step:failed",
            "step:skipped",
            "execution:done",
        ]
        done = service.bus.recent(1)[0]
        assert done["key"] == "r"
        assert done["data"]["status"] == "failed"
        assert "duration_s" in done

    def test_uninstall_events(self, make_recipe, make_service):
        service = make_service(make_recipe("r", ["ok"]))
        service.uninstall("r")
        service.wait("r", timeout=5)
        assert "step:reverted" in [e["type"] for e in service.bus.recent()]

    def test_snapshot_tracks_latest_execution(self, make_recipe, make_service):
        service = make_service(make_recipe("r", ["ok"]))
        service.install("r")
        service.wait("r", timeout=5)
        assert service.bus.snapshot()["r"]["type"] == "execution:done"

    def test_audit_entries(self, make_recipe, make_service, tmp_state_dir):
        service = make_service(make_recipe("r", ["ok", "fail"]))
        service.install("r")
        service.wait("r", timeout=5)
        service.apply_step("r", 0)

        entries = AuditWriter(state_dir=tmp_state_dir).read_all()
        assert [e.operation_type for e in entries] == ["install", "apply-step"]
        assert entries[0].status == "failed"
        assert entries[0].steps_total == 2
        assert entries[0].steps_failed == 1
        assert entries[1].steps_affected == [0]


class TestEnableFooScenario:
    """A realistic recipe against the real stores."""

    def _recipe(self) -> Recipe:
        return Recipe("enable-foo", [
            InstallPluginStep(settings={"plugin_id": "foo", "version": "1.2.0"}),
            EnableFeatureFlagStep(settings={"flag": "foo-ui"}),
        ])

    def test_install_then_uninstall(self, plugins, settings, make_service):
        service = make_service(self._recipe())

        service.install("enable-foo")
        assert service.wait("enable-foo", timeout=5).status == ExecutionStatus.SUCCEEDED
        assert plugins.is_installed("foo")
        assert settings.is_enabled("foo-ui")
        assert service.get_recipe("enable-foo").status == RecipeStatus.APPLIED

        service.uninstall("enable-foo")
        assert service.wait("enable-foo", timeout=5).status == ExecutionStatus.SUCCEEDED
        assert not plugins.is_installed("foo")
        assert not settings.is_enabled("foo-ui")
        assert service.get_recipe("enable-foo").status == RecipeStatus.REVERTED

    def test_from_config(self, recipes_yml):
        from recipeplane.core.config.loader import load_config
        from recipeplane.core.engine.service import RecipeExecutionService

        config = load_config(recipes_yml)
        service = RecipeExecutionService.from_config(config)
        try:
            assert isinstance(service.provider, RecipeProvider)
            assert service.provider.ids() == ["checklist", "enable-foo"]
            assert service.halt_on_failure is True
        finally:
            service.shutdown()

    def test_uninstall_reverts_flag_before_plugin(self, make_service):
        service = make_service(self._recipe())
        service.uninstall("enable-foo")
        record = service.wait("enable-foo", timeout=5)

        assert [o.index for o in record.outcomes] == [1, 0]
        reverted = [e["data"]["index"] for e in service.bus.recent() if e["type"] == "step:reverted"]
        assert reverted == [1, 0]

    def test_step_five_is_a_bounds_error(self, make_service):
        service = make_service(self._recipe())
        with pytest.raises(StepIndexOutOfRange):
            service.apply_step("enable-foo", 5)


class TestPluginPathGuard:
    def test_revert_with_escaping_plugin_id_removes_nothing(self, make_service, plugins, tmp_path):
        step = InstallPluginStep(settings={"plugin_id": "foo"})
        step.settings.plugin_id = ".."  # bypasses settings validation
        service = make_service(Recipe("r", [step]))

        plugins.plugins_dir.mkdir(parents=True)
        keep = tmp_path / "keep.txt"
        keep.write_text("precious")

        with pytest.raises(StepRevertError):
            service.revert_step("r", 0)
        assert keep.read_text() == "precious"
        assert plugins.plugins_dir.is_dir()
