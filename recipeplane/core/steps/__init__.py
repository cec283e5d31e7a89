"""
Recipe steps — tagged step variants and the factory that builds them.

    from recipeplane.core.steps import build_step
    step = build_step(StepSpec(type="install-plugin", settings={"plugin_id": "foo"}))
"""

from __future__ import annotations

from recipeplane.core.models.config import StepSpec
from recipeplane.core.steps.base import Step, StepContext, StepSettingsError
from recipeplane.core.steps.install_plugin import InstallPluginStep
from recipeplane.core.steps.instruction import InstructionStep
from recipeplane.core.steps.settings import EnableFeatureFlagStep, SetSettingStep

STEP_TYPES: dict[str, type[Step]] = {
    InstallPluginStep.type: InstallPluginStep,
    EnableFeatureFlagStep.type: EnableFeatureFlagStep,
    SetSettingStep.type: SetSettingStep,
    InstructionStep.type: InstructionStep,
}


def build_step(spec: StepSpec) -> Step:
    """Instantiate the step variant named by ``spec.type``.

    Raises:
        StepSettingsError: Unknown type or invalid settings.
    """
    cls = STEP_TYPES.get(spec.type)
    if cls is None:
        known = ", ".join(sorted(STEP_TYPES))
        raise StepSettingsError(f"Unknown step type '{spec.type}'. Known: {known}")
    return cls(name=spec.name, description=spec.description, settings=spec.settings)


__all__ = [
    "EnableFeatureFlagStep",
    "InstallPluginStep",
    "InstructionStep",
    "STEP_TYPES",
    "SetSettingStep",
    "Step",
    "StepContext",
    "StepSettingsError",
    "build_step",
]
