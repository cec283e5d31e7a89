"""
Settings steps — feature toggles and instance settings.

Both remember the value they overwrote so revert can put it back.
The remembered value lives on the step instance; after a restart,
revert falls back to disabling the flag / removing the setting.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel

from recipeplane.core.steps.base import Step, StepContext

_UNSET = object()


class FeatureFlagSettings(BaseModel):
    flag: str


class EnableFeatureFlagStep(Step):
    """Turns a feature toggle on."""

    type = "enable-feature-flag"
    Settings = FeatureFlagSettings
    settings: FeatureFlagSettings

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._previous: Any = _UNSET

    def default_name(self) -> str:
        return f"Enable feature {self.settings.flag}"

    def _apply(self, ctx: StepContext) -> str:
        previous = ctx.settings.set_feature(self.settings.flag, True)
        # Re-applying keeps the value from before the first apply.
        if self._previous is _UNSET:
            self._previous = previous
        return f"Feature {self.settings.flag} enabled"

    def _revert(self, ctx: StepContext) -> str:
        flag = self.settings.flag
        if self._previous is _UNSET or self._previous is None:
            ctx.settings.clear_feature(flag)
            message = f"Feature {flag} disabled"
        else:
            ctx.settings.set_feature(flag, self._previous)
            message = f"Feature {flag} restored to {'on' if self._previous else 'off'}"
        self._previous = _UNSET
        return message


class SetSettingSettings(BaseModel):
    section: str
    key: str
    value: Any = None


class SetSettingStep(Step):
    """Writes one instance setting."""

    type = "set-setting"
    Settings = SetSettingSettings
    settings: SetSettingSettings

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._previous: Any = _UNSET

    def default_name(self) -> str:
        return f"Set {self.settings.section}.{self.settings.key}"

    def _apply(self, ctx: StepContext) -> str:
        s = self.settings
        previous = ctx.settings.set(s.section, s.key, s.value)
        # Re-applying keeps the value from before the first apply.
        if self._previous is _UNSET:
            self._previous = previous
        return f"{s.section}.{s.key} set"

    def _revert(self, ctx: StepContext) -> str:
        s = self.settings
        if self._previous is _UNSET or self._previous is None:
            ctx.settings.unset(s.section, s.key)
            message = f"{s.section}.{s.key} removed"
        else:
            ctx.settings.set(s.section, s.key, self._previous)
            message = f"{s.section}.{s.key} restored"
        self._previous = _UNSET
        return message
