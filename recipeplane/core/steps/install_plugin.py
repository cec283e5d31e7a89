"""
Install-plugin step — put a plugin in place, or take it away.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from recipeplane.core.services.plugin_store import PLUGIN_ID_PATTERN
from recipeplane.core.steps.base import Step, StepContext


class InstallPluginSettings(BaseModel):
    plugin_id: str = Field(pattern=PLUGIN_ID_PATTERN)
    version: str = ""
    url: str | None = None
    checksum: str | None = None   # algo:hex


class InstallPluginStep(Step):
    """Installs a plugin through the plugin store.

    Revert uninstalls the plugin; reverting a plugin that is not
    installed is a no-op.
    """

    type = "install-plugin"
    Settings = InstallPluginSettings
    settings: InstallPluginSettings

    def default_name(self) -> str:
        return f"Install plugin {self.settings.plugin_id}"

    def _apply(self, ctx: StepContext) -> str:
        s = self.settings
        record = ctx.plugins.install(
            s.plugin_id, s.version, url=s.url, checksum=s.checksum,
        )
        version = record.get("version") or "unversioned"
        return f"Installed {s.plugin_id} ({version})"

    def _revert(self, ctx: StepContext) -> str:
        removed = ctx.plugins.uninstall(self.settings.plugin_id)
        if not removed:
            return f"{self.settings.plugin_id} was not installed"
        return f"Uninstalled {self.settings.plugin_id}"
