"""
Tests for the settings store — settings and feature toggles.
"""

import json
from pathlib import Path

from recipeplane.core.services.settings_store import SettingsStore


class TestSettings:
    def test_set_returns_previous(self, settings: SettingsStore):
        assert settings.set("foo", "url", "a") is None
        assert settings.set("foo", "url", "b") == "a"
        assert settings.get("foo", "url") == "b"

    def test_get_default(self, settings: SettingsStore):
        assert settings.get("foo", "missing", default=42) == 42

    def test_unset_drops_empty_section(self, settings: SettingsStore):
        settings.set("foo", "url", "a")
        assert settings.unset("foo", "url") == "a"
        assert settings.all_settings() == {}
        assert settings.unset("foo", "url") is None

    def test_persisted(self, settings: SettingsStore, tmp_state_dir: Path):
        settings.set("foo", "url", "a")
        settings.set_feature("foo-ui", True)

        reopened = SettingsStore(state_dir=tmp_state_dir)
        assert reopened.get("foo", "url") == "a"
        assert reopened.is_enabled("foo-ui")

        data = json.loads(settings.path.read_text())
        assert data == {"settings": {"foo": {"url": "a"}}, "feature_toggles": {"foo-ui": True}}


class TestFeatureToggles:
    def test_unknown_is_disabled(self, settings: SettingsStore):
        assert settings.is_enabled("nope") is False

    def test_set_feature_returns_previous(self, settings: SettingsStore):
        assert settings.set_feature("x", True) is None
        assert settings.set_feature("x", False) is True
        assert settings.feature_toggles() == {"x": False}

    def test_clear_feature(self, settings: SettingsStore):
        settings.set_feature("x", True)
        assert settings.clear_feature("x") is True
        assert settings.feature_toggles() == {}
        assert settings.clear_feature("x") is None

    def test_corrupt_file_starts_empty(self, settings: SettingsStore):
        settings.path.write_text("[1, 2")
        assert settings.feature_toggles() == {}
        settings.set_feature("x", True)
        assert settings.is_enabled("x")
