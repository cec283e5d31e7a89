"""
Settings store — instance settings and feature toggles.

State lives in ``<state_dir>/settings.json``::

    {
        "settings": {"foo": {"api_url": "https://..."}},
        "feature_toggles": {"foo-ui": true}
    }

Setters return the previous value so a step can restore it on revert.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any

from recipeplane.core.persistence.json_file import load_json, save_json

logger = logging.getLogger(__name__)

SETTINGS_STATE_FILE = "settings.json"


class SettingsStore:
    """Thread-safe key/value settings with feature toggles."""

    def __init__(self, state_dir: Path) -> None:
        self._path = state_dir / SETTINGS_STATE_FILE
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, Any]:
        data = load_json(self._path, default={})
        if not isinstance(data, dict):
            data = {}
        data.setdefault("settings", {})
        data.setdefault("feature_toggles", {})
        return data

    # ── Settings ────────────────────────────────────────────────

    def get(self, section: str, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._load()["settings"].get(section, {}).get(key, default)

    def set(self, section: str, key: str, value: Any) -> Any:
        """Write a setting. Returns the previous value (None if unset)."""
        with self._lock:
            data = self._load()
            bucket = data["settings"].setdefault(section, {})
            previous = bucket.get(key)
            bucket[key] = value
            save_json(self._path, data)
        logger.debug("Setting %s.%s updated", section, key)
        return previous

    def unset(self, section: str, key: str) -> Any:
        """Remove a setting. Returns the removed value (None if unset)."""
        with self._lock:
            data = self._load()
            bucket = data["settings"].get(section, {})
            previous = bucket.pop(key, None)
            if not bucket:
                data["settings"].pop(section, None)
            save_json(self._path, data)
        return previous

    def all_settings(self) -> dict[str, dict[str, Any]]:
        with self._lock:
            return self._load()["settings"]

    # ── Feature toggles ─────────────────────────────────────────

    def is_enabled(self, flag: str) -> bool:
        with self._lock:
            return bool(self._load()["feature_toggles"].get(flag, False))

    def set_feature(self, flag: str, enabled: bool) -> bool | None:
        """Set a feature toggle. Returns the previous value (None if unknown)."""
        with self._lock:
            data = self._load()
            previous = data["feature_toggles"].get(flag)
            data["feature_toggles"][flag] = enabled
            save_json(self._path, data)
        logger.info("Feature toggle %s → %s", flag, "on" if enabled else "off")
        return previous

    def clear_feature(self, flag: str) -> bool | None:
        """Forget a feature toggle. Returns the removed value."""
        with self._lock:
            data = self._load()
            previous = data["feature_toggles"].pop(flag, None)
            save_json(self._path, data)
        return previous

    def feature_toggles(self) -> dict[str, bool]:
        with self._lock:
            return dict(self._load()["feature_toggles"])
