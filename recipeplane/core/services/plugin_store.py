"""
Plugin store — installed-plugin records and plugin payloads.

Records live in ``<state_dir>/plugins.json``::

    {
        "foo": {
            "plugin_id": "foo",
            "version": "1.2.0",
            "source": "https://example.org/foo-1.2.0.zip",
            "installed_at": "2026-01-01T00:00:00+00:00"
        }
    }

Payloads live under ``<plugins_dir>/<plugin_id>/``. A plugin with a
download URL is fetched with urllib (any scheme urllib handles,
including ``file://``), verified against an optional ``algo:hex``
checksum, and extracted when it is a zip archive. A plugin without a
URL is registered locally with a ``plugin.json`` manifest.
"""

from __future__ import annotations

import hashlib
import json
import logging
import re
import shutil
import tempfile
import threading
import urllib.error
import urllib.request
import zipfile
from datetime import UTC, datetime
from pathlib import Path

from recipeplane.core.persistence.json_file import load_json, save_json

logger = logging.getLogger(__name__)

PLUGINS_STATE_FILE = "plugins.json"
MANIFEST_FILE = "plugin.json"

PLUGIN_ID_PATTERN = r"^[a-z0-9][a-z0-9._-]*$"
_PLUGIN_ID_RE = re.compile(PLUGIN_ID_PATTERN)
_DOWNLOAD_TIMEOUT = 60


class PluginStoreError(Exception):
    """Raised when a plugin cannot be installed or removed."""


def _verify_checksum(path: Path, expected: str) -> bool:
    """Verify file checksum.  Format: ``algo:hex``."""
    algo, _, expected_hash = expected.partition(":")
    if not expected_hash:
        raise PluginStoreError(f"Malformed checksum (expected algo:hex): {expected!r}")
    try:
        h = hashlib.new(algo)
    except ValueError as e:
        raise PluginStoreError(f"Unsupported checksum algorithm: {algo!r}") from e
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(8192), b""):
            h.update(chunk)
    return h.hexdigest() == expected_hash.lower()


class PluginStore:
    """Installs, removes, and lists plugins.

    All mutating calls are serialized; the records document is written
    atomically after every change.
    """

    def __init__(self, plugins_dir: Path, state_dir: Path) -> None:
        self._plugins_dir = plugins_dir
        self._state_path = state_dir / PLUGINS_STATE_FILE
        self._lock = threading.RLock()

    @property
    def plugins_dir(self) -> Path:
        return self._plugins_dir

    # ── Queries ─────────────────────────────────────────────────

    def _records(self) -> dict[str, dict]:
        data = load_json(self._state_path, default={})
        return data if isinstance(data, dict) else {}

    def list_installed(self) -> list[dict]:
        """All installed plugin records, sorted by plugin id."""
        with self._lock:
            records = self._records()
        return [records[k] for k in sorted(records)]

    def get(self, plugin_id: str) -> dict | None:
        """The installed record for ``plugin_id``, or None."""
        with self._lock:
            return self._records().get(plugin_id)

    def is_installed(self, plugin_id: str) -> bool:
        return self.get(plugin_id) is not None

    # ── Mutations ───────────────────────────────────────────────

    def install(
        self,
        plugin_id: str,
        version: str = "",
        *,
        url: str | None = None,
        checksum: str | None = None,
    ) -> dict:
        """Install (or reinstall) a plugin.

        Args:
            plugin_id: Plugin identifier (lowercase, ``[a-z0-9._-]``).
            version: Version label recorded with the plugin.
            url: Optional payload URL to download.
            checksum: Optional ``algo:hex`` digest of the payload.

        Returns:
            The installed plugin record.

        Raises:
            PluginStoreError: On invalid id, download, checksum, or I/O failure.
        """
        target = self._target(plugin_id)

        with self._lock:
            try:
                if target.exists():
                    shutil.rmtree(target)
                target.mkdir(parents=True)

                if url:
                    self._download_into(url, target, checksum)
                else:
                    manifest = {"id": plugin_id, "version": version}
                    (target / MANIFEST_FILE).write_text(
                        json.dumps(manifest, indent=2) + "\n", encoding="utf-8",
                    )
            except PluginStoreError:
                shutil.rmtree(target, ignore_errors=True)
                raise
            except OSError as e:
                shutil.rmtree(target, ignore_errors=True)
                raise PluginStoreError(f"Cannot install plugin '{plugin_id}': {e}") from e

            record = {
                "plugin_id": plugin_id,
                "version": version,
                "source": url or "local",
                "installed_at": datetime.now(UTC).isoformat(),
            }
            records = self._records()
            records[plugin_id] = record
            self._save(records)

        logger.info("Plugin installed: %s %s", plugin_id, version or "")
        return record

    def uninstall(self, plugin_id: str) -> bool:
        """Remove a plugin's payload and record.

        Returns:
            True if the plugin was installed, False if there was nothing to remove.

        Raises:
            PluginStoreError: On invalid id or I/O failure.
        """
        target = self._target(plugin_id)

        with self._lock:
            records = self._records()
            existed = plugin_id in records or target.exists()

            try:
                if target.exists():
                    shutil.rmtree(target)
            except OSError as e:
                raise PluginStoreError(f"Cannot remove plugin '{plugin_id}': {e}") from e

            if plugin_id in records:
                del records[plugin_id]
                self._save(records)

        if existed:
            logger.info("Plugin uninstalled: %s", plugin_id)
        else:
            logger.debug("Plugin %s not installed — nothing to remove", plugin_id)
        return existed

    # ── Internal helpers ────────────────────────────────────────

    def _target(self, plugin_id: str) -> Path:
        """Payload directory of ``plugin_id``, always inside ``plugins_dir``."""
        if not _PLUGIN_ID_RE.fullmatch(plugin_id):
            raise PluginStoreError(f"Invalid plugin id: {plugin_id!r}")
        root = self._plugins_dir.resolve()
        target = (self._plugins_dir / plugin_id).resolve()
        if target == root or not target.is_relative_to(root):
            raise PluginStoreError(f"Plugin path escapes {self._plugins_dir}: {plugin_id!r}")
        return self._plugins_dir / plugin_id

    def _save(self, records: dict[str, dict]) -> None:
        try:
            save_json(self._state_path, records)
        except OSError as e:
            raise PluginStoreError(f"Cannot save plugin records: {e}") from e

    def _download_into(self, url: str, target: Path, checksum: str | None) -> None:
        """Fetch ``url`` into ``target``, verifying and extracting as needed."""
        logger.debug("Downloading plugin payload %s", url)
        with tempfile.TemporaryDirectory() as tmp_dir:
            archive = Path(tmp_dir) / "payload"
            try:
                with urllib.request.urlopen(url, timeout=_DOWNLOAD_TIMEOUT) as resp:
                    with archive.open("wb") as f:
                        shutil.copyfileobj(resp, f)
            except (urllib.error.URLError, ValueError) as e:
                raise PluginStoreError(f"Download failed for {url}: {e}") from e

            if checksum and not _verify_checksum(archive, checksum):
                raise PluginStoreError(f"Checksum mismatch for {url}")

            if zipfile.is_zipfile(archive):
                with zipfile.ZipFile(archive) as zf:
                    root = target.resolve()
                    for member in zf.namelist():
                        dest = (target / member).resolve()
                        if not dest.is_relative_to(root):
                            raise PluginStoreError(f"Unsafe path in archive: {member}")
                    zf.extractall(target)
            else:
                name = url.rsplit("/", 1)[-1].split("?", 1)[0]
                shutil.copyfile(archive, target / (name or "payload"))
