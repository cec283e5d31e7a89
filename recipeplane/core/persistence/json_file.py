"""
JSON document persistence — tolerant reads, atomic writes.

Stores (installed plugins, settings) keep their state as JSON under
the state directory. Writes are atomic (write to temp file, then
rename) so a crash mid-write never leaves a half-written document.
"""

from __future__ import annotations

import json
import logging
import tempfile
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


def load_json(path: Path, default: Any = None) -> Any:
    """Load a JSON document.

    Args:
        path: Path to the JSON file.
        default: Value returned when the file is missing or corrupt.

    Returns:
        The decoded document, or ``default``.
    """
    if not path.is_file():
        logger.debug("No document at %s — using default", path)
        return default

    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        logger.warning("Corrupt JSON document %s: %s — using default", path, e)
        return default
    except OSError as e:
        logger.warning("Cannot read %s: %s — using default", path, e)
        return default


def save_json(path: Path, data: Any) -> None:
    """Save a JSON document (atomic write).

    Args:
        path: Target path.
        data: JSON-serializable document.

    Raises:
        OSError: If the document cannot be written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    content = json.dumps(data, indent=2, ensure_ascii=False) + "\n"

    fd, tmp_path = tempfile.mkstemp(
        dir=path.parent,
        prefix=f".{path.stem}_",
        suffix=".tmp",
    )
    tmp = Path(tmp_path)
    try:
        with open(fd, "w", encoding="utf-8") as f:
            f.write(content)
        tmp.replace(path)
        logger.debug("Saved %s", path)
    except Exception:
        tmp.unlink(missing_ok=True)
        logger.error("Failed to save %s", path)
        raise
