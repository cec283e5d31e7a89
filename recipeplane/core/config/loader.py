"""
Configuration loader — reads recipes.yml into domain models.

This is the primary entry point for loading instance configuration.
It reads YAML, validates against Pydantic schemas, checks that every
recipe can actually be built, and returns a typed config whose paths
are absolute.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from recipeplane.core.models.config import RecipePlaneConfig
from recipeplane.core.recipe import Recipe
from recipeplane.core.steps import StepSettingsError

logger = logging.getLogger(__name__)

# Default config filename
RECIPES_CONFIG_FILE = "recipes.yml"


class ConfigError(Exception):
    """Raised when the recipes configuration is invalid or missing."""


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Search for recipes.yml starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to recipes.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / RECIPES_CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break
        current = parent

    return None


def load_config(path: Path | None = None) -> RecipePlaneConfig:
    """Load and validate the recipes configuration.

    Args:
        path: Explicit path to recipes.yml. If None, searches upward.

    Returns:
        Validated config with ``state_dir`` and ``plugins_dir`` resolved
        against the config file's directory.

    Raises:
        ConfigError: If the file is missing, malformed, or declares
            recipes that cannot be built.
    """
    if path is None:
        path = find_config_file()

    if path is None:
        raise ConfigError(
            f"No {RECIPES_CONFIG_FILE} found. Create one or specify --config."
        )

    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading recipes config from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    try:
        config = RecipePlaneConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid recipes configuration: {e}") from e

    seen: set[str] = set()
    for spec in config.recipes:
        if spec.id in seen:
            raise ConfigError(f"Duplicate recipe id '{spec.id}' in {path}")
        seen.add(spec.id)
        try:
            Recipe.from_spec(spec)
        except StepSettingsError as e:
            raise ConfigError(f"Recipe '{spec.id}': {e}") from e

    base = path.parent.resolve()
    config.state_dir = str(_resolve(base, config.state_dir))
    config.plugins_dir = str(_resolve(base, config.plugins_dir))

    logger.info("Loaded config '%s' with %d recipes", config.name, len(config.recipes))
    return config


def _resolve(base: Path, value: str) -> Path:
    p = Path(value).expanduser()
    return p if p.is_absolute() else (base / p).resolve()
