"""Config loading, layering and first-run setup.

Precedence, highest first:
1. CLI flags (passed in as ``overrides``)
2. Project config (``.byteside.json`` in the working directory)
3. Global config (``~/.byteside/config.json``)
4. Defaults (:class:`~byteside.models.BytesideConfig`)
"""

from __future__ import annotations

import copy
import json
import logging
import re
from pathlib import Path
from typing import Any

import dacite

from .exceptions import ConfigLoadError, ConfigValidationError, record_error
from .models import BytesideConfig, model_from_dict, model_to_dict

logger = logging.getLogger(__name__)

# Configuration file locations
GLOBAL_DIR = Path.home() / ".byteside"
GLOBAL_CONFIG_PATH = GLOBAL_DIR / "config.json"
PROJECT_CONFIG_FILENAME = ".byteside.json"

_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")


def merge_configs(base: dict, override: dict) -> dict:
    """
    Merge ``override`` into ``base``.

    Rules:
    - Scalars: override wins
    - Lists: override replaces (no merge)
    - Dicts: recursive merge
    - None in override: removes key

    Args:
        base: The base configuration dictionary
        override: The higher-precedence configuration dictionary

    Returns:
        Merged configuration dictionary
    """
    result = copy.deepcopy(base)

    for key, value in override.items():
        if value is None:
            result.pop(key, None)
        elif isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = merge_configs(result[key], value)
        else:
            result[key] = copy.deepcopy(value)

    return result


def normalize_keys(data: Any) -> Any:
    """Convert camelCase keys (``autoOpen``) to snake_case (``auto_open``)."""
    if isinstance(data, dict):
        return {_CAMEL_RE.sub("_", str(k)).lower(): normalize_keys(v) for k, v in data.items()}
    if isinstance(data, list):
        return [normalize_keys(item) for item in data]
    return data


def default_config_dict() -> dict:
    """Return the defaults as a plain dictionary."""
    return model_to_dict(BytesideConfig())


def _read_json(path: Path) -> dict:
    """Read a JSON object from ``path``; missing file reads as ``{}``.

    Raises:
        ConfigLoadError: If the file cannot be read or is not a JSON object.
    """
    if not path.exists():
        logger.debug("No config found at %s", path)
        return {}

    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        logger.error("Invalid JSON in config file %s: %s", path, e)
        record_error(e)
        raise ConfigLoadError(
            f"Invalid JSON in config file at line {e.lineno}",
            file_path=str(path),
            context={"line": e.lineno, "column": e.colno},
            cause=e,
        ) from e
    except OSError as e:
        logger.error("Failed to read config file %s: %s", path, e)
        record_error(e)
        raise ConfigLoadError(
            "Failed to read config file",
            file_path=str(path),
            cause=e,
        ) from e

    if not isinstance(data, dict):
        raise ConfigLoadError(
            "Config file must contain a JSON object",
            file_path=str(path),
        )

    logger.debug("Loaded config from %s", path)
    return normalize_keys(data)


def load_global_config_data() -> dict:
    """Load the global config file as a normalized dictionary."""
    return _read_json(GLOBAL_CONFIG_PATH)


def load_project_config(project_path: str | Path | None = None) -> dict:
    """Load project-local overrides from ``.byteside.json``.

    Args:
        project_path: Project directory (defaults to the working directory).
    """
    base = Path(project_path) if project_path is not None else Path.cwd()
    return _read_json(base / PROJECT_CONFIG_FILENAME)


def load_config(
    project_path: str | Path | None = None,
    overrides: dict | None = None,
) -> BytesideConfig:
    """
    Resolve the effective configuration.

    Args:
        project_path: Directory searched for ``.byteside.json``
        overrides: Highest-precedence values, usually from CLI flags

    Returns:
        BytesideConfig with all layers merged

    Raises:
        ConfigLoadError: If a configuration file cannot be read.
        ConfigValidationError: If the merged config does not fit the schema.
    """
    merged = default_config_dict()
    merged = merge_configs(merged, load_global_config_data())
    merged = merge_configs(merged, load_project_config(project_path))
    if overrides:
        merged = merge_configs(merged, normalize_keys(overrides))

    try:
        config = model_from_dict(BytesideConfig, merged)
    except dacite.DaciteError as e:
        logger.error("Config schema validation failed: %s", e)
        record_error(e)
        raise ConfigValidationError(
            f"Config schema validation failed: {e}",
            field=getattr(e, "field_path", None),
            cause=e,
        ) from e

    return config  # type: ignore[return-value]


def ensure_global_config() -> Path:
    """Create ``~/.byteside/config.json`` with defaults if it is missing.

    Returns:
        Path to the global config file.

    Raises:
        ConfigLoadError: If the directory or file cannot be created.
    """
    if GLOBAL_CONFIG_PATH.exists():
        return GLOBAL_CONFIG_PATH

    try:
        GLOBAL_DIR.mkdir(parents=True, exist_ok=True)
        with open(GLOBAL_CONFIG_PATH, "w", encoding="utf-8") as f:
            json.dump(default_config_dict(), f, indent=2)
        logger.info("Created default config at %s", GLOBAL_CONFIG_PATH)
    except OSError as e:
        logger.error("Failed to create global config: %s", e)
        record_error(e)
        raise ConfigLoadError(
            "Failed to create global config",
            file_path=str(GLOBAL_CONFIG_PATH),
            cause=e,
        ) from e

    return GLOBAL_CONFIG_PATH


def get_global_dir() -> Path:
    """Return the global byteside directory."""
    return GLOBAL_DIR


def get_global_config_path() -> Path:
    """Return the path to the global config file."""
    return GLOBAL_CONFIG_PATH


def get_project_config_path(project_path: str | Path | None = None) -> Path:
    """Return the path to a project's local config file."""
    base = Path(project_path) if project_path is not None else Path.cwd()
    return base / PROJECT_CONFIG_FILENAME
