"""
Configuration loader — reads provision.yml into ProvisionConfig.

Reads YAML, validates against the Pydantic schema, and returns a
typed config. A missing auto-discovered file is not an error: the
registry defaults apply.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from provisioner.core.models.config import ProvisionConfig

logger = logging.getLogger(__name__)

# Default config filename
CONFIG_FILE = "provision.yml"


class ConfigError(Exception):
    """Raised when configuration is invalid, incomplete, or unsupported.

    Always raised before any system mutation.
    """


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Search for provision.yml starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to provision.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def load_config(path: Path | None = None, *, discover: bool = True) -> ProvisionConfig:
    """Load and validate provisioning configuration.

    Args:
        path: Explicit path to provision.yml. Must exist when given.
        discover: When no path is given, search upward from the cwd.

    Returns:
        Validated ProvisionConfig (defaults when nothing is found).

    Raises:
        ConfigError: If the file is missing or invalid.
    """
    if path is None:
        path = find_config_file() if discover else None
        if path is None:
            logger.info("No %s found — using defaults", CONFIG_FILE)
            return ProvisionConfig()

    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading config from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    # Allow everything to be nested under a "provision" key
    if "provision" in data and isinstance(data["provision"], dict):
        data = data["provision"]

    try:
        config = ProvisionConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {path}: {_describe(e)}") from e

    logger.info(
        "Loaded config %s (%s, %d capability flags)",
        path, config.computer_type, len(config.capabilities),
    )
    return config


def _describe(error: ValidationError) -> str:
    """Every problem as ``field.path: message``, joined on one line."""
    return "; ".join(
        f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
        for err in error.errors()
    )


def config_root(config_path: Path | None) -> Path:
    """Directory that anchors relative paths (audit log, state)."""
    if config_path is None:
        return Path.cwd()
    return config_path.parent.resolve()
