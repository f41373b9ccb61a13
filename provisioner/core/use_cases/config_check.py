"""
Config check use case — validate provision.yml and report issues.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from provisioner.core.config.loader import ConfigError, find_config_file, load_config
from provisioner.core.engine.registry import load_registry
from provisioner.core.models.config import ProvisionConfig
from provisioner.core.use_cases import session as session_mod


@dataclass
class ConfigCheckResult:
    """Result of configuration validation."""

    valid: bool = False
    config: ProvisionConfig | None = None
    config_path: Path | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "config_path": str(self.config_path) if self.config_path else None,
            "errors": self.errors,
            "warnings": self.warnings,
            "computer_type": self.config.computer_type if self.config else None,
            "gpu": self.config.gpu if self.config else None,
            "enabled": sorted(k for k, v in self.config.capabilities.items() if v) if self.config else [],
        }


def check_config(config_path: Path | None = None) -> ConfigCheckResult:
    """Validate provision.yml against the schema and the capability registry.

    Args:
        config_path: Optional explicit path to provision.yml.

    Returns:
        ConfigCheckResult with validation status and any issues.
    """
    result = ConfigCheckResult()

    if config_path is None:
        config_path = find_config_file()
    if config_path is None:
        result.warnings.append("No provision.yml found; built-in defaults apply.")
    result.config_path = config_path

    try:
        config = load_config(config_path, discover=False)
        result.config = config
    except ConfigError as e:
        result.errors.append(str(e))
        return result

    try:
        registry = load_registry()
    except ConfigError as e:
        result.errors.append(f"Capability registry is invalid: {e}")
        return result

    unknown = [cid for cid in config.capabilities if cid not in registry]
    if unknown:
        result.errors.append(f"Unknown capabilities: {', '.join(unknown)}")

    # Host-specific checks are warnings: the file may target another machine
    try:
        profile = session_mod.detect_profile(config)
    except ConfigError as e:
        result.warnings.append(f"Cannot detect this host: {e}")
    else:
        for cid, enabled in config.capabilities.items():
            if not enabled or cid not in registry:
                continue
            reason = registry.get(cid).applicability_reason(profile)
            if reason is not None:
                result.warnings.append(f"'{cid}' is enabled but will be skipped here: {reason}")

        for cap in registry:
            if cap.secret and cap.id in config.capabilities and config.capabilities[cap.id]:
                result.warnings.append(
                    f"'{cap.id}' needs the secret {cap.secret.upper()} at apply time"
                )

    result.valid = len(result.errors) == 0
    return result
