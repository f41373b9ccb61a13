"""
Session — everything a use case needs, built once per invocation.

Loads configuration, applies CLI overrides, detects the OS profile
and wires the registry, distro adapter and probe engine together.
Nothing here mutates the system.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from provisioner.adapters.distro import get_distro_adapter
from provisioner.adapters.distro.base import DistroAdapter
from provisioner.core.config.loader import config_root, find_config_file, load_config
from provisioner.core.detection import os_profile
from provisioner.core.detection.checks import Checker
from provisioner.core.engine.probe import ProbeEngine
from provisioner.core.engine.registry import CapabilityRegistry, load_registry
from provisioner.core.models.config import ProvisionConfig
from provisioner.core.models.profile import OSProfile
from provisioner.core.persistence.audit import DEFAULT_AUDIT_DIR, DEFAULT_AUDIT_FILE, AuditWriter
from provisioner.core.persistence.state_file import default_state_path

logger = logging.getLogger(__name__)

# Seams swapped out by tests: profile detection and the check table
detect_profile = os_profile.detect_profile
checkers: Mapping[str, Checker] | None = None


def resolve_audit_path(config: ProvisionConfig, root: Path) -> Path:
    """Audit log location: ``audit_file`` (relative to the config root) or the default."""
    if config.audit_file:
        path = Path(config.audit_file).expanduser()
        return path if path.is_absolute() else root / path
    return root / DEFAULT_AUDIT_DIR / DEFAULT_AUDIT_FILE


@dataclass
class Session:
    config: ProvisionConfig
    config_path: Path | None
    root: Path
    profile: OSProfile
    registry: CapabilityRegistry
    distro: DistroAdapter
    probe_engine: ProbeEngine

    @property
    def audit_path(self) -> Path:
        return resolve_audit_path(self.config, self.root)

    @property
    def state_path(self) -> Path:
        return default_state_path(self.root)

    def audit_writer(self) -> AuditWriter:
        return AuditWriter(self.audit_path)


def load_session_config(
    config_path: Path | None = None,
    *,
    computer_type: str | None = None,
    gpu: str | None = None,
    user: str | None = None,
) -> tuple[ProvisionConfig, Path | None]:
    """Load provision.yml and layer CLI overrides on top.

    Raises:
        ConfigError: If the file is missing (when explicit) or invalid.
    """
    if config_path is None:
        config_path = find_config_file()
    config = load_config(config_path, discover=False)

    overrides = {
        key: value
        for key, value in (("computer_type", computer_type), ("gpu", gpu), ("user", user))
        if value is not None
    }
    if overrides:
        config = ProvisionConfig.model_validate({**config.model_dump(), **overrides})
    return config, config_path


def open_session(
    config_path: Path | None = None,
    *,
    computer_type: str | None = None,
    gpu: str | None = None,
    user: str | None = None,
) -> Session:
    """Build a session.

    Raises:
        ConfigError: Invalid config, unsupported OS, invalid registry,
            or no resolvable target user.
    """
    config, config_path = load_session_config(
        config_path, computer_type=computer_type, gpu=gpu, user=user,
    )
    profile = detect_profile(config)
    registry = load_registry()
    distro = get_distro_adapter(profile.os_family)
    probe_engine = ProbeEngine(profile, distro, checkers=checkers, timeout=config.timeouts.probe)

    return Session(
        config=config,
        config_path=config_path,
        root=config_root(config_path),
        profile=profile,
        registry=registry,
        distro=distro,
        probe_engine=probe_engine,
    )
