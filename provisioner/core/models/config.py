"""
ProvisionConfig — the typed form of provision.yml.

Everything the operator decides lives here. It is populated once at
startup (file + CLI overrides) and passed explicitly downstream.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class Timeouts(BaseModel):
    """Timeouts in seconds. ``command`` None means unbounded."""

    model_config = ConfigDict(extra="forbid")

    network: int = 600          # downloads, curl | sh installers
    github_api: int = 15        # release metadata lookups
    probe: int = 10             # each read-only check
    command: int | None = None  # package manager and other local commands


class ProvisionConfig(BaseModel):
    """Operator configuration."""

    model_config = ConfigDict(extra="forbid")

    computer_type: Literal["workstation", "server"] = "workstation"
    gpu: Literal["nvidia", "amd", "intel", "none", "auto"] = "auto"
    user: str | None = None

    # capability id -> enable flag; unlisted ids use the registry default
    capabilities: dict[str, bool] = Field(default_factory=dict)

    system_upgrade: bool = True
    fail_fast: bool = True
    installer_settle_seconds: float = 10.0
    timeouts: Timeouts = Field(default_factory=Timeouts)

    audit_file: str | None = None
    log_file: str | None = None
