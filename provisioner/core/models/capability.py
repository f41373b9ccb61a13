"""
Capability model — a named unit of desired system state.

Capabilities are declared statically in ``core/data/capabilities.py``
and validated into these models when the registry loads. They are
never mutated at runtime.

A capability carries:
    - probes:   read-only checks; all must pass for it to be Satisfied
    - actions:  per-OS-family step lists (``_default`` as fallback)
    - applies:  predicate over the OS profile (GPU, computer type, family)
    - depends_on: other capability ids (must form a DAG)
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from provisioner.core.models.profile import OSProfile

CheckKind = Literal[
    "command",              # binary on PATH
    "command_succeeds",     # read-only command exits 0
    "packages",             # every distro package for a capability installed
    "package",              # one named distro package installed
    "service_enabled",      # systemctl is-enabled
    "service_active",       # systemctl is-active
    "group_member",         # target user is in group
    "file_exists",
    "dir_exists",
    "file_contains",        # file exists and contains pattern
    "tailscale_connected",  # tailscale BackendState == Running
]

StepKind = Literal[
    "packages",         # install the distro's packages for this capability
    "aur",              # build + install an AUR package (arch only)
    "shell",            # run a command
    "write_file",       # write content to a path
    "download",         # fetch a URL to a path
    "github_release",   # fetch + unpack the latest release asset
    "launch",           # fire-and-forget GUI process
]

# Capabilities carrying these tags are dropped on servers.
SERVER_EXCLUDED_TAGS = frozenset({"gui", "gaming"})


class Check(BaseModel):
    """A read-only probe sub-check."""

    model_config = ConfigDict(frozen=True)

    kind: CheckKind
    target: str = ""
    pattern: str = ""
    label: str = ""

    def describe(self) -> str:
        if self.label:
            return self.label
        if self.pattern:
            return f"{self.kind}:{self.target}~{self.pattern}"
        return f"{self.kind}:{self.target}"


class Step(BaseModel):
    """One corrective action inside a capability.

    ``unless`` guards the step: when the check already passes the
    step is skipped, so re-runs converge instead of repeating work.
    ``when_changed`` steps only run if an earlier step of the same
    capability actually executed (e.g. restart a service after its
    config was written).
    """

    model_config = ConfigDict(frozen=True)

    kind: StepKind
    label: str = ""
    command: str | list[str] = ""
    packages: list[str] | None = None   # override the distro package table
    package: str = ""                   # AUR package name
    gpg_keys: list[str] = Field(default_factory=list)
    path: str = ""
    content: str = ""
    mode: int | None = None
    url: str = ""
    repo: str = ""                      # GitHub "owner/name"
    asset_suffix: str = ""
    link_name: str = ""
    env: dict[str, str] = Field(default_factory=dict)
    privileged: bool = False
    as_user: bool = False
    network: bool = False               # subject to the network timeout
    unless: Check | None = None
    when_changed: bool = False

    def describe(self) -> str:
        if self.label:
            return self.label
        if self.kind == "packages":
            return "install packages"
        if self.kind == "aur":
            return f"build AUR package {self.package}"
        if self.kind in ("write_file", "download"):
            return f"{self.kind} {self.path}"
        if self.kind == "github_release":
            return f"fetch latest {self.repo} release"
        command = self.command if isinstance(self.command, str) else " ".join(self.command)
        return command[:80]


class Applicability(BaseModel):
    """Predicate over the OS profile. Empty lists mean "any"."""

    model_config = ConfigDict(frozen=True)

    gpu: list[str] = Field(default_factory=list)
    computer_type: list[str] = Field(default_factory=list)
    os_family: list[str] = Field(default_factory=list)


class Capability(BaseModel):
    """A named, independently satisfiable piece of desired system state."""

    model_config = ConfigDict(frozen=True)

    id: str
    label: str = ""
    category: str = "system"
    tags: frozenset[str] = frozenset()
    default_enabled: bool = True
    applies: Applicability = Field(default_factory=Applicability)
    actions: dict[str, list[Step]] = Field(default_factory=dict)
    probes: list[Check] = Field(default_factory=list)
    depends_on: list[str] = Field(default_factory=list)
    interactive: bool = False           # exit code is not authoritative
    secret: str | None = None           # name of a required secret
    notes: list[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _default_label(cls, data: object) -> object:
        if isinstance(data, dict) and not data.get("label"):
            data = {**data, "label": data.get("id", "")}
        return data

    def steps_for(self, os_family: str) -> list[Step] | None:
        """Resolve the step list for an OS family, or None if unsupported."""
        if os_family in self.actions:
            return self.actions[os_family]
        return self.actions.get("_default")

    def applicability_reason(self, profile: OSProfile) -> str | None:
        """Why this capability does not apply to ``profile`` (None = applies)."""
        if profile.computer_type == "server" and self.tags & SERVER_EXCLUDED_TAGS:
            return "excluded on servers"
        if self.applies.gpu and profile.gpu not in self.applies.gpu:
            return f"requires GPU {'/'.join(self.applies.gpu)}"
        if self.applies.computer_type and profile.computer_type not in self.applies.computer_type:
            return f"requires computer type {'/'.join(self.applies.computer_type)}"
        if self.applies.os_family and profile.os_family not in self.applies.os_family:
            return f"only on {'/'.join(self.applies.os_family)}"
        if self.steps_for(profile.os_family) is None:
            return f"no action for {profile.os_family}"
        return None

    def is_applicable(self, profile: OSProfile) -> bool:
        return self.applicability_reason(profile) is None
