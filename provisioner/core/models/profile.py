"""
OS profile — resolved facts about the target system.

Created once at startup by environment detection, immutable
afterwards, and passed explicitly to the probe engine, the planner
and the executor.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict

OSFamily = Literal["arch", "fedora", "ubuntu"]
GpuType = Literal["nvidia", "amd", "intel", "none"]
ComputerType = Literal["workstation", "server"]


class OSProfile(BaseModel):
    """Target-system facts used to pick OS-specific actions and probes."""

    model_config = ConfigDict(frozen=True)

    os_id: str                      # /etc/os-release ID (e.g. "manjaro")
    os_family: OSFamily
    os_version: str = ""
    gpu: GpuType = "none"
    computer_type: ComputerType = "workstation"
    user: str                       # non-root user that owns home-dir state
    home: str
    is_root: bool = False

    @property
    def proton_dir(self) -> str:
        return f"{self.home}/.proton/current"

    @property
    def proton_wine(self) -> str:
        return f"{self.proton_dir}/files/bin/wine"

    def template_vars(self) -> dict[str, str]:
        """Placeholders available to capability steps and checks."""
        return {
            "user": self.user,
            "home": self.home,
            "wine": self.proton_wine,
            "proton": self.proton_dir,
            "os_version": self.os_version,
        }

    def expand(self, text: str, extra: dict[str, str] | None = None) -> str:
        """Substitute ``{name}`` placeholders.

        Only known names are replaced, so literal braces in file
        content (JSON, shell) pass through untouched.
        """
        values = self.template_vars()
        if extra:
            values.update(extra)
        for key, value in values.items():
            text = text.replace("{" + key + "}", value)
        return text
