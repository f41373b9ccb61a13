"""
Distro adapter base — one implementation per OS family.

A distro adapter supplies the package-manager verbs (install, query,
refresh) and the per-capability package names as data. It is selected
once at startup from the OS profile; nothing else branches on the
distribution name.
"""

from __future__ import annotations

import logging
import subprocess
from abc import ABC, abstractmethod
from typing import ClassVar

from provisioner.core.models.capability import Step

logger = logging.getLogger(__name__)


class DistroAdapter(ABC):
    """Package-manager binding for a distribution family."""

    family: ClassVar[str]
    package_manager: ClassVar[str]

    # capability id -> distro package names
    PACKAGES: ClassVar[dict[str, list[str]]] = {}

    @abstractmethod
    def install_command(self, packages: list[str]) -> list[str]:
        """Non-interactive install of ``packages`` (run privileged)."""

    @abstractmethod
    def query_command(self, package: str) -> list[str]:
        """Read-only "is this package installed" query. Exit 0 = installed."""

    @abstractmethod
    def refresh_command(self) -> str:
        """Refresh package indexes and upgrade the system (run privileged)."""

    def packages_for(self, capability_id: str) -> list[str] | None:
        """Distro package names for a capability, or None if undeclared."""
        packages = self.PACKAGES.get(capability_id)
        return list(packages) if packages is not None else None

    def is_installed(self, package: str, timeout: int = 10) -> bool:
        """Check if a single package is installed.

        Returns False (never raises) when the query tool itself is
        missing or hangs: an unknown state is treated as Missing.
        """
        try:
            r = subprocess.run(
                self.query_command(package),
                capture_output=True, timeout=timeout,
            )
            return r.returncode == 0
        except FileNotFoundError:
            logger.warning(
                "Package checker not found for pm=%s (checking %s)",
                self.package_manager, package,
            )
        except subprocess.TimeoutExpired:
            logger.warning(
                "Timeout checking package %s with pm=%s",
                package, self.package_manager,
            )
        except OSError as exc:
            logger.warning(
                "OS error checking package %s with pm=%s: %s",
                package, self.package_manager, exc,
            )
        return False

    def expand_step(self, step: Step) -> list[Step]:
        """Expand distro-specific compound steps into plain ones."""
        return [step]

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} family={self.family!r}>"
