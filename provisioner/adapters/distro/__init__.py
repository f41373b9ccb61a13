"""Distro adapters — package-manager verbs and package tables per OS family."""

from __future__ import annotations

from provisioner.adapters.distro.arch import ArchAdapter
from provisioner.adapters.distro.base import DistroAdapter
from provisioner.adapters.distro.fedora import FedoraAdapter
from provisioner.adapters.distro.ubuntu import UbuntuAdapter

DISTRO_ADAPTERS: dict[str, type[DistroAdapter]] = {
    "arch": ArchAdapter,
    "fedora": FedoraAdapter,
    "ubuntu": UbuntuAdapter,
}


def get_distro_adapter(family: str) -> DistroAdapter:
    """Instantiate the adapter for an OS family.

    Raises:
        KeyError: If the family is not supported.
    """
    return DISTRO_ADAPTERS[family]()


__all__ = [
    "ArchAdapter",
    "DISTRO_ADAPTERS",
    "DistroAdapter",
    "FedoraAdapter",
    "UbuntuAdapter",
    "get_distro_adapter",
]
