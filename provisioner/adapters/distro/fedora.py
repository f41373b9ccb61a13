"""
Fedora family — dnf + rpm.
"""

from __future__ import annotations

from provisioner.adapters.distro.base import DistroAdapter


class FedoraAdapter(DistroAdapter):
    family = "fedora"
    package_manager = "dnf"

    PACKAGES = {
        "jq": ["jq"],
        "build-tools": ["dnf-plugins-core", "git"],
        "go-toolchain": ["golang"],
        "python-runtime": ["python3.12"],
        "gpu-driver": ["akmod-nvidia", "xorg-x11-drv-nvidia-cuda"],
        "gpu-mesa": ["mesa-dri-drivers", "mesa-vulkan-drivers", "vulkan-loader"],
        "cuda-toolkit": ["cuda-toolkit"],
        "container-engine": [
            "docker-ce", "docker-ce-cli", "containerd.io",
            "docker-buildx-plugin", "docker-compose-plugin",
        ],
        "container-gpu-runtime": ["nvidia-container-toolkit"],
        "code-editor": ["code"],
        "nextcloud-client": ["nextcloud-client"],
        "office-suite": ["libreoffice"],
        "htop": ["htop"],
        "smb-tools": ["cifs-utils", "samba-client"],
        "steam": ["steam"],
        "wine": ["wine"],
        "winetricks": ["winetricks", "samba"],
    }

    def install_command(self, packages: list[str]) -> list[str]:
        return ["dnf", "install", "-y", *packages]

    def query_command(self, package: str) -> list[str]:
        return ["rpm", "-q", package]

    def refresh_command(self) -> str:
        return "dnf upgrade -y --refresh"
