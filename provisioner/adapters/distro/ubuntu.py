"""
Ubuntu family (Ubuntu, Pop!_OS, Mint, Debian derivatives) — apt + dpkg.
"""

from __future__ import annotations

from provisioner.adapters.distro.base import DistroAdapter


class UbuntuAdapter(DistroAdapter):
    family = "ubuntu"
    package_manager = "apt"

    PACKAGES = {
        "jq": ["jq"],
        "build-tools": ["build-essential", "git"],
        "go-toolchain": ["golang-go"],
        "python-runtime": ["python3.12", "python3.12-venv"],
        "gpu-mesa": ["mesa-vulkan-drivers", "libgl1-mesa-dri", "vulkan-tools"],
        "cuda-toolkit": ["nvidia-cuda-toolkit"],
        "container-engine": [
            "docker-ce", "docker-ce-cli", "containerd.io",
            "docker-buildx-plugin", "docker-compose-plugin",
        ],
        "container-gpu-runtime": ["nvidia-container-toolkit"],
        "code-editor": ["code"],
        "nextcloud-client": ["nextcloud-desktop"],
        "office-suite": ["libreoffice"],
        "htop": ["htop"],
        "smb-tools": ["cifs-utils", "smbclient"],
        "steam": ["steam"],
        "wine": ["wine"],
        "winetricks": ["winetricks", "samba"],
    }

    def install_command(self, packages: list[str]) -> list[str]:
        return ["apt-get", "install", "-y", *packages]

    def query_command(self, package: str) -> list[str]:
        return ["dpkg", "-s", package]

    def refresh_command(self) -> str:
        return "apt-get update && apt-get upgrade -y"
