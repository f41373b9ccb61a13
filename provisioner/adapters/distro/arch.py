"""
Arch family (Arch, Manjaro, EndeavourOS) — pacman + AUR builds.
"""

from __future__ import annotations

from provisioner.adapters.distro.base import DistroAdapter
from provisioner.core.models.capability import Check, Step

_AUR_BASE = "https://aur.archlinux.org"


class ArchAdapter(DistroAdapter):
    family = "arch"
    package_manager = "pacman"

    PACKAGES = {
        "jq": ["jq"],
        "build-tools": ["base-devel", "git"],
        "go-toolchain": ["go"],
        "gpu-mesa": ["mesa", "vulkan-icd-loader", "lib32-mesa"],
        "cuda-toolkit": ["cuda", "cuda-tools"],
        "container-engine": ["docker", "docker-compose"],
        "container-gpu-runtime": ["libnvidia-container", "nvidia-container-toolkit"],
        "nextcloud-client": ["nextcloud-client"],
        "office-suite": ["libreoffice-fresh"],
        "htop": ["htop"],
        "smb-tools": ["cifs-utils", "smbclient"],
        "steam": ["steam"],
        "wine": ["wine"],
        "winetricks": ["winetricks", "samba"],
    }

    def install_command(self, packages: list[str]) -> list[str]:
        return ["pacman", "-S", "--needed", "--noconfirm", *packages]

    def query_command(self, package: str) -> list[str]:
        return ["pacman", "-Qi", package]

    def refresh_command(self) -> str:
        return "pacman -Syu --noconfirm"

    def expand_step(self, step: Step) -> list[Step]:
        if step.kind != "aur":
            return [step]
        return self.aur_build_steps(step.package, step.gpg_keys)

    def aur_build_steps(self, package: str, gpg_keys: list[str] | None = None) -> list[Step]:
        """Clone, makepkg as the user, install the built package as root.

        makepkg refuses to run as root, hence the user/root split. The
        whole sequence is skipped once pacman knows the package.
        """
        build_dir = f"/tmp/aur-{package}"
        done = Check(kind="package", target=package)
        steps = [
            Step(kind="shell", label=f"clean {build_dir}",
                 command=["rm", "-rf", build_dir], privileged=True, unless=done),
            Step(kind="shell", label=f"clone AUR {package}",
                 command=["git", "clone", f"{_AUR_BASE}/{package}.git", build_dir],
                 as_user=True, network=True, unless=done),
        ]
        if gpg_keys:
            steps.append(Step(
                kind="shell", label=f"import signing keys for {package}",
                command=["gpg", "--recv-keys", *gpg_keys],
                as_user=True, network=True, unless=done,
            ))
        steps.extend([
            Step(kind="shell", label=f"makepkg {package}",
                 command=f"cd {build_dir} && makepkg --noconfirm",
                 as_user=True, network=True, unless=done),
            Step(kind="shell", label=f"pacman -U {package}",
                 command=f"pacman -U --noconfirm {build_dir}/*.pkg.tar*",
                 privileged=True, unless=done),
            Step(kind="shell", label=f"remove {build_dir}",
                 command=["rm", "-rf", build_dir], privileged=True, when_changed=True),
        ])
        return steps
