"""
L0 Data — Capability registry table.

Every provisionable capability, all OS families. Pure data, no logic
beyond a few builders for repeated shapes.

Keys are capability ids. Per-family step lists live under
``actions`` with ``_default`` as the fallback; a family with neither
means "not available on that family". Distro package names live in
the distro adapters (``packages`` steps and checks resolve them by
capability id).

Placeholders expanded at run time: ``{user}``, ``{home}``,
``{wine}`` (Proton-GE wine binary), ``{proton}``, ``{os_version}``
and ``{secret}`` (the capability's secret, never logged).
"""

from __future__ import annotations

from provisioner.core.data.game_clients import (
    GAME_CLIENTS,
    executable_path,
    installer_path,
    proton_environment,
    wineprefix,
)

_DAEMON_JSON = "/etc/docker/daemon.json"

_DOCKER_DAEMON_CONFIG = """\
{
  "log-driver": "json-file",
  "log-opts": {
    "max-size": "10m",
    "max-file": "3"
  }
}
"""

_DOCKER_FEDORA_REPO = """\
[docker-ce-stable]
name=Docker CE Stable - $basearch
baseurl=https://download.docker.com/linux/fedora/$releasever/$basearch/stable
enabled=1
gpgcheck=1
gpgkey=https://download.docker.com/linux/fedora/gpg
"""

_VSCODE_FEDORA_REPO = """\
[code]
name=Visual Studio Code
baseurl=https://packages.microsoft.com/yumrepos/vscode
enabled=1
autorefresh=1
type=rpm-md
gpgcheck=1
gpgkey=https://packages.microsoft.com/keys/microsoft.asc
"""

_VSCODE_APT_LIST = (
    "deb [arch=amd64,arm64,armhf signed-by=/etc/apt/keyrings/packages.microsoft.gpg] "
    "https://packages.microsoft.com/repos/code stable main\n"
)

_PYTHON312_KEYS = [
    "0D96DF4D4110E5C43FBFB17F2D347EA6AA65421D",
    "E3FF2839C048B25C084DEBE9B26995E310250568",
]


def _command(name: str) -> dict:
    return {"kind": "command", "target": name}


def _file(path: str) -> dict:
    return {"kind": "file_exists", "target": path}


def _install(**guard) -> dict:
    step: dict = {"kind": "packages", "privileged": True}
    if guard:
        step["unless"] = guard["unless"]
    return step


def _package_only(probes: list[dict], **extra) -> dict:
    """Capability satisfied by installing its distro packages."""
    return {"actions": {"_default": [_install()]}, "probes": probes, **extra}


# ── Docker ──────────────────────────────────────────────────

_DOCKER_REPO_UBUNTU = [
    {
        "kind": "shell",
        "label": "add Docker apt signing key",
        "command": (
            "install -m 0755 -d /etc/apt/keyrings && "
            "curl -fsSL https://download.docker.com/linux/ubuntu/gpg "
            "| gpg --dearmor --yes -o /etc/apt/keyrings/docker.gpg"
        ),
        "privileged": True,
        "network": True,
        "unless": _file("/etc/apt/keyrings/docker.gpg"),
    },
    {
        "kind": "shell",
        "label": "add Docker apt repository",
        "command": (
            'echo "deb [arch=$(dpkg --print-architecture) signed-by=/etc/apt/keyrings/docker.gpg] '
            'https://download.docker.com/linux/ubuntu $(. /etc/os-release && echo $VERSION_CODENAME) stable" '
            "> /etc/apt/sources.list.d/docker.list && apt-get update"
        ),
        "privileged": True,
        "network": True,
        "unless": _file("/etc/apt/sources.list.d/docker.list"),
    },
]

_DOCKER_REPO_FEDORA = [
    {
        "kind": "write_file",
        "label": "add Docker CE repository",
        "path": "/etc/yum.repos.d/docker-ce.repo",
        "content": _DOCKER_FEDORA_REPO,
        "privileged": True,
        "unless": _file("/etc/yum.repos.d/docker-ce.repo"),
    },
]

_DOCKER_CONFIGURE = [
    _install(unless=_command("docker")),
    {
        "kind": "write_file",
        "label": "configure Docker daemon logging",
        "path": _DAEMON_JSON,
        "content": _DOCKER_DAEMON_CONFIG,
        "privileged": True,
        "unless": {"kind": "file_contains", "target": _DAEMON_JSON, "pattern": "log-driver"},
    },
    {
        "kind": "shell",
        "label": "enable and start docker",
        "command": ["systemctl", "enable", "--now", "docker"],
        "privileged": True,
        "unless": {"kind": "service_enabled", "target": "docker"},
    },
    {
        "kind": "shell",
        "label": "restart docker",
        "command": ["systemctl", "restart", "docker"],
        "privileged": True,
        "when_changed": True,
    },
    {
        "kind": "shell",
        "label": "add {user} to docker group",
        "command": ["usermod", "-aG", "docker", "{user}"],
        "privileged": True,
        "unless": {"kind": "group_member", "target": "docker"},
    },
]

# ── NVIDIA container toolkit ────────────────────────────────

_NVIDIA_CTK_APT_LIST = "/etc/apt/sources.list.d/nvidia-container-toolkit.list"
_NVIDIA_CTK_YUM_REPO = "/etc/yum.repos.d/nvidia-container-toolkit.repo"

_NVIDIA_CTK_CONFIGURE = [
    _install(),
    {
        "kind": "shell",
        "label": "register nvidia runtime with docker",
        "command": ["nvidia-ctk", "runtime", "configure", "--runtime=docker"],
        "privileged": True,
        "unless": {"kind": "file_contains", "target": _DAEMON_JSON, "pattern": "nvidia-container-runtime"},
    },
    {
        "kind": "shell",
        "label": "restart docker",
        "command": ["systemctl", "restart", "docker"],
        "privileged": True,
        "when_changed": True,
    },
]


# ── Game clients ────────────────────────────────────────────

def _game_client_capabilities(key: str, client: dict) -> dict[str, dict]:
    """prefix + installer + interactive install for one Windows client."""
    home = "{home}"
    cap_id = client["capability"]
    label = client["label"]
    env = proton_environment(home, client)
    pfx = wineprefix(home, client)
    last_verb = client["winetricks"][-1]
    installer = installer_path(home, client)

    if installer.endswith(".msi"):
        run_installer = ["{wine}", "msiexec", "/i", installer]
    else:
        run_installer = ["{wine}", installer]

    common = {"category": "gaming", "tags": ["gui", "gaming"], "default_enabled": False}

    return {
        f"{cap_id}-prefix": {
            **common,
            "label": f"{label} Proton prefix",
            "depends_on": ["proton-ge", "winetricks"],
            "actions": {"_default": [
                {
                    "kind": "shell",
                    "label": f"initialise {label} prefix",
                    "command": ["{wine}", "wineboot", "--init"],
                    "env": {**env, "WINEARCH": "win64"},
                    "as_user": True,
                    "unless": _file(f"{pfx}/system.reg"),
                },
                {
                    "kind": "shell",
                    "label": f"winetricks {' '.join(client['winetricks'])}",
                    "command": ["winetricks", "--unattended", *client["winetricks"]],
                    "env": {**env, "WINE": "{wine}"},
                    "as_user": True,
                    "unless": {"kind": "file_contains", "target": f"{pfx}/winetricks.log", "pattern": last_verb},
                },
            ]},
            "probes": [
                _file(f"{pfx}/system.reg"),
                {"kind": "file_contains", "target": f"{pfx}/winetricks.log", "pattern": last_verb},
            ],
        },
        f"{cap_id}-installer": {
            **common,
            "label": f"{label} installer",
            "actions": {"_default": [
                {
                    "kind": "download",
                    "label": f"download {client['installer_file']}",
                    "url": client["installer_url"],
                    "path": installer,
                    "as_user": True,
                    "network": True,
                },
            ]},
            "probes": [_file(installer)],
        },
        cap_id: {
            **common,
            "label": label,
            "interactive": True,
            "depends_on": [f"{cap_id}-prefix", f"{cap_id}-installer"],
            "actions": {"_default": [
                {
                    "kind": "launch",
                    "label": f"launch {label} installer",
                    "command": run_installer,
                    "env": env,
                    "as_user": True,
                },
            ]},
            "probes": [_file(executable_path(home, client))],
            "notes": [
                f"Finish the {label} installer window, then start it with: provision games launch {key}",
            ],
        },
    }


CAPABILITIES: dict[str, dict] = {

    # ── Base tooling ────────────────────────────────────────

    "jq": _package_only([_command("jq")], label="jq", category="base"),
    "build-tools": _package_only(
        [{"kind": "packages"}, _command("git")],
        label="Build tools and git", category="base",
    ),
    "go-toolchain": _package_only([_command("go")], label="Go toolchain", category="development"),
    "aur-helper": {
        "label": "yay AUR helper",
        "category": "base",
        "applies": {"os_family": ["arch"]},
        "depends_on": ["build-tools", "go-toolchain"],
        "actions": {"arch": [{"kind": "aur", "package": "yay"}]},
        "probes": [_command("yay")],
    },

    # ── Development ─────────────────────────────────────────

    "python-runtime": {
        "label": "Python 3.12",
        "category": "development",
        "depends_on": ["build-tools"],
        "actions": {
            "arch": [{"kind": "aur", "package": "python312", "gpg_keys": _PYTHON312_KEYS}],
            "_default": [_install()],
        },
        "probes": [_command("python3.12")],
    },
    "python-pip": {
        "label": "pip for Python 3.12",
        "category": "development",
        "depends_on": ["python-runtime"],
        "actions": {"_default": [
            {
                "kind": "shell",
                "label": "bootstrap pip for python3.12",
                "command": (
                    "python3.12 -m ensurepip --upgrade || "
                    "{ curl -fsSL https://bootstrap.pypa.io/get-pip.py -o /tmp/get-pip.py "
                    "&& python3.12 /tmp/get-pip.py && rm -f /tmp/get-pip.py; }"
                ),
                "privileged": True,
                "network": True,
            },
        ]},
        "probes": [{"kind": "command_succeeds", "target": "python3.12 -m pip --version"}],
    },
    "code-editor": {
        "label": "Visual Studio Code",
        "category": "development",
        "tags": ["gui"],
        "actions": {
            "arch": [{"kind": "aur", "package": "visual-studio-code-bin"}],
            "fedora": [
                {
                    "kind": "shell",
                    "label": "import Microsoft signing key",
                    "command": ["rpm", "--import", "https://packages.microsoft.com/keys/microsoft.asc"],
                    "privileged": True,
                    "network": True,
                    "unless": _file("/etc/yum.repos.d/vscode.repo"),
                },
                {
                    "kind": "write_file",
                    "label": "add VS Code repository",
                    "path": "/etc/yum.repos.d/vscode.repo",
                    "content": _VSCODE_FEDORA_REPO,
                    "privileged": True,
                    "unless": _file("/etc/yum.repos.d/vscode.repo"),
                },
                _install(),
            ],
            "ubuntu": [
                {
                    "kind": "shell",
                    "label": "add Microsoft apt signing key",
                    "command": (
                        "install -m 0755 -d /etc/apt/keyrings && "
                        "curl -fsSL https://packages.microsoft.com/keys/microsoft.asc "
                        "| gpg --dearmor --yes -o /etc/apt/keyrings/packages.microsoft.gpg"
                    ),
                    "privileged": True,
                    "network": True,
                    "unless": _file("/etc/apt/keyrings/packages.microsoft.gpg"),
                },
                {
                    "kind": "write_file",
                    "label": "add VS Code apt repository",
                    "path": "/etc/apt/sources.list.d/vscode.list",
                    "content": _VSCODE_APT_LIST,
                    "privileged": True,
                    "unless": _file("/etc/apt/sources.list.d/vscode.list"),
                },
                {
                    "kind": "shell",
                    "label": "refresh apt indexes",
                    "command": ["apt-get", "update"],
                    "privileged": True,
                    "network": True,
                    "when_changed": True,
                },
                _install(),
            ],
        },
        "probes": [_command("code")],
    },

    # ── GPU ─────────────────────────────────────────────────

    "gpu-driver": {
        "label": "NVIDIA proprietary driver",
        "category": "gpu",
        "applies": {"gpu": ["nvidia"]},
        "actions": {
            "arch": [
                {
                    "kind": "shell",
                    "label": "mhwd nonfree driver",
                    "command": ["mhwd", "-a", "pci", "nonfree", "0300"],
                    "privileged": True,
                },
            ],
            "fedora": [
                {
                    "kind": "shell",
                    "label": "enable RPM Fusion",
                    "command": (
                        "dnf install -y "
                        "https://download1.rpmfusion.org/free/fedora/rpmfusion-free-release-$(rpm -E %fedora).noarch.rpm "
                        "https://download1.rpmfusion.org/nonfree/fedora/rpmfusion-nonfree-release-$(rpm -E %fedora).noarch.rpm"
                    ),
                    "privileged": True,
                    "network": True,
                    "unless": {"kind": "package", "target": "rpmfusion-nonfree-release"},
                },
                _install(),
            ],
            "ubuntu": [
                {
                    "kind": "shell",
                    "label": "ubuntu-drivers autoinstall",
                    "command": ["ubuntu-drivers", "autoinstall"],
                    "privileged": True,
                    "network": True,
                },
            ],
        },
        "probes": [{"kind": "command_succeeds", "target": "modinfo -F version nvidia", "label": "nvidia kernel module"}],
        "notes": ["Reboot to load the NVIDIA kernel module."],
    },
    "gpu-mesa": {
        "label": "Mesa / Vulkan drivers",
        "category": "gpu",
        "applies": {"gpu": ["amd", "intel"]},
        "actions": {"_default": [_install()]},
        "probes": [{"kind": "packages"}],
    },
    "cuda-toolkit": {
        "label": "NVIDIA CUDA toolkit",
        "category": "gpu",
        "applies": {"gpu": ["nvidia"]},
        "depends_on": ["gpu-driver"],
        "actions": {
            "fedora": [
                {
                    "kind": "shell",
                    "label": "add NVIDIA CUDA repository",
                    "command": [
                        "curl", "-fsSL", "-o", "/etc/yum.repos.d/cuda-fedora41.repo",
                        "https://developer.download.nvidia.com/compute/cuda/repos/fedora41/x86_64/cuda-fedora41.repo",
                    ],
                    "privileged": True,
                    "network": True,
                    "unless": _file("/etc/yum.repos.d/cuda-fedora41.repo"),
                },
                _install(),
            ],
            "_default": [_install()],
        },
        "probes": [{"kind": "packages"}],
    },

    # ── Containers ──────────────────────────────────────────

    "container-engine": {
        "label": "Docker Engine + Compose",
        "category": "containers",
        "actions": {
            "arch": _DOCKER_CONFIGURE,
            "fedora": _DOCKER_REPO_FEDORA + _DOCKER_CONFIGURE,
            "ubuntu": _DOCKER_REPO_UBUNTU + _DOCKER_CONFIGURE,
        },
        "probes": [
            _command("docker"),
            {"kind": "file_contains", "target": _DAEMON_JSON, "pattern": "log-driver"},
            {"kind": "service_enabled", "target": "docker"},
            {"kind": "group_member", "target": "docker"},
        ],
        "notes": ["Log out and back in for docker group membership to take effect."],
    },
    "container-gpu-runtime": {
        "label": "NVIDIA container toolkit",
        "category": "containers",
        "applies": {"gpu": ["nvidia"]},
        "depends_on": ["container-engine", "gpu-driver"],
        "actions": {
            "arch": _NVIDIA_CTK_CONFIGURE,
            "fedora": [
                {
                    "kind": "shell",
                    "label": "add nvidia-container-toolkit repository",
                    "command": [
                        "curl", "-fsSL", "-o", _NVIDIA_CTK_YUM_REPO,
                        "https://nvidia.github.io/libnvidia-container/stable/rpm/nvidia-container-toolkit.repo",
                    ],
                    "privileged": True,
                    "network": True,
                    "unless": _file(_NVIDIA_CTK_YUM_REPO),
                },
                *_NVIDIA_CTK_CONFIGURE,
            ],
            "ubuntu": [
                {
                    "kind": "shell",
                    "label": "add nvidia-container-toolkit apt repository",
                    "command": (
                        "curl -fsSL https://nvidia.github.io/libnvidia-container/gpgkey "
                        "| gpg --dearmor --yes -o /usr/share/keyrings/nvidia-container-toolkit-keyring.gpg && "
                        "curl -s -L https://nvidia.github.io/libnvidia-container/stable/deb/nvidia-container-toolkit.list "
                        "| sed 's#deb https://#deb [signed-by=/usr/share/keyrings/nvidia-container-toolkit-keyring.gpg] https://#g' "
                        f"> {_NVIDIA_CTK_APT_LIST} && apt-get update"
                    ),
                    "privileged": True,
                    "network": True,
                    "unless": _file(_NVIDIA_CTK_APT_LIST),
                },
                *_NVIDIA_CTK_CONFIGURE,
            ],
        },
        "probes": [
            {"kind": "packages"},
            {"kind": "file_contains", "target": _DAEMON_JSON, "pattern": "nvidia-container-runtime"},
        ],
    },

    # ── Network ─────────────────────────────────────────────

    "vpn-client": {
        "label": "Tailscale",
        "category": "network",
        "secret": "tailscale_auth_key",
        "actions": {"_default": [
            {
                "kind": "shell",
                "label": "install tailscale",
                "command": "curl -fsSL https://tailscale.com/install.sh | sh",
                "privileged": True,
                "network": True,
                "unless": _command("tailscale"),
            },
            {
                "kind": "shell",
                "label": "enable tailscaled",
                "command": ["systemctl", "enable", "--now", "tailscaled"],
                "privileged": True,
                "unless": {"kind": "service_active", "target": "tailscaled"},
            },
            {
                "kind": "shell",
                "label": "tailscale up",
                "command": ["tailscale", "up", "--authkey={secret}", "--accept-routes"],
                "privileged": True,
                "network": True,
                "unless": {"kind": "tailscale_connected"},
            },
        ]},
        "probes": [_command("tailscale"), {"kind": "tailscale_connected"}],
    },
    "smb-tools": _package_only(
        [_command("smbclient"), {"kind": "packages"}],
        label="CIFS/SMB tools", category="network",
    ),

    # ── Desktop ─────────────────────────────────────────────

    "nextcloud-client": _package_only(
        [_command("nextcloud")], label="Nextcloud Desktop", category="desktop", tags=["gui"],
    ),
    "office-suite": _package_only(
        [_command("libreoffice")], label="LibreOffice", category="desktop", tags=["gui"],
    ),
    "htop": _package_only([_command("htop")], label="htop", category="base"),

    # ── Gaming ──────────────────────────────────────────────

    "steam": _package_only(
        [_command("steam")], label="Steam", category="gaming", tags=["gui", "gaming"],
    ),
    "wine": _package_only(
        [_command("wine")], label="Wine", category="gaming", tags=["gaming"],
    ),
    "winetricks": _package_only(
        [_command("winetricks"), {"kind": "packages"}],
        label="winetricks + samba", category="gaming", tags=["gaming"],
    ),
    "proton-ge": {
        "label": "Proton-GE",
        "category": "gaming",
        "tags": ["gaming"],
        "actions": {"_default": [
            {
                "kind": "github_release",
                "label": "install latest GE-Proton release",
                "repo": "GloriousEggroll/proton-ge-custom",
                "asset_suffix": ".tar.gz",
                "path": "{home}/.proton",
                "link_name": "current",
                "as_user": True,
                "network": True,
            },
        ]},
        "probes": [_file("{proton}/proton"), _file("{wine}")],
    },

    **{
        cap_id: spec
        for key, client in GAME_CLIENTS.items()
        for cap_id, spec in _game_client_capabilities(key, client).items()
    },
}
