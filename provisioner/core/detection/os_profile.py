"""
Environment detection — build the OS profile once at startup.

Read-only: parses /etc/os-release, asks lspci for the GPU vendor,
and resolves which non-root user owns home-directory state. The
result is an immutable OSProfile passed explicitly downstream.
"""

from __future__ import annotations

import logging
import os
import pwd
import re
import subprocess
from collections.abc import Mapping
from pathlib import Path

from provisioner.core.config.loader import ConfigError
from provisioner.core.models.config import ProvisionConfig
from provisioner.core.models.profile import OSProfile

logger = logging.getLogger(__name__)

OS_RELEASE = Path("/etc/os-release")

# os-release ID / ID_LIKE token -> supported family
_FAMILY_IDS: dict[str, str] = {
    "arch": "arch",
    "manjaro": "arch",
    "endeavouros": "arch",
    "fedora": "fedora",
    "ubuntu": "ubuntu",
    "debian": "ubuntu",
    "pop": "ubuntu",
    "linuxmint": "ubuntu",
}

_AMD = re.compile(r"\b(AMD|ATI)\b|\[1002:")
_INTEL = re.compile(r"\bINTEL\b|\[8086:")


def parse_os_release(text: str) -> dict[str, str]:
    """Parse os-release KEY=value lines (quotes stripped)."""
    info: dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        info[key.strip()] = value.strip().strip('"').strip("'")
    return info


def resolve_os_family(info: Mapping[str, str]) -> str:
    """Map os-release fields to a supported family.

    ID wins over ID_LIKE, so e.g. Manjaro (ID_LIKE=arch) and
    Pop!_OS (ID_LIKE="ubuntu debian") resolve as expected.

    Raises:
        ConfigError: If the distribution is not supported.
    """
    candidates = [info.get("ID", "").lower()]
    candidates += info.get("ID_LIKE", "").lower().split()
    for token in candidates:
        if token in _FAMILY_IDS:
            return _FAMILY_IDS[token]
    name = info.get("PRETTY_NAME") or info.get("ID") or "unknown"
    raise ConfigError(f"Unsupported operating system: {name}")


def detect_gpu(timeout: int = 5) -> str:
    """Classify the primary GPU vendor from ``lspci -nn``.

    NVIDIA wins when several adapters are present (hybrid laptops).
    Missing lspci means "none", never an error.
    """
    try:
        r = subprocess.run(
            ["lspci", "-nn"],
            capture_output=True, text=True, timeout=timeout,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired, OSError):
        logger.debug("lspci unavailable; assuming no discrete GPU")
        return "none"

    vendors: set[str] = set()
    for line in r.stdout.splitlines():
        if "VGA" not in line and "3D controller" not in line:
            continue
        upper = line.upper()
        if "NVIDIA" in upper or "[10DE:" in upper:
            vendors.add("nvidia")
        elif _AMD.search(upper):
            vendors.add("amd")
        elif _INTEL.search(upper):
            vendors.add("intel")

    for vendor in ("nvidia", "amd", "intel"):
        if vendor in vendors:
            return vendor
    return "none"


def resolve_target_user(env: Mapping[str, str], *, is_root: bool, override: str | None = None) -> tuple[str, str]:
    """Return ``(user, home)`` for home-directory state.

    Running under sudo, the invoking user (SUDO_USER) is the target,
    not root.

    Raises:
        ConfigError: If no non-root target can be determined or the
            user does not exist.
    """
    if override:
        user = override
    elif is_root:
        user = env.get("SUDO_USER", "")
        if not user or user == "root":
            raise ConfigError(
                "Running as root without SUDO_USER: set 'user' in provision.yml or pass --user"
            )
    else:
        user = env.get("USER") or pwd.getpwuid(os.getuid()).pw_name

    try:
        home = pwd.getpwnam(user).pw_dir
    except KeyError:
        raise ConfigError(f"Unknown user: {user}") from None
    return user, home


def detect_profile(
    config: ProvisionConfig,
    env: Mapping[str, str] | None = None,
    os_release_path: Path = OS_RELEASE,
) -> OSProfile:
    """Detect the OS profile, honouring config overrides.

    Raises:
        ConfigError: Unsupported OS, unreadable os-release, or no
            resolvable target user.
    """
    env = os.environ if env is None else env

    try:
        info = parse_os_release(os_release_path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(f"Cannot read {os_release_path}: {e}") from e

    family = resolve_os_family(info)
    gpu = detect_gpu() if config.gpu == "auto" else config.gpu
    is_root = os.geteuid() == 0
    user, home = resolve_target_user(env, is_root=is_root, override=config.user)

    profile = OSProfile(
        os_id=info.get("ID", family),
        os_family=family,
        os_version=info.get("VERSION_ID", ""),
        gpu=gpu,
        computer_type=config.computer_type,
        user=user,
        home=home,
        is_root=is_root,
    )
    logger.info(
        "Detected %s (%s family), gpu=%s, type=%s, user=%s",
        profile.os_id, profile.os_family, profile.gpu, profile.computer_type, profile.user,
    )
    return profile
