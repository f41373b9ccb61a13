"""
Check primitives — the read-only sub-checks probes are built from.

Every checker takes a ProbeContext and an already-expanded Check and
returns a bool. Checkers NEVER raise: a missing tool, a timeout or an
unreadable file all mean "not satisfied", which favours re-attempting
the install over aborting the run.
"""

from __future__ import annotations

import grp
import json
import logging
import pwd
import shlex
import shutil
import subprocess
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from provisioner.adapters.distro.base import DistroAdapter
from provisioner.core.models.capability import Check
from provisioner.core.models.profile import OSProfile

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProbeContext:
    """What a checker may consult."""

    profile: OSProfile
    distro: DistroAdapter
    capability: str = ""
    timeout: int = 10


def _run_ok(argv: list[str], timeout: int) -> bool:
    try:
        r = subprocess.run(argv, capture_output=True, timeout=timeout)
        return r.returncode == 0
    except (FileNotFoundError, subprocess.TimeoutExpired, OSError):
        return False


def check_command(ctx: ProbeContext, check: Check) -> bool:
    return shutil.which(check.target) is not None


def check_command_succeeds(ctx: ProbeContext, check: Check) -> bool:
    return _run_ok(shlex.split(check.target), ctx.timeout)


def check_packages(ctx: ProbeContext, check: Check) -> bool:
    """Every distro package declared for a capability is installed.

    ``target`` names the capability whose package list applies
    (defaults to the capability being probed).
    """
    packages = ctx.distro.packages_for(check.target or ctx.capability)
    if not packages:
        return False
    return all(ctx.distro.is_installed(p, timeout=ctx.timeout) for p in packages)


def check_package(ctx: ProbeContext, check: Check) -> bool:
    return ctx.distro.is_installed(check.target, timeout=ctx.timeout)


def check_service_enabled(ctx: ProbeContext, check: Check) -> bool:
    return _run_ok(["systemctl", "is-enabled", "--quiet", check.target], ctx.timeout)


def check_service_active(ctx: ProbeContext, check: Check) -> bool:
    return _run_ok(["systemctl", "is-active", "--quiet", check.target], ctx.timeout)


def check_group_member(ctx: ProbeContext, check: Check) -> bool:
    """Target user is in the group (supplementary or primary).

    Reads the group database, not the current session, so a freshly
    added membership counts even before re-login.
    """
    user = ctx.profile.user
    try:
        group = grp.getgrnam(check.target)
    except KeyError:
        return False
    if user in group.gr_mem:
        return True
    try:
        return pwd.getpwnam(user).pw_gid == group.gr_gid
    except KeyError:
        return False


def check_file_exists(ctx: ProbeContext, check: Check) -> bool:
    return Path(check.target).is_file()


def check_dir_exists(ctx: ProbeContext, check: Check) -> bool:
    return Path(check.target).is_dir()


def check_file_contains(ctx: ProbeContext, check: Check) -> bool:
    try:
        return check.pattern in Path(check.target).read_text(encoding="utf-8", errors="replace")
    except OSError:
        return False


def check_tailscale_connected(ctx: ProbeContext, check: Check) -> bool:
    try:
        r = subprocess.run(
            ["tailscale", "status", "--json"],
            capture_output=True, text=True, timeout=ctx.timeout,
        )
        if r.returncode != 0:
            return False
        return json.loads(r.stdout).get("BackendState") == "Running"
    except (FileNotFoundError, subprocess.TimeoutExpired, OSError, ValueError):
        return False


Checker = Callable[[ProbeContext, Check], bool]

CHECKERS: dict[str, Checker] = {
    "command": check_command,
    "command_succeeds": check_command_succeeds,
    "packages": check_packages,
    "package": check_package,
    "service_enabled": check_service_enabled,
    "service_active": check_service_active,
    "group_member": check_group_member,
    "file_exists": check_file_exists,
    "dir_exists": check_dir_exists,
    "file_contains": check_file_contains,
    "tailscale_connected": check_tailscale_connected,
}
