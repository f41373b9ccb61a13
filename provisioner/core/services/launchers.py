"""Game launchers — status, launch and kill for the installed clients.

Launches go through the background adapter, so identity switching
(``su`` when running as root) and display passthrough behave exactly
as they do for the installers during provisioning.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import time
from collections.abc import Callable
from pathlib import Path

from provisioner.adapters import build_adapter_registry
from provisioner.adapters.registry import AdapterRegistry
from provisioner.core.data.game_clients import (
    GAME_CLIENTS,
    executable_path,
    proton_environment,
)
from provisioner.core.models.action import Action
from provisioner.core.models.profile import OSProfile

logger = logging.getLogger(__name__)

STEAM = "steam"
LAUNCH_ORDER = (STEAM, *GAME_CLIENTS)

# Pause between clients when launching everything at once
ALL_PAUSE_SECONDS = 3.0
# Grace period after killing stale processes before relaunching
KILL_GRACE_SECONDS = 2.0


def _label(name: str) -> str:
    return "Steam" if name == STEAM else GAME_CLIENTS[name]["label"]


def launcher_status(profile: OSProfile) -> dict:
    """Which launchers are installed.

    Returns:
        {"proton": bool, "launchers": [{name, label, installed, path}, ...]}
    """
    launchers = [{
        "name": STEAM,
        "label": "Steam",
        "installed": shutil.which("steam") is not None,
        "path": shutil.which("steam") or "",
    }]
    for name, client in GAME_CLIENTS.items():
        path = executable_path(profile.home, client)
        launchers.append({
            "name": name,
            "label": client["label"],
            "installed": Path(path).is_file(),
            "path": path,
        })
    return {
        "proton": Path(profile.proton_dir, "proton").is_file(),
        "launchers": launchers,
    }


def _pkill(pattern: str, run: Callable = subprocess.run) -> None:
    try:
        run(["pkill", "-f", pattern], capture_output=True, timeout=10, check=False)
    except (FileNotFoundError, subprocess.TimeoutExpired) as e:
        logger.debug("pkill %s: %s", pattern, e)


def kill_all(*, run: Callable = subprocess.run) -> dict:
    """Stop every launcher process.

    Returns:
        {"ok": True, "patterns": [...]}
    """
    patterns = [p for client in GAME_CLIENTS.values() for p in client["kill_patterns"]]
    patterns.append(STEAM)
    for pattern in patterns:
        _pkill(pattern, run)
    logger.info("Stopped launcher processes: %s", ", ".join(patterns))
    return {"ok": True, "patterns": patterns}


def launch(
    name: str,
    profile: OSProfile,
    *,
    adapters: AdapterRegistry | None = None,
    run: Callable = subprocess.run,
    sleep: Callable[[float], None] = time.sleep,
) -> dict:
    """Launch one client detached from this process.

    Stale processes of the same client are killed first; a client
    whose previous instance hung otherwise refuses to start.

    Returns:
        {"ok": True, "name", "pid"} or {"ok": False, "error"}
    """
    if name not in LAUNCH_ORDER:
        return {"ok": False, "error": f"Unknown launcher: {name}"}

    if adapters is None:
        adapters = build_adapter_registry(user=profile.user, is_root=profile.is_root)

    if name == STEAM:
        if shutil.which("steam") is None:
            return {"ok": False, "error": "Steam is not installed"}
        command, env = ["steam"], {}
    else:
        client = GAME_CLIENTS[name]
        exe = executable_path(profile.home, client)
        if not Path(exe).is_file():
            return {"ok": False, "error": f"{client['label']} not found at {exe}"}
        if not Path(profile.proton_wine).is_file():
            return {"ok": False, "error": "Proton wine not found; provision proton-ge first"}

        for pattern in client["kill_patterns"]:
            _pkill(pattern, run)
        sleep(KILL_GRACE_SECONDS)
        command, env = [profile.proton_wine, exe], proton_environment(profile.home, client)

    action = Action(
        id=f"launch:{name}",
        name=f"launch {_label(name)}",
        adapter="background",
        capability=GAME_CLIENTS[name]["capability"] if name != STEAM else STEAM,
        as_user=True,
        params={"command": command, "env": env},
    )
    receipt = adapters.execute_action(action)
    if receipt.failed:
        return {"ok": False, "name": name, "error": receipt.error or receipt.summary}

    logger.info("Launched %s", _label(name))
    return {"ok": True, "name": name, "label": _label(name), "pid": receipt.metadata.get("pid")}


def launch_all(
    profile: OSProfile,
    *,
    adapters: AdapterRegistry | None = None,
    run: Callable = subprocess.run,
    sleep: Callable[[float], None] = time.sleep,
) -> dict:
    """Launch every installed client, pausing between them.

    Returns:
        {"ok": bool, "results": [...]} (ok when at least one started)
    """
    installed = {entry["name"] for entry in launcher_status(profile)["launchers"] if entry["installed"]}
    results = []
    for name in LAUNCH_ORDER:
        if name not in installed:
            continue
        if results:
            sleep(ALL_PAUSE_SECONDS)
        results.append(launch(name, profile, adapters=adapters, run=run, sleep=sleep))

    return {"ok": any(r["ok"] for r in results), "results": results}
