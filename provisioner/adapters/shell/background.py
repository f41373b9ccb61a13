"""
Background adapter — fire-and-forget GUI processes.

Used for game-client installers: the installer is a GUI program
whose exit code says nothing about whether the user finished the
wizard, so the process is detached and the adapter only reports
that it started.
"""

from __future__ import annotations

import logging
import os
import subprocess
import time

from provisioner.adapters.base import Adapter, ExecutionContext
from provisioner.adapters.shell.command import elevate
from provisioner.core.models.action import Receipt

logger = logging.getLogger(__name__)

# Session variables a GUI process needs when launched via su/sudo
_DISPLAY_VARS = ("DISPLAY", "WAYLAND_DISPLAY", "XAUTHORITY", "DBUS_SESSION_BUS_ADDRESS", "XDG_RUNTIME_DIR")


class BackgroundProcessAdapter(Adapter):
    """Start a detached process and wait a settle period.

    Action params:
        command (list): argv to launch.
        env (dict): Extra environment.
        settle_seconds (float): Sleep after spawning (default: 0).
    """

    name = "background"

    def __init__(self, sleep=time.sleep):
        self._sleep = sleep

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        if not context.action.params.get("command"):
            return False, "Missing required param: 'command'"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        action = context.action
        params = action.params

        env = {k: os.environ[k] for k in _DISPLAY_VARS if k in os.environ}
        env.update(params.get("env") or {})
        argv = elevate(
            params["command"],
            as_user=action.as_user,
            user=context.user,
            is_root=context.is_root,
            env=env,
        )

        try:
            proc = subprocess.Popen(
                argv,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as e:
            return self._fail(context, f"Failed to launch: {e}")

        logger.info("Launched %s (pid %d)", action.name or argv[0], proc.pid)

        settle = float(params.get("settle_seconds", 0))
        if settle > 0:
            self._sleep(settle)

        return self._ok(context, f"Started pid {proc.pid}", pid=proc.pid)
