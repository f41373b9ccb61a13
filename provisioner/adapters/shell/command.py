"""
Shell command adapter — execute commands and capture output.

This is the most fundamental adapter: package installs, service
management and AUR builds all end up here. Privilege handling is
centralised in ``elevate`` so the executor never builds sudo/su
prefixes itself.
"""

from __future__ import annotations

import logging
import shlex
import subprocess

from provisioner.adapters.base import Adapter, ExecutionContext
from provisioner.core.models.action import Receipt

logger = logging.getLogger(__name__)


def _with_env(command: str | list[str], env: dict[str, str] | None) -> str | list[str]:
    if not env:
        return command
    if isinstance(command, list):
        return ["env", *(f"{k}={v}" for k, v in env.items()), *command]
    prefix = " ".join(f"{k}={shlex.quote(v)}" for k, v in env.items())
    return f"{prefix} {command}"


def elevate(
    command: str | list[str],
    *,
    privileged: bool = False,
    as_user: bool = False,
    user: str = "",
    is_root: bool = False,
    env: dict[str, str] | None = None,
) -> list[str]:
    """Build the argv that runs ``command`` with the right identity.

    - privileged and not root: ``sudo -n`` (credentials are primed up
      front, so this never prompts mid-run)
    - as_user and root: ``su <user> -c``
    - otherwise the command runs as the current process

    String commands go through ``sh -c``; list commands are exec'd
    directly. Extra environment is folded into the command itself so
    it survives sudo/su.
    """
    command = _with_env(command, env)

    if privileged and not is_root:
        if isinstance(command, list):
            return ["sudo", "-n", *command]
        return ["sudo", "-n", "sh", "-c", command]

    if as_user and is_root and user and user != "root":
        text = command if isinstance(command, str) else shlex.join(command)
        return ["su", user, "-c", text]

    if isinstance(command, list):
        return list(command)
    return ["sh", "-c", command]


class ShellCommandAdapter(Adapter):
    """Run one command and capture its output.

    Action params:
        command (str | list): The command to execute.
        env (dict): Extra environment for the command.
    """

    name = "shell"
    required_tools = ("sh",)

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        if not context.action.params.get("command"):
            return False, "Missing required param: 'command'"
        if context.switches_user and not context.user:
            return False, "as_user step without a target user"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        action = context.action
        params = action.params
        argv = elevate(
            params["command"],
            privileged=action.privileged,
            as_user=action.as_user,
            user=context.user,
            is_root=context.is_root,
            env=params.get("env"),
        )
        display = action.redact(shlex.join(argv))
        logger.debug("Executing: %s", display)

        try:
            result = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                timeout=action.timeout,
            )
        except subprocess.TimeoutExpired:
            return self._fail(context, f"Command timed out after {action.timeout}s", command=display, timeout=action.timeout)
        except FileNotFoundError as e:
            return self._fail(context, f"Command not found: {e.filename}", command=display)
        except OSError as e:
            return self._fail(context, f"Command execution error: {e}", command=display)

        stdout = action.redact(result.stdout.strip()[-2000:])
        stderr = action.redact(result.stderr.strip()[-2000:])

        if result.returncode == 0:
            return self._ok(context, stdout, command=display, return_code=0, stderr=stderr)

        # sudo -n refuses instead of prompting when credentials lapsed
        if context.needs_sudo and "a password is required" in stderr:
            stderr = "sudo credentials expired (re-run to re-authenticate)"

        return self._fail(
            context,
            stderr or f"Command exited with code {result.returncode}",
            command=display,
            return_code=result.returncode,
            stdout=stdout,
        )
