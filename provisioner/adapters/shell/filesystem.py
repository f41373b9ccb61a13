"""
Filesystem adapter — config files and launcher scripts.

Writes into root-owned locations (``/etc/docker/daemon.json``) go
through ``sudo -n tee`` when the provisioner is not root; files
created in the user's home while running as root are chowned back
to the user. A write whose content is already in place is left
alone.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from pathlib import Path

from provisioner.adapters.base import Adapter, ExecutionContext
from provisioner.core.models.action import Receipt

logger = logging.getLogger(__name__)


def _current_content(target: Path) -> str | None:
    try:
        return target.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return None


class FilesystemAdapter(Adapter):
    """Write a file, creating its parent directories.

    Action params:
        path (str): Absolute target path.
        content (str): File content.
        mode (int): Optional permission bits.
    """

    name = "filesystem"

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        params = context.action.params
        path = params.get("path", "")
        if not path or not Path(path).is_absolute():
            return False, f"Path must be absolute: {path!r}"

        if "content" not in params:
            return False, "Missing required param: 'content'"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        params = context.action.params
        target = Path(params["path"])
        try:
            return self._write(context, target, params["content"], params.get("mode"))
        except (OSError, subprocess.SubprocessError) as e:
            detail = getattr(e, "stderr", None) or e
            return self._fail(context, f"Filesystem error: {detail}", path=str(target))

    def _write(self, ctx: ExecutionContext, target: Path, content: str, mode: int | None) -> Receipt:
        if _current_content(target) == content:
            return Receipt.skip(
                adapter=self.name, action_id=ctx.action.id,
                reason=f"{target} already up to date", metadata={"path": str(target)},
            )

        if ctx.needs_sudo:
            timeout = ctx.action.timeout
            self._sudo(["mkdir", "-p", str(target.parent)], timeout)
            self._sudo(["tee", str(target)], timeout, input=content)
            if mode is not None:
                self._sudo(["chmod", format(mode, "o"), str(target)], timeout)
        else:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")
            if mode is not None:
                os.chmod(target, mode)
            self._chown(ctx, target)

        logger.debug("Wrote %d bytes to %s", len(content), target)
        return self._ok(ctx, f"Written {len(content)} bytes to {target}", path=str(target), size=len(content))

    @staticmethod
    def _sudo(argv: list[str], timeout: int | None, input: str | None = None) -> None:
        subprocess.run(
            ["sudo", "-n", *argv],
            input=input, text=True, check=True,
            stdout=subprocess.DEVNULL, stderr=subprocess.PIPE, timeout=timeout,
        )

    @staticmethod
    def _chown(ctx: ExecutionContext, target: Path) -> None:
        if ctx.owner:
            shutil.chown(target, user=ctx.owner, group=ctx.owner)
