"""
Download adapter — fetch a URL to a local path.

Downloads stream to a temporary sibling file and are renamed into
place on completion, so an interrupted transfer never leaves a
truncated file where a probe would mistake it for a finished one.
"""

from __future__ import annotations

import logging
import os
import shutil
import urllib.request
from pathlib import Path

from provisioner.adapters.base import Adapter, ExecutionContext
from provisioner.core.models.action import Receipt

logger = logging.getLogger(__name__)

USER_AGENT = "workstation-provisioner/1.0"


def _fmt_size(n: int) -> str:
    for unit in ("B", "KB", "MB", "GB"):
        if n < 1024:
            return f"{n:.0f} {unit}"
        n /= 1024
    return f"{n:.1f} TB"


def fetch_to(url: str, dest: Path, *, timeout: int | None, headers: dict[str, str] | None = None) -> int:
    """Stream ``url`` into ``dest`` atomically. Returns bytes written.

    Raises on any network or filesystem error; callers turn that
    into a failed receipt.
    """
    dest.parent.mkdir(parents=True, exist_ok=True)
    tmp = dest.with_name(dest.name + ".part")

    req = urllib.request.Request(url, headers={"User-Agent": USER_AGENT, **(headers or {})})
    try:
        with urllib.request.urlopen(req, timeout=timeout) as resp, open(tmp, "wb") as f:
            total = int(resp.headers.get("Content-Length", 0) or 0)
            downloaded = 0
            last_progress = -1
            while True:
                chunk = resp.read(65536)
                if not chunk:
                    break
                f.write(chunk)
                downloaded += len(chunk)

                # Progress tracking (log every 10%)
                if total > 0:
                    pct = int(downloaded * 100 / total)
                    if pct >= last_progress + 10:
                        last_progress = pct
                        logger.debug(
                            "Download progress: %d%% (%s / %s)",
                            pct, _fmt_size(downloaded), _fmt_size(total),
                        )
        os.replace(tmp, dest)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise
    return downloaded


class DownloadAdapter(Adapter):
    """Fetch a URL into a file.

    Action params:
        url (str): Source URL.
        path (str): Absolute destination path.
        mode (int): Optional permission bits.
    """

    name = "download"

    def __init__(self, fetch=fetch_to):
        self._fetch = fetch

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        params = context.action.params
        if not params.get("url"):
            return False, "Missing required param: 'url'"
        if not params.get("path"):
            return False, "Missing required param: 'path'"
        if not str(params["url"]).startswith(("https://", "http://")):
            return False, f"Unsupported URL scheme: {params['url']}"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        action = context.action
        url = action.params["url"]
        dest = Path(action.params["path"])

        logger.info("Downloading %s -> %s", url, dest)
        try:
            size = self._fetch(url, dest, timeout=action.timeout)
            mode = action.params.get("mode")
            if mode is not None:
                os.chmod(dest, mode)
            if context.owner:
                shutil.chown(dest, user=context.owner, group=context.owner)
        except Exception as e:
            return self._fail(context, f"Download failed: {e}", url=url, path=str(dest))

        return self._ok(context, f"Downloaded {_fmt_size(size)} to {dest}", url=url, path=str(dest), size_bytes=size)
