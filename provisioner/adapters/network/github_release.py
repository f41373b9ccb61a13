"""
GitHub release adapter — install the latest release tarball.

Resolves the newest release of ``owner/name`` through the GitHub
API, downloads the first asset ending in the requested suffix,
unpacks it into a target directory and points a stable symlink at
the unpacked tree. Used for Proton-GE, which ships no distro
packages.
"""

from __future__ import annotations

import json
import logging
import os
import pwd
import shutil
import tarfile
import tempfile
import urllib.request
from pathlib import Path
from typing import Any

from provisioner.adapters.base import Adapter, ExecutionContext
from provisioner.adapters.network.download import USER_AGENT, fetch_to
from provisioner.core.models.action import Receipt

logger = logging.getLogger(__name__)


def resolve_latest_release(repo: str, *, asset_suffix: str, timeout: int = 15) -> dict[str, Any]:
    """Find the latest release asset of ``repo`` ending in ``asset_suffix``.

    Returns:
        ``{"ok": True, "url": ..., "version": ..., "asset_name": ...}``
        or ``{"ok": False, "error": ...}``.
    """
    api_url = f"https://api.github.com/repos/{repo}/releases/latest"
    try:
        req = urllib.request.Request(
            api_url,
            headers={
                "Accept": "application/vnd.github.v3+json",
                "User-Agent": USER_AGENT,
            },
        )
        with urllib.request.urlopen(req, timeout=timeout) as resp:
            data = json.loads(resp.read())
    except Exception as exc:
        return {"ok": False, "error": f"Failed to fetch release: {exc}"}

    release_tag = data.get("tag_name", "")
    for asset in data.get("assets", []):
        name = asset.get("name", "")
        if name.endswith(asset_suffix):
            return {
                "ok": True,
                "url": asset["browser_download_url"],
                "version": release_tag,
                "asset_name": name,
            }

    return {"ok": False, "error": f"No asset ending in '{asset_suffix}' in {repo} {release_tag}"}


def _safe_extract(archive: Path, dest: Path) -> str:
    """Unpack ``archive`` into ``dest``; return the top-level directory name."""
    with tarfile.open(archive) as tar:
        members = tar.getmembers()
        if not members:
            raise ValueError(f"Empty archive: {archive}")
        top = members[0].name.split("/", 1)[0]
        tar.extractall(dest, filter="data")
    return top


def _chown_tree(root: Path, user: str) -> None:
    shutil.chown(root, user=user, group=user)
    for dirpath, dirnames, filenames in os.walk(root):
        for name in dirnames + filenames:
            path = Path(dirpath) / name
            if not path.is_symlink():
                shutil.chown(path, user=user, group=user)


class GitHubReleaseAdapter(Adapter):
    """Download + unpack the latest GitHub release asset.

    Action params:
        repo (str): "owner/name".
        asset_suffix (str): Asset filename suffix, e.g. ".tar.gz".
        dest (str): Directory receiving the unpacked release.
        link_name (str): Symlink inside ``dest`` pointing at the release.
        api_timeout (int): Timeout for the metadata lookup.
    """

    name = "github_release"

    def __init__(self, resolve=resolve_latest_release, fetch=fetch_to):
        self._resolve = resolve
        self._fetch = fetch

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        params = context.action.params
        for key in ("repo", "asset_suffix", "dest"):
            if not params.get(key):
                return False, f"Missing required param: '{key}'"
        if "/" not in params["repo"]:
            return False, f"Expected 'owner/name', got {params['repo']!r}"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        action = context.action
        params = action.params
        repo = params["repo"]
        dest = Path(params["dest"])

        release = self._resolve(
            repo,
            asset_suffix=params["asset_suffix"],
            timeout=params.get("api_timeout", 15),
        )
        if not release["ok"]:
            return self._fail(context, release["error"], repo=repo)

        try:
            dest.mkdir(parents=True, exist_ok=True)
            with tempfile.TemporaryDirectory(dir=dest) as tmp:
                archive = Path(tmp) / release["asset_name"]
                logger.info("Fetching %s %s", repo, release["version"])
                self._fetch(release["url"], archive, timeout=action.timeout)
                top = _safe_extract(archive, dest)

            release_dir = dest / top
            owner = context.owner
            if owner:
                shutil.chown(dest, user=owner, group=owner)
                _chown_tree(release_dir, owner)

            link_name = params.get("link_name")
            if link_name:
                link = dest / link_name
                tmp_link = dest / f".{link_name}.new"
                tmp_link.unlink(missing_ok=True)
                tmp_link.symlink_to(top)
                os.replace(tmp_link, link)
                if owner:
                    pw = pwd.getpwnam(owner)
                    os.lchown(link, pw.pw_uid, pw.pw_gid)
        except Exception as e:
            return self._fail(context, f"Release install failed: {e}", repo=repo, version=release["version"])

        return self._ok(
            context,
            f"Installed {repo} {release['version']} into {release_dir}",
            repo=repo, version=release["version"], path=str(release_dir),
        )
