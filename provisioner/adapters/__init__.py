"""Adapters — tool bindings for system mutations.

Public re-exports for convenient access.
"""

from provisioner.adapters.base import Adapter, ExecutionContext
from provisioner.adapters.mock import MockAdapter
from provisioner.adapters.registry import AdapterRegistry


def build_adapter_registry(*, user: str = "", is_root: bool = False, mock_mode: bool = False) -> AdapterRegistry:
    """Registry with every step adapter registered."""
    from provisioner.adapters.network.download import DownloadAdapter
    from provisioner.adapters.network.github_release import GitHubReleaseAdapter
    from provisioner.adapters.shell.background import BackgroundProcessAdapter
    from provisioner.adapters.shell.command import ShellCommandAdapter
    from provisioner.adapters.shell.filesystem import FilesystemAdapter

    registry = AdapterRegistry(mock_mode=mock_mode, user=user, is_root=is_root)
    for adapter in (
        ShellCommandAdapter(),
        FilesystemAdapter(),
        BackgroundProcessAdapter(),
        DownloadAdapter(),
        GitHubReleaseAdapter(),
    ):
        registry.register(adapter)
    return registry


__all__ = [
    "Adapter",
    "AdapterRegistry",
    "ExecutionContext",
    "MockAdapter",
    "build_adapter_registry",
]
