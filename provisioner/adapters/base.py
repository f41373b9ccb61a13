"""
Adapter base — how a compiled step reaches the system.

Every step kind the executor emits (shell command, file write,
download, release fetch, detached launch) is carried out by one
adapter. Adapters report through receipts and never raise.
"""

from __future__ import annotations

import shutil
from abc import ABC, abstractmethod

from pydantic import BaseModel

from provisioner.core.models.action import Action, Receipt


class ExecutionContext(BaseModel):
    """One action plus who the provisioner is and who it provisions for."""

    action: Action
    user: str = ""                  # target non-root user
    is_root: bool = False           # whether the provisioner itself runs as root
    dry_run: bool = False

    @property
    def needs_sudo(self) -> bool:
        """Privileged step while running unprivileged."""
        return self.action.privileged and not self.is_root

    @property
    def switches_user(self) -> bool:
        """User-scoped step while running as root."""
        return self.action.as_user and self.is_root

    @property
    def owner(self) -> str | None:
        """Whom files created by this step must belong to, if not root."""
        return self.user if self.switches_user and self.user else None


class Adapter(ABC):
    """Base class for step adapters.

    Subclasses set ``name`` and ``required_tools`` and implement
    ``validate`` and ``execute``. ``execute`` captures every failure
    in a ``Receipt.failure``; the registry still guards against a
    stray exception.
    """

    name: str = ""
    required_tools: tuple[str, ...] = ()

    def is_available(self) -> bool:
        """Every tool this adapter shells out to is on PATH."""
        return all(shutil.which(tool) for tool in self.required_tools)

    @abstractmethod
    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        """Check the action's params.

        Returns:
            (is_valid, error_message). error_message is empty if valid.
        """

    @abstractmethod
    def execute(self, context: ExecutionContext) -> Receipt:
        """Perform the action and return a receipt."""

    def _fail(self, context: ExecutionContext, error: str, **metadata) -> Receipt:
        return Receipt.failure(adapter=self.name, action_id=context.action.id, error=error, metadata=metadata)

    def _ok(self, context: ExecutionContext, output: str = "", **metadata) -> Receipt:
        return Receipt.success(adapter=self.name, action_id=context.action.id, output=output, metadata=metadata)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
