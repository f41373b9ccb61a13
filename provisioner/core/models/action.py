"""
Action and Receipt models — one compiled step and its outcome.

An Action is a capability step after placeholder expansion and
distro compilation; a Receipt is what the adapter reports back.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

REDACTED = "***"


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class Action(BaseModel):
    """A single system mutation to be executed by an adapter.

    Built by the executor from a capability step after template
    expansion. ``privileged`` steps run as root, ``as_user`` steps
    run as the target (non-root) user.
    """

    id: str                         # "<run_id>:<capability>:<step index>"
    name: str = ""                  # human-readable step label
    adapter: str                    # which adapter handles this
    capability: str = ""            # owning capability id
    params: dict[str, Any] = Field(default_factory=dict)
    privileged: bool = False
    as_user: bool = False
    timeout: int | None = None      # seconds, None = unbounded

    # Secret values that must never reach logs, receipts or the audit log
    secrets: list[str] = Field(default_factory=list, exclude=True, repr=False)

    def redact(self, text: str) -> str:
        """Replace every secret value in ``text`` with a placeholder."""
        for secret in self.secrets:
            if secret:
                text = text.replace(secret, REDACTED)
        return text


class Receipt(BaseModel):
    """What an adapter reports back for one action.

    ``status`` is the adapter's view only; whether a capability is
    satisfied is decided by re-probing, never by a receipt.
    """

    adapter: str
    action_id: str
    status: Literal["ok", "skipped", "failed"] = "ok"
    started_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0
    output: str = ""
    error: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    @property
    def failed(self) -> bool:
        return self.status == "failed"

    @property
    def summary(self) -> str:
        """Last lines of the error (or output), capped for execution records."""
        lines = (self.error or self.output or "").strip().splitlines()
        return "\n".join(lines[-5:])[-500:]

    def scrub(self, action: Action) -> Receipt:
        """Strip the action's secret values from output and error."""
        self.output = action.redact(self.output)
        if self.error:
            self.error = action.redact(self.error)
        return self

    @classmethod
    def success(cls, adapter: str, action_id: str, output: str = "", **kwargs: Any) -> Receipt:
        return cls(adapter=adapter, action_id=action_id, output=output, **kwargs)

    @classmethod
    def failure(cls, adapter: str, action_id: str, error: str, **kwargs: Any) -> Receipt:
        return cls(adapter=adapter, action_id=action_id, status="failed", error=error, **kwargs)

    @classmethod
    def skip(cls, adapter: str, action_id: str, reason: str = "", **kwargs: Any) -> Receipt:
        return cls(adapter=adapter, action_id=action_id, status="skipped", output=reason, **kwargs)
