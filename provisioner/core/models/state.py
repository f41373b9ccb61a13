"""
ProvisionState — what the last run observed.

Serialized to .state/current.json. Disposable: delete it and the next
run re-probes everything from scratch. Live probes are always the
authority; this file only answers "what happened last time".
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

from provisioner.core.models.record import RunRecord


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class CapabilityState(BaseModel):
    """Last known state of one capability."""

    id: str
    status: str = ""                # satisfied, partial, missing, failed, unverified
    last_outcome: str | None = None
    last_run_id: str | None = None
    updated_at: str = Field(default_factory=_now_iso)


class ProvisionState(BaseModel):
    """Root state document."""

    schema_version: int = 1

    hostname: str = ""
    os_family: str = ""

    created_at: str = Field(default_factory=_now_iso)
    updated_at: str = Field(default_factory=_now_iso)

    capabilities: dict[str, CapabilityState] = Field(default_factory=dict)
    last_run: RunRecord | None = None

    metadata: dict[str, Any] = Field(default_factory=dict)

    def touch(self) -> None:
        """Update the updated_at timestamp."""
        self.updated_at = _now_iso()

    def set_capability_state(self, cap_id: str, **kwargs: Any) -> None:
        """Update or create a capability state entry."""
        kwargs.setdefault("updated_at", _now_iso())
        if cap_id in self.capabilities:
            for key, value in kwargs.items():
                setattr(self.capabilities[cap_id], key, value)
        else:
            self.capabilities[cap_id] = CapabilityState(id=cap_id, **kwargs)
