"""
Execution records — the append-only history of a provisioning run.

One ExecutionRecord per attempted capability, one RunRecord per run.
Both are written to the NDJSON audit log and never mutated after
creation; ``entry_type`` discriminates them when reading back.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, Field

Outcome = Literal["success", "failure", "skipped", "unverified"]


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class ExecutionRecord(BaseModel):
    """Outcome of applying one capability."""

    entry_type: Literal["action"] = "action"
    run_id: str = ""
    capability: str
    label: str = ""
    timestamp: str = Field(default_factory=_now_iso)
    outcome: Outcome

    # Failure context: which step, and the tail of its stderr/stdout
    step_index: int | None = None
    step: str = ""
    summary: str = ""

    steps_run: int = 0
    steps_skipped: int = 0
    verified: bool | None = None    # post-action re-probe (None = not re-probed)
    duration_ms: int = 0


class RunRecord(BaseModel):
    """Summary of one provisioning run."""

    entry_type: Literal["run"] = "run"
    run_id: str = ""
    timestamp: str = Field(default_factory=_now_iso)
    status: str = ""                # ok, failed, empty, dry-run, config-error
    os_family: str = ""
    requested: list[str] = Field(default_factory=list)
    planned: list[str] = Field(default_factory=list)
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    unverified: int = 0
    failed_capability: str | None = None
    errors: list[str] = Field(default_factory=list)
    duration_ms: int = 0
