"""
Probe results — classification of a capability's current state.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

ProbeStatus = Literal["satisfied", "missing", "partial"]


class CheckResult(BaseModel):
    """Outcome of one probe sub-check."""

    check: str
    passed: bool


class ProbeResult(BaseModel):
    """Satisfied only when every sub-check passes.

    Some-but-not-all passing is ``partial``; the capability is still
    scheduled for (idempotent) re-execution.
    """

    capability: str
    status: ProbeStatus
    checks: list[CheckResult] = Field(default_factory=list)

    @property
    def satisfied(self) -> bool:
        return self.status == "satisfied"

    @property
    def failing_checks(self) -> list[str]:
        return [c.check for c in self.checks if not c.passed]

    @classmethod
    def from_checks(cls, capability: str, checks: list[CheckResult]) -> ProbeResult:
        passed = sum(1 for c in checks if c.passed)
        if checks and passed == len(checks):
            status: ProbeStatus = "satisfied"
        elif passed:
            status = "partial"
        else:
            status = "missing"
        return cls(capability=capability, status=status, checks=checks)
