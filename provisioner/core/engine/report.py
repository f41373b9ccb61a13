"""
Reporting — the final, authoritative status table.

Built from a fresh probe of every requested capability after the
plan ran (or was empty), so it reflects live system state rather
than what the actions claimed.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from provisioner.core.engine.executor import ExecutionReport
from provisioner.core.engine.registry import CapabilityRegistry
from provisioner.core.models.probe import ProbeResult

# Row states, in display order of severity
SATISFIED = "satisfied"
PARTIAL = "partial"
MISSING = "missing"
FAILED = "failed"
UNVERIFIED = "unverified"


@dataclass
class StatusRow:
    capability: str
    label: str
    state: str
    outcome: str | None = None          # this run's execution outcome, if acted on
    failing_checks: list[str] = field(default_factory=list)
    detail: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "capability": self.capability,
            "label": self.label,
            "state": self.state,
            "outcome": self.outcome,
            "failing_checks": self.failing_checks,
            "detail": self.detail,
        }


@dataclass
class StatusReport:
    rows: list[StatusRow] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)

    @property
    def all_satisfied(self) -> bool:
        return all(r.state == SATISFIED for r in self.rows)

    def count(self, state: str) -> int:
        return sum(1 for r in self.rows if r.state == state)

    def to_dict(self) -> dict[str, Any]:
        return {
            "all_satisfied": self.all_satisfied,
            "rows": [r.to_dict() for r in self.rows],
            "notes": self.notes,
        }


def _row_state(probe: ProbeResult | None, outcome: str | None) -> str:
    if probe is not None and probe.satisfied:
        return SATISFIED
    if outcome == "failure":
        return FAILED
    if outcome == "unverified":
        return UNVERIFIED
    if probe is not None and probe.status == "partial":
        return PARTIAL
    return MISSING


def build_report(
    registry: CapabilityRegistry,
    requested: Iterable[str],
    probes_after: Mapping[str, ProbeResult],
    execution: ExecutionReport | None = None,
) -> StatusReport:
    """Combine live probes with this run's outcomes.

    Capabilities pulled in as dependencies are reported too, after
    the requested ones. Next-step notes come from every capability
    that was acted on and is not in a failed state.
    """
    ids = list(dict.fromkeys(requested))
    if execution is not None:
        ids += [r.capability for r in execution.records if r.capability not in ids]

    report = StatusReport()
    for cap_id in ids:
        cap = registry.get(cap_id)
        probe = probes_after.get(cap_id)
        record = execution.record_for(cap_id) if execution is not None else None
        outcome = record.outcome if record is not None else None
        state = _row_state(probe, outcome)

        detail = ""
        if state == FAILED and record is not None:
            detail = f"{record.step}: {record.summary}" if record.step else record.summary
        elif state == UNVERIFIED:
            detail = record.summary if record is not None and record.summary else "action attempted, verify manually"
        elif execution is not None and cap_id in execution.not_attempted:
            detail = "not attempted (earlier failure)"

        report.rows.append(StatusRow(
            capability=cap_id,
            label=cap.label,
            state=state,
            outcome=outcome,
            failing_checks=probe.failing_checks if probe is not None and state != SATISFIED else [],
            detail=detail,
        ))

        if outcome in ("success", "unverified"):
            for note in cap.notes:
                if note not in report.notes:
                    report.notes.append(note)

    return report
