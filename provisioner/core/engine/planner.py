"""
Plan builder — decide what to act on, in what order.

Pure: given the registry, the desired set, probe results and the OS
profile, the plan is fully determined. No system access.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from provisioner.core.engine.dag import topological_order
from provisioner.core.engine.registry import CapabilityRegistry
from provisioner.core.models.probe import ProbeResult
from provisioner.core.models.profile import OSProfile

logger = logging.getLogger(__name__)


@dataclass
class Plan:
    """Ordered capability ids to act on in one run."""

    run_id: str
    entries: list[str] = field(default_factory=list)
    requested: list[str] = field(default_factory=list)
    # capability id -> why it is in the plan
    reasons: dict[str, str] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.entries

    def __iter__(self):
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "requested": self.requested,
            "entries": [{"capability": c, "reason": self.reasons.get(c, "")} for c in self.entries],
        }


def _status(probes: Mapping[str, ProbeResult], cap_id: str) -> str:
    # No probe result means nothing is known: treat as missing
    result = probes.get(cap_id)
    return result.status if result is not None else "missing"


def build_plan(
    registry: CapabilityRegistry,
    desired: Iterable[str],
    probes: Mapping[str, ProbeResult],
    profile: OSProfile,
    run_id: str = "",
) -> Plan:
    """Compute the ordered plan.

    1. keep desired capabilities that are not satisfied
    2. pull in their unsatisfied transitive dependencies (satisfied
       dependencies are not re-run, but their own dependencies are
       still inspected)
    3. topologically sort, ties broken by declaration order

    Dependencies that do not apply to the profile are skipped: they
    are never scheduled and their own dependencies are not followed.

    Raises:
        ConfigError: Unknown capability id.
        CyclicDependencyError: The selected subgraph has a cycle.
    """
    requested = list(dict.fromkeys(desired))
    for cap_id in requested:
        registry.get(cap_id)

    selected: dict[str, str] = {}
    for cap_id in requested:
        status = _status(probes, cap_id)
        if status != "satisfied":
            selected[cap_id] = "requested" if status == "missing" else "requested (partial)"

    # Expand through the dependency graph
    seen: set[str] = set()
    stack = [(dep, cap_id) for cap_id in selected for dep in registry.get(cap_id).depends_on]
    while stack:
        dep_id, parent = stack.pop()
        if dep_id in seen:
            continue
        seen.add(dep_id)

        dep = registry.get(dep_id)
        reason = dep.applicability_reason(profile)
        if reason is not None:
            logger.debug("Skipping dependency %s of %s: %s", dep_id, parent, reason)
            continue

        if _status(probes, dep_id) != "satisfied" and dep_id not in selected:
            selected[dep_id] = f"dependency of {parent}"
        stack.extend((d, dep_id) for d in dep.depends_on)

    order = topological_order(selected, registry.graph, {c: registry.index_of(c) for c in selected})
    plan = Plan(run_id=run_id, entries=order, requested=requested, reasons=selected)

    logger.info("Plan %s: %d of %d requested capabilities need work", run_id or "-", len(plan), len(requested))
    return plan
