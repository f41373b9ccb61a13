"""
Probe engine — classify capabilities as satisfied / partial / missing.

Probes are read-only. A check that cannot run (missing tool, timeout,
unexpected exception, unknown kind) counts as not passing; it never
aborts the run.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping

from provisioner.adapters.distro.base import DistroAdapter
from provisioner.core.detection.checks import CHECKERS, Checker, ProbeContext
from provisioner.core.models.capability import Capability, Check
from provisioner.core.models.probe import CheckResult, ProbeResult
from provisioner.core.models.profile import OSProfile

logger = logging.getLogger(__name__)


class ProbeEngine:
    """Runs capability probes against the live system.

    ``checkers`` replaces the check-kind table (tests pass a fake
    table that simulates system state).
    """

    def __init__(
        self,
        profile: OSProfile,
        distro: DistroAdapter,
        checkers: Mapping[str, Checker] | None = None,
        timeout: int = 10,
    ):
        self.profile = profile
        self.distro = distro
        self.checkers = dict(CHECKERS if checkers is None else checkers)
        self.timeout = timeout

    def expand(self, check: Check) -> Check:
        """Substitute profile placeholders in a check's target/pattern."""
        return check.model_copy(update={
            "target": self.profile.expand(check.target),
            "pattern": self.profile.expand(check.pattern),
        })

    def run_check(self, check: Check, capability: str = "") -> bool:
        """Run one check. Never raises."""
        expanded = self.expand(check)
        checker = self.checkers.get(expanded.kind)
        if checker is None:
            logger.warning("No checker for kind %r (%s)", expanded.kind, capability)
            return False

        ctx = ProbeContext(
            profile=self.profile,
            distro=self.distro,
            capability=capability,
            timeout=self.timeout,
        )
        try:
            return bool(checker(ctx, expanded))
        except Exception as e:
            logger.debug("Check %s for %s raised: %s", expanded.describe(), capability, e)
            return False

    def probe(self, capability: Capability) -> ProbeResult:
        """Run every sub-check of a capability."""
        results = [
            CheckResult(check=self.expand(check).describe(), passed=self.run_check(check, capability.id))
            for check in capability.probes
        ]
        result = ProbeResult.from_checks(capability.id, results)
        logger.debug("Probe %s: %s %s", capability.id, result.status, result.failing_checks or "")
        return result

    def probe_all(self, capabilities: Iterable[Capability]) -> dict[str, ProbeResult]:
        return {cap.id: self.probe(cap) for cap in capabilities}
