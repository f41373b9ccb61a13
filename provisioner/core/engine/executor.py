"""
Engine executor — apply a plan, one capability at a time.

For each plan entry the executor re-probes (a dependency may have
satisfied it already), compiles the capability's steps for the OS
family into Actions, dispatches them through the adapter registry
and records the outcome. Every mutation is guarded: ``unless``
checks skip steps whose effect is already present, so a re-run after
a partial failure converges instead of repeating work.

Flow:
    plan entry → re-probe → compile steps → dispatch → re-probe → record
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from provisioner.adapters.distro.base import DistroAdapter
from provisioner.adapters.registry import AdapterRegistry
from provisioner.core.engine.planner import Plan
from provisioner.core.engine.probe import ProbeEngine
from provisioner.core.engine.registry import CapabilityRegistry
from provisioner.core.models.action import Action, Receipt
from provisioner.core.models.capability import Capability, Step
from provisioner.core.models.config import Timeouts
from provisioner.core.models.profile import OSProfile
from provisioner.core.models.record import ExecutionRecord, RunRecord
from provisioner.core.persistence.audit import AuditWriter

logger = logging.getLogger(__name__)

_MARKERS = {"success": "✓", "failure": "✗", "skipped": "⊘", "unverified": "?"}


class StepCompileError(ValueError):
    """A step cannot be turned into an action on this system."""


@dataclass
class ExecutionReport:
    """Result of executing a plan."""

    run_id: str = ""
    records: list[ExecutionRecord] = field(default_factory=list)
    aborted: bool = False
    failed_capability: str | None = None
    not_attempted: list[str] = field(default_factory=list)
    dry_run: bool = False
    run_record: RunRecord | None = None

    def _count(self, outcome: str) -> int:
        return sum(1 for r in self.records if r.outcome == outcome)

    @property
    def succeeded(self) -> int:
        return self._count("success")

    @property
    def failed(self) -> int:
        return self._count("failure")

    @property
    def skipped(self) -> int:
        return self._count("skipped")

    @property
    def unverified(self) -> int:
        return self._count("unverified")

    @property
    def all_ok(self) -> bool:
        return self.failed == 0

    @property
    def status(self) -> str:
        if not self.records:
            return "empty"
        return "ok" if self.all_ok else "failed"

    def record_for(self, cap_id: str) -> ExecutionRecord | None:
        for record in self.records:
            if record.capability == cap_id:
                return record
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "status": self.status,
            "dry_run": self.dry_run,
            "aborted": self.aborted,
            "failed_capability": self.failed_capability,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
            "unverified": self.unverified,
            "not_attempted": self.not_attempted,
            "records": [r.model_dump(mode="json") for r in self.records],
        }


def generate_run_id() -> str:
    """Generate a unique run ID."""
    now = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
    short = uuid.uuid4().hex[:6]
    return f"run-{now}-{short}"


class Executor:
    """Runs plans against the system through the adapter registry.

    Strictly sequential: capabilities mutate shared, non-transactional
    system state (package database, group file, service manager).
    """

    def __init__(
        self,
        registry: CapabilityRegistry,
        profile: OSProfile,
        distro: DistroAdapter,
        adapters: AdapterRegistry,
        probe_engine: ProbeEngine,
        audit: AuditWriter | None = None,
        *,
        fail_fast: bool = True,
        secrets: Mapping[str, str] | None = None,
        timeouts: Timeouts | None = None,
        settle_seconds: float = 10.0,
        system_upgrade: bool = True,
        dry_run: bool = False,
        on_record: Callable[[ExecutionRecord], None] | None = None,
    ):
        self.registry = registry
        self.profile = profile
        self.distro = distro
        self.adapters = adapters
        self.probe_engine = probe_engine
        self.audit = audit
        self.fail_fast = fail_fast
        self.secrets = dict(secrets or {})
        self.timeouts = timeouts or Timeouts()
        self.settle_seconds = settle_seconds
        self.system_upgrade = system_upgrade
        self.dry_run = dry_run
        self.on_record = on_record
        self._refreshed = False

    # ── Plan execution ─────────────────────────────────────────

    def run(self, plan: Plan) -> ExecutionReport:
        """Execute every plan entry in order.

        With ``fail_fast`` the first failure aborts the rest of the
        plan. Without it, only entries that depend on a failed
        capability are held back. Either way they are listed in
        ``not_attempted``.
        """
        start = time.monotonic()
        report = ExecutionReport(run_id=plan.run_id, dry_run=self.dry_run)

        failed: set[str] = set()
        for cap_id in plan.entries:
            if report.aborted:
                report.not_attempted.append(cap_id)
                continue
            blocked = [d for d in self.registry.closure([cap_id]) if d in failed]
            if blocked:
                logger.warning("Not attempting %s: dependency %s failed", cap_id, ", ".join(blocked))
                report.not_attempted.append(cap_id)
                continue

            record = self.apply(cap_id, plan.run_id)
            report.records.append(record)
            self._write(record)

            logger.info("%s %s → %s", _MARKERS[record.outcome], cap_id, record.outcome)
            if self.on_record is not None:
                self.on_record(record)

            if record.outcome == "failure":
                failed.add(cap_id)
                report.failed_capability = report.failed_capability or cap_id
                if self.fail_fast:
                    report.aborted = True

        if report.not_attempted:
            logger.warning(
                "%s failed; not attempted: %s",
                report.failed_capability, ", ".join(report.not_attempted),
            )

        failing = report.record_for(report.failed_capability) if report.failed_capability else None
        report.run_record = RunRecord(
            run_id=plan.run_id,
            status="dry-run" if self.dry_run else report.status,
            os_family=self.profile.os_family,
            requested=list(plan.requested),
            planned=list(plan.entries),
            succeeded=report.succeeded,
            failed=report.failed,
            skipped=report.skipped,
            unverified=report.unverified,
            failed_capability=report.failed_capability,
            errors=[f"{failing.capability}: {failing.step}: {failing.summary}"] if failing else [],
            duration_ms=int((time.monotonic() - start) * 1000),
        )
        self._write(report.run_record)
        return report

    def _write(self, entry: ExecutionRecord | RunRecord) -> None:
        if self.audit is not None:
            self.audit.write(entry)

    # ── Single capability ──────────────────────────────────────

    def apply(self, cap_id: str, run_id: str = "") -> ExecutionRecord:
        """Bring one capability to its desired state."""
        cap = self.registry.get(cap_id)
        start = time.monotonic()

        def record(outcome: str, **kwargs: Any) -> ExecutionRecord:
            return ExecutionRecord(
                run_id=run_id,
                capability=cap.id,
                label=cap.label,
                outcome=outcome,
                duration_ms=int((time.monotonic() - start) * 1000),
                **kwargs,
            )

        # A dependency may have satisfied this capability already
        if self.probe_engine.probe(cap).satisfied:
            return record("skipped", summary="already satisfied")

        steps = cap.steps_for(self.profile.os_family)
        if steps is None:
            return record("failure", summary=f"no action defined for {self.profile.os_family}")

        expanded: list[Step] = []
        for step in steps:
            expanded.extend(self.distro.expand_step(step))

        changed = False
        ran = skipped = 0
        for index, step in enumerate(expanded):
            description = self.profile.expand(step.describe())

            if step.when_changed and not changed:
                skipped += 1
                continue
            if step.unless is not None and self.probe_engine.run_check(step.unless, cap.id):
                logger.debug("%s: step %d (%s) already done", cap.id, index, description)
                skipped += 1
                continue

            refresh = self._ensure_refreshed(run_id)
            if refresh is not None and refresh.failed:
                return record(
                    "failure", step="refresh package indexes",
                    summary=refresh.summary, steps_run=ran, steps_skipped=skipped,
                )

            try:
                action = self.compile(cap, step, index, run_id)
            except StepCompileError as e:
                return record(
                    "failure", step_index=index, step=description,
                    summary=str(e), steps_run=ran, steps_skipped=skipped,
                )

            logger.info("→ %s: %s", cap.id, description)
            receipt = self.adapters.execute_action(action, dry_run=self.dry_run)
            if receipt.failed and cap.interactive:
                logger.warning("%s step %d (%s) did not start: %s", cap.id, index, description, receipt.summary)
                return record(
                    "unverified", step_index=index, step=description,
                    summary=f"installer not confirmed: {receipt.summary}", steps_run=ran, steps_skipped=skipped,
                )
            if receipt.failed:
                logger.error("%s step %d (%s) failed: %s", cap.id, index, description, receipt.summary)
                return record(
                    "failure", step_index=index, step=description,
                    summary=receipt.summary, steps_run=ran, steps_skipped=skipped,
                )
            if receipt.status == "skipped" and not self.dry_run:
                # Adapter found the target already in place
                skipped += 1
                continue
            ran += 1
            changed = True

        if self.dry_run:
            return record(
                "skipped", summary=f"[dry-run] {ran} step(s) would run",
                steps_run=0, steps_skipped=skipped,
            )

        if cap.interactive:
            return record(
                "unverified", summary="action attempted, verify manually",
                steps_run=ran, steps_skipped=skipped,
            )

        after = self.probe_engine.probe(cap)
        if not after.satisfied:
            failing = ", ".join(after.failing_checks)
            logger.error("%s: steps succeeded but probe still fails: %s", cap.id, failing)
            return record(
                "failure", summary=f"steps succeeded but probe still fails: {failing}",
                steps_run=ran, steps_skipped=skipped, verified=False,
            )
        return record("success", steps_run=ran, steps_skipped=skipped, verified=True)

    def _ensure_refreshed(self, run_id: str) -> Receipt | None:
        """Refresh package indexes once per run, before the first mutation."""
        if self._refreshed or not self.system_upgrade:
            return None
        self._refreshed = True
        logger.info("→ refreshing package indexes (%s)", self.distro.package_manager)
        action = Action(
            id=f"{run_id}:system-refresh",
            name="refresh package indexes",
            adapter="shell",
            capability="system-refresh",
            params={"command": self.distro.refresh_command()},
            privileged=True,
            timeout=self.timeouts.command,
        )
        return self.adapters.execute_action(action, dry_run=self.dry_run)

    # ── Step compilation ───────────────────────────────────────

    def compile(self, cap: Capability, step: Step, index: int, run_id: str = "") -> Action:
        """Turn a capability step into a concrete Action.

        Raises:
            StepCompileError: The step cannot run on this system.
        """
        secret = self.secrets.get(cap.secret) if cap.secret else None
        extra = {"secret": secret} if secret else None

        def x(text: str) -> str:
            return self.profile.expand(text, extra)

        base: dict[str, Any] = {
            "id": f"{run_id}:{cap.id}:{index}",
            "name": self.profile.expand(step.describe()),
            "capability": cap.id,
            "privileged": step.privileged,
            "as_user": step.as_user,
            "timeout": self.timeouts.network if step.network else self.timeouts.command,
            "secrets": [secret] if secret else [],
        }
        env = {k: x(v) for k, v in step.env.items()}

        if step.kind == "packages":
            packages = step.packages or self.distro.packages_for(cap.id)
            if not packages:
                raise StepCompileError(f"no packages declared for {cap.id} on {self.distro.family}")
            return Action(
                **{**base, "privileged": True},
                adapter="shell",
                params={"command": self.distro.install_command(packages)},
            )

        if step.kind == "shell":
            command = x(step.command) if isinstance(step.command, str) else [x(a) for a in step.command]
            return Action(**base, adapter="shell", params={"command": command, "env": env})

        if step.kind == "write_file":
            params: dict[str, Any] = {"path": x(step.path), "content": x(step.content)}
            if step.mode is not None:
                params["mode"] = step.mode
            return Action(**base, adapter="filesystem", params=params)

        if step.kind == "download":
            return Action(**base, adapter="download", params={
                "url": x(step.url),
                "path": x(step.path),
                "mode": step.mode,
            })

        if step.kind == "github_release":
            return Action(**base, adapter="github_release", params={
                "repo": step.repo,
                "asset_suffix": step.asset_suffix,
                "dest": x(step.path),
                "link_name": step.link_name,
                "api_timeout": self.timeouts.github_api,
            })

        if step.kind == "launch":
            command = [x(a) for a in step.command] if isinstance(step.command, list) else x(step.command)
            return Action(**base, adapter="background", params={
                "command": command,
                "env": env,
                "settle_seconds": self.settle_seconds,
            })

        raise StepCompileError(f"'{step.kind}' steps are not supported on {self.distro.family}")
