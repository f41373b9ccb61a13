"""
Provision use case — resolve, plan, execute, report.

Every decision is taken before the first mutation: configuration,
OS profile, desired set, plan and secrets. Any ConfigError in that
phase ends the run with nothing attempted.
"""

from __future__ import annotations

import logging
import socket
import subprocess
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from provisioner.adapters import build_adapter_registry
from provisioner.adapters.registry import AdapterRegistry
from provisioner.core.config.loader import ConfigError, config_root, find_config_file, load_config
from provisioner.core.config.resolve import SecretPrompt, resolve_desired, resolve_secrets
from provisioner.core.engine.executor import ExecutionReport, Executor, generate_run_id
from provisioner.core.engine.planner import Plan, build_plan
from provisioner.core.engine.report import StatusReport, build_report
from provisioner.core.models.config import ProvisionConfig
from provisioner.core.models.probe import ProbeResult
from provisioner.core.models.profile import OSProfile
from provisioner.core.models.record import ExecutionRecord, RunRecord
from provisioner.core.observability.logging_config import bind_run
from provisioner.core.persistence.audit import AuditWriter
from provisioner.core.persistence.state_file import load_state, save_state
from provisioner.core.use_cases import session as session_mod
from provisioner.core.use_cases.session import Session

logger = logging.getLogger(__name__)


@dataclass
class ProvisionResult:
    """Result of a provisioning run (or a plan preview)."""

    profile: OSProfile | None = None
    desired: list[str] = field(default_factory=list)
    plan: Plan | None = None
    execution: ExecutionReport | None = None
    report: StatusReport | None = None
    error: str | None = None
    error_kind: str | None = None       # "config" or "action"

    @property
    def exit_code(self) -> int:
        if self.error_kind == "config":
            return 2
        if self.error_kind == "action":
            return 1
        return 0

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "desired": self.desired,
            "plan": self.plan.to_dict() if self.plan else None,
            "execution": self.execution.to_dict() if self.execution else None,
            "report": self.report.to_dict() if self.report else None,
        }
        if self.profile is not None:
            d["profile"] = self.profile.model_dump(mode="json")
        if self.error:
            d["error"] = self.error
            d["error_kind"] = self.error_kind
        return d


def prime_sudo() -> bool:
    """Ask for the sudo password once so later ``sudo -n`` steps run unattended."""
    try:
        return subprocess.run(["sudo", "-v"], check=False).returncode == 0
    except FileNotFoundError:
        return False


def probe_relevant(session: Session, desired: Iterable[str]) -> dict[str, ProbeResult]:
    """Probe the desired capabilities and their applicable dependencies."""
    caps = [
        session.registry.get(cid)
        for cid in session.registry.closure(desired)
    ]
    return session.probe_engine.probe_all(c for c in caps if c.is_applicable(session.profile))


def prepare_plan(
    session: Session,
    *,
    with_: Iterable[str] = (),
    without: Iterable[str] = (),
    run_id: str = "",
) -> tuple[list[str], Plan]:
    """Resolve the desired set and build the plan. Read-only.

    Raises:
        ConfigError: Unknown ids or a dependency cycle.
    """
    desired = resolve_desired(session.registry, session.config, session.profile, with_, without)
    probes = probe_relevant(session, desired)
    plan = build_plan(session.registry, desired, probes, session.profile, run_id=run_id)
    return desired, plan


def preview_plan(
    config_path: Path | None = None,
    *,
    with_: Iterable[str] = (),
    without: Iterable[str] = (),
    computer_type: str | None = None,
    gpu: str | None = None,
    user: str | None = None,
) -> ProvisionResult:
    """Show what ``apply`` would act on without touching the system."""
    result = ProvisionResult()
    try:
        session = session_mod.open_session(
            config_path, computer_type=computer_type, gpu=gpu, user=user,
        )
        result.profile = session.profile
        result.desired, result.plan = prepare_plan(session, with_=with_, without=without)
    except ConfigError as e:
        result.error = str(e)
        result.error_kind = "config"
    return result


def run_provision(
    config_path: Path | None = None,
    *,
    with_: Iterable[str] = (),
    without: Iterable[str] = (),
    computer_type: str | None = None,
    gpu: str | None = None,
    user: str | None = None,
    dry_run: bool = False,
    mock_mode: bool = False,
    env: Mapping[str, str] | None = None,
    prompt: SecretPrompt | None = None,
    adapters: AdapterRegistry | None = None,
    on_plan: Callable[[Plan], None] | None = None,
    on_record: Callable[[ExecutionRecord], None] | None = None,
) -> ProvisionResult:
    """Bring the system to the desired state.

    Args:
        config_path: provision.yml (auto-discovered when None).
        with_/without: CLI enable/disable overrides.
        dry_run: Plan and log every step, mutate nothing.
        mock_mode: Dispatch actions to mock adapters.
        env: Environment for secret lookup (default os.environ).
        prompt: Interactive secret prompt; None means non-interactive.
        adapters: Pre-built adapter registry (tests).
        on_plan/on_record: Progress callbacks for the CLI.

    Returns:
        ProvisionResult; ``error_kind`` is "config" when nothing was
        attempted and "action" when a capability failed.
    """
    result = ProvisionResult()
    run_id = generate_run_id()
    bind_run(run_id)

    # ── Resolution: nothing below this block may be skipped on error ──
    session: Session | None = None
    try:
        session = session_mod.open_session(
            config_path, computer_type=computer_type, gpu=gpu, user=user,
        )
        result.profile = session.profile
        result.desired, plan = prepare_plan(session, with_=with_, without=without, run_id=run_id)
        result.plan = plan
        secrets = resolve_secrets(session.registry, plan.entries, env=env, prompt=prompt)

        live = not (dry_run or mock_mode or adapters is not None)
        if live and not plan.is_empty and not session.profile.is_root and not prime_sudo():
            raise ConfigError("sudo authentication failed; privileged steps cannot run")
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        result.error = str(e)
        result.error_kind = "config"
        _audit_refusal(session, config_path, run_id, result)
        return result

    if on_plan is not None:
        on_plan(plan)

    if adapters is None:
        adapters = build_adapter_registry(
            user=session.profile.user,
            is_root=session.profile.is_root,
            mock_mode=mock_mode,
        )

    executor = Executor(
        session.registry,
        session.profile,
        session.distro,
        adapters,
        session.probe_engine,
        session.audit_writer(),
        fail_fast=session.config.fail_fast,
        secrets=secrets,
        timeouts=session.config.timeouts,
        settle_seconds=session.config.installer_settle_seconds,
        system_upgrade=session.config.system_upgrade,
        dry_run=dry_run,
        on_record=on_record,
    )
    execution = executor.run(plan)
    result.execution = execution

    # Final status comes from live probes, not from what the actions claimed
    acted = [r.capability for r in execution.records]
    probes_after = session.probe_engine.probe_all(
        session.registry.get(cid) for cid in dict.fromkeys([*result.desired, *acted])
    )
    result.report = build_report(session.registry, result.desired, probes_after, execution)

    if not dry_run:
        _persist(session, result)

    if execution.failed:
        failing = execution.record_for(execution.failed_capability) if execution.failed_capability else None
        if failing is None:
            result.error = f"{execution.failed} capability(ies) failed"
        elif failing.step_index is None:
            result.error = f"{failing.capability} failed: {failing.summary}"
        else:
            result.error = f"{failing.capability} failed at step {failing.step_index}: {failing.summary}"
        result.error_kind = "action"

    return result


def _audit_refusal(
    session: Session | None, config_path: Path | None, run_id: str, result: ProvisionResult,
) -> None:
    """Record a run that stopped on a configuration error."""
    if session is not None:
        writer = session.audit_writer()
    else:
        path = config_path or find_config_file()
        try:
            config = load_config(path, discover=False)
        except ConfigError:
            config = ProvisionConfig()
        writer = AuditWriter(session_mod.resolve_audit_path(config, config_root(path)))

    writer.write(RunRecord(
        run_id=run_id,
        status="config-error",
        os_family=result.profile.os_family if result.profile else "",
        requested=result.desired,
        errors=[result.error or ""],
    ))


def _persist(session: Session, result: ProvisionResult) -> None:
    """Record the run in .state/current.json. Failure here is not fatal."""
    state = load_state(session.state_path)
    state.hostname = socket.gethostname()
    state.os_family = session.profile.os_family
    run_id = result.execution.run_id if result.execution else None

    for row in result.report.rows if result.report else []:
        if row.outcome:
            state.set_capability_state(
                row.capability, status=row.state, last_outcome=row.outcome, last_run_id=run_id,
            )
        else:
            state.set_capability_state(row.capability, status=row.state)
    if result.execution is not None:
        state.last_run = result.execution.run_record

    try:
        save_state(state, session.state_path)
    except OSError as e:
        logger.warning("Could not save state: %s", e)
