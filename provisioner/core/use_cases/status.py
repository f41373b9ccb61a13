"""
Status use case — live probes plus what the last run recorded.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from provisioner.core.config.loader import ConfigError
from provisioner.core.config.resolve import resolve_desired
from provisioner.core.engine.report import StatusReport, build_report
from provisioner.core.models.profile import OSProfile
from provisioner.core.models.state import ProvisionState
from provisioner.core.persistence.state_file import load_state
from provisioner.core.use_cases import session as session_mod


@dataclass
class StatusResult:
    """Current system status."""

    profile: OSProfile | None = None
    report: StatusReport | None = None
    state: ProvisionState | None = None
    config_path: Path | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        """Convert to a JSON-serializable dictionary."""
        result: dict = {}
        if self.error:
            result["error"] = self.error
            return result

        result["config_path"] = str(self.config_path) if self.config_path else None
        if self.profile:
            result["profile"] = self.profile.model_dump(mode="json")
        if self.report:
            result["report"] = self.report.to_dict()
        if self.state and self.state.last_run:
            result["last_run"] = self.state.last_run.model_dump(mode="json")
        return result


def get_status(
    config_path: Path | None = None,
    *,
    show_all: bool = False,
    computer_type: str | None = None,
    gpu: str | None = None,
    user: str | None = None,
) -> StatusResult:
    """Probe the desired capabilities (or every applicable one).

    Args:
        config_path: Optional explicit path to provision.yml.
        show_all: Report every capability applicable to this host,
            not only the enabled ones.

    Returns:
        StatusResult with a live report and the last-run state.
    """
    result = StatusResult()

    try:
        session = session_mod.open_session(
            config_path, computer_type=computer_type, gpu=gpu, user=user,
        )
        result.profile = session.profile
        result.config_path = session.config_path

        if show_all:
            ids = [c.id for c in session.registry.applicable(session.profile)]
        else:
            ids = resolve_desired(session.registry, session.config, session.profile)
    except ConfigError as e:
        result.error = str(e)
        return result

    probes = session.probe_engine.probe_all(session.registry.get(cid) for cid in ids)
    result.report = build_report(session.registry, ids, probes)
    result.state = load_state(session.state_path)
    return result
