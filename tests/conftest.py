"""
Shared test fixtures and configuration.

Nothing here touches the real system: checks are answered by a
``FakeSystem`` and actions are dispatched to a ``MockAdapter`` whose
side effect mutates that fake system.
"""

from __future__ import annotations

from pathlib import Path
from typing import get_args

import pytest

from provisioner.adapters.base import ExecutionContext
from provisioner.adapters.distro import FedoraAdapter
from provisioner.adapters.mock import MockAdapter
from provisioner.adapters.registry import AdapterRegistry
from provisioner.core.detection.checks import ProbeContext
from provisioner.core.engine.probe import ProbeEngine
from provisioner.core.engine.registry import CapabilityRegistry
from provisioner.core.models.capability import Check, CheckKind
from provisioner.core.models.profile import OSProfile


class FakeSystem:
    """Simulated machine state.

    A check passes when its capability is marked satisfied, or when
    its description is listed in ``passing``. Running any action of a
    capability marks it satisfied, unless the capability is in
    ``broken`` (actions "succeed" but change nothing).
    """

    def __init__(self) -> None:
        self.satisfied: set[str] = set()
        self.passing: set[str] = set()
        self.broken: set[str] = set()
        self.checks_run: list[tuple[str, str]] = []

    def check(self, ctx: ProbeContext, check: Check) -> bool:
        self.checks_run.append((ctx.capability, check.describe()))
        return ctx.capability in self.satisfied or check.describe() in self.passing

    def checkers(self) -> dict:
        return {kind: self.check for kind in get_args(CheckKind)}

    def apply(self, ctx: ExecutionContext) -> None:
        cap = ctx.action.capability
        if cap and cap not in self.broken:
            self.satisfied.add(cap)


def make_profile(**overrides) -> OSProfile:
    values = {
        "os_id": "fedora",
        "os_family": "fedora",
        "os_version": "41",
        "gpu": "none",
        "computer_type": "workstation",
        "user": "tester",
        "home": "/home/tester",
        "is_root": False,
    }
    values.update(overrides)
    return OSProfile(**values)


def make_registry(table: dict) -> CapabilityRegistry:
    return CapabilityRegistry.from_table(table)


def simple_cap(*deps: str, **extra) -> dict:
    """A capability with one shell step and one command probe."""
    spec = {
        "actions": {"_default": [{"kind": "shell", "command": ["true"]}]},
        "probes": [{"kind": "command", "target": "tool"}],
        "depends_on": list(deps),
    }
    spec.update(extra)
    return spec


@pytest.fixture
def fake_system() -> FakeSystem:
    return FakeSystem()


@pytest.fixture
def profile() -> OSProfile:
    return make_profile()


@pytest.fixture
def distro() -> FedoraAdapter:
    return FedoraAdapter()


@pytest.fixture
def probe_engine(profile, distro, fake_system) -> ProbeEngine:
    return ProbeEngine(profile, distro, checkers=fake_system.checkers())


@pytest.fixture
def mock_adapter(fake_system) -> MockAdapter:
    return MockAdapter(side_effect=fake_system.apply)


@pytest.fixture
def adapters(mock_adapter, profile) -> AdapterRegistry:
    registry = AdapterRegistry(user=profile.user, is_root=profile.is_root)
    registry.set_mock_mode(True, mock_adapter)
    return registry


@pytest.fixture
def tmp_state_dir(tmp_path: Path) -> Path:
    """Return a temporary directory for state files."""
    state_dir = tmp_path / "state"
    state_dir.mkdir()
    return state_dir


HOST_TABLE = {
    "base": simple_cap(),
    "engine": simple_cap("base", notes=["log out and back in for group changes"]),
    "vpn": simple_cap(secret="vpn_key", default_enabled=False),
    "game": simple_cap(tags=["gaming"]),
}


@pytest.fixture
def host(monkeypatch, tmp_path, fake_system, adapters) -> Path:
    """A faked machine behind the session seams; returns its provision.yml.

    The built-in capability table is swapped for ``HOST_TABLE``, the
    profile comes from config overrides, checks hit ``fake_system`` and
    the adapter registry is the shared mock.
    """
    from provisioner.core.use_cases import provision
    from provisioner.core.use_cases import session as session_mod

    registry = make_registry(HOST_TABLE)

    def detect(config):
        gpu = "none" if config.gpu == "auto" else config.gpu
        return make_profile(computer_type=config.computer_type, gpu=gpu, user=config.user or "tester")

    monkeypatch.setattr(session_mod, "load_registry", lambda: registry)
    monkeypatch.setattr(session_mod, "detect_profile", detect)
    monkeypatch.setattr(session_mod, "checkers", fake_system.checkers())
    monkeypatch.setattr(provision, "build_adapter_registry", lambda **kw: adapters)

    config = tmp_path / "provision.yml"
    config.write_text("system_upgrade: false\n")
    return config
