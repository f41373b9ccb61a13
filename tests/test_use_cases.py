"""
Tests for the use cases — provision, plan preview, status, config check.

Run against a faked host (see the ``host`` fixture): real sessions,
planner and executor, with probes and adapters simulated.
"""

import json

import pytest

from conftest import make_profile
from provisioner.core.config.loader import ConfigError
from provisioner.core.persistence.audit import AuditWriter
from provisioner.core.persistence.state_file import default_state_path, load_state
from provisioner.core.use_cases import provision
from provisioner.core.use_cases import session as session_mod
from provisioner.core.use_cases.config_check import check_config
from provisioner.core.use_cases.provision import preview_plan, run_provision
from provisioner.core.use_cases.status import get_status


class TestRunProvision:
    def test_fresh_host(self, host, adapters):
        result = run_provision(host, adapters=adapters, env={})

        assert result.exit_code == 0, result.error
        assert result.desired == ["base", "engine", "game"]
        assert result.plan.entries == ["base", "engine", "game"]
        assert result.report.all_satisfied
        assert result.report.notes == ["log out and back in for group changes"]

    def test_idempotent_second_run(self, host, adapters, mock_adapter):
        run_provision(host, adapters=adapters, env={})
        calls = mock_adapter.call_count

        again = run_provision(host, adapters=adapters, env={})

        assert again.exit_code == 0
        assert again.plan.is_empty
        assert mock_adapter.call_count == calls
        assert again.report.all_satisfied
        assert again.report.notes == []

    def test_failure_aborts_remaining(self, host, adapters, mock_adapter):
        mock_adapter.set_failure("base", "No match for argument: base")

        result = run_provision(host, adapters=adapters, env={})

        assert result.exit_code == 1
        assert result.error_kind == "action"
        assert result.error == "base failed at step 0: No match for argument: base"
        assert result.execution.not_attempted == ["engine", "game"]
        states = {r.capability: r.state for r in result.report.rows}
        assert states == {"base": "failed", "engine": "missing", "game": "missing"}

    def test_rerun_after_failure_converges(self, host, adapters, mock_adapter):
        mock_adapter.set_failure("engine")
        run_provision(host, adapters=adapters, env={})
        mock_adapter.reset()

        result = run_provision(host, adapters=adapters, env={})

        assert result.exit_code == 0
        assert result.plan.entries == ["engine", "game"]

    def test_server_override_drops_gaming(self, host, adapters):
        result = run_provision(host, adapters=adapters, env={}, computer_type="server")
        assert "game" not in result.desired
        assert result.profile.computer_type == "server"

    def test_without(self, host, adapters):
        result = run_provision(host, adapters=adapters, env={}, without=["game"])
        assert result.plan.entries == ["base", "engine"]


class TestResolutionErrors:
    def test_unknown_capability(self, host, adapters, mock_adapter):
        result = run_provision(host, adapters=adapters, with_=["nope"], env={})
        assert result.exit_code == 2
        assert "nope" in result.error
        assert mock_adapter.call_count == 0

    def test_missing_secret_before_any_mutation(self, host, adapters, mock_adapter):
        result = run_provision(host, adapters=adapters, with_=["vpn"], env={})
        assert result.exit_code == 2
        assert "VPN_KEY" in result.error
        assert mock_adapter.call_count == 0

        entries = AuditWriter(host.parent / ".state" / "audit.ndjson").read_all()
        assert len(entries) == 1
        assert entries[0].entry_type == "run"
        assert entries[0].status == "config-error"
        assert entries[0].os_family == "fedora"
        assert "VPN_KEY" in entries[0].errors[0]

    def test_secret_from_env(self, host, adapters, mock_adapter):
        result = run_provision(host, adapters=adapters, with_=["vpn"], env={"VPN_KEY": "k-123"})
        assert result.exit_code == 0
        assert mock_adapter.calls_for("vpn")[0].action.secrets == ["k-123"]

    def test_secret_from_prompt(self, host, adapters):
        asked = []
        result = run_provision(
            host, adapters=adapters, with_=["vpn"], env={},
            prompt=lambda name, cap: asked.append(name) or "k-456",
        )
        assert result.exit_code == 0
        assert asked == ["vpn_key"]

    def test_satisfied_capability_never_asks_for_secret(self, host, adapters, fake_system):
        fake_system.satisfied.add("vpn")
        result = run_provision(host, adapters=adapters, with_=["vpn"], env={})
        assert result.exit_code == 0

    def test_invalid_config_file(self, host, adapters):
        host.write_text("computer_type: mainframe\n")
        result = run_provision(host, adapters=adapters)
        assert result.error_kind == "config"
        assert result.profile is None

        entries = AuditWriter(host.parent / ".state" / "audit.ndjson").read_all()
        assert [e.status for e in entries] == ["config-error"]
        assert "computer_type" in entries[0].errors[0]

    def test_sudo_refused(self, host, monkeypatch, mock_adapter):
        monkeypatch.setattr(provision, "prime_sudo", lambda: False)
        result = run_provision(host, env={})
        assert result.exit_code == 2
        assert "sudo authentication failed" in result.error
        assert mock_adapter.call_count == 0

    def test_sudo_not_needed_for_empty_plan(self, host, monkeypatch, fake_system):
        fake_system.satisfied |= {"base", "engine", "game"}
        monkeypatch.setattr(provision, "prime_sudo", lambda: pytest.fail("sudo primed for an empty plan"))
        assert run_provision(host, env={}).exit_code == 0


class TestPersistence:
    def test_state_and_audit_written(self, host, adapters):
        result = run_provision(host, adapters=adapters, env={})

        state = load_state(default_state_path(host.parent))
        assert state.os_family == "fedora"
        assert state.capabilities["engine"].status == "satisfied"
        assert state.capabilities["engine"].last_run_id == result.execution.run_id
        assert state.last_run.status == "ok"

        entries = AuditWriter(host.parent / ".state" / "audit.ndjson").read_all()
        assert len(entries) == 4
        assert entries[-1].entry_type == "run"

    def test_untouched_capability_keeps_last_run(self, host, adapters):
        first = run_provision(host, adapters=adapters, env={})
        run_provision(host, adapters=adapters, env={})

        state = load_state(default_state_path(host.parent))
        assert state.capabilities["base"].last_run_id == first.execution.run_id
        assert state.last_run.status == "empty"

    def test_custom_audit_file(self, host, adapters, tmp_path):
        host.write_text("system_upgrade: false\naudit_file: logs/history.ndjson\n")
        run_provision(host, adapters=adapters, env={})
        assert (tmp_path / "logs" / "history.ndjson").is_file()

    def test_dry_run_persists_nothing(self, host, adapters, mock_adapter):
        result = run_provision(host, adapters=adapters, env={}, dry_run=True)
        assert result.exit_code == 0
        assert mock_adapter.call_count == 0
        assert {r.outcome for r in result.execution.records} == {"skipped"}
        assert not default_state_path(host.parent).exists()

    def test_to_dict_is_json(self, host, adapters):
        result = run_provision(host, adapters=adapters, with_=["vpn"], env={"VPN_KEY": "k-789"})
        text = json.dumps(result.to_dict())
        assert "k-789" not in text
        assert '"profile"' in text


class TestPreviewAndStatus:
    def test_preview_changes_nothing(self, host, mock_adapter):
        result = preview_plan(host, with_=["vpn"])
        assert result.plan.entries == ["base", "engine", "vpn", "game"]
        assert result.plan.reasons["base"] == "requested"
        assert mock_adapter.call_count == 0

    def test_preview_config_error(self, host):
        result = preview_plan(host, with_=["vpn"], without=["vpn"])
        assert result.exit_code == 2

    def test_status_after_run(self, host, adapters):
        run_provision(host, adapters=adapters, env={})
        result = get_status(host)
        assert result.error is None
        assert result.report.all_satisfied
        assert result.state.last_run.status == "ok"
        assert result.to_dict()["last_run"]["status"] == "ok"

    def test_status_all_includes_opt_in(self, host):
        ids = [r.capability for r in get_status(host, show_all=True).report.rows]
        assert "vpn" in ids
        assert "vpn" not in [r.capability for r in get_status(host).report.rows]

    def test_status_config_error(self, host):
        host.write_text("- not a mapping\n")
        result = get_status(host)
        assert result.error
        assert result.to_dict() == {"error": result.error}


class TestConfigCheck:
    @pytest.fixture
    def detect(self, monkeypatch):
        monkeypatch.setattr(session_mod, "detect_profile", lambda config: make_profile(gpu="none"))

    def test_valid(self, tmp_path, detect):
        path = tmp_path / "provision.yml"
        path.write_text("capabilities:\n  jq: true\n")
        result = check_config(path)
        assert result.valid
        assert result.to_dict()["enabled"] == ["jq"]

    def test_unknown_capability(self, tmp_path, detect):
        path = tmp_path / "provision.yml"
        path.write_text("capabilities:\n  nope: true\n")
        result = check_config(path)
        assert not result.valid
        assert result.errors == ["Unknown capabilities: nope"]

    def test_host_warnings(self, tmp_path, detect):
        path = tmp_path / "provision.yml"
        path.write_text("capabilities:\n  gpu-driver: true\n  vpn-client: true\n")
        result = check_config(path)
        assert result.valid
        assert any("gpu-driver" in w and "skipped" in w for w in result.warnings)
        assert any("TAILSCALE_AUTH_KEY" in w for w in result.warnings)

    def test_invalid_file(self, tmp_path):
        path = tmp_path / "provision.yml"
        path.write_text("fail_fast: maybe\n")
        result = check_config(path)
        assert not result.valid
        assert result.errors[0].startswith("Invalid configuration")

    def test_undetectable_host_is_warning(self, tmp_path, monkeypatch):
        def fail(config):
            raise ConfigError("Unsupported operating system: Gentoo")

        monkeypatch.setattr(session_mod, "detect_profile", fail)
        path = tmp_path / "provision.yml"
        path.write_text("{}\n")
        result = check_config(path)
        assert result.valid
        assert "Gentoo" in result.warnings[0]
