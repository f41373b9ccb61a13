"""
Tests for domain models — validation, applicability, redaction.
"""

import json

import pytest
from pydantic import ValidationError

from conftest import make_profile
from provisioner.core.models import (
    Action,
    Capability,
    Check,
    CheckResult,
    ExecutionRecord,
    ProbeResult,
    ProvisionConfig,
    ProvisionState,
    Receipt,
    Step,
)


class TestCapability:
    def test_label_defaults_to_id(self):
        cap = Capability(id="jq", probes=[Check(kind="command", target="jq")])
        assert cap.label == "jq"

    def test_steps_for_prefers_family_over_default(self):
        cap = Capability(
            id="x",
            actions={
                "arch": [Step(kind="shell", command="a")],
                "_default": [Step(kind="shell", command="d")],
            },
        )
        assert cap.steps_for("arch")[0].command == "a"
        assert cap.steps_for("fedora")[0].command == "d"

    def test_steps_for_unsupported_family(self):
        cap = Capability(id="x", actions={"arch": [Step(kind="shell", command="a")]})
        assert cap.steps_for("ubuntu") is None

    def test_server_excludes_gui_and_gaming(self):
        server = make_profile(computer_type="server")
        gui = Capability(id="g", tags=frozenset({"gui"}), actions={"_default": []})
        game = Capability(id="s", tags=frozenset({"gaming"}), actions={"_default": []})
        plain = Capability(id="p", actions={"_default": []})
        assert not gui.is_applicable(server)
        assert not game.is_applicable(server)
        assert plain.is_applicable(server)

    def test_gpu_predicate(self):
        cap = Capability(id="drv", applies={"gpu": ["nvidia"]}, actions={"_default": []})
        assert cap.is_applicable(make_profile(gpu="nvidia"))
        assert cap.applicability_reason(make_profile(gpu="amd")) == "requires GPU nvidia"

    def test_no_action_for_family_is_not_applicable(self):
        cap = Capability(id="x", actions={"arch": []})
        assert "no action for fedora" == cap.applicability_reason(make_profile())

    def test_unknown_step_kind_rejected(self):
        with pytest.raises(ValidationError):
            Step(kind="teleport")

    def test_frozen(self):
        cap = Capability(id="x")
        with pytest.raises(ValidationError):
            cap.label = "other"


class TestStepDescribe:
    def test_label_wins(self):
        assert Step(kind="shell", command="ls", label="list").describe() == "list"

    def test_packages(self):
        assert Step(kind="packages").describe() == "install packages"

    def test_list_command(self):
        assert Step(kind="shell", command=["systemctl", "enable", "docker"]).describe() == "systemctl enable docker"

    def test_check_describe_with_pattern(self):
        check = Check(kind="file_contains", target="/etc/x", pattern="y")
        assert check.describe() == "file_contains:/etc/x~y"


class TestOSProfile:
    def test_expand_known_placeholders(self):
        p = make_profile(user="amy", home="/home/amy")
        assert p.expand("{home}/.proton for {user}") == "/home/amy/.proton for amy"

    def test_expand_leaves_other_braces(self):
        p = make_profile()
        text = '{"log-driver": "json-file"} ${VAR} {unknown}'
        assert p.expand(text) == text

    def test_expand_extra(self):
        assert make_profile().expand("--authkey={secret}", {"secret": "tskey"}) == "--authkey=tskey"

    def test_wine_path(self):
        p = make_profile(home="/home/t")
        assert p.proton_wine == "/home/t/.proton/current/files/bin/wine"


class TestProbeResult:
    def _checks(self, *passed):
        return [CheckResult(check=f"c{i}", passed=p) for i, p in enumerate(passed)]

    def test_all_pass_is_satisfied(self):
        r = ProbeResult.from_checks("x", self._checks(True, True))
        assert r.satisfied
        assert r.failing_checks == []

    def test_some_pass_is_partial(self):
        r = ProbeResult.from_checks("x", self._checks(True, False))
        assert r.status == "partial"
        assert r.failing_checks == ["c1"]

    def test_none_pass_is_missing(self):
        assert ProbeResult.from_checks("x", self._checks(False)).status == "missing"

    def test_no_checks_is_missing(self):
        assert ProbeResult.from_checks("x", []).status == "missing"


class TestActionRedaction:
    def test_redact(self):
        action = Action(id="a", adapter="shell", secrets=["tskey-123"])
        assert action.redact("tailscale up --authkey=tskey-123") == "tailscale up --authkey=***"

    def test_secrets_not_serialized(self):
        action = Action(id="a", adapter="shell", secrets=["tskey-123"])
        assert "tskey-123" not in json.dumps(action.model_dump())
        assert "tskey-123" not in repr(action)


class TestReceipt:
    def test_summary_is_tail(self):
        r = Receipt.failure(adapter="shell", action_id="a", error="\n".join(f"line {i}" for i in range(20)))
        assert r.summary.splitlines() == [f"line {i}" for i in range(15, 20)]

    def test_factories(self):
        assert Receipt.success(adapter="a", action_id="1").ok
        assert Receipt.failure(adapter="a", action_id="1", error="x").failed
        assert Receipt.skip(adapter="a", action_id="1").status == "skipped"


class TestProvisionConfig:
    def test_defaults(self):
        c = ProvisionConfig()
        assert c.computer_type == "workstation"
        assert c.gpu == "auto"
        assert c.fail_fast is True
        assert c.timeouts.network == 600
        assert c.timeouts.command is None

    def test_unknown_key_rejected(self):
        with pytest.raises(ValidationError):
            ProvisionConfig.model_validate({"computer_typo": "server"})

    def test_invalid_gpu(self):
        with pytest.raises(ValidationError):
            ProvisionConfig(gpu="voodoo")


class TestProvisionState:
    def test_set_capability_state_creates_and_updates(self):
        state = ProvisionState()
        state.set_capability_state("jq", status="missing")
        state.set_capability_state("jq", status="satisfied", last_outcome="success")
        assert state.capabilities["jq"].status == "satisfied"
        assert state.capabilities["jq"].last_outcome == "success"

    def test_record_entry_type(self):
        rec = ExecutionRecord(capability="jq", outcome="success")
        assert rec.model_dump()["entry_type"] == "action"
