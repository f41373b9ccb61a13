"""
Tests for the capability registry and the built-in capability table.
"""

import pytest

from conftest import make_profile, make_registry, simple_cap
from provisioner.adapters.distro import DISTRO_ADAPTERS
from provisioner.core.config.loader import ConfigError
from provisioner.core.data.capabilities import CAPABILITIES
from provisioner.core.data.game_clients import GAME_CLIENTS
from provisioner.core.engine.dag import CyclicDependencyError
from provisioner.core.engine.registry import CapabilityRegistry, load_registry
from provisioner.core.models.capability import Capability


class TestRegistryValidation:
    def test_valid_table(self):
        reg = make_registry({"a": simple_cap(), "b": simple_cap("a")})
        assert reg.ids == ["a", "b"]
        assert len(reg) == 2
        assert "a" in reg

    def test_unknown_dependency(self):
        with pytest.raises(ConfigError, match="unknown capability 'ghost'"):
            make_registry({"a": simple_cap("ghost")})

    def test_missing_probe(self):
        with pytest.raises(ConfigError, match="declares no probe"):
            make_registry({"a": simple_cap(probes=[])})

    def test_cycle_fails_at_load(self):
        with pytest.raises(CyclicDependencyError) as exc:
            make_registry({"a": simple_cap("c"), "b": simple_cap("a"), "c": simple_cap("b")})
        assert len(exc.value.cycle) == 4
        assert exc.value.cycle[0] == exc.value.cycle[-1]

    def test_duplicate_ids(self):
        cap = Capability(id="a", probes=[{"kind": "command", "target": "x"}])
        with pytest.raises(ConfigError, match="Duplicate"):
            CapabilityRegistry([cap, cap])

    def test_invalid_field(self):
        with pytest.raises(ConfigError, match="Invalid capability 'a'"):
            make_registry({"a": simple_cap(actions={"_default": [{"kind": "nope"}]})})


class TestRegistryLookup:
    def test_get_unknown_raises(self):
        reg = make_registry({"a": simple_cap()})
        with pytest.raises(ConfigError, match="Unknown capability"):
            reg.get("b")

    def test_closure_is_declaration_ordered(self):
        reg = make_registry({
            "base": simple_cap(),
            "mid": simple_cap("base"),
            "other": simple_cap(),
            "top": simple_cap("mid"),
        })
        assert reg.closure(["top"]) == ["base", "mid", "top"]

    def test_applicable(self):
        reg = make_registry({
            "any": simple_cap(),
            "nv": simple_cap(applies={"gpu": ["nvidia"]}),
        })
        assert [c.id for c in reg.applicable(make_profile(gpu="amd"))] == ["any"]


class TestBuiltinTable:
    def test_loads(self):
        reg = load_registry()
        assert len(reg) == len(CAPABILITIES)

    def test_expected_capabilities_present(self):
        reg = load_registry()
        for cap_id in (
            "jq", "build-tools", "python-runtime", "python-pip", "gpu-driver", "cuda-toolkit",
            "container-engine", "container-gpu-runtime", "vpn-client", "proton-ge",
            "steam", "wine", "winetricks", "smb-tools", "office-suite",
        ):
            assert cap_id in reg

    def test_game_client_triplets(self):
        reg = load_registry()
        for client in GAME_CLIENTS.values():
            cap = reg.get(client["capability"])
            assert cap.interactive
            assert not cap.default_enabled
            assert cap.depends_on == [f"{cap.id}-prefix", f"{cap.id}-installer"]
            assert "proton-ge" in reg.get(f"{cap.id}-prefix").depends_on

    def test_game_clients_use_pfx_layout(self):
        reg = load_registry()
        probe = reg.get("battlenet").probes[0]
        assert probe.target.startswith("{home}/.wine-battlenet/pfx/drive_c/")

    def test_container_engine_is_compound(self):
        cap = load_registry().get("container-engine")
        kinds = {c.kind for c in cap.probes}
        assert kinds == {"command", "file_contains", "service_enabled", "group_member"}
        assert cap.notes

    @pytest.mark.parametrize("family", sorted(DISTRO_ADAPTERS))
    def test_packages_declared_for_every_family(self, family):
        """Every packages step and check resolves to a package list."""
        reg = load_registry()
        distro = DISTRO_ADAPTERS[family]()
        for gpu in ("nvidia", "amd", "none"):
            profile = make_profile(os_family=family, os_id=family, gpu=gpu)
            for cap in reg.applicable(profile):
                steps = cap.steps_for(family) or []
                uses_packages = any(s.kind == "packages" and not s.packages for s in steps)
                uses_packages |= any(c.kind == "packages" and not c.target for c in cap.probes)
                if uses_packages:
                    assert distro.packages_for(cap.id), f"{cap.id} has no packages on {family}"

    def test_aur_only_on_arch(self):
        reg = load_registry()
        for cap in reg:
            for family, steps in cap.actions.items():
                if any(s.kind == "aur" for s in steps):
                    assert family == "arch", cap.id

    def test_server_drops_gaming(self):
        reg = load_registry()
        ids = {c.id for c in reg.applicable(make_profile(computer_type="server"))}
        assert "steam" not in ids
        assert "proton-ge" not in ids
        assert "code-editor" not in ids
        assert "container-engine" in ids
