"""
Tests for the per-family distro adapters.
"""

import subprocess
from types import SimpleNamespace

import pytest

from provisioner.adapters.distro import (
    ArchAdapter,
    FedoraAdapter,
    UbuntuAdapter,
    get_distro_adapter,
)
from provisioner.adapters.distro import base as distro_base
from provisioner.core.models.capability import Step


class TestCommands:
    @pytest.mark.parametrize("adapter,install,query", [
        (ArchAdapter(), ["pacman", "-S", "--needed", "--noconfirm", "jq"], ["pacman", "-Qi", "jq"]),
        (FedoraAdapter(), ["dnf", "install", "-y", "jq"], ["rpm", "-q", "jq"]),
        (UbuntuAdapter(), ["apt-get", "install", "-y", "jq"], ["dpkg", "-s", "jq"]),
    ])
    def test_verbs(self, adapter, install, query):
        assert adapter.install_command(["jq"]) == install
        assert adapter.query_command("jq") == query

    def test_refresh_upgrades(self):
        assert "upgrade" in UbuntuAdapter().refresh_command()
        assert ArchAdapter().refresh_command() == "pacman -Syu --noconfirm"

    def test_lookup(self):
        assert isinstance(get_distro_adapter("fedora"), FedoraAdapter)
        with pytest.raises(KeyError):
            get_distro_adapter("gentoo")

    def test_packages_for_is_a_copy(self):
        adapter = FedoraAdapter()
        packages = adapter.packages_for("jq")
        packages.append("junk")
        assert adapter.packages_for("jq") == ["jq"]
        assert adapter.packages_for("unknown") is None


class TestIsInstalled:
    def test_exit_code(self, monkeypatch):
        monkeypatch.setattr(
            distro_base.subprocess, "run",
            lambda argv, **kw: SimpleNamespace(returncode=0 if argv[-1] == "jq" else 1),
        )
        adapter = FedoraAdapter()
        assert adapter.is_installed("jq")
        assert not adapter.is_installed("htop")

    @pytest.mark.parametrize("exc", [FileNotFoundError("rpm"), subprocess.TimeoutExpired("rpm", 10), OSError("boom")])
    def test_errors_are_not_installed(self, monkeypatch, exc):
        def fail(*a, **kw):
            raise exc

        monkeypatch.setattr(distro_base.subprocess, "run", fail)
        assert FedoraAdapter().is_installed("jq") is False


class TestAurBuild:
    def test_sequence(self):
        steps = ArchAdapter().aur_build_steps("tailscale-bin")
        labels = [s.describe() for s in steps]
        assert labels == [
            "clean /tmp/aur-tailscale-bin",
            "clone AUR tailscale-bin",
            "makepkg tailscale-bin",
            "pacman -U tailscale-bin",
            "remove /tmp/aur-tailscale-bin",
        ]

    def test_makepkg_as_user_install_as_root(self):
        steps = {s.describe(): s for s in ArchAdapter().aur_build_steps("pkg")}
        assert steps["makepkg pkg"].as_user
        assert not steps["makepkg pkg"].privileged
        assert steps["pacman -U pkg"].privileged

    def test_guarded_by_installed_package(self):
        steps = ArchAdapter().aur_build_steps("pkg")
        for step in steps[:-1]:
            assert step.unless.kind == "package"
            assert step.unless.target == "pkg"
        assert steps[-1].when_changed

    def test_gpg_keys(self):
        steps = ArchAdapter().aur_build_steps("pkg", ["ABCD1234"])
        gpg = [s for s in steps if "signing keys" in s.describe()]
        assert gpg[0].command == ["gpg", "--recv-keys", "ABCD1234"]

    def test_non_aur_steps_untouched(self):
        step = Step(kind="shell", command="true")
        assert ArchAdapter().expand_step(step) == [step]
        assert FedoraAdapter().expand_step(Step(kind="aur", package="x"))[0].kind == "aur"
