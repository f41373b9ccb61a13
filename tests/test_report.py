"""
Tests for the final status report.
"""

from conftest import make_registry, simple_cap
from provisioner.core.engine.executor import ExecutionReport
from provisioner.core.engine.report import build_report
from provisioner.core.models.probe import CheckResult, ProbeResult
from provisioner.core.models.record import ExecutionRecord


def _probe(cap_id, *passed):
    return ProbeResult.from_checks(cap_id, [CheckResult(check=f"{cap_id}-{i}", passed=p) for i, p in enumerate(passed)])


def _registry():
    return make_registry({
        "a": simple_cap(notes=["log out and back in"]),
        "b": simple_cap(),
        "c": simple_cap(notes=["launch the client once"]),
        "d": simple_cap(),
    })


class TestBuildReport:
    def test_live_probe_wins_over_outcome(self):
        execution = ExecutionReport(records=[ExecutionRecord(capability="a", outcome="failure")])
        report = build_report(_registry(), ["a"], {"a": _probe("a", True)}, execution)
        assert report.rows[0].state == "satisfied"
        assert report.all_satisfied

    def test_states(self):
        execution = ExecutionReport(
            records=[
                ExecutionRecord(capability="a", outcome="failure", step="install packages", summary="no mirror"),
                ExecutionRecord(capability="c", outcome="unverified"),
            ],
            not_attempted=["d"],
        )
        probes = {
            "a": _probe("a", False),
            "b": _probe("b", True, False),
            "c": _probe("c", False),
            "d": _probe("d", False),
        }

        report = build_report(_registry(), ["a", "b", "c", "d"], probes, execution)
        rows = {r.capability: r for r in report.rows}

        assert rows["a"].state == "failed"
        assert rows["a"].detail == "install packages: no mirror"
        assert rows["b"].state == "partial"
        assert rows["b"].failing_checks == ["b-1"]
        assert rows["c"].state == "unverified"
        assert rows["d"].state == "missing"
        assert rows["d"].detail == "not attempted (earlier failure)"
        assert not report.all_satisfied
        assert report.count("failed") == 1

    def test_dependencies_reported_after_requested(self):
        execution = ExecutionReport(records=[
            ExecutionRecord(capability="b", outcome="success"),
            ExecutionRecord(capability="a", outcome="success"),
        ])
        probes = {"a": _probe("a", True), "b": _probe("b", True)}
        report = build_report(_registry(), ["a"], probes, execution)
        assert [r.capability for r in report.rows] == ["a", "b"]

    def test_notes_only_for_acted_on(self):
        execution = ExecutionReport(records=[
            ExecutionRecord(capability="a", outcome="success"),
            ExecutionRecord(capability="c", outcome="failure"),
        ])
        probes = {"a": _probe("a", True), "c": _probe("c", False)}
        report = build_report(_registry(), ["a", "c"], probes, execution)
        assert report.notes == ["log out and back in"]

    def test_without_execution(self):
        report = build_report(_registry(), ["a", "b"], {"a": _probe("a", True)})
        assert [r.state for r in report.rows] == ["satisfied", "missing"]
        assert report.notes == []
        assert report.to_dict()["rows"][1]["outcome"] is None
