"""Tests for LicenseCheckRunner: per-module flow, isolation and root finalization."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from licensecheck.core.config import Settings
from licensecheck.exceptions import ScanError
from licensecheck.models import Dependency, Module
from licensecheck.modules import discover_modules
from licensecheck.report import (
    DEPENDENCY_METRIC,
    LICENSE_METRIC,
    MemoryReportSink,
    dependencies_to_string,
    licenses_to_string,
)
from licensecheck.runner import LicenseCheckRunner


# ── helpers ──────────────────────────────────────────────────────────────


class StaticScanner:
    """Returns canned dependencies per module path."""

    name = "static"

    def __init__(self, by_path: dict[Path, list[Dependency]]) -> None:
        self.by_path = by_path

    def scan(self, root: Path) -> set[Dependency]:
        return set(self.by_path.get(root, []))


class FailingScanner:
    name = "failing"

    def __init__(self, paths: set[Path], exc_type: type[Exception] = ScanError) -> None:
        self.paths = paths
        self.exc_type = exc_type

    def scan(self, root: Path) -> set[Dependency]:
        if root in self.paths:
            if self.exc_type is ScanError:
                raise ScanError(self.name, str(root), "broken manifest")
            raise self.exc_type("scanner crashed")
        return set()


ROOT = Module(id="root", path=Path("/p"))
LIB = Module(id="root/lib", path=Path("/p/lib"), parent="root")
APP = Module(id="root/app", path=Path("/p/app"), parent="root")
EMPTY = Module(id="root/empty", path=Path("/p/empty"), parent="root")

CANNED = {
    ROOT.path: [Dependency("left-pad", "1.3.0", "npm", "MIT")],
    LIB.path: [Dependency("commons-io", "2.15", "maven", "Apache 2.0")],
    APP.path: [Dependency("gpl-thing", "0.1", "npm", "GPL-3.0"), Dependency("mystery", "1", "npm", "")],
}


def _runner(policy, sink, *scanners, **settings) -> LicenseCheckRunner:
    return LicenseCheckRunner(Settings(**settings), policy, sink, scanners=list(scanners))


# ── run ──────────────────────────────────────────────────────────────────


class TestRun:
    @pytest.mark.asyncio
    async def test_root_report_contains_every_module(self, policy):
        sink = MemoryReportSink()
        result = await _runner(policy, sink, StaticScanner(CANNED)).run([ROOT, LIB, APP])

        assert result.failed == []
        assert [d.dependency.name for d in result.root.dependencies] == [
            "commons-io",
            "gpl-thing",
            "left-pad",
            "mystery",
        ]
        assert [lic.identifier for lic in result.root.licenses] == ["Apache-2.0", "GPL-3.0", "MIT"]
        assert result.has_disallowed

    @pytest.mark.asyncio
    async def test_root_first_with_serial_execution(self, policy):
        """Visiting the root before its children still yields a complete root report."""
        sink = MemoryReportSink()
        runner = _runner(policy, sink, StaticScanner(CANNED), concurrency=1)
        result = await runner.run([ROOT, LIB, APP])
        assert len(result.root.dependencies) == 4
        assert sink.get("root", DEPENDENCY_METRIC) == dependencies_to_string(result.root.dependencies)

    @pytest.mark.asyncio
    async def test_sink_receives_local_reports_for_children(self, policy):
        sink = MemoryReportSink()
        await _runner(policy, sink, StaticScanner(CANNED)).run([ROOT, LIB, APP])

        assert sink.get("root/lib", DEPENDENCY_METRIC) == "commons-io~2.15~Apache-2.0~compliant"
        assert sink.get("root/lib", LICENSE_METRIC) == "Apache-2.0~Apache License 2.0~true"
        assert sink.get("root/app", DEPENDENCY_METRIC) == (
            "gpl-thing~0.1~GPL-3.0~disallowed;mystery~1~~unknown"
        )
        root_deps = sink.get("root", DEPENDENCY_METRIC)
        for name in ("commons-io", "gpl-thing", "left-pad", "mystery"):
            assert name in root_deps

    @pytest.mark.asyncio
    async def test_empty_sets_are_not_saved(self, policy):
        sink = MemoryReportSink()
        scanners = StaticScanner(CANNED | {EMPTY.path: [Dependency("u", "1", "npm", "")]})
        await _runner(policy, sink, scanners).run([ROOT, EMPTY])
        assert sink.get("root/empty", DEPENDENCY_METRIC) == "u~1~~unknown"
        assert sink.get("root/empty", LICENSE_METRIC) is None

    @pytest.mark.asyncio
    async def test_disabled_run_does_nothing(self, policy):
        sink = MemoryReportSink()
        result = await _runner(policy, sink, StaticScanner(CANNED), enabled=False).run([ROOT, LIB])
        assert result.skipped
        assert result.root is None
        assert sink.measures == {}

    @pytest.mark.asyncio
    async def test_requires_single_root(self, policy):
        runner = _runner(policy, MemoryReportSink(), StaticScanner(CANNED))
        with pytest.raises(ValueError, match="exactly one root"):
            await runner.run([LIB, APP])


# ── failure isolation ────────────────────────────────────────────────────


class TestFailureIsolation:
    @pytest.mark.asyncio
    async def test_scan_error_counts_as_zero_dependencies(self, policy):
        sink = MemoryReportSink()
        scanners = (FailingScanner({LIB.path}), StaticScanner(CANNED))
        result = await _runner(policy, sink, *scanners).run([ROOT, LIB])

        assert result.failed == []
        assert "commons-io" in {d.dependency.name for d in result.root.dependencies}

    @pytest.mark.asyncio
    async def test_crashed_module_contributes_nothing(self, policy):
        sink = MemoryReportSink()
        scanners = (StaticScanner(CANNED), FailingScanner({APP.path}, RuntimeError))
        result = await _runner(policy, sink, *scanners).run([ROOT, LIB, APP])

        assert result.failed == ["root/app"]
        names = {d.dependency.name for d in result.root.dependencies}
        assert names == {"left-pad", "commons-io"}
        assert sink.get("root/app", DEPENDENCY_METRIC) is None
        assert "root/app" not in result.modules


# ── end to end on disk ───────────────────────────────────────────────────


class TestOnDisk:
    @pytest.mark.asyncio
    async def test_multi_module_project(self, policy, tmp_path):
        (tmp_path / "package.json").write_text(json.dumps({"dependencies": {"left-pad": "^1"}}))
        pad = tmp_path / "node_modules" / "left-pad"
        pad.mkdir(parents=True)
        (pad / "package.json").write_text(json.dumps({"version": "1.3.0", "license": "MIT"}))
        lib = tmp_path / "lib"
        lib.mkdir()
        (lib / "requirements.txt").write_text("flask==2.3.1\n")

        sink = MemoryReportSink()
        runner = LicenseCheckRunner(Settings(), policy, sink)
        modules = discover_modules(tmp_path)
        result = await runner.run(modules)

        report = {d.dependency.name: d.status.value for d in result.root.dependencies}
        assert report == {"left-pad": "compliant", "flask": "unknown"}
        assert sink.get(modules[1].id, DEPENDENCY_METRIC) == "flask~2.3.1~~unknown"
        assert sink.get(modules[0].id, LICENSE_METRIC) == licenses_to_string([policy.get("MIT")])

    @pytest.mark.asyncio
    async def test_malformed_package_json_keeps_other_manifests(self, policy, tmp_path):
        (tmp_path / "package.json").write_text(json.dumps({"dependencies": ["left-pad"]}))
        (tmp_path / "requirements.txt").write_text("flask==2.3.1\n")

        runner = LicenseCheckRunner(Settings(), policy, MemoryReportSink())
        result = await runner.run(discover_modules(tmp_path))

        assert result.failed == []
        assert [(d.dependency.name, d.dependency.version) for d in result.root.dependencies] == [
            ("flask", "2.3.1")
        ]
