"""Tests for the run-scoped module aggregator."""

from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest

from licensecheck.aggregator import AggregationContext
from licensecheck.exceptions import AggregationError
from licensecheck.models import Dependency, Module


def _module(module_id: str, parent: str | None = None) -> Module:
    return Module(id=module_id, path=Path("/project") / module_id, parent=parent)


def _record(ctx, validator, module, deps):
    validated = validator.validate(deps)
    return ctx.record_module(module, validated, validator.used_licenses(validated, module))


ROOT = _module("root")
CHILD_A = _module("a", parent="root")
CHILD_B = _module("b", parent="root")
GRANDCHILD = _module("a-x", parent="a")


# ── report_for / finalize ────────────────────────────────────────────────


class TestReports:
    def test_child_and_root_reports(self, validator):
        """A child reports only itself; the root reports the union of everything."""
        ctx = AggregationContext()
        _record(ctx, validator, CHILD_A, [Dependency("left-pad", "1.0.0", "npm", "MIT")])
        _record(ctx, validator, ROOT, [Dependency("commons-io", "2.15", "maven", "Apache 2.0")])

        root_report = ctx.finalize(ROOT)
        assert [d.dependency.name for d in root_report.dependencies] == ["commons-io", "left-pad"]
        assert [lic.identifier for lic in root_report.licenses] == ["Apache-2.0", "MIT"]

        child_report = ctx.report_for(CHILD_A)
        assert [d.dependency.name for d in child_report.dependencies] == ["left-pad"]
        assert [lic.identifier for lic in child_report.licenses] == ["MIT"]

    def test_root_recorded_first_still_complete_after_finalize(self, validator):
        ctx = AggregationContext()
        _record(ctx, validator, ROOT, [Dependency("r", "1", "npm", "MIT")])
        _record(ctx, validator, CHILD_A, [Dependency("a", "1", "npm", "MIT")])
        _record(ctx, validator, GRANDCHILD, [Dependency("x", "1", "npm", "GPL-3.0")])
        _record(ctx, validator, CHILD_B, [Dependency("b", "1", "npm", "")])

        report = ctx.finalize(ROOT)
        names = {d.dependency.name for d in report.dependencies}
        assert names == {"r", "a", "x", "b"}
        for module in (CHILD_A, CHILD_B, GRANDCHILD):
            local = ctx.report_for(module)
            assert set(local.dependencies) <= set(report.dependencies)
            assert set(local.licenses) <= set(report.licenses)

    def test_root_report_before_finalize_is_partial(self, validator):
        ctx = AggregationContext()
        _record(ctx, validator, ROOT, [Dependency("r", "1", "npm", "MIT")])
        assert len(ctx.report_for(ROOT).dependencies) == 1
        _record(ctx, validator, CHILD_A, [Dependency("a", "1", "npm", "MIT")])
        assert len(ctx.finalize(ROOT).dependencies) == 2

    def test_unknown_and_disallowed_visible_in_root(self, validator):
        ctx = AggregationContext()
        deps = [Dependency("u", "1", "npm", ""), Dependency("g", "1", "npm", "GPL-3.0")]
        _record(ctx, validator, CHILD_A, deps)
        report = ctx.finalize(ROOT)
        assert [d.dependency.name for d in report.unknown] == ["u"]
        assert [d.dependency.name for d in report.disallowed] == ["g"]
        assert report.compliant == ()

    def test_unrecorded_module_has_empty_local_report(self):
        report = AggregationContext().report_for(CHILD_A)
        assert report.dependencies == ()
        assert report.licenses == ()

    def test_license_conflict_independent_of_record_order(self, validator):
        def run(order):
            ctx = AggregationContext()
            for module, raw in order:
                _record(ctx, validator, module, [Dependency("dup", "1", "npm", raw)])
            return ctx.finalize(ROOT)

        forward = run([(CHILD_A, "MIT"), (CHILD_B, "GPL-3.0")])
        backward = run([(CHILD_B, "GPL-3.0"), (CHILD_A, "MIT")])

        assert forward == backward
        assert [d.result for d in forward.dependencies] == [d.result for d in backward.dependencies]
        assert len(forward.dependencies) == 1
        assert forward.dependencies[0].result.raw_license == "GPL-3.0"
        assert [lic.identifier for lic in forward.licenses] == ["GPL-3.0"]

    def test_root_licenses_only_from_reported_dependencies(self, validator):
        ctx = AggregationContext()
        _record(ctx, validator, CHILD_A, [Dependency("dup", "1", "npm", "MIT")])
        _record(ctx, validator, CHILD_B, [Dependency("dup", "1", "npm", "GPL-3.0")])
        report = ctx.finalize(ROOT)
        carried = {d.license for d in report.dependencies if d.license is not None}
        assert set(report.licenses) == carried
        # module a still reports what it saw on its own
        assert [lic.identifier for lic in ctx.report_for(CHILD_A).licenses] == ["MIT"]

    def test_separate_runs_do_not_share_state(self, validator):
        first, second = AggregationContext(), AggregationContext()
        _record(first, validator, CHILD_A, [Dependency("a", "1", "npm", "MIT")])
        assert first.finalize(ROOT).dependencies
        assert second.finalize(ROOT).dependencies == ()


# ── misuse ───────────────────────────────────────────────────────────────


class TestMisuse:
    def test_double_record_rejected(self, validator):
        ctx = AggregationContext()
        _record(ctx, validator, CHILD_A, [Dependency("a", "1", "npm", "MIT")])
        with pytest.raises(AggregationError, match="recorded twice"):
            _record(ctx, validator, CHILD_A, [Dependency("b", "1", "npm", "MIT")])
        assert [d.dependency.name for d in ctx.finalize(ROOT).dependencies] == ["a"]

    def test_record_after_finalize_rejected(self, validator):
        ctx = AggregationContext()
        ctx.finalize(ROOT)
        with pytest.raises(AggregationError, match="finalized"):
            _record(ctx, validator, CHILD_A, [Dependency("a", "1", "npm", "MIT")])

    def test_finalize_twice_rejected(self):
        ctx = AggregationContext()
        ctx.finalize(ROOT)
        with pytest.raises(AggregationError):
            ctx.finalize(ROOT)

    def test_finalize_requires_root(self):
        with pytest.raises(AggregationError, match="not a root"):
            AggregationContext().finalize(CHILD_A)


# ── concurrency ──────────────────────────────────────────────────────────


class TestConcurrentRecording:
    @pytest.mark.parametrize("modules", [1, 2, 16])
    def test_no_lost_updates(self, validator, modules):
        per_module = 200
        ctx = AggregationContext()
        work = [
            (
                _module(f"m{i}", parent="root"),
                [Dependency(f"pkg-{i}-{j}", "1.0", "npm", "MIT") for j in range(per_module)],
            )
            for i in range(modules)
        ]

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(lambda item: _record(ctx, validator, *item), work))

        report = ctx.finalize(ROOT)
        assert len(report.dependencies) == modules * per_module
        assert len(ctx.recorded_modules) == modules
        assert [lic.identifier for lic in report.licenses] == ["MIT"]

    def test_finalize_waits_for_record_in_progress(self, validator):
        ctx = AggregationContext()
        validated = validator.validate([Dependency("late", "1", "npm", "MIT")])
        outcome = {}

        def finalize():
            outcome["report"] = ctx.finalize(ROOT)

        ctx._dep_lock.acquire()
        try:
            recorder = threading.Thread(
                target=ctx.record_module, args=(CHILD_A, validated, [])
            )
            recorder.start()
            deadline = time.monotonic() + 5
            while CHILD_A.id not in ctx.recorded_modules:
                assert time.monotonic() < deadline
                time.sleep(0.01)

            finalizer = threading.Thread(target=finalize)
            finalizer.start()
            finalizer.join(timeout=0.2)
            assert finalizer.is_alive()
        finally:
            ctx._dep_lock.release()

        recorder.join(timeout=5)
        finalizer.join(timeout=5)
        assert [d.dependency.name for d in outcome["report"].dependencies] == ["late"]
