"""LicenseCheckRunner — scan, validate and aggregate every module of a project."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass, field

import structlog

from licensecheck.aggregator import AggregationContext, ModuleReport
from licensecheck.core.config import Settings
from licensecheck.dependency_scanner.registry import Scanner, ScanOptions
from licensecheck.dependency_scanner.scanner import default_scanners
from licensecheck.exceptions import ScanError
from licensecheck.models import Dependency, Module
from licensecheck.policy import PolicyStore
from licensecheck.report import ReportSink, emit
from licensecheck.validator import LicenseValidator

log = structlog.get_logger("licensecheck.runner")


@dataclass
class RunResult:
    """Outcome of one project-analysis run."""

    root: ModuleReport | None
    modules: dict[str, ModuleReport] = field(default_factory=dict)
    failed: list[str] = field(default_factory=list)
    skipped: bool = False

    @property
    def has_disallowed(self) -> bool:
        return bool(self.root and self.root.disallowed)


class LicenseCheckRunner:
    """Runs the license check over a module tree.

    Every module is scanned, validated and recorded on its own turn; non-root
    modules emit their local report right away, while the root report is
    emitted once from :meth:`AggregationContext.finalize` after every module
    task has completed.
    """

    def __init__(
        self,
        settings: Settings,
        policy: PolicyStore,
        sink: ReportSink,
        scanners: Sequence[Scanner] | None = None,
    ) -> None:
        self._settings = settings
        self._validator = LicenseValidator(policy)
        self._sink = sink
        if scanners is None:
            options = ScanOptions(
                resolve_transitive=settings.resolve_transitive,
                maven_repository=settings.maven_repository,
            )
            scanners = default_scanners(options)
        self._scanners = list(scanners)

    def scan_module(self, module: Module) -> list[Dependency]:
        """Union of every scanner's findings; a failing scanner contributes nothing."""
        dependencies: list[Dependency] = []
        for scanner in self._scanners:
            try:
                found = scanner.scan(module.path)
            except ScanError as exc:
                log.warning(
                    "runner.scan_failed",
                    module=module.id,
                    scanner=exc.scanner,
                    path=exc.path,
                    reason=exc.reason,
                )
                continue
            dependencies.extend(sorted(found))
        return dependencies

    async def analyze_module(self, ctx: AggregationContext, module: Module) -> ModuleReport:
        """Scan, validate and record one module."""
        dependencies = await asyncio.to_thread(self.scan_module, module)
        validated = self._validator.validate(dependencies)
        used = self._validator.used_licenses(validated, module)
        local = ctx.record_module(module, validated, used)
        log.info(
            "runner.module_recorded",
            module=module.id,
            dependencies=len(local.dependencies),
            unknown=len(local.unknown),
            disallowed=len(local.disallowed),
        )
        if not module.is_root:
            emit(self._sink, module, ctx.report_for(module))
        return local

    async def run(self, modules: Sequence[Module]) -> RunResult:
        """Analyze *modules* concurrently, then finalize and emit the root report."""
        if not self._settings.enabled:
            log.info("runner.inactive", reason="license check disabled; no scan possible")
            return RunResult(root=None, skipped=True)

        roots = [m for m in modules if m.is_root]
        if len(roots) != 1:
            raise ValueError(f"expected exactly one root module, got {len(roots)}")
        root = roots[0]

        ctx = AggregationContext()
        result = RunResult(root=None)
        sem = asyncio.Semaphore(self._settings.concurrency)

        async def _run(module: Module) -> None:
            async with sem:
                try:
                    result.modules[module.id] = await self.analyze_module(ctx, module)
                except Exception:
                    log.error("runner.module_failed", module=module.id, exc_info=True)
                    result.failed.append(module.id)

        await asyncio.gather(*(_run(m) for m in modules))
        result.failed.sort()

        # Every module task has finished: the aggregate is complete.
        result.root = ctx.finalize(root)
        emit(self._sink, root, result.root)
        return result
