"""Run-scoped aggregation of per-module license findings.

One :class:`AggregationContext` lives for exactly one project-analysis run.
Module tasks call :meth:`AggregationContext.record_module` in any order and
from any thread; the root's full report is read once through
:meth:`AggregationContext.finalize` after every module has been recorded.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from dataclasses import dataclass

import structlog

from licensecheck.exceptions import AggregationError
from licensecheck.models import License, LicenseStatus, Module, ValidatedDependency
from licensecheck.validator import preferred

log = structlog.get_logger("licensecheck.aggregator")


@dataclass(frozen=True)
class ModuleReport:
    """Validated dependencies and used licenses for one module (or the whole run)."""

    module_id: str
    dependencies: tuple[ValidatedDependency, ...]
    licenses: tuple[License, ...]

    def _with_status(self, status: LicenseStatus) -> tuple[ValidatedDependency, ...]:
        return tuple(d for d in self.dependencies if d.status is status)

    @property
    def compliant(self) -> tuple[ValidatedDependency, ...]:
        return self._with_status(LicenseStatus.COMPLIANT)

    @property
    def unknown(self) -> tuple[ValidatedDependency, ...]:
        return self._with_status(LicenseStatus.UNKNOWN)

    @property
    def disallowed(self) -> tuple[ValidatedDependency, ...]:
        return self._with_status(LicenseStatus.DISALLOWED)


class AggregationContext:
    """Append-only union of validated dependencies for one run.

    The dependency set and the module registry each have their own lock, so
    unrelated modules never wait on a single mutex. The run's license set is
    derived from the kept dependencies, so it never names a license that no
    reported dependency carries.
    """

    def __init__(self) -> None:
        self._dependencies: dict[tuple[str, str, str], ValidatedDependency] = {}
        self._local: dict[str, ModuleReport] = {}
        self._dep_lock = threading.Lock()
        self._module_lock = threading.Lock()
        self._module_cond = threading.Condition(self._module_lock)
        self._inflight = 0
        self._finalized = False

    # ── recording ────────────────────────────────────────────────────────

    def record_module(
        self,
        module: Module,
        validated: Iterable[ValidatedDependency],
        used_licenses: Iterable[License],
    ) -> ModuleReport:
        """Merge one module's contribution into the run aggregate.

        The local snapshot is built before anything shared is touched, so a
        module either contributes everything or nothing. Identity conflicts
        across modules are settled by :func:`~licensecheck.validator.preferred`,
        which makes the result independent of recording order.
        """
        local = ModuleReport(
            module_id=module.id,
            dependencies=tuple(sorted(validated)),
            licenses=tuple(sorted(set(used_licenses))),
        )

        with self._module_lock:
            if self._finalized:
                raise AggregationError(f"run already finalized; cannot record {module.id!r}")
            if module.id in self._local:
                raise AggregationError(f"module {module.id!r} recorded twice")
            self._local[module.id] = local
            self._inflight += 1

        try:
            with self._dep_lock:
                for item in local.dependencies:
                    key = item.dependency.key
                    prev = self._dependencies.get(key)
                    if prev is None:
                        self._dependencies[key] = item
                        continue
                    winner = preferred(prev, item)
                    if prev.result.raw_license != item.result.raw_license:
                        log.warning(
                            "dependency.license_conflict",
                            module=module.id,
                            dependency=item.dependency.name,
                            version=item.dependency.version,
                            kept=winner.result.raw_license,
                            dropped=(item if winner is prev else prev).result.raw_license,
                        )
                    self._dependencies[key] = winner
        finally:
            with self._module_cond:
                self._inflight -= 1
                if self._inflight == 0:
                    self._module_cond.notify_all()

        log.debug(
            "aggregator.module_recorded",
            module=module.id,
            dependencies=len(local.dependencies),
            licenses=len(local.licenses),
        )
        return local

    # ── reading ──────────────────────────────────────────────────────────

    @property
    def recorded_modules(self) -> tuple[str, ...]:
        with self._module_lock:
            return tuple(self._local)

    def local_report(self, module_id: str) -> ModuleReport:
        with self._module_lock:
            local = self._local.get(module_id)
        if local is None:
            return ModuleReport(module_id, (), ())
        return local

    def aggregate(self, module_id: str) -> ModuleReport:
        """Everything recorded so far, labelled with *module_id*."""
        with self._dep_lock:
            deps = tuple(sorted(self._dependencies.values()))
        lics = {
            d.license
            for d in deps
            if d.license is not None and d.status is not LicenseStatus.UNKNOWN
        }
        return ModuleReport(module_id, deps, tuple(sorted(lics)))

    def report_for(self, module: Module) -> ModuleReport:
        """Local sets for a sub-module, the full aggregate for the root.

        Before :meth:`finalize`, the root's aggregate only reflects the
        modules recorded so far.
        """
        if module.is_root:
            return self.aggregate(module.id)
        return self.local_report(module.id)

    def finalize(self, root: Module) -> ModuleReport:
        """Close the run and return the root's complete report.

        New records are refused from this point on; records already past
        the admission check are waited for before the aggregate is read.
        """
        if not root.is_root:
            raise AggregationError(f"module {root.id!r} is not a root module")
        with self._module_cond:
            if self._finalized:
                raise AggregationError("run already finalized")
            self._finalized = True
            self._module_cond.wait_for(lambda: self._inflight == 0)
        report = self.aggregate(root.id)
        log.info(
            "aggregator.finalized",
            root=root.id,
            modules=len(self.recorded_modules),
            dependencies=len(report.dependencies),
            licenses=len(report.licenses),
        )
        return report
