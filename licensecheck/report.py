"""Report sink interface and deterministic report serialization."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol, runtime_checkable

import structlog

from licensecheck.aggregator import ModuleReport
from licensecheck.models import License, Module, ValidatedDependency

log = structlog.get_logger("licensecheck.report")

DEPENDENCY_METRIC = "licensecheck.dependency"
LICENSE_METRIC = "licensecheck.license"

_FIELD_SEP = "~"
_ENTRY_SEP = ";"


def _clean(value: str) -> str:
    return value.replace(_FIELD_SEP, " ").replace(_ENTRY_SEP, ",")


def dependencies_to_string(dependencies: Iterable[ValidatedDependency]) -> str:
    """``name~version~license~status`` entries, sorted, joined by ``;``."""
    return _ENTRY_SEP.join(
        _FIELD_SEP.join(
            _clean(part)
            for part in (
                item.dependency.name,
                item.dependency.version,
                item.result.label,
                item.status.value,
            )
        )
        for item in sorted(dependencies)
    )


def licenses_to_string(licenses: Iterable[License]) -> str:
    """``identifier~display_name~allowed`` entries, sorted, joined by ``;``."""
    return _ENTRY_SEP.join(
        _FIELD_SEP.join((_clean(lic.identifier), _clean(lic.name), str(lic.allowed).lower()))
        for lic in sorted(set(licenses))
    )


def report_to_dict(report: ModuleReport) -> dict:
    return {
        "module": report.module_id,
        "dependencies": [
            {
                "name": d.dependency.name,
                "version": d.dependency.version,
                "ecosystem": d.dependency.ecosystem,
                "raw_license": d.dependency.raw_license,
                "license": d.license.identifier if d.license else None,
                "status": d.status.value,
            }
            for d in report.dependencies
        ],
        "licenses": [
            {"identifier": lic.identifier, "name": lic.name, "allowed": lic.allowed}
            for lic in report.licenses
        ],
    }


@runtime_checkable
class ReportSink(Protocol):
    """Receives serialized per-module measures."""

    def save(self, module: Module, metric: str, value: str) -> None: ...


class MemoryReportSink:
    """Keeps every saved measure in memory, keyed by (module id, metric)."""

    def __init__(self) -> None:
        self.measures: dict[tuple[str, str], str] = {}

    def save(self, module: Module, metric: str, value: str) -> None:
        self.measures[(module.id, metric)] = value

    def get(self, module_id: str, metric: str) -> str | None:
        return self.measures.get((module_id, metric))


def emit(sink: ReportSink, module: Module, report: ModuleReport) -> None:
    """Save both measures for *module*, skipping any that would be empty."""
    log.debug(
        "report.saving",
        module=module.id,
        dependencies=len(report.dependencies),
        licenses=len(report.licenses),
    )
    if report.dependencies:
        sink.save(module, DEPENDENCY_METRIC, dependencies_to_string(report.dependencies))
    if report.licenses:
        sink.save(module, LICENSE_METRIC, licenses_to_string(report.licenses))
