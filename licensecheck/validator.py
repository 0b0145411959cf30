"""License validator — match dependency license text against the policy store."""

from __future__ import annotations

from collections.abc import Iterable

import structlog

from licensecheck.models import (
    Dependency,
    License,
    LicenseStatus,
    Module,
    ValidatedDependency,
    ValidationResult,
)
from licensecheck.policy import PolicyStore

log = structlog.get_logger("licensecheck.validator")

# Lower rank is kept when one identity carries conflicting license texts.
_SEVERITY = {
    LicenseStatus.DISALLOWED: 0,
    LicenseStatus.UNKNOWN: 1,
    LicenseStatus.COMPLIANT: 2,
}


def _conflict_rank(item: ValidatedDependency) -> tuple[int, str]:
    return _SEVERITY[item.status], item.result.raw_license


def preferred(a: ValidatedDependency, b: ValidatedDependency) -> ValidatedDependency:
    """Pick the survivor of two entries with the same identity.

    The more severe classification wins, then the smaller raw license text,
    so the outcome never depends on which entry arrived first.
    """
    return b if _conflict_rank(b) < _conflict_rank(a) else a


def resolve_conflicts(
    validated: Iterable[ValidatedDependency],
    module: Module | None = None,
) -> list[ValidatedDependency]:
    """Collapse repeated identities with :func:`preferred`."""
    kept: dict[tuple[str, str, str], ValidatedDependency] = {}
    for item in validated:
        key = item.dependency.key
        prev = kept.get(key)
        if prev is None:
            kept[key] = item
            continue
        winner = preferred(prev, item)
        if prev.result.raw_license != item.result.raw_license:
            loser = item if winner is prev else prev
            log.warning(
                "dependency.license_conflict",
                module=module.id if module is not None else None,
                dependency=item.dependency.name,
                version=item.dependency.version,
                kept=winner.result.raw_license,
                dropped=loser.result.raw_license,
            )
        kept[key] = winner
    return list(kept.values())


class LicenseValidator:
    """Stateless classifier; every call is a pure function of input + policy."""

    def __init__(self, policy: PolicyStore) -> None:
        self._policy = policy

    def classify(self, dependency: Dependency) -> ValidationResult:
        raw = dependency.raw_license
        if not raw.strip():
            mapped = self._policy.license_for_dependency(dependency.name)
            if mapped is None:
                return ValidationResult.unknown(raw)
            return self._result_for(mapped, raw)

        lic = self._policy.match(raw)
        if lic is None:
            return ValidationResult.unknown(raw)
        return self._result_for(lic, raw)

    @staticmethod
    def _result_for(lic: License, raw: str) -> ValidationResult:
        if lic.allowed:
            return ValidationResult.compliant(lic, raw)
        return ValidationResult.disallowed(lic, raw)

    def validate(self, dependencies: Iterable[Dependency]) -> tuple[ValidatedDependency, ...]:
        """Annotate every dependency with its result, sorted by dependency order.

        Unknown and disallowed entries stay in the output; nothing is dropped
        except repeated identities, which collapse through :func:`preferred`.
        """
        validated = resolve_conflicts(
            ValidatedDependency(dep, self.classify(dep)) for dep in dependencies
        )
        for item in validated:
            if item.status is LicenseStatus.DISALLOWED:
                log.info(
                    "validator.disallowed",
                    dependency=item.dependency.name,
                    version=item.dependency.version,
                    license=item.result.label,
                )
            elif item.status is LicenseStatus.UNKNOWN:
                log.debug(
                    "validator.unknown",
                    dependency=item.dependency.name,
                    raw_license=item.result.raw_license,
                )
        return tuple(sorted(validated))

    def used_licenses(
        self,
        validated: Iterable[ValidatedDependency],
        module: Module | None = None,
    ) -> frozenset[License]:
        """Distinct licenses of the compliant and disallowed entries."""
        used = frozenset(
            item.license
            for item in validated
            if item.license is not None and item.status is not LicenseStatus.UNKNOWN
        )
        if module is not None:
            log.debug("validator.used_licenses", module=module.id, count=len(used))
        return used
