"""Data models for dependencies, licenses and validation outcomes."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True, order=True)
class Dependency:
    """A single resolved dependency as declared by a manifest.

    Identity (equality, hashing, ordering) is ``(name, version, ecosystem)``;
    ``raw_license`` and ``source_file`` ride along without taking part in it.
    """

    name: str
    version: str = ""
    ecosystem: str = ""
    raw_license: str = field(default="", compare=False)
    source_file: str = field(default="", compare=False)

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.name, self.version, self.ecosystem)


@dataclass(frozen=True, order=True)
class License:
    """A policy-recognized license. Identity is ``identifier``."""

    identifier: str
    display_name: str = field(default="", compare=False)
    match_patterns: tuple[str, ...] = field(default=(), compare=False)
    allowed: bool = field(default=True, compare=False)

    @property
    def name(self) -> str:
        return self.display_name or self.identifier


class LicenseStatus(str, enum.Enum):
    COMPLIANT = "compliant"
    UNKNOWN = "unknown"
    DISALLOWED = "disallowed"


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of matching one dependency's license text against the policy."""

    status: LicenseStatus
    license: License | None = None
    raw_license: str = ""

    @classmethod
    def compliant(cls, lic: License, raw_license: str = "") -> ValidationResult:
        return cls(LicenseStatus.COMPLIANT, lic, raw_license)

    @classmethod
    def unknown(cls, raw_license: str) -> ValidationResult:
        return cls(LicenseStatus.UNKNOWN, None, raw_license)

    @classmethod
    def disallowed(cls, lic: License, raw_license: str = "") -> ValidationResult:
        return cls(LicenseStatus.DISALLOWED, lic, raw_license)

    @property
    def label(self) -> str:
        """The license identifier, or the raw text when nothing matched."""
        return self.license.identifier if self.license else self.raw_license


@dataclass(frozen=True, order=True)
class ValidatedDependency:
    """A dependency annotated with its validation result.

    Identity and ordering are those of the wrapped dependency.
    """

    dependency: Dependency
    result: ValidationResult = field(compare=False)

    @property
    def status(self) -> LicenseStatus:
        return self.result.status

    @property
    def license(self) -> License | None:
        return self.result.license


@dataclass(frozen=True)
class Module:
    """One node of the analyzed project's module tree."""

    id: str
    path: Path
    parent: str | None = None

    @property
    def is_root(self) -> bool:
        return self.parent is None
