"""Manifest parsers — auto-registered on import."""

from licensecheck.dependency_scanner.parsers import (
    maven_pom,  # noqa: F401
    package_json,  # noqa: F401
    pip_requirements,  # noqa: F401
)
