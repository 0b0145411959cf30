"""Dependency scanners — detect declared dependencies from manifests."""

from licensecheck.dependency_scanner.registry import ManifestParser, Scanner, ScanOptions
from licensecheck.dependency_scanner.scanner import ManifestScanner, default_scanners, scan

__all__ = [
    "ManifestParser",
    "ManifestScanner",
    "ScanOptions",
    "Scanner",
    "default_scanners",
    "scan",
]
