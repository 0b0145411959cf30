"""Manifest-backed scanners and the default scanner list."""

from __future__ import annotations

from pathlib import Path

import structlog

# Ensure parsers are registered before any scan runs.
import licensecheck.dependency_scanner.parsers  # noqa: F401
from licensecheck.dependency_scanner.registry import (
    PARSER_REGISTRY,
    ManifestParser,
    Scanner,
    ScanOptions,
    discover_manifests,
)
from licensecheck.exceptions import ScanError
from licensecheck.models import Dependency

log = structlog.get_logger("licensecheck.scanner")


class ManifestScanner:
    """Adapts one registered :class:`ManifestParser` to the :class:`Scanner` interface."""

    def __init__(self, parser: ManifestParser, options: ScanOptions | None = None) -> None:
        self.parser = parser
        self.options = options or ScanOptions()
        self.name = parser.detection_method

    def scan(self, root: Path) -> set[Dependency]:
        """Parse the parser's manifests in *root*; no manifest means no dependencies."""
        found: set[Dependency] = set()
        for parser, file_path in discover_manifests(root, self.parser):
            try:
                content = file_path.read_text(encoding="utf-8", errors="replace")
            except OSError as exc:
                raise ScanError(self.name, str(file_path), str(exc)) from exc
            for dep in parser.parse(file_path, content, self.options):
                # set.add keeps the first instance of an identity
                found.add(dep)
        log.debug("scanner.scanned", scanner=self.name, root=str(root), count=len(found))
        return found


def default_scanners(options: ScanOptions | None = None) -> list[Scanner]:
    """One scanner per registered manifest parser, in registration order."""
    return [ManifestScanner(parser, options) for parser in PARSER_REGISTRY.values()]


def scan(root: Path, options: ScanOptions | None = None) -> list[Dependency]:
    """Scan a single directory with every registered parser (no policy needed).

    Manifests that fail to parse are logged and skipped.
    """
    results: list[Dependency] = []
    for scanner in default_scanners(options):
        try:
            results.extend(sorted(scanner.scan(root)))
        except ScanError as exc:
            log.warning("scanner.failed", scanner=exc.scanner, path=exc.path, reason=exc.reason)
    return results
