"""Parser registry — scanner interfaces and manifest-to-parser matching."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, runtime_checkable

from licensecheck.models import Dependency


@dataclass(frozen=True)
class ScanOptions:
    """Scanner pass-through options; the validation core never reads them."""

    resolve_transitive: bool = False
    maven_repository: Path | None = None


@runtime_checkable
class Scanner(Protocol):
    """Anything that can list the dependencies declared under a module directory."""

    name: str

    def scan(self, root: Path) -> set[Dependency]: ...


@runtime_checkable
class ManifestParser(Protocol):
    """Interface that every manifest parser must satisfy."""

    detection_method: str
    file_patterns: list[str]

    def parse(self, file_path: Path, content: str, options: ScanOptions) -> list[Dependency]: ...


PARSER_REGISTRY: dict[str, ManifestParser] = {}


def register_parser(parser: ManifestParser) -> None:
    """Register a parser instance by its detection_method."""
    PARSER_REGISTRY[parser.detection_method] = parser


def discover_manifests(
    module_path: Path,
    parser: ManifestParser | None = None,
) -> list[tuple[ManifestParser, Path]]:
    """Match the manifest files directly inside *module_path* to parsers.

    Returns a list of (parser, matched_file) pairs.
    """
    parsers = [parser] if parser is not None else list(PARSER_REGISTRY.values())
    matches: list[tuple[ManifestParser, Path]] = []
    for candidate in parsers:
        for pattern in candidate.file_patterns:
            for hit in sorted(module_path.glob(pattern)):
                if hit.is_file():
                    matches.append((candidate, hit))
    return matches
