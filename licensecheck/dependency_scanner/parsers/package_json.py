"""Parser for npm package.json files.

Direct dependencies come from the manifest's ``dependencies`` table; version
and license are read from the installed copy under ``node_modules`` when it
exists. With ``resolve_transitive`` the installed packages' own dependencies
are followed as well.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from licensecheck.dependency_scanner.registry import ScanOptions, register_parser
from licensecheck.exceptions import ScanError
from licensecheck.models import Dependency


def _license_text(manifest: dict[str, Any]) -> str:
    """Read ``license`` in its string, object, or legacy ``licenses`` array forms."""
    lic = manifest.get("license")
    if isinstance(lic, str):
        return lic.strip()
    if isinstance(lic, dict):
        return str(lic.get("type", "")).strip()
    legacy = manifest.get("licenses")
    if isinstance(legacy, list):
        types = [
            str(item.get("type", "")).strip() if isinstance(item, dict) else str(item).strip()
            for item in legacy
        ]
        return " OR ".join(t for t in types if t)
    return ""


def _load_installed(package_dir: Path) -> dict[str, Any] | None:
    manifest = package_dir / "package.json"
    if not manifest.is_file():
        return None
    try:
        data = json.loads(manifest.read_text(encoding="utf-8", errors="replace"))
    except (OSError, json.JSONDecodeError):
        return None
    return data if isinstance(data, dict) else None


def _find_installed(name: str, start: Path, project_root: Path) -> Path | None:
    """Locate ``node_modules/<name>`` walking up from *start* to *project_root*."""
    current = start
    while True:
        candidate = current / "node_modules" / name
        if candidate.is_dir():
            return candidate
        if current == project_root or current.parent == current:
            return None
        current = current.parent
        # nested node_modules/<pkg> directories: step over the node_modules level
        if current.name == "node_modules":
            current = current.parent


class PackageJsonParser:
    detection_method = "npm"
    file_patterns = ["package.json"]

    def parse(self, file_path: Path, content: str, options: ScanOptions) -> list[Dependency]:
        try:
            data = json.loads(content)
        except json.JSONDecodeError as exc:
            raise ScanError(self.detection_method, str(file_path), f"invalid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise ScanError(self.detection_method, str(file_path), "top level is not an object")

        declared = data.get("dependencies") or {}
        if not isinstance(declared, dict):
            raise ScanError(self.detection_method, str(file_path), "dependencies is not an object")

        project_root = file_path.parent
        deps: list[Dependency] = []
        seen: set[tuple[str, str]] = set()
        # (package name, declared constraint, directory whose node_modules to search)
        pending: list[tuple[str, str, Path]] = [
            (name, str(spec), project_root) for name, spec in sorted(declared.items())
        ]

        while pending:
            name, constraint, search_from = pending.pop(0)
            installed_dir = _find_installed(name, search_from, project_root)
            installed = _load_installed(installed_dir) if installed_dir else None

            if installed is None:
                version, license_text = constraint, ""
            else:
                version = str(installed.get("version", constraint))
                license_text = _license_text(installed)

            if (name, version) in seen:
                continue
            seen.add((name, version))
            deps.append(
                Dependency(
                    name=name,
                    version=version,
                    ecosystem=self.detection_method,
                    raw_license=license_text,
                    source_file=file_path.name,
                )
            )

            if options.resolve_transitive and installed is not None and installed_dir:
                nested = installed.get("dependencies") or {}
                if not isinstance(nested, dict):
                    # a broken installed package still counts as a leaf
                    continue
                for child, spec in sorted(nested.items()):
                    pending.append((child, str(spec), installed_dir))

        return deps


register_parser(PackageJsonParser())
