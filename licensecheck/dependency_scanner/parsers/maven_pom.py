"""Parser for Maven pom.xml files.

Dependency licenses are read from each artifact's own POM in the local
Maven repository (``~/.m2/repository`` unless overridden).
"""

from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from pathlib import Path

from licensecheck.dependency_scanner.registry import ScanOptions, register_parser
from licensecheck.exceptions import ScanError
from licensecheck.models import Dependency

_NS = "{http://maven.apache.org/POM/4.0.0}"

_PROP_RE = re.compile(r"\$\{([^}]+)\}")

_SKIPPED_SCOPES = {"test", "provided", "system"}


def _resolve_props(value: str, props: dict[str, str]) -> str:
    """Replace ${property} placeholders with values from <properties>."""

    def _replace(m: re.Match) -> str:
        key = m.group(1)
        return props.get(key, m.group(0))  # keep original if not found

    return _PROP_RE.sub(_replace, value)


def _text(element: ET.Element | None) -> str | None:
    if element is None:
        return None
    return element.text.strip() if element.text else None


def _local_pom(repository: Path, group_id: str, artifact_id: str, version: str) -> Path:
    return (
        repository.joinpath(*group_id.split("."))
        / artifact_id
        / version
        / f"{artifact_id}-{version}.pom"
    )


def _artifact_license(pom_path: Path) -> str:
    """License names declared in an artifact POM, joined with `` OR ``."""
    try:
        root = ET.fromstring(pom_path.read_text(encoding="utf-8", errors="replace"))
    except (OSError, ET.ParseError):
        return ""
    names: list[str] = []
    for ns in (_NS, ""):
        for lic in root.iter(f"{ns}license"):
            name = _text(lic.find(f"{ns}name"))
            if name and name not in names:
                names.append(name)
    return " OR ".join(names)


class MavenPomParser:
    detection_method = "maven"
    file_patterns = ["pom.xml"]

    def parse(self, file_path: Path, content: str, options: ScanOptions) -> list[Dependency]:
        try:
            root = ET.fromstring(content)
        except ET.ParseError as exc:
            raise ScanError(self.detection_method, str(file_path), f"invalid XML: {exc}") from exc

        # Collect <properties> for ${...} substitution
        props = self._extract_properties(root)
        repository = options.maven_repository or Path.home() / ".m2" / "repository"

        deps: list[Dependency] = []

        # Try both namespaced and non-namespaced
        for ns in (_NS, ""):
            deps_el = root.find(f"{ns}dependencies")
            if deps_el is None:
                continue
            for dep_el in deps_el.findall(f"{ns}dependency"):
                group_id = _text(dep_el.find(f"{ns}groupId"))
                artifact_id = _text(dep_el.find(f"{ns}artifactId"))
                version = _text(dep_el.find(f"{ns}version")) or ""
                scope = _text(dep_el.find(f"{ns}scope")) or "compile"

                if not artifact_id or scope in _SKIPPED_SCOPES:
                    continue

                # Resolve ${property} placeholders
                if version:
                    version = _resolve_props(version, props)

                name = f"{group_id}:{artifact_id}" if group_id else artifact_id
                license_text = ""
                if group_id and version:
                    license_text = _artifact_license(
                        _local_pom(repository, group_id, artifact_id, version)
                    )

                deps.append(
                    Dependency(
                        name=name,
                        version=version,
                        ecosystem=self.detection_method,
                        raw_license=license_text,
                        source_file=file_path.name,
                    )
                )

        return deps

    @staticmethod
    def _extract_properties(root: ET.Element) -> dict[str, str]:
        """Extract <properties> key-value pairs from the POM root."""
        props: dict[str, str] = {}
        for ns in (_NS, ""):
            props_el = root.find(f"{ns}properties")
            if props_el is not None:
                for child in props_el:
                    # Strip namespace from tag name
                    tag = child.tag.split("}")[-1] if "}" in child.tag else child.tag
                    if child.text:
                        props[tag] = child.text.strip()
        version = _text(root.find(f"{_NS}version")) or _text(root.find("version"))
        if version:
            props.setdefault("project.version", version)
        return props


register_parser(MavenPomParser())
