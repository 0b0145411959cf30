"""Parser for pip requirements.txt files.

Requirement lines carry no license; these dependencies are licensed through
the policy's dependency mappings or reported as unknown.
"""

from __future__ import annotations

import re
from pathlib import Path

from licensecheck.dependency_scanner.registry import ScanOptions, register_parser
from licensecheck.models import Dependency

# Matches: package_name followed by optional extras and version specifier(s)
_REQ_RE = re.compile(
    r"^([A-Za-z0-9]([A-Za-z0-9._-]*[A-Za-z0-9])?)"  # package name
    r"(\[[^\]]*\])?"  # optional extras
    r"\s*"
    r"(.*)?$",  # everything after name = constraint
)

_EXACT_VERSION_RE = re.compile(r"^==\s*([^\s,;]+)$")


class PipRequirementsParser:
    detection_method = "pip"
    file_patterns = ["requirements.txt"]

    def parse(self, file_path: Path, content: str, options: ScanOptions) -> list[Dependency]:
        deps: list[Dependency] = []

        for raw_line in content.splitlines():
            line = raw_line.split(" #", 1)[0].strip()
            if not line or line.startswith("#"):
                continue
            if line.startswith(("-r", "-c", "-e", "--")):
                continue

            m = _REQ_RE.match(line)
            if not m:
                continue

            constraint = (m.group(4) or "").split(";", 1)[0].strip()
            exact = _EXACT_VERSION_RE.match(constraint)
            deps.append(
                Dependency(
                    name=m.group(1),
                    version=exact.group(1) if exact else "",
                    ecosystem=self.detection_method,
                    source_file=file_path.name,
                )
            )

        return deps


register_parser(PipRequirementsParser())
