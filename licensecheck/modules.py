"""Module tree discovery from a project directory layout."""

from __future__ import annotations

import os
from pathlib import Path

# Ensure parsers are registered before manifests are matched.
import licensecheck.dependency_scanner.parsers  # noqa: F401
from licensecheck.dependency_scanner.registry import discover_manifests
from licensecheck.models import Module

_SKIPPED_DIRS = {"node_modules", ".git", "target", "build", "dist", ".venv", "venv", "__pycache__"}


def _module_id(root: Path, path: Path) -> str:
    if path == root:
        return root.name or str(root)
    return f"{root.name}/{path.relative_to(root).as_posix()}"


def discover_modules(root: Path) -> list[Module]:
    """Return the root module followed by every nested manifest directory.

    The root directory is always a module. A descendant directory becomes a
    module when it holds a supported manifest; its parent is the nearest
    enclosing module. Modules are returned in top-down path order.
    """
    root = root.resolve()
    modules = [Module(id=_module_id(root, root), path=root, parent=None)]
    by_path = {root: modules[0]}

    for dirpath, dirnames, _ in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d not in _SKIPPED_DIRS)
        current = Path(dirpath)
        if current == root or not discover_manifests(current):
            continue
        ancestor = current.parent
        while ancestor not in by_path:
            ancestor = ancestor.parent
        module = Module(id=_module_id(root, current), path=current, parent=by_path[ancestor].id)
        by_path[current] = module
        modules.append(module)

    return modules
