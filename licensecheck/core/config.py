"""Run settings — environment variables, overridable from the CLI."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValueError(f"{name} must be a boolean (got {raw!r})")


@dataclass(frozen=True)
class Settings:
    """Settings for one project-analysis run."""

    enabled: bool = True
    resolve_transitive: bool = False
    policy_file: Path | None = None
    maven_repository: Path | None = None
    concurrency: int = 4

    @classmethod
    def from_env(cls) -> Settings:
        """Build settings from environment variables.

        LICENSECHECK_ENABLED                — activation flag (default: true)
        LICENSECHECK_NPM_RESOLVE_TRANSITIVE — follow node_modules (default: false)
        LICENSECHECK_POLICY_FILE            — TOML/JSON policy (default: built-in)
        LICENSECHECK_MAVEN_REPOSITORY       — local Maven repo (default: ~/.m2/repository)
        LICENSECHECK_CONCURRENCY            — parallel module tasks (default: 4)
        """
        policy = os.environ.get("LICENSECHECK_POLICY_FILE")
        maven_repo = os.environ.get("LICENSECHECK_MAVEN_REPOSITORY")
        concurrency = int(os.environ.get("LICENSECHECK_CONCURRENCY", "4"))
        return cls(
            enabled=_env_bool("LICENSECHECK_ENABLED", True),
            resolve_transitive=_env_bool("LICENSECHECK_NPM_RESOLVE_TRANSITIVE", False),
            policy_file=Path(policy) if policy else None,
            maven_repository=Path(maven_repo) if maven_repo else None,
            concurrency=max(1, concurrency),
        )

    def override(self, **changes) -> Settings:
        """Return a copy with every non-None value in *changes* applied."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})
