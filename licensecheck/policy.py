"""License policy store — the configured catalog of known, allowed and forbidden licenses.

Configuration shape (TOML shown; JSON uses the same keys)::

    default_allowed = true

    [[licenses]]
    identifier = "MIT"
    name = "MIT License"
    patterns = ["mit", "mit license", "/the mit licen[cs]e.*/"]

    [[licenses]]
    identifier = "GPL-3.0"
    allowed = false

    [[dependency_mappings]]
    pattern = "org\\.apache\\..*"
    license = "Apache-2.0"

Patterns wrapped in slashes are regular expressions (full match, case
insensitive); everything else is matched as normalized text.
"""

from __future__ import annotations

import json
import re
import sys
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

import structlog
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from licensecheck.exceptions import ConfigurationError
from licensecheck.models import License

log = structlog.get_logger("licensecheck.policy")

_SEPARATORS_RE = re.compile(r"[\s_\-]+")
_WRAPPING = "\"'()[] "

# Words that say nothing about which license is meant. A containment match
# needs at least one token outside this set.
_GENERIC_TOKENS = frozenset(
    {
        "the", "gnu", "general", "public", "license", "licence", "licensed",
        "software", "version", "v", "or", "later", "only", "and", "any",
    }
)
_VERSION_TOKEN_RE = re.compile(r"v?\d+(\.\d+)*\+?")


def normalize(text: str) -> str:
    """Trim, case-fold and collapse whitespace/alias separators."""
    value = text.strip().strip(_WRAPPING).casefold()
    return _SEPARATORS_RE.sub(" ", value).strip()


def _is_distinctive(normalized: str) -> bool:
    """True when *normalized* names something beyond generic words and versions."""
    for token in normalized.split(" "):
        token = token.strip(",;:.")
        if token and token not in _GENERIC_TOKENS and not _VERSION_TOKEN_RE.fullmatch(token):
            return True
    return False


# ── configuration schema ─────────────────────────────────────────────────


class LicenseRuleConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    identifier: str
    name: str = ""
    patterns: list[str] = Field(default_factory=list)
    allowed: bool | None = None


class DependencyMappingConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    pattern: str
    license: str


class PolicyConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    default_allowed: bool = True
    licenses: list[LicenseRuleConfig] = Field(default_factory=list)
    dependency_mappings: list[DependencyMappingConfig] = Field(default_factory=list)


# ── compiled store ───────────────────────────────────────────────────────


@dataclass(frozen=True)
class LicenseRule:
    """A License together with its pre-normalized matchers."""

    license: License
    texts: tuple[str, ...]
    regexes: tuple[re.Pattern[str], ...]

    def matches(self, normalized: str, raw: str) -> bool:
        if not normalized:
            return False
        # Containment is on word boundaries so "gpl 3.0" does not hit "lgpl 3.0",
        # and never on generic words alone ("license", "gnu", "v3.0").
        padded = f" {normalized} "
        contains = _is_distinctive(normalized)
        for text in self.texts:
            if normalized == text:
                return True
            if contains and padded in f" {text} ":
                return True
        stripped = raw.strip()
        return any(rx.fullmatch(stripped) for rx in self.regexes)


@dataclass(frozen=True)
class DependencyMapping:
    pattern: re.Pattern[str]
    license: License


def _compile_regex(source: str, where: str) -> re.Pattern[str]:
    try:
        return re.compile(source, re.IGNORECASE)
    except re.error as exc:
        raise ConfigurationError(f"{where}: invalid pattern {source!r}: {exc}") from exc


def _compile_rule(cfg: LicenseRuleConfig, default_allowed: bool) -> LicenseRule:
    identifier = cfg.identifier.strip()
    allowed = default_allowed if cfg.allowed is None else cfg.allowed
    lic = License(
        identifier=identifier,
        display_name=cfg.name.strip(),
        match_patterns=tuple(cfg.patterns),
        allowed=allowed,
    )

    texts: list[str] = []
    regexes: list[re.Pattern[str]] = []
    for pattern in (identifier, lic.display_name, *cfg.patterns):
        if len(pattern) >= 2 and pattern.startswith("/") and pattern.endswith("/"):
            regexes.append(_compile_regex(pattern[1:-1], f"license {identifier}"))
            continue
        text = normalize(pattern)
        if text and text not in texts:
            texts.append(text)
    return LicenseRule(license=lic, texts=tuple(texts), regexes=tuple(regexes))


class PolicyStore:
    """Read-only license catalog, in configured order."""

    def __init__(
        self,
        rules: list[LicenseRule],
        mappings: list[DependencyMapping] | None = None,
    ) -> None:
        self._rules = tuple(rules)
        self._mappings = tuple(mappings or ())
        self._by_id = {r.license.identifier: r.license for r in self._rules}

    @classmethod
    def load(cls, configuration: Mapping[str, Any]) -> PolicyStore:
        """Parse and validate a policy configuration mapping.

        Raises ``ConfigurationError`` on any malformed rule.
        """
        try:
            cfg = PolicyConfig.model_validate(dict(configuration))
        except PydanticValidationError as exc:
            raise ConfigurationError(f"invalid license policy: {exc}") from exc

        rules: list[LicenseRule] = []
        seen: set[str] = set()
        for index, rule_cfg in enumerate(cfg.licenses):
            identifier = rule_cfg.identifier.strip()
            if not identifier:
                raise ConfigurationError(f"licenses[{index}]: identifier must not be empty")
            if identifier in seen:
                raise ConfigurationError(f"licenses[{index}]: duplicate identifier {identifier!r}")
            seen.add(identifier)
            rules.append(_compile_rule(rule_cfg, cfg.default_allowed))

        by_id = {r.license.identifier: r.license for r in rules}
        mappings: list[DependencyMapping] = []
        for index, mapping_cfg in enumerate(cfg.dependency_mappings):
            lic = by_id.get(mapping_cfg.license.strip())
            if lic is None:
                raise ConfigurationError(
                    f"dependency_mappings[{index}]: unknown license {mapping_cfg.license!r}"
                )
            mappings.append(
                DependencyMapping(
                    pattern=_compile_regex(mapping_cfg.pattern, f"dependency_mappings[{index}]"),
                    license=lic,
                )
            )

        log.debug("policy.loaded", licenses=len(rules), mappings=len(mappings))
        return cls(rules, mappings)

    @property
    def rules(self) -> tuple[LicenseRule, ...]:
        return self._rules

    @property
    def licenses(self) -> tuple[License, ...]:
        return tuple(r.license for r in self._rules)

    def get(self, identifier: str) -> License | None:
        return self._by_id.get(identifier)

    def match(self, raw_license: str) -> License | None:
        """First License (in configured order) whose patterns accept *raw_license*."""
        normalized = normalize(raw_license)
        if not normalized:
            return None
        for rule in self._rules:
            if rule.matches(normalized, raw_license):
                return rule.license
        return None

    def license_for_dependency(self, name: str) -> License | None:
        """License assigned to a dependency name by the dependency mappings, if any."""
        for mapping in self._mappings:
            if mapping.pattern.fullmatch(name):
                return mapping.license
        return None


def load_policy_file(path: Path) -> PolicyStore:
    """Load a policy from a ``.toml`` or ``.json`` file."""
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(f"cannot read policy file {path}: {exc}") from exc

    try:
        if path.suffix.lower() == ".json":
            data = json.loads(content)
        else:
            data = tomllib.loads(content)
    except (json.JSONDecodeError, tomllib.TOMLDecodeError) as exc:
        raise ConfigurationError(f"cannot parse policy file {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigurationError(f"policy file {path} must contain a table/object")
    return PolicyStore.load(data)


# Built-in catalog used when no policy file is configured. Forbidden entries
# are listed before permissive ones.
_DEFAULT_POLICY: dict[str, Any] = {
    "licenses": [
        {"identifier": "AGPL-3.0", "name": "GNU Affero General Public License v3.0",
         "allowed": False},
        {"identifier": "GPL-2.0", "name": "GNU General Public License v2.0",
         "patterns": ["gplv2"], "allowed": False},
        {"identifier": "GPL-3.0", "name": "GNU General Public License v3.0",
         "patterns": ["gplv3"], "allowed": False},
        {"identifier": "MIT", "name": "MIT License", "patterns": ["mit license", "expat"]},
        {"identifier": "Apache-2.0", "name": "Apache License 2.0",
         "patterns": ["apache 2", "apache license, version 2.0", "asl 2.0", "apache software license"]},
        {"identifier": "BSD-3-Clause", "name": "BSD 3-Clause License",
         "patterns": ["new bsd license", "modified bsd license", "bsd 3 clause"]},
        {"identifier": "BSD-2-Clause", "name": "BSD 2-Clause License",
         "patterns": ["simplified bsd license", "freebsd license"]},
        {"identifier": "ISC", "name": "ISC License"},
        {"identifier": "MPL-2.0", "name": "Mozilla Public License 2.0"},
        {"identifier": "EPL-2.0", "name": "Eclipse Public License 2.0"},
        {"identifier": "LGPL-2.1", "name": "GNU Lesser General Public License v2.1"},
        {"identifier": "LGPL-3.0", "name": "GNU Lesser General Public License v3.0"},
        {"identifier": "CC0-1.0", "name": "Creative Commons Zero v1.0 Universal"},
        {"identifier": "Unlicense", "name": "The Unlicense"},
    ],
}


def default_policy() -> PolicyStore:
    return PolicyStore.load(_DEFAULT_POLICY)
