"""Shared fixtures for licensecheck tests."""

from __future__ import annotations

import pytest

from licensecheck.policy import PolicyStore
from licensecheck.validator import LicenseValidator

POLICY_CONFIG = {
    "licenses": [
        {"identifier": "MIT", "name": "MIT License", "patterns": ["mit", "mit license"]},
        {
            "identifier": "Apache-2.0",
            "name": "Apache License 2.0",
            "patterns": ["apache 2.0", "/apache license,? version 2(\\.0)?/"],
        },
        {"identifier": "GPL-3.0", "name": "GNU General Public License v3.0", "allowed": False},
    ],
    "dependency_mappings": [
        {"pattern": "org\\.apache\\..*", "license": "Apache-2.0"},
    ],
}


@pytest.fixture
def policy() -> PolicyStore:
    return PolicyStore.load(POLICY_CONFIG)


@pytest.fixture
def validator(policy) -> LicenseValidator:
    return LicenseValidator(policy)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in (
        "LICENSECHECK_ENABLED",
        "LICENSECHECK_NPM_RESOLVE_TRANSITIVE",
        "LICENSECHECK_POLICY_FILE",
        "LICENSECHECK_MAVEN_REPOSITORY",
        "LICENSECHECK_CONCURRENCY",
    ):
        monkeypatch.delenv(name, raising=False)
