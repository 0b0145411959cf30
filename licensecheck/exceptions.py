"""Custom exceptions for licensecheck."""


class LicenseCheckError(Exception):
    """Base exception for all license check errors."""


class ScanError(LicenseCheckError):
    """Raised by a scanner when a manifest exists but cannot be read or parsed."""

    def __init__(self, scanner: str, path: str, reason: str):
        self.scanner = scanner
        self.path = path
        self.reason = reason
        super().__init__(f"{scanner}: cannot scan {path}: {reason}")


class ConfigurationError(LicenseCheckError):
    """Raised when the license policy is malformed. Fatal to the run."""


class AggregationError(LicenseCheckError):
    """Raised when a run context is used out of order (double record, record after finalize)."""
