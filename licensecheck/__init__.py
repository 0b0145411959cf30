"""licensecheck: audit third-party dependency licenses across a module tree."""

__version__ = "0.1.0"
