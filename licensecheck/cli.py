"""CLI entry point for standalone usage: licensecheck.

Subcommands:
    licensecheck scan /path/to/project            # check every module, print the root report
    licensecheck scan . --json                    # machine-readable report
    licensecheck scan . --policy policy.toml --fail-on-disallowed
    licensecheck modules /path/to/project         # show the discovered module tree
"""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path

import click

from licensecheck.aggregator import ModuleReport
from licensecheck.core.config import Settings
from licensecheck.core.logging import setup_logging
from licensecheck.exceptions import ConfigurationError
from licensecheck.modules import discover_modules
from licensecheck.policy import PolicyStore, default_policy, load_policy_file
from licensecheck.report import MemoryReportSink, report_to_dict
from licensecheck.runner import LicenseCheckRunner

EXIT_CONFIG_ERROR = 1
EXIT_DISALLOWED = 2


def _load_policy(settings: Settings) -> PolicyStore:
    if settings.policy_file is None:
        return default_policy()
    return load_policy_file(settings.policy_file)


def _print_report(report: ModuleReport) -> None:
    if not report.dependencies:
        click.echo("No dependencies found.")
        return

    click.echo(
        f"Found {len(report.dependencies)} dependencies, "
        f"{len(report.licenses)} license(s) in use\n"
    )
    for title, items in (
        ("Disallowed", report.disallowed),
        ("Unknown", report.unknown),
        ("Compliant", report.compliant),
    ):
        if not items:
            continue
        click.echo(f"  {title} ({len(items)})")
        for item in items:
            dep = item.dependency
            version = f" {dep.version}" if dep.version else ""
            label = item.result.label or "<no license declared>"
            click.echo(f"    {dep.name}{version}  [{dep.ecosystem}]  {label}")
        click.echo()


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging")
def main(verbose: bool) -> None:
    """licensecheck: audit dependency licenses across a multi-module project."""
    setup_logging("DEBUG" if verbose else None)


@main.command("scan")
@click.argument("path", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("--policy", "policy_file", type=click.Path(path_type=Path), default=None,
              help="TOML or JSON license policy (default: built-in catalog)")
@click.option("--transitive/--no-transitive", default=None,
              help="Follow installed npm packages' own dependencies")
@click.option("--maven-repository", type=click.Path(path_type=Path), default=None,
              help="Local Maven repository (default: ~/.m2/repository)")
@click.option("--concurrency", type=click.IntRange(min=1), default=None,
              help="Modules analyzed in parallel")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.option("--fail-on-disallowed", is_flag=True,
              help=f"Exit with status {EXIT_DISALLOWED} when a forbidden license is found")
def scan(
    path: Path,
    policy_file: Path | None,
    transitive: bool | None,
    maven_repository: Path | None,
    concurrency: int | None,
    as_json: bool,
    fail_on_disallowed: bool,
) -> None:
    """Scan every module under PATH and print the aggregated report."""
    try:
        settings = Settings.from_env().override(
            policy_file=policy_file,
            resolve_transitive=transitive,
            maven_repository=maven_repository,
            concurrency=concurrency,
        )
        policy = _load_policy(settings)
    except (ConfigurationError, ValueError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_CONFIG_ERROR)

    modules = discover_modules(path)
    runner = LicenseCheckRunner(settings, policy, MemoryReportSink())
    result = asyncio.run(runner.run(modules))

    if result.skipped or result.root is None:
        click.echo("License check is disabled (LICENSECHECK_ENABLED=false).", err=True)
        return

    if as_json:
        payload = report_to_dict(result.root)
        payload["modules"] = [report_to_dict(result.modules[m]) for m in sorted(result.modules)]
        payload["failed_modules"] = result.failed
        click.echo(json.dumps(payload, indent=2))
    else:
        _print_report(result.root)
        for module_id in result.failed:
            click.echo(f"Warning: module {module_id} could not be analyzed", err=True)

    if fail_on_disallowed and result.has_disallowed:
        sys.exit(EXIT_DISALLOWED)


@main.command("modules")
@click.argument("path", type=click.Path(exists=True, file_okay=False, path_type=Path))
def modules(path: Path) -> None:
    """List the module tree discovered under PATH."""
    for module in discover_modules(path):
        parent = f"  (parent: {module.parent})" if module.parent else "  (root)"
        click.echo(f"{module.id}{parent}")


if __name__ == "__main__":
    main()
