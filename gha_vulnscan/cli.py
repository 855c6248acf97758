"""
CLI entry point: ties together parser → audits → reporter.

Usage:
  # Scan a workflows directory (needs a GitHub token for advisory lookups):
  GH_TOKEN=... python3 -m gha_vulnscan scan path/to/.github/workflows/

  # Output as JSON or SARIF:
  python3 -m gha_vulnscan scan path/to/.github/workflows/ --format sarif

  # Scan a single file:
  python3 -m gha_vulnscan scan path/to/workflow.yml

Exit codes:
  0 — no findings
  1 — findings detected
  2 — error (bad input, no audit could run, or an audit failed)
"""

import fnmatch
import logging
import os
import sys

import click
import yaml

from gha_vulnscan.audits import AuditConfig, AuditResults, build_audits, close_audits, run_audits
from gha_vulnscan.config import load_config
from gha_vulnscan.finding import SEVERITY_ORDER, Severity
from gha_vulnscan.parser import parse_workflow, parse_workflows_dir
from gha_vulnscan.reporter import report_console, report_json, report_sarif

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FINDINGS = 1
EXIT_ERROR = 2


def _setup_logging(verbose: bool) -> None:
    """Configure logging based on verbosity flag."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose logging.")
def cli(verbose: bool):
    """GitHub Actions vulnerability scanner — find actions with known advisories."""
    _setup_logging(verbose)


@cli.command()
@click.argument("path")
@click.option("--format", "output_format", type=click.Choice(["console", "json", "sarif"]), default="console", help="Output format.")
@click.option("--severity", "min_severity", type=click.Choice(["high", "medium", "low", "unknown"]), default=None, help="Minimum severity to report (overrides config file).")
@click.option("--config", "config_path", default=None, help="Path to .gha-vulnscan.yml config file.")
@click.option("--gh-token", envvar=["GH_TOKEN", "GITHUB_TOKEN"], default=None, help="GitHub API token (default: $GH_TOKEN or $GITHUB_TOKEN).")
@click.option("--offline", is_flag=True, help="Skip audits that need network access.")
def scan(path: str, output_format: str, min_severity: str, config_path: str, gh_token: str, offline: bool):
    """Scan GitHub Actions workflow files for actions with known vulnerabilities.

    Exits with code 0 if no issues found, 1 if issues found, 2 on error.
    """
    path = os.path.abspath(path)

    # Load config file (CLI flags override config values)
    config = load_config(config_path=config_path, scan_path=path)
    effective_severity = min_severity or config.severity
    try:
        min_sev = Severity(effective_severity)
    except ValueError:
        click.echo(f"Error: unknown severity '{effective_severity}' in config.", err=True)
        sys.exit(EXIT_ERROR)

    # Parse workflows
    try:
        if os.path.isfile(path):
            workflows = [parse_workflow(path)]
        elif os.path.isdir(path):
            workflows = parse_workflows_dir(path)
        else:
            click.echo(f"Error: '{path}' is not a file or directory.", err=True)
            sys.exit(EXIT_ERROR)
    except (yaml.YAMLError, ValueError) as e:
        click.echo(f"Error parsing workflow: {e}", err=True)
        sys.exit(EXIT_ERROR)
    except FileNotFoundError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_ERROR)

    if not workflows:
        click.echo("No workflow files found.")
        sys.exit(EXIT_OK)

    # Apply exclude patterns from config
    if config.exclude:
        before = len(workflows)
        workflows = [
            wf for wf in workflows
            if not any(fnmatch.fnmatch(wf.file_path, pat) for pat in config.exclude)
        ]
        excluded = before - len(workflows)
        if excluded:
            logger.info("Excluded %d workflow(s) via config", excluded)

    if not workflows:
        click.echo("All workflow files excluded by config.")
        sys.exit(EXIT_OK)

    # Build the audits; ones whose preconditions aren't met are skipped
    audit_config = AuditConfig(
        offline=offline or config.offline,
        gh_token=gh_token,
        max_workers=config.max_workers,
    )
    audits, skipped = build_audits(audit_config, ignore=config.ignore_audits)
    for audit_id, reason in skipped:
        click.echo(f"Warning: audit '{audit_id}' not run: {reason}", err=True)

    if not audits:
        click.echo("Error: no audits could run.", err=True)
        sys.exit(EXIT_ERROR)

    # Run audits on all workflows
    results = AuditResults()
    try:
        for wf in workflows:
            results.merge(run_audits(wf, audits))
    finally:
        close_audits(audits)

    for audit_id, reason in results.failures:
        click.echo(f"Error: audit '{audit_id}' did not complete: {reason}", err=True)

    # Filter by minimum severity
    all_findings = [
        f for f in results.findings
        if SEVERITY_ORDER[f.severity] >= SEVERITY_ORDER[min_sev]
    ]

    if not all_findings:
        if results.failures:
            sys.exit(EXIT_ERROR)
        click.echo("\n✅ No security issues found!")
        sys.exit(EXIT_OK)

    if output_format == "json":
        click.echo(report_json(all_findings))
    elif output_format == "sarif":
        click.echo(report_sarif(all_findings))
    else:
        report_console(all_findings, file_path=path)

    sys.exit(EXIT_FINDINGS)


if __name__ == "__main__":
    cli()
