"""
Configuration file support for gha-vulnscan.

Looks for a .gha-vulnscan.yml file in the project root and loads settings
that control which audits to run, severity thresholds, file exclusions and
network use.

Example .gha-vulnscan.yml:

    # Minimum severity to report (high, medium, low, unknown)
    severity: medium

    # Audits to skip (by audit ID)
    ignore_audits:
      - known-vulnerable-actions

    # Workflow files to exclude (glob patterns relative to scan path)
    exclude:
      - "**/test-*.yml"
      - ".github/workflows/legacy.yml"

    # Skip audits that need the network
    offline: false

    # Parallel GitHub API lookups per workflow
    max_workers: 4

The GitHub token is never read from this file; pass --gh-token or set
GH_TOKEN / GITHUB_TOKEN.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILENAME = ".gha-vulnscan.yml"


@dataclass
class Config:
    """Parsed gha-vulnscan configuration."""
    severity: str = "unknown"
    ignore_audits: list[str] = field(default_factory=list)
    exclude: list[str] = field(default_factory=list)
    offline: bool = False
    max_workers: int = 1


def load_config(config_path: Optional[str] = None, scan_path: Optional[str] = None) -> Config:
    """
    Load configuration from a .gha-vulnscan.yml file.

    Search order:
      1. Explicit config_path if provided
      2. .gha-vulnscan.yml in the scan_path directory (or its parent if scan_path is a file)
      3. .gha-vulnscan.yml in the current working directory

    Returns a Config with defaults if no config file is found.
    """
    path = _find_config_file(config_path, scan_path)

    if path is None:
        logger.debug("No config file found, using defaults")
        return Config()

    logger.info("Loading config from %s", path)

    with open(path, "r") as f:
        raw = yaml.safe_load(f)

    if not isinstance(raw, dict):
        logger.warning("Config file is not a YAML mapping, using defaults")
        return Config()

    max_workers = raw.get("max_workers", 1)
    if not isinstance(max_workers, int) or max_workers < 1:
        logger.warning("Invalid max_workers %r, using 1", max_workers)
        max_workers = 1

    offline = raw.get("offline", False)
    if not isinstance(offline, bool):
        logger.warning("Invalid offline %r, using false", offline)
        offline = False

    return Config(
        severity=raw.get("severity", "unknown"),
        ignore_audits=raw.get("ignore_audits", []),
        exclude=raw.get("exclude", []),
        offline=offline,
        max_workers=max_workers,
    )


def _find_config_file(
    config_path: Optional[str] = None,
    scan_path: Optional[str] = None,
) -> Optional[str]:
    """Find the config file, returning its path or None."""
    # 1. Explicit path
    if config_path:
        p = Path(config_path)
        if p.is_file():
            return str(p)
        logger.warning("Config file not found: %s", config_path)
        return None

    # 2. Relative to scan path
    if scan_path:
        scan_p = Path(scan_path)
        if scan_p.is_file():
            scan_p = scan_p.parent
        candidate = scan_p / DEFAULT_CONFIG_FILENAME
        if candidate.is_file():
            return str(candidate)
        # Walk up to find it (e.g. scan_path is .github/workflows/)
        for parent in scan_p.parents:
            candidate = parent / DEFAULT_CONFIG_FILENAME
            if candidate.is_file():
                return str(candidate)

    # 3. Current working directory
    cwd_candidate = Path.cwd() / DEFAULT_CONFIG_FILENAME
    if cwd_candidate.is_file():
        return str(cwd_candidate)

    return None
