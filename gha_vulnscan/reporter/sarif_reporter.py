"""
SARIF reporter: outputs findings in SARIF 2.1.0 format for GitHub Code Scanning.

SARIF (Static Analysis Results Interchange Format) is a JSON standard that
GitHub's Code Scanning feature understands. Upload the output to GitHub and
findings appear as annotations directly on the PR diff in the Security tab.

Reference: https://docs.github.com/en/code-security/code-scanning/integrating-with-code-scanning/sarif-support-for-code-scanning
"""

import json
import logging
from typing import Any, Optional

from gha_vulnscan.finding import AnnotatedLocation, Finding, Severity
from gha_vulnscan.finding.locate import Feature
from gha_vulnscan.reporter.common import concretize

logger = logging.getLogger(__name__)

# Map our severity levels to SARIF notification levels
_SARIF_LEVEL: dict[Severity, str] = {
    Severity.HIGH: "error",
    Severity.MEDIUM: "warning",
    Severity.LOW: "note",
    Severity.UNKNOWN: "note",
}

# Map our severity levels to SARIF security-severity scores (CVSS-like 0.0–10.0)
_SECURITY_SEVERITY: dict[Severity, str] = {
    Severity.HIGH: "7.0",
    Severity.MEDIUM: "5.0",
    Severity.LOW: "3.0",
    Severity.UNKNOWN: "0.0",
}

TOOL_NAME = "gha-vulnscan"
TOOL_VERSION = "0.1.0"
SARIF_SCHEMA = "https://raw.githubusercontent.com/oasis-tcs/sarif-spec/master/Schemata/sarif-schema-2.1.0.json"
SARIF_VERSION = "2.1.0"


def _build_rules(findings: list[Finding]) -> list[dict[str, Any]]:
    """Build the SARIF rules array — one entry per unique audit ID."""
    seen: dict[str, Finding] = {}
    for f in findings:
        if f.audit_id not in seen:
            seen[f.audit_id] = f

    rules = []
    for audit_id, f in seen.items():
        rules.append({
            "id": audit_id,
            "name": audit_id.replace("-", " ").title().replace(" ", ""),
            "shortDescription": {"text": f.description},
            "fullDescription": {"text": f.description},
            "properties": {
                "security-severity": _SECURITY_SEVERITY[f.severity],
                "tags": ["security", "github-actions"],
            },
        })
    return rules


def _build_region(feature: Optional[Feature]) -> dict[str, int]:
    # SARIF lines and columns are 1-based
    if feature is None:
        return {"startLine": 1}
    return {
        "startLine": feature.start.line + 1,
        "startColumn": feature.start.column + 1,
        "endLine": feature.end.line + 1,
        "endColumn": feature.end.column + 1,
    }


def _build_logical_locations(loc: AnnotatedLocation) -> list[dict[str, str]]:
    """Build logical location entries (job / step) for a location."""
    job = loc.location.job
    if job is None:
        return []
    locations = [{"name": job.id, "kind": "job"}]
    if job.step is not None:
        locations.append({"name": f"{job.id}.steps[{job.step.index}]", "kind": "step"})
    return locations


def _build_result(f: Finding) -> dict[str, Any]:
    """Build a single SARIF result object from a Finding."""
    resolved = concretize(f)
    annotations = [loc.annotation for loc, _ in resolved if loc.annotation]
    message = f.description
    if annotations:
        message += ": " + ", ".join(annotations)

    return {
        "ruleId": f.audit_id,
        "level": _SARIF_LEVEL[f.severity],
        "message": {"text": message},
        "properties": {"confidence": f.confidence.value},
        "locations": [
            {
                "physicalLocation": {
                    "artifactLocation": {
                        "uri": f.file_path,
                        "uriBaseId": "%SRCROOT%",
                    },
                    "region": _build_region(feature),
                },
                "logicalLocations": _build_logical_locations(loc),
            }
            for loc, feature in resolved
        ],
    }


def report_sarif(findings: list[Finding]) -> str:
    """
    Format findings as a SARIF 2.1.0 JSON string.

    The output can be uploaded to GitHub Code Scanning via:
      gh code-scanning upload-results --sarif results.sarif

    Or in a GitHub Actions workflow:
      - uses: github/codeql-action/upload-sarif@v3
        with:
          sarif_file: results.sarif

    Args:
        findings: List of Finding objects to report.

    Returns:
        A SARIF 2.1.0 JSON string.
    """
    sarif: dict[str, Any] = {
        "$schema": SARIF_SCHEMA,
        "version": SARIF_VERSION,
        "runs": [
            {
                "tool": {
                    "driver": {
                        "name": TOOL_NAME,
                        "version": TOOL_VERSION,
                        "rules": _build_rules(findings),
                    }
                },
                "results": [_build_result(f) for f in findings],
            }
        ],
    }

    output = json.dumps(sarif, indent=2)
    logger.info("SARIF report: %d finding(s), %d bytes", len(findings), len(output))
    return output
