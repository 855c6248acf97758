"""
JSON reporter: outputs findings as structured JSON for programmatic use.
"""

import json
import logging
from typing import Any

from gha_vulnscan.finding import Finding
from gha_vulnscan.reporter.common import concretize

logger = logging.getLogger(__name__)


def _location_dicts(finding: Finding) -> list[dict[str, Any]]:
    locations = []
    for loc, feature in concretize(finding):
        job = loc.location.job
        locations.append({
            "job": job.id if job else None,
            "step": job.step.index if job and job.step else None,
            "annotation": loc.annotation,
            "line": feature.start.line + 1 if feature else None,
            "column": feature.start.column + 1 if feature else None,
            "text": feature.text if feature else None,
        })
    return locations


def report_json(findings: list[Finding]) -> str:
    """
    Format findings as a JSON string.

    Args:
        findings: List of Finding objects to report.

    Returns:
        A JSON string with all findings.
    """
    data = {
        "total": len(findings),
        "findings": [
            {
                "audit_id": f.audit_id,
                "severity": f.severity.value,
                "confidence": f.confidence.value,
                "description": f.description,
                "file_path": f.file_path,
                "locations": _location_dicts(f),
            }
            for f in findings
        ],
    }
    output = json.dumps(data, indent=2)
    logger.info("JSON report: %d finding(s), %d bytes", len(findings), len(output))
    return output
