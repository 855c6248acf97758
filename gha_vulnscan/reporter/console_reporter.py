"""
Console reporter: prints findings to the terminal with colors and formatting.
"""

from gha_vulnscan.finding import Finding, Severity
from gha_vulnscan.reporter.common import concretize


# ANSI color codes for terminal output
COLORS = {
    Severity.HIGH:    "\033[31m",  # red
    Severity.MEDIUM:  "\033[33m",  # yellow
    Severity.LOW:     "\033[36m",  # cyan
    Severity.UNKNOWN: "\033[37m",  # grey
}
BOLD = "\033[1m"
RESET = "\033[0m"


def _severity_badge(severity: Severity) -> str:
    color = COLORS.get(severity, "")
    label = severity.value.upper()
    return f"{color}{BOLD}[{label:7s}]{RESET}"


def report_console(findings: list[Finding], file_path: str = "") -> str:
    """
    Format findings as a colored console report.

    Args:
        findings: List of Finding objects to report.
        file_path: Optional label for the report header.

    Returns:
        The formatted report string (also prints it).
    """
    lines = []

    # Header
    lines.append("")
    lines.append(f"{BOLD}{'=' * 60}{RESET}")
    lines.append(f"{BOLD}  GitHub Actions Vulnerability Report{RESET}")
    if file_path:
        lines.append(f"  File: {file_path}")
    lines.append(f"{BOLD}{'=' * 60}{RESET}")
    lines.append("")

    if not findings:
        lines.append("  ✅ No security issues found!")
        lines.append("")
        report = "\n".join(lines)
        print(report)
        return report

    # Summary counts
    counts = {}
    for f in findings:
        counts[f.severity] = counts.get(f.severity, 0) + 1

    lines.append(f"  Found {BOLD}{len(findings)}{RESET} issue(s):")
    for sev in [Severity.HIGH, Severity.MEDIUM, Severity.LOW, Severity.UNKNOWN]:
        if sev in counts:
            lines.append(f"    {_severity_badge(sev)} × {counts[sev]}")
    lines.append("")
    lines.append(f"  {'-' * 56}")

    # Individual findings
    for i, f in enumerate(findings, 1):
        lines.append("")
        lines.append(f"  {_severity_badge(f.severity)} #{i}: {BOLD}{f.description}{RESET}")
        lines.append(f"    Audit:      {f.audit_id}")
        lines.append(f"    Confidence: {f.confidence.value}")
        for loc, feature in concretize(f):
            where = f"{f.file_path}"
            if feature is not None:
                where += f":{feature.start.line + 1}:{feature.start.column + 1}"
            lines.append(f"    At:         {where} ({loc.location})")
            if loc.annotation:
                lines.append(f"                {loc.annotation}")
            if feature is not None:
                for text_line in feature.text.splitlines()[:5]:
                    lines.append(f"      | {text_line}")

    lines.append("")
    lines.append(f"{BOLD}{'=' * 60}{RESET}")
    lines.append("")

    report = "\n".join(lines)
    print(report)
    return report
