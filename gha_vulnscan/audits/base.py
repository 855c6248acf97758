"""
Audit engine: the Audit protocol, the audit registry, and the runner.

Audits register themselves with @register_audit. At startup
build_audits() constructs every registered audit from an AuditConfig;
an audit whose preconditions are not met (e.g. it needs the network but
the scan is offline) is skipped rather than failing the whole scan.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import ClassVar, Iterable, Optional, Protocol

from gha_vulnscan.finding import Finding, FindingBuilder
from gha_vulnscan.github_api import GitHubAPIError
from gha_vulnscan.parser.workflow_parser import Workflow

logger = logging.getLogger(__name__)


class AuditSetupError(Exception):
    """An audit can't be constructed with the given configuration."""


class AuditError(Exception):
    """An audit failed while auditing a workflow."""


@dataclass
class AuditConfig:
    """Settings passed to every audit at construction time."""
    offline: bool = False
    gh_token: Optional[str] = None
    max_workers: int = 1


class Audit(Protocol):
    ident: ClassVar[str]    # e.g. "known-vulnerable-actions"
    desc: ClassVar[str]     # one-line description used in reports

    @classmethod
    def new(cls, config: AuditConfig) -> "Audit":
        """Construct the audit, raising AuditSetupError if it can't run."""
        ...

    def audit(self, workflow: Workflow) -> list[Finding]:
        ...


def finding_for(audit: type) -> FindingBuilder:
    """Start a FindingBuilder carrying the audit's identity."""
    return FindingBuilder(audit.ident, audit.desc)


# Registry of all audit classes, in registration order
_audits: list[type] = []


def register_audit(cls: type) -> type:
    """Class decorator to register an audit."""
    _audits.append(cls)
    logger.debug("Registered audit: %s", cls.ident)
    return cls


def registered_audits() -> list[type]:
    return list(_audits)


@dataclass
class AuditResults:
    """Findings from a set of audits, plus audits that did not run or complete."""
    findings: list[Finding] = field(default_factory=list)
    failures: list[tuple[str, str]] = field(default_factory=list)

    def merge(self, other: "AuditResults") -> None:
        self.findings.extend(other.findings)
        self.failures.extend(other.failures)


def build_audits(
    config: AuditConfig,
    ignore: Iterable[str] = (),
    audit_classes: Optional[list[type]] = None,
) -> tuple[list[Audit], list[tuple[str, str]]]:
    """
    Construct the registered audits.

    Returns:
        The constructed audits and the skipped audits as (audit id, reason) pairs.
    """
    ignored = set(ignore)
    audits: list[Audit] = []
    skipped: list[tuple[str, str]] = []

    for cls in audit_classes if audit_classes is not None else _audits:
        if cls.ident in ignored:
            logger.info("Audit '%s' ignored via config", cls.ident)
            continue
        try:
            audits.append(cls.new(config))
        except AuditSetupError as e:
            logger.warning("Skipping audit '%s': %s", cls.ident, e)
            skipped.append((cls.ident, str(e)))

    logger.info("%d audit(s) enabled, %d skipped", len(audits), len(skipped))
    return audits, skipped


def run_audits(workflow: Workflow, audits: list[Audit]) -> AuditResults:
    """
    Run each audit against a workflow.

    A failing audit contributes no findings for this workflow and is
    recorded in ``failures``; the remaining audits still run.
    """
    logger.info("Running %d audit(s) against %s", len(audits), workflow.file_path)
    t0 = time.monotonic()
    results = AuditResults()
    for audit in audits:
        audit_t0 = time.monotonic()
        try:
            audit_findings = audit.audit(workflow)
        except (AuditError, GitHubAPIError) as e:
            logger.error("Audit '%s' failed on %s: %s", audit.ident, workflow.file_path, e)
            results.failures.append((audit.ident, f"{workflow.file_path}: {e}"))
            continue
        audit_ms = (time.monotonic() - audit_t0) * 1000
        results.findings.extend(audit_findings)
        logger.debug(
            "Audit '%s': %d finding(s) in %.1fms",
            audit.ident, len(audit_findings), audit_ms,
        )
    total_ms = (time.monotonic() - t0) * 1000
    logger.info(
        "Completed: %d finding(s) for %s in %.1fms",
        len(results.findings), workflow.file_path, total_ms,
    )
    return results


def close_audits(audits: list[Audit]) -> None:
    """Release resources held by audits that define ``close()``, such as HTTP clients."""
    for audit in audits:
        close = getattr(audit, "close", None)
        if close is not None:
            close()
