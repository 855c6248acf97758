"""
Audit: Detect actions with publicly disclosed vulnerabilities.

Uses GitHub's global security advisory database as the source of truth.
The hard part is turning a ``uses:`` ref into a version the advisory
database understands:

  * ``@v1.2.3``-style exact tags can be queried directly, but refs like a
    ``v3`` branch/tag or a ``release/v1`` branch can't. For any symbolic
    ref we resolve it to a commit and take the longest tag name pointing at
    that commit, so ``v1`` usually becomes ``v1.2.3``. With no such tag we
    fall back to the ref itself.
  * A commit SHA is mapped straight to the longest tag for that commit. An
    untagged commit has no version and yields nothing.
  * No ref at all means the default branch, which has no version either.

See: https://docs.github.com/en/rest/security-advisories/global-advisories
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

from gha_vulnscan.audits.base import (
    AuditConfig,
    AuditSetupError,
    finding_for,
    register_audit,
)
from gha_vulnscan.finding import Confidence, Finding, Severity, WorkflowLocation
from gha_vulnscan.github_api import GitHubClient
from gha_vulnscan.parser.workflow_parser import Job, Step, Uses, Workflow

logger = logging.getLogger(__name__)

# GHSA severities to ours. "low" deliberately lands in UNKNOWN.
ADVISORY_SEVERITY: dict[str, Severity] = {
    "low": Severity.UNKNOWN,
    "medium": Severity.MEDIUM,
    "high": Severity.HIGH,
    "critical": Severity.HIGH,
}


def map_advisory_severity(severity: str) -> Severity:
    return ADVISORY_SEVERITY.get(severity, Severity.UNKNOWN)


@register_audit
class KnownVulnerableActions:
    ident = "known-vulnerable-actions"
    desc = "action has a known vulnerability"

    def __init__(self, config: AuditConfig, client: GitHubClient):
        self.config = config
        self.client = client

    @classmethod
    def new(cls, config: AuditConfig) -> "KnownVulnerableActions":
        if config.offline:
            raise AuditSetupError("offline audits only requested")
        if not config.gh_token:
            raise AuditSetupError("can't audit without a GitHub API token")
        return cls(config, GitHubClient(config.gh_token))

    def close(self) -> None:
        self.client.close()

    def resolve_version(self, uses: Uses) -> Optional[str]:
        """Turn a uses reference into a version label, or None if there isn't one."""
        if uses.git_ref is None:
            logger.debug("%s: no ref, runs the default branch", uses)
            return None

        if not uses.ref_is_commit:
            commit = self.client.commit_for_ref(uses.owner, uses.repo, uses.git_ref)
            if commit is None:
                # The pin is most likely just invalid.
                logger.debug("%s: ref does not resolve to a commit", uses)
                return None

            tag = self.client.longest_tag_for_commit(uses.owner, uses.repo, commit)
            if tag is None:
                # branch -> sha -> no tag: the ref is the best we have
                logger.debug("%s: no tag for %s, using the ref as version", uses, commit)
                return uses.git_ref
            return tag.name

        tag = self.client.longest_tag_for_commit(uses.owner, uses.repo, uses.git_ref)
        if tag is None:
            logger.debug("%s: commit has no tag, version unknown", uses)
            return None
        return tag.name

    def action_known_vulnerabilities(self, uses: Uses) -> list[tuple[Severity, str]]:
        """Return (severity, advisory id) pairs for the resolved version of ``uses``."""
        version = self.resolve_version(uses)
        if version is None:
            return []

        logger.debug("%s: resolved version %s", uses, version)
        advisories = self.client.gha_advisories(uses.owner, uses.repo, version)
        return [(map_advisory_severity(a.severity), a.ghsa_id) for a in advisories]

    def _action_uses(self, workflow: Workflow) -> list[tuple[Job, Step, Uses]]:
        candidates = []
        for job in workflow.jobs:
            if not job.is_normal:
                continue
            for step in job.steps:
                if not step.is_uses:
                    continue
                uses = Uses.parse(step.uses)
                if uses is None:
                    continue
                candidates.append((job, step, uses))
        return candidates

    def audit(self, workflow: Workflow) -> list[Finding]:
        candidates = self._action_uses(workflow)
        logger.debug("%s: %d action use(s) to check", workflow.file_path, len(candidates))

        if self.config.max_workers > 1 and len(candidates) > 1:
            # map() yields in submission order, i.e. document order
            with ThreadPoolExecutor(max_workers=self.config.max_workers) as pool:
                resolved = list(pool.map(
                    lambda c: self.action_known_vulnerabilities(c[2]), candidates,
                ))
        else:
            resolved = [self.action_known_vulnerabilities(uses) for _, _, uses in candidates]

        findings = []
        for (job, step, _), vulns in zip(candidates, resolved):
            for severity, ghsa_id in vulns:
                location = WorkflowLocation.for_step(job.job_id, step.index).with_keys(["uses"])
                findings.append(
                    finding_for(type(self))
                    .confidence(Confidence.HIGH)
                    .severity(severity)
                    .add_location(location.annotated(ghsa_id))
                    .build(workflow)
                )
        return findings
