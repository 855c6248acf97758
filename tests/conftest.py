"""Shared fixtures for all tests."""

import os
import pytest

from gha_vulnscan.audits import AuditConfig
from gha_vulnscan.audits.known_vulnerable_actions import KnownVulnerableActions
from gha_vulnscan.github_api import Advisory, GitHubAPIError, Tag, pick_longest_tag
from gha_vulnscan.parser import parse_workflow


FIXTURES_DIR = os.path.join(os.path.dirname(__file__), "fixtures/.github/workflows")

CHECKOUT_V3_SHA = "a" * 40
SETUP_NODE_SHA = "b" * 40


class FakeGitHubClient:
    """Stands in for GitHubClient; records every call it receives."""

    def __init__(self, refs=None, tags=None, advisories=None, fail_on=None):
        self.refs = refs or {}              # (owner, repo, ref) -> sha
        self.tags = tags or {}              # (owner, repo) -> [Tag]
        self.advisories = advisories or {}  # (owner, repo, version) -> [Advisory]
        self.fail_on = fail_on              # method name that raises GitHubAPIError
        self.calls = []
        self.closed = False

    def _record(self, name, *args):
        self.calls.append((name,) + args)
        if self.fail_on == name:
            raise GitHubAPIError(f"{name} failed")

    def commit_for_ref(self, owner, repo, ref):
        self._record("commit_for_ref", owner, repo, ref)
        return self.refs.get((owner, repo, ref))

    def longest_tag_for_commit(self, owner, repo, commit):
        self._record("longest_tag_for_commit", owner, repo, commit)
        matching = [t for t in self.tags.get((owner, repo), []) if t.sha == commit]
        return pick_longest_tag(matching)

    def gha_advisories(self, owner, repo, version):
        self._record("gha_advisories", owner, repo, version)
        return self.advisories.get((owner, repo, version), [])

    def close(self):
        self.closed = True


def make_fake_client(**overrides):
    """A fake where actions/checkout@v3 resolves to v3.5.2, which has one high advisory."""
    defaults = dict(
        refs={
            ("actions", "checkout", "v3"): CHECKOUT_V3_SHA,
        },
        tags={
            ("actions", "checkout"): [
                Tag("v3", CHECKOUT_V3_SHA),
                Tag("v3.5.2", CHECKOUT_V3_SHA),
                Tag("v2.0.0", "c" * 40),
            ],
            ("actions", "setup-node"): [Tag("v2.1.0", SETUP_NODE_SHA)],
        },
        advisories={
            ("actions", "checkout", "v3.5.2"): [Advisory("GHSA-xxxx", "high")],
        },
    )
    defaults.update(overrides)
    return FakeGitHubClient(**defaults)


@pytest.fixture
def fake_client():
    return make_fake_client()


@pytest.fixture
def audit(fake_client):
    """A known-vulnerable-actions audit wired to the fake client."""
    return KnownVulnerableActions(AuditConfig(gh_token="test-token"), fake_client)


@pytest.fixture
def vulnerable_workflow_path():
    """Path to the vulnerable example workflow fixture."""
    return os.path.join(FIXTURES_DIR, "vulnerable-example.yml")


@pytest.fixture
def vulnerable_workflow(vulnerable_workflow_path):
    """Parsed vulnerable example workflow."""
    return parse_workflow(vulnerable_workflow_path)


@pytest.fixture
def clean_workflow():
    return parse_workflow(os.path.join(FIXTURES_DIR, "clean-example.yml"))


@pytest.fixture
def vulnerable_findings(audit, vulnerable_workflow):
    """All findings from the vulnerable example workflow."""
    return audit.audit(vulnerable_workflow)


@pytest.fixture
def fixtures_dir():
    """Path to the fixtures workflow directory."""
    return FIXTURES_DIR
