"""
Minimal GitHub REST API client.

Covers the three lookups the known-vulnerable-actions audit needs:
resolving a ref to a commit, listing a repository's tags, and querying the
global security advisory database for the ``actions`` ecosystem.

Reference: https://docs.github.com/en/rest/security-advisories/global-advisories
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import quote

import httpx

logger = logging.getLogger(__name__)

API_BASE = "https://api.github.com"
API_VERSION = "2022-11-28"
USER_AGENT = "gha-vulnscan"
DEFAULT_TIMEOUT = 30.0


class GitHubAPIError(Exception):
    """A GitHub API call failed (transport error or unexpected status)."""


@dataclass(frozen=True)
class Tag:
    """A git tag and the commit it points to."""
    name: str
    sha: str


@dataclass(frozen=True)
class Advisory:
    """A GitHub security advisory record."""
    ghsa_id: str
    severity: str


def pick_longest_tag(tags: list[Tag]) -> Optional[Tag]:
    """
    Return the tag with the longest name.

    Equal-length names are broken lexicographically (greatest wins), so the
    result does not depend on the order the API returned the tags in.
    """
    if not tags:
        return None
    return max(tags, key=lambda t: (len(t.name), t.name))


class GitHubClient:
    """Synchronous GitHub API client authenticated with a token."""

    def __init__(
        self,
        token: str,
        api_base: str = API_BASE,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.api_base = api_base
        self.session = httpx.Client(
            base_url=api_base,
            timeout=timeout,
            transport=transport,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": API_VERSION,
                "User-Agent": USER_AGENT,
            },
        )

    def close(self) -> None:
        self.session.close()

    def _get(self, url: str, params: Optional[dict[str, Any]] = None) -> httpx.Response:
        t0 = time.monotonic()
        try:
            response = self.session.get(url, params=params)
        except httpx.HTTPError as e:
            logger.error("GitHub API request failed: GET %s: %s", url, e)
            raise GitHubAPIError(f"request to {url} failed: {e}") from e
        logger.debug(
            "GET %s -> %d in %.0fms",
            url, response.status_code, (time.monotonic() - t0) * 1000,
        )
        return response

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise GitHubAPIError(
                f"invalid JSON from GitHub API ({response.request.url}): {e}"
            ) from e

    def commit_for_ref(self, owner: str, repo: str, ref: str) -> Optional[str]:
        """Resolve a branch or tag name to a commit SHA, or None if no such ref exists."""
        # "#", "?" and "%" are legal in ref names
        response = self._get(f"/repos/{owner}/{repo}/commits/{quote(ref, safe='/')}")

        if response.status_code == 200:
            body = self._json(response)
            try:
                return body["sha"]
            except (KeyError, TypeError) as e:
                raise GitHubAPIError(
                    f"{owner}/{repo}: malformed commit for ref {ref}: {e!r}"
                ) from e
        if response.status_code in (404, 422):
            logger.debug("%s/%s: no commit for ref %s", owner, repo, ref)
            return None
        raise GitHubAPIError(
            f"{owner}/{repo}: error from GitHub API while accessing ref {ref}: "
            f"HTTP {response.status_code}"
        )

    def list_tags(self, owner: str, repo: str) -> list[Tag]:
        """Return every tag in the repository, following pagination."""
        tags: list[Tag] = []
        url: Optional[str] = f"/repos/{owner}/{repo}/tags"
        params: Optional[dict[str, Any]] = {"per_page": 100}

        while url:
            response = self._get(url, params=params)
            if response.status_code != 200:
                raise GitHubAPIError(
                    f"{owner}/{repo}: error from GitHub API while listing tags: "
                    f"HTTP {response.status_code}"
                )
            body = self._json(response)
            if not isinstance(body, list):
                raise GitHubAPIError(f"{owner}/{repo}: malformed tag list from GitHub API")
            try:
                tags.extend(Tag(name=item["name"], sha=item["commit"]["sha"]) for item in body)
            except (KeyError, TypeError) as e:
                raise GitHubAPIError(f"{owner}/{repo}: malformed tag from GitHub API: {e!r}") from e

            # The next link already carries the query string
            url = response.links.get("next", {}).get("url")
            params = None

        logger.debug("%s/%s: %d tag(s)", owner, repo, len(tags))
        return tags

    def longest_tag_for_commit(self, owner: str, repo: str, commit: str) -> Optional[Tag]:
        """Find the longest-named tag pointing at ``commit``."""
        commit = commit.lower()
        matching = [t for t in self.list_tags(owner, repo) if t.sha.lower() == commit]
        return pick_longest_tag(matching)

    def gha_advisories(self, owner: str, repo: str, version: str) -> list[Advisory]:
        """Query GitHub advisories affecting ``owner/repo@version``."""
        response = self._get(
            "/advisories",
            params={"ecosystem": "actions", "affects": f"{owner}/{repo}@{version}"},
        )
        if response.status_code != 200:
            raise GitHubAPIError(
                f"{owner}/{repo}@{version}: error from GitHub API while querying "
                f"advisories: HTTP {response.status_code}"
            )
        body = self._json(response)
        if not isinstance(body, list):
            raise GitHubAPIError(
                f"{owner}/{repo}@{version}: malformed advisory list from GitHub API"
            )
        try:
            return [
                Advisory(ghsa_id=item["ghsa_id"], severity=item.get("severity") or "")
                for item in body
            ]
        except (KeyError, TypeError) as e:
            raise GitHubAPIError(
                f"{owner}/{repo}@{version}: malformed advisory from GitHub API: {e!r}"
            ) from e
