"""GitHub REST client: repository metadata and README."""

from __future__ import annotations

import base64
import binascii
import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional

import httpx

from ..exceptions import (
    MalformedRepositoryUrl,
    RepositoryNotFound,
    UpstreamFetchFailed,
)

logger = logging.getLogger(__name__)

_GITHUB_URL_RE = re.compile(r"github\.com/(?P<owner>[^/?#\s]+)/(?P<repo>[^/?#\s]+)")
_USER_AGENT = "summarizer-gateway/1.0"


@dataclass(frozen=True)
class GitHubUrl:
    owner: str
    repo: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"


def parse_github_url(url: Optional[str]) -> GitHubUrl:
    """Extract owner and repo from anything containing ``github.com/<o>/<r>``.

    >>> parse_github_url("https://github.com/octocat/Hello-World.git")
    GitHubUrl(owner='octocat', repo='Hello-World')
    """
    if not url or not url.strip():
        raise MalformedRepositoryUrl("GitHub URL is required")

    match = _GITHUB_URL_RE.search(url.strip())
    if not match:
        raise MalformedRepositoryUrl()

    repo = re.sub(r"\.git$", "", match["repo"])
    if not repo:
        raise MalformedRepositoryUrl()

    return GitHubUrl(owner=match["owner"], repo=repo)


@dataclass(frozen=True)
class RepositoryMetadata:
    full_name: str
    description: Optional[str] = None
    language: Optional[str] = None
    topics: List[str] = field(default_factory=list)
    stargazers_count: int = 0


@dataclass(frozen=True)
class RepositorySnapshot:
    metadata: RepositoryMetadata
    readme: str


class GitHubClient:
    """Fetches what the summarizer needs from the GitHub v3 REST API."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_url: str = "https://api.github.com",
        token: Optional[str] = None,
        readme_max_chars: int = 4000,
    ) -> None:
        self._client = client
        self._api_url = api_url.rstrip("/")
        self._readme_max_chars = readme_max_chars
        self._headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": _USER_AGENT,
        }
        if token:
            self._headers["Authorization"] = f"Bearer {token}"

    async def fetch(self, url: GitHubUrl) -> RepositorySnapshot:
        metadata = await self.fetch_metadata(url)
        readme = await self.fetch_readme(url)
        return RepositorySnapshot(
            metadata=metadata, readme=readme[: self._readme_max_chars]
        )

    async def fetch_metadata(self, url: GitHubUrl) -> RepositoryMetadata:
        """GET /repos/{owner}/{repo} → RepositoryMetadata."""
        endpoint = f"{self._api_url}/repos/{url.owner}/{url.repo}"
        try:
            resp = await self._client.get(
                endpoint, headers=self._headers, follow_redirects=True
            )
        except httpx.TimeoutException as exc:
            logger.warning("GitHub metadata request timed out for %s", url.full_name)
            raise UpstreamFetchFailed(504, "Timed out fetching repository data") from exc
        except httpx.HTTPError as exc:
            logger.warning("GitHub metadata request failed for %s: %s", url.full_name, exc)
            raise UpstreamFetchFailed(502) from exc

        if resp.status_code == 404:
            raise RepositoryNotFound()
        if not resp.is_success:
            logger.warning(
                "GitHub returned HTTP %s for %s", resp.status_code, url.full_name
            )
            raise UpstreamFetchFailed(resp.status_code)

        try:
            data = resp.json()
        except ValueError as exc:
            raise UpstreamFetchFailed(502, "GitHub returned an unreadable response") from exc

        return RepositoryMetadata(
            full_name=data.get("full_name") or url.full_name,
            description=data.get("description") or None,
            language=data.get("language") or None,
            topics=[str(t) for t in data.get("topics") or []],
            stargazers_count=int(data.get("stargazers_count") or 0),
        )

    async def fetch_readme(self, url: GitHubUrl) -> str:
        """GET /repos/{owner}/{repo}/readme → decoded text, or "" on any failure."""
        endpoint = f"{self._api_url}/repos/{url.owner}/{url.repo}/readme"
        try:
            resp = await self._client.get(
                endpoint, headers=self._headers, follow_redirects=True
            )
        except httpx.HTTPError as exc:
            logger.info("README fetch failed for %s: %s", url.full_name, exc)
            return ""

        if not resp.is_success:
            logger.info(
                "README not found or failed to fetch for %s (HTTP %s)",
                url.full_name,
                resp.status_code,
            )
            return ""

        try:
            content = resp.json().get("content")
        except (ValueError, AttributeError):
            logger.info("README response for %s was not a JSON object", url.full_name)
            return ""

        if not content or not isinstance(content, str):
            return ""
        return decode_readme(content)


def decode_readme(content: str) -> str:
    """Decode GitHub's base64 README payload; "" if it is not valid."""
    try:
        return base64.b64decode(content).decode("utf-8")
    except (binascii.Error, ValueError) as exc:
        logger.error("Error decoding README: %s", exc)
        return ""
