"""GitHub REST client for branchkeeper.

Covers only the lookups branch resolution needs: branches, refs,
repository metadata and pull requests.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx

from ..config import DEFAULT_API_URL, DEFAULT_HTTP_TIMEOUT
from ..context import PullRequestData, pull_request_state

logger = logging.getLogger("branchkeeper.github.client")

API_VERSION = "2022-11-28"


class GitHubAPIError(RuntimeError):
    """Raised when a GitHub API request fails."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class GitHubNotFoundError(GitHubAPIError):
    """Raised on a 404 from the GitHub API."""


@dataclass(frozen=True)
class RepositoryInfo:
    full_name: str
    default_branch: str


class GitHubClient:
    def __init__(
        self,
        token: str = "",
        base_url: str = DEFAULT_API_URL,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": API_VERSION,
            "User-Agent": "branchkeeper",
        }
        if token:
            self._headers["Authorization"] = f"Bearer {token}"

    def _get(self, path: str) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = httpx.get(url, headers=self._headers, timeout=self.timeout)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            if status == 404:
                raise GitHubNotFoundError(f"GitHub resource not found: {path}", status) from exc
            logger.error("GitHub API error %d for %s", status, path)
            raise GitHubAPIError(f"GitHub request failed: {status} {path}", status) from exc
        except httpx.RequestError as exc:
            logger.error("GitHub connection error for %s", path)
            raise GitHubAPIError(f"GitHub connection failed: {exc}") from exc
        return response.json()

    def get_branch(self, owner: str, repo: str, branch: str) -> dict:
        """Return the branch object. Raises GitHubNotFoundError if it does not exist."""
        return self._get(f"/repos/{owner}/{repo}/branches/{quote(branch, safe='')}")

    def get_repository(self, owner: str, repo: str) -> RepositoryInfo:
        data = self._get(f"/repos/{owner}/{repo}")
        return RepositoryInfo(full_name=data["full_name"], default_branch=data["default_branch"])

    def get_ref(self, owner: str, repo: str, ref: str) -> str:
        """Resolve a ref such as 'heads/main' to its commit sha."""
        data = self._get(f"/repos/{owner}/{repo}/git/ref/{quote(ref, safe='/')}")
        return data["object"]["sha"]

    def get_pull_request(self, owner: str, repo: str, number: int) -> PullRequestData:
        data = self._get(f"/repos/{owner}/{repo}/pulls/{number}")
        return PullRequestData(
            state=pull_request_state(data.get("state", "open"), bool(data.get("merged"))),
            head_branch=data["head"]["ref"],
            base_branch=data["base"]["ref"],
            commit_count=int(data.get("commits", 0)),
        )
