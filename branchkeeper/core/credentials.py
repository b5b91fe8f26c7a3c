"""Credential lifecycle: when to refresh, and how to re-point git at a new token.

App installation tokens live for one hour. Refreshing after 45 minutes
leaves room for clock skew and for an operation already in flight.
"""
from __future__ import annotations

import logging
from pathlib import Path
from urllib.parse import urlsplit

from .state import now_ms
from ..context import EventContext
from ..github.tokens import TokenIssuer
from ..tools import git_tools

logger = logging.getLogger("branchkeeper.core.credentials")

REFRESH_THRESHOLD_MS = 45 * 60 * 1000


class RefreshFailedError(RuntimeError):
    """Raised when a fresh token cannot be obtained or installed."""


def should_refresh(last_refresh_ms: float, now: float | None = None) -> bool:
    elapsed = (now_ms() if now is None else now) - last_refresh_ms
    return elapsed >= REFRESH_THRESHOLD_MS


def remote_url(token: str, context: EventContext) -> str:
    parts = urlsplit(context.server_url)
    repo = context.repository
    return f"{parts.scheme}://x-access-token:{token}@{parts.netloc}/{repo.owner}/{repo.name}.git"


def reconfigure_git_remote(token: str, context: EventContext, *, repo: Path) -> None:
    """Make origin authenticate with token.

    Checkout actions persist credentials as an http extraheader, which would
    take precedence over the URL; it is removed first.
    """
    git_tools.unset_config(f"http.{context.server_url}/.extraheader", repo=repo)
    git_tools.set_remote_url(remote_url(token, context), repo=repo)


class TokenRefresher:
    """Obtains a fresh token and installs it on the local git remote.

    Safe to call at any time; the previous token does not need to be expired.
    """

    def __init__(self, issuer: TokenIssuer, repo: Path) -> None:
        self.issuer = issuer
        self.repo = repo

    def refresh(self, context: EventContext) -> str:
        logger.info("Refreshing token for continued git operations")
        try:
            token = self.issuer.issue()
            reconfigure_git_remote(token, context, repo=self.repo)
        except Exception as exc:
            reason = git_tools.redact(str(exc))
            logger.error("Failed to refresh token and reconfigure git: %s", reason)
            raise RefreshFailedError(f"Token refresh failed: {reason}") from exc
        logger.info("Token refreshed and git authentication reconfigured")
        return token
