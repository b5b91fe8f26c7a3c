"""Credential-aware execution of networked git operations.

Every fetch and push goes through with_token_refresh(). It refreshes a
stale token before the operation and retries exactly once after an
authentication-shaped failure. Other failures are never retried here.
"""
from __future__ import annotations

import logging
import re
from typing import Callable, TypeVar

from .credentials import TokenRefresher, should_refresh
from .state import RefreshState
from ..context import EventContext
from ..tools.git_tools import GitCommandError

logger = logging.getLogger("branchkeeper.core.retry")

T = TypeVar("T")

# Phrases, not bare digits or words: branch names such as
# claude-issue-42-20240315-1401 end up in git's messages too.
AUTH_FAILURE_PATTERNS = (
    re.compile(r"\bauthentication (?:failed|required)\b", re.IGNORECASE),
    re.compile(r"\b(?:error|http)[:/ \d.]*\b40[13]\b", re.IGNORECASE),
    re.compile(r"\b(?:invalid|expired|revoked|bad)\b[\w ]{0,20}?\b(?:token|credentials)\b", re.IGNORECASE),
    re.compile(r"\btoken (?:is )?(?:invalid|expired|revoked)\b", re.IGNORECASE),
)


def is_auth_failure(error: BaseException) -> bool:
    """True if the error looks like an authentication or authorization problem.

    For git failures only git's stderr is inspected, never the command line.
    """
    message = error.stderr if isinstance(error, GitCommandError) else str(error)
    return any(pattern.search(message) for pattern in AUTH_FAILURE_PATTERNS)


def with_token_refresh(
    operation: Callable[[], T],
    context: EventContext,
    refresher: TokenRefresher,
    refresh_state: RefreshState,
) -> T:
    """Run operation with a fresh credential, retrying once on auth failure."""
    if should_refresh(refresh_state.value):
        refresher.refresh(context)
        refresh_state.touch()

    try:
        return operation()
    except Exception as exc:
        if not is_auth_failure(exc):
            raise
        logger.warning("Git operation failed, attempting token refresh and retry: %s", exc)

    refresher.refresh(context)
    refresh_state.touch()
    try:
        return operation()
    except Exception as exc:
        logger.error("Retry after token refresh also failed: %s", exc)
        raise
