"""Commit pending work in the working tree and push it to the run's branch.

Staging and committing are local and never retried. The push goes
through with_token_refresh().
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from .credentials import TokenRefresher
from .retry import with_token_refresh
from .state import BranchInfo, CommitResult, RefreshState
from ..context import EventContext
from ..outputs import OutputWriter
from ..tools import git_tools

logger = logging.getLogger("branchkeeper.core.committer")

COMMIT_MESSAGE_TEMPLATE = """\
Automated changes from workflow run {run_id}

Changes made by the automation agent in response to a trigger.

Workflow: {workflow}
Run ID: {run_id}
Triggered by: {actor}"""


@dataclass(frozen=True)
class BotIdentity:
    name: str
    email: str


def commit_message(context: EventContext) -> str:
    return COMMIT_MESSAGE_TEMPLATE.format(
        run_id=context.run_id,
        workflow=context.workflow,
        actor=context.actor,
    )


def push_refspec(info: BranchInfo) -> str:
    """Where the push lands: the claude branch if there is one, else the checked-out branch."""
    if not info.claude_branch:
        return "HEAD"
    if info.claude_branch != info.current_branch:
        # Deferred creation: the branch does not exist locally yet.
        return f"HEAD:refs/heads/{info.claude_branch}"
    return info.claude_branch


def configure_identity(bot: BotIdentity, *, repo: Path) -> None:
    git_tools.set_config("user.name", bot.name, repo=repo)
    git_tools.set_config("user.email", bot.email, repo=repo)


def _report(outputs: OutputWriter | None, committed: bool) -> None:
    if outputs is not None:
        outputs.set_output("committed", "true" if committed else "false")


def commit_and_push(
    context: EventContext,
    branch_info: BranchInfo,
    refresher: TokenRefresher,
    refresh_state: RefreshState,
    repo: Path,
    outputs: OutputWriter | None = None,
    bot: BotIdentity | None = None,
) -> CommitResult:
    """Commit every pending change and push it.

    Returns CommitResult(committed=False) without touching the index when
    the working tree is clean.
    """
    if bot is not None:
        configure_identity(bot, repo=repo)

    if not git_tools.status_porcelain(repo=repo):
        logger.info("No changes to commit")
        _report(outputs, False)
        return CommitResult(committed=False)

    git_tools.add_all(repo=repo)
    git_tools.commit(commit_message(context), repo=repo)

    refspec = push_refspec(branch_info)
    logger.info("Pushing to %s", branch_info.claude_branch or "current branch")
    with_token_refresh(
        lambda: git_tools.push(refspec, repo=repo),
        context,
        refresher,
        refresh_state,
    )

    logger.info("Committed and pushed changes")
    _report(outputs, True)
    return CommitResult(committed=True)
