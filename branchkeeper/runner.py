"""Run entrypoints shared by the CLI commands.

Each entrypoint owns one run: it builds the collaborators, creates the
run's RefreshState, and turns any failure into exit status 1.
"""
from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Mapping

from .config import BranchkeeperConfig, load_config
from .context import EventContext, parse_event_context
from .core.branch_manager import setup_branch
from .core.committer import BotIdentity, commit_and_push
from .core.credentials import TokenRefresher
from .core.state import BranchInfo, RefreshState
from .github.client import GitHubClient
from .github.tokens import get_token_issuer
from .outputs import OutputWriter
from .tools import git_tools

logger = logging.getLogger("branchkeeper.runner")


@dataclass
class RunSession:
    config: BranchkeeperConfig
    context: EventContext
    client: GitHubClient
    refresher: TokenRefresher
    refresh_state: RefreshState


def start_session(repo_path: Path, env: Mapping[str, str]) -> RunSession:
    """Load config and context, acquire the run's first credential."""
    config = load_config(repo_path, env)
    context = parse_event_context(env, config.branch_prefix, config.server_url)
    refresher = TokenRefresher(get_token_issuer(config, env), repo_path)

    token = refresher.refresh(context)
    refresh_state = RefreshState()
    # The client keeps this first token. Later refreshes only re-point git,
    # so REST lookups belong at the start of a run.
    client = GitHubClient(token=token, base_url=config.api_url, timeout=config.http_timeout)

    if context.is_pr and context.pull_request is None:
        repo = context.repository
        context = replace(
            context,
            pull_request=client.get_pull_request(repo.owner, repo.name, context.entity_number),
        )
    return RunSession(config, context, client, refresher, refresh_state)


def run_setup_branch(repo_path: Path, env: Mapping[str, str] | None = None) -> BranchInfo:
    env = os.environ if env is None else env
    try:
        session = start_session(repo_path, env)
        info = setup_branch(
            session.client,
            session.context,
            session.refresher,
            session.refresh_state,
            repo_path,
            outputs=OutputWriter.from_env(env),
        )
    except Exception as exc:
        logger.error("Branch setup failed: %s", exc)
        sys.exit(1)

    print(f"  Base branch:    {info.base_branch}")
    print(f"  Claude branch:  {info.claude_branch or '(none)'}")
    print(f"  Checked out:    {info.current_branch}")
    return info


def run_commit_and_push(repo_path: Path, env: Mapping[str, str] | None = None) -> bool:
    env = os.environ if env is None else env
    try:
        session = start_session(repo_path, env)
        branch_info = BranchInfo(
            base_branch=env.get("BASE_BRANCH", ""),
            claude_branch=env.get("CLAUDE_BRANCH") or None,
            current_branch=git_tools.current_branch(repo=repo_path),
        )
        result = commit_and_push(
            session.context,
            branch_info,
            session.refresher,
            session.refresh_state,
            repo_path,
            outputs=OutputWriter.from_env(env),
            bot=BotIdentity(session.config.bot_name, session.config.bot_email),
        )
    except Exception as exc:
        logger.error("Failed to commit and push changes: %s", exc)
        sys.exit(1)

    print(f"  Committed:  {'yes' if result.committed else 'no changes'}")
    return result.committed
