"""Working-branch resolution for a branchkeeper run.

plan_branch() picks exactly one of three plans from the event context:
  - UseExplicitBranch: the caller named a branch; check it out as-is.
  - CheckoutPullRequest: an open pull request; work on its head branch.
  - CreateBranch: an issue or a closed/merged pull request; name a new
    branch and, unless commit signing is delegated, create and push it.
BranchResolver carries out the plan. Fetches and pushes go through
with_token_refresh().
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, TypeVar, Union

from .credentials import TokenRefresher
from .retry import with_token_refresh
from .state import BranchInfo, RefreshState
from ..context import EventContext
from ..github.client import GitHubClient, GitHubNotFoundError
from ..outputs import OutputWriter
from ..tools import git_tools

logger = logging.getLogger("branchkeeper.core.branch_manager")

T = TypeVar("T")

MIN_FETCH_DEPTH = 20
# Branch names double as label values downstream: lower-case, short.
MAX_BRANCH_NAME_LENGTH = 50


class BranchResolutionError(Exception):
    """Raised when no working branch can be established."""


class BranchNotFoundError(BranchResolutionError):
    """Raised when an explicitly requested branch does not exist remotely."""

    def __init__(self, branch: str) -> None:
        self.branch = branch
        super().__init__(f"Specified branch '{branch}' does not exist in the repository")


class SourceBranchMissingError(BranchResolutionError):
    """Raised when the branch a new branch would start from has no ref."""

    def __init__(self, branch: str) -> None:
        self.branch = branch
        super().__init__(f"Source branch '{branch}' does not exist in the repository")


@dataclass(frozen=True)
class UseExplicitBranch:
    branch: str


@dataclass(frozen=True)
class CheckoutPullRequest:
    head_branch: str
    base_branch: str
    fetch_depth: int


@dataclass(frozen=True)
class CreateBranch:
    entity_type: str  # "pr" or "issue"


BranchPlan = Union[UseExplicitBranch, CheckoutPullRequest, CreateBranch]


def fetch_depth_for(commit_count: int) -> int:
    return max(commit_count, MIN_FETCH_DEPTH)


def branch_timestamp(now: datetime | None = None) -> str:
    """Local time as YYYYMMDD-HHMM."""
    return (now or datetime.now()).strftime("%Y%m%d-%H%M")


def generate_branch_name(prefix: str, entity_type: str, entity_number: int, timestamp: str) -> str:
    name = f"{prefix}{entity_type}-{entity_number}-{timestamp}"
    return name.lower()[:MAX_BRANCH_NAME_LENGTH]


def plan_branch(context: EventContext) -> BranchPlan:
    if context.inputs.branch:
        return UseExplicitBranch(context.inputs.branch)

    if not context.is_pr:
        return CreateBranch("issue")

    pr = context.pull_request
    if pr is None:
        raise BranchResolutionError(f"Pull request details for #{context.entity_number} are missing")
    if pr.is_open:
        return CheckoutPullRequest(pr.head_branch, pr.base_branch, fetch_depth_for(pr.commit_count))

    logger.info(
        "PR #%d is %s, creating new branch from source",
        context.entity_number,
        pr.state.value,
    )
    return CreateBranch("pr")


class BranchResolver:
    def __init__(
        self,
        client: GitHubClient,
        context: EventContext,
        refresher: TokenRefresher,
        refresh_state: RefreshState,
        repo: Path,
        now: datetime | None = None,
    ) -> None:
        self.client = client
        self.context = context
        self.refresher = refresher
        self.refresh_state = refresh_state
        self.repo = repo
        self.now = now

    def resolve(self) -> BranchInfo:
        plan = plan_branch(self.context)
        handlers: dict[type, Callable[..., BranchInfo]] = {
            UseExplicitBranch: self._use_explicit_branch,
            CheckoutPullRequest: self._checkout_pull_request,
            CreateBranch: self._create_branch,
        }
        return handlers[type(plan)](plan)

    def _networked(self, operation: Callable[[], T]) -> T:
        return with_token_refresh(operation, self.context, self.refresher, self.refresh_state)

    def _default_branch(self) -> str:
        repo = self.context.repository
        return self.client.get_repository(repo.owner, repo.name).default_branch

    def _use_explicit_branch(self, plan: UseExplicitBranch) -> BranchInfo:
        branch = plan.branch
        repo = self.context.repository
        logger.info("Using provided branch: %s", branch)

        try:
            self.client.get_branch(repo.owner, repo.name, branch)
        except GitHubNotFoundError as exc:
            raise BranchNotFoundError(branch) from exc

        self._networked(lambda: git_tools.fetch(branch, repo=self.repo))
        git_tools.checkout(branch, repo=self.repo)
        logger.info("Checked out existing branch: %s", branch)

        base_branch = self.context.inputs.base_branch or self._default_branch()
        return BranchInfo(base_branch=base_branch, claude_branch=branch, current_branch=branch)

    def _checkout_pull_request(self, plan: CheckoutPullRequest) -> BranchInfo:
        logger.info(
            "PR #%d: fetching %s with depth %d",
            self.context.entity_number,
            plan.head_branch,
            plan.fetch_depth,
        )
        self._networked(
            lambda: git_tools.fetch(plan.head_branch, repo=self.repo, depth=plan.fetch_depth)
        )
        git_tools.checkout(plan.head_branch, repo=self.repo)
        logger.info("Checked out PR branch %s", plan.head_branch)
        return BranchInfo(base_branch=plan.base_branch, current_branch=plan.head_branch)

    def _create_branch(self, plan: CreateBranch) -> BranchInfo:
        inputs = self.context.inputs
        repo = self.context.repository
        source_branch = inputs.base_branch or self._default_branch()
        new_branch = generate_branch_name(
            inputs.branch_prefix,
            plan.entity_type,
            self.context.entity_number,
            branch_timestamp(self.now),
        )

        try:
            sha = self.client.get_ref(repo.owner, repo.name, f"heads/{source_branch}")
        except GitHubNotFoundError as exc:
            raise SourceBranchMissingError(source_branch) from exc
        logger.info("Source branch %s is at %s", source_branch, sha)

        # New branches start from whatever the job checked out.
        checked_out = git_tools.current_branch(repo=self.repo)
        if checked_out != source_branch:
            logger.warning(
                "Checked out %s, not source branch %s; %s will start from %s",
                checked_out,
                source_branch,
                new_branch,
                checked_out,
            )

        if inputs.use_commit_signing:
            # The signing service creates the branch with the first commit.
            logger.info("Branch name generated: %s (created on first signed commit)", new_branch)
            return BranchInfo(
                base_branch=source_branch,
                claude_branch=new_branch,
                current_branch=checked_out,
            )

        logger.info(
            "Creating branch %s for %s #%d from %s",
            new_branch,
            plan.entity_type,
            self.context.entity_number,
            source_branch,
        )
        git_tools.create_branch(new_branch, repo=self.repo)
        self._networked(lambda: git_tools.push(new_branch, repo=self.repo, set_upstream=True))
        logger.info("Created and pushed branch: %s", new_branch)
        return BranchInfo(
            base_branch=source_branch,
            claude_branch=new_branch,
            current_branch=new_branch,
        )


def report_branch(info: BranchInfo, outputs: OutputWriter | None) -> None:
    """Publish the resolved branches as step outputs."""
    if outputs is None:
        logger.info("No output channel; branch=%s base=%s", info.claude_branch, info.base_branch)
        return
    outputs.set_outputs({"CLAUDE_BRANCH": info.claude_branch, "BASE_BRANCH": info.base_branch})


def setup_branch(
    client: GitHubClient,
    context: EventContext,
    refresher: TokenRefresher,
    refresh_state: RefreshState,
    repo: Path,
    outputs: OutputWriter | None = None,
    now: datetime | None = None,
) -> BranchInfo:
    """Establish the working branch for this run and report it."""
    info = BranchResolver(client, context, refresher, refresh_state, repo, now=now).resolve()
    report_branch(info, outputs)
    return info
