"""Event context for a branchkeeper run.

The context is read once from the CI environment and the webhook payload
found at GITHUB_EVENT_PATH. It is immutable for the rest of the run.
"""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Mapping

from .config import DEFAULT_BRANCH_PREFIX, DEFAULT_SERVER_URL

logger = logging.getLogger("branchkeeper.context")

ISSUE_EVENTS = ("issues", "issue_comment")
PULL_REQUEST_EVENTS = (
    "pull_request",
    "pull_request_target",
    "pull_request_review",
    "pull_request_review_comment",
)

_TRUTHY = ("1", "true", "yes", "on")


class ContextError(ValueError):
    """Raised when the CI environment does not describe a usable event."""


class PullRequestState(str, Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"
    MERGED = "MERGED"


@dataclass(frozen=True)
class Repository:
    owner: str
    name: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


@dataclass(frozen=True)
class PullRequestData:
    state: PullRequestState
    head_branch: str
    base_branch: str
    commit_count: int

    @property
    def is_open(self) -> bool:
        return self.state not in (PullRequestState.CLOSED, PullRequestState.MERGED)


@dataclass(frozen=True)
class ActionInputs:
    branch: str = ""
    base_branch: str = ""
    branch_prefix: str = DEFAULT_BRANCH_PREFIX
    use_commit_signing: bool = False


@dataclass(frozen=True)
class EventContext:
    repository: Repository
    entity_number: int
    is_pr: bool
    event_name: str = ""
    pull_request: PullRequestData | None = None
    inputs: ActionInputs = field(default_factory=ActionInputs)
    run_id: str = ""
    actor: str = ""
    workflow: str = ""
    server_url: str = DEFAULT_SERVER_URL


def pull_request_state(state: str, merged: bool) -> PullRequestState:
    if merged:
        return PullRequestState.MERGED
    if state.lower() == "closed":
        return PullRequestState.CLOSED
    return PullRequestState.OPEN


def pull_request_from_payload(pr: Mapping[str, Any]) -> PullRequestData | None:
    """Build PullRequestData from a REST-shaped pull request object.

    Returns None when the object lacks the commit count, which review and
    comment payloads omit; callers then look the pull request up instead.
    """
    if "commits" not in pr:
        return None
    return PullRequestData(
        state=pull_request_state(pr.get("state", "open"), bool(pr.get("merged") or pr.get("merged_at"))),
        head_branch=pr["head"]["ref"],
        base_branch=pr["base"]["ref"],
        commit_count=int(pr["commits"]),
    )


def _parse_repository(value: str) -> Repository:
    owner, sep, name = value.partition("/")
    if not sep or not owner or not name:
        raise ContextError(f"GITHUB_REPOSITORY must look like 'owner/repo', got '{value}'")
    return Repository(owner=owner, name=name)


def _load_payload(env: Mapping[str, str]) -> dict:
    event_path = env.get("GITHUB_EVENT_PATH", "")
    if not event_path:
        raise ContextError("GITHUB_EVENT_PATH is not set")
    path = Path(event_path)
    try:
        return json.loads(path.read_text())
    except (OSError, json.JSONDecodeError) as exc:
        raise ContextError(f"Cannot read event payload {path}: {exc}") from exc


def parse_inputs(env: Mapping[str, str], branch_prefix: str = DEFAULT_BRANCH_PREFIX) -> ActionInputs:
    return ActionInputs(
        branch=env.get("BRANCH_NAME", "").strip(),
        base_branch=env.get("BASE_BRANCH", "").strip(),
        branch_prefix=branch_prefix,
        use_commit_signing=env.get("USE_COMMIT_SIGNING", "").strip().lower() in _TRUTHY,
    )


def parse_event_context(
    env: Mapping[str, str] | None = None,
    branch_prefix: str = DEFAULT_BRANCH_PREFIX,
    server_url: str = DEFAULT_SERVER_URL,
) -> EventContext:
    """Read the triggering event from the CI environment.

    Raises ContextError for unsupported events or malformed payloads.
    """
    env = os.environ if env is None else env
    repository = _parse_repository(env.get("GITHUB_REPOSITORY", ""))
    event_name = env.get("GITHUB_EVENT_NAME", "")
    if event_name not in ISSUE_EVENTS + PULL_REQUEST_EVENTS:
        raise ContextError(f"Unsupported event: '{event_name}'")
    payload = _load_payload(env)

    pull_request: PullRequestData | None = None
    try:
        if event_name in ISSUE_EVENTS:
            issue = payload["issue"]
            entity_number = int(issue["number"])
            is_pr = "pull_request" in issue
        else:
            pr = payload["pull_request"]
            entity_number = int(pr["number"])
            is_pr = True
            pull_request = pull_request_from_payload(pr)
    except (KeyError, TypeError, ValueError) as exc:
        raise ContextError(f"Malformed '{event_name}' payload: {exc}") from exc

    logger.info(
        "Event %s on %s #%d (%s)",
        event_name,
        repository.full_name,
        entity_number,
        "pull request" if is_pr else "issue",
    )
    return EventContext(
        repository=repository,
        entity_number=entity_number,
        is_pr=is_pr,
        event_name=event_name,
        pull_request=pull_request,
        inputs=parse_inputs(env, branch_prefix),
        run_id=env.get("GITHUB_RUN_ID", ""),
        actor=env.get("TRIGGER_USERNAME") or env.get("GITHUB_ACTOR", ""),
        workflow=env.get("GITHUB_WORKFLOW", ""),
        server_url=server_url.rstrip("/"),
    )
