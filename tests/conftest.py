from dataclasses import replace
from unittest.mock import MagicMock

import pytest

from branchkeeper.context import (
    ActionInputs,
    EventContext,
    PullRequestData,
    PullRequestState,
    Repository,
)


@pytest.fixture()
def issue_context() -> EventContext:
    return EventContext(
        repository=Repository("acme", "widgets"),
        entity_number=42,
        is_pr=False,
        event_name="issues",
        inputs=ActionInputs(branch_prefix="claude-"),
        run_id="987654",
        actor="octocat",
        workflow="Agent",
    )


@pytest.fixture()
def make_pr_context(issue_context):
    def _make(state=PullRequestState.OPEN, commit_count=5, **inputs) -> EventContext:
        return replace(
            issue_context,
            is_pr=True,
            event_name="pull_request",
            pull_request=PullRequestData(
                state=state,
                head_branch="feature/login",
                base_branch="develop",
                commit_count=commit_count,
            ),
            inputs=replace(issue_context.inputs, **inputs),
        )

    return _make


@pytest.fixture()
def refresher() -> MagicMock:
    mock = MagicMock()
    mock.refresh.return_value = "fresh-token"
    return mock
