import json
from unittest.mock import MagicMock, patch

import pytest

from branchkeeper.context import PullRequestData, PullRequestState
from branchkeeper.core.state import BranchInfo, CommitResult
from branchkeeper.runner import run_commit_and_push, run_setup_branch, start_session


def _env(tmp_path, event_name="issue_comment", payload=None) -> dict:
    event_path = tmp_path / "event.json"
    event_path.write_text(json.dumps(payload or {"issue": {"number": 9, "pull_request": {}}}))
    return {
        "GITHUB_REPOSITORY": "acme/widgets",
        "GITHUB_EVENT_NAME": event_name,
        "GITHUB_EVENT_PATH": str(event_path),
        "GITHUB_TOKEN": "ghs_initial",
    }


def test_start_session_looks_up_pull_request(tmp_path):
    pr = PullRequestData(PullRequestState.OPEN, "feature/login", "develop", 3)
    with patch("branchkeeper.runner.TokenRefresher.refresh", return_value="ghs_fresh") as mock_refresh, patch(
        "branchkeeper.runner.GitHubClient.get_pull_request", return_value=pr
    ) as mock_get:
        session = start_session(tmp_path, _env(tmp_path))

    mock_refresh.assert_called_once()
    mock_get.assert_called_once_with("acme", "widgets", 9)
    assert session.context.pull_request == pr
    assert session.client._headers["Authorization"] == "Bearer ghs_fresh"


def test_start_session_skips_lookup_for_issues(tmp_path):
    env = _env(tmp_path, "issues", {"issue": {"number": 4}})
    with patch("branchkeeper.runner.TokenRefresher.refresh", return_value="ghs_fresh"), patch(
        "branchkeeper.runner.GitHubClient.get_pull_request"
    ) as mock_get:
        session = start_session(tmp_path, env)

    mock_get.assert_not_called()
    assert session.context.pull_request is None


def test_run_setup_branch_exits_on_failure(tmp_path):
    env = _env(tmp_path, "push", {})
    with pytest.raises(SystemExit) as excinfo:
        run_setup_branch(tmp_path, env)
    assert excinfo.value.code == 1


def test_run_setup_branch_returns_branch_info(tmp_path):
    info = BranchInfo(base_branch="main", current_branch="claude/issue-4", claude_branch="claude/issue-4")
    with patch("branchkeeper.runner.start_session", return_value=MagicMock()), patch(
        "branchkeeper.runner.setup_branch", return_value=info
    ):
        assert run_setup_branch(tmp_path, {}) == info


def test_run_commit_and_push_reads_branch_outputs(tmp_path):
    env = {"BASE_BRANCH": "main", "CLAUDE_BRANCH": "claude/issue-4"}
    with patch("branchkeeper.runner.start_session", return_value=MagicMock()), patch(
        "branchkeeper.tools.git_tools.current_branch", return_value="main"
    ), patch("branchkeeper.runner.commit_and_push", return_value=CommitResult(committed=True)) as mock_commit:
        assert run_commit_and_push(tmp_path, env) is True

    branch_info = mock_commit.call_args.args[1]
    assert branch_info == BranchInfo(base_branch="main", current_branch="main", claude_branch="claude/issue-4")


def test_run_commit_and_push_exits_on_failure(tmp_path):
    with patch("branchkeeper.runner.start_session", side_effect=RuntimeError("No token found")):
        with pytest.raises(SystemExit) as excinfo:
            run_commit_and_push(tmp_path, {})
    assert excinfo.value.code == 1
