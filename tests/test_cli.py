from pathlib import Path
from unittest.mock import patch

from click.testing import CliRunner

from branchkeeper.cli import main


def test_cli_version():
    runner = CliRunner()
    result = runner.invoke(main, ["--version"])
    assert result.exit_code == 0
    assert "branchkeeper" in result.output


def test_setup_branch_runs_in_given_repo(tmp_path):
    runner = CliRunner()
    with patch("branchkeeper.cli.run_setup_branch") as mock_run:
        result = runner.invoke(main, ["setup-branch", "--repo", str(tmp_path)])
    assert result.exit_code == 0
    mock_run.assert_called_once_with(tmp_path.resolve())


def test_commit_and_push_defaults_to_cwd():
    runner = CliRunner()
    with runner.isolated_filesystem() as cwd, patch("branchkeeper.cli.run_commit_and_push") as mock_run:
        result = runner.invoke(main, ["commit-and-push"])
    assert result.exit_code == 0
    assert mock_run.call_args.args[0].resolve() == Path(cwd).resolve()


def test_set_output_requires_github_output(monkeypatch):
    monkeypatch.delenv("GITHUB_OUTPUT", raising=False)
    runner = CliRunner()
    result = runner.invoke(main, ["set-output", "status", "ok"])
    assert result.exit_code == 1
    assert "GITHUB_OUTPUT" in result.output


def test_set_output_adds_prefix(tmp_path, monkeypatch):
    output_file = tmp_path / "out"
    monkeypatch.setenv("GITHUB_OUTPUT", str(output_file))
    runner = CliRunner()
    result = runner.invoke(main, ["set-output", "status", "ok"])
    assert result.exit_code == 0
    assert output_file.read_text() == "claude_status=ok\n"


def test_set_outputs_multiple(tmp_path, monkeypatch):
    output_file = tmp_path / "out"
    monkeypatch.setenv("GITHUB_OUTPUT", str(output_file))
    runner = CliRunner()
    result = runner.invoke(main, ["set-outputs", "a=1", "b=two=2"])
    assert result.exit_code == 0
    assert output_file.read_text() == "claude_a=1\nclaude_b=two=2\n"
    assert "Set 2 outputs" in result.output


def test_set_outputs_rejects_bad_pair(tmp_path, monkeypatch):
    monkeypatch.setenv("GITHUB_OUTPUT", str(tmp_path / "out"))
    runner = CliRunner()
    result = runner.invoke(main, ["set-outputs", "novalue"])
    assert result.exit_code == 2
