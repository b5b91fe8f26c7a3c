"""branchkeeper CLI entry point.

Usage (inside a CI job, from the checked-out repository):
    branchkeeper setup-branch             # resolve and check out the working branch
    branchkeeper commit-and-push          # commit pending changes and push them
    branchkeeper set-output KEY VALUE     # publish a claude_-prefixed step output
    branchkeeper set-outputs K=V [K=V ...]
    branchkeeper --version
"""
from __future__ import annotations

import logging
from pathlib import Path

import click

from . import __version__
from .outputs import OutputError, OutputWriter, prefixed
from .runner import run_commit_and_push, run_setup_branch

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s  %(message)s",
    datefmt="%H:%M:%S",
)

_repo_option = click.option(
    "--repo",
    default=None,
    type=click.Path(file_okay=False, exists=True),
    help="Repository working tree (default: cwd)",
)


def _repo_path(repo: str | None) -> Path:
    return Path(repo).resolve() if repo else Path.cwd()


def _writer() -> OutputWriter:
    writer = OutputWriter.from_env()
    if writer is None:
        raise click.ClickException("GITHUB_OUTPUT environment variable not set")
    return writer


@click.group()
@click.version_option(__version__, prog_name="branchkeeper")
def main():
    """branchkeeper: branch setup and authenticated git pushes for CI agents."""


@main.command("setup-branch")
@_repo_option
def setup_branch_cmd(repo):
    """Check out the branch this run works on."""
    run_setup_branch(_repo_path(repo))


@main.command("commit-and-push")
@_repo_option
def commit_and_push_cmd(repo):
    """Commit all pending changes and push them to the run's branch."""
    run_commit_and_push(_repo_path(repo))


@main.command("set-output")
@click.argument("key")
@click.argument("value")
def set_output_cmd(key, value):
    """Set one step output (the 'claude_' prefix is added)."""
    try:
        keys = _writer().set_outputs(prefixed({key: value}))
    except OutputError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Set output '{keys[0]}'")


@main.command("set-outputs")
@click.argument("pairs", nargs=-1, required=True)
def set_outputs_cmd(pairs):
    """Set several step outputs given as KEY=VALUE."""
    outputs: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected KEY=VALUE, got '{pair}'", param_hint="PAIRS")
        outputs[key] = value
    try:
        keys = _writer().set_outputs(prefixed(outputs))
    except OutputError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Set {len(keys)} outputs: {', '.join(keys)}")
