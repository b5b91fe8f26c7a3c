"""Step outputs for the surrounding workflow.

Outputs are appended to the file named by GITHUB_OUTPUT: `key=value` for
single-line values, a heredoc block for multiline ones.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Mapping

logger = logging.getLogger("branchkeeper.outputs")

HEREDOC_DELIMITER = "EOF"
# Keys set on the agent's behalf are namespaced so they cannot clobber step outputs.
AGENT_OUTPUT_PREFIX = "claude_"


class OutputError(RuntimeError):
    """Raised when an output cannot be written."""


def format_output(key: str, value: str) -> str:
    if not key or "=" in key or "\n" in key:
        raise OutputError(f"Invalid output key: {key!r}")
    if "\n" not in value:
        return f"{key}={value}\n"
    if HEREDOC_DELIMITER in value.splitlines():
        raise OutputError(f"Output '{key}' contains the heredoc delimiter line")
    return f"{key}<<{HEREDOC_DELIMITER}\n{value}\n{HEREDOC_DELIMITER}\n"


class OutputWriter:
    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> OutputWriter | None:
        """Writer for GITHUB_OUTPUT, or None when the variable is unset."""
        env = os.environ if env is None else env
        path = env.get("GITHUB_OUTPUT", "")
        return cls(Path(path)) if path else None

    def set_outputs(self, outputs: Mapping[str, str | None]) -> list[str]:
        """Append several outputs in one write. None values are skipped.

        Returns the keys written.
        """
        written = [(k, v) for k, v in outputs.items() if v is not None]
        content = "".join(format_output(k, v) for k, v in written)
        try:
            with self.path.open("a") as fh:
                fh.write(content)
        except OSError as exc:
            raise OutputError(f"Cannot write outputs to {self.path}: {exc}") from exc
        for key, value in written:
            logger.info("Set output: %s=%s", key, "[multiline]" if "\n" in value else value)
        return [k for k, _ in written]

    def set_output(self, key: str, value: str) -> None:
        self.set_outputs({key: value})


def prefixed(outputs: Mapping[str, str], prefix: str = AGENT_OUTPUT_PREFIX) -> dict[str, str]:
    return {f"{prefix}{key}": value for key, value in outputs.items()}
