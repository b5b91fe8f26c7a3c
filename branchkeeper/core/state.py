"""Per-run state shared between branch resolution and commit orchestration.

RefreshState is the one mutable cell of a run: every networked git
operation reads and updates it, so a refresh made by one operation
covers the ones that follow. Scope it to a single run.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field


def now_ms() -> float:
    return time.time() * 1000


@dataclass
class RefreshState:
    value: float = field(default_factory=now_ms)

    def touch(self, at_ms: float | None = None) -> None:
        self.value = now_ms() if at_ms is None else at_ms


@dataclass(frozen=True)
class BranchInfo:
    base_branch: str
    current_branch: str
    claude_branch: str | None = None


@dataclass(frozen=True)
class CommitResult:
    committed: bool
