"""PR size gate: warn at 200 changed lines, block at 400."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from shogun.integrations.git import FileChange, diff_numstat

WARNING_THRESHOLD = 200
BLOCK_THRESHOLD = 400

SPLIT_SUGGESTIONS = [
    "Extract pure refactoring into a separate PR",
    "Split new features from bug fixes",
    "Separate test additions from implementation",
    "Break down by module or component boundaries",
    "Use feature flags for incremental changes",
]


class SizeVerdict(str, Enum):
    OK = "ok"
    WARN = "warn"
    BLOCK = "block"


@dataclass
class PRSize:
    additions: int = 0
    deletions: int = 0
    files: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.additions + self.deletions

    @classmethod
    def from_changes(cls, changes: list[FileChange]) -> "PRSize":
        return cls(
            additions=sum(c.additions for c in changes),
            deletions=sum(c.deletions for c in changes),
            files=[c.path for c in changes],
        )


def measure(base: str = "main", cwd: str | Path | None = None) -> PRSize:
    return PRSize.from_changes(diff_numstat(base, cwd=cwd))


def verdict(total: int) -> SizeVerdict:
    if total >= BLOCK_THRESHOLD:
        return SizeVerdict.BLOCK
    if total >= WARNING_THRESHOLD:
        return SizeVerdict.WARN
    return SizeVerdict.OK
