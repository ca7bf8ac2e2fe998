"""Git subprocess wrappers used by the PR size gate."""

import subprocess
from dataclasses import dataclass
from pathlib import Path


class GitError(Exception):
    """Raised when a git command fails."""


@dataclass
class FileChange:
    path: str
    additions: int
    deletions: int

    @property
    def total(self) -> int:
        return self.additions + self.deletions


def run_git(args: list[str], cwd: str | Path | None = None) -> str:
    """Run a git command and return stdout. Raises GitError on failure."""
    cmd = ["git"] + args
    try:
        result = subprocess.run(
            cmd,
            cwd=cwd,
            capture_output=True,
            text=True,
            check=True,
        )
        return result.stdout.strip()
    except subprocess.CalledProcessError as e:
        raise GitError(f"git {' '.join(args)} failed: {e.stderr.strip()}") from e


def parse_numstat(output: str) -> list[FileChange]:
    """Parse ``git diff --numstat`` output. Binary files (``-\t-``) are skipped."""
    changes = []
    for line in output.splitlines():
        parts = line.split("\t")
        if len(parts) < 3:
            continue
        added, deleted, path = parts[0], parts[1], parts[2]
        if added == "-" or deleted == "-":
            continue
        changes.append(FileChange(path=path, additions=int(added), deletions=int(deleted)))
    return changes


def diff_numstat(base: str = "main", cwd: str | Path | None = None) -> list[FileChange]:
    """Per-file line changes between ``base`` and HEAD."""
    return parse_numstat(run_git(["diff", f"{base}...HEAD", "--numstat"], cwd=cwd))


def get_current_branch(cwd: str | Path) -> str:
    """Get the current branch name."""
    return run_git(["branch", "--show-current"], cwd=cwd)
