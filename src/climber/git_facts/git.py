# git.py
# Small, focused wrapper around the Git CLI.
# Every function takes the directory to run in, since each project is its
# own repository. The rest of the codebase never calls subprocess("git ...")
# directly, except for `git pull`/`git fetch` which stream to the terminal
# through ProcessRunner.

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


def _git(args: list[str], cwd: str | Path) -> str:
    """
    Execute a git command in `cwd` and return its stdout, stripped.

    Raises subprocess.CalledProcessError on a non-zero exit and
    FileNotFoundError if git is not installed.
    """
    out = subprocess.check_output(
        ["git", *args],
        cwd=str(cwd),
        text=True,
        stderr=subprocess.DEVNULL,
    )
    return out.strip()


def is_git_repository(directory: str | Path) -> bool:
    try:
        _git(["rev-parse", "--git-dir"], directory)
        return True
    except (subprocess.CalledProcessError, OSError):
        return False


def repo_root(directory: str | Path) -> Optional[Path]:
    """Absolute path of the repository containing `directory`, or None."""
    try:
        return Path(_git(["rev-parse", "--show-toplevel"], directory))
    except (subprocess.CalledProcessError, OSError):
        return None


def current_branch(directory: str | Path) -> Optional[str]:
    try:
        return _git(["rev-parse", "--abbrev-ref", "HEAD"], directory)
    except (subprocess.CalledProcessError, OSError):
        return None


def is_dirty(directory: str | Path) -> bool:
    """
    Whether the working tree has modified, staged or untracked files.
    `git status --porcelain` prints nothing for a clean tree.
    """
    try:
        return _git(["status", "--porcelain"], directory) != ""
    except (subprocess.CalledProcessError, OSError):
        return False


@dataclass(frozen=True)
class RemoteStatus:
    branch: str | None = None
    behind: int = 0
    ahead: int = 0
    no_remote: bool = False
    error: str | None = None

    @property
    def up_to_date(self) -> bool:
        return self.error is None and not self.no_remote and self.behind == 0 and self.ahead == 0

    @property
    def can_fast_forward(self) -> bool:
        return self.error is None and not self.no_remote and self.behind > 0 and self.ahead == 0

    def to_dict(self) -> dict:
        return {
            "branch": self.branch,
            "behind": self.behind,
            "ahead": self.ahead,
            "up_to_date": self.up_to_date,
            "can_fast_forward": self.can_fast_forward,
            "no_remote": self.no_remote,
            "error": self.error,
        }


def remote_status(directory: str | Path) -> RemoteStatus:
    """
    Compare HEAD with origin/<branch> using the last fetched remote refs.

    Returns counts of commits the local branch is behind/ahead; a missing
    remote branch or a git failure is reported in the result, not raised.
    """
    branch = current_branch(directory)
    if not branch:
        return RemoteStatus(error="Could not determine current branch")

    try:
        _git(["rev-parse", "--verify", f"origin/{branch}"], directory)
    except (subprocess.CalledProcessError, OSError):
        return RemoteStatus(branch=branch, no_remote=True)

    try:
        # left side = commits only on origin (behind), right = only on HEAD (ahead)
        counts = _git(["rev-list", "--left-right", "--count", f"origin/{branch}...HEAD"], directory)
        behind, ahead = (int(n) for n in counts.split())
    except (subprocess.CalledProcessError, OSError, ValueError) as e:
        return RemoteStatus(branch=branch, error=str(e))

    return RemoteStatus(branch=branch, behind=behind, ahead=ahead)
