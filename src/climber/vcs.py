# vcs.py
from __future__ import annotations

import time
from pathlib import Path
from typing import Callable, Dict, Optional, Sequence

from .errors import TOOL_HINTS, ClimberError
from .git_facts import git
from .model import AggregateResult, ExecutionResult, Project
from .process import ProcessRunner, default_runner
from .registry import Workspace
from .runner import run_operation
from .ui.console import get_console

# sequential git runs pause between projects
GIT_DELAY = 0.5


def _not_a_repo(project: Project) -> ExecutionResult:
    get_console().print_skipped(project.name, "not a git repository")
    return ExecutionResult(
        project=project.name,
        success=True,
        skipped=True,
        reason="Not a git repository",
        details={"is_git_repo": False},
    )


def git_status(
    project: Project,
    path: Path,
    *,
    runner: Optional[ProcessRunner] = None,
    **_options,
) -> ExecutionResult:
    """Branch, dirty flag and ahead/behind counts. Read-only."""
    console = get_console()
    console.print_info(f"Git status for {project.name}...")

    if not git.is_git_repository(path):
        return _not_a_repo(project)

    branch = git.current_branch(path)
    dirty = git.is_dirty(path)
    remote = git.remote_status(path)

    console.print_info(f"   Branch: {branch}")
    console.print_info("   Uncommitted changes detected" if dirty else "   Working directory clean")
    if remote.no_remote:
        console.print_info("   No remote branch configured")
    elif remote.error:
        console.print_warning(f"{project.name}: error checking remote: {remote.error}")
    elif remote.up_to_date:
        console.print_info(f"   Up to date with origin/{branch}")
    else:
        if remote.behind:
            console.print_info(f"   {remote.behind} commit(s) behind origin/{branch}")
        if remote.ahead:
            console.print_info(f"   {remote.ahead} commit(s) ahead of origin/{branch}")

    return ExecutionResult(
        project=project.name,
        success=True,
        details={"is_git_repo": True, "branch": branch, "has_changes": dirty, "remote": remote.to_dict()},
    )


def git_pull(
    project: Project,
    path: Path,
    *,
    force: bool = False,
    rebase: bool = False,
    runner: Optional[ProcessRunner] = None,
    **_options,
) -> ExecutionResult:
    """
    Pull, refusing (as a failed result, not an exception) when:
      - the tree has uncommitted changes and force is off
      - local commits exist and neither rebase nor force is on, since the
        pull would create a merge commit
    """
    console = get_console()
    runner = runner or default_runner()
    console.print_info(f"Pulling changes for {project.name}...")

    if not git.is_git_repository(path):
        return _not_a_repo(project)

    dirty = git.is_dirty(path)
    remote = git.remote_status(path)

    if remote.up_to_date:
        console.print_success(f"{project.name} already up to date")
        return ExecutionResult(project=project.name, success=True, details={"up_to_date": True})

    if dirty and not force:
        console.print_failure(
            project.name,
            "Cannot pull: uncommitted changes detected",
            hint="Commit your changes or use --force",
        )
        return ExecutionResult(project=project.name, success=False, error="Uncommitted changes detected")

    if remote.ahead > 0 and not rebase and not force:
        console.print_failure(
            project.name,
            "Cannot pull: local commits would create a merge",
            hint="Use --rebase to rebase local commits or push your changes first",
        )
        return ExecutionResult(
            project=project.name,
            success=False,
            error="Local commits detected - would create merge",
        )

    args = ["git", "pull"]
    if rebase:
        args.append("--rebase")

    try:
        proc = runner.run(args, cwd=path, interactive=True)
    except OSError as e:
        console.print_failure(project.name, f"Error pulling: {e}", hint=TOOL_HINTS["git"])
        return ExecutionResult(project=project.name, success=False, error=str(e))

    if proc.returncode != 0:
        console.print_failure(project.name, "git pull failed", exit_code=proc.returncode)
        return ExecutionResult(
            project=project.name,
            success=False,
            error=f"Git pull failed with exit code {proc.returncode}",
        )

    console.print_success(f"Pulled changes for {project.name}")
    return ExecutionResult(project=project.name, success=True, details={"pulled": True})


def git_sync(
    project: Project,
    path: Path,
    *,
    force: bool = False,
    rebase: bool = False,
    runner: Optional[ProcessRunner] = None,
    **_options,
) -> ExecutionResult:
    """
    Fetch, then pull only when it is a clean fast-forward. Any other state
    is a success carrying the reason the pull was skipped.
    """
    console = get_console()
    runner = runner or default_runner()
    console.print_info(f"Syncing {project.name} with remote...")

    if not git.is_git_repository(path):
        return _not_a_repo(project)

    try:
        fetched = runner.run(["git", "fetch"], cwd=path, interactive=True)
    except OSError as e:
        return ExecutionResult(project=project.name, success=False, error=str(e))
    if fetched.returncode != 0:
        console.print_failure(project.name, "Failed to fetch remote information", exit_code=fetched.returncode)
        return ExecutionResult(project=project.name, success=False, error="Git fetch failed")

    remote = git.remote_status(path)
    dirty = git.is_dirty(path)

    if dirty:
        console.print_skipped(project.name, "uncommitted changes, pull skipped")
        return ExecutionResult(
            project=project.name,
            success=True,
            reason="Uncommitted changes",
            details={"fetched": True, "pulled": False},
        )

    if remote.can_fast_forward:
        return git_pull(project, path, force=force, rebase=rebase, runner=runner)

    if remote.ahead > 0:
        console.print_skipped(project.name, "local commits, pull skipped")
        return ExecutionResult(
            project=project.name,
            success=True,
            reason="Local commits detected",
            details={"fetched": True, "pulled": False},
        )

    if remote.up_to_date:
        console.print_success(f"{project.name} already up to date")
        return ExecutionResult(project=project.name, success=True, details={"fetched": True, "up_to_date": True})

    return ExecutionResult(project=project.name, success=True, details={"fetched": True})


def repository_info(project: Project, path: Path) -> ExecutionResult:
    if not git.is_git_repository(path):
        return ExecutionResult(
            project=project.name,
            success=False,
            error="Not a git repository",
            details={"is_git_repo": False},
        )

    root = git.repo_root(path)
    return ExecutionResult(
        project=project.name,
        success=True,
        details={
            "is_git_repo": True,
            "git_root": str(root) if root else None,
            "branch": git.current_branch(path),
            "has_changes": git.is_dirty(path),
            "remote": git.remote_status(path).to_dict(),
            "project_path": str(path),
        },
    )


GIT_OPERATIONS: Dict[str, Callable[..., ExecutionResult]] = {
    "status": git_status,
    "pull": git_pull,
    "sync": git_sync,
}


def run_git_operation(
    projects: Sequence[Project],
    operation: str,
    ws: Workspace,
    *,
    parallel: bool = False,
    force: bool = False,
    rebase: bool = False,
    runner: Optional[ProcessRunner] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> AggregateResult:
    """
    Dispatch status/pull/sync over projects. Pulls never run in parallel;
    failures never stop the remaining projects.
    """
    func = GIT_OPERATIONS.get(operation)
    if func is None:
        raise ClimberError(
            kind="unknown_git_operation",
            project=None,
            message=f"Unknown git operation: {operation}",
            details={"available": ", ".join(GIT_OPERATIONS)},
        )

    def unit(project: Project, path: Path) -> ExecutionResult:
        return func(project, path, force=force, rebase=rebase, runner=runner)

    concurrent = parallel and operation != "pull"
    return run_operation(
        projects,
        unit,
        ws.root_path,
        parallel=concurrent,
        continue_on_error=True,
        delay=0.0 if concurrent else GIT_DELAY,
        label=f"git {operation}",
        sleep=sleep,
    )
