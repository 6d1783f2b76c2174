# hooks.py
from __future__ import annotations

from typing import Optional, Sequence

from .model import AggregateResult, ExecutionResult, OperationSpec, Project
from .process import ProcessRunner
from .registry import Workspace
from .runner import run_command, run_operation
from .ui.console import get_console

# Predefined hook names; workspaces may define any other name as well.
STANDARD_HOOKS = {
    # dependency management
    "INSTALL_DEPS": "install-deps",
    "UPDATE_DEPS": "update-deps",
    "CLEAN_DEPS": "clean-deps",
    # build
    "BUILD": "build",
    "REBUILD": "rebuild",
    "CLEAN_BUILD": "clean-build",
    # test
    "TEST": "test",
    "TEST_UNIT": "test-unit",
    "TEST_INTEGRATION": "test-integration",
    # lint
    "LINT": "lint",
    "LINT_FIX": "lint-fix",
    # vcs
    "VCS_STATUS": "vcs-status",
    "VCS_PULL": "vcs-pull",
    "VCS_PUSH": "vcs-push",
    "VCS_SYNC": "vcs-sync",
    # service lifecycle
    "PRE_START": "pre-start",
    "POST_START": "post-start",
    "PRE_STOP": "pre-stop",
    "POST_STOP": "post-stop",
    # database
    "DB_MIGRATE": "db-migrate",
    "DB_SEED": "db-seed",
    "DB_RESET": "db-reset",
}


def get_hook(project: Project, hook_name: str, ws: Workspace) -> Optional[OperationSpec]:
    """
    Resolve a hook for one project. First match wins, nothing is merged:
    project hook > global hook > custom command of the same name.
    """
    if hook_name in project.hooks:
        return project.hooks[hook_name].with_source(hook_name, "project")
    if hook_name in ws.hooks:
        return ws.hooks[hook_name].with_source(hook_name, "global")
    if hook_name in ws.custom_commands:
        return ws.custom_commands[hook_name].with_source(hook_name, "custom-command")
    return None


def has_hook(project: Project, hook_name: str, ws: Workspace) -> bool:
    return get_hook(project, hook_name, ws) is not None


def run_hook(
    projects: Sequence[Project],
    hook_name: str,
    ws: Workspace,
    *,
    parallel: bool = False,
    continue_on_error: bool = True,
    interactive: bool = False,
    runner: Optional[ProcessRunner] = None,
) -> AggregateResult:
    """
    Run a hook on every project that has one. Projects without the hook are
    left out, not failed; if none has it nothing is spawned.
    """
    with_hook = [p for p in projects if has_hook(p, hook_name, ws)]
    if not with_hook:
        get_console().print_info(f"No projects have the '{hook_name}' hook configured.")
        return AggregateResult(operation=hook_name)

    def unit(project, path) -> ExecutionResult:
        hook = get_hook(project, hook_name, ws)
        get_console().print_debug(f"hook '{hook_name}' for {project.name} from {hook.source}")
        result = run_command(project, path, hook, interactive=interactive, runner=runner)
        result.details["source"] = hook.source
        return result

    return run_operation(
        with_hook,
        unit,
        ws.root_path,
        parallel=parallel,
        continue_on_error=continue_on_error,
        label=f"hook {hook_name}",
    )


def list_hooks(ws: Workspace) -> None:
    console = get_console()

    console.print_header("Standard Hooks")
    for key, name in STANDARD_HOOKS.items():
        console.print_info(f"  {name.ljust(20)} ({key})")

    if ws.hooks:
        console.print_header("Global Hooks")
        for name, hook in ws.hooks.items():
            console.print_info(f"  {name}")
            if hook.description:
                console.print_info(f"    {hook.description}")
            console.print_info(f"    Command: {hook.command}")

    if ws.custom_commands:
        console.print_header("Custom Commands (usable as hooks)")
        for name, command in ws.custom_commands.items():
            console.print_info(f"  {name}")
            if command.description:
                console.print_info(f"    {command.description}")

    with_hooks = [p for p in ws.projects if p.hooks]
    if with_hooks:
        console.print_header("Project-Specific Hooks")
        for project in with_hooks:
            console.print_info(f"  {project.name}:")
            for name, hook in project.hooks.items():
                console.print_info(f"    {name}: {hook.command}")
