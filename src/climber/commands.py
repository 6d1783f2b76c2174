# commands.py
from __future__ import annotations

from typing import Optional

from .errors import ClimberError
from .model import AggregateResult, TargetSpec
from .process import ProcessRunner
from .registry import Workspace
from .runner import run_operation
from .targets import describe_target, select_projects
from .ui.console import get_console


def run_custom_command(
    ws: Workspace,
    command_name: str,
    target: TargetSpec = None,
    *,
    parallel: bool | None = None,
    continue_on_error: bool = False,
    interactive: bool = False,
    runner: Optional[ProcessRunner] = None,
) -> AggregateResult:
    """
    Run a named custom command on its targets.

    `target` falls back to the command's own default target; `parallel`
    falls back to the command's own setting.
    """
    command = ws.custom_commands.get(command_name)
    if command is None:
        raise ClimberError(
            kind="unknown_command",
            project=None,
            message=f'Custom command "{command_name}" not found',
            details={"available": ", ".join(sorted(ws.custom_commands)) or "<none>"},
        )

    if target is None or target == [] or target == ():
        target = command.target

    targets = select_projects(ws.projects, target, ws.groups)
    if not targets:
        get_console().print_info(f"No projects found for target: {describe_target(target)}")
        return AggregateResult(operation=command_name)

    return run_operation(
        targets,
        command,
        ws.root_path,
        parallel=command.parallel if parallel is None else parallel,
        continue_on_error=continue_on_error,
        interactive=interactive,
        runner=runner,
    )


def list_custom_commands(ws: Workspace) -> None:
    console = get_console()

    if not ws.custom_commands:
        console.print_info("No custom commands configured.")
        return

    console.print_header("Custom Commands")
    for name, command in ws.custom_commands.items():
        console.print_info(f"  {name}")
        if command.description:
            console.print_info(f"    {command.description}")
        console.print_info(f"    Command: {command.command}")
        console.print_info(f"    Default Target: {describe_target(command.target)}")

    if ws.groups:
        console.print_header("Project Groups")
        for name, members in ws.groups.items():
            console.print_info(f"  {name}: {', '.join(members)}")
