# cli.py
from __future__ import annotations

import sys
from pathlib import Path

import click

from climber import settings
from climber.commands import list_custom_commands, run_custom_command
from climber.compose import check_docker_available
from climber.errors import ClimberError, OperationAborted, WorkspaceError
from climber.hooks import list_hooks, run_hook
from climber.model import AggregateResult
from climber.orchestrator import Orchestrator
from climber.readiness import ReadinessChecker
from climber.registry import Workspace, find_workspace_file, load_workspace
from climber.targets import select_projects
from climber.ui.console import Console, get_console, set_console
from climber.vcs import GIT_OPERATIONS, run_git_operation


def discover_workspace(workspace_arg: str | None) -> Path:
    """
    Find the workspace file from the argument or the workspace registry.

    Raises:
        SystemExit: If the workspace file cannot be found
    """
    console = get_console()

    if workspace_arg:
        path = Path(workspace_arg).expanduser()
        if not path.exists():
            console.print_error(
                "Workspace file not found",
                f"Could not find workspace file: {workspace_arg}",
                suggestion="Specify an existing file:\n  climb --workspace ~/.climber-config/workspaces/default.yaml up",
            )
            sys.exit(1)
        return path

    path = find_workspace_file()
    if not path.exists():
        available = sorted(p.stem for p in (settings.CONFIG_DIR / "workspaces").glob("*.yaml"))
        console.print_error(
            "No workspace found",
            f"Workspace file does not exist: {path}",
            details=["Available workspaces:", *(f"  {n}" for n in available)] if available else None,
            suggestion="Create a workspace file or pass one explicitly:\n  climb --workspace my_workspace.yaml up",
        )
        sys.exit(1)
    return path


def _workspace(ctx) -> Workspace:
    if ctx.obj.get("workspace") is None:
        path = discover_workspace(ctx.obj.get("workspace_arg"))
        try:
            ctx.obj["workspace"] = load_workspace(path)
        except WorkspaceError as e:
            get_console().print_error("Invalid workspace", str(e), suggestion=f"Fix {path} and retry.")
            sys.exit(1)
    return ctx.obj["workspace"]


def _finish(ctx, fn) -> None:
    """Run fn() -> AggregateResult | list of them, map outcome to exit status."""
    console = get_console()
    try:
        outcome = fn()
        results = outcome if isinstance(outcome, (list, tuple)) else [outcome]
        if any(isinstance(r, AggregateResult) and not r.success for r in results):
            sys.exit(1)
    except OperationAborted as e:
        console.print_error("Operation aborted", e.cause)
        sys.exit(1)
    except ClimberError as e:
        console.print_error(e.kind, e.message, details=[f"{k}={v}" for k, v in e.details.items()])
        sys.exit(1)
    except KeyboardInterrupt:
        console.print_info("\nInterrupted by user")
        sys.exit(130)
    except Exception as e:
        console.print_exception(e)
        sys.exit(1)


@click.group()
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (show stack traces and detailed output)",
)
@click.option("--workspace", "workspace_arg", default=None, help="Workspace file (.yaml or .py)")
@click.option("--env", "environment", default=settings.ENVIRONMENT, show_default=True, help="Environment name")
@click.pass_context
def cli(ctx, debug, workspace_arg, environment):
    """climber: orchestrate many docker compose projects."""
    console = Console(debug=debug)
    set_console(console)
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug
    ctx.obj["workspace_arg"] = workspace_arg
    ctx.obj["environment"] = environment
    ctx.obj.setdefault("workspace", None)


# ----------------------------------------------------------------------
# Lifecycle
# ----------------------------------------------------------------------

@cli.command()
@click.argument("targets", nargs=-1)
@click.option("--delay", default=settings.STABILIZE_DELAY, type=float, show_default=True,
              help="Seconds to wait between projects")
@click.option("-s", "--service", default=None, help="Only this compose service in each project")
@click.pass_context
def up(ctx, targets, delay, service):
    """Start projects in dependency order."""
    ws = _workspace(ctx)

    def go():
        check_docker_available()
        return Orchestrator(ws, stabilize_delay=delay).up(ctx.obj["environment"], list(targets) or None, service)

    _finish(ctx, go)


@cli.command()
@click.argument("targets", nargs=-1)
@click.option("-s", "--service", default=None, help="Only this compose service in each project")
@click.pass_context
def down(ctx, targets, service):
    """Stop projects, dependents first."""
    ws = _workspace(ctx)

    def go():
        check_docker_available()
        return Orchestrator(ws).down(ctx.obj["environment"], list(targets) or None, service)

    _finish(ctx, go)


@cli.command()
@click.argument("targets", nargs=-1)
@click.option("-s", "--service", default=None, help="Only this compose service in each project")
@click.pass_context
def restart(ctx, targets, service):
    """Stop then start projects."""
    ws = _workspace(ctx)

    def go():
        check_docker_available()
        return Orchestrator(ws).restart(ctx.obj["environment"], list(targets) or None, service)

    _finish(ctx, go)


@cli.command()
@click.argument("targets", nargs=-1)
@click.option("-n", "--tail", default=100, type=int, show_default=True, help="Lines to show per project")
@click.option("-s", "--service", default=None, help="Only this compose service in each project")
@click.option("-f", "--follow", is_flag=True, default=False, help="Stream logs from every project until Ctrl+C")
@click.pass_context
def logs(ctx, targets, tail, service, follow):
    """Show compose logs in startup order."""
    ws = _workspace(ctx)

    def go():
        check_docker_available()
        return Orchestrator(ws).logs(
            ctx.obj["environment"],
            list(targets) or None,
            tail=tail,
            service=service,
            follow=follow,
        )

    _finish(ctx, go)


@cli.command()
@click.argument("targets", nargs=-1)
@click.option("-v", "--volumes", is_flag=True, default=False, help="Also remove named volumes")
@click.option("--remove-orphans", is_flag=True, default=False, help="Remove containers not in the compose file")
@click.pass_context
def clean(ctx, targets, volumes, remove_orphans):
    """Bring projects down and remove their containers and networks."""
    ws = _workspace(ctx)

    def go():
        check_docker_available()
        return Orchestrator(ws).clean(
            ctx.obj["environment"],
            list(targets) or None,
            volumes=volumes,
            remove_orphans=remove_orphans,
        )

    _finish(ctx, go)


@cli.command()
@click.pass_context
def ps(ctx):
    """Show compose status for every project."""
    ws = _workspace(ctx)
    _finish(ctx, lambda: Orchestrator(ws).ps(ctx.obj["environment"]))


@cli.command()
@click.argument("project_name")
@click.pass_context
def wait(ctx, project_name):
    """Wait until PROJECT_NAME's dependencies are ready."""
    ws = _workspace(ctx)
    project = ws.project(project_name)
    if project is None:
        get_console().print_error("Unknown project", f"No project named {project_name!r}")
        sys.exit(1)
    ok = ReadinessChecker().wait_for(ws.dependency_readiness(project), ws.project_path(project), ws.readiness)
    sys.exit(0 if ok else 1)


# ----------------------------------------------------------------------
# Operations
# ----------------------------------------------------------------------

@cli.command()
@click.argument("command_name", required=False)
@click.argument("targets", nargs=-1)
@click.option("-p", "--parallel/--sequential", default=None,
              help="Run on all targets at once (defaults to the command's own setting)")
@click.option("-c", "--continue-on-error", is_flag=True, default=False, help="Keep going after a failure")
@click.option("-i", "--interactive", is_flag=True, default=False, help="Attach the command to this terminal")
@click.option("-l", "--list", "list_only", is_flag=True, default=False, help="List custom commands")
@click.pass_context
def run(ctx, command_name, targets, parallel, continue_on_error, interactive, list_only):
    """Run a custom command on targets (projects, groups or 'all')."""
    ws = _workspace(ctx)
    if list_only or not command_name:
        list_custom_commands(ws)
        return
    _finish(ctx, lambda: run_custom_command(
        ws,
        command_name,
        list(targets) or None,
        parallel=parallel,
        continue_on_error=continue_on_error,
        interactive=interactive,
    ))


@cli.command()
@click.argument("hook_name", required=False)
@click.argument("targets", nargs=-1)
@click.option("-p", "--parallel", is_flag=True, default=False, help="Run on all targets at once")
@click.option("--fail-fast/--no-fail-fast", default=False, help="Stop at the first failing project")
@click.option("-i", "--interactive", is_flag=True, default=False, help="Attach the hook to this terminal")
@click.option("-l", "--list", "list_only", is_flag=True, default=False, help="List hooks")
@click.pass_context
def hook(ctx, hook_name, targets, parallel, fail_fast, interactive, list_only):
    """Run a hook on targets that define it."""
    ws = _workspace(ctx)
    if list_only or not hook_name:
        list_hooks(ws)
        return
    projects = select_projects(ws.projects, list(targets) or None, ws.groups)
    _finish(ctx, lambda: run_hook(
        projects,
        hook_name,
        ws,
        parallel=parallel,
        continue_on_error=not fail_fast,
        interactive=interactive,
    ))


@cli.command()
@click.argument("operation", type=click.Choice(sorted(GIT_OPERATIONS)))
@click.argument("targets", nargs=-1)
@click.option("-p", "--parallel", is_flag=True, default=False, help="Run on all targets at once (not for pull)")
@click.option("--force", is_flag=True, default=False, help="Pull despite uncommitted changes or local commits")
@click.option("--rebase", is_flag=True, default=False, help="Pull with --rebase")
@click.pass_context
def git(ctx, operation, targets, parallel, force, rebase):
    """Git status / pull / sync across projects."""
    ws = _workspace(ctx)
    projects = select_projects(ws.projects, list(targets) or None, ws.groups)
    _finish(ctx, lambda: run_git_operation(
        projects,
        operation,
        ws,
        parallel=parallel,
        force=force,
        rebase=rebase,
    ))


if __name__ == "__main__":
    cli()
