# runner.py
from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Optional, Sequence, Union

from .errors import CommandFailure, OperationAborted
from .model import AggregateResult, ExecutionResult, OperationSpec, Project
from .process import ProcessRunner, default_runner, merged_env, split_command
from .ui.console import get_console

# A unit of work: (project, absolute project dir) -> result
UnitFn = Callable[[Project, Path], ExecutionResult]
Operation = Union[OperationSpec, UnitFn]


# ----------------------------------------------------------------------
# Command units
# ----------------------------------------------------------------------

def render_command(template: str, project: Project) -> str:
    return (
        template
        .replace("${PROJECT_NAME}", project.name)
        .replace("${PROJECT_PATH}", project.path)
    )


def run_command(
    project: Project,
    project_path: Path,
    op: OperationSpec,
    *,
    interactive: bool = False,
    runner: Optional[ProcessRunner] = None,
) -> ExecutionResult:
    """Run one OperationSpec in one project directory. Never raises."""
    console = get_console()
    runner = runner or default_runner()
    interactive = interactive or op.interactive

    console.print_info(f'Running "{op.name}" in {project.name}...')
    if op.description:
        console.print_description(op.description)

    args = split_command(render_command(op.command, project))
    try:
        proc = runner.run(
            args,
            cwd=project_path,
            env=merged_env(op.env),
            interactive=interactive,
        )
    except (OSError, ValueError) as e:
        console.print_failure(project.name, f'Error running "{op.name}": {e}')
        return ExecutionResult(project=project.name, success=False, error=str(e))

    if proc.returncode == 0:
        console.print_success(f'"{op.name}" completed in {project.name}')
        return ExecutionResult(
            project=project.name,
            success=True,
            output=proc.stdout,
            details={"exit_code": 0, "stderr": proc.stderr},
        )

    failure = CommandFailure(operation=op.name, project=project.name, exit_code=proc.returncode)
    console.print_failure(project.name, proc.stderr or str(failure), exit_code=proc.returncode)
    return ExecutionResult(
        project=project.name,
        success=False,
        output=proc.stdout,
        error=str(failure),
        details={"exit_code": proc.returncode, "stderr": proc.stderr},
    )


def _as_unit(op: Operation, interactive: bool, runner: Optional[ProcessRunner]) -> UnitFn:
    if isinstance(op, OperationSpec):
        return lambda project, path: run_command(project, path, op, interactive=interactive, runner=runner)
    return op


def _guarded(unit: UnitFn, project: Project, path: Path) -> ExecutionResult:
    try:
        return unit(project, path)
    except Exception as e:
        get_console().print_failure(project.name, str(e))
        return ExecutionResult(project=project.name, success=False, error=str(e))


def print_summary(aggregate: AggregateResult, title: str = "SUMMARY") -> None:
    get_console().print_summary(
        succeeded=len(aggregate.succeeded),
        skipped=len(aggregate.skipped),
        failed=len(aggregate.failed),
        title=title,
    )


# ----------------------------------------------------------------------
# Public API
# ----------------------------------------------------------------------

def run_operation(
    targets: Sequence[Project],
    op: Operation,
    root: str | Path,
    *,
    parallel: bool = False,
    continue_on_error: bool = False,
    interactive: bool = False,
    runner: Optional[ProcessRunner] = None,
    delay: Union[float, Callable[[Project], float]] = 0.0,
    label: str | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> AggregateResult:
    """
    Run `op` once per target project.

    parallel=True:
      every unit starts at once and all are awaited; a failure never
      cancels siblings.
    parallel=False:
      units run in `targets` order. The first failure raises
      OperationAborted (holding the partial aggregate) unless
      continue_on_error is set. `delay` seconds are slept between units;
      a callable delay is asked for the pause before each next project.

    An empty target list is a successful no-op.
    """
    root_p = Path(root)
    targets = list(targets)
    name = label or (op.name if isinstance(op, OperationSpec) else getattr(op, "__name__", "operation"))
    aggregate = AggregateResult(operation=name)

    if not targets:
        return aggregate

    unit = _as_unit(op, interactive, runner)
    console = get_console()
    console.print_operation_started(name, [p.name for p in targets])

    if parallel:
        with ThreadPoolExecutor(max_workers=len(targets)) as pool:
            futures = [pool.submit(_guarded, unit, p, root_p / p.path) for p in targets]
            aggregate.results.extend(f.result() for f in futures)
        print_summary(aggregate)
        return aggregate

    for i, project in enumerate(targets):
        result = _guarded(unit, project, root_p / project.path)
        aggregate.results.append(result)

        if not result.success and not continue_on_error:
            print_summary(aggregate)
            raise OperationAborted(aggregate, result.error or f"{name} failed in {project.name}")

        if i < len(targets) - 1:
            pause = delay(targets[i + 1]) if callable(delay) else delay
            if pause:
                sleep(pause)

    print_summary(aggregate)
    return aggregate
