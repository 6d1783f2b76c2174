# orchestrator.py
from __future__ import annotations

import time
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from . import compose, settings
from .errors import CommandFailure
from .model import AggregateResult, ExecutionResult, OperationSpec, Project, TargetSpec
from .process import ProcessRunner, default_runner, merged_env
from .readiness import ReadinessChecker
from .registry import Workspace
from .runner import run_command, run_operation
from .targets import select_projects
from .ui.console import get_console


class Orchestrator:
    """
    Up / down / restart / logs / clean for one workspace.

    Start order comes from the dependency graph; stop order is its reverse.
    Both run one project at a time and stop at the first failure. logs and
    clean walk the same startup order.
    """

    def __init__(
        self,
        ws: Workspace,
        *,
        runner: Optional[ProcessRunner] = None,
        checker: Optional[ReadinessChecker] = None,
        stabilize_delay: float = settings.STABILIZE_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.ws = ws
        self.runner = runner or default_runner()
        self.checker = checker or ReadinessChecker(runner=self.runner, sleep=sleep)
        self.stabilize_delay = stabilize_delay
        self.sleep = sleep

    def plan(self, environment: str = "default", target: TargetSpec = None) -> List[Project]:
        """Startup order for the environment, narrowed to `target` if given."""
        ordered = self.ws.startup_order(environment)
        if target is None or target == [] or target == ():
            return ordered
        wanted = {p.name for p in select_projects(ordered, target, self.ws.groups)}
        return [p for p in ordered if p.name in wanted]

    def _start(self, project: Project, path: Path, service: Optional[str] = None) -> ExecutionResult:
        deps = self.ws.dependency_readiness(project)
        if any(d.readiness for d in deps):
            if not self.checker.wait_for(deps, path, self.ws.readiness):
                return ExecutionResult(
                    project=project.name,
                    success=False,
                    error=f"Dependencies of {project.name} not ready: {', '.join(d.name for d in deps)}",
                )

        op = OperationSpec(name="up", command=" ".join(compose.up_args(service)))
        result = run_command(project, path, op, runner=self.runner)
        get_console().print_output(result.output or "")
        return result

    def _stop(self, project: Project, path: Path, service: Optional[str] = None) -> ExecutionResult:
        op = OperationSpec(name="down", command=" ".join(compose.stop_args(service)))
        return run_command(project, path, op, runner=self.runner)

    def _settle_delay(self, next_project: Project) -> float:
        """No blind pause before a project that waits on readiness checks."""
        if any(d.readiness for d in self.ws.dependency_readiness(next_project)):
            return 0.0
        return self.stabilize_delay

    def up(self, environment: str = "default", target: TargetSpec = None, service: Optional[str] = None) -> AggregateResult:
        projects = self.plan(environment, target)
        console = get_console()
        if not projects:
            console.print_info("No projects selected.")
            return AggregateResult(operation="up")

        console.print_order(f"Starting services in {environment}", [p.name for p in projects])
        return run_operation(
            projects,
            lambda project, path: self._start(project, path, service),
            self.ws.root_path,
            parallel=False,
            continue_on_error=False,
            delay=self._settle_delay,
            label="up",
            sleep=self.sleep,
        )

    def down(self, environment: str = "default", target: TargetSpec = None, service: Optional[str] = None) -> AggregateResult:
        projects = list(reversed(self.plan(environment, target)))
        console = get_console()
        if not projects:
            console.print_info("No projects selected.")
            return AggregateResult(operation="down")

        console.print_order(f"Stopping services in {environment}", [p.name for p in projects])
        return run_operation(
            projects,
            lambda project, path: self._stop(project, path, service),
            self.ws.root_path,
            parallel=False,
            continue_on_error=False,
            label="down",
            sleep=self.sleep,
        )

    def restart(
        self,
        environment: str = "default",
        target: TargetSpec = None,
        service: Optional[str] = None,
    ) -> Tuple[AggregateResult, AggregateResult]:
        stopped = self.down(environment, target, service)
        started = self.up(environment, target, service)
        return stopped, started

    def logs(
        self,
        environment: str = "default",
        target: TargetSpec = None,
        tail: int = 100,
        service: Optional[str] = None,
        follow: bool = False,
    ) -> AggregateResult:
        """
        `docker compose logs` per project in startup order.

        Without follow the projects are read one after another and the first
        failure aborts. With follow every project streams at once, each line
        prefixed with `[project]`, until the streams end (Ctrl+C reaches the
        compose children as well, since they share the terminal's process
        group).
        """
        projects = self.plan(environment, target)
        console = get_console()
        if not projects:
            console.print_info("No projects selected.")
            return AggregateResult(operation="logs")

        args = compose.logs_args(tail, service, follow)

        def fetch(project: Project, path: Path) -> ExecutionResult:
            if project.description:
                console.print_description(project.description)
            result = run_command(project, path, OperationSpec(name="logs", command=" ".join(args)), runner=self.runner)
            console.print_output(result.output or "")
            return result

        def tail_follow(project: Project, path: Path) -> ExecutionResult:
            proc = self.runner.stream(
                args,
                cwd=path,
                env=merged_env(),
                on_line=lambda line: console.print_info(f"[{project.name}] {line}"),
            )
            if proc.returncode != 0:
                failure = CommandFailure(operation="logs", project=project.name, exit_code=proc.returncode)
                return ExecutionResult(project=project.name, success=False, error=str(failure))
            return ExecutionResult(project=project.name, success=True)

        if follow:
            console.print_info("Following logs... Press Ctrl+C to stop.")

        return run_operation(
            projects,
            tail_follow if follow else fetch,
            self.ws.root_path,
            parallel=follow,
            continue_on_error=False,
            label="logs",
            sleep=self.sleep,
        )

    def clean(
        self,
        environment: str = "default",
        target: TargetSpec = None,
        volumes: bool = False,
        remove_orphans: bool = False,
    ) -> AggregateResult:
        """`docker compose down` per project; a failing project never stops the rest."""
        projects = self.plan(environment, target)
        if not projects:
            get_console().print_info("No projects selected.")
            return AggregateResult(operation="clean")

        op = OperationSpec(name="clean", command=" ".join(compose.clean_args(volumes, remove_orphans)))
        return run_operation(
            projects,
            op,
            self.ws.root_path,
            continue_on_error=True,
            runner=self.runner,
            label="clean",
            sleep=self.sleep,
        )

    def ps(self, environment: str = "default") -> AggregateResult:
        """Show `docker compose ps` for every project in startup order."""
        op = OperationSpec(name="ps", command=" ".join(compose.ps_args()))

        def show(project: Project, path: Path) -> ExecutionResult:
            result = run_command(project, path, op, runner=self.runner)
            if project.description:
                get_console().print_description(project.description)
            get_console().print_output(result.output or "")
            return result

        return run_operation(
            self.ws.startup_order(environment),
            show,
            self.ws.root_path,
            continue_on_error=True,
            label="ps",
            sleep=self.sleep,
        )
