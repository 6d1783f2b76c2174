from .dag import resolve_order, shutdown_order
from .dsl import build, check, cmd, healthy, http, port, project
from .model import AggregateResult, ExecutionResult, OperationSpec, Project, ReadinessPolicy, ReadinessSpec
from .orchestrator import Orchestrator
from .readiness import Dependency, ReadinessChecker
from .registry import Workspace, load_workspace
from .runner import run_operation
from .targets import select_projects

__all__ = [
    "resolve_order", "shutdown_order", "select_projects", "run_operation",
    "Orchestrator", "ReadinessChecker", "Dependency", "Workspace", "load_workspace",
    "Project", "OperationSpec", "ReadinessSpec", "ReadinessPolicy", "ExecutionResult", "AggregateResult",
    "build", "project", "cmd", "http", "port", "check", "healthy",
]
