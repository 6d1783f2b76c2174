# model.py
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Union

# A target is 'all', a project name, a group name, or a list of those.
TargetSpec = Union[str, List[str], None]


@dataclass(frozen=True)
class ReadinessSpec:
    """How to verify that a project is actually usable, not just started."""
    type: str                                   # http | port | command | docker
    config: Dict[str, Any] = field(default_factory=dict)
    timeout_ms: int = 5000


@dataclass(frozen=True)
class ReadinessPolicy:
    """Global retry defaults for waiting on dependencies."""
    max_retries: int = 30
    retry_delay_ms: int = 2000
    timeout_ms: int = 5000


@dataclass(frozen=True)
class OperationSpec:
    """
    A shell command template run once per project.

    `${PROJECT_NAME}` and `${PROJECT_PATH}` are substituted before the command
    is split on whitespace.
    """
    name: str
    command: str
    description: str | None = None
    env: Dict[str, str] = field(default_factory=dict)
    target: TargetSpec = "all"
    interactive: bool = False
    parallel: bool = False

    # where a hook was resolved from: project | global | custom-command
    source: str | None = None

    def with_source(self, name: str, source: str) -> "OperationSpec":
        return replace(self, name=name, source=source)


@dataclass(frozen=True)
class Project:
    """One directory (relative to the workspace root) with its own compose file."""
    name: str
    path: str
    description: str | None = None
    hooks: Dict[str, OperationSpec] = field(default_factory=dict)
    readiness: Optional[ReadinessSpec] = None


@dataclass
class ExecutionResult:
    """Outcome of one unit of work against one project."""
    project: str
    success: bool
    output: str | None = None
    error: str | None = None

    # skipped units count as neither success nor failure in summaries
    skipped: bool = False
    reason: str | None = None
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass
class AggregateResult:
    """Per-invocation roll-up. `success` is true iff no attempted unit failed."""
    results: List[ExecutionResult] = field(default_factory=list)
    operation: str | None = None

    @property
    def success(self) -> bool:
        return all(r.success for r in self.results)

    @property
    def succeeded(self) -> List[ExecutionResult]:
        return [r for r in self.results if r.success and not r.skipped]

    @property
    def skipped(self) -> List[ExecutionResult]:
        return [r for r in self.results if r.skipped]

    @property
    def failed(self) -> List[ExecutionResult]:
        return [r for r in self.results if not r.success]
