# errors.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .model import AggregateResult


TOOL_HINTS = {
    "docker": "Install Docker and ensure the daemon is running.",
    "git": "Install Git or fix PATH.",
}


@dataclass
class ClimberError(Exception):
    """
    Structured error with enough context for:
      - clean CLI output
      - debugging without full tracebacks
    """
    kind: str
    project: str | None
    message: str
    details: dict = field(default_factory=dict)

    def __str__(self) -> str:
        lines = [f"{self.kind}: {self.message}"]
        if self.project:
            lines.append(f"project={self.project}")
        for k, v in self.details.items():
            lines.append(f"{k}={v}")
        return "\n".join(lines)


@dataclass
class CommandFailure(Exception):
    operation: str
    project: str
    exit_code: int

    def __str__(self) -> str:
        return f'Command "{self.operation}" failed in {self.project} with exit code {self.exit_code}'


class OperationAborted(Exception):
    """A sequential run stopped at its first failure; `aggregate` holds what ran."""

    def __init__(self, aggregate: "AggregateResult", cause: str):
        super().__init__(cause)
        self.aggregate = aggregate
        self.cause = cause


class WorkspaceError(ValueError):
    """Workspace file missing or malformed."""
