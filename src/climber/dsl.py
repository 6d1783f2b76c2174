# src/climber/dsl.py
from __future__ import annotations

from typing import Dict, Optional

from .model import OperationSpec, Project, ReadinessPolicy, ReadinessSpec, TargetSpec
from .registry import Workspace


# ---------------------------------------------------------------------
# Operation helper
# ---------------------------------------------------------------------

def cmd(
    name: str,
    command: str,
    *,
    description: str | None = None,
    env: Optional[Dict[str, str]] = None,
    target: TargetSpec = "all",
    interactive: bool = False,
    parallel: bool = False,
) -> OperationSpec:
    """Create a command/hook definition."""
    return OperationSpec(
        name=name,
        command=command,
        description=description,
        env={k: str(v) for k, v in (env or {}).items()},
        target=target,
        interactive=interactive,
        parallel=parallel,
    )


# ---------------------------------------------------------------------
# Readiness helpers
# ---------------------------------------------------------------------

def http(url: str, *, timeout_ms: int = 5000) -> ReadinessSpec:
    return ReadinessSpec(type="http", config={"url": url}, timeout_ms=timeout_ms)


def port(port: int, host: str = "localhost", *, timeout_ms: int = 5000) -> ReadinessSpec:
    return ReadinessSpec(type="port", config={"host": host, "port": port}, timeout_ms=timeout_ms)


def check(command: str, *, timeout_ms: int = 5000) -> ReadinessSpec:
    return ReadinessSpec(type="command", config={"command": command}, timeout_ms=timeout_ms)


def healthy(service: str, *, timeout_ms: int = 5000) -> ReadinessSpec:
    return ReadinessSpec(type="docker", config={"service": service}, timeout_ms=timeout_ms)


# ---------------------------------------------------------------------
# Project helper
# ---------------------------------------------------------------------

def project(
    name: str,
    *hooks: OperationSpec,  # allow: project("api", cmd("build", ...), cmd("test", ...))
    path: str | None = None,  # defaults to the project name
    description: str | None = None,
    readiness: Optional[ReadinessSpec] = None,
) -> Project:
    return Project(
        name=name,
        path=path or name,
        description=description,
        hooks={h.name: h for h in hooks},
        readiness=readiness,
    )


# ---------------------------------------------------------------------
# Builder API
# ---------------------------------------------------------------------

class WorkspaceBuilder:
    def __init__(self, root: str, name: str = "default"):
        self.root = root
        self.name = name
        self._projects: list[Project] = []
        self._deps: dict[str, list[str]] = {}
        self._groups: dict[str, list[str]] = {}
        self._environments: dict[str, dict] = {}
        self._hooks: dict[str, OperationSpec] = {}
        self._commands: dict[str, OperationSpec] = {}
        self._policy = ReadinessPolicy()

    def add(self, *projects: Project):
        self._projects.extend(projects)
        return self

    def depends_on(self, project_name: str, *deps: str):
        self._deps.setdefault(project_name, []).extend(deps)
        return self

    def group(self, name: str, *members: str):
        self._groups[name] = list(members)
        return self

    def environment(self, name: str, *members: str, description: str | None = None):
        env: dict = {"projects": list(members)}
        if description:
            env["description"] = description
        self._environments[name] = env
        return self

    def hook(self, op: OperationSpec):
        self._hooks[op.name] = op
        return self

    def command(self, op: OperationSpec):
        self._commands[op.name] = op
        return self

    def readiness(self, *, max_retries: int = 30, retry_delay_ms: int = 2000, timeout_ms: int = 5000):
        self._policy = ReadinessPolicy(max_retries=max_retries, retry_delay_ms=retry_delay_ms, timeout_ms=timeout_ms)
        return self

    def build(self) -> Workspace:
        if not self._projects:
            raise ValueError(f"Workspace '{self.name}' has no projects")

        names = [p.name for p in self._projects]
        if len(set(names)) != len(names):
            dupes = sorted({n for n in names if names.count(n) > 1})
            raise ValueError(f"Duplicate project names found: {dupes}")

        return Workspace(
            root=self.root,
            projects=list(self._projects),
            dependencies={k: list(v) for k, v in self._deps.items()},
            groups={k: list(v) for k, v in self._groups.items()},
            environments=dict(self._environments),
            hooks=dict(self._hooks),
            custom_commands=dict(self._commands),
            readiness=self._policy,
            name=self.name,
        )


def build(root: str, name: str = "default") -> WorkspaceBuilder:
    """Convenience: build('~/code').add(project(...)).depends_on(...).build()"""
    return WorkspaceBuilder(root, name)
