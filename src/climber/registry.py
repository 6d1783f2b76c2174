# registry.py
from __future__ import annotations

import runpy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from . import settings
from .dag import resolve_order
from .errors import WorkspaceError
from .model import OperationSpec, Project, ReadinessPolicy, ReadinessSpec
from .readiness import Dependency


@dataclass
class Workspace:
    """
    Read-only view of one workspace: projects, dependency map, groups,
    environments and operation definitions. Nothing here writes to disk.
    """
    root: str
    projects: List[Project]
    dependencies: Dict[str, List[str]] = field(default_factory=dict)
    groups: Dict[str, List[str]] = field(default_factory=dict)
    environments: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    hooks: Dict[str, OperationSpec] = field(default_factory=dict)
    custom_commands: Dict[str, OperationSpec] = field(default_factory=dict)
    readiness: ReadinessPolicy = field(default_factory=ReadinessPolicy)
    name: str = "default"

    @property
    def root_path(self) -> Path:
        return Path(self.root).expanduser()

    def project(self, name: str) -> Optional[Project]:
        return next((p for p in self.projects if p.name == name), None)

    def project_path(self, project: Project) -> Path:
        return self.root_path / project.path

    def projects_for_environment(self, environment: str = "default") -> List[Project]:
        env = self.environments.get(environment) or {}
        enabled = env.get("projects")
        if not enabled:
            return list(self.projects)
        return [p for p in self.projects if p.name in enabled]

    def startup_order(self, environment: str = "default") -> List[Project]:
        return resolve_order(self.projects_for_environment(environment), self.dependencies)

    def dependency_readiness(self, project: Project) -> List[Dependency]:
        """Declared dependencies of `project` that exist, with their readiness specs."""
        out: List[Dependency] = []
        for dep_name in self.dependencies.get(project.name) or []:
            dep = self.project(dep_name)
            if dep is None:
                continue
            out.append(Dependency(name=dep.name, readiness=dep.readiness))
        return out


# ----------------------------------------------------------------------
# dict -> model
# ----------------------------------------------------------------------

def operation_from_dict(name: str, data: Mapping[str, Any]) -> OperationSpec:
    if isinstance(data, str):
        data = {"command": data}
    if not data.get("command"):
        raise WorkspaceError(f"Operation '{name}' is missing required field: command")
    return OperationSpec(
        name=name,
        command=str(data["command"]),
        description=data.get("description"),
        env={k: str(v) for k, v in (data.get("env") or {}).items()},
        target=data.get("target", "all"),
        interactive=bool(data.get("interactive", False)),
        parallel=bool(data.get("parallel", False)),
    )


def readiness_from_dict(data: Mapping[str, Any], default_timeout_ms: int) -> ReadinessSpec:
    if not data.get("type"):
        raise WorkspaceError("Readiness check is missing required field: type")
    return ReadinessSpec(
        type=str(data["type"]),
        config=dict(data.get("config") or {}),
        timeout_ms=int(data.get("timeout", default_timeout_ms)),
    )


def policy_from_dict(data: Optional[Mapping[str, Any]]) -> ReadinessPolicy:
    data = data or {}
    return ReadinessPolicy(
        max_retries=int(data.get("maxRetries", settings.MAX_RETRIES)),
        retry_delay_ms=int(data.get("retryDelay", settings.RETRY_DELAY_MS)),
        timeout_ms=int(data.get("timeout", settings.READINESS_TIMEOUT_MS)),
    )


def _operations(data: Optional[Mapping[str, Any]]) -> Dict[str, OperationSpec]:
    return {name: operation_from_dict(name, spec) for name, spec in (data or {}).items()}


def project_from_dict(index: int, data: Any, policy: ReadinessPolicy) -> Project:
    if not isinstance(data, Mapping):
        raise WorkspaceError(f"Project at index {index} is not a valid object")
    if not data.get("name"):
        raise WorkspaceError(f"Project at index {index} is missing required field: name")
    if not data.get("path"):
        raise WorkspaceError(f"Project at index {index} is missing required field: path")

    readiness = data.get("readiness")
    return Project(
        name=str(data["name"]),
        path=str(data["path"]),
        description=data.get("description"),
        hooks=_operations(data.get("hooks")),
        readiness=readiness_from_dict(readiness, policy.timeout_ms) if readiness else None,
    )


def workspace_from_dict(data: Any, name: str = "default") -> Workspace:
    if not data:
        raise WorkspaceError("Configuration is empty")
    if not isinstance(data, Mapping):
        raise WorkspaceError("Configuration must be a mapping")
    if not data.get("root"):
        raise WorkspaceError("Missing required field: root")
    if not isinstance(data.get("projects"), list):
        raise WorkspaceError("Missing or invalid projects array")

    policy = policy_from_dict(data.get("readiness"))
    projects = [project_from_dict(i, p, policy) for i, p in enumerate(data["projects"])]

    names = [p.name for p in projects]
    if len(set(names)) != len(names):
        dupes = sorted({n for n in names if names.count(n) > 1})
        raise WorkspaceError(f"Duplicate project names found: {dupes}")

    return Workspace(
        root=str(data["root"]),
        projects=projects,
        dependencies={k: list(v or []) for k, v in (data.get("dependencies") or {}).items()},
        groups={k: list(v or []) for k, v in (data.get("groups") or {}).items()},
        environments=dict(data.get("environments") or {}),
        hooks=_operations(data.get("hooks")),
        custom_commands=_operations(data.get("customCommands")),
        readiness=policy,
        name=name,
    )


# ----------------------------------------------------------------------
# Loading (local file)
# ----------------------------------------------------------------------

def _load_python_workspace(path: Path) -> Workspace:
    """
    The file must define either:
      - workspace() -> Workspace
      - WORKSPACE = Workspace(...)
    """
    globals_dict = runpy.run_path(str(path), run_name=f"climber_workspace_{path.stem}")

    ws = None
    if "workspace" in globals_dict and callable(globals_dict["workspace"]):
        ws = globals_dict["workspace"]()
    elif "WORKSPACE" in globals_dict:
        ws = globals_dict["WORKSPACE"]

    if not isinstance(ws, Workspace):
        raise WorkspaceError(
            "Workspace file must return/define a Workspace. "
            "Define workspace() -> Workspace or WORKSPACE = Workspace(...)."
        )
    return ws


def load_workspace(path: str | Path) -> Workspace:
    """Load a workspace from a .yaml/.yml or .py file."""
    ws_path = Path(path).expanduser().resolve()
    if not ws_path.exists():
        raise WorkspaceError(f"Workspace file not found: {ws_path}")

    if ws_path.suffix == ".py":
        return _load_python_workspace(ws_path)
    if ws_path.suffix not in (".yaml", ".yml"):
        raise WorkspaceError(f"Workspace must be a .yaml, .yml or .py file, got: {ws_path.name}")

    try:
        data = yaml.safe_load(ws_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise WorkspaceError(f"Invalid YAML in {ws_path}: {e}") from e
    return workspace_from_dict(data, name=ws_path.stem)


def current_workspace_name(config_dir: str | Path | None = None) -> str:
    """`current` from workspaces.yaml, else CLIMBER_WORKSPACE."""
    registry_file = Path(config_dir or settings.CONFIG_DIR) / "workspaces.yaml"
    if registry_file.exists():
        try:
            data = yaml.safe_load(registry_file.read_text(encoding="utf-8"))
        except yaml.YAMLError:
            data = None
        if isinstance(data, Mapping) and data.get("current"):
            return str(data["current"])
    return settings.WORKSPACE


def find_workspace_file(name: str | None = None, config_dir: str | Path | None = None) -> Path:
    config_dir = Path(config_dir or settings.CONFIG_DIR)
    name = name or current_workspace_name(config_dir)
    return config_dir / "workspaces" / f"{name}.yaml"
