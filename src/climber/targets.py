# targets.py
from __future__ import annotations

from typing import Dict, List, Mapping, Optional, Sequence

from .model import Project, TargetSpec

ALL = "all"


def _entries(target: TargetSpec) -> List[str]:
    if isinstance(target, str):
        return [target]
    return list(target or [])


def select_projects(
    all_projects: Sequence[Project],
    target: TargetSpec,
    groups: Optional[Mapping[str, Sequence[str]]] = None,
) -> List[Project]:
    """
    Resolve a target spec into projects.

    - 'all', a list containing 'all', or no target at all -> every project
    - a project name -> that project
    - a group name -> its members (unknown members skipped)
    - anything else -> nothing

    Entries are resolved in spec order and concatenated. Duplicates are kept:
    a project named directly and through a group is returned twice.
    """
    if target is None or target == "":
        return list(all_projects)

    entries = _entries(target)
    if ALL in entries:
        return list(all_projects)

    by_name: Dict[str, Project] = {}
    for p in all_projects:
        by_name.setdefault(p.name, p)
    groups = groups or {}

    selected: List[Project] = []
    for entry in entries:
        project = by_name.get(entry)
        if project is not None:
            selected.append(project)
            continue

        members = groups.get(entry)
        if members:
            selected.extend(by_name[m] for m in members if m in by_name)

    return selected


def describe_target(target: TargetSpec) -> str:
    if target is None:
        return ALL
    return ", ".join(_entries(target)) or "<none>"
