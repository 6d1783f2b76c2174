# dag.py
from __future__ import annotations

import heapq
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Set, Tuple

from .model import Project
from .ui.console import get_console

DependencyMap = Mapping[str, Sequence[str]]


class CycleError(ValueError):
    """Dependency graph contains a cycle."""

    def __init__(self, stuck: List[str]):
        super().__init__(f"Dependency graph has a cycle. Stuck projects: {stuck}")
        self.stuck = stuck


def build_graph(names: Sequence[str], deps: DependencyMap) -> Tuple[Dict[str, Set[str]], Dict[str, int]]:
    """
    Build a DAG over `names` only.

    Edge dep -> project means dep must start BEFORE project. Entries that
    mention a name outside `names` are dropped, so one dependency map can
    serve several environments.
    """
    name_set = set(names)
    adj: Dict[str, Set[str]] = {n: set() for n in name_set}
    indeg: Dict[str, int] = {n: 0 for n in name_set}

    for project, needs in deps.items():
        if project not in name_set or not isinstance(needs, (list, tuple)):
            continue
        for dep in needs:
            if dep not in name_set:
                continue
            if project not in adj[dep]:
                adj[dep].add(project)
                indeg[project] += 1

    return adj, indeg


def topo_order(names: Sequence[str], deps: DependencyMap) -> List[str]:
    """
    Topological order of `names`, stable with respect to input order.

    Among the projects whose dependencies are already placed, the one that
    came first in `names` goes next. Raises CycleError on a cycle.
    """
    position = {n: i for i, n in enumerate(names)}
    adj, indeg = build_graph(names, deps)
    indeg = dict(indeg)

    heap = [position[n] for n in names if indeg[n] == 0]
    heapq.heapify(heap)

    order: List[str] = []
    while heap:
        node = names[heapq.heappop(heap)]
        order.append(node)
        for child in adj[node]:
            indeg[child] -= 1
            if indeg[child] == 0:
                heapq.heappush(heap, position[child])

    if len(order) != len(names):
        stuck = [n for n in names if indeg[n] > 0]
        raise CycleError(stuck)

    return order


def resolve_order(
    projects: Sequence[Project],
    deps: Optional[DependencyMap],
    warn: Optional[Callable[[str], None]] = None,
) -> List[Project]:
    """
    Order projects so every project comes after its in-set dependencies.

    Never raises for graph problems: on a cycle, `warn` is called and the
    input order is returned. Always returns a new list that is a
    permutation of `projects`.
    """
    if not deps:
        return list(projects)

    by_name = {p.name: p for p in projects}
    names = list(by_name)
    if len(names) != len(projects):
        # duplicate names can't be placed in a graph; keep input order
        return list(projects)

    try:
        ordered = topo_order(names, deps)
    except CycleError as e:
        (warn or get_console().print_warning)(
            f"Circular dependency detected, using original order ({', '.join(e.stuck)})"
        )
        return list(projects)

    return [by_name[n] for n in ordered]


def shutdown_order(projects: Sequence[Project], deps: Optional[DependencyMap]) -> List[Project]:
    """Dependents first."""
    return list(reversed(resolve_order(projects, deps)))
