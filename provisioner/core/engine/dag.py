"""
DAG utilities (pure).

Cycle detection and a stable topological sort over capability
dependency edges. No I/O, no subprocess.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from provisioner.core.config.loader import ConfigError


class CyclicDependencyError(ConfigError):
    """The capability dependency graph contains a cycle."""

    def __init__(self, cycle: list[str]):
        self.cycle = cycle
        super().__init__(f"Dependency cycle: {' -> '.join(cycle)}")


def find_cycle(graph: Mapping[str, Iterable[str]]) -> list[str] | None:
    """Return one cycle as a closed path (``[a, b, a]``), or None.

    Args:
        graph: node -> nodes it depends on. Edges to unknown nodes
            are ignored.
    """
    WHITE, GREY, BLACK = 0, 1, 2
    color = {node: WHITE for node in graph}

    for root in graph:
        if color[root] != WHITE:
            continue
        path: list[str] = [root]
        stack = [iter(graph[root])]
        color[root] = GREY
        while stack:
            for dep in stack[-1]:
                if dep not in color:
                    continue
                if color[dep] == GREY:
                    return path[path.index(dep):] + [dep]
                if color[dep] == WHITE:
                    color[dep] = GREY
                    path.append(dep)
                    stack.append(iter(graph[dep]))
                    break
            else:
                color[path.pop()] = BLACK
                stack.pop()
    return None


def _selected_deps(node: str, graph: Mapping[str, Iterable[str]], members: set[str]) -> list[str]:
    """Dependencies of ``node`` inside ``members``, looking through unselected nodes."""
    found: list[str] = []
    seen: set[str] = set()
    queue = list(graph.get(node, ()))
    while queue:
        dep = queue.pop(0)
        if dep in seen:
            continue
        seen.add(dep)
        if dep in members:
            found.append(dep)
        else:
            queue.extend(graph.get(dep, ()))
    return found


def topological_order(
    nodes: Iterable[str],
    graph: Mapping[str, Iterable[str]],
    rank: Mapping[str, int],
) -> list[str]:
    """Order ``nodes`` so every dependency precedes its dependents.

    Kahn's algorithm restricted to ``nodes``; among ready nodes the
    lowest ``rank`` (declaration index) goes first, so the result is
    deterministic. A dependency reached only through a node outside
    ``nodes`` (e.g. an already-satisfied one) still orders first.

    Raises:
        CyclicDependencyError: If ``nodes`` contain a cycle.
    """
    selected = list(dict.fromkeys(nodes))
    members = set(selected)

    in_degree = {n: 0 for n in selected}
    dependents: dict[str, list[str]] = {n: [] for n in selected}
    for n in selected:
        for dep in _selected_deps(n, graph, members):
            in_degree[n] += 1
            dependents[dep].append(n)

    ready = sorted((n for n in selected if in_degree[n] == 0), key=rank.__getitem__)
    order: list[str] = []
    while ready:
        node = ready.pop(0)
        order.append(node)
        for successor in dependents[node]:
            in_degree[successor] -= 1
            if in_degree[successor] == 0:
                ready.append(successor)
        ready.sort(key=rank.__getitem__)

    if len(order) < len(selected):
        remaining = {n: _selected_deps(n, graph, members) for n in selected if n not in order}
        cycle = find_cycle(remaining) or sorted(remaining)
        raise CyclicDependencyError(cycle)

    return order
