from __future__ import annotations

import heapq
from typing import Iterable, Mapping, Sequence


def cycle_paths(graph: Mapping[str, Sequence[str]]) -> list[list[str]]:
    visiting: set[str] = set()
    visited: set[str] = set()
    stack: list[str] = []
    cycles: list[list[str]] = []

    def _visit(node: str) -> None:
        if node in visited:
            return
        if node in visiting:
            if node in stack:
                start = stack.index(node)
                cycles.append(stack[start:] + [node])
            return
        visiting.add(node)
        stack.append(node)
        for nxt in graph.get(node, ()):
            _visit(nxt)
        stack.pop()
        visiting.remove(node)
        visited.add(node)

    for node in graph:
        _visit(node)
    return cycles


def topological_order(nodes: Sequence[str], graph: Mapping[str, Sequence[str]]) -> list[str]:
    """Dependencies first; ties broken by position in `nodes`.

    `graph` maps a node to the nodes it depends on. Raises ValueError on a cycle.
    """
    position = {node: index for index, node in enumerate(nodes)}
    pending = {node: len(set(graph.get(node, ()))) for node in nodes}
    dependents: dict[str, list[str]] = {node: [] for node in nodes}
    for node in nodes:
        for dep in set(graph.get(node, ())):
            dependents[dep].append(node)
    ready = [(position[node], node) for node in nodes if pending[node] == 0]
    heapq.heapify(ready)
    order: list[str] = []
    while ready:
        _, node = heapq.heappop(ready)
        order.append(node)
        for dependent in dependents[node]:
            pending[dependent] -= 1
            if pending[dependent] == 0:
                heapq.heappush(ready, (position[dependent], dependent))
    if len(order) != len(nodes):
        raise ValueError("dependency graph has a cycle")
    return order


def closure(roots: Iterable[str], graph: Mapping[str, Sequence[str]]) -> set[str]:
    seen: set[str] = set()
    todo = list(roots)
    while todo:
        node = todo.pop()
        if node in seen:
            continue
        seen.add(node)
        todo.extend(graph.get(node, ()))
    return seen


__all__ = ["closure", "cycle_paths", "topological_order"]
