"""Dependency graph utilities.

Provides topological sorting for determining execution order in a monorepo.
Packages must be processed in dependency order so that when package A
depends on package B, B is installed and built first.
"""

from __future__ import annotations

import heapq
from collections.abc import Hashable, Iterable, Sequence
from typing import TypeVar

from .errors import CycleDetectedError

T = TypeVar("T", bound=Hashable)


def topo_sort(nodes: Sequence[T], edges: Iterable[tuple[T, T]]) -> list[T]:
    """Topologically sort nodes so every predecessor precedes its successors.

    Uses Kahn's algorithm. Whenever several nodes are ready, the one that
    appears first in ``nodes`` is taken, so nodes without an ordering
    constraint between them keep their input order and the result is
    reproducible.

    Args:
        nodes: Every node, in preferred (discovery) order.
        edges: (predecessor, successor) pairs, e.g. (dependency, dependent).

    Returns:
        Every node exactly once, predecessors first.

    Raises:
        ValueError: If an edge references a node not in ``nodes``.
        CycleDetectedError: If the edges contain a cycle.

    Example:
        topo_sort(["app", "lib"], [("lib", "app")]) → ["lib", "app"]
    """
    index = {node: i for i, node in enumerate(nodes)}
    # Count incoming edges (unfinished predecessors) for each node
    in_degree = [0] * len(index)
    successors: list[list[int]] = [[] for _ in index]

    seen: set[tuple[int, int]] = set()
    for before, after in edges:
        if before not in index or after not in index:
            missing = before if before not in index else after
            raise ValueError(f"Edge references unknown node: {missing}")
        pair = (index[before], index[after])
        if pair in seen:
            continue
        seen.add(pair)
        successors[pair[0]].append(pair[1])
        in_degree[pair[1]] += 1

    # Ready nodes, smallest input position first
    ready = [i for i, degree in enumerate(in_degree) if degree == 0]
    heapq.heapify(ready)
    order: list[int] = []

    while ready:
        i = heapq.heappop(ready)
        order.append(i)
        for j in successors[i]:
            in_degree[j] -= 1
            if in_degree[j] == 0:
                heapq.heappush(ready, j)

    ordered = list(index)
    if len(order) != len(ordered):
        cycle = _find_cycle(in_degree, successors)
        members = [ordered[i] for i in cycle]
        raise CycleDetectedError(members[0], members)

    return [ordered[i] for i in order]


def _find_cycle(in_degree: list[int], successors: list[list[int]]) -> list[int]:
    """Return one cycle among the nodes Kahn's algorithm could not place.

    Every unplaced node has an unplaced predecessor, so walking backwards
    through unplaced predecessors must eventually revisit a node.
    """
    predecessors: dict[int, int] = {}
    for i, targets in enumerate(successors):
        if in_degree[i] == 0:
            continue
        for j in targets:
            if in_degree[j] > 0:
                predecessors.setdefault(j, i)

    start = next(i for i, degree in enumerate(in_degree) if degree > 0)
    path: list[int] = []
    visited: dict[int, int] = {}
    node = start
    while node not in visited:
        visited[node] = len(path)
        path.append(node)
        node = predecessors[node]

    # path runs dependent → dependency; flip so each member precedes the next
    cycle = path[visited[node] :]
    cycle.reverse()
    return cycle
