"""
Dependency Graph Module

Architectural Intent:
- Owns the full set of ServiceNodes for one run
- Validated once at construction; read-only afterwards, so it is safely
  shared across concurrently running service tasks
- Direction-parameterised queries let the same graph drive bring-up (UP,
  dependencies first) and tear-down (DOWN, dependents first)

Design Decisions:
- Edges are stored both ways (depends_on and dependents) so every query is a
  dictionary lookup
- Cycle detection reports the shortest cycle, found by a breadth-first search
  from each node in name order, so the reported cycle is deterministic
- ready_sets() is Kahn's algorithm over the direct or transposed relation
"""

from __future__ import annotations
from collections import deque
from typing import Iterable, Iterator, Optional

from convoy.domain.entities.service import Direction, ServiceNode
from convoy.domain.errors import CycleError, DuplicateServiceError, UnknownDependencyError


class DependencyGraph:
    __slots__ = ("_nodes", "_depends_on", "_dependents")

    def __init__(
        self,
        nodes: dict[str, ServiceNode],
        depends_on: dict[str, frozenset[str]],
        dependents: dict[str, frozenset[str]],
    ) -> None:
        self._nodes = nodes
        self._depends_on = depends_on
        self._dependents = dependents

    @classmethod
    def build(cls, nodes: Iterable[ServiceNode]) -> "DependencyGraph":
        nodes = list(nodes)
        names = [n.name for n in nodes]
        if len(set(names)) != len(names):
            raise DuplicateServiceError({n for n in names if names.count(n) > 1})

        by_name = {n.name: n for n in nodes}
        depends_on: dict[str, frozenset[str]] = {}
        dependents: dict[str, set[str]] = {name: set() for name in by_name}

        for node in nodes:
            for dep in node.depends_on:
                if dep not in by_name:
                    raise UnknownDependencyError(node.name, dep)
                dependents[dep].add(node.name)
            depends_on[node.name] = frozenset(node.depends_on)

        cycle = _shortest_cycle(depends_on)
        if cycle:
            raise CycleError(cycle)

        return cls(
            by_name,
            depends_on,
            {name: frozenset(deps) for name, deps in dependents.items()},
        )

    def __contains__(self, name: object) -> bool:
        return name in self._nodes

    def __iter__(self) -> Iterator[ServiceNode]:
        return iter(self._nodes[name] for name in self.names)

    def __len__(self) -> int:
        return len(self._nodes)

    @property
    def names(self) -> list[str]:
        return sorted(self._nodes)

    def node(self, name: str) -> ServiceNode:
        return self._nodes[name]

    def predecessors(self, name: str, direction: Direction) -> frozenset[str]:
        """Nodes that must finish before `name` may start in this direction."""
        if direction is Direction.UP:
            return self._depends_on[name]
        return self._dependents[name]

    def successors(self, name: str, direction: Direction) -> frozenset[str]:
        """Nodes that wait on `name` in this direction."""
        if direction is Direction.UP:
            return self._dependents[name]
        return self._depends_on[name]

    def descendants(self, name: str, direction: Direction) -> set[str]:
        """Every node reachable from `name` along active-direction edges."""
        seen: set[str] = set()
        queue = deque(self.successors(name, direction))
        while queue:
            current = queue.popleft()
            if current in seen:
                continue
            seen.add(current)
            queue.extend(self.successors(current, direction) - seen)
        return seen

    def ready_sets(self, direction: Direction) -> Iterator[list[str]]:
        """
        Lazily yields groups of nodes that become ready together, assuming
        every earlier group succeeds. Each group is sorted by name.
        """
        remaining = {
            name: len(self.predecessors(name, direction)) for name in self._nodes
        }
        level = sorted(name for name, count in remaining.items() if count == 0)
        while level:
            yield level
            unlocked: list[str] = []
            for name in level:
                for nxt in self.successors(name, direction):
                    remaining[nxt] -= 1
                    if remaining[nxt] == 0:
                        unlocked.append(nxt)
            level = sorted(unlocked)

    def subgraph(self, names: Iterable[str]) -> "DependencyGraph":
        """Graph restricted to `names`; edges to excluded nodes are dropped."""
        keep = set(names)
        nodes = []
        for name in sorted(keep):
            node = self._nodes[name]
            deps = tuple(d for d in node.depends_on if d in keep)
            nodes.append(ServiceNode(node.name, node.kind, deps, node.settings))
        return DependencyGraph.build(nodes)

    def __repr__(self) -> str:
        return f"DependencyGraph(nodes={self.names})"


def _shortest_cycle(depends_on: dict[str, frozenset[str]]) -> Optional[list[str]]:
    best: Optional[list[str]] = None
    for start in sorted(depends_on):
        parents: dict[str, str] = {}
        queue = deque()
        for dep in sorted(depends_on[start]):
            if dep not in parents:
                parents[dep] = start
                queue.append(dep)
        found = False
        while queue and not found:
            current = queue.popleft()
            if current == start:
                found = True
                break
            for dep in sorted(depends_on[current]):
                if dep not in parents:
                    parents[dep] = current
                    queue.append(dep)
        if not found:
            continue

        path = [start]
        cursor = parents[start]
        while cursor != start:
            path.append(cursor)
            cursor = parents[cursor]
        cycle = [start] + list(reversed(path[1:]))
        if best is None or len(cycle) < len(best):
            best = cycle
    return best
