"""
Componentry - Dependency Graph and Cycle Detection

The graph stores provider -> dependant edges exactly as they were declared
through ``Container.add_singleton_dependency``. Nothing is inferred from what
a builder happens to look up.

Cycle detection enumerates every elementary cycle (Tarjan's backtracking
algorithm) so that a failed ``init()`` can report all offending paths rather
than only the first one it trips over.
"""

from __future__ import annotations

from collections import defaultdict
from typing import (
    Dict,
    Iterable,
    Iterator,
    List,
    Mapping,
    Set,
    Tuple,
)

from observability.tracing import span_decorator


class DependencyGraph:
    """
    Directed graph of declared singleton dependencies.

    Edges point from provider to dependant. Vertices are indexed in the
    order they first appear in the declared relations (provider before its
    dependants), which makes every traversal over the graph deterministic.

    Usage:
        graph = DependencyGraph({"dataSource": ["dao"], "dao": ["service"]})
        graph.roots                      # ("dataSource",)
        graph.outgoing_edges("dao")      # ("service",)
    """

    def __init__(self, relations: Mapping[str, Iterable[str]]):
        self._adjacency: Dict[str, Tuple[str, ...]] = {}
        self._incoming: Dict[str, List[str]] = defaultdict(list)
        self._index: Dict[str, int] = {}

        for provider, dependants in relations.items():
            targets = tuple(dict.fromkeys(dependants))
            self._adjacency[provider] = targets
            self._index.setdefault(provider, len(self._index))
            for dependant in targets:
                self._index.setdefault(dependant, len(self._index))
                self._incoming[dependant].append(provider)

        self._roots = tuple(
            provider for provider in self._adjacency if provider not in self._incoming
        )

    @classmethod
    def from_edges(cls, edges: Iterable[Tuple[str, str]]) -> "DependencyGraph":
        """Build a graph from ``(provider, dependant)`` pairs."""
        relations: Dict[str, Dict[str, None]] = {}
        for provider, dependant in edges:
            relations.setdefault(provider, {})[dependant] = None
        return cls(relations)

    @property
    def vertices(self) -> Tuple[str, ...]:
        """All vertices in registration order."""
        return tuple(self._index)

    @property
    def roots(self) -> Tuple[str, ...]:
        """Providers that are never a dependant, in registration order."""
        return self._roots

    def outgoing_edges(self, vertex: str) -> Tuple[str, ...]:
        """Dependants declared for ``vertex``."""
        return self._adjacency.get(vertex, ())

    def providers_of(self, vertex: str) -> Tuple[str, ...]:
        """Providers that declared ``vertex`` as a dependant."""
        return tuple(self._incoming.get(vertex, ()))

    def index_of(self, vertex: str) -> int:
        """Stable integer index of ``vertex``."""
        return self._index[vertex]

    def edges(self) -> Iterator[Tuple[str, str]]:
        """Iterate ``(provider, dependant)`` pairs in declaration order."""
        for provider, dependants in self._adjacency.items():
            for dependant in dependants:
                yield provider, dependant

    def __contains__(self, vertex: object) -> bool:
        return vertex in self._index

    def __len__(self) -> int:
        return len(self._index)

    def __repr__(self) -> str:
        return (
            f"DependencyGraph(vertices={len(self._index)}, "
            f"edges={sum(len(d) for d in self._adjacency.values())})"
        )


@span_decorator("graph.find_cycles")
def find_cycles(graph: DependencyGraph) -> List[List[str]]:
    """
    Enumerate every elementary cycle in ``graph``.

    Each root is explored in index order. Edges leading to a lower-indexed
    vertex are pruned for good, since every cycle through that vertex was
    already reported when it was the root. Vertices that took part in a
    cycle are unmarked on the way back so other paths may reuse them.

    Returns:
        Cycles as vertex lists, each starting at the root that found it.
    """
    cycles: List[List[str]] = []
    marked: Set[str] = set()
    marked_stack: List[str] = []
    point_stack: List[str] = []
    removed: Dict[str, Set[str]] = defaultdict(set)

    def backtrack(start: str, vertex: str) -> bool:
        found_cycle = False
        start_index = graph.index_of(start)
        point_stack.append(vertex)
        marked.add(vertex)
        marked_stack.append(vertex)

        for target in graph.outgoing_edges(vertex):
            if target in removed[vertex]:
                continue
            target_index = graph.index_of(target)
            if target_index < start_index:
                removed[vertex].add(target)
            elif target_index == start_index:
                found_cycle = True
                cycles.append(point_stack[point_stack.index(start):])
            elif target not in marked:
                found_cycle = backtrack(start, target) or found_cycle

        if found_cycle:
            while marked_stack[-1] != vertex:
                marked.discard(marked_stack.pop())
            marked.discard(marked_stack.pop())

        point_stack.pop()
        return found_cycle

    for start in graph.vertices:
        backtrack(start, start)
        while marked_stack:
            marked.discard(marked_stack.pop())

    return cycles


def has_cycles(graph: DependencyGraph) -> bool:
    """True if ``graph`` contains at least one elementary cycle."""
    return len(find_cycles(graph)) > 0
