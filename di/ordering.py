"""
Componentry - Initialization Order Planning

Turns the dependency graph into the sequence in which ``init()`` walks the
registered ids.
"""

from __future__ import annotations

from collections import deque
from typing import Deque, Dict, Iterable, List

from core.errors import CycleError, format_cycles
from di.graph import DependencyGraph, find_cycles
from observability.tracing import span_decorator


@span_decorator("graph.plan_init_order")
def plan_init_order(
    graph: DependencyGraph,
    registered_ids: Iterable[str] = (),
) -> List[str]:
    """
    Compute the initialization order.

    The graph-derived prefix is a breadth-first walk seeded with the roots
    in registration order. A vertex is recorded once every one of its
    providers has been recorded, so providers always come before their
    direct and transitive dependants. Registered ids the walk never reaches
    are appended afterwards in registration order.

    Args:
        graph: Declared singleton dependencies
        registered_ids: Every registered id, in registration order

    Returns:
        Each vertex and registered id exactly once

    Raises:
        CycleError: If the graph is not acyclic
    """
    pending: Dict[str, int] = {
        vertex: len(graph.providers_of(vertex)) for vertex in graph.vertices
    }
    queue: Deque[str] = deque(graph.roots)
    order: List[str] = []

    while queue:
        vertex = queue.popleft()
        order.append(vertex)
        for dependant in graph.outgoing_edges(vertex):
            pending[dependant] -= 1
            if pending[dependant] == 0:
                queue.append(dependant)

    if len(order) != len(graph):
        cycles = find_cycles(graph)
        raise CycleError(
            f"Instances dependency graph has cycles: {format_cycles(cycles)}",
            cycles=cycles,
        )

    seen = set(order)
    for instance_id in registered_ids:
        if instance_id not in seen:
            seen.add(instance_id)
            order.append(instance_id)

    return order
