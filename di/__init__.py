"""
Componentry - Dependency Injection Module

Provides an explicit IoC container for managing component construction
and lifecycle:
- Singleton (eager or lazy), Prototype, and ThreadLocal lifetimes
- Explicitly declared singleton dependencies
- Deterministic, dependency-ordered initialization
- Full cycle reporting on misconfiguration
- Initializer / destructor hooks and an optional exit hook

Usage:
    from di import Container

    container = Container()
    container.add_singleton("dataSource", DataSource)
    container.add_singleton("dao", lambda: Dao(container.get_instance("dataSource")))
    container.add_singleton_dependency("dao", "dataSource")

    with container:
        dao = container.get_instance("dao")
"""

from di.container import Container, ContainerState
from di.graph import DependencyGraph, find_cycles, has_cycles
from di.lifecycle import (
    Builder,
    InstanceDefinition,
    InstanceLifecycleManager,
    InstanceLifetime,
    SingletonCell,
)
from di.ordering import plan_init_order
from di.properties import PropertySource


__all__ = [
    # Container
    "Container",
    "ContainerState",
    # Graph
    "DependencyGraph",
    "find_cycles",
    "has_cycles",
    "plan_init_order",
    # Lifecycle
    "Builder",
    "InstanceDefinition",
    "InstanceLifecycleManager",
    "InstanceLifetime",
    "SingletonCell",
    # Properties
    "PropertySource",
]
