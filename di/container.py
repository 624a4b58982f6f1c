"""
Componentry - Dependency Injection Container

Provides an explicit, in-process IoC container. Components are registered
under string ids with a zero-argument builder and a lifetime; singleton
dependencies are declared explicitly as provider -> dependant edges.

Features:
- Singleton (eager or lazy), Prototype, and ThreadLocal lifetimes
- Dependency-ordered eager construction with full cycle reporting
- Initializer and destructor hooks
- String property passthrough for builders
- Optional interpreter-exit hook that closes the container

Lifecycle:
    UNCONFIGURED -> INITIALIZING -> INITIALIZED -> CLOSED

    CLOSED behaves like a fresh UNCONFIGURED container: it may be
    registered into and initialized again.
"""

from __future__ import annotations

import atexit
import threading
import time
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from config import ContainerConfig, get_config
from core.errors import (
    ComponentLookupError,
    ConfigurationError,
    CycleError,
    ErrorContext,
    MissingPropertyError,
    StateError,
    format_cycles,
)
from di.graph import DependencyGraph, find_cycles
from di.lifecycle import Builder, InstanceDefinition, InstanceLifecycleManager
from di.ordering import plan_init_order
from di.properties import PropertySource
from observability.logging import ContainerLogger, LogContext
from observability.tracing import create_span

Action = Callable[[], Any]

_MISSING = object()


class ContainerState(Enum):
    """Container lifecycle states."""

    UNCONFIGURED = "unconfigured"
    INITIALIZING = "initializing"
    INITIALIZED = "initialized"
    CLOSED = "closed"


_CONFIGURABLE_STATES = frozenset({ContainerState.UNCONFIGURED, ContainerState.CLOSED})
_LOOKUP_STATES = frozenset({ContainerState.INITIALIZING, ContainerState.INITIALIZED})


class Container:
    """
    Dependency Injection Container.

    Usage:
        container = Container()

        container.set_property("db.url", "postgresql://localhost/app")
        container.add_singleton("dataSource", lambda: DataSource(container.get_property("db.url")))
        container.add_singleton("dao", lambda: Dao(container.get_instance("dataSource")))
        container.add_singleton_dependency("dao", "dataSource")
        container.add_prototype("request", Request)
        container.add_destructor(lambda: container.get_instance("dataSource").close())

        container.init()
        dao = container.get_instance("dao")
        container.close()
    """

    def __init__(
        self,
        name: Optional[str] = None,
        config: Optional[ContainerConfig] = None,
    ) -> None:
        config = config or get_config().container
        self.name = name or config.name

        self._lock = threading.RLock()
        self._state = ContainerState.UNCONFIGURED
        self._instances = InstanceLifecycleManager()
        self._relations: Dict[str, Dict[str, None]] = {}
        self._initializers: List[Action] = []
        self._destructors: List[Action] = []
        self._properties = PropertySource()
        self._shutdown_hook: Optional[Callable[[], None]] = None
        self._init_order: Tuple[str, ...] = ()
        self._log = ContainerLogger(self.name)

        if config.properties_file:
            self.load_properties_from_file(config.properties_file)
        if config.shutdown_hook:
            self.register_shutdown_hook()

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def state(self) -> ContainerState:
        return self._state

    @property
    def init_order(self) -> Tuple[str, ...]:
        """Order computed by the last successful ``init()``."""
        return self._init_order

    @property
    def shutdown_hook(self) -> Optional[Callable[[], None]]:
        """The registered exit hook, if any."""
        return self._shutdown_hook

    def is_registered(self, instance_id: str) -> bool:
        return instance_id in self._instances

    def _require_configurable(self, operation: str) -> None:
        if self._state not in _CONFIGURABLE_STATES:
            raise StateError(
                f"Container '{self.name}' is already {self._state.value}; "
                f"{operation} is only allowed before init()",
                state=self._state.value,
                operation=operation,
                context=self._error_context(operation),
            )

    def _require_lookup(self, operation: str) -> None:
        if self._state not in _LOOKUP_STATES:
            raise StateError(
                f"Container '{self.name}' is not initialized ({self._state.value}); "
                f"call init() before {operation}",
                state=self._state.value,
                operation=operation,
                context=self._error_context(operation),
            )

    def _error_context(self, operation: str, **kwargs: Any) -> ErrorContext:
        return ErrorContext.from_current_span(
            operation=operation,
            component="container",
            container_name=self.name,
            state=self._state.value,
            **kwargs,
        )

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------

    def add_singleton(self, instance_id: str, builder: Builder, lazy: bool = False) -> "Container":
        """Register a singleton; lazy ones are built on first lookup."""
        return self._register(InstanceDefinition.singleton(instance_id, builder, lazy=lazy))

    def add_prototype(self, instance_id: str, builder: Builder) -> "Container":
        """Register a prototype, built anew on every lookup."""
        return self._register(InstanceDefinition.prototype(instance_id, builder))

    def add_thread_local(self, instance_id: str, builder: Builder) -> "Container":
        """Register a thread-local, built once per calling thread."""
        return self._register(InstanceDefinition.thread_local(instance_id, builder))

    def _register(self, definition: InstanceDefinition) -> "Container":
        self._require_configurable("registration")
        previous = self._instances.register(definition)
        if previous is not None:
            self._log.definition_replaced(definition.instance_id, definition.lifetime.value)
        return self

    def add_singleton_dependency(self, dependant_id: str, provider_id: str) -> "Container":
        """
        Declare that ``dependant_id`` needs ``provider_id`` built first.

        Both ids must be singletons by the time ``init()`` runs; that is
        checked during ``init()``, not here.

        Raises:
            ConfigurationError: If an instance is declared to depend on itself
        """
        self._require_configurable("dependency declaration")
        if dependant_id == provider_id:
            raise ConfigurationError(
                f"Instance '{dependant_id}' can't depend on itself",
                edge=(provider_id, dependant_id),
                context=self._error_context("add_singleton_dependency", instance_id=dependant_id),
            )
        self._relations.setdefault(provider_id, {})[dependant_id] = None
        return self

    def add_initializer(self, initializer: Action) -> "Container":
        """Run ``initializer`` at the end of ``init()``, in registration order."""
        self._require_configurable("initializer registration")
        self._initializers.append(initializer)
        return self

    def add_destructor(self, destructor: Action) -> "Container":
        """Run ``destructor`` during ``close()``, in registration order."""
        self._require_configurable("destructor registration")
        self._destructors.append(destructor)
        return self

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    def set_property(self, name: str, value: str) -> "Container":
        self._require_configurable("property assignment")
        self._properties.set(name, value)
        return self

    def load_properties_from_file(self, path: Union[str, Path]) -> "Container":
        """Load ``key=value`` properties from a file on disk."""
        self._require_configurable("property loading")
        self._properties.load_file(path)
        return self

    def load_properties_from_resource(self, package: str, resource: str) -> "Container":
        """Load ``key=value`` properties from a resource bundled in ``package``."""
        self._require_configurable("property loading")
        self._properties.load_resource(package, resource)
        return self

    def get_property_or_none(self, name: str) -> Optional[str]:
        self._require_lookup("get_property")
        return self._properties.get(name)

    def get_property(self, name: str, default: Any = _MISSING) -> Any:
        """
        Read a property.

        Returns ``default`` when the property is missing and a default was
        given.

        Raises:
            MissingPropertyError: If missing and no default was given
        """
        self._require_lookup("get_property")
        value = self._properties.get(name)
        if value is not None:
            return value
        if default is _MISSING:
            raise MissingPropertyError(
                f"Property '{name}' does not exist",
                property_name=name,
            )
        return default

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def get_instance_or_none(self, instance_id: str) -> Any:
        """Return the instance for ``instance_id``, or None if it is not registered."""
        self._require_lookup("get_instance")
        return self._instances.realize_or_none(instance_id)

    def get_instance(self, instance_id: str) -> Any:
        """
        Return the instance for ``instance_id``.

        Raises:
            StateError: If the container is not initializing or initialized
            ComponentLookupError: If nothing is registered under ``instance_id``
        """
        self._require_lookup("get_instance")
        if instance_id not in self._instances:
            raise ComponentLookupError(
                f"Instance with id '{instance_id}' not found",
                instance_id=instance_id,
            )
        return self._instances.realize(instance_id)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def init(self) -> None:
        """
        Validate dependencies, build eager singletons in dependency order,
        then run initializers.

        A failed ``init()`` is not rolled back; the container stays
        INITIALIZING and should be discarded.

        Raises:
            StateError: If already initializing or initialized
            ConfigurationError: If an edge names something other than a registered singleton
            CycleError: If singleton dependencies form a cycle
        """
        with self._lock:
            if self._state not in _CONFIGURABLE_STATES:
                raise StateError(
                    f"Container '{self.name}' is already {self._state.value}",
                    state=self._state.value,
                    operation="init",
                    context=self._error_context("init"),
                )
            self._state = ContainerState.INITIALIZING
            started = time.perf_counter()

            with LogContext(container=self.name, phase="init"), create_span(
                "container.init",
                attributes={
                    "container.name": self.name,
                    "container.definitions": len(self._instances),
                },
                tracer_name=__name__,
            ) as span:
                self._log.init_started(len(self._instances), self._edge_count())

                self._check_dependency_relations()
                order = self._instance_init_order()
                span.set_attribute("container.init_order", list(order))

                for instance_id in order:
                    definition = self._instances.get(instance_id)
                    if definition is not None and definition.is_eager_singleton:
                        definition.realize()
                        self._log.singleton_realized(instance_id)

                for initializer in list(self._initializers):
                    initializer()

                self._init_order = tuple(order)
                self._state = ContainerState.INITIALIZED
                self._log.init_completed(order, time.perf_counter() - started)

    def _edge_count(self) -> int:
        return sum(len(dependants) for dependants in self._relations.values())

    def _check_dependency_relations(self) -> None:
        for provider_id, dependants in self._relations.items():
            for dependant_id in dependants:
                for instance_id in (provider_id, dependant_id):
                    if not self._instances.is_singleton(instance_id):
                        raise ConfigurationError(
                            f"Dependency [{provider_id} -> {dependant_id}] references "
                            f"'{instance_id}', which is not a registered singleton",
                            edge=(provider_id, dependant_id),
                            context=self._error_context("init", instance_id=instance_id),
                        )

    def _instance_init_order(self) -> List[str]:
        graph = DependencyGraph(self._relations)
        cycles = find_cycles(graph)
        if cycles:
            raise CycleError(
                f"Instances dependency graph has cycles: {format_cycles(cycles)}",
                cycles=cycles,
                context=self._error_context("init"),
            )
        return plan_init_order(graph, self._instances.ids())

    def close(self) -> None:
        """
        Run destructors in registration order and reset the container.

        A destructor that raises is logged and skipped; the remaining
        destructors still run and nothing is re-raised.

        Raises:
            StateError: If the container is not initialized
        """
        with self._lock:
            if self._state is not ContainerState.INITIALIZED:
                raise StateError(
                    f"Container '{self.name}' is not initialized ({self._state.value})",
                    state=self._state.value,
                    operation="close",
                    context=self._error_context("close"),
                )
            self._do_close()

            if self._shutdown_hook is not None:
                atexit.unregister(self._shutdown_hook)
                self._shutdown_hook = None

    def _do_close(self) -> None:
        started = time.perf_counter()
        destructors = list(self._destructors)

        with LogContext(container=self.name, phase="close"), create_span(
            "container.close",
            attributes={
                "container.name": self.name,
                "container.destructors": len(destructors),
            },
            tracer_name=__name__,
        ):
            for index, destructor in enumerate(destructors):
                try:
                    destructor()
                except Exception as e:
                    self._log.destructor_failed(index, e)

            self._clear()
            self._state = ContainerState.CLOSED
            self._log.closed(len(destructors), time.perf_counter() - started)

    def _clear(self) -> None:
        self._instances.clear()
        self._relations.clear()
        self._initializers.clear()
        self._destructors.clear()
        self._properties.clear()
        self._init_order = ()

    def register_shutdown_hook(self) -> "Container":
        """
        Close the container when the interpreter exits.

        The hook is a no-op if the container was already closed; an explicit
        ``close()`` unregisters it.
        """
        self._require_configurable("shutdown hook registration")
        if self._shutdown_hook is None:
            self._shutdown_hook = self._run_shutdown_hook
            atexit.register(self._shutdown_hook)
        return self

    def _run_shutdown_hook(self) -> None:
        with self._lock:
            if self._state is ContainerState.INITIALIZED:
                self._do_close()
            self._shutdown_hook = None

    # -------------------------------------------------------------------------
    # Context manager
    # -------------------------------------------------------------------------

    def __enter__(self) -> "Container":
        self.init()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self._state is ContainerState.INITIALIZED:
            self.close()

    def __repr__(self) -> str:
        return (
            f"Container(name={self.name!r}, state={self._state.value}, "
            f"definitions={len(self._instances)})"
        )
