"""
Componentry - Instance Lifecycle Management

Holds one definition per registered id and produces instances according to
the definition's lifetime:

- SINGLETON: built once (eagerly during ``init()`` or lazily on first
  lookup) and cached for the container's lifetime
- PROTOTYPE: built on every lookup
- THREAD_LOCAL: built once per calling thread
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional

from core.errors import CycleError

Builder = Callable[[], Any]

_UNSET = object()


class InstanceLifetime(Enum):
    """Instantiation policy of a registered id."""

    SINGLETON = "singleton"        # One instance per container lifetime
    PROTOTYPE = "prototype"        # New instance on every lookup
    THREAD_LOCAL = "thread_local"  # One instance per calling thread


class SingletonCell:
    """
    Memoize-once holder for a singleton instance.

    Concurrent first callers block until the winning caller's builder
    returns; nobody observes a partially constructed instance. If the
    builder raises, the cell stays empty and the next caller retries.
    """

    def __init__(self, instance_id: str):
        self.instance_id = instance_id
        self._lock = threading.RLock()
        self._value: Any = _UNSET
        self._building_thread: Optional[int] = None

    @property
    def is_set(self) -> bool:
        return self._value is not _UNSET

    def get_or_create(self, builder: Builder) -> Any:
        value = self._value
        if value is not _UNSET:
            return value

        with self._lock:
            if self._value is _UNSET:
                # RLock lets the building thread back in; other threads wait.
                if self._building_thread == threading.get_ident():
                    raise CycleError(
                        f"Singleton '{self.instance_id}' was looked up while it was being built",
                        cycles=[[self.instance_id]],
                    )
                self._building_thread = threading.get_ident()
                try:
                    self._value = builder()
                finally:
                    self._building_thread = None
            return self._value

    def clear(self) -> None:
        with self._lock:
            self._value = _UNSET


@dataclass
class InstanceDefinition:
    """
    Describes how the instance registered under an id is produced.

    Only the state the lifetime needs is allocated: a ``SingletonCell`` for
    singletons, a ``threading.local`` for thread-locals, nothing for
    prototypes.
    """

    instance_id: str
    builder: Builder
    lifetime: InstanceLifetime = InstanceLifetime.SINGLETON
    lazy: bool = False
    _singleton: Optional[SingletonCell] = field(default=None, init=False, repr=False)
    _thread_local: Optional[threading.local] = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        if not callable(self.builder):
            raise TypeError(f"Builder for '{self.instance_id}' is not callable")
        if self.lifetime == InstanceLifetime.SINGLETON:
            self._singleton = SingletonCell(self.instance_id)
        elif self.lifetime == InstanceLifetime.THREAD_LOCAL:
            self._thread_local = threading.local()
        if self.lazy and self.lifetime != InstanceLifetime.SINGLETON:
            raise ValueError(f"Only singletons can be lazy ('{self.instance_id}')")

    @classmethod
    def singleton(cls, instance_id: str, builder: Builder, lazy: bool = False) -> "InstanceDefinition":
        return cls(instance_id, builder, InstanceLifetime.SINGLETON, lazy)

    @classmethod
    def prototype(cls, instance_id: str, builder: Builder) -> "InstanceDefinition":
        return cls(instance_id, builder, InstanceLifetime.PROTOTYPE)

    @classmethod
    def thread_local(cls, instance_id: str, builder: Builder) -> "InstanceDefinition":
        return cls(instance_id, builder, InstanceLifetime.THREAD_LOCAL)

    @property
    def is_singleton(self) -> bool:
        return self.lifetime == InstanceLifetime.SINGLETON

    @property
    def is_eager_singleton(self) -> bool:
        return self.is_singleton and not self.lazy

    def is_realized(self) -> bool:
        """Whether a cached instance exists (for thread-locals: on this thread)."""
        if self.lifetime == InstanceLifetime.SINGLETON:
            return self._singleton.is_set
        elif self.lifetime == InstanceLifetime.THREAD_LOCAL:
            return hasattr(self._thread_local, "value")
        return False

    def realize(self) -> Any:
        """Return the current instance according to the lifetime."""
        if self.lifetime == InstanceLifetime.SINGLETON:
            return self._singleton.get_or_create(self.builder)

        elif self.lifetime == InstanceLifetime.THREAD_LOCAL:
            local = self._thread_local
            value = getattr(local, "value", _UNSET)
            if value is _UNSET:
                value = self.builder()
                local.value = value
            return value

        else:  # PROTOTYPE
            return self.builder()

    def reset(self) -> None:
        """Drop cached state."""
        if self.lifetime == InstanceLifetime.SINGLETON:
            self._singleton.clear()
        elif self.lifetime == InstanceLifetime.THREAD_LOCAL:
            self._thread_local = threading.local()


class InstanceLifecycleManager:
    """
    Registry of definitions keyed by id, in registration order.

    Usage:
        manager = InstanceLifecycleManager()
        manager.register(InstanceDefinition.prototype("request", Request))
        manager.realize("request")
    """

    def __init__(self) -> None:
        self._definitions: Dict[str, InstanceDefinition] = {}

    def register(self, definition: InstanceDefinition) -> Optional[InstanceDefinition]:
        """Add or replace a definition, returning the replaced one."""
        previous = self._definitions.get(definition.instance_id)
        self._definitions[definition.instance_id] = definition
        return previous

    def get(self, instance_id: str) -> Optional[InstanceDefinition]:
        return self._definitions.get(instance_id)

    def is_singleton(self, instance_id: str) -> bool:
        definition = self._definitions.get(instance_id)
        return definition is not None and definition.is_singleton

    def ids(self) -> List[str]:
        return list(self._definitions)

    def singleton_ids(self) -> List[str]:
        return [d.instance_id for d in self._definitions.values() if d.is_singleton]

    def realize(self, instance_id: str) -> Any:
        """Produce the instance for ``instance_id``; ``KeyError`` if unknown."""
        return self._definitions[instance_id].realize()

    def realize_or_none(self, instance_id: str) -> Any:
        definition = self._definitions.get(instance_id)
        if definition is None:
            return None
        return definition.realize()

    def clear(self) -> None:
        for definition in self._definitions.values():
            definition.reset()
        self._definitions.clear()

    def __contains__(self, instance_id: object) -> bool:
        return instance_id in self._definitions

    def __iter__(self) -> Iterator[InstanceDefinition]:
        return iter(list(self._definitions.values()))

    def __len__(self) -> int:
        return len(self._definitions)
