"""
Tests for di/lifecycle.py - Instance Lifecycle Management.

Covers:
- SingletonCell memoization and re-entry detection
- InstanceDefinition lifetimes
- InstanceLifecycleManager registry behaviour
"""
import threading

import pytest

from core.errors import CycleError
from di.lifecycle import (
    InstanceDefinition,
    InstanceLifecycleManager,
    InstanceLifetime,
    SingletonCell,
)


# =============================================================================
# SingletonCell Tests
# =============================================================================

class TestSingletonCell:
    """Tests for SingletonCell."""

    def test_builds_once(self):
        """The builder runs only on the first call."""
        calls = []
        cell = SingletonCell("svc")

        first = cell.get_or_create(lambda: calls.append(1) or object())
        second = cell.get_or_create(lambda: calls.append(2) or object())

        assert first is second
        assert calls == [1]
        assert cell.is_set

    def test_failed_builder_leaves_cell_empty(self):
        """A raising builder can be retried."""
        cell = SingletonCell("svc")

        def fail():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            cell.get_or_create(fail)

        assert not cell.is_set
        assert cell.get_or_create(lambda: "ok") == "ok"

    def test_reentry_raises_cycle_error(self):
        """Looking the singleton up from its own builder is a cycle."""
        cell = SingletonCell("svc")

        with pytest.raises(CycleError) as exc_info:
            cell.get_or_create(lambda: cell.get_or_create(lambda: "inner"))

        assert exc_info.value.cycles == [["svc"]]
        assert not cell.is_set

    def test_none_is_a_valid_instance(self):
        """A builder returning None is not rebuilt."""
        calls = []
        cell = SingletonCell("nothing")

        cell.get_or_create(lambda: calls.append(1))
        cell.get_or_create(lambda: calls.append(2))

        assert calls == [1]

    def test_clear(self):
        """clear() drops the cached instance."""
        cell = SingletonCell("svc")
        cell.get_or_create(object)

        cell.clear()

        assert not cell.is_set


# =============================================================================
# InstanceDefinition Tests
# =============================================================================

class TestInstanceDefinition:
    """Tests for InstanceDefinition."""

    def test_singleton_is_cached(self):
        definition = InstanceDefinition.singleton("svc", object)

        assert definition.realize() is definition.realize()
        assert definition.is_realized()

    def test_prototype_is_fresh(self):
        definition = InstanceDefinition.prototype("req", object)

        assert definition.realize() is not definition.realize()
        assert not definition.is_realized()

    def test_thread_local_per_thread(self):
        """Each thread gets its own instance; repeated calls reuse it."""
        definition = InstanceDefinition.thread_local("ctx", object)
        main = definition.realize()
        results = {}

        def worker():
            results["first"] = definition.realize()
            results["second"] = definition.realize()

        thread = threading.Thread(target=worker)
        thread.start()
        thread.join()

        assert definition.realize() is main
        assert results["first"] is results["second"]
        assert results["first"] is not main

    def test_eager_and_lazy_flags(self):
        eager = InstanceDefinition.singleton("a", object)
        lazy = InstanceDefinition.singleton("b", object, lazy=True)
        proto = InstanceDefinition.prototype("c", object)

        assert eager.is_eager_singleton
        assert not lazy.is_eager_singleton
        assert lazy.is_singleton
        assert not proto.is_singleton
        assert proto.lifetime is InstanceLifetime.PROTOTYPE

    def test_non_callable_builder_rejected(self):
        with pytest.raises(TypeError):
            InstanceDefinition.singleton("svc", "not callable")

    def test_lazy_prototype_rejected(self):
        with pytest.raises(ValueError):
            InstanceDefinition("req", object, InstanceLifetime.PROTOTYPE, lazy=True)

    def test_reset_drops_cached_state(self):
        singleton = InstanceDefinition.singleton("svc", object)
        local = InstanceDefinition.thread_local("ctx", object)
        singleton.realize()
        local.realize()

        singleton.reset()
        local.reset()

        assert not singleton.is_realized()
        assert not local.is_realized()


# =============================================================================
# InstanceLifecycleManager Tests
# =============================================================================

class TestInstanceLifecycleManager:
    """Tests for InstanceLifecycleManager."""

    @pytest.fixture
    def manager(self):
        manager = InstanceLifecycleManager()
        manager.register(InstanceDefinition.singleton("db", object))
        manager.register(InstanceDefinition.prototype("req", object))
        manager.register(InstanceDefinition.thread_local("ctx", object))
        return manager

    def test_registration_order(self, manager):
        assert manager.ids() == ["db", "req", "ctx"]
        assert manager.singleton_ids() == ["db"]
        assert len(manager) == 3

    def test_replace_keeps_position(self, manager):
        """Re-registering an id replaces it in place."""
        previous = manager.register(InstanceDefinition.prototype("db", object))

        assert previous is not None
        assert previous.lifetime is InstanceLifetime.SINGLETON
        assert manager.ids() == ["db", "req", "ctx"]
        assert not manager.is_singleton("db")

    def test_register_new_returns_none(self, manager):
        assert manager.register(InstanceDefinition.prototype("new", object)) is None

    def test_realize_unknown_raises_key_error(self, manager):
        with pytest.raises(KeyError):
            manager.realize("missing")

    def test_realize_or_none(self, manager):
        assert manager.realize_or_none("missing") is None
        assert manager.realize_or_none("db") is manager.realize("db")

    def test_is_singleton_unknown(self, manager):
        assert manager.is_singleton("missing") is False

    def test_clear(self, manager):
        db = manager.get("db")
        db.realize()

        manager.clear()

        assert len(manager) == 0
        assert "db" not in manager
        assert not db.is_realized()
