"""
Tests for concurrent lookups against an initialized container.
"""
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from core.errors import CycleError, StateError
from di import ContainerState


THREADS = 100


def run_concurrently(func, count=THREADS):
    """Start ``count`` threads together and collect what ``func`` returns."""
    barrier = threading.Barrier(count)

    def task():
        barrier.wait()
        return func()

    with ThreadPoolExecutor(max_workers=count) as pool:
        futures = [pool.submit(task) for _ in range(count)]
        return [f.result(timeout=30) for f in futures]


@pytest.mark.concurrency
class TestConcurrentLookup:
    """Lifetimes hold under concurrent access."""

    def test_lazy_singleton_built_once_under_race(self, container):
        calls = []
        lock = threading.Lock()

        def build():
            with lock:
                calls.append(threading.get_ident())
            return object()

        container.add_singleton("lazy", build, lazy=True)
        container.init()

        results = run_concurrently(lambda: container.get_instance("lazy"))

        assert len(calls) == 1
        assert all(r is results[0] for r in results)

    def test_eager_singleton_shared(self, container):
        container.add_singleton("svc", object)
        container.init()

        results = run_concurrently(lambda: container.get_instance("svc"))

        assert len({id(r) for r in results}) == 1

    def test_prototype_distinct_across_threads(self, container):
        container.add_prototype("req", object)
        container.init()

        results = run_concurrently(lambda: container.get_instance("req"))

        assert len({id(r) for r in results}) == THREADS

    def test_thread_local_one_per_thread(self, container):
        """Every thread gets its own instance and sees it again on a second lookup."""
        container.add_thread_local("ctx", object)
        container.init()

        def lookup_twice():
            first = container.get_instance("ctx")
            second = container.get_instance("ctx")
            return first, second

        barrier = threading.Barrier(THREADS)
        results = []
        lock = threading.Lock()

        def worker():
            barrier.wait()
            pair = lookup_twice()
            with lock:
                results.append(pair)

        threads = [threading.Thread(target=worker) for _ in range(THREADS)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)

        assert len(results) == THREADS
        assert all(first is second for first, second in results)
        assert len({id(first) for first, _ in results}) == THREADS

    def test_singleton_reentry_raises_cycle_error(self, container):
        """A lazy singleton resolving itself from its own builder is a cycle."""
        container.add_singleton("self_ref", lambda: container.get_instance("self_ref"), lazy=True)
        container.init()

        with pytest.raises(CycleError):
            container.get_instance("self_ref")

        assert container.state is ContainerState.INITIALIZED

    def test_concurrent_init_only_one_wins(self, container):
        container.add_singleton("svc", object)
        outcomes = []
        lock = threading.Lock()

        def attempt():
            try:
                container.init()
                outcome = "ok"
            except StateError:
                outcome = "rejected"
            with lock:
                outcomes.append(outcome)

        run_concurrently(attempt, count=8)

        assert outcomes.count("ok") == 1
        assert outcomes.count("rejected") == 7
        assert container.state is ContainerState.INITIALIZED
