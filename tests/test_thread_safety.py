"""Tests for exactly-once construction under concurrent resolution."""

import threading
import time
from concurrent.futures import ThreadPoolExecutor

from discope import LockMode, ServiceCollection, ServiceScope

WORKERS = 16


class SlowService:
    """Sleeps during construction to widen the race window."""

    created = 0
    created_lock = threading.Lock()

    def __init__(self) -> None:
        time.sleep(0.01)
        with SlowService.created_lock:
            SlowService.created += 1


def _resolve_concurrently(scope: ServiceScope, key: object) -> list[object]:
    barrier = threading.Barrier(WORKERS)

    def resolve() -> object:
        barrier.wait()
        return scope.get_service(key)

    with ThreadPoolExecutor(max_workers=WORKERS) as executor:
        futures = [executor.submit(resolve) for _ in range(WORKERS)]
        return [future.result() for future in futures]


class TestExactlyOnceConstruction:
    def test_scoped_service_constructed_once_per_scope(self, services: ServiceCollection) -> None:
        calls: list[int] = []
        calls_lock = threading.Lock()

        def make(scope: ServiceScope) -> object:
            time.sleep(0.01)
            with calls_lock:
                calls.append(1)
            return object()

        provider = services.add_scoped("shared", factory=make).build_service_provider()
        scope = provider.create_scope()

        results = _resolve_concurrently(scope, "shared")

        assert len(calls) == 1
        assert all(result is results[0] for result in results)

    def test_singleton_constructed_once_across_scopes(self, services: ServiceCollection) -> None:
        SlowService.created = 0
        provider = services.add_singleton(SlowService).build_service_provider(
            lock_mode=LockMode.THREAD,
        )
        barrier = threading.Barrier(WORKERS)

        def resolve_in_new_scope() -> object:
            scope = provider.create_scope()
            barrier.wait()
            return scope.get_service(SlowService)

        with ThreadPoolExecutor(max_workers=WORKERS) as executor:
            futures = [executor.submit(resolve_in_new_scope) for _ in range(WORKERS)]
            results = [future.result() for future in futures]

        assert SlowService.created == 1
        assert all(result is results[0] for result in results)

    def test_distinct_keys_do_not_block_each_other(self, services: ServiceCollection) -> None:
        """A slow construction holds only its own key's lock."""
        started = threading.Event()
        release = threading.Event()

        def slow(scope: ServiceScope) -> str:
            started.set()
            release.wait(timeout=5)
            return "slow"

        provider = (
            services.add_scoped("slow", factory=slow)
            .add_scoped("fast", factory=lambda scope: "fast")
            .build_service_provider()
        )
        scope = provider.create_scope()

        with ThreadPoolExecutor(max_workers=1) as executor:
            future = executor.submit(scope.get_service, "slow")
            assert started.wait(timeout=5)
            assert scope.get_service("fast") == "fast"
            release.set()
            assert future.result() == "slow"

    def test_transients_are_not_deduplicated(self, services: ServiceCollection) -> None:
        provider = services.add_transient("item", factory=lambda scope: object()).build_service_provider()
        scope = provider.create_scope()

        results = _resolve_concurrently(scope, "item")

        assert len({id(result) for result in results}) == WORKERS
