from __future__ import annotations

from collections.abc import Mapping

from discope._internal.bound_factories import BoundFactory, ConstructorFactory
from discope.descriptors import Lifetime, ServiceKey
from discope.exceptions import DIScopeDependencyCycleError, DIScopeLifetimeViolationError


class DependencyGraphValidator:
    """Validate the bound-factory graph before a provider is exposed.

    Every bound factory owns a slot index; constructor plans become edges of
    an adjacency list over those indices. Factory and instance plans are
    opaque leaves. Validation stops at the first violation found, walking
    roots in registration order and edges in parameter order.
    """

    def __init__(self, factories: Mapping[ServiceKey, BoundFactory]) -> None:
        ordered = sorted(factories.values(), key=lambda factory: factory.index)
        self._factories: list[BoundFactory] = ordered
        self._slot_by_key = {
            factory.descriptor.service_key: slot for slot, factory in enumerate(ordered)
        }
        self._edges: list[tuple[int, ...]] = [self._edges_of(factory) for factory in ordered]

    def validate(self) -> None:
        """Run the cycle check, then the lifetime-compatibility check.

        Raises:
            DIScopeDependencyCycleError: If a service depends on itself.
            DIScopeLifetimeViolationError: If a singleton reaches a scoped service.

        """
        self.check_cycles()
        self.check_lifetimes()

    def check_cycles(self) -> None:
        """Depth-first walk from every constructor plan looking for back edges."""
        acyclic: set[int] = set()
        for root in range(len(self._factories)):
            if isinstance(self._factories[root], ConstructorFactory):
                self._walk_for_cycle(root, [], set(), acyclic)

    def check_lifetimes(self) -> None:
        """Ensure no singleton constructor plan reaches a scoped service."""
        for root, factory in enumerate(self._factories):
            if factory.descriptor.lifetime is not Lifetime.SINGLETON:
                continue
            if not isinstance(factory, ConstructorFactory):
                continue

            visited = {root}
            pending = list(reversed(self._edges[root]))
            while pending:
                slot = pending.pop()
                if slot in visited:
                    continue
                visited.add(slot)

                dependency = self._factories[slot].descriptor
                if dependency.lifetime is Lifetime.SCOPED:
                    raise DIScopeLifetimeViolationError(
                        factory.descriptor.service_key,
                        dependency.service_key,
                    )
                pending.extend(reversed(self._edges[slot]))

    def _walk_for_cycle(
        self,
        slot: int,
        path: list[int],
        on_stack: set[int],
        acyclic: set[int],
    ) -> None:
        if slot in on_stack:
            cycle_start = path.index(slot)
            raise DIScopeDependencyCycleError(
                self._key(slot),
                [self._key(step) for step in path[cycle_start:]],
            )
        if slot in acyclic:
            return

        path.append(slot)
        on_stack.add(slot)
        for dependency in self._edges[slot]:
            self._walk_for_cycle(dependency, path, on_stack, acyclic)
        on_stack.discard(slot)
        path.pop()
        acyclic.add(slot)

    def _edges_of(self, factory: BoundFactory) -> tuple[int, ...]:
        # Reserved keys have no slot and are leaves.
        return tuple(
            self._slot_by_key[key] for key in factory.dependencies if key in self._slot_by_key
        )

    def _key(self, slot: int) -> ServiceKey:
        return self._factories[slot].descriptor.service_key
