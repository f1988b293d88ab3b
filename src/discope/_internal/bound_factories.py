"""Bound construction plans.

A bound factory is produced once per descriptor by the binder. It pairs the
descriptor with everything needed to build an instance, so resolution does no
signature inspection at runtime.
"""

from __future__ import annotations

import inspect
from collections.abc import Callable, Generator
from contextlib import suppress
from typing import TYPE_CHECKING, Any, NamedTuple, Protocol

from discope.exceptions import DIScopeInvalidDescriptorError

if TYPE_CHECKING:
    from discope._internal.constructors import ConstructorCandidate
    from discope.descriptors import ServiceDescriptor, ServiceKey
    from discope.scope import ServiceScope


class Activation(NamedTuple):
    """A freshly built instance plus the cleanup its factory asked for, if any."""

    instance: Any
    cleanup: Callable[[], None] | None = None


class BoundFactory(Protocol):
    """Protocol for bound construction plans."""

    descriptor: ServiceDescriptor
    index: int

    @property
    def dependencies(self) -> tuple[ServiceKey, ...]:
        """Keys this plan resolves before constructing; empty for opaque plans."""
        ...

    def create(self, scope: ServiceScope) -> Activation:
        """Build a new instance, resolving dependencies from ``scope``."""
        ...


class ConstructorFactory:
    """Plan for type-based descriptors: the selected constructor and its parameter keys."""

    __slots__ = ("_parameter_keys", "candidate", "descriptor", "index")

    def __init__(
        self,
        descriptor: ServiceDescriptor,
        index: int,
        candidate: ConstructorCandidate,
        parameter_keys: tuple[tuple[str, ServiceKey], ...],
    ) -> None:
        self.descriptor = descriptor
        self.index = index
        self.candidate = candidate
        self._parameter_keys = parameter_keys

    @property
    def dependencies(self) -> tuple[ServiceKey, ...]:
        return tuple(key for _, key in self._parameter_keys)

    def create(self, scope: ServiceScope) -> Activation:
        arguments = {name: scope.get_service(key) for name, key in self._parameter_keys}
        return Activation(self.candidate.invoke(arguments))

    def __repr__(self) -> str:
        return (
            f"ConstructorFactory({self.candidate.owner.__qualname__}.{self.candidate.name}, "
            f"dependencies={self.dependencies!r})"
        )


class DelegateFactory:
    """Plan for factory-based descriptors.

    Generator functions are supported: the first yielded value is the
    instance, and the rest of the generator runs when the owning scope is
    disposed.
    """

    __slots__ = ("_factory", "_is_generator", "descriptor", "index")

    def __init__(self, descriptor: ServiceDescriptor, index: int) -> None:
        self.descriptor = descriptor
        self.index = index
        self._factory = descriptor.implementation_factory
        self._is_generator = inspect.isgeneratorfunction(self._factory)

    @property
    def dependencies(self) -> tuple[ServiceKey, ...]:
        return ()

    def create(self, scope: ServiceScope) -> Activation:
        assert self._factory is not None  # noqa: S101
        if not self._is_generator:
            return Activation(self._factory(scope))

        generator = self._factory(scope)
        try:
            instance = next(generator)
        except StopIteration as error:
            raise DIScopeInvalidDescriptorError(
                self.descriptor.service_key,
                "generator factory did not yield a value",
            ) from error
        return Activation(instance, cleanup=_generator_cleanup(generator))


class InstanceFactory:
    """Plan for prebuilt instances."""

    __slots__ = ("descriptor", "index")

    def __init__(self, descriptor: ServiceDescriptor, index: int) -> None:
        self.descriptor = descriptor
        self.index = index

    @property
    def dependencies(self) -> tuple[ServiceKey, ...]:
        return ()

    def create(self, scope: ServiceScope) -> Activation:
        return Activation(self.descriptor.implementation_instance)


def _generator_cleanup(generator: Generator[Any, None, None]) -> Callable[[], None]:
    def cleanup() -> None:
        with suppress(StopIteration):
            next(generator)
        generator.close()

    return cleanup
