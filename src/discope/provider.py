from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from types import TracebackType
from typing import TYPE_CHECKING, Any, TypeVar, overload

from typing_extensions import Self

from discope._internal.binder import ServiceBinder
from discope._internal.bound_factories import BoundFactory, ConstructorFactory, InstanceFactory
from discope._internal.validator import DependencyGraphValidator
from discope.descriptors import Lifetime, ServiceDescriptor
from discope.lock_mode import LockMode
from discope.scope import ServiceScope, ServiceScopeFactory

if TYPE_CHECKING:
    from discope.descriptors import ServiceKey

T = TypeVar("T")

logger = logging.getLogger(__name__)


class ServiceProvider:
    """Resolve services from a validated, immutable set of bound factories.

    Instances are created through ``build_service_provider`` (or
    ``ServiceCollection.build_service_provider``), never directly with a
    half-checked configuration. The provider owns its root scope: singletons
    and services resolved straight from the provider live there, and disposing
    the provider disposes the root scope.

    ``ServiceProvider``, ``ServiceScope`` and ``ServiceScopeFactory`` are
    reserved keys. Resolving ``ServiceProvider`` returns the provider; the two
    scope keys return the scope the request was made from.
    """

    def __init__(
        self,
        factories: Mapping[ServiceKey, BoundFactory],
        *,
        lock_mode: LockMode = LockMode.THREAD,
    ) -> None:
        self._factories = dict(factories)
        self._lock_mode = lock_mode
        self._reserved: dict[Any, bool] = {
            ServiceProvider: True,
            ServiceScope: False,
            ServiceScopeFactory: False,
        }
        self._root_scope = ServiceScope(self)

        # Prebuilt instances are owned by the root scope from the start.
        for factory in self._factories.values():
            if isinstance(factory, InstanceFactory):
                self._root_scope._seed(factory)  # noqa: SLF001

    @property
    def lock_mode(self) -> LockMode:
        return self._lock_mode

    @property
    def root_scope(self) -> ServiceScope:
        """The scope holding singletons and provider-level scoped services."""
        return self._root_scope

    @property
    def disposed(self) -> bool:
        return self._root_scope.disposed

    def is_registered(self, service_key: Any) -> bool:
        """Return whether ``service_key`` is registered or reserved."""
        try:
            return service_key in self._factories or service_key in self._reserved
        except TypeError:
            # Unhashable keys can never be registered.
            return False

    @overload
    def get_service(self, service_key: type[T]) -> T | None: ...

    @overload
    def get_service(self, service_key: Any) -> Any: ...

    def get_service(self, service_key: Any) -> Any:
        """Resolve a service from the root scope; ``None`` when not registered."""
        return self._root_scope.get_service(service_key)

    @overload
    def get_required_service(self, service_key: type[T]) -> T: ...

    @overload
    def get_required_service(self, service_key: Any) -> Any: ...

    def get_required_service(self, service_key: Any) -> Any:
        """Resolve a service from the root scope.

        Raises:
            DIScopeServiceNotFoundError: If nothing is registered for ``service_key``.

        """
        return self._root_scope.get_required_service(service_key)

    def create_scope(self) -> ServiceScope:
        """Open a new scope for scoped services.

        Examples:
            .. code-block:: python

                with provider.create_scope() as scope:
                    handler = scope.get_required_service(RequestHandler)

        """
        return self._root_scope.create_scope()

    def create_instance(self, cls: type[T], *args: Any) -> T:
        """Construct an unregistered type. See ``Activator.create_instance``."""
        return self._root_scope.create_instance(cls, *args)

    def dispose(self) -> None:
        """Dispose the root scope and everything it captured."""
        self._root_scope.dispose()

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.dispose()

    def _resolve(self, service_key: Any, calling_scope: ServiceScope) -> Any:
        try:
            is_provider_key = self._reserved.get(service_key)
        except TypeError:
            return None
        if is_provider_key is not None:
            return self if is_provider_key else calling_scope

        factory = self._factories.get(service_key)
        if factory is None:
            return None

        lifetime = factory.descriptor.lifetime
        if lifetime is Lifetime.TRANSIENT:
            return calling_scope._activate(factory)  # noqa: SLF001
        if lifetime is Lifetime.SINGLETON:
            return self._root_scope._get_or_create(factory)  # noqa: SLF001
        return calling_scope._get_or_create(factory)  # noqa: SLF001

    def __repr__(self) -> str:
        return f"ServiceProvider(services={len(self._factories)}, disposed={self.disposed})"


RESERVED_KEYS = frozenset({ServiceProvider, ServiceScope, ServiceScopeFactory})


def build_service_provider(
    descriptors: Iterable[ServiceDescriptor],
    *,
    validate: bool = True,
    lock_mode: LockMode = LockMode.THREAD,
) -> ServiceProvider:
    """Bind and validate descriptors, then create a provider.

    Either a fully usable provider is returned or a ``DIScopeBuildError`` is
    raised; nothing partially built escapes.

    Args:
        descriptors: Registrations in order. A later descriptor for the same
            key replaces an earlier one.
        validate: Check the graph for dependency cycles and singletons that
            depend on scoped services.
        lock_mode: Locking used by scope caches. Keep ``LockMode.THREAD``
            unless every resolution happens on one thread.

    Raises:
        DIScopeInvalidDescriptorError: If a descriptor targets a reserved key.
        DIScopeConstructorResolutionError: If a type has no satisfiable constructor.
        DIScopeDependencyCycleError: If validation finds a dependency cycle.
        DIScopeLifetimeViolationError: If validation finds a singleton depending
            on a scoped service.

    """
    factories = ServiceBinder(descriptors, reserved_keys=RESERVED_KEYS).bind()
    if validate:
        DependencyGraphValidator(factories).validate()

    provider = ServiceProvider(factories, lock_mode=lock_mode)
    logger.info(
        "Service provider built: service_count=%d constructor_plans=%d validated=%s lock_mode=%s",
        len(factories),
        sum(isinstance(factory, ConstructorFactory) for factory in factories.values()),
        validate,
        lock_mode.value,
    )
    return provider
