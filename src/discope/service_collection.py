from __future__ import annotations

from collections.abc import Iterable, Iterator
from typing import TYPE_CHECKING, Any

from typing_extensions import Self

from discope.descriptors import (
    DisposalPolicy,
    FactoryFunction,
    Lifetime,
    ServiceDescriptor,
    ServiceKey,
)
from discope.lock_mode import LockMode
from discope.provider import build_service_provider

if TYPE_CHECKING:
    from discope.provider import ServiceProvider


class ServiceCollection:
    """Collect service descriptors before building a provider.

    Keys are unique: adding a descriptor for a key that is already present
    replaces the previous descriptor. ``add_*`` helpers return the collection
    so registrations can be chained.

    Examples:
        .. code-block:: python

            services = (
                ServiceCollection()
                .add_singleton(Settings)
                .add_scoped(UnitOfWork, SqlUnitOfWork)
                .add_transient(Clock, factory=lambda scope: SystemClock())
            )
            provider = services.build_service_provider()

    """

    def __init__(self, descriptors: Iterable[ServiceDescriptor] = ()) -> None:
        self._descriptors: dict[ServiceKey, ServiceDescriptor] = {}
        for descriptor in descriptors:
            self.add(descriptor)

    def add(self, descriptor: ServiceDescriptor) -> Self:
        """Add a descriptor, replacing any descriptor registered for the same key."""
        self._descriptors.pop(descriptor.service_key, None)
        self._descriptors[descriptor.service_key] = descriptor
        return self

    def add_singleton(
        self,
        service_key: ServiceKey,
        implementation_type: type[Any] | None = None,
        *,
        factory: FactoryFunction | None = None,
        disposal: DisposalPolicy = DisposalPolicy.DISPOSE,
    ) -> Self:
        """Register a service shared by the whole provider.

        Args:
            service_key: Key to register.
            implementation_type: Concrete class to construct. Defaults to
                ``service_key`` itself unless ``factory`` is given.
            factory: Factory called with the constructing scope instead of a
                constructor.
            disposal: Whether the provider closes the instance on dispose.

        """
        return self._add(service_key, implementation_type, factory, Lifetime.SINGLETON, disposal)

    def add_scoped(
        self,
        service_key: ServiceKey,
        implementation_type: type[Any] | None = None,
        *,
        factory: FactoryFunction | None = None,
        disposal: DisposalPolicy = DisposalPolicy.DISPOSE,
    ) -> Self:
        """Register a service created once per scope. See ``add_singleton`` for arguments."""
        return self._add(service_key, implementation_type, factory, Lifetime.SCOPED, disposal)

    def add_transient(
        self,
        service_key: ServiceKey,
        implementation_type: type[Any] | None = None,
        *,
        factory: FactoryFunction | None = None,
        disposal: DisposalPolicy = DisposalPolicy.DISPOSE,
    ) -> Self:
        """Register a service created on every request. See ``add_singleton`` for arguments."""
        return self._add(service_key, implementation_type, factory, Lifetime.TRANSIENT, disposal)

    def add_instance(
        self,
        service_key: ServiceKey,
        instance: Any,
        *,
        disposal: DisposalPolicy = DisposalPolicy.DISPOSE,
    ) -> Self:
        """Register a prebuilt singleton instance."""
        return self.add(ServiceDescriptor.for_instance(service_key, instance, disposal))

    def remove(self, service_key: ServiceKey) -> bool:
        """Remove the descriptor registered for ``service_key``, if any."""
        return self._descriptors.pop(service_key, None) is not None

    def build_service_provider(
        self,
        *,
        validate: bool = True,
        lock_mode: LockMode = LockMode.THREAD,
    ) -> ServiceProvider:
        """Build a provider from the collected descriptors. See ``build_service_provider``."""
        return build_service_provider(self, validate=validate, lock_mode=lock_mode)

    def _add(
        self,
        service_key: ServiceKey,
        implementation_type: type[Any] | None,
        factory: FactoryFunction | None,
        lifetime: Lifetime,
        disposal: DisposalPolicy,
    ) -> Self:
        if factory is not None:
            descriptor = ServiceDescriptor(
                service_key=service_key,
                implementation_type=implementation_type,
                implementation_factory=factory,
                lifetime=lifetime,
                disposal=disposal,
            )
        else:
            descriptor = ServiceDescriptor.for_type(
                service_key,
                implementation_type,
                lifetime=lifetime,
                disposal=disposal,
            )
        return self.add(descriptor)

    def __contains__(self, service_key: object) -> bool:
        return service_key in self._descriptors

    def __iter__(self) -> Iterator[ServiceDescriptor]:
        return iter(self._descriptors.values())

    def __len__(self) -> int:
        return len(self._descriptors)
