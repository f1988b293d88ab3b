from __future__ import annotations

import inspect
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING, Any, TypeAlias

from typing_extensions import is_protocol

from discope.exceptions import DIScopeInvalidDescriptorError

if TYPE_CHECKING:
    from discope.scope import ServiceScope

ServiceKey: TypeAlias = Any
"""A hashable identity used to address a registration, usually a class or protocol."""

FactoryFunction: TypeAlias = Callable[["ServiceScope"], Any]
"""A callable receiving the constructing scope and returning (or yielding) an instance."""


class Lifetime(Enum):
    """Define cache behavior for resolved services."""

    SINGLETON = auto()
    """One instance per provider, cached in the root scope and shared by every scope."""

    SCOPED = auto()
    """One instance per scope. Sibling scopes never share scoped instances."""

    TRANSIENT = auto()
    """A new instance for every request. Never cached, but still captured for disposal."""


class DisposalPolicy(Enum):
    """Control whether the owning scope closes an instance on dispose."""

    DISPOSE = auto()
    """Call ``close()`` on the instance when its owning scope is disposed."""

    DO_NOT_DISPOSE = auto()
    """Leave the instance alone; its lifetime is managed elsewhere.

    Generator factories are not resumed either, so code after their ``yield``
    never runs."""


@dataclass(frozen=True, kw_only=True)
class ServiceDescriptor:
    """Describe one service registration.

    Exactly one implementation source is populated: a concrete type whose
    constructor is bound at build time, a factory function, or a prebuilt
    instance. Prebuilt instances are always singletons.
    """

    service_key: ServiceKey
    """The key the service is requested by."""

    implementation_type: type[Any] | None = None
    """A concrete class constructed through its first satisfiable constructor."""
    implementation_factory: FactoryFunction | None = None
    """A factory called with the constructing scope."""
    implementation_instance: Any | None = None
    """A ready-made instance returned as-is."""

    lifetime: Lifetime = Lifetime.TRANSIENT
    disposal: DisposalPolicy = DisposalPolicy.DISPOSE

    def __post_init__(self) -> None:
        sources = [
            source
            for source in (
                self.implementation_type,
                self.implementation_factory,
                self.implementation_instance,
            )
            if source is not None
        ]
        if len(sources) != 1:
            raise DIScopeInvalidDescriptorError(
                self.service_key,
                f"exactly one implementation source is required, got {len(sources)}",
            )

        if self.implementation_type is not None:
            self._validate_implementation_type(self.implementation_type)
        elif self.implementation_factory is not None:
            if not callable(self.implementation_factory):
                raise DIScopeInvalidDescriptorError(
                    self.service_key,
                    f"factory {self.implementation_factory!r} is not callable",
                )
        elif self.lifetime is not Lifetime.SINGLETON:
            # Instances are shared by definition.
            object.__setattr__(self, "lifetime", Lifetime.SINGLETON)

    @classmethod
    def for_type(
        cls,
        service_key: ServiceKey,
        implementation_type: type[Any] | None = None,
        lifetime: Lifetime = Lifetime.TRANSIENT,
        disposal: DisposalPolicy = DisposalPolicy.DISPOSE,
    ) -> ServiceDescriptor:
        """Describe a service constructed from a concrete type.

        Args:
            service_key: Key to register. Also used as the implementation when
                ``implementation_type`` is omitted.
            implementation_type: Concrete class to construct.
            lifetime: Cache behavior of the service.
            disposal: Whether the owning scope closes the instance.

        """
        return cls(
            service_key=service_key,
            implementation_type=implementation_type or service_key,
            lifetime=lifetime,
            disposal=disposal,
        )

    @classmethod
    def for_factory(
        cls,
        service_key: ServiceKey,
        factory: FactoryFunction,
        lifetime: Lifetime = Lifetime.TRANSIENT,
        disposal: DisposalPolicy = DisposalPolicy.DISPOSE,
    ) -> ServiceDescriptor:
        """Describe a service produced by a factory function."""
        return cls(
            service_key=service_key,
            implementation_factory=factory,
            lifetime=lifetime,
            disposal=disposal,
        )

    @classmethod
    def for_instance(
        cls,
        service_key: ServiceKey,
        instance: Any,
        disposal: DisposalPolicy = DisposalPolicy.DISPOSE,
    ) -> ServiceDescriptor:
        """Describe a prebuilt singleton instance."""
        if instance is None:
            raise DIScopeInvalidDescriptorError(service_key, "instance must not be None")
        return cls(
            service_key=service_key,
            implementation_instance=instance,
            lifetime=Lifetime.SINGLETON,
            disposal=disposal,
        )

    @property
    def is_type_based(self) -> bool:
        return self.implementation_type is not None

    def _validate_implementation_type(self, implementation_type: Any) -> None:
        if not inspect.isclass(implementation_type):
            raise DIScopeInvalidDescriptorError(
                self.service_key,
                f"implementation must be a class, got {implementation_type!r}",
            )
        if inspect.isabstract(implementation_type) or is_protocol(implementation_type):
            raise DIScopeInvalidDescriptorError(
                self.service_key,
                f"implementation type '{implementation_type.__qualname__}' is not concrete",
            )
        service_key = self.service_key
        if (
            inspect.isclass(service_key)
            and not is_protocol(service_key)
            and not issubclass(implementation_type, service_key)
        ):
            raise DIScopeInvalidDescriptorError(
                service_key,
                f"implementation type '{implementation_type.__qualname__}' "
                f"must be a subclass of '{service_key.__qualname__}'",
            )
