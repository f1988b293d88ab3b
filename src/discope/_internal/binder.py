from __future__ import annotations

import logging
from collections.abc import Collection, Iterable
from typing import Any

from discope._internal.bound_factories import (
    BoundFactory,
    ConstructorFactory,
    DelegateFactory,
    InstanceFactory,
)
from discope._internal.constructors import ConstructorCandidate, constructor_candidates
from discope.descriptors import ServiceDescriptor, ServiceKey
from discope.exceptions import (
    DIScopeConstructorResolutionError,
    DIScopeInvalidDescriptorError,
)

logger = logging.getLogger(__name__)


class ServiceBinder:
    """Turn descriptors into bound factories.

    Descriptors are indexed by key, with later registrations replacing
    earlier ones. Every type-based descriptor gets its construction plan from
    the first constructor candidate, in declaration order, whose parameters
    are all registered (or reserved, or defaulted).
    """

    def __init__(
        self,
        descriptors: Iterable[ServiceDescriptor],
        *,
        reserved_keys: Collection[ServiceKey],
    ) -> None:
        self._descriptors = list(descriptors)
        self._reserved_keys = reserved_keys

    def bind(self) -> dict[ServiceKey, BoundFactory]:
        """Index descriptors and produce one bound factory per service key.

        Raises:
            DIScopeInvalidDescriptorError: If a descriptor targets a reserved key.
            DIScopeConstructorResolutionError: If a type-based descriptor has
                no satisfiable constructor.

        """
        index = self._index_descriptors()

        factories: dict[ServiceKey, BoundFactory] = {}
        for slot, descriptor in enumerate(index.values()):
            factories[descriptor.service_key] = self._bind_descriptor(descriptor, slot, index)
        return factories

    def _index_descriptors(self) -> dict[ServiceKey, ServiceDescriptor]:
        index: dict[ServiceKey, ServiceDescriptor] = {}
        for descriptor in self._descriptors:
            if not isinstance(descriptor, ServiceDescriptor):
                msg = f"expected a ServiceDescriptor, got {descriptor!r}"
                raise DIScopeInvalidDescriptorError(getattr(descriptor, "service_key", None), msg)

            if descriptor.service_key in self._reserved_keys:
                raise DIScopeInvalidDescriptorError(
                    descriptor.service_key,
                    "reserved services are provided implicitly and cannot be registered",
                )

            index.pop(descriptor.service_key, None)
            index[descriptor.service_key] = descriptor
        return index

    def _bind_descriptor(
        self,
        descriptor: ServiceDescriptor,
        slot: int,
        index: dict[ServiceKey, ServiceDescriptor],
    ) -> BoundFactory:
        if descriptor.implementation_factory is not None:
            return DelegateFactory(descriptor, slot)
        if descriptor.implementation_instance is not None:
            return InstanceFactory(descriptor, slot)

        implementation_type = descriptor.implementation_type
        assert implementation_type is not None  # noqa: S101

        for candidate in constructor_candidates(implementation_type):
            parameter_keys = self._satisfy(candidate, index)
            if parameter_keys is not None:
                logger.debug(
                    "Bound %s to %s.%s with %d dependencies",
                    descriptor.service_key,
                    implementation_type.__qualname__,
                    candidate.name,
                    len(parameter_keys),
                )
                return ConstructorFactory(descriptor, slot, candidate, parameter_keys)

        raise DIScopeConstructorResolutionError(implementation_type)

    def _satisfy(
        self,
        candidate: ConstructorCandidate,
        index: dict[ServiceKey, ServiceDescriptor],
    ) -> tuple[tuple[str, ServiceKey], ...] | None:
        parameter_keys: list[tuple[str, Any]] = []
        for parameter in candidate.parameters:
            if parameter.has_annotation and self._is_known(parameter.annotation, index):
                parameter_keys.append((parameter.name, parameter.annotation))
            elif not parameter.has_default:
                return None
        return tuple(parameter_keys)

    def _is_known(self, key: Any, index: dict[ServiceKey, ServiceDescriptor]) -> bool:
        try:
            return key in index or key in self._reserved_keys
        except TypeError:
            # Unhashable annotations can never be registered.
            return False
