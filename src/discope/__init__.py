from discope.activator import Activator
from discope.descriptors import DisposalPolicy, Lifetime, ServiceDescriptor
from discope.exceptions import (
    DIScopeBuildError,
    DIScopeConstructorResolutionError,
    DIScopeDependencyCycleError,
    DIScopeDisposedError,
    DIScopeError,
    DIScopeInvalidDescriptorError,
    DIScopeLifetimeViolationError,
    DIScopeMethodInjectionError,
    DIScopeServiceNotFoundError,
)
from discope.lock_mode import LockMode
from discope.markers import constructor
from discope.provider import ServiceProvider, build_service_provider
from discope.scope import ServiceScope, ServiceScopeFactory, SupportsClose
from discope.service_collection import ServiceCollection

__all__ = [
    "Activator",
    "DIScopeBuildError",
    "DIScopeConstructorResolutionError",
    "DIScopeDependencyCycleError",
    "DIScopeDisposedError",
    "DIScopeError",
    "DIScopeInvalidDescriptorError",
    "DIScopeLifetimeViolationError",
    "DIScopeMethodInjectionError",
    "DIScopeServiceNotFoundError",
    "DisposalPolicy",
    "Lifetime",
    "LockMode",
    "ServiceCollection",
    "ServiceDescriptor",
    "ServiceProvider",
    "ServiceScope",
    "ServiceScopeFactory",
    "SupportsClose",
    "build_service_provider",
    "constructor",
]
