from __future__ import annotations

from collections.abc import Sequence
from typing import Any


def _key_name(key: Any) -> str:
    return getattr(key, "__qualname__", None) or repr(key)


class DIScopeError(Exception):
    """Represent a base class for all discope-specific failures.

    Catch this type when you want to handle any discope error path without
    matching each concrete exception class individually.
    """


class DIScopeServiceNotFoundError(DIScopeError):
    """Signal that a required service key has no registration.

    Raised only by ``get_required_service``; ``get_service`` returns ``None``
    for unknown keys instead.
    """

    def __init__(self, service_key: Any) -> None:
        self.service_key = service_key
        super().__init__(f"Service {_key_name(service_key)} is not registered.")


class DIScopeDisposedError(DIScopeError):
    """Signal use of a scope or provider after ``dispose()`` was called."""

    def __init__(self, owner: object) -> None:
        self.owner = owner
        super().__init__(f"Cannot use {type(owner).__name__} after it has been disposed.")


class DIScopeBuildError(DIScopeError):
    """Signal an invalid service configuration detected while building a provider.

    Build errors abort ``build_service_provider`` atomically: no provider is
    returned when any of these is raised.
    """


class DIScopeInvalidDescriptorError(DIScopeBuildError):
    """Signal a malformed descriptor or a registration for a reserved key.

    Typical fixes include passing exactly one implementation source and not
    registering ``ServiceProvider``, ``ServiceScope`` or ``ServiceScopeFactory``,
    which every provider supplies implicitly.
    """

    def __init__(self, service_key: Any, reason: str) -> None:
        self.service_key = service_key
        self.reason = reason
        super().__init__(f"Invalid descriptor for service {_key_name(service_key)}: {reason}")


class DIScopeConstructorResolutionError(DIScopeBuildError):
    """Signal that no constructor of a type can be satisfied.

    Raised by the binder when no constructor candidate has all of its
    parameters registered, and by the activator when neither explicit
    arguments nor the provider can satisfy any candidate.
    """

    def __init__(self, implementation_type: Any, detail: str | None = None) -> None:
        self.implementation_type = implementation_type
        msg = (
            f"A suitable constructor for type '{_key_name(implementation_type)}' could not be "
            "located. Ensure the type is concrete and services are registered for all "
            "parameters of a public constructor."
        )
        if detail:
            msg = f"{msg} {detail}"
        super().__init__(msg)


class DIScopeMethodInjectionError(DIScopeConstructorResolutionError):
    """Signal that a method targeted by ``inject_method`` is missing or unsatisfiable."""

    def __init__(self, implementation_type: Any, method_name: str) -> None:
        self.method_name = method_name
        super().__init__(
            implementation_type,
            detail=f"Method '{method_name}' is missing or its arguments cannot be matched.",
        )


class DIScopeDependencyCycleError(DIScopeBuildError):
    """Signal that a service depends on itself, directly or transitively."""

    def __init__(self, service_key: Any, path: Sequence[Any] = ()) -> None:
        self.service_key = service_key
        self.path = tuple(path)
        chain = " -> ".join(_key_name(key) for key in (*self.path, service_key))
        super().__init__(
            f"Dependency loop detected for service {_key_name(service_key)}"
            + (f" ({chain})." if self.path else "."),
        )


class DIScopeLifetimeViolationError(DIScopeBuildError):
    """Signal a singleton that depends on a scoped service.

    A singleton outlives every scope, so it must not capture an instance that
    belongs to one. Register the dependency as singleton or transient, or
    lower the dependent's lifetime to scoped.
    """

    def __init__(self, service_key: Any, dependency_key: Any) -> None:
        self.service_key = service_key
        self.dependency_key = dependency_key
        super().__init__(
            f"A scoped service {_key_name(dependency_key)} is passed to a singleton "
            f"constructor of service {_key_name(service_key)}.",
        )
