from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from contextlib import AbstractContextManager, nullcontext
from types import TracebackType
from typing import TYPE_CHECKING, Any, Protocol, TypeVar, overload, runtime_checkable

from typing_extensions import Self

from discope._internal.resolution_stack import resolving
from discope.activator import Activator
from discope.descriptors import DisposalPolicy
from discope.exceptions import DIScopeDisposedError, DIScopeServiceNotFoundError
from discope.lock_mode import LockMode

if TYPE_CHECKING:
    from discope._internal.bound_factories import BoundFactory
    from discope.descriptors import ServiceKey
    from discope.provider import ServiceProvider

T = TypeVar("T")

logger = logging.getLogger(__name__)
_MISSING: Any = object()


@runtime_checkable
class SupportsClose(Protocol):
    """An instance the owning scope can release by calling ``close()``."""

    def close(self) -> object: ...


@runtime_checkable
class ServiceScopeFactory(Protocol):
    """Anything able to open a new scope. Resolving this key yields the calling scope."""

    def create_scope(self) -> ServiceScope: ...


class ServiceScope:
    """Own scoped instances and everything that must be released with them.

    A scope caches one instance per scoped key, records every disposable it
    produced (transients included), and closes them in reverse creation order
    on ``dispose()``. The provider's root scope additionally holds singletons.
    Scopes opened with ``create_scope`` are siblings: they never share scoped
    instances with each other.

    Scopes are context managers; leaving the ``with`` block disposes the scope.
    """

    def __init__(self, provider: ServiceProvider, parent: ServiceScope | None = None) -> None:
        self._provider = provider
        self._parent = parent
        self._cache: dict[ServiceKey, Any] = {}
        self._disposables: list[Callable[[], object]] = []
        self._disposed = False

        self._thread_safe = provider.lock_mode is LockMode.THREAD
        self._locks_guard = threading.Lock()
        self._key_locks: dict[ServiceKey, threading.RLock] = {}

    @property
    def provider(self) -> ServiceProvider:
        """The provider this scope resolves registrations from."""
        return self._provider

    @property
    def parent(self) -> ServiceScope | None:
        """The root scope for created scopes, ``None`` for the root itself."""
        return self._parent

    @property
    def is_root(self) -> bool:
        return self._parent is None

    @property
    def disposed(self) -> bool:
        return self._disposed

    # region Resolution
    @overload
    def get_service(self, service_key: type[T]) -> T | None: ...

    @overload
    def get_service(self, service_key: Any) -> Any: ...

    def get_service(self, service_key: Any) -> Any:
        """Resolve a service for this scope.

        Scoped services are cached in this scope, singletons in the root
        scope, transients are built on every call.

        Args:
            service_key: Registered key to resolve.

        Returns:
            The instance, or ``None`` when the key is not registered.

        Raises:
            DIScopeDisposedError: If the scope was disposed.

        """
        self._ensure_not_disposed()
        return self._provider._resolve(service_key, self)  # noqa: SLF001

    @overload
    def get_required_service(self, service_key: type[T]) -> T: ...

    @overload
    def get_required_service(self, service_key: Any) -> Any: ...

    def get_required_service(self, service_key: Any) -> Any:
        """Resolve a service, failing when no instance is available.

        Raises:
            DIScopeServiceNotFoundError: If nothing is registered for ``service_key``
                or its factory produced ``None``.

        """
        instance = self.get_service(service_key)
        if instance is None:
            raise DIScopeServiceNotFoundError(service_key)
        return instance

    def create_scope(self) -> ServiceScope:
        """Open a new scope. Every created scope is a sibling under the root scope."""
        self._ensure_not_disposed()
        scope = ServiceScope(self._provider, parent=self._provider.root_scope)
        logger.debug("Created scope %#x", id(scope))
        return scope

    # endregion Resolution

    # region Activation
    def create_instance(self, cls: type[T], *args: Any) -> T:
        """Construct an unregistered type from explicit arguments and this scope's services.

        See ``Activator.create_instance``.
        """
        self._ensure_not_disposed()
        return Activator(self).create_instance(cls, *args)

    def inject_properties(self, target: object, *args: Any) -> None:
        """Assign settable properties of ``target``. See ``Activator.inject_properties``."""
        self._ensure_not_disposed()
        Activator(self).inject_properties(target, *args)

    def inject_method(self, target: object, method_name: str, *args: Any) -> Any:
        """Call a method of ``target`` with injected arguments. See ``Activator.inject_method``."""
        self._ensure_not_disposed()
        return Activator(self).inject_method(target, method_name, *args)

    # endregion Activation

    # region Disposal
    def dispose(self) -> None:
        """Release everything this scope captured, last created first.

        Calling ``dispose`` again is a no-op. When several disposables fail,
        all of them are still attempted; the first exception is re-raised and
        the others are logged.
        """
        if self._disposed:
            return
        self._disposed = True

        disposables, self._disposables = self._disposables, []
        logger.debug("Disposing scope %#x (%d disposables)", id(self), len(disposables))

        first_error: Exception | None = None
        try:
            for cleanup in reversed(disposables):
                try:
                    cleanup()
                except Exception as error:
                    if first_error is None:
                        first_error = error
                    else:
                        logger.exception("Additional error while disposing scope %#x", id(self))
        finally:
            self._cache.clear()
            self._key_locks.clear()

        if first_error is not None:
            raise first_error

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.dispose()

    # endregion Disposal

    def _get_or_create(self, factory: BoundFactory) -> Any:
        """Return the cached instance for ``factory`` or build it exactly once."""
        self._ensure_not_disposed()
        key = factory.descriptor.service_key

        instance = self._cache.get(key, _MISSING)
        if instance is not _MISSING:
            return instance

        with self._lock_for(key):
            instance = self._cache.get(key, _MISSING)
            if instance is _MISSING:
                instance = self._activate(factory)
                self._cache[key] = instance
        return instance

    def _activate(self, factory: BoundFactory) -> Any:
        """Build a new instance in this scope and capture it for disposal."""
        descriptor = factory.descriptor
        with resolving(descriptor.service_key):
            activation = factory.create(self)

        if descriptor.disposal is DisposalPolicy.DISPOSE:
            if activation.cleanup is not None:
                self._capture(activation.cleanup)
            else:
                self._capture_instance(activation.instance)
        return activation.instance

    def _seed(self, factory: BoundFactory) -> None:
        """Place a prebuilt instance in the cache so it is owned from the start."""
        self._cache[factory.descriptor.service_key] = self._activate(factory)

    def _capture_instance(self, instance: Any) -> None:
        if instance is self or instance is self._provider:
            return
        if isinstance(instance, SupportsClose):
            self._capture(instance.close)

    def _capture(self, cleanup: Callable[[], object]) -> None:
        with self._locks_guard:
            self._disposables.append(cleanup)

    def _lock_for(self, key: ServiceKey) -> AbstractContextManager[Any]:
        if not self._thread_safe:
            return nullcontext()
        with self._locks_guard:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = self._key_locks[key] = threading.RLock()
        return lock

    def _ensure_not_disposed(self) -> None:
        if self._disposed:
            raise DIScopeDisposedError(self)

    def __repr__(self) -> str:
        kind = "root" if self.is_root else "child"
        return f"ServiceScope({kind}, cached={len(self._cache)}, disposed={self._disposed})"

