"""Tests for disposal capture and scope teardown."""

from collections.abc import Iterator

import pytest

from discope import (
    DIScopeDisposedError,
    DIScopeInvalidDescriptorError,
    DisposalPolicy,
    ServiceCollection,
    ServiceScope,
    SupportsClose,
)


class Resource:
    """Records ``close()`` calls into a shared journal."""

    journal: list[str] = []

    def __init__(self) -> None:
        self.close_calls = 0

    def close(self) -> None:
        self.close_calls += 1
        self.journal.append(type(self).__name__)


class First(Resource):
    pass


class Second(Resource):
    pass


class Third(Resource):
    pass


class DependsOnThird(Resource):
    def __init__(self, third: Third) -> None:
        super().__init__()
        self.third = third


class SingletonOwningTransient:
    def __init__(self, first: First) -> None:
        self.first = first


class Failing(Resource):
    def close(self) -> None:
        super().close()
        msg = f"{type(self).__name__} failed to close"
        raise RuntimeError(msg)


class FailingFirst(Failing):
    pass


class FailingSecond(Failing):
    pass


@pytest.fixture(autouse=True)
def _reset_journal() -> Iterator[None]:
    Resource.journal.clear()
    yield
    Resource.journal.clear()


class TestDisposalOrder:
    def test_singletons_disposed_in_reverse_creation_order(
        self,
        services: ServiceCollection,
    ) -> None:
        """X then Y constructed means Y is closed before X."""
        provider = services.add_singleton(First).add_singleton(Second).build_service_provider()
        provider.get_service(First)
        provider.get_service(Second)

        provider.dispose()

        assert Resource.journal == ["Second", "First"]

    def test_creation_order_not_registration_order_decides(
        self,
        services: ServiceCollection,
    ) -> None:
        provider = services.add_singleton(First).add_singleton(Second).build_service_provider()
        provider.get_service(Second)
        provider.get_service(First)

        provider.dispose()

        assert Resource.journal == ["First", "Second"]

    def test_dependency_disposed_after_dependent(self, services: ServiceCollection) -> None:
        provider = services.add_scoped(DependsOnThird).add_scoped(Third).build_service_provider()

        with provider.create_scope() as scope:
            scope.get_service(DependsOnThird)

        assert Resource.journal == ["DependsOnThird", "Third"]


class TestDisposalCapture:
    def test_singleton_disposed_exactly_once(self, services: ServiceCollection) -> None:
        provider = services.add_singleton(First).build_service_provider()
        instance = provider.create_scope().get_required_service(First)

        provider.dispose()
        provider.dispose()

        assert instance.close_calls == 1

    def test_prebuilt_instance_disposed_once_without_resolution(
        self,
        services: ServiceCollection,
    ) -> None:
        instance = First()
        provider = services.add_instance(First, instance).build_service_provider()

        provider.dispose()

        assert instance.close_calls == 1

    def test_scoped_instances_disposed_with_their_scope(self, services: ServiceCollection) -> None:
        provider = services.add_scoped(First).build_service_provider()
        scope1 = provider.create_scope()
        scope2 = provider.create_scope()
        first1 = scope1.get_required_service(First)
        first2 = scope2.get_required_service(First)

        scope1.dispose()

        assert first1.close_calls == 1
        assert first2.close_calls == 0

    def test_transients_captured_by_requesting_scope(self, services: ServiceCollection) -> None:
        provider = services.add_transient(First).build_service_provider()
        scope = provider.create_scope()
        created = [scope.get_required_service(First) for _ in range(3)]

        scope.dispose()

        assert [instance.close_calls for instance in created] == [1, 1, 1]
        provider.dispose()
        assert [instance.close_calls for instance in created] == [1, 1, 1]

    def test_singleton_dependencies_are_owned_by_root(self, services: ServiceCollection) -> None:
        """A transient built for a singleton lives as long as the singleton."""
        provider = (
            services.add_singleton(SingletonOwningTransient)
            .add_transient(First)
            .build_service_provider()
        )
        with provider.create_scope() as scope:
            singleton = scope.get_required_service(SingletonOwningTransient)

        assert singleton.first.close_calls == 0

        provider.dispose()

        assert singleton.first.close_calls == 1

    def test_do_not_dispose_is_honoured(self, services: ServiceCollection) -> None:
        provider = services.add_scoped(
            First,
            disposal=DisposalPolicy.DO_NOT_DISPOSE,
        ).build_service_provider()
        scope = provider.create_scope()
        instance = scope.get_required_service(First)

        scope.dispose()

        assert instance.close_calls == 0

    def test_non_closable_instances_are_ignored(self, services: ServiceCollection) -> None:
        provider = services.add_scoped("value", factory=lambda scope: object()).build_service_provider()
        scope = provider.create_scope()
        scope.get_service("value")

        scope.dispose()

        assert scope.disposed

    def test_supports_close_protocol(self) -> None:
        assert isinstance(First(), SupportsClose)
        assert not isinstance(object(), SupportsClose)


class TestGeneratorFactories:
    def test_generator_cleanup_runs_on_dispose(self, services: ServiceCollection) -> None:
        events: list[str] = []

        def open_connection(scope: ServiceScope) -> Iterator[str]:
            events.append("open")
            try:
                yield "connection"
            finally:
                events.append("close")

        provider = services.add_scoped("connection", factory=open_connection).build_service_provider()

        with provider.create_scope() as scope:
            assert scope.get_service("connection") == "connection"
            assert scope.get_service("connection") == "connection"
            assert events == ["open"]

        assert events == ["open", "close"]

    def test_generator_cleanup_replaces_close(self, services: ServiceCollection) -> None:
        """The generator owns teardown, so ``close()`` is not called in addition."""
        instance = First()

        def provide_first(scope: ServiceScope) -> Iterator[First]:
            yield instance

        provider = services.add_scoped(First, factory=provide_first).build_service_provider()
        with provider.create_scope() as scope:
            scope.get_service(First)

        assert instance.close_calls == 0

    def test_generator_is_not_resumed_without_disposal(self, services: ServiceCollection) -> None:
        """Code after ``yield`` belongs to disposal, so opting out skips it."""
        events: list[str] = []

        def open_connection(scope: ServiceScope) -> Iterator[str]:
            events.append("open")
            yield "connection"
            events.append("close")

        provider = services.add_scoped(
            "connection",
            factory=open_connection,
            disposal=DisposalPolicy.DO_NOT_DISPOSE,
        ).build_service_provider()

        with provider.create_scope() as scope:
            assert scope.get_service("connection") == "connection"

        provider.dispose()

        assert events == ["open"]

    def test_generator_without_value_fails(self, services: ServiceCollection) -> None:
        def empty(scope: ServiceScope) -> Iterator[First]:
            yield from ()

        provider = services.add_transient(First, factory=empty).build_service_provider()

        with pytest.raises(DIScopeInvalidDescriptorError, match="did not yield"):
            provider.get_service(First)


class TestDisposedScopes:
    def test_dispose_is_idempotent(self, services: ServiceCollection) -> None:
        provider = services.add_scoped(First).build_service_provider()
        scope = provider.create_scope()
        instance = scope.get_required_service(First)

        scope.dispose()
        scope.dispose()

        assert instance.close_calls == 1

    def test_disposed_scope_rejects_use(self, services: ServiceCollection) -> None:
        provider = services.add_scoped(First).build_service_provider()
        scope = provider.create_scope()
        scope.dispose()

        with pytest.raises(DIScopeDisposedError):
            scope.get_service(First)
        with pytest.raises(DIScopeDisposedError):
            scope.create_scope()
        with pytest.raises(DIScopeDisposedError):
            scope.create_instance(First)

    def test_disposed_provider_rejects_use(self, services: ServiceCollection) -> None:
        provider = services.add_singleton(First).build_service_provider()

        with provider:
            provider.get_service(First)

        assert provider.disposed
        with pytest.raises(DIScopeDisposedError):
            provider.get_service(First)

    def test_context_manager_disposes_on_error(self, services: ServiceCollection) -> None:
        provider = services.add_scoped(First).build_service_provider()

        with pytest.raises(ValueError, match="boom"), provider.create_scope() as scope:
            instance = scope.get_required_service(First)
            msg = "boom"
            raise ValueError(msg)

        assert instance.close_calls == 1
        assert scope.disposed


class TestDisposalErrors:
    def test_first_error_propagates_after_all_closed(
        self,
        services: ServiceCollection,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """Every disposable is attempted; the first failure is raised, later ones logged."""
        provider = (
            services.add_scoped(First)
            .add_scoped(FailingFirst)
            .add_scoped(Second)
            .add_scoped(FailingSecond)
            .build_service_provider()
        )
        scope = provider.create_scope()
        for key in (First, FailingFirst, Second, FailingSecond):
            scope.get_service(key)

        with pytest.raises(RuntimeError, match="FailingSecond failed to close"):
            scope.dispose()

        assert Resource.journal == ["FailingSecond", "Second", "FailingFirst", "First"]
        assert "Additional error while disposing scope" in caplog.text
        assert scope.disposed
