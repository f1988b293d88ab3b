from __future__ import annotations

import inspect
from collections.abc import Sequence
from typing import TYPE_CHECKING, Annotated, Any, TypeVar, get_args, get_origin, get_type_hints

from discope._internal.constructors import (
    MISSING_ANNOTATION,
    ConstructorParameter,
    bind_call_arguments,
    callable_parameters,
    constructor_candidates,
)
from discope.exceptions import DIScopeConstructorResolutionError, DIScopeMethodInjectionError

if TYPE_CHECKING:
    from discope.scope import ServiceScope

T = TypeVar("T")

_UNSATISFIED: Any = object()


class Activator:
    """Construct and inject objects that are not registered with the provider.

    Each parameter is matched in two passes: first the explicit arguments are
    scanned in order for the first unused one that is an instance of the
    parameter's annotated type, then the parameter's annotation is resolved
    from the scope. A parameter that neither pass satisfies falls back to its
    default, if it has one.
    """

    def __init__(self, scope: ServiceScope) -> None:
        self._scope = scope

    def create_instance(self, cls: type[T], *args: Any) -> T:
        """Instantiate ``cls`` with the first constructor candidate that can be satisfied.

        Args:
            cls: Type to construct. It does not need to be registered.
            *args: Explicit arguments tried before the scope's services.

        Raises:
            DIScopeConstructorResolutionError: If no constructor candidate of
                ``cls`` can be satisfied.

        """
        for candidate in constructor_candidates(cls):
            arguments = self._match_parameters(candidate.parameters, args)
            if arguments is not None:
                return candidate.invoke(arguments)

        raise DIScopeConstructorResolutionError(cls)

    def inject_properties(self, target: object, *args: Any) -> None:
        """Assign every public settable property of ``target`` that can be matched.

        The property type is read from the setter's value annotation, or from
        the getter's return annotation. Properties without a match are left
        untouched.
        """
        for name, prop in _settable_properties(type(target)):
            annotation = _property_annotation(prop)
            if annotation is MISSING_ANNOTATION:
                continue

            value = self._match_value(annotation, args, used=set())
            if value is not _UNSATISFIED and value is not None:
                setattr(target, name, value)

    def inject_method(self, target: object, method_name: str, *args: Any) -> Any:
        """Call ``target.method_name`` with matched arguments and return its result.

        Raises:
            DIScopeMethodInjectionError: If the method does not exist, is not
                public, or its parameters cannot be satisfied.

        """
        method = getattr(target, method_name, None)
        if method_name.startswith("_") or not callable(method):
            raise DIScopeMethodInjectionError(type(target), method_name)

        parameters = callable_parameters(method, owner=type(target), skip_first_parameter=False)
        arguments = self._match_parameters(parameters, args)
        if arguments is None:
            raise DIScopeMethodInjectionError(type(target), method_name)

        call_args, call_kwargs = bind_call_arguments(parameters, arguments)
        return method(*call_args, **call_kwargs)

    def _match_parameters(
        self,
        parameters: Sequence[ConstructorParameter],
        args: Sequence[Any],
    ) -> dict[str, Any] | None:
        used: set[int] = set()
        arguments: dict[str, Any] = {}
        for parameter in parameters:
            value = _UNSATISFIED
            if parameter.has_annotation:
                value = self._match_value(parameter.annotation, args, used)
            if value is _UNSATISFIED or value is None:
                if not parameter.has_default:
                    return None
                continue
            arguments[parameter.name] = value
        return arguments

    def _match_value(self, annotation: Any, args: Sequence[Any], used: set[int]) -> Any:
        expected = _runtime_class(annotation)
        if expected is not None:
            for position, arg in enumerate(args):
                if position not in used and _is_instance(arg, expected):
                    used.add(position)
                    return arg

        return self._scope.get_service(annotation)


def _runtime_class(annotation: Any) -> type[Any] | None:
    if get_origin(annotation) is Annotated:
        annotation = get_args(annotation)[0]
    return annotation if inspect.isclass(annotation) else None


def _is_instance(value: Any, expected: type[Any]) -> bool:
    try:
        return isinstance(value, expected)
    except TypeError:
        # Non runtime-checkable protocols.
        return False


def _settable_properties(cls: type[Any]) -> list[tuple[str, property]]:
    found: dict[str, property] = {}
    for klass in reversed(cls.__mro__):
        for name, member in vars(klass).items():
            if isinstance(member, property):
                found[name] = member
    return [
        (name, prop)
        for name, prop in found.items()
        if prop.fset is not None and not name.startswith("_")
    ]


def _property_annotation(prop: property) -> Any:
    for accessor, hint_name in ((prop.fset, None), (prop.fget, "return")):
        if accessor is None:
            continue
        try:
            hints = get_type_hints(accessor, include_extras=True)
        except (NameError, TypeError):
            continue

        if hint_name is not None:
            if hint_name in hints:
                return hints[hint_name]
            continue

        parameters = list(inspect.signature(accessor).parameters)
        if len(parameters) > 1 and parameters[1] in hints:
            return hints[parameters[1]]
    return MISSING_ANNOTATION
