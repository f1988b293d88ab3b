from __future__ import annotations

import inspect
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from inspect import Parameter
from typing import Any, get_type_hints

from discope.exceptions import DIScopeConstructorResolutionError
from discope.markers import is_constructor

MISSING_ANNOTATION: Any = object()
_SKIPPED_KINDS = (Parameter.VAR_POSITIONAL, Parameter.VAR_KEYWORD)


@dataclass(frozen=True, slots=True)
class ConstructorParameter:
    """A single injectable parameter of a constructor or method."""

    name: str
    annotation: Any
    kind: Any
    default: Any = Parameter.empty

    @property
    def has_annotation(self) -> bool:
        return self.annotation is not MISSING_ANNOTATION

    @property
    def has_default(self) -> bool:
        return self.default is not Parameter.empty


@dataclass(frozen=True, slots=True)
class ConstructorCandidate:
    """One way of constructing ``owner``: its ``__init__`` or a marked classmethod."""

    owner: type[Any]
    name: str
    parameters: tuple[ConstructorParameter, ...]

    def invoke(self, arguments: Mapping[str, Any]) -> Any:
        """Call the constructor with the given arguments.

        Parameters missing from ``arguments`` fall back to their defaults.

        Args:
            arguments: Argument values keyed by parameter name.

        """
        args, kwargs = bind_call_arguments(self.parameters, arguments)
        target = self.owner if self.name == "__init__" else getattr(self.owner, self.name)
        return target(*args, **kwargs)


def bind_call_arguments(
    parameters: tuple[ConstructorParameter, ...],
    arguments: Mapping[str, Any],
) -> tuple[list[Any], dict[str, Any]]:
    args: list[Any] = []
    kwargs: dict[str, Any] = {}
    for parameter in parameters:
        value = arguments.get(parameter.name, parameter.default)
        if parameter.kind is Parameter.POSITIONAL_ONLY:
            args.append(value)
        else:
            kwargs[parameter.name] = value
    return args, kwargs


def constructor_candidates(cls: type[Any]) -> list[ConstructorCandidate]:
    """Enumerate the constructor candidates of ``cls`` in declaration order.

    Inherited candidates come first: the inherited ``__init__``, then
    classmethods marked with ``@constructor`` on base classes, most basic
    class first. The class's own ``__init__`` and marked classmethods follow
    in class-body order. Each name is listed once, resolved through the MRO;
    a name the class redefines keeps its class-body position.
    """
    own_members = vars(cls)
    candidates: list[ConstructorCandidate] = []
    if "__init__" not in own_members:
        candidates.append(_init_candidate(cls))

    inherited: dict[str, None] = {}
    for base in reversed(cls.__mro__[1:]):
        for name in vars(base):
            if name not in own_members and is_constructor(inspect.getattr_static(cls, name)):
                inherited[name] = None
    candidates.extend(
        _classmethod_candidate(cls, name, inspect.getattr_static(cls, name)) for name in inherited
    )

    for name, member in own_members.items():
        if name == "__init__":
            candidates.append(_init_candidate(cls))
        elif is_constructor(member):
            candidates.append(_classmethod_candidate(cls, name, member))
    return candidates


def callable_parameters(
    func: Callable[..., Any],
    *,
    owner: type[Any],
    skip_first_parameter: bool,
) -> tuple[ConstructorParameter, ...]:
    """Describe the injectable parameters of ``func``.

    Args:
        func: Function to inspect.
        owner: Class reported in errors.
        skip_first_parameter: Drop the implicit ``self``/``cls`` parameter.

    """
    try:
        signature = inspect.signature(func)
    except (TypeError, ValueError):
        return ()

    try:
        hints = get_type_hints(func, include_extras=True)
    except (NameError, TypeError) as error:
        raise DIScopeConstructorResolutionError(
            owner,
            detail=f"Annotations of '{getattr(func, '__qualname__', func)!s}' "
            f"cannot be evaluated: {error}",
        ) from error

    parameters = list(signature.parameters.values())
    if skip_first_parameter and parameters:
        parameters = parameters[1:]

    return tuple(
        ConstructorParameter(
            name=parameter.name,
            annotation=hints.get(parameter.name, MISSING_ANNOTATION),
            kind=parameter.kind,
            default=parameter.default,
        )
        for parameter in parameters
        if parameter.kind not in _SKIPPED_KINDS
    )


def _init_candidate(cls: type[Any]) -> ConstructorCandidate:
    init = cls.__init__
    if init is object.__init__:
        parameters: tuple[ConstructorParameter, ...] = ()
    else:
        parameters = callable_parameters(init, owner=cls, skip_first_parameter=True)
    return ConstructorCandidate(owner=cls, name="__init__", parameters=parameters)


def _classmethod_candidate(cls: type[Any], name: str, member: Any) -> ConstructorCandidate:
    return ConstructorCandidate(
        owner=cls,
        name=name,
        parameters=callable_parameters(member.__func__, owner=cls, skip_first_parameter=True),
    )
