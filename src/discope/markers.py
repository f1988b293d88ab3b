from __future__ import annotations

from collections.abc import Callable
from typing import Any, TypeVar

CONSTRUCTOR_MARKER_ATTR = "__discope_constructor__"

F = TypeVar("F", bound=Callable[..., Any])


def constructor(func: F) -> F:
    """Mark a classmethod as an additional constructor candidate.

    Constructor candidates of a class are tried in the order they appear in
    the class body, ``__init__`` included; the first one whose parameters can
    all be satisfied wins. Marked classmethods are inherited: subclasses try
    their base classes' constructors before their own. The decorator accepts
    a plain function (it is wrapped into a classmethod) or an existing
    classmethod.

    Examples:
        .. code-block:: python

            class Repository:
                @constructor
                def from_settings(cls, settings: Settings) -> Repository:
                    return cls(settings.url)

                def __init__(self, url: str) -> None:
                    self.url = url

    """
    if isinstance(func, classmethod):
        setattr(func.__func__, CONSTRUCTOR_MARKER_ATTR, True)
        return func  # type: ignore[return-value]

    setattr(func, CONSTRUCTOR_MARKER_ATTR, True)
    return classmethod(func)  # type: ignore[return-value]


def is_constructor(member: object) -> bool:
    """Return whether a class attribute was marked with ``@constructor``."""
    if isinstance(member, classmethod):
        return getattr(member.__func__, CONSTRUCTOR_MARKER_ATTR, False) is True
    return False
