"""
runtime.py

Responsibility: Support code imported by generated builder modules.

Generated builders keep one private slot per field, initialised to `ABSENT`.
`require` is the only way a slot value reaches the target constructor, so an
unset field is always reported by name and never passed through.
"""

from __future__ import annotations

import functools
import types
from typing import Any, Callable, TypeVar

T = TypeVar("T")


class MissingRequiredField(ValueError):
    """Raised by a generated `build()` when a field was never set."""

    def __init__(self, field: str, target: str | None = None) -> None:
        where = f" for {target}" if target else ""
        super().__init__(f"Required field '{field}' was not set{where}")
        self.field = field
        self.target = target


class Absent:
    """Type of the `ABSENT` sentinel."""

    _instance: Absent | None = None

    def __new__(cls) -> Absent:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ABSENT"

    def __bool__(self) -> bool:
        return False

    def __reduce__(self) -> str:
        return "ABSENT"


ABSENT = Absent()


def require(value: T | Absent, field: str, target: str | None = None) -> T:
    """Unwrap a builder slot or raise `MissingRequiredField` naming the field."""
    if value is ABSENT:
        raise MissingRequiredField(field, target)
    return value  # type: ignore[return-value]


class fluent:
    """
    Method descriptor for builder setters and `build`.

    Accessed on an instance it behaves like a normal method. Accessed on the
    builder class it binds to a freshly created builder, so
    `CarBuilder.name("x")` starts a new construction session and every chain
    owns its own state.
    """

    def __init__(self, func: Callable[..., Any]) -> None:
        self.func = func
        functools.update_wrapper(self, func)

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name

    def __get__(self, instance: Any, owner: type | None = None) -> Callable[..., Any]:
        if instance is None:
            if owner is None:
                raise TypeError(f"{self.func.__qualname__} needs a builder class or instance")
            instance = owner()
        return types.MethodType(self.func, instance)
