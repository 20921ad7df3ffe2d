"""
marker.py

Responsibility: The `@builder` marker that requests builder generation.

The decorator does nothing at runtime; the generator finds it statically by
qualifying decorator names through each module's imports.
"""

from __future__ import annotations

from typing import Any, Callable, TypeVar, overload

T = TypeVar("T")

MARKER_NAME = "buildergen.builder"
MARKER_NAMES = frozenset({MARKER_NAME, "buildergen.marker.builder"})


@overload
def builder(target: T) -> T: ...


@overload
def builder() -> Callable[[T], T]: ...


def builder(target: Any = None) -> Any:
    """Mark a class for builder generation. Usable as `@builder` or `@builder()`."""
    if target is None:
        return lambda cls: cls
    return target
