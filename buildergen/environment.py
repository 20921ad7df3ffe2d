"""
environment.py

Responsibility: The read-only context threaded through every component.

- `ProcessingEnvironment`: output root, options and the diagnostic sink; built
  once per run, before any round, and never mutated afterwards.
- `RoundEnvironment`: what one processing round sees.
- `Messager`: collects diagnostics; reporting them is up to the caller.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

from buildergen.source import Declaration, SourceTree

logger = logging.getLogger(__name__)

OUTPUT_DIR_OPTION = "buildergen.generated"


class ConfigError(ValueError):
    pass


class MissingOutputRoot(ConfigError):
    pass


class Severity(enum.Enum):
    NOTE = "note"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Diagnostic:
    severity: Severity
    message: str
    element: str | None = None
    location: str | None = None
    kind: str | None = None

    def __str__(self) -> str:
        prefix = f"{self.location}: " if self.location else ""
        return f"{prefix}{self.severity.value}: {self.message}"


class Messager:
    """Diagnostic sink; the only accumulating object in a run."""

    def __init__(self) -> None:
        self._diagnostics: list[Diagnostic] = []

    @property
    def diagnostics(self) -> tuple[Diagnostic, ...]:
        return tuple(self._diagnostics)

    @property
    def errors(self) -> tuple[Diagnostic, ...]:
        return tuple(d for d in self._diagnostics if d.severity is Severity.ERROR)

    @property
    def has_errors(self) -> bool:
        return any(d.severity is Severity.ERROR for d in self._diagnostics)

    def print_message(
        self,
        severity: Severity,
        message: str,
        element: Declaration | None = None,
        *,
        kind: str | None = None,
        location: str | None = None,
    ) -> Diagnostic:
        diagnostic = Diagnostic(
            severity=severity,
            message=message,
            element=element.qualified_name if element is not None else None,
            location=location or (element.location if element is not None else None),
            kind=kind,
        )
        self._diagnostics.append(diagnostic)
        logger.debug("diagnostic: %s", diagnostic)
        return diagnostic

    def note(self, message: str, element: Declaration | None = None) -> Diagnostic:
        return self.print_message(Severity.NOTE, message, element)

    def error(
        self,
        message: str,
        element: Declaration | None = None,
        *,
        kind: str | None = None,
        location: str | None = None,
    ) -> Diagnostic:
        return self.print_message(Severity.ERROR, message, element, kind=kind, location=location)


@dataclass(frozen=True)
class ProcessingEnvironment:
    output_root: Path
    messager: Messager = field(default_factory=Messager, compare=False)
    options: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_options(cls, options: Mapping[str, str], messager: Messager | None = None) -> ProcessingEnvironment:
        """
        Validate options once, before any round runs.

        Raises `MissingOutputRoot` when `buildergen.generated` is unset or blank.
        """
        raw = (options.get(OUTPUT_DIR_OPTION) or "").strip()
        if not raw:
            raise MissingOutputRoot(f"Unable to get target directory: option '{OUTPUT_DIR_OPTION}' is not set")
        root = Path(raw).expanduser().resolve()
        if root.exists() and not root.is_dir():
            raise MissingOutputRoot(f"Output root is not a directory: {root}")
        return cls(
            output_root=root,
            messager=messager or Messager(),
            options=MappingProxyType(dict(options)),
        )


@dataclass(frozen=True)
class RoundEnvironment:
    tree: SourceTree
    processing_over: bool = False

    def elements_annotated_with_marker(self) -> list[Declaration]:
        return self.tree.marked_declarations()
