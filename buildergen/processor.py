"""
processor.py

Responsibility: Drive processing rounds over a source tree.

High-level flow per round:
1) Find every declaration carrying `@builder`
2) Class-like declarations: introspect -> blueprint -> render/write
3) Anything else: report an InvalidPlacement diagnostic

Each element's outcome is collected independently; a failing element never
stops the round. Only configuration errors abort.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from buildergen.blueprint import BlueprintError, BuilderSpecBuilder
from buildergen.config import GeneratorConfig
from buildergen.environment import ConfigError, Diagnostic, Messager, ProcessingEnvironment, RoundEnvironment
from buildergen.introspector import IntrospectionError, TypeIntrospector
from buildergen.marker import MARKER_NAME, MARKER_NAMES
from buildergen.renderer import CodeEmitter, RenderError
from buildergen.resolver import TypeNameResolver
from buildergen.source import Declaration, SourceError, SourceTree

logger = logging.getLogger(__name__)

INVALID_PLACEMENT = "InvalidPlacement"


@dataclass(frozen=True)
class ElementOutcome:
    element: str
    status: str  # generated | unchanged | stale | missing | failed | invalid
    path: Path | None = None
    diagnostic: Diagnostic | None = None
    module: str | None = None

    @property
    def ok(self) -> bool:
        return self.status in ("generated", "unchanged")


@dataclass(frozen=True)
class RoundResult:
    claimed: bool
    outcomes: tuple[ElementOutcome, ...] = ()

    @property
    def ok(self) -> bool:
        return all(o.ok for o in self.outcomes)

    def by_status(self, status: str) -> list[ElementOutcome]:
        return [o for o in self.outcomes if o.status == status]


class BuilderProcessor:
    supported_markers = MARKER_NAMES

    def __init__(self, environment: ProcessingEnvironment, *, check: bool = False) -> None:
        self._environment = environment
        self._emitter = CodeEmitter(environment)
        self._specs = BuilderSpecBuilder()
        self._check = check

    @property
    def messager(self) -> Messager:
        return self._environment.messager

    def process(self, round_env: RoundEnvironment) -> RoundResult:
        if round_env.processing_over:
            self.messager.note("This round will not be subject to a subsequent round of processing")

        elements = round_env.elements_annotated_with_marker()
        if not elements:
            self.messager.note(f"Not able to find @{MARKER_NAME} in this round")
            return RoundResult(claimed=True)

        resolver = TypeNameResolver(round_env.tree)
        introspector = TypeIntrospector(round_env.tree, resolver)

        outcomes: list[ElementOutcome] = []
        # Output path -> element that produced it this round.
        claimed: dict[Path, str] = {}
        for element in elements:
            kind = round_env.tree.kind_of(element)
            if not kind.is_class_like:
                diagnostic = self.messager.error(
                    f"The marker is invalid for the {kind.value} {element.simple_name}. "
                    f"Please put @{MARKER_NAME} on a class",
                    element,
                    kind=INVALID_PLACEMENT,
                )
                outcomes.append(ElementOutcome(element.qualified_name, "invalid", diagnostic=diagnostic))
                continue
            outcomes.append(self._process_class(element, introspector, claimed))

        return RoundResult(claimed=True, outcomes=tuple(outcomes))

    def _process_class(
        self,
        element: Declaration,
        introspector: TypeIntrospector,
        claimed: dict[Path, str],
    ) -> ElementOutcome:
        try:
            descriptor = introspector.describe(element)
            self.messager.note(
                f"All members for {descriptor.qualified_name}: "
                + ", ".join(f"{f.name}: {f.type}" for f in descriptor.fields),
                element,
            )
            spec = self._specs.build(descriptor)
            path = self._emitter.path_for(spec)
            owner = claimed.get(path)
            if owner is not None:
                diagnostic = self.messager.error(
                    f"Cannot generate builder for {element.qualified_name}: {path} is already generated for {owner}",
                    element,
                )
                return ElementOutcome(element.qualified_name, "failed", diagnostic=diagnostic)
            claimed[path] = element.qualified_name
            self.messager.note(f"Writing {spec.module_name}", element)
            result = self._emitter.emit(spec, check=self._check)
        except ConfigError:
            raise
        except (IntrospectionError, BlueprintError, RenderError, SourceError, OSError) as e:
            diagnostic = self.messager.error(f"Cannot generate builder for {element.qualified_name}: {e}", element)
            return ElementOutcome(element.qualified_name, "failed", diagnostic=diagnostic)

        if result.status in ("stale", "missing"):
            problem = "out of date" if result.status == "stale" else "missing"
            diagnostic = self.messager.error(f"{result.path} is {problem} (run generator)", element)
            return ElementOutcome(
                element.qualified_name, result.status, path=result.path, diagnostic=diagnostic, module=spec.module_name
            )
        logger.info("%s: %s", result.status, result.path)
        return ElementOutcome(element.qualified_name, result.status, path=result.path, module=spec.module_name)


def generate(
    config: GeneratorConfig,
    *,
    check: bool = False,
    messager: Messager | None = None,
) -> list[RoundResult]:
    """
    Run a full generation pass: one processing round over the source tree,
    then the final (empty) round.

    Raises `ConfigError` (including `MissingOutputRoot`) before any round runs.
    """
    environment = ProcessingEnvironment.from_options(config.to_options(), messager)

    errors: list[SourceError] = []
    try:
        tree = SourceTree.load(config.source_roots, errors)
    except SourceError as e:
        raise ConfigError(str(e)) from e
    for err in errors:
        environment.messager.error(str(err), location=err.location)

    processor = BuilderProcessor(environment, check=check)
    return [
        processor.process(RoundEnvironment(tree=tree)),
        processor.process(RoundEnvironment(tree=SourceTree.empty(), processing_over=True)),
    ]
