"""
blueprint.py

Responsibility: Describe the builder module to generate for one
`TypeDescriptor`, without producing any text.

The renderer treats a `BuilderSpec` as the single source of truth, so every
naming and ordering decision about the generated code is made here.
"""

from __future__ import annotations

import keyword
from dataclasses import dataclass

from buildergen.introspector import TypeDescriptor
from buildergen.resolver import CanonicalTypeRef

BUILDER_SUFFIX = "Builder"
BUILD_METHOD = "build"
RUNTIME_MODULE = "buildergen.runtime"
FLUENT_DECORATOR = "fluent"

# Names the generated class body needs for itself.
_RESERVED = frozenset({BUILD_METHOD, FLUENT_DECORATOR, "self"})


class BlueprintError(ValueError):
    pass


@dataclass(frozen=True)
class PropertySpec:
    """Private slot holding one field's value, `ABSENT` until its setter runs."""

    name: str
    type: CanonicalTypeRef

    @property
    def attribute(self) -> str:
        return f"_{self.name}"


@dataclass(frozen=True)
class SetterSpec:
    name: str
    parameter: str
    type: CanonicalTypeRef
    returns: str


@dataclass(frozen=True)
class BuildMethodSpec:
    target: str
    target_module: str
    arguments: tuple[str, ...]


@dataclass(frozen=True)
class BuilderSpec:
    name: str
    namespace: str
    source: str
    members: tuple[tuple[PropertySpec, SetterSpec], ...]
    build: BuildMethodSpec
    imports: tuple[str, ...]

    @property
    def module_name(self) -> str:
        """Dotted name the generated module imports as from the output root."""
        if not self.namespace:
            return self.name
        return f"{self.namespace}.{self.name}"

    @property
    def properties(self) -> tuple[PropertySpec, ...]:
        return tuple(p for p, _ in self.members)

    @property
    def setters(self) -> tuple[SetterSpec, ...]:
        return tuple(s for _, s in self.members)


def builder_name(simple_name: str) -> str:
    name = f"{simple_name}{BUILDER_SUFFIX}"
    if name[0].islower():
        name = name[0].upper() + name[1:]
    return name


def namespace_for(enclosing_scope: str) -> str:
    return enclosing_scope.lower()


def _check_field_name(descriptor: TypeDescriptor, name: str) -> None:
    if not name.isidentifier() or keyword.iskeyword(name):
        raise BlueprintError(f"{descriptor.qualified_name}: field '{name}' is not a valid setter name")
    if name in _RESERVED:
        raise BlueprintError(f"{descriptor.qualified_name}: field '{name}' is reserved by the generated builder")
    if name.startswith("__"):
        raise BlueprintError(f"{descriptor.qualified_name}: private field '{name}' cannot have a public setter")


class BuilderSpecBuilder:
    def build(self, descriptor: TypeDescriptor) -> BuilderSpec:
        name = builder_name(descriptor.simple_name)

        members: list[tuple[PropertySpec, SetterSpec]] = []
        imports: set[str] = {descriptor.module}
        for f in descriptor.fields:
            _check_field_name(descriptor, f.name)
            members.append(
                (
                    PropertySpec(name=f.name, type=f.type),
                    SetterSpec(name=f.name, parameter=f.name, type=f.type.non_null(), returns=name),
                )
            )
            imports |= f.type.modules()

        imports.discard(RUNTIME_MODULE)
        return BuilderSpec(
            name=name,
            namespace=namespace_for(descriptor.enclosing_scope),
            source=descriptor.qualified_name,
            members=tuple(members),
            build=BuildMethodSpec(
                target=descriptor.qualified_name,
                target_module=descriptor.module,
                arguments=descriptor.field_names,
            ),
            imports=tuple(sorted(imports)),
        )
