"""
introspector.py

Responsibility: Extract the ordered, de-duplicated field schema of a marked
class, including fields inherited from in-tree ancestors.

Ordering rule (the `dataclasses` rule):
- walk the C3 linearisation of in-tree classes from the root ancestor down
- each class contributes its annotated fields in source order
- a redeclared field keeps its first position and takes the newest annotation

Bases outside the source tree contribute no fields.
"""

from __future__ import annotations

import ast
import logging
from dataclasses import dataclass

from buildergen.resolver import CanonicalTypeRef, TypeNameResolver
from buildergen.source import Declaration, SourceTree, dotted_name

logger = logging.getLogger(__name__)

_CLASS_VAR_FORMS = frozenset({"typing.ClassVar", "typing_extensions.ClassVar"})
_KW_ONLY_MARKERS = frozenset({"dataclasses.KW_ONLY"})
_FIELD_FACTORIES = frozenset({"dataclasses.field"})


class IntrospectionError(RuntimeError):
    pass


@dataclass(frozen=True)
class FieldDescriptor:
    name: str
    type: CanonicalTypeRef
    declared_in: str


@dataclass(frozen=True)
class TypeDescriptor:
    """Identity and field schema of a marked class."""

    module: str
    qualname: str
    package: str = ""
    fields: tuple[FieldDescriptor, ...] = ()

    @property
    def simple_name(self) -> str:
        return self.qualname.rpartition(".")[2]

    @property
    def enclosing_scope(self) -> str:
        """Package of the defining module followed by the outer classes."""
        outer = self.qualname.rpartition(".")[0]
        return ".".join(part for part in (self.package, outer) if part)

    @property
    def qualified_name(self) -> str:
        return f"{self.module}.{self.qualname}"

    @property
    def field_names(self) -> tuple[str, ...]:
        return tuple(f.name for f in self.fields)


def _merge(sequences: list[list[Declaration]]) -> list[Declaration]:
    result: list[Declaration] = []
    seqs = [list(s) for s in sequences if s]
    while seqs:
        for seq in seqs:
            head = seq[0]
            if not any(head is other for s in seqs for other in s[1:]):
                break
        else:
            raise IntrospectionError("inconsistent method resolution order")
        result.append(head)
        for s in seqs:
            if s and s[0] is head:
                del s[0]
        seqs = [s for s in seqs if s]
    return result


class TypeIntrospector:
    def __init__(self, tree: SourceTree, resolver: TypeNameResolver) -> None:
        self._tree = tree
        self._resolver = resolver

    def describe(self, decl: Declaration) -> TypeDescriptor:
        if not decl.is_class:
            raise IntrospectionError(f"{decl.qualified_name} is not a class")

        fields: dict[str, FieldDescriptor] = {}
        for cls in reversed(self.linearize(decl)):
            for name, annotation in self._own_fields(cls):
                descriptor = FieldDescriptor(
                    name=name,
                    type=self._resolver.resolve(annotation, cls),
                    declared_in=cls.qualified_name,
                )
                # dict assignment keeps the first insertion position.
                fields[name] = descriptor

        return TypeDescriptor(
            module=decl.module.name,
            qualname=decl.qualname,
            package=decl.module.package,
            fields=tuple(fields.values()),
        )

    def linearize(self, decl: Declaration, _stack: tuple[str, ...] = ()) -> list[Declaration]:
        """C3 linearisation restricted to classes found in the source tree."""
        if decl.qualified_name in _stack:
            cycle = " -> ".join((*_stack, decl.qualified_name))
            raise IntrospectionError(f"cyclic inheritance: {cycle}")
        stack = (*_stack, decl.qualified_name)

        parents: list[Declaration] = []
        for base in self._tree.base_classes(decl):
            parent = self._tree.get_class(base)
            if parent is not None:
                parents.append(parent)

        return [decl] + _merge([self.linearize(p, stack) for p in parents] + [parents])

    def _own_fields(self, decl: Declaration) -> list[tuple[str, ast.expr]]:
        if not isinstance(decl.node, ast.ClassDef):
            raise IntrospectionError(f"{decl.qualified_name} is not a class")
        scope = (*decl.scope, decl.simple_name)
        found: list[tuple[str, ast.expr]] = []
        for stmt in decl.node.body:
            if not isinstance(stmt, ast.AnnAssign) or not isinstance(stmt.target, ast.Name):
                continue
            if self._is_class_var(stmt.annotation, decl, scope):
                continue
            if self._qualified(stmt.annotation, decl, scope) in _KW_ONLY_MARKERS:
                continue
            if self._excluded_from_init(stmt.value, decl, scope):
                continue
            found.append((stmt.target.id, stmt.annotation))
        return found

    def _qualified(self, expr: ast.expr, decl: Declaration, scope: tuple[str, ...]) -> str | None:
        if isinstance(expr, ast.Constant) and isinstance(expr.value, str):
            try:
                expr = ast.parse(expr.value.strip(), mode="eval").body
            except SyntaxError:
                return None
        name = dotted_name(expr)
        if name is None:
            return None
        return self._tree.qualify(decl.module, scope, name)

    def _is_class_var(self, annotation: ast.expr, decl: Declaration, scope: tuple[str, ...]) -> bool:
        if isinstance(annotation, ast.Constant) and isinstance(annotation.value, str):
            try:
                annotation = ast.parse(annotation.value.strip(), mode="eval").body
            except SyntaxError:
                return False
        if isinstance(annotation, ast.Subscript):
            annotation = annotation.value
        return self._qualified(annotation, decl, scope) in _CLASS_VAR_FORMS

    def _excluded_from_init(self, value: ast.expr | None, decl: Declaration, scope: tuple[str, ...]) -> bool:
        """True for `field(init=False)`."""
        if not isinstance(value, ast.Call):
            return False
        if self._qualified(value.func, decl, scope) not in _FIELD_FACTORIES:
            return False
        for keyword in value.keywords:
            if keyword.arg == "init" and isinstance(keyword.value, ast.Constant) and keyword.value.value is False:
                return True
        return False
