"""
resolver.py

Responsibility: Turn a field's annotation into a canonical, fully qualified
type reference that generated code can emit from any module.

Resolution order for a name:
1) qualify it through Python scoping (class body, module, imports, builtins)
2) primitive-like builtins map to `builtins.<name>` flagged as primitive
3) standard-library names map to their defining module/qualname
4) anything else keeps its qualified name (same source tree or third party)

The resolver never raises; step 4 is the normal outcome for user types.
"""

from __future__ import annotations

import ast
import importlib
import logging
import sys
from dataclasses import dataclass
from typing import Any

from buildergen.source import Declaration, SourceModule, SourceTree, dotted_name

logger = logging.getLogger(__name__)

PRIMITIVES = frozenset({"bool", "int", "float", "complex", "str", "bytes"})

_LITERAL_FORMS = frozenset({"typing.Literal", "typing_extensions.Literal"})
_ANNOTATED_FORMS = frozenset({"typing.Annotated", "typing_extensions.Annotated"})


@dataclass(frozen=True)
class CanonicalTypeRef:
    """A resolved type; `literal` refs carry emitted text verbatim (Literal values, `...`)."""

    module: str
    qualname: str
    args: tuple[CanonicalTypeRef, ...] = ()
    primitive: bool = False
    literal: str | None = None

    @classmethod
    def of_literal(cls, text: str) -> CanonicalTypeRef:
        return cls(module="", qualname="", literal=text)

    @property
    def name(self) -> str:
        if self.literal is not None:
            return self.literal
        if self.module in ("", "builtins"):
            return self.qualname
        return f"{self.module}.{self.qualname}"

    @property
    def is_union(self) -> bool:
        return self.module == "typing" and self.qualname == "Union"

    def non_null(self) -> CanonicalTypeRef:
        """This type with `None` removed: `Optional[X]` and `X | None` give `X`."""
        if self.module == "typing" and self.qualname == "Optional" and len(self.args) == 1:
            return self.args[0]
        if not self.is_union:
            return self
        members = tuple(arg for arg in self.args if arg != NONE_REF)
        if not members or len(members) == len(self.args):
            return self
        if len(members) == 1:
            return members[0]
        return CanonicalTypeRef(module=self.module, qualname=self.qualname, args=members)

    def render(self) -> str:
        if self.literal is not None:
            return self.literal
        inner = ", ".join(arg.render() for arg in self.args)
        if not self.qualname:
            # Callable parameter list.
            return f"[{inner}]"
        if self.is_union and self.args:
            return " | ".join(arg.render() for arg in self.args)
        if not self.args:
            return self.name
        return f"{self.name}[{inner}]"

    def modules(self) -> set[str]:
        """Modules that must be imported for `render()` to evaluate."""
        found: set[str] = set()
        if self.literal is None and self.module not in ("", "builtins") and not (self.is_union and self.args):
            found.add(self.module)
        for arg in self.args:
            found |= arg.modules()
        return found

    def __str__(self) -> str:
        return self.render()


NONE_REF = CanonicalTypeRef(module="builtins", qualname="None")
ELLIPSIS_REF = CanonicalTypeRef.of_literal("...")


def _is_stdlib(module: str) -> bool:
    top = module.split(".")[0]
    return top == "builtins" or top in sys.stdlib_module_names


def _has_private_part(module: str) -> bool:
    return any(part.startswith("_") for part in module.split("."))


def _import_attribute(qualified: str) -> Any:
    """Import the longest importable module prefix and walk the rest as attributes."""
    parts = qualified.split(".")
    for i in range(len(parts) - 1, 0, -1):
        module_name = ".".join(parts[:i])
        try:
            obj: Any = importlib.import_module(module_name)
        except ImportError:
            continue
        for attr in parts[i:]:
            obj = getattr(obj, attr)
        return obj
    raise ImportError(qualified)


def _split_guess(qualified: str) -> tuple[str, str]:
    """
    Split a name outside the source tree into (module, qualname).

    Module segments are assumed to start lower-case; the first capitalised
    segment starts the qualname.
    """
    parts = qualified.split(".")
    for i, part in enumerate(parts[1:], start=1):
        if part[:1].isupper():
            return ".".join(parts[:i]), ".".join(parts[i:])
    return ".".join(parts[:-1]), parts[-1]


class TypeNameResolver:
    def __init__(self, tree: SourceTree) -> None:
        self._tree = tree
        self._cache: dict[str, CanonicalTypeRef] = {}

    def resolve(self, annotation: ast.expr, context: Declaration) -> CanonicalTypeRef:
        """Resolve an annotation found in the body of the class `context`."""
        scope = (*context.scope, context.simple_name)
        return self._resolve_expr(annotation, context.module, scope)

    def resolve_name(self, qualified: str) -> CanonicalTypeRef:
        cached = self._cache.get(qualified)
        if cached is None:
            cached = self._canonical(qualified)
            self._cache[qualified] = cached
            logger.debug("Resolved %s -> %s", qualified, cached.name)
        return cached

    def _resolve_expr(self, expr: ast.expr, module: SourceModule, scope: tuple[str, ...]) -> CanonicalTypeRef:
        if isinstance(expr, ast.Constant):
            if expr.value is None:
                return NONE_REF
            if expr.value is Ellipsis:
                return ELLIPSIS_REF
            if isinstance(expr.value, str):
                # Forward reference.
                try:
                    parsed = ast.parse(expr.value.strip(), mode="eval").body
                except SyntaxError:
                    return CanonicalTypeRef.of_literal(repr(expr.value))
                return self._resolve_expr(parsed, module, scope)
            return CanonicalTypeRef.of_literal(repr(expr.value))

        name = dotted_name(expr)
        if name is not None:
            return self.resolve_name(self._tree.qualify(module, scope, name))

        if isinstance(expr, ast.Subscript):
            base = self._resolve_expr(expr.value, module, scope)
            elts = expr.slice.elts if isinstance(expr.slice, ast.Tuple) else [expr.slice]
            if base.name in _LITERAL_FORMS:
                args = tuple(CanonicalTypeRef.of_literal(ast.unparse(e)) for e in elts)
            elif base.name in _ANNOTATED_FORMS and elts:
                args = (self._resolve_expr(elts[0], module, scope),) + tuple(
                    CanonicalTypeRef.of_literal(ast.unparse(e)) for e in elts[1:]
                )
            else:
                args = tuple(self._resolve_list(e, module, scope) for e in elts)
            return CanonicalTypeRef(module=base.module, qualname=base.qualname, args=args, primitive=base.primitive)

        if isinstance(expr, ast.BinOp) and isinstance(expr.op, ast.BitOr):
            members: list[CanonicalTypeRef] = []
            for side in (expr.left, expr.right):
                ref = self._resolve_expr(side, module, scope)
                members.extend(ref.args if ref.is_union and ref.args else (ref,))
            return CanonicalTypeRef(module="typing", qualname="Union", args=tuple(members))

        return CanonicalTypeRef.of_literal(ast.unparse(expr))

    def _resolve_list(self, expr: ast.expr, module: SourceModule, scope: tuple[str, ...]) -> CanonicalTypeRef:
        # Callable[[A, B], R] carries a bare list as its first argument.
        if isinstance(expr, ast.List):
            items = tuple(self._resolve_expr(e, module, scope) for e in expr.elts)
            return CanonicalTypeRef(module="", qualname="", args=items)
        return self._resolve_expr(expr, module, scope)

    def _canonical(self, qualified: str) -> CanonicalTypeRef:
        module, _, qualname = qualified.rpartition(".")

        if module == "builtins" and qualname in PRIMITIVES:
            return CanonicalTypeRef(module="builtins", qualname=qualname, primitive=True)

        if _is_stdlib(qualified):
            found = self._lookup_stdlib(qualified)
            if found is not None:
                return found

        in_tree = self._tree.split_qualified(qualified)
        if in_tree is not None:
            return CanonicalTypeRef(module=in_tree[0], qualname=in_tree[1])
        if not module:
            return CanonicalTypeRef(module="", qualname=qualname)
        module, qualname = _split_guess(qualified)
        return CanonicalTypeRef(module=module, qualname=qualname)

    def _lookup_stdlib(self, qualified: str) -> CanonicalTypeRef | None:
        try:
            obj = _import_attribute(qualified)
        except (ImportError, AttributeError):
            return None

        origin = getattr(obj, "__origin__", None)
        if isinstance(origin, type):
            obj = origin
        if not isinstance(obj, type):
            # Special forms (Optional, Union, Literal...) keep the spelling used.
            module, qualname = _split_guess(qualified)
            return CanonicalTypeRef(module=module, qualname=qualname)

        module = getattr(obj, "__module__", None)
        qualname = getattr(obj, "__qualname__", None)
        if not module or not qualname or "<" in qualname:
            return None
        if _has_private_part(module):
            module, qualname = _split_guess(qualified)
        primitive = module == "builtins" and qualname in PRIMITIVES
        return CanonicalTypeRef(module=module, qualname=qualname, primitive=primitive)
