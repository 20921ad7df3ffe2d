"""
source.py

Responsibility: Statically load a Python source tree and answer the reflection
questions the generator asks about it.

- Modules are parsed with `ast`; user code is never imported or executed.
- Each module gets an import table so dotted names can be qualified.
- Classes are addressable by fully qualified name (`pkg.mod.Outer.Inner`).
- Iteration order is deterministic: modules sorted by name, declarations in
  source order (outer before nested).
"""

from __future__ import annotations

import ast
import builtins
import enum
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator

from buildergen.marker import MARKER_NAMES

logger = logging.getLogger(__name__)


class SourceError(RuntimeError):
    def __init__(self, message: str, location: str | None = None) -> None:
        super().__init__(message)
        self.location = location


class DeclarationKind(enum.Enum):
    CLASS = "class"
    ENUM = "enum"
    INTERFACE = "interface"
    TYPED_DICT = "typed dict"
    FUNCTION = "function"

    @property
    def is_class_like(self) -> bool:
        return self is DeclarationKind.CLASS


_ENUM_BASES = frozenset({"enum.Enum", "enum.IntEnum", "enum.StrEnum", "enum.Flag", "enum.IntFlag"})
_INTERFACE_BASES = frozenset({"typing.Protocol", "typing_extensions.Protocol"})
_TYPED_DICT_BASES = frozenset({"typing.TypedDict", "typing_extensions.TypedDict"})
_TYPE_ALIAS = getattr(ast, "TypeAlias", ())


@dataclass
class SourceModule:
    name: str
    path: Path
    tree: ast.Module
    is_package: bool = False
    imports: dict[str, str] = field(default_factory=dict)
    # Names bound at module level by class/def/assignment.
    definitions: set[str] = field(default_factory=set)

    @property
    def package(self) -> str:
        if self.is_package:
            return self.name
        return self.name.rpartition(".")[0]


@dataclass(frozen=True, eq=False)
class Declaration:
    """A class or function statement located in a `SourceModule`."""

    module: SourceModule
    node: ast.ClassDef | ast.FunctionDef | ast.AsyncFunctionDef
    scope: tuple[str, ...] = ()

    @property
    def simple_name(self) -> str:
        return self.node.name

    @property
    def qualname(self) -> str:
        return ".".join((*self.scope, self.node.name))

    @property
    def qualified_name(self) -> str:
        return f"{self.module.name}.{self.qualname}"

    @property
    def location(self) -> str:
        return f"{self.module.path}:{self.node.lineno}:{self.node.col_offset + 1}"

    @property
    def is_class(self) -> bool:
        return isinstance(self.node, ast.ClassDef)

    def nested_classes(self) -> dict[str, ast.ClassDef]:
        if not isinstance(self.node, ast.ClassDef):
            return {}
        return {stmt.name: stmt for stmt in self.node.body if isinstance(stmt, ast.ClassDef)}


def dotted_name(expr: ast.expr) -> str | None:
    """Return `a.b.c` for a Name/Attribute chain, None for anything else."""
    parts: list[str] = []
    while isinstance(expr, ast.Attribute):
        parts.append(expr.attr)
        expr = expr.value
    if not isinstance(expr, ast.Name):
        return None
    parts.append(expr.id)
    return ".".join(reversed(parts))


def _module_name(root: Path, path: Path) -> tuple[str, bool]:
    rel = path.relative_to(root).with_suffix("")
    parts = list(rel.parts)
    is_package = parts[-1] == "__init__"
    if is_package:
        parts = parts[:-1]
    return ".".join(parts), is_package


def _iter_source_files(root: Path) -> list[Path]:
    files: list[Path] = []
    for dirpath, dirnames, filenames in os.walk(root):
        # Hidden directories and caches never hold importable modules.
        dirnames[:] = [d for d in dirnames if not d.startswith(".") and d != "__pycache__"]
        for name in filenames:
            if name.endswith(".py"):
                files.append(Path(dirpath) / name)
    files.sort(key=lambda p: str(p.relative_to(root)).replace(os.sep, "/"))
    return files


def _resolve_relative(module: SourceModule, level: int, target: str | None) -> str:
    package_parts = module.package.split(".") if module.package else []
    if level > 1:
        package_parts = package_parts[: len(package_parts) - (level - 1)]
    base = ".".join(package_parts)
    if target:
        return f"{base}.{target}" if base else target
    return base


def _collect_bindings(module: SourceModule) -> None:
    for stmt in module.tree.body:
        if isinstance(stmt, ast.Import):
            for alias in stmt.names:
                if alias.asname:
                    module.imports[alias.asname] = alias.name
                else:
                    top = alias.name.split(".")[0]
                    module.imports[top] = top
        elif isinstance(stmt, ast.ImportFrom):
            source = stmt.module or ""
            if stmt.level:
                source = _resolve_relative(module, stmt.level, stmt.module)
            for alias in stmt.names:
                if alias.name == "*":
                    continue
                local = alias.asname or alias.name
                module.imports[local] = f"{source}.{alias.name}" if source else alias.name
        elif isinstance(stmt, (ast.ClassDef, ast.FunctionDef, ast.AsyncFunctionDef)):
            module.definitions.add(stmt.name)
        elif isinstance(stmt, ast.Assign):
            for target in stmt.targets:
                if isinstance(target, ast.Name):
                    module.definitions.add(target.id)
        elif isinstance(stmt, ast.AnnAssign) and isinstance(stmt.target, ast.Name):
            module.definitions.add(stmt.target.id)
        elif isinstance(stmt, _TYPE_ALIAS):
            module.definitions.add(stmt.name.id)


class SourceTree:
    """Parsed view of one or more source roots."""

    def __init__(self, modules: dict[str, SourceModule] | None = None) -> None:
        self._modules: dict[str, SourceModule] = dict(sorted((modules or {}).items()))
        self._classes: dict[str, Declaration] = {}
        for decl in self.iter_declarations():
            if decl.is_class:
                self._classes[decl.qualified_name] = decl

    @classmethod
    def empty(cls) -> SourceTree:
        return cls({})

    @classmethod
    def from_sources(cls, sources: dict[str, str], *, packages: set[str] | None = None) -> SourceTree:
        """Build a tree from `{module name: source text}`; used by tests and tools."""
        modules: dict[str, SourceModule] = {}
        for name, text in sources.items():
            is_package = name in (packages or set())
            parts = name.split(".")
            if is_package:
                path = Path(*parts, "__init__.py")
            else:
                path = Path(*parts[:-1], f"{parts[-1]}.py")
            modules[name] = parse_module(name, path, text, is_package=is_package)
        return cls(modules)

    @classmethod
    def load(cls, roots: list[Path] | tuple[Path, ...], errors: list[SourceError] | None = None) -> SourceTree:
        """
        Parse every `.py` file under the given roots.

        Unparsable files are skipped; the failure is appended to `errors`
        when given, otherwise raised.
        """
        modules: dict[str, SourceModule] = {}
        for root in roots:
            root = Path(root).resolve()
            if not root.is_dir():
                raise SourceError(f"Source root is not a directory: {root}")
            for path in _iter_source_files(root):
                name, is_package = _module_name(root, path)
                if not name:
                    continue
                try:
                    modules[name] = read_module(name, path, is_package=is_package)
                except SourceError as e:
                    if errors is None:
                        raise
                    errors.append(e)
        logger.debug("Loaded %d module(s) from %d root(s)", len(modules), len(roots))
        return cls(modules)

    @property
    def modules(self) -> dict[str, SourceModule]:
        return self._modules

    def iter_declarations(self) -> Iterator[Declaration]:
        for module in self._modules.values():
            yield from _walk(module, module.tree.body, ())

    def marked_declarations(self) -> list[Declaration]:
        return [decl for decl in self.iter_declarations() if self.is_marked(decl)]

    def is_marked(self, decl: Declaration) -> bool:
        for deco in decl.node.decorator_list:
            target = deco.func if isinstance(deco, ast.Call) else deco
            name = dotted_name(target)
            if name and self.qualify(decl.module, (), name) in MARKER_NAMES:
                return True
        return False

    def get_class(self, qualified_name: str) -> Declaration | None:
        return self._classes.get(qualified_name)

    def qualify(self, module: SourceModule, scope: tuple[str, ...], name: str) -> str:
        """
        Qualify a dotted name the way Python would see it from a class body
        nested at `scope` inside `module`.
        """
        head, _, rest = name.partition(".")
        qualified = self._qualify_head(module, scope, head)
        return f"{qualified}.{rest}" if rest else qualified

    def _qualify_head(self, module: SourceModule, scope: tuple[str, ...], head: str) -> str:
        if scope:
            owner = self._classes.get(".".join((module.name, *scope)))
            if owner is not None and head in owner.nested_classes():
                return f"{owner.qualified_name}.{head}"
        if head in module.definitions:
            return f"{module.name}.{head}"
        if head in module.imports:
            return module.imports[head]
        if hasattr(builtins, head):
            return f"builtins.{head}"
        # Unknown names are treated as belonging to the declaring module.
        return f"{module.name}.{head}"

    def split_qualified(self, qualified_name: str) -> tuple[str, str] | None:
        """Split an in-tree name into (module, qualname); None if not in the tree."""
        parts = qualified_name.split(".")
        for i in range(len(parts) - 1, 0, -1):
            module = ".".join(parts[:i])
            if module in self._modules:
                return module, ".".join(parts[i:])
        return None

    def base_classes(self, decl: Declaration) -> list[str]:
        """Qualified names of the declared bases, in declaration order."""
        if not isinstance(decl.node, ast.ClassDef):
            return []
        bases: list[str] = []
        for expr in decl.node.bases:
            if isinstance(expr, ast.Subscript):
                expr = expr.value
            name = dotted_name(expr)
            if name is None:
                continue
            # Base expressions are evaluated in the enclosing scope, not the class body.
            bases.append(self.qualify(decl.module, decl.scope, name))
        return bases

    def kind_of(self, decl: Declaration) -> DeclarationKind:
        if not decl.is_class:
            return DeclarationKind.FUNCTION
        seen: set[str] = set()
        pending = [decl]
        while pending:
            current = pending.pop()
            if current.qualified_name in seen:
                continue
            seen.add(current.qualified_name)
            for base in self.base_classes(current):
                if base in _ENUM_BASES:
                    return DeclarationKind.ENUM
                if base in _INTERFACE_BASES:
                    return DeclarationKind.INTERFACE
                if base in _TYPED_DICT_BASES:
                    return DeclarationKind.TYPED_DICT
                parent = self._classes.get(base)
                if parent is not None:
                    pending.append(parent)
        return DeclarationKind.CLASS


def _walk(module: SourceModule, body: list[ast.stmt], scope: tuple[str, ...]) -> Iterator[Declaration]:
    for stmt in body:
        if isinstance(stmt, ast.ClassDef):
            yield Declaration(module=module, node=stmt, scope=scope)
            yield from _walk(module, stmt.body, (*scope, stmt.name))
        elif isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef)):
            yield Declaration(module=module, node=stmt, scope=scope)


def parse_module(name: str, path: Path, text: str, *, is_package: bool = False) -> SourceModule:
    try:
        tree = ast.parse(text, filename=str(path))
    except SyntaxError as e:
        raise SourceError(f"cannot parse module {name}: {e.msg}", f"{path}:{e.lineno or 0}:{e.offset or 0}") from e
    module = SourceModule(name=name, path=path, tree=tree, is_package=is_package)
    _collect_bindings(module)
    return module


def read_module(name: str, path: Path, *, is_package: bool = False) -> SourceModule:
    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise SourceError(f"cannot decode module {name}: {e.reason}", str(path)) from e
    return parse_module(name, path, text, is_package=is_package)
