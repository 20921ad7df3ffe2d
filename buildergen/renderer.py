"""
renderer.py

Responsibility: Deterministically render a `BuilderSpec` to Python source and
place it in the output tree.

Rules:
- Output path = <output root>/<namespace as directories>/<BuilderName>.py.
- Rendering depends only on the `BuilderSpec`, so unchanged input gives identical bytes.
- Files are replaced atomically; an identical file on disk is left untouched.
- In check mode nothing is written; drift is reported as `stale`/`missing`.

This module intentionally does NOT know about source trees or introspection.
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path

from jinja2 import Environment, PackageLoader, StrictUndefined, TemplateError

from buildergen import __version__
from buildergen.blueprint import BuilderSpec
from buildergen.environment import MissingOutputRoot, ProcessingEnvironment

TEMPLATE_NAME = "builder.py.j2"


class RenderError(RuntimeError):
    pass


@dataclass(frozen=True)
class EmitResult:
    path: Path
    status: str  # generated | unchanged | stale | missing

    @property
    def up_to_date(self) -> bool:
        return self.status in ("generated", "unchanged")


def _template_env() -> Environment:
    return Environment(
        loader=PackageLoader("buildergen", "templates"),
        autoescape=False,
        undefined=StrictUndefined,
        keep_trailing_newline=True,
        trim_blocks=True,
        lstrip_blocks=True,
    )


def _slots_literal(spec: BuilderSpec) -> str:
    names = [f'"{p.attribute}"' for p in spec.properties]
    if len(names) == 1:
        return f"({names[0]},)"
    return f"({', '.join(names)})"


def render_builder(spec: BuilderSpec, env: Environment | None = None) -> str:
    env = env or _template_env()
    try:
        template = env.get_template(TEMPLATE_NAME)
        out = template.render(spec=spec, slots=_slots_literal(spec), version=__version__)
    except TemplateError as e:
        raise RenderError(f"Failed rendering builder for {spec.source}") from e
    return out


def output_path(output_root: Path, spec: BuilderSpec) -> Path:
    return output_root.joinpath(*spec.module_name.split(".")).with_suffix(".py")


def _write_atomic(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as fh:
            fh.write(text)
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise


class CodeEmitter:
    def __init__(self, environment: ProcessingEnvironment) -> None:
        self._environment = environment
        self._jinja = _template_env()

    @property
    def output_root(self) -> Path:
        root = self._environment.output_root
        if root.exists() and not root.is_dir():
            raise MissingOutputRoot(f"Output root is not a directory: {root}")
        return root

    def render(self, spec: BuilderSpec) -> str:
        return render_builder(spec, self._jinja)

    def path_for(self, spec: BuilderSpec) -> Path:
        return output_path(self.output_root, spec)

    def emit(self, spec: BuilderSpec, *, check: bool = False) -> EmitResult:
        path = self.path_for(spec)
        text = self.render(spec)

        existing: str | None = None
        if path.is_file():
            existing = path.read_text(encoding="utf-8")

        if existing == text:
            return EmitResult(path=path, status="unchanged")
        if check:
            return EmitResult(path=path, status="missing" if existing is None else "stale")

        _write_atomic(path, text)
        return EmitResult(path=path, status="generated")
