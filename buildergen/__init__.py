"""
buildergen package

This package generates fluent builder modules for classes marked `@builder`.

Key responsibilities are split across modules:
- `source.py`: parse a source tree and answer reflection questions about it
- `resolver.py`: canonical, importable names for field annotations
- `introspector.py`: ordered field schema of a marked class (with ancestors)
- `blueprint.py`: in-memory description of the builder to generate
- `renderer.py`: deterministic rendering/writing into the output tree
- `processor.py`: processing rounds and per-element error isolation
- `runtime.py`: support code imported by generated builders
- `cli.py`: CLI entrypoint (config -> rounds -> report)
"""

from __future__ import annotations

__all__ = ["__version__", "builder"]

__version__ = "0.1.0"

from buildergen.marker import builder  # noqa: E402
