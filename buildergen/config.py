"""
config.py

Responsibility: Load generator configuration from a YAML file into a typed,
immutable model.

Recognised keys (all optional in the file; CLI flags override them):
- source_roots: list of directories to scan (default: ["."])
- output_dir: root directory for generated builders
- options: extra processing options (string -> string)

Relative paths are resolved against the directory containing the file.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import yaml

from buildergen.environment import OUTPUT_DIR_OPTION, ConfigError

DEFAULT_CONFIG_FILE = "buildergen.yaml"


@dataclass(frozen=True)
class GeneratorConfig:
    source_roots: tuple[Path, ...] = (Path("."),)
    output_dir: Path | None = None
    options: dict[str, str] = field(default_factory=dict)

    def to_options(self) -> dict[str, str]:
        """Processing options as seen by `ProcessingEnvironment.from_options`."""
        opts = dict(self.options)
        if self.output_dir is not None:
            opts[OUTPUT_DIR_OPTION] = str(self.output_dir)
        return opts

    def with_overrides(
        self,
        *,
        source_roots: list[str] | None = None,
        output_dir: str | None = None,
    ) -> GeneratorConfig:
        cfg = self
        if source_roots:
            cfg = replace(cfg, source_roots=tuple(Path(p) for p in source_roots))
        if output_dir:
            cfg = replace(cfg, output_dir=Path(output_dir))
        return cfg


def _as_path(value: Any, base: Path, key: str) -> Path:
    if not isinstance(value, (str, Path)) or not str(value).strip():
        raise ConfigError(f"`{key}` must be a non-empty path string.")
    path = Path(str(value).strip()).expanduser()
    return path if path.is_absolute() else base / path


def parse_config(data: dict[str, Any], *, base_dir: Path = Path(".")) -> GeneratorConfig:
    roots_raw = data.get("source_roots")
    if roots_raw is None:
        roots_raw = ["."]
    if isinstance(roots_raw, str):
        roots_raw = [roots_raw]
    if not isinstance(roots_raw, list) or not roots_raw:
        raise ConfigError("`source_roots` must be a path or a non-empty list of paths.")
    source_roots = tuple(_as_path(r, base_dir, "source_roots") for r in roots_raw)

    output_raw = data.get("output_dir")
    output_dir = None if output_raw is None else _as_path(output_raw, base_dir, "output_dir")

    options_raw = data.get("options") or {}
    if not isinstance(options_raw, dict):
        raise ConfigError("`options` must be an object/mapping when provided.")
    # Ensure deterministic ordering at the boundary.
    options = {str(k): str(v) for k, v in sorted(options_raw.items(), key=lambda kv: str(kv[0]))}

    return GeneratorConfig(source_roots=source_roots, output_dir=output_dir, options=options)


def load_config(path: str | Path) -> GeneratorConfig:
    """Parse a YAML configuration file into a `GeneratorConfig`."""
    cfg_path = Path(path)
    if not cfg_path.exists():
        raise ConfigError(f"Config file does not exist: {cfg_path}")
    try:
        data = yaml.safe_load(cfg_path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Config file is not valid YAML: {cfg_path}") from e
    if not isinstance(data, dict):
        raise ConfigError("Config file must be a mapping/object at the top level.")
    return parse_config(data, base_dir=cfg_path.resolve().parent)
