"""
cli.py

Responsibility: CLI entrypoint for buildergen.

High-level flow (single command `generate`):
1) Load `buildergen.yaml` (when present) and apply CLI overrides
2) Validate the output root once, before any round
3) Run the processing rounds and print one line per marked class

This module should orchestrate behavior but keep concerns isolated:
- Configuration: `config.py`
- Processing rounds: `processor.py`
- Rendering/writing: `renderer.py`
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from buildergen import __version__
from buildergen.config import DEFAULT_CONFIG_FILE, GeneratorConfig, load_config
from buildergen.environment import ConfigError, Messager, Severity
from buildergen.processor import generate

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2


class CLIError(RuntimeError):
    pass


def _configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _load_config(args: argparse.Namespace) -> GeneratorConfig:
    if args.config:
        cfg = load_config(args.config)
    elif Path(DEFAULT_CONFIG_FILE).is_file():
        cfg = load_config(DEFAULT_CONFIG_FILE)
    else:
        cfg = GeneratorConfig()
    return cfg.with_overrides(source_roots=args.source_roots, output_dir=args.out)


def generate_cmd(args: argparse.Namespace) -> int:
    try:
        cfg = _load_config(args)
    except ConfigError as e:
        raise CLIError(str(e)) from e

    messager = Messager()
    try:
        rounds = generate(cfg, check=bool(args.check), messager=messager)
    except ConfigError as e:
        raise CLIError(str(e)) from e

    for diagnostic in messager.diagnostics:
        if diagnostic.severity is not Severity.NOTE or args.verbose:
            print(diagnostic, file=sys.stderr)

    failed = messager.has_errors
    for round_result in rounds:
        for outcome in round_result.outcomes:
            if outcome.path is not None and outcome.ok:
                print(f"{outcome.status}: {outcome.path}")
            failed = failed or not outcome.ok

    return EXIT_FAILED if failed else EXIT_OK


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="buildergen", description="Generate fluent builders for @builder classes")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = p.add_subparsers(dest="command", required=True)

    g = sub.add_parser("generate", help="Generate builder modules for every marked class")
    g.add_argument("source_roots", nargs="*", help="Source roots to scan (overrides config source_roots)")
    g.add_argument("--out", default=None, help="Output root for generated builders (overrides config output_dir)")
    g.add_argument("--config", default=None, help=f"Config file (default: ./{DEFAULT_CONFIG_FILE} when present)")
    g.add_argument("--check", action="store_true", help="Only check generated files are up to date")
    g.add_argument("-v", "--verbose", action="count", default=0, help="Increase log verbosity (-v, -vv)")

    g.set_defaults(func=generate_cmd)
    return p


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)
    try:
        return int(args.func(args))
    except CLIError as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_CONFIG


if __name__ == "__main__":
    raise SystemExit(main())
