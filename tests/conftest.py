from __future__ import annotations

import shutil
import sys
from pathlib import Path
from typing import Iterator

import pytest

from buildergen.environment import OUTPUT_DIR_OPTION, Messager, ProcessingEnvironment
from buildergen.source import SourceTree

FIXTURES = Path(__file__).parent / "fixtures"


def _example_modules() -> list[str]:
    return [name for name in sys.modules if name == "example" or name.startswith("example.")]


@pytest.fixture
def fixture_tree() -> SourceTree:
    return SourceTree.load([FIXTURES])


@pytest.fixture
def environment(tmp_path: Path) -> ProcessingEnvironment:
    return ProcessingEnvironment.from_options({OUTPUT_DIR_OPTION: str(tmp_path / "generated")}, Messager())


@pytest.fixture
def example_root(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    """A private, importable copy of the `example` package."""
    root = tmp_path / "src"
    shutil.copytree(FIXTURES / "example", root / "example", ignore=shutil.ignore_patterns("__pycache__"))
    for name in _example_modules():
        monkeypatch.delitem(sys.modules, name)
    monkeypatch.syspath_prepend(str(root))
    yield root
    for name in _example_modules():
        del sys.modules[name]
