from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from buildergen.source import DeclarationKind, SourceError, SourceTree


def test_load_discovers_modules_and_marked_classes(fixture_tree: SourceTree) -> None:
    assert list(fixture_tree.modules) == [
        "example",
        "example.garage",
        "example.garage.vehicles",
        "example.main",
    ]
    marked = [d.qualified_name for d in fixture_tree.marked_declarations()]
    assert marked == [
        "example.garage.vehicles.Truck",
        "example.main.Car",
        "example.main.Car.Engine",
    ]


def test_marker_is_recognised_through_imports_only() -> None:
    tree = SourceTree.from_sources(
        {
            "app.models": textwrap.dedent(
                """
                from buildergen import builder as make_builder
                from other import builder

                @make_builder
                class Kept:
                    x: int

                @builder
                class Ignored:
                    y: int
                """
            )
        }
    )
    assert [d.simple_name for d in tree.marked_declarations()] == ["Kept"]


def test_relative_imports_are_qualified() -> None:
    tree = SourceTree.from_sources(
        {
            "app": "",
            "app.models": "from .parts import Wheel\nfrom .. import shared\n",
        },
        packages={"app"},
    )
    module = tree.modules["app.models"]
    assert module.imports["Wheel"] == "app.parts.Wheel"
    assert tree.qualify(module, (), "Wheel") == "app.parts.Wheel"


def test_kind_of_classifies_declarations() -> None:
    tree = SourceTree.from_sources(
        {
            "app.kinds": textwrap.dedent(
                """
                import enum
                from typing import Protocol, TypedDict

                class Color(enum.Enum):
                    RED = 1

                class Shade(Color):
                    pass

                class Drawable(Protocol):
                    def draw(self) -> None: ...

                class Payload(TypedDict):
                    x: int

                class Plain:
                    x: int

                def helper():
                    pass
                """
            )
        }
    )
    kinds = {d.simple_name: tree.kind_of(d) for d in tree.iter_declarations() if d.scope == ()}
    assert kinds == {
        "Color": DeclarationKind.ENUM,
        "Shade": DeclarationKind.ENUM,
        "Drawable": DeclarationKind.INTERFACE,
        "Payload": DeclarationKind.TYPED_DICT,
        "Plain": DeclarationKind.CLASS,
        "helper": DeclarationKind.FUNCTION,
    }


def test_unparsable_module_is_collected(tmp_path: Path) -> None:
    (tmp_path / "good.py").write_text("class A:\n    x: int\n", encoding="utf-8")
    (tmp_path / "bad.py").write_text("class :\n", encoding="utf-8")
    errors: list[SourceError] = []
    tree = SourceTree.load([tmp_path], errors)
    assert list(tree.modules) == ["good"]
    assert len(errors) == 1
    assert "bad" in str(errors[0])

    with pytest.raises(SourceError):
        SourceTree.load([tmp_path])


def test_missing_root_raises(tmp_path: Path) -> None:
    with pytest.raises(SourceError, match="not a directory"):
        SourceTree.load([tmp_path / "nope"])
