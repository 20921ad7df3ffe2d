from __future__ import annotations

import textwrap

import pytest

from buildergen.introspector import IntrospectionError, TypeIntrospector
from buildergen.resolver import TypeNameResolver
from buildergen.source import SourceTree


def _describe(tree: SourceTree, qualified: str):
    decl = tree.get_class(qualified)
    assert decl is not None
    return TypeIntrospector(tree, TypeNameResolver(tree)).describe(decl)


def _tree(source: str) -> SourceTree:
    return SourceTree.from_sources({"shop.models": textwrap.dedent(source)})


def test_fields_keep_declaration_order(fixture_tree: SourceTree) -> None:
    car = _describe(fixture_tree, "example.main.Car")
    assert car.field_names == ("name", "brand", "engine")
    assert [f.type.render() for f in car.fields] == ["str", "str", "example.main.Car.Engine"]
    assert car.simple_name == "Car"
    assert car.enclosing_scope == "example"


def test_nested_class_is_described_independently(fixture_tree: SourceTree) -> None:
    engine = _describe(fixture_tree, "example.main.Car.Engine")
    assert engine.field_names == ("name", "fuel")
    assert engine.fields[1].type.primitive
    assert engine.enclosing_scope == "example.Car"
    assert engine.qualified_name == "example.main.Car.Engine"


def test_inherited_fields_come_first_and_non_fields_are_skipped(fixture_tree: SourceTree) -> None:
    truck = _describe(fixture_tree, "example.garage.vehicles.Truck")
    # ClassVar, field(init=False), methods, properties and nested classes are not fields.
    assert truck.field_names == ("wheels", "registered", "payload", "owners", "trailer")
    assert truck.fields[0].declared_in == "example.garage.vehicles.Vehicle"
    assert truck.fields[1].type.render() == "datetime.date"
    assert truck.fields[3].type.render() == "list[str]"
    assert truck.fields[4].type.render() == "typing.Optional[example.garage.vehicles.Trailer]"


def test_redeclared_field_keeps_first_position_with_newest_type() -> None:
    tree = _tree(
        """
        class Base:
            id: int
            label: str

        class Child(Base):
            extra: bytes
            id: str
        """
    )
    child = _describe(tree, "shop.models.Child")
    assert child.field_names == ("id", "label", "extra")
    assert child.fields[0].type.render() == "str"
    assert child.fields[0].declared_in == "shop.models.Child"


def test_diamond_follows_c3_order() -> None:
    tree = _tree(
        """
        class Root:
            a: int

        class Left(Root):
            b: int

        class Right(Root):
            c: int

        class Leaf(Left, Right):
            d: int
        """
    )
    leaf = _describe(tree, "shop.models.Leaf")
    # reversed MRO: Root, Right, Left, Leaf
    assert leaf.field_names == ("a", "c", "b", "d")


def test_kw_only_sentinel_is_not_a_field() -> None:
    tree = _tree(
        """
        from dataclasses import KW_ONLY

        class Options:
            verbose: bool
            _: KW_ONLY
            level: int
        """
    )
    assert _describe(tree, "shop.models.Options").field_names == ("verbose", "level")


def test_external_bases_contribute_nothing() -> None:
    tree = _tree(
        """
        from typing import NamedTuple

        class Pair(NamedTuple):
            left: int
            right: int
        """
    )
    assert _describe(tree, "shop.models.Pair").field_names == ("left", "right")


def test_cyclic_hierarchy_is_an_error() -> None:
    tree = _tree(
        """
        class A(B):
            x: int

        class B(A):
            y: int
        """
    )
    with pytest.raises(IntrospectionError, match="cyclic inheritance"):
        _describe(tree, "shop.models.A")


def test_describing_a_function_fails() -> None:
    tree = _tree(
        """
        def factory():
            return None
        """
    )
    decl = next(tree.iter_declarations())
    introspector = TypeIntrospector(tree, TypeNameResolver(tree))
    with pytest.raises(IntrospectionError, match="shop.models.factory is not a class"):
        introspector.describe(decl)
    with pytest.raises(IntrospectionError, match="is not a class"):
        introspector._own_fields(decl)


def test_enclosing_scope_is_package_plus_outer_classes() -> None:
    tree = SourceTree.from_sources(
        {
            "shop": "class Cart:\n    class Line:\n        sku: str\n",
            "shop.orders": "class Order:\n    id: int\n",
            "standalone": "class Note:\n    text: str\n",
        },
        packages={"shop"},
    )
    assert _describe(tree, "shop.Cart").enclosing_scope == "shop"
    assert _describe(tree, "shop.Cart.Line").enclosing_scope == "shop.Cart"
    assert _describe(tree, "shop.orders.Order").enclosing_scope == "shop"
    assert _describe(tree, "standalone.Note").enclosing_scope == ""
