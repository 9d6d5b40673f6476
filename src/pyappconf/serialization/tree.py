"""Conversion between objects and text trees.

A text tree is a ``dict`` of member name to node, where a node is a string,
``None``, a list of nodes or another text tree (for nested dataclasses).
Text formats only ever see text trees.
"""
from __future__ import annotations

import dataclasses
from typing import Any, TypeVar

from ..coercion import (
    INVARIANT,
    SEQUENCE,
    ConverterRegistry,
    Culture,
    FieldKind,
    classify,
    make_sequence,
    string_to_value,
    unwrap_optional,
    value_to_string,
)
from ..errors import SerializationError
from ..fields import describe

T = TypeVar("T")

Node = str | None | list | dict
Tree = dict[str, Node]


def _is_record_type(tp: Any) -> bool:
    return isinstance(tp, type) and dataclasses.is_dataclass(tp)


def to_tree(obj: Any, culture: Culture = INVARIANT, registry: ConverterRegistry | None = None) -> Tree:
    return {
        field.name: _node(field.get(obj), culture, registry)
        for field in describe(type(obj))
    }


def _node(value: Any, culture: Culture, registry: ConverterRegistry | None) -> Node:
    if value is None:
        return None
    if _is_record_type(type(value)):
        return to_tree(value, culture, registry)
    text = value_to_string(value, culture, registry)
    if text is SEQUENCE:
        return [_node(item, culture, registry) for item in value]
    return text


def from_tree(
    tree: Tree,
    cls: type[T],
    culture: Culture = INVARIANT,
    registry: ConverterRegistry | None = None,
) -> T:
    if not isinstance(tree, dict):
        raise SerializationError(f"Expected a mapping for {cls.__name__}, got {type(tree).__name__}")
    values = {
        field.name: _value(tree[field.name], field.type, culture, registry)
        for field in describe(cls)
        if field.name in tree
    }
    if dataclasses.is_dataclass(cls):
        init = {f.name for f in dataclasses.fields(cls) if f.init}
        try:
            obj = cls(**{k: v for k, v in values.items() if k in init})
        except TypeError as exc:
            raise SerializationError(f"Cannot construct {cls.__name__}: {exc}") from exc
        rest = {k: v for k, v in values.items() if k not in init}
    else:
        obj = cls()
        rest = values
    for name, value in rest.items():
        setattr(obj, name, value)
    return obj


def _value(node: Node, tp: Any, culture: Culture, registry: ConverterRegistry | None) -> Any:
    if node is None:
        return None
    inner, _ = unwrap_optional(tp)
    if _is_record_type(inner):
        return from_tree(node, inner, culture, registry)
    kind, element = classify(inner)
    if kind is FieldKind.SEQUENCE:
        if not isinstance(node, list):
            raise SerializationError(f"Expected a list for {tp!r}")
        return make_sequence(inner, [_value(n, element, culture, registry) for n in node])
    if not isinstance(node, str):
        raise SerializationError(f"Expected text for {tp!r}, got {type(node).__name__}")
    return string_to_value(node, tp, culture, registry)
