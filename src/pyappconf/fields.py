from __future__ import annotations

import dataclasses
import inspect
import typing
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from threading import Lock
from typing import Any, ClassVar

from .coercion import FieldKind, classify
from .errors import AppConfError

#: Members that never reach the store: the diagnostic message and the
#: back-reference to the provider that populated the object.
RESERVED_NAMES = frozenset({"error_message", "errormessage", "provider"})


@dataclass(frozen=True)
class FieldDescriptor:
    """A persistable member of a configuration type."""

    name: str
    type: Any
    kind: FieldKind
    element_type: Any = None

    @property
    def is_sequence(self) -> bool:
        return self.kind is FieldKind.SEQUENCE

    def get(self, obj: Any) -> Any:
        return getattr(obj, self.name, None)

    def set(self, obj: Any, value: Any) -> None:
        setattr(obj, self.name, value)


_CACHE: dict[type, tuple[FieldDescriptor, ...]] = {}
_REGISTERED: dict[type, tuple[str, ...]] = {}
_LOCK = Lock()


def is_reserved(name: str) -> bool:
    return name.lower() in RESERVED_NAMES


def _hints(cls: type) -> dict[str, Any]:
    try:
        return typing.get_type_hints(cls)
    except NameError as exc:
        raise AppConfError(f"Cannot resolve annotations of {cls.__name__}: {exc}") from exc


def _candidates(cls: type) -> Iterator[tuple[str, Any]]:
    hints = _hints(cls)
    if dataclasses.is_dataclass(cls):
        if cls.__dataclass_params__.frozen:
            return
        for f in dataclasses.fields(cls):
            yield f.name, hints.get(f.name, f.type)
        return

    seen: set[str] = set()
    for base in reversed(cls.__mro__):
        for name in inspect.get_annotations(base):
            if name in seen or name not in hints:
                continue
            tp = hints[name]
            if typing.get_origin(tp) is ClassVar or tp is ClassVar:
                continue
            attr = getattr(cls, name, None)
            if isinstance(attr, property) and attr.fset is None:
                continue
            seen.add(name)
            yield name, tp
        for name, attr in base.__dict__.items():
            if name in seen or not isinstance(attr, property) or attr.fset is None:
                continue
            ret = typing.get_type_hints(attr.fget).get("return") if attr.fget else None
            if ret is None:
                continue
            seen.add(name)
            yield name, ret


def _build(cls: type) -> tuple[FieldDescriptor, ...]:
    found = {
        name: tp
        for name, tp in _candidates(cls)
        if not name.startswith("_") and not is_reserved(name)
    }
    names: Iterable[str] = found
    registered = _REGISTERED.get(cls)
    if registered is not None:
        unknown = [n for n in registered if n not in found]
        if unknown:
            raise AppConfError(f"{cls.__name__} has no persistable members {unknown}")
        names = registered
    table = []
    for name in names:
        kind, element = classify(found[name])
        table.append(FieldDescriptor(name, found[name], kind, element))
    return tuple(table)


def describe(cls: type | Any) -> tuple[FieldDescriptor, ...]:
    """Return the persistable members of *cls* in declaration order.

    The table is built once per type and cached.  Instances are accepted and
    resolved to their type.
    """
    if not isinstance(cls, type):
        cls = type(cls)
    with _LOCK:
        cached = _CACHE.get(cls)
    if cached is not None:
        return cached
    table = _build(cls)
    with _LOCK:
        return _CACHE.setdefault(cls, table)


enumerate_fields = describe


def register_fields(cls: type, names: Iterable[str]) -> None:
    """Restrict and order the persisted members of *cls* explicitly."""
    with _LOCK:
        _REGISTERED[cls] = tuple(names)
        _CACHE.pop(cls, None)


def clear_cache() -> None:
    with _LOCK:
        _CACHE.clear()
