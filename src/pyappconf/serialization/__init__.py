"""Object serialization to structured text (XML, YAML) or binary.

Text forms go through the same field table and conversions as the
configuration providers, so anything a provider can store can be
serialized.  The binary form uses :mod:`pickle`; only load binary data you
produced yourself.
"""
from __future__ import annotations

import logging
import pickle
from pathlib import Path
from typing import Any, TypeVar

from ..coercion import INVARIANT, SEQUENCE, ConverterRegistry, Culture, value_to_string
from ..errors import SerializationError
from ..fields import describe
from .base import BaseFormat

logger = logging.getLogger(__name__)

T = TypeVar("T")

_REGISTRY: dict[str, type[BaseFormat]] = {}
_BY_SUFFIX: dict[str, type[BaseFormat]] = {}


def register_format(fmt: type[BaseFormat]) -> type[BaseFormat]:
    """Register a format class and return it for decorator use."""
    _REGISTRY[fmt.name] = fmt
    for suf in fmt.suffixes:
        _BY_SUFFIX[suf] = fmt
    return fmt


def get_format(name: str) -> BaseFormat:
    fmt_cls = _REGISTRY.get(name.lower())
    if fmt_cls is None:
        raise ValueError(f"Unknown format {name!r}")
    return fmt_cls()


def get_format_for_path(path: Path) -> BaseFormat:
    fmt_cls = _BY_SUFFIX.get(path.suffix.lower())
    if fmt_cls is None:
        raise ValueError(f"No format for {path.suffix}")
    return fmt_cls()


# register default formats
from . import xml_format, yaml_format  # noqa: F401,E402
from .tree import from_tree, to_tree  # noqa: E402


def serialize(
    obj: Any,
    fmt: str = "xml",
    *,
    culture: Culture = INVARIANT,
    registry: ConverterRegistry | None = None,
) -> str:
    return get_format(fmt).dumps(to_tree(obj, culture, registry), type(obj).__name__)


def deserialize(
    text: str,
    cls: type[T],
    fmt: str = "xml",
    *,
    culture: Culture = INVARIANT,
    registry: ConverterRegistry | None = None,
) -> T:
    return from_tree(get_format(fmt).loads(text), cls, culture, registry)


def object_to_string(obj: Any, separator: str = ", ", *, culture: Culture = INVARIANT) -> str:
    """Return a one-line ``name: value`` dump of the persistable members of *obj*."""
    parts = []
    for field in describe(type(obj)):
        value = field.get(obj)
        text = value_to_string(value, culture)
        if text is SEQUENCE:
            text = "[" + ", ".join(str(value_to_string(v, culture)) for v in value) + "]"
        parts.append(f"{field.name}: {text}")
    return separator.join(parts)


def serialize_to_bytes(obj: Any) -> bytes:
    try:
        return pickle.dumps(obj, protocol=pickle.HIGHEST_PROTOCOL)
    except (pickle.PicklingError, TypeError, AttributeError) as exc:
        raise SerializationError(f"Cannot serialize {type(obj).__name__}: {exc}") from exc


def deserialize_from_bytes(data: bytes, cls: type[T]) -> T:
    try:
        obj = pickle.loads(data)
    except (pickle.UnpicklingError, EOFError, AttributeError, ImportError, ValueError) as exc:
        raise SerializationError(f"Cannot restore {cls.__name__}: {exc}") from exc
    if not isinstance(obj, cls):
        raise SerializationError(f"Expected {cls.__name__}, got {type(obj).__name__}")
    return obj


def serialize_to_file(
    obj: Any,
    path: Path | str,
    *,
    binary: bool = False,
    throw_exceptions: bool = False,
) -> bool:
    """Write *obj* to *path*; the text format follows the file suffix."""
    path = Path(path)
    try:
        if binary:
            payload = serialize_to_bytes(obj)
        else:
            fmt = get_format_for_path(path)
            payload = fmt.dumps(to_tree(obj), type(obj).__name__).encode("utf-8")
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(path.suffix + ".tmp")
        tmp.write_bytes(payload)
        tmp.replace(path)
    except (SerializationError, ValueError, OSError) as exc:
        if throw_exceptions:
            raise
        logger.error("serialize to %s failed: %s", path, exc)
        return False
    return True


def deserialize_from_file(
    path: Path | str,
    cls: type[T],
    *,
    binary: bool = False,
    throw_exceptions: bool = False,
) -> T | None:
    """Load a *cls* instance from *path*; ``None`` on failure unless *throw_exceptions*."""
    path = Path(path)
    try:
        if binary:
            return deserialize_from_bytes(path.read_bytes(), cls)
        fmt = get_format_for_path(path)
        return from_tree(fmt.loads(path.read_text(encoding="utf-8")), cls)
    except (SerializationError, ValueError, OSError) as exc:
        if throw_exceptions:
            raise
        logger.error("deserialize from %s failed: %s", path, exc)
        return None


__all__ = [
    "BaseFormat",
    "register_format",
    "get_format",
    "get_format_for_path",
    "serialize",
    "deserialize",
    "serialize_to_bytes",
    "deserialize_from_bytes",
    "serialize_to_file",
    "deserialize_from_file",
    "object_to_string",
]
