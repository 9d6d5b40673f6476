"""String <-> typed value conversion for configuration fields.

Every persisted value is a string.  :func:`value_to_string` and
:func:`string_to_value` translate between those strings and the declared
types of configuration fields.  The fixed primitive kinds (numbers, dates,
booleans, UUIDs, enums, ``bytes`` and ``Optional`` wrappers) are handled
here; anything else goes through a :class:`ConverterRegistry` or a
``from_string`` factory on the target type.
"""
from __future__ import annotations

import base64
import binascii
import datetime as dt
import enum
import locale
import logging
import types
import typing
import uuid
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import PurePath
from typing import Any, NamedTuple, Union

from .errors import TypeConversionError, UnhandledTypeError

logger = logging.getLogger(__name__)

_SCALAR_ITERABLES = (str, bytes, bytearray)
_TRUE_WORDS = frozenset({"true", "on", "1"})


class FieldKind(enum.Enum):
    SCALAR = "scalar"
    SEQUENCE = "sequence"


class _SequenceSentinel:
    __slots__ = ()

    def __repr__(self) -> str:
        return "SEQUENCE"


#: Returned by :func:`value_to_string` for sequence values.  The caller has to
#: expand the sequence and convert it element by element.
SEQUENCE = _SequenceSentinel()


@dataclass(frozen=True)
class Culture:
    """Number and date formatting rules used for conversions.

    ``datetime_format``/``date_format`` are ``strftime`` patterns; when unset
    ISO-8601 is used, which round-trips microseconds and UTC offsets.
    """

    decimal_point: str = "."
    thousands_sep: str = ","
    datetime_format: str | None = None
    date_format: str | None = None

    @classmethod
    def invariant(cls) -> Culture:
        return INVARIANT

    @classmethod
    def current(cls) -> Culture:
        """Return a culture using the process locale's number symbols."""
        conv = locale.localeconv()
        return cls(
            decimal_point=conv.get("decimal_point") or ".",
            thousands_sep=conv.get("thousands_sep") or "",
        )


INVARIANT = Culture()


# ---------------------------------------------------------------------------
# Type classification
# ---------------------------------------------------------------------------

def unwrap_optional(tp: Any) -> tuple[Any, bool]:
    """Return ``(inner, True)`` for ``Optional[inner]`` and ``(tp, False)`` otherwise."""
    origin = typing.get_origin(tp)
    if origin is Union or origin is types.UnionType:
        args = typing.get_args(tp)
        inner = [a for a in args if a is not type(None)]
        if len(inner) == 1 and len(args) == 2:
            return inner[0], True
    return tp, False


def classify(tp: Any) -> tuple[FieldKind, Any]:
    """Classify *tp* as a scalar or a sequence of some element type.

    Strings and byte strings are iterable but always count as scalars.
    """
    inner, _ = unwrap_optional(tp)
    origin = typing.get_origin(inner) or inner
    if not isinstance(origin, type) or issubclass(origin, _SCALAR_ITERABLES):
        return FieldKind.SCALAR, None
    if issubclass(origin, Sequence):
        args = typing.get_args(inner)
        element = args[0] if args and args[0] is not Ellipsis else str
        return FieldKind.SEQUENCE, element
    return FieldKind.SCALAR, None


def is_sequence_value(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, _SCALAR_ITERABLES)


def make_sequence(tp: Any, items: Iterable[Any]) -> Sequence[Any]:
    """Build a fresh container matching the declared sequence type *tp*."""
    inner, _ = unwrap_optional(tp)
    origin = typing.get_origin(inner) or inner
    if isinstance(origin, type) and issubclass(origin, tuple):
        return tuple(items)
    if isinstance(origin, type) and issubclass(origin, list) and origin is not list:
        return origin(items)
    return list(items)


# ---------------------------------------------------------------------------
# Converter registry
# ---------------------------------------------------------------------------

class Converter(NamedTuple):
    to_string: Callable[[Any, Culture], str]
    from_string: Callable[[str, type, Culture], Any]


class ConverterRegistry:
    """Maps types to :class:`Converter` pairs.

    Lookups walk the MRO of the requested type, so a converter registered for
    a base class also serves its subclasses.  A registry created with
    :meth:`child` falls back to its parent for types it does not know.
    """

    def __init__(self, parent: ConverterRegistry | None = None) -> None:
        self._converters: dict[type, Converter] = {}
        self._parent = parent

    def add(self, tp: type, converter: Converter) -> None:
        self._converters[tp] = converter

    def register(
        self,
        tp: type,
        to_string: Callable[[Any], str],
        from_string: Callable[[str], Any],
    ) -> None:
        """Register plain one-argument conversion functions for *tp*."""
        self.add(
            tp,
            Converter(
                lambda value, culture: to_string(value),
                lambda text, target, culture: from_string(text),
            ),
        )

    def unregister(self, tp: type) -> None:
        self._converters.pop(tp, None)

    def lookup(self, tp: type) -> Converter | None:
        for base in getattr(tp, "__mro__", (tp,)):
            conv = self._converters.get(base)
            if conv is not None:
                return conv
        if self._parent is not None:
            return self._parent.lookup(tp)
        return None

    def child(self) -> ConverterRegistry:
        return ConverterRegistry(parent=self)


# ----- built-in converters -----

def _normalize_number(text: str, culture: Culture) -> str:
    s = text.strip()
    if culture.thousands_sep:
        s = s.replace(culture.thousands_sep, "")
    if culture.decimal_point != ".":
        s = s.replace(culture.decimal_point, ".")
    return s


def _localize_number(text: str, culture: Culture) -> str:
    if culture.decimal_point != ".":
        return text.replace(".", culture.decimal_point)
    return text


def _parse_int(text: str, target: type, culture: Culture) -> int:
    if not text.strip():
        return 0
    s = _normalize_number(text, culture)
    try:
        return int(s)
    except ValueError:
        pass
    try:
        number = Decimal(s)
    except InvalidOperation as exc:
        raise TypeConversionError(f"{text!r} is not an integer") from exc
    if not number.is_finite() or number != number.to_integral_value():
        raise TypeConversionError(f"{text!r} is not an integer")
    return int(number)


def _parse_float(text: str, target: type, culture: Culture) -> float:
    if not text.strip():
        return 0.0
    try:
        return float(_normalize_number(text, culture))
    except ValueError as exc:
        raise TypeConversionError(f"{text!r} is not a number") from exc


def _parse_decimal(text: str, target: type, culture: Culture) -> Decimal:
    if not text.strip():
        return Decimal(0)
    try:
        return Decimal(_normalize_number(text, culture))
    except InvalidOperation as exc:
        raise TypeConversionError(f"{text!r} is not a decimal") from exc


def _format_datetime(value: dt.datetime, culture: Culture) -> str:
    if culture.datetime_format:
        return value.strftime(culture.datetime_format)
    return value.isoformat()


def _parse_datetime(text: str, target: type, culture: Culture) -> dt.datetime:
    s = text.strip()
    if not s:
        return dt.datetime.min
    try:
        if culture.datetime_format:
            return dt.datetime.strptime(s, culture.datetime_format)
        return dt.datetime.fromisoformat(s)
    except ValueError as exc:
        raise TypeConversionError(f"{text!r} is not a date-time") from exc


def _format_date(value: dt.date, culture: Culture) -> str:
    if culture.date_format:
        return value.strftime(culture.date_format)
    return value.isoformat()


def _parse_date(text: str, target: type, culture: Culture) -> dt.date:
    s = text.strip()
    if not s:
        return dt.date.min
    try:
        if culture.date_format:
            return dt.datetime.strptime(s, culture.date_format).date()
        return dt.date.fromisoformat(s)
    except ValueError as exc:
        raise TypeConversionError(f"{text!r} is not a date") from exc


def _parse_time(text: str, target: type, culture: Culture) -> dt.time:
    s = text.strip()
    if not s:
        return dt.time.min
    try:
        return dt.time.fromisoformat(s)
    except ValueError as exc:
        raise TypeConversionError(f"{text!r} is not a time") from exc


def _parse_bool(text: str, target: type, culture: Culture) -> bool:
    return text.strip().lower() in _TRUE_WORDS


def _parse_uuid(text: str, target: type, culture: Culture) -> uuid.UUID:
    s = text.strip()
    if not s:
        return uuid.UUID(int=0)
    try:
        return uuid.UUID(s)
    except ValueError as exc:
        raise TypeConversionError(f"{text!r} is not a UUID") from exc


def _format_bytes(value: bytes, culture: Culture) -> str:
    return base64.b64encode(bytes(value)).decode("ascii")


def _parse_bytes(text: str, target: type, culture: Culture) -> bytes:
    try:
        raw = base64.b64decode(text.strip(), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise TypeConversionError(f"{text!r} is not valid base64") from exc
    return target(raw) if target is not bytes else raw


def _parse_enum(text: str, target: type[enum.Enum], culture: Culture) -> enum.Enum:
    try:
        return target[text.strip()]
    except KeyError as exc:
        raise TypeConversionError(f"{text!r} is not a member of {target.__name__}") from exc


def _builtin_registry() -> ConverterRegistry:
    reg = ConverterRegistry()
    reg.add(str, Converter(lambda v, c: v, lambda t, tp, c: t))
    reg.add(bool, Converter(lambda v, c: str(v), _parse_bool))
    reg.add(int, Converter(lambda v, c: str(int(v)), _parse_int))
    reg.add(float, Converter(lambda v, c: _localize_number(repr(float(v)), c), _parse_float))
    reg.add(Decimal, Converter(lambda v, c: _localize_number(str(v), c), _parse_decimal))
    reg.add(dt.datetime, Converter(_format_datetime, _parse_datetime))
    reg.add(dt.date, Converter(_format_date, _parse_date))
    reg.add(dt.time, Converter(lambda v, c: v.isoformat(), _parse_time))
    reg.add(uuid.UUID, Converter(lambda v, c: str(v), _parse_uuid))
    reg.add(bytes, Converter(_format_bytes, _parse_bytes))
    reg.add(bytearray, Converter(_format_bytes, _parse_bytes))
    reg.add(PurePath, Converter(lambda v, c: str(v), lambda t, tp, c: tp(t)))
    return reg


_BUILTINS = _builtin_registry()

#: Shared registry used by providers unless they are given their own.
#: Register custom types here or on a :meth:`ConverterRegistry.child`.
default_registry = _BUILTINS.child()


def register_converter(
    tp: type,
    to_string: Callable[[Any], str],
    from_string: Callable[[str], Any],
) -> None:
    """Register conversion functions for *tp* on the default registry."""
    default_registry.register(tp, to_string, from_string)


# ---------------------------------------------------------------------------
# Conversions
# ---------------------------------------------------------------------------

def value_to_string(
    value: Any,
    culture: Culture = INVARIANT,
    registry: ConverterRegistry | None = None,
) -> str | _SequenceSentinel:
    """Return the persisted text form of *value*.

    Sequences (other than ``str``/``bytes``) yield :data:`SEQUENCE`.
    """
    if value is None:
        return ""
    if isinstance(value, enum.Enum):
        return value.name
    if isinstance(value, str):
        return str(value)
    if is_sequence_value(value):
        return SEQUENCE
    conv = (registry or default_registry).lookup(type(value))
    if conv is not None:
        return conv.to_string(value, culture)
    return str(value)


def string_to_value(
    text: str | None,
    target_type: Any,
    culture: Culture = INVARIANT,
    registry: ConverterRegistry | None = None,
) -> Any:
    """Convert persisted *text* into a value of *target_type*.

    Raises :class:`TypeConversionError` when the text does not fit the type and
    :class:`UnhandledTypeError` when no strategy exists for the type at all.
    """
    registry = registry or default_registry
    inner, nullable = unwrap_optional(target_type)
    if nullable:
        if not text or text.lower() == "null":
            return None
        return string_to_value(text, inner, culture, registry)
    if text is None:
        text = ""
    if target_type is Any or target_type is object:
        return text
    if not isinstance(target_type, type):
        raise UnhandledTypeError(f"No conversion for {target_type!r}")
    if issubclass(target_type, enum.Enum):
        return _parse_enum(text, target_type, culture)

    conv = registry.lookup(target_type)
    if conv is not None:
        try:
            return conv.from_string(text, target_type, culture)
        except TypeConversionError:
            raise
        except (ValueError, TypeError, ArithmeticError) as exc:
            raise TypeConversionError(
                f"Cannot convert {text!r} to {target_type.__name__}: {exc}"
            ) from exc

    factory = getattr(target_type, "from_string", None)
    if callable(factory):
        try:
            return factory(text)
        except Exception as exc:
            raise TypeConversionError(
                f"{target_type.__name__}.from_string failed for {text!r}: {exc}"
            ) from exc

    logger.debug("no conversion strategy for %s", target_type.__name__)
    raise UnhandledTypeError(f"No conversion for {target_type.__name__}")
