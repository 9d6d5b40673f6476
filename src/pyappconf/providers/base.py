from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from pathlib import Path
from threading import Lock, RLock
from typing import Any, TypeVar

from ..coercion import (
    INVARIANT,
    SEQUENCE,
    ConverterRegistry,
    Culture,
    default_registry,
    make_sequence,
    string_to_value,
    unwrap_optional,
    value_to_string,
)
from ..encryption import FieldEncryptor, parse_field_list
from ..errors import TypeConversionError, UnhandledTypeError
from ..fields import FieldDescriptor, describe
from ..paths import DEFAULT_APP_NAME
from ..xmldoc import DEFAULT_SECTION, ConfigDocument

logger = logging.getLogger(__name__)

T = TypeVar("T")

Lookup = Callable[[str], "str | None"]

_LOCKS: dict[str, RLock] = {}
_LOCKS_GUARD = Lock()


def write_lock(target: Path | str) -> RLock:
    """Return the lock serialising writes to *target*.

    Locks are process-local; nothing coordinates writers in other processes.
    """
    key = str(Path(target).expanduser().resolve())
    with _LOCKS_GUARD:
        lock = _LOCKS.get(key)
        if lock is None:
            lock = _LOCKS[key] = RLock()
        return lock


class ConfigurationProvider(ABC):
    """Reads configuration objects from a store and writes them back.

    Subclasses supply the store lookups and the document that gets written;
    this class walks the fields, converts values, applies the encryption
    hooks and serialises writes.

    When a stored value cannot be converted the field keeps its current value
    and a warning is logged.  With ``strict=True`` the
    :class:`~pyappconf.errors.TypeConversionError` propagates from
    :meth:`read` instead.
    """

    def __init__(
        self,
        *,
        configuration_section: str | None = None,
        properties_to_encrypt: str | Iterable[str] | None = None,
        encryption_key: bytes | str | None = None,
        culture: Culture | None = None,
        converters: ConverterRegistry | None = None,
        strict: bool = False,
        app_name: str = DEFAULT_APP_NAME,
    ) -> None:
        self.configuration_section = configuration_section
        self.properties_to_encrypt = parse_field_list(properties_to_encrypt)
        self.encryption_key = encryption_key
        self.culture = culture or INVARIANT
        self.converters = converters or default_registry
        self.strict = strict
        self.app_name = app_name
        self.error_message = ""
        self._encryptor: FieldEncryptor | None = None

    @property
    def section_name(self) -> str:
        return self.configuration_section or DEFAULT_SECTION

    # ----- public API -----

    @abstractmethod
    def read(self, config: Any) -> bool:
        """Populate *config* from the store, self-healing missing keys."""

    def read_new(self, cls: type[T]) -> T | None:
        """Return a freshly constructed *cls* populated from the store."""
        config = cls()
        if not self.read(config):
            return None
        return config

    def write(self, config: Any) -> bool:
        """Persist *config*; return ``False`` if the store cannot be saved."""
        self.encrypt_fields(config)
        try:
            with write_lock(self.target_path()):
                return self._write(config)
        finally:
            self.decrypt_fields(config)

    @abstractmethod
    def target_path(self) -> Path:
        """Return the document written by :meth:`write`."""

    @abstractmethod
    def _write(self, config: Any) -> bool:
        pass

    # ----- encryption hooks -----

    def _get_encryptor(self) -> FieldEncryptor:
        if self._encryptor is None:
            self._encryptor = FieldEncryptor(self.encryption_key, app_name=self.app_name)
        return self._encryptor

    def encrypt_fields(self, config: Any) -> None:
        if self.properties_to_encrypt:
            self._get_encryptor().encrypt_fields(config, self.properties_to_encrypt)

    def decrypt_fields(self, config: Any) -> None:
        if self.properties_to_encrypt:
            self._get_encryptor().decrypt_fields(config, self.properties_to_encrypt)

    # ----- store reader -----

    def _convert(self, text: str, tp: Any, name: str) -> tuple[bool, Any]:
        try:
            return True, string_to_value(text, tp, self.culture, self.converters)
        except UnhandledTypeError as exc:
            if self.strict:
                raise
            logger.warning("skipping %s: %s", name, exc)
        except TypeConversionError as exc:
            if self.strict:
                raise
            logger.warning("keeping current value of %s: %s", name, exc)
        return False, None

    def _read_sequence(self, config: Any, field: FieldDescriptor, lookup: Lookup) -> None:
        """Probe ``name1``, ``name2``... and assign the whole sequence.

        Nothing stored means an empty sequence, or ``None`` for an
        ``Optional`` sequence type.
        """
        items: list[Any] = []
        index = 1
        text = lookup(f"{field.name}{index}")
        while text is not None:
            ok, value = self._convert(text, field.element_type, f"{field.name}{index}")
            if not ok:
                return
            items.append(value)
            index += 1
            text = lookup(f"{field.name}{index}")
        if not items and unwrap_optional(field.type)[1]:
            field.set(config, None)
            return
        field.set(config, make_sequence(field.type, items))

    def _read_fields(self, config: Any, lookup: Lookup) -> bool:
        """Assign every stored field onto *config*; return True if any scalar was missing."""
        missing = False
        for field in describe(type(config)):
            if field.is_sequence:
                self._read_sequence(config, field, lookup)
                continue
            text = lookup(field.name)
            if text is None:
                logger.debug("%s missing from %s", field.name, self.section_name)
                missing = True
                continue
            ok, value = self._convert(text, field.type, field.name)
            if ok:
                field.set(config, value)
        return missing

    # ----- store writer -----

    def _item_text(self, value: Any, name: str) -> str:
        text = value_to_string(value, self.culture, self.converters)
        if text is SEQUENCE:
            logger.warning("nested sequence in %s stored as plain text", name)
            return str(value)
        return text

    def _write_fields(self, config: Any, doc: ConfigDocument, *, ignore_case: bool = False) -> None:
        section = self.section_name
        fields = describe(type(config))
        names = frozenset(f.name for f in fields)
        doc.ensure_section(section)
        for field in fields:
            raw = field.get(config)
            text = value_to_string(raw, self.culture, self.converters)
            if field.is_sequence and (raw is None or text is SEQUENCE):
                # sequences only ever live under indexed keys
                doc.remove(section, field.name, ignore_case=ignore_case)
                count = 0
                for item in raw or ():
                    count += 1
                    key = f"{field.name}{count}"
                    doc.upsert(section, key, self._item_text(item, key), ignore_case=ignore_case)
                doc.prune_indexed(
                    section, field.name, count, protected=names, ignore_case=ignore_case
                )
            elif text is SEQUENCE:
                doc.upsert(section, field.name, self._item_text(raw, field.name), ignore_case=ignore_case)
            else:
                doc.upsert(section, field.name, text, ignore_case=ignore_case)

    def _set_error(self, message: str) -> None:
        self.error_message = message
        logger.error(message)
