import logging

from .appconfig import AppConfiguration
from .coercion import (
    INVARIANT,
    ConverterRegistry,
    Culture,
    FieldKind,
    register_converter,
    string_to_value,
    value_to_string,
)
from .errors import (
    AppConfError,
    EncryptionError,
    MissingStoreError,
    PersistenceError,
    SerializationError,
    TypeConversionError,
    UnhandledTypeError,
)
from .fields import describe, register_fields
from .providers import ConfigurationFileProvider, ConfigurationProvider
from .settings_store import SettingsStore

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"

__all__ = [
    "AppConfiguration",
    "ConfigurationProvider",
    "ConfigurationFileProvider",
    "SettingsStore",
    "Culture",
    "INVARIANT",
    "ConverterRegistry",
    "FieldKind",
    "register_converter",
    "string_to_value",
    "value_to_string",
    "describe",
    "register_fields",
    "AppConfError",
    "EncryptionError",
    "MissingStoreError",
    "PersistenceError",
    "SerializationError",
    "TypeConversionError",
    "UnhandledTypeError",
]
