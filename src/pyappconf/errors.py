class AppConfError(Exception):
    """Base class for pyappconf errors."""


class MissingStoreError(AppConfError):
    """Raised when a configuration document is absent or cannot be parsed."""


class TypeConversionError(AppConfError, ValueError):
    """Raised when a stored string cannot be turned into the target type."""


class UnhandledTypeError(TypeConversionError):
    """Raised when no conversion strategy exists for a type."""


class PersistenceError(AppConfError):
    """Raised when a configuration document cannot be saved."""


class EncryptionError(AppConfError):
    """Raised for errors in the field encryption subsystem."""


class SerializationError(AppConfError):
    """Raised when an object cannot be serialized or restored."""
