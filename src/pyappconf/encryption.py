"""Field-level encryption hooks.

Selected string members of a configuration object are encrypted right
before they are written and decrypted again afterwards, so the object seen
by the caller always holds plain text.  Encrypted values carry an ``ENC:``
prefix; values without it are treated as plain text on decryption.
"""
from __future__ import annotations

import base64
import logging
import os
from collections.abc import Iterable
from typing import Any

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from .errors import EncryptionError
from .paths import DEFAULT_APP_NAME

logger = logging.getLogger(__name__)

PREFIX = "ENC:"
KEY_ENV = "PYAPPCONF_ENCRYPTION_KEY"
KEYRING_DOMAIN = "pyappconf"

# Static salt - not secret, just adds entropy
_SALT = b"pyappconf.fields.v1"
_ITERATIONS = 100_000


def parse_field_list(names: str | Iterable[str] | None) -> tuple[str, ...]:
    """Accept ``"a, b"`` or ``["a", "b"]`` and return clean member names."""
    if not names:
        return ()
    if isinstance(names, str):
        names = names.split(",")
    return tuple(n.strip() for n in names if n and n.strip())


def is_encrypted(text: str | None) -> bool:
    return bool(text) and text.startswith(PREFIX)


class FieldEncryptor:
    """Fernet encryption keyed by a passphrase.

    The passphrase is taken from *key*, the ``PYAPPCONF_ENCRYPTION_KEY``
    environment variable or the system keyring entry
    ``pyappconf / master::<app_name>``, in that order.
    """

    def __init__(self, key: bytes | str | None = None, *, app_name: str = DEFAULT_APP_NAME) -> None:
        self.app_name = app_name
        self._password = self._discover_key(key)
        self._fernet: Fernet | None = None

    def _discover_key(self, key: bytes | str | None) -> bytes | None:
        if key is not None:
            return key if isinstance(key, bytes) else key.encode("utf-8")
        env = os.environ.get(KEY_ENV)
        if env:
            return env.encode("utf-8")
        try:
            import keyring  # type: ignore

            val = keyring.get_password(KEYRING_DOMAIN, f"master::{self.app_name}")
        except Exception as exc:  # pragma: no cover - keyring missing or broken
            logger.debug("keyring lookup failed: %s", exc)
            return None
        return val.encode("utf-8") if val else None

    def available(self) -> bool:
        return self._password is not None

    def _cipher(self) -> Fernet:
        if self._password is None:
            raise EncryptionError("No encryption key configured")
        if self._fernet is None:
            kdf = PBKDF2HMAC(
                algorithm=hashes.SHA256(),
                length=32,
                salt=_SALT,
                iterations=_ITERATIONS,
            )
            self._fernet = Fernet(base64.urlsafe_b64encode(kdf.derive(self._password)))
        return self._fernet

    def encrypt(self, text: str) -> str:
        if not text or is_encrypted(text):
            return text
        token = self._cipher().encrypt(text.encode("utf-8"))
        return PREFIX + token.decode("ascii")

    def decrypt(self, text: str) -> str:
        """Return the plain text of *text*; undecryptable values come back unchanged."""
        if not is_encrypted(text):
            return text
        try:
            plain = self._cipher().decrypt(text[len(PREFIX):].encode("ascii"))
        except (InvalidToken, EncryptionError) as exc:
            logger.error("failed to decrypt value: %s", str(exc) or "invalid token")
            return text
        return plain.decode("utf-8")

    def encrypt_fields(self, config: Any, names: Iterable[str]) -> None:
        for name in names:
            value = getattr(config, name, None)
            if isinstance(value, str):
                setattr(config, name, self.encrypt(value))
            elif value is not None:
                logger.warning("cannot encrypt non-string member %s", name)

    def decrypt_fields(self, config: Any, names: Iterable[str]) -> None:
        for name in names:
            value = getattr(config, name, None)
            if isinstance(value, str):
                setattr(config, name, self.decrypt(value))


__all__ = [
    "FieldEncryptor",
    "is_encrypted",
    "parse_field_list",
]
