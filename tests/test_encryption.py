from __future__ import annotations

import sys
from pathlib import Path

import pytest

from pyappconf.encryption import FieldEncryptor, is_encrypted, parse_field_list
from pyappconf.errors import EncryptionError
from pyappconf.providers import ConfigurationFileProvider

from tests.utils import Secrets, entries


def test_parse_field_list():
    assert parse_field_list(None) == ()
    assert parse_field_list("Password, ApiKey ,") == ("Password", "ApiKey")
    assert parse_field_list(["A", " B "]) == ("A", "B")


def test_encrypt_decrypt_roundtrip():
    enc = FieldEncryptor("pw")
    token = enc.encrypt("secret")
    assert is_encrypted(token)
    assert token != "ENC:secret"
    assert enc.encrypt(token) == token
    assert enc.decrypt(token) == "secret"
    assert enc.decrypt("plain") == "plain"
    assert enc.encrypt("") == ""


def test_wrong_key_leaves_value_untouched():
    token = FieldEncryptor("right").encrypt("secret")
    assert FieldEncryptor("wrong").decrypt(token) == token


def test_missing_key_raises_on_encrypt():
    enc = FieldEncryptor()
    assert not enc.available()
    with pytest.raises(EncryptionError):
        enc.encrypt("secret")


def test_key_from_environment(monkeypatch):
    monkeypatch.setenv("PYAPPCONF_ENCRYPTION_KEY", "env-key")
    token = FieldEncryptor().encrypt("value")
    assert FieldEncryptor("env-key").decrypt(token) == "value"


def test_key_from_keyring():
    sys.modules["keyring"].set_password("pyappconf", "master::vault", "ring-key")
    enc = FieldEncryptor(app_name="vault")
    assert enc.available()
    assert FieldEncryptor("ring-key").decrypt(enc.encrypt("value")) == "value"


def test_provider_encrypts_on_disk_only(tmp_path: Path):
    path = tmp_path / "app.config"
    provider = ConfigurationFileProvider(
        path, properties_to_encrypt="Password", encryption_key="k"
    )
    config = Secrets(Password="hunter2")
    assert provider.write(config)
    assert config.Password == "hunter2"

    stored = entries(path)
    assert stored["User"] == "admin"
    assert stored["Password"].startswith("ENC:")
    assert "hunter2" not in path.read_text(encoding="utf-8")

    fresh = Secrets()
    assert provider.read(fresh)
    assert fresh.Password == "hunter2"


def test_self_heal_write_keeps_object_decrypted(tmp_path: Path):
    path = tmp_path / "app.config"
    provider = ConfigurationFileProvider(
        path, properties_to_encrypt=["Password"], encryption_key="k"
    )
    config = Secrets()
    assert provider.read(config)
    assert config.Password == "changeme"
    assert entries(path)["Password"].startswith("ENC:")


def test_write_without_key_fails_before_touching_store(tmp_path: Path):
    path = tmp_path / "app.config"
    provider = ConfigurationFileProvider(path, properties_to_encrypt="Password")
    config = Secrets(Password="hunter2")
    with pytest.raises(EncryptionError):
        provider.write(config)
    assert config.Password == "hunter2"
    assert not path.exists()
