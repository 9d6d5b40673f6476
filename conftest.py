import sys
import types
from pathlib import Path

import pytest

# Ensure 'src' directory is on sys.path for tests
PROJECT_ROOT = Path(__file__).resolve().parent
SRC_DIR = PROJECT_ROOT / 'src'
if SRC_DIR.exists() and str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Keep the settings store and keyring away from the real user profile."""
    from pyappconf import paths, settings_store

    config_home = tmp_path / "config-home"
    monkeypatch.setattr(
        paths, "user_config_dir", lambda app_name=paths.DEFAULT_APP_NAME: config_home / app_name
    )
    monkeypatch.setattr(settings_store, "_STORES", {})
    monkeypatch.delenv("PYAPPCONF_ENCRYPTION_KEY", raising=False)
    monkeypatch.delenv("PYAPPCONF_APP_NAME", raising=False)

    secrets: dict = {}
    dummy = types.SimpleNamespace(
        get_password=lambda dom, key: secrets.get((dom, key)),
        set_password=lambda dom, key, val: secrets.__setitem__((dom, key), val),
    )
    monkeypatch.setitem(sys.modules, "keyring", dummy)
    return config_home
