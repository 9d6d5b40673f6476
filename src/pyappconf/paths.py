from __future__ import annotations

import os
from pathlib import Path

from platformdirs import user_config_dir as _uc

DEFAULT_APP_NAME = "pyappconf"
SETTINGS_FILENAME = "app.config"


def _app_name(default: str) -> str:
    return os.getenv("PYAPPCONF_APP_NAME", default)


def user_config_dir(app_name: str = DEFAULT_APP_NAME) -> Path:
    app = _app_name(app_name)
    return Path(_uc(appname=app)).resolve()


def settings_file(app_name: str = DEFAULT_APP_NAME, filename: str = SETTINGS_FILENAME) -> Path:
    """Return the document backing the platform settings store of *app_name*."""
    return user_config_dir(app_name) / filename
