from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from threading import Lock, RLock

from .errors import MissingStoreError
from .paths import DEFAULT_APP_NAME, settings_file
from .xmldoc import DEFAULT_SECTION, ConfigDocument

logger = logging.getLogger(__name__)


class SettingsStore:
    """Application-wide settings namespace.

    Values live in an XML document under the user's configuration directory
    (see :func:`pyappconf.paths.settings_file`).  Sections are read once and
    cached with lower-cased keys until :meth:`refresh_section` drops them.
    """

    def __init__(self, app_name: str = DEFAULT_APP_NAME, *, path: Path | str | None = None) -> None:
        self.app_name = app_name
        self.path = Path(path) if path is not None else settings_file(app_name)
        self._cache: dict[str, dict[str, str] | None] = {}
        self._lock = RLock()

    def get_section(self, name: str | None = None) -> Mapping[str, str] | None:
        """Return a snapshot of section *name*.

        The default section always exists (possibly empty).  A named section
        that is not present in the document yields ``None``.
        """
        key = name or DEFAULT_SECTION
        with self._lock:
            if key not in self._cache:
                self._cache[key] = self._load_section(key)
            snapshot = self._cache[key]
        return None if snapshot is None else dict(snapshot)

    def _load_section(self, name: str) -> dict[str, str] | None:
        try:
            doc = ConfigDocument.load(self.path)
        except MissingStoreError as exc:
            logger.debug("settings store %s unavailable: %s", self.path, exc)
            values = None
        else:
            values = doc.section_values(name)
        if values is None:
            return {} if name == DEFAULT_SECTION else None
        lowered: dict[str, str] = {}
        for k, v in values.items():
            lowered.setdefault(k.lower(), v)
        return lowered

    def refresh_section(self, name: str | None = None) -> None:
        with self._lock:
            self._cache.pop(name or DEFAULT_SECTION, None)

    def refresh(self) -> None:
        with self._lock:
            self._cache.clear()


_STORES: dict[str, SettingsStore] = {}
_STORES_LOCK = Lock()


def default_store(app_name: str = DEFAULT_APP_NAME) -> SettingsStore:
    """Return the process-wide store for *app_name*."""
    with _STORES_LOCK:
        store = _STORES.get(app_name)
        if store is None:
            store = _STORES[app_name] = SettingsStore(app_name)
        return store
