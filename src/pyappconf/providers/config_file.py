from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from ..errors import MissingStoreError, PersistenceError
from ..settings_store import SettingsStore, default_store
from ..xmldoc import ConfigDocument
from .base import ConfigurationProvider

logger = logging.getLogger(__name__)


class ConfigurationFileProvider(ConfigurationProvider):
    """Store configuration in an XML configuration file.

    With ``configuration_file`` unset the application settings store is used:
    keys are matched case-insensitively and the store's section cache is
    refreshed around every read and write.  Otherwise the given file is read
    and edited directly, matching keys exactly.  Missing or unreadable files
    are created with the object's current values.

    Only one process should write a given file; there is no cross-process
    locking.
    """

    def __init__(
        self,
        configuration_file: Path | str | None = None,
        configuration_section: str | None = None,
        *,
        settings_store: SettingsStore | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(configuration_section=configuration_section, **kwargs)
        self.configuration_file = Path(configuration_file) if configuration_file else None
        self._store = settings_store

    @property
    def uses_settings_store(self) -> bool:
        return self.configuration_file is None

    @property
    def store(self) -> SettingsStore:
        if self._store is None:
            self._store = default_store(self.app_name)
        return self._store

    def target_path(self) -> Path:
        if self.configuration_file is not None:
            return self.configuration_file
        return self.store.path

    # ----- read -----

    def read(self, config: Any) -> bool:
        if self.uses_settings_store:
            return self._read_settings_store(config)
        return self._read_file(config)

    def _read_settings_store(self, config: Any) -> bool:
        store = self.store
        store.refresh_section(self.configuration_section)
        values = store.get_section(self.configuration_section)
        if values is None:
            logger.info("section %s not found in %s; seeding it", self.section_name, store.path)
            self.write(config)
            return True

        missing = self._read_fields(config, lambda key: values.get(key.lower()))
        self.decrypt_fields(config)
        if missing:
            self.write(config)
        return True

    def _read_file(self, config: Any) -> bool:
        path = self.configuration_file
        try:
            doc = ConfigDocument.load(path)
        except MissingStoreError as exc:
            logger.info("creating configuration file %s (%s)", path, exc)
            if not self.write(config):
                return False
            try:
                doc = ConfigDocument.load(path)
            except MissingStoreError as exc:
                self._set_error(str(exc))
                return False

        section = self.section_name
        doc.ensure_section(section)
        missing = self._read_fields(config, lambda key: doc.get_value(section, key))
        self.decrypt_fields(config)
        if missing:
            self.write(config)
        return True

    # ----- write -----

    def _write(self, config: Any) -> bool:
        path = self.target_path()
        doc = ConfigDocument.load_or_new(path)
        self._write_fields(config, doc, ignore_case=self.uses_settings_store)
        try:
            doc.save(path)
        except PersistenceError as exc:
            self._set_error(str(exc))
            return False
        finally:
            if self.uses_settings_store:
                self.store.refresh_section(self.configuration_section)
        self.error_message = ""
        logger.debug("wrote %s to %s [%s]", type(config).__name__, path, self.section_name)
        return True
