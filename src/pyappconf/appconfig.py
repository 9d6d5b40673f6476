from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from .errors import AppConfError
from .providers import ConfigurationFileProvider, ConfigurationProvider

logger = logging.getLogger(__name__)


class AppConfiguration:
    """Base class for configuration objects.

    Subclass it (usually as a dataclass) and declare the settings as typed
    fields with defaults::

        @dataclass
        class MyConfig(AppConfiguration):
            name: str = "app"
            retries: int = 3
            tags: list[str] = field(default_factory=list)

        config = MyConfig()
        config.initialize()        # settings store, appSettings section
        config.retries = 5
        config.write()

    ``error_message`` and ``provider`` are reserved and never persisted.
    """

    error_message = ""
    provider = None

    def initialize(
        self,
        provider: ConfigurationProvider | None = None,
        section_name: str | None = None,
        config_data: Any = None,
    ) -> bool:
        """Attach *provider* (or the default one) and read the settings."""
        if provider is None:
            provider = self.on_create_default_provider(section_name, config_data)
        self.provider = provider
        return self.read()

    def on_create_default_provider(
        self, section_name: str | None, config_data: Any
    ) -> ConfigurationProvider:
        """Return the provider used when :meth:`initialize` is given none.

        *config_data* may be a path to a configuration file; without it the
        application settings store is used.  Override to change the default.
        """
        config_file = config_data if isinstance(config_data, (str, Path)) else None
        return ConfigurationFileProvider(
            configuration_file=config_file,
            configuration_section=section_name,
        )

    def _require_provider(self) -> ConfigurationProvider:
        if self.provider is None:
            raise AppConfError(f"{type(self).__name__} has no provider; call initialize() first")
        return self.provider

    def read(self) -> bool:
        provider = self._require_provider()
        ok = provider.read(self)
        self.error_message = "" if ok else provider.error_message
        return ok

    def write(self) -> bool:
        provider = self._require_provider()
        ok = provider.write(self)
        self.error_message = "" if ok else provider.error_message
        if not ok:
            logger.warning("could not write %s: %s", type(self).__name__, self.error_message)
        return ok

    def write_as_string(self, fmt: str = "xml") -> str:
        """Return the persistable members serialized as *fmt* text."""
        from .serialization import serialize

        return serialize(self, fmt)

    def __getstate__(self) -> dict[str, Any]:
        state = self.__dict__.copy()
        state.pop("provider", None)
        return state
