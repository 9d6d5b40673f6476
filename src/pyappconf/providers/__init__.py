"""Configuration providers."""
from __future__ import annotations

from .base import ConfigurationProvider, write_lock
from .config_file import ConfigurationFileProvider

__all__ = ["ConfigurationProvider", "ConfigurationFileProvider", "write_lock"]
