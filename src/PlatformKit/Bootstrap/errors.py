"""Exception hierarchy shared across application bootstrap components.

Booting an application spans settings resolution, configuration parsing,
manifest discovery, cache provisioning, and handler dispatch.  This module
groups those failure modes under a single base class so callers can catch
``BootstrapError`` broadly while still reacting to specialised subclasses.
"""

from __future__ import annotations

from typing import Optional

__all__ = [
    "BootstrapError",
    "ConfigurationError",
    "ConfigurationFormatError",
    "InvalidConfigurationError",
    "ManifestError",
    "CacheError",
    "HandlerError",
    "HandlerNotFoundError",
    "LoaderError",
]


class BootstrapError(RuntimeError):
    """Base exception for application bootstrap failures."""


class ConfigurationError(BootstrapError):
    """Raised when configuration cannot be processed."""


class ConfigurationFormatError(ConfigurationError):
    """Raised when a configuration document is not formatted properly."""

    def __init__(self, message: str, *, source: Optional[str] = None) -> None:
        super().__init__(message)
        self.source = source


class InvalidConfigurationError(ConfigurationError):
    """Raised when configuration does not match component expectations."""


class ManifestError(BootstrapError):
    """Raised when manifest data fails structural validation."""


class CacheError(BootstrapError):
    """Raised when a cache provider cannot be created or used."""


class HandlerError(BootstrapError):
    """Raised when an application handler cannot be resolved or constructed."""


class HandlerNotFoundError(HandlerError):
    """Raised when no handler is registered under the requested name."""

    def __init__(self, name: str) -> None:
        super().__init__(f"No handler registered under name '{name}'")
        self.name = name


class LoaderError(BootstrapError):
    """Raised when the application loader cannot import a reference."""
