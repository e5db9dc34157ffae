"""Public API for the PlatformKit application bootstrap.

This facade exposes the application singleton, its context registry, the
cache and configuration layers, handler registration, and the manifest
scanning pipeline used to discover packages inside an application root.
"""

from __future__ import annotations

from .application import Application
from .cache import (
    AbstractCacheProvider,
    Cache,
    CacheBin,
    CacheProvider,
    FileCacheProvider,
    MemoryCacheProvider,
    NullCacheProvider,
)
from .configuration import Configurable, Configuration
from .context import ApplicationContext, Context, Contexts
from .errors import (
    BootstrapError,
    CacheError,
    ConfigurationError,
    ConfigurationFormatError,
    HandlerError,
    HandlerNotFoundError,
    InvalidConfigurationError,
    LoaderError,
    ManifestError,
)
from .handler import Handler, HandlerRegistry
from .loader import ApplicationLoader
from .manifest import (
    ApplicationInformationConsumable,
    ApplicationInformationConsumer,
    ApplicationManifests,
    ManifestCollector,
    ManifestParser,
    ManifestReader,
    ManifestScanner,
)
from .settings import BootOptions, PlatformSettings, get_default_settings

__version__ = "0.1.0"

__all__ = [
    "AbstractCacheProvider",
    "Application",
    "ApplicationContext",
    "ApplicationInformationConsumable",
    "ApplicationInformationConsumer",
    "ApplicationLoader",
    "ApplicationManifests",
    "BootOptions",
    "BootstrapError",
    "Cache",
    "CacheBin",
    "CacheError",
    "CacheProvider",
    "Configurable",
    "Configuration",
    "ConfigurationError",
    "ConfigurationFormatError",
    "Context",
    "Contexts",
    "FileCacheProvider",
    "Handler",
    "HandlerError",
    "HandlerNotFoundError",
    "HandlerRegistry",
    "InvalidConfigurationError",
    "LoaderError",
    "ManifestCollector",
    "ManifestError",
    "ManifestParser",
    "ManifestReader",
    "ManifestScanner",
    "MemoryCacheProvider",
    "NullCacheProvider",
    "PlatformSettings",
    "get_default_settings",
    "__version__",
]
