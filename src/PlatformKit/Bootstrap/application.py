# === NAVMAP v1 ===
# {
#   "module": "PlatformKit.Bootstrap.application",
#   "purpose": "Process-wide application object wiring contexts, cache, configuration, manifests, and handlers",
#   "sections": [
#     {"id": "application", "name": "Application", "anchor": "class-application", "kind": "class"}
#   ]
# }
# === /NAVMAP ===

"""Application implementation required to bootstrap a site.

``Application.init(handler)`` creates the single application of the process
and sets up its critical components in a fixed order: logging, the class
loader, the cache controller, configuration (which configures the cache bins),
and the handler registry fed from entry points and package manifests.
``run()`` then resolves the named handler and runs it with the application
context.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, ClassVar, Optional

from .cache import Cache, CacheBin
from .configuration import Configuration
from .context import ApplicationContext, Context, Contexts
from .handler import Handler, HandlerRegistry
from .loader import ApplicationLoader
from .logging_config import setup_logging
from .manifest import ApplicationManifests
from .settings import BootOptions, PlatformSettings

__all__ = ["Application", "BootOptions"]

logger = logging.getLogger(__name__)


class Application:
    """Main application controller."""

    _application: ClassVar[Optional["Application"]] = None
    _lock: ClassVar[threading.RLock] = threading.RLock()

    @classmethod
    def init(cls, handler: str, options: Optional[BootOptions] = None) -> "Application":
        """Initialize the application for a named handler.

        If an application has already been initialized, no new application is
        created and the existing one is returned unchanged.
        """

        with cls._lock:
            if Application._application is None:
                Application._application = cls(handler, options)
            return Application._application

    @classmethod
    def get_instance(cls) -> Optional["Application"]:
        return Application._application

    @classmethod
    def reset(cls) -> None:
        """Shut down and forget the current application, if any."""

        with cls._lock:
            application, Application._application = Application._application, None
        if application is not None:
            application.shutdown()

    def __init__(self, handler: str, options: Optional[BootOptions] = None) -> None:
        self.options = options or BootOptions()
        self.settings: PlatformSettings = self.options.resolve_settings()
        self.contexts = Contexts()
        self.loader: Optional[ApplicationLoader] = None
        self.cache: Optional[Cache] = None
        self.manifests: Optional[ApplicationManifests] = None

        self.context = ApplicationContext(self, handler, self.settings)
        self.add_context(self.context)
        try:
            self.set_up()
        except BaseException:
            try:
                self.shutdown()
            except Exception as exc:
                # The boot failure is the error to report; cleanup failure is logged.
                logger.warning(
                    "shutdown after failed boot raised",
                    extra={"stage": "boot", "error": str(exc)},
                )
            raise

    def set_up(self) -> None:
        """Set up critical application components."""

        settings = self.settings
        if self.options.configure_logging:
            setup_logging(settings.logging)

        self.loader = ApplicationLoader(settings.app_root, settings.lib_root)

        self.cache_bins = CacheBin(settings.cache.directory or settings.platform_root / "cache")
        if settings.cache.default_provider:
            self.cache_bins.register_provider(settings.cache.default_provider)
        self.cache = Cache(self.cache_bins)

        self.configuration = Configuration()
        self.configuration.register(self.cache_bins)
        if self.options.load_configuration:
            self.configuration.load_directory(settings.conf_root)

        self.handlers = HandlerRegistry(importer=self.loader.autoload)
        if self.options.load_entry_points:
            self.handlers.load_entry_points()
        if self.options.scan_manifests:
            self.manifests = ApplicationManifests(settings.app_root)
            self.manifests.process(self.handlers)

        logger.info(
            "application initialized",
            extra={
                "stage": "boot",
                "handler": self.handler_name,
                "platform_root": str(settings.platform_root),
                "handlers": self.handlers.names(),
            },
        )

    @property
    def handler_name(self) -> str:
        return self.context.handler

    def add_context(self, context: Context) -> None:
        self.contexts.add(context)

    def get_context(self, name: str) -> Optional[Context]:
        """Retrieve a context by name, or ``None`` if none is registered."""

        return self.contexts.get(name)

    def create_handler(self) -> Handler:
        handler_class = self.handlers.resolve(self.handler_name)
        return handler_class(self.handler_name, self.context)

    def run(self) -> Any:
        """Run the application handler and return its result."""

        handler = self.create_handler()
        logger.info(
            "handler started",
            extra={"stage": "run", "handler": self.handler_name, "class": type(handler).__name__},
        )
        result = handler.run()
        logger.info("handler finished", extra={"stage": "run", "handler": self.handler_name})
        return result

    def shutdown(self) -> None:
        """Commit and close caches, then unregister the loader.

        The loader is unregistered even when closing a cache bin fails; the
        cache error is raised afterwards.
        """

        try:
            if self.cache is not None:
                self.cache.shutdown()
        finally:
            if self.loader is not None:
                self.loader.shutdown()
