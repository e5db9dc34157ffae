"""Context objects shared between the application and its components."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Dict, Iterator, List, Optional

if TYPE_CHECKING:  # pragma: no cover
    from .application import Application
    from .settings import PlatformSettings

__all__ = ["Context", "ApplicationContext", "Contexts"]

logger = logging.getLogger(__name__)


class Context(ABC):
    """Abstract base class for contexts registered with an application."""

    @property
    @abstractmethod
    def context_name(self) -> str:
        """Name of the context in the context registry."""


class ApplicationContext(Context):
    """Application context containing initialization-time information."""

    def __init__(
        self, application: "Application", handler: str, settings: "PlatformSettings"
    ) -> None:
        self.application = application
        self.handler = handler
        self.settings = settings
        self.environment: Dict[str, str] = {}
        self.set_up_environment()

    @property
    def context_name(self) -> str:
        return "application"

    def set_up_environment(self) -> None:
        """Record the platform directories as environment variables for handlers."""

        self.environment = {name: str(path) for name, path in self.settings.roots().items()}

    def __repr__(self) -> str:
        return f"ApplicationContext(handler={self.handler!r})"


class Contexts:
    """Registry of contexts keyed by context name."""

    def __init__(self) -> None:
        self._contexts: Dict[str, Context] = {}

    def add(self, context: Context) -> None:
        name = context.context_name
        if name in self._contexts and self._contexts[name] is not context:
            logger.debug("context replaced", extra={"stage": "context", "context": name})
        self._contexts[name] = context

    def get(self, name: str) -> Optional[Context]:
        return self._contexts.get(name)

    def remove(self, name: str) -> Optional[Context]:
        return self._contexts.pop(name, None)

    def names(self) -> List[str]:
        return list(self._contexts)

    def __contains__(self, name: object) -> bool:
        return name in self._contexts

    def __iter__(self) -> Iterator[Context]:
        return iter(list(self._contexts.values()))

    def __len__(self) -> int:
        return len(self._contexts)
