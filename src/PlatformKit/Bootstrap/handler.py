"""Application handler mechanism.

A handler is the unit of work an application runs. Handlers are registered
by name, either programmatically, from ``<handler name=... class=...>``
entries in package manifests, or through the ``platformkit.handlers`` entry
point group, and are imported lazily when first resolved.
"""

from __future__ import annotations

import logging
import threading
from importlib import metadata
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Type, Union

from .errors import HandlerError, HandlerNotFoundError, LoaderError
from .loader import import_reference

if TYPE_CHECKING:  # pragma: no cover
    from .context import ApplicationContext

__all__ = ["ENTRY_POINT_GROUP", "Handler", "HandlerRegistry"]

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "platformkit.handlers"

HandlerTarget = Union[str, Type["Handler"]]


class Handler:
    """Generic application handler."""

    def __init__(self, name: str, context: "ApplicationContext") -> None:
        self.name = name
        self.context = context
        self.initialize()

    def initialize(self) -> None:
        """Prepare the handler before it runs."""

    def run(self) -> Any:
        """Run the handler. The generic handler does nothing."""

        return None


class HandlerRegistry:
    """Name-to-handler registry fed by code, manifests, and entry points."""

    def __init__(self, importer: Optional[Callable[[str], Any]] = None) -> None:
        self._importer = importer or import_reference
        self._targets: Dict[str, HandlerTarget] = {}
        self._lock = threading.Lock()

    def register(self, name: str, target: HandlerTarget) -> None:
        if not name:
            raise HandlerError("Handler name must not be empty")
        with self._lock:
            previous = self._targets.get(name)
            self._targets[name] = target
        if previous is not None and previous is not target:
            logger.info(
                "handler replaced",
                extra={"stage": "handler", "handler": name, "target": _describe(target)},
            )

    def consume(self, data: Dict[str, Any]) -> None:
        """Register the ``handler`` entries of one manifest mapping."""

        entries = data.get("handler")
        if entries is None:
            return
        if not isinstance(entries, list):
            entries = [entries]
        for entry in entries:
            if isinstance(entry, dict) and entry.get("@name") and entry.get("@class"):
                self.register(entry["@name"], entry["@class"])
                logger.debug(
                    "manifest handler registered",
                    extra={
                        "stage": "handler",
                        "handler": entry["@name"],
                        "package": data.get("@name"),
                    },
                )

    def load_entry_points(self, group: str = ENTRY_POINT_GROUP) -> List[str]:
        """Register handlers published as entry points; broken entries are skipped."""

        loaded: List[str] = []
        try:
            entry_points = metadata.entry_points().select(group=group)
        except Exception as exc:  # pragma: no cover - metadata backends vary
            logger.warning(
                "handler plugin discovery failed", extra={"stage": "handler", "error": str(exc)}
            )
            return loaded
        for entry in entry_points:
            try:
                target = entry.load()
                if not (isinstance(target, type) and issubclass(target, Handler)):
                    raise TypeError("handler plugin must be a Handler subclass")
            except Exception as exc:  # pragma: no cover - plugin failures are unpredictable
                logger.warning(
                    "handler plugin failed",
                    extra={"stage": "handler", "handler": entry.name, "error": str(exc)},
                )
                continue
            self.register(entry.name, target)
            loaded.append(entry.name)
        return loaded

    def names(self) -> List[str]:
        with self._lock:
            return sorted(self._targets)

    def __contains__(self, name: object) -> bool:
        return name in self._targets

    def resolve(self, name: str) -> Type[Handler]:
        """Return the handler class registered under ``name``.

        Raises:
            HandlerNotFoundError: If ``name`` is not registered.
            HandlerError: If the target cannot be imported or is not a
                :class:`Handler` subclass.
        """

        with self._lock:
            target = self._targets.get(name)
        if target is None:
            raise HandlerNotFoundError(name)
        if isinstance(target, str):
            try:
                target = self._importer(target)
            except LoaderError as exc:
                raise HandlerError(f"Cannot load handler '{name}': {exc}") from exc
        if not (isinstance(target, type) and issubclass(target, Handler)):
            raise HandlerError(f"Handler '{name}' target {_describe(target)} is not a Handler")
        with self._lock:
            self._targets[name] = target
        return target


def _describe(target: Any) -> str:
    if isinstance(target, str):
        return target
    module = getattr(target, "__module__", type(target).__module__)
    name = getattr(target, "__qualname__", type(target).__name__)
    return f"{module}.{name}"
