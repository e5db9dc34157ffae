"""Application class loader.

Makes the application and library roots importable for the lifetime of an
application and resolves ``module:attribute`` references found in manifests
and configuration.
"""

from __future__ import annotations

import importlib
import logging
import sys
from pathlib import Path
from typing import Any, List, Optional, Union

from .errors import LoaderError

__all__ = ["ApplicationLoader", "import_reference"]

logger = logging.getLogger(__name__)


def import_reference(reference: str) -> Any:
    """Import ``module:attr`` (or dotted ``module.attr``) and return the attribute.

    Raises:
        LoaderError: If the module cannot be imported or lacks the attribute.
    """

    if ":" in reference:
        module_name, _, attribute = reference.partition(":")
    else:
        module_name, _, attribute = reference.rpartition(".")
    if not module_name or not attribute:
        raise LoaderError(f"Invalid reference '{reference}'; expected 'module:attribute'")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise LoaderError(f"Cannot import module '{module_name}': {exc}") from exc
    except Exception as exc:  # module code may raise anything while executing
        raise LoaderError(
            f"Module '{module_name}' failed during import: {type(exc).__name__}: {exc}"
        ) from exc
    target: Any = module
    for part in attribute.split("."):
        try:
            target = getattr(target, part)
        except AttributeError as exc:
            raise LoaderError(f"'{module_name}' has no attribute '{attribute}'") from exc
    return target


class ApplicationLoader:
    """Registers application directories on ``sys.path`` while active."""

    def __init__(
        self, app_root: Union[str, Path], lib_root: Optional[Union[str, Path]] = None
    ) -> None:
        self.app_root = Path(app_root)
        self.lib_root = Path(lib_root) if lib_root is not None else None
        self._added: List[str] = []
        self.initialize()

    def initialize(self) -> None:
        """Append the application root and an existing library root to ``sys.path``."""

        candidates = [self.app_root]
        if self.lib_root is not None and self.lib_root.is_dir():
            candidates.append(self.lib_root)
        for directory in candidates:
            entry = str(directory)
            if entry not in sys.path:
                sys.path.append(entry)
                self._added.append(entry)
        logger.debug("loader registered", extra={"stage": "loader", "paths": list(self._added)})

    @property
    def registered_paths(self) -> List[str]:
        return list(self._added)

    def autoload(self, reference: str) -> Any:
        return import_reference(reference)

    def shutdown(self) -> None:
        """Remove exactly the ``sys.path`` entries this loader added."""

        for entry in self._added:
            try:
                sys.path.remove(entry)
            except ValueError:
                continue
        self._added = []

    def __enter__(self) -> "ApplicationLoader":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown()
