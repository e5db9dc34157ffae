"""Architecture for configurable objects.

:class:`Configuration` reads XML configuration documents rooted at
``<configuration>`` and delegates every element matched by a registered
component's XPath expressions to that component's
:meth:`Configurable.match_configuration`. Matched elements are converted with
the same rules as package manifests (see :mod:`PlatformKit.Bootstrap.xmldata`).
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Any, List, Optional, Protocol, Sequence, Union, runtime_checkable

from .errors import ConfigurationError, ConfigurationFormatError, InvalidConfigurationError
from .xmldata import element_to_data, local_name

__all__ = ["ROOT_ELEMENT", "Configurable", "Configuration", "load_configuration"]

logger = logging.getLogger(__name__)

ROOT_ELEMENT = "configuration"


@runtime_checkable
class Configurable(Protocol):
    """Interface for a configurable component factory."""

    def xpaths(self) -> Sequence[str]:
        """Return ElementTree path expressions, relative to the document root, to match."""
        ...

    def match_configuration(self, xpath: str, data: Any) -> None:
        """Apply one matched configuration element.

        Raises:
            InvalidConfigurationError: If the data does not match component
                expectations.
        """
        ...


class Configuration:
    """Configuration manager delegating matched configuration to components."""

    def __init__(self) -> None:
        self._configurables: List[Configurable] = []
        self.sources: List[str] = []

    def register(self, configurable: Configurable) -> None:
        if not isinstance(configurable, Configurable):
            raise TypeError(f"{configurable!r} does not implement Configurable")
        self._configurables.append(configurable)

    @property
    def configurables(self) -> List[Configurable]:
        return list(self._configurables)

    def load_directory(self, conf_root: Union[str, Path]) -> List[str]:
        """Load every ``*.xml`` document in ``conf_root`` in sorted order."""

        directory = Path(conf_root)
        if not directory.is_dir():
            logger.debug(
                "configuration directory absent",
                extra={"stage": "configuration", "directory": str(directory)},
            )
            return []
        loaded: List[str] = []
        for path in sorted(directory.glob("*.xml")):
            if path.is_file():
                self.load_file(path)
                loaded.append(str(path))
        return loaded

    def load_file(self, path: Union[str, Path]) -> None:
        path = Path(path)
        try:
            text = path.read_bytes()
        except OSError as exc:
            raise ConfigurationError(f"Unable to read configuration file {path}: {exc}") from exc
        self.load_string(text, source=str(path))

    def load_string(self, text: Union[str, bytes], source: str = "<string>") -> None:
        """Parse one configuration document and dispatch matched elements.

        Raises:
            ConfigurationFormatError: If the document is malformed or its root
                is not ``<configuration>``.
            InvalidConfigurationError: If a component rejects matched data.
            ConfigurationError: If a component registers an invalid XPath.

        Every XPath is evaluated before any component sees data, so a bad
        expression leaves all components untouched. Dispatch is not
        transactional: when a component rejects its data, components
        dispatched before it keep what they were given and ``source`` is not
        added to :attr:`sources`. Callers treat the whole configuration as
        failed, as application boot does.
        """

        root = self._parse(text, source)
        matches = [
            (configurable, xpath, element)
            for configurable in self._configurables
            for xpath in configurable.xpaths()
            for element in self._select(root, xpath, source)
        ]
        for configurable, xpath, element in matches:
            self._dispatch(configurable, xpath, element_to_data(element), source)
        self.sources.append(source)
        logger.info(
            "configuration loaded", extra={"stage": "configuration", "source": source}
        )

    @staticmethod
    def _parse(text: Union[str, bytes], source: str) -> ET.Element:
        try:
            root = ET.fromstring(text)
        except ET.ParseError as exc:
            raise ConfigurationFormatError(
                f"{source}: malformed configuration: {exc}", source=source
            ) from exc
        if local_name(root.tag) != ROOT_ELEMENT:
            raise ConfigurationFormatError(
                f"{source}: root element must be <{ROOT_ELEMENT}>, found <{local_name(root.tag)}>",
                source=source,
            )
        return root

    @staticmethod
    def _select(root: ET.Element, xpath: str, source: str) -> List[ET.Element]:
        try:
            return root.findall(xpath)
        except (SyntaxError, KeyError) as exc:
            raise ConfigurationError(f"{source}: invalid XPath '{xpath}': {exc}") from exc

    @staticmethod
    def _dispatch(configurable: Configurable, xpath: str, data: Any, source: str) -> None:
        try:
            configurable.match_configuration(xpath, data)
        except InvalidConfigurationError as exc:
            raise InvalidConfigurationError(f"{source}: {exc}") from exc


def load_configuration(
    conf_root: Union[str, Path], configurables: Optional[Sequence[Configurable]] = None
) -> Configuration:
    """Build a :class:`Configuration`, register ``configurables`` and load ``conf_root``."""

    configuration = Configuration()
    for configurable in configurables or ():
        configuration.register(configurable)
    configuration.load_directory(conf_root)
    return configuration
