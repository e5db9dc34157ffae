# === NAVMAP v1 ===
# {
#   "module": "PlatformKit.Bootstrap.manifest",
#   "purpose": "Discover manifest.xml files and stream-parse them into consumable mappings",
#   "sections": [
#     {"id": "protocols", "name": "Consumer Protocols", "anchor": "PRO", "kind": "api"},
#     {"id": "applicationmanifests", "name": "ApplicationManifests", "anchor": "class-applicationmanifests", "kind": "class"},
#     {"id": "manifestscanner", "name": "ManifestScanner", "anchor": "class-manifestscanner", "kind": "class"},
#     {"id": "manifestreader", "name": "ManifestReader", "anchor": "class-manifestreader", "kind": "class"},
#     {"id": "manifestparser", "name": "ManifestParser", "anchor": "class-manifestparser", "kind": "class"},
#     {"id": "validate-manifest-data", "name": "validate_manifest_data", "anchor": "function-validate-manifest-data", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Manifest processing for providing consumable application information.

Packages inside the application root describe themselves with a
``manifest.xml`` file. :class:`ManifestScanner` walks a directory tree and
creates one :class:`ManifestReader` per manifest it finds; each reader parses
its file lazily through a shared, streaming :class:`ManifestParser` and hands
the resulting mapping to whichever consumer asks for it.

A bad manifest never aborts a scan: parse and validation failures are logged
and the offending reader simply produces nothing.
"""

from __future__ import annotations

import logging
import os
import threading
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import (
    Any,
    ClassVar,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Protocol,
    Set,
    Union,
    runtime_checkable,
)

from jsonschema import Draft202012Validator

from .errors import ManifestError
from .xmldata import ElementFrame, local_name

__all__ = [
    "MANIFEST_SCHEMA",
    "ApplicationInformationConsumer",
    "ApplicationInformationConsumable",
    "ApplicationManifests",
    "ManifestCollector",
    "ManifestParser",
    "ManifestReader",
    "ManifestScanner",
    "read_manifest",
    "validate_manifest_data",
]

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

_HANDLER_ENTRY = {
    "type": "object",
    "required": ["@name", "@class"],
    "properties": {
        "@name": {"type": "string", "minLength": 1},
        "@class": {"type": "string", "minLength": 1},
    },
}

MANIFEST_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "title": "PlatformKit package manifest",
    "type": "object",
    "properties": {
        "@name": {"type": "string", "minLength": 1},
        "@version": {"type": "string"},
        "handler": {
            "oneOf": [
                _HANDLER_ENTRY,
                {"type": "array", "items": _HANDLER_ENTRY},
            ]
        },
    },
}

_MANIFEST_VALIDATOR = Draft202012Validator(MANIFEST_SCHEMA)


def validate_manifest_data(data: Mapping[str, Any]) -> None:
    """Validate parsed manifest data against :data:`MANIFEST_SCHEMA`.

    Raises:
        ManifestError: If the mapping violates the schema. The message names
            the first offending location.
    """

    errors = sorted(_MANIFEST_VALIDATOR.iter_errors(data), key=lambda error: list(error.path))
    if errors:
        first = errors[0]
        location = "/".join(str(part) for part in first.path) or "<root>"
        raise ManifestError(f"manifest invalid at {location}: {first.message}")


# --- Consumer Protocols ---


@runtime_checkable
class ApplicationInformationConsumer(Protocol):
    """Receives application information produced by a consumable."""

    def consume(self, data: Dict[str, Any]) -> None:  # pragma: no cover - protocol
        ...


@runtime_checkable
class ApplicationInformationConsumable(Protocol):
    """Produces application information for a consumer."""

    def process(self, consumer: ApplicationInformationConsumer) -> None:  # pragma: no cover
        ...


class ManifestCollector:
    """Consumer that keeps every manifest mapping it is given."""

    def __init__(self) -> None:
        self.manifests: List[Dict[str, Any]] = []

    def consume(self, data: Dict[str, Any]) -> None:
        self.manifests.append(data)


class ApplicationManifests:
    """Application-wide manifest source rooted at the application directory."""

    def __init__(self, app_root: PathLike) -> None:
        self.app_root = Path(app_root)
        self.scanner: ManifestScanner
        self.set_up()

    def set_up(self) -> None:
        self.scanner = self.create_scanner()

    def create_scanner(self) -> "ManifestScanner":
        return ManifestScanner(self.app_root)

    @property
    def paths(self) -> List[Path]:
        return self.scanner.paths

    def process(self, consumer: ApplicationInformationConsumer) -> None:
        self.scanner.process(consumer)


class ManifestScanner:
    """Manifest source traversing a directory tree for manifest files."""

    MANIFEST_FILENAME: ClassVar[str] = "manifest.xml"

    def __init__(self, root: Optional[PathLike]) -> None:
        self.root: Optional[Path] = Path(root) if root is not None else None
        self.readers: List[ManifestReader] = []
        self.set_up()

    def set_up(self) -> None:
        """Create one reader per manifest file found beneath the root."""

        if self.root is None:
            return
        for path in self.scan_manifests(self.root):
            self.readers.append(self.create_reader(path))
        logger.debug(
            "manifest scan complete",
            extra={"stage": "manifest", "root": str(self.root), "manifests": len(self.readers)},
        )

    def create_reader(self, path: Path) -> "ManifestReader":
        return ManifestReader(path)

    @property
    def paths(self) -> List[Path]:
        return [reader.path for reader in self.readers]

    def scan_manifests(
        self, directory: PathLike, _visited: Optional[Set[Path]] = None
    ) -> List[Path]:
        """Recursively collect manifest files beneath ``directory``.

        Entries are visited depth first in sorted name order. Symlinked
        directories are followed once; a directory already walked under
        another path is skipped.

        Args:
            directory: Base directory to scan.

        Returns:
            Paths of every readable ``manifest.xml`` file in traversal order.
        """

        files: List[Path] = []
        visited = _visited if _visited is not None else set()
        directory = Path(directory)
        if not directory.is_dir() or not _is_readable(directory):
            return files
        try:
            resolved = directory.resolve()
        except OSError:
            return files
        if resolved in visited:
            return files
        visited.add(resolved)

        try:
            entries = sorted(directory.iterdir(), key=lambda entry: entry.name)
        except OSError as exc:
            logger.warning(
                "manifest directory unreadable",
                extra={"stage": "manifest", "directory": str(directory), "error": str(exc)},
            )
            return files

        for entry in entries:
            if not _is_readable(entry):
                continue
            if entry.is_dir():
                files.extend(self.scan_manifests(entry, visited))
            elif entry.is_file() and entry.name == self.MANIFEST_FILENAME:
                files.append(entry)
        return files

    def process(self, consumer: ApplicationInformationConsumer) -> None:
        for reader in self.readers:
            reader.process(consumer)


def _is_readable(path: Path) -> bool:
    return os.access(path, os.R_OK)


class ManifestReader:
    """Consumable reader for a single manifest file."""

    _parser: ClassVar[Optional["ManifestParser"]] = None
    _parser_lock: ClassVar[threading.Lock] = threading.Lock()

    @classmethod
    def get_parser(cls) -> "ManifestParser":
        """Return the manifest parser shared by every reader."""

        with cls._parser_lock:
            if ManifestReader._parser is None:
                ManifestReader._parser = ManifestParser()
            return ManifestReader._parser

    def __init__(self, path: PathLike) -> None:
        self.path = Path(path)
        # None: not read yet; False: unreadable, do not try again.
        self._data: Union[None, bool, Dict[str, Any]] = None

    def prepare_data(self) -> None:
        """Parse the manifest once, remembering failures."""

        if self._data is not None:
            return
        data = self.read_into_mapping()
        if data:
            try:
                validate_manifest_data(data)
            except ManifestError as exc:
                logger.warning(
                    "manifest rejected",
                    extra={"stage": "manifest", "path": str(self.path), "error": str(exc)},
                )
                data = None
        self._data = data if data else False

    def read_into_mapping(self) -> Optional[Dict[str, Any]]:
        """Parse the manifest file into a mapping, or ``None`` on failure."""

        parser = self.get_parser()
        try:
            with self.path.open("rb") as handle:
                return parser.parse(handle, source=str(self.path))
        except OSError as exc:
            logger.warning(
                "manifest unreadable",
                extra={"stage": "manifest", "path": str(self.path), "error": str(exc)},
            )
            return None

    @property
    def data(self) -> Optional[Dict[str, Any]]:
        self.prepare_data()
        return self._data or None

    def process(self, consumer: ApplicationInformationConsumer) -> None:
        """Hand the manifest mapping to ``consumer`` when one is available."""

        data = self.data
        if data:
            consumer.consume(data)


class _ParserTarget:
    """ElementTree parser target forwarding events to a :class:`ManifestParser`."""

    def __init__(self, owner: "ManifestParser") -> None:
        self._owner = owner

    def start(self, tag: str, attrib: Dict[str, str]) -> None:
        self._owner.start_element(tag, attrib)

    def data(self, data: str) -> None:
        self._owner.element_data(data)

    def end(self, tag: str) -> None:
        self._owner.end_element(tag)

    def close(self) -> None:
        return None


class ManifestParser:
    """Streaming parser turning a manifest document into a mapping.

    The document is fed incrementally, line by line, to an expat-backed
    ElementTree parser whose target calls :meth:`start_element`,
    :meth:`element_data` and :meth:`end_element`. No element tree is built;
    the manifest mapping is assembled directly from those events.
    """

    ROOT_ELEMENT: ClassVar[str] = "manifest"

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.reset()

    def reset(self) -> None:
        self._manifest: Optional[Dict[str, Any]] = None
        self._stack: List[ElementFrame] = []
        self._depth = 0
        self._ignored = False

    def get_data(self) -> Optional[Dict[str, Any]]:
        return self._manifest

    def parse(
        self, lines: Iterable[Union[str, bytes]], *, source: str = "<stream>"
    ) -> Optional[Dict[str, Any]]:
        """Parse manifest content.

        Args:
            lines: Iterable of text or byte chunks, typically an open file.
            source: Name used in log messages.

        Returns:
            Manifest data, or ``None`` when the document is malformed or its
            root element is not ``<manifest>``.
        """

        with self._lock:
            self.reset()
            parser = ET.XMLParser(target=_ParserTarget(self))
            try:
                for line in lines:
                    parser.feed(line)
                parser.close()
            except ET.ParseError as exc:
                logger.warning(
                    "manifest parse failed",
                    extra={"stage": "manifest", "path": source, "error": str(exc)},
                )
                self.reset()
                return None
            data = self.get_data()
            self.reset()
            return data

    def parse_file(self, path: PathLike) -> Optional[Dict[str, Any]]:
        with Path(path).open("rb") as handle:
            return self.parse(handle, source=str(path))

    def parse_string(self, text: Union[str, bytes]) -> Optional[Dict[str, Any]]:
        return self.parse([text])

    def start_element(self, tag: str, attributes: Mapping[str, str]) -> None:
        """Open an element; the document root decides whether anything is kept."""

        if self._depth == 0 and local_name(tag) != self.ROOT_ELEMENT:
            self._ignored = True
        self._depth += 1
        if self._ignored:
            return
        self._stack.append(ElementFrame(tag, attributes))

    def element_data(self, data: str) -> None:
        if self._stack:
            self._stack[-1].add_text(data)

    def end_element(self, tag: str) -> None:
        self._depth -= 1
        if self._ignored or not self._stack:
            return
        frame = self._stack.pop()
        if self._stack:
            self._stack[-1].add_child(frame.tag, frame.value())
        else:
            self._manifest = frame.value(force_mapping=True)


def read_manifest(path: PathLike) -> Optional[Dict[str, Any]]:
    """Convenience wrapper returning the validated mapping for one manifest file."""

    return ManifestReader(path).data

