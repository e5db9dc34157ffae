"""Conversion of XML elements into plain mapping structures.

Manifests and configuration documents share one conversion rule set so that
components receive the same shape regardless of where the XML came from:

* an element with neither attributes nor children becomes its stripped text;
* otherwise it becomes a dict with attributes under ``"@name"`` keys, children
  under their tag names, and non-empty text under ``"#text"``;
* a child tag seen more than once becomes a list in document order.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from typing import Any, Dict, List, Mapping, Optional, Set

__all__ = ["ATTRIBUTE_PREFIX", "TEXT_KEY", "ElementFrame", "element_to_data", "local_name"]

ATTRIBUTE_PREFIX = "@"
TEXT_KEY = "#text"


def local_name(tag: str) -> str:
    """Strip an ElementTree ``{namespace}`` prefix from ``tag``."""

    if tag.startswith("{"):
        return tag.rsplit("}", 1)[-1]
    return tag


class ElementFrame:
    """Accumulates the attributes, text, and children of one open element."""

    __slots__ = ("tag", "attributes", "children", "_text", "_repeated")

    def __init__(self, tag: str, attributes: Optional[Mapping[str, str]] = None) -> None:
        self.tag = local_name(tag)
        self.attributes = {local_name(key): value for key, value in (attributes or {}).items()}
        self.children: Dict[str, Any] = {}
        self._text: List[str] = []
        self._repeated: Set[str] = set()

    def add_text(self, data: str) -> None:
        # Expat may split text at any boundary; whitespace is only dropped once joined.
        if data:
            self._text.append(data)

    def add_child(self, tag: str, value: Any) -> None:
        if tag not in self.children:
            self.children[tag] = value
        elif tag in self._repeated:
            self.children[tag].append(value)
        else:
            self.children[tag] = [self.children[tag], value]
            self._repeated.add(tag)

    @property
    def text(self) -> str:
        return "".join(self._text).strip()

    def value(self, *, force_mapping: bool = False) -> Any:
        """Return the converted value of this element."""

        text = self.text
        if not force_mapping and not self.attributes and not self.children:
            return text
        data: Dict[str, Any] = {
            f"{ATTRIBUTE_PREFIX}{key}": value for key, value in self.attributes.items()
        }
        data.update(self.children)
        if text:
            data[TEXT_KEY] = text
        return data


def element_to_data(element: ET.Element, *, force_mapping: bool = False) -> Any:
    """Convert a parsed ElementTree element with the shared rule set."""

    frame = ElementFrame(element.tag, element.attrib)
    frame.add_text(element.text or "")
    for child in element:
        frame.add_child(local_name(child.tag), element_to_data(child))
        frame.add_text(child.tail or "")
    return frame.value(force_mapping=force_mapping)
