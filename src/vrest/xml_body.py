"""XML-to-dict and dict-to-XML conversion for request and response bodies.

The XML codec works on plain Python data: response bodies are converted
into dicts (then validated into the destination type) and structured request
bodies are converted into JSON-compatible data before being rendered as XML.

Conversion rules:

* Namespace URIs are stripped from tag names.
* Attributes become ``@name`` keys; mixed text becomes a ``#text`` key.
* Repeated sibling tags become lists, single children stay scalar.
* Empty elements become ``None``.

Attributes are not emitted when rendering XML.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from typing import Any


# ---------------------------------------------------------------------------
# XML bytes -> Python dict
# ---------------------------------------------------------------------------


def xml_to_dict(xml_bytes: bytes) -> dict[str, Any]:
    """Convert XML bytes into a dict keyed by the root element tag.

    Raises:
        ET.ParseError: If *xml_bytes* is not well-formed XML.
    """
    root = ET.fromstring(xml_bytes)
    return {_strip_ns(root.tag): _element_to_value(root)}


def _strip_ns(tag: str) -> str:
    if tag.startswith("{"):
        return tag.split("}", 1)[1]
    return tag


def _element_to_value(element: ET.Element) -> dict[str, Any] | str | None:
    result: dict[str, Any] = {}

    for attr_name, attr_value in element.attrib.items():
        if attr_name.startswith("xmlns") or attr_name.startswith("{"):
            continue
        result[f"@{attr_name}"] = attr_value

    children_by_tag: dict[str, list[Any]] = {}
    for child in element:
        children_by_tag.setdefault(_strip_ns(child.tag), []).append(
            _element_to_value(child)
        )

    for tag, values in children_by_tag.items():
        result[tag] = values if len(values) > 1 else values[0]

    text = (element.text or "").strip()
    if text:
        if not result:
            return text
        result["#text"] = text

    if not result:
        return None
    return result


# ---------------------------------------------------------------------------
# Python data -> XML bytes
# ---------------------------------------------------------------------------


def dict_to_xml(root_tag: str, value: Any) -> bytes:
    """Render *value* as an XML document whose root element is *root_tag*.

    Dicts become child elements, lists become repeated siblings, ``None``
    becomes an empty element and scalars become text. Booleans are written
    as ``true`` / ``false``.

    Returns:
        UTF-8 encoded XML bytes with an XML declaration.
    """
    root = _to_element(root_tag, value)
    return ET.tostring(root, encoding="utf-8", xml_declaration=True)


def _to_element(tag: str, value: Any) -> ET.Element:
    element = ET.Element(tag)

    if value is None:
        pass
    elif isinstance(value, dict):
        for key, child in value.items():
            if key == "#text":
                element.text = _scalar_text(child)
                continue
            if key.startswith("@"):
                continue
            if isinstance(child, list):
                for item in child:
                    element.append(_to_element(key, item))
            else:
                element.append(_to_element(key, child))
    elif isinstance(value, list):
        for item in value:
            element.append(_to_element("item", item))
    else:
        element.text = _scalar_text(value)

    return element


def _scalar_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
