"""Default body codecs and content-type family detection.

Each codec receives the in-flight :class:`~vrest.request.Request` so an
override installed through :class:`~vrest.client.Overridables` can make
contextual decisions (for example, pick a different JSON dialect per
endpoint). The defaults ignore it.

Marshaling goes through :func:`pydantic_core.to_jsonable_python`, so
pydantic models, dataclasses, dicts, lists, enums and datetimes all encode
without extra work. Unmarshaling validates the decoded data against the
destination's type via :meth:`~vrest.body.StructuredTarget.load`.
"""

from __future__ import annotations

import dataclasses
import json
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel
from pydantic_core import to_jsonable_python

from vrest.xml_body import dict_to_xml, xml_to_dict

if TYPE_CHECKING:
    from vrest.body import StructuredTarget
    from vrest.request import Request

CONTENT_TYPE_JSON = "application/json"
CONTENT_TYPE_XML = "text/xml"
CONTENT_TYPE_FORM = "application/x-www-form-urlencoded"


def is_json_content_type(content_type: str) -> bool:
    """Report whether *content_type* belongs to the JSON family (``*/json``)."""
    return content_type.find("/json") > 0


def is_xml_content_type(content_type: str) -> bool:
    """Report whether *content_type* belongs to the XML family (``*/xml``)."""
    return content_type.find("/xml") > 0


def json_marshal(req: Request, value: Any) -> bytes:
    """Encode *value* as UTF-8 JSON without escaping non-ASCII characters."""
    return json.dumps(to_jsonable_python(value), ensure_ascii=False).encode("utf-8")


def json_unmarshal(req: Request, data: bytes, target: StructuredTarget) -> None:
    """Decode JSON *data* into *target*.

    Raises:
        ValueError: On malformed JSON or data that does not fit the target
            type (``pydantic.ValidationError`` is a ``ValueError``).
    """
    target.load(json.loads(data))


def xml_marshal(req: Request, value: Any) -> bytes:
    """Encode *value* as an XML document.

    A dict with exactly one key names its own root element. Pydantic models
    and dataclass instances use their class name as the root element.

    Raises:
        ValueError: If no root element name can be derived from *value*.
    """
    if isinstance(value, dict) and len(value) == 1:
        root_tag = next(iter(value))
        return dict_to_xml(root_tag, to_jsonable_python(value[root_tag]))
    if isinstance(value, BaseModel) or (
        dataclasses.is_dataclass(value) and not isinstance(value, type)
    ):
        return dict_to_xml(type(value).__name__, to_jsonable_python(value))
    raise ValueError(
        f"cannot derive an XML root element from {type(value).__name__}; "
        f"pass a model, a dataclass or a dict with exactly one key"
    )


def xml_unmarshal(req: Request, data: bytes, target: StructuredTarget) -> None:
    """Decode XML *data* into *target*.

    The root element maps onto the target itself, so ``<User><Name>a</Name></User>``
    loads ``{"Name": "a"}``.

    Raises:
        xml.etree.ElementTree.ParseError: On malformed XML.
        ValueError: If the decoded data does not fit the target type.
    """
    document = xml_to_dict(data)
    root_value = next(iter(document.values()))
    target.load(root_value if root_value is not None else {})
