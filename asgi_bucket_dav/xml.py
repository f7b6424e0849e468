"""
Tagged parse tree for the small XML request bodies of LOCK and PROPPATCH

    <D:lockinfo xmlns:D="DAV:">
        <D:lockscope><D:exclusive/></D:lockscope>
        <D:locktype><D:write/></D:locktype>
        <D:owner><D:href>litmus test suite</D:href></D:owner>
    </D:lockinfo>

    as_mapping() =>
    {
        "lockinfo": {
            "lockscope": "exclusive",
            "locktype": "write",
            "owner": {"href": "litmus test suite"},
        }
    }
"""

import xml.parsers.expat
from dataclasses import dataclass, field
from logging import getLogger
from typing import Any

import xmltodict

from asgi_bucket_dav.exceptions import DAVExceptionXMLParseFailed

logger = getLogger(__name__)

DAV_XML_NAMESPACE = "DAV:"
DAV_XML_PREFIX = "D"

_XML_ATTRIBUTE_PREFIX = "@"
_XML_TEXT_KEY = "#text"
_XML_NAMESPACE_ATTRIBUTE = "xmlns:"

XMLMapping = dict[str, Any] | str | None


def _split_prefix(name: str) -> tuple[str | None, str]:
    index = name.find(":")
    if index == -1:
        return None, name

    return name[:index], name[index + 1 :]


@dataclass(slots=True)
class DAVXMLElement:
    name: str
    attributes: dict[str, str] = field(default_factory=dict)
    children: list["DAVXMLElement"] = field(default_factory=list)
    text: str | None = None

    @classmethod
    def from_xmltodict(
        cls, name: str, value: Any, keep_prefix: bool, dav_prefix: str | None
    ) -> "DAVXMLElement":
        prefix, local_name = _split_prefix(name)
        if prefix is not None and (not keep_prefix or prefix == dav_prefix):
            name = local_name

        element = cls(name=name)
        if value is None:
            return element

        if isinstance(value, str):
            element.text = value.strip()
            return element

        for key, child_value in value.items():
            if key.startswith(_XML_ATTRIBUTE_PREFIX):
                element.attributes[key[1:]] = child_value

            elif key == _XML_TEXT_KEY:
                element.text = child_value.strip()

            elif isinstance(child_value, list):
                # repeated element
                for item in child_value:
                    element.children.append(
                        cls.from_xmltodict(key, item, keep_prefix, dav_prefix)
                    )

            else:
                element.children.append(
                    cls.from_xmltodict(key, child_value, keep_prefix, dav_prefix)
                )

        return element

    @property
    def is_empty(self) -> bool:
        return len(self.children) == 0 and not self.text

    def find(self, name: str) -> "DAVXMLElement | None":
        for child in self.children:
            if child.name == name:
                return child

        return None

    def value(self) -> XMLMapping:
        if len(self.children) == 0:
            return self.text if self.text else None

        if len(self.children) == 1 and self.children[0].is_empty:
            # <locktype><write/></locktype> => "write"
            return self.children[0].name

        return {child.name: child.value() for child in self.children}

    def as_mapping(self) -> dict[str, XMLMapping]:
        return {self.name: self.value()}


def _parse(data: bytes) -> tuple[str, Any]:
    try:
        result = xmltodict.parse(data)

    except (xmltodict.ParsingInterrupted, xml.parsers.expat.ExpatError) as e:
        raise DAVExceptionXMLParseFailed(f"parser XML failed: {e}")

    if not isinstance(result, dict) or len(result) != 1:
        raise DAVExceptionXMLParseFailed("parser XML failed: no root element")

    return next(iter(result.items()))


def _get_declared_namespaces(value: Any) -> list[tuple[str, str]]:
    if not isinstance(value, dict):
        return list()

    namespaces = list()
    attribute_prefix = f"{_XML_ATTRIBUTE_PREFIX}{_XML_NAMESPACE_ATTRIBUTE}"
    for key, uri in value.items():
        if key.startswith(attribute_prefix):
            namespaces.append((key[len(attribute_prefix) :], uri))

    return namespaces


def parse_xml(data: bytes, keep_prefix: bool = False) -> DAVXMLElement:
    """
    keep_prefix:
        False, drop every namespace prefix: <D:lockscope> => lockscope
        True, only drop the prefix bound to "DAV:" on the root element
    """
    root_name, root_value = _parse(data)

    dav_prefix = None
    for prefix, uri in _get_declared_namespaces(root_value):
        if uri == DAV_XML_NAMESPACE:
            dav_prefix = prefix
            break

    return DAVXMLElement.from_xmltodict(root_name, root_value, keep_prefix, dav_prefix)


def list_declared_namespaces(
    data: bytes, ignore_dav: bool = True
) -> list[tuple[str, str]]:
    """xmlns:prefix="uri" declared on the root element"""
    _, root_value = _parse(data)

    return [
        (prefix, uri)
        for prefix, uri in _get_declared_namespaces(root_value)
        if not ignore_dav or uri != DAV_XML_NAMESPACE
    ]
