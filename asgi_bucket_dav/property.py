import urllib.parse
from dataclasses import dataclass
from logging import getLogger
from typing import Any
from xml.parsers.expat import ExpatError

import xmltodict

from asgi_bucket_dav.constants import (
    DAV_COLLECTION_MARKER,
    DAV_PROPERTY_KEYS,
    DAVResourceKey,
    DAVTime,
)
from asgi_bucket_dav.helpers import get_xml_from_dict
from asgi_bucket_dav.store.base import DAVStoreObject
from asgi_bucket_dav.xml import DAV_XML_NAMESPACE, DAV_XML_PREFIX

logger = getLogger(__name__)

DAV_SUPPORTED_LOCK: dict[str, Any] = {
    "D:lockentry": [
        {
            "D:lockscope": {"D:exclusive": None},
            "D:locktype": {"D:write": None},
        },
        {
            "D:lockscope": {"D:shared": None},
            "D:locktype": {"D:write": None},
        },
    ]
}

_PROPSTAT_STATUS_OK = "HTTP/1.1 200 OK"


@dataclass(slots=True)
class DAVPropertySet:
    creationdate: str | None = None
    displayname: str | None = None
    getcontentlanguage: str | None = None
    getcontentlength: str | None = None
    getcontenttype: str | None = None
    getetag: str | None = None
    getlastmodified: str | None = None
    resourcetype: str = ""
    lockdiscovery: str | None = None

    @classmethod
    def from_object(cls, obj: DAVStoreObject | None) -> "DAVPropertySet":
        """obj is None: the synthetic root collection"""
        if obj is None:
            now = DAVTime().http_date()
            return cls(
                creationdate=now,
                getcontentlength="0",
                getlastmodified=now,
                resourcetype=DAV_COLLECTION_MARKER,
            )

        uploaded = DAVTime(obj.uploaded).http_date()
        return cls(
            creationdate=uploaded,
            displayname=obj.http_metadata.content_disposition,
            getcontentlanguage=obj.http_metadata.content_language,
            getcontentlength=str(obj.size),
            getcontenttype=obj.http_metadata.content_type,
            getetag=obj.etag,
            getlastmodified=uploaded,
            resourcetype=obj.custom_metadata.get("resourcetype", ""),
        )

    @property
    def is_collection(self) -> bool:
        return self.resourcetype == DAV_COLLECTION_MARKER

    def as_dict(self, with_empty: bool = False) -> dict[str, Any]:
        """DAV: prefixed property elements, ready for xmltodict"""
        data = dict()
        for key in DAV_PROPERTY_KEYS:
            value = getattr(self, key)
            if key == "resourcetype":
                data["D:resourcetype"] = (
                    {"D:collection": None} if self.is_collection else None
                )
                continue

            if value is None and not with_empty:
                continue

            data[f"D:{key}"] = value

        return data


def parse_lock_discovery(lock_xml: str | None) -> Any:
    """stored lockdiscovery fragment => xmltodict value"""
    if lock_xml is None:
        return None

    try:
        data = xmltodict.parse(lock_xml)
    except ExpatError as e:
        logger.warning(f"parser stored lock discovery failed: {e}, xml: {lock_xml}")
        return None

    _, value = next(iter(data.items()))
    if isinstance(value, dict):
        value.pop(f"@xmlns:{DAV_XML_PREFIX}", None)

    return value


def get_href(key: DAVResourceKey, is_collection: bool) -> str:
    return urllib.parse.quote(key.href(is_collection), encoding="utf-8")


def render_propfind_entry(
    obj: DAVStoreObject | None, lock_xml: str | None = None
) -> dict[str, Any]:
    """one <D:response> of a PROPFIND Multi-Status

    obj is None: the synthetic root, every property key is emitted
    """
    property_set = DAVPropertySet.from_object(obj)
    if obj is None:
        href = "/"
        found_property = property_set.as_dict(with_empty=True)
    else:
        href = get_href(DAVResourceKey(obj.key), property_set.is_collection)
        found_property = property_set.as_dict()

    found_property["D:supportedlock"] = DAV_SUPPORTED_LOCK

    lock_discovery = parse_lock_discovery(lock_xml)
    if lock_discovery is not None:
        found_property["D:lockdiscovery"] = lock_discovery

    return {
        "D:href": href,
        "D:propstat": {
            "D:prop": found_property,
            "D:status": _PROPSTAT_STATUS_OK,
        },
    }


def render_multistatus(
    responses: list[dict[str, Any]],
    namespaces: list[tuple[str, str]] | None = None,
) -> bytes:
    data: dict[str, Any] = {
        f"@xmlns:{DAV_XML_PREFIX}": DAV_XML_NAMESPACE,
    }
    if namespaces:
        for prefix, uri in namespaces:
            data[f"@xmlns:{prefix}"] = uri

    data["D:response"] = responses
    return get_xml_from_dict({"D:multistatus": data})


def render_proppatch_entry(
    key: DAVResourceKey, names: list[str], is_collection: bool = False
) -> dict[str, Any]:
    """every requested property name is echoed as 200 OK, nothing is persisted"""
    found_property = dict()
    for name in names:
        if ":" not in name:
            name = f"{DAV_XML_PREFIX}:{name}"

        found_property[name] = None

    return {
        "D:href": get_href(key, is_collection),
        "D:propstat": {
            "D:prop": found_property,
            "D:status": _PROPSTAT_STATUS_OK,
        },
    }
