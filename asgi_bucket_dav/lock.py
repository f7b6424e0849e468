import asyncio
from dataclasses import dataclass
from logging import getLogger
from typing import Any
from uuid import uuid4

import xmltodict

from asgi_bucket_dav.constants import (
    DAV_LOCK_DEPTH,
    DAV_LOCK_TIMEOUT,
    DAV_LOCK_TOKEN_PREFIX,
    DAVLockScope,
    DAVResourceKey,
)
from asgi_bucket_dav.exceptions import (
    DAVExceptionLocked,
    DAVExceptionMalformedRequest,
    DAVExceptionXMLParseFailed,
)
from asgi_bucket_dav.helpers import get_xml_from_dict
from asgi_bucket_dav.property import get_href, parse_lock_discovery
from asgi_bucket_dav.store.base import DAVLockStore
from asgi_bucket_dav.xml import DAV_XML_NAMESPACE, parse_xml

logger = getLogger(__name__)


@dataclass(slots=True)
class DAVLockInfo:
    """<D:lockinfo> of a LOCK request body"""

    scope: DAVLockScope
    lock_type: str
    owner: str

    @classmethod
    def from_xml(cls, body: bytes) -> "DAVLockInfo":
        try:
            data = parse_xml(body).as_mapping()

        except DAVExceptionXMLParseFailed as e:
            logger.warning(f"{e}, xml: {body!r}")
            raise DAVExceptionMalformedRequest("Lock body is not valid XML")

        lock_info = data.get("lockinfo")
        if not isinstance(lock_info, dict):
            logger.warning(f"Lock failed, miss lockinfo: {data}")
            raise DAVExceptionMalformedRequest("Miss lockinfo")

        lock_type = lock_info.get("locktype")
        lock_scope = lock_info.get("lockscope")
        owner = lock_info.get("owner")
        if not isinstance(owner, dict) or not owner.get("href"):
            owner_href = None
        else:
            owner_href = owner.get("href")

        if (
            not isinstance(lock_type, str)
            or not isinstance(lock_scope, str)
            or not isinstance(owner_href, str)
        ):
            logger.warning(f"Lock failed, incomplete lockinfo: {data}")
            raise DAVExceptionMalformedRequest("Incomplete lockinfo")

        try:
            scope = DAVLockScope(lock_scope)
        except ValueError:
            logger.warning(f"Lock failed, unknown lockscope: {lock_scope}")
            raise DAVExceptionMalformedRequest(f"Unknown lockscope: {lock_scope}")

        return cls(scope=scope, lock_type=lock_type, owner=owner_href)


@dataclass(slots=True)
class DAVLockObj:
    token: str
    xml: str  # <D:lockdiscovery> fragment

    def get_response_body(self) -> bytes:
        return get_xml_from_dict(
            {
                "D:prop": {
                    "@xmlns:D": DAV_XML_NAMESPACE,
                    "D:lockdiscovery": parse_lock_discovery(self.xml),
                }
            }
        )


def create_lock_discovery(
    key: DAVResourceKey, info: DAVLockInfo, token: str, timeout: int
) -> str:
    data: dict[str, Any] = {
        "D:lockdiscovery": {
            "@xmlns:D": DAV_XML_NAMESPACE,
            "D:activelock": {
                "D:locktype": {f"D:{info.lock_type}": None},
                "D:lockscope": {f"D:{info.scope.value}": None},
                "D:locktoken": {"D:href": token},
                "D:lockroot": {"D:href": get_href(key, False)},
                "D:depth": DAV_LOCK_DEPTH,
                "D:owner": {"D:href": info.owner},
                "D:timeout": f"Second-{timeout}",
            },
        }
    }
    return xmltodict.unparse(data, full_document=False, short_empty_elements=True)


class DAVLockManager:
    """exclusive, advisory locks kept in an expiring key-value store

    key: lock_<resource key>, value: the rendered lockdiscovery fragment
    """

    def __init__(self, store: DAVLockStore, timeout: int = DAV_LOCK_TIMEOUT):
        self.store = store
        self.timeout = timeout
        self.lock = asyncio.Lock()

    async def acquire(self, key: DAVResourceKey, info: DAVLockInfo) -> DAVLockObj:
        async with self.lock:
            if await self.store.get(key.lock_key) is not None:
                raise DAVExceptionLocked(f"Already locked: {key}")

            token = f"{DAV_LOCK_TOKEN_PREFIX}{uuid4()}"
            lock_xml = create_lock_discovery(key, info, token, self.timeout)
            await self.store.put(key.lock_key, lock_xml, ttl=self.timeout)

        logger.debug(f"Lock {key}: {token}")
        return DAVLockObj(token=token, xml=lock_xml)

    async def release(self, key: DAVResourceKey) -> None:
        async with self.lock:
            await self.store.delete(key.lock_key)

    async def lookup(self, key: DAVResourceKey) -> str | None:
        return await self.store.get(key.lock_key)
