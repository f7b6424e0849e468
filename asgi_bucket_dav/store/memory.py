from __future__ import annotations

from asyncio import Lock
from copy import deepcopy
from dataclasses import dataclass
from datetime import datetime, timedelta
from logging import getLogger

from asgi_bucket_dav.constants import DAVRequestRange, DAVTime
from asgi_bucket_dav.helpers import generate_etag
from asgi_bucket_dav.store.base import (
    DAVHTTPMetadata,
    DAVLockStore,
    DAVObjectStore,
    DAVStoreConditional,
    DAVStoreListPage,
    DAVStoreObject,
    DAVStoreObjectBody,
    get_content_range,
    paginate_sorted_keys,
)

logger = getLogger(__name__)


@dataclass(slots=True)
class MemoryObjectMember:
    obj: DAVStoreObject
    content: bytes


class MemoryObjectStore(DAVObjectStore):
    _lock: Lock
    _members: dict[str, MemoryObjectMember]

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._members = dict()
        self._lock = Lock()

    async def list(
        self,
        prefix: str = "",
        delimiter: str | None = None,
        cursor: str | None = None,
    ) -> DAVStoreListPage:
        async with self._lock:
            keys, _, truncated, next_cursor = paginate_sorted_keys(
                sorted(self._members),
                prefix=prefix,
                delimiter=delimiter,
                cursor=cursor,
                limit=self.list_limit,
            )

            return DAVStoreListPage(
                objects=[deepcopy(self._members[key].obj) for key in keys],
                truncated=truncated,
                cursor=next_cursor,
            )

    async def get(
        self,
        key: str,
        conditional: DAVStoreConditional | None = None,
        request_range: DAVRequestRange | None = None,
    ) -> DAVStoreObjectBody | None:
        async with self._lock:
            member = self._members.get(key)
            if member is None:
                return None

            obj = deepcopy(member.obj)
            content = member.content

        result = DAVStoreObjectBody(
            key=obj.key,
            size=obj.size,
            etag=obj.etag,
            uploaded=obj.uploaded,
            http_metadata=obj.http_metadata,
            custom_metadata=obj.custom_metadata,
        )
        if conditional is not None and not conditional.is_satisfied(obj):
            return result

        result.content_range = get_content_range(request_range, obj.size)
        if result.content_range is None:
            result.body = content
        else:
            result.body = content[
                result.content_range.content_start : result.content_range.content_end
                + 1
            ]

        return result

    async def head(self, key: str) -> DAVStoreObject | None:
        async with self._lock:
            member = self._members.get(key)
            if member is None:
                return None

            return deepcopy(member.obj)

    async def put(
        self,
        key: str,
        body: bytes,
        http_metadata: DAVHTTPMetadata | None = None,
        custom_metadata: dict[str, str] | None = None,
    ) -> DAVStoreObject:
        obj = DAVStoreObject(
            key=key,
            size=len(body),
            etag=generate_etag(body),
            uploaded=DAVTime().timestamp,
            http_metadata=(
                DAVHTTPMetadata()
                if http_metadata is None
                else deepcopy(http_metadata)
            ),
            custom_metadata=dict() if custom_metadata is None else dict(custom_metadata),
        )
        async with self._lock:
            self._members[key] = MemoryObjectMember(obj=obj, content=body)

        return deepcopy(obj)

    async def delete(self, keys: str | list[str]) -> None:
        if isinstance(keys, str):
            keys = [keys]

        async with self._lock:
            for key in keys:
                self._members.pop(key, None)


class MemoryLockStore(DAVLockStore):
    """expiring map, an entry is dropped on the first read after its TTL"""

    _lock: Lock
    _data: dict[str, tuple[str, datetime]]

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._data = dict()
        self._lock = Lock()

    async def put(self, key: str, value: str, ttl: int) -> None:
        async with self._lock:
            self._data[key] = (value, datetime.now() + timedelta(seconds=ttl))

    async def get(self, key: str) -> str | None:
        async with self._lock:
            cached = self._data.get(key)
            if cached is None:
                return None

            value, expiration = cached
            if datetime.now() < expiration:
                return value

            # expired
            self._data.pop(key, None)
            logger.debug(f"Lock store entry expired: {key}")
            return None

    async def delete(self, key: str) -> None:
        async with self._lock:
            self._data.pop(key, None)
