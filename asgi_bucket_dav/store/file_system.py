from __future__ import annotations

import json
import urllib.parse
from asyncio import Lock
from logging import getLogger
from pathlib import Path

import aiofiles
import aiofiles.os
import aiofiles.ospath

from asgi_bucket_dav.constants import DAVRequestRange, DAVTime
from asgi_bucket_dav.exceptions import DAVExceptionStoreInitFailed
from asgi_bucket_dav.helpers import generate_etag
from asgi_bucket_dav.store.base import (
    DAVHTTPMetadata,
    DAVObjectStore,
    DAVStoreConditional,
    DAVStoreListPage,
    DAVStoreObject,
    DAVStoreObjectBody,
    get_content_range,
    paginate_sorted_keys,
)

logger = getLogger(__name__)

OBJECT_FILE_EXTENSION = "object"
META_FILE_EXTENSION = "meta"
"""meta file format: JSON
{
    "key": "a/b.txt",
    "size": 3,
    "etag": "<md5>",
    "uploaded": 1700000000.0,
    "http_metadata": {"content_type": "text/plain", ...},
    "custom_metadata": {"resourcetype": "<collection />"}
}
"""


def _encode_key(key: str) -> str:
    return urllib.parse.quote(key, safe="")


def _decode_key(name: str) -> str:
    return urllib.parse.unquote(name)


def _dump_object(obj: DAVStoreObject) -> str:
    return json.dumps(
        {
            "key": obj.key,
            "size": obj.size,
            "etag": obj.etag,
            "uploaded": obj.uploaded,
            "http_metadata": obj.http_metadata.to_dict(),
            "custom_metadata": obj.custom_metadata,
        }
    )


def _load_object(data: str) -> DAVStoreObject:
    data = json.loads(data)
    return DAVStoreObject(
        key=data["key"],
        size=data["size"],
        etag=data["etag"],
        uploaded=data["uploaded"],
        http_metadata=DAVHTTPMetadata.from_dict(data.get("http_metadata", {})),
        custom_metadata=data.get("custom_metadata", {}),
    )


class FileSystemObjectStore(DAVObjectStore):
    """every object is a pair of files under root:
    <percent-encoded key>.object and <percent-encoded key>.meta
    """

    root_path: Path

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.root_path = Path(urllib.parse.urlparse(self.uri).path)

        if not self.root_path.is_dir():
            raise DAVExceptionStoreInitFailed(
                'Init FileSystemObjectStore failed, "{}" is not exists.'.format(
                    self.root_path
                )
            )

        self._lock = Lock()

    def __repr__(self):
        return f"file://{self.root_path}"

    def _get_object_path(self, key: str) -> Path:
        return self.root_path.joinpath(f"{_encode_key(key)}.{OBJECT_FILE_EXTENSION}")

    def _get_meta_path(self, key: str) -> Path:
        return self.root_path.joinpath(f"{_encode_key(key)}.{META_FILE_EXTENSION}")

    async def _read_meta(self, key: str) -> DAVStoreObject | None:
        meta_path = self._get_meta_path(key)
        try:
            async with aiofiles.open(meta_path, "r") as fp:
                data = await fp.read()

        except FileNotFoundError:
            return None

        try:
            return _load_object(data)

        except (json.JSONDecodeError, KeyError, TypeError) as e:
            logger.warning(f"Load meta file failed, {meta_path}: {e}")
            return None

    async def _list_keys(self) -> list[str]:
        meta_suffix = f".{META_FILE_EXTENSION}"
        keys = list()
        for name in await aiofiles.os.listdir(self.root_path):
            if not name.endswith(meta_suffix):
                continue

            keys.append(_decode_key(name[: -len(meta_suffix)]))

        keys.sort()
        return keys

    async def list(
        self,
        prefix: str = "",
        delimiter: str | None = None,
        cursor: str | None = None,
    ) -> DAVStoreListPage:
        async with self._lock:
            keys, _, truncated, next_cursor = paginate_sorted_keys(
                await self._list_keys(),
                prefix=prefix,
                delimiter=delimiter,
                cursor=cursor,
                limit=self.list_limit,
            )

            objects = list()
            for key in keys:
                obj = await self._read_meta(key)
                if obj is not None:
                    objects.append(obj)

        return DAVStoreListPage(
            objects=objects,
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
            obj = await self._read_meta(key)
            if obj is None:
                return None

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
            async with aiofiles.open(self._get_object_path(key), "rb") as fp:
                if result.content_range is None:
                    result.body = await fp.read()
                else:
                    await fp.seek(result.content_range.content_start)
                    result.body = await fp.read(result.content_range.content_length)

        return result

    async def head(self, key: str) -> DAVStoreObject | None:
        async with self._lock:
            return await self._read_meta(key)

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
            http_metadata=DAVHTTPMetadata() if http_metadata is None else http_metadata,
            custom_metadata=dict() if custom_metadata is None else dict(custom_metadata),
        )
        async with self._lock:
            async with aiofiles.open(self._get_object_path(key), "wb") as fp:
                await fp.write(body)

            async with aiofiles.open(self._get_meta_path(key), "w") as fp:
                await fp.write(_dump_object(obj))

        return obj

    async def delete(self, keys: str | list[str]) -> None:
        if isinstance(keys, str):
            keys = [keys]

        async with self._lock:
            for key in keys:
                # meta first, an object without meta is invisible
                for path in (self._get_meta_path(key), self._get_object_path(key)):
                    if await aiofiles.ospath.exists(path):
                        await aiofiles.os.remove(path)
