from __future__ import annotations

from dataclasses import asdict, dataclass, field
from logging import getLogger
from typing import Any

from asgi_bucket_dav.constants import (
    DAV_COLLECTION_MARKER,
    DAV_COLLECTION_METADATA_KEY,
    DEFAULT_STORE_LIST_LIMIT,
    DAVHeaders,
    DAVRangeType,
    DAVRequestRange,
    DAVResponseContentRange,
    DAVTime,
)

logger = getLogger(__name__)


@dataclass(slots=True)
class DAVHTTPMetadata:
    content_type: str | None = None
    content_language: str | None = None
    content_disposition: str | None = None
    content_encoding: str | None = None
    cache_control: str | None = None
    cache_expiry: str | None = None

    @classmethod
    def from_headers(cls, headers: DAVHeaders) -> "DAVHTTPMetadata":
        return cls(
            content_type=headers.get_str(b"content-type"),
            content_language=headers.get_str(b"content-language"),
            content_disposition=headers.get_str(b"content-disposition"),
            content_encoding=headers.get_str(b"content-encoding"),
            cache_control=headers.get_str(b"cache-control"),
            cache_expiry=headers.get_str(b"expires"),
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DAVHTTPMetadata":
        return cls(**{k: v for k, v in data.items() if k in cls.__slots__})

    def to_dict(self) -> dict[str, str | None]:
        return asdict(self)

    def get_response_headers(self) -> dict[bytes, bytes]:
        headers = dict()
        for header_name, value in (
            (b"Content-Type", self.content_type),
            (b"Content-Language", self.content_language),
            (b"Content-Disposition", self.content_disposition),
            (b"Content-Encoding", self.content_encoding),
            (b"Cache-Control", self.cache_control),
            (b"Expires", self.cache_expiry),
        ):
            if value is not None:
                headers[header_name] = value.encode("utf-8")

        return headers


@dataclass(slots=True)
class DAVStoreObject:
    key: str
    size: int
    etag: str  # unquoted
    uploaded: float  # timestamp

    http_metadata: DAVHTTPMetadata = field(default_factory=DAVHTTPMetadata)
    custom_metadata: dict[str, str] = field(default_factory=dict)

    @property
    def http_etag(self) -> str:
        return f'"{self.etag}"'

    @property
    def is_collection(self) -> bool:
        return (
            self.custom_metadata.get(DAV_COLLECTION_METADATA_KEY)
            == DAV_COLLECTION_MARKER
        )


@dataclass(slots=True)
class DAVStoreObjectBody(DAVStoreObject):
    # None: conditional read failed
    body: bytes | None = None
    # not None: range read honored
    content_range: DAVResponseContentRange | None = None


@dataclass(slots=True)
class DAVStoreListPage:
    objects: list[DAVStoreObject] = field(default_factory=list)
    truncated: bool = False
    cursor: str | None = None


@dataclass(slots=True)
class DAVStoreConditional:
    """
    https://datatracker.ietf.org/doc/html/rfc7232#section-3
    """

    etag_matches: list[str] = field(default_factory=list)
    etag_does_not_match: list[str] = field(default_factory=list)
    uploaded_before: DAVTime | None = None  # If-Unmodified-Since
    uploaded_after: DAVTime | None = None  # If-Modified-Since

    @staticmethod
    def _parser_etag_list(value: str | None) -> list[str]:
        if value is None:
            return list()

        result = list()
        for item in value.split(","):
            item = item.strip()
            if item.startswith("W/"):
                item = item[2:]

            result.append(item.strip('"'))

        return result

    @classmethod
    def from_headers(cls, headers: DAVHeaders) -> "DAVStoreConditional | None":
        if_match = headers.get_str(b"if-match")
        if_none_match = headers.get_str(b"if-none-match")
        if_unmodified_since = headers.get_str(b"if-unmodified-since")
        if_modified_since = headers.get_str(b"if-modified-since")
        if (
            if_match is None
            and if_none_match is None
            and if_unmodified_since is None
            and if_modified_since is None
        ):
            return None

        return cls(
            etag_matches=cls._parser_etag_list(if_match),
            etag_does_not_match=cls._parser_etag_list(if_none_match),
            uploaded_before=(
                None
                if if_unmodified_since is None
                else DAVTime.from_http_date(if_unmodified_since)
            ),
            uploaded_after=(
                None
                if if_modified_since is None
                else DAVTime.from_http_date(if_modified_since)
            ),
        )

    def is_satisfied(self, obj: DAVStoreObject) -> bool:
        if self.etag_matches and not (
            "*" in self.etag_matches or obj.etag in self.etag_matches
        ):
            return False

        if self.etag_does_not_match and (
            "*" in self.etag_does_not_match or obj.etag in self.etag_does_not_match
        ):
            return False

        # HTTP dates have a one second resolution
        uploaded = int(obj.uploaded)
        if (
            self.uploaded_before is not None
            and uploaded > self.uploaded_before.timestamp
        ):
            return False

        if (
            self.uploaded_after is not None
            and uploaded <= self.uploaded_after.timestamp
        ):
            return False

        return True


def get_content_range(
    request_range: DAVRequestRange | None, size: int
) -> DAVResponseContentRange | None:
    """None: no range, or the range can not be honored"""
    if request_range is None or size == 0:
        return None

    match request_range.type:
        case DAVRangeType.RANGE:
            start = request_range.range_start
            if start is None or start >= size:
                return None

            end = request_range.range_end
            if end is None or end >= size:
                end = size - 1
            if end < start:
                return None

        case DAVRangeType.SUFFIX:
            if not request_range.suffix_length:
                return None

            start = max(0, size - request_range.suffix_length)
            end = size - 1

        case _:  # pragma: no cover
            return None

    return DAVResponseContentRange(content_start=start, content_end=end, file_size=size)


def paginate_sorted_keys(
    keys: list[str],
    prefix: str,
    delimiter: str | None,
    cursor: str | None,
    limit: int,
) -> tuple[list[str], list[str], bool, str | None]:
    """one page of a sorted key list, return (keys, prefixes, truncated, cursor)

    cursor is the last key/prefix of the previous page, listing starts after it
    """
    page_keys = list()
    page_prefixes = list()
    last_item = None
    for key in keys:
        if not key.startswith(prefix):
            continue

        if cursor is not None:
            if key <= cursor:
                continue
            if delimiter and cursor.endswith(delimiter) and key.startswith(cursor):
                continue

        item = key
        is_prefix = False
        if delimiter:
            index = key.find(delimiter, len(prefix))
            if index != -1:
                item = key[: index + len(delimiter)]
                is_prefix = True
                if item == last_item:
                    continue

        if len(page_keys) + len(page_prefixes) >= limit:
            return page_keys, page_prefixes, True, last_item

        if is_prefix:
            page_prefixes.append(item)
        else:
            page_keys.append(item)
        last_item = item

    return page_keys, page_prefixes, False, None


class DAVObjectStore:
    """flat key-addressed object store"""

    uri: str
    list_limit: int

    def __init__(self, uri: str, list_limit: int = DEFAULT_STORE_LIST_LIMIT):
        self.uri = uri
        self.list_limit = list_limit

    def __repr__(self):
        return f"{self.__class__.__name__}({self.uri})"

    async def list(
        self,
        prefix: str = "",
        delimiter: str | None = None,
        cursor: str | None = None,
    ) -> DAVStoreListPage:
        raise NotImplementedError

    async def get(
        self,
        key: str,
        conditional: DAVStoreConditional | None = None,
        request_range: DAVRequestRange | None = None,
    ) -> DAVStoreObjectBody | None:
        raise NotImplementedError

    async def head(self, key: str) -> DAVStoreObject | None:
        raise NotImplementedError

    async def put(
        self,
        key: str,
        body: bytes,
        http_metadata: DAVHTTPMetadata | None = None,
        custom_metadata: dict[str, str] | None = None,
    ) -> DAVStoreObject:
        raise NotImplementedError

    async def delete(self, keys: str | list[str]) -> None:
        raise NotImplementedError


class DAVLockStore:
    """expiring key-value map"""

    uri: str

    def __init__(self, uri: str):
        self.uri = uri

    def __repr__(self):
        return f"{self.__class__.__name__}({self.uri})"

    async def put(self, key: str, value: str, ttl: int) -> None:
        raise NotImplementedError

    async def get(self, key: str) -> str | None:
        raise NotImplementedError

    async def delete(self, key: str) -> None:
        raise NotImplementedError
