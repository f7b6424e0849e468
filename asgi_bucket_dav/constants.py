from collections.abc import AsyncGenerator, Iterable
from dataclasses import dataclass
from enum import Enum, IntEnum, auto
from time import time
from typing import Any, TypeAlias

import arrow

from asgi_bucket_dav.exceptions import DAVExceptionBadRequest

# Common ---

ASGIHeaders: TypeAlias = Iterable[tuple[bytes, bytes]]


class DAVUpperEnumAbc(Enum):
    """自动大写化枚举类
    .name 可以是:大写/小写/大小写混合
    .value 为 .name 的自动大写化的字符串
    .label 为初始化时写在第一位的值

    默认值为空,需要继承实现;默认不会自动匹配默认值
    """

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        self._value_ = self._name_.upper()
        label = args[0]
        if not isinstance(label, str):
            self.label = str(label)
        else:
            self.label = label

    @classmethod
    def _missing_(cls, value: Any) -> "DAVUpperEnumAbc":
        if not isinstance(value, str):
            raise ValueError(f"Invalid {cls.__name__} value: {value}")

        try:
            return cls[value.upper()]
        except KeyError:
            return cls[cls.default_value(value).upper()]

    @classmethod
    def default_value(cls, value: Any) -> str:
        raise ValueError(f"Invalid {cls.__name__} value: {value}")


# WebDAV protocol ---
class DAVMethod(DAVUpperEnumAbc):
    # default/fallback
    UNKNOWN = auto()

    # rfc4918:9.1
    PROPFIND = auto()
    # rfc4918:9.2
    PROPPATCH = auto()
    # rfc4918:9.3
    MKCOL = auto()
    # rfc4918:9.4
    GET = auto()
    HEAD = auto()
    # rfc4918:9.6
    DELETE = auto()
    # rfc4918:9.7
    PUT = auto()
    # rfc4918:9.8
    COPY = auto()
    # rfc4918:9.9
    MOVE = auto()
    # rfc4918:9.10
    LOCK = auto()
    # rfc4918:9.11
    UNLOCK = auto()
    OPTIONS = auto()

    @classmethod
    def default_value(cls, value: Any) -> str:
        return "UNKNOWN"


# order of the Allow header
DAV_SUPPORT_METHODS = (
    "OPTIONS",
    "PROPFIND",
    "MKCOL",
    "GET",
    "HEAD",
    "PUT",
    "COPY",
    "MOVE",
    "PROPPATCH",
    "DELETE",
    "UNLOCK",
    "LOCK",
)
DAV_HEADER_ALLOW = ", ".join(DAV_SUPPORT_METHODS).encode("utf-8")
DAV_HEADER_DAV_CLASS = b"1"


class DAVHeaders:
    data: dict[bytes, bytes]

    def __init__(self, data: ASGIHeaders | None = None):
        if data is None:
            self.data = dict()
            return

        self.data = {k.lower(): v for k, v in data}

    def get(self, key: bytes, default: bytes | None = None) -> bytes | None:
        return self.data.get(key, default)

    def get_str(self, key: bytes) -> str | None:
        value = self.data.get(key)
        if value is None:
            return None

        return value.decode("utf-8")

    def __getitem__(self, key: bytes) -> bytes | None:
        return self.data.get(key)

    def __setitem__(self, key: bytes, value: bytes) -> None:
        self.data[key] = value

    def __contains__(self, item: bytes) -> bool:
        return item in self.data

    def update(self, new_data: dict[bytes, bytes]) -> None:
        self.data.update(new_data)

    def list(self) -> list[tuple[bytes, bytes]]:
        return list(self.data.items())

    def __repr__(self) -> str:  # pragma: no cover
        return self.data.__repr__()


class DAVResourceKey:
    """Canonical object store key of a WebDAV resource.

    raw: no leading '/', no trailing '/', root is ''
    """

    raw: str

    parts: list[str]
    count: int  # len(parts)

    def _update_value(self, parts: list[str], count: int) -> None:
        self.raw = "/".join(parts)
        self.parts = parts
        self.count = count

    def __init__(
        self,
        path: str | bytes | None = None,
        parts: list[str] | None = None,
        count: int | None = None,
    ):
        if path is None and parts is not None and count is not None:
            self._update_value(parts=parts, count=count)
            return

        elif path is None:
            self._update_value(parts=[], count=0)
            return

        elif not isinstance(path, (str, bytes)):
            raise DAVExceptionBadRequest(f"Except path for DAVResourceKey:{path}")

        if isinstance(path, bytes):
            path = str(path, encoding="utf-8")

        parts = list()
        for item in path.split("/"):
            if len(item) == 0 or item == ".":
                continue

            if item == "..":
                try:
                    parts.pop()
                except IndexError:
                    raise DAVExceptionBadRequest(
                        f"Except path for DAVResourceKey:{path}"
                    )
                continue

            parts.append(item)

        self._update_value(parts=parts, count=len(parts))

    @property
    def is_root(self) -> bool:
        return self.count == 0

    @property
    def parent(self) -> "DAVResourceKey":
        if self.count == 0:
            return DAVResourceKey()

        return DAVResourceKey(parts=self.parts[: self.count - 1], count=self.count - 1)

    @property
    def name(self) -> str:
        if self.count == 0:
            return "/"

        return self.parts[self.count - 1]

    @property
    def list_prefix(self) -> str:
        """object store prefix of the resource's members"""
        if self.count == 0:
            return ""

        return self.raw + "/"

    @property
    def lock_key(self) -> str:
        return f"{DAV_LOCK_KEY_PREFIX}{self.raw}"

    def href(self, is_collection: bool = False) -> str:
        if self.count == 0:
            return "/"

        if is_collection:
            return f"/{self.raw}/"

        return f"/{self.raw}"

    def startswith(self, key: "DAVResourceKey") -> bool:
        return self.parts[: key.count] == key.parts

    def is_inside(self, key: "DAVResourceKey") -> bool:
        """strict descendant"""
        return self.count > key.count and self.startswith(key)

    def get_child(self, parent: "DAVResourceKey") -> "DAVResourceKey":
        new_parts = self.parts[parent.count :]
        return DAVResourceKey(parts=new_parts, count=self.count - parent.count)

    def add_child(self, child: "DAVResourceKey | str") -> "DAVResourceKey":
        if not isinstance(child, DAVResourceKey):
            child = DAVResourceKey(child)

        return DAVResourceKey(
            parts=self.parts + child.parts,
            count=self.count + child.count,
        )

    def __hash__(self) -> int:
        return hash(self.raw)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DAVResourceKey):
            return False

        return self.raw == other.raw

    def __repr__(self) -> str:
        return f"DAVResourceKey('{self.raw}')"

    def __str__(self) -> str:
        return self.raw


class DAVDepth(Enum):
    d0 = "0"
    d1 = "1"
    infinity = "infinity"

    @classmethod
    def from_header(
        cls, value: bytes | None, default: "DAVDepth | None" = None
    ) -> "DAVDepth | None":
        """
        https://www.rfc-editor.org/rfc/rfc4918#section-10.2
        Depth = "Depth" ":" ("0" | "1" | "infinity")

        return None if the value is not a valid depth
        """
        if value is None:
            return default

        try:
            return cls(value.decode("utf-8").strip().lower())
        except (ValueError, UnicodeDecodeError):
            return None


class DAVTime:
    timestamp: float

    def __init__(self, timestamp: float | None = None):
        if timestamp is None:
            timestamp = time()

        self.timestamp = timestamp
        self.arrow = arrow.get(timestamp).to("UTC")

    def http_date(self) -> str:
        # https://datatracker.ietf.org/doc/html/rfc7232#section-2.2
        # Last-Modified: Tue, 15 Nov 1994 12:45:26 GMT
        return self.arrow.format("ddd, DD MMM YYYY HH:mm:ss [GMT]")

    def ui_display(self) -> str:
        return self.arrow.format(arrow.FORMAT_W3C)

    @classmethod
    def from_http_date(cls, value: str) -> "DAVTime | None":
        try:
            return cls(
                arrow.get(value.strip(), "ddd, DD MMM YYYY HH:mm:ss [GMT]").timestamp()
            )
        except ValueError:
            return None

    def __repr__(self) -> str:
        return self.arrow.isoformat()


# Collection ---
# custom metadata tag of a collection marker object
DAV_COLLECTION_METADATA_KEY = "resourcetype"
DAV_COLLECTION_MARKER = "<collection />"

# Lock ---
DAV_LOCK_KEY_PREFIX = "lock_"
DAV_LOCK_TOKEN_PREFIX = "opaquelocktoken:"
DAV_LOCK_TIMEOUT = 600  # seconds
DAV_LOCK_DEPTH = "infinity"


class DAVLockScope(Enum):
    """
    https://tools.ietf.org/html/rfc4918
    14.13.  lockscope XML Element
         <!ELEMENT lockscope (exclusive | shared) >
    """

    exclusive = "exclusive"
    shared = "shared"


# Property ---
DAV_PROPERTY_KEYS = (
    "creationdate",
    "displayname",
    "getcontentlanguage",
    "getcontentlength",
    "getcontenttype",
    "getetag",
    "getlastmodified",
    "resourcetype",
    "lockdiscovery",
)


# Range ---
class DAVRangeType(IntEnum):
    RANGE = auto()
    SUFFIX = auto()


# Range|Request ---
@dataclass(slots=True)
class DAVRequestRange:
    type: DAVRangeType
    range_start: int | None = None
    range_end: int | None = None  # inclusive
    suffix_length: int | None = None


# Range|Response ---
@dataclass(slots=True)
class DAVResponseContentRange:
    content_start: int
    content_end: int  # inclusive
    file_size: int

    @property
    def content_length(self) -> int:
        return self.content_end - self.content_start + 1

    def header_value(self) -> bytes:
        # https://developer.mozilla.org/zh-CN/docs/Web/HTTP/Headers/Content-Range
        # Content-Range: <unit> <range-start>-<range-end>/<size>
        return (
            f"bytes {self.content_start}-{self.content_end}/{self.file_size}"
        ).encode("utf-8")


# Response ---
RESPONSE_DATA_BLOCK_SIZE = 64 * 1024


class DAVResponseContentType(Enum):
    ANY = 0
    HTML = 1
    XML = 2


# (body<bytes>, more_body<bool>)
DAVResponseBodyGenerator: TypeAlias = AsyncGenerator[tuple[bytes, bool], None]

# Authentication ---

DEFAULT_USERNAME = "username"
DEFAULT_PASSWORD = "password"
DEFAULT_AUTH_REALM = "webdav"

# CORS ---

DEFAULT_CORS_ALLOW_HEADERS = [
    "authorization",
    "content-type",
    "depth",
    "overwrite",
    "destination",
    "range",
]
DEFAULT_CORS_EXPOSE_HEADERS = [
    "content-type",
    "content-length",
    "dav",
    "etag",
    "last-modified",
    "location",
    "date",
    "content-range",
]
DEFAULT_CORS_MAX_AGE = 86400

# Store ---

DEFAULT_STORE_URI = "memory:///"
DEFAULT_LOCK_STORE_URI = "memory:///"
DEFAULT_STORE_LIST_LIMIT = 1000


# Development ---


class LoggingLevel(Enum):
    CRITICAL = "CRITICAL"
    ERROR = "ERROR"
    WARNING = "WARNING"
    INFO = "INFO"
    DEBUG = "DEBUG"


@dataclass(slots=True)
class AppEntryParameters:
    bind_host: str | None = None
    bind_port: int | None = None

    config_file: str | None = None
    admin_user: tuple[str, str] | None = None
    store_uri: str | None = None

    logging_display_datetime: bool = True
    logging_use_colors: bool = True
