import pprint
import urllib.parse
from dataclasses import dataclass, field
from logging import getLogger

from asgiref.typing import ASGIReceiveCallable, ASGISendCallable, HTTPScope

from asgi_bucket_dav.constants import (
    DAVDepth,
    DAVHeaders,
    DAVMethod,
    DAVRangeType,
    DAVRequestRange,
    DAVResourceKey,
)
from asgi_bucket_dav.exceptions import DAVExceptionBadRequest
from asgi_bucket_dav.helpers import receive_all_data_in_one_call
from asgi_bucket_dav.store.base import DAVHTTPMetadata, DAVStoreConditional

logger = getLogger(__name__)


@dataclass(slots=True)
class DAVRequest:
    """Information from Request
    Server => WebDAV.distribute => WebDAV.do_xxx
    """

    # init data
    scope: HTTPScope
    receive: ASGIReceiveCallable
    send: ASGISendCallable

    # client info
    client_ip_address: str = field(init=False)
    client_user_agent: str = field(init=False)

    # header's info ---
    method: DAVMethod = field(init=False)
    headers: DAVHeaders = field(init=False)
    raw_path: str = field(init=False)
    src_path: DAVResourceKey = field(init=False)
    src_path_is_parsed_success: bool = True
    # listing/collection signal
    trailing_slash: bool = False

    # Destination
    dst_path: DAVResourceKey | None = None
    dst_path_is_parsed_success: bool = True

    # Depth, None: header absent
    depth: DAVDepth | None = None
    depth_is_parsed_success: bool = True

    # Overwrite, None: header absent
    overwrite: bool | None = None

    # Range, only the first range
    content_range: DAVRequestRange | None = None

    # If-Match/If-None-Match/If-Modified-Since/If-Unmodified-Since
    conditional: DAVStoreConditional | None = None

    # Lock-Token
    lock_token: str | None = None

    # body's info ---
    body: bytes = b""

    # session info - update in DAVAuth.pick_out_user()
    username: str | None = None
    authorization_method: str = ""

    def __post_init__(self) -> None:
        self.method = DAVMethod(self.scope.get("method", "UNKNOWN"))
        self.headers = DAVHeaders(self.scope.get("headers", []))
        user_agent = self.headers.get(b"user-agent")
        if user_agent is None:
            self.client_user_agent = ""
        else:
            self.client_user_agent = user_agent.decode("utf-8")

        self._parser_client_ip_address()

        # path
        self.raw_path = self.scope.get("path", "/")
        try:
            self.src_path, self.trailing_slash = self._resolve(self.raw_path)
        except DAVExceptionBadRequest as e:
            logger.warning(f"Invalid path: {self.raw_path}, {e}")
            self.src_path = DAVResourceKey()
            self.src_path_is_parsed_success = False

        # destination
        raw_url = self.headers.get(b"destination")
        if raw_url is not None:
            self._parser_header_destination(raw_url)

        # depth
        """
        https://www.rfc-editor.org/rfc/rfc4918#section-10.2
        10.2.  Depth Header

            Depth = "Depth" ":" ("0" | "1" | "infinity")

        The Depth request header is used with methods executed on resources
        that could potentially have internal members to indicate whether the
        method is to be applied only to the resource ("Depth: 0"), to the
        resource and its internal members only ("Depth: 1"), or the resource
        and all its members ("Depth: infinity").
        """
        depth = self.headers.get(b"depth")
        if depth is not None:
            self.depth = DAVDepth.from_header(depth)
            if self.depth is None:
                self.depth_is_parsed_success = False

        # overwrite
        """
        https://tools.ietf.org/html/rfc4918#page-77
        10.6.  Overwrite Header
              Overwrite = "Overwrite" ":" ("T" | "F")
        """
        overwrite = self.headers.get(b"overwrite")
        if overwrite == b"T":
            self.overwrite = True
        elif overwrite == b"F":
            self.overwrite = False

        # header: lock-token
        header_lock_token = self.headers.get(b"lock-token")
        if header_lock_token:
            self.lock_token = header_lock_token.decode("utf-8").strip("<> ")

        # header: range, conditional
        if self.method in (DAVMethod.GET, DAVMethod.HEAD):
            self._parser_header_range()
            self.conditional = DAVStoreConditional.from_headers(self.headers)

        return

    @staticmethod
    def _resolve(path: str) -> tuple[DAVResourceKey, bool]:
        """percent-decoded URL path => (key, has trailing slash)"""
        path = urllib.parse.unquote(path, encoding="utf-8")
        return DAVResourceKey(path), path.endswith("/")

    def _parser_header_destination(self, raw_url: bytes) -> None:
        try:
            url = urllib.parse.urlparse(raw_url.decode("utf-8"))
            if not url.path:
                raise ValueError("empty path")

            self.dst_path, _ = self._resolve(url.path)

        except (ValueError, UnicodeDecodeError, DAVExceptionBadRequest) as e:
            logger.warning(f"Invalid Destination: {raw_url!r}, {e}")
            self.dst_path = None
            self.dst_path_is_parsed_success = False

    def _parser_client_ip_address(self) -> None:
        ip_address = self.headers.get(b"x-real-ip")
        if ip_address is not None:
            self.client_ip_address = ip_address.decode("utf-8")
            return

        ip_address = self.headers.get(b"x-forwarded-for")
        if ip_address is not None:
            self.client_ip_address = ip_address.decode("utf-8").split(",")[0]
            return

        ip_address_client = self.scope.get("client")
        if ip_address_client is None:
            self.client_ip_address = ""
        else:
            self.client_ip_address = ip_address_client[0]

        return

    def _parser_header_range(self) -> None:
        # https://developer.mozilla.org/zh-CN/docs/Web/HTTP/Range_requests
        # https://developer.mozilla.org/zh-CN/docs/Web/HTTP/Headers/Range
        # Range: bytes=<start>-<end>, bytes=<start>-, bytes=-<suffix-length>
        header_range = self.headers.get(b"range")
        if header_range is None:
            return

        header_range_str = header_range.decode("utf-8").lower().strip()
        if header_range_str[:6] != "bytes=":
            return

        # TODO: support multi-range
        content_range = header_range_str[6:].split(",")[0].strip().split("-")
        if len(content_range) != 2:
            return

        start, end = content_range
        try:
            if start == "":
                self.content_range = DAVRequestRange(
                    type=DAVRangeType.SUFFIX, suffix_length=int(end)
                )
            elif end == "":
                self.content_range = DAVRequestRange(
                    type=DAVRangeType.RANGE, range_start=int(start)
                )
            else:
                self.content_range = DAVRequestRange(
                    type=DAVRangeType.RANGE,
                    range_start=int(start),
                    range_end=int(end),
                )

        except ValueError:
            logger.debug(f"Ignore invalid Range: {header_range_str}")
            self.content_range = None

        return

    def get_http_metadata(self) -> DAVHTTPMetadata:
        return DAVHTTPMetadata.from_headers(self.headers)

    async def receive_body(self) -> bytes:
        self.body = await receive_all_data_in_one_call(self.receive)
        return self.body

    def __repr__(self) -> str:
        simple_fields = ["method", "src_path", "trailing_slash"]

        if self.method == DAVMethod.PROPFIND:
            simple_fields += ["depth", "depth_is_parsed_success"]

        elif self.method in (DAVMethod.GET, DAVMethod.HEAD):
            simple_fields += ["content_range", "conditional"]

        elif self.method in (DAVMethod.COPY, DAVMethod.MOVE):
            simple_fields += ["dst_path", "depth", "overwrite"]

        elif self.method in (DAVMethod.LOCK, DAVMethod.UNLOCK):
            simple_fields += ["lock_token"]

        simple = "|".join([str(self.__getattribute__(name)) for name in simple_fields])
        scope = pprint.pformat(self.scope)
        return f"{self.username}|{simple}\n{scope}"
