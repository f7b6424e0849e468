import pprint
from dataclasses import dataclass, field
from logging import getLogger

from asgi_bucket_dav.constants import (
    DAV_HEADER_ALLOW,
    DAV_HEADER_DAV_CLASS,
    DAVMethod,
    DAVResponseBodyGenerator,
    DAVResponseContentRange,
    DAVResponseContentType,
)
from asgi_bucket_dav.helpers import get_data_generator_from_content
from asgi_bucket_dav.request import DAVRequest

logger = getLogger(__name__)


@dataclass(slots=True)
class DAVResponse:
    """WebDAV.do_xxx => WebDAV.distribute => Server"""

    status: int
    headers: dict[bytes, bytes] = field(default_factory=dict)

    content: bytes = b""
    content_body_generator: DAVResponseBodyGenerator = field(init=False)
    content_length: int | None = None
    # honored range of the content
    content_range: DAVResponseContentRange | None = None

    response_type: DAVResponseContentType = DAVResponseContentType.HTML

    def __post_init__(self) -> None:
        if self.response_type == DAVResponseContentType.HTML:
            self.headers.update(
                {
                    b"Content-Type": b"text/html; charset=utf-8",
                }
            )
        elif self.response_type == DAVResponseContentType.XML:
            self.headers.update(
                {
                    b"Content-Type": b"application/xml; charset=utf-8",
                }
            )

        if self.content_length is None:
            self.content_length = len(self.content)

        if self.content_range is not None:
            # https://developer.mozilla.org/zh-CN/docs/Web/HTTP/Headers/Content-Range
            self.headers.update(
                {
                    b"Content-Range": self.content_range.header_value(),
                }
            )

        self.content_body_generator = get_data_generator_from_content(self.content)

    def to_head_response(self) -> "DAVResponse":
        """same status and headers, empty body"""
        return DAVResponse(
            status=self.status,
            headers=dict(self.headers),
            content_length=self.content_length,
            response_type=DAVResponseContentType.ANY,
        )

    async def send_in_one_call(self, request: DAVRequest) -> None:
        logger.debug(self.__repr__())

        if isinstance(self.content_length, int):
            self.headers.update(
                {
                    b"Content-Length": str(self.content_length).encode("utf-8"),
                }
            )

        # send header
        await request.send(
            {
                "type": "http.response.start",
                "status": self.status,
                "headers": list(self.headers.items()),
                "trailers": False,
            }
        )
        # send data
        async for data, more_body in self.content_body_generator:
            await request.send(
                {
                    "type": "http.response.body",
                    "body": data,
                    "more_body": more_body,
                }
            )

    def __repr__(self) -> str:
        fields = [
            self.status,
            self.content_length,
            self.content_range,
        ]
        s = "|".join([str(field) for field in fields])

        s += f"\n{pprint.pformat(self.headers)}"
        return s


class DAVResponseMethodNotAllowed(DAVResponse):
    def __init__(self, method: DAVMethod | str):
        content = f"method:{method} is not support method".encode()
        super().__init__(
            status=405,
            headers={
                b"Allow": DAV_HEADER_ALLOW,
                b"DAV": DAV_HEADER_DAV_CLASS,
            },
            content=content,
        )
