import hashlib
from typing import Any

import xmltodict
from asgiref.typing import ASGIReceiveCallable, HTTPRequestEvent

from asgi_bucket_dav.constants import (
    RESPONSE_DATA_BLOCK_SIZE,
    DAVResponseBodyGenerator,
)


async def receive_all_data_in_one_call(receive: ASGIReceiveCallable) -> bytes:
    data = b""
    more_body = True
    while more_body:
        request_data: HTTPRequestEvent = await receive()  # type: ignore
        data += request_data.get("body", b"")
        more_body = request_data.get("more_body", False)

    return data


async def get_data_generator_from_content(
    content: bytes,
    block_size: int = RESPONSE_DATA_BLOCK_SIZE,
) -> DAVResponseBodyGenerator:
    start = 0
    content_length = len(content)

    more_body = True
    while more_body:
        end = start + block_size
        if end > content_length:
            end = content_length

        data = content[start:end]
        start = end
        more_body = start < content_length

        yield data, more_body


def generate_etag(content: bytes) -> str:
    """
    https://tools.ietf.org/html/rfc7232#section-2.3 ETag
    md5 of the object content, unquoted
    """
    return hashlib.md5(content).hexdigest()


def get_xml_from_dict(data: dict[str, Any]) -> bytes:
    return (
        xmltodict.unparse(data, short_empty_elements=True)
        .replace("\n", "")
        .encode("utf-8")
    )
