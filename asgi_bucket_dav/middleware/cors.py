import functools

from asgiref.typing import (
    ASGIReceiveCallable,
    ASGISendCallable,
    ASGISendEvent,
    Scope,
)

from asgi_bucket_dav.constants import DAVHeaders

"""
- https://developer.mozilla.org/zh-CN/docs/Web/HTTP/CORS
- https://fetch.spec.whatwg.org/#http-cors-protocol

- https://github.com/simonw/asgi-cors
- https://github.com/encode/starlette/blob/master/starlette/middleware/cors.py
"""


class ASGIMiddlewareCORS:
    """CORS headers on every response

    Access-Control-Allow-Origin mirrors the request's Origin, "*" without one.
    Preflight requests are not short-circuited, OPTIONS reaches the app.
    """

    def __init__(
        self,
        app,
        allow_methods: list[str] = ("GET",),
        allow_headers: list[str] = (),
        allow_credentials: bool = False,
        expose_headers: list[str] = (),
        preflight_max_age: int = 600,
    ) -> None:
        cors_headers = DAVHeaders()
        cors_headers.update(
            {
                b"access-control-allow-methods": ", ".join(
                    [m.upper() for m in allow_methods]
                ).encode("utf-8"),
                b"access-control-allow-headers": ", ".join(allow_headers).encode(
                    "utf-8"
                ),
                b"access-control-expose-headers": ", ".join(expose_headers).encode(
                    "utf-8"
                ),
                b"access-control-allow-credentials": (
                    b"true" if allow_credentials else b"false"
                ),
                b"access-control-max-age": str(preflight_max_age).encode("utf-8"),
            }
        )

        self.app = app
        self.cors_headers = cors_headers

    async def __call__(
        self, scope: Scope, receive: ASGIReceiveCallable, send: ASGISendCallable
    ) -> None:
        if scope["type"] != "http":  # pragma: no cover
            await self.app(scope, receive, send)
            return

        request_headers = DAVHeaders(scope.get("headers"))
        send = functools.partial(self.send, send=send, request_headers=request_headers)
        await self.app(scope, receive, send)

    async def send(
        self, message: ASGISendEvent, send: ASGISendCallable, request_headers: DAVHeaders
    ) -> None:
        if message["type"] != "http.response.start":
            await send(message)
            return

        headers = DAVHeaders(message.get("headers"))
        headers.update(self.cors_headers.data)

        origin = request_headers.get(b"origin")
        if origin is None:
            headers[b"access-control-allow-origin"] = b"*"
        else:
            self.allow_explicit_origin(headers, origin)

        message["headers"] = headers.list()
        await send(message)

    @staticmethod
    def allow_explicit_origin(headers: DAVHeaders, origin: bytes) -> None:
        headers[b"access-control-allow-origin"] = origin

        vary = headers.get(b"vary")
        if vary is not None:
            vary = b", ".join([vary, b"Origin"])
        else:
            vary = b"Origin"

        headers[b"vary"] = vary
