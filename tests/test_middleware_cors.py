import pytest
from icecream import ic

from asgi_bucket_dav.constants import (
    DAV_SUPPORT_METHODS,
    DEFAULT_CORS_ALLOW_HEADERS,
    DEFAULT_CORS_EXPOSE_HEADERS,
)
from asgi_bucket_dav.middleware.cors import ASGIMiddlewareCORS

from .testkit_asgi import ASGIApp, ASGITestClient


def get_middleware_app(middleware, **kwargs):
    if "app_response_header" in kwargs:
        return middleware(
            ASGIApp(app_response_header=kwargs.pop("app_response_header")), **kwargs
        )
    else:
        return middleware(ASGIApp(), **kwargs)


def get_default_client(**kwargs) -> ASGITestClient:
    return ASGITestClient(
        get_middleware_app(
            ASGIMiddlewareCORS,
            allow_methods=list(DAV_SUPPORT_METHODS),
            allow_headers=DEFAULT_CORS_ALLOW_HEADERS,
            expose_headers=DEFAULT_CORS_EXPOSE_HEADERS,
            allow_credentials=False,
            preflight_max_age=86400,
            **kwargs,
        )
    )


@pytest.mark.asyncio
async def test_cors_without_origin():
    client = get_default_client()

    response = await client.get("/")
    ic("in test", response)
    assert response.status_code == 200
    assert response.text == "Hello, World!"
    assert response.headers[b"content-type"] == b"text/plain"
    assert response.headers[b"access-control-allow-origin"] == b"*"
    assert response.headers[b"access-control-allow-methods"] == (
        b"OPTIONS, PROPFIND, MKCOL, GET, HEAD, PUT, COPY, MOVE, PROPPATCH, DELETE,"
        b" UNLOCK, LOCK"
    )
    assert response.headers[b"access-control-allow-headers"] == (
        b"authorization, content-type, depth, overwrite, destination, range"
    )
    assert response.headers[b"access-control-expose-headers"] == (
        b"content-type, content-length, dav, etag, last-modified, location, date,"
        b" content-range"
    )
    assert response.headers[b"access-control-allow-credentials"] == b"false"
    assert response.headers[b"access-control-max-age"] == b"86400"
    assert b"vary" not in response.headers


@pytest.mark.asyncio
async def test_cors_mirror_origin():
    client = get_default_client()

    response = await client.get("/", headers={b"origin": b"https://example.org"})
    assert response.headers[b"access-control-allow-origin"] == b"https://example.org"
    assert response.headers[b"vary"] == b"Origin"

    # preflight reaches the app
    response = await client.options(
        "/",
        headers={
            b"origin": b"https://example.org",
            b"access-control-request-method": b"PROPFIND",
        },
    )
    assert response.status_code == 200
    assert response.text == "Hello, World!"
    assert response.headers[b"access-control-allow-origin"] == b"https://example.org"


@pytest.mark.asyncio
async def test_cors_merge_vary():
    client = get_default_client(app_response_header={b"Vary": b"Accept-Encoding"})

    response = await client.get("/", headers={b"origin": b"https://example.org"})
    assert response.headers[b"vary"] == b"Accept-Encoding, Origin"
