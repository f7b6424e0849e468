import pytest

from asgi_bucket_dav.config import reinit_config_from_dict
from asgi_bucket_dav.constants import AppEntryParameters
from asgi_bucket_dav.middleware.cors import ASGIMiddlewareCORS
from asgi_bucket_dav.server import Server, convert_aep_to_uvicorn_kwargs, get_asgi_app

from .testkit_asgi import TEST_PASSWORD, TEST_USERNAME, ASGITestClient

CONFIG_OBJECT = {
    "username": TEST_USERNAME,
    "password": TEST_PASSWORD,
    "logging": {"level": "DEBUG"},
}


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "WEBDAV_USERNAME",
        "WEBDAV_PASSWORD",
        "WEBDAV_STORE_URI",
        "WEBDAV_LOGGING_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)

    reinit_config_from_dict(CONFIG_OBJECT)


@pytest.mark.asyncio
async def test_get_asgi_app():
    app = get_asgi_app(AppEntryParameters(), config_obj=CONFIG_OBJECT)
    assert isinstance(app, ASGIMiddlewareCORS)

    client = ASGITestClient(app, username=TEST_USERNAME, password=TEST_PASSWORD)
    response = await client.put("/hello.txt", data=b"hello")
    assert response.status_code == 201

    response = await client.get("/hello.txt", headers={b"origin": b"http://a.b"})
    assert response.status_code == 200
    assert response.data == b"hello"
    assert response.headers[b"access-control-allow-origin"] == b"http://a.b"

    app = get_asgi_app(
        AppEntryParameters(), config_obj={**CONFIG_OBJECT, "cors": {"enable": False}}
    )
    assert isinstance(app, Server)


def test_get_asgi_app_failed(tmp_path):
    with pytest.raises(SystemExit):
        get_asgi_app(
            AppEntryParameters(config_file=tmp_path.joinpath("missing.json").as_posix())
        )

    with pytest.raises(SystemExit):
        get_asgi_app(
            AppEntryParameters(),
            config_obj={**CONFIG_OBJECT, "store": {"list_limit": -1}},
        )

    with pytest.raises(SystemExit):
        get_asgi_app(
            AppEntryParameters(),
            config_obj={**CONFIG_OBJECT, "store": {"uri": "s3://bucket"}},
        )


def test_convert_aep_to_uvicorn_kwargs():
    kwargs = convert_aep_to_uvicorn_kwargs(
        AppEntryParameters(
            bind_host="127.0.0.1", bind_port=8000, admin_user=("a", "b")
        )
    )
    assert kwargs["host"] == "127.0.0.1"
    assert kwargs["port"] == 8000
    assert kwargs["lifespan"] == "off"
    assert kwargs["access_log"] is False
    assert callable(kwargs["app"])


@pytest.mark.asyncio
async def test_internal_server_error(client, mocker):
    mocker.patch.object(
        client.app.web_dav, "do_get", side_effect=RuntimeError("broken store")
    )

    response = await client.get("/file")
    assert response.status_code == 500
    assert response.text == "Internal Server Error"

    # HEAD goes through do_get as well
    response = await client.head("/file")
    assert response.status_code == 500


@pytest.mark.asyncio
async def test_http_exception_on_head(client):
    response = await client.head("/missing")
    assert response.status_code == 404
    assert response.data == b""

    response = await client.get("/missing")
    assert response.status_code == 404
    assert response.data != b""


@pytest.mark.asyncio
async def test_non_http_scope(client):
    sent = []

    async def fake_send(data):
        sent.append(data)

    await client.app({"type": "lifespan"}, None, fake_send)
    assert sent == []
