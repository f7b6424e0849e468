import pytest

from asgi_bucket_dav.auth import DAVAuth, HTTPBasicAuth
from asgi_bucket_dav.exceptions import DAVExceptionUnauthorized

from .testkit_asgi import (
    TEST_PASSWORD,
    TEST_USERNAME,
    create_basic_authorization_headers,
    create_dav_request_object,
    get_test_client,
    get_test_config,
)


def create_request(method: str = "GET", authorization: bytes | None = None):
    headers = [] if authorization is None else [(b"authorization", authorization)]
    return create_dav_request_object(method=method, path="/", headers=headers)


def test_basic_auth_parser():
    username, password = HTTPBasicAuth.parser_auth_header_data(
        b"dXNlcm5hbWU6cGFzczp3b3Jk"  # username:pass:word
    )
    assert username == "username"
    assert password == "pass:word"

    with pytest.raises(DAVExceptionUnauthorized):
        HTTPBasicAuth.parser_auth_header_data(b"!!!")

    with pytest.raises(DAVExceptionUnauthorized):
        HTTPBasicAuth.parser_auth_header_data(b"dXNlcm5hbWU=")  # username

    assert HTTPBasicAuth("webdav").make_auth_challenge_string() == (
        b'Basic realm="webdav"'
    )


@pytest.mark.asyncio
async def test_pick_out_user():
    dav_auth = DAVAuth(get_test_config())

    authorization = create_basic_authorization_headers(TEST_USERNAME, TEST_PASSWORD)[
        b"authorization"
    ]
    request = create_request(authorization=authorization)
    username, message = await dav_auth.pick_out_user(request)
    assert username == TEST_USERNAME
    assert message == ""
    assert request.authorization_method == "Basic"

    authorization = create_basic_authorization_headers(TEST_USERNAME, "wrong")[
        b"authorization"
    ]
    username, message = await dav_auth.pick_out_user(
        create_request(authorization=authorization)
    )
    assert username is None
    assert message == "no permission"

    username, message = await dav_auth.pick_out_user(create_request())
    assert username is None
    assert message == "miss header: authorization"

    username, message = await dav_auth.pick_out_user(
        create_request(authorization=b"Basic")
    )
    assert username is None

    username, message = await dav_auth.pick_out_user(
        create_request(authorization=b"Digest username=x")
    )
    assert username is None
    assert message == "Unknown authentication method"

    # OPTIONS is never challenged
    username, _ = await dav_auth.pick_out_user(create_request(method="OPTIONS"))
    assert username == ""


@pytest.mark.asyncio
async def test_response_401():
    client = get_test_client()

    client.username = None
    response = await client.get("/")
    assert response.status_code == 401
    assert response.headers[b"www-authenticate"] == b'Basic realm="webdav"'

    client.username = TEST_USERNAME
    client.password = "wrong"
    response = await client.propfind("/")
    assert response.status_code == 401

    client.password = TEST_PASSWORD
    response = await client.propfind("/")
    assert response.status_code == 207
