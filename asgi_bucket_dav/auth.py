import binascii
import hmac
from base64 import b64decode
from logging import getLogger

from asgi_bucket_dav.config import Config
from asgi_bucket_dav.constants import DEFAULT_AUTH_REALM, DAVMethod
from asgi_bucket_dav.exceptions import DAVExceptionUnauthorized
from asgi_bucket_dav.request import DAVRequest
from asgi_bucket_dav.response import DAVResponse

logger = getLogger(__name__)

"""
Ref:
- https://en.wikipedia.org/wiki/Basic_access_authentication
- https://datatracker.ietf.org/doc/html/rfc7617
    - The 'Basic' HTTP Authentication Scheme
- https://developer.mozilla.org/zh-CN/docs/Web/HTTP/Authentication
"""


class HTTPBasicAuth:
    realm: str

    def __init__(self, realm: str):
        self.realm = realm

    @staticmethod
    def is_credential(auth_header_type: bytes) -> bool:
        return auth_header_type.lower() == b"basic"

    def make_auth_challenge_string(self) -> bytes:
        return f'Basic realm="{self.realm}"'.encode("utf-8")

    @staticmethod
    def parser_auth_header_data(auth_header_data: bytes) -> tuple[str, str]:
        try:
            data = b64decode(auth_header_data, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            raise DAVExceptionUnauthorized("Malformed credentials")

        index = data.find(":")
        if index == -1:
            raise DAVExceptionUnauthorized("Malformed credentials")

        return data[:index], data[index + 1 :]


MESSAGE_401_TEMPLATE = """<!DOCTYPE html>
<html>
  <head>
    <meta charset="UTF-8" />
    <title>Error</title>
  </head>
  <body>
    <h1>401 Unauthorized. {}</h1>
  </body>
</html>"""


class DAVAuth:
    """one fixed Basic credential pair, OPTIONS is never challenged"""

    realm = DEFAULT_AUTH_REALM

    def __init__(self, config: Config):
        self.username = config.username
        self.password = config.password

        self.http_basic_auth = HTTPBasicAuth(realm=self.realm)
        logger.info(f"Register User: {self.username}")

    async def pick_out_user(self, request: DAVRequest) -> tuple[str | None, str]:
        if request.method == DAVMethod.OPTIONS:
            return "", ""

        authorization_header = request.headers.get(b"authorization")
        if authorization_header is None:
            return None, "miss header: authorization"

        index = authorization_header.find(b" ")
        if index == -1:
            return None, "wrong header: authorization"

        auth_header_type = authorization_header[:index]
        auth_header_data = authorization_header[index + 1 :].strip()
        if not self.http_basic_auth.is_credential(auth_header_type):
            return None, "Unknown authentication method"

        request.authorization_method = "Basic"
        try:
            username, password = self.http_basic_auth.parser_auth_header_data(
                auth_header_data
            )
        except DAVExceptionUnauthorized as e:
            return None, e.message

        if not self.check_user(username, password):
            logger.debug(f"Password verification failed, username:{username}")
            return None, "no permission"

        return username, ""

    def check_user(self, username: str, password: str) -> bool:
        username_matched = hmac.compare_digest(
            username.encode("utf-8"), self.username.encode("utf-8")
        )
        password_matched = hmac.compare_digest(
            password.encode("utf-8"), self.password.encode("utf-8")
        )
        return username_matched and password_matched

    def create_response_401(self, request: DAVRequest, message: str) -> DAVResponse:
        logger.debug(f"response Basic auth challenge: {request.src_path}")
        return DAVResponse(
            status=401,
            content=MESSAGE_401_TEMPLATE.format(message).encode("utf-8"),
            headers={
                b"WWW-Authenticate": self.http_basic_auth.make_auth_challenge_string()
            },
        )
