import logging.config
import sys
from logging import getLogger

from asgiref.typing import ASGIReceiveCallable, ASGISendCallable, Scope

from asgi_bucket_dav import __version__
from asgi_bucket_dav.auth import DAVAuth
from asgi_bucket_dav.config import (
    Config,
    get_config,
    reinit_config_from_dict,
    reinit_config_from_file,
)
from asgi_bucket_dav.constants import AppEntryParameters, DAVMethod
from asgi_bucket_dav.exceptions import (
    DAVExceptionConfig,
    DAVExceptionHTTP,
    DAVExceptionStoreInitFailed,
)
from asgi_bucket_dav.log import get_dav_logging_config
from asgi_bucket_dav.middleware.cors import ASGIMiddlewareCORS
from asgi_bucket_dav.request import DAVRequest
from asgi_bucket_dav.response import DAVResponse
from asgi_bucket_dav.web_dav import WebDAV

logger = getLogger(__name__)


_service_abnormal_exit_message = "ASGI Bucket DAV Server has stopped working!"


class Server:
    def __init__(self, config: Config):
        logger.info(f"ASGI Bucket DAV Server(v{__version__}) starting...")
        self.dav_auth = DAVAuth(config)
        try:
            self.web_dav = WebDAV(config)

        except DAVExceptionStoreInitFailed as e:
            logger.critical(e)
            logger.info(_service_abnormal_exit_message)
            sys.exit(1)

    async def __call__(
        self, scope: Scope, receive: ASGIReceiveCallable, send: ASGISendCallable
    ) -> None:
        if scope["type"] != "http":
            logger.warning(f"Unsupported ASGI scope type: {scope['type']}")
            return

        request, response = await self.handle(scope, receive, send)

        logger.info(
            '%s - "%s %s" %s %s - %s',
            request.client_ip_address,
            request.method.value,
            request.raw_path,
            response.status,
            request.username,
            request.client_user_agent,
        )
        logger.debug(request.headers)
        await response.send_in_one_call(request)

    async def handle(
        self, scope: Scope, receive: ASGIReceiveCallable, send: ASGISendCallable
    ) -> tuple[DAVRequest, DAVResponse]:
        request = DAVRequest(scope, receive, send)

        # check user auth
        username, message = await self.dav_auth.pick_out_user(request)
        if username is None:
            logger.debug(request)
            return request, self.dav_auth.create_response_401(request, message)

        request.username = username
        if not request.src_path_is_parsed_success:
            return request, DAVResponse(400, content=b"Invalid path")

        # process WebDAV request
        try:
            response = await self.web_dav.distribute(request)

        except DAVExceptionHTTP as e:
            logger.debug(f"{request.method.value} {request.src_path}: {e.message}")
            response = DAVResponse(e.status, content=e.message.encode("utf-8"))
            if request.method == DAVMethod.HEAD:
                response = response.to_head_response()

        except Exception as e:
            logger.exception(e)
            response = DAVResponse(500, content=b"Internal Server Error")

        logger.debug(response)
        return request, response


def get_asgi_app(aep: AppEntryParameters, config_obj: dict | None = None):
    """create ASGI app"""
    logging.config.dictConfig(get_dav_logging_config())

    # init config
    if aep.config_file is not None:
        if not reinit_config_from_file(aep.config_file):
            logger.critical(f"Load config file failed: {aep.config_file}")
            logger.info(_service_abnormal_exit_message)
            sys.exit(1)

    if config_obj is not None:
        reinit_config_from_dict(config_obj)

    config = get_config()
    try:
        config.update_from_app_args_and_env_and_default_value(aep=aep)

    except DAVExceptionConfig as e:
        logger.critical(e)
        logger.info(_service_abnormal_exit_message)
        sys.exit(1)

    logging.config.dictConfig(
        get_dav_logging_config(
            level=config.logging.level.value,
            display_datetime=config.logging.display_datetime,
            use_colors=config.logging.use_colors,
        )
    )
    logger.debug(config.to_dict())

    # create ASGI app
    app = Server(config)

    # CORS
    if config.cors.enable:
        app = ASGIMiddlewareCORS(
            app=app,
            allow_methods=config.cors.allow_methods,
            allow_headers=config.cors.allow_headers,
            allow_credentials=config.cors.allow_credentials,
            expose_headers=config.cors.expose_headers,
            preflight_max_age=config.cors.preflight_max_age,
        )

    logger.info(
        "ASGI Bucket DAV Server running on http://{}:{} (Press CTRL+C to quit)".format(
            aep.bind_host if aep.bind_host is not None else "?",
            aep.bind_port if aep.bind_port is not None else "?",
        )
    )
    return app


def convert_aep_to_uvicorn_kwargs(aep: AppEntryParameters) -> dict:
    return {
        "app": get_asgi_app(aep=aep),
        "host": aep.bind_host,
        "port": aep.bind_port,
        "use_colors": aep.logging_use_colors,
        "lifespan": "off",
        "log_level": "warning",
        "access_log": False,
        "forwarded_allow_ips": "*",
    }
