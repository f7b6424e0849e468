import json
import tomllib
from dataclasses import dataclass, field
from logging import getLogger
from pathlib import Path

from dataclass_wizard import EnvWizard, JSONWizard

from asgi_bucket_dav.constants import (
    DAV_SUPPORT_METHODS,
    DEFAULT_CORS_ALLOW_HEADERS,
    DEFAULT_CORS_EXPOSE_HEADERS,
    DEFAULT_CORS_MAX_AGE,
    DEFAULT_LOCK_STORE_URI,
    DEFAULT_PASSWORD,
    DEFAULT_STORE_LIST_LIMIT,
    DEFAULT_STORE_URI,
    DEFAULT_USERNAME,
    AppEntryParameters,
    LoggingLevel,
)
from asgi_bucket_dav.exceptions import DAVExceptionConfig

logger = getLogger(__name__)


class EnvConfig(EnvWizard):
    class _(EnvWizard.Meta):
        env_prefix = "WEBDAV_"

    username: str | None = None
    password: str | None = None

    store_uri: str | None = None

    logging_level: str | None = None


@dataclass
class Store:
    """
    Object Store:
        uri: memory:///
        uri: file:///var/lib/bucket
    """

    uri: str = DEFAULT_STORE_URI
    list_limit: int = DEFAULT_STORE_LIST_LIMIT


@dataclass
class LockStore:
    uri: str = DEFAULT_LOCK_STORE_URI


@dataclass
class CORS:
    enable: bool = True
    allow_methods: list[str] = field(default_factory=lambda: list(DAV_SUPPORT_METHODS))
    allow_headers: list[str] = field(
        default_factory=lambda: list(DEFAULT_CORS_ALLOW_HEADERS)
    )
    expose_headers: list[str] = field(
        default_factory=lambda: list(DEFAULT_CORS_EXPOSE_HEADERS)
    )
    allow_credentials: bool = False
    preflight_max_age: int = DEFAULT_CORS_MAX_AGE


@dataclass
class Logging:
    level: LoggingLevel = LoggingLevel.INFO
    display_datetime: bool = True
    use_colors: bool = True


@dataclass
class Config(JSONWizard):
    # auth
    username: str = DEFAULT_USERNAME
    password: str = DEFAULT_PASSWORD

    # store
    store: Store = field(default_factory=Store)
    lock_store: LockStore = field(default_factory=LockStore)

    # response
    cors: CORS = field(default_factory=CORS)
    enable_dir_browser: bool = True

    # other
    logging: Logging = field(default_factory=Logging)

    def _update_from_env_config(self):
        env_config = EnvConfig()

        # auth
        if env_config.username is not None and env_config.password is not None:
            self.username = env_config.username
            self.password = env_config.password
            logger.info(f"Set user from ENV: {self.username}")

        # store
        if env_config.store_uri is not None:
            self.store.uri = env_config.store_uri
            logger.info(f"Set store uri from ENV to {self.store.uri}")

        # other
        if env_config.logging_level is not None:
            try:
                self.logging.level = LoggingLevel(env_config.logging_level.upper())
                logger.info(f"Set logging level from ENV to {self.logging.level}")
            except ValueError:
                logger.error(f"Invalid logging level: {env_config.logging_level}")

    def _update_from_app_args(self, aep: AppEntryParameters):
        # auth
        if aep.admin_user is not None:
            self.username, self.password = aep.admin_user
            logger.info(f"Set user from CLI: {self.username}")

        # store
        if aep.store_uri is not None:
            self.store.uri = aep.store_uri

        # logging
        if not aep.logging_display_datetime:
            self.logging.display_datetime = False
        if not aep.logging_use_colors:
            self.logging.use_colors = False

    def _fix_config(self):
        if (
            self.username == DEFAULT_USERNAME
            and self.password == DEFAULT_PASSWORD
        ):
            logger.warning(
                f"Use default user: {DEFAULT_USERNAME}/{DEFAULT_PASSWORD}"
            )

        if self.store.list_limit <= 0:
            raise DAVExceptionConfig(
                f"Invalid store list limit: {self.store.list_limit}"
            )

        self.cors.allow_methods = [m.upper() for m in self.cors.allow_methods]

    def update_from_app_args_and_env_and_default_value(self, aep: AppEntryParameters):
        """
        CLI Args > Environment Variable > Configuration File > Default Value
        """
        self._update_from_env_config()
        self._update_from_app_args(aep)
        self._fix_config()


_config: Config = Config()


def get_config() -> Config:
    return _config


def reinit_config_from_dict(data: dict) -> Config:
    global _config

    logger.debug("Load config value from python object(dict)")
    _config = Config.from_dict(data)

    return _config


def reinit_config_from_file(file_name: str) -> bool:
    file = Path(file_name)
    match file.suffix:
        case ".json":
            load_func = json.load
        case ".toml":
            load_func = tomllib.load
        case _:
            message = f"Unsupported config file type: {file.suffix}"
            logger.error(message)
            return False

    try:
        with open(file, "rb") as f:
            data = load_func(f)

    except FileNotFoundError as e:
        message = f"Can not open config file[{file}]!"
        logger.error(message)
        logger.error(e)
        return False

    except (json.JSONDecodeError, tomllib.TOMLDecodeError) as e:
        message = f"Load config from file[{file}] failed!"
        logger.error(message)
        logger.error(e)
        return False

    reinit_config_from_dict(data)

    return True
