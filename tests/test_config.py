import json

import pytest

from asgi_bucket_dav.config import (
    Config,
    LoggingLevel,
    get_config,
    reinit_config_from_dict,
    reinit_config_from_file,
)
from asgi_bucket_dav.constants import (
    DEFAULT_PASSWORD,
    DEFAULT_USERNAME,
    AppEntryParameters,
)
from asgi_bucket_dav.exceptions import DAVExceptionConfig

TOML_CONFIG = """
username = "toml_user"
password = "toml_password"
enable_dir_browser = false

[store]
uri = "file:///var/lib/bucket"
list_limit = 100

[logging]
level = "DEBUG"
"""


@pytest.fixture
def default_config():
    config = Config()

    yield config

    pass


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "WEBDAV_USERNAME",
        "WEBDAV_PASSWORD",
        "WEBDAV_STORE_URI",
        "WEBDAV_LOGGING_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)


def test_default_config(default_config):
    config = default_config
    assert config.username == DEFAULT_USERNAME
    assert config.password == DEFAULT_PASSWORD
    assert config.store.uri == "memory:///"
    assert config.store.list_limit == 1000
    assert config.lock_store.uri == "memory:///"
    assert config.cors.enable is True
    assert config.cors.allow_credentials is False
    assert config.cors.preflight_max_age == 86400
    assert "PROPFIND" in config.cors.allow_methods
    assert config.enable_dir_browser is True
    assert config.logging.level == LoggingLevel.INFO


def test_reinit_config_from_dict():
    config = reinit_config_from_dict(
        {
            "username": "dict_user",
            "password": "dict_password",
            "store": {"uri": "file:///tmp", "list_limit": 10},
            "logging": {"level": "WARNING"},
        }
    )
    assert config is get_config()
    assert config.username == "dict_user"
    assert config.store.uri == "file:///tmp"
    assert config.store.list_limit == 10
    assert config.logging.level == LoggingLevel.WARNING

    reinit_config_from_dict({})
    assert get_config().username == DEFAULT_USERNAME


def test_reinit_config_from_file(tmp_path):
    toml_file = tmp_path.joinpath("config.toml")
    toml_file.write_text(TOML_CONFIG)
    assert reinit_config_from_file(toml_file.as_posix())

    config = get_config()
    assert config.username == "toml_user"
    assert config.enable_dir_browser is False
    assert config.store.uri == "file:///var/lib/bucket"
    assert config.store.list_limit == 100
    assert config.logging.level == LoggingLevel.DEBUG

    json_file = tmp_path.joinpath("config.json")
    json_file.write_text(json.dumps({"username": "json_user"}))
    assert reinit_config_from_file(json_file.as_posix())
    assert get_config().username == "json_user"

    # failed, keep the last config
    assert not reinit_config_from_file(tmp_path.joinpath("missing.json").as_posix())
    assert not reinit_config_from_file(tmp_path.joinpath("config.yaml").as_posix())

    broken_file = tmp_path.joinpath("broken.json")
    broken_file.write_text("{")
    assert not reinit_config_from_file(broken_file.as_posix())
    assert get_config().username == "json_user"

    reinit_config_from_dict({})


def test_update_from_env(default_config, monkeypatch):
    monkeypatch.setenv("WEBDAV_USERNAME", "env_user")
    monkeypatch.setenv("WEBDAV_PASSWORD", "env_password")
    monkeypatch.setenv("WEBDAV_STORE_URI", "file:///env")
    monkeypatch.setenv("WEBDAV_LOGGING_LEVEL", "debug")

    config = default_config
    config.update_from_app_args_and_env_and_default_value(AppEntryParameters())
    assert config.username == "env_user"
    assert config.password == "env_password"
    assert config.store.uri == "file:///env"
    assert config.logging.level == LoggingLevel.DEBUG


def test_update_from_app_args(default_config, monkeypatch):
    monkeypatch.setenv("WEBDAV_STORE_URI", "file:///env")

    config = default_config
    config.update_from_app_args_and_env_and_default_value(
        AppEntryParameters(
            admin_user=("cli_user", "cli_password"),
            store_uri="file:///cli",
            logging_use_colors=False,
        )
    )
    assert config.username == "cli_user"
    assert config.password == "cli_password"
    assert config.store.uri == "file:///cli"
    assert config.logging.use_colors is False
    assert config.logging.display_datetime is True


def test_fix_config(default_config):
    config = default_config
    config.cors.allow_methods = ["get", "Propfind"]
    config.update_from_app_args_and_env_and_default_value(AppEntryParameters())
    assert config.cors.allow_methods == ["GET", "PROPFIND"]

    config.store.list_limit = 0
    with pytest.raises(DAVExceptionConfig):
        config.update_from_app_args_and_env_and_default_value(AppEntryParameters())
