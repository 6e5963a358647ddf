#!/usr/bin/env python3
"""
Test configuration loading and validation.
"""

import httpx
import pytest
import yaml

from chariot import ChariotClient
from chariot.config import Configuration
from chariot.streaming import AsyncHttpTransport, ThreadedHttpTransport

VALID_CONFIG = {
    "api": {
        "base_path": "https://chariot.test/v1/",
        "api_key_env": "CHARIOT_TEST_KEY",
    },
    "http_client": {
        "connect_timeout": 5.0,
        "read_timeout": None,
        "write_timeout": 5.0,
        "pool_timeout": 5.0,
    },
    "streaming": {"transport": "threaded", "encoding": "utf-8"},
    "logging": {"level": "DEBUG"},
}


@pytest.fixture
def write_config(tmp_path):
    """Write a config dict to a temporary YAML file and return its path."""

    def _write(config: dict) -> str:
        path = tmp_path / "config.yaml"
        path.write_text(yaml.dump(config))
        return str(path)

    return _write


def test_default_config_file_loads():
    config = Configuration()

    assert config.get_api_config()["base_path"].startswith("http")
    assert config.get_streaming_config()["transport"] == "async"
    assert "read_timeout" in config.get_http_client_config()


def test_base_path_is_normalized(write_config):
    config = Configuration(write_config(VALID_CONFIG))
    assert config.get_api_config()["base_path"] == "https://chariot.test/v1"


def test_base_path_requires_explicit_config(write_config):
    config = Configuration(write_config({"api": {}}))

    with pytest.raises(ValueError, match="api.base_path must be explicitly configured"):
        config.get_api_config()


def test_base_path_must_be_http_url(write_config):
    config = Configuration(write_config({"api": {"base_path": "ftp://chariot.test"}}))

    with pytest.raises(ValueError, match="http"):
        config.get_api_config()


def test_http_client_requires_all_timeouts(write_config):
    config = Configuration(write_config({
        "http_client": {"connect_timeout": 5.0}
    }))

    with pytest.raises(ValueError, match="http_client.read_timeout must be explicitly"):
        config.get_http_client_config()


def test_http_client_rejects_non_positive_timeouts(write_config):
    http_client = {**VALID_CONFIG["http_client"], "connect_timeout": 0}
    config = Configuration(write_config({"http_client": http_client}))

    with pytest.raises(ValueError, match="connect_timeout must be positive"):
        config.get_http_client_config()


def test_null_read_timeout_is_allowed(write_config):
    config = Configuration(write_config(VALID_CONFIG))
    assert config.get_http_client_config()["read_timeout"] is None


def test_unknown_transport_rejected(write_config):
    config = Configuration(write_config({"streaming": {"transport": "websocket"}}))

    with pytest.raises(ValueError, match="streaming.transport must be one of"):
        config.get_streaming_config()


def test_unknown_encoding_rejected(write_config):
    config = Configuration(write_config({"streaming": {"encoding": "klingon-8"}}))

    with pytest.raises(ValueError, match="not a known codec"):
        config.get_streaming_config()


def test_api_key_from_environment(write_config, monkeypatch):
    monkeypatch.setenv("CHARIOT_TEST_KEY", "secret")
    config = Configuration(write_config(VALID_CONFIG))

    assert config.api_key == "secret"


def test_missing_api_key(write_config, monkeypatch):
    monkeypatch.delenv("CHARIOT_TEST_KEY", raising=False)
    config = Configuration(write_config(VALID_CONFIG))

    with pytest.raises(ValueError, match="CHARIOT_TEST_KEY"):
        _ = config.api_key


def test_non_dict_yaml_rejected(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("- just\n- a list\n")

    with pytest.raises(ValueError, match="Config file must be YAML dict"):
        Configuration(str(path))


@pytest.mark.asyncio
async def test_client_from_configuration(write_config, monkeypatch):
    monkeypatch.setenv("CHARIOT_TEST_KEY", "secret")
    config = Configuration(write_config(VALID_CONFIG))

    client = ChariotClient.from_configuration(config)

    assert client.api_key == "secret"
    assert client.base_path == "https://chariot.test/v1"
    assert isinstance(client.transport, ThreadedHttpTransport)
    await client.aclose()


@pytest.mark.asyncio
async def test_client_defaults_to_async_transport():
    client = ChariotClient(api_key="k", base_path="https://chariot.test/")

    assert isinstance(client.transport, AsyncHttpTransport)
    assert client.base_path == "https://chariot.test"
    await client.aclose()


@pytest.mark.asyncio
async def test_timeouts_are_passed_to_transport(write_config, monkeypatch):
    monkeypatch.setenv("CHARIOT_TEST_KEY", "secret")
    config = Configuration(write_config(VALID_CONFIG))

    client = ChariotClient.from_configuration(config)

    assert client.transport._client.timeout == httpx.Timeout(
        connect=5.0, read=None, write=5.0, pool=5.0
    )
    await client.aclose()
