"""Configuration management for the Chariot streaming client."""

import codecs
import os
from typing import Any

import yaml
from dotenv import load_dotenv

DEFAULT_CONFIG_PATH = os.path.join(os.path.dirname(__file__), "config.yaml")
DEFAULT_API_KEY_ENV = "CHARIOT_API_KEY"


class Configuration:
    """Manages configuration and environment variables for the Chariot client."""

    def __init__(self, config_path: str | None = None) -> None:
        """Initialize configuration from YAML and environment variables."""
        self.load_env()  # Load .env for API keys
        self.config_path = config_path or DEFAULT_CONFIG_PATH
        self._config = self._load_yaml_config(self.config_path)

    @staticmethod
    def load_env() -> None:
        """Load environment variables from .env file."""
        load_dotenv()

    @staticmethod
    def _load_yaml_config(config_path: str) -> dict[str, Any]:
        """Load configuration from YAML file."""
        with open(config_path) as file:
            config = yaml.safe_load(file)
            if not isinstance(config, dict):
                raise ValueError(
                    f"Config file must be YAML dict, got {type(config)}"
                )
            return config

    @property
    def api_key(self) -> str:
        """Get the Chariot API key.

        Returns:
            The API key as a string.

        Raises:
            ValueError: If the API key is not found in environment variables.
        """
        env_key = self._config.get("api", {}).get("api_key_env", DEFAULT_API_KEY_ENV)
        api_key = os.getenv(env_key)
        if not api_key:
            raise ValueError(
                f"API key '{env_key}' not found in environment variables"
            )
        return api_key

    def get_api_config(self) -> dict[str, Any]:
        """Get Chariot API configuration from YAML.

        Returns:
            API configuration dictionary with a normalized ``base_path``.

        Raises:
            ValueError: If ``base_path`` is missing or not an http(s) URL.
        """
        api_config = self._config.get("api", {})
        base_path = api_config.get("base_path")
        if not base_path:
            raise ValueError(
                "api.base_path must be explicitly configured in config.yaml"
            )
        if not base_path.startswith(("http://", "https://")):
            raise ValueError(
                f"api.base_path must be an http(s) URL, got '{base_path}'"
            )

        return {**api_config, "base_path": base_path.rstrip("/")}

    def get_http_client_config(self) -> dict[str, Any]:
        """Get HTTP client timeouts from YAML.

        Returns:
            HTTP client configuration dictionary with validated values.

        Raises:
            ValueError: If required timeouts are missing or invalid.
        """
        http_config = self._config.get("http_client", {})

        required_keys = [
            "connect_timeout", "read_timeout", "write_timeout", "pool_timeout"
        ]
        for key in required_keys:
            if key not in http_config:
                raise ValueError(
                    f"http_client.{key} must be explicitly configured in config.yaml"
                )

        for key in required_keys:
            value = http_config[key]
            # A null read timeout keeps long pauses between tokens alive
            if value is None and key == "read_timeout":
                continue
            if not isinstance(value, int | float) or value <= 0:
                raise ValueError(f"http_client.{key} must be positive")

        return http_config

    def get_streaming_config(self) -> dict[str, Any]:
        """Get streaming configuration from YAML.

        Returns:
            Streaming configuration dictionary.

        Raises:
            ValueError: If the transport or encoding is invalid.
        """
        streaming_config = {
            "transport": "async",
            "encoding": "utf-8",
            **self._config.get("streaming", {}),
        }

        valid_transports = ["async", "threaded"]
        if streaming_config["transport"] not in valid_transports:
            raise ValueError(
                f"streaming.transport must be one of: {valid_transports}"
            )

        try:
            codecs.lookup(streaming_config["encoding"])
        except LookupError as e:
            raise ValueError(
                f"streaming.encoding '{streaming_config['encoding']}' is not a "
                "known codec"
            ) from e

        return streaming_config

    def get_logging_config(self) -> dict[str, Any]:
        """Get logging configuration from YAML."""
        return self._config.get("logging", {})
