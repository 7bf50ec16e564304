"""Centralized settings for money-pies.

Uses pydantic-settings to load from environment variables (prefixed SCHWAB_)
or from the JSON client config file used by the command-line tools.
"""

from pathlib import Path
from typing import Optional
import json
import os

from pydantic import ValidationError
from pydantic_settings import BaseSettings

from src.brokerage.config import API_BASE_URLS, OAUTH_ENDPOINTS, BrokerType
from src.brokerage.exceptions import ConfigError

CONFIG_FILE_ENV_VARS = ("CONFIG_FILE_LOCATION", "SCHWAB_CLIENT_CONFIG")


class SchwabSettings(BaseSettings):
    """Schwab API client settings."""

    # --- OAuth client ---
    client_id: str
    client_secret: str
    redirect_uri: str = "https://127.0.0.1:8080"
    token_file: str = ".schwab_token.json"

    # --- Endpoints ---
    base_url: str = API_BASE_URLS[BrokerType.SCHWAB]
    authorize_url: str = OAUTH_ENDPOINTS[BrokerType.SCHWAB]["authorize"]
    token_url: str = OAUTH_ENDPOINTS[BrokerType.SCHWAB]["token"]
    request_timeout: float = 30.0

    # --- Local redirect capture ---
    callback_host: str = "127.0.0.1"
    callback_port: int = 8080
    tls_certfile: str = "local-cert/cert.pem"
    tls_keyfile: str = "local-cert/key.pem"
    auth_timeout: float = 300.0

    model_config = {
        "env_prefix": "SCHWAB_",
        "env_file": ".env",
        "extra": "ignore",
    }

    @classmethod
    def from_json_file(cls, path: str | os.PathLike) -> "SchwabSettings":
        """Load settings from a JSON client config file.

        Environment variables still fill any field the file leaves out.

        Raises:
            ConfigError: If the file is unreadable, malformed, or incomplete.
        """
        try:
            raw = Path(path).read_text()
        except OSError as e:
            raise ConfigError(f"failed to read config file {path}: {e}") from e
        try:
            data = json.loads(raw)
        except ValueError as e:
            raise ConfigError(f"failed to parse config file {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"config file {path} must contain a JSON object")
        return _build(data)


def _build(data: Optional[dict] = None) -> SchwabSettings:
    try:
        settings = SchwabSettings(**(data or {}))
    except ValidationError as e:
        raise ConfigError(f"invalid Schwab configuration: {e}") from e
    if not settings.client_id or not settings.client_secret:
        raise ConfigError("client_id and client_secret are required")
    return settings


def load_settings(config_file: Optional[str] = None) -> SchwabSettings:
    """Load settings from ``config_file``, a config-file env var, or the environment.

    Raises:
        ConfigError: If no usable configuration is found.
    """
    if config_file is None:
        for var in CONFIG_FILE_ENV_VARS:
            if os.environ.get(var):
                config_file = os.environ[var]
                break
    if config_file:
        return SchwabSettings.from_json_file(config_file)
    return _build()
