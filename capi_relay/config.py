"""
Configuration management for the conversion relay.

Client-side tracking reads a RelaySettings value passed into every call.
The relay server reads ServerConfig from the environment and its access
token from a SecretProvider, which tests replace with a static one.
"""

import os
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

# Load environment variables from .env file
load_dotenv()

SECRET_ENV_VAR = 'META_CAPI_ACCESS_TOKEN'
DEFAULT_GRAPH_API_VERSION = 'v19.0'


class RelaySettings(BaseModel):
    """Tracking settings owned by the application settings store."""

    account_pixel_id: Optional[str] = Field(None, alias='accountPixelId')
    relay_url: Optional[str] = Field(None, alias='relayUrl')

    class Config:
        populate_by_name = True
        frozen = True

    @property
    def tracking_enabled(self) -> bool:
        return bool(self.account_pixel_id)

    def to_payload(self) -> Dict[str, Any]:
        """Wire form sent to the relay alongside each event."""
        return self.model_dump(by_alias=True, exclude_none=True)


class ServerConfig(BaseModel):
    """Configuration for the relay server."""

    host: str = '0.0.0.0'
    port: int = 8080
    log_level: str = 'INFO'
    graph_api_version: str = DEFAULT_GRAPH_API_VERSION
    upstream_timeout: float = 30.0
    test_event_code: Optional[str] = None


def load_config() -> ServerConfig:
    """Load configuration from environment variables."""
    return ServerConfig(
        host=os.getenv('RELAY_HOST', '0.0.0.0'),
        port=int(os.getenv('RELAY_PORT', '8080')),
        log_level=os.getenv('RELAY_LOG_LEVEL', 'INFO'),
        graph_api_version=os.getenv(
            'META_GRAPH_API_VERSION', DEFAULT_GRAPH_API_VERSION
        ),
        upstream_timeout=float(os.getenv('META_CAPI_TIMEOUT_SECONDS', '30')),
        test_event_code=os.getenv('META_TEST_EVENT_CODE') or None,
    )


class SecretProvider:
    """Source of the Conversions API access token."""

    def get_secret(self) -> Optional[str]:
        raise NotImplementedError

    @property
    def configured(self) -> bool:
        return bool(self.get_secret())


class EnvSecretProvider(SecretProvider):
    """Reads the access token from the process environment on every call."""

    def __init__(self, env_var: str = SECRET_ENV_VAR):
        self.env_var = env_var

    def get_secret(self) -> Optional[str]:
        return os.environ.get(self.env_var) or None


class StaticSecretProvider(SecretProvider):
    """Holds a fixed token; ``None`` behaves like an unset secret."""

    def __init__(self, secret: Optional[str]):
        self._secret = secret

    def get_secret(self) -> Optional[str]:
        return self._secret or None

    def __repr__(self) -> str:
        state = 'set' if self._secret else 'unset'
        return f'StaticSecretProvider(<{state}>)'
