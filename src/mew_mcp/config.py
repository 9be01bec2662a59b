"""Server configuration and logging setup.

Settings are read from the environment and an optional ``.env`` file in the
working directory. The Mew/Auth0 connection variables keep their historical
unprefixed names (``BASE_URL``, ``AUTH0_DOMAIN``, ...); tuning knobs use the
``MEW_`` prefix.
"""

import logging
import sys

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import APIConfiguration
from .models.api_config import DEFAULT_AGENT_ROOT_ID, DEFAULT_GLOBAL_ROOT_ID


class ServerConfig(BaseSettings):
    """Mew MCP server settings."""

    base_url: str
    base_node_url: str
    auth0_domain: str
    auth0_client_id: str
    auth0_client_secret: SecretStr
    auth0_audience: str
    current_user_id: str | None = None

    global_root_id: str = Field(default=DEFAULT_GLOBAL_ROOT_ID, alias="MEW_GLOBAL_ROOT_ID")
    agent_root_id: str = Field(default=DEFAULT_AGENT_ROOT_ID, alias="MEW_AGENT_ROOT_ID")
    request_timeout: float = Field(default=30.0, alias="MEW_REQUEST_TIMEOUT")
    queue_batch_size: int = Field(default=10, alias="MEW_QUEUE_BATCH_SIZE")
    queue_batch_delay: float = Field(default=0.1, alias="MEW_QUEUE_BATCH_DELAY")
    queue_rate_limit: float = Field(default=50.0, alias="MEW_QUEUE_RATE_LIMIT")
    token_ttl: float = Field(default=240.0, alias="MEW_TOKEN_TTL")

    log_level: str = Field(default="INFO", alias="MEW_LOG_LEVEL")
    http_host: str = Field(default="127.0.0.1", alias="MEW_HTTP_HOST")
    http_port: int = Field(default=3000, alias="MEW_HTTP_PORT")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        populate_by_name=True,
        extra="ignore",
    )

    def get_api_config(self) -> APIConfiguration:
        """Build the client-facing configuration."""
        return APIConfiguration(
            base_url=self.base_url.rstrip("/"),
            base_node_url=self.base_node_url,
            auth0_domain=self.auth0_domain,
            auth0_client_id=self.auth0_client_id,
            auth0_client_secret=self.auth0_client_secret,
            auth0_audience=self.auth0_audience,
            current_user_id=self.current_user_id,
            timeout=self.request_timeout,
            queue_batch_size=self.queue_batch_size,
            queue_batch_delay=self.queue_batch_delay,
            queue_rate_limit=self.queue_rate_limit,
            token_ttl=self.token_ttl,
            global_root_id=self.global_root_id,
            agent_root_id=self.agent_root_id,
        )


def setup_logging(level: str = "INFO") -> None:
    """Send stdlib logging to stderr; stdout carries the stdio MCP transport."""
    root = logging.getLogger()
    root.setLevel(level.upper())
    has_console = any(
        isinstance(h, logging.StreamHandler) and getattr(h, "stream", None) is sys.stderr
        for h in root.handlers
    )
    if not has_console:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
        root.addHandler(handler)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
