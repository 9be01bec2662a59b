"""Resolved configuration handed to the API client."""

from pydantic import BaseModel, Field, SecretStr

DEFAULT_GLOBAL_ROOT_ID = "global-root-id"
DEFAULT_AGENT_ROOT_ID = "a76fa74c"


class APIConfiguration(BaseModel):
    base_url: str
    base_node_url: str
    auth0_domain: str
    auth0_client_id: str
    auth0_client_secret: SecretStr
    auth0_audience: str
    current_user_id: str | None = None
    timeout: float = Field(default=30.0, gt=0)
    queue_batch_size: int = Field(default=10, ge=1)
    queue_batch_delay: float = Field(default=0.1, ge=0)
    queue_rate_limit: float = Field(default=50.0, gt=0)
    token_ttl: float = Field(default=240.0, gt=0)
    global_root_id: str = DEFAULT_GLOBAL_ROOT_ID
    agent_root_id: str = DEFAULT_AGENT_ROOT_ID
