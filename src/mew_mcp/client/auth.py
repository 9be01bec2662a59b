"""Auth0 client-credentials token provider."""

import json

import httpx

from ..models import AuthenticationError
from .cache import TTLCache
from .client_log import ClientLogger

logger = ClientLogger("AUTH")

_TOKEN_KEY = "auth_token"


class TokenProvider:
    """Fetches and caches the bearer token used for every Mew API call."""

    def __init__(
        self,
        domain: str,
        client_id: str,
        client_secret: str,
        audience: str,
        http_client: httpx.AsyncClient,
        ttl: float = 240.0,
    ):
        self.token_url = f"https://{domain}/oauth/token"
        self._client_id = client_id
        self._client_secret = client_secret
        self._audience = audience
        self._http = http_client
        self._cache: TTLCache[str] = TTLCache(ttl)

    async def get_access_token(self) -> str:
        cached = self._cache.get(_TOKEN_KEY)
        if cached:
            return cached

        try:
            response = await self._http.post(
                self.token_url,
                json={
                    "client_id": self._client_id,
                    "client_secret": self._client_secret,
                    "audience": self._audience,
                    "grant_type": "client_credentials",
                },
            )
        except httpx.HTTPError as err:
            raise AuthenticationError(f"Failed to get access token: {err}", status=None) from err

        if response.status_code >= 400:
            raise AuthenticationError(
                f"Auth failed: {response.reason_phrase}",
                status=response.status_code,
                details=response.text,
            )

        try:
            token = response.json()["access_token"]
        except (json.JSONDecodeError, KeyError, TypeError) as err:
            raise AuthenticationError("Auth response did not contain an access token", status=response.status_code) from err

        self._cache.set(_TOKEN_KEY, token)
        logger.debug("Access token refreshed")
        return token

    def clear_token_cache(self) -> None:
        self._cache.clear()
