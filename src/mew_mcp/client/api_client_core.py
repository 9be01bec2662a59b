"""Mew API client - transport, session identity and graph read primitives."""

import json
import re
import uuid
from collections.abc import Callable, Iterable
from typing import Any
from urllib.parse import quote, unquote

import httpx

from ..models import (
    APIConfiguration,
    AuthenticationError,
    BatchOperationError,
    ChildListing,
    ChildNode,
    GraphNode,
    InvalidUserIdFormatError,
    LayerData,
    MCPError,
    NodeOperationError,
)
from .auth import TokenProvider
from .client_log import ClientLogger
from .request_queue import RequestQueue

logger = ClientLogger("CLIENT")

USER_ROOT_PREFIX = "user-root-id-"

_NODE_URL_PATTERN = re.compile(r"/node-([^/]+)$")

ErrorFactory = Callable[[str, int, str], MCPError]


def validate_user_id(user_id: str | None) -> str:
    """User ids carry an auth-provider prefix: ``<provider>|<id>``."""
    if not user_id or "|" not in user_id:
        raise InvalidUserIdFormatError(user_id or "")
    return user_id


class MewClientCore:
    """Core Mew API client - layer reads, transactions and identity."""

    def __init__(
        self,
        config: APIConfiguration,
        transport: httpx.AsyncBaseTransport | None = None,
        queue: RequestQueue | None = None,
    ):
        """Initialize the Mew API client.

        Args:
            config: Resolved API configuration
            transport: Optional httpx transport (tests inject a MockTransport)
            queue: Optional request queue; one is built from ``config`` otherwise
        """
        self.config = config
        self.base_url = config.base_url
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._auth: TokenProvider | None = None
        self.queue = queue or RequestQueue(
            batch_size=config.queue_batch_size,
            batch_delay=config.queue_batch_delay,
            rate_limit=config.queue_rate_limit,
        )
        self.current_user_id: str | None = None
        if config.current_user_id:
            self.set_current_user_id(config.current_user_id)

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={"Content-Type": "application/json", "Accept": "application/json"},
                timeout=httpx.Timeout(self.config.timeout),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    @property
    def auth(self) -> TokenProvider:
        if self._auth is None:
            self._auth = TokenProvider(
                domain=self.config.auth0_domain,
                client_id=self.config.auth0_client_id,
                client_secret=self.config.auth0_client_secret.get_secret_value(),
                audience=self.config.auth0_audience,
                http_client=self.client,
                ttl=self.config.token_ttl,
            )
        return self._auth

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
            self._auth = None

    async def __aenter__(self) -> "MewClientCore":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _post(self, path: str, body: dict[str, Any]) -> httpx.Response:
        token = await self.auth.get_access_token()
        headers = {"Authorization": f"Bearer {token}"}
        return await self.queue.enqueue(lambda: self.client.post(path, json=body, headers=headers))

    def _handle_response(self, response: httpx.Response, error_factory: ErrorFactory) -> dict[str, Any]:
        """Handle API response and errors."""
        if response.status_code in (401, 403):
            # Force a fresh token on the next call
            self.auth.clear_token_cache()
            raise AuthenticationError(
                f"Unauthorized: {response.reason_phrase}",
                status=response.status_code,
                details=response.text,
            )

        if response.status_code >= 400:
            raise error_factory(response.reason_phrase, response.status_code, response.text)

        if not response.content:
            return {}
        try:
            return response.json()  # type: ignore[no-any-return]
        except json.JSONDecodeError as err:
            raise error_factory("Invalid response format from API", response.status_code, response.text) from err

    async def fetch_layer(self, object_ids: Iterable[str]) -> LayerData:
        """Fetch the layer (nodes plus incident relations) for ``object_ids``."""
        ids = list(dict.fromkeys(object_ids))
        if not ids:
            return LayerData()

        response = await self._post("/layer", {"objectIds": ids})
        payload = self._handle_response(
            response,
            lambda reason, status, body: NodeOperationError(
                f"Failed to fetch layer data: {reason}", ids[0], status, body
            ),
        )
        return LayerData.from_response(payload)

    async def apply_transaction(self, updates: list[dict[str, Any]], author_id: str | None = None) -> str:
        """Submit ``updates`` as one atomic transaction and return its id.

        Raises:
            BatchOperationError: the remote rejected the transaction
        """
        transaction_id = str(uuid.uuid4())
        payload = {
            "clientId": self.config.auth0_client_id,
            "userId": author_id or self.current_user_id,
            "transactionId": transaction_id,
            "updates": updates,
        }
        response = await self._post("/sync", payload)
        self._handle_response(
            response,
            lambda reason, status, body: BatchOperationError(
                f"Transaction failed: {reason}", transaction_id, status, body
            ),
        )
        logger.debug(f"Transaction {transaction_id} applied ({len(updates)} ops)")
        return transaction_id

    # ------------------------------------------------------------------
    # Session identity and URLs
    # ------------------------------------------------------------------

    def set_current_user_id(self, user_id: str) -> None:
        self.current_user_id = validate_user_id(user_id)

    def get_current_user(self) -> dict[str, Any]:
        return {"id": self.current_user_id}

    @property
    def user_root_node_id(self) -> str:
        if not self.current_user_id:
            raise MCPError("Current user ID is not set", status=400)
        return f"{USER_ROOT_PREFIX}{self.current_user_id}"

    def get_node_url(self, node_id: str) -> str:
        """Browser URL for a node under the current user's root."""
        user = quote(self.current_user_id, safe="") if self.current_user_id else "unknown"
        return (
            f"{self.config.base_node_url}g/all/global-root-to-users/all/"
            f"users-to-user-relation-id-{user}/user-root-id-{user}/node-{quote(node_id, safe='')}"
        )

    @staticmethod
    def parse_node_id_from_url(url: str) -> str:
        """Extract the node id from the trailing ``/node-<id>`` URL segment.

        Raises:
            ValueError: the URL has no node segment
        """
        match = _NODE_URL_PATTERN.search(url.strip().split("?", 1)[0].split("#", 1)[0])
        if not match:
            raise ValueError(f"Invalid Mew node URL (no /node-<id> segment): {url}")
        return re.sub("%7C", "|", unquote(match.group(1)), flags=re.IGNORECASE)

    # ------------------------------------------------------------------
    # Read primitives
    # ------------------------------------------------------------------

    async def get_node(self, node_id: str) -> GraphNode | None:
        layer = await self.fetch_layer([node_id])
        return layer.nodes_by_id.get(node_id)

    async def get_children(self, parent_id: str) -> ChildListing:
        """Direct children of ``parent_id`` in relation order, with child counts.

        One layer fetch for the parent; one more bulk fetch over the children
        when there are any.
        """
        layer = await self.fetch_layer([parent_id])
        parent = layer.nodes_by_id.get(parent_id)

        children: list[GraphNode] = []
        for rel in layer.child_relations(parent_id):
            node = layer.nodes_by_id.get(rel.to_id)
            if node is not None:
                children.append(node)

        if not children:
            return ChildListing(parent_node=parent, child_nodes=[])

        try:
            child_layer = await self.fetch_layer([c.id for c in children])
        except NodeOperationError as err:
            raise NodeOperationError(
                f"Failed to fetch children of {parent_id}: {err.message}", parent_id, err.status, err.details
            ) from err
        counts: dict[str, int] = {c.id: 0 for c in children}
        for rel in child_layer.relations_by_id.values():
            if rel.is_child and rel.from_id in counts:
                counts[rel.from_id] += 1

        annotated = [
            ChildNode.model_validate(
                {**child.to_wire(), "hasChildren": counts[child.id] > 0, "childCount": counts[child.id]}
            )
            for child in children
        ]
        return ChildListing(parent_node=parent, child_nodes=annotated)

    async def find_node_by_text(self, parent_id: str, text: str) -> ChildNode | None:
        """First child of ``parent_id`` whose first text block equals ``text``."""
        listing = await self.get_children(parent_id)
        for child in listing.child_nodes:
            if child.text == text:
                return child
        return None

    async def list_top_level_notes(self, root_id: str) -> list[dict[str, Any]]:
        """Summary rows for the direct children of a notes root."""
        listing = await self.get_children(root_id)
        return [
            {
                "id": child.id,
                "text": child.text or "No text content",
                "created_at": child.created_at,
                "updated_at": child.updated_at,
                "has_children": child.has_children,
                "child_count": child.child_count,
                "exploration_recommended": child.has_children,
            }
            for child in listing.child_nodes
        ]
