"""Mew API client facade."""

from typing import Any

import httpx

from ..models import APIConfiguration
from .api_client_core import MewClientCore
from .api_client_mutations import MutationEngine
from .api_client_traversal import AdaptiveTraversal
from .request_queue import RequestQueue


class MewClient(MewClientCore):
    """Mew client: core reads plus the mutation and traversal engines.

    The engines hold a reference to this client for transport and identity;
    one queue and one token cache serve all of them.
    """

    def __init__(
        self,
        config: APIConfiguration,
        transport: httpx.AsyncBaseTransport | None = None,
        queue: RequestQueue | None = None,
    ):
        super().__init__(config, transport=transport, queue=queue)
        self.mutations = MutationEngine(self)
        self.traversal = AdaptiveTraversal(self)

    async def __aenter__(self) -> "MewClient":
        return self

    async def get_layer_data(self, object_ids: list[str]) -> dict[str, Any]:
        """Raw layer maps for ``object_ids`` in server field names."""
        layer = await self.fetch_layer(object_ids)
        return layer.to_wire()
