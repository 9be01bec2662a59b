"""Shared fixtures: an in-memory Mew graph served through httpx.MockTransport."""

import json
from typing import Any

import httpx
import pytest

from mew_mcp.client import MewClient
from mew_mcp.models import APIConfiguration

BASE_URL = "https://api.mew.test/api"
BASE_NODE_URL = "https://mew-edge.ideaflow.app/"
USER_ID = "auth0|user-1"


class FakeMew:
    """Minimal graph store speaking the /layer, /sync and /oauth/token protocol."""

    def __init__(self) -> None:
        self.nodes: dict[str, dict[str, Any]] = {}
        self.relations: dict[str, dict[str, Any]] = {}
        self.layer_calls: list[list[str]] = []
        self.transactions: list[dict[str, Any]] = []
        self.token_calls = 0
        self.fail_layer_for: set[str] = set()
        self.sync_status = 200
        self.token_status = 200

    # -- graph building -------------------------------------------------

    def add_node(self, node_id: str, text: str | None = None, **extra: Any) -> dict[str, Any]:
        node = {
            "id": node_id,
            "version": 1,
            "authorId": "auth0|owner",
            "createdAt": "2024-01-01T00:00:00.000Z",
            "updatedAt": "2024-01-02T00:00:00.000Z",
            "content": [{"type": "text", "value": text}] if text is not None else [],
            "isPublic": True,
            "canonicalRelationId": None,
            **extra,
        }
        self.nodes[node_id] = node
        return node

    def link(self, parent_id: str, child_id: str, relation_type: str = "child", relation_id: str | None = None) -> str:
        relation_id = relation_id or f"rel-{parent_id}-{child_id}-{relation_type}"
        self.relations[relation_id] = {
            "id": relation_id,
            "version": 1,
            "authorId": "auth0|owner",
            "createdAt": 1700000000000,
            "updatedAt": 1700000000000,
            "fromId": parent_id,
            "toId": child_id,
            "relationTypeId": relation_type,
            "isPublic": True,
            "canonicalRelationId": None,
        }
        return relation_id

    def children(self, parent_id: str, child_ids: list[str], text: str | None = None) -> None:
        """Create ``child_ids`` (if missing) as ordered children of ``parent_id``."""
        for child_id in child_ids:
            if child_id not in self.nodes:
                self.add_node(child_id, text or f"Note {child_id}")
            self.link(parent_id, child_id)

    # -- request counting -------------------------------------------------

    def ops(self, transaction: int = -1) -> list[str]:
        return [u["operation"] for u in self.transactions[transaction]["updates"]]

    # -- transport ---------------------------------------------------------

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/oauth/token":
            self.token_calls += 1
            if self.token_status != 200:
                return httpx.Response(self.token_status, text="denied")
            return httpx.Response(200, json={"access_token": "test-token", "token_type": "Bearer"})

        assert request.headers.get("Authorization") == "Bearer test-token"
        body = json.loads(request.content)

        if path.endswith("/layer"):
            ids = body["objectIds"]
            self.layer_calls.append(ids)
            if self.fail_layer_for & set(ids):
                return httpx.Response(500, text="layer exploded")
            relations = {
                rid: rel for rid, rel in self.relations.items()
                if rel["fromId"] in ids or rel["toId"] in ids
            }
            wanted = set(ids)
            for rel in relations.values():
                wanted.update((rel["fromId"], rel["toId"]))
            nodes = {nid: self.nodes[nid] for nid in self.nodes if nid in wanted}
            return httpx.Response(
                200, json={"data": {"nodesById": nodes, "relationsById": relations, "usersById": {}}}
            )

        if path.endswith("/sync"):
            self.transactions.append(body)
            if self.sync_status != 200:
                return httpx.Response(self.sync_status, text="sync rejected")
            return httpx.Response(200, json={"ok": True})

        return httpx.Response(404, text="unknown path")


@pytest.fixture
def fake() -> FakeMew:
    return FakeMew()


@pytest.fixture
def api_config() -> APIConfiguration:
    return APIConfiguration(
        base_url=BASE_URL,
        base_node_url=BASE_NODE_URL,
        auth0_domain="auth.mew.test",
        auth0_client_id="client-123",
        auth0_client_secret="shh",
        auth0_audience="https://api.mew.test",
        current_user_id=USER_ID,
        queue_batch_delay=0,
        queue_rate_limit=10_000,
    )


@pytest.fixture
def client(fake: FakeMew, api_config: APIConfiguration) -> MewClient:
    return MewClient(api_config, transport=httpx.MockTransport(fake.handler))
