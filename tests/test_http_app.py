"""Tests for the legacy HTTP endpoints."""

import pytest
from fastapi.testclient import TestClient

from mew_mcp.http_app import create_app

from .conftest import USER_ID


@pytest.fixture
def http(client):
    with TestClient(create_app(client)) as test_client:
        yield test_client


def test_health(http):
    response = http.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "current_user_id": USER_ID}


def test_get_child_nodes(http, fake):
    fake.add_node("p", "Parent")
    fake.children("p", ["c1", "c2"])

    response = http.post("/getChildNodes", json={"parentNodeId": "p"})

    assert response.status_code == 200
    body = response.json()
    assert body["child_count"] == 2
    assert [c["id"] for c in body["child_nodes"]] == ["c1", "c2"]
    assert body["child_nodes"][0]["childCount"] == 0


def test_missing_body_field_is_400(http):
    response = http.post("/getChildNodes", json={})
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid request body"


def test_empty_layer_request_is_400(http):
    assert http.post("/getLayerData", json={"objectIds": []}).status_code == 400


def test_unknown_route_is_404(http):
    response = http.post("/doesNotExist", json={})
    assert response.status_code == 404
    assert response.json() == {"error": "Not Found"}


def test_delete_missing_node_succeeds_without_deleting(http, fake):
    response = http.post("/deleteNode", json={"nodeId": "ghost"})
    assert response.status_code == 200
    assert response.json()["deleted"] is False
    assert fake.transactions == []


def test_update_missing_node_is_404(http):
    response = http.post("/updateNode", json={"nodeId": "ghost", "updates": {"content": "x"}})
    assert response.status_code == 404
    assert response.json()["error"]["kind"] == "node_operation_error"


def test_add_labeled_node(http, fake):
    response = http.post(
        "/addNode",
        json={"content": "Claim", "parentNodeId": "p", "relationLabel": "supports"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["new_relation_label_node_id"]
    assert len(fake.transactions[0]["updates"]) == 7


def test_bad_content_is_400(http, fake):
    response = http.post("/addNode", json={"content": {"type": "video"}, "parentNodeId": "p"})
    assert response.status_code == 400
    assert response.json()["error"]["kind"] == "content_format_error"
    assert fake.transactions == []


def test_initialize_switches_user(http):
    response = http.post("/initialize", json={"userId": "google-oauth2|42"})
    assert response.json()["current_user_id"] == "google-oauth2|42"

    root = http.post("/getUserRootNodeId").json()
    assert root == {"user_root_node_id": "user-root-id-google-oauth2|42"}


def test_initialize_rejects_malformed_user(http):
    response = http.post("/initialize", json={"userId": "nobody"})
    assert response.status_code == 400
    assert response.json()["error"]["kind"] == "invalid_user_id_format"


def test_upstream_failure_keeps_remote_status(http, fake):
    fake.fail_layer_for = {"p"}
    response = http.post("/getChildNodes", json={"parentNodeId": "p"})
    assert response.status_code == 500
    assert response.json()["error"]["node_id"] == "p"


def test_view_tree_context(http, fake):
    fake.add_node("r", "Root")
    fake.children("r", ["c1"])

    response = http.post("/viewTreeContext", json={"nodeId": "r", "apiBudget": 4})

    assert response.status_code == 200
    body = response.json()
    assert body["structure"] == "Root/\n└── Note c1"
    assert body["stats"]["api_budget"] == 4
