"""Legacy HTTP surface: one POST endpoint per operation, camelCase JSON bodies."""

import logging
from contextlib import asynccontextmanager
from typing import Any

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import handlers
from .client import MewClient, NodeMove
from .config import ServerConfig, setup_logging
from .models import MCPError

logger = logging.getLogger(__name__)


class _Body(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class InitializeBody(_Body):
    user_id: str | None = None


class ParentNodeBody(_Body):
    parent_node_id: str


class FindNodeBody(_Body):
    parent_node_id: str
    node_text: str


class LayerDataBody(_Body):
    object_ids: list[str] = Field(min_length=1)


class NodeIdBody(_Body):
    node_id: str


class UpdateNodeBody(_Body):
    node_id: str
    updates: dict[str, Any]


class AddNodeBody(_Body):
    content: str | dict[str, Any] | list[dict[str, Any]]
    parent_node_id: str | None = None
    relation_label: str | None = None
    is_checked: bool | None = None
    author_id: str | None = None
    author_model: str | None = None


class MoveNodesBody(_Body):
    moves: list[NodeMove] = Field(min_length=1)


class CreateRelationBody(_Body):
    from_node_id: str
    to_node_id: str
    relation_label: str
    author_model: str | None = "Claude"


class TraversalBody(_Body):
    node_id: str
    api_budget: int = Field(default=8, ge=1)
    per_level_sampling: bool = False


def create_app(client: MewClient) -> FastAPI:
    """Build the HTTP app around an existing client; the app closes it on shutdown."""

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        logger.info("Mew HTTP server starting")
        try:
            yield
        finally:
            await client.close()
            logger.info("Mew HTTP server stopped")

    app = FastAPI(title="Mew MCP HTTP", version="0.1.0", lifespan=lifespan)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid request body", "detail": exc.errors()},
        )

    @app.exception_handler(MCPError)
    async def mcp_error_handler(request: Request, exc: MCPError):
        status = exc.status if exc.status and 400 <= exc.status < 600 else 500
        logger.warning(f"{request.url.path} failed: {exc}")
        return JSONResponse(status_code=status, content=handlers.error_payload(exc))

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        return JSONResponse(status_code=400, content=handlers.error_payload(exc))

    @app.exception_handler(httpx.HTTPError)
    async def upstream_error_handler(request: Request, exc: httpx.HTTPError):
        logger.error(f"{request.url.path} upstream failure: {exc}")
        return JSONResponse(status_code=502, content=handlers.error_payload(exc))

    @app.exception_handler(StarletteHTTPException)
    async def not_found_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return JSONResponse(status_code=404, content={"error": "Not Found"})
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok", "current_user_id": client.current_user_id}

    @app.post("/initialize")
    async def initialize(body: InitializeBody | None = None) -> dict:
        if body is not None and body.user_id:
            client.set_current_user_id(body.user_id)
        return {"success": True, "current_user_id": client.current_user_id}

    @app.post("/getCurrentUser")
    async def get_current_user() -> dict:
        return await handlers.get_current_user(client)

    @app.post("/getUserRootNodeId")
    async def get_user_root_node_id() -> dict:
        return await handlers.get_user_root_node_id(client)

    @app.post("/findNodeByText")
    async def find_node_by_text(body: FindNodeBody) -> dict:
        return await handlers.find_node_by_text(client, body.parent_node_id, body.node_text)

    @app.post("/getChildNodes")
    async def get_child_nodes(body: ParentNodeBody) -> dict:
        return await handlers.get_child_nodes(client, body.parent_node_id)

    @app.post("/getLayerData")
    async def get_layer_data(body: LayerDataBody) -> dict:
        return await handlers.get_layer_data(client, body.object_ids)

    @app.post("/updateNode")
    async def update_node(body: UpdateNodeBody) -> dict:
        return await handlers.update_node(client, body.node_id, body.updates)

    @app.post("/deleteNode")
    async def delete_node(body: NodeIdBody) -> dict:
        return await handlers.delete_node(client, body.node_id)

    @app.post("/addNode")
    async def add_node(body: AddNodeBody) -> dict:
        return await handlers.add_node(
            client,
            body.content,
            parent_node_id=body.parent_node_id,
            relation_label=body.relation_label,
            is_checked=body.is_checked,
            author_id=body.author_id,
            author_model=body.author_model,
        )

    @app.post("/moveNodes")
    async def move_nodes(body: MoveNodesBody) -> dict:
        return await handlers.move_nodes(client, body.moves)

    @app.post("/createRelation")
    async def create_relation(body: CreateRelationBody) -> dict:
        return await handlers.create_relation(
            client, body.from_node_id, body.to_node_id, body.relation_label, body.author_model
        )

    @app.post("/getNodeUrl")
    async def get_node_url(body: NodeIdBody) -> dict:
        return await handlers.get_node_url(client, body.node_id)

    @app.post("/mapStructure")
    async def map_structure(body: NodeIdBody) -> dict:
        return await handlers.map_structure(client, body.node_id)

    @app.post("/previewContent")
    async def preview_content(body: TraversalBody) -> dict:
        return await handlers.preview_content(client, body.node_id, body.api_budget)

    @app.post("/viewTreeContext")
    async def view_tree_context(body: TraversalBody) -> dict:
        return await handlers.view_tree_context(client, body.node_id, body.api_budget, body.per_level_sampling)

    return app


def main() -> None:
    """Run the legacy HTTP server with uvicorn."""
    import uvicorn

    config = ServerConfig()  # type: ignore[call-arg]
    setup_logging(config.log_level)
    app = create_app(MewClient(config.get_api_config()))
    uvicorn.run(app, host=config.http_host, port=config.http_port, log_level=config.log_level.lower())


if __name__ == "__main__":
    main()
