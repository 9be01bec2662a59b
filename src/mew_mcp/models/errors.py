"""Error types raised by the Mew client and surfaced by the tool adapters."""

from typing import Any


class MCPError(Exception):
    """Base error for every failure the client reports with context."""

    kind = "mcp_error"

    def __init__(self, message: str, status: int | None = None, details: Any = None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.details = details

    def context(self) -> dict[str, Any]:
        """Extra identifying fields for the structured payload."""
        return {}

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "kind": self.kind,
            "message": self.message,
            "status": self.status,
            "details": self.details,
        }
        payload.update(self.context())
        return payload


class AuthenticationError(MCPError):
    """Token acquisition failed or the remote rejected our credentials."""

    kind = "authentication_error"

    def __init__(self, message: str = "Authentication failed", status: int | None = 401, details: Any = None):
        super().__init__(message, status, details)


class NodeOperationError(MCPError):
    """A read or mutation scoped to one node failed."""

    kind = "node_operation_error"

    def __init__(self, message: str, node_id: str | None, status: int | None = None, details: Any = None):
        super().__init__(message, status, details)
        self.node_id = node_id

    def context(self) -> dict[str, Any]:
        return {"node_id": self.node_id}


class RelationOperationError(MCPError):
    """A mutation scoped to one relation edge failed."""

    kind = "relation_operation_error"

    def __init__(self, message: str, relation_id: str | None, status: int | None = None, details: Any = None):
        super().__init__(message, status, details)
        self.relation_id = relation_id

    def context(self) -> dict[str, Any]:
        return {"relation_id": self.relation_id}


class BatchOperationError(MCPError):
    """The remote rejected a transaction."""

    kind = "batch_operation_error"

    def __init__(self, message: str, transaction_id: str, status: int | None = None, details: Any = None):
        super().__init__(message, status, details)
        self.transaction_id = transaction_id

    def context(self) -> dict[str, Any]:
        return {"transaction_id": self.transaction_id}


class InvalidUserIdFormatError(MCPError):
    """User ids must carry an auth-provider prefix, e.g. ``google-oauth2|123``."""

    kind = "invalid_user_id_format"

    def __init__(self, user_id: str):
        super().__init__(
            f"Invalid user ID format: {user_id!r}. Expected '<provider>|<id>'.",
            status=400,
        )
        self.user_id = user_id

    def context(self) -> dict[str, Any]:
        return {"user_id": self.user_id}


class ContentFormatError(MCPError, ValueError):
    """Node content input did not match any accepted shape."""

    kind = "content_format_error"

    def __init__(self, message: str, raw: Any = None):
        super().__init__(message, status=400, details={"received": repr(raw)[:200]} if raw is not None else None)
