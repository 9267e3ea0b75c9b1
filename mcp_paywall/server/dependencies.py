from slowapi.util import get_remote_address
from fastapi import Request
import structlog

from mcp_paywall.contexts.store import ContextStore
from mcp_paywall.protocol.engine import ProtocolEngine
from mcp_paywall.tools.registry import ToolRegistry

logger = structlog.get_logger()


def get_client_key(request: Request) -> str:
    """Get client identifier for rate limiting - uses IP address"""
    return get_remote_address(request)


def get_context_key(request: Request) -> str:
    """Rate limit message posting per context, falling back to the client IP"""
    context_id = request.path_params.get("context_id", "")
    if context_id:
        return f"context:{context_id}"
    return get_remote_address(request)


def get_store(request: Request) -> ContextStore:
    return request.app.state.store


def get_engine(request: Request) -> ProtocolEngine:
    return request.app.state.engine


def get_registry(request: Request) -> ToolRegistry:
    return request.app.state.registry