"""
MCP Paywall Server
FastAPI app exposing conversation contexts and payment-gated tools
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
import structlog

from mcp_paywall import __version__
from mcp_paywall.config import ServerConfig, get_server_config
from mcp_paywall.contexts.store import ContextStore
from mcp_paywall.errors import ContextNotFoundError
from mcp_paywall.log import configure_logging
from mcp_paywall.payments.spent import SpentProofRegistry
from mcp_paywall.payments.verifier import PaymentVerifier, build_verifier
from mcp_paywall.protocol.engine import ProtocolEngine
from mcp_paywall.server.dependencies import get_client_key
from mcp_paywall.server.routers import contexts, general, tools
from mcp_paywall.tools.builtin import default_registry
from mcp_paywall.tools.registry import ToolRegistry

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle manager for the FastAPI app"""
    config: ServerConfig = app.state.config
    logger.info(
        "server_starting",
        host=config.server_host,
        port=config.server_port,
        network=config.network,
        verifier=app.state.engine.verifier.mode,
        payment_address=app.state.engine.verifier.address
    )
    yield
    logger.info("server_shutting_down", contexts=len(app.state.store))


async def context_not_found_handler(request: Request, exc: ContextNotFoundError):
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"error": "Context not found"}
    )


def create_app(
    config: Optional[ServerConfig] = None,
    verifier: Optional[PaymentVerifier] = None,
    store: Optional[ContextStore] = None,
    registry: Optional[ToolRegistry] = None,
) -> FastAPI:
    """
    Build the application with its collaborators

    Anything not passed in is built from the configuration.
    """
    config = config or get_server_config()
    verifier = verifier or build_verifier(config)
    store = store if store is not None else ContextStore()
    if registry is None:
        registry = default_registry(
            payment_amount=config.payment_amount,
            payment_currency=config.payment_currency,
            payment_network=config.network_name,
        )
    engine = ProtocolEngine(
        registry=registry,
        verifier=verifier,
        spent_proofs=SpentProofRegistry() if config.reject_reused_payments else None,
        verification_timeout=config.verification_timeout,
    )

    app = FastAPI(
        title="MCP Paywall Server",
        description="Conversation contexts with payment-gated tools settled in USDC on Base",
        version=__version__,
        lifespan=lifespan
    )
    app.state.config = config
    app.state.store = store
    app.state.registry = registry
    app.state.engine = engine

    limiter = Limiter(key_func=get_client_key, enabled=config.rate_limit_enabled)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(ContextNotFoundError, context_not_found_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(general.router)
    app.include_router(contexts.router)
    app.include_router(contexts.build_message_router(limiter, config.message_rate_limit))
    app.include_router(tools.router)
    return app


def main():
    import uvicorn
    config = get_server_config()
    configure_logging(config.log_level, config.log_format)

    uvicorn.run(
        "mcp_paywall.server.app:create_app",
        factory=True,
        host=config.server_host,
        port=config.server_port,
        reload=config.reload,
        log_level=config.log_level.lower()
    )


if __name__ == "__main__":
    main()
