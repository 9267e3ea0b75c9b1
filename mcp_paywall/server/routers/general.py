from datetime import datetime
from fastapi import APIRouter, Request

from mcp_paywall import __version__

router = APIRouter(tags=["General"])


@router.get("/", tags=["Health"])
async def root():
    """Root endpoint with basic info"""
    return {
        "name": "MCP Paywall Server",
        "version": __version__,
        "status": "operational",
        "tools": "/tools"
    }


@router.get("/health", tags=["Health"])
async def health_check(request: Request):
    """Health check endpoint"""
    state = request.app.state
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "contexts": len(state.store),
        "tools": len(state.registry),
        "verifier": state.engine.verifier.mode,
        "paymentAddress": state.engine.verifier.address,
        "network": state.engine.verifier.network_name
    }
