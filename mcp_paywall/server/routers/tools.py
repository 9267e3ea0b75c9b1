from fastapi import APIRouter, Depends

from mcp_paywall.server.dependencies import get_registry
from mcp_paywall.tools.registry import ToolRegistry

router = APIRouter(tags=["Tools"])

USAGE = (
    "To use a tool, send a message that starts with '/' followed by the tool name and the input, "
    "e.g., '/capitalize hello world'. Some tools require payment in cryptocurrency. For these tools, "
    "you'll receive payment instructions and need to resubmit with your transaction hash using format: "
    "'/toolname input --tx=YOUR_TX_HASH'"
)


@router.get("/tools")
async def list_tools(registry: ToolRegistry = Depends(get_registry)):
    """
    Tool discovery
    Lists every registered tool with its payment terms
    """
    return {"tools": registry.describe(), "usage": USAGE}
