"""
Tool descriptors, registry and built-in tools
"""

from mcp_paywall.tools.base import FreeTool, PaidTool, Tool, ToolResult
from mcp_paywall.tools.builtin import default_registry
from mcp_paywall.tools.registry import ToolRegistry

__all__ = [
    "FreeTool",
    "PaidTool",
    "Tool",
    "ToolResult",
    "ToolRegistry",
    "default_registry",
]
