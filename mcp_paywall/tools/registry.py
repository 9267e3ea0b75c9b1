"""
Tool registry
Fixed mapping from command name to tool, built once at startup
"""

from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Optional

from mcp_paywall.tools.base import Tool


class ToolRegistry:
    """Case-insensitive, read-only lookup of tools by name"""

    def __init__(self, tools: Iterable[Tool]):
        table: Dict[str, Tool] = {}
        for tool in tools:
            key = tool.name.lower()
            if key in table:
                raise ValueError(f"Duplicate tool name: {tool.name}")
            table[key] = tool
        self._tools = MappingProxyType(table)

    def get(self, name: str) -> Optional[Tool]:
        return self._tools.get(name.lower())

    def names(self) -> List[str]:
        return list(self._tools)

    def describe(self) -> Dict[str, Dict[str, Any]]:
        """Discovery descriptors keyed by tool name"""
        return {name: tool.describe() for name, tool in self._tools.items()}

    def __contains__(self, name: str) -> bool:
        return name.lower() in self._tools

    def __len__(self) -> int:
        return len(self._tools)
