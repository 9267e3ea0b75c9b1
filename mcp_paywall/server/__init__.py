"""
HTTP surface for MCP Paywall
"""

from mcp_paywall.server.app import create_app

__all__ = ["create_app"]
