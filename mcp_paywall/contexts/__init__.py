"""
Conversation context storage
"""

from mcp_paywall.contexts.store import ContextStore

__all__ = ["ContextStore"]
