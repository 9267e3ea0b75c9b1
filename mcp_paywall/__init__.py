"""
MCP Paywall
Conversation contexts with payment-gated tools settled on-chain
"""

__version__ = "0.1.0"
