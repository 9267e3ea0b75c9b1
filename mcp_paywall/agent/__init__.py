"""
Client auto-pay agent
Pays payment requirements on-chain and resubmits the command with its proof
"""

from mcp_paywall.agent.client import AutoPayAgent, AutoPayResult, McpClient, requirement_from_metadata
from mcp_paywall.agent.wallet import PaymentWallet

__all__ = [
    "AutoPayAgent",
    "AutoPayResult",
    "McpClient",
    "PaymentWallet",
    "requirement_from_metadata",
]
