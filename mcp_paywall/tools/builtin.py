"""
Built-in tools exposed by the server
"""

import hashlib
from datetime import datetime, timedelta
from typing import Callable

from mcp_paywall.tools.base import FreeTool, PaidTool, ToolResult
from mcp_paywall.tools.registry import ToolRegistry

Clock = Callable[[], datetime]

FREE_KEY_VALIDITY = timedelta(hours=1)
PREMIUM_KEY_VALIDITY = timedelta(days=30)


def capitalize(text: str) -> ToolResult:
    """Upper-case the input"""
    return ToolResult(
        result=text.upper(),
        metadata={"tool": "capitalize", "inputLength": len(text)}
    )


def sha1_hash(text: str) -> ToolResult:
    """SHA-1 hex digest of the input"""
    digest = hashlib.sha1(text.encode("utf-8")).hexdigest()
    return ToolResult(
        result=digest,
        metadata={"tool": "hash", "algorithm": "sha1", "inputLength": len(text)}
    )


def _access_keys(clock: Clock) -> str:
    return hashlib.sha256(clock().isoformat().encode("utf-8")).hexdigest()


def free_tier_access_keys(clock: Clock = datetime.utcnow) -> Callable[[str], ToolResult]:
    """Basic access keys derived from the current time, valid for one hour"""
    def run(text: str) -> ToolResult:
        keys = _access_keys(clock)
        return ToolResult(
            result=(
                f"Free Tier Access Keys: {keys}\n"
                "Valid for 1 hour. Use these keys to access basic compute resources."
            ),
            metadata={
                "tool": "freetieraccesskeys",
                "algorithm": "sha256",
                "validUntil": (clock() + FREE_KEY_VALIDITY).isoformat(),
                "keyLength": len(keys),
                "tier": "free",
            }
        )
    return run


def paid_tier_access_keys(clock: Clock = datetime.utcnow) -> Callable[[str], ToolResult]:
    """Premium access keys, valid for thirty days"""
    def run(text: str) -> ToolResult:
        keys = _access_keys(clock)
        return ToolResult(
            result=(
                f"Premium Tier Access Keys: {keys}\n"
                "Valid for 30 days. Use these keys to access premium compute resources with higher limits."
            ),
            metadata={
                "tool": "paidtieraccesskeys",
                "algorithm": "sha256",
                "validUntil": (clock() + PREMIUM_KEY_VALIDITY).isoformat(),
                "keyLength": len(keys),
                "tier": "premium",
            }
        )
    return run


def default_registry(
    payment_amount: str = "0.10",
    payment_currency: str = "USDC",
    payment_network: str = "Base Sepolia",
    clock: Clock = datetime.utcnow,
) -> ToolRegistry:
    """Registry with the server's standard tool set"""
    price = f"{payment_amount} {payment_currency}"
    return ToolRegistry([
        FreeTool(
            name="capitalize",
            description="Converts input text to all uppercase letters",
            run=capitalize,
            usage="/capitalize your text here",
            example="/capitalize hello world -> HELLO WORLD",
        ),
        PaidTool(
            name="hash",
            description=f"Generates a SHA-1 hash of the input text (requires payment of {price} on Base)",
            run=sha1_hash,
            payment_amount=payment_amount,
            payment_currency=payment_currency,
            payment_network=payment_network,
            payment_description="a SHA-1 hash",
            usage="/hash your text here",
            example=(
                f"/hash hello world -> Payment required -> Pay {price} -> "
                "/hash hello world --tx=0x123... -> 2aae6c35c94fcfb415dbe95f408b9ce91ee846ed"
            ),
        ),
        FreeTool(
            name="freetieraccesskeys",
            description="Generates free tier access keys valid for 1 hour",
            run=free_tier_access_keys(clock),
            usage="/freetieraccesskeys",
            example="/freetieraccesskeys -> Free Tier Access Keys: 3f1c...",
        ),
        PaidTool(
            name="paidtieraccesskeys",
            description=f"Generates premium tier access keys valid for 30 days (requires payment of {price})",
            run=paid_tier_access_keys(clock),
            payment_amount=payment_amount,
            payment_currency=payment_currency,
            payment_network=payment_network,
            payment_description="premium tier access keys for compute resources",
            usage="/paidtieraccesskeys",
            example="/paidtieraccesskeys -> Payment required -> /paidtieraccesskeys --tx=0x123...",
        ),
    ])
