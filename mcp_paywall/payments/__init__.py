"""
MCP Paywall Payment Module
USDC micropayment verification on Base L2
"""

from mcp_paywall.payments.models import (
    PaymentRequirement,
    PaymentReceipt,
    VerificationFailure,
    VerificationVerdict,
)
from mcp_paywall.payments.spent import SpentProofRegistry
from mcp_paywall.payments.units import (
    USDC_DECIMALS,
    format_amount,
    from_minor_units,
    parse_amount,
    to_minor_units,
)
from mcp_paywall.payments.verifier import (
    ERC20_ABI,
    FakeVerifier,
    LiveLedgerVerifier,
    PaymentVerifier,
    build_verifier,
)

__all__ = [
    "PaymentRequirement",
    "PaymentReceipt",
    "VerificationFailure",
    "VerificationVerdict",
    "SpentProofRegistry",
    "USDC_DECIMALS",
    "format_amount",
    "from_minor_units",
    "parse_amount",
    "to_minor_units",
    "ERC20_ABI",
    "FakeVerifier",
    "LiveLedgerVerifier",
    "PaymentVerifier",
    "build_verifier",
]
