"""
Payment models for paid tool invocations
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from mcp_paywall.models import utc_now


class VerificationFailure(str, Enum):
    """Closed set of reasons a payment proof is rejected"""
    NOT_FOUND = "not_found"
    FAILED = "transaction_failed"
    WRONG_CONTRACT = "wrong_contract"
    NOT_TRANSFER = "not_transfer"
    WRONG_RECIPIENT = "wrong_recipient"
    INSUFFICIENT_AMOUNT = "insufficient_amount"
    ALREADY_CLAIMED = "already_claimed"
    ERROR = "verification_error"


class PaymentRequirement(BaseModel):
    """What a client must pay before a paid tool runs"""
    amount: str = Field(description="Human-readable amount, e.g. '0.10'")
    raw_amount: int = Field(description="Amount in smallest unit (USDC has 6 decimals)")
    currency: str = Field(default="USDC")
    recipient: str = Field(description="Receiving wallet address")
    network: str = Field(default="Base Sepolia")
    message: str


class VerificationVerdict(BaseModel):
    """Result of checking a transaction hash against the ledger"""
    verified: bool
    tx_hash: str
    explorer_url: Optional[str] = None
    reason: Optional[str] = None
    reason_code: Optional[VerificationFailure] = None

    amount: Optional[str] = None
    raw_amount: Optional[int] = None
    sender_address: Optional[str] = None
    recipient_address: Optional[str] = None
    block_number: Optional[int] = None
    block_hash: Optional[str] = None
    gas_used: Optional[str] = None
    gas_price: Optional[str] = None
    network: Optional[str] = None
    contract_address: Optional[str] = None
    timestamp: Optional[str] = None

    # Diagnostics attached to failures
    actual_contract_address: Optional[str] = None
    function_name: Optional[str] = None
    actual_recipient: Optional[str] = None
    expected_amount: Optional[str] = None

    @classmethod
    def rejected(
        cls,
        code: VerificationFailure,
        reason: str,
        tx_hash: str,
        **details
    ) -> "VerificationVerdict":
        """Build a failed verdict"""
        return cls(verified=False, reason_code=code, reason=reason, tx_hash=tx_hash, **details)

    @classmethod
    def accepted(cls, tx_hash: str, **details) -> "VerificationVerdict":
        """Build a successful verdict"""
        details.setdefault("timestamp", utc_now())
        return cls(verified=True, tx_hash=tx_hash, **details)


class PaymentReceipt(BaseModel):
    """Confirmation of a transfer made by the auto-pay agent"""
    tx_hash: str
    block_number: int
    gas_used: str
    amount: str
    recipient: str
    sender: str
    explorer_url: Optional[str] = None
