"""
On-chain payment verification
Checks a transaction hash against the ledger before a paid tool runs
"""

import re
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from eth_account import Account
from web3 import Web3
from web3.exceptions import TransactionNotFound
import structlog

from mcp_paywall.config import ServerConfig
from mcp_paywall.errors import ConfigurationError
from mcp_paywall.payments.models import VerificationFailure, VerificationVerdict
from mcp_paywall.payments.units import (
    USDC_DECIMALS,
    Amount,
    format_amount,
    from_minor_units,
    parse_amount,
    to_minor_units,
)

logger = structlog.get_logger()

# Minimal ERC20 ABI for USDC transfers
ERC20_ABI = [
    {
        "constant": True,
        "inputs": [{"name": "_owner", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "balance", "type": "uint256"}],
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [],
        "name": "decimals",
        "outputs": [{"name": "", "type": "uint8"}],
        "type": "function",
    },
    {
        "constant": False,
        "inputs": [
            {"name": "_to", "type": "address"},
            {"name": "_value", "type": "uint256"},
        ],
        "name": "transfer",
        "outputs": [{"name": "", "type": "bool"}],
        "type": "function",
    },
    {
        "constant": False,
        "inputs": [
            {"name": "_spender", "type": "address"},
            {"name": "_value", "type": "uint256"},
        ],
        "name": "approve",
        "outputs": [{"name": "", "type": "bool"}],
        "type": "function",
    },
]

TX_HASH_PATTERN = re.compile(r"^(0x)?[0-9a-fA-F]{64}$")

NOT_FOUND_REASON = "Transaction not found or not confirmed"
FAILED_REASON = "Transaction failed"
WRONG_CONTRACT_REASON = "Transaction not sent to USDC contract"
WRONG_RECIPIENT_REASON = "Payment not sent to correct address"
ALREADY_CLAIMED_REASON = "Transaction already used for a previous tool invocation"


def not_transfer_reason(function_name: str) -> str:
    return f"Not a transfer transaction (function: {function_name})"


def insufficient_reason(expected: Amount, received: Amount, currency: str = "USDC") -> str:
    return f"Insufficient payment: expected {expected} {currency}, received {format_amount(received)} {currency}"


def error_reason(detail: str) -> str:
    return f"Verification error: {detail}"


def explorer_tx_url(explorer_url: str, tx_hash: str) -> str:
    """Block explorer URL for a transaction"""
    return f"{explorer_url.rstrip('/')}/tx/{tx_hash}"


def explorer_address_url(explorer_url: str, address: str) -> str:
    """Block explorer URL for an address"""
    return f"{explorer_url.rstrip('/')}/address/{address}"


def _hex(value) -> Optional[str]:
    if value is None or isinstance(value, str):
        return value
    return Web3.to_hex(value)


class PaymentVerifier(ABC):
    """
    Strategy interface for payment verification

    Implementations never raise: every failure is reported as a rejected
    VerificationVerdict.
    """

    address: str
    network_name: str = "Base Sepolia"
    explorer_url: str = "https://sepolia.basescan.org"
    mode: str = "abstract"

    @abstractmethod
    def verify(self, tx_hash: str, expected_amount: Amount) -> VerificationVerdict:
        """Check that tx_hash pays at least expected_amount to this service"""

    def tx_url(self, tx_hash: str) -> str:
        return explorer_tx_url(self.explorer_url, tx_hash)

    def timeout_verdict(self, tx_hash: str, timeout: float) -> VerificationVerdict:
        """Verdict used when the ledger did not answer in time"""
        return VerificationVerdict.rejected(
            VerificationFailure.ERROR,
            error_reason(f"ledger query timed out after {timeout:g}s"),
            tx_hash=tx_hash,
            explorer_url=self.tx_url(tx_hash),
        )


class LiveLedgerVerifier(PaymentVerifier):
    """
    Verifies USDC transfers against a live JSON-RPC endpoint

    Checks, in order, stopping at the first failure:
    1. The transaction receipt exists
    2. The receipt status is success
    3. The transaction was sent to the USDC contract
    4. The call is a transfer
    5. The transfer recipient is this service
    6. The transferred amount covers the expected amount
    """

    mode = "live"

    def __init__(
        self,
        w3: Web3,
        receiving_address: str,
        usdc_address: str,
        network_name: str = "Base Sepolia",
        explorer_url: str = "https://sepolia.basescan.org",
        currency: str = "USDC",
        decimals: int = USDC_DECIMALS,
    ):
        self.w3 = w3
        self.address = Web3.to_checksum_address(receiving_address)
        self.usdc_address = Web3.to_checksum_address(usdc_address)
        self.usdc = self.w3.eth.contract(address=self.usdc_address, abi=ERC20_ABI)
        self.network_name = network_name
        self.explorer_url = explorer_url
        self.currency = currency
        self.decimals = decimals

    @classmethod
    def from_config(cls, config: ServerConfig) -> "LiveLedgerVerifier":
        """Build a verifier connected to the configured RPC endpoint"""
        w3 = Web3(Web3.HTTPProvider(
            config.rpc_url,
            request_kwargs={"timeout": config.rpc_timeout}
        ))
        verifier = cls(
            w3=w3,
            receiving_address=resolve_receiving_address(config),
            usdc_address=config.usdc_contract_address,
            network_name=config.network_name,
            explorer_url=config.block_explorer_url,
            currency=config.payment_currency,
        )
        verifier.check_decimals()
        return verifier

    def check_decimals(self) -> Optional[int]:
        """Read the token's decimals and warn when they differ from the scale used for amounts"""
        try:
            onchain = self.usdc.functions.decimals().call()
        except Exception as e:
            logger.warning("usdc_decimals_unreadable", contract=self.usdc_address, error=str(e))
            return None
        if onchain != self.decimals:
            logger.warning(
                "usdc_decimals_mismatch",
                contract=self.usdc_address,
                onchain=onchain,
                configured=self.decimals
            )
        return onchain

    def verify(self, tx_hash: str, expected_amount: Amount) -> VerificationVerdict:
        if TX_HASH_PATTERN.match(tx_hash) and not tx_hash.startswith("0x"):
            tx_hash = f"0x{tx_hash}"
        explorer = self.tx_url(tx_hash)
        resolved: Dict[str, Any] = {"explorer_url": explorer}

        logger.info(
            "payment_verification_started",
            tx_hash=tx_hash,
            expected_amount=str(expected_amount),
            mode=self.mode
        )

        try:
            expected = parse_amount(expected_amount)

            if not TX_HASH_PATTERN.match(tx_hash):
                return self._reject(VerificationFailure.NOT_FOUND, NOT_FOUND_REASON, tx_hash, explorer_url=explorer)

            # 1. Receipt
            try:
                receipt = self.w3.eth.get_transaction_receipt(tx_hash)
            except TransactionNotFound:
                receipt = None
            if not receipt:
                return self._reject(VerificationFailure.NOT_FOUND, NOT_FOUND_REASON, tx_hash, explorer_url=explorer)

            resolved.update(
                block_number=receipt["blockNumber"],
                gas_used=str(receipt["gasUsed"]),
            )

            # 2. Status
            if receipt["status"] != 1:
                return self._reject(VerificationFailure.FAILED, FAILED_REASON, tx_hash, **resolved)

            tx = self.w3.eth.get_transaction(tx_hash)
            resolved["sender_address"] = tx["from"]

            # 3. Contract
            destination = tx.get("to")
            if not destination or destination.lower() != self.usdc_address.lower():
                return self._reject(
                    VerificationFailure.WRONG_CONTRACT,
                    WRONG_CONTRACT_REASON,
                    tx_hash,
                    actual_contract_address=destination,
                    contract_address=self.usdc_address,
                    **resolved
                )

            # 4. Function
            try:
                function, params = self.usdc.decode_function_input(tx["input"])
                function_name = function.fn_name
            except ValueError:
                function_name, params = "unknown", {}
            if function_name != "transfer":
                return self._reject(
                    VerificationFailure.NOT_TRANSFER,
                    not_transfer_reason(function_name),
                    tx_hash,
                    function_name=function_name,
                    **resolved
                )

            # 5. Recipient
            recipient = params["_to"]
            if recipient.lower() != self.address.lower():
                return self._reject(
                    VerificationFailure.WRONG_RECIPIENT,
                    WRONG_RECIPIENT_REASON,
                    tx_hash,
                    actual_recipient=recipient,
                    recipient_address=self.address,
                    **resolved
                )

            # 6. Amount
            raw_amount = int(params["_value"])
            amount_paid = from_minor_units(raw_amount, self.decimals)
            resolved.update(
                amount=format_amount(amount_paid),
                raw_amount=raw_amount,
                recipient_address=self.address,
            )
            if amount_paid < expected:
                return self._reject(
                    VerificationFailure.INSUFFICIENT_AMOUNT,
                    insufficient_reason(expected_amount, amount_paid, self.currency),
                    tx_hash,
                    expected_amount=str(expected_amount),
                    **resolved
                )

            verdict = VerificationVerdict.accepted(
                tx_hash,
                block_hash=_hex(receipt.get("blockHash")),
                gas_price=str(tx["gasPrice"]) if tx.get("gasPrice") is not None else None,
                network=self.network_name,
                contract_address=self.usdc_address,
                **resolved
            )
            logger.info(
                "payment_verified",
                tx_hash=tx_hash,
                amount=verdict.amount,
                sender=verdict.sender_address,
                block_number=verdict.block_number
            )
            return verdict

        except Exception as e:
            logger.error("payment_verification_error", tx_hash=tx_hash, error=str(e))
            return VerificationVerdict.rejected(
                VerificationFailure.ERROR,
                error_reason(str(e)),
                tx_hash=tx_hash,
                **resolved
            )

    def _reject(self, code: VerificationFailure, reason: str, tx_hash: str, **details) -> VerificationVerdict:
        logger.warning("payment_verification_failed", tx_hash=tx_hash, reason_code=code.value, reason=reason)
        return VerificationVerdict.rejected(code, reason, tx_hash=tx_hash, **details)


class FakeVerifier(PaymentVerifier):
    """
    Deterministic verifier for tests and offline demos

    Outcomes are looked up per transaction hash (case-insensitive); hashes
    without an entry get the default outcome. An outcome of None means the
    payment verifies.
    """

    mode = "fake"

    def __init__(
        self,
        address: str,
        outcomes: Optional[Dict[str, Optional[VerificationFailure]]] = None,
        default: Optional[VerificationFailure] = None,
        amount_paid: Optional[Amount] = None,
        sender_address: str = "0x" + "1" * 40,
        network_name: str = "Base Sepolia",
        explorer_url: str = "https://sepolia.basescan.org",
        currency: str = "USDC",
    ):
        self.address = address
        self.outcomes = {k.lower(): v for k, v in (outcomes or {}).items()}
        self.default = default
        self.amount_paid = amount_paid
        self.sender_address = sender_address
        self.network_name = network_name
        self.explorer_url = explorer_url
        self.currency = currency
        self.calls: List[str] = []

    def verify(self, tx_hash: str, expected_amount: Amount) -> VerificationVerdict:
        self.calls.append(tx_hash)
        explorer = self.tx_url(tx_hash)
        code = self.outcomes.get(tx_hash.lower(), self.default)

        paid = parse_amount(self.amount_paid if self.amount_paid is not None else expected_amount)
        if code is None and paid < parse_amount(expected_amount):
            code = VerificationFailure.INSUFFICIENT_AMOUNT

        if code is None:
            return VerificationVerdict.accepted(
                tx_hash,
                explorer_url=explorer,
                amount=format_amount(paid),
                raw_amount=to_minor_units(paid),
                sender_address=self.sender_address,
                recipient_address=self.address,
                block_number=12345678,
                gas_used="21000",
                network=self.network_name,
            )

        reasons = {
            VerificationFailure.NOT_FOUND: NOT_FOUND_REASON,
            VerificationFailure.FAILED: FAILED_REASON,
            VerificationFailure.WRONG_CONTRACT: WRONG_CONTRACT_REASON,
            VerificationFailure.NOT_TRANSFER: not_transfer_reason("approve"),
            VerificationFailure.WRONG_RECIPIENT: WRONG_RECIPIENT_REASON,
            VerificationFailure.INSUFFICIENT_AMOUNT: insufficient_reason(expected_amount, paid, self.currency),
            VerificationFailure.ALREADY_CLAIMED: ALREADY_CLAIMED_REASON,
            VerificationFailure.ERROR: error_reason("simulated ledger failure"),
        }
        return VerificationVerdict.rejected(code, reasons[code], tx_hash=tx_hash, explorer_url=explorer)


def resolve_receiving_address(config: ServerConfig) -> str:
    """Receiving address from explicit configuration or from the server key"""
    if config.payment_address:
        return Web3.to_checksum_address(config.payment_address)
    if config.server_private_key:
        return Account.from_key(config.server_private_key).address
    raise ConfigurationError("PAYMENT_ADDRESS or SERVER_PRIVATE_KEY must be set")


def build_verifier(config: ServerConfig) -> PaymentVerifier:
    """Select the verification strategy named by the configuration"""
    if config.verifier_mode == "fake":
        default = None if config.fake_verifier_outcome == "verified" else VerificationFailure.NOT_FOUND
        verifier = FakeVerifier(
            address=resolve_receiving_address(config),
            default=default,
            network_name=config.network_name,
            explorer_url=config.block_explorer_url,
            currency=config.payment_currency,
        )
        logger.warning("fake_verifier_enabled", message="Payments are not checked against the ledger")
        return verifier

    verifier = LiveLedgerVerifier.from_config(config)
    logger.info(
        "live_verifier_enabled",
        rpc_url=config.rpc_url,
        usdc_contract=verifier.usdc_address,
        receiving_address=verifier.address
    )
    return verifier
