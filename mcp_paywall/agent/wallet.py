"""
Paying wallet for the auto-pay agent
Sends USDC transfers and waits for their confirmation
"""

from decimal import Decimal
from typing import Optional

from eth_account import Account
from web3 import Web3
from web3.exceptions import TimeExhausted
import structlog

from mcp_paywall.config import AgentConfig
from mcp_paywall.errors import (
    AutoPayError,
    BalanceCheckError,
    BroadcastError,
    ConfigurationError,
    ConfirmationError,
    InsufficientBalanceError,
)
from mcp_paywall.payments.models import PaymentReceipt, PaymentRequirement
from mcp_paywall.payments.units import USDC_DECIMALS, format_amount, from_minor_units, to_minor_units
from mcp_paywall.payments.verifier import ERC20_ABI, explorer_tx_url

logger = structlog.get_logger()


class PaymentWallet:
    """
    Holds the client's signing key and pays payment requirements

    Each stage of a payment fails with its own exception:
    - BalanceCheckError / InsufficientBalanceError before anything is sent
    - BroadcastError when the transfer cannot be built, signed or sent
    - ConfirmationError when the transfer is not confirmed successfully in time
    """

    currency = "USDC"

    def __init__(
        self,
        private_key: str,
        w3: Web3,
        usdc_address: str,
        explorer_url: str = "https://sepolia.basescan.org",
        confirmation_timeout: float = 120.0,
        gas_limit: int = 100000,
        decimals: int = USDC_DECIMALS,
    ):
        self.account = Account.from_key(private_key)
        self.address = self.account.address
        self.w3 = w3
        self.usdc_address = Web3.to_checksum_address(usdc_address)
        self.usdc = self.w3.eth.contract(address=self.usdc_address, abi=ERC20_ABI)
        self.explorer_url = explorer_url
        self.confirmation_timeout = confirmation_timeout
        self.gas_limit = gas_limit
        self.decimals = decimals

    @classmethod
    def from_config(cls, config: AgentConfig) -> "PaymentWallet":
        if not config.client_private_key:
            raise ConfigurationError("CLIENT_PRIVATE_KEY must be set to pay for tools")
        return cls(
            private_key=config.client_private_key,
            w3=Web3(Web3.HTTPProvider(config.rpc_url)),
            usdc_address=config.usdc_contract_address,
            explorer_url=config.block_explorer_url,
            confirmation_timeout=config.confirmation_timeout,
            gas_limit=config.gas_limit,
        )

    def get_usdc_balance(self, address: Optional[str] = None) -> Decimal:
        """Get USDC balance for an address (defaults to own address)"""
        target = Web3.to_checksum_address(address or self.address)
        try:
            balance = self.usdc.functions.balanceOf(target).call()
        except Exception as e:
            raise BalanceCheckError(f"Could not read USDC balance: {e}") from e
        return from_minor_units(balance, self.decimals)

    def pay(self, requirement: PaymentRequirement) -> PaymentReceipt:
        """Transfer the required amount to the requirement's recipient and wait for it"""
        if requirement.currency.upper() != self.currency:
            raise AutoPayError(f"Unsupported payment currency: {requirement.currency}")

        amount = to_minor_units(requirement.amount, self.decimals)
        recipient = Web3.to_checksum_address(requirement.recipient)

        balance = self.get_usdc_balance()
        if balance < from_minor_units(amount, self.decimals):
            raise InsufficientBalanceError(format_amount(balance), requirement.amount, self.currency)

        logger.info(
            "transfer_preparing",
            sender=self.address,
            recipient=recipient,
            amount=requirement.amount,
            network=requirement.network
        )

        try:
            transfer = self.usdc.functions.transfer(recipient, amount)
            try:
                gas = transfer.estimate_gas({"from": self.address})
            except Exception as e:
                logger.warning("gas_estimation_failed", error=str(e), gas_limit=self.gas_limit)
                gas = self.gas_limit

            tx = transfer.build_transaction({
                "from": self.address,
                "nonce": self.w3.eth.get_transaction_count(self.address),
                "gas": gas,
                "gasPrice": self.w3.eth.gas_price,
            })
            signed_tx = self.account.sign_transaction(tx)
            tx_hash = Web3.to_hex(self.w3.eth.send_raw_transaction(signed_tx.raw_transaction))
        except Exception as e:
            logger.error("transfer_broadcast_failed", error=str(e))
            raise BroadcastError(f"Transfer failed: {e}") from e

        logger.info("transfer_sent", tx_hash=tx_hash, explorer_url=explorer_tx_url(self.explorer_url, tx_hash))

        try:
            receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.confirmation_timeout)
        except TimeExhausted as e:
            raise ConfirmationError(
                f"Transaction not confirmed within {self.confirmation_timeout:g}s",
                tx_hash=tx_hash
            ) from e
        except Exception as e:
            raise ConfirmationError(f"Could not confirm transaction: {e}", tx_hash=tx_hash) from e

        if receipt["status"] != 1:
            raise ConfirmationError("Transaction reverted on-chain", tx_hash=tx_hash)

        logger.info(
            "transfer_confirmed",
            tx_hash=tx_hash,
            block_number=receipt["blockNumber"],
            gas_used=receipt["gasUsed"]
        )

        return PaymentReceipt(
            tx_hash=tx_hash,
            block_number=receipt["blockNumber"],
            gas_used=str(receipt["gasUsed"]),
            amount=requirement.amount,
            recipient=recipient,
            sender=self.address,
            explorer_url=explorer_tx_url(self.explorer_url, tx_hash),
        )
