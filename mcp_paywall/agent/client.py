"""
HTTP client and auto-pay agent for the MCP Paywall server
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

import httpx
import structlog

from mcp_paywall.errors import AutoPayError, PaymentRefusedError, ServerRequestError
from mcp_paywall.payments.models import PaymentReceipt, PaymentRequirement
from mcp_paywall.payments.units import parse_amount, to_minor_units

logger = structlog.get_logger()


class McpClient:
    """Thin async wrapper around the server's HTTP surface"""

    def __init__(
        self,
        base_url: str,
        timeout: float = 60.0,
        client: Optional[httpx.AsyncClient] = None
    ):
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.AsyncClient(base_url=self.base_url, timeout=timeout)

    async def create_context(self, metadata: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return await self._request("POST", "/context", json={"metadata": metadata or {}})

    async def get_context(self, context_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/context/{context_id}")

    async def list_contexts(self) -> Dict[str, Any]:
        return await self._request("GET", "/contexts")

    async def send_message(self, context_id: str, content: str, role: str = "user") -> Dict[str, Any]:
        return await self._request(
            "POST",
            f"/context/{context_id}/message",
            json={"role": role, "content": content}
        )

    async def list_tools(self) -> Dict[str, Any]:
        return await self._request("GET", "/tools")

    async def aclose(self) -> None:
        await self.client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        try:
            response = await self.client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise ServerRequestError(f"Request to {path} failed: {e}") from e

        if response.status_code >= 400:
            try:
                detail = response.json().get("error") or response.text
            except ValueError:
                detail = response.text
            raise ServerRequestError(f"{method} {path} returned {response.status_code}: {detail}", response.status_code)
        return response.json()


class Payer(Protocol):
    def pay(self, requirement: PaymentRequirement) -> PaymentReceipt:
        ...


@dataclass
class AutoPayResult:
    """Outcome of sending one command through the agent"""
    initial: Dict[str, Any]
    final: Dict[str, Any]
    payment: Optional[PaymentReceipt] = None

    @property
    def paid(self) -> bool:
        return self.payment is not None

    @property
    def response(self) -> Optional[str]:
        return self.final.get("response")

    @property
    def metadata(self) -> Dict[str, Any]:
        return self.final.get("metadata") or {}


def requirement_from_metadata(metadata: Dict[str, Any]) -> PaymentRequirement:
    """Rebuild the payment requirement carried by a payment-required reply"""
    try:
        amount = str(metadata["amount"])
        return PaymentRequirement(
            amount=amount,
            raw_amount=to_minor_units(amount),
            currency=metadata.get("currency", "USDC"),
            recipient=metadata["recipient"],
            network=metadata.get("network", "Base Sepolia"),
            message=metadata.get("message", ""),
        )
    except (KeyError, ValueError) as e:
        raise AutoPayError(f"Malformed payment requirement: {e}") from e


class AutoPayAgent:
    """
    Sends commands and settles payment requirements on its own

    On a payment-required reply the agent pays through its wallet, waits
    for confirmation and resubmits the command with --tx=<hash> attached.
    Payment failures are raised to the caller, never swallowed.
    """

    def __init__(self, client: McpClient, wallet: Payer, max_payment: str = "1.00"):
        self.client = client
        self.wallet = wallet
        self.max_payment = parse_amount(max_payment)

    async def send(self, context_id: str, content: str) -> AutoPayResult:
        initial = await self.client.send_message(context_id, content)
        metadata = initial.get("metadata") or {}
        if not metadata.get("requiresPayment"):
            return AutoPayResult(initial=initial, final=initial)

        requirement = requirement_from_metadata(metadata)
        if parse_amount(requirement.amount) > self.max_payment:
            raise PaymentRefusedError(
                f"Payment of {requirement.amount} {requirement.currency} exceeds the "
                f"auto-pay limit of {self.max_payment}"
            )

        logger.info(
            "auto_payment_started",
            context_id=context_id,
            amount=requirement.amount,
            currency=requirement.currency,
            recipient=requirement.recipient
        )
        receipt = await asyncio.to_thread(self.wallet.pay, requirement)

        retry = f"{content} --tx={receipt.tx_hash}"
        final = await self.client.send_message(context_id, retry)

        logger.info(
            "auto_payment_completed",
            context_id=context_id,
            tx_hash=receipt.tx_hash,
            verified=(final.get("metadata") or {}).get("paymentVerified")
        )
        return AutoPayResult(initial=initial, final=final, payment=receipt)
