"""
Protocol engine
Parses user messages, dispatches tool commands and drives the payment flow
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import structlog

from mcp_paywall.errors import ToolInputError
from mcp_paywall.models import Context
from mcp_paywall.payments.models import VerificationFailure, VerificationVerdict
from mcp_paywall.payments.spent import SpentProofRegistry
from mcp_paywall.payments.units import Amount
from mcp_paywall.payments.verifier import (
    ALREADY_CLAIMED_REASON,
    PaymentVerifier,
    error_reason,
    explorer_address_url,
)
from mcp_paywall.protocol.commands import Command, parse_command
from mcp_paywall.protocol.states import (
    Done,
    Failed,
    PaymentRequired,
    State,
    Verifying,
    begin,
    complete,
)
from mcp_paywall.tools.registry import ToolRegistry

logger = structlog.get_logger()

DEFAULT_MODEL = "demo-model-v1"


@dataclass
class ProcessingResult:
    """Assistant reply text plus the structured outcome of the turn"""
    response: str
    metadata: Dict[str, Any] = field(default_factory=dict)


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 3)


class ProtocolEngine:
    """
    Dispatcher for tool commands

    Every request is handled from scratch: a paid tool invoked without a
    proof yields a payment requirement, and a later request carrying
    --tx=<hash> is verified against the ledger before the tool runs.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        verifier: PaymentVerifier,
        spent_proofs: Optional[SpentProofRegistry] = None,
        verification_timeout: float = 30.0,
    ):
        self.registry = registry
        self.verifier = verifier
        self.spent_proofs = spent_proofs
        self.verification_timeout = verification_timeout

    async def process(self, context: Context, content: str) -> ProcessingResult:
        """Produce the assistant reply for one user message"""
        started = time.perf_counter()
        command = parse_command(content)

        if command is None:
            return self._default_response(context, content, started)

        tool = self.registry.get(command.tool_name)
        if tool is None:
            logger.info("unknown_tool", tool=command.tool_name, context_id=context.id)
            names = self.registry.names()
            return ProcessingResult(
                response=f"Unknown tool: {command.tool_name}. Available tools: {', '.join(names)}",
                metadata={
                    "processingTime": _elapsed_ms(started),
                    "error": True,
                    "toolName": command.tool_name,
                    "availableTools": names,
                }
            )

        logger.info(
            "tool_invoked",
            tool=tool.name,
            context_id=context.id,
            has_proof=command.proof is not None
        )

        claimed = None
        try:
            state = begin(tool, command, self.verifier.address)
            if isinstance(state, Verifying):
                verdict = await self.verify(state.proof, state.tool.payment_amount)
                if verdict.verified:
                    claimed = verdict.tx_hash
                state = complete(state, verdict)
        except ToolInputError as e:
            self._release(claimed)
            return self._tool_error(command, str(e), started)
        except Exception as e:
            logger.exception("tool_execution_failed", tool=command.tool_name, error=str(e))
            self._release(claimed)
            return self._tool_error(command, "tool execution failed", started)

        return self.render(state, started)

    async def verify(self, tx_hash: str, expected_amount: Amount) -> VerificationVerdict:
        """
        Run the verifier off the event loop with a bounded wait

        A verified proof is claimed in the spent-proof registry, when one is
        configured; a proof that was claimed before is rejected.
        """
        if self.spent_proofs is not None and self.spent_proofs.is_claimed(tx_hash):
            return self._already_claimed(tx_hash)

        try:
            verdict = await asyncio.wait_for(
                asyncio.to_thread(self.verifier.verify, tx_hash, expected_amount),
                timeout=self.verification_timeout
            )
        except asyncio.TimeoutError:
            logger.warning(
                "payment_verification_timeout",
                tx_hash=tx_hash,
                timeout=self.verification_timeout
            )
            verdict = self.verifier.timeout_verdict(tx_hash, self.verification_timeout)
        except Exception as e:
            logger.error("payment_verifier_crashed", tx_hash=tx_hash, error=str(e))
            verdict = VerificationVerdict.rejected(
                VerificationFailure.ERROR,
                error_reason(str(e)),
                tx_hash=tx_hash,
                explorer_url=self.verifier.tx_url(tx_hash),
            )

        if verdict.verified and self.spent_proofs is not None:
            if not self.spent_proofs.claim(verdict.tx_hash):
                return self._already_claimed(verdict.tx_hash)
        return verdict

    def _release(self, tx_hash: Optional[str]):
        """Give a claimed proof back when the paid tool did not produce a result"""
        if tx_hash is None or self.spent_proofs is None:
            return
        self.spent_proofs.release(tx_hash)
        logger.info("payment_proof_released", tx_hash=tx_hash)

    # ===== RENDERING =====

    def render(self, state: State, started: float) -> ProcessingResult:
        """Turn a terminal state into reply text and metadata"""
        name = state.command.tool_name
        match state:
            case Done(verdict=None):
                return ProcessingResult(
                    response=f"Tool {name} result: {state.result.result}",
                    metadata={
                        "processingTime": _elapsed_ms(started),
                        "toolName": name,
                        **state.result.metadata,
                    }
                )
            case PaymentRequired():
                return self._payment_required(state)
            case Failed():
                return self._payment_failed(state)
            case Done():
                return self._paid_result(state)
        raise TypeError(f"Not a terminal state: {type(state).__name__}")

    def _payment_required(self, state: PaymentRequired) -> ProcessingResult:
        req = state.requirement
        logger.info(
            "payment_required",
            tool=state.tool.name,
            amount=req.amount,
            currency=req.currency,
            recipient=req.recipient
        )
        response = (
            f"This tool requires payment: {req.amount} {req.currency} to {req.recipient}.\n\n"
            "Please complete payment and resubmit with transaction hash using format:\n"
            f"`{state.command.resubmission()}`\n\n"
            f"Payment goes to Wallet: `{req.recipient}` on {req.network} network."
        )
        return ProcessingResult(
            response=response,
            metadata={
                "toolName": state.command.tool_name,
                "requiresPayment": True,
                "amount": req.amount,
                "currency": req.currency,
                "recipient": req.recipient,
                "network": req.network,
                "message": req.message,
            }
        )

    def _payment_failed(self, state: Failed) -> ProcessingResult:
        verdict = state.verdict
        logger.info(
            "payment_rejected",
            tool=state.tool.name,
            tx_hash=verdict.tx_hash,
            reason_code=verdict.reason_code.value if verdict.reason_code else None
        )
        return ProcessingResult(
            response=f"Payment verification failed: {verdict.reason}",
            metadata={
                "toolName": state.command.tool_name,
                "tool": state.tool.name,
                "error": True,
                "paymentVerified": False,
                "reason": verdict.reason,
                "reasonCode": verdict.reason_code.value if verdict.reason_code else None,
                "txHash": verdict.tx_hash,
                "explorerUrl": verdict.explorer_url,
            }
        )

    def _paid_result(self, state: Done) -> ProcessingResult:
        verdict = state.verdict
        explorer = self.verifier.explorer_url
        logger.info(
            "paid_tool_executed",
            tool=state.tool.name,
            tx_hash=verdict.tx_hash,
            amount=verdict.amount,
            sender=verdict.sender_address
        )
        tx_details = (
            f"[View Transaction]({verdict.explorer_url})"
            if verdict.explorer_url
            else f"(TX: {verdict.tx_hash[:10]}...)"
        )
        response = (
            f"Tool {state.command.tool_name} result:\n\n"
            f"```\n{state.result.result}\n```\n\n"
            "**Transaction Details**\n"
            f"- Amount: {verdict.amount} {state.tool.payment_currency}\n"
            f"- Block: {verdict.block_number}\n"
            f"- Gas Used: {verdict.gas_used}\n"
            f"- {tx_details}"
        )
        return ProcessingResult(
            response=response,
            metadata={
                "toolName": state.command.tool_name,
                **state.result.metadata,
                "tool": state.tool.name,
                "paymentVerified": True,
                "txHash": verdict.tx_hash,
                "explorerUrl": verdict.explorer_url,
                "blockNumber": verdict.block_number,
                "gasUsed": verdict.gas_used,
                "network": verdict.network or state.tool.payment_network,
                "senderAddress": verdict.sender_address,
                "senderExplorerUrl": (
                    explorer_address_url(explorer, verdict.sender_address)
                    if verdict.sender_address else None
                ),
                "recipientAddress": verdict.recipient_address,
                "recipientExplorerUrl": (
                    explorer_address_url(explorer, verdict.recipient_address)
                    if verdict.recipient_address else None
                ),
                "paymentAmount": verdict.amount,
                "timestamp": verdict.timestamp,
            }
        )

    def _tool_error(self, command: Command, detail: str, started: float) -> ProcessingResult:
        return ProcessingResult(
            response=f"Error using tool {command.tool_name}: {detail}",
            metadata={
                "processingTime": _elapsed_ms(started),
                "error": True,
                "toolName": command.tool_name,
            }
        )

    def _already_claimed(self, tx_hash: str) -> VerificationVerdict:
        logger.warning("payment_proof_reused", tx_hash=tx_hash)
        return VerificationVerdict.rejected(
            VerificationFailure.ALREADY_CLAIMED,
            ALREADY_CLAIMED_REASON,
            tx_hash=tx_hash,
            explorer_url=self.verifier.tx_url(tx_hash),
        )

    @staticmethod
    def _default_response(context: Context, content: str, started: float) -> ProcessingResult:
        return ProcessingResult(
            response=f"Processed: {content} (Context ID: {context.id}, Messages: {len(context.messages)})",
            metadata={
                "processingTime": _elapsed_ms(started),
                "tokensUsed": len(content) * 0.5,
                "model": DEFAULT_MODEL,
            }
        )
