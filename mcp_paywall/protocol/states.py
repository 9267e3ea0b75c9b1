"""
Two-phase invocation state machine
Start -> Done | PaymentRequired | Verifying, then Verifying -> Done | Failed
"""

from dataclasses import dataclass
from typing import Optional, Union

from mcp_paywall.payments.models import PaymentRequirement, VerificationVerdict
from mcp_paywall.payments.units import to_minor_units
from mcp_paywall.protocol.commands import Command
from mcp_paywall.tools.base import FreeTool, PaidTool, Tool, ToolResult


@dataclass(frozen=True)
class Done:
    """Tool body ran; verdict is set for paid tools"""
    tool: Tool
    command: Command
    result: ToolResult
    verdict: Optional[VerificationVerdict] = None


@dataclass(frozen=True)
class PaymentRequired:
    """Paid tool invoked without a proof"""
    tool: PaidTool
    command: Command
    requirement: PaymentRequirement


@dataclass(frozen=True)
class Verifying:
    """Paid tool invoked with a proof that still has to be checked"""
    tool: PaidTool
    command: Command
    proof: str


@dataclass(frozen=True)
class Failed:
    """Proof was rejected; the tool body did not run"""
    tool: PaidTool
    command: Command
    verdict: VerificationVerdict


State = Union[Done, PaymentRequired, Verifying, Failed]


def payment_requirement(tool: PaidTool, recipient: str) -> PaymentRequirement:
    """What the caller must pay for one invocation of tool"""
    what = tool.payment_description or f"the {tool.name} tool"
    return PaymentRequirement(
        amount=tool.payment_amount,
        raw_amount=to_minor_units(tool.payment_amount),
        currency=tool.payment_currency,
        recipient=recipient,
        network=tool.payment_network,
        message=f"Please pay {tool.payment_amount} {tool.payment_currency} for {what}.",
    )


def begin(tool: Tool, command: Command, recipient: str) -> Union[Done, PaymentRequired, Verifying]:
    """First transition of an invocation"""
    match tool:
        case FreeTool():
            return Done(tool=tool, command=command, result=tool.run(command.raw_args))
        case PaidTool() if command.proof is None:
            return PaymentRequired(
                tool=tool,
                command=command,
                requirement=payment_requirement(tool, recipient)
            )
        case PaidTool():
            return Verifying(tool=tool, command=command, proof=command.proof)
    raise TypeError(f"Unsupported tool type: {type(tool).__name__}")


def complete(state: Verifying, verdict: VerificationVerdict) -> Union[Done, Failed]:
    """Second transition: run the paid tool only when the verdict is verified"""
    if not verdict.verified:
        return Failed(tool=state.tool, command=state.command, verdict=verdict)
    result = state.tool.run(state.command.raw_args)
    return Done(tool=state.tool, command=state.command, result=result, verdict=verdict)
