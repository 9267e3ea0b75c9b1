"""
Tool invocation protocol: command parsing, state machine and dispatcher
"""

from mcp_paywall.protocol.commands import Command, extract_proof, is_command, parse_command
from mcp_paywall.protocol.engine import ProcessingResult, ProtocolEngine
from mcp_paywall.protocol.states import Done, Failed, PaymentRequired, Verifying, begin, complete

__all__ = [
    "Command",
    "extract_proof",
    "is_command",
    "parse_command",
    "ProcessingResult",
    "ProtocolEngine",
    "Done",
    "Failed",
    "PaymentRequired",
    "Verifying",
    "begin",
    "complete",
]
