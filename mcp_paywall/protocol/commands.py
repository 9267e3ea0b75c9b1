"""
Command tokenizer
Turns "/name args --tx=<hash>" message text into a Command
"""

import re
from dataclasses import dataclass
from typing import Optional

COMMAND_PREFIX = "/"
PROOF_MARKER = "--tx="

_COMMAND = re.compile(r"^/(\S*)\s*(.*)$", re.DOTALL)
_PROOF = re.compile(r"--tx=([A-Za-z0-9]+)")
_PROOF_WITH_SPACING = re.compile(r"\s*--tx=[A-Za-z0-9]+\s*")


@dataclass(frozen=True)
class Command:
    """A parsed tool invocation"""
    tool_name: str
    raw_args: str
    proof: Optional[str] = None

    def resubmission(self, proof: str = "YOUR_TX_HASH") -> str:
        """Command text that carries a payment proof"""
        parts = [f"{COMMAND_PREFIX}{self.tool_name}"]
        if self.raw_args:
            parts.append(self.raw_args)
        parts.append(f"{PROOF_MARKER}{proof}")
        return " ".join(parts)


def is_command(text: str) -> bool:
    return text.startswith(COMMAND_PREFIX)


def extract_proof(args: str) -> tuple[str, Optional[str]]:
    """
    Split the first --tx=<token> marker out of the argument text

    The token is the run of ASCII letters and digits following the marker.
    Returns the remaining arguments and the token, or None when absent.
    """
    match = _PROOF.search(args)
    if not match:
        return args.strip(), None
    remaining = _PROOF_WITH_SPACING.sub(" ", args, count=1).strip()
    return remaining, match.group(1)


def parse_command(text: str) -> Optional[Command]:
    """Parse message text; None when the text is not a command"""
    if not is_command(text):
        return None
    match = _COMMAND.match(text)
    name, args = match.group(1), match.group(2)
    raw_args, proof = extract_proof(args)
    return Command(tool_name=name.lower(), raw_args=raw_args, proof=proof)
