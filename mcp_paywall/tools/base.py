"""
Tool descriptors
A tool is either free or gated behind a payment
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Union


@dataclass(frozen=True)
class ToolResult:
    """Output of a tool body"""
    result: str
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class FreeTool:
    """Runs directly from its input"""
    name: str
    description: str
    run: Callable[[str], ToolResult]
    usage: str = ""
    example: str = ""

    def describe(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "usage": self.usage or f"/{self.name} your text here",
            "example": self.example,
            "paymentRequired": False,
        }


@dataclass(frozen=True)
class PaidTool:
    """Runs only after a payment proof has been verified"""
    name: str
    description: str
    run: Callable[[str], ToolResult]
    payment_amount: str
    payment_currency: str = "USDC"
    payment_network: str = "Base Sepolia"
    payment_description: str = ""
    usage: str = ""
    example: str = ""

    def describe(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "usage": self.usage or f"/{self.name} your text here",
            "example": self.example,
            "paymentRequired": True,
            "paymentAmount": self.payment_amount,
            "paymentCurrency": self.payment_currency,
            "paymentNetwork": self.payment_network,
        }


Tool = Union[FreeTool, PaidTool]
