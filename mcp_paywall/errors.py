"""
Exception hierarchy for MCP Paywall
"""


class McpPaywallError(Exception):
    """Base class for all errors raised by this package"""


class ContextNotFoundError(McpPaywallError):
    """Raised when a context id is not known to the store"""

    def __init__(self, context_id: str):
        super().__init__(f"Context {context_id} not found")
        self.context_id = context_id


class ToolInputError(McpPaywallError):
    """Raised by a tool when its input cannot be processed"""


class ConfigurationError(McpPaywallError):
    """Raised when the environment does not describe a usable setup"""


# ===== AUTO-PAY AGENT =====

class AutoPayError(McpPaywallError):
    """Base class for failures of the client auto-pay agent"""


class InsufficientBalanceError(AutoPayError):
    """The paying wallet does not hold enough tokens"""

    def __init__(self, balance, required, currency: str = "USDC"):
        super().__init__(f"Insufficient {currency} balance: {balance} < {required}")
        self.balance = balance
        self.required = required


class BalanceCheckError(AutoPayError):
    """The wallet balance could not be read"""


class PaymentRefusedError(AutoPayError):
    """The requested payment exceeds what the agent may spend on its own"""


class BroadcastError(AutoPayError):
    """The transfer could not be built, signed or sent"""


class ConfirmationError(AutoPayError):
    """The transfer was sent but never confirmed successfully"""

    def __init__(self, message: str, tx_hash: str = None):
        super().__init__(message)
        self.tx_hash = tx_hash


class ServerRequestError(AutoPayError):
    """The tool server rejected or failed a request"""

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code
