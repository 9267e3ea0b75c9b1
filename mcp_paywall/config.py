"""
MCP Paywall Configuration Management
Uses pydantic-settings for type-safe environment variable loading
"""

from typing import Literal, Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_SEPOLIA_USDC = "0x036CbD53842c5426634e7929541eC2318f3dCF7e"


class ServerConfig(BaseSettings):
    """Configuration for the tool server"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Server Configuration
    server_host: str = Field(default="0.0.0.0", description="Host to bind the server to")
    server_port: int = Field(default=3001, description="Port to bind the server to")

    # Network Configuration
    network: Literal["base-sepolia", "base-mainnet"] = Field(default="base-sepolia")
    network_name: str = Field(default="Base Sepolia", description="Human-readable network name")
    rpc_url: str = Field(default="https://sepolia.base.org")
    rpc_timeout: float = Field(default=10.0, description="Timeout for a single RPC call in seconds")
    block_explorer_url: str = Field(default="https://sepolia.basescan.org")

    # Payment Configuration
    usdc_contract_address: str = Field(
        default=BASE_SEPOLIA_USDC,
        description="USDC contract address on Base"
    )
    server_private_key: str = Field(default="", description="Private key of the receiving wallet")
    payment_address: str = Field(default="", description="Receiving address, derived from the key when empty")
    payment_amount: str = Field(default="0.10", description="Price of paid tools in human units")
    payment_currency: str = Field(default="USDC")

    # Verification
    verifier_mode: Literal["live", "fake"] = Field(default="live")
    fake_verifier_outcome: Literal["verified", "not_found"] = Field(
        default="verified",
        description="Default outcome of the fake verifier"
    )
    verification_timeout: float = Field(default=30.0, description="Upper bound for one verification in seconds")
    reject_reused_payments: bool = Field(
        default=True,
        description="Refuse a transaction hash that already paid for an earlier invocation"
    )

    # CORS Configuration
    cors_origins: list[str] = Field(
        default=["http://localhost:3000"],
        description="Allowed CORS origins"
    )

    # Rate limiting
    rate_limit_enabled: bool = Field(default=True)
    message_rate_limit: str = Field(default="60/minute")

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")
    log_format: Literal["json", "text"] = Field(default="json")

    # Development
    debug: bool = Field(default=False)
    reload: bool = Field(default=False)

    @field_validator("server_private_key")
    @classmethod
    def validate_private_key(cls, v):
        if v and not v.startswith("0x"):
            return f"0x{v}"
        return v


class AgentConfig(BaseSettings):
    """Configuration for the client auto-pay agent"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Wallet Configuration
    client_private_key: str = Field(default="", description="Private key used to pay for tools")

    # Server Connection
    server_url: str = Field(default="http://localhost:3001", description="URL of the tool server")
    http_timeout: float = Field(default=60.0)

    # Network Configuration
    network_name: str = Field(default="Base Sepolia")
    rpc_url: str = Field(default="https://sepolia.base.org")
    usdc_contract_address: str = Field(default=BASE_SEPOLIA_USDC)
    block_explorer_url: str = Field(default="https://sepolia.basescan.org")

    # Transfers
    confirmation_timeout: float = Field(default=120.0, description="Max wait for a transfer receipt in seconds")
    gas_limit: int = Field(default=100000, description="Gas limit used when estimation fails")
    max_auto_payment: str = Field(default="1.00", description="Largest payment made without asking")

    @field_validator("client_private_key")
    @classmethod
    def validate_private_key(cls, v):
        if v and not v.startswith("0x"):
            return f"0x{v}"
        return v


# Singleton instances
_server_config: Optional[ServerConfig] = None
_agent_config: Optional[AgentConfig] = None


def get_server_config() -> ServerConfig:
    """Get or create server configuration singleton"""
    global _server_config
    if _server_config is None:
        _server_config = ServerConfig()
    return _server_config


def get_agent_config() -> AgentConfig:
    """Get or create agent configuration singleton"""
    global _agent_config
    if _agent_config is None:
        _agent_config = AgentConfig()
    return _agent_config
