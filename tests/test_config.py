"""
Unit tests for configuration management
"""

import pytest

from mcp_paywall import config as config_module
from mcp_paywall.config import (
    BASE_SEPOLIA_USDC,
    AgentConfig,
    ServerConfig,
    get_agent_config,
    get_server_config,
)


class TestServerConfig:
    """Test server configuration"""

    def test_defaults(self, monkeypatch):
        """Test default values without environment overrides"""
        for name in ("SERVER_PORT", "PAYMENT_AMOUNT", "VERIFIER_MODE", "REJECT_REUSED_PAYMENTS"):
            monkeypatch.delenv(name, raising=False)

        config = ServerConfig(_env_file=None)

        assert config.server_port == 3001
        assert config.payment_amount == "0.10"
        assert config.payment_currency == "USDC"
        assert config.usdc_contract_address == BASE_SEPOLIA_USDC
        assert config.verifier_mode == "live"
        assert config.reject_reused_payments is True

    def test_env_override(self, monkeypatch):
        """Test loading values from the environment"""
        monkeypatch.setenv("SERVER_PORT", "4000")
        monkeypatch.setenv("VERIFIER_MODE", "fake")
        monkeypatch.setenv("PAYMENT_AMOUNT", "0.25")

        config = ServerConfig(_env_file=None)

        assert config.server_port == 4000
        assert config.verifier_mode == "fake"
        assert config.payment_amount == "0.25"

    def test_private_key_gets_prefix(self):
        """Test that a bare hex key gets the 0x prefix"""
        config = ServerConfig(_env_file=None, server_private_key="ab" * 32)
        assert config.server_private_key == "0x" + "ab" * 32

    def test_invalid_verifier_mode(self):
        with pytest.raises(ValueError):
            ServerConfig(_env_file=None, verifier_mode="random")


class TestAgentConfig:
    """Test agent configuration"""

    def test_defaults(self, monkeypatch):
        for name in ("SERVER_URL", "MAX_AUTO_PAYMENT", "CLIENT_PRIVATE_KEY"):
            monkeypatch.delenv(name, raising=False)

        config = AgentConfig(_env_file=None)

        assert config.server_url == "http://localhost:3001"
        assert config.max_auto_payment == "1.00"
        assert config.client_private_key == ""

    def test_private_key_gets_prefix(self):
        config = AgentConfig(_env_file=None, client_private_key="cd" * 32)
        assert config.client_private_key == "0x" + "cd" * 32


class TestConfigSingletons:
    """Test singleton getters"""

    def test_server_config_singleton(self, monkeypatch):
        monkeypatch.setattr(config_module, "_server_config", None)
        assert get_server_config() is get_server_config()

    def test_agent_config_singleton(self, monkeypatch):
        monkeypatch.setattr(config_module, "_agent_config", None)
        assert get_agent_config() is get_agent_config()
