"""
Pytest configuration and shared fixtures
"""

import pytest
from fastapi.testclient import TestClient
from eth_account import Account

from mcp_paywall.config import ServerConfig
from mcp_paywall.contexts.store import ContextStore
from mcp_paywall.payments.models import VerificationFailure
from mcp_paywall.payments.spent import SpentProofRegistry
from mcp_paywall.payments.verifier import FakeVerifier
from mcp_paywall.protocol.engine import ProtocolEngine
from mcp_paywall.server.app import create_app
from mcp_paywall.tools.builtin import default_registry

SERVER_KEY = "0x1234567890abcdef1234567890abcdef1234567890abcdef1234567890abcdef"
CLIENT_KEY = "0xabcdef1234567890abcdef1234567890abcdef1234567890abcdef1234567890"

GOOD_TX = "0x" + "ab" * 32
BAD_TX = "0xDEADBEEF"


@pytest.fixture
def server_account():
    """Account that receives payments"""
    return Account.from_key(SERVER_KEY)


@pytest.fixture
def client_account():
    """Account that pays for tools"""
    return Account.from_key(CLIENT_KEY)


@pytest.fixture
def server_config(server_account) -> ServerConfig:
    """Server configuration that never touches a ledger"""
    return ServerConfig(
        payment_address=server_account.address,
        verifier_mode="fake",
        rate_limit_enabled=False,
        log_format="text",
    )


@pytest.fixture
def fake_verifier(server_account) -> FakeVerifier:
    """Verifier that accepts every hash except BAD_TX"""
    return FakeVerifier(
        address=server_account.address,
        outcomes={BAD_TX: VerificationFailure.NOT_FOUND},
    )


@pytest.fixture
def registry():
    return default_registry(payment_amount="0.10")


@pytest.fixture
def store() -> ContextStore:
    return ContextStore()


@pytest.fixture
def engine(registry, fake_verifier) -> ProtocolEngine:
    return ProtocolEngine(
        registry=registry,
        verifier=fake_verifier,
        spent_proofs=SpentProofRegistry(),
        verification_timeout=5.0,
    )


@pytest.fixture
def app(server_config, fake_verifier, store):
    return create_app(config=server_config, verifier=fake_verifier, store=store)


@pytest.fixture
def client(app) -> TestClient:
    """Create FastAPI test client (sync)"""
    return TestClient(app)
