"""
Tests for the auto-pay agent
Tests the paying wallet against a mocked chain and the pay-and-retry loop
against the real app
"""

import pytest
from unittest.mock import MagicMock

import httpx
from web3 import Web3
from web3.exceptions import TimeExhausted

from mcp_paywall import config as config_module
from mcp_paywall.agent.cli import AgentCLI
from mcp_paywall.agent.client import AutoPayAgent, McpClient, requirement_from_metadata
from mcp_paywall.agent.wallet import PaymentWallet
from mcp_paywall.config import BASE_SEPOLIA_USDC, AgentConfig
from mcp_paywall.errors import (
    AutoPayError,
    BalanceCheckError,
    BroadcastError,
    ConfigurationError,
    ConfirmationError,
    InsufficientBalanceError,
    PaymentRefusedError,
    ServerRequestError,
)
from mcp_paywall.payments.models import PaymentReceipt, PaymentRequirement
from tests.conftest import CLIENT_KEY, GOOD_TX

USDC = Web3.to_checksum_address(BASE_SEPOLIA_USDC)
SENT_TX = "0x" + "cd" * 32
HELLO_SHA1 = "aaf4c61ddcc5e8a2dabede0f3b482cd9aea9434d"


class StubWallet:
    """Pays instantly with a fixed transaction hash"""

    def __init__(self, tx_hash=GOOD_TX, error=None):
        self.tx_hash = tx_hash
        self.error = error
        self.requirements = []

    def pay(self, requirement):
        self.requirements.append(requirement)
        if self.error:
            raise self.error
        return PaymentReceipt(
            tx_hash=self.tx_hash,
            block_number=4321,
            gas_used="51000",
            amount=requirement.amount,
            recipient=requirement.recipient,
            sender="0x" + "1" * 40,
        )


@pytest.fixture
def requirement(server_account) -> PaymentRequirement:
    return PaymentRequirement(
        amount="0.10",
        raw_amount=100000,
        recipient=server_account.address,
        message="Please pay 0.10 USDC for a SHA-1 hash.",
    )


@pytest.fixture
def usdc():
    contract = MagicMock()
    contract.functions.balanceOf.return_value.call.return_value = 5_000_000
    transfer = contract.functions.transfer.return_value
    transfer.estimate_gas.return_value = 60000
    transfer.build_transaction.return_value = {
        "to": USDC,
        "value": 0,
        "data": "0x",
        "nonce": 0,
        "gas": 60000,
        "gasPrice": 1000000000,
        "chainId": 84532,
    }
    return contract


@pytest.fixture
def w3(usdc):
    mock = MagicMock()
    mock.eth.contract.return_value = usdc
    mock.eth.send_raw_transaction.return_value = bytes.fromhex("cd" * 32)
    mock.eth.wait_for_transaction_receipt.return_value = {"status": 1, "blockNumber": 4321, "gasUsed": 51000}
    return mock


@pytest.fixture
def wallet(w3) -> PaymentWallet:
    return PaymentWallet(private_key=CLIENT_KEY, w3=w3, usdc_address=USDC, confirmation_timeout=5)


@pytest.fixture
def mcp_client(app) -> McpClient:
    http = httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")
    return McpClient("http://test", client=http)


class TestPaymentWallet:
    """Test each stage of an on-chain payment"""

    def test_balance(self, wallet):
        assert str(wallet.get_usdc_balance()) == "5"

    def test_pay(self, wallet, w3, usdc, requirement, client_account):
        receipt = wallet.pay(requirement)

        assert receipt.tx_hash == SENT_TX
        assert receipt.block_number == 4321
        assert receipt.gas_used == "51000"
        assert receipt.sender == client_account.address
        assert receipt.explorer_url == f"https://sepolia.basescan.org/tx/{SENT_TX}"
        usdc.functions.transfer.assert_called_with(requirement.recipient, 100000)
        w3.eth.send_raw_transaction.assert_called_once()
        w3.eth.wait_for_transaction_receipt.assert_called_once_with(SENT_TX, timeout=5)

    def test_gas_estimation_fallback(self, wallet, usdc, requirement):
        transfer = usdc.functions.transfer.return_value
        transfer.estimate_gas.side_effect = ValueError("execution reverted")

        wallet.pay(requirement)

        assert transfer.build_transaction.call_args[0][0]["gas"] == 100000

    def test_insufficient_balance(self, wallet, w3, usdc, requirement):
        usdc.functions.balanceOf.return_value.call.return_value = 50000

        with pytest.raises(InsufficientBalanceError) as exc_info:
            wallet.pay(requirement)

        assert exc_info.value.balance == "0.05"
        w3.eth.send_raw_transaction.assert_not_called()

    def test_balance_unreadable(self, wallet, usdc, requirement):
        usdc.functions.balanceOf.return_value.call.side_effect = ConnectionError("rpc down")

        with pytest.raises(BalanceCheckError):
            wallet.pay(requirement)

    def test_broadcast_failure(self, wallet, w3, requirement):
        w3.eth.send_raw_transaction.side_effect = ValueError("nonce too low")

        with pytest.raises(BroadcastError):
            wallet.pay(requirement)

        w3.eth.wait_for_transaction_receipt.assert_not_called()

    def test_confirmation_timeout(self, wallet, w3, requirement):
        w3.eth.wait_for_transaction_receipt.side_effect = TimeExhausted("not mined")

        with pytest.raises(ConfirmationError) as exc_info:
            wallet.pay(requirement)

        assert exc_info.value.tx_hash == SENT_TX

    def test_reverted_transfer(self, wallet, w3, requirement):
        w3.eth.wait_for_transaction_receipt.return_value = {"status": 0, "blockNumber": 4321, "gasUsed": 51000}

        with pytest.raises(ConfirmationError):
            wallet.pay(requirement)

    def test_unsupported_currency(self, wallet, requirement):
        with pytest.raises(AutoPayError):
            wallet.pay(requirement.model_copy(update={"currency": "DAI"}))

    def test_from_config_requires_key(self):
        with pytest.raises(ConfigurationError):
            PaymentWallet.from_config(AgentConfig(_env_file=None, client_private_key=""))


class TestRequirementFromMetadata:
    """Test reading payment requirements from server replies"""

    def test_valid(self, server_account):
        requirement = requirement_from_metadata({
            "requiresPayment": True,
            "amount": "0.10",
            "currency": "USDC",
            "recipient": server_account.address,
            "network": "Base Sepolia",
        })
        assert requirement.raw_amount == 100000

    def test_missing_recipient(self):
        with pytest.raises(AutoPayError):
            requirement_from_metadata({"requiresPayment": True, "amount": "0.10"})


class TestAutoPayAgent:
    """Test the pay-and-retry loop against the real app"""

    @pytest.mark.asyncio
    async def test_free_tool_needs_no_payment(self, mcp_client):
        wallet = StubWallet()
        agent = AutoPayAgent(mcp_client, wallet)
        context_id = (await mcp_client.create_context())["contextId"]

        result = await agent.send(context_id, "/capitalize hello")

        assert result.paid is False
        assert result.response == "Tool capitalize result: HELLO"
        assert wallet.requirements == []
        await mcp_client.aclose()

    @pytest.mark.asyncio
    async def test_paid_tool(self, mcp_client, fake_verifier):
        wallet = StubWallet()
        agent = AutoPayAgent(mcp_client, wallet)
        context_id = (await mcp_client.create_context())["contextId"]

        result = await agent.send(context_id, "/hash hello")

        assert result.paid is True
        assert result.initial["metadata"]["requiresPayment"] is True
        assert result.metadata["paymentVerified"] is True
        assert HELLO_SHA1 in result.response
        assert wallet.requirements[0].recipient == fake_verifier.address
        assert fake_verifier.calls == [GOOD_TX]

        context = (await mcp_client.get_context(context_id))["context"]
        assert context["messages"][2]["content"] == f"/hash hello --tx={GOOD_TX}"
        await mcp_client.aclose()

    @pytest.mark.asyncio
    async def test_retry_keeps_original_text(self, mcp_client):
        agent = AutoPayAgent(mcp_client, StubWallet())
        context_id = (await mcp_client.create_context())["contextId"]

        result = await agent.send(context_id, "/HASH  hello")

        assert result.paid is True
        context = (await mcp_client.get_context(context_id))["context"]
        assert context["messages"][2]["content"] == f"/HASH  hello --tx={GOOD_TX}"
        await mcp_client.aclose()

    @pytest.mark.asyncio
    async def test_payment_over_limit(self, mcp_client):
        wallet = StubWallet()
        agent = AutoPayAgent(mcp_client, wallet, max_payment="0.05")
        context_id = (await mcp_client.create_context())["contextId"]

        with pytest.raises(PaymentRefusedError):
            await agent.send(context_id, "/hash hello")

        assert wallet.requirements == []
        await mcp_client.aclose()

    @pytest.mark.asyncio
    async def test_wallet_failure_propagates(self, mcp_client):
        wallet = StubWallet(error=InsufficientBalanceError("0", "0.10"))
        agent = AutoPayAgent(mcp_client, wallet)
        context_id = (await mcp_client.create_context())["contextId"]

        with pytest.raises(InsufficientBalanceError):
            await agent.send(context_id, "/hash hello")

        context = (await mcp_client.get_context(context_id))["context"]
        assert len(context["messages"]) == 2
        await mcp_client.aclose()

    @pytest.mark.asyncio
    async def test_unknown_context(self, mcp_client):
        with pytest.raises(ServerRequestError) as exc_info:
            await mcp_client.get_context("missing")

        assert exc_info.value.status_code == 404
        assert "Context not found" in str(exc_info.value)
        await mcp_client.aclose()


class TestAgentCLI:
    """Test the CLI against the real app"""

    @pytest.mark.asyncio
    async def test_send_and_show(self, monkeypatch, mcp_client, capsys):
        monkeypatch.setattr(config_module, "_agent_config", AgentConfig(_env_file=None))
        cli = AgentCLI()
        await cli.client.aclose()
        cli.client = mcp_client
        cli._agent = AutoPayAgent(mcp_client, StubWallet())

        await cli.show_tools()
        context_id = await cli.new_context()
        await cli.send(context_id, "/hash hello")
        await cli.show_context(context_id)
        await cli.close()

        output = capsys.readouterr().out
        assert "Available Tools" in output
        assert HELLO_SHA1 in output
