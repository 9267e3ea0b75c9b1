"""
MCP Paywall Agent CLI
Command-line client that pays for tools automatically
"""

import asyncio
import sys
from typing import Any, Dict, Optional

import structlog
from rich.console import Console
from rich.table import Table

from mcp_paywall.agent.client import AutoPayAgent, AutoPayResult, McpClient
from mcp_paywall.agent.wallet import PaymentWallet
from mcp_paywall.config import get_agent_config
from mcp_paywall.errors import AutoPayError
from mcp_paywall.log import configure_logging

logger = structlog.get_logger()
console = Console()


class AgentCLI:
    """
    Agent CLI for:
    1. Discovering the server's tools
    2. Creating conversation contexts
    3. Sending commands, paying for paid tools on the fly
    """

    def __init__(self):
        self.config = get_agent_config()
        self.client = McpClient(self.config.server_url, timeout=self.config.http_timeout)
        self._agent: Optional[AutoPayAgent] = None

    @property
    def agent(self) -> AutoPayAgent:
        # The wallet is only needed once something has to be paid
        if self._agent is None:
            self._agent = AutoPayAgent(
                self.client,
                PaymentWallet.from_config(self.config),
                max_payment=self.config.max_auto_payment
            )
        return self._agent

    async def show_tools(self):
        """Display available tools in a formatted table"""
        data = await self.client.list_tools()

        table = Table(title="Available Tools", show_header=True, header_style="bold magenta")
        table.add_column("Tool", style="cyan", no_wrap=True)
        table.add_column("Description", style="white")
        table.add_column("Price", justify="right", style="yellow")

        for name, tool in data["tools"].items():
            price = (
                f"{tool['paymentAmount']} {tool['paymentCurrency']}"
                if tool.get("paymentRequired")
                else "free"
            )
            table.add_row(name, tool["description"], price)

        console.print(table)
        console.print(f"\n{data['usage']}")

    async def new_context(self) -> str:
        data = await self.client.create_context({"client": "mcp-paywall-agent"})
        console.print(f"[green]Context created: {data['contextId']}[/green]")
        return data["contextId"]

    async def send(self, context_id: str, content: str):
        """Send a message, paying automatically when the tool asks for it"""
        try:
            result = await self.agent.send(context_id, content)
        except AutoPayError as e:
            logger.error("auto_payment_failed", error=str(e), error_type=type(e).__name__)
            console.print(f"[red]Payment failed ({type(e).__name__}): {e}[/red]")
            return
        self.display_result(result)

    def display_result(self, result: AutoPayResult):
        if result.paid:
            receipt = result.payment
            console.print("\n[bold]Payment[/bold]")
            console.print(f"Transaction: {receipt.tx_hash}")
            console.print(f"Block: {receipt.block_number}")
            console.print(f"Gas Used: {receipt.gas_used}")
            if receipt.explorer_url:
                console.print(f"Explorer: {receipt.explorer_url}")

        metadata = result.metadata
        style = "red" if metadata.get("error") else "green"
        console.print(f"\n[bold {style}]Response[/bold {style}]\n{result.response}")

    async def show_context(self, context_id: str):
        data = await self.client.get_context(context_id)
        self.display_context(data["context"])

    def display_context(self, context: Dict[str, Any]):
        console.print(f"\n[bold]Context {context['id']}[/bold] (created {context['created']})")
        for message in context["messages"]:
            color = "cyan" if message["role"] == "user" else "white"
            console.print(f"[{color}]{message['role']}[/{color}] {message['timestamp']}: {message['content']}")

    async def interactive_mode(self):
        """Run interactive CLI mode"""
        console.print("[bold cyan]MCP Paywall Agent[/bold cyan]")
        console.print("Type a message or /command, or one of: :tools, :new, :show, :quit\n")

        context_id = await self.new_context()

        while True:
            try:
                line = console.input("[bold green]>[/bold green] ").strip()

                if not line:
                    continue
                elif line in (":quit", ":exit"):
                    break
                elif line == ":tools":
                    await self.show_tools()
                elif line == ":new":
                    context_id = await self.new_context()
                elif line == ":show":
                    await self.show_context(context_id)
                else:
                    await self.send(context_id, line)

            except KeyboardInterrupt:
                console.print("\n[yellow]Use ':quit' to exit[/yellow]")
            except Exception as e:
                console.print(f"[red]Error: {e}[/red]")

    async def close(self):
        """Close the HTTP client"""
        await self.client.aclose()


USAGE = "Usage: mcp-paywall-agent [tools | new | send <context_id> <message> | show <context_id>]"


async def main():
    """Main entry point for the agent CLI"""
    configure_logging("INFO", "text")

    cli = AgentCLI()

    try:
        if len(sys.argv) > 1:
            # Command-line mode
            command = sys.argv[1]

            if command == "tools":
                await cli.show_tools()

            elif command == "new":
                await cli.new_context()

            elif command == "send" and len(sys.argv) > 3:
                await cli.send(sys.argv[2], " ".join(sys.argv[3:]))

            elif command == "show" and len(sys.argv) > 2:
                await cli.show_context(sys.argv[2])

            else:
                console.print("[red]Invalid command[/red]")
                console.print(USAGE)

        else:
            # Interactive mode
            await cli.interactive_mode()
    finally:
        await cli.close()


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
