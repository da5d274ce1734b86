"""Shared test fixtures for pocket."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest

from pocket.config.schema import ToolsConfig
from pocket.session.context import ContextStore
from pocket.session.manager import SessionState
from pocket.tools.invoker import ToolInvoker
from pocket.tools.registry import ProviderRegistry

if TYPE_CHECKING:
    from pocket.tools.connection import ProviderConnection

WALLET = "Bo4oqCAaB7SGjrEg8EjFBAWrNmiAuUJ3MFmkcKrC4hSC"


@pytest.fixture
def wallet() -> str:
    """A valid 44-character Solana address."""
    return WALLET


@pytest.fixture
def enrichment() -> dict[str, str]:
    """The default tool -> argument enrichment table."""
    return dict(ToolsConfig().enrichment)


@pytest.fixture
def context(enrichment: dict[str, str]) -> ContextStore:
    return ContextStore(enrichment=enrichment)


@pytest.fixture
def session(context: ContextStore) -> SessionState:
    return SessionState(session_id="test", context=context)


@pytest.fixture
def wallet_connections() -> list[ProviderConnection]:
    """Two servers: balances on the first, swaps on the second."""
    from tests.fixtures.servers import descriptor, fake_connection

    balance = descriptor(
        "check-balance",
        properties={"owner": {"type": "string"}},
        required=["owner"],
    )
    token_balance = descriptor(
        "check-token-balance",
        properties={"publicKey": {"type": "string"}, "mint": {"type": "string"}},
        required=["publicKey"],
    )
    swap = descriptor(
        "prepare-swap",
        properties={
            "source": {"type": "string"},
            "inputMint": {"type": "string"},
            "outputMint": {"type": "string"},
            "amount": {"type": "number"},
        },
        required=["source", "inputMint", "outputMint", "amount"],
    )

    def check_balance(args: dict[str, Any]) -> str:
        return f"{args['owner']} holds 2.5 SOL"

    def check_token_balance(args: dict[str, Any]) -> str:
        return f"{args['publicKey']} holds 100 USDC"

    def prepare_swap(args: dict[str, Any]) -> str:
        return f"unsigned swap of {args['amount']} for {args['source']}"

    return [
        fake_connection(
            "wallet-server",
            [balance, token_balance],
            {
                "check-balance": check_balance,
                "check-token-balance": check_token_balance,
            },
        ),
        fake_connection("swap-server", [swap], {"prepare-swap": prepare_swap}),
    ]


@pytest.fixture
def registry(wallet_connections: list[ProviderConnection]) -> ProviderRegistry:
    reg = ProviderRegistry()
    for conn in wallet_connections:
        reg.add(conn)
    return reg


@pytest.fixture
def invoker(registry: ProviderRegistry) -> ToolInvoker:
    return ToolInvoker(registry, timeout=1.0)
