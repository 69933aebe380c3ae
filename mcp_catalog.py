"""
Static catalog of the tool servers the routing agent can delegate to.

Categories group servers for the first routing step; each server entry
describes what it does (for the classifier prompts) and how to launch it
over stdio.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping

PROJECT_ROOT = Path(__file__).resolve().parent

RPC_ENV = ("STARKNET_RPC_URL", "STARKNET_RPC_TIMEOUT", "LOG_LEVEL")
SIGNER_ENV = ("STARKNET_PRIVATE_KEY", "STARKNET_ACCOUNT_ADDRESS")


class CatalogError(KeyError):
    """Unknown category or server name."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


@dataclass(frozen=True)
class Category:
    name: str
    description: str
    mcps: tuple[str, ...]


@dataclass(frozen=True)
class McpServerInfo:
    name: str
    description: str
    expertise: str
    module: str
    tools: tuple[str, ...]
    required_env: tuple[str, ...] = ()
    optional_env: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class McpClientConfig:
    """How to start a server as a stdio subprocess."""

    command: str
    args: list[str]
    env: dict[str, str]


CATEGORIES: dict[str, Category] = {
    "tokens": Category(
        name="tokens",
        description="ERC20 token operations: balances, allowances, supply, transfers and approvals.",
        mcps=("erc20",),
    ),
    "trading": Category(
        name="trading",
        description="Token swaps and price routes through DEX aggregators.",
        mcps=("avnu",),
    ),
    "blockchain": Category(
        name="blockchain",
        description=(
            "Raw chain data: blocks, transactions, receipts, classes, nonces and storage; "
            "declaring new contract classes."
        ),
        mcps=("starknet-rpc", "contract"),
    ),
}

MCP_SERVERS: dict[str, McpServerInfo] = {
    "erc20": McpServerInfo(
        name="erc20",
        description="Read and move ERC20 tokens on Starknet.",
        expertise="ERC20 balances, allowances, total supply, symbol and decimals; transfers and approvals",
        module="erc20_mcp_server",
        tools=(
            "erc20_get_total_supply",
            "erc20_get_balance",
            "erc20_get_own_balance",
            "erc20_get_allowance",
            "erc20_get_my_given_allowance",
            "erc20_get_allowance_given_to_me",
            "erc20_get_symbol",
            "erc20_get_decimals",
            "erc20_transfer",
            "erc20_approve",
            "erc20_transfer_from",
        ),
        optional_env=RPC_ENV + SIGNER_ENV,
    ),
    "avnu": McpServerInfo(
        name="avnu",
        description="Swap tokens on Starknet through the AVNU aggregator.",
        expertise="Token swaps, best routes and quotes, supported token lists",
        module="avnu_mcp_server",
        tools=("avnu_get_tokens", "avnu_get_route", "avnu_swap_tokens"),
        optional_env=RPC_ENV + SIGNER_ENV + ("AVNU_API_URL", "AVNU_SLIPPAGE"),
    ),
    "starknet-rpc": McpServerInfo(
        name="starknet-rpc",
        description="Query a Starknet node for blocks, transactions and contract state.",
        expertise="Block data, transaction lookups and receipts, class definitions, nonces, storage slots",
        module="starknet_rpc_mcp_server",
        tools=(
            "starknet_get_block_number",
            "starknet_get_chain_id",
            "starknet_get_spec_version",
            "starknet_get_syncing_status",
            "starknet_get_block_with_tx_hashes",
            "starknet_get_block_with_txs",
            "starknet_get_block_with_receipts",
            "starknet_get_block_transaction_count",
            "starknet_get_block_state_update",
            "starknet_get_latest_accepted_block",
            "starknet_get_transaction_by_hash",
            "starknet_get_transaction_by_block_id_and_index",
            "starknet_get_transaction_receipt",
            "starknet_get_transaction_status",
            "starknet_get_class_hash_at",
            "starknet_get_class_at",
            "starknet_get_class",
            "starknet_get_nonce_for_address",
            "starknet_get_storage_at",
        ),
        optional_env=RPC_ENV,
    ),
    "contract": McpServerInfo(
        name="contract",
        description="Declare compiled Cairo contract classes on Starknet.",
        expertise="Contract class declaration from Sierra and CASM files, class hash lookup",
        module="contract_mcp_server",
        tools=("declare_contract",),
        optional_env=RPC_ENV + SIGNER_ENV,
    ),
}


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------


def get_categories() -> list[str]:
    return list(CATEGORIES)


def _category(name: str) -> Category:
    category = CATEGORIES.get(name)
    if category is None:
        raise CatalogError(f'Category "{name}" not found')
    return category


def get_category_description(name: str) -> str:
    return _category(name).description


def get_mcps_by_category(name: str) -> list[str]:
    return list(_category(name).mcps)


def get_category_for_mcp(mcp_name: str) -> str | None:
    for category in CATEGORIES.values():
        if mcp_name in category.mcps:
            return category.name
    return None


# ---------------------------------------------------------------------------
# Servers
# ---------------------------------------------------------------------------


def get_mcp_names() -> list[str]:
    return list(MCP_SERVERS)


def get_mcp_info(name: str) -> McpServerInfo | None:
    return MCP_SERVERS.get(name)


def get_mcp_description(name: str) -> str:
    info = MCP_SERVERS.get(name)
    return info.description if info else ""


def get_mcp_client_config(
    name: str, environment: Mapping[str, str] | None = None
) -> McpClientConfig:
    """
    Launch configuration for server ``name``.

    Variables the server needs are copied from ``environment``; a required
    variable that is missing or empty raises ``CatalogError``.
    """
    info = MCP_SERVERS.get(name)
    if info is None:
        raise CatalogError(f"MCP configuration not found for {name}")

    environment = environment or {}
    missing = [var for var in info.required_env if not environment.get(var)]
    if missing:
        raise CatalogError(
            f"Missing environment variables for MCP '{name}': {', '.join(missing)}"
        )

    env = {
        var: environment[var]
        for var in info.required_env + info.optional_env
        if environment.get(var)
    }
    return McpClientConfig(
        command=sys.executable,
        args=[str(PROJECT_ROOT / f"{info.module}.py")],
        env=env,
    )
