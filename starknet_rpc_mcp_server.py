#!/usr/bin/env python3
"""
MCP server for read-only Starknet node queries.

Wraps rpc_explorer.py as MCP tools. Only STARKNET_RPC_URL is used; no
signing credentials are read.
"""

from __future__ import annotations

from typing import Any, Callable

import rpc_explorer
import tool_schemas as schemas
from mcp_host import run_server
from starknet_config import get_onchain_read
from tool_registry import ToolDescriptor, ToolRegistry, bind_action, build_registry

SERVER_NAME = "starknet-rpc"

# (tool name, description, params schema, action)
_TOOLS: list[tuple[str, str, Any, Callable[..., Any]]] = [
    (
        "starknet_get_block_number",
        "Get the number of the most recent accepted block.",
        None,
        rpc_explorer.get_block_number,
    ),
    (
        "starknet_get_chain_id",
        "Get the chain id of the connected network.",
        None,
        rpc_explorer.get_chain_id,
    ),
    (
        "starknet_get_spec_version",
        "Get the JSON-RPC spec version implemented by the node.",
        None,
        rpc_explorer.get_spec_version,
    ),
    (
        "starknet_get_syncing_status",
        "Get the synchronisation status of the node.",
        None,
        rpc_explorer.get_syncing_status,
    ),
    (
        "starknet_get_block_with_tx_hashes",
        "Get a block with the hashes of its transactions.",
        schemas.BlockIdParams,
        rpc_explorer.get_block_with_tx_hashes,
    ),
    (
        "starknet_get_block_with_txs",
        "Get a block with its full transactions.",
        schemas.BlockIdParams,
        rpc_explorer.get_block_with_txs,
    ),
    (
        "starknet_get_block_with_receipts",
        "Get a block with its transactions and their receipts.",
        schemas.BlockIdParams,
        rpc_explorer.get_block_with_receipts,
    ),
    (
        "starknet_get_block_transaction_count",
        "Get the number of transactions in a block.",
        schemas.BlockIdParams,
        rpc_explorer.get_block_transaction_count,
    ),
    (
        "starknet_get_block_state_update",
        "Get the state changes made by a block.",
        schemas.BlockIdParams,
        rpc_explorer.get_block_state_update,
    ),
    (
        "starknet_get_latest_accepted_block",
        "Get the hash and number of the most recent accepted block.",
        None,
        rpc_explorer.get_latest_accepted_block,
    ),
    (
        "starknet_get_transaction_by_hash",
        "Get a transaction by its hash.",
        schemas.TransactionHashParams,
        rpc_explorer.get_transaction_by_hash,
    ),
    (
        "starknet_get_transaction_by_block_id_and_index",
        "Get a transaction by block id and its index within the block.",
        schemas.TransactionByIndexParams,
        rpc_explorer.get_transaction_by_block_id_and_index,
    ),
    (
        "starknet_get_transaction_receipt",
        "Get the receipt of a transaction.",
        schemas.TransactionHashParams,
        rpc_explorer.get_transaction_receipt,
    ),
    (
        "starknet_get_transaction_status",
        "Get the finality and execution status of a transaction.",
        schemas.TransactionHashParams,
        rpc_explorer.get_transaction_status,
    ),
    (
        "starknet_get_class_hash_at",
        "Get the class hash of the contract deployed at an address.",
        schemas.ContractAddressParams,
        rpc_explorer.get_class_hash_at,
    ),
    (
        "starknet_get_class_at",
        "Get the class definition of the contract deployed at an address.",
        schemas.ContractAddressParams,
        rpc_explorer.get_class_at,
    ),
    (
        "starknet_get_class",
        "Get a class definition by its class hash.",
        schemas.ClassHashParams,
        rpc_explorer.get_class,
    ),
    (
        "starknet_get_nonce_for_address",
        "Get the nonce of a contract or account.",
        schemas.ContractAddressParams,
        rpc_explorer.get_nonce_for_address,
    ),
    (
        "starknet_get_storage_at",
        "Read a storage slot of a contract.",
        schemas.StorageAtParams,
        rpc_explorer.get_storage_at,
    ),
]


def build_tools(read_env: Callable[[], Any] = get_onchain_read) -> ToolRegistry:
    return build_registry(
        ToolDescriptor(
            name=name,
            description=description,
            schema=schema,
            execute=bind_action(action, read_env),
        )
        for name, description, schema, action in _TOOLS
    )


def main() -> None:
    run_server(SERVER_NAME, build_tools)


if __name__ == "__main__":
    main()
