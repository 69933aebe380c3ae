"""
Read-only Starknet node queries.

Each action takes an ``OnchainRead`` handle and a validated parameter object
and returns the node's answer wrapped in a ``ToolResult``. Node responses are
passed through as-is apart from the block number and counts, which are
returned as integers.
"""

from __future__ import annotations

from typing import Any

from starknet_config import OnchainRead
from tool_registry import tool_action
from tool_schemas import (
    BlockIdParams,
    ClassHashParams,
    ContractAddressParams,
    StorageAtParams,
    TransactionByIndexParams,
    TransactionHashParams,
)


# ---------------------------------------------------------------------------
# Chain info
# ---------------------------------------------------------------------------


@tool_action
def get_block_number(env: OnchainRead, params: Any = None) -> dict[str, Any]:
    return {"blockNumber": env.provider.block_number()}


@tool_action
def get_chain_id(env: OnchainRead, params: Any = None) -> dict[str, Any]:
    return {"chainId": env.provider.chain_id()}


@tool_action
def get_spec_version(env: OnchainRead, params: Any = None) -> dict[str, Any]:
    return {"specVersion": env.provider.spec_version()}


@tool_action
def get_syncing_status(env: OnchainRead, params: Any = None) -> dict[str, Any]:
    # The node answers ``false`` when it is not syncing
    status = env.provider.syncing()
    if status is False:
        return {"syncing": False}
    return {"syncing": True, "status": status}


@tool_action
def get_latest_accepted_block(env: OnchainRead, params: Any = None) -> dict[str, Any]:
    return env.provider.block_hash_and_number()


# ---------------------------------------------------------------------------
# Blocks
# ---------------------------------------------------------------------------


@tool_action
def get_block_with_tx_hashes(env: OnchainRead, params: BlockIdParams) -> dict[str, Any]:
    return env.provider.get_block_with_tx_hashes(params.block_id)


@tool_action
def get_block_with_txs(env: OnchainRead, params: BlockIdParams) -> dict[str, Any]:
    return env.provider.get_block_with_txs(params.block_id)


@tool_action
def get_block_with_receipts(env: OnchainRead, params: BlockIdParams) -> dict[str, Any]:
    return env.provider.get_block_with_receipts(params.block_id)


@tool_action
def get_block_transaction_count(env: OnchainRead, params: BlockIdParams) -> dict[str, Any]:
    count = env.provider.get_block_transaction_count(params.block_id)
    return {"blockId": params.block_id, "transactionCount": count}


@tool_action
def get_block_state_update(env: OnchainRead, params: BlockIdParams) -> dict[str, Any]:
    return env.provider.get_state_update(params.block_id)


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------


@tool_action
def get_transaction_by_hash(env: OnchainRead, params: TransactionHashParams) -> dict[str, Any]:
    return env.provider.get_transaction_by_hash(params.transaction_hash)


@tool_action
def get_transaction_by_block_id_and_index(
    env: OnchainRead, params: TransactionByIndexParams
) -> dict[str, Any]:
    return env.provider.get_transaction_by_block_id_and_index(
        params.block_id, params.transaction_index
    )


@tool_action
def get_transaction_receipt(env: OnchainRead, params: TransactionHashParams) -> dict[str, Any]:
    return env.provider.get_transaction_receipt(params.transaction_hash)


@tool_action
def get_transaction_status(env: OnchainRead, params: TransactionHashParams) -> dict[str, Any]:
    status = env.provider.get_transaction_status(params.transaction_hash)
    return {"transactionHash": params.transaction_hash, **status}


# ---------------------------------------------------------------------------
# Classes, nonces, storage
# ---------------------------------------------------------------------------


@tool_action
def get_class_hash_at(env: OnchainRead, params: ContractAddressParams) -> dict[str, Any]:
    class_hash = env.provider.get_class_hash_at(params.contract_address, params.block_id)
    return {"contractAddress": params.contract_address, "classHash": class_hash}


@tool_action
def get_class_at(env: OnchainRead, params: ContractAddressParams) -> dict[str, Any]:
    return env.provider.get_class_at(params.contract_address, params.block_id)


@tool_action
def get_class(env: OnchainRead, params: ClassHashParams) -> dict[str, Any]:
    return env.provider.get_class(params.class_hash, params.block_id)


@tool_action
def get_nonce_for_address(env: OnchainRead, params: ContractAddressParams) -> dict[str, Any]:
    nonce = env.provider.get_nonce(params.contract_address, params.block_id)
    return {"contractAddress": params.contract_address, "nonce": nonce}


@tool_action
def get_storage_at(env: OnchainRead, params: StorageAtParams) -> dict[str, Any]:
    value = env.provider.get_storage_at(params.contract_address, params.key, params.block_id)
    return {"contractAddress": params.contract_address, "key": params.key, "value": value}
