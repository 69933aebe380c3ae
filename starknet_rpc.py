"""
Starknet JSON-RPC client.

Implements:
- JSON-RPC 2.0 POST transport over requests
- Block id normalisation ('latest', 'pending', number, hash)
- Contract calls with Starknet-keccak entrypoint selectors
- Block, transaction, class, nonce, and storage queries
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from typing import Any, Sequence

import requests
from eth_utils import keccak

from starknet_errors import StarknetRpcError

# Public, rate-limited mainnet node used when STARKNET_RPC_URL is not set.
DEFAULT_RPC_URL = "https://starknet-mainnet.public.blastapi.io/rpc/v0_8"
DEFAULT_TIMEOUT = 15

BLOCK_TAGS = {"latest", "pending", "pre_confirmed", "l1_accepted"}

# Selectors are the Starknet keccak: keccak256 masked to 250 bits.
MASK_250 = 2**250 - 1

# Node error codes returned when a call reaches a contract but fails there.
ENTRYPOINT_NOT_FOUND = 21
CONTRACT_ERROR = 40

_request_ids = itertools.count(1)


# ---------------------------------------------------------------------------
# Felt and block-id helpers
# ---------------------------------------------------------------------------


def get_selector_from_name(name: str) -> int:
    """
    Entrypoint selector for a Cairo function name.

    Same result as starknet_py.hash.selector.get_selector_from_name, kept here
    so read-only servers do not need the signer extra.
    """
    return int.from_bytes(keccak(text=name), "big") & MASK_250


def to_felt(value: int | str) -> int:
    """Parse an int, decimal string, or 0x-hex string into a felt."""
    if isinstance(value, bool):
        raise ValueError(f"Invalid felt value: {value!r}")
    if isinstance(value, int):
        felt = value
    else:
        text = str(value).strip()
        if not text:
            raise ValueError("Empty felt value.")
        try:
            felt = int(text, 16) if text.lower().startswith("0x") else int(text)
        except ValueError as exc:
            raise ValueError(f"Invalid felt value: {value!r}") from exc
    if felt < 0:
        raise ValueError(f"Felt values must be non-negative: {value!r}")
    return felt


def to_hex(value: int | str) -> str:
    return hex(to_felt(value))


def format_block_id(block_id: int | str | None) -> str | dict[str, Any]:
    """
    Convert a user-facing block id into the JSON-RPC BLOCK_ID shape.

    Accepts a tag ('latest', 'pending', ...), a block number (int or decimal
    string), or a 0x-prefixed block hash.
    """
    if block_id is None:
        return "latest"
    if isinstance(block_id, int) and not isinstance(block_id, bool):
        if block_id < 0:
            raise ValueError(f"Invalid block number: {block_id}")
        return {"block_number": block_id}

    text = str(block_id).strip()
    lowered = text.lower()
    if lowered in BLOCK_TAGS:
        return lowered
    if lowered.startswith("0x"):
        return {"block_hash": to_hex(text)}
    if text.isdigit():
        return {"block_number": int(text)}
    raise ValueError(
        f"Invalid block id {block_id!r}. Use 'latest', 'pending', a block number, or a block hash."
    )


@dataclass(frozen=True)
class ContractCall:
    """A single contract invocation: target, entrypoint name, raw calldata."""

    contract_address: str
    entrypoint: str
    calldata: Sequence[int | str] = field(default_factory=tuple)

    def to_request(self) -> dict[str, Any]:
        return {
            "contract_address": to_hex(self.contract_address),
            "entry_point_selector": hex(get_selector_from_name(self.entrypoint)),
            "calldata": [to_hex(item) for item in self.calldata],
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "contractAddress": to_hex(self.contract_address),
            "entrypoint": self.entrypoint,
            "calldata": [to_hex(item) for item in self.calldata],
        }


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class StarknetRpc:
    """Thin synchronous JSON-RPC client for a Starknet full node."""

    def __init__(self, url: str = DEFAULT_RPC_URL, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.url = url
        self.timeout = timeout

    def __repr__(self) -> str:
        return f"StarknetRpc(url={self.url!r})"

    def request(self, method: str, params: dict[str, Any] | list | None = None) -> Any:
        """POST one JSON-RPC request and return its ``result``."""
        payload = {
            "jsonrpc": "2.0",
            "id": next(_request_ids),
            "method": method,
            "params": params if params is not None else [],
        }
        try:
            resp = requests.post(self.url, json=payload, timeout=self.timeout)
            resp.raise_for_status()
            body = resp.json()
        except requests.exceptions.RequestException as exc:
            raise StarknetRpcError(f"{method} request failed: {exc}") from exc
        except ValueError as exc:
            raise StarknetRpcError(f"{method} returned a non-JSON response") from exc

        if not isinstance(body, dict):
            raise StarknetRpcError(f"{method} returned an unexpected payload")
        error = body.get("error")
        if error:
            message = error.get("message", "RPC error") if isinstance(error, dict) else str(error)
            data = error.get("data") if isinstance(error, dict) else None
            if data:
                message = f"{message}: {data}"
            raise StarknetRpcError(
                f"{method} failed: {message}",
                code=error.get("code") if isinstance(error, dict) else None,
                data=data,
            )
        if "result" not in body:
            raise StarknetRpcError(f"{method} response has no result")
        return body["result"]

    # -- Contract calls --

    def call_contract(
        self,
        contract_address: str,
        entrypoint: str,
        calldata: Sequence[int | str] = (),
        block_id: int | str | None = "latest",
    ) -> list[int]:
        call = ContractCall(contract_address, entrypoint, tuple(calldata))
        result = self.request(
            "starknet_call",
            {"request": call.to_request(), "block_id": format_block_id(block_id)},
        )
        if not isinstance(result, list):
            raise StarknetRpcError(f"starknet_call on {entrypoint} returned {type(result).__name__}")
        return [to_felt(item) for item in result]

    # -- Chain info --

    def block_number(self) -> int:
        return int(self.request("starknet_blockNumber"))

    def block_hash_and_number(self) -> dict[str, Any]:
        return self.request("starknet_blockHashAndNumber")

    def chain_id(self) -> str:
        return self.request("starknet_chainId")

    def spec_version(self) -> str:
        return self.request("starknet_specVersion")

    def syncing(self) -> Any:
        return self.request("starknet_syncing")

    # -- Blocks --

    def get_block_with_tx_hashes(self, block_id: int | str | None = "latest") -> dict[str, Any]:
        return self.request("starknet_getBlockWithTxHashes", {"block_id": format_block_id(block_id)})

    def get_block_with_txs(self, block_id: int | str | None = "latest") -> dict[str, Any]:
        return self.request("starknet_getBlockWithTxs", {"block_id": format_block_id(block_id)})

    def get_block_with_receipts(self, block_id: int | str | None = "latest") -> dict[str, Any]:
        return self.request("starknet_getBlockWithReceipts", {"block_id": format_block_id(block_id)})

    def get_block_transaction_count(self, block_id: int | str | None = "latest") -> int:
        return int(
            self.request("starknet_getBlockTransactionCount", {"block_id": format_block_id(block_id)})
        )

    def get_state_update(self, block_id: int | str | None = "latest") -> dict[str, Any]:
        return self.request("starknet_getStateUpdate", {"block_id": format_block_id(block_id)})

    # -- Transactions --

    def get_transaction_by_hash(self, transaction_hash: str) -> dict[str, Any]:
        return self.request(
            "starknet_getTransactionByHash", {"transaction_hash": to_hex(transaction_hash)}
        )

    def get_transaction_by_block_id_and_index(
        self, block_id: int | str | None, index: int
    ) -> dict[str, Any]:
        return self.request(
            "starknet_getTransactionByBlockIdAndIndex",
            {"block_id": format_block_id(block_id), "index": int(index)},
        )

    def get_transaction_receipt(self, transaction_hash: str) -> dict[str, Any]:
        return self.request(
            "starknet_getTransactionReceipt", {"transaction_hash": to_hex(transaction_hash)}
        )

    def get_transaction_status(self, transaction_hash: str) -> dict[str, Any]:
        return self.request(
            "starknet_getTransactionStatus", {"transaction_hash": to_hex(transaction_hash)}
        )

    # -- Classes, nonces, storage --

    def get_class_hash_at(self, contract_address: str, block_id: int | str | None = "latest") -> str:
        return self.request(
            "starknet_getClassHashAt",
            {"block_id": format_block_id(block_id), "contract_address": to_hex(contract_address)},
        )

    def get_class_at(self, contract_address: str, block_id: int | str | None = "latest") -> dict[str, Any]:
        return self.request(
            "starknet_getClassAt",
            {"block_id": format_block_id(block_id), "contract_address": to_hex(contract_address)},
        )

    def get_class(self, class_hash: str, block_id: int | str | None = "latest") -> dict[str, Any]:
        return self.request(
            "starknet_getClass",
            {"block_id": format_block_id(block_id), "class_hash": to_hex(class_hash)},
        )

    def get_nonce(self, contract_address: str, block_id: int | str | None = "latest") -> int:
        return to_felt(
            self.request(
                "starknet_getNonce",
                {"block_id": format_block_id(block_id), "contract_address": to_hex(contract_address)},
            )
        )

    def get_storage_at(
        self, contract_address: str, key: str, block_id: int | str | None = "latest"
    ) -> str:
        return self.request(
            "starknet_getStorageAt",
            {
                "contract_address": to_hex(contract_address),
                "key": to_hex(key),
                "block_id": format_block_id(block_id),
            },
        )
