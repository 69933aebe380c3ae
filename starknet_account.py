"""
Signing account for Starknet write actions.

Invoke transactions are signed and sent with starknet-py (the ``signer``
extra). Reads the account needs (nonce, chain id) go through the plain
JSON-RPC client so read-only servers never import the signing stack.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Sequence

from starknet_errors import ConfigError, TransactionFailedError
from starknet_rpc import ContractCall, StarknetRpc, get_selector_from_name, to_felt

# starknet-py is only needed for signing -- guard the import
try:
    from starknet_py.common import create_casm_class
    from starknet_py.hash.casm_class_hash import compute_casm_class_hash
    from starknet_py.net.account.account import Account
    from starknet_py.net.client_models import Call
    from starknet_py.net.full_node_client import FullNodeClient
    from starknet_py.net.models import StarknetChainId
    from starknet_py.net.signer.stark_curve_signer import KeyPair
    from starknet_py.transaction_errors import (
        TransactionRejectedError,
        TransactionRevertedError,
    )
except ImportError:  # pragma: no cover
    Account = None  # type: ignore[assignment,misc]

logger = logging.getLogger(__name__)


class StarknetAccount:
    """
    The signing half of a read-write environment handle.

    Concurrent ``execute`` calls from the same account are not serialised
    here; nonce ordering is left to the node and the caller.
    """

    def __init__(self, address: str, private_key: str, rpc: StarknetRpc) -> None:
        if Account is None:
            raise ConfigError(
                "starknet-py is not installed. Install the 'signer' extra to enable write actions."
            )
        self.address = hex(to_felt(address))
        self._private_key = to_felt(private_key)
        self._rpc = rpc

    def __repr__(self) -> str:
        return f"StarknetAccount(address={self.address!r})"

    def get_nonce(self) -> int:
        return self._rpc.get_nonce(self.address)

    def execute(self, calls: Sequence[ContractCall]) -> str:
        """Sign, send, and wait for an invoke transaction. Returns its hash."""
        if not calls:
            raise ValueError("At least one call is required.")
        return asyncio.run(self._execute(list(calls)))

    def declare(self, sierra: str, casm: str) -> tuple[str, str]:
        """
        Sign, send, and wait for a declare transaction.

        ``sierra`` and ``casm`` are the compiled class JSON documents.
        Returns the transaction hash and the declared class hash.
        """
        return asyncio.run(self._declare(sierra, casm))

    async def _connect(self) -> tuple[Any, Any]:
        client = FullNodeClient(node_url=self._rpc.url)
        chain_id = int(await client.get_chain_id(), 16)
        account = Account(
            address=self.address,
            client=client,
            key_pair=KeyPair.from_private_key(self._private_key),
            chain=StarknetChainId(chain_id),
        )
        return client, account

    async def _wait(self, client: Any, tx_hash: int) -> None:
        try:
            await client.wait_for_tx(tx_hash)
        except (TransactionRevertedError, TransactionRejectedError) as exc:
            raise TransactionFailedError(
                f"Transaction {hex(tx_hash)} confirmed but failed: {exc}"
            ) from exc

    async def _execute(self, calls: list[ContractCall]) -> str:
        client, account = await self._connect()
        sn_calls: list[Any] = [
            Call(
                to_addr=to_felt(call.contract_address),
                selector=get_selector_from_name(call.entrypoint),
                calldata=[to_felt(item) for item in call.calldata],
            )
            for call in calls
        ]
        response = await account.execute_v3(calls=sn_calls, auto_estimate=True)
        tx_hash = hex(response.transaction_hash)
        logger.info("Sent invoke transaction %s from %s", tx_hash, self.address)
        await self._wait(client, response.transaction_hash)
        return tx_hash

    async def _declare(self, sierra: str, casm: str) -> tuple[str, str]:
        client, account = await self._connect()
        compiled_class_hash = compute_casm_class_hash(create_casm_class(casm))
        declare_tx = await account.sign_declare_v3(
            compiled_contract=sierra,
            compiled_class_hash=compiled_class_hash,
            auto_estimate=True,
        )
        response = await client.declare(transaction=declare_tx)
        tx_hash = hex(response.transaction_hash)
        logger.info("Sent declare transaction %s from %s", tx_hash, self.address)
        await self._wait(client, response.transaction_hash)
        return tx_hash, hex(response.class_hash)
