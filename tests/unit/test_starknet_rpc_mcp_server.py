import asyncio
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(REPO_ROOT))

import starknet_rpc_mcp_server as server  # noqa: E402
from starknet_config import OnchainRead  # noqa: E402
from starknet_errors import StarknetRpcError  # noqa: E402
from tool_registry import dispatch  # noqa: E402


class StubRpc:
    """Records (method, args) and returns canned answers."""

    def __init__(self, **answers):
        self.answers = answers
        self.calls = []

    def __getattr__(self, name):
        if name not in self.answers:
            raise AttributeError(name)

        def method(*args):
            self.calls.append((name, args))
            answer = self.answers[name]
            if isinstance(answer, Exception):
                raise answer
            return answer

        return method


def _call(rpc, name, arguments=None):
    registry = server.build_tools(read_env=lambda: OnchainRead(provider=rpc))
    return asyncio.run(dispatch(registry, name, arguments or {}))


def test_registry_lists_every_rpc_tool():
    registry = server.build_tools(read_env=lambda: None)
    assert len(registry) == 19
    assert "starknet_get_storage_at" in registry
    assert "starknet_get_transaction_by_block_id_and_index" in registry


def test_block_number():
    rpc = StubRpc(block_number=812345)
    result = _call(rpc, "starknet_get_block_number")
    assert result.to_dict() == {"status": "success", "data": {"blockNumber": 812345}}


def test_syncing_status_not_syncing():
    result = _call(StubRpc(syncing=False), "starknet_get_syncing_status")
    assert result.data == {"syncing": False}


def test_syncing_status_in_progress():
    status = {"current_block_num": 10, "highest_block_num": 20}
    result = _call(StubRpc(syncing=status), "starknet_get_syncing_status")
    assert result.data == {"syncing": True, "status": status}


def test_block_with_tx_hashes_defaults_to_latest():
    rpc = StubRpc(get_block_with_tx_hashes={"block_number": 1, "transactions": []})
    result = _call(rpc, "starknet_get_block_with_tx_hashes")
    assert result.data["block_number"] == 1
    assert rpc.calls == [("get_block_with_tx_hashes", ("latest",))]


def test_block_id_is_validated_before_rpc():
    rpc = StubRpc(get_block_with_txs={})
    result = _call(rpc, "starknet_get_block_with_txs", {"blockId": "tomorrow"})
    assert result.status == "failure"
    assert "Invalid block id" in result.error
    assert rpc.calls == []


def test_transaction_count():
    rpc = StubRpc(get_block_transaction_count=42)
    result = _call(rpc, "starknet_get_block_transaction_count", {"blockId": "100"})
    assert result.data == {"blockId": "100", "transactionCount": 42}


def test_transaction_by_block_and_index():
    rpc = StubRpc(get_transaction_by_block_id_and_index={"type": "INVOKE"})
    result = _call(
        rpc,
        "starknet_get_transaction_by_block_id_and_index",
        {"blockId": "pending", "transactionIndex": 2},
    )
    assert result.data == {"type": "INVOKE"}
    assert rpc.calls == [("get_transaction_by_block_id_and_index", ("pending", 2))]


def test_negative_transaction_index_rejected():
    rpc = StubRpc(get_transaction_by_block_id_and_index={})
    result = _call(
        rpc, "starknet_get_transaction_by_block_id_and_index", {"transactionIndex": -1}
    )
    assert result.status == "failure"
    assert rpc.calls == []


def test_transaction_status_includes_hash():
    rpc = StubRpc(get_transaction_status={"finality_status": "ACCEPTED_ON_L2"})
    result = _call(rpc, "starknet_get_transaction_status", {"transactionHash": "0x0abc"})
    assert result.data == {"transactionHash": "0xabc", "finality_status": "ACCEPTED_ON_L2"}


def test_nonce_for_address():
    rpc = StubRpc(get_nonce=7)
    result = _call(rpc, "starknet_get_nonce_for_address", {"contractAddress": "0x5"})
    assert result.data == {"contractAddress": "0x5", "nonce": 7}
    assert rpc.calls == [("get_nonce", ("0x5", "latest"))]


def test_storage_at():
    rpc = StubRpc(get_storage_at="0x0")
    result = _call(
        rpc, "starknet_get_storage_at", {"contractAddress": "0x5", "key": "0x10", "blockId": "7"}
    )
    assert result.data == {"contractAddress": "0x5", "key": "0x10", "value": "0x0"}


def test_rpc_error_becomes_failure():
    rpc = StubRpc(get_class_hash_at=StarknetRpcError("starknet_getClassHashAt failed: Contract not found"))
    result = _call(rpc, "starknet_get_class_hash_at", {"contractAddress": "0x5"})
    assert result.to_dict() == {
        "status": "failure",
        "error": "starknet_getClassHashAt failed: Contract not found",
    }
