import asyncio
import json
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(REPO_ROOT))

import erc20_mcp_server as server  # noqa: E402
import mcp_host  # noqa: E402
from starknet_config import OnchainRead, OnchainWrite  # noqa: E402
from starknet_errors import StarknetRpcError  # noqa: E402
from starknet_rpc import CONTRACT_ERROR  # noqa: E402
from starknet_tokens import KNOWN_TOKENS, encode_short_string  # noqa: E402
from tool_registry import dispatch  # noqa: E402

STRK = KNOWN_TOKENS["STRK"]
USDC = KNOWN_TOKENS["USDC"]
MY_ADDRESS = "0xa11ce"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class StubProvider:
    def __init__(self, answers=None):
        self.answers = answers or {}
        self.calls = []

    def call_contract(self, contract_address, entrypoint, calldata=()):
        self.calls.append((contract_address, entrypoint, list(calldata)))
        answer = self.answers.get(entrypoint)
        if answer is None:
            raise StarknetRpcError(f"Entry point {entrypoint} not found", code=CONTRACT_ERROR)
        if isinstance(answer, Exception):
            raise answer
        return answer


class StubAccount:
    def __init__(self, address=MY_ADDRESS, nonce_error=None):
        self.address = address
        self.nonce_error = nonce_error
        self.executed = []

    def get_nonce(self):
        if self.nonce_error:
            raise self.nonce_error
        return 3

    def execute(self, calls):
        self.executed.append(list(calls))
        return "0xbeef"


def _tools(provider, account=None):
    return server.build_tools(
        read_env=lambda: OnchainRead(provider=provider),
        write_env=lambda: OnchainWrite(provider=provider, account=account or StubAccount()),
    )


def _call(registry, name, arguments):
    return asyncio.run(dispatch(registry, name, arguments))


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


def test_registry_has_all_erc20_tools():
    names = set(_tools(StubProvider()))
    assert names == {
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
    }


def test_schemas_use_camel_case_names():
    schema = _tools(StubProvider())["erc20_transfer"].input_schema()
    assert {"recipientAddress", "amount", "asset"} <= set(schema["properties"])


def test_list_tools_through_mcp_server():
    app = mcp_host.create_server("erc20", _tools(StubProvider()))
    assert app.name == "erc20"


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


def test_total_supply_strk():
    provider = StubProvider({"totalSupply": [1000 * 10**18, 0]})
    result = _call(_tools(provider), "erc20_get_total_supply", {"asset": {"assetSymbol": "STRK"}})

    assert result.to_dict() == {
        "status": "success",
        "data": {"totalSupply": "1000", "symbol": "STRK"},
    }
    assert provider.calls == [(STRK.address, "totalSupply", [])]


def test_total_supply_falls_back_to_snake_case():
    provider = StubProvider({"total_supply": [5 * 10**17, 0]})
    result = _call(_tools(provider), "erc20_get_total_supply", {"asset": {"assetSymbol": "STRK"}})

    assert result.data == {"totalSupply": "0.5", "symbol": "STRK"}
    assert [call[1] for call in provider.calls] == ["totalSupply", "total_supply"]


def test_missing_asset_fails_validation_without_calls():
    provider = StubProvider({"totalSupply": [1, 0]})
    result = _call(_tools(provider), "erc20_get_total_supply", {"asset": {}})

    assert result.status == "failure"
    assert "Either assetAddress or assetSymbol must be provided" in result.error
    assert provider.calls == []


def test_invalid_address_fails_validation():
    provider = StubProvider()
    result = _call(
        _tools(provider),
        "erc20_get_balance",
        {"accountAddress": "not-an-address", "asset": {"assetSymbol": "ETH"}},
    )
    assert result.status == "failure"
    assert result.error.startswith("Invalid parameters:")
    assert provider.calls == []


def test_unknown_symbol_is_failure():
    result = _call(_tools(StubProvider()), "erc20_get_decimals", {"asset": {"assetSymbol": "NOPE"}})
    assert result.to_dict() == {"status": "failure", "error": "Token not found: NOPE"}


def test_provider_error_becomes_failure():
    provider = StubProvider({"balanceOf": StarknetRpcError("node unreachable")})
    result = _call(
        _tools(provider),
        "erc20_get_balance",
        {"accountAddress": "0x123", "asset": {"assetSymbol": "USDC"}},
    )
    assert result.status == "failure"
    assert "node unreachable" in result.error
    assert [call[1] for call in provider.calls] == ["balanceOf"]


def test_get_balance_formats_with_token_decimals():
    provider = StubProvider({"balanceOf": [2_500_000, 0]})
    result = _call(
        _tools(provider),
        "erc20_get_balance",
        {"accountAddress": "0x0123", "asset": {"assetSymbol": "USDC"}},
    )

    assert result.data == {"balance": "2.5", "symbol": "USDC", "accountAddress": "0x123"}
    assert provider.calls == [(USDC.address, "balanceOf", ["0x123"])]


def test_get_own_balance_uses_account_address():
    provider = StubProvider({"balanceOf": [10**18, 0]})
    result = _call(_tools(provider), "erc20_get_own_balance", {"asset": {"assetSymbol": "ETH"}})

    assert result.data["balance"] == "1"
    assert provider.calls[0][2] == [MY_ADDRESS]


def test_get_allowance():
    provider = StubProvider({"allowance": [7 * 10**17, 0]})
    result = _call(
        _tools(provider),
        "erc20_get_allowance",
        {"ownerAddress": "0x1", "spenderAddress": "0x2", "asset": {"assetSymbol": "STRK"}},
    )

    assert result.data == {
        "ownerAddress": "0x1",
        "spenderAddress": "0x2",
        "amount": "0.7",
        "symbol": "STRK",
    }


def test_get_my_given_allowance_orders_owner_first():
    provider = StubProvider({"allowance": [0, 0]})
    _call(
        _tools(provider),
        "erc20_get_my_given_allowance",
        {"spenderAddress": "0x2", "asset": {"assetSymbol": "STRK"}},
    )
    assert provider.calls[0][2] == [MY_ADDRESS, "0x2"]


def test_get_allowance_given_to_me_orders_owner_first():
    provider = StubProvider({"allowance": [0, 0]})
    _call(
        _tools(provider),
        "erc20_get_allowance_given_to_me",
        {"ownerAddress": "0x1", "asset": {"assetSymbol": "STRK"}},
    )
    assert provider.calls[0][2] == ["0x1", MY_ADDRESS]


def test_get_symbol_reads_short_string():
    provider = StubProvider({"symbol": [encode_short_string("LORDS")]})
    result = _call(_tools(provider), "erc20_get_symbol", {"assetAddress": "0x0abc"})
    assert result.data == {"symbol": "LORDS", "assetAddress": "0xabc"}


def test_get_decimals_for_unknown_address():
    provider = StubProvider({"decimals": [8], "symbol": [encode_short_string("XYZ")]})
    result = _call(_tools(provider), "erc20_get_decimals", {"asset": {"assetAddress": "0x999"}})
    assert result.data == {"decimals": 8, "symbol": "XYZ", "assetAddress": "0x999"}


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------


def test_transfer_sends_uint256_amount():
    account = StubAccount()
    result = _call(
        _tools(StubProvider(), account),
        "erc20_transfer",
        {"recipientAddress": "0x123", "amount": "1.5", "asset": {"assetSymbol": "USDC"}},
    )

    assert result.data == {
        "amount": "1.5",
        "symbol": "USDC",
        "recipientAddress": "0x123",
        "transactionHash": "0xbeef",
    }
    (call,) = account.executed[0]
    assert call.contract_address == USDC.address
    assert call.entrypoint == "transfer"
    assert list(call.calldata) == ["0x123", 1_500_000, 0]


def test_transfer_rejects_negative_amount():
    account = StubAccount()
    result = _call(
        _tools(StubProvider(), account),
        "erc20_transfer",
        {"recipientAddress": "0x123", "amount": "-1", "asset": {"assetSymbol": "USDC"}},
    )
    assert result.status == "failure"
    assert account.executed == []


def test_transfer_checks_account_first():
    account = StubAccount(nonce_error=StarknetRpcError("Contract not found"))
    result = _call(
        _tools(StubProvider(), account),
        "erc20_transfer",
        {"recipientAddress": "0x123", "amount": "1", "asset": {"assetSymbol": "ETH"}},
    )

    assert result.status == "failure"
    assert result.error.startswith("Account not found on this network")
    assert account.executed == []


def test_approve():
    account = StubAccount()
    result = _call(
        _tools(StubProvider(), account),
        "erc20_approve",
        {"spenderAddress": "0x77", "amount": "2", "asset": {"assetSymbol": "STRK"}},
    )

    assert result.data["spenderAddress"] == "0x77"
    (call,) = account.executed[0]
    assert call.entrypoint == "approve"
    assert list(call.calldata) == ["0x77", 2 * 10**18, 0]


def test_transfer_from_uses_detected_naming():
    account = StubAccount()
    provider = StubProvider({"total_supply": [1, 0]})
    result = _call(
        _tools(provider, account),
        "erc20_transfer_from",
        {
            "fromAddress": "0x1",
            "toAddress": "0x2",
            "amount": "0.25",
            "asset": {"assetSymbol": "WBTC"},
        },
    )

    assert result.data["transactionHash"] == "0xbeef"
    (call,) = account.executed[0]
    assert call.entrypoint == "transfer_from"
    assert list(call.calldata) == ["0x1", "0x2", 25_000_000, 0]


def test_write_tool_without_credentials(monkeypatch):
    monkeypatch.delenv("STARKNET_PRIVATE_KEY", raising=False)
    monkeypatch.delenv("STARKNET_ACCOUNT_ADDRESS", raising=False)
    registry = server.build_tools()

    result = asyncio.run(
        dispatch(
            registry,
            "erc20_transfer",
            {"recipientAddress": "0x123", "amount": "1", "asset": {"assetSymbol": "ETH"}},
        )
    )
    assert result.status == "failure"
    assert "STARKNET_PRIVATE_KEY" in result.error


def test_read_tool_with_read_env_only():
    # Reads never build the write handle
    def no_write():
        raise AssertionError("write env should not be built")

    provider = StubProvider({"totalSupply": [10**18, 0]})
    registry = server.build_tools(read_env=lambda: OnchainRead(provider=provider), write_env=no_write)
    result = _call(registry, "erc20_get_total_supply", {"asset": {"assetSymbol": "ETH"}})
    assert json.loads(result.to_json())["data"]["totalSupply"] == "1"
