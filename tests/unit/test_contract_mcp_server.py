import asyncio
import json
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(REPO_ROOT))

import contract_mcp_server as server  # noqa: E402
from starknet_config import OnchainRead, OnchainWrite  # noqa: E402
from starknet_errors import StarknetRpcError, TransactionFailedError  # noqa: E402
from tool_registry import dispatch  # noqa: E402

CLASS_HASH = "0x5ffbcfeb50d200a0677c48a129a11245a3fc519d1d98d76882d1c9a1b19c6ed"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class StubProvider:
    def __init__(self, declared=None, error=None):
        self.declared = {"sierra_program": ["0x1"], "abi": "[]"} if declared is None else declared
        self.error = error
        self.requested = []

    def get_class(self, class_hash):
        self.requested.append(class_hash)
        if self.error:
            raise self.error
        return self.declared


class StubAccount:
    address = "0xa11ce"

    def __init__(self, error=None):
        self.error = error
        self.declared = []

    def declare(self, sierra, casm):
        self.declared.append((json.loads(sierra), json.loads(casm)))
        if self.error:
            raise self.error
        return "0xdec1a4e", CLASS_HASH


def _class_files(tmp_path):
    sierra = tmp_path / "token.contract_class.json"
    casm = tmp_path / "token.compiled_contract_class.json"
    sierra.write_text(json.dumps({"sierra_program": ["0x1"], "abi": []}))
    casm.write_text(json.dumps({"bytecode": ["0x2"], "prime": "0x800"}))
    return str(sierra), str(casm)


def _call(env, arguments):
    registry = server.build_tools(write_env=lambda: env)
    return asyncio.run(dispatch(registry, "declare_contract", arguments))


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


def test_declare_contract(tmp_path):
    sierra, casm = _class_files(tmp_path)
    provider, account = StubProvider(), StubAccount()

    result = _call(
        OnchainWrite(provider=provider, account=account),
        {"sierraFilePath": sierra, "casmFilePath": casm},
    )

    assert result.to_dict() == {
        "status": "success",
        "data": {
            "transactionHash": "0xdec1a4e",
            "classHash": CLASS_HASH,
            "sierraFilePath": sierra,
            "casmFilePath": casm,
            "message": "Contract declared successfully",
        },
    }
    assert account.declared == [
        ({"sierra_program": ["0x1"], "abi": []}, {"bytecode": ["0x2"], "prime": "0x800"})
    ]
    assert provider.requested == [CLASS_HASH]


def test_missing_file_stops_before_declaring(tmp_path):
    sierra, _ = _class_files(tmp_path)
    account = StubAccount()

    result = _call(
        OnchainWrite(provider=StubProvider(), account=account),
        {"sierraFilePath": sierra, "casmFilePath": str(tmp_path / "missing.json")},
    )

    assert result.status == "failure"
    assert result.error.startswith("CASM file not found")
    assert result.error.endswith("(step: file validation)")
    assert account.declared == []


def test_wrong_file_kind_is_rejected(tmp_path):
    sierra, casm = _class_files(tmp_path)
    account = StubAccount()

    # Sierra and CASM swapped
    result = _call(
        OnchainWrite(provider=StubProvider(), account=account),
        {"sierraFilePath": casm, "casmFilePath": sierra},
    )

    assert "has no 'sierra_program' field" in result.error
    assert account.declared == []


def test_invalid_json_is_rejected(tmp_path):
    sierra, casm = _class_files(tmp_path)
    Path(casm).write_text("{not json")

    result = _call(
        OnchainWrite(provider=StubProvider(), account=StubAccount()),
        {"sierraFilePath": sierra, "casmFilePath": casm},
    )

    assert "CASM file is not valid JSON" in result.error


def test_declare_failure_skips_verification(tmp_path):
    sierra, casm = _class_files(tmp_path)
    provider = StubProvider()
    account = StubAccount(error=TransactionFailedError("Transaction 0x1 confirmed but failed: reverted"))

    result = _call(
        OnchainWrite(provider=provider, account=account),
        {"sierraFilePath": sierra, "casmFilePath": casm},
    )

    assert result.to_dict() == {
        "status": "failure",
        "error": "Transaction 0x1 confirmed but failed: reverted (step: contract declaration)",
    }
    assert provider.requested == []


def test_verification_failure(tmp_path):
    sierra, casm = _class_files(tmp_path)
    provider = StubProvider(error=StarknetRpcError("starknet_getClass failed: Class hash not found", code=28))

    result = _call(
        OnchainWrite(provider=provider, account=StubAccount()),
        {"sierraFilePath": sierra, "casmFilePath": casm},
    )

    assert result.status == "failure"
    assert result.error.endswith("Class hash not found (step: class verification)")


def test_read_only_environment_is_refused(tmp_path):
    sierra, casm = _class_files(tmp_path)
    result = _call(OnchainRead(provider=StubProvider()), {"sierraFilePath": sierra, "casmFilePath": casm})
    assert result.status == "failure"
    assert "signing account" in result.error


def test_empty_path_fails_validation():
    result = _call(
        OnchainWrite(provider=StubProvider(), account=StubAccount()),
        {"sierraFilePath": "", "casmFilePath": "x.json"},
    )
    assert result.status == "failure"
    assert "sierraFilePath" in result.error
