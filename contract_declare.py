"""
Contract class declaration on Starknet.

``declare_contract`` runs three steps in order, each finishing before the
next starts:

1. file validation: both compiled class files exist and look like Sierra
   and CASM output
2. contract declaration: the signing account sends a declare transaction
   and waits for it
3. class verification: the node returns the declared class

A failure in any step is reported with the step name appended.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Callable, TypeVar

from starknet_config import OnchainWrite
from starknet_errors import ConfigError, ContractDeclareError
from tool_registry import tool_action
from tool_schemas import DeclareContractParams

logger = logging.getLogger(__name__)

T = TypeVar("T")

SIERRA_KEY = "sierra_program"
CASM_KEY = "bytecode"


def _step(name: str, fn: Callable[..., T], *args: Any) -> T:
    try:
        return fn(*args)
    except Exception as exc:  # noqa: BLE001
        raise ContractDeclareError(f"{exc} (step: {name})") from exc


def load_class_file(path: str, kind: str, required_key: str) -> str:
    """Read a compiled class file and return its text after a shape check."""
    file = Path(path).expanduser()
    if not file.is_file():
        raise ContractDeclareError(f"{kind} file not found: {path}")
    text = file.read_text(encoding="utf-8")
    try:
        document = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ContractDeclareError(f"{kind} file is not valid JSON: {path}") from exc
    if not isinstance(document, dict) or required_key not in document:
        raise ContractDeclareError(f"{kind} file has no {required_key!r} field: {path}")
    return text


def _validate_files(params: DeclareContractParams) -> tuple[str, str]:
    sierra = load_class_file(params.sierra_file_path, "Sierra", SIERRA_KEY)
    casm = load_class_file(params.casm_file_path, "CASM", CASM_KEY)
    return sierra, casm


def _verify_class(env: OnchainWrite, class_hash: str) -> None:
    declared = env.provider.get_class(class_hash)
    if not isinstance(declared, dict) or SIERRA_KEY not in declared:
        raise ContractDeclareError(f"Class {class_hash} is not a Sierra class on this network")


@tool_action
def declare_contract(env: Any, params: DeclareContractParams) -> dict[str, Any]:
    if not isinstance(env, OnchainWrite):
        raise ConfigError("This action needs a signing account (read-write environment).")

    sierra, casm = _step("file validation", _validate_files, params)
    tx_hash, class_hash = _step("contract declaration", env.account.declare, sierra, casm)
    logger.info("Declared class %s in %s", class_hash, tx_hash)
    _step("class verification", _verify_class, env, class_hash)

    return {
        "transactionHash": tx_hash,
        "classHash": class_hash,
        "sierraFilePath": params.sierra_file_path,
        "casmFilePath": params.casm_file_path,
        "message": "Contract declared successfully",
    }
