"""
ERC20 token operations on Starknet.

Implements:
- Total supply, balances, allowances, symbol and decimals reads
- Transfers, approvals, and transfer-from through the signing account

Every action takes an environment handle plus validated parameters and
returns a ``ToolResult``. Reads accept any handle with a ``provider``;
writes require an ``OnchainWrite``.
"""

from __future__ import annotations

import logging
from typing import Any

from starknet_config import OnchainRead, OnchainWrite
from starknet_errors import ConfigError, StarknetToolError
from starknet_rpc import ContractCall
from starknet_tokens import (
    BALANCE_ENTRYPOINTS,
    TOTAL_SUPPLY_ENTRYPOINTS,
    TokenInfo,
    decode_amount,
    decode_felt,
    decode_symbol,
    decode_uint256,
    detect_erc20_interface,
    probe_entrypoints,
    resolve_token_onchain,
    split_uint256,
    to_base_units,
    to_human_units,
)
from tool_registry import tool_action
from tool_schemas import (
    AllowanceGivenToMeParams,
    AllowanceParams,
    ApproveParams,
    AssetParams,
    BalanceParams,
    DecimalsParams,
    MyGivenAllowanceParams,
    OwnBalanceParams,
    SymbolParams,
    TotalSupplyParams,
    TransferFromParams,
    TransferParams,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _resolve_asset(provider: Any, asset: AssetParams) -> TokenInfo:
    return resolve_token_onchain(provider, asset.asset_symbol, asset.asset_address)


def _require_write(env: Any) -> OnchainWrite:
    if not isinstance(env, OnchainWrite):
        raise ConfigError("This action needs a signing account (read-write environment).")
    return env


def _read_balance(provider: Any, token: TokenInfo, account_address: str) -> int:
    _, raw = probe_entrypoints(
        provider, token.address, BALANCE_ENTRYPOINTS, decode_amount, calldata=[account_address]
    )
    return raw


def _read_allowance(provider: Any, token: TokenInfo, owner: str, spender: str) -> int:
    result = provider.call_contract(token.address, "allowance", [owner, spender])
    return decode_uint256(result)


def _check_account_exists(env: OnchainWrite) -> None:
    try:
        nonce = env.account.get_nonce()
    except StarknetToolError as exc:
        raise ConfigError(
            "Account not found on this network. Please verify your account address "
            f"and network. Account: {env.account.address}. Error: {exc}"
        ) from exc
    logger.debug("Account %s nonce: %s", env.account.address, nonce)


def _amount_calldata(amount: str, token: TokenInfo) -> list[int]:
    low, high = split_uint256(to_base_units(amount, token.decimals))
    return [low, high]


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


@tool_action
def get_total_supply(env: OnchainRead, params: TotalSupplyParams) -> dict[str, Any]:
    provider = env.provider
    token = _resolve_asset(provider, params.asset)
    _, raw_supply = probe_entrypoints(
        provider, token.address, TOTAL_SUPPLY_ENTRYPOINTS, decode_uint256
    )
    return {
        "totalSupply": to_human_units(raw_supply, token.decimals),
        "symbol": token.symbol,
    }


@tool_action
def get_balance(env: OnchainRead, params: BalanceParams) -> dict[str, Any]:
    token = _resolve_asset(env.provider, params.asset)
    raw = _read_balance(env.provider, token, params.account_address)
    return {
        "balance": to_human_units(raw, token.decimals),
        "symbol": token.symbol,
        "accountAddress": params.account_address,
    }


@tool_action
def get_own_balance(env: OnchainWrite, params: OwnBalanceParams) -> dict[str, Any]:
    env = _require_write(env)
    token = _resolve_asset(env.provider, params.asset)
    raw = _read_balance(env.provider, token, env.account.address)
    return {
        "balance": to_human_units(raw, token.decimals),
        "symbol": token.symbol,
        "accountAddress": env.account.address,
    }


@tool_action
def get_allowance(env: OnchainRead, params: AllowanceParams) -> dict[str, Any]:
    token = _resolve_asset(env.provider, params.asset)
    raw = _read_allowance(env.provider, token, params.owner_address, params.spender_address)
    return {
        "ownerAddress": params.owner_address,
        "spenderAddress": params.spender_address,
        "amount": to_human_units(raw, token.decimals),
        "symbol": token.symbol,
    }


@tool_action
def get_my_given_allowance(env: OnchainWrite, params: MyGivenAllowanceParams) -> dict[str, Any]:
    env = _require_write(env)
    token = _resolve_asset(env.provider, params.asset)
    raw = _read_allowance(env.provider, token, env.account.address, params.spender_address)
    return {
        "ownerAddress": env.account.address,
        "spenderAddress": params.spender_address,
        "amount": to_human_units(raw, token.decimals),
        "symbol": token.symbol,
    }


@tool_action
def get_allowance_given_to_me(
    env: OnchainWrite, params: AllowanceGivenToMeParams
) -> dict[str, Any]:
    env = _require_write(env)
    token = _resolve_asset(env.provider, params.asset)
    raw = _read_allowance(env.provider, token, params.owner_address, env.account.address)
    return {
        "ownerAddress": params.owner_address,
        "spenderAddress": env.account.address,
        "amount": to_human_units(raw, token.decimals),
        "symbol": token.symbol,
    }


@tool_action
def get_symbol(env: OnchainRead, params: SymbolParams) -> dict[str, Any]:
    result = env.provider.call_contract(params.asset_address, "symbol", [])
    return {"symbol": decode_symbol(result), "assetAddress": params.asset_address}


@tool_action
def get_decimals(env: OnchainRead, params: DecimalsParams) -> dict[str, Any]:
    token = _resolve_asset(env.provider, params.asset)
    decimals = decode_felt(env.provider.call_contract(token.address, "decimals", []))
    return {"decimals": decimals, "symbol": token.symbol, "assetAddress": token.address}


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------


@tool_action
def transfer(env: OnchainWrite, params: TransferParams) -> dict[str, Any]:
    env = _require_write(env)
    token = _resolve_asset(env.provider, params.asset)
    calldata = [params.recipient_address, *_amount_calldata(params.amount, token)]
    _check_account_exists(env)

    tx_hash = env.account.execute([ContractCall(token.address, "transfer", calldata)])
    return {
        "amount": params.amount,
        "symbol": token.symbol,
        "recipientAddress": params.recipient_address,
        "transactionHash": tx_hash,
    }


@tool_action
def approve(env: OnchainWrite, params: ApproveParams) -> dict[str, Any]:
    env = _require_write(env)
    token = _resolve_asset(env.provider, params.asset)
    calldata = [params.spender_address, *_amount_calldata(params.amount, token)]
    _check_account_exists(env)

    tx_hash = env.account.execute([ContractCall(token.address, "approve", calldata)])
    return {
        "amount": params.amount,
        "symbol": token.symbol,
        "spenderAddress": params.spender_address,
        "transactionHash": tx_hash,
    }


@tool_action
def transfer_from(env: OnchainWrite, params: TransferFromParams) -> dict[str, Any]:
    env = _require_write(env)
    token = _resolve_asset(env.provider, params.asset)
    interface = detect_erc20_interface(env.provider, token.address)
    calldata = [
        params.from_address,
        params.to_address,
        *_amount_calldata(params.amount, token),
    ]
    _check_account_exists(env)

    tx_hash = env.account.execute(
        [ContractCall(token.address, interface.transfer_from, calldata)]
    )
    return {
        "amount": params.amount,
        "symbol": token.symbol,
        "fromAddress": params.from_address,
        "toAddress": params.to_address,
        "transactionHash": tx_hash,
    }
