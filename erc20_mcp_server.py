#!/usr/bin/env python3
"""
MCP server for ERC20 token operations on Starknet.

Wraps erc20_wallet.py as MCP tools. Read tools only need a node endpoint;
tools that act as the configured account need STARKNET_PRIVATE_KEY and
STARKNET_ACCOUNT_ADDRESS.
"""

from __future__ import annotations

from typing import Any, Callable

import erc20_wallet
import tool_schemas as schemas
from mcp_host import run_server
from starknet_config import get_onchain_read, get_onchain_write
from tool_registry import ToolDescriptor, ToolRegistry, bind_action, build_registry

SERVER_NAME = "erc20"


def build_tools(
    read_env: Callable[[], Any] = get_onchain_read,
    write_env: Callable[[], Any] = get_onchain_write,
) -> ToolRegistry:
    return build_registry(
        [
            ToolDescriptor(
                name="erc20_get_total_supply",
                description="Get the total supply of an ERC20 token, by symbol or contract address.",
                schema=schemas.TotalSupplyParams,
                execute=bind_action(erc20_wallet.get_total_supply, read_env),
            ),
            ToolDescriptor(
                name="erc20_get_balance",
                description="Get the balance of an asset for a given wallet address.",
                schema=schemas.BalanceParams,
                execute=bind_action(erc20_wallet.get_balance, read_env),
            ),
            ToolDescriptor(
                name="erc20_get_own_balance",
                description="Get the balance of an asset in your wallet.",
                schema=schemas.OwnBalanceParams,
                execute=bind_action(erc20_wallet.get_own_balance, write_env),
            ),
            ToolDescriptor(
                name="erc20_get_allowance",
                description="Get the amount of tokens an owner has allowed a spender to use.",
                schema=schemas.AllowanceParams,
                execute=bind_action(erc20_wallet.get_allowance, read_env),
            ),
            ToolDescriptor(
                name="erc20_get_my_given_allowance",
                description="Get the amount of your tokens a spender is allowed to use.",
                schema=schemas.MyGivenAllowanceParams,
                execute=bind_action(erc20_wallet.get_my_given_allowance, write_env),
            ),
            ToolDescriptor(
                name="erc20_get_allowance_given_to_me",
                description="Get the amount of an owner's tokens you are allowed to use.",
                schema=schemas.AllowanceGivenToMeParams,
                execute=bind_action(erc20_wallet.get_allowance_given_to_me, write_env),
            ),
            ToolDescriptor(
                name="erc20_get_symbol",
                description="Get the symbol of a token from its contract address.",
                schema=schemas.SymbolParams,
                execute=bind_action(erc20_wallet.get_symbol, read_env),
            ),
            ToolDescriptor(
                name="erc20_get_decimals",
                description="Get the number of decimals of an ERC20 token.",
                schema=schemas.DecimalsParams,
                execute=bind_action(erc20_wallet.get_decimals, read_env),
            ),
            ToolDescriptor(
                name="erc20_transfer",
                description="Transfer ERC20 tokens from your wallet to a recipient.",
                schema=schemas.TransferParams,
                execute=bind_action(erc20_wallet.transfer, write_env),
            ),
            ToolDescriptor(
                name="erc20_approve",
                description="Approve a spender to use an amount of your ERC20 tokens.",
                schema=schemas.ApproveParams,
                execute=bind_action(erc20_wallet.approve, write_env),
            ),
            ToolDescriptor(
                name="erc20_transfer_from",
                description=(
                    "Transfer tokens from one address to another using an allowance "
                    "granted to your account."
                ),
                schema=schemas.TransferFromParams,
                execute=bind_action(erc20_wallet.transfer_from, write_env),
            ),
        ]
    )


def main() -> None:
    run_server(SERVER_NAME, build_tools)


if __name__ == "__main__":
    main()
