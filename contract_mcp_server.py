#!/usr/bin/env python3
"""
MCP server for declaring contract classes on Starknet.

Needs STARKNET_PRIVATE_KEY and STARKNET_ACCOUNT_ADDRESS, and the ``signer``
extra for starknet-py.
"""

from __future__ import annotations

from typing import Any, Callable

import contract_declare
import tool_schemas as schemas
from mcp_host import run_server
from starknet_config import get_onchain_write
from tool_registry import ToolDescriptor, ToolRegistry, bind_action, build_registry

SERVER_NAME = "contract"


def build_tools(write_env: Callable[[], Any] = get_onchain_write) -> ToolRegistry:
    return build_registry(
        [
            ToolDescriptor(
                name="declare_contract",
                description=(
                    "Declare a compiled Cairo contract class from its Sierra and CASM "
                    "files, then confirm the class is on chain."
                ),
                schema=schemas.DeclareContractParams,
                execute=bind_action(contract_declare.declare_contract, write_env),
            ),
        ]
    )


def main() -> None:
    run_server(SERVER_NAME, build_tools)


if __name__ == "__main__":
    main()
