#!/usr/bin/env python3
"""
MCP server for AVNU swaps on Starknet.

Wraps avnu_swap.py as MCP tools. Token listing and quotes work without
credentials; avnu_swap_tokens needs STARKNET_PRIVATE_KEY and
STARKNET_ACCOUNT_ADDRESS.
"""

from __future__ import annotations

from typing import Any, Callable

import avnu_swap
import tool_schemas as schemas
from mcp_host import run_server
from tool_registry import ToolDescriptor, ToolRegistry, bind_action, build_registry

SERVER_NAME = "avnu"


def build_tools(
    read_env: Callable[[], Any] = avnu_swap.get_avnu_read,
    write_env: Callable[[], Any] = avnu_swap.get_avnu_write,
) -> ToolRegistry:
    return build_registry(
        [
            ToolDescriptor(
                name="avnu_get_tokens",
                description="List the tokens AVNU can swap, optionally filtered by symbol or name.",
                schema=schemas.TokenListParams,
                execute=bind_action(avnu_swap.get_tokens, read_env),
            ),
            ToolDescriptor(
                name="avnu_get_route",
                description="Get the best AVNU route and quote for swapping an amount of one token for another.",
                schema=schemas.RouteParams,
                execute=bind_action(avnu_swap.get_route, read_env),
            ),
            ToolDescriptor(
                name="avnu_swap_tokens",
                description="Swap tokens from your wallet through the best AVNU route.",
                schema=schemas.SwapParams,
                execute=bind_action(avnu_swap.swap, write_env),
            ),
        ]
    )


def main() -> None:
    run_server(SERVER_NAME, build_tools)


if __name__ == "__main__":
    main()
