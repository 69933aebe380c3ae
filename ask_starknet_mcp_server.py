#!/usr/bin/env python3
"""
MCP server exposing a single natural-language tool, ``ask_starknet``.

Requests are routed through the selector -> category -> specialized graph;
the specialized step launches the matching tool server over stdio. Needs
OPENAI_API_KEY, plus whatever the launched servers need.
"""

from __future__ import annotations

from typing import Any, Optional

import routing_agents
import tool_schemas as schemas
from mcp_host import run_server
from tool_registry import ToolDescriptor, ToolRegistry, bind_action, build_registry

SERVER_NAME = "ask-starknet"


def build_tools(graph: Optional[Any] = None) -> ToolRegistry:
    if graph is None:
        graph = routing_agents.build_default_graph(routing_agents.mcp_environment_from_os())

    def ask_env() -> routing_agents.AskEnv:
        return routing_agents.AskEnv(
            graph=graph, mcp_environment=routing_agents.mcp_environment_from_os()
        )

    return build_registry(
        [
            ToolDescriptor(
                name="ask_starknet",
                description=(
                    "Route a natural-language request to the Starknet tool server that "
                    "can handle it (tokens, trading, chain data, or contract declaration) and return its answer."
                ),
                schema=schemas.AskStarknetParams,
                execute=bind_action(routing_agents.ask_starknet, ask_env),
            )
        ]
    )


def main() -> None:
    run_server(SERVER_NAME, build_tools)


if __name__ == "__main__":
    main()
