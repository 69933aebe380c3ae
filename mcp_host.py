"""
Shared MCP server bootstrap: logging, tool listing/dispatch, stdio transport.

Each ``*_mcp_server.py`` module builds its registry and hands it to
``run_server``.
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys
from typing import Any, Callable, List

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from starknet_errors import ConfigError
from tool_registry import ToolRegistry, ToolResult, dispatch

logger = logging.getLogger(__name__)

LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def configure_logging(level_name: str | None = None) -> int:
    """
    Log to stderr only; stdout carries the MCP message stream.

    LOG_LEVEL is read from the environment when no level is passed.
    """
    raw = (level_name or os.getenv("LOG_LEVEL") or "INFO").strip().upper()
    if raw not in LOG_LEVELS:
        raise ConfigError(
            f"Invalid LOG_LEVEL={raw!r}. Expected one of: {', '.join(LOG_LEVELS)}."
        )
    level = LOG_LEVELS[raw]
    logging.basicConfig(
        level=level,
        stream=sys.stderr,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        force=True,
    )
    return level


def render_result(result: ToolResult) -> List[TextContent]:
    return [TextContent(type="text", text=result.to_json())]


def create_server(name: str, registry: ToolRegistry) -> Server:
    """Attach list_tools/call_tool handlers for ``registry`` to a new server."""
    app = Server(name)

    @app.list_tools()
    async def list_tools() -> List[Tool]:
        return [
            Tool(
                name=descriptor.name,
                description=descriptor.description,
                inputSchema=descriptor.input_schema(),
            )
            for descriptor in registry.values()
        ]

    # dispatch validates arguments and reports failures as envelopes.
    @app.call_tool(validate_input=False)
    async def call_tool(tool_name: str, arguments: Any) -> List[TextContent]:
        result = await dispatch(registry, tool_name, arguments)
        return render_result(result)

    return app


async def serve_stdio(app: Server) -> None:
    async with stdio_server() as (read_stream, write_stream):
        await app.run(read_stream, write_stream, app.create_initialization_options())


def run_server(name: str, build_registry: Callable[[], ToolRegistry]) -> None:
    """
    Process entry point for a tool server.

    Configuration and registry errors at startup are fatal: they are logged
    to stderr and the process exits with status 1.
    """
    try:
        configure_logging()
        registry = build_registry()
        app = create_server(name, registry)
    except Exception as exc:  # noqa: BLE001
        logging.basicConfig(stream=sys.stderr)
        logger.critical("Fatal error starting %s: %s", name, exc)
        sys.exit(1)

    logger.info("%s running on stdio with %d tools", name, len(registry))
    asyncio.run(serve_stdio(app))
