"""
Tool registry, result envelope, and dispatch for the Starknet MCP servers.

Every tool action returns a ``ToolResult``:

    {"status": "success", "data": <payload>}
    {"status": "failure", "error": "<message>"}

Actions are plain synchronous functions decorated with ``tool_action``; the
decorator is the boundary where collaborator exceptions become failure
envelopes. Servers wrap actions into ``ToolDescriptor`` records with
``bind_action`` and collect them with ``build_registry``.
"""

from __future__ import annotations

import asyncio
import functools
import json
import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Iterable, Literal, Mapping

from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

UNKNOWN_ERROR = "Unknown error"

Status = Literal["success", "failure"]


class DuplicateToolError(Exception):
    """Two descriptors in one registry share a name."""


# ---------------------------------------------------------------------------
# Result envelope
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ToolResult:
    status: Status
    data: Any = None
    error: str | None = None

    def __post_init__(self) -> None:
        if self.status == "success" and self.error is not None:
            raise ValueError("A success result cannot carry an error.")
        if self.status == "failure" and not self.error:
            raise ValueError("A failure result needs a non-empty error message.")

    @classmethod
    def success(cls, data: Any) -> ToolResult:
        return cls(status="success", data=data)

    @classmethod
    def failure(cls, error: str | None) -> ToolResult:
        return cls(status="failure", error=error or UNKNOWN_ERROR)

    @property
    def ok(self) -> bool:
        return self.status == "success"

    def to_dict(self) -> dict[str, Any]:
        if self.ok:
            return {"status": self.status, "data": self.data}
        return {"status": self.status, "error": self.error}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)


def error_message(exc: BaseException) -> str:
    """Human-readable message for an exception, with a fixed fallback."""
    message = str(exc).strip()
    return message or UNKNOWN_ERROR


def tool_action(func: Callable[..., Any]) -> Callable[..., ToolResult]:
    """
    Turn a raising action into one that always returns a ``ToolResult``.

    The wrapped function returns its payload on success; anything it raises
    is logged and converted into a failure envelope.
    """

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> ToolResult:
        try:
            payload = func(*args, **kwargs)
        except Exception as exc:  # noqa: BLE001
            logger.warning("%s failed: %s", func.__name__, exc)
            return ToolResult.failure(error_message(exc))
        if isinstance(payload, ToolResult):
            return payload
        return ToolResult.success(payload)

    return wrapper


# ---------------------------------------------------------------------------
# Descriptors and registry
# ---------------------------------------------------------------------------

Execute = Callable[[Any], Awaitable[ToolResult]]


@dataclass(frozen=True)
class ToolDescriptor:
    name: str
    description: str
    execute: Execute
    schema: type[BaseModel] | None = None

    def input_schema(self) -> dict[str, Any]:
        if self.schema is None:
            return {"type": "object", "properties": {}}
        return self.schema.model_json_schema(by_alias=True)


ToolRegistry = Mapping[str, ToolDescriptor]


def build_registry(descriptors: Iterable[ToolDescriptor]) -> ToolRegistry:
    """Build an immutable name -> descriptor mapping, rejecting duplicates."""
    tools: dict[str, ToolDescriptor] = {}
    for descriptor in descriptors:
        if descriptor.name in tools:
            raise DuplicateToolError(f"Duplicate tool name: {descriptor.name}")
        tools[descriptor.name] = descriptor
    return MappingProxyType(tools)


def bind_action(
    action: Callable[..., ToolResult],
    env_factory: Callable[[], Any] | None = None,
) -> Execute:
    """
    Build an async ``execute`` for a synchronous action.

    The environment handle is built per call (so a write tool without
    credentials fails only when it is used), then the action runs in a worker
    thread. Both steps are awaited in order.
    """

    async def execute(params: Any) -> ToolResult:
        if env_factory is None:
            return await asyncio.to_thread(action, params)
        try:
            env = await asyncio.to_thread(env_factory)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Environment setup for %s failed: %s", action.__name__, exc)
            return ToolResult.failure(error_message(exc))
        return await asyncio.to_thread(action, env, params)

    return execute


# ---------------------------------------------------------------------------
# Validation and dispatch
# ---------------------------------------------------------------------------


def format_validation_error(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(item) for item in err.get("loc", ()))
        msg = err.get("msg", "invalid value")
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "Invalid parameters: " + "; ".join(parts)


def validate_params(
    schema: type[BaseModel] | None, arguments: Mapping[str, Any] | None
) -> BaseModel | None:
    """Validate raw tool arguments. Raises ``ValueError`` with a readable message."""
    if schema is None:
        return None
    try:
        return schema.model_validate(dict(arguments or {}))
    except ValidationError as exc:
        raise ValueError(format_validation_error(exc)) from exc


async def dispatch(
    registry: ToolRegistry, name: str, arguments: Any
) -> ToolResult:
    descriptor = registry.get(name)
    if descriptor is None:
        return ToolResult.failure(f"Unknown tool: {name}")
    if arguments is not None and not isinstance(arguments, Mapping):
        return ToolResult.failure("Invalid arguments. Expected an object.")

    try:
        params = validate_params(descriptor.schema, arguments)
    except ValueError as exc:
        return ToolResult.failure(error_message(exc))

    try:
        result = await descriptor.execute(params)
    except Exception as exc:  # noqa: BLE001
        logger.exception("Tool %s raised outside its action boundary", name)
        return ToolResult.failure(error_message(exc))
    if not isinstance(result, ToolResult):
        return ToolResult.failure(f"Tool {name} returned an invalid result.")
    return result
