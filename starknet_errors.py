"""Exception hierarchy shared by the Starknet tool modules."""

from __future__ import annotations


class StarknetToolError(Exception):
    """Base class for errors raised by Starknet tool actions."""


class ConfigError(StarknetToolError):
    """Missing or invalid configuration (credentials, URLs, limits)."""


class StarknetRpcError(StarknetToolError):
    """JSON-RPC error object or transport failure talking to a Starknet node."""

    def __init__(self, message: str, code: int | None = None, data: object = None) -> None:
        super().__init__(message)
        self.code = code
        self.data = data


class TokenNotFoundError(StarknetToolError):
    """A symbol or address could not be resolved to a known token."""


class UnknownAbiError(StarknetToolError):
    """No known interface variant matched a deployed contract."""


class DecodeError(StarknetToolError):
    """A contract call result did not have the expected shape."""


class TransactionFailedError(StarknetToolError):
    """A transaction was accepted but reverted, or was rejected."""


class ApiError(StarknetToolError):
    """Non-2xx response or malformed payload from a third-party REST API."""


class ContractDeclareError(StarknetToolError):
    """One step of a contract declaration failed; the message names the step."""
