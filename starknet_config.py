"""
Configuration and environment handles for the Starknet tool servers.

Values come from environment variables or a ``.env`` file:

- STARKNET_RPC_URL: node endpoint. Falls back to a public, rate-limited
  mainnet node when unset.
- STARKNET_RPC_TIMEOUT: request timeout in seconds (default 15).
- STARKNET_PRIVATE_KEY / STARKNET_ACCOUNT_ADDRESS: signing credentials,
  only required by write actions.
- AVNU_API_URL: AVNU aggregator base URL.
- AVNU_SLIPPAGE: default swap slippage as a fraction (default 0.01).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path

from dotenv import load_dotenv

from starknet_account import StarknetAccount
from starknet_errors import ConfigError
from starknet_rpc import DEFAULT_RPC_URL, DEFAULT_TIMEOUT, StarknetRpc

# Load .env from the working directory, then the repository root
PROJECT_ROOT = Path(__file__).resolve().parent
load_dotenv()
load_dotenv(PROJECT_ROOT / ".env")

DEFAULT_AVNU_API_URL = "https://starknet.api.avnu.fi"
DEFAULT_SLIPPAGE = Decimal("0.01")


@dataclass(frozen=True)
class StarknetConfig:
    rpc_url: str = DEFAULT_RPC_URL
    rpc_timeout: float = DEFAULT_TIMEOUT
    private_key: str | None = None
    account_address: str | None = None
    avnu_api_url: str = DEFAULT_AVNU_API_URL
    default_slippage: Decimal = DEFAULT_SLIPPAGE

    def __repr__(self) -> str:
        # Never echo the private key
        return (
            f"StarknetConfig(rpc_url={self.rpc_url!r}, "
            f"account_address={self.account_address!r}, "
            f"has_private_key={self.private_key is not None})"
        )

    @property
    def can_sign(self) -> bool:
        return bool(self.private_key and self.account_address)

    @classmethod
    def from_env(cls) -> StarknetConfig:
        rpc_url = (os.getenv("STARKNET_RPC_URL") or "").strip() or DEFAULT_RPC_URL

        timeout_raw = (os.getenv("STARKNET_RPC_TIMEOUT") or "").strip()
        rpc_timeout: float = DEFAULT_TIMEOUT
        if timeout_raw:
            try:
                rpc_timeout = float(timeout_raw)
            except ValueError as exc:
                raise ConfigError(
                    f"Invalid STARKNET_RPC_TIMEOUT={timeout_raw!r}. Must be a number of seconds."
                ) from exc
            if rpc_timeout <= 0:
                raise ConfigError("STARKNET_RPC_TIMEOUT must be greater than zero.")

        slippage_raw = (os.getenv("AVNU_SLIPPAGE") or "").strip()
        default_slippage = DEFAULT_SLIPPAGE
        if slippage_raw:
            try:
                default_slippage = Decimal(slippage_raw)
            except InvalidOperation as exc:
                raise ConfigError(f"Invalid AVNU_SLIPPAGE={slippage_raw!r}.") from exc
            if not Decimal(0) < default_slippage < Decimal(1):
                raise ConfigError("AVNU_SLIPPAGE must be between 0 and 1 (exclusive).")

        return cls(
            rpc_url=rpc_url,
            rpc_timeout=rpc_timeout,
            private_key=(os.getenv("STARKNET_PRIVATE_KEY") or "").strip() or None,
            account_address=(os.getenv("STARKNET_ACCOUNT_ADDRESS") or "").strip() or None,
            avnu_api_url=(os.getenv("AVNU_API_URL") or "").strip().rstrip("/")
            or DEFAULT_AVNU_API_URL,
            default_slippage=default_slippage,
        )


# ---------------------------------------------------------------------------
# Environment handles
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class OnchainRead:
    """Query-only capability: a node provider."""

    provider: StarknetRpc


@dataclass(frozen=True)
class OnchainWrite:
    """Query and sign capability: a node provider plus a signing account."""

    provider: StarknetRpc
    account: StarknetAccount


def get_onchain_read(cfg: StarknetConfig | None = None) -> OnchainRead:
    cfg = cfg or StarknetConfig.from_env()
    return OnchainRead(provider=StarknetRpc(cfg.rpc_url, timeout=cfg.rpc_timeout))


def get_onchain_write(cfg: StarknetConfig | None = None) -> OnchainWrite:
    cfg = cfg or StarknetConfig.from_env()
    if not cfg.can_sign:
        raise ConfigError(
            "Missing required environment variables: "
            "STARKNET_PRIVATE_KEY, STARKNET_ACCOUNT_ADDRESS"
        )
    provider = StarknetRpc(cfg.rpc_url, timeout=cfg.rpc_timeout)
    account = StarknetAccount(cfg.account_address, cfg.private_key, provider)
    return OnchainWrite(provider=provider, account=account)
