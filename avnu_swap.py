"""
Token swaps through the AVNU aggregator.

Implements:
- Supported-token listing (AVNU token API, paginated)
- Sell/buy token pair resolution by symbol or address
- Best-route quotes for a sell amount
- Swap execution: quote, build calls (approve + swap), sign and send

HTTP goes through requests; signing goes through the account of an
``OnchainWrite`` handle.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

import requests

from starknet_account import StarknetAccount
from starknet_config import DEFAULT_AVNU_API_URL, StarknetConfig, get_onchain_write
from starknet_errors import ApiError, ConfigError, TokenNotFoundError
from starknet_rpc import ContractCall, to_felt
from starknet_tokens import TokenInfo, normalize_address, to_base_units, to_human_units
from tool_registry import tool_action
from tool_schemas import RouteParams, SwapParams, TokenListParams

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15
TOKEN_PAGE_SIZE = 200
MAX_TOKEN_PAGES = 20


class AvnuClient:
    """Minimal AVNU REST client."""

    def __init__(self, base_url: str = DEFAULT_AVNU_API_URL, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def __repr__(self) -> str:
        return f"AvnuClient(base_url={self.base_url!r})"

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = f"{self.base_url}{path}"
        try:
            resp = requests.request(method, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.RequestException as exc:
            raise ApiError(f"AVNU request failed: {exc}") from exc
        if resp.status_code >= 400:
            raise ApiError(f"AVNU API error ({resp.status_code}): {resp.text[:300]}")
        try:
            return resp.json()
        except ValueError as exc:
            raise ApiError(f"AVNU returned a non-JSON response for {path}") from exc

    def fetch_token_page(self, page: int = 0, size: int = TOKEN_PAGE_SIZE) -> dict[str, Any]:
        data = self._request("GET", "/v1/starknet/tokens", params={"page": page, "size": size})
        if not isinstance(data, dict):
            raise ApiError("Unexpected token list payload from AVNU")
        return data

    def fetch_quotes(
        self,
        sell_token_address: str,
        buy_token_address: str,
        sell_amount: int,
        taker_address: str | None = None,
        size: int = 1,
    ) -> list[dict[str, Any]]:
        params: dict[str, Any] = {
            "sellTokenAddress": sell_token_address,
            "buyTokenAddress": buy_token_address,
            "sellAmount": hex(sell_amount),
            "size": size,
        }
        if taker_address:
            params["takerAddress"] = taker_address
        data = self._request("GET", "/swap/v2/quotes", params=params)
        if not isinstance(data, list):
            raise ApiError("Unexpected quotes payload from AVNU")
        return data

    def build_swap_calls(
        self, quote_id: str, taker_address: str, slippage: float | Decimal
    ) -> list[ContractCall]:
        data = self._request(
            "POST",
            "/swap/v2/build",
            json={
                "quoteId": quote_id,
                "takerAddress": taker_address,
                "slippage": float(slippage),
                "includeApprove": True,
            },
        )
        calls = data.get("calls") if isinstance(data, dict) else None
        if not calls:
            raise ApiError("AVNU returned no calls for this quote")
        return [
            ContractCall(
                contract_address=call["contractAddress"],
                entrypoint=call["entrypoint"],
                calldata=tuple(call.get("calldata") or ()),
            )
            for call in calls
        ]


# ---------------------------------------------------------------------------
# Environment
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AvnuEnv:
    """AVNU client plus, for swaps, the signing account."""

    client: AvnuClient
    default_slippage: Decimal
    account: Optional[StarknetAccount] = None


def get_avnu_read(cfg: StarknetConfig | None = None) -> AvnuEnv:
    cfg = cfg or StarknetConfig.from_env()
    return AvnuEnv(
        client=AvnuClient(cfg.avnu_api_url, timeout=cfg.rpc_timeout),
        default_slippage=cfg.default_slippage,
    )


def get_avnu_write(cfg: StarknetConfig | None = None) -> AvnuEnv:
    cfg = cfg or StarknetConfig.from_env()
    onchain = get_onchain_write(cfg)
    return AvnuEnv(
        client=AvnuClient(cfg.avnu_api_url, timeout=cfg.rpc_timeout),
        default_slippage=cfg.default_slippage,
        account=onchain.account,
    )


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------


def _token_from_api(raw: dict[str, Any]) -> TokenInfo:
    return TokenInfo(
        address=normalize_address(raw["address"]),
        decimals=int(raw.get("decimals", 18)),
        symbol=str(raw.get("symbol", "")),
        name=str(raw.get("name", "")),
    )


def fetch_tokens(client: AvnuClient) -> list[TokenInfo]:
    """All tokens AVNU supports, following pagination."""
    tokens: list[TokenInfo] = []
    for page in range(MAX_TOKEN_PAGES):
        data = client.fetch_token_page(page=page)
        content = data.get("content") or []
        for raw in content:
            try:
                tokens.append(_token_from_api(raw))
            except (KeyError, ValueError) as exc:
                logger.debug("Skipping malformed AVNU token entry %r: %s", raw, exc)
        total_pages = data.get("totalPages")
        if not content or total_pages is None or page + 1 >= int(total_pages):
            break
    return tokens


def _find_token(
    tokens: list[TokenInfo], symbol: str | None, address: str | None
) -> TokenInfo | None:
    if symbol:
        wanted = symbol.strip().lower()
        return next((t for t in tokens if t.symbol.lower() == wanted), None)
    wanted_address = normalize_address(address)
    return next((t for t in tokens if t.address == wanted_address), None)


def resolve_token_pair(
    tokens: list[TokenInfo],
    sell_symbol: str | None = None,
    sell_address: str | None = None,
    buy_symbol: str | None = None,
    buy_address: str | None = None,
) -> tuple[TokenInfo, TokenInfo]:
    """Find both sides of a swap. The symbol wins over the address when both are set."""
    if not sell_symbol and not sell_address:
        raise ValueError("Either sellTokenSymbol or sellTokenAddress must be provided")
    if not buy_symbol and not buy_address:
        raise ValueError("Either buyTokenSymbol or buyTokenAddress must be provided")

    sell_token = _find_token(tokens, sell_symbol, sell_address)
    if sell_token is None:
        raise TokenNotFoundError(f"Sell token {sell_symbol or sell_address} not supported")
    buy_token = _find_token(tokens, buy_symbol, buy_address)
    if buy_token is None:
        raise TokenNotFoundError(f"Buy token {buy_symbol or buy_address} not supported")
    return sell_token, buy_token


# ---------------------------------------------------------------------------
# Quotes and swaps
# ---------------------------------------------------------------------------


def _quote_summary(
    quote: dict[str, Any], sell_token: TokenInfo, buy_token: TokenInfo
) -> dict[str, Any]:
    summary: dict[str, Any] = {
        "quoteId": quote.get("quoteId"),
        "sellToken": sell_token.to_dict(),
        "buyToken": buy_token.to_dict(),
    }
    if quote.get("sellAmount") is not None:
        summary["sellAmount"] = to_human_units(to_felt(quote["sellAmount"]), sell_token.decimals)
    if quote.get("buyAmount") is not None:
        summary["buyAmount"] = to_human_units(to_felt(quote["buyAmount"]), buy_token.decimals)
    return summary


def find_best_quote(
    env: AvnuEnv, params: RouteParams
) -> tuple[dict[str, Any], dict[str, Any], TokenInfo, TokenInfo]:
    """Return (quote, first route, sell token, buy token) for a sell amount."""
    tokens = fetch_tokens(env.client)
    sell_token, buy_token = resolve_token_pair(
        tokens,
        params.sell_token_symbol,
        params.sell_token_address,
        params.buy_token_symbol,
        params.buy_token_address,
    )
    sell_amount = to_base_units(params.sell_amount, sell_token.decimals)
    if sell_amount <= 0:
        raise ValueError(f"Sell amount is below the smallest unit of {sell_token.symbol}")

    taker = env.account.address if env.account is not None else None
    quotes = env.client.fetch_quotes(
        sell_token.address, buy_token.address, sell_amount, taker_address=taker, size=1
    )
    if not quotes:
        raise ApiError("No routes available for this swap")
    quote = quotes[0]
    routes = quote.get("routes") or []
    if not routes:
        raise ApiError("No valid route found in quote")
    return quote, routes[0], sell_token, buy_token


@tool_action
def get_tokens(env: AvnuEnv, params: TokenListParams) -> dict[str, Any]:
    tokens = fetch_tokens(env.client)
    if params.search:
        needle = params.search.strip().lower()
        tokens = [t for t in tokens if needle in t.symbol.lower() or needle in t.name.lower()]
    return {
        "count": len(tokens),
        "tokens": [t.to_dict() for t in tokens[: params.limit]],
    }


@tool_action
def get_route(env: AvnuEnv, params: RouteParams) -> dict[str, Any]:
    quote, route, sell_token, buy_token = find_best_quote(env, params)
    return {**_quote_summary(quote, sell_token, buy_token), "route": route, "quote": quote}


@tool_action
def swap(env: AvnuEnv, params: SwapParams) -> dict[str, Any]:
    if env.account is None:
        raise ConfigError("Swapping needs a signing account (read-write environment).")

    quote, route, sell_token, buy_token = find_best_quote(env, params)
    slippage = (
        Decimal(str(params.slippage)) if params.slippage is not None else env.default_slippage
    )
    calls = env.client.build_swap_calls(quote["quoteId"], env.account.address, slippage)

    logger.info(
        "Swapping %s %s for %s (%d calls, slippage %s)",
        params.sell_amount,
        sell_token.symbol,
        buy_token.symbol,
        len(calls),
        slippage,
    )
    tx_hash = env.account.execute(calls)
    return {
        **_quote_summary(quote, sell_token, buy_token),
        "route": route,
        "slippage": str(slippage),
        "transactionHash": tx_hash,
    }
