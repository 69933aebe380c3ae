"""
Token table, amount conversion, and contract result decoding for Starknet.

Implements:
- Static table of well-known Starknet tokens (mainnet addresses)
- Symbol/address resolution, with an on-chain fallback for unknown addresses
- Exact base-unit <-> human-unit conversion (string arithmetic, no floats)
- Uint256 / felt / short string / ByteArray result decoders
- Ordered entrypoint probing to detect which ERC20 naming a contract uses
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Protocol, Sequence, TypeVar

from starknet_errors import DecodeError, StarknetRpcError, TokenNotFoundError, UnknownAbiError
from starknet_rpc import to_felt

logger = logging.getLogger(__name__)

DEFAULT_DECIMALS = 18

MAX_ADDRESS = 2**251
UINT128 = 2**128
SHORT_STRING_MAX_LEN = 31
BYTES_PER_WORD = 31

T = TypeVar("T")


class ContractReader(Protocol):
    def call_contract(
        self, contract_address: str, entrypoint: str, calldata: Sequence[int | str] = ...
    ) -> list[int]: ...


# ---------------------------------------------------------------------------
# Token table
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TokenInfo:
    address: str
    decimals: int
    symbol: str
    name: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "decimals": self.decimals,
            "symbol": self.symbol,
            "name": self.name,
        }


def normalize_address(address: str) -> str:
    """Lowercase 0x-hex form without leading zeros, e.g. ``0x49d3...``."""
    if address is None or not str(address).strip():
        raise ValueError("Address is required")
    try:
        value = to_felt(str(address).strip())
    except ValueError as exc:
        raise ValueError(f"Invalid Starknet address: {address!r}") from exc
    if value >= MAX_ADDRESS:
        raise ValueError(f"Invalid Starknet address (out of range): {address!r}")
    return hex(value)


def _token(address: str, decimals: int, symbol: str, name: str) -> TokenInfo:
    return TokenInfo(normalize_address(address), decimals, symbol, name)


KNOWN_TOKENS: dict[str, TokenInfo] = {
    "ETH": _token(
        "0x049d36570d4e46f48e99674bd3fcc84644ddd6b96f7c741b1562b82f9e004dc7", 18, "ETH", "Ether"
    ),
    "STRK": _token(
        "0x04718f5a0fc34cc1af16a1cdee98ffb20c31f5cd61d6ab07201858f4287c938d", 18, "STRK", "Starknet Token"
    ),
    "USDC": _token(
        "0x053c91253bc9682c04929ca02ed00b3e423f6710d2ee7e0d5ebb06f3ecf368a8", 6, "USDC", "USD Coin"
    ),
    "USDT": _token(
        "0x068f5c6a61780768455de69077e07e89787839bf8166decfbf92b645209c0fb8", 6, "USDT", "Tether USD"
    ),
    "WBTC": _token(
        "0x03fe2b97c1fd336e750087d68b9b867997fd64a2661ff3ca5a7c771641e8e7ac", 8, "WBTC", "Wrapped BTC"
    ),
    "DAI": _token(
        "0x05574eb6b8789a91466f902c380d978e472db68170ff82a5b650b95a58ddf4ad", 18, "DAI", "Dai Stablecoin"
    ),
    "WSTETH": _token(
        "0x042b8f0484674ca266ac5d08e4ac6a3fe65bd3129795def2dca5c34ecc5f96d2", 18, "wstETH", "Wrapped liquid staked Ether"
    ),
    "LORDS": _token(
        "0x0124aeb495b947201f5fac96fd1138e326ad86195b98df6dec9009158a533b49", 18, "LORDS", "LORDS"
    ),
}

_TOKENS_BY_ADDRESS = {token.address: token for token in KNOWN_TOKENS.values()}


def resolve_token(symbol: str | None = None, address: str | None = None) -> TokenInfo:
    """
    Resolve a symbol and/or address against the static token table.

    The symbol is tried first (case-insensitive), then the address.
    Raises ``TokenNotFoundError`` when neither matches.
    """
    symbol = (symbol or "").strip()
    address = (address or "").strip()
    if not symbol and not address:
        raise ValueError("Either assetSymbol or assetAddress must be provided")

    if symbol:
        token = KNOWN_TOKENS.get(symbol.upper())
        if token is not None:
            return token
    if address:
        token = _TOKENS_BY_ADDRESS.get(normalize_address(address))
        if token is not None:
            return token
    raise TokenNotFoundError(f"Token not found: {symbol or address}")


def resolve_token_onchain(
    provider: ContractReader, symbol: str | None = None, address: str | None = None
) -> TokenInfo:
    """
    Resolve a token, falling back to reading an unknown address on chain.

    Decimals that cannot be read fall back to 18; a symbol that cannot be
    read is left empty.
    """
    try:
        return resolve_token(symbol, address)
    except TokenNotFoundError:
        if not address:
            raise

    token_address = normalize_address(address)
    try:
        decimals = decode_felt(provider.call_contract(token_address, "decimals", []))
    except Exception as exc:  # noqa: BLE001
        logger.warning("Error getting decimals for %s: %s", token_address, exc)
        decimals = DEFAULT_DECIMALS
    try:
        token_symbol = decode_symbol(provider.call_contract(token_address, "symbol", []))
    except Exception as exc:  # noqa: BLE001
        logger.warning("Error getting symbol for %s: %s", token_address, exc)
        token_symbol = ""
    return TokenInfo(address=token_address, decimals=int(decimals), symbol=token_symbol)


# ---------------------------------------------------------------------------
# Amount conversion
# ---------------------------------------------------------------------------

_PLAIN_DECIMAL = re.compile(r"^(\d+)?(?:\.(\d*))?$")


def _amount_text(amount: str | int | float | Decimal) -> str:
    if isinstance(amount, bool):
        raise ValueError(f"Invalid amount: {amount!r}")
    if isinstance(amount, int):
        return str(amount)
    if isinstance(amount, float):
        return format(Decimal(repr(amount)), "f")
    if isinstance(amount, Decimal):
        return format(amount, "f")
    text = str(amount).strip()
    if "e" in text.lower():
        try:
            return format(Decimal(text), "f")
        except InvalidOperation as exc:
            raise ValueError(f"Invalid amount: {amount!r}") from exc
    return text


def to_base_units(amount: str | int | float | Decimal, decimals: int) -> int:
    """
    Convert a human amount ("1.5") to integer base units.

    The fractional part is padded or truncated to ``decimals`` digits and
    concatenated to the whole part.
    """
    if decimals < 0:
        raise ValueError("Decimals must be non-negative")
    text = _amount_text(amount)
    if text.startswith("-"):
        raise ValueError(f"Amount must be non-negative: {amount!r}")
    match = _PLAIN_DECIMAL.match(text)
    if not text or text == "." or match is None:
        raise ValueError(f"Invalid amount: {amount!r}")
    whole = match.group(1) or "0"
    fraction = (match.group(2) or "").ljust(decimals, "0")[:decimals]
    return int(whole + fraction)


def to_human_units(amount: int, decimals: int) -> str:
    """Convert integer base units to a trimmed decimal string ("1000", "0.5")."""
    if decimals < 0:
        raise ValueError("Decimals must be non-negative")
    amount = int(amount)
    sign = "-" if amount < 0 else ""
    digits = str(abs(amount))
    if decimals == 0:
        return sign + digits
    digits = digits.rjust(decimals + 1, "0")
    whole, fraction = digits[:-decimals], digits[-decimals:].rstrip("0")
    return f"{sign}{whole}.{fraction}" if fraction else f"{sign}{whole}"


def split_uint256(value: int) -> tuple[int, int]:
    """Split into (low, high) 128-bit limbs."""
    if value < 0 or value >= 2**256:
        raise ValueError(f"Value out of uint256 range: {value}")
    return value % UINT128, value // UINT128


def join_uint256(low: int, high: int) -> int:
    if not (0 <= low < UINT128 and 0 <= high < UINT128):
        raise DecodeError(f"Invalid uint256 limbs: low={low}, high={high}")
    return (high << 128) + low


# ---------------------------------------------------------------------------
# Result decoders
# ---------------------------------------------------------------------------


def decode_felt(result: Sequence[int]) -> int:
    if len(result) < 1:
        raise DecodeError("Expected a felt, got an empty result")
    return int(result[0])


def decode_uint256(result: Sequence[int]) -> int:
    if len(result) < 2:
        raise DecodeError(
            f"Expected Uint256 (2 values), got {len(result)} value(s). "
            "This may indicate a non-standard implementation."
        )
    return join_uint256(int(result[0]), int(result[1]))


def decode_amount(result: Sequence[int]) -> int:
    """Uint256 when two limbs are returned, a single felt otherwise."""
    if len(result) >= 2:
        return decode_uint256(result)
    return decode_felt(result)


def decode_short_string(felt: int) -> str:
    if felt < 0:
        raise DecodeError("Short strings are non-negative felts")
    if felt == 0:
        return ""
    raw = felt.to_bytes((felt.bit_length() + 7) // 8, "big")
    if len(raw) > SHORT_STRING_MAX_LEN:
        raise DecodeError("Short strings hold at most 31 bytes")
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise DecodeError(f"Felt {hex(felt)} is not a short string") from exc


def encode_short_string(text: str) -> int:
    raw = text.encode("ascii")
    if len(raw) > SHORT_STRING_MAX_LEN:
        raise ValueError("Short strings hold at most 31 characters")
    return int.from_bytes(raw, "big") if raw else 0


def decode_byte_array(result: Sequence[int]) -> str:
    """Decode a Cairo ``ByteArray``: [n, word_1..word_n, pending_word, pending_len]."""
    if len(result) < 3:
        raise DecodeError("ByteArray results have at least 3 felts")
    count = int(result[0])
    if len(result) != count + 3:
        raise DecodeError(f"ByteArray declares {count} words but result has {len(result)} felts")
    pending_word = int(result[count + 1])
    pending_len = int(result[count + 2])
    if pending_len >= BYTES_PER_WORD:
        raise DecodeError("ByteArray pending word must be shorter than 31 bytes")

    chunks = [int(word).to_bytes(BYTES_PER_WORD, "big") for word in result[1 : count + 1]]
    if pending_len:
        chunks.append(pending_word.to_bytes(pending_len, "big"))
    try:
        return b"".join(chunks).decode("utf-8")
    except (UnicodeDecodeError, OverflowError) as exc:
        raise DecodeError("ByteArray is not valid UTF-8") from exc


def decode_symbol(result: Sequence[int]) -> str:
    """Legacy tokens return a short-string felt, newer ones a ByteArray."""
    if len(result) == 1:
        return decode_short_string(int(result[0]))
    return decode_byte_array(result)


# ---------------------------------------------------------------------------
# Interface detection
# ---------------------------------------------------------------------------


def probe_entrypoints(
    provider: ContractReader,
    address: str,
    entrypoints: Sequence[str],
    decoder: Callable[[Sequence[int]], T],
    calldata: Sequence[int | str] = (),
) -> tuple[str, T]:
    """
    Try ``entrypoints`` in order and return the first one that decodes.

    A node-reported call error or an undecodable result moves on to the
    next entrypoint. Transport failures carry no RPC error code and are
    raised as-is. Raises ``UnknownAbiError`` with the last error when no
    entrypoint matches.
    """
    last_error: Exception | None = None
    for entrypoint in entrypoints:
        try:
            result = provider.call_contract(address, entrypoint, list(calldata))
            return entrypoint, decoder(result)
        except DecodeError as exc:
            last_error = exc
        except StarknetRpcError as exc:
            if exc.code is None:
                raise
            last_error = exc
    detail = f" ({last_error})" if last_error else ""
    raise UnknownAbiError(
        f"None of {', '.join(entrypoints)} found or readable on {address}{detail}"
    )


@dataclass(frozen=True)
class Erc20Interface:
    """Entrypoint naming used by a deployed ERC20 contract."""

    name: str
    total_supply: str
    balance_of: str
    transfer_from: str
    allowance: str = "allowance"
    transfer: str = "transfer"
    approve: str = "approve"
    decimals: str = "decimals"
    symbol: str = "symbol"


ERC20_CAMEL = Erc20Interface("camel", "totalSupply", "balanceOf", "transferFrom")
ERC20_SNAKE = Erc20Interface("snake", "total_supply", "balance_of", "transfer_from")
ERC20_GETTER = Erc20Interface("getter", "get_total_supply", "get_balance", "transfer_from")

# Probe order: legacy camelCase first, then the Cairo 1 snake_case names,
# then get_-prefixed getters.
ERC20_INTERFACES: tuple[Erc20Interface, ...] = (ERC20_CAMEL, ERC20_SNAKE, ERC20_GETTER)

TOTAL_SUPPLY_ENTRYPOINTS = tuple(i.total_supply for i in ERC20_INTERFACES)
BALANCE_ENTRYPOINTS = tuple(i.balance_of for i in ERC20_INTERFACES)


def detect_erc20_interface(provider: ContractReader, address: str) -> Erc20Interface:
    """Probe the total-supply entrypoint of each known interface in order."""
    entrypoint, _ = probe_entrypoints(provider, address, TOTAL_SUPPLY_ENTRYPOINTS, decode_uint256)
    for interface in ERC20_INTERFACES:
        if interface.total_supply == entrypoint:
            return interface
    raise UnknownAbiError(f"Unknown ERC20 interface on {address}")  # pragma: no cover
