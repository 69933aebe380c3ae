"""
Parameter schemas for every tool.

Wire names are camelCase (``assetSymbol``, ``sellAmount``); Python code uses
the snake_case attribute names.
"""

from __future__ import annotations

from typing import Annotated, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from starknet_rpc import format_block_id
from starknet_tokens import normalize_address

MIN_SELL_AMOUNT = 0.000001


def _check_block_id(value: str) -> str:
    format_block_id(value)
    return value.strip()


def _check_felt_hex(value: str) -> str:
    return normalize_address(value)


Address = Annotated[str, AfterValidator(normalize_address)]
Felt = Annotated[str, AfterValidator(_check_felt_hex)]
BlockId = Annotated[str, AfterValidator(_check_block_id)]
Amount = Annotated[
    str,
    Field(pattern=r"^\d+(\.\d+)?$", description="Human-readable token amount, e.g. '1.5'"),
]


class ToolParams(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# ERC20
# ---------------------------------------------------------------------------


class AssetParams(ToolParams):
    """The asset information (symbol or contract address)."""

    asset_address: Optional[Address] = Field(
        default=None, description="The contract address of the ERC20 token"
    )
    asset_symbol: Optional[str] = Field(
        default=None, description="The symbol of the ERC20 token"
    )

    @model_validator(mode="after")
    def _require_symbol_or_address(self) -> AssetParams:
        if not self.asset_address and not (self.asset_symbol or "").strip():
            raise ValueError("Either assetAddress or assetSymbol must be provided")
        return self


class TotalSupplyParams(ToolParams):
    asset: AssetParams


class DecimalsParams(ToolParams):
    asset: AssetParams


class BalanceParams(ToolParams):
    account_address: Address = Field(description="The address to check the balance for")
    asset: AssetParams


class OwnBalanceParams(ToolParams):
    asset: AssetParams


class AllowanceParams(ToolParams):
    owner_address: Address = Field(description="The address of the account owning the tokens")
    spender_address: Address = Field(description="The address allowed to spend the tokens")
    asset: AssetParams


class MyGivenAllowanceParams(ToolParams):
    spender_address: Address = Field(description="The address allowed to spend your tokens")
    asset: AssetParams


class AllowanceGivenToMeParams(ToolParams):
    owner_address: Address = Field(description="The address that granted you an allowance")
    asset: AssetParams


class SymbolParams(ToolParams):
    asset_address: Address = Field(description="The contract address of the ERC20 token")


class TransferParams(ToolParams):
    recipient_address: Address = Field(description="The address to receive the tokens")
    amount: Amount
    asset: AssetParams


class ApproveParams(ToolParams):
    spender_address: Address = Field(description="The address being approved to spend tokens")
    amount: Amount
    asset: AssetParams


class TransferFromParams(ToolParams):
    from_address: Address = Field(description="The address to transfer tokens from")
    to_address: Address = Field(description="The address to transfer tokens to")
    amount: Amount
    asset: AssetParams


# ---------------------------------------------------------------------------
# Starknet RPC
# ---------------------------------------------------------------------------

BLOCK_ID_DESCRIPTION = (
    "The block identifier. Can be 'latest', 'pending', a block hash, "
    "or a block number as string."
)


class BlockIdParams(ToolParams):
    block_id: BlockId = Field(default="latest", description=BLOCK_ID_DESCRIPTION)


class ContractAddressParams(ToolParams):
    contract_address: Address = Field(description="The address of the contract")
    block_id: BlockId = Field(default="latest", description=BLOCK_ID_DESCRIPTION)


class ClassHashParams(ToolParams):
    class_hash: Felt = Field(description="The class hash")
    block_id: BlockId = Field(default="latest", description=BLOCK_ID_DESCRIPTION)


class StorageAtParams(ToolParams):
    contract_address: Address = Field(description="The address of the contract")
    key: Felt = Field(description="The storage key to read")
    block_id: BlockId = Field(default="latest", description=BLOCK_ID_DESCRIPTION)


class TransactionHashParams(ToolParams):
    transaction_hash: Felt = Field(description="The hash of the requested transaction")


class TransactionByIndexParams(ToolParams):
    block_id: BlockId = Field(default="latest", description=BLOCK_ID_DESCRIPTION)
    transaction_index: int = Field(ge=0, description="The index of the transaction within the block")


# ---------------------------------------------------------------------------
# AVNU
# ---------------------------------------------------------------------------


class RouteParams(ToolParams):
    sell_token_symbol: Optional[str] = Field(
        default=None,
        description="Symbol of the token to sell (e.g., 'ETH', 'USDC'). Either symbol or address must be provided.",
    )
    sell_token_address: Optional[Address] = Field(
        default=None,
        description="Address of the token to sell. Either symbol or address must be provided.",
    )
    buy_token_symbol: Optional[str] = Field(
        default=None,
        description="Symbol of the token to buy (e.g., 'ETH', 'USDC'). Either symbol or address must be provided.",
    )
    buy_token_address: Optional[Address] = Field(
        default=None,
        description="Address of the token to buy. Either symbol or address must be provided.",
    )
    sell_amount: float = Field(ge=MIN_SELL_AMOUNT, description="Amount of tokens to sell")

    @model_validator(mode="after")
    def _require_token_pair(self) -> RouteParams:
        if not self.sell_token_symbol and not self.sell_token_address:
            raise ValueError("Either sellTokenSymbol or sellTokenAddress must be provided")
        if not self.buy_token_symbol and not self.buy_token_address:
            raise ValueError("Either buyTokenSymbol or buyTokenAddress must be provided")
        return self


class SwapParams(RouteParams):
    slippage: Optional[float] = Field(
        default=None,
        gt=0,
        lt=1,
        description="Maximum slippage as a fraction (0.01 = 1%). Defaults to AVNU_SLIPPAGE.",
    )


class TokenListParams(ToolParams):
    search: Optional[str] = Field(
        default=None, description="Filter by symbol or name (case-insensitive)"
    )
    limit: int = Field(default=50, ge=1, le=500, description="Maximum number of tokens to return")


# ---------------------------------------------------------------------------
# Contract declaration
# ---------------------------------------------------------------------------


class DeclareContractParams(ToolParams):
    sierra_file_path: str = Field(
        min_length=1, description="Path to the compiled Sierra class (.contract_class.json)"
    )
    casm_file_path: str = Field(
        min_length=1,
        description="Path to the compiled CASM class (.compiled_contract_class.json)",
    )


# ---------------------------------------------------------------------------
# Routing agent
# ---------------------------------------------------------------------------


class AskStarknetParams(ToolParams):
    user_input: str = Field(min_length=1, description="The request, in natural language")
