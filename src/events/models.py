"""Pydantic v2 models for decoded program events and normalized swaps."""

from decimal import Decimal
from enum import Enum

from pydantic import BaseModel

from src.chain.models import BigInt


class InstructionKind(str, Enum):
    """State-changing instruction families that trigger a re-index."""

    TRADE = "trade"
    CREATE = "create"
    GRADUATE = "graduate"


class TradeEvent(BaseModel):
    """Raw TradeExecuted event fields (schema v1)."""

    launch: str
    trader: str
    is_buy: bool
    sol_amount: BigInt
    token_amount: BigInt
    price: BigInt  # lamports per token, scaled by 1e9
    protocol_fee: BigInt
    creator_fee: BigInt
    timestamp: int

    model_config = {"extra": "ignore"}


class GraduationEvent(BaseModel):
    """Raw LaunchGraduated event fields (schema v1)."""

    launch: str
    mint: str
    orbit_pool: str
    sol_liquidity: BigInt
    token_liquidity: BigInt
    final_price: BigInt
    active_bin_index: int
    creator_reward: BigInt
    treasury_fee: BigInt
    timestamp: int

    model_config = {"extra": "ignore"}


class SwapRecord(BaseModel):
    """Normalized trade fact. ``signature`` is the idempotency key."""

    launch_id: str
    mint: str = ""
    signature: str
    trader: str
    swap_type: str  # "buy" | "sell"
    sol_amount: BigInt
    token_amount: BigInt
    price: Decimal  # SOL per token, post-trade curve price
    execution_price: Decimal | None = None  # sol_amount / token_amount
    price_usd: Decimal | None = None
    sol_reserves: BigInt | None = None
    token_reserves: BigInt | None = None
    market_cap_sol: Decimal | None = None
    protocol_fee: BigInt = 0
    creator_fee: BigInt = 0
    slot: int = 0
    block_time: int

    model_config = {"extra": "ignore"}

    @property
    def is_buy(self) -> bool:
        return self.swap_type == "buy"


class LaunchHint(BaseModel):
    """Per-launch lookup data the pipeline uses to enrich swaps."""

    mint: str
    virtual_sol_reserve: BigInt
    virtual_token_reserve: BigInt

    model_config = {"extra": "ignore"}
