"""Pydantic v2 models for decoded launch program accounts.

u64/u128 quantities stay Python ints end-to-end and are emitted as strings
in JSON mode so consumers with 53-bit numbers never lose precision.
Derived prices are Decimals (also strings in JSON).
"""

from decimal import Decimal
from enum import IntEnum
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, PlainSerializer, computed_field

from src.chain.constants import LAMPORTS_PER_SOL


def _int_as_str(value: int) -> str:
    return str(value)


BigInt = Annotated[int, PlainSerializer(_int_as_str, return_type=str, when_used="json")]


class LaunchStatus(IntEnum):
    ACTIVE = 0
    PENDING_GRADUATION = 1
    GRADUATED = 2
    CANCELLED = 3

    @property
    def label(self) -> str:
        return _STATUS_LABELS[self]

    @classmethod
    def parse(cls, value: Any) -> "LaunchStatus":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            for status, label in _STATUS_LABELS.items():
                if value in (label, status.name):
                    return status
            raise ValueError(f"unknown launch status {value!r}")
        return cls(value)

    def can_transition_to(self, other: "LaunchStatus") -> bool:
        """True if moving from self to ``other`` is a legal (or no-op) transition."""
        return other == self or other in _FORWARD_TRANSITIONS[self]


_STATUS_LABELS = {
    LaunchStatus.ACTIVE: "Active",
    LaunchStatus.PENDING_GRADUATION: "PendingGraduation",
    LaunchStatus.GRADUATED: "Graduated",
    LaunchStatus.CANCELLED: "Cancelled",
}

_FORWARD_TRANSITIONS: dict[LaunchStatus, frozenset[LaunchStatus]] = {
    LaunchStatus.ACTIVE: frozenset(
        {LaunchStatus.PENDING_GRADUATION, LaunchStatus.GRADUATED, LaunchStatus.CANCELLED}
    ),
    LaunchStatus.PENDING_GRADUATION: frozenset({LaunchStatus.GRADUATED}),
    LaunchStatus.GRADUATED: frozenset(),
    LaunchStatus.CANCELLED: frozenset(),
}

Status = Annotated[
    LaunchStatus,
    BeforeValidator(LaunchStatus.parse),
    PlainSerializer(lambda s: s.label, return_type=str, when_used="json"),
]


class ProtocolConfig(BaseModel):
    """Decoded singleton Config account."""

    address: str
    admin: str
    fee_authority: str
    protocol_fee_bps: int
    graduation_threshold: BigInt
    quote_mint: str
    orbit_program_id: str
    default_bin_step_bps: int
    default_base_fee_bps: int
    launches_paused: bool
    trading_paused: bool
    total_launches: BigInt
    total_graduations: BigInt
    total_volume_lamports: BigInt
    total_fees_collected: BigInt
    bump: int

    model_config = {"extra": "ignore"}


class Launch(BaseModel):
    """Decoded Launch account plus bonding-curve derived values."""

    address: str
    mint: str
    creator: str
    status: Status
    total_supply: BigInt
    tokens_sold: BigInt
    graduation_tokens: BigInt
    creator_tokens: BigInt
    virtual_sol_reserve: BigInt
    virtual_token_reserve: BigInt
    real_sol_reserve: BigInt
    real_token_reserve: BigInt
    graduation_threshold: BigInt
    created_at: int
    graduated_at: int | None = None
    buy_volume: BigInt = 0
    sell_volume: BigInt = 0
    trade_count: BigInt = 0
    holder_count: int = 0
    orbit_pool: str | None = None
    creator_fee_bps: int = 0
    name: str = ""
    symbol: str = ""
    uri: str = ""
    twitter: str | None = None
    telegram: str | None = None
    website: str | None = None
    bump: int = 0
    authority_bump: int = 0

    model_config = {"extra": "ignore"}

    @computed_field  # type: ignore[prop-decorator]
    @property
    def current_price(self) -> Decimal:
        """SOL per token (both sides carry 9 decimals, so the ratio needs no rescale)."""
        if self.virtual_token_reserve <= 0:
            return Decimal(0)
        return Decimal(self.virtual_sol_reserve) / Decimal(self.virtual_token_reserve)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def market_cap(self) -> Decimal:
        """Market cap in lamports: current_price × total_supply (raw units)."""
        return self.current_price * Decimal(self.total_supply)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def market_cap_sol(self) -> Decimal:
        return self.market_cap / Decimal(LAMPORTS_PER_SOL)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def progress(self) -> Decimal:
        """Share of the graduation threshold collected, clamped to [0, 1]."""
        if self.graduation_threshold <= 0:
            return Decimal(0)
        ratio = Decimal(self.real_sol_reserve) / Decimal(self.graduation_threshold)
        return min(max(ratio, Decimal(0)), Decimal(1))


class UserPosition(BaseModel):
    """Decoded UserPosition account for one (launch, trader) pair."""

    address: str
    launch: str
    user: str
    tokens_bought: BigInt
    tokens_sold: BigInt
    token_balance: BigInt
    sol_spent: BigInt
    sol_received: BigInt
    first_trade_at: int
    last_trade_at: int
    buy_count: int
    sell_count: int
    avg_buy_price: BigInt
    cost_basis: BigInt
    bump: int = 0

    model_config = {"extra": "ignore"}


class AccountChange(BaseModel):
    """A program account update delivered by programSubscribe."""

    address: str
    slot: int = 0
    kind: str  # "config" | "launch" | "user_position" | "unknown"
    launch: Launch | None = None
    position: UserPosition | None = None

    model_config = {"extra": "ignore"}


class LogNotification(BaseModel):
    """One transaction's log batch delivered by logsSubscribe."""

    signature: str
    slot: int = 0
    err: Any = None
    logs: list[str] = []
    block_time: int | None = None

    model_config = {"extra": "ignore"}
