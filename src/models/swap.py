from datetime import datetime
from decimal import Decimal

from sqlalchemy import BigInteger, DateTime, Index, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column

from src.models.base import Base


class Swap(Base):
    """One on-chain trade, keyed by transaction signature.

    Inserts feed the candle/price-tick triggers downstream; a duplicate
    signature is rejected by the unique index on redelivery.
    """

    __tablename__ = "swaps"

    id: Mapped[int] = mapped_column(primary_key=True)
    launch_id: Mapped[str] = mapped_column(String(44))
    mint: Mapped[str] = mapped_column(String(44))
    signature: Mapped[str] = mapped_column(String(88))
    trader: Mapped[str] = mapped_column(String(44))
    swap_type: Mapped[str] = mapped_column(String(4))
    # u64 amounts can exceed BIGINT's signed range, so keep them as NUMERIC(20)
    sol_amount: Mapped[Decimal] = mapped_column(Numeric(20, 0))
    token_amount: Mapped[Decimal] = mapped_column(Numeric(20, 0))
    price: Mapped[Decimal] = mapped_column(Numeric(24, 12))
    price_usd: Mapped[Decimal | None] = mapped_column(Numeric(24, 12))
    sol_reserves: Mapped[Decimal | None] = mapped_column(Numeric(20, 0))
    token_reserves: Mapped[Decimal | None] = mapped_column(Numeric(20, 0))
    market_cap_sol: Mapped[Decimal | None] = mapped_column(Numeric(24, 12))
    slot: Mapped[int] = mapped_column(BigInteger)
    block_time: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    indexed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("uq_swaps_signature", "signature", unique=True),
        Index("idx_swaps_launch_time", "launch_id", "block_time"),
        Index("idx_swaps_mint_time", "mint", "block_time"),
        Index("idx_swaps_trader", "trader", "block_time"),
        Index("idx_swaps_block_time", "block_time"),
        Index("idx_swaps_slot", "slot"),
    )
