"""Durable swap writes into the ``swaps`` table."""

from datetime import datetime, timezone
from enum import Enum

from loguru import logger
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.events.models import SwapRecord
from src.models.swap import Swap

UNIQUE_VIOLATION = "23505"


class InsertResult(str, Enum):
    INSERTED = "inserted"
    DUPLICATE = "duplicate"
    FAILED = "failed"


def _sqlstate(exc: IntegrityError) -> str | None:
    orig = exc.orig
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


def swap_row(record: SwapRecord) -> dict:
    return {
        "launch_id": record.launch_id,
        "mint": record.mint,
        "signature": record.signature,
        "trader": record.trader,
        "swap_type": record.swap_type,
        "sol_amount": record.sol_amount,
        "token_amount": record.token_amount,
        "price": record.price,
        "price_usd": record.price_usd,
        "sol_reserves": record.sol_reserves,
        "token_reserves": record.token_reserves,
        "market_cap_sol": record.market_cap_sol,
        "slot": record.slot,
        "block_time": datetime.fromtimestamp(record.block_time, tz=timezone.utc),
    }


class SwapStore:
    """One insert per swap. Signature uniqueness is enforced by the database."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory
        self.inserted = 0
        self.duplicates = 0
        self.failures = 0

    async def insert(self, record: SwapRecord) -> InsertResult:
        sig = record.signature[:16]
        try:
            stmt = pg_insert(Swap).values(**swap_row(record))
            async with self._session_factory() as session:
                try:
                    await session.execute(stmt)
                    await session.commit()
                except IntegrityError as e:
                    await session.rollback()
                    if _sqlstate(e) == UNIQUE_VIOLATION:
                        self.duplicates += 1
                        logger.debug(f"[SWAPS] Duplicate swap {sig}, skipping")
                        return InsertResult.DUPLICATE
                    self.failures += 1
                    logger.error(f"[SWAPS] Integrity error for {sig}: {e.orig}")
                    return InsertResult.FAILED
        except (SQLAlchemyError, OSError, ValueError, OverflowError) as e:
            self.failures += 1
            logger.error(f"[SWAPS] Insert failed for {sig}: {type(e).__name__}: {e}")
            return InsertResult.FAILED

        self.inserted += 1
        logger.debug(
            f"[SWAPS] Stored {record.swap_type} {sig} "
            f"launch={record.launch_id[:12]} sol={record.sol_amount}"
        )
        return InsertResult.INSERTED
