"""Schema checks for the swaps table (no database needed)."""

from src.models import Base, Swap


def test_swaps_table_registered() -> None:
    assert Base.metadata.tables["swaps"] is Swap.__table__


def test_signature_is_unique() -> None:
    indexes = {ix.name: ix for ix in Swap.__table__.indexes}
    unique = indexes["uq_swaps_signature"]
    assert unique.unique
    assert [c.name for c in unique.columns] == ["signature"]


def test_time_indexes() -> None:
    names = {ix.name for ix in Swap.__table__.indexes}
    assert {"idx_swaps_launch_time", "idx_swaps_mint_time", "idx_swaps_trader", "idx_swaps_block_time"} <= names


def test_optional_columns() -> None:
    columns = Swap.__table__.columns
    assert columns["price_usd"].nullable
    assert columns["market_cap_sol"].nullable
    assert not columns["signature"].nullable
    assert columns["indexed_at"].server_default is not None
