"""TradeExecuted → SwapRecord normalization (derived price fields)."""

from collections.abc import Iterable
from decimal import Decimal

from src.chain.constants import DEFAULT_TOTAL_SUPPLY_TOKENS, LAMPORTS_PER_SOL
from src.chain.models import LogNotification
from src.events.decoder import parse_trade_events
from src.events.models import LaunchHint, SwapRecord, TradeEvent

_PRICE_SCALE = Decimal(LAMPORTS_PER_SOL)


def unit_price(raw_price: int) -> Decimal:
    """Raw event price (lamports per token × 1e9) → SOL per token."""
    return Decimal(raw_price) / _PRICE_SCALE


def market_cap_sol(price: Decimal, total_supply_tokens: int = DEFAULT_TOTAL_SUPPLY_TOKENS) -> Decimal:
    """Approximate market cap in SOL.

    The live event path assumes the standard 1B-token supply instead of
    reading each launch; the cached Launch.market_cap uses the real supply.
    """
    return price * Decimal(total_supply_tokens)


def build_swap_record(
    event: TradeEvent,
    *,
    signature: str,
    slot: int = 0,
    block_time: int | None = None,
    hint: LaunchHint | None = None,
    reference_price: Decimal | None = None,
) -> SwapRecord:
    price = unit_price(event.price)
    execution_price = (
        Decimal(event.sol_amount) / Decimal(event.token_amount)
        if event.token_amount > 0
        else None
    )
    price_usd = price * reference_price if reference_price else None

    return SwapRecord(
        launch_id=event.launch,
        mint=hint.mint if hint else "",
        signature=signature,
        trader=event.trader,
        swap_type="buy" if event.is_buy else "sell",
        sol_amount=event.sol_amount,
        token_amount=event.token_amount,
        price=price,
        execution_price=execution_price,
        price_usd=price_usd,
        sol_reserves=hint.virtual_sol_reserve if hint else None,
        token_reserves=hint.virtual_token_reserve if hint else None,
        market_cap_sol=market_cap_sol(price),
        protocol_fee=event.protocol_fee,
        creator_fee=event.creator_fee,
        slot=slot,
        block_time=block_time if block_time is not None else event.timestamp,
    )


def swaps_from_transactions(
    transactions: Iterable[LogNotification], launch: str
) -> list[SwapRecord]:
    """Rebuild the swaps of ``launch`` from historical transaction logs."""
    swaps: list[SwapRecord] = []
    for tx in transactions:
        if tx.err is not None:
            continue
        for event in parse_trade_events(tx.logs):
            if event.launch != launch:
                continue
            swaps.append(build_swap_record(
                event, signature=tx.signature, slot=tx.slot, block_time=tx.block_time,
            ))
    return swaps
