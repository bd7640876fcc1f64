"""Live event pipeline: program logs → normalized swaps.

For each log notification: drop failed transactions, decode TradeExecuted
events in log order, enrich them with the reference price and the launch
lookup table, then hand each swap to the durable store and the live
listeners. The instruction kinds found in the batch are forwarded to the
re-index triggers.
"""

from collections.abc import Awaitable, Callable, Iterable
from decimal import Decimal

from loguru import logger

from src.chain.client import ChainReader
from src.chain.models import Launch, LogNotification
from src.chain.subscriptions import ProgramSubscription
from src.events.decoder import classify_logs, parse_graduation_events, parse_trade_events
from src.events.models import InstructionKind, LaunchHint, SwapRecord
from src.events.normalize import build_swap_record
from src.events.price_feed import ReferencePriceFeed
from src.events.store import InsertResult, SwapStore

SwapListener = Callable[[SwapRecord], Awaitable[None]]
TriggerCallback = Callable[[set[InstructionKind], str], Awaitable[None]]


class EventPipeline:
    def __init__(
        self,
        reader: ChainReader,
        price_feed: ReferencePriceFeed | None = None,
        store: SwapStore | None = None,
    ) -> None:
        self._reader = reader
        self._price_feed = price_feed
        self._store = store
        self._hints: dict[str, LaunchHint] = {}
        self._listeners: list[SwapListener] = []
        self._triggers: list[TriggerCallback] = []
        self._subscription: ProgramSubscription | None = None
        self._running = False
        self.notifications = 0
        self.discarded = 0
        self.swaps_emitted = 0

    def add_listener(self, callback: SwapListener) -> None:
        self._listeners.append(callback)

    def add_trigger(self, callback: TriggerCallback) -> None:
        self._triggers.append(callback)

    def update_launch_hints(self, launches: Iterable[Launch]) -> None:
        """Replace the launch lookup table (address → mint, reserves)."""
        self._hints = {
            launch.address: LaunchHint(
                mint=launch.mint,
                virtual_sol_reserve=launch.virtual_sol_reserve,
                virtual_token_reserve=launch.virtual_token_reserve,
            )
            for launch in launches
        }
        logger.debug(f"[EVENTS] Lookup table holds {len(self._hints)} launches")

    def hint_for(self, launch_address: str) -> LaunchHint | None:
        return self._hints.get(launch_address)

    def _reference_price(self) -> Decimal | None:
        return self._price_feed.price if self._price_feed else None

    async def handle_logs(self, notification: LogNotification) -> list[SwapRecord]:
        """Process one transaction's logs. Returns the swaps emitted."""
        self.notifications += 1
        if notification.err is not None:
            self.discarded += 1
            logger.debug(f"[EVENTS] Skipping failed tx {notification.signature[:16]}")
            return []

        logs = notification.logs
        swaps: list[SwapRecord] = []
        events = parse_trade_events(logs)
        if events:
            block_time = None
            if notification.slot:
                block_time = await self._reader.get_block_time(notification.slot)
            reference = self._reference_price()
            for event in events:
                record = build_swap_record(
                    event,
                    signature=notification.signature,
                    slot=notification.slot,
                    block_time=block_time,
                    hint=self._hints.get(event.launch),
                    reference_price=reference,
                )
                await self._emit(record)
                swaps.append(record)

        for graduation in parse_graduation_events(logs):
            logger.info(
                f"[EVENTS] Launch {graduation.launch[:12]} graduated "
                f"to pool {graduation.orbit_pool[:12]} "
                f"(sol={graduation.sol_liquidity}, tokens={graduation.token_liquidity})"
            )

        kinds = classify_logs(logs)
        if kinds:
            await self._fire_triggers(kinds, notification.signature)
        return swaps

    async def _emit(self, record: SwapRecord) -> None:
        if self._store is not None:
            try:
                result = await self._store.insert(record)
            except Exception as e:
                logger.error(f"[EVENTS] Swap store error for {record.signature[:16]}: {e}")
                result = InsertResult.FAILED
            if result == InsertResult.FAILED:
                logger.warning(f"[EVENTS] Swap {record.signature[:16]} not persisted")
        self.swaps_emitted += 1
        logger.debug(
            f"[EVENTS] {record.swap_type.upper()} {record.launch_id[:12]} "
            f"sol={record.sol_amount} tokens={record.token_amount} price={record.price}"
        )
        for listener in list(self._listeners):
            try:
                await listener(record)
            except Exception as e:
                logger.error(f"[EVENTS] Swap listener error: {e}")

    async def _fire_triggers(self, kinds: set[InstructionKind], signature: str) -> None:
        for trigger in list(self._triggers):
            try:
                await trigger(kinds, signature)
            except Exception as e:
                logger.error(f"[EVENTS] Trigger error: {e}")

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        if self._price_feed is not None:
            self._price_feed.start()
        self._subscription = self._reader.watch_logs(self.handle_logs)
        logger.info("[EVENTS] Pipeline started")

    async def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            await subscription.stop()
        if self._price_feed is not None:
            await self._price_feed.stop()
        logger.info(
            f"[EVENTS] Pipeline stopped: {self.notifications} notifications, "
            f"{self.swaps_emitted} swaps, {self.discarded} failed txs"
        )
