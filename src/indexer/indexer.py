"""Launch indexer: keeps TTL-scoped snapshots of protocol state in the cache.

A full refresh runs at startup and on a fixed interval. State-changing
transactions seen by the event pipeline (or account updates) schedule an
extra refresh after a short delay so the originating transaction has
settled. Only one refresh runs at a time; callers arriving while one is in
flight wait for it instead of starting another.

Views are written as independent cache entries, so a reader may briefly see
a fresh ``launches:recent`` next to an older ``launches:trending``.
"""

import asyncio
import time
from collections.abc import Callable, Iterable
from typing import Any

from loguru import logger
from pydantic import BaseModel, ConfigDict

from src.chain.client import ChainReader
from src.chain.models import AccountChange, BigInt, Launch, LaunchStatus, ProtocolConfig, UserPosition
from src.chain.subscriptions import ProgramSubscription
from src.events.models import InstructionKind, SwapRecord
from src.events.normalize import swaps_from_transactions
from src.indexer.cache import CacheService

KEY_ALL = "launches:all"
KEY_TRENDING = "launches:trending"
KEY_RECENT = "launches:recent"
KEY_GRADUATED = "launches:graduated"
KEY_STATS = "stats:global"


def launch_key(address: str) -> str:
    return f"launch:{address}"


def trades_key(address: str) -> str:
    return f"trades:{address}"


RefreshListener = Callable[[list[Launch]], Any]

_OPEN_STATUSES = (LaunchStatus.ACTIVE, LaunchStatus.PENDING_GRADUATION)


def _to_camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


class GlobalStats(BaseModel):
    model_config = ConfigDict(alias_generator=_to_camel, populate_by_name=True)

    total_launches: int = 0
    active_launches: int = 0
    graduated_launches: int = 0
    total_volume: BigInt = 0  # summed real SOL reserves, lamports
    total_trades: BigInt = 0
    total_holders: int = 0


class IndexerState(BaseModel):
    is_running: bool
    launch_count: int
    trade_count: int
    refresh_count: int
    last_refresh_at: float | None


def trending_view(launches: Iterable[Launch], limit: int = 20) -> list[Launch]:
    """Open launches by real SOL reserve, highest first."""
    open_launches = [ln for ln in launches if ln.status in _OPEN_STATUSES]
    return sorted(open_launches, key=lambda ln: ln.real_sol_reserve, reverse=True)[:limit]


def recent_view(launches: Iterable[Launch], limit: int = 20) -> list[Launch]:
    return sorted(launches, key=lambda ln: ln.created_at, reverse=True)[:limit]


def graduated_view(launches: Iterable[Launch]) -> list[Launch]:
    return [ln for ln in launches if ln.status == LaunchStatus.GRADUATED]


def compute_stats(launches: list[Launch]) -> GlobalStats:
    return GlobalStats(
        total_launches=len(launches),
        active_launches=sum(1 for ln in launches if ln.status == LaunchStatus.ACTIVE),
        graduated_launches=sum(1 for ln in launches if ln.status == LaunchStatus.GRADUATED),
        total_volume=sum(ln.real_sol_reserve for ln in launches),
        total_trades=sum(ln.trade_count for ln in launches),
        total_holders=sum(ln.holder_count for ln in launches),
    )


def matches_query(launch: Launch, query: str) -> bool:
    needle = query.lower()
    return any(
        needle in field.lower()
        for field in (launch.name, launch.symbol, launch.mint, launch.address)
    )


def _dump(launches: Iterable[Launch]) -> list[dict]:
    return [ln.model_dump(mode="json") for ln in launches]


def _load(raw: Any) -> list[Launch] | None:
    if not isinstance(raw, list):
        return None
    return [Launch.model_validate(item) for item in raw]


class LaunchIndexer:
    def __init__(
        self,
        reader: ChainReader,
        cache: CacheService,
        *,
        interval: float = 30.0,
        reindex_delay: float = 2.0,
        view_limit: int = 20,
        recent_trades_limit: int = 50,
        launches_ttl: float = 30.0,
        launch_ttl: float = 10.0,
        stats_ttl: float = 60.0,
        trades_ttl: float = 15.0,
        watch_accounts: bool = False,
    ) -> None:
        self._reader = reader
        self._cache = cache
        self._interval = interval
        self._reindex_delay = reindex_delay
        self._view_limit = view_limit
        self._recent_trades_limit = recent_trades_limit
        self._launches_ttl = launches_ttl
        self._launch_ttl = launch_ttl
        self._stats_ttl = stats_ttl
        self._trades_ttl = trades_ttl
        self._watch_accounts = watch_accounts

        self._running = False
        self._loop_task: asyncio.Task | None = None
        self._refresh_task: asyncio.Task | None = None
        self._scheduled_task: asyncio.Task | None = None
        self._reindex_pending = False
        self._account_sub: ProgramSubscription | None = None
        self._refresh_listeners: list[RefreshListener] = []
        # Last record accepted per launch address; guards against status regressions
        self._seen: dict[str, Launch] = {}

        self._launch_count = 0
        self._trade_count = 0
        self._refresh_count = 0
        self._last_refresh_at: float | None = None

    # --- Lifecycle ---

    @property
    def state(self) -> IndexerState:
        return IndexerState(
            is_running=self._running,
            launch_count=self._launch_count,
            trade_count=self._trade_count,
            refresh_count=self._refresh_count,
            last_refresh_at=self._last_refresh_at,
        )

    def add_refresh_listener(self, callback: RefreshListener) -> None:
        self._refresh_listeners.append(callback)

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        logger.info(f"[INDEXER] Starting (interval={self._interval}s, delay={self._reindex_delay}s)")
        await self.refresh_all()
        if self._watch_accounts:
            self._account_sub = self._reader.watch_account(self.handle_account_change)
        self._loop_task = asyncio.create_task(self._periodic())

    async def stop(self) -> None:
        """Cancel timers and subscriptions. Safe to call more than once."""
        if not self._running:
            return
        self._running = False

        sub, self._account_sub = self._account_sub, None
        if sub is not None:
            await sub.stop()

        for name in ("_loop_task", "_scheduled_task", "_refresh_task"):
            task = getattr(self, name)
            setattr(self, name, None)
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        logger.info(f"[INDEXER] Stopped after {self._refresh_count} refreshes")

    async def _periodic(self) -> None:
        while self._running:
            await asyncio.sleep(self._interval)
            await self.refresh_all()

    # --- Refresh ---

    async def refresh_all(self) -> list[Launch] | None:
        """Run one full refresh, or join the one already in flight."""
        task = self._refresh_task
        if task is None or task.done():
            task = asyncio.create_task(self._do_refresh())
            self._refresh_task = task
        return await asyncio.shield(task)

    async def _do_refresh(self) -> list[Launch] | None:
        try:
            fetched = await self._reader.fetch_all_launches()
            if fetched is None:
                logger.warning("[INDEXER] Launch fetch failed, keeping cached snapshot")
                return None
            launches = self._apply_monotonic(fetched)
            if not launches:
                logger.warning("[INDEXER] Found 0 launches on-chain, check PROGRAM_ID and RPC url")

            await self._cache.set_json(KEY_ALL, _dump(launches), self._launches_ttl)
            for launch in launches:
                await self._cache.set_json(
                    launch_key(launch.address), launch.model_dump(mode="json"), self._launch_ttl
                )
            await self._cache.set_json(
                KEY_TRENDING, _dump(trending_view(launches, self._view_limit)), self._launches_ttl
            )
            await self._cache.set_json(
                KEY_RECENT, _dump(recent_view(launches, self._view_limit)), self._launches_ttl
            )
            await self._cache.set_json(
                KEY_GRADUATED, _dump(graduated_view(launches)), self._launches_ttl
            )
            stats = compute_stats(launches)
            await self._cache.set_json(
                KEY_STATS, stats.model_dump(mode="json", by_alias=True), self._stats_ttl
            )
        except Exception as e:
            logger.error(f"[INDEXER] Refresh cycle failed: {type(e).__name__}: {e}")
            return None

        self._launch_count = len(launches)
        self._refresh_count += 1
        self._last_refresh_at = time.time()
        logger.debug(f"[INDEXER] Indexed {len(launches)} launches")

        for listener in list(self._refresh_listeners):
            try:
                result = listener(launches)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.error(f"[INDEXER] Refresh listener error: {e}")
        return launches

    def _apply_monotonic(self, launches: list[Launch]) -> list[Launch]:
        """Keep the previous record for any launch whose status moved backwards."""
        accepted: list[Launch] = []
        for launch in launches:
            previous = self._seen.get(launch.address)
            if previous is not None and not previous.status.can_transition_to(launch.status):
                logger.warning(
                    f"[INDEXER] Status regression for {launch.address[:12]}: "
                    f"{previous.status.label} -> {launch.status.label}, keeping previous"
                )
                accepted.append(previous)
                continue
            self._seen[launch.address] = launch
            accepted.append(launch)
        return accepted

    def schedule_refresh(self, reason: str = "trigger") -> bool:
        """Refresh after ``reindex_delay``. Returns False if one is already pending."""
        if self._reindex_pending:
            logger.debug(f"[INDEXER] Re-index already pending, coalescing {reason}")
            return False
        self._reindex_pending = True
        self._scheduled_task = asyncio.create_task(self._delayed_refresh(reason))
        return True

    async def _delayed_refresh(self, reason: str) -> None:
        try:
            await asyncio.sleep(self._reindex_delay)
        finally:
            self._reindex_pending = False
        # An in-flight fetch may predate the trigger: let it finish, then fetch again
        in_flight = self._refresh_task
        if in_flight is not None and not in_flight.done():
            await asyncio.shield(in_flight)
        logger.debug(f"[INDEXER] Re-indexing after {reason}")
        await self.refresh_all()

    async def handle_trigger(self, kinds: set[InstructionKind], signature: str) -> None:
        """Pipeline trigger: state-changing instructions were seen in ``signature``."""
        if InstructionKind.TRADE in kinds:
            self._trade_count += 1
        reason = ",".join(sorted(k.value for k in kinds))
        logger.debug(f"[INDEXER] {reason} in {signature[:16]}")
        self.schedule_refresh(reason)

    async def handle_account_change(self, change: AccountChange) -> None:
        if change.kind != "launch" or change.launch is None:
            return
        previous = self._seen.get(change.address)
        if previous is None:
            logger.info(f"[INDEXER] New launch account {change.address[:12]}")
            self.schedule_refresh("new launch")
        elif previous.status != change.launch.status:
            logger.info(
                f"[INDEXER] {change.address[:12]} status "
                f"{previous.status.label} -> {change.launch.status.label}"
            )
            self.schedule_refresh("status change")

    # --- Accessors ---

    async def get_all_launches(self) -> list[Launch]:
        cached = _load(await self._cache.get_json(KEY_ALL))
        if cached is not None:
            return cached
        fetched = await self._reader.fetch_all_launches()
        if fetched is None:
            return []
        launches = self._apply_monotonic(fetched)
        await self._cache.set_json(KEY_ALL, _dump(launches), self._launches_ttl)
        return launches

    async def _view(self, key: str, derive: Callable[[list[Launch]], list[Launch]]) -> list[Launch]:
        cached = _load(await self._cache.get_json(key))
        if cached is not None:
            return cached
        view = derive(await self.get_all_launches())
        await self._cache.set_json(key, _dump(view), self._launches_ttl)
        return view

    async def get_trending_launches(self) -> list[Launch]:
        return await self._view(KEY_TRENDING, lambda ls: trending_view(ls, self._view_limit))

    async def get_recent_launches(self) -> list[Launch]:
        return await self._view(KEY_RECENT, lambda ls: recent_view(ls, self._view_limit))

    async def get_graduated_launches(self) -> list[Launch]:
        return await self._view(KEY_GRADUATED, graduated_view)

    async def get_launch(self, address: str) -> Launch | None:
        cached = await self._cache.get_json(launch_key(address))
        if cached is not None:
            return Launch.model_validate(cached)
        launch = await self._reader.get_launch(address)
        if launch is not None:
            launch = self._apply_monotonic([launch])[0]
            await self._cache.set_json(
                launch_key(address), launch.model_dump(mode="json"), self._launch_ttl
            )
        return launch

    async def get_global_stats(self) -> GlobalStats:
        cached = await self._cache.get_json(KEY_STATS)
        if cached is not None:
            return GlobalStats.model_validate(cached)
        stats = compute_stats(await self.get_all_launches())
        await self._cache.set_json(
            KEY_STATS, stats.model_dump(mode="json", by_alias=True), self._stats_ttl
        )
        return stats

    async def search_launches(self, query: str) -> list[Launch]:
        if not query:
            return []
        return [ln for ln in await self.get_all_launches() if matches_query(ln, query)]

    async def get_recent_trades(self, address: str, limit: int | None = None) -> list[SwapRecord]:
        limit = limit or self._recent_trades_limit
        cached = await self._cache.get_json(trades_key(address))
        if isinstance(cached, list):
            return [SwapRecord.model_validate(item) for item in cached][:limit]
        transactions = await self._reader.get_recent_transactions(address, limit)
        trades = swaps_from_transactions(transactions, address)
        trades.sort(key=lambda t: t.block_time, reverse=True)
        await self._cache.set_json(
            trades_key(address), [t.model_dump(mode="json") for t in trades], self._trades_ttl
        )
        return trades

    async def get_user_positions(self, user: str) -> list[UserPosition]:
        return await self._reader.get_user_positions(user)

    async def get_config(self) -> ProtocolConfig | None:
        return await self._reader.get_config()
