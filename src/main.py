"""Entry point for the launch indexer."""

import asyncio
import signal

from loguru import logger

from config.settings import settings
from src.chain.client import ChainReader
from src.db.database import create_engine, create_session_factory
from src.db.redis import create_redis
from src.events.pipeline import EventPipeline
from src.events.price_feed import ReferencePriceFeed
from src.events.store import SwapStore
from src.indexer.cache import CacheService
from src.indexer.indexer import LaunchIndexer
from src.utils.logger import setup_logger


async def run_indexer() -> None:
    """Build every component, wire them together and run until cancelled."""
    reader = ChainReader(
        settings.rpc_url,
        settings.program_id,
        settings.ws_url,
        commitment=settings.rpc_commitment,
        max_rps=settings.rpc_max_rps,
    )
    cache = CacheService(create_redis(settings.redis_url))
    await cache.connect()

    engine = None
    store = None
    if settings.enable_durable_write:
        engine = create_engine(settings.database_url)
        store = SwapStore(create_session_factory(engine))
        logger.info("[SWAPS] Durable swap writes enabled")

    price_feed = ReferencePriceFeed(
        settings.price_source_url,
        api_key=settings.jupiter_api_key,
        interval=settings.price_refresh_interval_sec,
    )
    pipeline = EventPipeline(reader, price_feed, store)
    indexer = LaunchIndexer(
        reader,
        cache,
        interval=settings.index_interval_sec,
        reindex_delay=settings.reindex_delay_sec,
        view_limit=settings.view_limit,
        recent_trades_limit=settings.recent_trades_limit,
        launches_ttl=settings.launches_ttl_sec,
        launch_ttl=settings.launch_ttl_sec,
        stats_ttl=settings.stats_ttl_sec,
        trades_ttl=settings.trades_ttl_sec,
        watch_accounts=settings.enable_account_watch,
    )

    # Indexer feeds the pipeline's lookup table; pipeline triggers re-indexing
    indexer.add_refresh_listener(pipeline.update_launch_hints)
    pipeline.add_trigger(indexer.handle_trigger)

    logger.info(f"Program {settings.program_id} via {settings.rpc_url.split('?')[0]}")
    try:
        await indexer.start()
        await pipeline.start()
        await asyncio.Event().wait()
    finally:
        await pipeline.stop()
        await indexer.stop()
        await reader.close()
        await cache.close()
        if engine is not None:
            await engine.dispose()


async def main() -> None:
    setup_logger(json_logs=settings.json_logs, level=settings.log_level)
    logger.info("Starting launch indexer...")

    # Graceful shutdown on SIGINT/SIGTERM
    loop = asyncio.get_running_loop()
    shutdown_event = asyncio.Event()

    def _signal_handler() -> None:
        logger.info("Shutdown signal received")
        shutdown_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _signal_handler)

    indexer_task = asyncio.create_task(run_indexer())

    done, pending = await asyncio.wait(
        [indexer_task, asyncio.create_task(shutdown_event.wait())],
        return_when=asyncio.FIRST_COMPLETED,
    )

    for task in pending:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    for task in done:
        if task is indexer_task and task.exception() is not None:
            logger.error(f"Indexer crashed: {task.exception()}")

    logger.info("Shutdown complete")


if __name__ == "__main__":
    asyncio.run(main())
