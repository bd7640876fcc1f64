"""Reference SOL/USD price, refreshed in the background from Jupiter.

Holds one in-memory price. A failed refresh keeps the last known value;
until the first success the price is None and swaps carry no USD field.
"""

import asyncio
from decimal import Decimal, InvalidOperation

import httpx
from loguru import logger

# Wrapped SOL mint
WSOL_MINT = "So11111111111111111111111111111111111111112"
MAX_RETRIES = 2
RETRY_DELAYS = [1.0, 3.0]


class ReferencePriceFeed:
    """Polls a GET price endpoint on a fixed interval."""

    def __init__(
        self,
        url: str,
        *,
        mint: str = WSOL_MINT,
        api_key: str = "",
        interval: float = 60.0,
        stale_after: float = 600.0,
    ) -> None:
        self._url = url
        self._mint = mint
        self._interval = interval
        self._stale_after = stale_after
        headers: dict[str, str] = {}
        if api_key:
            headers["x-api-key"] = api_key
        self._client = httpx.AsyncClient(timeout=10.0, headers=headers)
        self._price: Decimal | None = None
        self._last_update = 0.0
        self._task: asyncio.Task | None = None

    @property
    def price(self) -> Decimal | None:
        return self._price

    def is_stale(self) -> bool:
        if self._last_update <= 0:
            return True
        return asyncio.get_running_loop().time() - self._last_update > self._stale_after

    async def refresh(self) -> Decimal | None:
        """Fetch once. Returns the new price, or None (last value kept)."""
        params = {"ids": self._mint}
        for attempt in range(MAX_RETRIES + 1):
            try:
                resp = await self._client.get(self._url, params=params)
                if resp.status_code == 429:
                    delay = RETRY_DELAYS[min(attempt, len(RETRY_DELAYS) - 1)]
                    logger.debug(f"[PRICE] Rate limited, waiting {delay}s")
                    await asyncio.sleep(delay)
                    continue
                if resp.status_code != 200:
                    logger.debug(f"[PRICE] HTTP {resp.status_code} from price source")
                    return None
                price = _parse_price(resp.json(), self._mint)
                if price is None:
                    logger.debug("[PRICE] Price source returned no usable price")
                    return None
                self._price = price
                self._last_update = asyncio.get_running_loop().time()
                logger.debug(f"[PRICE] SOL/USD updated: ${price:.2f}")
                return price
            except (httpx.TimeoutException, httpx.TransportError) as e:
                if attempt < MAX_RETRIES:
                    delay = RETRY_DELAYS[min(attempt, len(RETRY_DELAYS) - 1)]
                    logger.debug(f"[PRICE] {type(e).__name__}, retry in {delay}s")
                    await asyncio.sleep(delay)
                else:
                    logger.warning(f"[PRICE] Failed after {MAX_RETRIES + 1} attempts: {e}")
            except ValueError as e:
                logger.debug(f"[PRICE] Malformed price response: {e}")
                return None
        return None

    async def _loop(self) -> None:
        while True:
            await self.refresh()
            if self.is_stale() and self._price is not None:
                logger.warning(f"[PRICE] Stale, using cached: ${self._price:.2f}")
            await asyncio.sleep(self._interval)

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._loop())

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        await self._client.aclose()


def _parse_price(data: object, mint: str) -> Decimal | None:
    """Accept Jupiter's {"data": {mint: {"price": ...}}} or a bare {"price": ...}."""
    if not isinstance(data, dict):
        return None
    entry = data.get("data", {}).get(mint) if isinstance(data.get("data"), dict) else data
    if not isinstance(entry, dict) or entry.get("price") is None:
        return None
    try:
        price = Decimal(str(entry["price"]))
    except InvalidOperation:
        return None
    return price if price > 0 else None
