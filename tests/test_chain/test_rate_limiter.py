"""Tests for the RPC rate limiter."""

import asyncio

import pytest

from src.chain.rate_limiter import RateLimiter


@pytest.mark.asyncio
async def test_spaces_requests() -> None:
    limiter = RateLimiter(max_rps=50)
    loop = asyncio.get_running_loop()
    start = loop.time()
    for _ in range(3):
        await limiter.acquire()
    assert loop.time() - start >= 0.035


@pytest.mark.asyncio
async def test_zero_disables_limit() -> None:
    limiter = RateLimiter(max_rps=0)
    loop = asyncio.get_running_loop()
    start = loop.time()
    for _ in range(100):
        await limiter.acquire()
    assert loop.time() - start < 0.5
