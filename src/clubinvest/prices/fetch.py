"""Resolve a price map for a set of holdings.

Oracles are blocking, so each lookup runs in a worker thread. Tickers the
oracle could not quote are left out of the map; the valuation engine then
values them at cost.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from decimal import Decimal

from loguru import logger

from .breaker import CircuitBreaker
from .oracle import PriceOracle


async def fetch_prices(
    oracle: PriceOracle,
    tickers: Iterable[str],
    breaker: CircuitBreaker | None = None,
) -> dict[str, Decimal]:
    """Quote every distinct ticker, one request at a time."""
    prices: dict[str, Decimal] = {}
    for ticker in dict.fromkeys(tickers):
        if breaker is not None and not breaker.is_available(oracle.name):
            logger.warning(f"Price provider {oracle.name} circuit open; skipping remaining quotes")
            break
        price = await asyncio.to_thread(oracle.get_price, ticker)
        ok = price > 0
        if breaker is not None:
            breaker.record(oracle.name, success=ok)
        if ok:
            prices[ticker] = price
    return prices
