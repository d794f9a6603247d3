"""Market price oracles.

An oracle answers ``get_price(ticker)`` with the latest quote, or
``Decimal(0)`` when it has none. Zero is a failure sentinel, never a real
valuation: the valuation engine falls back to average cost for it.
"""

from __future__ import annotations

import json
import urllib.error
import urllib.parse
import urllib.request
from decimal import Decimal, InvalidOperation
from typing import Any, Protocol, runtime_checkable

from loguru import logger

from clubinvest.core.exceptions import ConfigurationError, PriceOracleError

DEFAULT_API_BASE = "https://api.twelvedata.com"
NO_PRICE = Decimal(0)


@runtime_checkable
class PriceOracle(Protocol):
    """Anything that can quote a ticker."""

    name: str

    def get_price(self, ticker: str) -> Decimal: ...


class StaticPriceOracle:
    """Quotes from a fixed table. Unknown tickers quote as NO_PRICE."""

    name = "static"

    def __init__(self, prices: dict[str, Decimal | float | str] | None = None):
        self._prices = {k.strip().upper(): Decimal(str(v)) for k, v in (prices or {}).items()}

    def set_price(self, ticker: str, price: Decimal | float | str) -> None:
        self._prices[ticker.strip().upper()] = Decimal(str(price))

    def get_price(self, ticker: str) -> Decimal:
        return self._prices.get(ticker.strip().upper(), NO_PRICE)


class TwelveDataPriceOracle:
    """Twelve Data ``/price`` endpoint over plain HTTP.

    Never raises for a bad quote: rate limits, unknown symbols, malformed
    bodies and network errors all quote as NO_PRICE with a warning.
    """

    name = "twelvedata"

    def __init__(self, api_key: str, timeout: int = 10, api_base: str = DEFAULT_API_BASE):
        if not api_key:
            raise ValueError("api_key is required")
        self.api_key = api_key
        self.timeout = timeout
        self.api_base = api_base.rstrip("/")

    def _request(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        query = urllib.parse.urlencode({**params, "apikey": self.api_key})
        url = f"{self.api_base}/{path.lstrip('/')}?{query}"
        req = urllib.request.Request(url=url, method="GET", headers={"Accept": "application/json"})
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                raw = resp.read()
        except urllib.error.HTTPError as e:
            body = e.read().decode("utf-8", errors="ignore") if hasattr(e, "read") else ""
            raise PriceOracleError(f"Twelve Data API {e.code}: {body or e.reason}") from e
        except (urllib.error.URLError, TimeoutError) as e:
            raise PriceOracleError(f"Twelve Data request failed: {e}") from e

        try:
            data = json.loads(raw.decode("utf-8", errors="ignore"))
        except json.JSONDecodeError as e:
            raise PriceOracleError(f"Twelve Data returned non-JSON body: {raw[:200]!r}") from e
        if not isinstance(data, dict):
            raise PriceOracleError(f"Unexpected Twelve Data payload: {data!r}")
        return data

    def get_price(self, ticker: str) -> Decimal:
        symbol = ticker.strip().upper()
        try:
            data = self._request("/price", {"symbol": symbol})
        except PriceOracleError as e:
            logger.error(f"Price lookup for {symbol} failed: {e}")
            return NO_PRICE

        raw_price = data.get("price")
        if raw_price:
            try:
                price = Decimal(str(raw_price))
            except InvalidOperation:
                logger.warning(f"Unparseable price for {symbol}: {raw_price!r}")
                return NO_PRICE
            return price if price.is_finite() and price > 0 else NO_PRICE

        if data.get("code") == 429:
            logger.warning(f"Twelve Data rate limit reached while quoting {symbol}")
        else:
            logger.warning(f"No price for {symbol}: {data}")
        return NO_PRICE


def create_oracle(provider: str, api_key: str = "", timeout: int = 10) -> PriceOracle:
    """Build the oracle named by config ``prices.provider``.

    Raises:
        ConfigurationError: For an unknown provider, or twelvedata without an API key.
    """
    if provider == "twelvedata":
        if not api_key:
            raise ConfigurationError("prices.api_key is required for provider twelvedata (CLUBINVEST_PRICES__API_KEY)")
        return TwelveDataPriceOracle(api_key=api_key, timeout=timeout)
    if provider == "static":
        return StaticPriceOracle()
    raise ConfigurationError(f"Unknown price provider: {provider!r}")
