"""Market price oracles and price-map resolution."""

from .breaker import CircuitBreaker, CircuitBreakerConfig, load_breaker, save_breaker
from .fetch import fetch_prices
from .oracle import NO_PRICE, PriceOracle, StaticPriceOracle, TwelveDataPriceOracle, create_oracle

__all__ = [
    "NO_PRICE",
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "PriceOracle",
    "StaticPriceOracle",
    "TwelveDataPriceOracle",
    "create_oracle",
    "fetch_prices",
    "load_breaker",
    "save_breaker",
]
