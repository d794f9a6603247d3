"""Shared setup logic for CLI commands."""

from __future__ import annotations

import asyncio
import sys
from collections.abc import Coroutine
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, NoReturn

import click

from clubinvest.core.exceptions import ClubInvestError

CLUBINVEST_DIR = Path.home() / ".clubinvest"
CONFIG_PATH = CLUBINVEST_DIR / "config.yaml"
BREAKER_STATE_FILE = "price_breaker.json"

live_option = click.option("--live", is_flag=True, help="Fetch missing quotes from the configured provider.")


def load_config(config_path: str | None = None, data_dir: str | None = None):
    """Load config from the given file (default ~/.clubinvest/config.yaml)."""
    from clubinvest.core.config import Config

    return Config(config_file=config_path or str(CONFIG_PATH), data_dir=data_dir)


def fail(error: Exception) -> NoReturn:
    click.echo(f"Error: {error}", err=True)
    sys.exit(1)


def create_service(config):
    """Build a ClubService over the JSON ledger configured in *config*.

    Creates the configured data directories on first use.
    """
    from clubinvest.fund.currency import CurrencyConverter
    from clubinvest.ledger import ClubService, JsonLedgerStore

    try:
        settings = config.validated()
        config.ensure_directories()
    except ClubInvestError as e:
        fail(e)
    except OSError as e:
        fail(f"Cannot create data directories: {e}")

    converter = CurrencyConverter(rates=settings.currency.rate_table() or None, strict=settings.currency.strict)
    ledger_dir = settings.paths.ledger_dir or Path(config.get_data_dir()) / "ledger"
    return ClubService(JsonLedgerStore(base_path=str(ledger_dir)), converter=converter)


def parse_prices(pairs: tuple[str, ...]) -> dict[str, Decimal]:
    """Parse repeated ``TICKER=PRICE`` options."""
    prices: dict[str, Decimal] = {}
    for pair in pairs:
        ticker, sep, raw = pair.partition("=")
        if not sep or not ticker.strip():
            raise click.BadParameter(f"expected TICKER=PRICE, got {pair!r}", param_hint="--price")
        try:
            prices[ticker.strip().upper()] = Decimal(raw.strip())
        except InvalidOperation as e:
            raise click.BadParameter(f"invalid price in {pair!r}", param_hint="--price") from e
    return prices


def breaker_state_path(config) -> Path:
    state_dir = config.get("paths.state_dir") or str(Path(config.get_data_dir()) / "state")
    return Path(state_dir).expanduser() / BREAKER_STATE_FILE


async def resolve_prices(config, service, club_id: str, manual: dict[str, Decimal], live: bool) -> dict[str, Decimal]:
    """Manual prices, topped up from the configured oracle when *live* is set.

    The provider's circuit breaker is loaded from and saved back to the
    state directory, so a failing provider stays paused between commands.
    """
    if not live:
        return manual
    from clubinvest.prices import CircuitBreakerConfig, create_oracle, fetch_prices, load_breaker, save_breaker

    settings = config.validated().prices
    oracle = create_oracle(settings.provider, api_key=settings.api_key, timeout=settings.timeout)
    state_path = breaker_state_path(config)
    breaker = await load_breaker(
        state_path,
        CircuitBreakerConfig(failure_threshold=settings.breaker_threshold, open_duration=settings.breaker_cooldown),
    )

    assets = await service.store.load_assets(club_id)
    fetched = await fetch_prices(oracle, [a.ticker for a in assets if a.ticker not in manual], breaker=breaker)
    await save_breaker(breaker, state_path)
    return {**fetched, **manual}


def run(coro: Coroutine[Any, Any, Any]) -> Any:
    """Run *coro*, turning library errors into a clean exit."""
    try:
        return asyncio.run(coro)
    except ClubInvestError as e:
        fail(e)
