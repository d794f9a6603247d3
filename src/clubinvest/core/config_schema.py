"""Pydantic models for config validation.

Opt-in schema validation for ``Config.config_data``.  Call
``Config.validated()`` to obtain a typed, validated ``ClubInvestConfig``
instance.  Dict-based access continues to work unchanged.
"""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from clubinvest.fund.currency import Currency


class PathsConfig(BaseModel):
    """File-system paths used by the application."""

    data_dir: Path
    ledger_dir: Path | None = None
    log_dir: Path | None = None
    state_dir: Path | None = None

    @field_validator("data_dir", "ledger_dir", "log_dir", "state_dir", mode="before")
    @classmethod
    def _expand_user(cls, v: Any) -> Any:
        if isinstance(v, str):
            return Path(v).expanduser()
        if isinstance(v, Path):
            return v.expanduser()
        return v


class FundConfig(BaseModel):
    """Defaults applied when a club is created."""

    default_currency: Currency = Currency.EUR


class CurrencyConfig(BaseModel):
    """Fixed conversion table, keyed ``"FROM-TO"``."""

    strict: bool = False
    rates: dict[str, Decimal] = {}

    @field_validator("rates")
    @classmethod
    def _check_pairs(cls, v: dict[str, Decimal]) -> dict[str, Decimal]:
        for key, rate in v.items():
            parts = key.split("-")
            if len(parts) != 2 or not all(parts):
                raise ValueError(f"rate key {key!r} must look like 'USD-EUR'")
            for code in parts:
                Currency(code)
            if rate <= 0:
                raise ValueError(f"rate for {key} must be positive, got {rate}")
        return v

    def rate_table(self) -> dict[tuple[Currency, Currency], Decimal]:
        table: dict[tuple[Currency, Currency], Decimal] = {}
        for key, rate in self.rates.items():
            src, dst = key.split("-")
            table[(Currency(src), Currency(dst))] = rate
        return table


class PricesConfig(BaseModel):
    """Market price provider settings."""

    provider: str = "twelvedata"
    api_key: str = ""
    timeout: int = 10
    breaker_threshold: int = Field(default=3, ge=1)
    breaker_cooldown: float = Field(default=300.0, ge=0)


class LoggingConfig(BaseModel):
    level: str = "WARNING"
    file: str = ""


class ClubInvestConfig(BaseModel):
    """Root configuration model.

    Uses ``extra="allow"`` so deployments can bolt on custom sections
    without touching this schema.
    """

    model_config = ConfigDict(extra="allow")

    paths: PathsConfig = PathsConfig(data_dir=Path("~/.clubinvest-data"))
    fund: FundConfig = FundConfig()
    currency: CurrencyConfig = CurrencyConfig()
    prices: PricesConfig = PricesConfig()
    logging: LoggingConfig = LoggingConfig()
