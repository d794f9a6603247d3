"""Shared test fixtures for clubinvest."""

import os
import tempfile
from decimal import Decimal

import pytest

from clubinvest.fund.models import Asset, Club, Member, Role
from clubinvest.ledger import ClubService, InMemoryLedgerStore


@pytest.fixture
def tmp_dir():
    """Provide a temporary directory that is cleaned up after the test."""
    with tempfile.TemporaryDirectory() as d:
        yield d


@pytest.fixture
def tmp_config_file(tmp_dir):
    """Create a temporary YAML config file."""
    import yaml

    config_data = {
        "paths": {
            "data_dir": os.path.join(tmp_dir, "data"),
            "ledger_dir": os.path.join(tmp_dir, "data", "ledger"),
        },
        "fund": {"default_currency": "USD"},
        "currency": {"rates": {"USD-EUR": "0.9", "EUR-USD": "1.1"}},
    }
    config_path = os.path.join(tmp_dir, "config.yaml")
    with open(config_path, "w") as f:
        yaml.dump(config_data, f)
    return config_path


@pytest.fixture
def club():
    """An EUR club with 10 000 cash, 100 shares outstanding and no tax owed."""
    return Club(
        id="club-1",
        name="Les Investisseurs",
        invite_code="ABC234",
        currency="EUR",
        cash_balance=Decimal("10000"),
        total_shares=Decimal("100"),
    )


@pytest.fixture
def admin(club):
    return Member(
        id="m-admin",
        user_id="u-admin",
        club_id=club.id,
        full_name="Alice",
        role=Role.ADMIN,
        shares_owned=Decimal("60"),
        total_invested_fiat=Decimal("6000"),
    )


@pytest.fixture
def member(club):
    return Member(
        id="m-bob",
        user_id="u-bob",
        club_id=club.id,
        full_name="Bob",
        shares_owned=Decimal("40"),
        total_invested_fiat=Decimal("4000"),
    )


@pytest.fixture
def make_asset():
    """Factory for Assets with sensible defaults."""

    def _make(ticker="AAPL", quantity="10", avg_buy_price="100", currency="EUR", club_id="club-1"):
        return Asset(
            id=f"a-{ticker.lower()}",
            club_id=club_id,
            ticker=ticker,
            quantity=Decimal(quantity),
            avg_buy_price=Decimal(avg_buy_price),
            currency=currency,
        )

    return _make


@pytest.fixture
def store():
    return InMemoryLedgerStore()


@pytest.fixture
def service(store):
    return ClubService(store)
