"""Tests for clubinvest.fund.models."""

from dataclasses import FrozenInstanceError, replace
from decimal import Decimal

import pytest

from clubinvest.core.exceptions import InvalidName, LedgerError
from clubinvest.fund.currency import Currency
from clubinvest.fund.models import Asset, Club, Member, Role, Transaction, TransactionType


class TestClub:
    def test_defaults(self):
        club = Club(id="c", name="Club", invite_code="ABCDEF")
        assert club.currency == Currency.EUR
        assert club.cash_balance == Decimal(0)
        assert club.total_shares == Decimal(0)
        assert club.tax_liability == Decimal(0)
        assert club.version == 0

    def test_auto_convert_to_decimal(self):
        club = Club(id="c", name="Club", invite_code="ABCDEF", cash_balance=1500.5, total_shares="15")
        assert isinstance(club.cash_balance, Decimal)
        assert club.cash_balance == Decimal("1500.5")
        assert club.total_shares == Decimal("15")

    def test_currency_from_string(self):
        club = Club(id="c", name="Club", invite_code="ABCDEF", currency="USD")
        assert club.currency is Currency.USD

    def test_empty_name_raises(self):
        with pytest.raises(ValueError, match="cannot be empty"):
            Club(id="c", name="", invite_code="ABCDEF")

    def test_blank_name_is_a_ledger_error(self):
        with pytest.raises(InvalidName):
            Club(id="c", name="   ", invite_code="ABCDEF")
        assert issubclass(InvalidName, LedgerError)

    def test_frozen(self, club):
        with pytest.raises(FrozenInstanceError):
            club.cash_balance = Decimal("1")

    def test_replace_returns_new_instance(self, club):
        richer = replace(club, cash_balance=club.cash_balance + 1)
        assert richer.cash_balance == Decimal("10001")
        assert club.cash_balance == Decimal("10000")


class TestMember:
    def test_average_cost(self, member):
        assert member.average_cost == Decimal("100")

    def test_average_cost_without_shares(self):
        m = Member(id="m", user_id="u", club_id="c", total_invested_fiat=Decimal("500"))
        assert m.average_cost == Decimal(0)

    def test_role_from_string(self):
        m = Member(id="m", user_id="u", club_id="c", role="admin")
        assert m.role is Role.ADMIN
        assert m.is_admin

    def test_default_role_is_member(self):
        assert not Member(id="m", user_id="u", club_id="c").is_admin


class TestAsset:
    def test_cost_basis(self):
        asset = Asset(id="a", club_id="c", ticker="MSFT", quantity=4, avg_buy_price="250.5")
        assert asset.cost_basis == Decimal("1002.0")
        assert asset.currency is Currency.USD


class TestTransaction:
    def test_ids_are_unique(self):
        t1 = Transaction(club_id="c", type="DEPOSIT", amount_fiat=10)
        t2 = Transaction(club_id="c", type="DEPOSIT", amount_fiat=10)
        assert t1.id != t2.id

    def test_coercion(self):
        tx = Transaction(club_id="c", type="SELL", amount_fiat=10, realized_gain=2.5)
        assert tx.type is TransactionType.SELL
        assert tx.realized_gain == Decimal("2.5")
        assert tx.tax_estimate is None
