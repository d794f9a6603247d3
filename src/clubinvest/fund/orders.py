"""
Order execution against fund cash.

Buying deducts the converted cost from cash and blends the new lot into
the holding's weighted-average price (in the asset's own currency).
Selling credits the converted revenue, accrues the flat sell-gain tax on
a positive realized gain, and removes the holding once nothing is left.

Both operations are all-or-nothing: every precondition is checked before
any new state is built, and the inputs are never mutated.
"""

from collections.abc import Sequence
from dataclasses import dataclass, replace
from decimal import Decimal

from loguru import logger

from clubinvest.core.exceptions import InsufficientFunds, InsufficientHoldings
from clubinvest.core.types import Numeric

from .checks import normalize_ticker, require_positive
from .constants import SELL_GAIN_TAX_RATE
from .currency import Currency, CurrencyConverter, get_default_converter
from .models import Asset, Club, Member, Transaction, TransactionType, _new_id


@dataclass(frozen=True)
class OrderResult:
    """New club and holdings after an order, plus its ledger entry."""

    club: Club
    assets: list[Asset]
    transaction: Transaction

    @property
    def tax_accrued(self) -> Decimal:
        """Tax provisioned by this order (non-zero only for a profitable sell)."""
        return self.transaction.tax_estimate or Decimal(0)


def _find(assets: Sequence[Asset], ticker: str) -> int:
    for i, asset in enumerate(assets):
        if asset.ticker == ticker:
            return i
    return -1


def execute_buy(
    club: Club,
    assets: Sequence[Asset],
    ticker: str,
    quantity: Numeric,
    price_per_share: Numeric,
    price_currency: Currency | str,
    acting_member: Member,
    converter: CurrencyConverter | None = None,
) -> OrderResult:
    """Buy *quantity* units of *ticker* at *price_per_share*.

    Raises:
        InvalidAmount: quantity or price is not a positive finite number.
        InsufficientFunds: the converted cost exceeds the club's cash.
    """
    converter = converter or get_default_converter()
    ticker = normalize_ticker(ticker)
    qty = require_positive("quantity", quantity)
    price = require_positive("price", price_per_share)
    price_currency = Currency(price_currency)

    cost_native = qty * price
    cost = converter.convert(cost_native, price_currency, club.currency)

    if club.cash_balance < cost:
        raise InsufficientFunds(required=cost, available=club.cash_balance, currency=club.currency)

    updated_club = replace(club, cash_balance=club.cash_balance - cost)

    updated_assets = list(assets)
    index = _find(updated_assets, ticker)
    if index >= 0:
        held = updated_assets[index]
        new_qty = held.quantity + qty
        new_avg = (held.quantity * held.avg_buy_price + cost_native) / new_qty
        updated_assets[index] = replace(held, quantity=new_qty, avg_buy_price=new_avg)
    else:
        updated_assets.append(
            Asset(
                id=_new_id(),
                club_id=club.id,
                ticker=ticker,
                quantity=qty,
                avg_buy_price=price,
                currency=price_currency,
            )
        )

    transaction = Transaction(
        club_id=club.id,
        user_id=acting_member.user_id,
        type=TransactionType.BUY,
        amount_fiat=cost,
        asset_ticker=ticker,
        price_at_transaction=price,
    )
    logger.debug(f"BUY {qty} {ticker} @ {price} {price_currency} for club {club.id}: cost {cost} {club.currency}")
    return OrderResult(club=updated_club, assets=updated_assets, transaction=transaction)


def execute_sell(
    club: Club,
    assets: Sequence[Asset],
    ticker: str,
    quantity: Numeric,
    price_per_share: Numeric,
    price_currency: Currency | str,
    acting_member: Member,
    converter: CurrencyConverter | None = None,
) -> OrderResult:
    """Sell *quantity* units of *ticker* at *price_per_share*.

    Selling never changes the average cost of what remains.

    Raises:
        InvalidAmount: quantity or price is not a positive finite number.
        InsufficientHoldings: the ticker isn't held or not in that quantity.
    """
    converter = converter or get_default_converter()
    ticker = normalize_ticker(ticker)
    qty = require_positive("quantity", quantity)
    price = require_positive("price", price_per_share)
    price_currency = Currency(price_currency)

    index = _find(assets, ticker)
    held_qty = assets[index].quantity if index >= 0 else Decimal(0)
    if index < 0 or held_qty < qty:
        raise InsufficientHoldings(ticker, held=held_qty, requested=qty)
    asset = assets[index]

    revenue = converter.convert(qty * price, price_currency, club.currency)
    cost_basis = converter.convert(qty * asset.avg_buy_price, asset.currency, club.currency)
    realized_gain = revenue - cost_basis
    tax = realized_gain * SELL_GAIN_TAX_RATE if realized_gain > 0 else Decimal(0)

    updated_club = replace(
        club,
        cash_balance=club.cash_balance + revenue,
        tax_liability=club.tax_liability + tax,
    )

    updated_assets = list(assets)
    remaining = asset.quantity - qty
    if remaining <= 0:
        del updated_assets[index]
    else:
        updated_assets[index] = replace(asset, quantity=remaining)

    transaction = Transaction(
        club_id=club.id,
        user_id=acting_member.user_id,
        type=TransactionType.SELL,
        amount_fiat=revenue,
        asset_ticker=ticker,
        price_at_transaction=price,
        realized_gain=realized_gain,
        tax_estimate=tax,
    )
    logger.debug(f"SELL {qty} {ticker} @ {price} for club {club.id}: gain {realized_gain}, tax {tax}")
    return OrderResult(club=updated_club, assets=updated_assets, transaction=transaction)
