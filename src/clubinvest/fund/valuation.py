"""
Portfolio valuation.

Turns a club's holdings, cash and tax provision into a PortfolioSummary:

    net assets    = market value of holdings + cash - tax liability
    NAV per share = net assets / shares outstanding (100 before any share exists)
    latent P/L    = market value - cost basis

Holdings are converted to the club currency before they are summed, and
rounding happens once at the very end. The computation is pure: the same
inputs always give the same summary.
"""

from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal

from loguru import logger

from clubinvest.core.types import PriceMap

from .constants import GENESIS_NAV, MONEY_PLACES, NAV_PLACES
from .currency import CurrencyConverter, get_default_converter
from .models import Asset, Club, PortfolioSummary


def round_money(value: Decimal) -> Decimal:
    return value.quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)


def round_nav(value: Decimal) -> Decimal:
    return value.quantize(NAV_PLACES, rounding=ROUND_HALF_UP)


def resolve_price(asset: Asset, prices: PriceMap) -> Decimal:
    """Current price for *asset*, falling back to its average cost.

    A missing quote, ``None`` or a non-positive value (the oracle's failure
    sentinel) all mean "no price".
    """
    quote = prices.get(asset.ticker)
    if quote is None:
        return asset.avg_buy_price
    quote = quote if isinstance(quote, Decimal) else Decimal(str(quote))
    if not quote.is_finite() or quote <= 0:
        logger.debug(f"Unusable quote {quote} for {asset.ticker}; valuing at cost")
        return asset.avg_buy_price
    return quote


def calculate_portfolio_summary(
    club: Club,
    assets: Iterable[Asset],
    prices: PriceMap,
    converter: CurrencyConverter | None = None,
) -> PortfolioSummary:
    """Value *club* at *prices*.

    Args:
        club: The fund being valued.
        assets: Current holdings of the fund.
        prices: ticker -> current price in the asset's currency. May be incomplete.
        converter: Rate table to use; the default fixed table when None.

    Returns:
        PortfolioSummary with money rounded to 2 places and NAV to 4.
    """
    converter = converter or get_default_converter()
    market_value = Decimal(0)
    cost_basis = Decimal(0)

    for asset in assets:
        current_price = resolve_price(asset, prices)
        market_value += converter.convert(asset.quantity * current_price, asset.currency, club.currency)
        cost_basis += converter.convert(asset.quantity * asset.avg_buy_price, asset.currency, club.currency)

    net_assets = market_value + club.cash_balance - club.tax_liability
    nav_per_share = net_assets / club.total_shares if club.total_shares > 0 else GENESIS_NAV

    latent_pl = market_value - cost_basis
    variation = latent_pl / cost_basis * 100 if cost_basis > 0 else Decimal(0)

    return PortfolioSummary(
        total_net_assets=round_money(net_assets),
        nav_per_share=round_nav(nav_per_share),
        total_latent_pl=round_money(latent_pl),
        variation_percent=round_money(variation),
        total_shares=club.total_shares,
        total_tax_liability=club.tax_liability,
        cash_balance=club.cash_balance,
    )


def effective_nav(summary: PortfolioSummary) -> Decimal:
    """NAV to price new or burnt shares at.

    A non-positive NAV (a fund whose liabilities exceed its assets) would
    make share issuance meaningless, so it falls back to the genesis NAV.
    """
    return summary.nav_per_share if summary.nav_per_share > 0 else GENESIS_NAV
