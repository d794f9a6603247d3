"""Ledger commands: deposit, withdraw, buy, sell."""

from __future__ import annotations

import click

from clubinvest.ledger import ALL_MEMBERS

from .common import create_service, live_option, parse_prices, resolve_prices, run

_price_option = click.option(
    "--price", "prices", multiple=True, metavar="TICKER=PRICE", help="Current quote used to compute NAV."
)


@click.command()
@click.argument("club_id")
@click.argument("member_id")
@click.argument("amount")
@_price_option
@live_option
@click.pass_obj
def deposit(config, club_id: str, member_id: str, amount: str, prices: tuple[str, ...], live: bool) -> None:
    """Deposit AMOUNT for MEMBER_ID, or for every member with ALL."""
    service = create_service(config)

    async def _deposit():
        quotes = await resolve_prices(config, service, club_id, parse_prices(prices), live)
        return await service.deposit(club_id, member_id, amount, prices=quotes)

    result = run(_deposit())
    if not result.transactions:
        click.echo("Club has no members; nothing deposited.")
        return
    scope = "each member" if member_id == ALL_MEMBERS else member_id
    click.echo(
        f"Deposited {amount} for {scope}: {result.transactions[0].shares_change:.4f} shares issued per member "
        f"(cash now {result.club.cash_balance:.2f} {result.club.currency})"
    )


@click.command()
@click.argument("club_id")
@click.argument("member_id")
@click.argument("amount")
@_price_option
@live_option
@click.pass_obj
def withdraw(config, club_id: str, member_id: str, amount: str, prices: tuple[str, ...], live: bool) -> None:
    """Withdraw AMOUNT for MEMBER_ID at the current NAV."""
    service = create_service(config)

    async def _withdraw():
        quotes = await resolve_prices(config, service, club_id, parse_prices(prices), live)
        return await service.withdraw(club_id, member_id, amount, prices=quotes)

    result = run(_withdraw())
    tx = result.transaction
    click.echo(
        f"Withdrew {tx.amount_fiat:.2f}: {-tx.shares_change:.4f} shares burnt, "
        f"estimated tax {tx.tax_estimate:.2f} {result.club.currency}"
    )


def _order_command(name: str, help_text: str):
    @click.command(name=name, help=help_text)
    @click.argument("club_id")
    @click.argument("member_id")
    @click.argument("ticker")
    @click.argument("quantity")
    @click.argument("price")
    @click.option("--currency", type=click.Choice(["EUR", "USD"]), default="USD", help="Quote currency.")
    @click.pass_obj
    def command(config, club_id, member_id, ticker, quantity, price, currency) -> None:
        service = create_service(config)
        method = service.buy if name == "buy" else service.sell
        result = run(method(club_id, member_id, ticker, quantity, price, price_currency=currency))
        tx = result.transaction
        line = (
            f"{name.upper()} {quantity} {tx.asset_ticker} @ {price} {currency}: "
            f"{tx.amount_fiat:.2f} {result.club.currency}"
        )
        if tx.realized_gain is not None:
            line += f", realized gain {tx.realized_gain:.2f}, tax accrued {result.tax_accrued:.2f}"
        click.echo(line)

    return command


buy = _order_command("buy", "Buy QUANTITY of TICKER at PRICE with club cash.")
sell = _order_command("sell", "Sell QUANTITY of TICKER at PRICE.")
