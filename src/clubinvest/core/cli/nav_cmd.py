"""Valuation commands: summary, freeze, history."""

from __future__ import annotations

import click

from clubinvest.fund.snapshot import ChartRange

from .common import create_service, live_option, parse_prices, resolve_prices, run

_price_option = click.option(
    "--price", "prices", multiple=True, metavar="TICKER=PRICE", help="Quote to value a holding at."
)


@click.command()
@click.argument("club_id")
@_price_option
@live_option
@click.pass_obj
def summary(config, club_id: str, prices: tuple[str, ...], live: bool) -> None:
    """Show NAV, net assets and latent P/L."""
    service = create_service(config)

    async def _summary():
        quotes = await resolve_prices(config, service, club_id, parse_prices(prices), live)
        return await service.portfolio_summary(club_id, quotes)

    s = run(_summary())
    click.echo(f"NAV per share:   {s.nav_per_share}")
    click.echo(f"Net assets:      {s.total_net_assets}")
    click.echo(f"Latent P/L:      {s.total_latent_pl} ({s.variation_percent}%)")
    click.echo(f"Cash:            {s.cash_balance:.2f}")
    click.echo(f"Tax provision:   {s.total_tax_liability:.2f}")
    click.echo(f"Shares:          {s.total_shares:.4f}")


@click.command()
@click.argument("club_id")
@_price_option
@live_option
@click.pass_obj
def freeze(config, club_id: str, prices: tuple[str, ...], live: bool) -> None:
    """Freeze today's NAV into the club's history."""
    service = create_service(config)

    async def _freeze():
        quotes = await resolve_prices(config, service, club_id, parse_prices(prices), live)
        return await service.freeze_nav(club_id, quotes)

    entry = run(_freeze())
    click.echo(f"Frozen {entry.date}: NAV {entry.nav_per_share}, net assets {entry.total_net_assets}")


@click.command()
@click.argument("club_id")
@click.option("--range", "chart_range", type=click.Choice([r.value for r in ChartRange]), default="MAX")
@_price_option
@click.pass_obj
def history(config, club_id: str, chart_range: str, prices: tuple[str, ...]) -> None:
    """Print the NAV history, ending with the live point."""
    service = create_service(config)
    points = run(service.nav_history(club_id, parse_prices(prices), chart_range=chart_range))
    for p in points:
        marker = " (live)" if p.live else ""
        click.echo(f"{p.at:%Y-%m-%d %H:%M}  {p.nav_per_share:>12}  {p.total_net_assets:>14}{marker}")
