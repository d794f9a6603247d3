"""Club setup commands: create, join, members."""

from __future__ import annotations

import click

from .common import create_service, run


@click.command()
@click.argument("name")
@click.option("--admin", "admin_user_id", required=True, help="User id of the founding admin.")
@click.option("--admin-name", default="", help="Display name of the founding admin.")
@click.option("--currency", type=click.Choice(["EUR", "USD"]), default=None, help="Settlement currency.")
@click.pass_obj
def create(config, name: str, admin_user_id: str, admin_name: str, currency: str | None) -> None:
    """Create a club and print its id and invite code."""
    service = create_service(config)
    currency = currency or config.get("fund.default_currency", "EUR")
    club, admin = run(service.create_club(name, admin_user_id, admin_name=admin_name, currency=currency))
    click.echo(f"Club:        {club.name} ({club.id})")
    click.echo(f"Invite code: {club.invite_code}")
    click.echo(f"Admin:       {admin.id}")


@click.command()
@click.argument("invite_code")
@click.option("--user", "user_id", required=True, help="User id joining the club.")
@click.option("--name", "full_name", default="", help="Display name.")
@click.pass_obj
def join(config, invite_code: str, user_id: str, full_name: str) -> None:
    """Join a club with its invite code."""
    service = create_service(config)
    member = run(service.join_club(invite_code, user_id, full_name=full_name))
    click.echo(f"Joined club {member.club_id} as member {member.id}")


@click.command()
@click.argument("club_id")
@click.pass_obj
def members(config, club_id: str) -> None:
    """List a club's members and their shares."""
    service = create_service(config)
    roster = run(service.store.load_members(club_id))
    for m in roster:
        click.echo(
            f"{m.id}  {m.full_name or m.user_id:<20} {m.role.value:<6} "
            f"shares={m.shares_owned:.4f} invested={m.total_invested_fiat:.2f}"
        )
