"""clubinvest CLI: entry point for club, ledger and NAV commands."""

import click

from clubinvest import __version__


@click.group()
@click.version_option(version=__version__, package_name="clubinvest")
@click.option("--config", "config_path", type=click.Path(dir_okay=False), default=None, help="Config file (YAML/JSON).")
@click.option("--data-dir", type=click.Path(file_okay=False), default=None, help="Override the data directory.")
@click.pass_context
def main(ctx: click.Context, config_path: str | None, data_dir: str | None) -> None:
    """clubinvest: run an investment club's books from the terminal."""
    from clubinvest.core.utils.logging import setup_logging

    from .common import load_config

    config = load_config(config_path, data_dir)
    setup_logging(
        level=str(config.get("logging.level", "WARNING")).upper(),
        log_file=config.get("logging.file") or None,
    )
    ctx.obj = config


# Register subcommands
from .club_cmd import create, join, members
from .ledger_cmd import buy, deposit, sell, withdraw
from .nav_cmd import freeze, history, summary

for _command in (create, join, members, deposit, withdraw, buy, sell, summary, freeze, history):
    main.add_command(_command)
