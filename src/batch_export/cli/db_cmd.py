"""Database migration CLI commands for the job execution store."""

from pathlib import Path

import typer
from loguru import logger

db_app = typer.Typer()

_CONFIG_OPTION = typer.Option(Path("alembic.ini"), "--config", "-c", help="Path to alembic.ini")


def _alembic_config(path: Path):  # type: ignore[no-untyped-def]
    from alembic.config import Config

    if not path.exists():
        typer.echo(f"Alembic config not found: {path}", err=True)
        raise typer.Exit(code=1)
    return Config(str(path))


@db_app.command()
def upgrade(
    revision: str = typer.Argument("head", help="Target revision"),
    config_path: Path = _CONFIG_OPTION,
) -> None:
    """Create or migrate the job_executions table up to the target revision."""
    from alembic import command

    logger.info(f"Upgrading job store to {revision}")
    command.upgrade(_alembic_config(config_path), revision)
    logger.info("Job store upgrade complete")


@db_app.command()
def downgrade(
    revision: str = typer.Argument("-1", help="Target revision"),
    config_path: Path = _CONFIG_OPTION,
) -> None:
    """Roll the job store schema back to the target revision."""
    from alembic import command

    logger.info(f"Downgrading job store to {revision}")
    command.downgrade(_alembic_config(config_path), revision)
    logger.info("Job store downgrade complete")


@db_app.command()
def current(config_path: Path = _CONFIG_OPTION) -> None:
    """Show the current job store revision."""
    from alembic import command

    command.current(_alembic_config(config_path), verbose=True)
