"""
Command line interface for the fund event sync service.
"""

import asyncio
import sys
from decimal import Decimal
from typing import Optional

import typer
from alembic import command
from alembic.config import Config
from rich.console import Console
from rich.table import Table

from fundsync.core.database import (
    DatabaseManager,
    close_database,
    get_session_maker,
    init_database,
)
from fundsync.core.logging import get_logger, setup_logging
from fundsync.indexer.core.reporter import SyncRunReporter
from fundsync.indexer.core.sync_engine import build_sync_engine
from fundsync.indexer.core.types import SyncResult
from fundsync.models.sync_run_log import SyncTrigger
from fundsync.services.yield_service import (
    expected_interest_balance,
    level_bonus_apy,
    period_bonus_apy,
)

console = Console()
logger = get_logger(__name__)
app = typer.Typer(help="Fund event log sync commands")


def _print_result(result: SyncResult) -> None:
    table = Table(title="Sync Run")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green" if result.fulfilled else "red")

    table.add_row("Status", result.status.value)
    table.add_row("Message", result.message)
    table.add_row("Checkpoint block", str(result.checkpoint.block_number))
    table.add_row("Checkpoint log index", str(result.checkpoint.log_index))
    table.add_row("Total synced", str(result.total_synced))
    table.add_row("Skipped", str(result.stats.skipped))
    table.add_row("Unknown events", str(result.stats.unknown_events))
    table.add_row("Unmatched funds", str(result.stats.unmatched_funds))
    for what, count in sorted(result.stats.misses.items()):
        table.add_row(f"Missing {what}", str(count))

    console.print(table)


@app.command()
def sync(
    trigger: SyncTrigger = typer.Option(SyncTrigger.MANUAL, help="Trigger label stored on the run log"),
    database_url: Optional[str] = typer.Option(None, help="Override DATABASE_URL"),
):
    """Run one event log sync."""
    async def _sync() -> SyncResult:
        setup_logging()
        await init_database(database_url)
        try:
            return await build_sync_engine().run(trigger=trigger)
        finally:
            await close_database()

    result = asyncio.run(_sync())
    _print_result(result)
    if not result.fulfilled:
        raise typer.Exit(code=1)


@app.command()
def schedule():
    """Run the sync every SYNC_INTERVAL seconds until interrupted."""
    from fundsync.scheduler.main import main

    asyncio.run(main())


@app.command()
def runs(
    limit: int = typer.Option(20, help="Number of runs to show"),
    database_url: Optional[str] = typer.Option(None, help="Override DATABASE_URL"),
):
    """Show recent sync runs."""
    async def _runs():
        setup_logging()
        await init_database(database_url)
        try:
            return await SyncRunReporter(get_session_maker()).recent_runs(limit)
        finally:
            await close_database()

    run_logs = asyncio.run(_runs())

    table = Table(title="Sync Runs")
    table.add_column("ID", style="cyan")
    table.add_column("Created")
    table.add_column("Trigger")
    table.add_column("Status")
    table.add_column("Message")
    table.add_column("Checkpoint")
    table.add_column("Synced", justify="right")

    for run_log in run_logs:
        table.add_row(
            str(run_log.id),
            run_log.created_at.isoformat() if run_log.created_at else "",
            run_log.trigger.value,
            f"[green]{run_log.status.value}[/green]" if run_log.is_fulfilled
            else f"[red]{run_log.status.value}[/red]",
            run_log.message,
            f"{run_log.latest_token_event_log_block_number}:{run_log.latest_token_event_log_index}",
            str(run_log.total_synced),
        )

    console.print(table)


@app.command("init-db")
def init_db(
    database_url: Optional[str] = typer.Option(None, help="Override DATABASE_URL"),
):
    """Initialize database with tables."""
    async def _init():
        setup_logging()
        await init_database(database_url)
        try:
            await DatabaseManager.create_tables()
        finally:
            await close_database()

    asyncio.run(_init())
    console.print("✅ Database initialized successfully!")


@app.command()
def health(
    database_url: Optional[str] = typer.Option(None, help="Override DATABASE_URL"),
):
    """Check database connectivity."""
    async def _health() -> bool:
        setup_logging()
        await init_database(database_url)
        try:
            return await DatabaseManager.health_check()
        finally:
            await close_database()

    if not asyncio.run(_health()):
        console.print("❌ Database unreachable")
        raise typer.Exit(code=1)
    console.print("✅ Database reachable")


@app.command()
def upgrade(
    revision: str = typer.Argument("head"),
    config: str = typer.Option("alembic.ini", help="Alembic config file"),
):
    """Apply migrations."""
    command.upgrade(Config(config), revision)
    console.print(f"✅ Database upgraded to: {revision}")


@app.command("expected-interest")
def expected_interest(
    balance: str = typer.Argument(..., help="Principal amount"),
    apy: float = typer.Option(..., help="Base APY in percent"),
    days: int = typer.Option(7, help="Lock period in days"),
    level: int = typer.Option(1, help="User level"),
):
    """Estimate the interest a balance earns over a lock period."""
    total_apy = Decimal(str(apy)) + period_bonus_apy(days) + level_bonus_apy(level)
    try:
        interest = expected_interest_balance(balance, total_apy, days)
    except ArithmeticError as e:
        console.print(f"❌ Invalid balance: {balance}")
        logger.debug("Interest estimate failed", error=str(e))
        sys.exit(1)

    console.print(f"APY: {total_apy}% over {days} days")
    console.print(f"Expected interest: {interest}")


if __name__ == "__main__":
    app()
