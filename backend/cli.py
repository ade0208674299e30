"""
Storefront payments CLI.

Operational commands for the settlement worker and its queue.
"""

import sys

import typer
from rich.console import Console
from rich.table import Table

app = typer.Typer(
    name="storefront",
    help="Storefront payments and settlement CLI",
    add_completion=False,
)
console = Console()


# =============================================================================
# Worker Commands
# =============================================================================

@app.command()
def worker():
    """Run the settlement worker until interrupted."""
    import asyncio

    from worker.main import run_worker

    console.print("[blue]Starting settlement worker[/blue]")
    asyncio.run(run_worker())


@app.command()
def scan():
    """Enqueue settlement jobs for expired discount codes once."""
    import asyncio

    async def _scan():
        from shared.config.settings import settings
        from shared.infrastructure.db import Database
        from shared.infrastructure.jobs import JobQueue
        from shared.infrastructure.redis_pool import close_redis_pool, get_redis_pool
        from worker.scan import DiscountCodeExpirationScanner

        database = Database.from_settings()
        database.open()
        try:
            queue = JobQueue(await get_redis_pool(), lease_seconds=settings.job_lease_seconds)
            sent = await DiscountCodeExpirationScanner(database, queue).scan()
        finally:
            database.close()
            await close_redis_pool()

        console.print(f"[green]✓ Enqueued {sent} settlement job(s)[/green]")

    asyncio.run(_scan())


@app.command()
def settle(
    discount_code_id: str = typer.Argument(..., help="Discount code id to settle"),
):
    """Settle one discount code immediately, bypassing the queue."""
    from shared.infrastructure.db import Database
    from worker.settlement import CommissionSettlementWorker, SettlementStatus

    database = Database.from_settings()
    database.open()
    try:
        result = CommissionSettlementWorker(database).settle(discount_code_id)
    except Exception as e:
        console.print(f"[red]✗ Settlement failed: {e}[/red]")
        raise typer.Exit(1)
    finally:
        database.close()

    table = Table(title=f"Settlement {discount_code_id}")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Status", result.status.value)
    table.add_row("Settlement", result.settlement_id or "-")
    table.add_row("Commissions", str(result.commissions_count))
    table.add_row("Total", str(result.total_amount))
    table.add_row("Influencer payment", result.influencer_payment_id or "-")

    console.print(table)

    if result.status is SettlementStatus.NOT_FOUND:
        raise typer.Exit(1)


# =============================================================================
# Queue Commands
# =============================================================================

@app.command()
def queue_stats():
    """Show settlement queue statistics."""
    import asyncio

    async def _stats():
        from shared.config.constants import Jobs
        from shared.infrastructure.jobs import JobQueue
        from shared.infrastructure.redis_pool import close_redis_pool, get_redis_pool

        try:
            stats = await JobQueue(await get_redis_pool()).get_stats(Jobs.DISCOUNT_CODE_SETTLE)
        finally:
            await close_redis_pool()

        table = Table(title=f"Queue {Jobs.DISCOUNT_CODE_SETTLE}")
        table.add_column("Metric", style="cyan")
        table.add_column("Value", style="green")

        table.add_row("Pending", str(stats["pending_count"]))
        table.add_row("Active", str(stats["active_count"]))
        table.add_row("Dead letter", str(stats["dead_letter_count"]))

        console.print(table)

        if stats["dead_letter_count"]:
            console.print("[yellow]Dead-lettered jobs need manual attention[/yellow]")

    asyncio.run(_stats())


@app.command()
def version():
    """Show version information."""
    table = Table(title="Storefront Version")
    table.add_column("Component", style="cyan")
    table.add_column("Version", style="green")

    table.add_row("API", "0.1.0")
    table.add_row("Python", sys.version.split()[0])

    console.print(table)


if __name__ == "__main__":
    app()
