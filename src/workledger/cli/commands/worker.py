"""Worker management commands."""

from decimal import Decimal

import click
from workledger.cli.error_handling import handle_domain_error, handle_rejection
from workledger.cli.worker_resolution import resolve_worker_or_exit
from workledger.domain.errors import DomainError, orphaned_records
from workledger.domain.ledger import format_balance
from workledger.utils.amount_parser import parse_amount


@click.group()
def worker_group():
    """Manage workers."""
    pass


@worker_group.command("add")
@click.argument("name", metavar="WORKER_NAME")
@click.option(
    "--opening-balance",
    default="0",
    help="Opening balance (cannot be changed later, e.g. 1000 or -250)",
)
@click.option("--address", help="Address")
@click.option("--phone", help="Phone number")
@click.pass_context
def add_worker(ctx, name: str, opening_balance: str, address: str | None, phone: str | None):
    """Add a new worker.

    Examples:
        workledger worker add "Ramesh" --opening-balance 1000
        workledger worker add "Sita" --phone 9876543210
    """
    service = ctx.obj["service"]

    try:
        balance = parse_amount(opening_balance)
    except ValueError as e:
        click.echo(f"Error: Invalid opening balance: {e}", err=True)
        ctx.exit(1)

    result = service.add_worker(name=name, opening_balance=balance, address=address, phone=phone)
    if not result:
        handle_rejection(ctx, result)
    click.echo(f"Added worker '{result.entity.name}' (ID: {result.entity.id})")
    if balance != Decimal("0"):
        click.echo(f"  Opening balance: {format_balance(balance)}")


@worker_group.command("list")
@click.pass_context
def list_workers(ctx):
    """List all workers with their current balance."""
    service = ctx.obj["service"]

    workers = service.list_workers()
    if not workers:
        click.echo("No workers found.")
        return

    balances = service.balances()
    click.echo("\nWorkers:")
    click.echo("-" * 72)
    for w in workers:
        click.echo(f"{w.name:24s} | {format_balance(balances[w.id]):>14s} | ID: {w.id}")


@worker_group.command("delete")
@click.argument("worker", metavar="WORKER")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def delete_worker(ctx, worker: str, yes: bool):
    """Delete a worker together with all entries, payments and messages.

    WORKER can be a worker name or ID.
    """
    service = ctx.obj["service"]
    worker_id = resolve_worker_or_exit(ctx, service, worker)
    name = service.get_worker(worker_id).name

    if not yes:
        click.confirm(
            f"Delete '{name}' and all of their entries and payments?", abort=True
        )

    try:
        service.delete_worker(worker_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Deleted worker '{name}'")


@worker_group.command("orphans")
@click.option("--drop", is_flag=True, help="Delete the orphaned records")
@click.pass_context
def orphans(ctx, drop: bool):
    """Report records that reference workers which no longer exist."""
    service = ctx.obj["service"]
    report = service.drop_orphans() if drop else service.find_orphans()
    if report.is_clean:
        click.echo("No orphaned records found.")
        return

    click.echo(
        orphaned_records(
            len(report.entry_ids), len(report.payment_ids), len(report.message_ids)
        )
    )
    if drop:
        click.echo("  Removed.")
    else:
        click.echo("  Run with --drop to delete them.")


def register_commands(cli):
    """Register worker commands with main CLI."""
    cli.add_command(worker_group, name="worker")
