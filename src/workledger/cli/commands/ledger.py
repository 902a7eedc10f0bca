"""Balance, ledger and attendance commands."""

import click
from workledger.cli.worker_resolution import resolve_worker_or_exit
from workledger.domain.entities import TransactionKind
from workledger.domain.ledger import filter_ledger, format_balance, latest_first
from workledger.utils.date_parser import get_month_range, parse_date

STATUS_LABELS = {"P": "Present", "H": "Half Day", "A": "Absent"}


def _parse_optional_date(ctx, value: str | None):
    if value is None:
        return None
    try:
        return parse_date(value)
    except ValueError as e:
        click.echo(f"Error: Invalid date format: {e}", err=True)
        ctx.exit(1)


@click.command("balance")
@click.argument("worker", metavar="WORKER", required=False)
@click.pass_context
def balance(ctx, worker: str | None):
    """Show the balance of one worker, or of all workers."""
    service = ctx.obj["service"]

    if worker is not None:
        worker_id = resolve_worker_or_exit(ctx, service, worker)
        name = service.get_worker(worker_id).name
        click.echo(f"{name}: {format_balance(service.balance(worker_id))}")
        return

    workers = service.list_workers()
    if not workers:
        click.echo("No workers found.")
        return
    balances = service.balances()
    for w in workers:
        click.echo(f"{w.name:24s} {format_balance(balances[w.id]):>14s}")


@click.command("ledger")
@click.argument("worker", metavar="WORKER")
@click.option("--from", "from_date", help="Show records on or after this date")
@click.option("--to", "to_date", help="Show records on or before this date")
@click.option("--search", help="Filter by narration, category, work name or payment type")
@click.option("--oldest-first", is_flag=True, help="List oldest records first")
@click.pass_context
def ledger(ctx, worker: str, from_date: str | None, to_date: str | None, search: str | None, oldest_first: bool):
    """Show a worker's ledger with the running balance after each record.

    Examples:
        workledger ledger Ramesh
        workledger ledger Ramesh --from 2025-01-01 --to 2025-01-31
        workledger ledger Ramesh --search plaster
    """
    service = ctx.obj["service"]
    worker_id = resolve_worker_or_exit(ctx, service, worker)
    w = service.get_worker(worker_id)

    records = filter_ledger(
        service.ledger(worker_id),
        start_date=_parse_optional_date(ctx, from_date),
        end_date=_parse_optional_date(ctx, to_date),
        search=search,
    )
    if not oldest_first:
        records = latest_first(records)

    click.echo(f"\nLedger for {w.name} (opening balance {format_balance(w.opening_balance)})")
    click.echo("-" * 80)
    if not records:
        click.echo("No transactions found.")
    for record in records:
        if record.kind is TransactionKind.ENTRY:
            label = STATUS_LABELS.get(record.status, record.status)
            detail = record.work_name or " / ".join(
                part for part in (record.category_name, record.subcategory_name) if part
            )
        else:
            label = "Payment"
            detail = record.payment_type
        click.echo(
            f"{record.date}  {label:9s} {detail[:28]:28s} "
            f"{format_balance(record.effect):>13s} {format_balance(record.balance_after):>14s}"
        )
    click.echo("-" * 80)
    click.echo(f"Current balance: {format_balance(service.balance(worker_id))}")


@click.command("attendance")
@click.argument("worker", metavar="WORKER")
@click.option(
    "--period",
    type=click.Choice(["this-month", "last-month"], case_sensitive=False),
    default="this-month",
    help="Month to count (default: this-month)",
)
@click.pass_context
def attendance(ctx, worker: str, period: str):
    """Count present, half and absent days for a worker."""
    service = ctx.obj["service"]
    worker_id = resolve_worker_or_exit(ctx, service, worker)
    start_date, end_date = get_month_range(period)

    summary = service.attendance(worker_id, start_date, end_date)
    click.echo(f"{service.get_worker(worker_id).name} from {start_date} to {end_date}:")
    click.echo(f"  Present: {summary.present}")
    click.echo(f"  Halfday: {summary.half}")
    click.echo(f"  Absent: {summary.absent}")


def register_commands(cli):
    """Register ledger commands with main CLI."""
    cli.add_command(balance)
    cli.add_command(ledger)
    cli.add_command(attendance)
