"""Attendance entry commands."""

import click
from workledger.cli.commands.category import (
    resolve_category_or_exit,
    resolve_subcategory_or_exit,
)
from workledger.cli.error_handling import handle_domain_error, handle_rejection
from workledger.cli.worker_resolution import resolve_worker_or_exit
from workledger.domain.entities import AttendanceStatus, WorkType
from workledger.domain.errors import DomainError
from workledger.domain.ledger import format_balance
from workledger.utils.amount_parser import parse_amount
from workledger.utils.date_parser import parse_date

STATUS_CHOICES = {
    "present": AttendanceStatus.PRESENT,
    "half": AttendanceStatus.HALF,
    "absent": AttendanceStatus.ABSENT,
}

WORK_TYPE_CHOICES = {
    "category": WorkType.CATEGORY_BASED,
    "unit": WorkType.UNIT_BASED,
}


def _parse_optional_amount(ctx, value: str | None, label: str):
    if value is None:
        return None
    try:
        return parse_amount(value)
    except ValueError as e:
        click.echo(f"Error: Invalid {label}: {e}", err=True)
        ctx.exit(1)


@click.group()
def entry_group():
    """Record daily attendance and work."""
    pass


@entry_group.command("add")
@click.argument("worker", metavar="WORKER")
@click.option(
    "--date",
    "entry_date",
    default="today",
    help="Entry date (YYYY-MM-DD or relative like 'today', 'yesterday')",
)
@click.option(
    "--status",
    type=click.Choice(list(STATUS_CHOICES), case_sensitive=False),
    default="present",
    help="Attendance status (default: present)",
)
@click.option(
    "--work-type",
    type=click.Choice(list(WORK_TYPE_CHOICES), case_sensitive=False),
    default="category",
    help="category (Work A) or unit (Work B)",
)
@click.option("--category", help="Category name or ID (Work A)")
@click.option("--subcategory", help="Subcategory name or ID (Work A)")
@click.option("--work-name", help="Work name (Work B)")
@click.option("--units", help="Units completed (Work B)")
@click.option("--rate", help="Rate per unit (Work B)")
@click.option("--amount", help="Amount (defaults to units x rate for Work B)")
@click.option("--narration", help="Narration")
@click.pass_context
def add_entry(
    ctx,
    worker: str,
    entry_date: str,
    status: str,
    work_type: str,
    category: str | None,
    subcategory: str | None,
    work_name: str | None,
    units: str | None,
    rate: str | None,
    amount: str | None,
    narration: str | None,
):
    """Record attendance for a worker on one day.

    Examples:
        workledger entry add Ramesh --category Masonry --subcategory Plastering --amount 500
        workledger entry add Ramesh --date yesterday --status half --category Masonry --subcategory Plastering --amount 400
        workledger entry add Sita --work-type unit --work-name Bricks --units 200 --rate 1.5
        workledger entry add Sita --status absent
    """
    service = ctx.obj["service"]
    worker_id = resolve_worker_or_exit(ctx, service, worker)

    try:
        parsed_date = parse_date(entry_date)
    except ValueError as e:
        click.echo(f"Error: Invalid date format: {e}", err=True)
        ctx.exit(1)

    category_id = None
    subcategory_id = None
    if category:
        category_id = resolve_category_or_exit(ctx, service, category)
    if subcategory:
        subcategory_id = resolve_subcategory_or_exit(ctx, service, subcategory, category_id)

    result = service.add_entry(
        worker_id=worker_id,
        entry_date=parsed_date,
        status=STATUS_CHOICES[status.lower()],
        work_type=WORK_TYPE_CHOICES[work_type.lower()],
        amount=_parse_optional_amount(ctx, amount, "amount"),
        category_id=category_id,
        subcategory_id=subcategory_id,
        work_name=work_name,
        units=_parse_optional_amount(ctx, units, "units"),
        rate_per_unit=_parse_optional_amount(ctx, rate, "rate"),
        narration=narration,
    )
    if not result:
        handle_rejection(ctx, result)

    saved = result.entity
    click.echo(f"Recorded {status.lower()} for {service.get_worker(worker_id).name} on {saved.date}")
    if saved.amount:
        click.echo(f"  Amount: {format_balance(saved.amount)}")
    click.echo(f"  Balance: {format_balance(service.balance(worker_id))}")


@entry_group.command("delete")
@click.argument("entry_id")
@click.pass_context
def delete_entry(ctx, entry_id: str):
    """Delete an entry by ID."""
    service = ctx.obj["service"]
    try:
        service.delete_entry(entry_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Deleted entry {entry_id}")


def register_commands(cli):
    """Register entry commands with main CLI."""
    cli.add_command(entry_group, name="entry")
