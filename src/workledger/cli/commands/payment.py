"""Payment commands."""

import click
from workledger.cli.error_handling import handle_domain_error, handle_rejection
from workledger.cli.worker_resolution import resolve_worker_or_exit
from workledger.domain.errors import DomainError
from workledger.domain.ledger import format_balance
from workledger.utils.amount_parser import parse_amount
from workledger.utils.date_parser import parse_date


@click.group()
def payment_group():
    """Record payments to workers."""
    pass


@payment_group.command("add")
@click.argument("worker", metavar="WORKER")
@click.option("--amount", required=True, help="Amount paid (e.g., 300 or ₹1,200)")
@click.option(
    "--date",
    "payment_date",
    default="today",
    help="Payment date (YYYY-MM-DD or relative like 'today', 'yesterday')",
)
@click.option("--type", "payment_type", default="Cash", help="Payment type (default: Cash)")
@click.option("--notes", help="Notes")
@click.pass_context
def add_payment(
    ctx,
    worker: str,
    amount: str,
    payment_date: str,
    payment_type: str,
    notes: str | None,
):
    """Record a payment to a worker.

    Examples:
        workledger payment add Ramesh --amount 300
        workledger payment add Ramesh --amount 1500 --type UPI --date 2025-01-03
    """
    service = ctx.obj["service"]
    worker_id = resolve_worker_or_exit(ctx, service, worker)

    try:
        parsed_date = parse_date(payment_date)
    except ValueError as e:
        click.echo(f"Error: Invalid date format: {e}", err=True)
        ctx.exit(1)

    try:
        parsed_amount = parse_amount(amount)
    except ValueError as e:
        click.echo(f"Error: Invalid amount format: {e}", err=True)
        ctx.exit(1)

    result = service.add_payment(
        worker_id=worker_id,
        payment_date=parsed_date,
        amount=parsed_amount,
        payment_type=payment_type,
        notes=notes,
    )
    if not result:
        handle_rejection(ctx, result)

    click.echo(f"Recorded payment {result.entity.id}")
    click.echo(f"  Amount: {format_balance(parsed_amount)} ({payment_type})")
    click.echo(f"  Remaining balance: {format_balance(service.balance(worker_id))}")


@payment_group.command("delete")
@click.argument("payment_id")
@click.pass_context
def delete_payment(ctx, payment_id: str):
    """Delete a payment by ID."""
    service = ctx.obj["service"]
    try:
        service.delete_payment(payment_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Deleted payment {payment_id}")


def register_commands(cli):
    """Register payment commands with main CLI."""
    cli.add_command(payment_group, name="payment")
