"""Backup and restore commands."""

import click
from workledger.cli.error_handling import handle_domain_error, handle_rejection
from workledger.domain.backup import DEFAULT_KEEP_COUNT
from workledger.domain.errors import DomainError


@click.group()
def backup_group():
    """Export, restore and manage backups."""
    pass


@backup_group.command("export")
@click.option(
    "--dir",
    "directory",
    type=click.Path(file_okay=False),
    default=".",
    help="Directory to write the backup file to (default: current directory)",
)
@click.option(
    "--keep",
    type=int,
    default=None,
    help="After exporting, keep only this many backup files in the directory",
)
@click.pass_context
def export_backup(ctx, directory: str, keep: int | None):
    """Export all data to a JSON backup file."""
    service = ctx.obj["service"]
    path = service.export_backup_to_file(directory)
    store = service.store
    click.echo(f"Exported backup to {path}")
    click.echo(
        f"  {len(store.workers)} workers, {len(store.entries)} entries, "
        f"{len(store.payments)} payments"
    )
    if keep is not None:
        removed = service.backups.prune_export_files(directory, keep)
        if removed:
            click.echo(f"  Removed {len(removed)} older backup file(s)")


@backup_group.command("import")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def import_backup(ctx, path: str, yes: bool):
    """Restore all data from a JSON backup file.

    The current data is saved to a safety snapshot first and is then
    replaced entirely by the backup (nothing is merged).
    """
    service = ctx.obj["service"]

    result, document = service.backups.import_backup_file(path)
    if not result:
        handle_rejection(ctx, result)

    counts = ", ".join(
        f"{len(document.app_data[key])} {key}" for key in ("workers", "entries", "payments")
    )
    if not yes:
        click.confirm(f"Replace all current data with backup ({counts})?", abort=True)

    try:
        report = service.restore_backup(document)
    except DomainError as e:
        handle_domain_error(ctx, e)

    click.echo("Restore completed")
    click.echo(f"  Safety snapshot: {report.safety_key}")
    click.echo(
        f"  {report.total_workers} workers, {report.total_entries} entries, "
        f"{report.total_payments} payments"
    )
    for issue in report.issues:
        click.echo(f"  Warning: {issue.worker_name}: {issue.message}")


@backup_group.command("history")
@click.pass_context
def history(ctx):
    """List safety snapshots kept in the database."""
    service = ctx.obj["service"]
    items = service.backup_history()
    if not items:
        click.echo("No backups found.")
        return

    click.echo("\nBackups:")
    click.echo("-" * 80)
    for item in items:
        click.echo(
            f"{item.timestamp}  {item.kind:12s} {item.workers:4d} workers "
            f"{item.entries:6d} entries {item.payments:6d} payments"
        )


@backup_group.command("prune")
@click.option(
    "--keep",
    type=int,
    default=DEFAULT_KEEP_COUNT,
    show_default=True,
    help="Number of most recent snapshots to keep",
)
@click.pass_context
def prune(ctx, keep: int):
    """Delete older safety snapshots."""
    service = ctx.obj["service"]
    try:
        removed = service.prune_backups(keep)
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Removed {len(removed)} backup(s)")


def register_commands(cli):
    """Register backup commands with main CLI."""
    cli.add_command(backup_group, name="backup")
