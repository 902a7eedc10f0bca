"""Main CLI entry point."""

import logging

import click
from workledger.domain.workforce import WorkforceService
from workledger.storage.factories import create_sqlite_store

# Import and register all commands at module level
from workledger.cli.commands import (
    worker,
    category,
    entry,
    payment,
    ledger,
    backup,
)


@click.group()
@click.option(
    "--db-path",
    type=click.Path(),
    help="Path to database file (overrides WORKLEDGER_DB_PATH environment variable)",
    envvar="WORKLEDGER_DB_PATH",
)
@click.option("--verbose", "-v", is_flag=True, help="Show diagnostic log messages")
@click.pass_context
def cli(ctx, db_path: str | None, verbose: bool):
    """Workledger - Worker attendance, payments and balances.

    Record daily attendance and work for each worker, track payments and
    keep safe backups of all data.
    """
    ctx.ensure_object(dict)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    # Load the store only when actually running a command
    # (not when showing help)
    if ctx.invoked_subcommand is not None:
        kv = create_sqlite_store(database_path=db_path)
        kv.connect()
        service = WorkforceService(kv)
        service.load()
        ctx.obj["kv"] = kv
        ctx.obj["service"] = service
        ctx.call_on_close(kv.disconnect)


@cli.command("migrate")
@click.pass_context
def migrate(ctx):
    """Show the schema version after loading (legacy data is migrated on load)."""
    service = ctx.obj["service"]
    store = service.store
    click.echo(f"Store is at schema version {store.schema_version}")
    click.echo(
        f"  {len(store.workers)} workers, {len(store.entries)} entries, "
        f"{len(store.payments)} payments"
    )


# Register all commands
worker.register_commands(cli)
category.register_commands(cli)
entry.register_commands(cli)
payment.register_commands(cli)
ledger.register_commands(cli)
backup.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
