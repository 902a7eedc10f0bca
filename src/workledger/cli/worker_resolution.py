"""CLI helpers for worker resolution."""

from __future__ import annotations

import click
from workledger.domain.workforce import WorkforceService
from workledger.utils.worker_resolver import resolve_worker


def resolve_worker_or_exit(ctx: click.Context, service: WorkforceService, worker: str) -> str:
    """Resolve worker name or ID, or exit with a CLI error.

    This keeps error messaging and exit behavior consistent across commands.
    """
    try:
        return resolve_worker(service, worker)
    except ValueError as exc:
        click.echo(f"Error: {exc}", err=True)
        ctx.exit(1)
