"""CLI error handling helpers."""

import click

from workledger.domain.errors import DomainError
from workledger.domain.validation import ValidationResult


def handle_domain_error(ctx: click.Context, error: DomainError | ValueError) -> None:
    """Render a domain error and exit with failure."""
    click.echo(f"Error: {error}", err=True)
    ctx.exit(1)


def handle_rejection(ctx: click.Context, result: ValidationResult) -> None:
    """Render a validation rejection with its reason code and exit with failure."""
    click.echo(f"Error: {result.message} [{result.reason.value}]", err=True)
    ctx.exit(1)
