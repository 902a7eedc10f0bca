"""Category and subcategory management commands."""

import click
from workledger.cli.error_handling import handle_domain_error, handle_rejection
from workledger.domain.errors import DomainError
from workledger.domain.store import subcategories_for_category


def resolve_category_or_exit(ctx: click.Context, service, value: str) -> str:
    """Resolve a category name or ID to its ID, or exit with a CLI error."""
    wanted = value.strip().lower()
    for cat in service.store.categories:
        if cat.id == value or cat.name.lower() == wanted:
            return cat.id
    click.echo(f"Error: Category '{value}' not found", err=True)
    ctx.exit(1)


def resolve_subcategory_or_exit(
    ctx: click.Context, service, value: str, category_id: str | None = None
) -> str:
    """Resolve a subcategory name or ID, preferring one under the given category."""
    wanted = value.strip().lower()
    matches = [
        sub
        for sub in service.store.subcategories
        if sub.id == value or sub.name.lower() == wanted
    ]
    if category_id is not None:
        preferred = [sub for sub in matches if category_id in sub.category_ids]
        matches = preferred or matches
    if not matches:
        click.echo(f"Error: Subcategory '{value}' not found", err=True)
        ctx.exit(1)
    return matches[0].id


@click.group()
def category_group():
    """Manage work categories."""
    pass


@category_group.command("list")
@click.pass_context
def list_categories(ctx):
    """List categories with their subcategories."""
    service = ctx.obj["service"]
    store = service.store

    if not store.categories:
        click.echo("No categories found.")
        return

    click.echo("\nCategories:")
    for cat in store.categories:
        click.echo(f"{cat.name} (ID: {cat.id})")
        for sub in subcategories_for_category(store, cat.id):
            click.echo(f"  {sub.name} (ID: {sub.id})")


@category_group.command("add")
@click.argument("name")
@click.pass_context
def add_category(ctx, name: str):
    """Add a new category."""
    service = ctx.obj["service"]
    result = service.add_category(name)
    if not result:
        handle_rejection(ctx, result)
    click.echo(f"Added category '{result.entity.name}' (ID: {result.entity.id})")


@category_group.command("delete")
@click.argument("category")
@click.pass_context
def delete_category(ctx, category: str):
    """Delete a category.

    Subcategories that belong only to this category are deleted too;
    shared subcategories keep their other categories.
    """
    service = ctx.obj["service"]
    category_id = resolve_category_or_exit(ctx, service, category)
    before = len(service.store.subcategories)

    try:
        service.delete_category(category_id)
    except DomainError as e:
        handle_domain_error(ctx, e)

    dropped = before - len(service.store.subcategories)
    click.echo(f"Deleted category '{category}'")
    if dropped:
        click.echo(f"  Removed {dropped} subcategor{'ies' if dropped != 1 else 'y'} left without a category")


@click.group()
def subcategory_group():
    """Manage subcategories."""
    pass


@subcategory_group.command("add")
@click.argument("name")
@click.option(
    "--category",
    "categories",
    multiple=True,
    required=True,
    help="Category name or ID (repeat for several categories)",
)
@click.pass_context
def add_subcategory(ctx, name: str, categories: tuple[str, ...]):
    """Add a subcategory under one or more categories.

    Examples:
        workledger subcategory add "Plastering" --category Masonry
        workledger subcategory add "Loading" --category Transport --category Warehouse
    """
    service = ctx.obj["service"]
    category_ids = [resolve_category_or_exit(ctx, service, c) for c in categories]

    result = service.add_subcategory(name, category_ids)
    if not result:
        handle_rejection(ctx, result)
    click.echo(f"Added subcategory '{result.entity.name}' (ID: {result.entity.id})")


@subcategory_group.command("delete")
@click.argument("subcategory")
@click.pass_context
def delete_subcategory(ctx, subcategory: str):
    """Delete a subcategory."""
    service = ctx.obj["service"]
    subcategory_id = resolve_subcategory_or_exit(ctx, service, subcategory)
    try:
        service.delete_subcategory(subcategory_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Deleted subcategory '{subcategory}'")


def register_commands(cli):
    """Register category commands with main CLI."""
    cli.add_command(category_group, name="category")
    cli.add_command(subcategory_group, name="subcategory")
