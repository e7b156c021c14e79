"""CLI error handling helpers."""

from typing import Any

import click

from tallybook.actions.result import ActionResult
from tallybook.domain.errors import DomainError


def handle_domain_error(ctx: click.Context, error: DomainError | ValueError) -> None:
    """Render a domain error and exit with failure."""
    click.echo(f"Error: {error}", err=True)
    ctx.exit(1)


def unwrap(ctx: click.Context, result: ActionResult) -> Any:
    """Return the data of a successful result, or render its error and exit."""
    if not result.success:
        click.echo(f"Error: {result.error.message}", err=True)
        details = result.error.details
        if isinstance(details, dict):
            for key, value in details.items():
                click.echo(f"  {key}: {value}", err=True)
        ctx.exit(1)
    return result.data
