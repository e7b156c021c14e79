"""CLI helpers for account resolution."""

from __future__ import annotations

import click
from tallybook.domain.account import AccountService
from tallybook.domain.errors import NotFoundError
from tallybook.utils.account_resolver import resolve_account


def resolve_account_or_exit(
    ctx: click.Context, account_service: AccountService, organization_id: int, account: str | int
) -> int:
    """Resolve an account code or ID, or exit with a CLI error."""
    try:
        return resolve_account(account_service, organization_id, account)
    except NotFoundError as exc:
        click.echo(f"Error: {exc}", err=True)
        ctx.exit(1)
