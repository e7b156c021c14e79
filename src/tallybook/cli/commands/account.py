"""Chart of accounts commands."""

import click

from tallybook.actions.setup import SetupActions
from tallybook.cli.context import organization_option, resolve_organization
from tallybook.cli.error_handling import unwrap
from tallybook.domain.entities import AccountType


def _actions(ctx) -> SetupActions:
    return SetupActions(ctx.obj["db"], ctx.obj["session"])


@click.group()
def account_group():
    """Manage the chart of accounts."""
    pass


@account_group.command("create")
@click.argument("code", metavar="CODE")
@click.argument("name", metavar="NAME")
@click.option(
    "--type",
    "account_type",
    type=click.Choice([t.value for t in AccountType]),
    required=True,
    help="Account type",
)
@organization_option
@click.pass_context
def create_account(ctx, code: str, name: str, account_type: str, organization_id: int | None):
    """Create an account.

    Examples:
        tallybook account create 1110 普通預金 --type ASSETS
        tallybook account create 7130 水道光熱費 --type EXPENSES --org 2
    """
    organization_id = resolve_organization(ctx, organization_id)
    account = unwrap(ctx, _actions(ctx).create_account(organization_id, code, name, AccountType(account_type)))
    click.echo(f"Created account {account.code} '{account.name}' (ID: {account.id})")


@account_group.command("list")
@click.option("--active-only", is_flag=True, help="Hide inactive accounts")
@organization_option
@click.pass_context
def list_accounts(ctx, active_only: bool, organization_id: int | None):
    """List accounts ordered by code."""
    organization_id = resolve_organization(ctx, organization_id)
    accounts = unwrap(ctx, _actions(ctx).list_accounts(organization_id, active_only=active_only))
    if not accounts:
        click.echo("No accounts found.")
        return

    click.echo("\nAccounts:")
    click.echo("-" * 60)
    for acc in accounts:
        click.echo(f"ID: {acc.id:3d} | {acc.code:6s} | {acc.name:20s} | {acc.account_type.value}")


@account_group.command("add-partner")
@click.argument("code", metavar="CODE")
@click.argument("name", metavar="NAME")
@organization_option
@click.pass_context
def add_partner(ctx, code: str, name: str, organization_id: int | None):
    """Register a customer or supplier."""
    organization_id = resolve_organization(ctx, organization_id)
    partner_id = unwrap(ctx, _actions(ctx).create_partner(organization_id, code, name))
    click.echo(f"Created partner '{name}' (ID: {partner_id})")


def register_commands(cli):
    """Register account commands with main CLI."""
    cli.add_command(account_group, name="account")
