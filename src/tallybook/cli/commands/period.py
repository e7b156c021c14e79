"""Accounting period commands."""

import click

from tallybook.actions.setup import SetupActions
from tallybook.cli.context import organization_option, resolve_organization
from tallybook.cli.error_handling import unwrap
from tallybook.utils.date_parser import parse_date


def _parse_or_exit(ctx, value: str, label: str):
    try:
        return parse_date(value, allow_relative=True)
    except ValueError as e:
        click.echo(f"Error: Invalid {label}: {e}", err=True)
        ctx.exit(1)


@click.group()
def period_group():
    """Manage accounting periods."""
    pass


@period_group.command("create")
@click.argument("fiscal_year", type=int)
@click.argument("start_date")
@click.argument("end_date")
@click.option("--name", help="Period name (defaults to FY<year>)")
@organization_option
@click.pass_context
def create_period(ctx, fiscal_year: int, start_date: str, end_date: str, name: str | None, organization_id: int | None):
    """Create an open accounting period.

    Examples:
        tallybook period create 2024 2024-01-01 2024-12-31
    """
    organization_id = resolve_organization(ctx, organization_id)
    start = _parse_or_exit(ctx, start_date, "start date")
    end = _parse_or_exit(ctx, end_date, "end date")
    actions = SetupActions(ctx.obj["db"], ctx.obj["session"])
    period = unwrap(ctx, actions.create_period(organization_id, fiscal_year, start, end, name=name))
    click.echo(f"Created period '{period.name}' {period.start_date} to {period.end_date} (ID: {period.id})")


@period_group.command("list")
@organization_option
@click.pass_context
def list_periods(ctx, organization_id: int | None):
    """List accounting periods, newest first."""
    organization_id = resolve_organization(ctx, organization_id)
    periods = unwrap(ctx, SetupActions(ctx.obj["db"], ctx.obj["session"]).list_periods(organization_id))
    if not periods:
        click.echo("No accounting periods found.")
        return
    for p in periods:
        state = "closed" if p.is_closed else "open"
        click.echo(f"ID: {p.id:3d} | {p.name:10s} | {p.start_date} to {p.end_date} | {state}")


@period_group.command("close")
@click.argument("period_id", type=int)
@organization_option
@click.pass_context
def close_period(ctx, period_id: int, organization_id: int | None):
    """Close an accounting period."""
    organization_id = resolve_organization(ctx, organization_id)
    unwrap(ctx, SetupActions(ctx.obj["db"], ctx.obj["session"]).close_period(organization_id, period_id))
    click.echo(f"Closed period {period_id}")


def register_commands(cli):
    """Register accounting period commands with main CLI."""
    cli.add_command(period_group, name="period")
