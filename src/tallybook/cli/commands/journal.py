"""Journal entry commands."""

import click

from tallybook.actions.journal_entries import JournalEntryActions
from tallybook.cli.account_resolution import resolve_account_or_exit
from tallybook.cli.context import organization_option, resolve_organization
from tallybook.cli.error_handling import unwrap
from tallybook.domain.account import AccountService
from tallybook.domain.entities import JournalStatus
from tallybook.domain.journal_entry import JournalEntryInput, JournalLineInput
from tallybook.utils.amount_parser import parse_amount
from tallybook.utils.date_parser import parse_date


def _actions(ctx) -> JournalEntryActions:
    return JournalEntryActions(ctx.obj["db"], ctx.obj["session"])


@click.group()
def journal_group():
    """Record and approve journal entries."""
    pass


@journal_group.command("create")
@click.argument("entry_date", metavar="DATE")
@click.argument("description")
@click.option(
    "--debit",
    "debits",
    multiple=True,
    metavar="ACCOUNT=AMOUNT",
    help="Debit line (account code or #ID)",
)
@click.option(
    "--credit",
    "credits",
    multiple=True,
    metavar="ACCOUNT=AMOUNT",
    help="Credit line (account code or #ID)",
)
@click.option("--approve", is_flag=True, help="Approve the entry right away")
@organization_option
@click.pass_context
def create_entry(ctx, entry_date: str, description: str, debits, credits, approve: bool, organization_id: int | None):
    """Record a balanced journal entry.

    Examples:
        tallybook journal create 2024-01-15 "Office supplies" --debit 7190=3300 --credit 1010=3300
    """
    organization_id = resolve_organization(ctx, organization_id)
    try:
        entry_day = parse_date(entry_date, allow_relative=True)
    except ValueError as e:
        click.echo(f"Error: Invalid date: {e}", err=True)
        ctx.exit(1)

    accounts = AccountService(ctx.obj["db"])
    lines = []
    for side, values in (("debit", debits), ("credit", credits)):
        for value in values:
            try:
                account, amount_str = value.rsplit("=", 1)
                amount = parse_amount(amount_str)
            except ValueError:
                click.echo(f"Error: Invalid --{side} value '{value}' (expected ACCOUNT=AMOUNT)", err=True)
                ctx.exit(1)
            account_id = resolve_account_or_exit(ctx, accounts, organization_id, account)
            if side == "debit":
                lines.append(JournalLineInput(account_id=account_id, debit_amount=amount))
            else:
                lines.append(JournalLineInput(account_id=account_id, credit_amount=amount))

    entry = JournalEntryInput(
        organization_id=organization_id,
        entry_date=entry_day,
        description=description,
        lines=tuple(lines),
    )
    actions = _actions(ctx)
    created = unwrap(ctx, actions.create_journal_entry(entry))
    click.echo(f"Created journal entry {created.entry_number} (ID: {created.id})")
    if approve:
        unwrap(ctx, actions.approve_journal_entry(organization_id, created.id))
        click.echo("Approved")


@journal_group.command("approve")
@click.argument("entry_id", type=int)
@organization_option
@click.pass_context
def approve_entry(ctx, entry_id: int, organization_id: int | None):
    """Approve a draft entry."""
    organization_id = resolve_organization(ctx, organization_id)
    entry = unwrap(ctx, _actions(ctx).approve_journal_entry(organization_id, entry_id))
    click.echo(f"Approved journal entry {entry.entry_number}")


@journal_group.command("list")
@click.option("--status", type=click.Choice([s.value for s in JournalStatus]), help="Only entries with this status")
@organization_option
@click.pass_context
def list_entries(ctx, status: str | None, organization_id: int | None):
    """List journal entries."""
    organization_id = resolve_organization(ctx, organization_id)
    entries = unwrap(
        ctx,
        _actions(ctx).list_journal_entries(organization_id, status=JournalStatus(status) if status else None),
    )
    if not entries:
        click.echo("No journal entries found.")
        return
    for e in entries:
        click.echo(
            f"ID: {e.id:4d} | {e.entry_number} | {e.entry_date} | {e.description[:30]:30s} | "
            f"{e.total_amount:>12} | {e.status.value}"
        )


def register_commands(cli):
    """Register journal commands with main CLI."""
    cli.add_command(journal_group, name="journal")
