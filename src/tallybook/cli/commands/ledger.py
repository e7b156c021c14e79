"""Ledger report commands."""

from pathlib import Path

import click

from tallybook.actions.ledgers import LedgerActions
from tallybook.cli.context import organization_option
from tallybook.cli.date_filters import period_options, resolve_cli_date_range
from tallybook.cli.error_handling import unwrap
from tallybook.domain.ledger import LedgerKind


def _print_ledger(ledger) -> None:
    click.echo(f"\nOpening balance: {ledger.opening_balance}")
    click.echo("-" * 110)
    for row in ledger.entries:
        click.echo(
            f"{row.date} | {row.entry_number} | {row.description[:30]:30s} | {row.counter_account_name[:12]:12s} | "
            f"{row.debit_amount:>12} | {row.credit_amount:>12} | {row.balance:>12}"
        )
    click.echo("-" * 110)
    click.echo(f"Closing balance: {ledger.closing_balance}")


def _ledger_command(name: str, method_name: str, help_text: str):
    @click.command(name, help=help_text)
    @period_options
    @organization_option
    @click.pass_context
    def command(ctx, start_date, end_date, period, organization_id):
        start, end = resolve_cli_date_range(ctx, start_date=start_date, end_date=end_date, period=period)
        actions = LedgerActions(ctx.obj["db"], ctx.obj["session"])
        ledger = unwrap(ctx, getattr(actions, method_name)(start.isoformat(), end.isoformat(), organization_id))
        _print_ledger(ledger)

    return command


@click.group()
def ledger_group():
    """Show cash, bank, receivable and payable ledgers."""
    pass


ledger_group.add_command(_ledger_command("cash", "get_cash_book", "Show the cash book."))
ledger_group.add_command(_ledger_command("bank", "get_bank_book", "Show the bank book."))
ledger_group.add_command(
    _ledger_command("receivable", "get_accounts_receivable", "Show the accounts receivable ledger.")
)
ledger_group.add_command(
    _ledger_command("payable", "get_accounts_payable", "Show the accounts payable ledger.")
)


@ledger_group.command("account")
@click.argument("account_id", type=int)
@period_options
@organization_option
@click.pass_context
def general_ledger(ctx, account_id: int, start_date, end_date, period, organization_id):
    """Show the ledger of one account."""
    start, end = resolve_cli_date_range(ctx, start_date=start_date, end_date=end_date, period=period)
    actions = LedgerActions(ctx.obj["db"], ctx.obj["session"])
    _print_ledger(unwrap(ctx, actions.get_general_ledger(account_id, start.isoformat(), end.isoformat(), organization_id)))


@ledger_group.command("export")
@click.argument("kind", type=click.Choice([k.value for k in LedgerKind]))
@period_options
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Write to a file instead of stdout")
@organization_option
@click.pass_context
def export_ledger(ctx, kind: str, start_date, end_date, period, output: str | None, organization_id):
    """Export a ledger as CSV."""
    start, end = resolve_cli_date_range(ctx, start_date=start_date, end_date=end_date, period=period)
    actions = LedgerActions(ctx.obj["db"], ctx.obj["session"])
    text = unwrap(ctx, actions.export_ledger_to_csv(kind, start.isoformat(), end.isoformat(), organization_id))
    if output:
        Path(output).write_text(text, encoding="utf-8")
        click.echo(f"Wrote {output}")
    else:
        click.echo(text, nl=False)


def register_commands(cli):
    """Register ledger commands with main CLI."""
    cli.add_command(ledger_group, name="ledger")
