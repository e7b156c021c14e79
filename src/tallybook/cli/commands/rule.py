"""Import rule commands."""

import click

from tallybook.actions.csv_import import ImportActions
from tallybook.cli.account_resolution import resolve_account_or_exit
from tallybook.cli.context import organization_option, resolve_organization
from tallybook.cli.error_handling import unwrap
from tallybook.domain.account import AccountService


def _actions(ctx) -> ImportActions:
    return ImportActions(ctx.obj["db"], ctx.obj["session"])


@click.group()
def rule_group():
    """Manage account classification rules."""
    pass


@rule_group.command("create")
@click.argument("pattern")
@click.argument("debit_account", metavar="DEBIT")
@click.argument("credit_account", metavar="CREDIT")
@click.option("--confidence", type=click.FloatRange(0, 1), default=0.8, show_default=True)
@organization_option
@click.pass_context
def create_rule(ctx, pattern: str, debit_account: str, credit_account: str, confidence: float, organization_id: int | None):
    """Create a rule mapping descriptions to a debit/credit pair.

    PATTERN is a case-insensitive substring, or a regular expression when
    written as /.../. Accounts are codes or #IDs.

    Examples:
        tallybook rule create 東京電力 7130 1110
        tallybook rule create "/^JR(東|西)/" 7110 1110 --confidence 0.9
    """
    organization_id = resolve_organization(ctx, organization_id)
    accounts = AccountService(ctx.obj["db"])
    debit_id = resolve_account_or_exit(ctx, accounts, organization_id, debit_account)
    credit_id = resolve_account_or_exit(ctx, accounts, organization_id, credit_account)
    rule = unwrap(ctx, _actions(ctx).create_import_rule(organization_id, pattern, debit_id, credit_id, confidence))
    click.echo(f"Created rule '{rule.description_pattern}' (ID: {rule.id})")


@rule_group.command("list")
@organization_option
@click.pass_context
def list_rules(ctx, organization_id: int | None):
    """List rules, most used first."""
    organization_id = resolve_organization(ctx, organization_id)
    rules = unwrap(ctx, _actions(ctx).get_import_rules(organization_id))
    if not rules:
        click.echo("No rules found.")
        return
    for r in rules:
        state = "" if r.is_active else " (inactive)"
        click.echo(
            f"ID: {r.id:3d} | {r.description_pattern:30s} | #{r.account_id} / #{r.contra_account_id} | "
            f"confidence {r.confidence:.2f} | used {r.usage_count}{state}"
        )


@rule_group.command("update")
@click.argument("rule_id", type=int)
@click.option("--pattern", help="New description pattern")
@click.option("--debit", "debit_account", help="New debit account")
@click.option("--credit", "credit_account", help="New credit account")
@click.option("--confidence", type=click.FloatRange(0, 1))
@click.option("--active/--inactive", default=None, help="Enable or disable the rule")
@organization_option
@click.pass_context
def update_rule(ctx, rule_id: int, pattern, debit_account, credit_account, confidence, active, organization_id: int | None):
    """Update a rule."""
    organization_id = resolve_organization(ctx, organization_id)
    accounts = AccountService(ctx.obj["db"])
    fields = {}
    if pattern is not None:
        fields["description_pattern"] = pattern
    if debit_account is not None:
        fields["account_id"] = resolve_account_or_exit(ctx, accounts, organization_id, debit_account)
    if credit_account is not None:
        fields["contra_account_id"] = resolve_account_or_exit(ctx, accounts, organization_id, credit_account)
    if confidence is not None:
        fields["confidence"] = confidence
    if active is not None:
        fields["is_active"] = active
    if not fields:
        click.echo("Nothing to update.")
        return
    unwrap(ctx, _actions(ctx).update_import_rule(organization_id, rule_id, **fields))
    click.echo(f"Updated rule {rule_id}")


@rule_group.command("delete")
@click.argument("rule_id", type=int)
@organization_option
@click.pass_context
def delete_rule(ctx, rule_id: int, organization_id: int | None):
    """Delete a rule."""
    organization_id = resolve_organization(ctx, organization_id)
    unwrap(ctx, _actions(ctx).delete_import_rule(organization_id, rule_id))
    click.echo(f"Deleted rule {rule_id}")


def register_commands(cli):
    """Register rule commands with main CLI."""
    cli.add_command(rule_group, name="rule")
