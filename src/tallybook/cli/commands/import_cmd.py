"""CSV import commands."""

from dataclasses import replace
from pathlib import Path

import click

from tallybook.actions.csv_import import ImportActions
from tallybook.cli.account_resolution import resolve_account_or_exit
from tallybook.cli.context import organization_option, resolve_organization
from tallybook.cli.error_handling import unwrap
from tallybook.domain.account import AccountService


def _actions(ctx) -> ImportActions:
    return ImportActions(ctx.obj["db"], ctx.obj["session"], classifier=ctx.obj["classifier"])


def _account_labels(ctx, organization_id: int) -> dict[int, str]:
    return {acc.id: f"{acc.code} {acc.name}" for acc in AccountService(ctx.obj["db"]).list_accounts(organization_id)}


@click.group()
def import_group():
    """Import bank statement CSV files."""
    pass


@import_group.command("upload")
@click.argument("csv_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--template", "template_id", type=int, help="Template ID (auto-detected when omitted)")
@organization_option
@click.pass_context
def upload(ctx, csv_file: str, template_id: int | None, organization_id: int | None):
    """Upload a CSV file as a pending import."""
    organization_id = resolve_organization(ctx, organization_id)
    path = Path(csv_file)
    history = unwrap(ctx, _actions(ctx).upload_csv_file(organization_id, path.read_bytes(), path.name, template_id))
    click.echo(f"Uploaded '{history.file_name}' (import ID: {history.id})")
    click.echo(f"  Format: {history.csv_format}")
    click.echo(f"  Rows: {history.total_rows}")


@import_group.command("preview")
@click.argument("import_id", type=int)
@organization_option
@click.pass_context
def preview(ctx, import_id: int, organization_id: int | None):
    """Show rows with duplicate flags and suggested accounts."""
    organization_id = resolve_organization(ctx, organization_id)
    result = unwrap(ctx, _actions(ctx).preview_import(organization_id, import_id))
    labels = _account_labels(ctx, organization_id)

    rows = {row.row_index: row for row in result.preview.rows}
    click.echo(f"\n{result.preview.total_rows} rows")
    click.echo("-" * 100)
    for mapping in result.mappings:
        row = rows[mapping.row_index]
        debit = labels.get(mapping.account_id, "-")
        credit = labels.get(mapping.contra_account_id, "-")
        flag = " [duplicate]" if mapping.is_duplicate else ""
        click.echo(
            f"{row.row_index:4d} | {row.date} | {row.description[:30]:30s} | {row.amount:>12} | "
            f"{debit} / {credit} ({mapping.confidence:.1f}){flag}"
        )


@import_group.command("execute")
@click.argument("import_id", type=int)
@click.option(
    "--map",
    "overrides",
    multiple=True,
    metavar="ROW=DEBIT:CREDIT",
    help="Override the suggested accounts of a row (account codes or #IDs)",
)
@click.option("--include-duplicates", is_flag=True, help="Import rows flagged as duplicates")
@click.option("--learn-rules", is_flag=True, help="Create rules from low-confidence mappings")
@organization_option
@click.pass_context
def execute(ctx, import_id: int, overrides: tuple[str, ...], include_duplicates: bool, learn_rules: bool, organization_id: int | None):
    """Create draft journal entries from an import.

    Rows use the suggested accounts unless overridden with --map.

    Examples:
        tallybook import execute 3
        tallybook import execute 3 --map 0=7130:1110 --map 4=#12:#7 --learn-rules
    """
    organization_id = resolve_organization(ctx, organization_id)
    actions = _actions(ctx)
    preview_result = unwrap(ctx, actions.preview_import(organization_id, import_id))
    mappings = {m.row_index: m for m in preview_result.mappings}

    account_service = AccountService(ctx.obj["db"])
    for override in overrides:
        try:
            row_part, accounts_part = override.split("=", 1)
            debit, credit = accounts_part.split(":", 1)
            row_index = int(row_part)
        except ValueError:
            click.echo(f"Error: Invalid --map value '{override}' (expected ROW=DEBIT:CREDIT)", err=True)
            ctx.exit(1)
        if row_index not in mappings:
            click.echo(f"Error: Row {row_index} is not part of import {import_id}", err=True)
            ctx.exit(1)
        mappings[row_index] = replace(
            mappings[row_index],
            account_id=resolve_account_or_exit(ctx, account_service, organization_id, debit),
            contra_account_id=resolve_account_or_exit(ctx, account_service, organization_id, credit),
            confidence=1.0,
            rule_id=None,
        )

    summary = unwrap(
        ctx,
        actions.execute_import(
            organization_id,
            import_id,
            list(mappings.values()),
            skip_duplicates=not include_duplicates,
            create_rules_from_mappings=learn_rules,
        ),
    )
    click.echo("\nImport complete:")
    click.echo(f"  Imported: {summary.imported_rows} rows")
    click.echo(f"  Skipped: {summary.skipped_rows} duplicates")
    click.echo(f"  Failed: {summary.failed_rows}")
    if summary.orphaned_journal_entries:
        ids = ", ".join(str(i) for i in summary.orphaned_journal_entries)
        click.echo(f"  Entries without lines (check manually): {ids}", err=True)
    for error in summary.errors:
        click.echo(f"    Row {error.row}: {error.error}", err=True)
    if summary.failed_rows:
        ctx.exit(1)


@import_group.command("history")
@click.option("--page", type=int, default=1, show_default=True)
@click.option("--page-size", type=int, default=20, show_default=True)
@click.option("--search", help="Filter by file name")
@click.option(
    "--order-by",
    type=click.Choice(["created_at", "file_name", "status", "total_rows"]),
    default="created_at",
    show_default=True,
)
@click.option("--ascending", is_flag=True, help="Oldest first")
@organization_option
@click.pass_context
def history(ctx, page: int, page_size: int, search: str | None, order_by: str, ascending: bool, organization_id: int | None):
    """List past imports."""
    organization_id = resolve_organization(ctx, organization_id)
    result = unwrap(
        ctx,
        _actions(ctx).get_import_history(
            organization_id,
            page=page,
            page_size=page_size,
            search=search,
            order_by=order_by,
            descending=not ascending,
        ),
    )
    if not result.items:
        click.echo("No imports found.")
        return
    for item in result.items:
        click.echo(
            f"ID: {item.id:3d} | {item.file_name:25s} | {item.status.value:10s} | "
            f"{item.imported_rows}/{item.total_rows} imported, {item.failed_rows} failed"
        )
    click.echo(f"Page {result.page} of {result.total_pages} ({result.total_count} imports)")


def register_commands(cli):
    """Register import commands with main CLI."""
    cli.add_command(import_group, name="import")
