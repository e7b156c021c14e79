"""CSV template commands."""

import click

from tallybook.actions.csv_import import ImportActions
from tallybook.cli.error_handling import unwrap
from tallybook.domain.csv_import import ImportService


@click.group()
def template_group():
    """Manage bank CSV templates."""
    pass


@template_group.command("seed")
@click.pass_context
def seed_templates(ctx):
    """Install the built-in bank templates that are missing."""
    created = ImportService(ctx.obj["db"]).seed_default_templates()
    click.echo(f"Installed {created} template{'s' if created != 1 else ''}")


@template_group.command("list")
@click.pass_context
def list_templates(ctx):
    """List active templates ordered by bank name."""
    templates = unwrap(ctx, ImportActions(ctx.obj["db"], ctx.obj["session"]).get_csv_templates())
    if not templates:
        click.echo("No templates found. Run 'tallybook template seed' first.")
        return
    for t in templates:
        click.echo(f"ID: {t.id:3d} | {t.template_name:15s} | {t.bank_name} | {t.encoding}, {t.date_format}")


def register_commands(cli):
    """Register template commands with main CLI."""
    cli.add_command(template_group, name="template")
