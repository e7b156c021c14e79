"""Main CLI entry point."""

import logging

import click
from dotenv import load_dotenv

from tallybook.cli.context import build_classifier
from tallybook.config import load_settings
from tallybook.database.factories import create_sqlite_database
from tallybook.domain.access import StaticSession

# Import and register all commands at module level
from tallybook.cli.commands import (
    account,
    import_cmd,
    journal,
    ledger,
    org,
    period,
    rule,
    template,
)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


@click.group()
@click.option(
    "--db-path",
    type=click.Path(),
    help="Path to database file (overrides TALLYBOOK_DB_PATH environment variable)",
    envvar="TALLYBOOK_DB_PATH",
)
@click.option(
    "--user",
    "user_email",
    help="Email of the user to act as (overrides TALLYBOOK_USER environment variable)",
    envvar="TALLYBOOK_USER",
)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="WARNING",
    envvar="TALLYBOOK_LOG_LEVEL",
    help="Logging level",
)
@click.pass_context
def cli(ctx, db_path: str | None, user_email: str | None, log_level: str):
    """Tallybook - Double-entry bookkeeping with bank CSV import.

    Keep journals and ledgers for several organizations, and import bank
    statements in the CSV formats of common Japanese banks.
    """
    ctx.ensure_object(dict)
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Initialize database connection only when actually running a command
    # (not when showing help)
    if ctx.invoked_subcommand is not None:
        settings = load_settings()
        db = create_sqlite_database(database_path=db_path)
        db.connect()
        db.initialize_schema()
        ctx.call_on_close(db.disconnect)

        user = db.get_user_by_email(user_email) if user_email else None
        ctx.obj["db"] = db
        ctx.obj["settings"] = settings
        ctx.obj["user_email"] = user_email
        ctx.obj["session"] = StaticSession(user)
        classifier = build_classifier(settings)
        if classifier.external is not None:
            ctx.call_on_close(classifier.external.close)
        ctx.obj["classifier"] = classifier


# Register all commands
org.register_commands(cli)
account.register_commands(cli)
period.register_commands(cli)
template.register_commands(cli)
import_cmd.register_commands(cli)
rule.register_commands(cli)
journal.register_commands(cli)
ledger.register_commands(cli)


def main():
    """Main entry point for CLI."""
    load_dotenv()
    cli()


if __name__ == "__main__":
    main()
