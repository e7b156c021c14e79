"""CLI helpers for date range resolution."""

from datetime import date

import click

from tallybook.utils.date_parser import get_date_range, parse_date

PERIOD_OPTIONS = ("this-month", "this-year", "last-month", "last-year")


def period_options(func):
    """Add --start-date, --end-date and --period to a command."""
    func = click.option(
        "--period",
        type=click.Choice(PERIOD_OPTIONS),
        help="Named date range; cannot be combined with explicit dates",
    )(func)
    func = click.option("--end-date", help="End date (YYYY-MM-DD)")(func)
    func = click.option("--start-date", help="Start date (YYYY-MM-DD)")(func)
    return func


def resolve_cli_date_range(
    ctx,
    *,
    start_date: str | None,
    end_date: str | None,
    period: str | None = None,
    default_period: str = "this-month",
) -> tuple[date, date]:
    """Resolve a date range from --period or explicit dates.

    Missing explicit bounds are filled from the default period.
    """
    if period and (start_date or end_date):
        click.echo(
            "Error: --period cannot be combined with --start-date or --end-date.",
            err=True,
        )
        ctx.exit(1)

    if period:
        return get_date_range(period)

    start, end = get_date_range(default_period)
    if start_date:
        try:
            start = parse_date(start_date, allow_relative=True)
        except ValueError as e:
            click.echo(f"Error: Invalid start date: {e}", err=True)
            ctx.exit(1)

    if end_date:
        try:
            end = parse_date(end_date, allow_relative=True)
        except ValueError as e:
            click.echo(f"Error: Invalid end date: {e}", err=True)
            ctx.exit(1)

    return start, end
