"""Helpers for reading the objects the CLI group stores on the context."""

from typing import Optional

import click

from tallybook.config import Settings
from tallybook.domain.access import AccessService
from tallybook.domain.classifier import AccountClassifier
from tallybook.domain.errors import DomainError
from tallybook.integrations.openai_classifier import OpenAIClassifier


def build_classifier(settings: Settings) -> AccountClassifier:
    """Build the account classifier, with the AI client when a key is configured."""
    if not settings.use_ai:
        return AccountClassifier()
    external = OpenAIClassifier(
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        timeout=settings.classifier_timeout,
    )
    return AccountClassifier(external=external, use_ai=True)


def resolve_organization(ctx: click.Context, organization_id: Optional[int]) -> int:
    """Return the given organization, or the signed-in user's default one."""
    if organization_id is not None:
        return organization_id
    access = AccessService(ctx.obj["db"])
    try:
        user = access.require_user(ctx.obj["session"])
        return access.default_organization_id(user.id)
    except DomainError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)


def organization_option(func):
    """Add --org to a command."""
    return click.option(
        "--org",
        "organization_id",
        type=int,
        help="Organization ID (defaults to your default organization)",
    )(func)
