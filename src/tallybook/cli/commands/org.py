"""Organization and membership commands."""

import click

from tallybook.cli.error_handling import handle_domain_error
from tallybook.domain.access import AccessService, RULE_ADMIN_ROLES
from tallybook.domain.entities import Role
from tallybook.domain.errors import DomainError
from tallybook.domain.organization import OrganizationService


@click.group()
def org_group():
    """Manage organizations and members."""
    pass


@org_group.command("create")
@click.argument("name", metavar="NAME")
@click.argument("code", metavar="CODE")
@click.option("--owner", help="Owner email (defaults to --user)")
@click.pass_context
def create_organization(ctx, name: str, code: str, owner: str | None):
    """Create an organization and make it the owner's default.

    Examples:
        tallybook --user taro@example.com org create "Yamada Shoten" yamada
        tallybook org create "Sato LLC" sato --owner hanako@example.com
    """
    owner_email = owner or ctx.obj["user_email"]
    if not owner_email:
        click.echo("Error: An owner is required (use --owner or --user).", err=True)
        ctx.exit(1)

    service = OrganizationService(ctx.obj["db"])
    try:
        organization = service.create_organization(name=name, code=code, owner_email=owner_email)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Created organization '{organization.name}' (ID: {organization.id})")
    click.echo(f"Owner: {owner_email}")


@org_group.command("add-member")
@click.argument("organization_id", type=int, metavar="ORG_ID")
@click.argument("email", metavar="EMAIL")
@click.option(
    "--role",
    type=click.Choice([role.value for role in Role]),
    default=Role.MEMBER.value,
    show_default=True,
    help="Role of the new member",
)
@click.option("--default", "is_default", is_flag=True, help="Make this the member's default organization")
@click.pass_context
def add_member(ctx, organization_id: int, email: str, role: str, is_default: bool):
    """Add a user to an organization (owner or admin only).

    Examples:
        tallybook --user taro@example.com org add-member 1 jiro@example.com --role accountant
    """
    db = ctx.obj["db"]
    access = AccessService(db)
    try:
        user = access.require_user(ctx.obj["session"])
        access.require_membership(user.id, organization_id, roles=RULE_ADMIN_ROLES)
        member = OrganizationService(db).add_member(organization_id, email, Role(role), is_default=is_default)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Added {member.email} to organization {organization_id} as {role}")


def register_commands(cli):
    """Register organization commands with main CLI."""
    cli.add_command(org_group, name="org")
