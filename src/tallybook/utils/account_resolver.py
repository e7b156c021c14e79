"""Utility for resolving account codes to IDs."""

from tallybook.domain.account import AccountService
from tallybook.domain.errors import NotFoundError


def resolve_account(account_service: AccountService, organization_id: int, account: str | int) -> int:
    """Resolve an account code or ID to an account ID within an organization.

    Args:
        account_service: AccountService instance
        organization_id: Organization the account must belong to
        account: Account code (str) or ID (int or "#<id>")

    Returns:
        Account ID

    Raises:
        NotFoundError: If account is not found
    """
    if isinstance(account, int):
        account_obj = account_service.get_account(account)
        if account_obj is None or account_obj.organization_id != organization_id:
            raise NotFoundError(f"Account ID {account} not found")
        return account

    # "#12" addresses an account by ID; bare values are chart codes such as "1110"
    if account.startswith("#") and account[1:].isdigit():
        return resolve_account(account_service, organization_id, int(account[1:]))

    for acc in account_service.list_accounts(organization_id):
        if acc.code == account:
            return acc.id

    raise NotFoundError(f"Account '{account}' not found")
