"""Account domain service."""

from typing import Optional
from tallybook.database.base import AccountRepository
from tallybook.domain.entities import Account as AccountEntity, AccountType, Partner
from tallybook.domain.errors import ConflictError, ValidationError


class AccountService:
    """Service for managing the chart of accounts."""

    def __init__(self, db: AccountRepository):
        """Initialize account service.

        Args:
            db: Database instance
        """
        self.db = db

    def create_account(self, organization_id: int, code: str, name: str, account_type: AccountType) -> int:
        """Create a new account.

        Args:
            organization_id: Owning organization
            code: Chart code, e.g. "1110"
            name: Account name, e.g. "普通預金"
            account_type: ASSETS, LIABILITIES, EQUITY, REVENUE or EXPENSES

        Returns:
            Account ID

        Raises:
            ValidationError: If code or name is empty
            ConflictError: If the code is already used in the organization
        """
        code, name = code.strip(), name.strip()
        if not code or not name:
            raise ValidationError("Account code and name are required")
        try:
            account_type = AccountType(account_type)
        except ValueError:
            raise ValidationError(f"Unknown account type '{account_type}'")

        for acc in self.db.list_accounts(organization_id):
            if acc.code == code:
                raise ConflictError(f"Account with code '{code}' already exists")

        return self.db.create_account(organization_id, code=code, name=name, account_type=account_type)

    def get_account(self, account_id: int) -> Optional[AccountEntity]:
        """Get account by ID.

        Args:
            account_id: Account ID

        Returns:
            Account entity or None if not found
        """
        return self.db.get_account(account_id)

    def list_accounts(self, organization_id: int, active_only: bool = False) -> list[AccountEntity]:
        """List the organization's accounts ordered by code."""
        return self.db.list_accounts(organization_id, active_only=active_only)

    def create_partner(self, organization_id: int, code: str, name: str) -> int:
        """Create a customer or supplier. Returns partner ID."""
        if not code.strip() or not name.strip():
            raise ValidationError("Partner code and name are required")
        return self.db.create_partner(organization_id, code=code.strip(), name=name.strip())

    def list_partners(self, organization_id: int) -> list[Partner]:
        """List the organization's partners."""
        return self.db.list_partners(organization_id)
