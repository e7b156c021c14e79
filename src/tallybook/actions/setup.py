"""Chart of accounts and accounting period actions."""

from datetime import date
from typing import Optional

from tallybook.actions.result import action_boundary
from tallybook.database.base import Database
from tallybook.domain.access import ACCOUNT_ADMIN_ROLES, PERIOD_ADMIN_ROLES, AccessService, SessionProvider
from tallybook.domain.account import AccountService
from tallybook.domain.accounting_period import AccountingPeriodService
from tallybook.domain.entities import AccountType


class SetupActions:
    """Organization setup for the signed-in user, wrapped in ActionResult."""

    def __init__(self, db: Database, session: SessionProvider):
        """Initialize setup actions.

        Args:
            db: Database instance
            session: Source of the signed-in user
        """
        self.db = db
        self.session = session
        self.access = AccessService(db)
        self.accounts = AccountService(db)
        self.periods = AccountingPeriodService(db)

    def _member(self, organization_id: int, roles=None) -> int:
        user = self.access.require_user(self.session)
        self.access.require_membership(user.id, organization_id, roles=roles)
        return user.id

    @action_boundary
    def create_account(self, organization_id: int, code: str, name: str, account_type: AccountType):
        self._member(organization_id, roles=ACCOUNT_ADMIN_ROLES)
        account_id = self.accounts.create_account(organization_id, code, name, account_type)
        return self.accounts.get_account(account_id)

    @action_boundary
    def list_accounts(self, organization_id: int, active_only: bool = False):
        self._member(organization_id)
        return self.accounts.list_accounts(organization_id, active_only=active_only)

    @action_boundary
    def create_partner(self, organization_id: int, code: str, name: str):
        self._member(organization_id, roles=ACCOUNT_ADMIN_ROLES)
        return self.accounts.create_partner(organization_id, code, name)

    @action_boundary
    def create_period(
        self,
        organization_id: int,
        fiscal_year: int,
        start_date: date,
        end_date: date,
        name: Optional[str] = None,
    ):
        self._member(organization_id, roles=PERIOD_ADMIN_ROLES)
        return self.periods.create_period(organization_id, fiscal_year, start_date, end_date, name=name)

    @action_boundary
    def list_periods(self, organization_id: int):
        self._member(organization_id)
        return self.periods.list_periods(organization_id)

    @action_boundary
    def close_period(self, organization_id: int, period_id: int):
        self._member(organization_id, roles=PERIOD_ADMIN_ROLES)
        self.periods.close_period(organization_id, period_id)
