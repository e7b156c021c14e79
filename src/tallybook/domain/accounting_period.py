"""Accounting period domain service."""

from datetime import date
from typing import Optional

from tallybook.database.base import AccountingPeriodRepository
from tallybook.domain.entities import AccountingPeriod
from tallybook.domain.errors import NotFoundError, ValidationError


class AccountingPeriodService:
    """Service for fiscal periods."""

    def __init__(self, db: AccountingPeriodRepository):
        """Initialize accounting period service.

        Args:
            db: Database instance
        """
        self.db = db

    def create_period(
        self,
        organization_id: int,
        fiscal_year: int,
        start_date: date,
        end_date: date,
        name: Optional[str] = None,
    ) -> AccountingPeriod:
        """Create a fiscal period.

        Raises:
            ValidationError: If the end date is not after the start date
            ConflictError: If the fiscal year already has a period
        """
        if end_date <= start_date:
            raise ValidationError("Period end date must be after its start date")
        period_id = self.db.create_accounting_period(
            organization_id,
            fiscal_year=fiscal_year,
            name=name or f"FY{fiscal_year}",
            start_date=start_date,
            end_date=end_date,
        )
        return self.db.get_accounting_period(period_id)

    def get_open_period(self, organization_id: int) -> Optional[AccountingPeriod]:
        """Return the non-closed period with the latest start date, or None."""
        return self.db.get_open_accounting_period(organization_id)

    def get_period(self, organization_id: int, period_id: int) -> AccountingPeriod:
        """Get a period of the organization.

        Raises:
            NotFoundError: If the period does not exist in the organization
        """
        period = self.db.get_accounting_period(period_id)
        if period is None or period.organization_id != organization_id:
            raise NotFoundError(f"Accounting period {period_id} not found")
        return period

    def list_periods(self, organization_id: int) -> list[AccountingPeriod]:
        """List periods, newest first."""
        return self.db.list_accounting_periods(organization_id)

    def close_period(self, organization_id: int, period_id: int) -> None:
        """Close a period so no new entries can be posted into it."""
        self.get_period(organization_id, period_id)
        self.db.close_accounting_period(period_id)
