"""Ledger query actions.

Dates are passed as YYYY-MM-DD strings and ledgers are read from the user's
default organization unless an organization ID is given.
"""

from datetime import date
from typing import Optional

from tallybook.actions.result import action_boundary
from tallybook.database.base import Database
from tallybook.domain.access import AccessService, SessionProvider
from tallybook.domain.errors import ValidationError
from tallybook.domain.ledger import LedgerKind, LedgerService
from tallybook.utils.date_parser import parse_iso_date


def _date_range(start_date: str, end_date: str) -> tuple[date, date]:
    try:
        start, end = parse_iso_date(start_date), parse_iso_date(end_date)
    except ValueError as e:
        raise ValidationError(str(e))
    if start > end:
        raise ValidationError("Start date must not be after end date")
    return start, end


class LedgerActions:
    """Ledger reports for the signed-in user, wrapped in ActionResult."""

    def __init__(self, db: Database, session: SessionProvider):
        """Initialize ledger actions.

        Args:
            db: Database instance
            session: Source of the signed-in user
        """
        self.session = session
        self.access = AccessService(db)
        self.service = LedgerService(db)

    def _ledger(self, kind: LedgerKind, start_date: str, end_date: str, organization_id: Optional[int]):
        user = self.access.require_user(self.session)
        start, end = _date_range(start_date, end_date)
        return self.service.get_ledger(user.id, kind, start, end, organization_id)

    @action_boundary
    def get_cash_book(self, start_date: str, end_date: str, organization_id: Optional[int] = None):
        return self._ledger(LedgerKind.CASH, start_date, end_date, organization_id)

    @action_boundary
    def get_bank_book(self, start_date: str, end_date: str, organization_id: Optional[int] = None):
        return self._ledger(LedgerKind.BANK, start_date, end_date, organization_id)

    @action_boundary
    def get_accounts_receivable(self, start_date: str, end_date: str, organization_id: Optional[int] = None):
        return self._ledger(LedgerKind.RECEIVABLE, start_date, end_date, organization_id)

    @action_boundary
    def get_accounts_payable(self, start_date: str, end_date: str, organization_id: Optional[int] = None):
        return self._ledger(LedgerKind.PAYABLE, start_date, end_date, organization_id)

    @action_boundary
    def get_general_ledger(
        self, account_id: int, start_date: str, end_date: str, organization_id: Optional[int] = None
    ):
        user = self.access.require_user(self.session)
        start, end = _date_range(start_date, end_date)
        return self.service.get_general_ledger(user.id, account_id, start, end, organization_id)

    @action_boundary
    def export_ledger_to_csv(
        self, ledger_type: str, start_date: str, end_date: str, organization_id: Optional[int] = None
    ):
        user = self.access.require_user(self.session)
        try:
            kind = LedgerKind(ledger_type)
        except ValueError:
            raise ValidationError(f"Unknown ledger type '{ledger_type}'")
        start, end = _date_range(start_date, end_date)
        return self.service.export_ledger_to_csv(user.id, kind, start, end, organization_id)
