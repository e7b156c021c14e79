"""Journal entry actions."""

from datetime import date
from typing import Optional

from tallybook.actions.result import action_boundary
from tallybook.database.base import Database
from tallybook.domain.access import AccessService, SessionProvider
from tallybook.domain.entities import JournalStatus
from tallybook.domain.journal_entry import JournalEntryInput, JournalEntryService


class JournalEntryActions:
    """Journal entry operations for the signed-in user, wrapped in ActionResult."""

    def __init__(self, db: Database, session: SessionProvider):
        """Initialize journal entry actions.

        Args:
            db: Database instance
            session: Source of the signed-in user
        """
        self.session = session
        self.access = AccessService(db)
        self.service = JournalEntryService(db)

    def _user_id(self) -> int:
        return self.access.require_user(self.session).id

    @action_boundary
    def create_journal_entry(self, entry: JournalEntryInput):
        return self.service.create_journal_entry(self._user_id(), entry)

    @action_boundary
    def get_journal_entry(self, organization_id: int, entry_id: int):
        return self.service.get_journal_entry(self._user_id(), organization_id, entry_id)

    @action_boundary
    def list_journal_entries(
        self,
        organization_id: int,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        status: Optional[JournalStatus] = None,
    ):
        return self.service.list_journal_entries(
            self._user_id(), organization_id, start_date=start_date, end_date=end_date, status=status
        )

    @action_boundary
    def approve_journal_entry(self, organization_id: int, entry_id: int):
        return self.service.approve_journal_entry(self._user_id(), organization_id, entry_id)

    @action_boundary
    def delete_journal_entry(self, organization_id: int, entry_id: int):
        self.service.delete_journal_entry(self._user_id(), organization_id, entry_id)
