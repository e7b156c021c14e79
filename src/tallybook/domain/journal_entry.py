"""Journal entry domain service."""

import logging
import re
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional, Protocol

from tallybook.database.base import Database
from tallybook.domain.access import (
    AccessService,
    JOURNAL_APPROVE_ROLES,
    JOURNAL_DELETE_ROLES,
    JOURNAL_WRITE_ROLES,
)
from tallybook.domain.entities import (
    BALANCE_EPSILON,
    AccountingPeriod,
    JournalEntry,
    JournalStatus,
    NewJournalEntry,
    NewJournalEntryLine,
)
from tallybook.domain.errors import (
    InvalidOperationError,
    NotFoundError,
    StorageError,
    ValidationError,
    journal_entry_not_found,
)

logger = logging.getLogger(__name__)

# Entry numbers are YYYYMM followed by a per-month sequence, e.g. 2024010001
SEQUENCE_LENGTH = 4
_ENTRY_NUMBER = re.compile(r"(\d{6})(\d{%d,})" % SEQUENCE_LENGTH)


class HasAmounts(Protocol):
    debit_amount: Decimal
    credit_amount: Decimal


@dataclass(frozen=True)
class JournalLineInput:
    """One line of a journal entry to create."""

    account_id: int
    debit_amount: Decimal = Decimal("0")
    credit_amount: Decimal = Decimal("0")
    description: Optional[str] = None
    partner_id: Optional[int] = None


@dataclass(frozen=True)
class JournalEntryInput:
    """A journal entry to create."""

    organization_id: int
    entry_date: date
    description: str
    lines: tuple[JournalLineInput, ...] = field(default_factory=tuple)
    accounting_period_id: Optional[int] = None
    entry_number: Optional[str] = None
    status: JournalStatus = JournalStatus.DRAFT


def validate_balance(lines: Iterable[HasAmounts]) -> Decimal:
    """Check that lines are one-sided and that debits equal credits.

    Args:
        lines: Objects with debit_amount and credit_amount

    Returns:
        The balanced total

    Raises:
        ValidationError: If a line has both or neither side set, or the totals
            differ by more than BALANCE_EPSILON
    """
    total_debit = Decimal("0")
    total_credit = Decimal("0")
    for number, line in enumerate(lines, start=1):
        debit = Decimal(line.debit_amount or 0)
        credit = Decimal(line.credit_amount or 0)
        if debit < 0 or credit < 0:
            raise ValidationError(f"Line {number}: amounts cannot be negative")
        if (debit > 0) == (credit > 0):
            raise ValidationError(f"Line {number}: a line must have either a debit or a credit amount")
        total_debit += debit
        total_credit += credit

    if abs(total_debit - total_credit) > BALANCE_EPSILON:
        raise ValidationError(
            "Debits and credits do not balance.",
            details={
                "debit": str(total_debit),
                "credit": str(total_credit),
                "difference": str(total_debit - total_credit),
            },
        )
    return total_debit


class EntryNumberAllocator:
    """Hands out YYYYMM#### entry numbers, continuing each month's sequence."""

    def __init__(self, existing_numbers: Iterable[str]):
        self._last: dict[str, int] = {}
        for number in existing_numbers:
            match = _ENTRY_NUMBER.fullmatch(number or "")
            if match:
                month, sequence = match.group(1), int(match.group(2))
                self._last[month] = max(self._last.get(month, 0), sequence)

    def next(self, entry_date: date) -> str:
        month = entry_date.strftime("%Y%m")
        sequence = self._last.get(month, 0) + 1
        self._last[month] = sequence
        return f"{month}{sequence:0{SEQUENCE_LENGTH}d}"


class JournalEntryService:
    """Service for creating and approving journal entries."""

    def __init__(self, db: Database):
        """Initialize journal entry service.

        Args:
            db: Database instance
        """
        self.db = db
        self.access = AccessService(db)

    def number_allocator(self, organization_id: int) -> EntryNumberAllocator:
        """Return an allocator seeded with the organization's used numbers."""
        return EntryNumberAllocator(self.db.list_entry_numbers(organization_id))

    def next_entry_number(self, organization_id: int, entry_date: date) -> str:
        """Return the next free entry number for the month of entry_date."""
        return self.number_allocator(organization_id).next(entry_date)

    def _resolve_period(self, entry: JournalEntryInput) -> AccountingPeriod:
        if entry.accounting_period_id is not None:
            period = self.db.get_accounting_period(entry.accounting_period_id)
            if period is None or period.organization_id != entry.organization_id:
                raise ValidationError("The accounting period does not exist.")
        else:
            open_periods = [
                p
                for p in self.db.list_accounting_periods(entry.organization_id)
                if not p.is_closed and p.contains(entry.entry_date)
            ]
            if not open_periods:
                raise ValidationError(
                    "No open accounting period covers the entry date.",
                    details={"entry_date": entry.entry_date.isoformat()},
                )
            period = open_periods[0]

        if period.is_closed:
            raise InvalidOperationError("This accounting period is already closed.")
        if not period.contains(entry.entry_date):
            raise ValidationError(
                "The entry date is outside the accounting period.",
                details={
                    "entry_date": entry.entry_date.isoformat(),
                    "period_start": period.start_date.isoformat(),
                    "period_end": period.end_date.isoformat(),
                },
            )
        return period

    def create_journal_entry(self, user_id: int, entry: JournalEntryInput) -> JournalEntry:
        """Create a balanced journal entry with its lines.

        Args:
            user_id: Creating user; viewers cannot create entries
            entry: Entry header and lines

        Returns:
            The stored JournalEntry

        Raises:
            PermissionDeniedError: If the user is not a member or only a viewer
            ValidationError: If fields are missing, lines are unbalanced, the
                date is outside the period, or accounts/partners are unknown
            InvalidOperationError: If the period is closed
        """
        self.access.require_membership(user_id, entry.organization_id, roles=JOURNAL_WRITE_ROLES)

        missing = {
            name: f"{name} is required"
            for name, value in (("entry_date", entry.entry_date), ("description", (entry.description or "").strip()))
            if not value
        }
        if missing:
            raise ValidationError("Required fields are missing.", details=missing)
        if len(entry.lines) < 2:
            raise ValidationError("A journal entry needs at least two lines.")

        total = validate_balance(entry.lines)
        period = self._resolve_period(entry)

        account_ids = {acc.id for acc in self.db.list_accounts(entry.organization_id)}
        if any(line.account_id not in account_ids for line in entry.lines):
            raise ValidationError("The specified account does not exist.")
        partner_ids = {line.partner_id for line in entry.lines if line.partner_id is not None}
        if partner_ids:
            known = {p.id for p in self.db.list_partners(entry.organization_id)}
            if not partner_ids <= known:
                raise ValidationError("The specified partner does not exist.")

        entry_number = entry.entry_number or self.next_entry_number(entry.organization_id, entry.entry_date)
        if entry_number in self.db.list_entry_numbers(entry.organization_id):
            raise ValidationError(f"Entry number '{entry_number}' is already used.")

        [entry_id] = self.db.insert_journal_entries(
            [
                NewJournalEntry(
                    organization_id=entry.organization_id,
                    accounting_period_id=period.id,
                    entry_number=entry_number,
                    entry_date=entry.entry_date,
                    description=entry.description.strip(),
                    total_amount=total,
                    created_by=user_id,
                    status=entry.status,
                )
            ]
        )
        lines = [
            NewJournalEntryLine(
                journal_entry_id=entry_id,
                account_id=line.account_id,
                line_number=number,
                debit_amount=Decimal(line.debit_amount or 0),
                credit_amount=Decimal(line.credit_amount or 0),
                description=line.description,
                partner_id=line.partner_id,
            )
            for number, line in enumerate(entry.lines, start=1)
        ]
        try:
            self.db.insert_journal_entry_lines(lines)
        except StorageError:
            # A single entry is all-or-nothing: drop the header again
            self.db.delete_journal_entry(entry_id)
            raise
        logger.info("Created journal entry %s (%s)", entry_number, entry_id)
        return self.db.get_journal_entry(entry_id)

    def get_journal_entry(self, user_id: int, organization_id: int, entry_id: int) -> JournalEntry:
        """Get a journal entry of the organization."""
        self.access.require_membership(user_id, organization_id)
        entry = self.db.get_journal_entry(entry_id)
        if entry is None or entry.organization_id != organization_id:
            raise NotFoundError(journal_entry_not_found(entry_id))
        return entry

    def list_journal_entries(
        self,
        user_id: int,
        organization_id: int,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        status: Optional[JournalStatus] = None,
    ) -> list[JournalEntry]:
        """List the organization's journal entries with their lines."""
        self.access.require_membership(user_id, organization_id)
        return self.db.list_journal_entries(
            organization_id, start_date=start_date, end_date=end_date, status=status, include_lines=True
        )

    def approve_journal_entry(self, user_id: int, organization_id: int, entry_id: int) -> JournalEntry:
        """Move a draft entry to approved so it shows up in ledgers.

        Raises:
            InvalidOperationError: If the entry is not a draft
        """
        self.access.require_membership(user_id, organization_id, roles=JOURNAL_APPROVE_ROLES)
        entry = self.get_journal_entry(user_id, organization_id, entry_id)
        if entry.status != JournalStatus.DRAFT:
            raise InvalidOperationError(f"Only draft entries can be approved (entry is {entry.status.value}).")
        # Imported headers whose line insert failed have no lines
        if len(entry.lines) < 2:
            raise InvalidOperationError("Entry has no lines; it cannot be approved.")
        validate_balance(entry.lines)
        self.db.update_journal_entry_status(entry_id, JournalStatus.APPROVED)
        return self.db.get_journal_entry(entry_id)

    def delete_journal_entry(self, user_id: int, organization_id: int, entry_id: int) -> None:
        """Delete an entry that has not been approved.

        Raises:
            InsufficientRoleError: If the user is not an owner or admin
            InvalidOperationError: If the entry is approved or posted
        """
        self.access.require_membership(user_id, organization_id, roles=JOURNAL_DELETE_ROLES)
        entry = self.get_journal_entry(user_id, organization_id, entry_id)
        if entry.status != JournalStatus.DRAFT:
            raise InvalidOperationError("Approved entries cannot be deleted.")
        self.db.delete_journal_entry(entry_id)

