"""Duplicate detection for imported bank rows."""

import logging
from collections import defaultdict
from datetime import date
from typing import Sequence

from tallybook.database.base import JournalEntryRepository
from tallybook.domain.entities import (
    BALANCE_EPSILON,
    DuplicateDetails,
    DuplicateInfo,
    JournalEntry,
    ParsedRow,
)

logger = logging.getLogger(__name__)


class DuplicateDetector:
    """Flags rows that probably repeat an existing journal entry.

    A row matches an existing entry when the entry date equals the row date
    and the entry's total amount equals the row amount within
    BALANCE_EPSILON. Rows that repeat an earlier row of the same file (same
    date, amount and case-insensitive description) are flagged as
    within-import duplicates. Nothing is ever rejected here; the verdicts
    are shown at preview time for a human to decide.
    """

    def __init__(self, entries: JournalEntryRepository):
        """Initialize duplicate detector.

        Args:
            entries: Repository used to look up existing journal entries
        """
        self.entries = entries

    def detect_duplicates(self, organization_id: int, rows: Sequence[ParsedRow]) -> dict[int, DuplicateInfo]:
        """Return duplicate verdicts keyed by row index; rows without a match are absent."""
        duplicates: dict[int, DuplicateInfo] = {}
        if not rows:
            return duplicates

        existing_by_date = self._existing_entries(organization_id, rows)

        for row in rows:
            for entry in existing_by_date.get(row.date, ()):
                if abs(entry.total_amount - row.amount) < BALANCE_EPSILON:
                    duplicates[row.row_index] = DuplicateInfo(
                        is_duplicate=True,
                        duplicate_type="existing",
                        journal_entry_id=entry.id,
                        duplicate_details=DuplicateDetails(
                            journal_entry_id=entry.id,
                            date=entry.entry_date,
                            amount=entry.total_amount,
                            description=entry.description,
                        ),
                    )
                    break

        seen: dict[tuple[date, str], list[ParsedRow]] = defaultdict(list)
        for row in rows:
            key = (row.date, row.description.strip().lower())
            if row.row_index not in duplicates:
                for earlier in seen[key]:
                    if abs(earlier.amount - row.amount) < BALANCE_EPSILON:
                        duplicates[row.row_index] = DuplicateInfo(
                            is_duplicate=True,
                            duplicate_type="within-import",
                            duplicate_row_index=earlier.row_index,
                        )
                        break
            seen[key].append(row)

        if duplicates:
            logger.debug("Flagged %d of %d rows as duplicates", len(duplicates), len(rows))
        return duplicates

    def _existing_entries(
        self, organization_id: int, rows: Sequence[ParsedRow]
    ) -> dict[date, list[JournalEntry]]:
        dates = [row.date for row in rows]
        entries = self.entries.list_journal_entries(organization_id, start_date=min(dates), end_date=max(dates))
        by_date: dict[date, list[JournalEntry]] = defaultdict(list)
        for entry in entries:
            by_date[entry.entry_date].append(entry)
        return by_date
