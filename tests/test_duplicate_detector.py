"""Tests for duplicate detection."""

from datetime import date
from decimal import Decimal

from tallybook.domain.duplicate_detector import DuplicateDetector
from tallybook.domain.entities import ParsedRow, TransactionType


def _row(index, day, amount, description="Payment"):
    return ParsedRow(
        row_index=index,
        date=day,
        description=description,
        amount=Decimal(amount),
        type=TransactionType.EXPENSE,
        original_row={},
    )


def test_row_matching_existing_entry_flagged(books, post_entry):
    entry = post_entry(date(2024, 3, 1), "7130", "1110", 5000, description="東京電力")
    detector = DuplicateDetector(books.db)

    result = detector.detect_duplicates(books.org_id, [_row(0, date(2024, 3, 1), "5000.00")])

    info = result[0]
    assert info.is_duplicate
    assert info.duplicate_type == "existing"
    assert info.journal_entry_id == entry.id
    assert info.duplicate_details.description == "東京電力"
    assert info.duplicate_details.amount == Decimal("5000")


def test_draft_entries_also_count(books, post_entry):
    post_entry(date(2024, 3, 1), "7130", "1110", 5000, approve=False)
    result = DuplicateDetector(books.db).detect_duplicates(books.org_id, [_row(0, date(2024, 3, 1), "5000")])
    assert 0 in result


def test_different_date_or_amount_not_flagged(books, post_entry):
    post_entry(date(2024, 3, 1), "7130", "1110", 5000)
    rows = [_row(0, date(2024, 3, 2), "5000"), _row(1, date(2024, 3, 1), "5001")]
    assert DuplicateDetector(books.db).detect_duplicates(books.org_id, rows) == {}


def test_other_organization_entries_ignored(books, post_entry):
    from tallybook.domain.organization import OrganizationService

    other = OrganizationService(books.db).create_organization("Other", "other", "someone@example.com")
    post_entry(date(2024, 3, 1), "7130", "1110", 5000)
    result = DuplicateDetector(books.db).detect_duplicates(other.id, [_row(0, date(2024, 3, 1), "5000")])
    assert result == {}


def test_repeated_row_within_file_flagged(books):
    rows = [
        _row(0, date(2024, 3, 1), "1200", "Coffee Shop"),
        _row(1, date(2024, 3, 1), "1200", "coffee shop"),
        _row(2, date(2024, 3, 1), "1200", "Bakery"),
    ]
    result = DuplicateDetector(books.db).detect_duplicates(books.org_id, rows)

    assert list(result) == [1]
    assert result[1].duplicate_type == "within-import"
    assert result[1].duplicate_row_index == 0


def test_empty_rows(books):
    assert DuplicateDetector(books.db).detect_duplicates(books.org_id, []) == {}
