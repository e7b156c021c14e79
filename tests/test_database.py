"""Tests for the SQLAlchemy database layer."""

from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest

from tallybook.database.factories import create_memory_database
from tallybook.domain.entities import (
    AccountType,
    ImportStatus,
    JournalStatus,
    NewImportRule,
    NewJournalEntry,
    NewJournalEntryLine,
)
from tallybook.domain.errors import ConflictError, NotFoundError, StorageError, ValidationError


def _header(books, number, entry_date=date(2024, 1, 10), amount="100"):
    return NewJournalEntry(
        organization_id=books.org_id,
        accounting_period_id=books.period.id,
        entry_number=number,
        entry_date=entry_date,
        description=f"Entry {number}",
        total_amount=Decimal(amount),
        created_by=books.owner.id,
    )


def _line(entry_id, account_id, line_number, debit="0", credit="0"):
    return NewJournalEntryLine(
        journal_entry_id=entry_id,
        account_id=account_id,
        line_number=line_number,
        debit_amount=Decimal(debit),
        credit_amount=Decimal(credit),
    )


def _history(db, books, file_name="bank.csv"):
    return db.create_import_history(
        organization_id=books.org_id,
        user_id=books.owner.id,
        file_name=file_name,
        file_size=10,
        csv_format="unknown",
        total_rows=1,
        file_data={"version": 1, "template": None, "rows": []},
    )


class TestBulkInserts:
    def test_ids_returned_in_input_order(self, books):
        ids = books.db.insert_journal_entries([_header(books, "2024010001"), _header(books, "2024010002")])
        assert [books.db.get_journal_entry(i).entry_number for i in ids] == ["2024010001", "2024010002"]
        assert books.db.get_journal_entry(ids[0]).status == JournalStatus.DRAFT

    def test_failure_keeps_nothing(self, books):
        with pytest.raises(StorageError, match="journal entries"):
            books.db.insert_journal_entries([_header(books, "2024010001"), _header(books, "2024010001")])
        assert books.db.list_journal_entries(books.org_id) == []

    def test_line_with_both_sides_rejected(self, books):
        [entry_id] = books.db.insert_journal_entries([_header(books, "2024010001")])
        lines = [
            _line(entry_id, books.accounts["1010"], 1, debit="100"),
            _line(entry_id, books.accounts["4110"], 2, debit="100", credit="100"),
        ]
        with pytest.raises(StorageError):
            books.db.insert_journal_entry_lines(lines)
        assert books.db.get_journal_entry(entry_id).lines == ()

    def test_empty_batch(self, books):
        assert books.db.insert_journal_entries([]) == []
        assert books.db.insert_import_rules([]) == []


def test_sum_lines_before_counts_approved_entries_only(books):
    approved, draft, later = books.db.insert_journal_entries(
        [
            _header(books, "2024010001", date(2024, 1, 5)),
            _header(books, "2024010002", date(2024, 1, 6)),
            _header(books, "2024020001", date(2024, 2, 1)),
        ]
    )
    books.db.insert_journal_entry_lines(
        [
            _line(approved, books.accounts["1010"], 1, debit="100"),
            _line(approved, books.accounts["4110"], 2, credit="100"),
            _line(draft, books.accounts["1010"], 1, debit="999"),
            _line(draft, books.accounts["4110"], 2, credit="999"),
            _line(later, books.accounts["7190"], 1, debit="30"),
            _line(later, books.accounts["1010"], 2, credit="30"),
        ]
    )
    books.db.update_journal_entry_status(approved, JournalStatus.APPROVED)
    books.db.update_journal_entry_status(later, JournalStatus.APPROVED)

    cash = [books.accounts["1010"]]
    assert books.db.sum_lines_before(books.org_id, cash, date(2024, 2, 1)) == (Decimal("100"), Decimal("0"))
    assert books.db.sum_lines_before(books.org_id, cash, date(2024, 2, 2)) == (Decimal("100"), Decimal("30"))
    assert books.db.sum_lines_before(books.org_id, [], date(2024, 2, 2)) == (Decimal("0"), Decimal("0"))


class TestImportStatusTransition:
    def test_only_one_caller_wins(self, books):
        import_id = _history(books.db, books)
        pending = [ImportStatus.PENDING, ImportStatus.FAILED]

        assert books.db.transition_import_status(import_id, pending, ImportStatus.PROCESSING)
        assert not books.db.transition_import_status(import_id, pending, ImportStatus.PROCESSING)
        assert books.db.get_import_history(import_id, books.org_id).status == ImportStatus.PROCESSING

    def test_finish_records_counts(self, books):
        import_id = _history(books.db, books)
        books.db.finish_import(import_id, ImportStatus.FAILED, 3, 1, '[{"row": 4, "error": "Missing account mapping"}]')

        history = books.db.get_import_history(import_id, books.org_id)
        assert (history.status, history.imported_rows, history.failed_rows) == (ImportStatus.FAILED, 3, 1)
        assert books.db.transition_import_status(import_id, [ImportStatus.FAILED], ImportStatus.PROCESSING)

    def test_finish_unknown_import(self, books):
        with pytest.raises(NotFoundError):
            books.db.finish_import(999, ImportStatus.COMPLETED, 0, 0, None)

    def test_history_is_scoped_to_organization(self, books):
        import_id = _history(books.db, books)
        assert books.db.get_import_history(import_id, books.org_id + 1) is None


def test_history_listing_newest_first(books):
    first = _history(books.db, books, "a.csv")
    second = _history(books.db, books, "b.csv")

    items, total = books.db.list_import_history(books.org_id, limit=1)

    assert total == 2
    assert [h.id for h in items] == [second]
    items, _ = books.db.list_import_history(books.org_id, offset=1, limit=1)
    assert [h.id for h in items] == [first]


class TestImportRules:
    def _rule(self, books, pattern="Amazon"):
        return NewImportRule(
            organization_id=books.org_id,
            description_pattern=pattern,
            account_id=books.accounts["7190"],
            contra_account_id=books.accounts["1110"],
            confidence=0.8,
        )

    def test_usage_increment(self, books):
        amazon, rakuten = books.db.insert_import_rules([self._rule(books), self._rule(books, "Rakuten")])
        books.db.increment_rule_usage(books.org_id, {rakuten: 2})

        rules = books.db.list_import_rules(books.org_id)
        assert [r.id for r in rules] == [rakuten, amazon]
        assert rules[0].usage_count == 2

    def test_usage_increment_ignores_other_organizations(self, books):
        other_org = books.db.create_organization("Other", "other")
        [foreign] = books.db.insert_import_rules([replace(self._rule(books), organization_id=other_org)])

        books.db.increment_rule_usage(books.org_id, {foreign: 1})

        assert books.db.get_import_rule(foreign, other_org).usage_count == 0

    def test_unknown_update_field(self, books):
        [rule_id] = books.db.insert_import_rules([self._rule(books)])
        with pytest.raises(ValidationError, match="Unknown import rule fields"):
            books.db.update_import_rule(rule_id, books.org_id, organization_id=99)

    def test_out_of_range_confidence_rejected_by_schema(self, books):
        with pytest.raises(StorageError):
            books.db.insert_import_rules([NewImportRule(books.org_id, "x", 1, 2, confidence=1.5)])


def test_duplicate_account_code_conflicts(books):
    with pytest.raises(ConflictError):
        books.db.create_account(books.org_id, "1010", "現金2", AccountType.ASSETS)


def test_memory_database_creates_schema():
    db = create_memory_database()
    org_id = db.create_organization("Scratch", "scratch")
    assert db.get_organization(org_id).name == "Scratch"
    db.disconnect()
