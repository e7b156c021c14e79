"""Domain tests for the CSV import service."""

import json
from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest

from tallybook.domain.csv_import import (
    DEFAULT_TEMPLATES,
    ImportService,
    payload_to_rows,
    rows_to_payload,
)
from tallybook.domain.entities import (
    AccountMapping,
    ExecuteImportRequest,
    ImportStatus,
    JournalStatus,
    NewImportRule,
    ParsedRow,
    TransactionType,
)
from tallybook.domain.errors import (
    InsufficientRoleError,
    InvalidOperationError,
    NotFoundError,
    PermissionDeniedError,
    StorageError,
    ValidationError,
)
from tallybook.domain.organization import OrganizationService

STATEMENT = (
    "date,description,amount\n"
    "2024-03-01,東京電力 電気料金,-5000\n"
    "2024-03-02,振込 ヤマダ,120000\n"
    "2024-03-03,文房具,-1200\n"
).encode("utf-8")


@pytest.fixture
def service(books):
    return ImportService(books.db)


@pytest.fixture
def uploaded(books, service):
    return service.upload_csv_file(books.member.id, books.org_id, STATEMENT, "march.csv")


def _execute(books, service, import_id, mappings, user=None, **options):
    request = ExecuteImportRequest(import_id=import_id, mappings=tuple(mappings), **options)
    return service.execute_import((user or books.member).id, books.org_id, request)


def _mappings(books, service, import_id):
    return list(service.preview_import(books.member.id, books.org_id, import_id).mappings)


class TestUpload:
    def test_creates_pending_history(self, books, uploaded):
        assert uploaded.status == ImportStatus.PENDING
        assert uploaded.total_rows == 3
        assert uploaded.imported_rows == 0
        assert uploaded.failed_rows == 0
        assert uploaded.csv_format == "unknown"
        assert uploaded.file_size == len(STATEMENT)
        assert uploaded.file_data["version"] == 1

        rows = payload_to_rows(uploaded.file_data)
        assert [r.row_index for r in rows] == [0, 1, 2]
        assert rows[0].amount == Decimal("5000")
        assert rows[0].type == TransactionType.EXPENSE

    @pytest.mark.parametrize("content", [b"", b"no delimiter here\nnor here\n"])
    def test_invalid_file_rejected_without_history(self, books, service, content):
        with pytest.raises(ValidationError):
            service.upload_csv_file(books.member.id, books.org_id, content, "bad.csv")
        assert books.db.list_import_history(books.org_id)[1] == 0

    def test_file_with_only_broken_rows_rejected(self, books, service):
        content = b"date,description,amount\nnot-a-date,x,1\n"
        with pytest.raises(ValidationError, match="Row 1"):
            service.upload_csv_file(books.member.id, books.org_id, content, "bad.csv")

    def test_outsider_cannot_upload(self, books, service):
        with pytest.raises(PermissionDeniedError):
            service.upload_csv_file(books.outsider.id, books.org_id, STATEMENT, "march.csv")

    def test_unknown_template_id(self, books, service):
        with pytest.raises(NotFoundError):
            service.upload_csv_file(books.member.id, books.org_id, STATEMENT, "march.csv", template_id=999)

    def test_detects_seeded_bank_template(self, books, service):
        service.seed_default_templates()
        content = (
            "取引日,摘要,金額,残高,入出金区分\n"
            "2024/03/01,ﾃﾞﾝｷﾘｮｳｷﾝ,5000,95000,出金\n"
        ).encode("cp932")

        history = service.upload_csv_file(books.member.id, books.org_id, content, "rakuten.csv")

        assert history.csv_format == "rakuten_bank"
        [row] = payload_to_rows(history.file_data)
        assert row.date == date(2024, 3, 1)
        assert row.type == TransactionType.EXPENSE
        assert row.balance == Decimal("95000")

    def test_utf8_file_not_read_as_shift_jis_template(self, books, service):
        service.seed_default_templates()
        content = "日付,摘要,金額\n2024/03/01,電気料金,-5000\n".encode("utf-8")

        history = service.upload_csv_file(books.member.id, books.org_id, content, "export.csv")

        assert history.csv_format == "unknown"
        [row] = payload_to_rows(history.file_data)
        assert row.date == date(2024, 3, 1)
        assert row.description == "電気料金"
        assert row.amount == Decimal("5000")

    def test_utf8_bank_template_detected(self, books, service):
        service.seed_default_templates()
        content = "日付,内容,金額,残高,入出金\n2024/03/01,振込 ヤマダ,120000,220000,入金\n".encode("utf-8")

        history = service.upload_csv_file(books.member.id, books.org_id, content, "sbi.csv")

        assert history.csv_format == "sbi_bank"
        [row] = payload_to_rows(history.file_data)
        assert row.description == "振込 ヤマダ"
        assert row.type == TransactionType.INCOME


class TestPreview:
    def test_suggestions_and_duplicates(self, books, service, post_entry, uploaded):
        post_entry(date(2024, 3, 1), "7130", "1110", 5000)

        result = service.preview_import(books.member.id, books.org_id, uploaded.id)

        assert result.preview.total_rows == 3
        assert result.preview.columns == ("date", "description", "amount")
        by_row = {m.row_index: m for m in result.mappings}
        assert by_row[0].is_duplicate
        assert (by_row[0].account_id, by_row[0].contra_account_id) == (books.accounts["7130"], books.accounts["1110"])
        assert (by_row[1].account_id, by_row[1].contra_account_id) == (books.accounts["1110"], books.accounts["4110"])
        assert not by_row[1].is_duplicate
        assert by_row[2].account_id == books.accounts["7190"]

    def test_preview_is_repeatable(self, books, service, uploaded):
        first = service.preview_import(books.member.id, books.org_id, uploaded.id)
        second = service.preview_import(books.member.id, books.org_id, uploaded.id)
        assert first.mappings == second.mappings

    def test_other_organization_cannot_see_import(self, books, service, uploaded):
        other = OrganizationService(books.db).create_organization("Other", "other", "other@example.com")
        user = books.db.get_user_by_email("other@example.com")
        with pytest.raises(NotFoundError):
            service.preview_import(user.id, other.id, uploaded.id)


class TestExecute:
    def test_imports_all_rows_as_balanced_drafts(self, books, service, uploaded):
        summary = _execute(books, service, uploaded.id, _mappings(books, service, uploaded.id))

        assert (summary.total_rows, summary.imported_rows, summary.failed_rows, summary.skipped_rows) == (3, 3, 0, 0)
        assert len(summary.created_journal_entries) == 3
        assert summary.orphaned_journal_entries == ()

        for entry_id in summary.created_journal_entries:
            entry = books.db.get_journal_entry(entry_id)
            assert entry.status == JournalStatus.DRAFT
            assert entry.accounting_period_id == books.period.id
            assert sum(l.debit_amount for l in entry.lines) == sum(l.credit_amount for l in entry.lines)

        electricity = books.db.get_journal_entry(summary.created_journal_entries[0])
        assert electricity.entry_number == "2024030001"
        assert [(l.account_id, l.debit_amount > 0) for l in electricity.lines] == [
            (books.accounts["7130"], True),
            (books.accounts["1110"], False),
        ]

        history = books.db.get_import_history(uploaded.id, books.org_id)
        assert history.status == ImportStatus.COMPLETED
        assert history.imported_rows == 3
        assert history.error_message is None

    def test_completed_import_cannot_run_again(self, books, service, uploaded):
        mappings = _mappings(books, service, uploaded.id)
        _execute(books, service, uploaded.id, mappings)
        count = len(books.db.list_journal_entries(books.org_id))

        with pytest.raises(InvalidOperationError, match="already been processed"):
            _execute(books, service, uploaded.id, mappings)
        assert len(books.db.list_journal_entries(books.org_id)) == count

    def test_duplicates_skipped(self, books, service, post_entry, uploaded):
        existing = post_entry(date(2024, 3, 1), "7130", "1110", 5000)

        summary = _execute(books, service, uploaded.id, _mappings(books, service, uploaded.id))

        assert summary.skipped_rows == 1
        assert summary.imported_rows == 2
        descriptions = {books.db.get_journal_entry(i).description for i in summary.created_journal_entries}
        assert "東京電力 電気料金" not in descriptions
        assert existing.id not in summary.created_journal_entries

    def test_duplicates_imported_when_not_skipped(self, books, service, post_entry, uploaded):
        post_entry(date(2024, 3, 1), "7130", "1110", 5000)
        summary = _execute(
            books, service, uploaded.id, _mappings(books, service, uploaded.id), skip_duplicates=False
        )
        assert summary.imported_rows == 3

    def test_row_errors_reported_and_import_retryable(self, books, service, uploaded):
        mappings = _mappings(books, service, uploaded.id)
        mappings[2] = replace(mappings[2], account_id=None)
        mappings.append(AccountMapping(row_index=42, account_id=1, contra_account_id=2))

        summary = _execute(books, service, uploaded.id, mappings)

        assert summary.imported_rows == 2
        assert summary.failed_rows == 2
        assert summary.imported_rows + summary.failed_rows + summary.skipped_rows <= summary.total_rows
        history = books.db.get_import_history(uploaded.id, books.org_id)
        assert history.status == ImportStatus.FAILED
        assert json.loads(history.error_message) == [
            {"row": 2, "error": "Missing account mapping"},
            {"row": 42, "error": "Row not found in this import"},
        ]

        fixed = replace(mappings[2], account_id=books.accounts["7190"])
        retry = _execute(books, service, uploaded.id, [fixed])
        assert retry.imported_rows == 1
        assert books.db.get_import_history(uploaded.id, books.org_id).status == ImportStatus.COMPLETED

    def test_accounts_of_other_organization_rejected(self, books, service, uploaded):
        mappings = _mappings(books, service, uploaded.id)
        mappings = [replace(mappings[0], account_id=9999)]
        summary = _execute(books, service, uploaded.id, mappings)
        assert summary.failed_rows == 1
        assert summary.errors[0].error == "Account does not belong to this organization"

    def test_requires_open_period(self, books, service, uploaded):
        books.db.close_accounting_period(books.period.id)
        with pytest.raises(InvalidOperationError, match="No open accounting period"):
            _execute(books, service, uploaded.id, _mappings(books, service, uploaded.id))
        assert books.db.get_import_history(uploaded.id, books.org_id).status == ImportStatus.PENDING

    def test_processing_import_rejected(self, books, service, uploaded):
        assert books.db.transition_import_status(uploaded.id, [ImportStatus.PENDING], ImportStatus.PROCESSING)
        with pytest.raises(InvalidOperationError, match="already being processed"):
            _execute(books, service, uploaded.id, _mappings(books, service, uploaded.id))
        assert books.db.list_journal_entries(books.org_id) == []

    def test_viewer_cannot_execute(self, books, service, uploaded):
        with pytest.raises(InsufficientRoleError):
            _execute(books, service, uploaded.id, [], user=books.viewer)

    def test_header_insert_failure_fails_all_staged_rows(self, books, service, uploaded, monkeypatch):
        mappings = _mappings(books, service, uploaded.id)

        def fail(entries):
            raise StorageError("Failed to insert journal entries: OperationalError")

        monkeypatch.setattr(books.db, "insert_journal_entries", fail)
        summary = _execute(books, service, uploaded.id, mappings)

        assert summary.imported_rows == 0
        assert summary.failed_rows == 3
        assert summary.errors[0].row == -1
        assert books.db.get_import_history(uploaded.id, books.org_id).status == ImportStatus.FAILED

    def test_line_insert_failure_reports_orphaned_headers(self, books, service, uploaded, monkeypatch):
        mappings = _mappings(books, service, uploaded.id)

        def fail(lines):
            raise StorageError("Failed to insert journal entry lines: IntegrityError")

        monkeypatch.setattr(books.db, "insert_journal_entry_lines", fail)
        summary = _execute(books, service, uploaded.id, mappings)

        assert summary.imported_rows == 0
        assert summary.created_journal_entries == ()
        assert len(summary.orphaned_journal_entries) == 3
        assert summary.errors[0].error.startswith("Failed to create journal entry lines")
        for entry_id in summary.orphaned_journal_entries:
            assert books.db.get_journal_entry(entry_id).lines == ()

    def test_learns_rules_from_low_confidence_rows(self, books, service, uploaded):
        summary = _execute(
            books, service, uploaded.id, _mappings(books, service, uploaded.id), create_rules_from_mappings=True
        )
        assert summary.imported_rows == 3

        rules = books.db.list_import_rules(books.org_id)
        assert sorted(r.description_pattern for r in rules) == sorted(["東京電力 電気料金", "振込 ヤマダ", "文房具"])
        assert all(r.confidence == 0.7 and r.usage_count == 1 for r in rules)

    def test_matched_rule_usage_is_counted(self, books, service, uploaded):
        rule = service.create_import_rule(
            books.owner.id, books.org_id, "東京電力", books.accounts["7130"], books.accounts["1110"], confidence=0.9
        )
        mappings = _mappings(books, service, uploaded.id)
        assert mappings[0].rule_id == rule.id

        _execute(books, service, uploaded.id, mappings, create_rules_from_mappings=True)

        assert books.db.get_import_rule(rule.id, books.org_id).usage_count == 1
        patterns = [r.description_pattern for r in books.db.list_import_rules(books.org_id)]
        assert "東京電力 電気料金" not in patterns

    def test_foreign_rule_usage_not_counted(self, books, service, uploaded):
        other = OrganizationService(books.db).create_organization("Other", "other", "other@example.com")
        [foreign_rule] = books.db.insert_import_rules(
            [NewImportRule(other.id, "東京電力", books.accounts["7130"], books.accounts["1110"], confidence=0.9)]
        )
        mappings = _mappings(books, service, uploaded.id)
        mappings[0] = replace(mappings[0], rule_id=foreign_rule)

        summary = _execute(books, service, uploaded.id, mappings)

        assert summary.imported_rows == 3
        assert books.db.get_import_rule(foreign_rule, other.id).usage_count == 0

    def test_rule_failures_do_not_fail_import(self, books, service, uploaded, monkeypatch):
        def fail(rules):
            raise StorageError("Failed to insert import rules: IntegrityError")

        monkeypatch.setattr(books.db, "insert_import_rules", fail)
        summary = _execute(
            books, service, uploaded.id, _mappings(books, service, uploaded.id), create_rules_from_mappings=True
        )
        assert summary.imported_rows == 3
        assert books.db.get_import_history(uploaded.id, books.org_id).status == ImportStatus.COMPLETED


class TestHistory:
    def test_paged_and_searchable(self, books, service):
        for name in ("january.csv", "february.csv", "march.csv"):
            service.upload_csv_file(books.member.id, books.org_id, STATEMENT, name)

        page = service.get_import_history(books.member.id, books.org_id, page=1, page_size=2)
        assert page.total_count == 3
        assert page.total_pages == 2
        assert [h.file_name for h in page.items] == ["march.csv", "february.csv"]

        found = service.get_import_history(books.member.id, books.org_id, search="RUAR")
        assert [h.file_name for h in found.items] == ["february.csv"]

        by_name = service.get_import_history(books.member.id, books.org_id, order_by="file_name", descending=False)
        assert [h.file_name for h in by_name.items] == ["february.csv", "january.csv", "march.csv"]

    def test_invalid_paging(self, books, service):
        with pytest.raises(ValidationError):
            service.get_import_history(books.member.id, books.org_id, page=0)
        with pytest.raises(ValidationError):
            service.get_import_history(books.member.id, books.org_id, page_size=500)
        with pytest.raises(ValidationError):
            service.get_import_history(books.member.id, books.org_id, order_by="password")


class TestRules:
    def test_only_owner_or_admin_manage_rules(self, books, service):
        with pytest.raises(InsufficientRoleError):
            service.create_import_rule(books.member.id, books.org_id, "Amazon", books.accounts["7190"], books.accounts["1110"])

    def test_accounts_must_belong_to_organization(self, books, service):
        with pytest.raises(ValidationError, match="Invalid account IDs provided."):
            service.create_import_rule(books.owner.id, books.org_id, "Amazon", 9999, books.accounts["1110"])

    def test_update_and_delete(self, books, service):
        rule = service.create_import_rule(
            books.owner.id, books.org_id, "Amazon", books.accounts["7190"], books.accounts["1110"]
        )
        updated = service.update_import_rule(
            books.owner.id, books.org_id, rule.id, confidence=0.95, is_active=False
        )
        assert updated.confidence == 0.95
        assert not updated.is_active

        with pytest.raises(ValidationError):
            service.update_import_rule(books.owner.id, books.org_id, rule.id, confidence=2)

        service.delete_import_rule(books.owner.id, books.org_id, rule.id)
        assert service.get_import_rules(books.member.id, books.org_id) == []
        with pytest.raises(NotFoundError):
            service.update_import_rule(books.owner.id, books.org_id, rule.id, confidence=0.5)


class TestTemplatesAndPayload:
    def test_seed_is_idempotent(self, books, service):
        assert service.seed_default_templates() == len(DEFAULT_TEMPLATES)
        assert service.seed_default_templates() == 0
        names = [t.bank_name for t in service.get_csv_templates()]
        assert names == sorted(names)
        assert "楽天銀行" in names

    def test_payload_round_trip_keeps_types(self):
        row = ParsedRow(
            row_index=0,
            date=date(2024, 3, 1),
            description="Coffee",
            amount=Decimal("450.50"),
            type=TransactionType.EXPENSE,
            original_row={"date": "2024-03-01"},
            balance=None,
        )
        payload = rows_to_payload([row], template_id=4)
        assert payload["template"] == 4
        assert json.loads(json.dumps(payload)) == payload
        assert payload_to_rows(payload) == [row]

    def test_unknown_payload_version_rejected(self):
        with pytest.raises(ValidationError, match="payload version"):
            payload_to_rows({"version": 99, "rows": []})
