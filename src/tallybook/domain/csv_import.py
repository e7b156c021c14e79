"""CSV import domain service.

An import moves through `pending -> processing -> completed | failed`:

* upload parses the file and stores the rows as a versioned JSON payload on
  a pending ImportHistory;
* preview runs duplicate detection and classification without writing;
* execute validates the confirmed mappings, then bulk-inserts journal entry
  headers, then their lines, then any learned rules, and finally records the
  counts on the history. Only the header insert is all-or-nothing; a failed
  line insert leaves its headers behind, and their IDs are reported as
  orphaned so they can be reconciled by hand.
"""

import json
import logging
from collections import Counter
from datetime import date
from decimal import Decimal
from typing import Any, Optional, Sequence

from tallybook.database.base import Database
from tallybook.domain.access import AccessService, IMPORT_EXECUTE_ROLES, RULE_ADMIN_ROLES
from tallybook.domain.accounting_period import AccountingPeriodService
from tallybook.domain.classifier import AccountClassifier
from tallybook.domain.csv_parser import (
    CsvParseOptions,
    convert_to_parsed_rows,
    detect_csv_template,
    parse_csv_data,
    validate_csv_content,
)
from tallybook.domain.duplicate_detector import DuplicateDetector
from tallybook.domain.entities import (
    AccountMapping,
    BatchResult,
    CsvPreview,
    CsvTemplate,
    ExecuteImportRequest,
    ImportHistory,
    ImportPreview,
    ImportRule,
    ImportStatus,
    ImportSummary,
    NewImportRule,
    NewJournalEntry,
    NewJournalEntryLine,
    Page,
    ParsedRow,
    RowError,
    TransactionType,
)
from tallybook.domain.errors import (
    InvalidOperationError,
    NotFoundError,
    StorageError,
    ValidationError,
    import_not_found,
    rule_not_found,
    template_not_found,
)
from tallybook.domain.journal_entry import EntryNumberAllocator

logger = logging.getLogger(__name__)

PAYLOAD_VERSION = 1
# Mappings below this confidence become rules when the user asks for it
RULE_CANDIDATE_THRESHOLD = 0.8
LEARNED_RULE_CONFIDENCE = 0.7
RULE_PATTERN_LENGTH = 50
MAX_PAGE_SIZE = 100

DEFAULT_TEMPLATES: tuple[dict[str, Any], ...] = (
    {
        "bank_name": "楽天銀行",
        "template_name": "rakuten_bank",
        "column_mapping": {"date": "取引日", "description": "摘要", "amount": "金額", "balance": "残高", "type": "入出金区分"},
        "date_format": "YYYY/MM/DD",
        "encoding": "Shift-JIS",
    },
    {
        "bank_name": "三菱UFJ銀行",
        "template_name": "mufg_bank",
        "column_mapping": {
            "date": "日付",
            "description": "摘要",
            "amount": "金額",
            "balance": "残高",
            "deposit": "入金額",
            "withdrawal": "出金額",
        },
        "date_format": "YYYY/MM/DD",
        "encoding": "Shift-JIS",
    },
    {
        "bank_name": "みずほ銀行",
        "template_name": "mizuho_bank",
        "column_mapping": {
            "date": "取引日",
            "description": "お取引内容",
            "amount": "金額",
            "balance": "残高",
            "deposit": "入金",
            "withdrawal": "出金",
        },
        "date_format": "YYYY/MM/DD",
        "encoding": "Shift-JIS",
    },
    {
        "bank_name": "三井住友銀行",
        "template_name": "smbc_bank",
        "column_mapping": {
            "date": "日付",
            "description": "内容",
            "amount": "金額",
            "balance": "残高",
            "deposit": "入金",
            "withdrawal": "出金",
        },
        "date_format": "YYYY/MM/DD",
        "encoding": "Shift-JIS",
    },
    {
        "bank_name": "ゆうちょ銀行",
        "template_name": "jp_bank",
        "column_mapping": {
            "date": "取扱日",
            "description": "摘要",
            "amount": "金額",
            "balance": "残高",
            "deposit": "預入金額",
            "withdrawal": "払出金額",
        },
        "date_format": "YYYY/MM/DD",
        "encoding": "Shift-JIS",
    },
    {
        "bank_name": "住信SBIネット銀行",
        "template_name": "sbi_bank",
        "column_mapping": {"date": "日付", "description": "内容", "amount": "金額", "balance": "残高", "type": "入出金"},
        "date_format": "YYYY/MM/DD",
        "encoding": "UTF-8",
    },
    {
        "bank_name": "楽天カード",
        "template_name": "rakuten_card",
        "column_mapping": {
            "date": "利用日",
            "description": "利用店名・商品名",
            "amount": "利用金額",
            "payment_method": "支払方法",
            "count": "支払回数",
        },
        "date_format": "YYYY/MM/DD",
        "encoding": "Shift-JIS",
    },
    {
        "bank_name": "三井住友カード",
        "template_name": "smbc_card",
        "column_mapping": {"date": "利用日", "description": "利用先", "amount": "利用金額", "payment_method": "支払区分"},
        "date_format": "YYYY/MM/DD",
        "encoding": "Shift-JIS",
    },
    {
        "bank_name": "汎用",
        "template_name": "generic",
        "column_mapping": {"date": "date", "description": "description", "amount": "amount", "type": "type"},
        "date_format": "YYYY-MM-DD",
        "encoding": "UTF-8",
    },
)


def rows_to_payload(rows: Sequence[ParsedRow], template_id: Optional[int]) -> dict[str, Any]:
    """Serialize parsed rows into the JSON payload stored on an import."""
    return {
        "version": PAYLOAD_VERSION,
        "template": template_id,
        "rows": [
            {
                "row_index": row.row_index,
                "date": row.date.isoformat(),
                "description": row.description,
                "amount": str(row.amount),
                "type": row.type.value,
                "original_row": row.original_row,
                "balance": str(row.balance) if row.balance is not None else None,
            }
            for row in rows
        ],
    }


def payload_to_rows(file_data: Optional[dict[str, Any]]) -> list[ParsedRow]:
    """Load parsed rows back from a stored payload.

    Raises:
        ValidationError: If the payload version is not understood
    """
    if not file_data:
        return []
    version = file_data.get("version")
    if version != PAYLOAD_VERSION:
        raise ValidationError(f"Unsupported import payload version: {version!r}")
    return [
        ParsedRow(
            row_index=item["row_index"],
            date=date.fromisoformat(item["date"]),
            description=item["description"],
            amount=Decimal(item["amount"]),
            type=TransactionType(item["type"]),
            original_row=dict(item.get("original_row") or {}),
            balance=Decimal(item["balance"]) if item.get("balance") is not None else None,
        )
        for item in file_data.get("rows", [])
    ]


class ImportService:
    """Service for importing bank statement CSV files as journal entries."""

    def __init__(self, db: Database, classifier: Optional[AccountClassifier] = None):
        """Initialize CSV import service.

        Args:
            db: Database instance
            classifier: Account classifier used at preview time
        """
        self.db = db
        self.access = AccessService(db)
        self.classifier = classifier or AccountClassifier()
        self.duplicates = DuplicateDetector(db)
        self.periods = AccountingPeriodService(db)

    def _get_history(self, organization_id: int, import_id: int) -> ImportHistory:
        history = self.db.get_import_history(import_id, organization_id)
        if history is None:
            raise NotFoundError(import_not_found(import_id))
        return history

    def _resolve_template(self, content: bytes, template_id: Optional[int]) -> Optional[CsvTemplate]:
        if template_id is not None:
            template = self.db.get_csv_template(template_id)
            if template is None:
                raise NotFoundError(template_not_found(template_id))
            return template
        return detect_csv_template(content, self.db.list_csv_templates(active_only=True))

    def upload_csv_file(
        self,
        user_id: int,
        organization_id: int,
        content: bytes,
        file_name: str,
        file_size: Optional[int] = None,
        template_id: Optional[int] = None,
    ) -> ImportHistory:
        """Parse an uploaded file and store it as a pending import.

        Args:
            user_id: Uploading user; any member may upload
            organization_id: Organization the rows will be booked into
            content: Raw file bytes
            file_name: Original file name
            file_size: Size reported by the client (defaults to len(content))
            template_id: Explicit template; auto-detected when None

        Returns:
            The pending ImportHistory

        Raises:
            ValidationError: If the file is empty, has no delimiter, or no row
                could be read
            PermissionDeniedError: If the user is not a member
            NotFoundError: If template_id does not exist
        """
        validate_csv_content(content)
        self.access.require_membership(user_id, organization_id)

        template = self._resolve_template(content, template_id)
        parsed = parse_csv_data(content, CsvParseOptions.from_template(template))
        if parsed.errors and not parsed.data:
            raise ValidationError(", ".join(parsed.errors))

        date_format = template.date_format if template is not None else "YYYY-MM-DD"
        converted = convert_to_parsed_rows(parsed.data, template, date_format)
        if not converted.rows:
            problems = parsed.errors + converted.errors
            raise ValidationError(
                ", ".join(problems) if problems else "The CSV file contains no data rows.",
                details={"errors": problems},
            )

        import_id = self.db.create_import_history(
            organization_id=organization_id,
            user_id=user_id,
            file_name=file_name,
            file_size=file_size if file_size is not None else len(content),
            csv_format=template.template_name if template is not None else "unknown",
            total_rows=len(converted.rows),
            file_data=rows_to_payload(converted.rows, template.id if template is not None else None),
        )
        logger.info(
            "Import %s uploaded: %s, %d rows (%d dropped), template %s",
            import_id,
            file_name,
            len(converted.rows),
            len(parsed.errors) + len(converted.errors),
            template.template_name if template is not None else "none",
        )
        return self._get_history(organization_id, import_id)

    def preview_import(self, user_id: int, organization_id: int, import_id: int) -> ImportPreview:
        """Show stored rows with duplicate verdicts and account suggestions.

        Nothing is written; calling it repeatedly gives the same mappings as
        long as the ledger, rules and accounts do not change.
        """
        self.access.require_membership(user_id, organization_id)
        history = self._get_history(organization_id, import_id)
        rows = payload_to_rows(history.file_data)

        template = None
        template_id = (history.file_data or {}).get("template")
        if template_id is not None:
            template = self.db.get_csv_template(template_id)

        duplicates = self.duplicates.detect_duplicates(organization_id, rows)
        accounts = self.db.list_accounts(organization_id, active_only=True)
        rules = self.db.list_import_rules(organization_id, active_only=True)

        mappings = []
        for row in rows:
            suggestion = self.classifier.classify_transaction(row.description, row.amount, row.type, rules, accounts)
            duplicate = duplicates.get(row.row_index)
            mappings.append(
                AccountMapping(
                    row_index=row.row_index,
                    account_id=suggestion.account_id if suggestion else None,
                    contra_account_id=suggestion.contra_account_id if suggestion else None,
                    confidence=suggestion.confidence if suggestion else 0.0,
                    is_duplicate=duplicate.is_duplicate if duplicate else False,
                    duplicate_details=duplicate.duplicate_details if duplicate else None,
                    rule_id=suggestion.rule_id if suggestion else None,
                )
            )

        preview = CsvPreview(
            rows=tuple(rows),
            columns=tuple(rows[0].original_row.keys()) if rows else (),
            total_rows=len(rows),
            template=template,
        )
        return ImportPreview(preview=preview, mappings=tuple(mappings))

    def execute_import(self, user_id: int, organization_id: int, request: ExecuteImportRequest) -> ImportSummary:
        """Create journal entries for the confirmed mappings.

        Args:
            user_id: Executing user (owner, admin or member)
            organization_id: Organization of the import
            request: Confirmed mappings and options

        Returns:
            ImportSummary with counts, created entry IDs and per-row errors

        Raises:
            InvalidOperationError: If the import is completed or already being
                processed, or there is no open accounting period
        """
        self.access.require_membership(user_id, organization_id, roles=IMPORT_EXECUTE_ROLES)
        history = self._get_history(organization_id, request.import_id)

        if history.status == ImportStatus.COMPLETED:
            raise InvalidOperationError("This import has already been processed.")
        if history.status == ImportStatus.PROCESSING:
            raise InvalidOperationError("This import is already being processed.")

        period = self.periods.get_open_period(organization_id)
        if period is None:
            raise InvalidOperationError("No open accounting period found. Please create an accounting period first.")

        rows = payload_to_rows(history.file_data)

        # Compare-and-swap so two concurrent executions cannot both proceed
        if not self.db.transition_import_status(
            request.import_id, (ImportStatus.PENDING, ImportStatus.FAILED), ImportStatus.PROCESSING
        ):
            raise InvalidOperationError("This import is already being processed.")
        logger.info("Import %s processing %d mappings", request.import_id, len(request.mappings))

        try:
            summary = self._write_entries(user_id, organization_id, period.id, request, rows)
        except Exception:
            logger.exception("Import %s aborted", request.import_id)
            self.db.finish_import(
                request.import_id, ImportStatus.FAILED, 0, len(request.mappings), "Import aborted unexpectedly"
            )
            raise

        status = ImportStatus.COMPLETED if summary.failed_rows == 0 else ImportStatus.FAILED
        self.db.finish_import(
            request.import_id,
            status,
            imported_rows=summary.imported_rows,
            failed_rows=summary.failed_rows,
            error_message=json.dumps([e.to_dict() for e in summary.errors]) if summary.errors else None,
        )
        logger.info(
            "Import %s %s: %d imported, %d failed, %d skipped",
            request.import_id,
            status.value,
            summary.imported_rows,
            summary.failed_rows,
            summary.skipped_rows,
        )
        return summary

    def _write_entries(
        self,
        user_id: int,
        organization_id: int,
        period_id: int,
        request: ExecuteImportRequest,
        rows: Sequence[ParsedRow],
    ) -> ImportSummary:
        rows_by_index = {row.row_index: row for row in rows}
        account_ids = {acc.id for acc in self.db.list_accounts(organization_id)}

        errors: list[RowError] = []
        skipped = 0
        failed = 0
        seen: set[int] = set()
        staged: list[tuple[AccountMapping, ParsedRow]] = []

        # First pass: validate only, no writes
        for mapping in request.mappings:
            row = rows_by_index.get(mapping.row_index)
            if row is None:
                errors.append(RowError(mapping.row_index, "Row not found in this import"))
                failed += 1
                continue
            if mapping.row_index in seen:
                errors.append(RowError(mapping.row_index, "Row is mapped more than once"))
                failed += 1
                continue
            seen.add(mapping.row_index)

            if mapping.is_duplicate and request.skip_duplicates:
                skipped += 1
                continue
            if not mapping.account_id or not mapping.contra_account_id:
                errors.append(RowError(mapping.row_index, "Missing account mapping"))
                failed += 1
                continue
            if mapping.account_id not in account_ids or mapping.contra_account_id not in account_ids:
                errors.append(RowError(mapping.row_index, "Account does not belong to this organization"))
                failed += 1
                continue
            if row.amount <= 0:
                errors.append(RowError(mapping.row_index, "Amount must be greater than zero"))
                failed += 1
                continue
            staged.append((mapping, row))

        headers = self._insert_headers(user_id, organization_id, period_id, staged)
        if headers.failed:
            errors.extend(headers.failed)
            failed += len(staged)

        created: list[int] = []
        orphaned: list[int] = []
        if headers.succeeded:
            lines = self._insert_lines(headers.succeeded, staged)
            if lines.failed:
                errors.extend(lines.failed)
                failed += len(headers.succeeded)
                orphaned = list(headers.succeeded)
                logger.error(
                    "Import %s left %d journal entries without lines: %s",
                    request.import_id,
                    len(orphaned),
                    orphaned,
                )
            else:
                created = list(headers.succeeded)

        if created:
            self._learn_rules(organization_id, request, staged)

        return ImportSummary(
            total_rows=len(request.mappings),
            imported_rows=len(created),
            failed_rows=failed,
            skipped_rows=skipped,
            created_journal_entries=tuple(created),
            orphaned_journal_entries=tuple(orphaned),
            errors=tuple(errors),
        )

    def _insert_headers(
        self,
        user_id: int,
        organization_id: int,
        period_id: int,
        staged: Sequence[tuple[AccountMapping, ParsedRow]],
    ) -> BatchResult:
        result = BatchResult()
        if not staged:
            return result
        numbers = EntryNumberAllocator(self.db.list_entry_numbers(organization_id))
        headers = [
            NewJournalEntry(
                organization_id=organization_id,
                accounting_period_id=period_id,
                entry_number=numbers.next(row.date),
                entry_date=row.date,
                description=row.description,
                total_amount=row.amount,
                created_by=user_id,
            )
            for _, row in staged
        ]
        try:
            result.succeeded = self.db.insert_journal_entries(headers)
        except StorageError as e:
            result.failed.append(RowError(-1, e.message))
        return result

    def _insert_lines(
        self, entry_ids: Sequence[int], staged: Sequence[tuple[AccountMapping, ParsedRow]]
    ) -> BatchResult:
        # The mapped account is always debited and the contra account credited
        lines = []
        for entry_id, (mapping, row) in zip(entry_ids, staged):
            lines.append(
                NewJournalEntryLine(
                    journal_entry_id=entry_id,
                    account_id=mapping.account_id,
                    line_number=1,
                    debit_amount=row.amount,
                    credit_amount=Decimal("0"),
                    description=row.description,
                )
            )
            lines.append(
                NewJournalEntryLine(
                    journal_entry_id=entry_id,
                    account_id=mapping.contra_account_id,
                    line_number=2,
                    debit_amount=Decimal("0"),
                    credit_amount=row.amount,
                    description=row.description,
                )
            )
        result = BatchResult()
        try:
            result.succeeded = self.db.insert_journal_entry_lines(lines)
        except StorageError as e:
            result.failed.append(RowError(-1, f"Failed to create journal entry lines: {e.message}"))
        return result

    def _learn_rules(
        self,
        organization_id: int,
        request: ExecuteImportRequest,
        staged: Sequence[tuple[AccountMapping, ParsedRow]],
    ) -> None:
        """Store rules for low-confidence rows and bump usage of matched rules.

        Failures are logged and ignored; rules only improve later suggestions.
        """
        if request.create_rules_from_mappings:
            candidates = [
                NewImportRule(
                    organization_id=organization_id,
                    description_pattern=row.description[:RULE_PATTERN_LENGTH],
                    account_id=mapping.account_id,
                    contra_account_id=mapping.contra_account_id,
                    confidence=LEARNED_RULE_CONFIDENCE,
                    usage_count=1,
                )
                for mapping, row in staged
                if mapping.confidence < RULE_CANDIDATE_THRESHOLD
            ]
            try:
                self.db.insert_import_rules(candidates)
            except StorageError:
                logger.warning("Could not store %d learned import rules", len(candidates), exc_info=True)

        usage = Counter(mapping.rule_id for mapping, _ in staged if mapping.rule_id is not None)
        try:
            self.db.increment_rule_usage(organization_id, dict(usage))
        except StorageError:
            logger.warning("Could not update import rule usage counts", exc_info=True)

    def get_import_history(
        self,
        user_id: int,
        organization_id: int,
        page: int = 1,
        page_size: int = 20,
        search: Optional[str] = None,
        order_by: str = "created_at",
        descending: bool = True,
    ) -> Page:
        """List the organization's imports, newest first by default."""
        self.access.require_membership(user_id, organization_id)
        if page < 1:
            raise ValidationError("Page must be 1 or greater")
        if not 1 <= page_size <= MAX_PAGE_SIZE:
            raise ValidationError(f"Page size must be between 1 and {MAX_PAGE_SIZE}")
        items, total = self.db.list_import_history(
            organization_id,
            search=search,
            order_by=order_by,
            descending=descending,
            offset=(page - 1) * page_size,
            limit=page_size,
        )
        return Page(items=tuple(items), page=page, page_size=page_size, total_count=total)

    def _check_rule_values(
        self,
        organization_id: int,
        account_ids: Sequence[int],
        confidence: Optional[float],
        description_pattern: Optional[str],
    ) -> None:
        owned = {acc.id for acc in self.db.list_accounts(organization_id)}
        if any(account_id not in owned for account_id in account_ids):
            raise ValidationError("Invalid account IDs provided.")
        if confidence is not None and not 0 <= confidence <= 1:
            raise ValidationError("Confidence must be between 0 and 1")
        if description_pattern is not None and not description_pattern.strip():
            raise ValidationError("Description pattern is required")

    def create_import_rule(
        self,
        user_id: int,
        organization_id: int,
        description_pattern: str,
        account_id: int,
        contra_account_id: int,
        confidence: float = 0.8,
    ) -> ImportRule:
        """Create a classification rule (owner or admin only)."""
        self.access.require_membership(user_id, organization_id, roles=RULE_ADMIN_ROLES)
        self._check_rule_values(organization_id, (account_id, contra_account_id), confidence, description_pattern)
        [rule_id] = self.db.insert_import_rules(
            [
                NewImportRule(
                    organization_id=organization_id,
                    description_pattern=description_pattern.strip(),
                    account_id=account_id,
                    contra_account_id=contra_account_id,
                    confidence=confidence,
                )
            ]
        )
        return self.db.get_import_rule(rule_id, organization_id)

    def get_import_rules(self, user_id: int, organization_id: int) -> list[ImportRule]:
        """List the organization's rules, most used first."""
        self.access.require_membership(user_id, organization_id)
        return self.db.list_import_rules(organization_id)

    def update_import_rule(self, user_id: int, organization_id: int, rule_id: int, **fields: Any) -> ImportRule:
        """Update rule fields (owner or admin only)."""
        self.access.require_membership(user_id, organization_id, roles=RULE_ADMIN_ROLES)
        if self.db.get_import_rule(rule_id, organization_id) is None:
            raise NotFoundError(rule_not_found(rule_id))
        account_ids = [fields[name] for name in ("account_id", "contra_account_id") if name in fields]
        self._check_rule_values(
            organization_id, account_ids, fields.get("confidence"), fields.get("description_pattern")
        )
        self.db.update_import_rule(rule_id, organization_id, **fields)
        return self.db.get_import_rule(rule_id, organization_id)

    def delete_import_rule(self, user_id: int, organization_id: int, rule_id: int) -> None:
        """Delete a rule (owner or admin only)."""
        self.access.require_membership(user_id, organization_id, roles=RULE_ADMIN_ROLES)
        self.db.delete_import_rule(rule_id, organization_id)

    def get_csv_templates(self) -> list[CsvTemplate]:
        """List active templates ordered by bank name."""
        return self.db.list_csv_templates(active_only=True)

    def seed_default_templates(self) -> int:
        """Install the built-in bank templates that are missing.

        Returns:
            Number of templates created
        """
        created = 0
        for template in DEFAULT_TEMPLATES:
            if self.db.get_csv_template_by_name(template["template_name"]) is None:
                self.db.create_csv_template(**template)
                created += 1
        if created:
            logger.info("Installed %d default CSV templates", created)
        return created
