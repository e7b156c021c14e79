"""Domain model entities for tallybook.

These are pure data classes representing business concepts, independent of
database schema. The database layer converts ORM rows into these through
`tallybook.database.mappers`, so services never touch SQLAlchemy objects.
"""

from dataclasses import dataclass, field
from datetime import datetime, date
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

# Tolerance used for every debit/credit and amount equality check.
BALANCE_EPSILON = Decimal("0.01")


class AccountType(str, Enum):
    """Chart-of-accounts classification."""

    ASSETS = "ASSETS"
    LIABILITIES = "LIABILITIES"
    EQUITY = "EQUITY"
    REVENUE = "REVENUE"
    EXPENSES = "EXPENSES"

    @property
    def is_credit_normal(self) -> bool:
        """Liability, equity and revenue balances grow with credits."""
        return self in (AccountType.LIABILITIES, AccountType.EQUITY, AccountType.REVENUE)


class Role(str, Enum):
    """Membership role of a user inside an organization."""

    OWNER = "owner"
    ADMIN = "admin"
    ACCOUNTANT = "accountant"
    MEMBER = "member"
    VIEWER = "viewer"


class ImportStatus(str, Enum):
    """Lifecycle state of an import history record."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class JournalStatus(str, Enum):
    """Approval state of a journal entry."""

    DRAFT = "draft"
    APPROVED = "approved"
    POSTED = "posted"


class TransactionType(str, Enum):
    """Direction of a bank statement row."""

    INCOME = "income"
    EXPENSE = "expense"


@dataclass(frozen=True)
class Organization:
    """Tenant owning accounts, entries and imports."""

    id: int
    name: str
    code: str
    created_at: datetime


@dataclass(frozen=True)
class User:
    """Authenticated user."""

    id: int
    email: str
    name: str
    is_active: bool = True


@dataclass(frozen=True)
class Membership:
    """A user's role inside one organization."""

    user_id: int
    organization_id: int
    role: Role
    is_default: bool = False


@dataclass(frozen=True)
class AccountingPeriod:
    """Fiscal period journal entries are posted into."""

    id: int
    organization_id: int
    fiscal_year: int
    name: str
    start_date: date
    end_date: date
    is_closed: bool = False

    def contains(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date


@dataclass(frozen=True)
class Account:
    """Chart-of-accounts node."""

    id: int
    organization_id: int
    code: str
    name: str
    account_type: AccountType
    is_active: bool = True


@dataclass(frozen=True)
class Partner:
    """Counterparty (customer or supplier)."""

    id: int
    organization_id: int
    code: str
    name: str


@dataclass(frozen=True)
class JournalEntryLine:
    """One debit or credit line of a journal entry."""

    id: int
    journal_entry_id: int
    account_id: int
    line_number: int
    debit_amount: Decimal
    credit_amount: Decimal
    description: Optional[str] = None
    partner_id: Optional[int] = None


@dataclass(frozen=True)
class JournalEntry:
    """Dated, described transaction with two or more lines."""

    id: int
    organization_id: int
    accounting_period_id: int
    entry_number: str
    entry_date: date
    description: str
    status: JournalStatus
    total_amount: Decimal
    created_by: int
    created_at: datetime
    lines: tuple[JournalEntryLine, ...] = ()


@dataclass(frozen=True)
class NewJournalEntry:
    """Header values for a journal entry that has not been stored yet."""

    organization_id: int
    accounting_period_id: int
    entry_number: str
    entry_date: date
    description: str
    total_amount: Decimal
    created_by: int
    status: JournalStatus = JournalStatus.DRAFT


@dataclass(frozen=True)
class NewJournalEntryLine:
    """Line values for a journal entry line that has not been stored yet."""

    journal_entry_id: int
    account_id: int
    line_number: int
    debit_amount: Decimal
    credit_amount: Decimal
    description: Optional[str] = None
    partner_id: Optional[int] = None


@dataclass(frozen=True)
class CsvTemplate:
    """Named bank CSV layout."""

    id: int
    bank_name: str
    template_name: str
    column_mapping: dict[str, str]
    date_format: str = "YYYY-MM-DD"
    encoding: str = "UTF-8"
    delimiter: str = ","
    skip_rows: int = 0
    is_active: bool = True


@dataclass(frozen=True)
class ParsedRow:
    """One bank statement line in canonical shape."""

    row_index: int
    date: date
    description: str
    amount: Decimal
    type: TransactionType
    original_row: dict[str, str]
    balance: Optional[Decimal] = None


@dataclass(frozen=True)
class ImportHistory:
    """Record of one upload-to-completion attempt."""

    id: int
    organization_id: int
    user_id: int
    file_name: str
    file_size: int
    csv_format: Optional[str]
    total_rows: int
    imported_rows: int
    failed_rows: int
    status: ImportStatus
    file_data: Optional[dict[str, Any]]
    error_message: Optional[str]
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class ImportRule:
    """Description pattern mapped to a debit/credit account pair."""

    id: int
    organization_id: int
    description_pattern: str
    account_id: int
    contra_account_id: int
    confidence: float
    usage_count: int
    is_active: bool = True


@dataclass(frozen=True)
class NewImportRule:
    """Rule values for an import rule that has not been stored yet."""

    organization_id: int
    description_pattern: str
    account_id: int
    contra_account_id: int
    confidence: float = 0.7
    usage_count: int = 0
    is_active: bool = True


@dataclass(frozen=True)
class AccountSuggestion:
    """Classifier answer for one row."""

    account_id: int
    contra_account_id: int
    confidence: float
    reason: str = ""
    rule_id: Optional[int] = None


@dataclass(frozen=True)
class DuplicateDetails:
    """The existing journal entry a row appears to repeat."""

    journal_entry_id: int
    date: date
    amount: Decimal
    description: str


@dataclass(frozen=True)
class DuplicateInfo:
    """Duplicate verdict for one row."""

    is_duplicate: bool
    duplicate_type: str = "existing"
    journal_entry_id: Optional[int] = None
    duplicate_row_index: Optional[int] = None
    duplicate_details: Optional[DuplicateDetails] = None


@dataclass(frozen=True)
class AccountMapping:
    """Per-row account assignment and duplicate verdict."""

    row_index: int
    account_id: Optional[int]
    contra_account_id: Optional[int]
    confidence: float = 0.0
    is_duplicate: bool = False
    duplicate_details: Optional[DuplicateDetails] = None
    rule_id: Optional[int] = None


@dataclass(frozen=True)
class CsvPreview:
    """Stored rows shown side by side with their suggestions."""

    rows: tuple[ParsedRow, ...]
    columns: tuple[str, ...]
    total_rows: int
    template: Optional[CsvTemplate]
    errors: tuple[str, ...] = ()


@dataclass(frozen=True)
class ImportPreview:
    """Result of previewing an import."""

    preview: CsvPreview
    mappings: tuple[AccountMapping, ...]


@dataclass(frozen=True)
class ExecuteImportRequest:
    """User-confirmed mappings for one import."""

    import_id: int
    mappings: tuple[AccountMapping, ...]
    skip_duplicates: bool = True
    create_rules_from_mappings: bool = False


@dataclass(frozen=True)
class RowError:
    """Error attached to one row; row -1 marks a batch-level failure."""

    row: int
    error: str

    def to_dict(self) -> dict[str, Any]:
        return {"row": self.row, "error": self.error}


@dataclass
class BatchResult:
    """Outcome of one bulk write stage."""

    succeeded: list[Any] = field(default_factory=list)
    failed: list[RowError] = field(default_factory=list)


@dataclass(frozen=True)
class ImportSummary:
    """Counts and created ids returned by an import execution."""

    total_rows: int
    imported_rows: int
    failed_rows: int
    skipped_rows: int
    created_journal_entries: tuple[int, ...]
    orphaned_journal_entries: tuple[int, ...] = ()
    errors: tuple[RowError, ...] = ()


@dataclass(frozen=True)
class LedgerEntry:
    """One ledger row for one tracked journal entry line."""

    id: int
    date: date
    entry_number: str
    description: str
    debit_amount: Decimal
    credit_amount: Decimal
    balance: Decimal
    counter_account_name: str
    partner_name: Optional[str] = None


@dataclass(frozen=True)
class LedgerData:
    """Opening balance, rows and closing balance of a ledger."""

    opening_balance: Decimal
    entries: tuple[LedgerEntry, ...]
    closing_balance: Decimal


@dataclass(frozen=True)
class Page:
    """One page of a paginated listing."""

    items: tuple[Any, ...]
    page: int
    page_size: int
    total_count: int

    @property
    def total_pages(self) -> int:
        if self.page_size <= 0:
            return 0
        return -(-self.total_count // self.page_size)
