"""Abstract database interface.

The interface is split into narrow repositories, one per entity, exposing
only the filtered queries the domain services need. `Database` combines them
so a single object can be handed to every service.
"""

from abc import ABC, abstractmethod
from typing import Any, Iterable, Optional, Sequence
from datetime import date
from decimal import Decimal

# Import entities directly to avoid circular import through domain/__init__.py
from tallybook.domain.entities import (
    Account,
    AccountingPeriod,
    AccountType,
    CsvTemplate,
    ImportHistory,
    ImportRule,
    ImportStatus,
    JournalEntry,
    JournalStatus,
    Membership,
    NewImportRule,
    NewJournalEntry,
    NewJournalEntryLine,
    Organization,
    Partner,
    Role,
    User,
)


class OrganizationRepository(ABC):
    """Organizations, users and memberships."""

    @abstractmethod
    def create_organization(self, name: str, code: str) -> int:
        """Create an organization. Returns organization ID."""
        pass

    @abstractmethod
    def get_organization(self, organization_id: int) -> Optional[Organization]:
        """Get organization by ID."""
        pass

    @abstractmethod
    def create_user(self, email: str, name: str) -> int:
        """Create a user. Returns user ID."""
        pass

    @abstractmethod
    def get_user(self, user_id: int) -> Optional[User]:
        """Get user by ID."""
        pass

    @abstractmethod
    def get_user_by_email(self, email: str) -> Optional[User]:
        """Get user by email address."""
        pass

    @abstractmethod
    def add_membership(
        self, user_id: int, organization_id: int, role: Role, is_default: bool = False
    ) -> None:
        """Add a user to an organization."""
        pass

    @abstractmethod
    def get_membership(self, user_id: int, organization_id: int) -> Optional[Membership]:
        """Get the membership of a user in an organization."""
        pass

    @abstractmethod
    def get_default_membership(self, user_id: int) -> Optional[Membership]:
        """Get the membership flagged as the user's default organization."""
        pass


class AccountingPeriodRepository(ABC):
    """Fiscal periods."""

    @abstractmethod
    def create_accounting_period(
        self, organization_id: int, fiscal_year: int, name: str, start_date: date, end_date: date
    ) -> int:
        """Create an accounting period. Returns period ID."""
        pass

    @abstractmethod
    def get_accounting_period(self, period_id: int) -> Optional[AccountingPeriod]:
        """Get accounting period by ID."""
        pass

    @abstractmethod
    def list_accounting_periods(self, organization_id: int) -> list[AccountingPeriod]:
        """List periods of an organization, newest first."""
        pass

    @abstractmethod
    def get_open_accounting_period(self, organization_id: int) -> Optional[AccountingPeriod]:
        """Get the non-closed period with the latest start date."""
        pass

    @abstractmethod
    def close_accounting_period(self, period_id: int) -> None:
        """Mark a period as closed."""
        pass


class AccountRepository(ABC):
    """Chart of accounts and partners."""

    @abstractmethod
    def create_account(
        self, organization_id: int, code: str, name: str, account_type: AccountType
    ) -> int:
        """Create an account. Returns account ID."""
        pass

    @abstractmethod
    def get_account(self, account_id: int) -> Optional[Account]:
        """Get account by ID."""
        pass

    @abstractmethod
    def list_accounts(self, organization_id: int, active_only: bool = False) -> list[Account]:
        """List accounts of an organization ordered by code."""
        pass

    @abstractmethod
    def create_partner(self, organization_id: int, code: str, name: str) -> int:
        """Create a partner. Returns partner ID."""
        pass

    @abstractmethod
    def list_partners(self, organization_id: int) -> list[Partner]:
        """List partners of an organization."""
        pass


class JournalEntryRepository(ABC):
    """Journal entries and their lines."""

    @abstractmethod
    def insert_journal_entries(self, entries: Sequence[NewJournalEntry]) -> list[int]:
        """Insert journal entry headers in one call. Returns IDs in input order.

        Raises:
            StorageError: If the insert fails; nothing is written.
        """
        pass

    @abstractmethod
    def insert_journal_entry_lines(self, lines: Sequence[NewJournalEntryLine]) -> list[int]:
        """Insert journal entry lines in one call. Returns IDs in input order.

        Raises:
            StorageError: If the insert fails; nothing is written.
        """
        pass

    @abstractmethod
    def get_journal_entry(self, entry_id: int) -> Optional[JournalEntry]:
        """Get journal entry with its lines."""
        pass

    @abstractmethod
    def list_journal_entries(
        self,
        organization_id: int,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        status: Optional[JournalStatus] = None,
        include_lines: bool = False,
    ) -> list[JournalEntry]:
        """List journal entries ordered by entry date ascending."""
        pass

    @abstractmethod
    def list_entry_numbers(self, organization_id: int) -> list[str]:
        """List every entry number used by an organization."""
        pass

    @abstractmethod
    def update_journal_entry_status(self, entry_id: int, status: JournalStatus) -> None:
        """Update the status of a journal entry."""
        pass

    @abstractmethod
    def delete_journal_entry(self, entry_id: int) -> None:
        """Delete a journal entry together with its lines."""
        pass

    @abstractmethod
    def sum_lines_before(
        self,
        organization_id: int,
        account_ids: Iterable[int],
        before: date,
        status: JournalStatus = JournalStatus.APPROVED,
    ) -> tuple[Decimal, Decimal]:
        """Sum debit and credit of lines on the accounts dated strictly before a day.

        Returns:
            Tuple of (debit_total, credit_total)
        """
        pass


class CsvTemplateRepository(ABC):
    """Bank CSV templates."""

    @abstractmethod
    def create_csv_template(
        self,
        bank_name: str,
        template_name: str,
        column_mapping: dict[str, str],
        date_format: str = "YYYY-MM-DD",
        encoding: str = "UTF-8",
        delimiter: str = ",",
        skip_rows: int = 0,
        is_active: bool = True,
    ) -> int:
        """Create a CSV template. Returns template ID."""
        pass

    @abstractmethod
    def get_csv_template(self, template_id: int) -> Optional[CsvTemplate]:
        """Get CSV template by ID."""
        pass

    @abstractmethod
    def get_csv_template_by_name(self, template_name: str) -> Optional[CsvTemplate]:
        """Get CSV template by name."""
        pass

    @abstractmethod
    def list_csv_templates(self, active_only: bool = True) -> list[CsvTemplate]:
        """List templates ordered by bank name."""
        pass


class ImportHistoryRepository(ABC):
    """Import history records."""

    @abstractmethod
    def create_import_history(
        self,
        organization_id: int,
        user_id: int,
        file_name: str,
        file_size: int,
        csv_format: Optional[str],
        total_rows: int,
        file_data: dict[str, Any],
    ) -> int:
        """Create a pending import history. Returns history ID."""
        pass

    @abstractmethod
    def get_import_history(self, import_id: int, organization_id: int) -> Optional[ImportHistory]:
        """Get import history scoped to an organization."""
        pass

    @abstractmethod
    def list_import_history(
        self,
        organization_id: int,
        search: Optional[str] = None,
        order_by: str = "created_at",
        descending: bool = True,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[ImportHistory], int]:
        """List import history. Returns (items, total_count)."""
        pass

    @abstractmethod
    def transition_import_status(
        self, import_id: int, from_statuses: Sequence[ImportStatus], to_status: ImportStatus
    ) -> bool:
        """Atomically move an import to a new status if it is in one of from_statuses.

        Returns:
            True if this call performed the transition
        """
        pass

    @abstractmethod
    def finish_import(
        self,
        import_id: int,
        status: ImportStatus,
        imported_rows: int,
        failed_rows: int,
        error_message: Optional[str],
    ) -> None:
        """Record the final counts and status of an import."""
        pass


class ImportRuleRepository(ABC):
    """Classification rules."""

    @abstractmethod
    def insert_import_rules(self, rules: Sequence[NewImportRule]) -> list[int]:
        """Insert rules in one call. Returns IDs in input order.

        Raises:
            StorageError: If the insert fails; nothing is written.
        """
        pass

    @abstractmethod
    def get_import_rule(self, rule_id: int, organization_id: int) -> Optional[ImportRule]:
        """Get a rule scoped to an organization."""
        pass

    @abstractmethod
    def list_import_rules(self, organization_id: int, active_only: bool = False) -> list[ImportRule]:
        """List rules ordered by usage count, most used first."""
        pass

    @abstractmethod
    def update_import_rule(self, rule_id: int, organization_id: int, **fields: Any) -> None:
        """Update rule fields."""
        pass

    @abstractmethod
    def delete_import_rule(self, rule_id: int, organization_id: int) -> None:
        """Delete a rule."""
        pass

    @abstractmethod
    def increment_rule_usage(self, organization_id: int, usage: dict[int, int]) -> None:
        """Add the given counts to the usage_count of each of the organization's rules.

        Rule IDs belonging to other organizations are left untouched.
        """
        pass


class Database(
    OrganizationRepository,
    AccountingPeriodRepository,
    AccountRepository,
    JournalEntryRepository,
    CsvTemplateRepository,
    ImportHistoryRepository,
    ImportRuleRepository,
):
    """Abstract database interface for tallybook."""

    @abstractmethod
    def connect(self) -> None:
        """Connect to the database."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the database."""
        pass

    @abstractmethod
    def initialize_schema(self) -> None:
        """Initialize database schema (create tables)."""
        pass
