"""Mapper functions to convert between domain models and SQLAlchemy models.

This layer isolates the conversion logic, making it easy to change when
the database schema changes.
"""

from decimal import Decimal

from tallybook.domain import entities as domain
from tallybook.database.models import (
    Organization as ORMOrganization,
    User as ORMUser,
    UserOrganization as ORMUserOrganization,
    AccountingPeriod as ORMAccountingPeriod,
    Account as ORMAccount,
    Partner as ORMPartner,
    JournalEntry as ORMJournalEntry,
    JournalEntryLine as ORMJournalEntryLine,
    CsvTemplate as ORMCsvTemplate,
    ImportHistory as ORMImportHistory,
    ImportRule as ORMImportRule,
)


def _money(value) -> Decimal:
    return Decimal(value if value is not None else 0).quantize(Decimal("0.01"))


def organization_to_domain(orm_org: ORMOrganization) -> domain.Organization:
    """Convert SQLAlchemy Organization model to domain Organization entity."""
    return domain.Organization(
        id=orm_org.id,
        name=orm_org.name,
        code=orm_org.code,
        created_at=orm_org.created_at,
    )


def user_to_domain(orm_user: ORMUser) -> domain.User:
    """Convert SQLAlchemy User model to domain User entity."""
    return domain.User(
        id=orm_user.id,
        email=orm_user.email,
        name=orm_user.name,
        is_active=orm_user.is_active,
    )


def membership_to_domain(orm_membership: ORMUserOrganization) -> domain.Membership:
    """Convert SQLAlchemy UserOrganization model to domain Membership entity."""
    return domain.Membership(
        user_id=orm_membership.user_id,
        organization_id=orm_membership.organization_id,
        role=domain.Role(orm_membership.role),
        is_default=orm_membership.is_default,
    )


def accounting_period_to_domain(orm_period: ORMAccountingPeriod) -> domain.AccountingPeriod:
    """Convert SQLAlchemy AccountingPeriod model to domain AccountingPeriod entity."""
    return domain.AccountingPeriod(
        id=orm_period.id,
        organization_id=orm_period.organization_id,
        fiscal_year=orm_period.fiscal_year,
        name=orm_period.name,
        start_date=orm_period.start_date,
        end_date=orm_period.end_date,
        is_closed=orm_period.is_closed,
    )


def account_to_domain(orm_account: ORMAccount) -> domain.Account:
    """Convert SQLAlchemy Account model to domain Account entity."""
    return domain.Account(
        id=orm_account.id,
        organization_id=orm_account.organization_id,
        code=orm_account.code,
        name=orm_account.name,
        account_type=domain.AccountType(orm_account.account_type),
        is_active=orm_account.is_active,
    )


def partner_to_domain(orm_partner: ORMPartner) -> domain.Partner:
    """Convert SQLAlchemy Partner model to domain Partner entity."""
    return domain.Partner(
        id=orm_partner.id,
        organization_id=orm_partner.organization_id,
        code=orm_partner.code,
        name=orm_partner.name,
    )


def journal_entry_line_to_domain(orm_line: ORMJournalEntryLine) -> domain.JournalEntryLine:
    """Convert SQLAlchemy JournalEntryLine model to domain JournalEntryLine entity."""
    return domain.JournalEntryLine(
        id=orm_line.id,
        journal_entry_id=orm_line.journal_entry_id,
        account_id=orm_line.account_id,
        line_number=orm_line.line_number,
        debit_amount=_money(orm_line.debit_amount),
        credit_amount=_money(orm_line.credit_amount),
        description=orm_line.description,
        partner_id=orm_line.partner_id,
    )


def journal_entry_to_domain(
    orm_entry: ORMJournalEntry, include_lines: bool = True
) -> domain.JournalEntry:
    """Convert SQLAlchemy JournalEntry model to domain JournalEntry entity."""
    lines: tuple[domain.JournalEntryLine, ...] = ()
    if include_lines:
        lines = tuple(journal_entry_line_to_domain(line) for line in orm_entry.lines)
    return domain.JournalEntry(
        id=orm_entry.id,
        organization_id=orm_entry.organization_id,
        accounting_period_id=orm_entry.accounting_period_id,
        entry_number=orm_entry.entry_number,
        entry_date=orm_entry.entry_date,
        description=orm_entry.description,
        status=domain.JournalStatus(orm_entry.status),
        total_amount=_money(orm_entry.total_amount),
        created_by=orm_entry.created_by,
        created_at=orm_entry.created_at,
        lines=lines,
    )


def csv_template_to_domain(orm_template: ORMCsvTemplate) -> domain.CsvTemplate:
    """Convert SQLAlchemy CsvTemplate model to domain CsvTemplate entity."""
    return domain.CsvTemplate(
        id=orm_template.id,
        bank_name=orm_template.bank_name,
        template_name=orm_template.template_name,
        column_mapping=dict(orm_template.column_mappings or {}),
        date_format=orm_template.date_format,
        encoding=orm_template.encoding,
        delimiter=orm_template.delimiter,
        skip_rows=orm_template.skip_rows,
        is_active=orm_template.is_active,
    )


def import_history_to_domain(orm_history: ORMImportHistory) -> domain.ImportHistory:
    """Convert SQLAlchemy ImportHistory model to domain ImportHistory entity."""
    return domain.ImportHistory(
        id=orm_history.id,
        organization_id=orm_history.organization_id,
        user_id=orm_history.user_id,
        file_name=orm_history.file_name,
        file_size=orm_history.file_size,
        csv_format=orm_history.csv_format,
        total_rows=orm_history.total_rows,
        imported_rows=orm_history.imported_rows,
        failed_rows=orm_history.failed_rows,
        status=domain.ImportStatus(orm_history.status),
        file_data=orm_history.file_data,
        error_message=orm_history.error_message,
        created_at=orm_history.created_at,
        updated_at=orm_history.updated_at,
    )


def import_rule_to_domain(orm_rule: ORMImportRule) -> domain.ImportRule:
    """Convert SQLAlchemy ImportRule model to domain ImportRule entity."""
    return domain.ImportRule(
        id=orm_rule.id,
        organization_id=orm_rule.organization_id,
        description_pattern=orm_rule.description_pattern,
        account_id=orm_rule.account_id,
        contra_account_id=orm_rule.contra_account_id,
        confidence=float(orm_rule.confidence),
        usage_count=orm_rule.usage_count,
        is_active=orm_rule.is_active,
    )
