"""Shared pytest fixtures for tallybook tests."""

import tempfile
import os
from datetime import date
from decimal import Decimal
from types import SimpleNamespace
import pytest

from tallybook.database.factories import create_sqlite_database
from tallybook.domain.access import StaticSession
from tallybook.domain.account import AccountService
from tallybook.domain.accounting_period import AccountingPeriodService
from tallybook.domain.entities import AccountType, Role
from tallybook.domain.journal_entry import JournalEntryInput, JournalEntryService, JournalLineInput
from tallybook.domain.organization import OrganizationService

CHART_OF_ACCOUNTS = [
    ("1010", "現金", AccountType.ASSETS),
    ("1110", "普通預金", AccountType.ASSETS),
    ("1130", "売掛金", AccountType.ASSETS),
    ("2110", "買掛金", AccountType.LIABILITIES),
    ("4110", "売上", AccountType.REVENUE),
    ("7110", "旅費交通費", AccountType.EXPENSES),
    ("7130", "水道光熱費", AccountType.EXPENSES),
    ("7140", "通信費", AccountType.EXPENSES),
    ("7190", "その他経費", AccountType.EXPENSES),
]


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    # Create a temporary file for the database
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    # Create database
    db = create_sqlite_database(database_path=db_path)
    # Store the path for tests that need it
    db.database_path = db_path
    db.connect()
    db.initialize_schema()

    yield db

    # Cleanup
    db.disconnect()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def books(temp_db):
    """An organization with an owner, a member, a viewer, a chart of accounts and an open FY2024."""
    org_service = OrganizationService(temp_db)
    organization = org_service.create_organization("Yamada Shoten", "yamada", "owner@example.com")
    owner = temp_db.get_user_by_email("owner@example.com")
    member = org_service.add_member(organization.id, "member@example.com", Role.MEMBER, is_default=True)
    accountant = org_service.add_member(organization.id, "accountant@example.com", Role.ACCOUNTANT, is_default=True)
    viewer = org_service.add_member(organization.id, "viewer@example.com", Role.VIEWER, is_default=True)
    outsider = org_service.get_or_create_user("outsider@example.com")

    account_service = AccountService(temp_db)
    accounts = {
        code: account_service.create_account(organization.id, code, name, account_type)
        for code, name, account_type in CHART_OF_ACCOUNTS
    }
    period = AccountingPeriodService(temp_db).create_period(
        organization.id, 2024, date(2024, 1, 1), date(2024, 12, 31)
    )

    return SimpleNamespace(
        db=temp_db,
        org_id=organization.id,
        owner=owner,
        member=member,
        accountant=accountant,
        viewer=viewer,
        outsider=outsider,
        accounts=accounts,
        period=period,
    )


@pytest.fixture
def owner_session(books):
    """Session signed in as the organization owner."""
    return StaticSession(books.owner)


@pytest.fixture
def post_entry(books):
    """Create a journal entry: post_entry(date, debit_code, credit_code, amount, approve=True)."""
    service = JournalEntryService(books.db)

    def _post(entry_date, debit_code, credit_code, amount, description="Entry", approve=True, partner_id=None):
        amount = Decimal(str(amount))
        entry = service.create_journal_entry(
            books.owner.id,
            JournalEntryInput(
                organization_id=books.org_id,
                entry_date=entry_date,
                description=description,
                lines=(
                    JournalLineInput(books.accounts[debit_code], debit_amount=amount, partner_id=partner_id),
                    JournalLineInput(books.accounts[credit_code], credit_amount=amount, partner_id=partner_id),
                ),
            ),
        )
        if approve:
            entry = service.approve_journal_entry(books.owner.id, books.org_id, entry.id)
        return entry

    return _post


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()
