"""Tests for ledger computation and export."""

from datetime import date
from decimal import Decimal

import pytest

from tallybook.domain.account import AccountService
from tallybook.domain.errors import NotFoundError, PermissionDeniedError, ValidationError
from tallybook.domain.ledger import LedgerKind, LedgerService
from tallybook.domain.organization import OrganizationService

JAN_1 = date(2024, 1, 1)
JAN_31 = date(2024, 1, 31)


def test_cash_book_running_balance(books, post_entry):
    post_entry(date(2024, 1, 10), "1010", "4110", 100, description="Cash sale")
    post_entry(date(2024, 1, 20), "7190", "1010", 40, description="Stationery")

    ledger = LedgerService(books.db).get_cash_book(books.owner.id, JAN_1, JAN_31)

    assert ledger.opening_balance == Decimal("0")
    assert [row.balance for row in ledger.entries] == [Decimal("100"), Decimal("60")]
    assert ledger.closing_balance == Decimal("60")
    assert [row.counter_account_name for row in ledger.entries] == ["売上", "その他経費"]
    assert [row.description for row in ledger.entries] == ["Cash sale", "Stationery"]


def test_opening_balance_from_earlier_entries(books, post_entry):
    post_entry(date(2024, 1, 5), "1010", "4110", 1000)
    post_entry(date(2024, 2, 3), "7190", "1010", 250)

    ledger = LedgerService(books.db).get_cash_book(books.owner.id, date(2024, 2, 1), date(2024, 2, 29))

    assert ledger.opening_balance == Decimal("1000")
    assert ledger.closing_balance == Decimal("750")


def test_drafts_do_not_move_ledgers(books, post_entry):
    post_entry(date(2024, 1, 10), "1010", "4110", 100, approve=False)
    ledger = LedgerService(books.db).get_cash_book(books.owner.id, JAN_1, JAN_31)
    assert ledger.entries == ()
    assert ledger.closing_balance == ledger.opening_balance == Decimal("0")


def test_bank_book_uses_deposit_accounts(books, post_entry):
    post_entry(date(2024, 1, 10), "1110", "4110", 300000)
    ledger = LedgerService(books.db).get_bank_book(books.owner.id, JAN_1, JAN_31)
    assert ledger.closing_balance == Decimal("300000")


def test_payables_are_credit_normal(books, post_entry):
    post_entry(date(2024, 1, 10), "7190", "2110", 300, description="Supplies on credit")
    post_entry(date(2024, 1, 25), "2110", "1110", 100, description="Partial payment")

    ledger = LedgerService(books.db).get_accounts_payable(books.owner.id, JAN_1, JAN_31)

    assert [row.balance for row in ledger.entries] == [Decimal("300"), Decimal("200")]
    assert ledger.entries[1].counter_account_name == "普通預金"


def test_receivables_append_partner_name(books, post_entry):
    partner_id = AccountService(books.db).create_partner(books.org_id, "C001", "ABC商事")
    post_entry(date(2024, 1, 10), "1130", "4110", 500, description="Invoice 12", partner_id=partner_id)

    ledger = LedgerService(books.db).get_accounts_receivable(books.owner.id, JAN_1, JAN_31)

    [row] = ledger.entries
    assert row.description == "Invoice 12 (取引先: ABC商事)"
    assert row.partner_name == "ABC商事"


def test_general_ledger_uses_account_normal_side(books, post_entry):
    post_entry(date(2024, 1, 10), "1110", "4110", 800)
    ledger = LedgerService(books.db).get_general_ledger(books.owner.id, books.accounts["4110"], JAN_1, JAN_31)
    assert ledger.closing_balance == Decimal("800")


def test_start_after_end_rejected(books):
    with pytest.raises(ValidationError):
        LedgerService(books.db).get_cash_book(books.owner.id, JAN_31, JAN_1)


def test_missing_account_kind_is_not_found(books):
    other = OrganizationService(books.db).create_organization("Empty", "empty", "empty@example.com")
    user = books.db.get_user_by_email("empty@example.com")
    with pytest.raises(NotFoundError, match="Cash account not found"):
        LedgerService(books.db).get_cash_book(user.id, JAN_1, JAN_31, organization_id=other.id)


def test_non_member_cannot_read(books):
    with pytest.raises(PermissionDeniedError):
        LedgerService(books.db).get_cash_book(books.outsider.id, JAN_1, JAN_31, organization_id=books.org_id)


def test_unknown_counter_account_when_entry_only_touches_tracked_accounts(books, post_entry):
    post_entry(date(2024, 1, 10), "1110", "1010", 100)
    ledger = LedgerService(books.db).compute_ledger(
        books.org_id, [books.accounts["1010"], books.accounts["1110"]], JAN_1, JAN_31
    )
    assert [row.counter_account_name for row in ledger.entries] == ["Unknown", "Unknown"]
    assert ledger.closing_balance == Decimal("0")


def test_export_cash_book(books, post_entry):
    post_entry(date(2024, 1, 10), "1010", "4110", 100, description="Cash sale")

    text = LedgerService(books.db).export_ledger_to_csv(books.owner.id, LedgerKind.CASH, JAN_1, JAN_31)

    lines = text.splitlines()
    assert lines[0] == "日付,仕訳番号,摘要,相手勘定,借方金額,貸方金額,残高"
    assert lines[1] == "2024-01-01,-,開始残高,-,-,-,0.00"
    assert lines[2].startswith("2024-01-10,2024010001,Cash sale,売上,")
    assert lines[2].endswith(",100.00")
    assert lines[3] == "2024-01-31,-,終了残高,-,-,-,100.00"
