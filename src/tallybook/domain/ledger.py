"""Ledger and running-balance computation.

A ledger tracks a set of accounts over a date range: an opening balance
from approved lines dated before the range, one row per tracked line of each
approved entry inside the range, and the running balance after every row.
Only approved entries count; drafts (including freshly imported entries) do
not move a ledger until they are approved.
"""

import csv
import io
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Callable, Optional, Sequence

from tallybook.database.base import Database
from tallybook.domain.access import AccessService
from tallybook.domain.entities import Account, JournalStatus, LedgerData, LedgerEntry
from tallybook.domain.errors import NotFoundError, ValidationError, account_not_found

UNKNOWN_ACCOUNT = "Unknown"
_CENT = Decimal("0.01")


class LedgerKind(str, Enum):
    """Named subsidiary ledgers."""

    CASH = "cash"
    BANK = "bank"
    RECEIVABLE = "accounts-receivable"
    PAYABLE = "accounts-payable"


# Export header row for each ledger kind
EXPORT_HEADERS = {
    LedgerKind.CASH: ["日付", "仕訳番号", "摘要", "相手勘定", "借方金額", "貸方金額", "残高"],
    LedgerKind.BANK: ["日付", "仕訳番号", "摘要", "相手勘定", "入金", "出金", "残高"],
    LedgerKind.RECEIVABLE: ["日付", "仕訳番号", "摘要", "相手勘定", "売上", "回収", "残高"],
    LedgerKind.PAYABLE: ["日付", "仕訳番号", "摘要", "相手勘定", "仕入", "支払", "残高"],
}


def _is_cash(account: Account) -> bool:
    return account.code == "1010" or account.name in ("現金", "Cash")


def _is_bank(account: Account) -> bool:
    return account.code.startswith("102") or "預金" in account.name or "bank" in account.name.lower()


def _is_receivable(account: Account) -> bool:
    return account.code.startswith("113") or "売掛" in account.name or "receivable" in account.name.lower()


def _is_payable(account: Account) -> bool:
    return account.code.startswith("211") or "買掛" in account.name or "payable" in account.name.lower()


# kind -> (account filter, label used in errors, credit-normal, append partner name)
_LEDGER_RULES: dict[LedgerKind, tuple[Callable[[Account], bool], str, bool, bool]] = {
    LedgerKind.CASH: (_is_cash, "Cash account", False, False),
    LedgerKind.BANK: (_is_bank, "Bank account", False, False),
    LedgerKind.RECEIVABLE: (_is_receivable, "Accounts receivable account", False, True),
    LedgerKind.PAYABLE: (_is_payable, "Accounts payable account", True, True),
}


def _q(value: Decimal) -> Decimal:
    return Decimal(value).quantize(_CENT)


class LedgerService:
    """Service computing ledgers for an organization."""

    def __init__(self, db: Database):
        """Initialize ledger service.

        Args:
            db: Database instance
        """
        self.db = db
        self.access = AccessService(db)

    def compute_ledger(
        self,
        organization_id: int,
        account_ids: Sequence[int],
        start_date: date,
        end_date: date,
        credit_normal: bool = False,
        with_partner: bool = False,
    ) -> LedgerData:
        """Compute opening balance, rows and closing balance.

        Args:
            organization_id: Organization the accounts belong to
            account_ids: Tracked accounts
            start_date: First day of the range (inclusive)
            end_date: Last day of the range (inclusive)
            credit_normal: Grow the balance with credits instead of debits
            with_partner: Append the line's partner name to the description

        Returns:
            LedgerData
        """
        if start_date > end_date:
            raise ValidationError("Start date must not be after end date")

        tracked = set(account_ids)
        sign = Decimal(-1) if credit_normal else Decimal(1)

        debit_before, credit_before = self.db.sum_lines_before(organization_id, tracked, start_date)
        net = Decimal(debit_before) - Decimal(credit_before)
        opening = _q(-net if credit_normal else net)

        account_names = {acc.id: acc.name for acc in self.db.list_accounts(organization_id)}
        partner_names = {}
        if with_partner:
            partner_names = {p.id: p.name for p in self.db.list_partners(organization_id)}

        entries = self.db.list_journal_entries(
            organization_id,
            start_date=start_date,
            end_date=end_date,
            status=JournalStatus.APPROVED,
            include_lines=True,
        )

        balance = opening
        rows: list[LedgerEntry] = []
        for entry in entries:
            tracked_lines = [line for line in entry.lines if line.account_id in tracked]
            if not tracked_lines:
                continue
            counter = next((line for line in entry.lines if line.account_id not in tracked), None)
            counter_name = account_names.get(counter.account_id, UNKNOWN_ACCOUNT) if counter else UNKNOWN_ACCOUNT

            for line in tracked_lines:
                balance = _q(balance + sign * (line.debit_amount - line.credit_amount))
                description = line.description or entry.description
                partner_name = partner_names.get(line.partner_id) if line.partner_id is not None else None
                if partner_name:
                    description = f"{description} (取引先: {partner_name})"
                rows.append(
                    LedgerEntry(
                        id=line.id,
                        date=entry.entry_date,
                        entry_number=entry.entry_number,
                        description=description,
                        debit_amount=line.debit_amount,
                        credit_amount=line.credit_amount,
                        balance=balance,
                        counter_account_name=counter_name,
                        partner_name=partner_name,
                    )
                )

        return LedgerData(opening_balance=opening, entries=tuple(rows), closing_balance=balance)

    def _organization(self, user_id: int, organization_id: Optional[int]) -> int:
        if organization_id is None:
            organization_id = self.access.default_organization_id(user_id)
        self.access.require_membership(user_id, organization_id)
        return organization_id

    def get_ledger(
        self,
        user_id: int,
        kind: LedgerKind,
        start_date: date,
        end_date: date,
        organization_id: Optional[int] = None,
    ) -> LedgerData:
        """Compute a named ledger.

        Accounts are picked by chart code or name: cash is 1010/現金, bank is
        102*/預金, receivables are 113*/売掛 and payables 211*/買掛. The
        payables ledger is credit-normal.

        Raises:
            NotFoundError: If the organization has no account of that kind
        """
        organization_id = self._organization(user_id, organization_id)
        matches, label, credit_normal, with_partner = _LEDGER_RULES[LedgerKind(kind)]
        accounts = [acc for acc in self.db.list_accounts(organization_id) if matches(acc)]
        if not accounts:
            raise NotFoundError(f"{label} not found")
        return self.compute_ledger(
            organization_id,
            [acc.id for acc in accounts],
            start_date,
            end_date,
            credit_normal=credit_normal,
            with_partner=with_partner,
        )

    def get_cash_book(self, user_id: int, start_date: date, end_date: date, organization_id: Optional[int] = None) -> LedgerData:
        return self.get_ledger(user_id, LedgerKind.CASH, start_date, end_date, organization_id)

    def get_bank_book(self, user_id: int, start_date: date, end_date: date, organization_id: Optional[int] = None) -> LedgerData:
        return self.get_ledger(user_id, LedgerKind.BANK, start_date, end_date, organization_id)

    def get_accounts_receivable(
        self, user_id: int, start_date: date, end_date: date, organization_id: Optional[int] = None
    ) -> LedgerData:
        return self.get_ledger(user_id, LedgerKind.RECEIVABLE, start_date, end_date, organization_id)

    def get_accounts_payable(
        self, user_id: int, start_date: date, end_date: date, organization_id: Optional[int] = None
    ) -> LedgerData:
        return self.get_ledger(user_id, LedgerKind.PAYABLE, start_date, end_date, organization_id)

    def get_general_ledger(
        self,
        user_id: int,
        account_id: int,
        start_date: date,
        end_date: date,
        organization_id: Optional[int] = None,
    ) -> LedgerData:
        """Ledger of a single account on its normal side."""
        organization_id = self._organization(user_id, organization_id)
        account = self.db.get_account(account_id)
        if account is None or account.organization_id != organization_id:
            raise NotFoundError(account_not_found(account_id))
        return self.compute_ledger(
            organization_id,
            [account.id],
            start_date,
            end_date,
            credit_normal=account.account_type.is_credit_normal,
        )

    def export_ledger_to_csv(
        self,
        user_id: int,
        kind: LedgerKind,
        start_date: date,
        end_date: date,
        organization_id: Optional[int] = None,
    ) -> str:
        """Render a named ledger as CSV text.

        The header row is followed by an opening-balance line, one line per
        ledger row and a closing-balance line.
        """
        kind = LedgerKind(kind)
        ledger = self.get_ledger(user_id, kind, start_date, end_date, organization_id)

        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(EXPORT_HEADERS[kind])
        writer.writerow([start_date.isoformat(), "-", "開始残高", "-", "-", "-", ledger.opening_balance])
        for row in ledger.entries:
            writer.writerow(
                [
                    row.date.isoformat(),
                    row.entry_number,
                    row.description,
                    row.counter_account_name,
                    row.debit_amount,
                    row.credit_amount,
                    row.balance,
                ]
            )
        writer.writerow([end_date.isoformat(), "-", "終了残高", "-", "-", "-", ledger.closing_balance])
        return buffer.getvalue()
